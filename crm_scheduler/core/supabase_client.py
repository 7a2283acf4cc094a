from functools import lru_cache
from supabase import create_client, Client
from crm_scheduler.core.config import settings

@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """
    Returns the shared Supabase client.
    Created on first use so importing the app does not require credentials.
    """
    return create_client(settings.supabase_url, settings.supabase_key)
