from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Literal, Optional

class Settings(BaseSettings):
    app_name: str = "Service CRM Scheduling Engine"
    api_v1_str: str = "/api/v1"

    # Supabase configuration
    supabase_url: str = "your_supabase_url_here"
    supabase_key: str = "your_supabase_key_here"

    # Display timezone for calendar grids and drag targets (storage is always UTC)
    timezone: str = "UTC"

    # Calendar grid
    business_hour_start: int = 7
    business_hour_end: int = 19
    pixels_per_hour: float = 60.0
    min_visual_minutes: int = 30

    # Conflict detection
    fallback_duration_minutes: int = 60
    conflict_preview_limit: int = 3

    # Booking & recurrence
    default_recurrence_span_weeks: int = 4
    block_conflicting_bookings: bool = False

    # "advisory" commits a conflicting move and returns a warning, "strict" rejects it
    reschedule_policy: Literal["advisory", "strict"] = "advisory"

    # Fire-and-forget notification functions (SMS / email)
    notification_webhook_urls: List[str] = []
    notification_timeout_seconds: float = 5.0

    # Advertised to clients for the delete -> restore window
    undo_window_seconds: int = 5

    # Logging
    log_level: str = "INFO"
    debug_scheduler: bool = False

    new_relic_license_key: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore"
    )

settings = Settings()
