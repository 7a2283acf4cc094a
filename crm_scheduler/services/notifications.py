import logging
from typing import List, Optional

import httpx
from crm_scheduler.core.config import settings
from crm_scheduler.schemas.appointment import Id

logger = logging.getLogger(__name__)

async def notify_booking(appointment_id: Id, urls: Optional[List[str]] = None) -> int:
    """
    Fires the booking notification functions (SMS, email) for an appointment.
    Fire-and-forget: failures are logged, never retried, never raised.
    Returns how many endpoints accepted the call.
    """
    targets = settings.notification_webhook_urls if urls is None else urls
    if not targets:
        return 0

    payload = {"appointmentId": appointment_id}
    headers = {
        "Content-Type": "application/json",
        "apikey": settings.supabase_key,
    }

    delivered = 0
    async with httpx.AsyncClient(timeout=settings.notification_timeout_seconds) as client:
        for url in targets:
            try:
                response = await client.post(url, headers=headers, json=payload)
                if response.status_code >= 400:
                    logger.warning(f"Notification to {url} failed (Status {response.status_code})")
                    continue
                delivered += 1
            except httpx.HTTPError as e:
                logger.warning(f"Notification to {url} failed: {e}")
    logger.info(f"Booking {appointment_id}: {delivered}/{len(targets)} notification(s) sent")
    return delivered
