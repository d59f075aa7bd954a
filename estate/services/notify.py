from __future__ import annotations

import httpx

from ..config import settings
from ..utils.log import get_logger

log = get_logger(__name__)


async def send_templated(address: str | None, template: str, context: dict) -> bool:
    """Ask the notification collaborator to send ``template`` to ``address``."""
    if not settings.NOTIFY_URL or not address:
        log.warning("notify skipped (no NOTIFY_URL or address) template=%s", template)
        return False
    headers = {"Authorization": f"Bearer {settings.NOTIFY_TOKEN}"} if settings.NOTIFY_TOKEN else {}
    async with httpx.AsyncClient(timeout=10) as c:
        try:
            r = await c.post(
                settings.NOTIFY_URL,
                json={"to": address, "template": template, "context": context},
                headers=headers,
            )
            r.raise_for_status()
        except httpx.HTTPError as e:
            log.warning("notify error template=%s to=%s: %s", template, address, e)
            return False
    return True
