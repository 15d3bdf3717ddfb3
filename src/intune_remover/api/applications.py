"""App registration secret expiry lookup.

Operators run the remover with an app registration whose client secret
eventually expires. This reads the registration's password credentials from
Graph and reports how many days the configured secret has left.
"""

import logging
import math
import re
from datetime import datetime, timezone
from typing import Optional

from .client import GraphClient
from .exceptions import NotFoundError

logger = logging.getLogger(__name__)

_FRACTION = re.compile(r"\.(\d+)")


def _parse_graph_datetime(value: str) -> datetime:
    # Graph emits 0 to 7 fractional digits; fromisoformat on 3.10 takes only 3 or 6
    value = value.replace("Z", "+00:00")
    value = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value, count=1)
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


async def days_until_secret_expiry(
    client: GraphClient,
    object_id: str,
    secret_key_id: str,
    now: Optional[datetime] = None,
) -> int:
    """Return the number of days until a client secret expires.

    Args:
        client: Open GraphClient
        object_id: Object id of the application registration
        secret_key_id: keyId of the password credential to check
        now: Reference time (defaults to the current UTC time)

    Returns:
        Days left, rounded up; zero or negative once expired

    Raises:
        NotFoundError: If the application has no secret with that keyId
    """
    application = await client.get(f"/applications/{object_id}")
    credentials = application.get("passwordCredentials") or []

    secret = next((c for c in credentials if c.get("keyId") == secret_key_id), None)
    if secret is None or not secret.get("endDateTime"):
        raise NotFoundError(resource_type="App secret", resource_id=secret_key_id)

    now = now or datetime.now(timezone.utc)
    remaining = _parse_graph_datetime(secret["endDateTime"]) - now
    days = math.ceil(remaining.total_seconds() / 86400)

    logger.info(f"App secret {secret_key_id} expires in {days} day(s)")
    return days
