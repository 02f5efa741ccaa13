"""Rate limiter configuration."""

from slowapi import Limiter
from slowapi.util import get_remote_address

STORY_RATE_LIMIT = "5/minute"
IMAGE_RATE_LIMIT = "30/minute"


def _get_rate_limit_key(request):
    """Key by the connecting client address.

    Client-supplied X-Forwarded-For is ignored; behind a reverse proxy run
    uvicorn with ``--proxy-headers --forwarded-allow-ips=<proxy>`` so the
    client address is taken from trusted proxies only.
    """
    return get_remote_address(request)


limiter = Limiter(key_func=_get_rate_limit_key)
