"""HTTP session for the GDC API.

Transient server errors and rate limiting are retried at the transport
level by urllib3; the pipeline itself never retries.
"""

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

USER_AGENT = "immune-signature/0.1"

# 429 for rate limiting, 5xx for GDC gateway hiccups
RETRY_STATUSES = (429, 500, 502, 503, 504)


def create_session(
    max_retries: int = 3,
    backoff_factor: float = 1.0,
    user_agent: str = USER_AGENT,
) -> requests.Session:
    """
    Create a requests Session for GDC queries and downloads.

    Both GET (``/data``) and POST (``/files``) are retried: the files
    query is read-only, so repeating it is safe.

    Args:
        max_retries: Maximum retry attempts per request
        backoff_factor: Backoff multiplier between retries
        user_agent: User-Agent header value

    Returns:
        Configured requests.Session
    """
    retries = Retry(
        total=max_retries,
        backoff_factor=backoff_factor,
        status_forcelist=RETRY_STATUSES,
        allowed_methods=("GET", "POST"),
        respect_retry_after_header=True,
    )
    session = requests.Session()
    session.mount("https://", HTTPAdapter(max_retries=retries))
    session.headers.update({
        "User-Agent": user_agent,
        "Accept": "application/json",
    })
    return session
