"""
HTTP client shared by the upstream loaders.

Features:
- Per-host rate limiting (Nominatim allows 1 request/second)
- Retry with exponential backoff on transport failures
- requests exceptions translated into the engine's error taxonomy
"""

import threading
import time
import logging
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import requests
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from core.errors import APIError, NetworkError, RateLimitError

log = logging.getLogger(__name__)

# Last request time per host, shared by every client in the process
_last_request_time: Dict[str, float] = {}
_rate_lock = threading.Lock()


class JSONClient:
    """Rate-limited, retrying JSON GET client."""

    MIN_REQUEST_INTERVAL = 1.1  # seconds between requests to the same host

    def __init__(
        self,
        user_agent: str = "CRE-Financial-Tool/1.0",
        timeout: float = 30.0,
        min_interval: Optional[float] = None,
    ):
        self.timeout = timeout
        self.min_interval = self.MIN_REQUEST_INTERVAL if min_interval is None else min_interval
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": user_agent, "Accept": "application/json"})

    def _rate_limit(self, url: str):
        """Sleep until min_interval has passed since the last request to this host."""
        host = urlparse(url).netloc
        with _rate_lock:
            # Reserve the next slot for this host; the wait happens outside the lock
            now = time.time()
            slot = max(now, _last_request_time.get(host, 0.0) + self.min_interval)
            _last_request_time[host] = slot
        if slot > now:
            time.sleep(slot - now)

    @retry(
        retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=2, min=2, max=10),
        reraise=True,
    )
    def _make_request(self, url: str, params: Dict[str, Any]) -> Any:
        """Make a rate-limited request with retry."""
        self._rate_limit(url)
        response = self.session.get(url, params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def get_json(self, url: str, params: Dict[str, Any]) -> Any:
        """
        GET url and decode the JSON body.

        Raises:
            NetworkError: timeout or connection failure after retries
            RateLimitError: HTTP 429
            APIError: any other non-success status or an undecodable body
        """
        try:
            return self._make_request(url, params)
        except requests.Timeout as e:
            raise NetworkError("Request timeout", url=url) from e
        except requests.ConnectionError as e:
            raise NetworkError(f"Network error: {e}", url=url) from e
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else 500
            reason = e.response.reason if e.response is not None else str(e)
            if status == 429:
                retry_after = e.response.headers.get("Retry-After")
                raise RateLimitError(
                    "Too many requests - please wait and try again",
                    retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
                    url=url,
                ) from e
            raise APIError(f"API request failed: {status} {reason}", status=status, url=url) from e
        except ValueError as e:
            # requests raises a ValueError subclass for undecodable JSON
            raise APIError(f"Invalid JSON response: {e}", status=502, url=url) from e
        except requests.RequestException as e:
            raise NetworkError(f"Network error: {e}", url=url) from e
