from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..errors import UpstreamProviderError

log = logging.getLogger(__name__)


@dataclass
class BaseApiClient:
    """Thin JSON-over-HTTP client shared by every provider.

    Notes and assumptions:
    - `default_params` (API key, units, ...) are merged into every request; call
      parameters win on conflict and `None` values are dropped.
    - Retries are applied for transient HTTP errors (429/5xx) with exponential backoff.
    - Every failure surfaces as `UpstreamProviderError` so callers never see
      `requests` exceptions.
    """

    provider: str
    base_url: str
    default_params: Dict[str, Any] = field(default_factory=dict)
    timeout_connect: float = 5.0
    timeout_read: float = 15.0
    max_retries: int = 3
    backoff_factor: float = 0.5

    def _session(self) -> requests.Session:
        s = requests.Session()
        retries = Retry(
            total=self.max_retries,
            backoff_factor=self.backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"],
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retries)
        s.mount("https://", adapter)
        s.mount("http://", adapter)
        return s

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url.rstrip('/')}/{endpoint.lstrip('/')}"

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        merged = {**self.default_params, **(params or {})}
        merged = {k: v for k, v in merged.items() if v is not None}
        timeout = (self.timeout_connect, self.timeout_read)
        url = self._url(endpoint)

        try:
            with self._session() as s:
                resp = s.get(url, params=merged, timeout=timeout)
                resp.raise_for_status()
                return resp.json()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            detail = _error_detail(e.response) or str(e)
            log.warning("provider_http_error", extra={"provider": self.provider, "endpoint": endpoint, "status": status})
            raise UpstreamProviderError(self.provider, detail, status_code=status) from e
        except requests.Timeout as e:
            raise UpstreamProviderError(self.provider, f"request timed out: {e}") from e
        except requests.exceptions.JSONDecodeError as e:
            raise UpstreamProviderError(self.provider, f"invalid JSON body: {e}") from e
        except requests.RequestException as e:
            raise UpstreamProviderError(self.provider, f"no response received: {e}") from e


def _error_detail(resp: Optional[requests.Response]) -> Optional[str]:
    if resp is None:
        return None
    try:
        body = resp.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        msg = body.get("message") or body.get("Message")
        return str(msg) if msg else None
    return None
