from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..logging import get_logger
from ..util.errors import ProtocolError, map_fetch_error

LOG = get_logger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_RETRIES = 3
RETRY_STATUS_CODES = (429, 500, 502, 503, 504)


def _query_params(request: Mapping[str, Any]) -> Dict[str, Any]:
    # Empty page tokens are left out so the first page request carries no token.
    return {k: v for k, v in request.items() if v is not None and v != ""}


def make_session(
    *,
    retries: int = DEFAULT_RETRIES,
    pool_size: Optional[int] = None,
    headers: Optional[Mapping[str, str]] = None,
) -> requests.Session:
    """
    Build a requests Session with transport-level retries mounted for
    http and https.
    """
    session = requests.Session()
    retry = Retry(
        total=max(retries, 0),
        backoff_factor=0.5,
        status_forcelist=RETRY_STATUS_CODES,
        allowed_methods=frozenset({"GET"}),
        raise_on_status=False,
    )
    adapter_kwargs: Dict[str, Any] = {"max_retries": retry}
    if pool_size is not None and pool_size >= 1:
        adapter_kwargs["pool_connections"] = pool_size
        adapter_kwargs["pool_maxsize"] = pool_size
    adapter = HTTPAdapter(**adapter_kwargs)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    if headers:
        session.headers.update(headers)
    return session


class HttpJsonFetcher:
    """
    Fetcher for JSON list endpoints: the request mapping becomes the query
    string of a GET and the decoded JSON object is the response.
    """

    def __init__(
        self,
        url: str,
        *,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = DEFAULT_RETRIES,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        if not url:
            raise ValueError("url is required")
        self.url = url
        self.timeout = timeout
        self._owns_session = session is None
        self.session = session if session is not None else make_session(retries=retries, headers=headers)
        if session is not None and headers:
            self.session.headers.update(headers)

    def __call__(self, request: Mapping[str, Any], **options: Any) -> Dict[str, Any]:
        if not isinstance(request, Mapping):
            raise TypeError(f"HttpJsonFetcher expects a mapping request, got {type(request).__name__}")
        timeout = options.pop("timeout", self.timeout)
        try:
            resp = self.session.get(self.url, params=_query_params(request), timeout=timeout, **options)
            resp.raise_for_status()
        except Exception as e:
            mapped = map_fetch_error(e, f"HTTP error while fetching {self.url}")
            if mapped:
                raise mapped from e
            raise
        try:
            body = resp.json()
        except ValueError as e:
            raise ProtocolError(f"Response from {self.url} is not valid JSON") from e
        if not isinstance(body, dict):
            raise ProtocolError(f"Response from {self.url} must be a JSON object, got {type(body).__name__}")
        LOG.debug("HTTP page fetched", extra={"step": "http", "phase": "complete", "status_code": resp.status_code})
        return body

    def close(self) -> None:
        if self._owns_session:
            self.session.close()

    def __enter__(self) -> HttpJsonFetcher:
        return self

    def __exit__(self, exc_type: Any, exc: Any, exc_tb: Any) -> None:
        self.close()

