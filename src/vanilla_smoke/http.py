"""
HTTP client for the forum under test.

This module provides a synchronous client built on httpx with:
- Cookie impersonation through an IdentityProvider
- Transient key injection for state-changing posts
- Error responses converted to HttpError subclasses
- Retry on connection failures
- Timeout configuration
"""

from typing import Any, Dict, Mapping, Optional, Tuple
from urllib.parse import parse_qsl, quote_plus, urlsplit
import logging

import httpx

from vanilla_smoke.exceptions import (
    NetworkError,
    RateLimitError,
    SmokeClientError,
    TimeoutError as ClientTimeoutError,
    exception_from_response,
)
from vanilla_smoke.identity import AnonymousIdentity, IdentityProvider
from vanilla_smoke.models import ApiResponse

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

# Methods that may be retried after a timeout without risking a double post.
IDEMPOTENT_METHODS = {"GET", "HEAD", "OPTIONS"}


def split_path(path: str, params: Optional[Mapping[str, Any]] = None) -> Tuple[str, Dict[str, Any]]:
    """
    Separate a query string embedded in ``path`` and merge it with ``params``.

    Explicit params win over the embedded ones. The returned path always
    starts with ``/`` so it resolves under the client's base URL.
    """
    parts = urlsplit(path)
    merged: Dict[str, Any] = dict(parse_qsl(parts.query, keep_blank_values=True))
    if params:
        merged.update({k: v for k, v in params.items() if v is not None})
    clean_path = parts.path if parts.path.startswith("/") else f"/{parts.path}"
    return clean_path, merged


class HTTPClient:
    """
    HTTP client for forum requests.

    This client handles:
    - Base URL management
    - Identity cookies, rebuilt for every request
    - Response parsing and error handling
    - Automatic retries for transient failures
    """

    def __init__(
        self,
        base_url: str,
        identity: Optional[IdentityProvider] = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Initialize the HTTP client.

        Args:
            base_url: Base URL of the forum (e.g., "http://localhost:8080")
            identity: Acting identity, anonymous when omitted
            timeout: Request timeout in seconds
            max_retries: Maximum number of attempts for failed connections
            headers: Additional headers to include in all requests
            transport: Custom httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.identity = identity or AnonymousIdentity()
        self.timeout = timeout
        self.max_retries = max_retries
        self._default_headers = headers or {}
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    def _get_client(self) -> httpx.Client:
        """Get or create the underlying httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client and not self._client.is_closed:
            self._client.close()
        self._client = None

    def __enter__(self) -> "HTTPClient":
        self._get_client()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def set_identity(self, identity: Optional[IdentityProvider]) -> None:
        """Switch the identity used for subsequent requests."""
        self.identity = identity or AnonymousIdentity()
        logger.debug("Acting identity is now %r", self.identity)

    def _build_headers(self, extra_headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Build request headers with identity cookies."""
        headers = {
            "Accept": "application/json",
            **self._default_headers,
        }
        cookies = self.identity.cookies()
        if cookies:
            headers["Cookie"] = "; ".join(f"{name}={value}" for name, value in cookies.items())
        if extra_headers:
            headers.update(extra_headers)
        return headers

    def _sign_body(
        self,
        json_data: Optional[Mapping[str, Any]],
        content: Optional[str],
    ) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
        """Add the identity's transient key to a post body."""
        tk = self.identity.transient_key()
        if json_data is not None:
            json_data = dict(json_data)
            if tk and "TransientKey" not in json_data:
                json_data["TransientKey"] = tk
        if content is not None and tk and "TransientKey=" not in content:
            separator = "&" if content else ""
            content = f"{content}{separator}TransientKey={quote_plus(tk)}"
        return json_data, content

    @staticmethod
    def _parse_body(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return {"raw": response.text}

    def _handle_error_response(self, response: httpx.Response) -> None:
        """Convert HTTP error responses to appropriate exceptions."""
        status_code = response.status_code

        # The forum reports errors as {"Code": ..., "Exception": ..., "Class": ...}
        try:
            error_data = response.json()
        except Exception:
            error_data = None

        if isinstance(error_data, dict):
            detail = (
                error_data.get("Exception")
                or error_data.get("message")
                or error_data.get("detail")
                or response.text
                or f"HTTP {status_code}"
            )
            error_code = error_data.get("Class") or error_data.get("error_code")
        else:
            detail = response.text or f"HTTP {status_code}"
            error_code = None

        logger.warning("%s %s failed: %s (HTTP %s)", response.request.method, response.request.url, detail, status_code)

        if status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                detail,
                error_code=error_code,
                body=error_data,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        raise exception_from_response(status_code, detail, error_code=error_code, body=error_data)

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        json_data: Optional[Mapping[str, Any]] = None,
        content: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> ApiResponse:
        """
        Make an HTTP request.

        Args:
            method: HTTP method (GET, POST, ...)
            path: Request path, may carry its own query string
            params: Query parameters
            json_data: JSON body
            content: Pre-encoded form body
            headers: Additional headers

        Returns:
            ApiResponse with the parsed body

        Raises:
            HttpError: On non-2xx responses
            NetworkError: On connection failures
            TimeoutError: On request timeout
        """
        method = method.upper()
        client = self._get_client()
        url, query = split_path(path, params)

        request_headers = self._build_headers(headers)
        if method == "POST":
            json_data, content = self._sign_body(json_data, content)
        if content is not None:
            request_headers.setdefault("Content-Type", FORM_CONTENT_TYPE)

        last_exception: Optional[SmokeClientError] = None
        for attempt in range(self.max_retries):
            # Server-set cookies are never replayed; identity comes from the provider.
            client.cookies.clear()
            logger.debug("%s %s params=%s (attempt %d)", method, url, query, attempt + 1)
            try:
                response = client.request(
                    method=method,
                    url=url,
                    params=query or None,
                    json=json_data,
                    content=content,
                    headers=request_headers,
                )
            except httpx.TimeoutException as e:
                last_exception = ClientTimeoutError(f"Request timed out: {e}")
                if method in IDEMPOTENT_METHODS and attempt < self.max_retries - 1:
                    continue
                raise last_exception from e
            except httpx.ConnectError as e:
                last_exception = NetworkError(f"Connection failed: {e}")
                if attempt < self.max_retries - 1:
                    continue
                raise last_exception from e
            except httpx.HTTPError as e:
                raise NetworkError(f"Request failed: {e}") from e

            if not response.is_success:
                self._handle_error_response(response)

            return ApiResponse(
                status_code=response.status_code,
                body=self._parse_body(response),
                headers=dict(response.headers),
                url=str(response.url),
            )

        if last_exception:
            raise last_exception
        raise NetworkError("Request failed after retries")

    def get(
        self,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> ApiResponse:
        """Make a GET request."""
        return self.request("GET", path, params=params, headers=headers)

    def post(
        self,
        path: str,
        *,
        json_data: Optional[Mapping[str, Any]] = None,
        content: Optional[str] = None,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> ApiResponse:
        """Make a POST request with either a JSON or a form body."""
        if json_data is not None and content is not None:
            raise ValueError("Pass either json_data or content, not both")
        return self.request(
            "POST",
            path,
            params=params,
            json_data=json_data,
            content=content,
            headers=headers,
        )
