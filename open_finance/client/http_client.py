import asyncio
import ssl
from typing import Dict, Any, Optional, Union
import httpx

from open_finance import __version__
from open_finance.config.logging import get_logger, mask_sensitive_data
from open_finance.config.settings import settings
from open_finance.client.exceptions import (
    HTTPClientError,
    NoResponseError,
    RateLimitError,
    TimeoutError,
    ConnectionError,
    SetupError,
    ConfigurationError,
    CertificateError,
    create_http_error,
)

logger = get_logger(__name__)


def validate_base_url(base_url: Optional[str]) -> str:
    """Return the base URL without a trailing slash.

    Raises:
        ConfigurationError: If the URL is empty or lacks an http(s) scheme
    """
    if not base_url or not base_url.strip():
        raise ConfigurationError("OPENFINANCE_BASE_URL is not configured")

    base_url = base_url.strip().rstrip("/")
    if not base_url.lower().startswith(("http://", "https://")):
        raise ConfigurationError(
            f"OPENFINANCE_BASE_URL must start with http:// or https://, got '{base_url}'"
        )
    return base_url


class HTTPClient:
    """HTTP client wrapper for the Open Finance API with mutual TLS."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        cert_path: Optional[str] = None,
        key_path: Optional[str] = None,
        verify_ssl: Optional[bool] = None,
        timeout: Optional[float] = None,
        max_retries: int = 0,
        retry_backoff_factor: float = 2.0,
        use_certificates: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize HTTP client.

        Args:
            base_url: Base URL for API requests (defaults to env var)
            cert_path: Path to the TPP transport certificate (defaults to env var)
            key_path: Path to the TPP transport key (defaults to env var)
            verify_ssl: Verify the server certificate (defaults to env var)
            timeout: Request timeout in seconds (defaults to env var)
            max_retries: Retries for 5xx and network failures, 0 disables retrying
            retry_backoff_factor: Exponential backoff factor for retries
            use_certificates: Set to False to connect without a client certificate
            transport: Optional httpx transport, mainly for tests

        Raises:
            ConfigurationError: If the base URL is missing or has no http(s)
                scheme, or only half of the certificate pair is configured
            CertificateError: If the certificate pair cannot be loaded
        """
        self.base_url = validate_base_url(base_url or settings.openfinance_base_url)
        self.timeout = timeout or settings.openfinance_request_timeout
        self.verify_ssl = settings.openfinance_verify_ssl if verify_ssl is None else verify_ssl
        self.max_retries = max_retries
        self.retry_backoff_factor = retry_backoff_factor

        if use_certificates:
            self.cert_path = cert_path or settings.transport_cert_path
            self.key_path = key_path or settings.transport_key_path
        else:
            self.cert_path = None
            self.key_path = None

        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            verify=self._build_ssl_context(),
            headers={
                "User-Agent": f"open-finance-python-client/{__version__}",
                "Accept": "application/json",
            },
            follow_redirects=True,
            transport=transport,
        )

        logger.info(
            f"HTTP client initialized with base URL: {self.base_url} "
            f"(mTLS: {'enabled' if self.uses_mtls else 'disabled'})"
        )

    @property
    def uses_mtls(self) -> bool:
        return bool(self.cert_path and self.key_path)

    def _build_ssl_context(self) -> Union[ssl.SSLContext, bool]:
        """Build the TLS context carrying the TPP transport certificate."""
        if not self.cert_path and not self.key_path:
            return self.verify_ssl

        if not (self.cert_path and self.key_path):
            raise ConfigurationError(
                "Both TRANSPORT_CERT_PATH and TRANSPORT_KEY_PATH must be set for mTLS"
            )

        context = ssl.create_default_context()
        if not self.verify_ssl:
            # Sandbox servers present self-signed certificates
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE

        try:
            context.load_cert_chain(certfile=self.cert_path, keyfile=self.key_path)
        except OSError as e:
            logger.error(f"Setup error: could not load TPP certificates: {e}")
            raise CertificateError(
                f"Failed to load certificate {self.cert_path} / key {self.key_path}: {e}"
            ) from e

        logger.debug(f"Loaded TPP transport certificate from {self.cert_path}")
        return context

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()
        logger.debug("HTTP client closed")

    def _build_url(self, endpoint: str) -> str:
        """Build full URL from endpoint."""
        return f"{self.base_url}/{endpoint.lstrip('/')}"

    SENSITIVE_FIELDS = (
        "authorization", "token", "password", "secret", "key",
        "account_number", "iban", "card_number", "cvv",
    )

    def _sanitize_for_logging(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Sanitize sensitive data for logging, including nested bodies."""
        if not data:
            return {}

        sanitized = {}
        for key, value in data.items():
            key_lower = str(key).lower()
            if any(field in key_lower for field in self.SENSITIVE_FIELDS):
                if isinstance(value, str):
                    sanitized[key] = mask_sensitive_data(value)
                else:
                    sanitized[key] = "[MASKED]"
            else:
                sanitized[key] = self._sanitize_value(value)

        return sanitized

    def _sanitize_value(self, value: Any) -> Any:
        if isinstance(value, dict):
            return self._sanitize_for_logging(value)
        if isinstance(value, (list, tuple)):
            return [self._sanitize_value(item) for item in value]
        return value

    async def _make_request_with_retry(
        self,
        method: str,
        url: str,
        **kwargs
    ) -> httpx.Response:
        """Make HTTP request, retrying server and network errors up to max_retries."""
        last_exception = None

        for attempt in range(self.max_retries + 1):
            try:
                response = await self.client.request(method=method, url=url, **kwargs)

                logger.debug(
                    f"{method} {url} -> {response.status_code} "
                    f"({len(response.content)} bytes)"
                )

                # Don't retry on client errors (4xx), only server errors (5xx)
                if response.status_code < 500:
                    return response

                if attempt < self.max_retries:
                    wait_time = self.retry_backoff_factor ** attempt
                    logger.warning(
                        f"Server error {response.status_code}, retrying in {wait_time}s "
                        f"(attempt {attempt + 1}/{self.max_retries})"
                    )
                    await asyncio.sleep(wait_time)
                    continue

                return response

            except (httpx.UnsupportedProtocol, httpx.InvalidURL) as e:
                raise ConfigurationError(f"Invalid request URL {url}: {e}") from e
            except httpx.TimeoutException as e:
                last_exception = TimeoutError(f"Request timed out after {self.timeout}s")
                last_exception.__cause__ = e
            except httpx.TransportError as e:
                last_exception = ConnectionError(f"Connection failed: {str(e)}")
                last_exception.__cause__ = e

            if attempt < self.max_retries:
                wait_time = self.retry_backoff_factor ** attempt
                logger.warning(
                    f"{last_exception}, retrying in {wait_time}s "
                    f"(attempt {attempt + 1}/{self.max_retries})"
                )
                await asyncio.sleep(wait_time)

        raise last_exception

    @staticmethod
    def _parse_response(response: httpx.Response) -> Dict[str, Any]:
        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError:
            return {"content": response.text}
        if not isinstance(data, dict):
            return {"data": data}
        return data

    @staticmethod
    def _error_message(response: httpx.Response, response_data: Dict[str, Any]) -> str:
        for field in ("error_description", "message", "error"):
            value = response_data.get(field)
            if isinstance(value, str) and value:
                return value
        return f"HTTP {response.status_code}"

    async def request(
        self,
        method: str,
        endpoint: str,
        headers: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Make HTTP request to API endpoint.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint path
            headers: Optional headers to include
            json: Optional JSON body
            data: Optional form-encoded body
            params: Optional query parameters, ``None`` values are dropped

        Returns:
            Response data as dictionary

        Raises:
            HTTPClientError: For HTTP error statuses
            TimeoutError: When request times out
            ConnectionError: When connection fails
        """
        url = self._build_url(endpoint)
        request_headers = headers or {}
        if params:
            params = {key: value for key, value in params.items() if value is not None}

        log_data = {
            "method": method,
            "url": url,
            "headers": self._sanitize_for_logging(request_headers),
            "params": params,
        }
        if json:
            log_data["json"] = self._sanitize_for_logging(json)
        if data:
            log_data["data"] = self._sanitize_for_logging(data)

        logger.debug(f"Making request: {log_data}")

        try:
            response = await self._make_request_with_retry(
                method,
                url,
                headers=request_headers,
                json=json,
                data=data,
                params=params,
            )

            response_data = self._parse_response(response)
            request_id = response.headers.get("X-Request-ID")

            if response.status_code == 429:
                retry_after = response.headers.get("Retry-After")
                raise RateLimitError(
                    message="Rate limit exceeded",
                    status_code=429,
                    retry_after=int(retry_after) if retry_after and retry_after.isdigit() else 60,
                    response_data=response_data,
                    request_id=request_id,
                )

            if not response.is_success:
                raise create_http_error(
                    status_code=response.status_code,
                    message=self._error_message(response, response_data),
                    response_data=response_data,
                    request_id=request_id,
                )

            return response_data

        except HTTPClientError as e:
            logger.error(
                f"{method} {endpoint} failed with status {e.status_code}: "
                f"{e.response_data or str(e)}"
            )
            raise
        except NoResponseError as e:
            logger.error(f"No response from server for {method} {endpoint}: {e}")
            raise
        except SetupError as e:
            logger.error(f"Request setup error for {method} {endpoint}: {e}")
            raise
        except httpx.HTTPError as e:
            logger.error(f"Request setup error for {method} {endpoint}: {e}")
            raise HTTPClientError(f"Unexpected error: {str(e)}") from e

    async def get(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Make GET request."""
        return await self.request("GET", endpoint, params=params, headers=headers)

    async def post(
        self,
        endpoint: str,
        json: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Make POST request with a JSON or form-encoded body."""
        return await self.request("POST", endpoint, json=json, data=data, headers=headers)

    async def put(
        self,
        endpoint: str,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Make PUT request."""
        return await self.request("PUT", endpoint, json=json, headers=headers)

    async def delete(
        self,
        endpoint: str,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Make DELETE request."""
        return await self.request("DELETE", endpoint, headers=headers)
