import asyncio
from typing import Dict, Any, Optional

from open_finance.config.logging import get_logger, mask_sensitive_data
from open_finance.config.settings import settings
from open_finance.client.http_client import HTTPClient
from open_finance.client.exceptions import ConfigurationError
from open_finance.models.responses import AccessToken

logger = get_logger(__name__)

TOKEN_ENDPOINT = "/oauth/token"


class TokenManager:
    """Obtains and caches OAuth2 client-credentials tokens for the Open Finance API."""

    def __init__(
        self,
        http_client: HTTPClient,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        scope: Optional[str] = None,
        refresh_margin_seconds: Optional[int] = None,
    ):
        """Initialize token manager.

        Args:
            http_client: HTTP client carrying the TPP transport certificate
            client_id: OAuth client id (defaults to env var)
            client_secret: OAuth client secret (defaults to env var)
            scope: Space separated scopes (defaults to env var)
            refresh_margin_seconds: Treat the token as expired this many
                seconds before it really expires (defaults to env var)
        """
        self.http_client = http_client
        self.client_id = client_id or settings.openfinance_client_id
        self.client_secret = client_secret or settings.openfinance_client_secret
        self.scope = scope or settings.oauth_scope
        self.refresh_margin_seconds = (
            settings.token_refresh_margin_seconds
            if refresh_margin_seconds is None
            else refresh_margin_seconds
        )

        self._current_token: Optional[AccessToken] = None
        self._lock = asyncio.Lock()

        logger.debug(f"Token manager initialized for client: {self.client_id}")

    @property
    def current_token(self) -> Optional[AccessToken]:
        return self._current_token

    def _is_token_valid(self) -> bool:
        """Check if current token is valid and not about to expire."""
        if not self._current_token:
            return False
        return self._current_token.is_valid(self.refresh_margin_seconds)

    async def get_access_token(self, force_refresh: bool = False) -> AccessToken:
        """Return the cached token or request a new one.

        Args:
            force_refresh: Request a new token even if the current one is valid

        Returns:
            Access token with its lifetime

        Raises:
            ConfigurationError: If client id or secret is missing
            HTTPClientError: If the token endpoint rejects the request
        """
        async with self._lock:
            if not force_refresh and self._is_token_valid():
                logger.debug("Returning cached access token")
                return self._current_token

            if not self.client_id or not self.client_secret:
                raise ConfigurationError(
                    "OPENFINANCE_CLIENT_ID and OPENFINANCE_CLIENT_SECRET must be set"
                )

            logger.info("Authenticating with Open Finance API...")
            try:
                response = await self.http_client.post(
                    TOKEN_ENDPOINT,
                    data={
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "grant_type": "client_credentials",
                        "scope": self.scope,
                    },
                    headers={"Accept": "application/json"},
                )
                token = AccessToken(**response)
            except Exception as e:
                logger.error(f"Authentication failed: {e}")
                raise

            self._current_token = token
            logger.info(
                f"Authentication successful: {token.token_type} token for scope "
                f"'{token.scope}', expires in {token.expires_in} seconds"
            )
            return token

    async def refresh_token(self) -> AccessToken:
        """Force a new client-credentials grant."""
        logger.debug("Refreshing access token")
        return await self.get_access_token(force_refresh=True)

    async def get_authorization_header(self) -> Dict[str, str]:
        """Get authorization header with a valid bearer token."""
        token = await self.get_access_token()
        return {"Authorization": f"Bearer {token.access_token}"}

    def get_token_info(self) -> Dict[str, Any]:
        """Get information about current token, with the token itself masked."""
        if not self._current_token:
            return {"status": "no_token", "token": None, "expires_at": None}

        return {
            "status": "valid" if self._is_token_valid() else "expired",
            "token": mask_sensitive_data(self._current_token.access_token),
            "token_type": self._current_token.token_type,
            "scope": self._current_token.scope,
            "expires_at": self._current_token.expires_at.isoformat(),
        }

    async def verify_access(self) -> int:
        """Make an authenticated call and return the number of visible accounts."""
        headers = await self.get_authorization_header()
        try:
            response = await self.http_client.get("/accounts", headers=headers)
        except Exception as e:
            logger.error(f"Authenticated call failed: {e}")
            raise

        count = len(response.get("data") or [])
        logger.info(f"Authenticated call successful, found {count} accounts")
        return count
