import asyncio
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

from open_finance.auth.token_manager import TokenManager
from open_finance.auth.token_refresher import TokenRefresher
from open_finance.client.exceptions import AuthenticationError, ConfigurationError
from open_finance.models.responses import AccessToken


TOKEN_RESPONSE = {
    "access_token": "eyJhbGciOiJSUzI1NiJ9.sandbox-token-value",
    "expires_in": 3600,
    "token_type": "Bearer",
    "scope": "accounts payments insurance",
}


@pytest.fixture
def mock_http_client():
    """Mock HTTP client answering the token endpoint."""
    client = AsyncMock()
    client.post.return_value = dict(TOKEN_RESPONSE)
    return client


@pytest.fixture
def token_manager(mock_http_client):
    """Create a token manager with explicit credentials."""
    return TokenManager(
        mock_http_client,
        client_id="test_client",
        client_secret="test_secret",
        scope="accounts payments insurance",
        refresh_margin_seconds=300,
    )


class TestTokenManager:

    @pytest.mark.asyncio
    async def test_get_access_token(self, token_manager, mock_http_client):
        """Test the client-credentials grant returns token and expiry."""
        token = await token_manager.get_access_token()

        assert isinstance(token, AccessToken)
        assert token.access_token == TOKEN_RESPONSE["access_token"]
        assert token.expires_in == 3600
        assert token.token_type == "Bearer"
        assert token.scope == "accounts payments insurance"

        mock_http_client.post.assert_called_once_with(
            "/oauth/token",
            data={
                "client_id": "test_client",
                "client_secret": "test_secret",
                "grant_type": "client_credentials",
                "scope": "accounts payments insurance",
            },
            headers={"Accept": "application/json"},
        )

    @pytest.mark.asyncio
    async def test_token_caching(self, token_manager, mock_http_client):
        """Test that tokens are cached and reused."""
        token1 = await token_manager.get_access_token()
        token2 = await token_manager.get_access_token()

        assert token1 is token2
        assert mock_http_client.post.call_count == 1

    @pytest.mark.asyncio
    async def test_force_refresh(self, token_manager, mock_http_client):
        """Test force refresh of token."""
        await token_manager.get_access_token()
        mock_http_client.post.return_value = {**TOKEN_RESPONSE, "access_token": "second"}

        token = await token_manager.refresh_token()

        assert token.access_token == "second"
        assert mock_http_client.post.call_count == 2

    @pytest.mark.asyncio
    async def test_token_inside_refresh_margin_is_renewed(self, token_manager, mock_http_client):
        """Test that a token about to expire is replaced."""
        await token_manager.get_access_token()
        token_manager._current_token.obtained_at = datetime.now(timezone.utc) - timedelta(seconds=3400)

        await token_manager.get_access_token()

        assert mock_http_client.post.call_count == 2

    @pytest.mark.asyncio
    async def test_short_lived_token_is_reused(self, token_manager, mock_http_client):
        """Test that a token shorter than the refresh margin is still cached."""
        mock_http_client.post.return_value = {**TOKEN_RESPONSE, "expires_in": 300}

        await token_manager.get_access_token()
        await token_manager.get_access_token()

        assert mock_http_client.post.call_count == 1
        assert token_manager.get_token_info()["status"] == "valid"

    @pytest.mark.asyncio
    async def test_missing_credentials(self, mock_http_client):
        """Test that missing credentials fail before any request."""
        manager = TokenManager(mock_http_client, client_id="test_client", client_secret="")
        manager.client_secret = None

        with pytest.raises(ConfigurationError):
            await manager.get_access_token()

        mock_http_client.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_rejected_credentials(self, token_manager, mock_http_client):
        """Test that token endpoint errors propagate."""
        mock_http_client.post.side_effect = AuthenticationError("invalid_client", status_code=401)

        with pytest.raises(AuthenticationError):
            await token_manager.get_access_token()

        assert token_manager.current_token is None

    @pytest.mark.asyncio
    async def test_authorization_header(self, token_manager):
        """Test getting authorization header."""
        header = await token_manager.get_authorization_header()

        assert header == {"Authorization": f"Bearer {TOKEN_RESPONSE['access_token']}"}

    @pytest.mark.asyncio
    async def test_get_token_info(self, token_manager):
        """Test getting token information."""
        info = token_manager.get_token_info()
        assert info["status"] == "no_token"
        assert info["token"] is None

        await token_manager.get_access_token()
        info = token_manager.get_token_info()

        assert info["status"] == "valid"
        assert info["token"] != TOKEN_RESPONSE["access_token"]
        assert info["token"].startswith(TOKEN_RESPONSE["access_token"][:4])
        assert info["expires_at"] is not None

    @pytest.mark.asyncio
    async def test_verify_access(self, token_manager, mock_http_client):
        """Test the authenticated call counts accounts."""
        mock_http_client.get.return_value = {"data": [{"account_id": "A"}, {"account_id": "B"}]}

        count = await token_manager.verify_access()

        assert count == 2
        mock_http_client.get.assert_called_once_with(
            "/accounts",
            headers={"Authorization": f"Bearer {TOKEN_RESPONSE['access_token']}"},
        )


@pytest.fixture
def refresh_manager():
    """Token manager stub whose refresh returns a one hour token."""
    manager = AsyncMock()
    manager.refresh_margin_seconds = 300
    manager.refresh_token.return_value = AccessToken(access_token="refreshed", expires_in=3600)
    return manager


async def wait_until(condition, attempts: int = 100):
    for _ in range(attempts):
        if condition():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


class TestTokenRefresher:

    @pytest.mark.asyncio
    async def test_refreshes_before_expiry_and_reschedules(self, refresh_manager):
        """Test that an expired token is refreshed at once."""
        refresher = TokenRefresher(refresh_manager)
        refresher.start(expires_in=0)

        await wait_until(lambda: refresher.refresh_count == 1)

        # next refresh is an hour away, so the schedule keeps running
        assert refresher.running
        refresh_manager.refresh_token.assert_called_once()

        await refresher.stop()
        assert not refresher.running

    @pytest.mark.asyncio
    async def test_failed_refresh_stops_schedule(self, refresh_manager):
        """Test that a failed refresh is recorded and ends the schedule."""
        refresh_manager.refresh_token.side_effect = AuthenticationError("expired client", status_code=401)

        async with TokenRefresher(refresh_manager) as refresher:
            refresher.start(expires_in=0)
            await refresher.wait()

            assert not refresher.running
            assert refresher.refresh_count == 0
            assert isinstance(refresher.last_error, AuthenticationError)

    @pytest.mark.asyncio
    async def test_cannot_start_twice(self, refresh_manager):
        """Test that a running refresher rejects a second schedule."""
        async with TokenRefresher(refresh_manager) as refresher:
            refresher.start(expires_in=3600)

            with pytest.raises(RuntimeError):
                refresher.start(expires_in=3600)

    def test_refresh_delay_for_short_lived_tokens(self, refresh_manager):
        """Test that the margin never exceeds half the token lifetime."""
        refresher = TokenRefresher(refresh_manager)

        assert refresher._delay_for(3600) == 3300
        assert refresher._delay_for(300) == 150
        assert refresher._delay_for(120) == 60
        assert refresher._delay_for(0) == 0

    @pytest.mark.asyncio
    async def test_short_lived_tokens_are_not_refreshed_back_to_back(self, refresh_manager):
        """Test that a token shorter than the margin still waits between refreshes."""
        refresh_manager.refresh_token.return_value = AccessToken(access_token="short", expires_in=300)
        delays = []
        real_sleep = asyncio.sleep

        async def record_sleep(delay):
            delays.append(delay)
            if len(delays) > 2:
                raise RuntimeError("stop schedule")
            await real_sleep(0)

        with patch("open_finance.auth.token_refresher.asyncio.sleep", side_effect=record_sleep):
            refresher = TokenRefresher(refresh_manager)
            refresher.start(expires_in=300)
            with pytest.raises(RuntimeError, match="stop schedule"):
                await refresher.wait()

        assert delays == [150, 150, 150]
        assert refresh_manager.refresh_token.call_count == 2
