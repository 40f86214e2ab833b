"""Check that credentials, certificates and the sandbox are reachable.

Exits with 1 when any required check fails.
"""

import asyncio
import os
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Mapping, Optional

import httpx
from cryptography import x509
from dotenv import load_dotenv
from rich.console import Console

from open_finance import __version__
from open_finance.config.logging import setup_logging, get_logger
from open_finance.config.settings import settings
from open_finance.client.http_client import HTTPClient, validate_base_url
from open_finance.client.exceptions import (
    CertificateError,
    ConfigurationError,
    HTTPClientError,
    NoResponseError,
    SetupError,
)
from open_finance.auth.token_manager import TokenManager

logger = get_logger(__name__)

REQUIRED_VARS = [
    "OPENFINANCE_CLIENT_ID",
    "OPENFINANCE_CLIENT_SECRET",
    "OPENFINANCE_BASE_URL",
    "TRANSPORT_CERT_PATH",
    "TRANSPORT_KEY_PATH",
]

OPTIONAL_VARS = [
    "SIGNING_CERT_PATH",
    "SIGNING_KEY_PATH",
    "AWS_BEARER_TOKEN_BEDROCK",
]

# (env var, display name, parse as X.509 certificate)
CERTIFICATE_FILES = [
    ("TRANSPORT_CERT_PATH", "Transport Certificate", True),
    ("TRANSPORT_KEY_PATH", "Transport Key", False),
]

CHECK_TIMEOUT = 10.0


@dataclass
class CheckResults:
    passed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.passed) + len(self.failed)

    @property
    def pass_rate(self) -> int:
        return round(len(self.passed) / self.total * 100) if self.total else 0

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0


class ConnectionChecker:
    """Runs the environment, certificate and API checks and reports them."""

    def __init__(
        self,
        environ: Optional[Mapping[str, str]] = None,
        console: Optional[Console] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.environ = os.environ if environ is None else environ
        self.console = console or Console()
        self.transport = transport
        self.results = CheckResults()

    def _env(self, name: str) -> Optional[str]:
        return self.environ.get(name) or None

    def log(self, message: str, style: Optional[str] = None) -> None:
        self.console.print(message, style=style, markup=False, highlight=False)

    def log_section(self, title: str) -> None:
        self.console.rule(f"[bold]{title}[/bold]", style="cyan")

    def check_environment_variables(self) -> None:
        self.log_section("Testing Environment Variables")

        for name in REQUIRED_VARS:
            if self._env(name):
                self.log(f"✅ {name}: Set", "green")
                self.results.passed.append(f"{name} configured")
            else:
                self.log(f"❌ {name}: Missing", "red")
                self.results.failed.append(f"{name} not configured")

        for name in OPTIONAL_VARS:
            if self._env(name):
                self.log(f"✅ {name}: Set (optional)", "green")
            else:
                self.log(f"⚠️  {name}: Not set (optional)", "yellow")
                self.results.warnings.append(f"{name} not configured (optional)")

    def check_certificates(self) -> None:
        self.log_section("Testing Certificates")

        for env_name, name, is_certificate in CERTIFICATE_FILES:
            raw_path = self._env(env_name)
            if not raw_path:
                self.log(f"⚠️  {name}: Path not configured", "yellow")
                self.results.warnings.append(f"{name} path not configured")
                continue

            path = Path(raw_path)
            try:
                if not path.exists():
                    self.log(f"❌ {name}: File not found at {path}", "red")
                    self.results.failed.append(f"{name} not found")
                    continue
                if not path.is_file():
                    self.log(f"❌ {name}: Not a regular file at {path}", "red")
                    self.results.failed.append(f"{name} read error")
                    continue

                size = path.stat().st_size
                if size == 0:
                    self.log(f"❌ {name}: Empty file", "red")
                    self.results.failed.append(f"{name} is empty")
                    continue

                self.log(f"✅ {name}: Found ({size} bytes)", "green")
                self.results.passed.append(f"{name} found")

                if is_certificate:
                    self._inspect_certificate(name, path.read_bytes())
            except OSError as e:
                self.log(f"❌ {name}: Error reading file - {e}", "red")
                self.results.failed.append(f"{name} read error")

    def _inspect_certificate(self, name: str, data: bytes) -> None:
        try:
            certificate = x509.load_pem_x509_certificate(data)
        except ValueError:
            self.log(f"⚠️  {name}: Not a PEM encoded X.509 certificate", "yellow")
            self.results.warnings.append(f"{name} could not be parsed")
            return

        expires_at = certificate.not_valid_after_utc
        if expires_at < datetime.now(timezone.utc):
            self.log(f"⚠️  {name}: Expired on {expires_at:%Y-%m-%d}", "yellow")
            self.results.warnings.append(f"{name} expired")
        else:
            self.log(
                f"   Subject: {certificate.subject.rfc4514_string()}, "
                f"valid until {expires_at:%Y-%m-%d}",
                "cyan",
            )

    def _build_http_client(self, base_url: str) -> HTTPClient:
        cert_path = self._env("TRANSPORT_CERT_PATH")
        key_path = self._env("TRANSPORT_KEY_PATH")

        if cert_path and key_path:
            try:
                client = HTTPClient(
                    base_url=base_url,
                    cert_path=cert_path,
                    key_path=key_path,
                    timeout=CHECK_TIMEOUT,
                    transport=self.transport,
                )
                self.log("🔐 Using TPP certificates for connection", "cyan")
                return client
            except (CertificateError, ConfigurationError):
                self.log("⚠️  Could not load certificates, trying without...", "yellow")

        return HTTPClient(
            base_url=base_url,
            timeout=CHECK_TIMEOUT,
            use_certificates=False,
            transport=self.transport,
        )

    async def check_api_connection(self) -> None:
        self.log_section("Testing API Connection")

        base_url = self._env("OPENFINANCE_BASE_URL")
        if not base_url:
            self.log("❌ Cannot test API - BASE_URL not configured", "red")
            self.results.failed.append("API test skipped - no BASE_URL")
            return

        try:
            base_url = validate_base_url(base_url)
        except ConfigurationError as e:
            self.log(f"❌ Invalid BASE_URL - {e}", "red")
            self.results.failed.append("API test skipped - invalid BASE_URL")
            return

        self.log(f"📡 Testing connection to {base_url}...", "cyan")
        try:
            async with self._build_http_client(base_url) as http_client:
                token_manager = TokenManager(
                    http_client,
                    client_id=self._env("OPENFINANCE_CLIENT_ID"),
                    client_secret=self._env("OPENFINANCE_CLIENT_SECRET"),
                    scope="accounts",
                )
                token = await token_manager.get_access_token()

                self.log("✅ API Connection: Success", "green")
                self.log(f"✅ Access Token: {token.access_token[:20]}...", "green")
                self.log(f"✅ Token Type: {token.token_type}", "green")
                self.log(f"✅ Expires In: {token.expires_in} seconds", "green")
                self.results.passed.append("API connection successful")
                self.results.passed.append("OAuth authentication working")

                await self.check_authenticated_endpoint(token_manager)
        except HTTPClientError as e:
            self.log(f"❌ API Error: {e.status_code} - {e}", "red")
            self.log(f"   Details: {e.response_data}", "red")
            self.results.failed.append(f"API error: {e.status_code}")
        except NoResponseError:
            self.log("❌ No response from API - Check network/URL", "red")
            self.results.failed.append("No API response")
        except SetupError as e:
            self.log(f"❌ Setup Error: {e}", "red")
            self.results.failed.append(f"Setup error: {e}")
        except Exception as e:
            self.log(f"❌ Connection Error: {e}", "red")
            self.results.failed.append(f"Connection error: {e}")

    async def check_authenticated_endpoint(self, token_manager: TokenManager) -> None:
        self.log("\n📊 Testing authenticated endpoint...", "cyan")
        try:
            count = await token_manager.verify_access()
        except HTTPClientError as e:
            self.log(f"⚠️  Authenticated call failed: {e.status_code}", "yellow")
            self.results.warnings.append("Authenticated call failed (may need consent)")
            return
        except NoResponseError as e:
            self.log(f"⚠️  Authenticated call failed: {e}", "yellow")
            self.results.warnings.append("Authenticated call failed (may need consent)")
            return

        self.log("✅ Authenticated Call: Success", "green")
        self.log(f"✅ Response: {count} accounts found", "green")
        self.results.passed.append("Authenticated API call successful")

    def generate_report(self) -> None:
        self.log_section("Test Summary")
        results = self.results

        self.log(
            f"\nTests Passed: {len(results.passed)}/{results.total} ({results.pass_rate}%)",
            "bold",
        )

        for title, items, style in (
            ("✅ Passed:", results.passed, "green"),
            ("❌ Failed:", results.failed, "red"),
            ("⚠️  Warnings:", results.warnings, "yellow"),
        ):
            if items:
                self.log(f"\n{title}", style)
                for item in items:
                    self.log(f"   - {item}", style)

        self.log_section("Next Steps")
        if not results.failed:
            self.log("🎉 All tests passed! Your environment is ready.", "green")
            self.log("\nYou can now:", "bold")
            self.log("1. Run example scripts: open-finance-auth", "cyan")
            self.log("2. Start building your application", "cyan")
        else:
            self.log("⚠️  Some tests failed. Please fix the issues above.", "yellow")
            self.log("\nTo fix:", "bold")
            self.log("1. Check your .env file has all required variables", "cyan")
            self.log("2. Ensure certificates are in the certs/ directory", "cyan")
            self.log("3. Verify your sandbox credentials are correct", "cyan")
            self.log("4. Check network connectivity to the sandbox", "cyan")

    async def run(self) -> CheckResults:
        self.log("\n🏆 Open Finance Sandbox", "bold")
        self.log(f"Connection Test Tool v{__version__}", "cyan")

        self.check_environment_variables()
        self.check_certificates()
        await self.check_api_connection()
        self.generate_report()
        return self.results


def main() -> None:
    load_dotenv()
    setup_logging(settings.log_level, settings.log_file)

    try:
        results = asyncio.run(ConnectionChecker().run())
    except Exception as e:
        logger.exception("Connection check crashed")
        Console().print(f"\n💥 Unexpected error: {e}", style="red", markup=False)
        sys.exit(1)

    sys.exit(results.exit_code)


if __name__ == "__main__":
    main()
