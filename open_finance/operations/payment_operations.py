"""Payment initiation operations for the Open Finance API."""

import asyncio
import secrets
import time
from typing import Dict, Any, Optional, List

from open_finance.config.logging import get_logger
from open_finance.config.settings import settings
from open_finance.client.http_client import HTTPClient
from open_finance.auth.token_manager import TokenManager
from open_finance.models.requests import (
    PayeeDetails,
    PaymentAuthorizationRequest,
    PaymentData,
    PaymentHistoryFilter,
    PollingPolicy,
)
from open_finance.models.responses import (
    PayeeVerification,
    Payment,
    PaymentStatus,
)

logger = get_logger(__name__)


def generate_payment_id() -> str:
    """Unique payment id, also used as the idempotency key."""
    return f"PAY_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


class PaymentOperations:
    """Handle payment operations with the Open Finance API."""

    def __init__(self, http_client: HTTPClient, token_manager: TokenManager):
        """Initialize payment operations.

        Args:
            http_client: HTTP client for API requests
            token_manager: Token manager for bearer authentication
        """
        self.http_client = http_client
        self.token_manager = token_manager

        logger.debug("Payment operations initialized")

    async def verify_payee(self, payee: PayeeDetails) -> PayeeVerification:
        """Check the payee account and name before paying.

        Args:
            payee: Payee account number, name and bank

        Returns:
            Verification result with name match and confidence

        Raises:
            HTTPClientError: For API errors
        """
        try:
            logger.info(f"Verifying payee {payee.name}")
            headers = await self.token_manager.get_authorization_header()
            response = await self.http_client.post(
                "/payee-verification",
                json=payee.to_verification_body(),
                headers=headers,
            )

            verification = PayeeVerification(**(response.get("data") or {}))
            logger.info(
                f"Payee verified: match={'yes' if verification.name_match else 'no'}, "
                f"confidence={verification.confidence}%, status={verification.status}"
            )
            return verification

        except Exception as e:
            logger.error(f"Payee verification failed: {e}")
            raise

    async def initiate_payment(self, payment_data: PaymentData) -> Payment:
        """Create a payment initiation request.

        Args:
            payment_data: Amount, debtor, payee and reference

        Returns:
            Created payment

        Raises:
            HTTPClientError: For API errors
        """
        payment_id = generate_payment_id()
        try:
            logger.info(
                f"Initiating payment {payment_id}: {payment_data.amount} "
                f"{payment_data.currency} to {payment_data.to.name} "
                f"(reference {payment_data.reference})"
            )
            headers = await self.token_manager.get_authorization_header()
            headers["Idempotency-Key"] = payment_id

            response = await self.http_client.post(
                "/payments",
                json=payment_data.to_request_body(payment_id),
                headers=headers,
            )

            payment = Payment(**(response.get("data") or {}))
            logger.info(
                f"Payment initiated: {payment.payment_id} status {payment.status}"
            )
            return payment

        except Exception as e:
            logger.error(f"Payment initiation failed: {e}")
            raise

    async def get_payment_status(self, payment_id: str) -> Payment:
        """Get the current state of a payment.

        Args:
            payment_id: Payment identifier

        Returns:
            Payment with its status and processing stage
        """
        try:
            headers = await self.token_manager.get_authorization_header()
            response = await self.http_client.get(f"/payments/{payment_id}", headers=headers)

            payment = Payment(**(response.get("data") or {}))
            logger.info(
                f"Payment {payment_id} status {payment.status} "
                f"(stage: {payment.processing_stage})"
            )
            if payment.status in (PaymentStatus.FAILED, PaymentStatus.REJECTED):
                logger.warning(f"Payment {payment_id} {payment.status}: {payment.failure_reason}")
            return payment

        except Exception as e:
            logger.error(f"Failed to get payment status: {e}")
            raise

    async def authorize_payment(self, payment_id: str, auth_code: str) -> Payment:
        """Authorize a payment with a one-time password.

        Args:
            payment_id: Payment identifier
            auth_code: OTP received by the payer

        Returns:
            Payment after authorization
        """
        try:
            request = PaymentAuthorizationRequest(authorization_code=auth_code)
            logger.info(f"Authorizing payment {payment_id}")

            headers = await self.token_manager.get_authorization_header()
            response = await self.http_client.put(
                f"/payments/{payment_id}/authorize",
                json=request.model_dump(),
                headers=headers,
            )

            result = Payment(**{"payment_id": payment_id, **(response.get("data") or {})})
            logger.info(
                f"Payment authorized: {payment_id} status {result.status} "
                f"at {result.authorized_at}"
            )
            return result

        except Exception as e:
            logger.error(f"Payment authorization failed: {e}")
            raise

    async def cancel_payment(self, payment_id: str, reason: str) -> Dict[str, Any]:
        """Cancel a pending payment.

        Args:
            payment_id: Payment identifier
            reason: Cancellation reason sent to the server

        Returns:
            Raw cancellation response
        """
        try:
            logger.info(f"Cancelling payment {payment_id}")
            headers = await self.token_manager.get_authorization_header()
            headers["X-Cancellation-Reason"] = reason

            response = await self.http_client.delete(f"/payments/{payment_id}", headers=headers)

            logger.info(f"Payment {payment_id} cancelled")
            return response

        except Exception as e:
            logger.error(f"Payment cancellation failed: {e}")
            raise

    async def get_payment_history(
        self,
        filters: Optional[PaymentHistoryFilter] = None,
    ) -> List[Payment]:
        """List payments.

        Args:
            filters: Paging, status, date range and account filters

        Returns:
            Payments in the order the server returned them
        """
        filters = filters or PaymentHistoryFilter()
        try:
            headers = await self.token_manager.get_authorization_header()
            response = await self.http_client.get(
                "/payments",
                params=filters.to_query_params(),
                headers=headers,
            )

            payments = [Payment(**item) for item in response.get("data") or []]
            logger.info(f"Found {len(payments)} payment(s)")
            return payments

        except Exception as e:
            logger.error(f"Failed to fetch payment history: {e}")
            raise

    async def poll_payment_status(
        self,
        payment_id: str,
        policy: Optional[PollingPolicy] = None,
    ) -> Payment:
        """Poll a payment until it reaches a terminal status.

        Waits ``policy.delay(attempt)`` before every check and issues at most
        ``policy.max_attempts`` status requests.

        Returns:
            The first payment record in COMPLETED, FAILED or REJECTED, or the
            last record observed once the attempts are used up
        """
        policy = policy or PollingPolicy.from_settings()
        payment = None

        for attempt in range(policy.max_attempts):
            await asyncio.sleep(policy.delay(attempt))
            payment = await self.get_payment_status(payment_id)

            if payment.is_terminal:
                break

            logger.info(
                f"Attempt {attempt + 1}/{policy.max_attempts}: status = {payment.status}"
            )
        else:
            logger.warning(
                f"Payment {payment_id} still {payment.status} after "
                f"{policy.max_attempts} attempts"
            )

        return payment

    async def execute_payment_flow(
        self,
        payment_data: PaymentData,
        otp: Optional[str] = None,
        policy: Optional[PollingPolicy] = None,
    ) -> Payment:
        """Verify the payee, initiate, authorize if required and wait for the outcome.

        Args:
            payment_data: Payment to make
            otp: One-time password for payments pending authorization
                (defaults to the sandbox OTP)
            policy: Status polling policy (defaults to settings)

        Returns:
            Final payment record
        """
        try:
            logger.info("Starting complete payment flow")

            verification = await self.verify_payee(payment_data.to)
            if not verification.name_match:
                logger.warning("Payee name does not match, proceeding with caution")

            payment = await self.initiate_payment(payment_data)

            if payment.status == PaymentStatus.PENDING_AUTHORIZATION:
                logger.info("Payment requires authorization")
                await self.authorize_payment(payment.payment_id, otp or settings.sandbox_otp)

            final = await self.poll_payment_status(payment.payment_id, policy)

            logger.info(f"Payment flow complete, final status: {final.status}")
            return final

        except Exception as e:
            logger.error(f"Payment flow failed: {e}")
            raise
