"""
Payment Gateway - payment intent creation against Stripe

The processor is an external collaborator: this module only asks it for a
payment intent and hands the client secret back to the browser, which
completes the card payment directly with Stripe. Recording the payment
afterwards is the ledger's job.
"""
import asyncio
from dataclasses import dataclass
from typing import Optional

import stripe

from parcel_server.core.circuit_breaker import PAYMENT_PROCESSOR, get_payment_processor_circuit_breaker
from parcel_server.core.config import Settings
from parcel_server.core.exceptions import UpstreamServiceError, ValidationException
from parcel_server.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class PaymentIntentResult:
    """What the client needs to confirm the payment"""
    intent_id: str
    client_secret: str
    amount: int
    currency: str


class PaymentGateway:
    """Interface for the payment processor"""

    async def create_payment_intent(
        self,
        amount: int,
        metadata: Optional[dict[str, str]] = None
    ) -> PaymentIntentResult:
        raise NotImplementedError


class StripePaymentGateway(PaymentGateway):
    """Stripe-backed gateway; the Stripe SDK is blocking, so calls run in a worker thread"""

    def __init__(
        self,
        api_key: str,
        currency: str = "bdt",
        payment_method_types: Optional[list[str]] = None,
        timeout_seconds: float = 20.0
    ):
        self._api_key = api_key
        self._currency = currency
        self._payment_method_types = payment_method_types or ["card"]
        self._timeout_seconds = timeout_seconds

    def _create_intent(self, amount: int, metadata: dict[str, str]) -> stripe.PaymentIntent:
        return stripe.PaymentIntent.create(
            api_key=self._api_key,
            amount=amount,
            currency=self._currency,
            payment_method_types=self._payment_method_types,
            metadata=metadata,
        )

    async def create_payment_intent(
        self,
        amount: int,
        metadata: Optional[dict[str, str]] = None
    ) -> PaymentIntentResult:
        """
        Create a payment intent for ``amount`` in the smallest currency unit.

        Raises:
            ValidationException: amount is not a positive integer
            UpstreamServiceError: Stripe rejected the request or is not configured
            ServiceTimeoutError / CircuitBreakerOpenError: Stripe is unreachable
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationException("Amount must be a positive integer", field="amount")

        if not self._api_key:
            raise UpstreamServiceError(PAYMENT_PROCESSOR, "Payment processor is not configured")

        breaker = get_payment_processor_circuit_breaker()

        async def _call() -> stripe.PaymentIntent:
            return await asyncio.to_thread(self._create_intent, amount, metadata or {})

        try:
            intent = await breaker.execute(
                _call,
                timeout=self._timeout_seconds,
                # card errors and bad requests are the caller's problem, not an outage
                is_failure=lambda e: not isinstance(
                    e, (stripe.CardError, stripe.InvalidRequestError)
                ),
            )
        except stripe.StripeError as e:
            logger.error(
                "Payment intent creation failed",
                extra_data={
                    "amount": amount,
                    "error_type": type(e).__name__,
                    "stripe_code": getattr(e, "code", None),
                },
            )
            message = getattr(e, "user_message", None) or "Payment processor error"
            raise UpstreamServiceError(PAYMENT_PROCESSOR, message) from e

        logger.info(
            "Payment intent created",
            extra_data={"intent_id": intent.id, "amount": amount, "currency": self._currency},
        )
        return PaymentIntentResult(
            intent_id=intent.id,
            client_secret=intent.client_secret,
            amount=amount,
            currency=self._currency,
        )


def build_payment_gateway(config: Settings) -> PaymentGateway:
    return StripePaymentGateway(
        api_key=config.PAYMENT_GATEWAY_KEY,
        currency=config.PAYMENT_CURRENCY,
        payment_method_types=config.payment_method_types,
        timeout_seconds=config.PAYMENT_GATEWAY_TIMEOUT_SECONDS,
    )
