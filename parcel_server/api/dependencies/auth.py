"""
FastAPI dependencies for bearer-token protected routes

Usage:
    @router.get("/payments")
    async def list_payments(
        claims: TokenClaims = Depends(verify_bearer_token),
        db: AsyncSession = Depends(get_db),
    ):
        ...

The verifier and payment gateway are built once at startup and kept on
``app.state``; tests swap them through ``app.dependency_overrides``.
"""
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from parcel_server.core.auth import TokenClaims, TokenVerificationError, TokenVerifier
from parcel_server.core.exceptions import ForbiddenError, UnauthenticatedError
from parcel_server.core.logging import get_logger
from parcel_server.domain.services.payment_gateway import PaymentGateway

logger = get_logger(__name__)

# auto_error=False: a missing header must be a 401 with our error body
security = HTTPBearer(auto_error=False)


def get_token_verifier(request: Request) -> TokenVerifier:
    return request.app.state.token_verifier


def get_payment_gateway(request: Request) -> PaymentGateway:
    return request.app.state.payment_gateway


async def verify_bearer_token(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> TokenClaims:
    """
    Verify the bearer token and attach its claims to ``request.state.decoded``.

    401 when the header or the token is missing, 403 when the token is
    rejected. Identity provider outages propagate as upstream errors (500).
    """
    if credentials is None:
        # HTTPBearer also returns None for "Bearer" with nothing after it
        raise UnauthenticatedError()

    token = credentials.credentials.strip()
    if not token:
        raise UnauthenticatedError()

    try:
        claims = await verifier.verify(token)
    except TokenVerificationError as e:
        logger.warning(
            "Bearer token rejected",
            extra_data={"path": request.url.path, "reason": str(e)}
        )
        raise ForbiddenError()

    request.state.decoded = claims
    return claims
