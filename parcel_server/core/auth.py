"""
ID token verification.

Two verifiers share one contract: ``await verifier.verify(token)`` returns
the decoded claims or raises TokenVerificationError when the token itself
is unacceptable (expired, malformed, bad signature, wrong audience).
Failures reaching the identity provider raise UpstreamServiceError /
ServiceTimeoutError / CircuitBreakerOpenError instead, so the gate can tell
"bad credential" (403) from "provider down" (500).

- FirebaseTokenVerifier: Firebase ID tokens checked by the Admin SDK against
  Google's published keys (signature, audience, issuer, expiry).
- SharedSecretTokenVerifier: HS256 tokens signed with JWT_SECRET_KEY, for
  local development and tests.
"""
import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import firebase_admin
import jwt as pyjwt
from firebase_admin import auth as firebase_auth, credentials
from pydantic import BaseModel, Field

from parcel_server.core.circuit_breaker import IDENTITY_PROVIDER, get_identity_provider_circuit_breaker
from parcel_server.core.config import Settings
from parcel_server.core.exceptions import UpstreamServiceError
from parcel_server.core.logging import get_logger

logger = get_logger(__name__)

# Allowed clock skew between us and the token issuer
CLOCK_SKEW_SECONDS = 60


class TokenVerificationError(Exception):
    """The presented token was rejected"""
    pass


class TokenClaims(BaseModel):
    """Decoded identity attached to the request"""
    uid: str
    email: Optional[str] = None
    email_verified: bool = False
    name: Optional[str] = None
    exp: int
    raw: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "TokenClaims":
        uid = payload.get("sub") or payload.get("user_id") or payload.get("uid")
        if not uid:
            raise TokenVerificationError("Token has no subject")
        return cls(
            uid=str(uid),
            email=payload.get("email"),
            email_verified=bool(payload.get("email_verified", False)),
            name=payload.get("name"),
            exp=int(payload["exp"]),
            raw=payload,
        )


class TokenVerifier:
    """Interface for bearer token verification"""

    async def verify(self, token: str) -> TokenClaims:
        raise NotImplementedError


class SharedSecretTokenVerifier(TokenVerifier):
    """HS256 verification with a shared secret"""

    def __init__(self, secret: str, algorithm: str = "HS256"):
        self._secret = secret
        self._algorithm = algorithm

    async def verify(self, token: str) -> TokenClaims:
        if not self._secret:
            logger.error("JWT_SECRET_KEY is empty - tokens cannot be verified")
            raise TokenVerificationError("Verifier is not configured")
        try:
            payload = pyjwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["exp", "sub"]},
                leeway=CLOCK_SKEW_SECONDS,
            )
        except pyjwt.InvalidTokenError as e:
            raise TokenVerificationError(str(e)) from e
        return TokenClaims.from_payload(payload)


class FirebaseTokenVerifier(TokenVerifier):
    """Firebase ID token verification through the Admin SDK"""

    def __init__(self, project_id: str, credentials_file: str = "", timeout_seconds: float = 10.0):
        self._timeout_seconds = timeout_seconds
        # Without a key file the SDK falls back to application default credentials
        credential = credentials.Certificate(credentials_file) if credentials_file else None
        self._app = firebase_admin.initialize_app(
            credential,
            options={"projectId": project_id, "httpTimeout": timeout_seconds},
            name=f"token-verifier-{uuid.uuid4().hex[:8]}",
        )

    async def _verify(self, token: str) -> dict[str, Any]:
        return await asyncio.to_thread(
            firebase_auth.verify_id_token,
            token,
            app=self._app,
            clock_skew_seconds=CLOCK_SKEW_SECONDS,
        )

    async def verify(self, token: str) -> TokenClaims:
        breaker = get_identity_provider_circuit_breaker()
        try:
            payload = await breaker.execute(
                self._verify,
                token,
                timeout=self._timeout_seconds,
                is_failure=lambda e: isinstance(e, firebase_auth.CertificateFetchError),
            )
        except firebase_auth.CertificateFetchError as e:
            logger.error(
                "Could not fetch identity provider keys",
                extra_data={"error": str(e)},
            )
            raise UpstreamServiceError(IDENTITY_PROVIDER, "Identity provider unavailable") from e
        except (firebase_auth.InvalidIdTokenError, ValueError) as e:
            # ExpiredIdTokenError is an InvalidIdTokenError; ValueError covers malformed input
            raise TokenVerificationError(str(e)) from e

        return TokenClaims.from_payload(payload)


def build_token_verifier(config: Settings) -> TokenVerifier:
    """Verifier for the configured AUTH_MODE"""
    if config.AUTH_MODE == "jwt":
        return SharedSecretTokenVerifier(config.JWT_SECRET_KEY, config.JWT_ALGORITHM)
    return FirebaseTokenVerifier(
        project_id=config.FIREBASE_PROJECT_ID,
        credentials_file=config.FIREBASE_CREDENTIALS_FILE,
        timeout_seconds=config.AUTH_VERIFY_TIMEOUT_SECONDS,
    )


def create_access_token(
    uid: str,
    email: str | None,
    secret: str,
    algorithm: str = "HS256",
    expires_minutes: int = 60,
) -> str:
    """Mint an HS256 token accepted by SharedSecretTokenVerifier (development, tests)"""
    if not secret:
        raise ValueError("JWT_SECRET_KEY is not set - cannot create a token")
    now = datetime.now(timezone.utc)
    payload = {
        "sub": uid,
        "email": email,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=expires_minutes)).timestamp()),
    }
    return pyjwt.encode(payload, secret, algorithm=algorithm)
