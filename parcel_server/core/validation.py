"""
Input Validation Utilities

Identifier, e-mail, amount and free-text checks shared by the services.
Every ``require_*`` helper raises ValidationException so callers fail fast
before touching storage.
"""
import math
import re
import secrets
from decimal import Decimal

from parcel_server.core.exceptions import ValidationException

OBJECT_ID_LENGTH = 24


class ValidationPatterns:
    """Regex patterns for validation"""

    # 12 bytes, hex encoded
    OBJECT_ID = re.compile(r"^[0-9a-fA-F]{24}$")

    # Deliberately loose: the identity provider already verified the address
    EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

    CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def generate_object_id() -> str:
    """New opaque record identifier (24 lowercase hex characters)"""
    return secrets.token_hex(OBJECT_ID_LENGTH // 2)


class ObjectIdValidator:
    """Syntactic checks for record identifiers"""

    @staticmethod
    def is_valid(value: object) -> bool:
        return isinstance(value, str) and bool(ValidationPatterns.OBJECT_ID.match(value))

    @staticmethod
    def normalize(value: str) -> str:
        return value.lower()

    @staticmethod
    def require(value: object, label: str = "ID", field: str = "id") -> str:
        """Return the normalized id or raise ``Invalid <label>``"""
        if not ObjectIdValidator.is_valid(value):
            raise ValidationException(f"Invalid {label}", field=field)
        return ObjectIdValidator.normalize(value)  # type: ignore[arg-type]

    @staticmethod
    def optional(value: object) -> str | None:
        """Normalized id when well formed, otherwise None"""
        if ObjectIdValidator.is_valid(value):
            return ObjectIdValidator.normalize(value)  # type: ignore[arg-type]
        return None


class EmailValidator:
    """E-mail checks; e-mail is the natural key for users and riders"""

    MAX_LENGTH = 255

    @staticmethod
    def validate(email: str | None) -> bool:
        if not email or len(email) > EmailValidator.MAX_LENGTH:
            return False
        return bool(ValidationPatterns.EMAIL.match(email.strip()))

    @staticmethod
    def normalize(email: str) -> str:
        return email.strip().lower()

    @staticmethod
    def require(email: str | None, message: str = "Email is required") -> str:
        if not email or not email.strip():
            raise ValidationException(message, field="email")
        if not EmailValidator.validate(email):
            raise ValidationException("Invalid email address", field="email")
        return EmailValidator.normalize(email)


class AmountValidator:
    """Monetary amount validation: any finite number above zero"""

    @staticmethod
    def validate(amount: float | None, min_exclusive: float = 0.0) -> tuple[bool, str | None]:
        """
        Validate monetary amount.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if amount is None or isinstance(amount, bool) or not isinstance(amount, (int, float, Decimal)):
            return False, f"Amount must be > {min_exclusive:g}"

        # NaN compares False against every bound
        if not math.isfinite(amount):
            return False, "Amount must be a finite number"

        if amount <= min_exclusive:
            return False, f"Amount must be > {min_exclusive:g}"

        return True, None

    @staticmethod
    def require(amount: float | None, field: str = "amount") -> float:
        is_valid, error = AmountValidator.validate(amount)
        if not is_valid:
            raise ValidationException(error, field=field)
        return float(amount)  # type: ignore[arg-type]


class TextSanitizer:
    """Text sanitization for storage"""

    @staticmethod
    def sanitize(text: str | None, max_length: int = 1000) -> str:
        """
        Trim, drop control characters and null bytes, enforce max length.

        Does NOT HTML escape; escaping belongs to whoever renders the text.
        """
        if not text:
            return ""
        sanitized = ValidationPatterns.CONTROL_CHARS.sub("", text.strip())
        sanitized = re.sub(r" +", " ", sanitized)
        return sanitized[:max_length]


def sanitized_text_validator(v: str | None, max_length: int = 1000) -> str | None:
    """Pydantic field validator for optional free text"""
    if v is None:
        return None
    return TextSanitizer.sanitize(v, max_length)
