"""
Local validation of teacher provisioning input. Never touches the network.
"""
import re
from typing import Any, Dict, Optional

from schoolhub.config import MIN_FULL_NAME_LENGTH, MIN_PASSWORD_LENGTH
from schoolhub.exceptions import ValidationError
from schoolhub.models.schemas import TeacherProvisioningRequest

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _as_text(value: Any) -> str:
    return "" if value is None else str(value)


def normalize_phone(value: Any) -> Optional[str]:
    """Trimmed phone string, or None when absent, blank or not a string."""
    if not isinstance(value, str):
        return None
    return value.strip() or None


def validate_full_name(value: Any) -> str:
    full_name = _as_text(value).strip()
    if len(full_name) < MIN_FULL_NAME_LENGTH:
        raise ValidationError("full_name", "Full name is required")
    return full_name


def validate_provisioning_request(payload: Dict[str, Any]) -> TeacherProvisioningRequest:
    """
    Normalize and check a provisioning body.

    Email is trimmed and lower-cased, full name trimmed, phone trimmed or dropped.

    Raises:
        ValidationError: naming the first field that breaks its rule
    """
    if not isinstance(payload, dict):
        raise ValidationError("body", "Invalid JSON body")

    email = _as_text(payload.get("email")).strip().lower()
    password = _as_text(payload.get("password"))
    phone = normalize_phone(payload.get("phone"))

    if not EMAIL_PATTERN.match(email):
        raise ValidationError("email", "Use a valid email address")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            "password", f"Temporary password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    full_name = validate_full_name(payload.get("full_name"))

    return TeacherProvisioningRequest(email=email, password=password, full_name=full_name, phone=phone)
