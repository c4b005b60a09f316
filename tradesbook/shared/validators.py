"""Shared validation utilities"""

import re
from typing import Optional


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate and normalize an Irish/international phone number.

    Spaces, dashes, dots and brackets are stripped; a leading ``+`` is kept.

    Raises:
        ValueError: If the number has fewer than 7 or more than 15 digits
    """
    if not phone:
        return phone

    cleaned = re.sub(r"[\s\-\.\(\)]", "", phone.strip())
    digits = cleaned[1:] if cleaned.startswith("+") else cleaned

    if not digits.isdigit():
        raise ValueError("Phone number may only contain digits")

    if len(digits) < 7 or len(digits) > 15:
        raise ValueError("Phone number must be between 7 and 15 digits")

    return cleaned


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def to_kebab_key(value: str) -> str:
    """Normalize a display name like 'Cable Concealment' to 'cable-concealment'"""
    return re.sub(r"\s+", "-", value.strip().lower())
