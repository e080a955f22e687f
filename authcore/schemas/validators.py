# authcore/schemas/validators.py
"""
Reusable validation functions for Pydantic schemas.

- Username format
- Calendar dates in strict YYYY-MM-DD form
- Password policy (delegates to the hashing module's policy check)
"""

import re
from datetime import date

from authcore.services.auth.password import password_policy_violation

# Username: 3-64 chars, letters, digits, dot, underscore, hyphen
USERNAME_PATTERN = re.compile(r'^[A-Za-z0-9_.-]{3,64}$')

ISO_DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
MIN_BIRTH_DATE = date(1900, 1, 1)


def validate_username(value: str) -> str:
    """
    Validate a username.

    Raises:
        ValueError: If the username has the wrong length or characters
    """
    value = value.strip()
    if not USERNAME_PATTERN.match(value):
        raise ValueError(
            "Username must be 3-64 characters: letters, digits, '.', '_' or '-'"
        )
    return value


def parse_iso_date(value: object) -> date:
    """
    Parse a date given as a 'YYYY-MM-DD' string.

    Numbers and other date spellings are rejected rather than coerced.

    Raises:
        ValueError: If the value is not a valid YYYY-MM-DD date
    """
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not ISO_DATE_PATTERN.match(value.strip()):
        raise ValueError("Date must be in YYYY-MM-DD format")
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise ValueError(f"Invalid date: {value}")


def validate_birth_date(value: object) -> date:
    parsed = parse_iso_date(value)
    if parsed < MIN_BIRTH_DATE or parsed > date.today():
        raise ValueError("date_of_birth must be between 1900-01-01 and today")
    return parsed


def validate_password(value: str) -> str:
    violation = password_policy_violation(value)
    if violation:
        raise ValueError(violation)
    return value
