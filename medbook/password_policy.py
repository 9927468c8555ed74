"""Password policy applied at registration."""
import re
from datetime import date
from typing import List, Optional

from medbook import config
from medbook.errors import WeakPasswordError


def _date_of_birth_forms(date_of_birth: date) -> List[str]:
    """Spellings of a birth date a patient is likely to reuse."""
    return [
        date_of_birth.isoformat(),                      # 1990-04-07
        date_of_birth.strftime("%Y%m%d"),               # 19900407
        date_of_birth.strftime("%m/%d/%Y"),             # 04/07/1990
        f"{date_of_birth.month}/{date_of_birth.day}/{date_of_birth.year}",  # 4/7/1990
    ]


def validate_password(password: str, date_of_birth: Optional[date] = None) -> None:
    """
    Enforce the password policy.

    Rules:
    - At least PASSWORD_MIN_LENGTH (12) characters
    - One uppercase, one lowercase, one digit and one special character
    - Must not contain the date of birth (patients)

    Args:
        password: Candidate password
        date_of_birth: Patient's birth date, if any

    Raises:
        WeakPasswordError: With a user-facing message
    """
    if len(password) < config.PASSWORD_MIN_LENGTH:
        raise WeakPasswordError(
            f"Password must be at least {config.PASSWORD_MIN_LENGTH} characters long"
        )

    has_upper = re.search(r'[A-Z]', password) is not None
    has_lower = re.search(r'[a-z]', password) is not None
    has_digit = re.search(r'\d', password) is not None
    has_special = any(ch in config.PASSWORD_SPECIAL_CHARACTERS for ch in password)

    if not (has_upper and has_lower and has_digit and has_special):
        raise WeakPasswordError(
            "Password must contain at least one uppercase letter, one lowercase letter, "
            "one number, and one special character"
        )

    if date_of_birth is not None:
        if any(form in password for form in _date_of_birth_forms(date_of_birth)):
            raise WeakPasswordError("Password cannot contain your date of birth")
