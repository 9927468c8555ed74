"""Test registration password rules."""
from datetime import date

import pytest

from medbook.errors import WeakPasswordError
from medbook.password_policy import validate_password

DOB = date(1990, 4, 7)


def test_strong_password_passes():
    validate_password("Str0ng!Passw0rd")  # Should not raise


def test_too_short():
    with pytest.raises(WeakPasswordError, match="at least 12 characters"):
        validate_password("Sh0rt!pw")


@pytest.mark.parametrize("password", [
    "alllowercase1!x",
    "ALLUPPERCASE1!X",
    "NoDigitsHere!!x",
    "NoSpecials123xx",
])
def test_missing_character_class(password):
    with pytest.raises(WeakPasswordError) as exc_info:
        validate_password(password)

    assert "uppercase" in str(exc_info.value)


@pytest.mark.parametrize("dob_form", ["1990-04-07", "19900407", "04/07/1990", "4/7/1990"])
def test_password_containing_date_of_birth(dob_form):
    with pytest.raises(WeakPasswordError, match="date of birth"):
        validate_password(f"Aa!{dob_form}xyz", date_of_birth=DOB)


def test_date_of_birth_ignored_when_absent():
    validate_password("Aa!19900407xyz")  # Should not raise


def test_other_dates_allowed():
    validate_password("Aa!19910407xyz", date_of_birth=DOB)  # Should not raise
