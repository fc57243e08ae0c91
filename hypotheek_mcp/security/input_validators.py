"""Input validation and sanitization for tool arguments.

Provides ``sanitize_string()`` for null-byte stripping and Unicode NFC
normalization, the domain checks shared by the tool input schemas
(applicant age, energy label, loan-to-value), and
``format_validation_errors()`` for structured error output.
"""

from __future__ import annotations

import unicodedata
from datetime import date
from typing import Any

# Applicant age bounds (years)
MIN_AGE = 18
MAX_AGE = 75

ENERGIELABELS: tuple[str, ...] = (
    "A++++ (met garantie)",
    "A++++",
    "A+++",
    "A++",
    "A+",
    "A",
    "B",
    "C",
    "D",
    "E",
    "F",
    "G",
)

_ENERGIELABEL_LOOKUP = {label.upper(): label for label in ENERGIELABELS}


def sanitize_string(value: str) -> str:
    """Strip null bytes and normalize to Unicode NFC.

    Applied as a Pydantic ``field_validator`` on all user-facing string fields.
    """
    value = value.replace("\x00", "")
    value = unicodedata.normalize("NFC", value)
    return value


def calculate_age(birth_date: date, today: date | None = None) -> int:
    """Whole years between *birth_date* and *today*."""
    today = today or date.today()
    age = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        age -= 1
    return age


def validate_birth_date(birth_date: date, today: date | None = None) -> date:
    """Reject future dates and ages outside 18–75.

    Raises:
        ValueError: With a message naming the problem.
    """
    today = today or date.today()
    if birth_date > today:
        raise ValueError("geboortedatum mag niet in de toekomst liggen")
    age = calculate_age(birth_date, today)
    if not MIN_AGE <= age <= MAX_AGE:
        raise ValueError(f"leeftijd moet tussen {MIN_AGE} en {MAX_AGE} jaar liggen (nu: {age} jaar)")
    return birth_date


def normalize_energielabel(value: str) -> str:
    """Map *value* to its canonical label, ignoring case and surrounding space.

    Raises:
        ValueError: *value* is not a known energy label.
    """
    label = _ENERGIELABEL_LOOKUP.get(sanitize_string(value).strip().upper())
    if label is None:
        raise ValueError(f"Ongeldig energielabel: {value}")
    return label


def parse_ltv(value: float | str) -> float:
    """Loan-to-value as a fraction; ``"100%"`` and ``"90"`` are percentages.

    Raises:
        ValueError: *value* is a string that is not a number.
    """
    is_percent = False
    if isinstance(value, str):
        text = value.strip().replace(",", ".")
        is_percent = text.endswith("%")
        number = float(text.rstrip("%").strip())
    else:
        number = float(value)
    return number / 100 if is_percent or number > 1 else number


def format_validation_errors(exc: Any) -> list[dict[str, str]]:
    """Convert a Pydantic ``ValidationError`` into a structured list.

    Returns a list of ``{"field": ..., "message": ...}`` dicts.  Never
    includes stack traces or internal paths.
    """
    errors: list[dict[str, str]] = []
    for err in exc.errors():
        loc = err.get("loc", ())
        field = ".".join(str(part) for part in loc) if loc else "unknown"
        errors.append({
            "field": field,
            "message": err.get("msg", "Validation error"),
        })
    return errors
