"""
Utility functions for ClubLedger
"""
from __future__ import annotations
import math
import numbers
import os
import time
import uuid
from datetime import date, datetime

from errors import ValidationError


def today_str() -> str:
    """Get today's date as ISO string"""
    return date.today().isoformat()


def month_str(day: str) -> str:
    """YYYY-MM prefix of a YYYY-MM-DD string"""
    return day[:7]


def parse_date(s: str) -> date:
    """Parse YYYY-MM-DD date string"""
    return datetime.strptime(s.strip(), "%Y-%m-%d").date()


def now_ms() -> int:
    """Current time as epoch milliseconds"""
    return int(time.time() * 1000)


def new_id() -> str:
    return str(uuid.uuid4())


def check_amount(value, label: str = "amount"):
    """
    Validate a money amount: a finite real number, not a bool, not negative.
    Returns the value unchanged.
    """
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ValidationError(f"{label} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise ValidationError(f"{label} must be a finite number, got {value!r}")
    if value < 0:
        raise ValidationError(f"{label} must not be negative, got {value!r}")
    return value


def check_signed_amount(value, label: str = "amount"):
    """Like check_amount but allows negative values (opening balances)"""
    if isinstance(value, bool) or not isinstance(value, numbers.Real) or not math.isfinite(value):
        raise ValidationError(f"{label} must be a finite number, got {value!r}")
    return value


def check_date(value: str, label: str = "date") -> str:
    try:
        parse_date(value)
    except (AttributeError, TypeError, ValueError):
        raise ValidationError(f"{label} must be YYYY-MM-DD, got {value!r}") from None
    return value.strip()


def check_choice(value: str, choices, label: str) -> str:
    if value not in choices:
        raise ValidationError(f"{label} must be one of {', '.join(map(str, choices))}, got {value!r}")
    return value


def app_dir() -> str:
    """
    Get application data directory: ~/.club_ledger, or $CLUB_LEDGER_HOME if set.
    Creates directory if it doesn't exist.
    """
    path = os.environ.get("CLUB_LEDGER_HOME") or os.path.join(os.path.expanduser("~"), ".club_ledger")
    os.makedirs(path, exist_ok=True)
    return path
