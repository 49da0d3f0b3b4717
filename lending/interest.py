"""
interest.py - Pure Interest and Collateral Formulas

All arithmetic is exact integer arithmetic with floor division. Rounding down
is intentional: interest favours the borrower, required collateral favours
the borrower, and max borrowable never overshoots what the borrow-time check
accepts.

Key Formulas:
    interest          = principal * rate * duration // (SECONDS_PER_YEAR * 100)
    total_owed        = principal + interest
    required          = amount * collateral_ratio // 100
    max_borrowable    = collateral * 100 // collateral_ratio

Every function takes all inputs explicitly, so previews and settlement go
through the same code path and cannot drift apart.
"""

from __future__ import annotations
from typing import Any

from .core import PERCENT, SECONDS_PER_YEAR


def _require_non_negative(name: str, value: Any) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")
    return value


def calculate_interest(principal: int, duration_seconds: int, rate_percent: int) -> int:
    """
    Compute simple interest accrued on a principal.

    interest = principal * rate_percent * duration_seconds // (SECONDS_PER_YEAR * 100)

    Args:
        principal: Loan principal in settlement-asset units
        duration_seconds: Time elapsed since the loan was issued
        rate_percent: Annual rate in whole percent

    Returns:
        Interest owed, rounded down

    Example:
        100 units at 10% for 365 days
        interest = 100 * 10 * 31536000 // (31536000 * 100) = 10
    """
    _require_non_negative("principal", principal)
    _require_non_negative("duration_seconds", duration_seconds)
    _require_non_negative("rate_percent", rate_percent)
    return (principal * rate_percent * duration_seconds) // (SECONDS_PER_YEAR * PERCENT)


def calculate_total_owed(principal: int, duration_seconds: int, rate_percent: int) -> int:
    """Principal plus accrued interest."""
    return principal + calculate_interest(principal, duration_seconds, rate_percent)


def calculate_required_collateral(amount: int, collateral_ratio: int) -> int:
    """
    Collateral needed to back a principal at the given ratio.

    Uses floor division, so fractional requirements round in the borrower's
    favour (e.g. 1 unit at 150% requires 1, not 2).
    """
    _require_non_negative("amount", amount)
    _require_non_negative("collateral_ratio", collateral_ratio)
    return (amount * collateral_ratio) // PERCENT


def calculate_max_borrowable(collateral: int, collateral_ratio: int) -> int:
    """
    Largest principal a collateral balance can back.

    The inverse of calculate_required_collateral, used for client guidance.
    """
    _require_non_negative("collateral", collateral)
    _require_non_negative("collateral_ratio", collateral_ratio)
    if collateral_ratio == 0:
        raise ValueError("collateral_ratio must be positive")
    return (collateral * PERCENT) // collateral_ratio


def is_sufficiently_collateralized(collateral: int, principal: int, collateral_ratio: int) -> bool:
    """
    Check that collateral covers principal at the given ratio.

    This is the solvency condition enforced at borrow and withdrawal time:
    collateral >= principal * collateral_ratio // 100. When
    principal * collateral_ratio is a multiple of 100 it is exactly
    collateral * 100 >= principal * collateral_ratio; otherwise the floor
    allows a shortfall of less than one unit.
    """
    return collateral >= calculate_required_collateral(principal, collateral_ratio)
