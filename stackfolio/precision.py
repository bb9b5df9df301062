"""
stackfolio/precision.py
-----------------------
Basis-point arithmetic shared by every allocation operation.

Percentages are the canonical, user-facing unit, but repeated proportional
floating-point splits drift away from exactly 100.0 over many edits.  All
redistribution therefore happens in integer basis points (1/100 of a
percent) and only the final assignment back to ``Holding.percentage``
re-enters floating point.

Rounding is half-up (``2.5 → 3``) rather than Python's banker's rounding,
so the same percentage always maps to the same basis-point count
regardless of whether its integer part is odd or even.
"""

from __future__ import annotations

import math
from typing import Iterable, List

from stackfolio.constants import (
    BASIS_POINTS_PER_PERCENT,
    DISPLAY_DECIMALS,
    MAX_BASIS_POINTS,
    PRECISION_TOLERANCE,
)


# ---------------------------------------------------------------------------
# Conversions
# ---------------------------------------------------------------------------

def to_basis_points(percent: float) -> int:
    """``12.34`` → ``1234``."""
    return math.floor(percent * BASIS_POINTS_PER_PERCENT + 0.5)


def to_percent(basis_points: int) -> float:
    """``1234`` → ``12.34``."""
    return basis_points / BASIS_POINTS_PER_PERCENT


def round_for_display(percent: float) -> float:
    """Round to one decimal place, half-up."""
    scale = 10 ** DISPLAY_DECIMALS
    return math.floor(percent * scale + 0.5) / scale


def percent_to_weight(percent: float) -> float:
    """``25`` → ``0.25``."""
    return percent / 100


def weight_to_percent(weight: float) -> float:
    """``0.25`` → ``25.0``."""
    return weight * 100


def relative_percent(part: float, total: float) -> float:
    """*part* as a percentage of *total*; ``0.0`` when *total* is not positive."""
    return (part / total) * 100 if total > 0 else 0.0


def clamp_percent(percent: float) -> float:
    return max(0.0, min(100.0, float(percent)))


# ---------------------------------------------------------------------------
# Totals
# ---------------------------------------------------------------------------

def total_basis_points(holdings: Iterable) -> int:
    """Sum of basis points over the *enabled* holdings."""
    return sum(
        to_basis_points(h.percentage) for h in holdings if not h.disabled
    )


def total_allocation(holdings: Iterable) -> float:
    """Enabled allocation total as a percentage (exact, via basis points)."""
    return to_percent(total_basis_points(holdings))


def is_precise(holdings: Iterable) -> bool:
    """True when the enabled holdings total exactly 10 000 bp."""
    return total_basis_points(holdings) == MAX_BASIS_POINTS


def within_tolerance(holdings: Iterable) -> bool:
    """True when the enabled total is within ``PRECISION_TOLERANCE`` of 100%."""
    allowed_bp = to_basis_points(PRECISION_TOLERANCE)
    return abs(total_basis_points(holdings) - MAX_BASIS_POINTS) <= allowed_bp


# ---------------------------------------------------------------------------
# Remainder-to-last splitter
# ---------------------------------------------------------------------------

def _div_half_up(numerator: int, denominator: int) -> int:
    """Integer ``round(numerator / denominator)`` with halves rounded up."""
    return (2 * numerator + denominator) // (2 * denominator)


def split_basis_points(pool_bp: int, weights: List[int]) -> List[int]:
    """
    Split *pool_bp* across ``len(weights)`` members.

    Each member's share is proportional to its weight; when every weight is
    zero the pool is split equally instead.  The first N-1 members receive
    their rounded share and the last member receives the exact remainder,
    so the shares always sum to *pool_bp*.

    A rounded share is capped at what is still left in the pool, so no
    member (including the last) can end up with a negative share even when
    several halves round up in a row.

    Parameters
    ----------
    pool_bp : int
        Non-negative basis points to distribute.
    weights : List[int]
        Non-negative integer weights (normally current basis points).

    Returns
    -------
    List[int]
        Shares in the same order as *weights*.
    """
    n = len(weights)
    if n == 0:
        return []
    if pool_bp < 0:
        raise ValueError(f"Cannot split a negative pool ({pool_bp} bp).")

    total = sum(weights)
    shares: List[int] = []
    distributed = 0

    for index, weight in enumerate(weights):
        if index == n - 1:
            shares.append(pool_bp - distributed)
            break

        if total > 0:
            share = _div_half_up(pool_bp * weight, total)
        else:
            share = _div_half_up(pool_bp, n)

        share = min(share, pool_bp - distributed)
        shares.append(share)
        distributed += share

    return shares
