"""
stackfolio/serialization.py
---------------------------
Portfolio ⇄ plain data ⇄ JSON text.

Wire shape (also what older saved files contain)::

    {
      "name": "HFEA",
      "holdings": [["UPRO", {"percentage": 55, "locked": false, "disabled": false}],
                   ["TMF",  {"percentage": 45, "locked": false, "disabled": false}]],
      "createdAt": 1718000000000,
      "etfCount": 2
    }

Accepted on input for backward compatibility:
  * holdings without ``locked`` / ``disabled`` (both default to False)
  * holdings carrying ``basisPoints`` instead of, or beside, ``percentage``
  * a bare number in place of the holding object (legacy percentage-only files)
  * a missing ``etfCount`` or ``createdAt``

Anything else that is off raises :class:`InvalidPortfolioFileError` and
nothing is returned; a corrupt file is never partially loaded.
"""

from __future__ import annotations

import json
import math
from typing import Dict, Optional

from stackfolio.errors import InvalidPortfolioFileError
from stackfolio.models import Holding, Portfolio, _now_ms
from stackfolio.precision import to_basis_points, to_percent, total_allocation, within_tolerance


# ---------------------------------------------------------------------------
# Portfolio → data
# ---------------------------------------------------------------------------

def serialize_holding(holding: Holding) -> dict:
    return {
        "percentage": holding.percentage,
        "locked":     holding.locked,
        "disabled":   holding.disabled,
    }


def serialize_portfolio(portfolio: Portfolio) -> dict:
    """Flat, JSON-ready representation (holdings as ``[ticker, holding]`` pairs)."""
    return {
        "name":      portfolio.name,
        "holdings":  [[t, serialize_holding(h)] for t, h in portfolio.holdings.items()],
        "createdAt": portfolio.created_at,
        "etfCount":  len(portfolio.holdings),
    }


def to_json(portfolio: Portfolio, indent: Optional[int] = 2) -> str:
    return json.dumps(serialize_portfolio(portfolio), indent=indent, allow_nan=False)


# ---------------------------------------------------------------------------
# data → Portfolio
# ---------------------------------------------------------------------------

def _is_number(value) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _parse_flag(raw: dict, field: str, ticker: str) -> bool:
    value = raw.get(field, False)
    if not isinstance(value, bool):
        raise InvalidPortfolioFileError(
            f"Holding {ticker!r}: '{field}' must be true or false, got {value!r}."
        )
    return value


def deserialize_holding(ticker: str, raw) -> Holding:
    """
    Build a :class:`Holding` from one serialized holding value.

    Raises
    ------
    InvalidPortfolioFileError
        Non-numeric or negative percentage, non-boolean flags, or a disabled
        holding that still carries an allocation.
    """
    if _is_number(raw):
        raw = {"percentage": raw}
    if not isinstance(raw, dict):
        raise InvalidPortfolioFileError(f"Holding {ticker!r} must be an object.")

    if "percentage" in raw:
        percentage = raw["percentage"]
    elif "basisPoints" in raw:
        if not _is_number(raw["basisPoints"]):
            raise InvalidPortfolioFileError(f"Holding {ticker!r}: 'basisPoints' must be a number.")
        percentage = to_percent(int(raw["basisPoints"]))
    else:
        raise InvalidPortfolioFileError(f"Holding {ticker!r} has no percentage.")

    if not _is_number(percentage):
        raise InvalidPortfolioFileError(
            f"Holding {ticker!r}: percentage must be a number, got {percentage!r}."
        )
    if percentage < 0 or percentage > 100:
        raise InvalidPortfolioFileError(
            f"Holding {ticker!r}: percentage {percentage} is outside 0–100."
        )

    locked = _parse_flag(raw, "locked", ticker)
    disabled = _parse_flag(raw, "disabled", ticker)
    if disabled and percentage != 0:
        raise InvalidPortfolioFileError(
            f"Holding {ticker!r} is disabled but holds {percentage}%."
        )

    # A disabled holding is never locked.
    return Holding(
        ticker=ticker,
        percentage=float(percentage),
        locked=locked and not disabled,
        disabled=disabled,
    )


def deserialize_portfolio(data) -> Portfolio:
    """
    Rebuild a :class:`Portfolio` from :func:`serialize_portfolio` output.

    Raises
    ------
    InvalidPortfolioFileError
        Missing ``name`` / ``holdings``, wrong types, duplicate tickers,
        invalid holdings, or enabled holdings that do not total 100%.
    """
    if not isinstance(data, dict):
        raise InvalidPortfolioFileError("Portfolio data must be a JSON object.")

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        raise InvalidPortfolioFileError("Portfolio is missing a name.")

    pairs = data.get("holdings")
    if not isinstance(pairs, list):
        raise InvalidPortfolioFileError(f"Portfolio {name!r} has no holdings list.")

    created_at = data.get("createdAt")
    if created_at is None:
        created_at = _now_ms()
    elif not _is_number(created_at):
        raise InvalidPortfolioFileError(f"Portfolio {name!r}: createdAt must be a number.")

    holdings: Dict[str, Holding] = {}
    for pair in pairs:
        if not isinstance(pair, (list, tuple)) or len(pair) != 2:
            raise InvalidPortfolioFileError(
                f"Portfolio {name!r}: each holding must be a [ticker, holding] pair."
            )
        ticker, raw = pair
        if not isinstance(ticker, str) or not ticker.strip():
            raise InvalidPortfolioFileError(f"Portfolio {name!r}: invalid ticker {ticker!r}.")
        ticker = ticker.strip().upper()
        if ticker in holdings:
            raise InvalidPortfolioFileError(f"Portfolio {name!r}: duplicate ticker {ticker!r}.")
        holdings[ticker] = deserialize_holding(ticker, raw)

    if holdings:
        if not within_tolerance(holdings.values()):
            total = total_allocation(holdings.values())
            raise InvalidPortfolioFileError(
                f"Portfolio {name!r}: enabled holdings total {total}%, not 100%."
            )

    return Portfolio(name=name, holdings=holdings, created_at=int(created_at))


def from_json(text: str) -> Portfolio:
    """Parse JSON text into a portfolio (see :func:`deserialize_portfolio`)."""
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError) as exc:
        raise InvalidPortfolioFileError(f"Failed to parse portfolio file: {exc}") from exc
    return deserialize_portfolio(data)


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------

def portfolios_equal(first: Portfolio, second: Portfolio) -> bool:
    """Same tickers with the same allocation in basis points (flags ignored)."""
    if len(first.holdings) != len(second.holdings):
        return False

    for ticker, holding in first.holdings.items():
        other = second.holdings.get(ticker)
        if other is None:
            return False
        if to_basis_points(holding.percentage) != to_basis_points(other.percentage):
            return False
    return True


def is_modified(current: Portfolio, original: Optional[Portfolio]) -> bool:
    """True when *current* differs from the template/save it started from."""
    if original is None:
        return False
    return not portfolios_equal(current, original)
