"""
stackfolio/templates.py
-----------------------
Built-in portfolios.

``EXAMPLE_PORTFOLIOS`` are starting points offered by the ``templates``
command; ``DEFAULT_SAVED_PORTFOLIOS`` always appear among saved portfolios
(a user save with the same name takes precedence).
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

from stackfolio.constants import MAX_BASIS_POINTS, PRECISION_TOLERANCE
from stackfolio.models import Holding, Portfolio
from stackfolio.precision import to_basis_points, to_percent


def create_portfolio(
    name: str,
    allocations: Iterable[Tuple[str, float]],
    created_at: int = 0,
) -> Portfolio:
    """
    Build a portfolio from ``(ticker, percentage)`` pairs.

    Percentages are snapped to basis points; a drift of up to
    ``PRECISION_TOLERANCE`` (e.g. three × 33.33) is absorbed by the last
    holding so the result totals exactly 100%.

    Raises
    ------
    ValueError
        Duplicate ticker, negative percentage, or a total further than the
        tolerance from 100%.
    """
    basis_points: Dict[str, int] = {}
    for ticker, percentage in allocations:
        ticker = ticker.upper()
        if ticker in basis_points:
            raise ValueError(f"Template {name!r} lists {ticker} twice.")
        if percentage < 0:
            raise ValueError(f"Template {name!r}: {ticker} has a negative allocation.")
        basis_points[ticker] = to_basis_points(percentage)

    if basis_points:
        drift = MAX_BASIS_POINTS - sum(basis_points.values())
        if abs(drift) > to_basis_points(PRECISION_TOLERANCE):
            raise ValueError(
                f"Template {name!r} allocations must add up to 100%. "
                f"Current total: {to_percent(MAX_BASIS_POINTS - drift)}%"
            )
        last = next(reversed(list(basis_points)))
        basis_points[last] += drift

    holdings = {
        ticker: Holding(ticker=ticker, percentage=to_percent(bp))
        for ticker, bp in basis_points.items()
    }
    return Portfolio(name=name, holdings=holdings, created_at=created_at)


EXAMPLE_PORTFOLIOS: List[Portfolio] = [
    create_portfolio("SSO/ZROZ/GLD", [
        ("SSO", 50),
        ("ZROZ", 30),
        ("GLDM", 20),
    ]),
    create_portfolio("HFEA", [
        ("UPRO", 55),
        ("TMF", 45),
    ]),
    create_portfolio("Return Stacked® Max", [
        ("RSSB", 25),
        ("RSST", 25),
        ("RSSY", 25),
        ("RSSX", 25),
    ]),
    create_portfolio("Value Barbell", [
        ("RSST", 25),
        ("RSSB", 25),
        ("AVDV", 15),
        ("DGS", 15),
        ("AVUV", 20),
    ]),
]

DEFAULT_SAVED_PORTFOLIOS: List[Portfolio] = [
    create_portfolio("SSO/ZROZ/GLD alt. A", [
        ("SSO", 20),
        ("ZROZ", 20),
        ("RSSX", 15),
        ("RSST", 15),
        ("AVDS", 15),
        ("AVEE", 15),
    ]),
    create_portfolio("SSO/ZROZ/GLD alt. B", [
        ("SSO", 25),
        ("RSSX", 10),
        ("RSSY", 10),
        ("AVEE", 15),
        ("AVDV", 15),
        ("ZROZ", 10),
        ("KMLM", 7.5),
        ("CTA", 7.5),
    ]),
    create_portfolio("HFEA Tamed", [
        ("SSO", 50),
        ("ZROZ", 50 / 3),
        ("KMLM", 50 / 6),
        ("CTA", 50 / 6),
        ("BTGD", 50 / 3),
    ]),
    create_portfolio("Global Return Stacked® Max", [
        ("RSSB", 17.5),
        ("RSST", 17.5),
        ("RSSY", 17.5),
        ("RSSX", 17.5),
        ("AVDS", 15),
        ("AVEE", 15),
    ]),
]


def find_template(name: str) -> Optional[Portfolio]:
    """Case-insensitive lookup across example and default portfolios."""
    wanted = name.strip().lower()
    for portfolio in EXAMPLE_PORTFOLIOS + DEFAULT_SAVED_PORTFOLIOS:
        if portfolio.name.lower() == wanted:
            return portfolio
    return None
