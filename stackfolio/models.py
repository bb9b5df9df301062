"""
stackfolio/models.py
--------------------
Value objects passed between the engines.

Every type here is a frozen dataclass: operations never mutate a
``Portfolio`` in place, they return a new snapshot (or the very same
object when a request is rejected, so callers can compare before/after).
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

from stackfolio.constants import (
    DEFAULT_PORTFOLIO_NAME,
    EXPOSURE_KEY_FIELDS,
    EXPOSURE_KEY_SEPARATOR,
)
from stackfolio.enums import (
    AssetClass,
    FactorStyle,
    LeverageType,
    MarketRegion,
    SizeFactor,
    WarningLevel,
)
from stackfolio.errors import MalformedDataError


def _now_ms() -> int:
    return int(time.time() * 1000)


def _parse_enum(enum_cls, raw: str, key: str):
    try:
        return enum_cls(raw)
    except ValueError:
        raise MalformedDataError(
            f"Unknown {enum_cls.__name__} {raw!r} in exposure key {key!r}."
        ) from None


# ---------------------------------------------------------------------------
# Exposure
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Exposure:
    """A coordinate in the asset-class / region / style / size space."""
    asset_class: AssetClass
    market_region: Optional[MarketRegion] = None
    factor_style: Optional[FactorStyle] = None
    size_factor: Optional[SizeFactor] = None

    @property
    def key(self) -> str:
        """Flat mapping key, e.g. ``"Equity|U.S.|Blend|Large Cap"`` or ``"Gold|||"``."""
        parts = [
            self.asset_class.value,
            self.market_region.value if self.market_region else "",
            self.factor_style.value if self.factor_style else "",
            self.size_factor.value if self.size_factor else "",
        ]
        return EXPOSURE_KEY_SEPARATOR.join(parts)

    @classmethod
    def from_key(cls, key: str) -> "Exposure":
        """
        Parse a flat exposure key.

        Raises
        ------
        MalformedDataError
            Wrong field count, empty asset class, or an unknown enum value.
        """
        if not isinstance(key, str):
            raise MalformedDataError(f"Exposure key must be a string, got {key!r}.")

        parts = key.split(EXPOSURE_KEY_SEPARATOR)
        if len(parts) != EXPOSURE_KEY_FIELDS:
            raise MalformedDataError(
                f"Exposure key {key!r} has {len(parts)} fields, "
                f"expected {EXPOSURE_KEY_FIELDS}."
            )

        asset_class, region, style, size = parts
        if not asset_class:
            raise MalformedDataError(f"Exposure key {key!r} has no asset class.")

        return cls(
            asset_class=_parse_enum(AssetClass, asset_class, key),
            market_region=_parse_enum(MarketRegion, region, key) if region else None,
            factor_style=_parse_enum(FactorStyle, style, key) if style else None,
            size_factor=_parse_enum(SizeFactor, size, key) if size else None,
        )


@dataclass(frozen=True)
class ETF:
    """Catalog entry: declared exposures (weights may sum above 1.0)."""
    ticker: str
    exposures: Dict[str, float]
    leverage_type: LeverageType = LeverageType.NONE

    @property
    def max_leverage(self) -> float:
        """Largest single exposure weight, the fund's headline leverage."""
        return max(self.exposures.values(), default=0.0)

    @property
    def notional(self) -> float:
        """Sum of every exposure weight (1.0 = unlevered)."""
        return sum(self.exposures.values())

    def asset_classes(self) -> List[AssetClass]:
        """Distinct asset classes in declaration order."""
        seen: List[AssetClass] = []
        for key in self.exposures:
            asset_class = Exposure.from_key(key).asset_class
            if asset_class not in seen:
                seen.append(asset_class)
        return seen


# ---------------------------------------------------------------------------
# Holdings / portfolio
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Holding:
    """One ticker's allocation record."""
    ticker: str
    percentage: float = 0.0
    locked: bool = False
    disabled: bool = False

    def with_percentage(self, percentage: float) -> "Holding":
        return replace(self, percentage=percentage)

    @property
    def adjustable(self) -> bool:
        """Eligible to absorb redistribution."""
        return not self.locked and not self.disabled


@dataclass(frozen=True)
class Portfolio:
    """
    Named set of holdings keyed by ticker (insertion order is meaningful:
    it decides which holding receives the rounding remainder).
    """
    name: str = DEFAULT_PORTFOLIO_NAME
    holdings: Dict[str, Holding] = field(default_factory=dict)
    created_at: int = field(default_factory=_now_ms)

    def __contains__(self, ticker: str) -> bool:
        return ticker in self.holdings

    def __len__(self) -> int:
        return len(self.holdings)

    @property
    def tickers(self) -> List[str]:
        return list(self.holdings)

    def enabled(self) -> List[Holding]:
        return [h for h in self.holdings.values() if not h.disabled]

    def with_holdings(self, holdings: Dict[str, Holding]) -> "Portfolio":
        return replace(self, holdings=holdings)

    def renamed(self, name: str) -> "Portfolio":
        return replace(self, name=name)

    def percentages(self) -> Dict[str, float]:
        """``{ticker: percentage}``, convenient for assertions and reports."""
        return {t: h.percentage for t, h in self.holdings.items()}


# ---------------------------------------------------------------------------
# Analysis / validation results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PortfolioAnalysis:
    """
    Weighted exposure roll-up.

    ``exposures`` and ``asset_class_totals`` hold fractions of capital
    (1.0 = 100% of the portfolio), not percentages.
    """
    exposures: Dict[str, float]
    asset_class_totals: Dict[str, float]
    total_leverage: float

    @property
    def is_levered(self) -> bool:
        return self.total_leverage > 1.0


@dataclass(frozen=True)
class EquityBreakdown:
    """U.S. vs ex-U.S. split of the equity sleeve (relative percentages)."""
    us: float
    ex_us: float
    total_equity: float


@dataclass(frozen=True)
class HoldingDetail:
    ticker: str
    percentage: float
    leverage_type: LeverageType
    leverage_amount: float
    asset_classes: List[AssetClass]


@dataclass(frozen=True)
class PortfolioWarning:
    """One failed validator rule."""
    rule: str
    level: WarningLevel
    message: str
    description: str = ""
