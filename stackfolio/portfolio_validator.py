"""
stackfolio/portfolio_validator.py
---------------------------------
Non-blocking portfolio checks.

Two layers:
  1. Invariants  – structural facts every accepted operation must preserve
                   (``check_invariants`` / ``is_valid``).
  2. Warnings    – independent diversification / leverage rules, all
                   evaluated on every call (``validate``).

Neither layer ever changes a portfolio or prevents an operation.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional

from stackfolio.catalog import ExposureCatalog, load_catalog
from stackfolio.config import (
    MAX_DAILY_RESET_LEVERAGE,
    MAX_SINGLE_HOLDING_PCT,
    MAX_TOTAL_LEVERAGE,
    MIN_EMERGING_PCT,
    MIN_INTL_DEVELOPED_PCT,
    MIN_SMALL_CAP_PCT,
)
from stackfolio.constants import MIN_HOLDINGS
from stackfolio.enums import (
    AssetClass,
    LeverageType,
    MarketRegion,
    SizeFactor,
    WarningLevel,
)
from stackfolio.exposure_aggregator import ExposureAggregator
from stackfolio.models import Portfolio, PortfolioAnalysis, PortfolioWarning
from stackfolio.precision import total_allocation, weight_to_percent, within_tolerance


# Short label per rule, shown next to passed rules in reports.
RULE_DESCRIPTIONS: Dict[str, str] = {
    "single-etf-concentration":   "Avoid single ETF concentration risk",
    "high-daily-reset-leverage":  "Avoid daily reset ETFs",
    "excessive-leverage":         "Total leverage below 1.6x",
    "no-intl-developed-exposure": "International Developed Markets exposure",
    "no-em-exposure":             "Emerging Markets exposure",
    "no-small-cap":               "Small Cap exposure",
}


class PortfolioValidator:
    """
    Stateless rule runner.  Each ``_check_*`` method returns a
    :class:`PortfolioWarning` when its rule fails and ``None`` when it passes.
    """

    # ------------------------------------------------------------------
    # Warnings
    # ------------------------------------------------------------------

    @staticmethod
    def validate(
        portfolio: Portfolio,
        catalog: Optional[ExposureCatalog] = None,
    ) -> List[PortfolioWarning]:
        """
        Run every rule and return the failures in rule order.

        Raises
        ------
        TickerNotFoundError
            A held ticker has no catalog entry.
        """
        catalog = catalog if catalog is not None else load_catalog()
        analysis = ExposureAggregator.analyze(portfolio, catalog)

        warnings = []
        for rule in PortfolioValidator._rules():
            warning = rule(portfolio, catalog, analysis)
            if warning is not None:
                warnings.append(warning)
        return warnings

    @staticmethod
    def rule_results(
        portfolio: Portfolio,
        catalog: Optional[ExposureCatalog] = None,
    ) -> Dict[str, Optional[PortfolioWarning]]:
        """``{rule_id: warning-or-None}`` for every rule, passed ones included."""
        failed = {w.rule: w for w in PortfolioValidator.validate(portfolio, catalog)}
        return {rule: failed.get(rule) for rule in RULE_DESCRIPTIONS}

    @staticmethod
    def _rules() -> List[Callable]:
        return [
            PortfolioValidator._check_concentration,
            PortfolioValidator._check_daily_reset_leverage,
            PortfolioValidator._check_total_leverage,
            PortfolioValidator._check_intl_developed,
            PortfolioValidator._check_emerging,
            PortfolioValidator._check_small_cap,
        ]

    @staticmethod
    def _check_concentration(portfolio, catalog, analysis) -> Optional[PortfolioWarning]:
        concentrated = [
            h for h in portfolio.enabled() if h.percentage > MAX_SINGLE_HOLDING_PCT
        ]
        if not concentrated:
            return None

        listing = ", ".join(f"{h.ticker} ({h.percentage:g}%)" for h in concentrated)
        return PortfolioWarning(
            rule="single-etf-concentration",
            level=WarningLevel.WARNING,
            message=f"High single ETF concentration: {listing}",
            description="Consider diversifying across more holdings to reduce concentration risk",
        )

    @staticmethod
    def _check_daily_reset_leverage(portfolio, catalog, analysis) -> Optional[PortfolioWarning]:
        flagged = []
        for holding in portfolio.enabled():
            etf = catalog.get(holding.ticker)
            if etf.leverage_type is LeverageType.DAILY_RESET and etf.max_leverage > MAX_DAILY_RESET_LEVERAGE:
                flagged.append(holding.ticker)

        if not flagged:
            return None
        return PortfolioWarning(
            rule="high-daily-reset-leverage",
            level=WarningLevel.WARNING,
            message=f"High daily reset leverage detected ({', '.join(flagged)})",
            description="Daily reset ETFs with >2x leverage can experience decay during volatile markets",
        )

    @staticmethod
    def _check_total_leverage(portfolio, catalog, analysis) -> Optional[PortfolioWarning]:
        if analysis.total_leverage < MAX_TOTAL_LEVERAGE:
            return None
        return PortfolioWarning(
            rule="excessive-leverage",
            level=WarningLevel.WARNING,
            message=f"Portfolio leverage is {analysis.total_leverage:.2f}x",
            description="Consider reducing leverage to below 1.6x to manage risk",
        )

    @staticmethod
    def _check_intl_developed(portfolio, catalog, analysis) -> Optional[PortfolioWarning]:
        pct = _equity_percent(analysis, market_region=MarketRegion.INTERNATIONAL_DEVELOPED)
        if pct >= MIN_INTL_DEVELOPED_PCT:
            return None
        return PortfolioWarning(
            rule="no-intl-developed-exposure",
            level=WarningLevel.INFO,
            message=f"Insufficient International Developed Markets exposure ({pct:.1f}%)",
            description="Consider adding at least 10% International Developed exposure for global diversification",
        )

    @staticmethod
    def _check_emerging(portfolio, catalog, analysis) -> Optional[PortfolioWarning]:
        pct = _equity_percent(analysis, market_region=MarketRegion.EMERGING)
        if pct >= MIN_EMERGING_PCT:
            return None
        return PortfolioWarning(
            rule="no-em-exposure",
            level=WarningLevel.INFO,
            message=f"Insufficient Emerging Markets exposure ({pct:.1f}%)",
            description="Consider adding at least 10% EM exposure for global diversification",
        )

    @staticmethod
    def _check_small_cap(portfolio, catalog, analysis) -> Optional[PortfolioWarning]:
        pct = _equity_percent(analysis, size_factor=SizeFactor.SMALL_CAP)
        if pct >= MIN_SMALL_CAP_PCT:
            return None
        return PortfolioWarning(
            rule="no-small-cap",
            level=WarningLevel.INFO,
            message=f"Insufficient Small Cap exposure ({pct:.1f}%)",
            description="Consider adding at least 10% small cap exposure for potential enhanced returns",
        )

    # ------------------------------------------------------------------
    # Invariants
    # ------------------------------------------------------------------

    @staticmethod
    def check_invariants(portfolio: Portfolio) -> List[str]:
        """
        Return a description of every broken invariant (empty when valid).

        An empty portfolio is valid; once populated, the enabled holdings
        must total 100% within ``PRECISION_TOLERANCE``.
        """
        problems = []
        if not portfolio.holdings:
            return problems

        for holding in portfolio.holdings.values():
            if holding.percentage < 0:
                problems.append(f"{holding.ticker} has a negative allocation ({holding.percentage}%).")
            if holding.disabled and holding.percentage != 0:
                problems.append(f"{holding.ticker} is disabled but holds {holding.percentage}%.")
            if holding.disabled and holding.locked:
                problems.append(f"{holding.ticker} is both disabled and locked.")

        if not within_tolerance(portfolio.holdings.values()):
            total = total_allocation(portfolio.holdings.values())
            problems.append(f"Enabled allocations total {total}%, not 100%.")

        return problems

    @staticmethod
    def is_valid(portfolio: Portfolio) -> bool:
        return not PortfolioValidator.check_invariants(portfolio)

    @staticmethod
    def can_remove(portfolio: Portfolio, ticker: str) -> bool:
        """True when *ticker* is held and is not the last holding."""
        return ticker in portfolio.holdings and len(portfolio.holdings) > MIN_HOLDINGS


def _equity_percent(
    analysis: PortfolioAnalysis,
    market_region: Optional[MarketRegion] = None,
    size_factor: Optional[SizeFactor] = None,
) -> float:
    """Equity exposure matching the given region/size, as % of capital."""
    if market_region is not None:
        totals = ExposureAggregator.dimension_totals_for(analysis, AssetClass.EQUITY, "market_region")
        return weight_to_percent(totals.get(market_region.value, 0.0))

    totals = ExposureAggregator.dimension_totals_for(analysis, AssetClass.EQUITY, "size_factor")
    return weight_to_percent(totals.get(size_factor.value, 0.0))
