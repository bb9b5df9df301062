"""
stackfolio/exposure_aggregator.py
---------------------------------
Portfolio-level exposure and leverage figures.

Design contract:
  - Reads the catalog, never the session or the store
  - Disabled holdings contribute nothing
  - Relative breakdowns return 0 for an empty parent bucket, never NaN
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from stackfolio.catalog import ExposureCatalog, load_catalog
from stackfolio.constants import EXPOSURE_DIMENSIONS, EXPOSURE_KEY_SEPARATOR
from stackfolio.enums import AssetClass, MarketRegion
from stackfolio.errors import MalformedDataError
from stackfolio.models import (
    EquityBreakdown,
    Exposure,
    HoldingDetail,
    Portfolio,
    PortfolioAnalysis,
)
from stackfolio.precision import percent_to_weight, relative_percent, weight_to_percent

logger = logging.getLogger(__name__)


class ExposureAggregator:
    """
    Rolls declared per-instrument exposures up to whole-portfolio figures.

    Every enabled holding contributes ``weight × percentage / 100`` to each
    exposure key its catalog entry declares.  Results are fractions of
    capital: ``1.0`` means an exposure equal to 100% of the portfolio, and
    anything above ``1.0`` in total is leverage.

    Only static methods are exposed; no shared state.
    """

    # ------------------------------------------------------------------
    # Core roll-up
    # ------------------------------------------------------------------

    @staticmethod
    def analyze(
        portfolio: Portfolio,
        catalog: Optional[ExposureCatalog] = None,
    ) -> PortfolioAnalysis:
        """
        Aggregate exposures, asset-class totals and total leverage.

        Parameters
        ----------
        portfolio : Portfolio
            Holdings to aggregate; disabled holdings are skipped.
        catalog : ExposureCatalog, optional
            Defaults to the bundled catalog.

        Raises
        ------
        TickerNotFoundError
            A held ticker has no catalog entry.
        MalformedDataError
            A catalog exposure key cannot be parsed.
        """
        catalog = catalog if catalog is not None else load_catalog()
        exposures: Dict[str, float] = {}
        asset_classes: Dict[str, float] = {}

        for holding in portfolio.enabled():
            etf = catalog.get(holding.ticker)
            weight = percent_to_weight(holding.percentage)

            for key, amount in etf.exposures.items():
                asset_class = Exposure.from_key(key).asset_class.value
                weighted = amount * weight
                exposures[key] = exposures.get(key, 0.0) + weighted
                asset_classes[asset_class] = asset_classes.get(asset_class, 0.0) + weighted

        total_leverage = sum(asset_classes.values())
        logger.debug(
            "Analyzed %r: %d exposures, leverage %.4f",
            portfolio.name, len(exposures), total_leverage,
        )
        return PortfolioAnalysis(
            exposures=exposures,
            asset_class_totals=asset_classes,
            total_leverage=total_leverage,
        )

    # ------------------------------------------------------------------
    # Breakdowns
    # ------------------------------------------------------------------

    @staticmethod
    def dimension_totals(analysis: PortfolioAnalysis, dimension: str) -> Dict[str, float]:
        """
        Collapse exposures onto one dimension
        (``asset_class``, ``market_region``, ``factor_style`` or ``size_factor``).

        Keys without a value for that dimension are left out.
        """
        if dimension not in EXPOSURE_DIMENSIONS:
            raise ValueError(
                f"Unknown dimension: {dimension!r}. "
                f"Choose from {sorted(EXPOSURE_DIMENSIONS)}."
            )
        index = EXPOSURE_DIMENSIONS[dimension]

        totals: Dict[str, float] = {}
        for key, amount in analysis.exposures.items():
            value = key.split(EXPOSURE_KEY_SEPARATOR)[index]
            if value:
                totals[value] = totals.get(value, 0.0) + amount
        return totals

    @staticmethod
    def relative_breakdown(
        analysis: PortfolioAnalysis,
        dimension: str,
        parent: AssetClass = AssetClass.EQUITY,
    ) -> Dict[str, float]:
        """
        Each *dimension* bucket inside *parent* as a percentage of the
        parent's total, e.g. the share of equity that is Emerging.

        Every bucket is ``0.0`` when the parent total is zero.
        """
        parent_total = analysis.asset_class_totals.get(parent.value, 0.0)
        buckets = ExposureAggregator.dimension_totals_for(analysis, parent, dimension)
        return {
            bucket: relative_percent(amount, parent_total)
            for bucket, amount in buckets.items()
        }

    @staticmethod
    def equity_breakdown(
        portfolio: Portfolio,
        catalog: Optional[ExposureCatalog] = None,
    ) -> Optional[EquityBreakdown]:
        """U.S. vs ex-U.S. share of equity, or ``None`` with no equity exposure."""
        analysis = ExposureAggregator.analyze(portfolio, catalog)
        regions = ExposureAggregator.dimension_totals_for(analysis, AssetClass.EQUITY, "market_region")

        us = regions.get(MarketRegion.US.value, 0.0)
        ex_us = (
            regions.get(MarketRegion.INTERNATIONAL_DEVELOPED.value, 0.0)
            + regions.get(MarketRegion.EMERGING.value, 0.0)
        )
        total = us + ex_us
        if total == 0:
            return None

        return EquityBreakdown(
            us=relative_percent(us, total),
            ex_us=relative_percent(ex_us, total),
            total_equity=total,
        )

    @staticmethod
    def dimension_totals_for(
        analysis: PortfolioAnalysis,
        asset_class: AssetClass,
        dimension: str,
    ) -> Dict[str, float]:
        """Like :meth:`dimension_totals` but restricted to one asset class."""
        index = EXPOSURE_DIMENSIONS.get(dimension)
        if index is None:
            raise ValueError(f"Unknown dimension: {dimension!r}.")
        totals: Dict[str, float] = {}
        for key, amount in analysis.exposures.items():
            fields = key.split(EXPOSURE_KEY_SEPARATOR)
            if fields[0] == asset_class.value and fields[index]:
                totals[fields[index]] = totals.get(fields[index], 0.0) + amount
        return totals

    @staticmethod
    def dominant_asset_classes(analysis: PortfolioAnalysis, top: int = 3) -> List[str]:
        """Asset classes ordered by exposure, largest first."""
        ranked = sorted(
            analysis.asset_class_totals.items(), key=lambda item: item[1], reverse=True
        )
        return [asset_class for asset_class, _ in ranked[:top]]

    # ------------------------------------------------------------------
    # Per-holding detail
    # ------------------------------------------------------------------

    @staticmethod
    def holding_details(
        portfolio: Portfolio,
        catalog: Optional[ExposureCatalog] = None,
    ) -> List[HoldingDetail]:
        """Leverage type, headline leverage and asset classes per holding."""
        catalog = catalog if catalog is not None else load_catalog()
        details = []
        for holding in portfolio.holdings.values():
            etf = catalog.get(holding.ticker)
            details.append(HoldingDetail(
                ticker=holding.ticker,
                percentage=holding.percentage,
                leverage_type=etf.leverage_type,
                leverage_amount=etf.max_leverage,
                asset_classes=etf.asset_classes(),
            ))
        return details

    # ------------------------------------------------------------------
    # Tabular view
    # ------------------------------------------------------------------

    @staticmethod
    def exposure_table(analysis: PortfolioAnalysis) -> pd.DataFrame:
        """
        One row per exposure key, largest first.

        Columns
        -------
        asset_class, market_region, factor_style, size_factor : str
            Key fields (empty when not applicable).
        exposure : float
            Fraction of capital.
        absolute_pct : float
            ``exposure`` as a percentage of capital.
        relative_pct : float
            Share of total exposure; all zero for an empty portfolio.
        """
        columns = [
            "asset_class", "market_region", "factor_style", "size_factor",
            "exposure", "absolute_pct", "relative_pct",
        ]
        if not analysis.exposures:
            return pd.DataFrame(columns=columns)

        rows = []
        for key, amount in analysis.exposures.items():
            fields = key.split(EXPOSURE_KEY_SEPARATOR)
            if len(fields) != len(EXPOSURE_DIMENSIONS):
                raise MalformedDataError(f"Malformed exposure key {key!r}.")
            rows.append(fields + [amount])

        df = pd.DataFrame(rows, columns=columns[:5])
        values = df["exposure"].to_numpy(dtype=float)
        total = values.sum()

        df["absolute_pct"] = weight_to_percent(values)
        df["relative_pct"] = np.divide(
            values, total, out=np.zeros_like(values), where=total > 0
        ) * 100

        return df.sort_values("exposure", ascending=False).reset_index(drop=True)
