from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

from stackfolio.catalog import ExposureCatalog
from stackfolio.enums import WarningLevel
from stackfolio.models import (
    EquityBreakdown,
    HoldingDetail,
    Portfolio,
    PortfolioAnalysis,
    PortfolioWarning,
)
from stackfolio.portfolio_validator import RULE_DESCRIPTIONS
from stackfolio.precision import round_for_display, total_allocation, weight_to_percent


_LEVEL_ICONS: dict = {
    WarningLevel.ERROR:   "❌",
    WarningLevel.WARNING: "⚠️ ",
    WarningLevel.INFO:    "ℹ️ ",
}

_WIDTH = 64


class ReportGenerator:
    """
    Builds the text the CLI prints.

    **Formatting-only**: every number shown here was computed by the
    allocation engine, the exposure aggregator or the validator.
    """

    # ------------------------------------------------------------------ #
    #  Conversational messages
    # ------------------------------------------------------------------ #

    def greeting(self) -> str:
        return (
            "👋 Welcome to **Stackfolio**, a return-stacking portfolio builder.\n\n"
            "Start from a template ('templates', then 'template HFEA') or add "
            "tickers yourself ('add RSST GLDM', then 'set GLDM 30').\n"
            "Type 'help' for every command."
        )

    def help(self) -> str:
        return "\n".join([
            "Commands:",
            "  add <TICKER…> [pct]     add tickers (optionally set the last one)",
            "  remove <TICKER…>        remove tickers; their share is redistributed",
            "  set <TICKER> <pct>      change one allocation; others rescale",
            "  lock / unlock <TICKER>  protect a holding from rescaling",
            "  disable / enable <T>    zero a holding out / bring it back",
            "  equal [all]             equal-weight unlocked (or all) holdings",
            "  show                    current holdings",
            "  analyze                 exposures and leverage",
            "  warnings                diversification and leverage checks",
            "  etfs                    available tickers",
            "  templates / template <name>",
            "  new [name] | save [name] | load <name> | delete <name> | saved",
            "  export [dir] | import <file>",
            "  quit",
        ])

    def unknown(self) -> str:
        return (
            "🤔 I didn't understand that. Type 'help' for the list of commands."
        )

    def quit_message(self) -> str:
        return "👋 Thanks for using Stackfolio. Goodbye!"

    def info(self, message: str) -> str:
        return f"✅ {message}"

    def rejected(self, message: str) -> str:
        return f"⛔ {message}"

    def error(self, message: str) -> str:
        return f"⚠️  {message}"

    # ------------------------------------------------------------------ #
    #  Portfolio
    # ------------------------------------------------------------------ #

    def holdings(self, portfolio: Portfolio, modified: bool = False) -> str:
        title = portfolio.name + ("  (unsaved changes)" if modified else "")
        lines = ["=" * _WIDTH, f" {title}", "-" * _WIDTH]

        if not portfolio.holdings:
            lines.append("  (no holdings: 'add <TICKER>' or 'template <name>')")
            lines.append("=" * _WIDTH)
            return "\n".join(lines)

        lines.append(f"{'TICKER':<10} {'ALLOC':>8}   STATUS")
        for holding in portfolio.holdings.values():
            status = "disabled" if holding.disabled else ("locked" if holding.locked else "")
            lines.append(
                f"{holding.ticker:<10} {round_for_display(holding.percentage):>7.1f}%   {status}"
            )

        lines.append("-" * _WIDTH)
        lines.append(f"{'TOTAL':<10} {total_allocation(portfolio.holdings.values()):>7.1f}%")
        lines.append("=" * _WIDTH)
        return "\n".join(lines)

    # ------------------------------------------------------------------ #
    #  Analysis
    # ------------------------------------------------------------------ #

    def analysis(
        self,
        analysis: PortfolioAnalysis,
        table: pd.DataFrame,
        equity: Optional[EquityBreakdown] = None,
        relative: Optional[Dict[str, Dict[str, float]]] = None,
        dominant: Optional[List[str]] = None,
        details: Optional[List[HoldingDetail]] = None,
        top: int = 10,
    ) -> str:
        """
        Parameters
        ----------
        analysis : PortfolioAnalysis
        table : pd.DataFrame
            ``ExposureAggregator.exposure_table`` output.
        equity : EquityBreakdown, optional
            U.S. vs ex-U.S. split; omitted when there is no equity.
        relative : dict, optional
            ``{dimension label: {bucket: % of equity}}``.
        dominant : list of str, optional
            Largest asset classes, shown in the header.
        details : list of HoldingDetail, optional
            Per-holding leverage lines.
        """
        levered = "levered" if analysis.is_levered else "unlevered"
        lines = [
            "=" * _WIDTH,
            f" Total leverage: {analysis.total_leverage:.2f}x ({levered})",
        ]
        if dominant:
            lines.append(f" Largest exposures: {', '.join(dominant)}")
        lines += [
            "-" * _WIDTH,
            f"{'ASSET CLASS':<22} {'ABSOLUTE':>9} {'RELATIVE':>9}",
        ]

        total = analysis.total_leverage
        ranked = sorted(analysis.asset_class_totals.items(), key=lambda item: item[1], reverse=True)
        for asset_class, amount in ranked:
            share = amount / total * 100 if total > 0 else 0.0
            lines.append(f"{asset_class:<22} {weight_to_percent(amount):>8.1f}% {share:>8.1f}%")

        if equity is not None:
            lines.append("-" * _WIDTH)
            lines.append(f" Equity: U.S. {equity.us:.1f}% / ex-U.S. {equity.ex_us:.1f}%")

        for label, buckets in (relative or {}).items():
            if not buckets:
                continue
            parts = ", ".join(f"{bucket} {pct:.1f}%" for bucket, pct in buckets.items())
            lines.append(f" {label}: {parts}")

        if details:
            lines.append("-" * _WIDTH)
            lines.append(f"{'TICKER':<10} {'ALLOC':>8}   {'LEVERAGE':<24} ASSET CLASSES")
            for detail in details:
                leverage = f"{detail.leverage_type.value} {detail.leverage_amount:g}x"
                classes = ", ".join(ac.value for ac in detail.asset_classes)
                lines.append(
                    f"{detail.ticker:<10} {round_for_display(detail.percentage):>7.1f}%   {leverage:<24} {classes}"
                )

        if not table.empty:
            lines.append("-" * _WIDTH)
            lines.append(f"{'EXPOSURE':<44} {'ABS':>8} {'REL':>8}")
            for row in table.head(top).itertuples(index=False):
                label = " / ".join(
                    part for part in (row.asset_class, row.market_region, row.factor_style, row.size_factor)
                    if part
                )
                lines.append(f"{label:<44} {row.absolute_pct:>7.1f}% {row.relative_pct:>7.1f}%")

        lines.append("=" * _WIDTH)
        return "\n".join(lines)

    def warnings(self, results: Dict[str, Optional[PortfolioWarning]]) -> str:
        """One line per rule; passed rules get a check mark."""
        failed = sum(1 for warning in results.values() if warning is not None)
        header = f"{failed} warning(s)" if failed else "All checks passed"
        lines = [header]
        for rule, warning in results.items():
            if warning is None:
                lines.append(f"  ✅ {RULE_DESCRIPTIONS.get(rule, rule)}")
                continue
            lines.append(f"  {_LEVEL_ICONS[warning.level]} {warning.message}")
            if warning.description:
                lines.append(f"       {warning.description}")
        return "\n".join(lines)

    # ------------------------------------------------------------------ #
    #  Listings
    # ------------------------------------------------------------------ #

    def catalog(self, catalog: ExposureCatalog) -> str:
        lines = [f"{'TICKER':<8} {'LEVERAGE':<18} {'MAX':>5}  ASSET CLASSES", "-" * _WIDTH]
        for ticker in catalog.tickers:
            etf = catalog.get(ticker)
            classes = ", ".join(ac.value for ac in etf.asset_classes())
            lines.append(
                f"{etf.ticker:<8} {etf.leverage_type.value:<18} {etf.max_leverage:>4.1f}x  {classes}"
            )
        return "\n".join(lines)

    def portfolio_list(
        self,
        title: str,
        entries: Iterable[Tuple[Portfolio, float]],
    ) -> str:
        """*entries* are ``(portfolio, total_leverage)`` pairs."""
        entries: List[Tuple[Portfolio, float]] = list(entries)
        if not entries:
            return f"{title}: none."
        lines = [f"{title}:"]
        for portfolio, leverage in entries:
            lines.append(
                f"  • {portfolio.name:<30} {len(portfolio.holdings):>2} ETFs  {leverage:.2f}x"
            )
        return "\n".join(lines)
