import logging
from typing import Optional

from stackfolio.allocation_engine import AllocationEngine, allocation_changes
from stackfolio.catalog import ExposureCatalog, load_catalog
from stackfolio.command_parser import CommandParser
from stackfolio.enums import Command
from stackfolio.errors import StackfolioError
from stackfolio.exposure_aggregator import ExposureAggregator
from stackfolio.models import Portfolio
from stackfolio.portfolio_store import PortfolioStore
from stackfolio.portfolio_validator import PortfolioValidator
from stackfolio.report_generator import ReportGenerator
from stackfolio.serialization import is_modified
from stackfolio.session_state import SessionState
from stackfolio.templates import EXAMPLE_PORTFOLIOS, find_template

logger = logging.getLogger(__name__)


class PortfolioSession:
    """
    One user's interactive portfolio-building session.

    Every command is parsed, dispatched to a ``_handle_*`` method, and
    answered with printable text.  The allocation engine, aggregator and
    validator do the work; this class only keeps the current snapshot and
    the percentages of disabled tickers between commands.

    Not thread-safe: a host driving several sessions concurrently must
    serialise calls per session.
    """

    def __init__(
        self,
        catalog: Optional[ExposureCatalog] = None,
        store: Optional[PortfolioStore] = None,
    ):
        self.state = SessionState()
        self.parser = CommandParser()
        self.reports = ReportGenerator()
        self.catalog = catalog if catalog is not None else load_catalog()
        self.store = store or PortfolioStore()

    @property
    def portfolio(self) -> Portfolio:
        return self.state.portfolio

    # ------------------------------------------------------------------ #
    #  Public entry point (called by main.py)
    # ------------------------------------------------------------------ #

    def start(self) -> str:
        """Return the opening greeting without requiring user input."""
        return self.reports.greeting()

    def handle_message(self, user_input: str) -> str:
        """Process one line of input and return the reply."""
        text = user_input.strip()
        if not text:
            return "Type a command, or 'help' for the list."

        command = self.parser.parse_command(text)
        handler = self._handlers().get(command, self._handle_unknown)

        try:
            return handler(text)
        except StackfolioError as exc:
            logger.info("%s failed: %s", command.name, exc)
            return self.reports.error(str(exc))
        except OSError as exc:
            logger.warning("%s failed: %s", command.name, exc)
            return self.reports.error(f"File error: {exc}")

    # ------------------------------------------------------------------ #
    #  Dispatcher
    # ------------------------------------------------------------------ #

    def _handlers(self) -> dict:
        return {
            Command.ADD:            self._handle_add,
            Command.REMOVE:         self._handle_remove,
            Command.SET:            self._handle_set,
            Command.LOCK:           self._handle_lock,
            Command.UNLOCK:         self._handle_unlock,
            Command.DISABLE:        self._handle_disable,
            Command.ENABLE:         self._handle_enable,
            Command.EQUAL_WEIGHT:   self._handle_equal,
            Command.SHOW:           lambda t: self._show(),
            Command.ANALYZE:        self._handle_analyze,
            Command.WARNINGS:       self._handle_warnings,
            Command.LIST_ETFS:      lambda t: self.reports.catalog(self.catalog),
            Command.LIST_TEMPLATES: self._handle_list_templates,
            Command.USE_TEMPLATE:   self._handle_use_template,
            Command.NEW:            self._handle_new,
            Command.SAVE:           self._handle_save,
            Command.LOAD:           self._handle_load,
            Command.DELETE:         self._handle_delete,
            Command.LIST_SAVED:     self._handle_list_saved,
            Command.EXPORT:         self._handle_export,
            Command.IMPORT:         self._handle_import,
            Command.HELP:           lambda t: self.reports.help(),
            Command.QUIT:           self._handle_quit,
        }

    def _show(self, message: Optional[str] = None) -> str:
        table = self.reports.holdings(
            self.portfolio, modified=is_modified(self.portfolio, self.state.original)
        )
        return f"{message}\n{table}" if message else table

    def _commit(self, updated: Portfolio) -> bool:
        """Swap in *updated*; False when the engine rejected the request."""
        if updated is self.portfolio:
            return False
        self.state.portfolio = updated
        return True

    # ------------------------------------------------------------------ #
    #  Allocation commands
    # ------------------------------------------------------------------ #

    def _handle_add(self, text: str) -> str:
        tickers = self.parser.extract_tickers(text)
        if not tickers:
            return "Which ticker? E.g. 'add RSST' or 'add GLDM 20'. Type 'etfs' to list them."

        for ticker in tickers:
            self.catalog.get(ticker)   # raises TickerNotFoundError for unknown tickers

        added, skipped = [], []
        for ticker in tickers:
            if self._commit(AllocationEngine.add_ticker(self.portfolio, ticker)):
                added.append(ticker)
            else:
                skipped.append(ticker)

        notes = []
        if added:
            notes.append(self.reports.info(f"Added {', '.join(added)}."))
        if skipped:
            notes.append(self.reports.rejected(f"Already held: {', '.join(skipped)}."))

        percent = self.parser.extract_percent(text)
        if percent is not None and added:
            notes.append(self._set(added[-1], percent))
        elif added and len(self.portfolio.holdings) > 1:
            notes.append(f"Use 'set {added[-1]} <pct>' to give it an allocation.")

        return self._show("\n".join(notes))

    def _handle_remove(self, text: str) -> str:
        tickers = self.parser.extract_tickers(text)
        if not tickers:
            return "Which ticker? E.g. 'remove TMF'."

        notes = []
        for ticker in tickers:
            if self._commit(AllocationEngine.remove_ticker(self.portfolio, ticker)):
                self.state.disabled_percentages.pop(ticker, None)
                notes.append(self.reports.info(f"Removed {ticker}."))
            else:
                notes.append(self.reports.rejected(f"Cannot remove {ticker}: it is the last holding."))
        return self._show("\n".join(notes))

    def _handle_set(self, text: str) -> str:
        ticker = self.parser.extract_ticker(text)
        percent = self.parser.extract_percent(text)
        if ticker is None or percent is None:
            return "Usage: set <TICKER> <percent>, e.g. 'set RSST 30'."
        return self._show(self._set(ticker, percent))

    def _set(self, ticker: str, percent: float) -> str:
        before = self.portfolio
        if self._commit(AllocationEngine.set_allocation(before, ticker, percent)):
            actual = self.portfolio.holdings[ticker].percentage
            others = [
                f"{t} {old:g}% → {new:g}%"
                for t, old, new in allocation_changes(before, self.portfolio)
                if t != ticker
            ]
            note = f"{ticker} set to {actual:g}%."
            if others:
                note += f" Rebalanced: {', '.join(others)}."
            return self.reports.info(note)

        holding = before.holdings[ticker]
        if holding.disabled:
            reason = "it is disabled ('enable' it first)"
        elif holding.locked:
            reason = "it is locked ('unlock' it first)"
        elif round(holding.percentage, 2) == round(min(max(percent, 0.0), 100.0), 2):
            return self.reports.info(f"{ticker} is already at {holding.percentage:g}%.")
        else:
            reason = "locked holdings leave too little room, or nothing else can be rescaled"
        return self.reports.rejected(f"Cannot set {ticker} to {percent:g}%: {reason}.")

    def _handle_lock(self, text: str) -> str:
        return self._set_lock(text, locked=True)

    def _handle_unlock(self, text: str) -> str:
        return self._set_lock(text, locked=False)

    def _set_lock(self, text: str, locked: bool) -> str:
        verb = "lock" if locked else "unlock"
        state = "locked" if locked else "unlocked"
        tickers = self.parser.extract_tickers(text)
        if not tickers:
            return f"Which ticker? E.g. '{verb} RSST'."

        notes = []
        for ticker in tickers:
            holding = self.portfolio.holdings.get(ticker)
            if holding is not None and holding.locked == locked:
                notes.append(self.reports.info(f"{ticker} is already {state}."))
                continue
            # toggle_lock only flips; the flag check above makes it one-way
            if self._commit(AllocationEngine.toggle_lock(self.portfolio, ticker)):
                notes.append(self.reports.info(f"{ticker} {state}."))
            else:
                notes.append(self.reports.rejected(f"Cannot {verb} {ticker}: it is disabled."))
        return self._show("\n".join(notes))

    def _handle_disable(self, text: str) -> str:
        tickers = self.parser.extract_tickers(text)
        if not tickers:
            return "Which ticker? E.g. 'disable TMF'."

        notes = []
        for ticker in tickers:
            holding = self.portfolio.holdings.get(ticker)
            if holding is not None and holding.disabled:
                notes.append(self.reports.info(f"{ticker} is already disabled."))
                continue
            if self._commit(AllocationEngine.toggle_disable(self.portfolio, ticker)):
                self.state.disabled_percentages[ticker] = holding.percentage
                notes.append(self.reports.info(f"{ticker} disabled (was {holding.percentage:g}%)."))
            else:
                notes.append(self.reports.rejected(
                    f"Cannot disable {ticker}: no unlocked holding can absorb its allocation."
                ))
        return self._show("\n".join(notes))

    def _handle_enable(self, text: str) -> str:
        tickers = self.parser.extract_tickers(text)
        if not tickers:
            return "Which ticker? E.g. 'enable TMF'."

        notes = []
        for ticker in tickers:
            holding = self.portfolio.holdings.get(ticker)
            if holding is not None and not holding.disabled:
                notes.append(self.reports.info(f"{ticker} is already enabled."))
                continue

            restore = self.state.disabled_percentages.pop(ticker, None)
            self._commit(AllocationEngine.toggle_disable(self.portfolio, ticker, restore))
            actual = self.portfolio.holdings[ticker].percentage
            notes.append(self.reports.info(f"{ticker} enabled at {actual:g}%."))
        return self._show("\n".join(notes))

    def _handle_equal(self, text: str) -> str:
        mode = self.parser.extract_equal_mode(text)
        before = self.portfolio
        self._commit(AllocationEngine.equal_weight(before, mode))
        if self.portfolio is before and not any(h.adjustable for h in before.holdings.values()):
            return self._show(self.reports.rejected("Nothing to equal-weight: every holding is locked or disabled."))
        return self._show(self.reports.info(f"Equal-weighted ({mode.value})."))

    # ------------------------------------------------------------------ #
    #  Analysis commands
    # ------------------------------------------------------------------ #

    def _handle_analyze(self, text: str) -> str:
        if not self.portfolio.holdings:
            return "The portfolio is empty: nothing to analyze."

        analysis = ExposureAggregator.analyze(self.portfolio, self.catalog)
        relative = {
            "Equity by region": ExposureAggregator.relative_breakdown(analysis, "market_region"),
            "Equity by style":  ExposureAggregator.relative_breakdown(analysis, "factor_style"),
            "Equity by size":   ExposureAggregator.relative_breakdown(analysis, "size_factor"),
        }
        return self.reports.analysis(
            analysis,
            ExposureAggregator.exposure_table(analysis),
            equity=ExposureAggregator.equity_breakdown(self.portfolio, self.catalog),
            relative=relative,
            dominant=ExposureAggregator.dominant_asset_classes(analysis),
            details=ExposureAggregator.holding_details(self.portfolio, self.catalog),
        )

    def _handle_warnings(self, text: str) -> str:
        if not self.portfolio.holdings:
            return "The portfolio is empty: nothing to check."
        return self.reports.warnings(PortfolioValidator.rule_results(self.portfolio, self.catalog))

    # ------------------------------------------------------------------ #
    #  Template / storage commands
    # ------------------------------------------------------------------ #

    def _with_leverage(self, portfolios):
        return [
            (p, ExposureAggregator.analyze(p, self.catalog).total_leverage)
            for p in portfolios
        ]

    def _handle_list_templates(self, text: str) -> str:
        return self.reports.portfolio_list("Templates", self._with_leverage(EXAMPLE_PORTFOLIOS))

    def _handle_use_template(self, text: str) -> str:
        name = self.parser.extract_argument(text)
        if not name:
            return "Which template? Type 'templates' to list them."
        template = find_template(name)
        if template is None:
            return self.reports.rejected(f"No template named '{name}'. Type 'templates' to list them.")
        self.state.start_from(template, original=template)
        return self._show(self.reports.info(f"Loaded template '{template.name}'."))

    def _handle_new(self, text: str) -> str:
        name = self.parser.extract_argument(text)
        self.state.start_from(Portfolio(name=name) if name else Portfolio())
        return self._show(self.reports.info("Started a new portfolio."))

    def _handle_save(self, text: str) -> str:
        if not self.portfolio.holdings:
            return self.reports.rejected("Nothing to save: the portfolio is empty.")

        name = self.parser.extract_argument(text)
        if name:
            self.state.portfolio = self.portfolio.renamed(name)
        self.store.save(self.portfolio)
        self.state.original = self.portfolio
        return self.reports.info(f"Saved '{self.portfolio.name}'.")

    def _handle_load(self, text: str) -> str:
        name = self.parser.extract_argument(text)
        if not name:
            return "Which portfolio? Type 'saved' to list them."
        portfolio = self.store.load(name)
        if portfolio is None:
            return self.reports.rejected(f"No saved portfolio named '{name}'.")
        self._check_catalog(portfolio)
        self.state.start_from(portfolio, original=portfolio)
        return self._show(self.reports.info(f"Loaded '{portfolio.name}'."))

    def _handle_delete(self, text: str) -> str:
        name = self.parser.extract_argument(text)
        if not name:
            return "Which portfolio? Type 'saved' to list them."
        if self.store.delete(name):
            return self.reports.info(f"Deleted '{name}'.")
        return self.reports.rejected(f"No saved portfolio named '{name}' (built-in ones cannot be deleted).")

    def _handle_list_saved(self, text: str) -> str:
        return self.reports.portfolio_list("Saved portfolios", self._with_leverage(self.store.load_all()))

    def _handle_export(self, text: str) -> str:
        if not self.portfolio.holdings:
            return self.reports.rejected("Nothing to export: the portfolio is empty.")
        directory = self.parser.extract_argument(text) or "."
        path = self.store.export_portfolio(self.portfolio, directory)
        return self.reports.info(f"Exported to {path}.")

    def _handle_import(self, text: str) -> str:
        path = self.parser.extract_argument(text)
        if not path:
            return "Which file? E.g. 'import hfea.json'."
        portfolio = self.store.import_portfolio(path)
        self._check_catalog(portfolio)
        self.state.start_from(portfolio, original=portfolio)
        return self._show(self.reports.info(f"Imported '{portfolio.name}'."))

    def _check_catalog(self, portfolio: Portfolio) -> None:
        """Raise TickerNotFoundError before adopting a portfolio with unknown tickers."""
        for ticker in portfolio.holdings:
            self.catalog.get(ticker)

    # ------------------------------------------------------------------ #
    #  Misc
    # ------------------------------------------------------------------ #

    def _handle_quit(self, text: str) -> str:
        self.state.done = True
        return self.reports.quit_message()

    def _handle_unknown(self, text: str) -> str:
        return self.reports.unknown()
