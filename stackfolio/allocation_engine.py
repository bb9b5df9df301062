"""
stackfolio/allocation_engine.py
-------------------------------
Pure transformation engine: (portfolio, one requested change) → portfolio.

Design contract:
  - No exposure or catalog awareness
  - No I/O, no session state
  - Fully deterministic and stateless (all methods are @staticmethod)
  - Enabled holdings total exactly 10 000 bp after every accepted change
  - Business-rule rejections return the *same* Portfolio object;
    only an unknown ticker raises (TickerNotFoundError)
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Dict, List, Optional, Tuple, Union

from stackfolio.constants import MAX_BASIS_POINTS, MIN_HOLDINGS
from stackfolio.enums import EqualWeightMode, Operation
from stackfolio.errors import TickerNotFoundError
from stackfolio.models import Holding, Portfolio
from stackfolio.precision import (
    clamp_percent,
    split_basis_points,
    to_basis_points,
    to_percent,
)

logger = logging.getLogger(__name__)


def _bp(holding: Holding) -> int:
    return to_basis_points(holding.percentage)


class AllocationEngine:
    """
    Apply one user edit to a portfolio and re-normalise everything else.

    Operations:
        ``set_allocation``  – change one holding; others absorb the delta
        ``add_ticker``      – insert at 0% (100% when first)
        ``remove_ticker``   – delete; freed allocation is redistributed
        ``toggle_lock``     – protect / unprotect from redistribution
        ``toggle_disable``  – zero and exclude / re-include
        ``equal_weight``    – split evenly (unlocked only, or all)

    Redistribution is proportional to each receiver's current share and
    falls back to an equal split when every receiver is at 0%.  Rounding
    follows the remainder-to-last rule of
    :func:`stackfolio.precision.split_basis_points`.
    """

    # ------------------------------------------------------------------ #
    #  Public entry point
    # ------------------------------------------------------------------ #

    @staticmethod
    def apply(
        portfolio: Portfolio,
        operation: Union[Operation, str],
        operand=None,
    ) -> Portfolio:
        """
        Dispatch a single ``(operation, operand)`` request.

        Operand shapes
        --------------
        ``SET_ALLOCATION``  – ``(ticker, percent)``
        ``ADD_TICKER`` / ``REMOVE_TICKER`` / ``TOGGLE_LOCK`` – ``ticker``
        ``TOGGLE_DISABLE``  – ``ticker`` or ``(ticker, restore_percent)``
        ``EQUAL_WEIGHT``    – :class:`EqualWeightMode` (default unlocked-only)

        Raises
        ------
        ValueError
            Unknown operation name.
        TickerNotFoundError
            Operand names a ticker the portfolio does not hold.
        """
        try:
            op = Operation(operation)
        except ValueError:
            raise ValueError(
                f"Unknown operation: {operation!r}. "
                f"Choose from {[o.value for o in Operation]}."
            ) from None

        if op is Operation.SET_ALLOCATION:
            ticker, percent = operand
            return AllocationEngine.set_allocation(portfolio, ticker, percent)
        if op is Operation.ADD_TICKER:
            return AllocationEngine.add_ticker(portfolio, operand)
        if op is Operation.REMOVE_TICKER:
            return AllocationEngine.remove_ticker(portfolio, operand)
        if op is Operation.TOGGLE_LOCK:
            return AllocationEngine.toggle_lock(portfolio, operand)
        if op is Operation.TOGGLE_DISABLE:
            if isinstance(operand, tuple):
                ticker, restore = operand
                return AllocationEngine.toggle_disable(portfolio, ticker, restore)
            return AllocationEngine.toggle_disable(portfolio, operand)
        return AllocationEngine.equal_weight(
            portfolio, EqualWeightMode(operand or EqualWeightMode.UNLOCKED_ONLY)
        )

    # ------------------------------------------------------------------ #
    #  Operations
    # ------------------------------------------------------------------ #

    @staticmethod
    def set_allocation(portfolio: Portfolio, ticker: str, new_percent: float) -> Portfolio:
        """
        Set *ticker* to *new_percent* (clamped to [0, 100]) and rescale the
        other unlocked, enabled holdings so the total stays at 100%.

        Rejected (portfolio returned unchanged) when the ticker is locked or
        disabled, when nothing else can absorb the change, or when locked
        holdings leave less than *new_percent* available.
        """
        holding = AllocationEngine._require(portfolio, ticker)

        if holding.locked or holding.disabled:
            return AllocationEngine._reject(portfolio, "%s is locked or disabled", ticker)

        new_percent = float(new_percent)
        if math.isnan(new_percent):
            return AllocationEngine._reject(portfolio, "NaN allocation for %s", ticker)

        new_bp = to_basis_points(clamp_percent(new_percent))
        if new_bp == _bp(holding):
            return portfolio

        others = [h for t, h in portfolio.holdings.items() if t != ticker]
        adjustable = [h for h in others if h.adjustable]
        if not adjustable:
            return AllocationEngine._reject(portfolio, "no adjustable holdings besides %s", ticker)

        locked_bp = sum(_bp(h) for h in others if h.locked and not h.disabled)
        pool_bp = MAX_BASIS_POINTS - locked_bp - new_bp
        if pool_bp < 0:
            return AllocationEngine._reject(
                portfolio,
                "%s at %d bp exceeds the %d bp left by locked holdings",
                ticker, new_bp, MAX_BASIS_POINTS - locked_bp,
            )

        shares = split_basis_points(pool_bp, [_bp(h) for h in adjustable])

        targets = {h.ticker: share for h, share in zip(adjustable, shares)}
        targets[ticker] = new_bp
        return AllocationEngine._rebuild(portfolio, portfolio.holdings, targets)

    @staticmethod
    def add_ticker(portfolio: Portfolio, ticker: str) -> Portfolio:
        """
        Insert *ticker* at 0%, or at 100% when the portfolio is empty.

        No redistribution happens here; a following :meth:`set_allocation`
        gives the new holding its share.  Adding a ticker that is already
        held is rejected.
        """
        if ticker in portfolio.holdings:
            return AllocationEngine._reject(portfolio, "%s already held", ticker)

        percentage = 100.0 if not portfolio.holdings else 0.0
        holdings = dict(portfolio.holdings)
        holdings[ticker] = Holding(ticker=ticker, percentage=percentage)
        return portfolio.with_holdings(holdings)

    @staticmethod
    def remove_ticker(portfolio: Portfolio, ticker: str) -> Portfolio:
        """
        Remove *ticker* and hand its allocation to the remaining unlocked,
        enabled holdings.

        The only holding can never be removed.  When every remaining
        holding is locked or disabled the first remaining holding is forced
        to absorb the freed allocation (see :meth:`_force_receiver`).
        """
        holding = AllocationEngine._require(portfolio, ticker)

        if len(portfolio.holdings) <= MIN_HOLDINGS:
            return AllocationEngine._reject(portfolio, "cannot remove the last holding %s", ticker)

        freed_bp = 0 if holding.disabled else _bp(holding)
        remaining = {t: h for t, h in portfolio.holdings.items() if t != ticker}

        if freed_bp == 0:
            return portfolio.with_holdings(remaining)

        targets = AllocationEngine._absorb(remaining, freed_bp)
        if targets is None:
            remaining, targets = AllocationEngine._force_receiver(remaining, freed_bp)

        return AllocationEngine._rebuild(portfolio, remaining, targets, force=True)

    @staticmethod
    def toggle_lock(portfolio: Portfolio, ticker: str) -> Portfolio:
        """Flip ``locked``; disabled holdings cannot be locked."""
        holding = AllocationEngine._require(portfolio, ticker)

        if holding.disabled:
            return AllocationEngine._reject(portfolio, "cannot lock disabled %s", ticker)

        holdings = dict(portfolio.holdings)
        holdings[ticker] = replace(holding, locked=not holding.locked)
        return portfolio.with_holdings(holdings)

    @staticmethod
    def toggle_disable(
        portfolio: Portfolio,
        ticker: str,
        restore_percent: Optional[float] = None,
    ) -> Portfolio:
        """
        Disable or re-enable *ticker*.

        Disabling zeroes the holding, clears its lock and redistributes its
        allocation; it is rejected when the allocation is non-zero and no
        unlocked, enabled holding can take it.

        Enabling clears both flags and starts the holding at 0%.  When
        *restore_percent* is given (typically the percentage the caller
        captured before disabling) it is immediately followed by
        :meth:`set_allocation`; if that is rejected the holding stays
        enabled at 0%.
        """
        holding = AllocationEngine._require(portfolio, ticker)

        if holding.disabled:
            holdings = dict(portfolio.holdings)
            holdings[ticker] = replace(holding, percentage=0.0, disabled=False, locked=False)
            enabled = portfolio.with_holdings(holdings)
            if restore_percent is None:
                return enabled
            return AllocationEngine.set_allocation(enabled, ticker, restore_percent)

        freed_bp = _bp(holding)
        holdings = dict(portfolio.holdings)
        holdings[ticker] = replace(holding, percentage=0.0, disabled=True, locked=False)

        if freed_bp == 0:
            return portfolio.with_holdings(holdings)

        others = {t: h for t, h in holdings.items() if t != ticker}
        targets = AllocationEngine._absorb(others, freed_bp)
        if targets is None:
            return AllocationEngine._reject(portfolio, "nothing can absorb %s's allocation", ticker)

        return AllocationEngine._rebuild(portfolio, holdings, targets, force=True)

    @staticmethod
    def equal_weight(
        portfolio: Portfolio,
        mode: EqualWeightMode = EqualWeightMode.UNLOCKED_ONLY,
    ) -> Portfolio:
        """
        Split evenly.

        ``UNLOCKED_ONLY`` keeps locked holdings and splits what they leave
        among unlocked, enabled holdings.  ``ALL`` ignores locks and splits
        100% among every enabled holding.  Disabled holdings stay at 0%.
        """
        mode = EqualWeightMode(mode)
        enabled = portfolio.enabled()

        if mode is EqualWeightMode.ALL:
            members = enabled
            pool_bp = MAX_BASIS_POINTS
        else:
            members = [h for h in enabled if not h.locked]
            pool_bp = MAX_BASIS_POINTS - sum(_bp(h) for h in enabled if h.locked)

        if not members or pool_bp < 0:
            return AllocationEngine._reject(portfolio, "no holdings to equal-weight (%s)", mode.value)

        shares = split_basis_points(pool_bp, [0] * len(members))
        targets = {h.ticker: share for h, share in zip(members, shares)}
        return AllocationEngine._rebuild(portfolio, portfolio.holdings, targets)

    # ------------------------------------------------------------------ #
    #  Private helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def _require(portfolio: Portfolio, ticker: str) -> Holding:
        holding = portfolio.holdings.get(ticker)
        if holding is None:
            raise TickerNotFoundError(ticker)
        return holding

    @staticmethod
    def _reject(portfolio: Portfolio, reason: str, *args) -> Portfolio:
        logger.debug("Rejected: " + reason, *args)
        return portfolio

    @staticmethod
    def _absorb(holdings: Dict[str, Holding], freed_bp: int) -> Optional[Dict[str, int]]:
        """
        Add *freed_bp* on top of the unlocked, enabled holdings.

        Returns ``{ticker: new_bp}`` or ``None`` when there is no receiver.
        """
        receivers = [h for h in holdings.values() if h.adjustable]
        if not receivers:
            return None

        current = [_bp(h) for h in receivers]
        shares = split_basis_points(freed_bp, current)
        return {
            h.ticker: bp + share
            for h, bp, share in zip(receivers, current, shares)
        }

    @staticmethod
    def _force_receiver(
        holdings: Dict[str, Holding],
        freed_bp: int,
    ) -> Tuple[Dict[str, Holding], Dict[str, int]]:
        """
        Last resort after a removal: every remaining holding is locked or
        disabled.  Unlock the first *enabled* holding; only when all of
        them are disabled, re-enable the first one.  Both flags are cleared
        together on the receiver.
        """
        receiver = next(
            (h for h in holdings.values() if not h.disabled),
            next(iter(holdings.values())),
        )
        logger.debug("Forcing %s to absorb %d bp", receiver.ticker, freed_bp)

        holdings = dict(holdings)
        base_bp = 0 if receiver.disabled else _bp(receiver)
        holdings[receiver.ticker] = replace(
            receiver, percentage=to_percent(base_bp), locked=False, disabled=False
        )
        return holdings, {receiver.ticker: base_bp + freed_bp}

    @staticmethod
    def _rebuild(
        portfolio: Portfolio,
        holdings: Dict[str, Holding],
        targets: Dict[str, int],
        force: bool = False,
    ) -> Portfolio:
        """
        Write *targets* (basis points) back as percentages, preserving
        insertion order.  Returns *portfolio* itself when nothing changed
        and *force* is not set (structural changes always set it).
        """
        changed = force
        rebuilt: Dict[str, Holding] = {}

        for ticker, holding in holdings.items():
            if ticker in targets:
                percentage = to_percent(targets[ticker])
                if percentage != holding.percentage:
                    changed = True
                    holding = holding.with_percentage(percentage)
            rebuilt[ticker] = holding

        if not changed:
            return portfolio
        return portfolio.with_holdings(rebuilt)


def allocation_changes(before: Portfolio, after: Portfolio) -> List[Tuple[str, float, float]]:
    """
    ``[(ticker, old, new), ...]`` for every ticker held in both snapshots
    whose percentage differs, in *before* order.
    """
    return [
        (t, h.percentage, after.holdings[t].percentage)
        for t, h in before.holdings.items()
        if t in after.holdings and after.holdings[t].percentage != h.percentage
    ]
