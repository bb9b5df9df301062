"""
stackfolio/catalog.py
---------------------
ETF exposure catalog loaded from a CSV file with pandas.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict, Iterator, List, Optional

import pandas as pd

from stackfolio.constants import CATALOG_COLUMNS
from stackfolio.enums import AssetClass, FactorStyle, LeverageType, MarketRegion, SizeFactor
from stackfolio.errors import MalformedDataError, TickerNotFoundError
from stackfolio.models import ETF, Exposure

logger = logging.getLogger(__name__)


# Default catalog, resolved relative to this file so it works regardless
# of which directory the user launches from.
_DEFAULT_CATALOG = Path(__file__).parent / "data" / "etf_catalog.csv"


class ExposureCatalog:
    """
    Read-only ticker → :class:`ETF` lookup.

    Loaded once (normally from ``stackfolio/data/etf_catalog.csv``) and
    shared by every portfolio; nothing in the core mutates it.

    CSV layout, one row per (ticker, exposure)::

        ticker,asset_class,market_region,factor_style,size_factor,amount,leverage_type
        RSST,Equity,U.S.,Blend,Large Cap,1.0,Stacked
        RSST,Managed Futures,,,,1.0,Stacked

    Empty region/style/size cells mean "not applicable".
    """

    def __init__(self, etfs: Dict[str, ETF]):
        self._etfs = dict(etfs)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_csv(cls, path: str | Path) -> "ExposureCatalog":
        """
        Parse a catalog CSV.

        Raises
        ------
        FileNotFoundError
            If *path* does not exist.
        MalformedDataError
            Missing columns, non-numeric or negative amounts, unknown enum
            values, duplicate exposures, or conflicting leverage types.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Catalog file not found: {path}")

        frame = pd.read_csv(path, dtype=str, keep_default_na=False)
        catalog = cls.from_frame(frame)
        logger.debug("Loaded %d catalog entries from %s", len(catalog), path)
        return catalog

    @classmethod
    def from_frame(cls, frame: pd.DataFrame) -> "ExposureCatalog":
        """Build a catalog from a DataFrame with :data:`CATALOG_COLUMNS`."""
        missing = set(CATALOG_COLUMNS) - set(frame.columns)
        if missing:
            raise MalformedDataError(
                f"Catalog is missing columns: {sorted(missing)}"
            )

        frame = frame.fillna("")
        amounts = pd.to_numeric(frame["amount"], errors="coerce")
        bad_rows = frame.index[amounts.isna() | (amounts < 0)].tolist()
        if bad_rows:
            raise MalformedDataError(
                f"Catalog rows {bad_rows} have a missing, non-numeric or "
                "negative amount."
            )

        exposures: Dict[str, Dict[str, float]] = {}
        leverage: Dict[str, LeverageType] = {}

        for row, amount in zip(frame.itertuples(index=False), amounts):
            ticker = str(row.ticker).strip().upper()
            if not ticker:
                raise MalformedDataError("Catalog row without a ticker.")

            key = _row_exposure(row).key
            lev = _parse(LeverageType, row.leverage_type or LeverageType.NONE.value, ticker)

            if ticker in leverage and leverage[ticker] != lev:
                raise MalformedDataError(
                    f"Conflicting leverage types for {ticker}: "
                    f"{leverage[ticker].value!r} vs {lev.value!r}."
                )
            leverage[ticker] = lev

            bucket = exposures.setdefault(ticker, {})
            if key in bucket:
                raise MalformedDataError(
                    f"Duplicate exposure {key!r} for {ticker}."
                )
            bucket[key] = float(amount)

        return cls({
            ticker: ETF(ticker=ticker, exposures=exp, leverage_type=leverage[ticker])
            for ticker, exp in exposures.items()
        })

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, ticker: str) -> ETF:
        """
        Return the entry for *ticker* (case-insensitive).

        Raises
        ------
        TickerNotFoundError
            If the catalog has no such ticker.
        """
        etf = self._etfs.get(ticker.upper())
        if etf is None:
            raise TickerNotFoundError(ticker, "catalog")
        return etf

    def find(self, ticker: str) -> Optional[ETF]:
        return self._etfs.get(ticker.upper())

    def __contains__(self, ticker: str) -> bool:
        return ticker.upper() in self._etfs

    def __iter__(self) -> Iterator[ETF]:
        return iter(self._etfs.values())

    def __len__(self) -> int:
        return len(self._etfs)

    @property
    def tickers(self) -> List[str]:
        return sorted(self._etfs)

    def to_frame(self) -> pd.DataFrame:
        """Flatten back to the CSV shape (one row per exposure)."""
        rows = []
        for etf in self._etfs.values():
            for key, amount in etf.exposures.items():
                exposure = Exposure.from_key(key)
                rows.append({
                    "ticker":        etf.ticker,
                    "asset_class":   exposure.asset_class.value,
                    "market_region": exposure.market_region.value if exposure.market_region else "",
                    "factor_style":  exposure.factor_style.value if exposure.factor_style else "",
                    "size_factor":   exposure.size_factor.value if exposure.size_factor else "",
                    "amount":        amount,
                    "leverage_type": etf.leverage_type.value,
                })
        return pd.DataFrame(rows, columns=list(CATALOG_COLUMNS))


# ------------------------------------------------------------------
# Module-level helpers
# ------------------------------------------------------------------

def _parse(enum_cls, raw: str, ticker: str):
    try:
        return enum_cls(str(raw).strip())
    except ValueError:
        raise MalformedDataError(
            f"Unknown {enum_cls.__name__} {raw!r} for {ticker}."
        ) from None


def _row_exposure(row) -> Exposure:
    ticker = row.ticker
    return Exposure(
        asset_class=_parse(AssetClass, row.asset_class, ticker),
        market_region=_parse(MarketRegion, row.market_region, ticker) if row.market_region else None,
        factor_style=_parse(FactorStyle, row.factor_style, ticker) if row.factor_style else None,
        size_factor=_parse(SizeFactor, row.size_factor, ticker) if row.size_factor else None,
    )


@lru_cache(maxsize=4)
def load_catalog(path: str = str(_DEFAULT_CATALOG)) -> ExposureCatalog:
    """Cached catalog loader; the bundled catalog is parsed once per process."""
    return ExposureCatalog.from_csv(path)
