"""
stackfolio/portfolio_store.py
-----------------------------
File-backed storage for saved portfolios.

Design
------
* All user saves live in one JSON file (``config.DEFAULT_STORE_PATH`` unless
  a path is given)::

      {"portfolios": [<serialized portfolio>, ...]}

* ``DEFAULT_SAVED_PORTFOLIOS`` are merged in on every read; a user save
  with the same name replaces the default.  Defaults are never written.
* Writes go to a temp file that is then renamed over the store, so a crash
  mid-write never leaves a truncated store behind.
* Single export/import files use the plain serialized shape, one
  portfolio per file.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Dict, List, Optional, Union

from stackfolio.config import DEFAULT_STORE_PATH
from stackfolio.errors import InvalidPortfolioFileError
from stackfolio.models import Portfolio
from stackfolio.serialization import deserialize_portfolio, from_json, serialize_portfolio, to_json
from stackfolio.templates import DEFAULT_SAVED_PORTFOLIOS

logger = logging.getLogger(__name__)


def export_filename(name: str) -> str:
    """``"HFEA Tamed"`` → ``"hfea_tamed.json"``."""
    return re.sub(r"[^a-z0-9]", "_", name, flags=re.IGNORECASE).lower() + ".json"


def _atomic_write(path: Path, text: str) -> None:
    """Write *text* to *path* via temp file + rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    try:
        with open(tmp, "w", encoding="utf-8") as fh:
            fh.write(text)
        os.replace(tmp, path)   # atomic on POSIX and Windows
    except OSError as exc:
        logger.warning("Write to %s failed (%s); nothing saved.", path, exc)
        if tmp.exists():
            tmp.unlink(missing_ok=True)
        raise


class PortfolioStore:
    """
    Saved-portfolio repository.

    Usage
    -----
    ::

        store = PortfolioStore()                 # ~/.stackfolio/portfolios.json
        store.save(portfolio)
        names = [p.name for p in store.load_all()]
        store.delete("My Portfolio")
    """

    def __init__(self, path: Union[str, Path, None] = None):
        self._path = Path(path) if path is not None else DEFAULT_STORE_PATH

    @property
    def path(self) -> Path:
        return self._path

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def load_all(self) -> List[Portfolio]:
        """
        Defaults first (in their declared order) then user-only saves,
        with user saves replacing defaults of the same name.
        """
        merged: Dict[str, Portfolio] = {p.name: p for p in DEFAULT_SAVED_PORTFOLIOS}
        for portfolio in self._read_user():
            merged[portfolio.name] = portfolio
        return list(merged.values())

    def load(self, name: str) -> Optional[Portfolio]:
        """Exact name first, then case-insensitive; ``None`` if not found."""
        portfolios = self.load_all()
        for portfolio in portfolios:
            if portfolio.name == name:
                return portfolio
        wanted = name.lower()
        for portfolio in portfolios:
            if portfolio.name.lower() == wanted:
                return portfolio
        return None

    def exists(self, name: str) -> bool:
        return any(p.name == name for p in self.load_all())

    def save(self, portfolio: Portfolio) -> None:
        """Insert or replace (by name) and persist."""
        saved = [p for p in self._read_user() if p.name != portfolio.name]
        saved.append(portfolio)
        self._write_user(saved)
        logger.info("Saved portfolio %r to %s", portfolio.name, self._path)

    def delete(self, name: str) -> bool:
        """
        Remove a user save.  Returns False when there is no such save
        (built-in defaults cannot be deleted).
        """
        saved = self._read_user()
        kept = [p for p in saved if p.name != name]
        if len(kept) == len(saved):
            return False
        self._write_user(kept)
        logger.info("Deleted portfolio %r from %s", name, self._path)
        return True

    # ------------------------------------------------------------------ #
    # Single-file export / import
    # ------------------------------------------------------------------ #

    @staticmethod
    def export_portfolio(portfolio: Portfolio, directory: Union[str, Path] = ".") -> Path:
        """Write *portfolio* to ``<directory>/<sanitised name>.json``; return the path."""
        target = Path(directory) / export_filename(portfolio.name)
        _atomic_write(target, to_json(portfolio))
        return target

    @staticmethod
    def import_portfolio(path: Union[str, Path]) -> Portfolio:
        """
        Read one exported portfolio.

        Raises
        ------
        FileNotFoundError
            *path* does not exist.
        InvalidPortfolioFileError
            The file is not a valid serialized portfolio.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Portfolio file not found: {path}")
        try:
            with open(path, encoding="utf-8") as fh:
                text = fh.read()
        except UnicodeDecodeError as exc:
            raise InvalidPortfolioFileError(f"{path} is not UTF-8 text: {exc}") from exc
        return from_json(text)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _read_user(self) -> List[Portfolio]:
        """
        User saves only.  A missing store is empty; an unreadable store
        raises.  Individual entries that fail validation are skipped and
        logged so one bad save does not hide the rest.
        """
        if not self._path.exists():
            return []

        try:
            with open(self._path, encoding="utf-8") as fh:
                payload = json.load(fh)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise InvalidPortfolioFileError(
                f"Portfolio store {self._path} is corrupt: {exc}"
            ) from exc

        entries = payload.get("portfolios") if isinstance(payload, dict) else None
        if not isinstance(entries, list):
            raise InvalidPortfolioFileError(
                f"Portfolio store {self._path} has no 'portfolios' list."
            )

        portfolios = []
        for entry in entries:
            try:
                portfolios.append(deserialize_portfolio(entry))
            except InvalidPortfolioFileError as exc:
                logger.warning("Skipping saved portfolio in %s: %s", self._path, exc)
        return portfolios

    def _write_user(self, portfolios: List[Portfolio]) -> None:
        payload = {"portfolios": [serialize_portfolio(p) for p in portfolios]}
        _atomic_write(self._path, json.dumps(payload, indent=2, allow_nan=False))
