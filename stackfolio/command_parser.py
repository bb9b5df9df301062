import re
from typing import List, Optional

from stackfolio.enums import Command, EqualWeightMode


# ---------------------------------------------------------------------------
# COMMAND_MAP: single source of truth for all verb → command mappings.
# Matched against the leading word(s) of the input; multi-word phrases are
# checked before single words.
# ---------------------------------------------------------------------------
COMMAND_MAP: dict[Command, list[str]] = {
    Command.QUIT:           ["quit", "exit", "bye", "q"],
    Command.HELP:           ["help", "commands", "?"],
    Command.EQUAL_WEIGHT:   ["equal weight", "equal", "equalize", "eq"],
    Command.LIST_ETFS:      ["list etfs", "etfs", "catalog", "tickers"],
    Command.LIST_TEMPLATES: ["list templates", "templates"],
    Command.LIST_SAVED:     ["list saved", "saved", "portfolios"],
    Command.USE_TEMPLATE:   ["template", "use"],
    Command.ADD:            ["add", "buy"],
    Command.REMOVE:         ["remove", "rm", "drop"],
    Command.SET:            ["set", "allocate", "alloc"],
    Command.LOCK:           ["lock"],
    Command.UNLOCK:         ["unlock"],
    Command.DISABLE:        ["disable"],
    Command.ENABLE:         ["enable"],
    Command.SHOW:           ["show", "holdings", "ls"],
    Command.ANALYZE:        ["analyze", "analyse", "exposure", "exposures"],
    Command.WARNINGS:       ["warnings", "warn", "check"],
    Command.NEW:            ["new", "reset"],
    Command.SAVE:           ["save"],
    Command.LOAD:           ["load", "open"],
    Command.DELETE:         ["delete", "del"],
    Command.EXPORT:         ["export"],
    Command.IMPORT:         ["import"],
}

_TICKER_RE = re.compile(r"^[A-Z][A-Z0-9.\-]{0,9}$")

# "30", "30%", "12.5", ".5", "to 30"
_PERCENT_RE = re.compile(r"(?<![A-Za-z0-9.])(\d+(?:\.\d*)?|\.\d+)\s*%?(?![A-Za-z0-9])")


class CommandParser:
    """
    Parses one line of user input into a :class:`Command` and its operands.

    The first matching verb decides the command; the rest of the line is
    the argument string that the extractors below pick apart.
    """

    # ------------------------------------------------------------------ #
    #  Public interface
    # ------------------------------------------------------------------ #

    def parse_command(self, text: str) -> Command:
        """Return the Command for *text* (``UNKNOWN`` when no verb matches)."""
        return self._match(text)[0]

    def extract_argument(self, text: str) -> str:
        """Everything after the verb, original case preserved (names, paths)."""
        return self._match(text)[1]

    # ------------------------------------------------------------------ #
    #  Operand extractors
    # ------------------------------------------------------------------ #

    def extract_tickers(self, text: str) -> List[str]:
        """
        Ticker symbols in the argument string, upper-cased, in order,
        without duplicates.  Numbers and filler words are ignored.

        e.g. ``"add rsst, gldm"`` → ``["RSST", "GLDM"]``
        """
        tickers: List[str] = []
        for token in re.split(r"[,\s]+", self.extract_argument(text)):
            token = token.strip().upper()
            if token in ("TO", "AT", "AND", "ALL") or not _TICKER_RE.match(token):
                continue
            if token not in tickers:
                tickers.append(token)
        return tickers

    def extract_ticker(self, text: str) -> Optional[str]:
        tickers = self.extract_tickers(text)
        return tickers[0] if tickers else None

    def extract_percent(self, text: str) -> Optional[float]:
        """
        Last number in the argument string, e.g. ``"set RSST to 30%"`` → ``30.0``.
        """
        matches = _PERCENT_RE.findall(self.extract_argument(text))
        if not matches:
            return None
        return float(matches[-1])

    def extract_equal_mode(self, text: str) -> EqualWeightMode:
        """``equal all`` ignores locks; plain ``equal`` keeps them."""
        words = self.extract_argument(text).lower().split()
        return EqualWeightMode.ALL if "all" in words else EqualWeightMode.UNLOCKED_ONLY

    # ------------------------------------------------------------------ #
    #  Helpers
    # ------------------------------------------------------------------ #

    def _match(self, text: str):
        stripped = text.strip()
        lower = stripped.lower()

        phrases = [
            (phrase, command)
            for command, aliases in COMMAND_MAP.items()
            for phrase in aliases
        ]
        # Longest phrase first so "list etfs" wins over "list", "equal weight" over "equal".
        phrases.sort(key=lambda item: len(item[0]), reverse=True)

        for phrase, command in phrases:
            if lower == phrase or lower.startswith(phrase + " "):
                return command, stripped[len(phrase):].strip()

        return Command.UNKNOWN, stripped
