"""
stackfolio/errors.py
--------------------
Exception types raised by the core.

Normal business-rule rejections (removing the last holding, an allocation
that cannot honour locked amounts, …) never raise: the engine returns the
unchanged portfolio.  The exceptions below signal conditions the caller
must hear about.
"""


class StackfolioError(Exception):
    """Base class for every error raised by stackfolio."""


class TickerNotFoundError(StackfolioError, KeyError):
    """A ticker was referenced that the portfolio or catalog does not hold."""

    def __init__(self, ticker: str, where: str = "portfolio"):
        self.ticker = ticker
        self.where = where
        super().__init__(f"Ticker '{ticker}' not found in {where}.")

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return self.args[0]


class MalformedDataError(StackfolioError, ValueError):
    """Catalog rows or exposure keys that cannot be parsed."""


class InvalidPortfolioFileError(StackfolioError, ValueError):
    """Serialized portfolio text that is corrupt or incomplete."""
