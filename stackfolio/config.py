"""
stackfolio/config.py
--------------------
Tunable portfolio-construction thresholds.

Keeping these separate from stackfolio/constants.py (which holds precision
and format constants) ensures a clean boundary: this file owns the
judgement calls behind the validator's warnings, which are independent of
the arithmetic that keeps a portfolio at exactly 100%.
"""

import os
from pathlib import Path

# ---------------------------------------------------------------------------
# Concentration
# ---------------------------------------------------------------------------
# Any single enabled holding above this percentage triggers a warning.

MAX_SINGLE_HOLDING_PCT: float = 25.0

# ---------------------------------------------------------------------------
# Leverage
# ---------------------------------------------------------------------------
# Daily-reset funds above 2x suffer volatility decay; a whole portfolio at
# or above 1.6x notional is flagged regardless of how it gets there.

MAX_DAILY_RESET_LEVERAGE: float = 2.0
MAX_TOTAL_LEVERAGE: float = 1.6

# ---------------------------------------------------------------------------
# Diversification floors (percent of the portfolio)
# ---------------------------------------------------------------------------

MIN_INTL_DEVELOPED_PCT: float = 10.0
MIN_EMERGING_PCT: float = 10.0
MIN_SMALL_CAP_PCT: float = 10.0

# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------
# Saved portfolios live in one JSON file.  STACKFOLIO_STORE overrides the
# location (useful for tests and for running several profiles side by side).

DEFAULT_STORE_PATH: Path = Path(
    os.environ.get("STACKFOLIO_STORE", Path.home() / ".stackfolio" / "portfolios.json")
)

LOG_LEVEL: str = os.environ.get("STACKFOLIO_LOG_LEVEL", "WARNING").upper()
