"""
stackfolio/constants.py
-----------------------
Precision and business-logic constants shared across modules.

Placing these here keeps the precision layer, the allocation engine and
the serialization helpers aligned on a single source of truth without
creating circular imports.
"""

from __future__ import annotations


# ---------------------------------------------------------------------------
# Basis points
# ---------------------------------------------------------------------------
# 1% = 100 bp.  Enabled holdings must always total exactly MAX_BASIS_POINTS.

BASIS_POINTS_PER_PERCENT: int = 100
MAX_BASIS_POINTS: int = 10_000

# Allowed drift (in percent) when checking the 100% invariant on data that
# did not come through the engine (imports, hand-written templates).
PRECISION_TOLERANCE: float = 0.01

# Decimal places shown to the user.
DISPLAY_DECIMALS: int = 1


# ---------------------------------------------------------------------------
# Portfolio
# ---------------------------------------------------------------------------

DEFAULT_PORTFOLIO_NAME: str = "New, Unsaved Portfolio"
MIN_HOLDINGS: int = 1


# ---------------------------------------------------------------------------
# Exposure keys
# ---------------------------------------------------------------------------
# "Equity|U.S.|Blend|Large Cap"  /  "Gold|||"

EXPOSURE_KEY_SEPARATOR: str = "|"
EXPOSURE_KEY_FIELDS: int = 4

# Dimension name → index of the field inside an exposure key.
EXPOSURE_DIMENSIONS: dict[str, int] = {
    "asset_class":   0,
    "market_region": 1,
    "factor_style":  2,
    "size_factor":   3,
}


# ---------------------------------------------------------------------------
# Catalog CSV schema
# ---------------------------------------------------------------------------

CATALOG_COLUMNS: tuple = (
    "ticker",
    "asset_class",
    "market_region",
    "factor_style",
    "size_factor",
    "amount",
    "leverage_type",
)
