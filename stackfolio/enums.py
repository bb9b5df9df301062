from enum import Enum, auto


class AssetClass(Enum):
    """Top-level exposure category declared by a catalog entry."""
    EQUITY = "Equity"
    TREASURIES = "U.S. Treasuries"
    MANAGED_FUTURES = "Managed Futures"
    FUTURES_YIELD = "Futures Yield"
    GOLD = "Gold"
    BITCOIN = "Bitcoin"


class MarketRegion(Enum):
    """Geographic region of an equity exposure."""
    US = "U.S."
    INTERNATIONAL_DEVELOPED = "International Developed"
    EMERGING = "Emerging"


class FactorStyle(Enum):
    BLEND = "Blend"
    VALUE = "Value"
    GROWTH = "Growth"


class SizeFactor(Enum):
    LARGE_CAP = "Large Cap"
    SMALL_CAP = "Small Cap"


class LeverageType(Enum):
    """How an instrument obtains more than 100% notional exposure."""
    NONE = "None"
    STACKED = "Stacked"                      # return stacking, no daily reset
    DAILY_RESET = "Daily Reset"              # 2x / 3x daily-rebalanced funds
    EXTENDED_DURATION = "Extended Duration"  # long-duration treasuries


class EqualWeightMode(Enum):
    UNLOCKED_ONLY = "unlocked"
    ALL = "all"


class Operation(Enum):
    """Allocation-engine operations accepted by ``AllocationEngine.apply``."""
    SET_ALLOCATION = "set_allocation"
    ADD_TICKER = "add_ticker"
    REMOVE_TICKER = "remove_ticker"
    TOGGLE_LOCK = "toggle_lock"
    TOGGLE_DISABLE = "toggle_disable"
    EQUAL_WEIGHT = "equal_weight"


class WarningLevel(Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class Command(Enum):
    """User command categories detected from CLI input."""
    ADD = auto()
    REMOVE = auto()
    SET = auto()
    LOCK = auto()
    UNLOCK = auto()
    DISABLE = auto()
    ENABLE = auto()
    EQUAL_WEIGHT = auto()
    SHOW = auto()
    ANALYZE = auto()
    WARNINGS = auto()
    LIST_ETFS = auto()
    LIST_TEMPLATES = auto()
    USE_TEMPLATE = auto()
    NEW = auto()
    SAVE = auto()
    LOAD = auto()
    DELETE = auto()
    LIST_SAVED = auto()
    EXPORT = auto()
    IMPORT = auto()
    HELP = auto()
    QUIT = auto()
    UNKNOWN = auto()
