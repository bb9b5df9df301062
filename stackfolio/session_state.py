from dataclasses import dataclass, field
from typing import Dict, Optional

from stackfolio.models import Portfolio


@dataclass
class SessionState:
    """
    Everything one interactive session keeps between commands.

    The portfolio itself is an immutable snapshot; the session swaps in a
    new one after every accepted operation.
    """
    portfolio: Portfolio = field(default_factory=Portfolio)

    # Template or saved portfolio the current one started from; used to
    # flag unsaved changes.
    original: Optional[Portfolio] = None

    # Percentage each ticker held right before it was disabled, so enabling
    # can restore it.
    disabled_percentages: Dict[str, float] = field(default_factory=dict)

    done: bool = False

    def is_complete(self) -> bool:
        """Return True once the user has quit."""
        return self.done

    def start_from(self, portfolio: Portfolio, original: Optional[Portfolio] = None):
        """Replace the working portfolio (template, load, import, new)."""
        self.portfolio = portfolio
        self.original = original
        self.disabled_percentages = {}
