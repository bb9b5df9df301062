"""
tests/test_portfolio_validator.py
---------------------------------
Unit tests for PortfolioValidator.

Test coverage:
    Each warning rule fires (and only fires) past its threshold
    All rules are evaluated independently
    Structural invariant checks
"""

import unittest

from stackfolio.catalog import ExposureCatalog, load_catalog
from stackfolio.enums import WarningLevel
from stackfolio.errors import TickerNotFoundError
from stackfolio.models import Holding, Portfolio
from stackfolio.portfolio_validator import RULE_DESCRIPTIONS, PortfolioValidator


def _portfolio(**allocations) -> Portfolio:
    return Portfolio(
        name="Test",
        holdings={t: Holding(t, float(p)) for t, p in allocations.items()},
        created_at=0,
    )


def _rules(portfolio: Portfolio) -> dict:
    return {w.rule: w for w in PortfolioValidator.validate(portfolio, load_catalog())}


# A portfolio that passes every rule.
_DIVERSIFIED = dict(VOO=25, VEA=25, VWO=25, AVUV=25)


class TestWarnings(unittest.TestCase):

    def test_diversified_portfolio_passes(self):
        self.assertEqual(_rules(_portfolio(**_DIVERSIFIED)), {})

    def test_single_fund_fails_many_rules_at_once(self):
        rules = _rules(_portfolio(RSST=100))
        self.assertEqual(
            set(rules),
            {
                "single-etf-concentration",
                "excessive-leverage",
                "no-intl-developed-exposure",
                "no-em-exposure",
                "no-small-cap",
            },
        )

    def test_concentration_message_lists_tickers(self):
        rules = _rules(_portfolio(UPRO=55, TMF=45))
        warning = rules["single-etf-concentration"]
        self.assertEqual(warning.level, WarningLevel.WARNING)
        self.assertEqual(warning.message, "High single ETF concentration: UPRO (55%), TMF (45%)")

    def test_exactly_25_is_not_concentrated(self):
        self.assertNotIn("single-etf-concentration", _rules(_portfolio(**_DIVERSIFIED)))

    def test_disabled_holding_ignored_for_concentration(self):
        p = Portfolio(holdings={
            **{t: Holding(t, float(pct)) for t, pct in _DIVERSIFIED.items()},
            "UPRO": Holding("UPRO", 0.0, disabled=True),
        })
        self.assertEqual(_rules(p), {})

    def test_daily_reset_above_2x(self):
        rules = _rules(_portfolio(UPRO=20, VOO=20, VEA=20, VWO=20, AVUV=20))
        self.assertIn("high-daily-reset-leverage", rules)
        self.assertEqual(rules["high-daily-reset-leverage"].message, "High daily reset leverage detected (UPRO)")

    def test_daily_reset_at_2x_allowed(self):
        rules = _rules(_portfolio(SSO=20, VOO=20, VEA=20, VWO=20, AVUV=20))
        self.assertNotIn("high-daily-reset-leverage", rules)

    def test_total_leverage_threshold_inclusive(self):
        # GOVZ alone is exactly 1.6x
        rules = _rules(_portfolio(GOVZ=100))
        self.assertIn("excessive-leverage", rules)
        self.assertEqual(rules["excessive-leverage"].message, "Portfolio leverage is 1.60x")

    def test_total_leverage_below_threshold(self):
        rules = _rules(_portfolio(RSST=20, VOO=20, VEA=20, VWO=20, AVUV=20))
        self.assertNotIn("excessive-leverage", rules)

    def test_diversification_rules_are_info(self):
        rules = _rules(_portfolio(VOO=100))
        for rule in ("no-intl-developed-exposure", "no-em-exposure", "no-small-cap"):
            self.assertEqual(rules[rule].level, WarningLevel.INFO)
        self.assertEqual(
            rules["no-em-exposure"].message,
            "Insufficient Emerging Markets exposure (0.0%)",
        )

    def test_small_cap_counts_every_region(self):
        rules = _rules(_portfolio(VOO=71, AVDS=4, AVEE=5, DGS=0, AVUV=0, VEA=10, VWO=10))
        self.assertIn("no-small-cap", rules)
        rules = _rules(_portfolio(VOO=60, AVDS=10, AVEE=10, VEA=10, VWO=10))
        self.assertNotIn("no-small-cap", rules)

    def test_rule_results_covers_every_rule(self):
        results = PortfolioValidator.rule_results(_portfolio(**_DIVERSIFIED), load_catalog())
        self.assertEqual(set(results), set(RULE_DESCRIPTIONS))
        self.assertTrue(all(w is None for w in results.values()))

    def test_unknown_ticker_raises(self):
        with self.assertRaises(TickerNotFoundError):
            PortfolioValidator.validate(_portfolio(NOPE=100), load_catalog())

    def test_empty_catalog_is_not_replaced(self):
        with self.assertRaises(TickerNotFoundError):
            PortfolioValidator.validate(_portfolio(VOO=100), ExposureCatalog({}))


class TestInvariants(unittest.TestCase):

    def test_valid_portfolio(self):
        p = _portfolio(A=60, B=40)
        self.assertEqual(PortfolioValidator.check_invariants(p), [])
        self.assertTrue(PortfolioValidator.is_valid(p))

    def test_empty_portfolio_valid(self):
        self.assertTrue(PortfolioValidator.is_valid(Portfolio()))

    def test_within_tolerance(self):
        self.assertTrue(PortfolioValidator.is_valid(_portfolio(A=33.33, B=33.33, C=33.33)))

    def test_wrong_total(self):
        problems = PortfolioValidator.check_invariants(_portfolio(A=60, B=30))
        self.assertEqual(len(problems), 1)
        self.assertIn("90", problems[0])

    def test_negative_allocation(self):
        self.assertFalse(PortfolioValidator.is_valid(_portfolio(A=110, B=-10)))

    def test_disabled_with_allocation(self):
        p = Portfolio(holdings={
            "A": Holding("A", 100.0),
            "B": Holding("B", 5.0, disabled=True),
        })
        self.assertFalse(PortfolioValidator.is_valid(p))

    def test_can_remove(self):
        p = _portfolio(A=60, B=40)
        self.assertTrue(PortfolioValidator.can_remove(p, "A"))
        self.assertFalse(PortfolioValidator.can_remove(p, "C"))
        self.assertFalse(PortfolioValidator.can_remove(_portfolio(A=100), "A"))


if __name__ == "__main__":
    unittest.main()
