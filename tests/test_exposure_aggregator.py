"""
tests/test_exposure_aggregator.py
---------------------------------
Unit tests for ExposureAggregator against the bundled catalog.
"""

import unittest

from stackfolio.catalog import ExposureCatalog, load_catalog
from stackfolio.enums import AssetClass, LeverageType
from stackfolio.errors import MalformedDataError, TickerNotFoundError
from stackfolio.exposure_aggregator import ExposureAggregator
from stackfolio.models import ETF, Holding, Portfolio


def _portfolio(**allocations) -> Portfolio:
    return Portfolio(
        name="Test",
        holdings={t: Holding(t, float(p)) for t, p in allocations.items()},
        created_at=0,
    )


class TestAnalyze(unittest.TestCase):

    def setUp(self):
        self.catalog = load_catalog()

    def test_stacked_fund_leverage(self):
        analysis = ExposureAggregator.analyze(_portfolio(RSST=100), self.catalog)
        self.assertAlmostEqual(analysis.total_leverage, 2.0)
        self.assertEqual(
            analysis.asset_class_totals,
            {"Equity": 1.0, "Managed Futures": 1.0},
        )
        self.assertTrue(analysis.is_levered)

    def test_equity_and_gold_fund(self):
        analysis = ExposureAggregator.analyze(_portfolio(GDE=100), self.catalog)
        self.assertAlmostEqual(analysis.total_leverage, 1.8)

    def test_weighted_by_percentage(self):
        analysis = ExposureAggregator.analyze(_portfolio(UPRO=50, TMF=50), self.catalog)
        self.assertAlmostEqual(analysis.asset_class_totals["Equity"], 1.5)
        self.assertAlmostEqual(analysis.asset_class_totals["U.S. Treasuries"], 1.5)
        self.assertAlmostEqual(analysis.total_leverage, 3.0)

    def test_exposure_keys_kept_separate(self):
        analysis = ExposureAggregator.analyze(_portfolio(VT=100), self.catalog)
        self.assertAlmostEqual(analysis.exposures["Equity|U.S.|Blend|Large Cap"], 0.6)
        self.assertAlmostEqual(analysis.exposures["Equity|Emerging|Blend|Large Cap"], 0.1)
        self.assertAlmostEqual(analysis.asset_class_totals["Equity"], 1.0)
        self.assertFalse(analysis.is_levered)

    def test_disabled_holdings_skipped(self):
        p = Portfolio(holdings={
            "VOO": Holding("VOO", 100.0),
            "TMF": Holding("TMF", 0.0, disabled=True),
        })
        analysis = ExposureAggregator.analyze(p, self.catalog)
        self.assertNotIn("U.S. Treasuries", analysis.asset_class_totals)

    def test_empty_portfolio(self):
        analysis = ExposureAggregator.analyze(Portfolio(), self.catalog)
        self.assertEqual(analysis.exposures, {})
        self.assertEqual(analysis.total_leverage, 0)

    def test_unknown_ticker_raises(self):
        with self.assertRaises(TickerNotFoundError):
            ExposureAggregator.analyze(_portfolio(NOPE=100), self.catalog)

    def test_malformed_key_raises(self):
        catalog = ExposureCatalog({"BAD": ETF("BAD", {"Equity|U.S.": 1.0})})
        with self.assertRaises(MalformedDataError):
            ExposureAggregator.analyze(_portfolio(BAD=100), catalog)

    def test_empty_catalog_is_not_replaced(self):
        with self.assertRaises(TickerNotFoundError):
            ExposureAggregator.analyze(_portfolio(UPRO=55, TMF=45), ExposureCatalog({}))

    def test_default_catalog_used(self):
        analysis = ExposureAggregator.analyze(_portfolio(RSST=100))
        self.assertAlmostEqual(analysis.total_leverage, 2.0)


class TestBreakdowns(unittest.TestCase):

    def setUp(self):
        self.catalog = load_catalog()

    def test_relative_region_breakdown(self):
        analysis = ExposureAggregator.analyze(_portfolio(VOO=50, VEA=50), self.catalog)
        regions = ExposureAggregator.relative_breakdown(analysis, "market_region")
        self.assertAlmostEqual(regions["U.S."], 50.0)
        self.assertAlmostEqual(regions["International Developed"], 50.0)

    def test_relative_breakdown_without_parent_is_empty(self):
        analysis = ExposureAggregator.analyze(_portfolio(GLDM=100), self.catalog)
        self.assertEqual(ExposureAggregator.relative_breakdown(analysis, "market_region"), {})

    def test_relative_breakdown_zero_parent_guard(self):
        # VOO is held at 0%, so the equity parent total is zero.
        analysis = ExposureAggregator.analyze(_portfolio(VOO=0, GLDM=100), self.catalog)
        regions = ExposureAggregator.relative_breakdown(analysis, "market_region")
        self.assertEqual(regions, {"U.S.": 0.0})
        treasuries = ExposureAggregator.relative_breakdown(
            analysis, "market_region", parent=AssetClass.TREASURIES
        )
        self.assertEqual(treasuries, {})

    def test_dimension_totals(self):
        analysis = ExposureAggregator.analyze(_portfolio(AVUV=50, VOO=50), self.catalog)
        sizes = ExposureAggregator.dimension_totals(analysis, "size_factor")
        self.assertAlmostEqual(sizes["Small Cap"], 0.5)
        self.assertAlmostEqual(sizes["Large Cap"], 0.5)
        classes = ExposureAggregator.dimension_totals(analysis, "asset_class")
        self.assertAlmostEqual(classes["Equity"], 1.0)

    def test_unknown_dimension_raises(self):
        analysis = ExposureAggregator.analyze(_portfolio(VOO=100), self.catalog)
        with self.assertRaises(ValueError):
            ExposureAggregator.dimension_totals(analysis, "sector")
        with self.assertRaises(ValueError):
            ExposureAggregator.relative_breakdown(analysis, "sector")

    def test_equity_breakdown(self):
        breakdown = ExposureAggregator.equity_breakdown(_portfolio(VOO=75, VWO=25), self.catalog)
        self.assertAlmostEqual(breakdown.us, 75.0)
        self.assertAlmostEqual(breakdown.ex_us, 25.0)
        self.assertAlmostEqual(breakdown.total_equity, 1.0)

    def test_equity_breakdown_none_without_equity(self):
        self.assertIsNone(ExposureAggregator.equity_breakdown(_portfolio(GLDM=100), self.catalog))

    def test_dominant_asset_classes(self):
        analysis = ExposureAggregator.analyze(_portfolio(RSSX=50, TMF=25, KMLM=25), self.catalog)
        self.assertEqual(
            ExposureAggregator.dominant_asset_classes(analysis),
            ["U.S. Treasuries", "Equity", "Gold"],
        )
        self.assertEqual(ExposureAggregator.dominant_asset_classes(analysis, top=1), ["U.S. Treasuries"])

    def test_holding_details(self):
        details = ExposureAggregator.holding_details(_portfolio(SSO=60, RSSX=40), self.catalog)
        sso, rssx = details
        self.assertEqual(sso.leverage_type, LeverageType.DAILY_RESET)
        self.assertEqual(sso.leverage_amount, 2.0)
        self.assertEqual(rssx.asset_classes, [AssetClass.EQUITY, AssetClass.GOLD, AssetClass.BITCOIN])
        self.assertEqual(rssx.percentage, 40.0)


class TestExposureTable(unittest.TestCase):

    def test_relative_column_sums_to_100(self):
        analysis = ExposureAggregator.analyze(_portfolio(RSSB=50, GDE=50))
        table = ExposureAggregator.exposure_table(analysis)
        self.assertAlmostEqual(table["relative_pct"].sum(), 100.0)
        self.assertAlmostEqual(table["absolute_pct"].sum(), analysis.total_leverage * 100)

    def test_sorted_largest_first(self):
        analysis = ExposureAggregator.analyze(_portfolio(VT=100))
        table = ExposureAggregator.exposure_table(analysis)
        self.assertEqual(table.iloc[0]["market_region"], "U.S.")
        self.assertTrue(table["exposure"].is_monotonic_decreasing)

    def test_absent_fields_are_empty_strings(self):
        analysis = ExposureAggregator.analyze(_portfolio(GLDM=100))
        row = ExposureAggregator.exposure_table(analysis).iloc[0]
        self.assertEqual(row["asset_class"], "Gold")
        self.assertEqual(row["market_region"], "")

    def test_empty_analysis(self):
        analysis = ExposureAggregator.analyze(Portfolio())
        table = ExposureAggregator.exposure_table(analysis)
        self.assertTrue(table.empty)
        self.assertIn("relative_pct", table.columns)


if __name__ == "__main__":
    unittest.main()
