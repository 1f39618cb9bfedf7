import unittest
from datetime import date, datetime, timedelta, timezone

from scorecard.pipeline.display import VendorProductMapping
from scorecard.pipeline.entities import EntityMapping, EntityResolver
from scorecard.pipeline.models import Snapshot
from scorecard.pipeline.periods import Period
from scorecard.pipeline.scorecards import get_multi_store_breakdown, get_scorecard, get_unmapped
from scorecard.pipeline.validation import InvalidInput, validate_scorecard

AUG = Period(2025, 8)
T1 = datetime(2025, 8, 10, 13, 0, tzinfo=timezone.utc)
T2 = T1 + timedelta(days=1)

MAPPINGS = [
    EntityMapping("Akeem Jackson", "adv-1", "advisor"),
    EntityMapping("Cody Owens", "adv-2", "advisor"),
    EntityMapping("Dixie", "store-1", "store"),
    EntityMapping("Midtown", "store-2", "store"),
    EntityMapping("Franklin", "store-3", "store"),
    EntityMapping("Atlanta", "mkt-1", "market"),
    EntityMapping("Nashville", "mkt-2", "market"),
]

VENDOR = [
    VendorProductMapping("mkt-1", "premiumOilChange", "Valvoline SynPower"),
    VendorProductMapping("mkt-2", "premiumOilChange", "Mobil 1"),
]

_seq = iter(range(1, 10_000))


def _snap(store, market, advisor, raw, uploaded=T1, day=date(2025, 8, 9), snapshot_id=None):
    seq = next(_seq)
    return Snapshot(
        reporting_date=day,
        upload_timestamp=uploaded,
        store_name=store,
        market_name=market,
        advisor_name=advisor,
        raw_metrics=raw,
        snapshot_id=snapshot_id or f"snap-{seq}",
        ingest_seq=seq,
    )


def _card(scope, scope_id, snapshots, period=AUG):
    return get_scorecard(
        scope, scope_id, period,
        snapshots=snapshots,
        resolver=EntityResolver(MAPPINGS),
        vendor_mappings=VENDOR,
    )


class ScenarioTests(unittest.TestCase):
    def test_later_upload_supersedes_not_sums(self):
        snaps = [
            _snap("Dixie", "Atlanta", "Akeem Jackson", {"invoices": 200, "sales": 60000}, uploaded=T1, snapshot_id="t1"),
            _snap("Dixie", "Atlanta", "Akeem Jackson", {"invoices": 216, "sales": 64779}, uploaded=T2, snapshot_id="t2"),
        ]
        card = _card("advisor", "adv-1", snaps)
        self.assertEqual(card["metrics"]["invoices"], 216)
        self.assertEqual(card["metrics"]["sales"], 64779)
        self.assertEqual(card["sourceSnapshotCount"], 1)
        self.assertEqual(card["dataCompleteness"]["supersededSnapshotCount"], 1)

    def test_null_duplicate_discarded(self):
        snaps = [
            _snap("Dixie", "Atlanta", None, {"invoices": 374, "sales": 98000}),
            _snap("Dixie", "Atlanta", None, {"invoices": None, "sales": None}),
        ]
        card = _card("store", "store-1", snaps)
        self.assertEqual(card["metrics"]["invoices"], 374)
        self.assertEqual(card["dataCompleteness"]["storeSources"], {"store-1": "store_total"})
        self.assertEqual(card["warnings"], [])

    def test_duplicate_missing_only_invoices_discarded(self):
        snaps = [
            _snap("Dixie", "Atlanta", None, {"invoices": 374, "sales": 64779, "gpSales": 30000}),
            _snap("Dixie", "Atlanta", None, {"invoices": None, "sales": 64779, "gpSales": 30000}),
        ]
        card = _card("store", "store-1", snaps)
        self.assertEqual(card["metrics"]["invoices"], 374)
        self.assertEqual(card["warnings"], [])

    def test_zero_tires_give_zero_percent(self):
        snaps = [_snap("Dixie", "Atlanta", "Akeem Jackson", {"invoices": 5, "retailTires": 0, "tireProtection": 0})]
        card = _card("advisor", "adv-1", snaps)
        self.assertEqual(card["derivedPercentages"]["tireProtectionPercent"], 0)


class AdvisorScorecardTests(unittest.TestCase):
    def test_multi_store_summation(self):
        snaps = [
            _snap("Dixie", "Atlanta", "Akeem Jackson", {"invoices": 100, "sales": 30000, "gpSales": 12000}),
            _snap("Franklin", "Nashville", "Akeem Jackson", {"invoices": 50, "sales": 10000, "gpSales": 5000}),
        ]
        card = _card("advisor", "adv-1", snaps)
        self.assertEqual(card["metrics"]["invoices"], 150)
        self.assertEqual(card["metrics"]["sales"], 40000)
        self.assertEqual(card["derivedPercentages"]["gpPercent"], 42.5)
        self.assertEqual(card["storeIds"], ["store-1", "store-3"])
        self.assertEqual(card["marketIds"], ["mkt-1", "mkt-2"])
        # two markets: no single vendor applies
        self.assertIsNone(card["vendorMarketId"])
        oil = next(s for s in card["services"] if s["key"] == "premiumOilChange")
        self.assertEqual(oil["label"], "Premium Oil Change")

    def test_single_market_uses_vendor_labels(self):
        snaps = [_snap("Dixie", "Atlanta", "Akeem Jackson", {"invoices": 10, "premiumOilChange": 3})]
        card = _card("advisor", "adv-1", snaps)
        oil = next(s for s in card["services"] if s["key"] == "premiumOilChange")
        self.assertEqual(oil["label"], "Valvoline SynPower")
        self.assertTrue(oil["branded"])
        self.assertEqual(card["vendorMarketId"], "mkt-1")

    def test_no_data(self):
        card = _card("advisor", "adv-1", [])
        self.assertEqual(card["dataCompleteness"]["status"], "no_data")
        self.assertFalse(card["dataCompleteness"]["hasData"])
        self.assertIsNone(card["metrics"])
        self.assertIsNone(card["services"])
        self.assertIsNone(card["derivedPercentages"])
        self.assertTrue(validate_scorecard(card)[0])

    def test_zero_performance_is_not_no_data(self):
        card = _card("advisor", "adv-1", [_snap("Dixie", "Atlanta", "Akeem Jackson", {"invoices": 0, "sales": 0})])
        self.assertEqual(card["dataCompleteness"]["status"], "complete")
        self.assertEqual(card["metrics"]["invoices"], 0)

    def test_other_months_ignored(self):
        snaps = [_snap("Dixie", "Atlanta", "Akeem Jackson", {"invoices": 99}, day=date(2025, 7, 31))]
        self.assertEqual(_card("advisor", "adv-1", snaps)["dataCompleteness"]["status"], "no_data")

    def test_unresolved_rows_make_scope_partial(self):
        snaps = [
            _snap("Dixie", "Atlanta", "Akeem Jackson", {"invoices": 10}),
            _snap("Unknown Store", "Atlanta", "Akeem Jackson", {"invoices": 7}),
        ]
        card = _card("advisor", "adv-1", snaps)
        self.assertEqual(card["metrics"]["invoices"], 10)
        self.assertEqual(card["dataCompleteness"]["status"], "partial")
        self.assertEqual(card["dataCompleteness"]["unresolvedSnapshotCount"], 1)
        self.assertIn("unresolved_entity", [w["code"] for w in card["warnings"]])

    def test_normalization_miss_counted(self):
        snaps = [_snap("Dixie", "Atlanta", "Akeem Jackson", {"invoices": 10, "nitrogenFill": 3})]
        card = _card("advisor", "adv-1", snaps)
        miss = next(w for w in card["warnings"] if w["code"] == "normalization_miss")
        self.assertEqual(miss["keys"], {"nitrogenFill": 1})

    def test_idempotent(self):
        snaps = [
            _snap("Dixie", "Atlanta", "Akeem Jackson", {"invoices": 10, "sales": 900}),
            _snap("Dixie", "Atlanta", "Akeem Jackson", {"invoices": 12, "sales": 950}, uploaded=T2),
        ]
        first = _card("advisor", "adv-1", snaps)
        second = _card("advisor", "adv-1", list(reversed(snaps)))
        for key in ("metrics", "services", "derivedPercentages", "dataCompleteness"):
            self.assertEqual(first[key], second[key])


class StoreAndMarketScorecardTests(unittest.TestCase):
    def _snaps(self):
        return [
            # Dixie uploads both a store total and advisor rows
            _snap("Dixie", "Atlanta", None, {"invoices": 374, "sales": 98000, "gpSales": 41000}),
            _snap("Dixie", "Atlanta", "Akeem Jackson", {"invoices": 200, "sales": 52000}),
            _snap("Dixie", "Atlanta", "Cody Owens", {"invoices": 170, "sales": 45000}),
            # Midtown only has advisor rows
            _snap("Midtown", "Atlanta", "Cody Owens", {"invoices": 30, "sales": 8000, "gpSales": 3000}),
            _snap("Midtown", "Atlanta", "Akeem Jackson", {"invoices": 20, "sales": 5000, "gpSales": 2000}),
            # other market
            _snap("Franklin", "Nashville", "Akeem Jackson", {"invoices": 50, "sales": 10000}),
        ]

    def test_store_total_not_double_counted(self):
        card = _card("store", "store-1", self._snaps())
        self.assertEqual(card["metrics"]["invoices"], 374)
        self.assertEqual(card["sourceSnapshotCount"], 1)
        self.assertEqual(card["advisorCount"], 2)

    def test_store_from_advisor_sum(self):
        card = _card("store", "store-2", self._snaps())
        self.assertEqual(card["metrics"]["invoices"], 50)
        self.assertEqual(card["dataCompleteness"]["storeSources"], {"store-2": "advisor_sum"})
        self.assertEqual(card["derivedPercentages"]["gpPercent"], 38.5)

    def test_market_sums_store_rollups(self):
        card = _card("market", "mkt-1", self._snaps())
        self.assertEqual(card["metrics"]["invoices"], 424)
        self.assertEqual(card["metrics"]["sales"], 111000)
        self.assertEqual(card["storeCount"], 2)
        self.assertEqual(card["advisorCount"], 2)
        self.assertEqual(card["dataCompleteness"]["storeSources"], {"store-1": "store_total", "store-2": "advisor_sum"})
        oil = next(s for s in card["services"] if s["key"] == "premiumOilChange")
        self.assertEqual(oil["label"], "Valvoline SynPower")
        self.assertTrue(validate_scorecard(card)[0])

    def test_unknown_market_is_no_data(self):
        card = _card("market", "mkt-9", self._snaps())
        self.assertEqual(card["dataCompleteness"]["status"], "no_data")
        self.assertIsNone(card["metrics"])


class MultiStoreBreakdownTests(unittest.TestCase):
    def test_per_store_and_combined_agree(self):
        snaps = [
            _snap("Dixie", "Atlanta", "Akeem Jackson", {"invoices": 100, "sales": 30000}),
            _snap("Dixie", "Atlanta", "Akeem Jackson", {"invoices": 120, "sales": 33000}, uploaded=T2),
            _snap("Franklin", "Nashville", "Akeem Jackson", {"invoices": 50, "sales": 10000}),
        ]
        out = get_multi_store_breakdown(
            "adv-1", AUG,
            snapshots=snaps,
            resolver=EntityResolver(MAPPINGS),
            vendor_mappings=VENDOR,
        )
        self.assertTrue(out["isMultiStore"])
        self.assertEqual(out["totalStores"], 2)
        per_store = {row["storeId"]: row for row in out["perStoreRollups"]}
        self.assertEqual(per_store["store-1"]["metrics"]["invoices"], 120)
        self.assertEqual(per_store["store-3"]["marketId"], "mkt-2")
        oil = next(s for s in per_store["store-3"]["services"] if s["key"] == "premiumOilChange")
        self.assertEqual(oil["label"], "Mobil 1")
        total = sum(row["metrics"]["invoices"] for row in out["perStoreRollups"])
        self.assertEqual(out["combinedRollup"]["metrics"]["invoices"], total)

    def test_single_store_advisor(self):
        out = get_multi_store_breakdown(
            "adv-2", AUG,
            snapshots=[_snap("Midtown", "Atlanta", "Cody Owens", {"invoices": 3})],
            resolver=EntityResolver(MAPPINGS),
        )
        self.assertFalse(out["isMultiStore"])
        self.assertEqual(out["totalStores"], 1)


class InputValidationTests(unittest.TestCase):
    def test_unknown_scope(self):
        with self.assertRaises(InvalidInput):
            _card("region", "r-1", [])

    def test_empty_scope_id(self):
        with self.assertRaises(InvalidInput):
            _card("advisor", "  ", [])

    def test_period_must_be_period(self):
        with self.assertRaises(TypeError):
            _card("advisor", "adv-1", [], period="2025-08")


class UnmappedTests(unittest.TestCase):
    def test_report_lists_unknown_names(self):
        snaps = [
            _snap("Dixie", "Atlanta", "A. Jackson", {"invoices": 1}),
            _snap("Dixie", "Atlanta", "A. Jackson", {"invoices": 2}, uploaded=T2),
        ]
        report = get_unmapped(AUG, snapshots=snaps, resolver=EntityResolver(MAPPINGS))
        self.assertEqual(len(report), 1)
        self.assertEqual(report[0]["spreadsheetName"], "A. Jackson")
        self.assertEqual(report[0]["snapshotCount"], 2)


if __name__ == "__main__":
    unittest.main()
