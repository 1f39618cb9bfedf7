import unittest

from scorecard.pipeline.display import (
    VendorContext,
    VendorProductMapping,
    camel_case,
    label,
    label_services,
    lookup_chain,
)
from scorecard.pipeline.fields import SERVICE_KEYS, normalize


class DisplayTests(unittest.TestCase):
    def test_camel_case(self):
        self.assertEqual(camel_case("Premium Oil Change"), "premiumOilChange")
        self.assertEqual(camel_case("Shocks & Struts"), "shocksStruts")
        self.assertEqual(camel_case(""), "")

    def test_lookup_chain_order(self):
        self.assertEqual(lookup_chain("premiumOilChange"), ("premiumOilChange", "Premium Oil Change"))
        self.assertEqual(lookup_chain("acService"), ("acService", "AC Service"))

    def test_generic_label_without_vendor(self):
        self.assertEqual(label("premiumOilChange"), "Premium Oil Change")
        self.assertEqual(label("unknownKey"), "unknownKey")

    def test_branded_via_canonical_key(self):
        vendor = VendorContext.from_products("mkt-1", {"premiumOilChange": "Valvoline SynPower"})
        self.assertEqual(label("premiumOilChange", vendor), "Valvoline SynPower")

    def test_branded_via_human_label(self):
        vendor = VendorContext.from_products("mkt-1", {"Fuel Additive": "BG 44K"})
        self.assertEqual(label("fuelAdditive", vendor), "BG 44K")

    def test_from_mappings_filters_market_and_inactive(self):
        mappings = [
            VendorProductMapping("mkt-1", "engineFlush", "BG EPR"),
            VendorProductMapping("mkt-2", "engineFlush", "Other Brand"),
            VendorProductMapping("mkt-1", "coolantFlush", "Retired", active=False),
        ]
        vendor = VendorContext.from_mappings("mkt-1", mappings)
        self.assertEqual(label("engineFlush", vendor), "BG EPR")
        self.assertEqual(label("coolantFlush", vendor), "Coolant Flush")

    def test_from_fetch(self):
        calls = []

        def fetch(market_id, field):
            calls.append((market_id, field))
            return "Brand X" if field == "Cabin Air Filter" else None

        vendor = VendorContext.from_fetch("mkt-3", fetch)
        self.assertEqual(label("cabinAirFilter", vendor), "Brand X")
        self.assertEqual(calls, [("mkt-3", "cabinAirFilter"), ("mkt-3", "Cabin Air Filter")])

    def test_label_services_shape(self):
        vendor = VendorContext.from_products("mkt-1", {"oilChange": "Quick Lube"})
        lines = label_services(normalize({"oilChange": 12, "invoices": 40}), vendor)
        self.assertEqual([line["key"] for line in lines], list(SERVICE_KEYS))
        oil = next(line for line in lines if line["key"] == "oilChange")
        self.assertEqual(oil, {"key": "oilChange", "label": "Quick Lube", "value": 12, "branded": True})
        self.assertNotIn("invoices", [line["key"] for line in lines])


if __name__ == "__main__":
    unittest.main()
