from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable, Mapping

from .fields import DEFAULT_FIELD_TABLES, FieldTables


@dataclass(frozen=True)
class VendorProductMapping:
    market_id: str
    service_field: str
    product_name: str
    vendor_name: str | None = None
    active: bool = True


class VendorContext:
    """Branded product names for one market.

    ``service_field`` on the stored mappings is whatever spelling an operator typed over the
    years: the canonical key, the human label, or a camel-case field name.
    """

    def __init__(self, market_id: str | None, lookup: Callable[[str], str | None]):
        self.market_id = market_id
        self._lookup = lookup

    @classmethod
    def from_products(cls, market_id: str | None, products: Mapping[str, str]) -> "VendorContext":
        table = {str(k): str(v) for k, v in products.items() if k and v}
        return cls(market_id, table.get)

    @classmethod
    def from_mappings(cls, market_id: str | None, mappings: Iterable[VendorProductMapping]) -> "VendorContext":
        products = {}
        for mapping in mappings:
            if not mapping.active or str(mapping.market_id) != str(market_id):
                continue
            products.setdefault(mapping.service_field, mapping.product_name)
        return cls.from_products(market_id, products)

    @classmethod
    def from_fetch(cls, market_id: str, fetch: Callable[[str, str], str | None]) -> "VendorContext":
        return cls(market_id, lambda field: fetch(market_id, field))

    def branded(self, field: str) -> str | None:
        return self._lookup(field) or None


def camel_case(label: str) -> str:
    words = re.findall(r"[A-Za-z0-9]+", label or "")
    if not words:
        return ""
    head, rest = words[0].lower(), words[1:]
    return head + "".join(w[:1].upper() + w[1:].lower() for w in rest)


def lookup_chain(canonical_key: str, tables: FieldTables = DEFAULT_FIELD_TABLES) -> tuple:
    spec = tables.by_key.get(canonical_key)
    if spec is None:
        return (canonical_key,)
    out = []
    for candidate in (spec.key, spec.label, camel_case(spec.label)):
        if candidate and candidate not in out:
            out.append(candidate)
    return tuple(out)


def label(canonical_key: str, vendor: VendorContext | None = None, tables: FieldTables = DEFAULT_FIELD_TABLES) -> str:
    if vendor is not None:
        for candidate in lookup_chain(canonical_key, tables):
            branded = vendor.branded(candidate)
            if branded:
                return branded
    spec = tables.by_key.get(canonical_key)
    return spec.label if spec else canonical_key


def label_services(metrics: dict, vendor: VendorContext | None = None, tables: FieldTables = DEFAULT_FIELD_TABLES) -> list[dict]:
    out = []
    for key in tables.service_keys:
        display = label(key, vendor, tables)
        out.append({
            "key": key,
            "label": display,
            "value": metrics.get(key, 0),
            "branded": display != tables.spec(key).label,
        })
    return out
