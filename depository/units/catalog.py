"""
catalog.py - Asset Catalog: Bond Prices and Inventory per Entry

Each catalog entry is one collectible unit that can be bonded: it carries an
administratively set unit price (reward tokens per deposited unit) and a
remaining inventory. An entry is bondable iff unit_price > 0 and
remaining_supply > 0.

The listing index is append-only: an entry id is appended the first time it is
listed and never removed, even if the entry is later delisted by pricing it at
zero. It fixes the order of bondable-entry queries (first listed, first).

All functions here are pure: they take and return immutable values.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from ..core import InvalidAmount, NotBondable, require_positive_amount


# entry_id -> CatalogEntry
Catalog = Mapping[str, 'CatalogEntry']


@dataclass(frozen=True, slots=True)
class CatalogEntry:
    """
    Price and inventory of one catalog entry.

    Attributes:
        entry_id: Collectible unit symbol
        unit_price: Reward tokens per deposited unit (0 = not listed)
        remaining_supply: Units still purchasable
        listed: True once the entry has appeared in the listing index
    """
    entry_id: str
    unit_price: int
    remaining_supply: int
    listed: bool = True

    @property
    def bondable(self) -> bool:
        return self.unit_price > 0 and self.remaining_supply > 0


def catalog_from_state(raw: Mapping[str, Mapping[str, Any]]) -> Dict[str, CatalogEntry]:
    return {
        entry_id: CatalogEntry(
            entry_id=entry_id,
            unit_price=fields['unit_price'],
            remaining_supply=fields['remaining_supply'],
            listed=fields.get('listed', True),
        )
        for entry_id, fields in raw.items()
    }


def catalog_to_state(catalog: Catalog) -> Dict[str, Dict[str, Any]]:
    return {
        entry_id: {
            'unit_price': entry.unit_price,
            'remaining_supply': entry.remaining_supply,
            'listed': entry.listed,
        }
        for entry_id, entry in catalog.items()
    }


def _require_non_negative(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmount(f"{name} must be an integer, got {value!r}")
    if value < 0:
        raise InvalidAmount(f"{name} cannot be negative, got {value}")
    return value


def calculate_set_terms(
    catalog: Catalog,
    listing_index: Sequence[str],
    entry_ids: Sequence[str],
    prices: Sequence[int],
    supplies: Sequence[int],
) -> Tuple[Dict[str, CatalogEntry], Tuple[str, ...], Tuple[str, ...]]:
    """
    Apply a batch of listing terms.

    For each entry the price is overwritten and the supply is ADDED to the
    remaining inventory. Ids seen for the first time are appended to the
    listing index. The batch is validated as a whole before anything changes.

    Returns:
        (new_catalog, new_listing_index, newly_listed_ids)

    Raises:
        ValueError: if the three sequences differ in length or an id is blank.
        InvalidAmount: if a price or supply is negative or not an integer.
    """
    if not (len(entry_ids) == len(prices) == len(supplies)):
        raise ValueError(
            f"entry_ids, prices and supplies must have equal length, got "
            f"{len(entry_ids)}, {len(prices)}, {len(supplies)}"
        )
    for entry_id, price, supply in zip(entry_ids, prices, supplies):
        if not isinstance(entry_id, str) or not entry_id.strip():
            raise ValueError("entry_id cannot be empty")
        _require_non_negative(price, f"price for {entry_id}")
        _require_non_negative(supply, f"supply for {entry_id}")

    new_catalog = dict(catalog)
    new_index = list(listing_index)
    newly_listed: List[str] = []

    for entry_id, price, supply in zip(entry_ids, prices, supplies):
        existing = new_catalog.get(entry_id)
        if existing is None:
            new_catalog[entry_id] = CatalogEntry(
                entry_id=entry_id,
                unit_price=price,
                remaining_supply=supply,
                listed=True,
            )
        else:
            new_catalog[entry_id] = replace(
                existing,
                unit_price=price,
                remaining_supply=existing.remaining_supply + supply,
                listed=True,
            )
        if entry_id not in new_index:
            new_index.append(entry_id)
            newly_listed.append(entry_id)

    return new_catalog, tuple(new_index), tuple(newly_listed)


def calculate_query(catalog: Catalog, entry_id: str) -> Tuple[bool, int]:
    """Return (bondable, remaining_supply); unknown entries are (False, 0)."""
    entry = catalog.get(entry_id)
    if entry is None:
        return False, 0
    return entry.bondable, entry.remaining_supply


def calculate_bondable(catalog: Catalog, listing_index: Sequence[str]) -> Tuple[List[str], List[int]]:
    """Return parallel lists (entry_ids, remaining) of bondable entries, first listed first."""
    ids: List[str] = []
    remaining: List[int] = []
    for entry_id in listing_index:
        entry = catalog.get(entry_id)
        if entry is not None and entry.bondable:
            ids.append(entry_id)
            remaining.append(entry.remaining_supply)
    return ids, remaining


def calculate_reservation(catalog: Catalog, entry_id: str, amount: int) -> Dict[str, CatalogEntry]:
    """
    Take `amount` units out of an entry's remaining inventory.

    Raises:
        InvalidAmount: if amount is not a positive integer.
        NotBondable: if the entry is unknown, priced at zero, or short of inventory.
    """
    require_positive_amount(amount)
    entry = catalog.get(entry_id)
    if entry is None or entry.unit_price <= 0:
        raise NotBondable(f"{entry_id} is not listed for bonding")
    if entry.remaining_supply < amount:
        raise NotBondable(
            f"{entry_id}: requested {amount} exceeds remaining supply {entry.remaining_supply}"
        )
    new_catalog = dict(catalog)
    new_catalog[entry_id] = replace(entry, remaining_supply=entry.remaining_supply - amount)
    return new_catalog
