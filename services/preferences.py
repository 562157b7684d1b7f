"""Supplier preference evaluation."""

from models.entities import Buyer, PreferenceType, Supplier

# Placement priority per preference mode; explicit requests are placed first.
PREFERENCE_PRIORITY = {
    PreferenceType.INCLUDE: 3,
    PreferenceType.ALL: 2,
    PreferenceType.EXCLUDE: 1,
}


def can_supplier_meet_buyer(supplier: Supplier, buyer_id: str) -> bool:
    """Whether the supplier's preferences permit a meeting with the buyer."""
    if supplier.preference == PreferenceType.ALL:
        return True
    if supplier.preference == PreferenceType.INCLUDE:
        return buyer_id in supplier.preference_list
    if supplier.preference == PreferenceType.EXCLUDE:
        return buyer_id not in supplier.preference_list
    raise ValueError(f"Unknown preference type: {supplier.preference!r}")


def preference_priority(supplier: Supplier) -> int:
    return PREFERENCE_PRIORITY[supplier.preference]


def permitted_buyers(supplier: Supplier, buyers: list[Buyer]) -> list[Buyer]:
    """Buyers the supplier may meet, in the order given."""
    return [b for b in buyers if can_supplier_meet_buyer(supplier, b.id)]
