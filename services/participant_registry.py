"""In-memory directory of suppliers and buyers."""

from dataclasses import replace
from typing import Iterable, Optional

from models.entities import Buyer, Supplier


class ParticipantRegistry:
    """Holds the suppliers and buyers of the current event."""

    def __init__(
        self,
        suppliers: Optional[Iterable[Supplier]] = None,
        buyers: Optional[Iterable[Buyer]] = None
    ):
        self._suppliers: list[Supplier] = []
        self._buyers: list[Buyer] = []
        self.replace_suppliers(suppliers or [])
        self.replace_buyers(buyers or [])

    def get_supplier_by_id(self, supplier_id: str) -> Optional[Supplier]:
        """Get a supplier by ID."""
        for supplier in self._suppliers:
            if supplier.id == supplier_id:
                return supplier
        return None

    def get_buyer_by_id(self, buyer_id: str) -> Optional[Buyer]:
        """Get a buyer by ID."""
        for buyer in self._buyers:
            if buyer.id == buyer_id:
                return buyer
        return None

    def list_suppliers(self) -> list[Supplier]:
        return self._suppliers.copy()

    def list_buyers(self) -> list[Buyer]:
        return self._buyers.copy()

    def add_supplier(self, supplier: Supplier):
        if self.get_supplier_by_id(supplier.id) is not None:
            raise ValueError(f"Supplier {supplier.id!r} already exists")
        self._suppliers.append(supplier)

    def add_buyer(self, buyer: Buyer):
        if self.get_buyer_by_id(buyer.id) is not None:
            raise ValueError(f"Buyer {buyer.id!r} already exists")
        self._buyers.append(buyer)

    def update_supplier(self, supplier_id: str, **changes) -> Optional[Supplier]:
        """
        Replace fields of a supplier.

        Returns:
            The updated supplier, or None if no supplier has that id.
        """
        for i, supplier in enumerate(self._suppliers):
            if supplier.id == supplier_id:
                changes.pop("id", None)
                self._suppliers[i] = replace(supplier, **changes)
                return self._suppliers[i]
        return None

    def update_buyer(self, buyer_id: str, **changes) -> Optional[Buyer]:
        for i, buyer in enumerate(self._buyers):
            if buyer.id == buyer_id:
                changes.pop("id", None)
                self._buyers[i] = replace(buyer, **changes)
                return self._buyers[i]
        return None

    def remove_supplier(self, supplier_id: str) -> bool:
        before = len(self._suppliers)
        self._suppliers = [s for s in self._suppliers if s.id != supplier_id]
        return len(self._suppliers) < before

    def remove_buyer(self, buyer_id: str) -> bool:
        """Remove a buyer and strip it from every supplier's preference list."""
        before = len(self._buyers)
        self._buyers = [b for b in self._buyers if b.id != buyer_id]
        if len(self._buyers) == before:
            return False
        for i, supplier in enumerate(self._suppliers):
            if buyer_id in supplier.preference_list:
                self._suppliers[i] = replace(
                    supplier,
                    preference_list=[bid for bid in supplier.preference_list if bid != buyer_id],
                )
        return True

    def replace_suppliers(self, suppliers: Iterable[Supplier]):
        suppliers = list(suppliers)
        ids = [s.id for s in suppliers]
        if len(ids) != len(set(ids)):
            raise ValueError("Duplicate supplier ids in import")
        self._suppliers = suppliers

    def replace_buyers(self, buyers: Iterable[Buyer]):
        buyers = list(buyers)
        ids = [b.id for b in buyers]
        if len(ids) != len(set(ids)):
            raise ValueError("Duplicate buyer ids in import")
        self._buyers = buyers
