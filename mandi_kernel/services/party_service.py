"""
PartyService -- registry of farmers and buyers.

Responsibility:
    Creates and edits the two counterparties.  Codes come from the locked
    sequence counter (FM<n>, BY<n>).  Opening balances are the only money
    stored on a party; dues are derived by DuesSelector.

Architecture position:
    Kernel > Services.  Flush-only; the caller owns the transaction.

Failure modes:
    - ValidationError on a blank name or non-numeric opening balance.
    - ValidationError on an unknown field in an edit.
    - NotFoundError for a party outside the caller's business.
"""

from decimal import Decimal
from typing import Any
from uuid import UUID

from mandi_kernel.domain.dtos import BuyerView, FarmerView
from mandi_kernel.domain.validation import require_text, signed_amount
from mandi_kernel.exceptions import ValidationError
from mandi_kernel.models.party import Buyer, Farmer
from mandi_kernel.services.base import BaseService
from mandi_kernel.services.sequence_service import SequenceService

_FARMER_FIELDS = frozenset({"name", "phone", "village", "opening_balance"})
_BUYER_FIELDS = frozenset({"name", "phone", "opening_balance"})


class PartyService(BaseService[Farmer]):
    """Create, edit and archive farmers and buyers."""

    log_name = "party"

    # =========================================================================
    # Farmers
    # =========================================================================

    def create_farmer(
        self,
        business_id: str,
        name: str,
        *,
        actor_id: UUID,
        phone: str | None = None,
        village: str | None = None,
        opening_balance: Decimal | int | str = 0,
    ) -> FarmerView:
        try:
            name = require_text(name, "name")
            opening = signed_amount(opening_balance, "opening_balance")
        except ValidationError as exc:
            raise self._rejected("farmer_create_rejected", exc)
        number = SequenceService(self.session).next_value(
            business_id, SequenceService.FARMER
        )
        farmer = Farmer(
            business_id=business_id,
            farmer_code=f"FM{number}",
            name=name,
            phone=phone,
            village=village,
            opening_balance=opening,
            created_by_id=actor_id,
        )
        self.session.add(farmer)
        self._flush("Farmer", farmer.id)
        self.logger.info(
            "farmer_created",
            extra={"farmer_id": str(farmer.id), "farmer_code": farmer.farmer_code},
        )
        return farmer.to_dto()

    def update_farmer(
        self,
        business_id: str,
        farmer_id: UUID,
        *,
        actor_id: UUID,
        **fields: Any,
    ) -> FarmerView:
        farmer = self._get_scoped(Farmer, business_id, farmer_id)
        self._apply_fields(farmer, fields, _FARMER_FIELDS)
        farmer.updated_by_id = actor_id
        self._flush("Farmer", farmer.id)
        self.logger.info(
            "farmer_updated",
            extra={"farmer_id": str(farmer.id), "fields": sorted(fields)},
        )
        return farmer.to_dto()

    def archive_farmer(
        self, business_id: str, farmer_id: UUID, *, actor_id: UUID
    ) -> FarmerView:
        """Hide a farmer from lists.  History and dues are kept."""
        farmer = self._get_scoped(Farmer, business_id, farmer_id)
        farmer.is_archived = True
        farmer.updated_by_id = actor_id
        self._flush("Farmer", farmer.id)
        self.logger.info("farmer_archived", extra={"farmer_id": str(farmer.id)})
        return farmer.to_dto()

    # =========================================================================
    # Buyers
    # =========================================================================

    def create_buyer(
        self,
        business_id: str,
        name: str,
        *,
        actor_id: UUID,
        phone: str | None = None,
        opening_balance: Decimal | int | str = 0,
    ) -> BuyerView:
        try:
            name = require_text(name, "name")
            opening = signed_amount(opening_balance, "opening_balance")
        except ValidationError as exc:
            raise self._rejected("buyer_create_rejected", exc)
        number = SequenceService(self.session).next_value(
            business_id, SequenceService.BUYER
        )
        buyer = Buyer(
            business_id=business_id,
            buyer_code=f"BY{number}",
            name=name,
            phone=phone,
            opening_balance=opening,
            created_by_id=actor_id,
        )
        self.session.add(buyer)
        self._flush("Buyer", buyer.id)
        self.logger.info(
            "buyer_created",
            extra={"buyer_id": str(buyer.id), "buyer_code": buyer.buyer_code},
        )
        return buyer.to_dto()

    def update_buyer(
        self,
        business_id: str,
        buyer_id: UUID,
        *,
        actor_id: UUID,
        **fields: Any,
    ) -> BuyerView:
        buyer = self._get_scoped(Buyer, business_id, buyer_id)
        self._apply_fields(buyer, fields, _BUYER_FIELDS)
        buyer.updated_by_id = actor_id
        self._flush("Buyer", buyer.id)
        self.logger.info(
            "buyer_updated",
            extra={"buyer_id": str(buyer.id), "fields": sorted(fields)},
        )
        return buyer.to_dto()

    def set_buyer_active(
        self, business_id: str, buyer_id: UUID, active: bool, *, actor_id: UUID
    ) -> BuyerView:
        buyer = self._get_scoped(Buyer, business_id, buyer_id)
        buyer.is_active = active
        buyer.updated_by_id = actor_id
        self._flush("Buyer", buyer.id)
        self.logger.info(
            "buyer_activation_changed",
            extra={"buyer_id": str(buyer.id), "is_active": active},
        )
        return buyer.to_dto()

    # =========================================================================
    # Helpers
    # =========================================================================

    def _apply_fields(
        self, party: Farmer | Buyer, fields: dict[str, Any], allowed: frozenset[str]
    ) -> None:
        unknown = sorted(set(fields) - allowed)
        if unknown:
            raise self._rejected(
                "party_update_rejected",
                ValidationError("fields", f"unknown fields: {', '.join(unknown)}"),
                party_id=party.id,
            )
        for key, value in fields.items():
            try:
                if key == "name":
                    value = require_text(value, "name")
                elif key == "opening_balance":
                    value = signed_amount(value, "opening_balance")
            except ValidationError as exc:
                raise self._rejected("party_update_rejected", exc, party_id=party.id)
            setattr(party, key, value)
