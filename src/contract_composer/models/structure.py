"""Data models for jurisdiction-specific contract structures."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class SectionSlot:
    """
    One section slot of a contract structure.

    Attributes:
        key: Stable slot identifier (e.g. "payment").
        name: Display name in the jurisdiction's language.
        accepted_categories: Clause categories mapped into this slot.
        required: Whether a composed contract should fill this slot.
        catch_all: Whether unmapped clauses land here.
        risk_weight: Relative risk weight of the section.
    """
    key: str
    name: str
    accepted_categories: Tuple[str, ...] = ()
    required: bool = False
    catch_all: bool = False
    risk_weight: float = 1.0

    def accepts(self, category: Optional[str]) -> bool:
        return category is not None and category in self.accepted_categories

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "accepted_categories": list(self.accepted_categories),
            "required": self.required,
            "catch_all": self.catch_all,
            "risk_weight": self.risk_weight,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SectionSlot":
        return cls(
            key=data["key"],
            name=data.get("name", data["key"]),
            accepted_categories=tuple(data.get("accepted_categories") or ()),
            required=bool(data.get("required", False)),
            catch_all=bool(data.get("catch_all", False)),
            risk_weight=float(data.get("risk_weight", 1.0)),
        )


@dataclass(frozen=True)
class ContractStructure:
    """
    Ordered section schema for one jurisdiction.

    Exactly one version per jurisdiction is active at a time; slot order
    is the section order of composed contracts.
    """
    jurisdiction: str
    version: int
    slots: Tuple[SectionSlot, ...] = field(default_factory=tuple)
    is_active: bool = True

    def slot_for(self, category: Optional[str]) -> SectionSlot:
        """Return the slot accepting `category`, else the catch-all slot."""
        for slot in self.slots:
            if slot.accepts(category):
                return slot
        return self.catch_all_slot

    @property
    def catch_all_slot(self) -> SectionSlot:
        for slot in self.slots:
            if slot.catch_all:
                return slot
        return self.slots[-1]

    @property
    def required_slots(self) -> List[SectionSlot]:
        return [slot for slot in self.slots if slot.required]

    def get_slot(self, key: str) -> Optional[SectionSlot]:
        for slot in self.slots:
            if slot.key == key:
                return slot
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jurisdiction": self.jurisdiction,
            "version": self.version,
            "is_active": self.is_active,
            "slots": [slot.to_dict() for slot in self.slots],
        }
