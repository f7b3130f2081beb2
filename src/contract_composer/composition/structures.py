"""Contract Structure Registry.

Holds one versioned, ordered section schema per jurisdiction. Exactly one
version per jurisdiction is active; publishing a new version deactivates
the previous one in the same transaction.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from ..audit.audit_logger import AuditLogger
from ..audit.database import DatabaseManager
from ..audit.models import ContractStructureModel
from ..errors import NotFoundError, ValidationError
from ..interfaces.audit import AuditEventType
from ..models.structure import ContractStructure, SectionSlot

logger = logging.getLogger(__name__)

DEFAULT_JURISDICTION = "DEFAULT"

# Clause categories accepted by each slot key.
SLOT_CATEGORIES: Dict[str, Tuple[str, ...]] = {
    "basic": ("계약의 목적",),
    "payment": ("대금 지급 조건", "투자금 회수 조건", "수익 분배 조건"),
    "service": ("업무 범위 정의", "근로시간 및 휴게", "일정 관리", "변경 관리"),
    "delivery": ("납품 및 검수",),
    "warranty": ("하자보증 기간", "품질 기준"),
    "ip_rights": ("지적재산권 귀속",),
    "confidentiality": ("비밀유지 의무",),
    "liability": ("손해배상 제한", "책임 분담", "불가항력"),
    "indemnification": ("책임 분담",),
    "termination": ("계약 해지 조건",),
    "dispute": ("준거법 및 관할",),
    "governing_law": ("준거법 및 관할",),
    "compliance": (),
    "other": ("기타 조항",),
}

# (key, name, required, risk_weight) per jurisdiction, in section order.
SEED_STRUCTURES: Dict[str, List[Tuple[str, str, bool, float]]] = {
    "KR": [
        ("basic", "기본 정보", True, 1.0),
        ("payment", "대금 지급", True, 2.0),
        ("service", "서비스 범위", True, 1.0),
        ("delivery", "납품 조건", True, 1.5),
        ("warranty", "보증 조건", False, 1.8),
        ("ip_rights", "지적재산권", False, 2.5),
        ("confidentiality", "기밀유지", False, 2.2),
        ("liability", "책임한계", False, 3.0),
        ("termination", "계약해지", True, 2.8),
        ("dispute", "분쟁해결", False, 2.3),
        ("other", "기타", False, 1.0),
    ],
    "US": [
        ("basic", "Basic Information", True, 1.0),
        ("payment", "Payment Terms", True, 2.0),
        ("service", "Scope of Services", True, 1.0),
        ("delivery", "Delivery Terms", False, 1.5),
        ("warranty", "Warranties", False, 1.8),
        ("ip_rights", "Intellectual Property", False, 2.5),
        ("confidentiality", "Confidentiality", False, 2.2),
        ("liability", "Limitation of Liability", False, 3.0),
        ("indemnification", "Indemnification", False, 2.9),
        ("termination", "Termination", False, 2.8),
        ("dispute", "Dispute Resolution", False, 2.3),
        ("governing_law", "Governing Law", False, 2.1),
        ("compliance", "Regulatory Compliance", False, 2.4),
        ("other", "Other Provisions", False, 1.0),
    ],
    "JP": [
        ("basic", "基本情報", True, 1.0),
        ("payment", "支払条件", True, 2.0),
        ("service", "サービス範囲", True, 1.0),
        ("delivery", "納期条件", False, 1.5),
        ("warranty", "保証条件", False, 1.8),
        ("ip_rights", "知的財産権", False, 2.5),
        ("confidentiality", "機密保持", False, 2.2),
        ("liability", "責任制限", False, 3.0),
        ("termination", "契約解除", False, 2.8),
        ("dispute", "紛争解決", False, 2.3),
        ("governing_law", "準拠法", False, 2.1),
        ("other", "その他", False, 1.0),
    ],
    "DE": [
        ("basic", "Grundlegende Informationen", True, 1.0),
        ("payment", "Zahlungsbedingungen", True, 2.0),
        ("service", "Leistungsumfang", True, 1.0),
        ("delivery", "Lieferbedingungen", False, 1.5),
        ("warranty", "Gewährleistung", False, 1.8),
        ("ip_rights", "Geistiges Eigentum", False, 2.5),
        ("confidentiality", "Vertraulichkeit", False, 2.2),
        ("liability", "Haftungsbeschränkung", False, 3.0),
        ("termination", "Kündigung", False, 2.8),
        ("dispute", "Streitbeilegung", False, 2.3),
        ("governing_law", "Anwendbares Recht", False, 2.1),
        ("other", "Sonstige Bestimmungen", False, 1.0),
    ],
    "FR": [
        ("basic", "Informations de base", True, 1.0),
        ("payment", "Conditions de paiement", True, 2.0),
        ("service", "Étendue des services", True, 1.0),
        ("delivery", "Conditions de livraison", False, 1.5),
        ("warranty", "Garanties", False, 1.8),
        ("ip_rights", "Propriété intellectuelle", False, 2.5),
        ("confidentiality", "Confidentialité", False, 2.2),
        ("liability", "Limitation de responsabilité", False, 3.0),
        ("termination", "Résiliation", False, 2.8),
        ("dispute", "Résolution des conflits", False, 2.3),
        ("governing_law", "Droit applicable", False, 2.1),
        ("other", "Autres dispositions", False, 1.0),
    ],
    DEFAULT_JURISDICTION: [
        ("basic", "Basic Information", True, 1.0),
        ("payment", "Payment Terms", True, 2.0),
        ("service", "Service Scope", True, 1.0),
        ("delivery", "Delivery Terms", False, 1.5),
        ("warranty", "Warranty", False, 1.8),
        ("ip_rights", "Intellectual Property", False, 2.5),
        ("confidentiality", "Confidentiality", False, 2.2),
        ("liability", "Liability Limitation", False, 3.0),
        ("termination", "Termination", False, 2.8),
        ("dispute", "Dispute Resolution", False, 2.3),
        ("other", "Other Provisions", False, 1.0),
    ],
}

CATCH_ALL_KEY = "other"


def build_seed_slots(
    definitions: Sequence[Tuple[str, str, bool, float]]
) -> Tuple[SectionSlot, ...]:
    """
    Build slots for a seed definition.

    A category is accepted by at most one slot: dedicated `indemnification`
    and `governing_law` slots take their categories from `liability` and
    `dispute` when present.
    """
    keys = {d[0] for d in definitions}
    taken = set()
    if "indemnification" in keys:
        taken.add(("liability", "책임 분담"))
    if "governing_law" in keys:
        taken.add(("dispute", "준거법 및 관할"))

    slots = []
    for key, name, required, risk_weight in definitions:
        accepted = tuple(
            c for c in SLOT_CATEGORIES.get(key, ()) if (key, c) not in taken
        )
        slots.append(SectionSlot(
            key=key,
            name=name,
            accepted_categories=accepted,
            required=required,
            catch_all=key == CATCH_ALL_KEY,
            risk_weight=risk_weight,
        ))
    return tuple(slots)


def validate_slots(slots: Sequence[SectionSlot]) -> None:
    """
    Raise ValidationError unless slots are non-empty, uniquely keyed and
    contain exactly one catch-all.
    """
    if not slots:
        raise ValidationError("A contract structure needs at least one slot", field_name="slots")
    keys = [s.key for s in slots]
    duplicates = sorted({k for k in keys if keys.count(k) > 1})
    if duplicates:
        raise ValidationError(
            f"Duplicate slot keys: {', '.join(duplicates)}", field_name="slots"
        )
    catch_all = [s.key for s in slots if s.catch_all]
    if len(catch_all) != 1:
        raise ValidationError(
            f"Exactly one catch-all slot is required, found {len(catch_all)}",
            field_name="slots",
        )


class StructureRegistry:
    """
    Versioned registry of contract structures.

    Readers get immutable `ContractStructure` snapshots; the only writers
    are `publish` and `extend_slot`.
    """

    def __init__(self, db_manager: DatabaseManager, audit_logger: AuditLogger):
        self._db_manager = db_manager
        self._audit_logger = audit_logger

    @staticmethod
    def _to_structure(model: ContractStructureModel) -> ContractStructure:
        return ContractStructure(
            jurisdiction=model.jurisdiction,
            version=model.version,
            slots=tuple(SectionSlot.from_dict(s) for s in model.slots or []),
            is_active=bool(model.is_active),
        )

    def seed_defaults(self, user_id: str = "system") -> List[str]:
        """
        Publish version 1 for every seeded jurisdiction that has no structure.

        Returns:
            Jurisdictions that were seeded.
        """
        seeded = []
        with self._db_manager.get_session() as session:
            existing = set(session.execute(
                select(ContractStructureModel.jurisdiction).distinct()
            ).scalars())
            for jurisdiction, definitions in SEED_STRUCTURES.items():
                if jurisdiction in existing:
                    continue
                self._publish(session, jurisdiction, build_seed_slots(definitions), user_id)
                seeded.append(jurisdiction)
        if seeded:
            logger.info(f"Seeded contract structures: {', '.join(seeded)}")
        return seeded

    def get_active(self, jurisdiction: str) -> ContractStructure:
        """
        Return the active structure of a jurisdiction.

        Unknown jurisdictions fall back to the DEFAULT structure.

        Raises:
            NotFoundError: Neither the jurisdiction nor DEFAULT has a structure.
        """
        key = (jurisdiction or DEFAULT_JURISDICTION).upper()
        with self._db_manager.get_session() as session:
            model = self._active_model(session, key)
            if model is None and key != DEFAULT_JURISDICTION:
                logger.warning(
                    f"No contract structure for jurisdiction {key}, using {DEFAULT_JURISDICTION}"
                )
                model = self._active_model(session, DEFAULT_JURISDICTION)
            if model is None:
                raise NotFoundError(f"No active contract structure for {key}", entity_id=key)
            return self._to_structure(model)

    def get_version(self, jurisdiction: str, version: int) -> ContractStructure:
        key = jurisdiction.upper()
        with self._db_manager.get_session() as session:
            model = session.execute(
                select(ContractStructureModel).where(
                    ContractStructureModel.jurisdiction == key,
                    ContractStructureModel.version == version,
                )
            ).scalar_one_or_none()
            if model is None:
                raise NotFoundError(
                    f"Contract structure {key} v{version} not found", entity_id=key
                )
            return self._to_structure(model)

    def list_jurisdictions(self) -> List[str]:
        with self._db_manager.get_session() as session:
            rows = session.execute(
                select(ContractStructureModel.jurisdiction)
                .where(ContractStructureModel.is_active.is_(True))
                .order_by(ContractStructureModel.jurisdiction)
            ).scalars().all()
            return list(rows)

    def publish(
        self,
        jurisdiction: str,
        slots: Sequence[SectionSlot],
        user_id: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> ContractStructure:
        """
        Publish a new structure version and make it the active one.

        Args:
            jurisdiction: Jurisdiction key, case-insensitive.
            slots: Ordered slots of the new version.
            user_id: Acting user for the audit trail.
            session: Optional open session; the publish joins its transaction.

        Raises:
            ValidationError: Slots are empty, duplicated or lack a single catch-all.
        """
        if session is None:
            with self._db_manager.get_session() as own_session:
                return self._publish(own_session, jurisdiction.upper(), tuple(slots), user_id)
        return self._publish(session, jurisdiction.upper(), tuple(slots), user_id)

    def _publish(
        self,
        session: Session,
        jurisdiction: str,
        slots: Tuple[SectionSlot, ...],
        user_id: Optional[str],
    ) -> ContractStructure:
        validate_slots(slots)

        latest = session.execute(
            select(func.max(ContractStructureModel.version))
            .where(ContractStructureModel.jurisdiction == jurisdiction)
        ).scalar()
        version = (latest or 0) + 1

        session.execute(
            update(ContractStructureModel)
            .where(
                ContractStructureModel.jurisdiction == jurisdiction,
                ContractStructureModel.is_active.is_(True),
            )
            .values(is_active=False)
        )
        session.add(ContractStructureModel(
            jurisdiction=jurisdiction,
            version=version,
            is_active=True,
            slots=[s.to_dict() for s in slots],
            created_by=user_id,
        ))
        session.flush()

        self._audit_logger.record(
            AuditEventType.STRUCTURE_PUBLISHED,
            entity_id=jurisdiction,
            entity_type="contract_structure",
            user_id=user_id,
            details={"version": version, "slot_keys": [s.key for s in slots]},
            session=session,
        )
        logger.info(f"Published contract structure {jurisdiction} v{version}")
        return ContractStructure(jurisdiction, version, slots, True)

    def extend_slot(
        self,
        slot_key: str,
        category: str,
        user_id: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> List[ContractStructure]:
        """
        Add a clause category to `slot_key` in every active structure.

        Jurisdictions without the slot, or whose slot already accepts the
        category, are left unchanged.

        Returns:
            The newly published structures.
        """
        if session is None:
            with self._db_manager.get_session() as own_session:
                return self._extend_slot(own_session, slot_key, category, user_id)
        return self._extend_slot(session, slot_key, category, user_id)

    def _extend_slot(
        self,
        session: Session,
        slot_key: str,
        category: str,
        user_id: Optional[str],
    ) -> List[ContractStructure]:
        active = session.execute(
            select(ContractStructureModel)
            .where(ContractStructureModel.is_active.is_(True))
            .order_by(ContractStructureModel.jurisdiction)
        ).scalars().all()
        structures = [self._to_structure(m) for m in active]

        published = []
        for structure in structures:
            slot = structure.get_slot(slot_key)
            if slot is None:
                logger.warning(
                    f"Structure {structure.jurisdiction} has no slot '{slot_key}', skipped"
                )
                continue
            if slot.accepts(category):
                continue
            slots = tuple(
                SectionSlot(
                    key=s.key,
                    name=s.name,
                    accepted_categories=s.accepted_categories + (category,),
                    required=s.required,
                    catch_all=s.catch_all,
                    risk_weight=s.risk_weight,
                ) if s.key == slot_key else s
                for s in structure.slots
            )
            published.append(self._publish(session, structure.jurisdiction, slots, user_id))
        return published

    @staticmethod
    def _active_model(session: Session, jurisdiction: str) -> Optional[ContractStructureModel]:
        return session.execute(
            select(ContractStructureModel).where(
                ContractStructureModel.jurisdiction == jurisdiction,
                ContractStructureModel.is_active.is_(True),
            )
        ).scalar_one_or_none()
