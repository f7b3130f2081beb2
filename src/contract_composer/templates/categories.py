"""Category Registry.

Persisted, versioned list of valid contract and clause categories.
Readers always work from an immutable `CategorySnapshot`; the only
writer is `add_category`, which is serialized, audited and snapshotted
into version history.
"""

import logging
import re
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from ..audit.audit_logger import AuditLogger
from ..audit.database import (
    DatabaseManager,
    REGISTRY_VERSION_COUNTER,
    get_counter,
    increment_counter,
)
from ..audit.models import CategoryModel
from ..errors import ValidationError
from ..interfaces.audit import AuditEventType
from ..models.categories import CLAUSE_CATEGORIES, CONTRACT_CATEGORIES
from ..models.enums import CategoryKind

logger = logging.getLogger(__name__)

REGISTRY_ENTITY_TYPE = "category_registry"
REGISTRY_ENTITY_ID = "registry"
SIMILARITY_THRESHOLD = 0.5


@dataclass(frozen=True)
class CategorySnapshot:
    """Immutable view of the registry at one version."""
    version: int
    contract_categories: Tuple[str, ...]
    clause_categories: Tuple[str, ...]

    def names(self, kind: CategoryKind) -> Tuple[str, ...]:
        if kind is CategoryKind.CONTRACT:
            return self.contract_categories
        return self.clause_categories

    def contains(self, kind: CategoryKind, name: Optional[str]) -> bool:
        return name is not None and name in self.names(kind)

    def to_dict(self) -> Dict[str, object]:
        return {
            "version": self.version,
            "contract_categories": list(self.contract_categories),
            "clause_categories": list(self.clause_categories),
        }


def extract_keywords(text: str) -> List[str]:
    """Lowercased words longer than one character."""
    words = re.sub(r"[^\w가-힣]", " ", (text or "").lower()).split()
    return [w for w in words if len(w) > 1]


def jaccard(first: List[str], second: List[str]) -> float:
    a, b = set(first), set(second)
    if not a and not b:
        return 0.0
    return len(a & b) / len(a | b)


def _kind(kind: Union[CategoryKind, str]) -> CategoryKind:
    if isinstance(kind, CategoryKind):
        return kind
    try:
        return CategoryKind(kind)
    except ValueError:
        raise ValidationError(f"Unknown category kind '{kind}'", field_name="kind")


class CategoryRegistry:
    """
    Registry of valid contract and clause categories.

    Args:
        db_manager: Database access.
        audit_logger: Audit trail for registry mutations.
        structure_registry: When given, `add_category(..., slot_key=...)`
            extends that slot in every active contract structure.
    """

    def __init__(
        self,
        db_manager: DatabaseManager,
        audit_logger: AuditLogger,
        structure_registry=None,
    ):
        self._db_manager = db_manager
        self._audit_logger = audit_logger
        self._structure_registry = structure_registry
        self._lock = threading.Lock()

    def seed_defaults(self) -> int:
        """
        Insert the built-in categories that are missing.

        Returns:
            Number of categories inserted.
        """
        inserted = 0
        with self._lock, self._db_manager.get_session() as session:
            for kind, names in (
                (CategoryKind.CONTRACT, CONTRACT_CATEGORIES),
                (CategoryKind.CLAUSE, CLAUSE_CATEGORIES),
            ):
                existing = set(session.execute(
                    select(CategoryModel.name).where(CategoryModel.kind == kind.value)
                ).scalars())
                for order, name in enumerate(names):
                    if name in existing:
                        continue
                    session.add(CategoryModel(
                        kind=kind.value,
                        name=name,
                        sort_order=order,
                        keywords=extract_keywords(name),
                        created_by="system",
                    ))
                    inserted += 1
        if inserted:
            logger.info(f"Seeded {inserted} categories")
        return inserted

    def snapshot(self) -> CategorySnapshot:
        """Return the current registry state."""
        with self._db_manager.get_session() as session:
            return self._snapshot(session)

    def _snapshot(self, session: Session) -> CategorySnapshot:
        rows = session.execute(
            select(CategoryModel.kind, CategoryModel.name)
            .order_by(CategoryModel.sort_order, CategoryModel.name)
        ).all()
        return CategorySnapshot(
            version=get_counter(session, REGISTRY_VERSION_COUNTER),
            contract_categories=tuple(n for k, n in rows if k == CategoryKind.CONTRACT.value),
            clause_categories=tuple(n for k, n in rows if k == CategoryKind.CLAUSE.value),
        )

    def list(self, kind: Union[CategoryKind, str]) -> List[str]:
        return list(self.snapshot().names(_kind(kind)))

    def is_valid(self, kind: Union[CategoryKind, str], name: Optional[str]) -> bool:
        return self.snapshot().contains(_kind(kind), name)

    def add_category(
        self,
        kind: Union[CategoryKind, str],
        name: str,
        user_id: str,
        keywords: Optional[List[str]] = None,
        slot_key: Optional[str] = None,
    ) -> CategorySnapshot:
        """
        Add a category to the registry.

        Writers are serialized; the insert, version bump, snapshot, audit
        entry and any structure extension commit together.

        Args:
            kind: Contract or clause category.
            name: New category name.
            user_id: Acting user.
            keywords: Keywords for similarity search; derived from the name when omitted.
            slot_key: For clause categories, the structure slot that accepts it.

        Returns:
            The registry snapshot after the addition.

        Raises:
            ValidationError: Empty or duplicate name, or a slot key for a
                contract category.
        """
        category_kind = _kind(kind)
        name = (name or "").strip()
        if not name:
            raise ValidationError("Category name must not be empty", field_name="name")
        if slot_key and category_kind is not CategoryKind.CLAUSE:
            raise ValidationError(
                "Only clause categories can be mapped to a structure slot",
                field_name="slot_key",
            )

        with self._lock, self._db_manager.get_session() as session:
            exists = session.execute(
                select(CategoryModel.id).where(
                    CategoryModel.kind == category_kind.value,
                    CategoryModel.name == name,
                )
            ).scalar()
            if exists:
                raise ValidationError(
                    f"Category '{name}' already exists", entity_id=name, field_name="name"
                )

            max_order = session.execute(
                select(func.max(CategoryModel.sort_order))
                .where(CategoryModel.kind == category_kind.value)
            ).scalar()
            session.add(CategoryModel(
                kind=category_kind.value,
                name=name,
                sort_order=(max_order if max_order is not None else -1) + 1,
                keywords=keywords or extract_keywords(name),
                created_by=user_id,
            ))
            increment_counter(session, REGISTRY_VERSION_COUNTER)
            session.flush()

            snapshot = self._snapshot(session)
            self._audit_logger.save_version(
                REGISTRY_ENTITY_TYPE, REGISTRY_ENTITY_ID, snapshot.to_dict(), session=session
            )
            self._audit_logger.record(
                AuditEventType.CATEGORY_ADDED,
                entity_id=name,
                entity_type=REGISTRY_ENTITY_TYPE,
                user_id=user_id,
                details={
                    "kind": category_kind.value,
                    "registry_version": snapshot.version,
                    "slot_key": slot_key,
                },
                session=session,
            )

            if slot_key and self._structure_registry is not None:
                self._structure_registry.extend_slot(slot_key, name, user_id, session=session)

        logger.info(
            f"Added {category_kind.value} category '{name}' (registry v{snapshot.version})"
        )
        return snapshot

    def find_similar(
        self,
        name: str,
        kind: Union[CategoryKind, str] = CategoryKind.CLAUSE,
    ) -> Optional[str]:
        """
        Return the first existing category whose keywords overlap `name`
        by a Jaccard similarity above 0.5, or None.
        """
        keywords = extract_keywords(name)
        if not keywords:
            return None
        category_kind = _kind(kind)
        with self._db_manager.get_session() as session:
            rows = session.execute(
                select(CategoryModel.name, CategoryModel.keywords)
                .where(CategoryModel.kind == category_kind.value)
                .order_by(CategoryModel.sort_order)
            ).all()
        for existing, stored in rows:
            if jaccard(keywords, stored or extract_keywords(existing)) > SIMILARITY_THRESHOLD:
                return existing
        return None

    def record_usage(
        self,
        session: Session,
        kind: Union[CategoryKind, str],
        name: str,
    ) -> None:
        """Increment the usage counter of a category inside `session`."""
        session.execute(
            update(CategoryModel)
            .where(CategoryModel.kind == _kind(kind).value, CategoryModel.name == name)
            .values(usage_count=CategoryModel.usage_count + 1)
        )

    def usage_counts(self, kind: Union[CategoryKind, str] = CategoryKind.CLAUSE) -> Dict[str, int]:
        with self._db_manager.get_session() as session:
            rows = session.execute(
                select(CategoryModel.name, CategoryModel.usage_count)
                .where(CategoryModel.kind == _kind(kind).value)
                .order_by(CategoryModel.sort_order)
            ).all()
        return {name: count for name, count in rows}
