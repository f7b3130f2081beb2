"""Persistence of composed contracts.

Contracts are written once and never updated in place. A revision is a
new row linked to the contract it revises.
"""

import logging
from dataclasses import replace
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..audit.audit_logger import AuditLogger
from ..audit.database import DatabaseManager
from ..audit.models import ComposedContractModel
from ..errors import NotFoundError, ValidationError
from ..interfaces.audit import AuditEventType
from ..models.contract import Contract
from .composer import contract_id

logger = logging.getLogger(__name__)

CONTRACT_ENTITY_TYPE = "contract"


class ContractStore:
    """Append-only store of composed contracts."""

    def __init__(self, db_manager: DatabaseManager, audit_logger: AuditLogger):
        self._db_manager = db_manager
        self._audit_logger = audit_logger

    def save(
        self,
        contract: Contract,
        user_id: Optional[str] = None,
        session: Optional[Session] = None,
    ) -> Contract:
        """
        Persist a composed contract.

        Saving the same contract twice is a no-op.

        Raises:
            ValidationError: A different contract is stored under the same id.
        """
        if session is None:
            with self._db_manager.get_session() as own_session:
                return self._save(own_session, contract, user_id)
        return self._save(session, contract, user_id)

    def _save(self, session: Session, contract: Contract, user_id: Optional[str]) -> Contract:
        existing = session.get(ComposedContractModel, contract.id)
        if existing is not None:
            if existing.fingerprint != contract.fingerprint:
                raise ValidationError(
                    f"Contract {contract.id} already exists with different content",
                    entity_id=contract.id,
                    field_name="id",
                )
            logger.debug(f"Contract {contract.id} already stored")
            return Contract.from_dict(existing.document)

        session.add(ComposedContractModel(
            id=contract.id,
            jurisdiction=contract.jurisdiction,
            structure_version=contract.structure_version,
            version=contract.version,
            previous_version_id=contract.previous_version_id,
            fingerprint=contract.fingerprint,
            source=contract.source.value,
            document=contract.to_dict(),
            created_by=user_id,
        ))
        session.flush()

        self._audit_logger.record(
            AuditEventType.CONTRACT_COMPOSED,
            entity_id=contract.id,
            entity_type=CONTRACT_ENTITY_TYPE,
            user_id=user_id,
            details={
                "jurisdiction": contract.jurisdiction,
                "structure_version": contract.structure_version,
                "section_count": contract.section_count,
                "warning_count": len(contract.warnings),
                "fingerprint": contract.fingerprint,
                "version": contract.version,
                "previous_version_id": contract.previous_version_id,
                "source": contract.source.value,
                "template_ids": contract.template_ids,
            },
            session=session,
        )
        logger.info(f"Stored contract {contract.id} v{contract.version}")
        return contract

    def contains(self, contract_id: str, session: Optional[Session] = None) -> bool:
        if session is None:
            with self._db_manager.get_session() as own_session:
                return own_session.get(ComposedContractModel, contract_id) is not None
        return session.get(ComposedContractModel, contract_id) is not None

    def get(self, contract_id: str) -> Contract:
        with self._db_manager.get_session() as session:
            model = session.get(ComposedContractModel, contract_id)
            if model is None:
                raise NotFoundError(f"Contract {contract_id} not found", entity_id=contract_id)
            return Contract.from_dict(model.document)

    def revise(
        self,
        previous_id: str,
        revised: Contract,
        user_id: Optional[str] = None,
    ) -> Contract:
        """
        Store `revised` as the next version of an existing contract.

        Raises:
            NotFoundError: The previous contract does not exist.
            ValidationError: The previous contract was already revised.
        """
        with self._db_manager.get_session() as session:
            previous = session.get(ComposedContractModel, previous_id)
            if previous is None:
                raise NotFoundError(f"Contract {previous_id} not found", entity_id=previous_id)
            successor = session.execute(
                select(ComposedContractModel.id)
                .where(ComposedContractModel.previous_version_id == previous_id)
            ).scalar()
            if successor is not None:
                raise ValidationError(
                    f"Contract {previous_id} was already revised by {successor}",
                    entity_id=previous_id,
                    field_name="previous_id",
                )

            revision = replace(
                revised,
                id=contract_id(revised.fingerprint, revised.generated_at, previous_id),
                version=previous.version + 1,
                previous_version_id=previous_id,
            )
            return self._save(session, revision, user_id)

    def history(self, contract_id: str) -> List[Contract]:
        """All versions up to `contract_id`, oldest first."""
        versions: List[Contract] = []
        with self._db_manager.get_session() as session:
            current: Optional[str] = contract_id
            while current:
                model = session.get(ComposedContractModel, current)
                if model is None:
                    if not versions:
                        raise NotFoundError(f"Contract {contract_id} not found", entity_id=contract_id)
                    break
                versions.append(Contract.from_dict(model.document))
                current = model.previous_version_id
        versions.reverse()
        return versions
