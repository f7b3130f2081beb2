"""Contract Composer.

Maps clauses into the section slots of a jurisdiction's contract
structure, substitutes variables and numbers the sections. Composition is
deterministic: the same clauses, variables, structure version and
generation time give a byte-identical contract.
"""

import hashlib
import json
import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Union

from ..errors import ValidationError
from ..models.candidate import ClauseCandidate
from ..models.contract import (
    ComposableClause,
    CompositionWarning,
    Contract,
    ContractHeader,
    ContractSection,
    SignatureLine,
)
from ..models.enums import ContractSource
from ..models.structure import ContractStructure
from ..models.template import ClauseTemplate
from ..templates.placeholders import substitute
from .structures import StructureRegistry

logger = logging.getLogger(__name__)

MISSING_REQUIRED_SLOT = "missing_required_slot"
NO_CLAUSES = "no_clauses"

NUMBERING = {
    "KR": "제{n}조",
    "JP": "第{n}条",
}
DEFAULT_NUMBERING = "Article {n}"

DEFAULT_TITLES = {
    "KR": "용역 계약서",
    "JP": "業務委託契約書",
    "US": "Service Agreement",
    "DE": "Dienstleistungsvertrag",
    "FR": "Contrat de prestation de services",
}
DEFAULT_TITLE = "Service Agreement"

MISSING_SLOT_MESSAGES = {
    "KR": "누락된 필수 조항: {name}",
    "JP": "必須条項が不足しています: {name}",
}
DEFAULT_MISSING_SLOT_MESSAGE = "Missing required section: {name}"

SIGNATURE_ROLES = {
    "KR": ("발주자", "수행자"),
    "JP": ("委託者", "受託者"),
}
DEFAULT_SIGNATURE_ROLES = ("Client", "Provider")

ClauseInput = Union[ComposableClause, ClauseTemplate, ClauseCandidate, Dict[str, Any]]


def section_numbering(jurisdiction: str, number: int) -> str:
    """Localized section label, e.g. "제3조" for KR or "Article 3"."""
    return NUMBERING.get(jurisdiction, DEFAULT_NUMBERING).format(n=number)


def contract_id(fingerprint: str, generated_at: str, previous_version_id: Optional[str] = None) -> str:
    """Deterministic contract id from its fingerprint and generation time."""
    name = f"{fingerprint}:{generated_at}"
    if previous_version_id:
        name = f"{name}:{previous_version_id}"
    return str(uuid.uuid5(uuid.NAMESPACE_URL, name))


def fingerprint(contract: Contract) -> str:
    """SHA-256 over the canonical JSON of everything except ids, timestamps and versioning."""
    data = contract.to_dict()
    for key in ("id", "fingerprint", "version", "previous_version_id"):
        data.pop(key, None)
    data["metadata"].pop("generated_at", None)
    canonical = json.dumps(data, sort_keys=True, ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def to_clause(item: ClauseInput, index: int = 0) -> ComposableClause:
    """
    Convert a template, candidate or plain dict to a composable clause.

    Raises:
        ValidationError: The clause has no content.
    """
    if isinstance(item, ComposableClause):
        clause = item
    elif isinstance(item, ClauseTemplate):
        clause = ComposableClause(
            id=item.id,
            title=item.title,
            content=item.content,
            clause_category=item.category,
            template_id=item.id,
        )
    elif isinstance(item, ClauseCandidate):
        clause = ComposableClause(
            id=item.id,
            title=item.title,
            content=item.content,
            clause_category=item.clause_category,
            template_id=item.template_id,
        )
    elif isinstance(item, dict):
        clause = ComposableClause(
            id=str(item.get("id") or f"clause-{index + 1}"),
            title=str(item.get("title") or ""),
            content=str(item.get("content") or ""),
            clause_category=item.get("clause_category") or item.get("category"),
            template_id=item.get("template_id"),
        )
    else:
        raise ValidationError(
            f"Unsupported clause type: {type(item).__name__}", field_name=f"clauses[{index}]"
        )

    if not clause.content.strip():
        raise ValidationError(
            "Clause content must not be empty", entity_id=clause.id, field_name="content"
        )
    return clause


class ContractComposer:
    """
    Assembles numbered, variable-substituted contracts.

    A clause whose category no slot accepts goes to the structure's
    catch-all slot. Empty required slots produce warnings, not failures;
    an unresolved `{{token}}` fails the whole composition.
    """

    def __init__(self, structure_registry: Optional[StructureRegistry] = None):
        self._structure_registry = structure_registry

    def compose(
        self,
        clauses: Sequence[ClauseInput],
        jurisdiction: str,
        variables: Dict[str, str],
        title: Optional[str] = None,
        source: ContractSource = ContractSource.TEMPLATE,
        generated_at: Optional[str] = None,
        structure: Optional[ContractStructure] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Contract:
        """
        Compose a contract.

        Args:
            clauses: Clauses in caller order; templates, candidates and
                dicts are converted with `to_clause`.
            jurisdiction: Jurisdiction key of the structure to use.
            variables: Resolved variable table.
            title: Contract title, may contain placeholders. Defaults to
                the jurisdiction's standard title.
            source: Where the clauses came from.
            generated_at: ISO generation time. Defaults to now (UTC).
            structure: Structure to use instead of the active registry one.
            metadata: Extra metadata stored with the contract.

        Returns:
            The composed contract.

        Raises:
            ValidationError: A clause is empty or no structure is available.
            NotFoundError: No structure exists for the jurisdiction.
            UnresolvedVariableError: A clause references a variable that is
                not in the table.
        """
        if structure is None:
            if self._structure_registry is None:
                raise ValidationError(
                    "A contract structure or structure registry is required",
                    field_name="structure",
                )
            structure = self._structure_registry.get_active(jurisdiction)
        key = structure.jurisdiction

        items = [to_clause(item, i) for i, item in enumerate(clauses)]
        buckets: Dict[str, List[ComposableClause]] = {slot.key: [] for slot in structure.slots}
        for clause in items:
            buckets[structure.slot_for(clause.clause_category).key].append(clause)

        sections: List[ContractSection] = []
        for slot in structure.slots:
            for clause in buckets[slot.key]:
                number = len(sections) + 1
                sections.append(ContractSection(
                    section_id=f"section-{number}",
                    slot_key=slot.key,
                    number=number,
                    numbering=section_numbering(key, number),
                    title=substitute(clause.title, variables, clause_id=clause.id),
                    content=substitute(clause.content, variables, clause_id=clause.id),
                    clause_id=clause.id,
                    clause_category=clause.clause_category,
                    template_id=clause.template_id,
                ))

        warnings = self._warnings(structure, buckets, items)
        for warning in warnings:
            logger.warning(f"Composition warning for {key}: {warning.message}")

        header = ContractHeader(
            title=substitute(title or DEFAULT_TITLES.get(key, DEFAULT_TITLE), variables),
            client_name=variables.get("clientName", ""),
            provider_name=variables.get("providerName", ""),
            contract_date=variables.get("contractDate", ""),
            client_company=variables.get("clientCompany", ""),
            provider_company=variables.get("providerCompany", ""),
        )
        client_role, provider_role = SIGNATURE_ROLES.get(key, DEFAULT_SIGNATURE_ROLES)
        signature_block = (
            SignatureLine(client_role, header.client_name, header.client_company),
            SignatureLine(provider_role, header.provider_name, header.provider_company),
        )

        generated_at = generated_at or datetime.utcnow().isoformat()
        draft = Contract(
            id="",
            jurisdiction=key,
            structure_version=structure.version,
            header=header,
            sections=tuple(sections),
            signature_block=signature_block,
            warnings=tuple(warnings),
            source=ContractSource(source),
            generated_at=generated_at,
            metadata=dict(metadata or {}),
        )
        digest = fingerprint(draft)
        contract = replace(draft, id=contract_id(digest, generated_at), fingerprint=digest)

        logger.info(
            f"Composed contract {contract.id} ({key} v{structure.version}): "
            f"{len(sections)} sections, {len(warnings)} warnings"
        )
        return contract

    @staticmethod
    def _warnings(
        structure: ContractStructure,
        buckets: Dict[str, List[ComposableClause]],
        items: List[ComposableClause],
    ) -> List[CompositionWarning]:
        key = structure.jurisdiction
        warnings = []
        if not items:
            warnings.append(CompositionWarning(NO_CLAUSES, "No clauses were provided"))
        template = MISSING_SLOT_MESSAGES.get(key, DEFAULT_MISSING_SLOT_MESSAGE)
        for slot in structure.required_slots:
            if not buckets[slot.key]:
                warnings.append(CompositionWarning(
                    code=MISSING_REQUIRED_SLOT,
                    message=template.format(name=slot.name),
                    slot_key=slot.key,
                ))
        return warnings
