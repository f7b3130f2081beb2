"""Data models for composed contracts."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .enums import ContractSource


@dataclass(frozen=True)
class ComposableClause:
    """
    A clause handed to the composer.

    Built from a matched template, an approved candidate or a
    user-curated upload list.
    """
    id: str
    title: str
    content: str
    clause_category: Optional[str] = None
    template_id: Optional[str] = None


@dataclass(frozen=True)
class ContractSection:
    """A numbered, variable-substituted section of a composed contract."""
    section_id: str
    slot_key: str
    number: int
    numbering: str
    title: str
    content: str
    clause_id: str
    clause_category: Optional[str] = None
    template_id: Optional[str] = None

    @property
    def heading(self) -> str:
        return f"{self.numbering} ({self.title})" if self.title else self.numbering

    def to_dict(self) -> Dict[str, Any]:
        return {
            "section_id": self.section_id,
            "slot_key": self.slot_key,
            "number": self.number,
            "numbering": self.numbering,
            "title": self.title,
            "content": self.content,
            "clause_id": self.clause_id,
            "clause_category": self.clause_category,
            "template_id": self.template_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContractSection":
        return cls(
            section_id=data["section_id"],
            slot_key=data["slot_key"],
            number=int(data["number"]),
            numbering=data["numbering"],
            title=data.get("title", ""),
            content=data.get("content", ""),
            clause_id=data["clause_id"],
            clause_category=data.get("clause_category"),
            template_id=data.get("template_id"),
        )


@dataclass(frozen=True)
class ContractHeader:
    """Title, party and date data printed above the sections."""
    title: str
    client_name: str
    provider_name: str
    contract_date: str = ""
    client_company: str = ""
    provider_company: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {
            "title": self.title,
            "client_name": self.client_name,
            "provider_name": self.provider_name,
            "contract_date": self.contract_date,
            "client_company": self.client_company,
            "provider_company": self.provider_company,
        }


@dataclass(frozen=True)
class SignatureLine:
    role: str
    name: str
    company: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "name": self.name, "company": self.company}


@dataclass(frozen=True)
class CompositionWarning:
    """Non-fatal issue found while composing, e.g. an empty required slot."""
    code: str
    message: str
    slot_key: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"code": self.code, "message": self.message, "slot_key": self.slot_key}


@dataclass(frozen=True)
class Contract:
    """
    A composed contract document.

    Created once per generation request and never modified; revisions are
    stored as new contracts linked through `previous_version_id`.

    Attributes:
        id: Identifier derived from the fingerprint and generation time.
        jurisdiction: Jurisdiction key of the structure used.
        structure_version: Version of the structure used.
        header: Title, party and date data.
        sections: Ordered, numbered sections.
        signature_block: One line per signing party.
        warnings: Non-fatal composition warnings.
        source: Where the clauses came from.
        generated_at: ISO timestamp of generation.
        fingerprint: SHA-256 over everything except id and timestamps.
        version: Revision number, starting at 1.
        previous_version_id: Contract this one revises.
    """
    id: str
    jurisdiction: str
    structure_version: int
    header: ContractHeader
    sections: Tuple[ContractSection, ...]
    signature_block: Tuple[SignatureLine, ...]
    warnings: Tuple[CompositionWarning, ...] = ()
    source: ContractSource = ContractSource.TEMPLATE
    generated_at: str = ""
    fingerprint: str = ""
    version: int = 1
    previous_version_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def section_count(self) -> int:
        return len(self.sections)

    @property
    def template_ids(self) -> List[str]:
        return [s.template_id for s in self.sections if s.template_id]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "jurisdiction": self.jurisdiction,
            "structure_version": self.structure_version,
            "header": self.header.to_dict(),
            "sections": [s.to_dict() for s in self.sections],
            "signature_block": [line.to_dict() for line in self.signature_block],
            "warnings": [w.to_dict() for w in self.warnings],
            "metadata": {
                **self.metadata,
                "generated_at": self.generated_at,
                "jurisdiction": self.jurisdiction,
                "section_count": self.section_count,
                "source": self.source.value,
            },
            "fingerprint": self.fingerprint,
            "version": self.version,
            "previous_version_id": self.previous_version_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Contract":
        metadata = dict(data.get("metadata") or {})
        generated_at = metadata.pop("generated_at", "")
        source = metadata.pop("source", ContractSource.TEMPLATE.value)
        metadata.pop("jurisdiction", None)
        metadata.pop("section_count", None)
        return cls(
            id=data["id"],
            jurisdiction=data["jurisdiction"],
            structure_version=int(data["structure_version"]),
            header=ContractHeader(**data["header"]),
            sections=tuple(ContractSection.from_dict(s) for s in data.get("sections", [])),
            signature_block=tuple(SignatureLine(**s) for s in data.get("signature_block", [])),
            warnings=tuple(CompositionWarning(**w) for w in data.get("warnings", [])),
            source=ContractSource(source),
            generated_at=generated_at,
            fingerprint=data.get("fingerprint", ""),
            version=int(data.get("version", 1)),
            previous_version_id=data.get("previous_version_id"),
            metadata=metadata,
        )
