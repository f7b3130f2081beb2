"""Request bodies of the HTTP API."""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class CandidateIn(BaseModel):
    """One clause candidate in a batch ingest."""
    id: Optional[str] = None
    title: Optional[str] = None
    content: str
    confidence: float
    contract_category: Optional[str] = None
    clause_category: Optional[str] = None
    source_contract: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class IngestRequest(BaseModel):
    candidates: List[CandidateIn]
    user_id: Optional[str] = None
    auto_promote: Optional[bool] = None


class ExtractRequest(BaseModel):
    """Raw contract text; `use_extractor` routes it through the AI collaborator."""
    text: str
    source_contract: Optional[str] = None
    contract_category: Optional[str] = None
    use_extractor: bool = False
    user_id: Optional[str] = None


class AutoPromoteRequest(BaseModel):
    threshold: Optional[float] = None
    user_id: str = "system"


class ApproveRequest(BaseModel):
    ids: List[str]
    overrides: Dict[str, str] = Field(default_factory=dict)
    user_id: Optional[str] = None


class RejectRequest(BaseModel):
    ids: List[str]
    reason: str
    user_id: Optional[str] = None


class MatchRequest(BaseModel):
    quote: Dict[str, Any]
    top_n: Optional[int] = Field(default=None, ge=1)


class ComposeRequest(BaseModel):
    """
    Contract composition request.

    Exactly one clause source is used: `quote` (template matching),
    `candidate_ids` (user-curated candidates) or `clauses` (inline).
    Passing the `generated_at` of a preview reproduces its contract id.
    """
    parties: Dict[str, Dict[str, Any]]
    quote: Optional[Dict[str, Any]] = None
    candidate_ids: Optional[List[str]] = None
    clauses: Optional[List[Dict[str, Any]]] = None
    project: Optional[Dict[str, Any]] = None
    jurisdiction: Optional[str] = None
    title: Optional[str] = None
    reference_date: Optional[date] = None
    generated_at: Optional[str] = None
    persist: bool = True
    user_id: Optional[str] = None

    def sources(self) -> List[str]:
        return [
            name for name in ("quote", "candidate_ids", "clauses")
            if getattr(self, name) is not None
        ]


class CategoryRequest(BaseModel):
    kind: str
    name: str
    user_id: str
    keywords: Optional[List[str]] = None
    slot_key: Optional[str] = None
