"""Contract structures, variable resolution and contract composition."""

from .composer import (
    ContractComposer,
    MISSING_REQUIRED_SLOT,
    contract_id,
    fingerprint,
    section_numbering,
    to_clause,
)
from .contract_store import ContractStore
from .exporter import ContractExporter
from .renderer import ContractRenderer, section_heading
from .structures import (
    CATCH_ALL_KEY,
    DEFAULT_JURISDICTION,
    SEED_STRUCTURES,
    StructureRegistry,
    build_seed_slots,
    validate_slots,
)
from .variable_resolver import VariableResolver, korean_money, suggest_payment_schedule

__all__ = [
    "ContractComposer",
    "MISSING_REQUIRED_SLOT",
    "contract_id",
    "fingerprint",
    "section_numbering",
    "to_clause",
    "ContractStore",
    "ContractExporter",
    "ContractRenderer",
    "section_heading",
    "CATCH_ALL_KEY",
    "DEFAULT_JURISDICTION",
    "SEED_STRUCTURES",
    "StructureRegistry",
    "build_seed_slots",
    "validate_slots",
    "VariableResolver",
    "korean_money",
    "suggest_payment_schedule",
]
