"""Template library, category registry and placeholder handling."""

from .categories import CategoryRegistry, CategorySnapshot
from .library import (
    TemplateLibrary,
    rate_importance,
    score_quality,
    score_risk,
    text_similarity,
)
from .placeholders import (
    extract_variables,
    find_malformed_tokens,
    substitute,
    validate_placeholders,
)

__all__ = [
    "CategoryRegistry",
    "CategorySnapshot",
    "TemplateLibrary",
    "rate_importance",
    "score_quality",
    "score_risk",
    "text_similarity",
    "extract_variables",
    "find_malformed_tokens",
    "substitute",
    "validate_placeholders",
]
