"""Quote criteria derivation and template matching."""

from .criteria import (
    QuoteCriteria,
    analyze_service_type,
    calculate_complexity,
    derive_criteria,
    infer_industry,
    parse_duration,
    quote_amount,
    quote_metadata,
    quote_services,
)
from .template_matcher import TemplateMatcher, attribute_score, complexity_score

__all__ = [
    "QuoteCriteria",
    "analyze_service_type",
    "calculate_complexity",
    "derive_criteria",
    "infer_industry",
    "parse_duration",
    "quote_amount",
    "quote_metadata",
    "quote_services",
    "TemplateMatcher",
    "attribute_score",
    "complexity_score",
]
