"""Clause candidate store, promotion workflow and category classification."""

from .classifier import CategoryClassifier, CategoryRule, DEFAULT_RULES, classify_category
from .normalizer import ContractNormalizer, NormalizationReport, NormalizedClause
from .promotion import OverrideStaging, PromotionWorkflow
from .store import CandidateStore, annotate, assess_risk, recommend

__all__ = [
    "CategoryClassifier",
    "CategoryRule",
    "DEFAULT_RULES",
    "classify_category",
    "ContractNormalizer",
    "NormalizationReport",
    "NormalizedClause",
    "OverrideStaging",
    "PromotionWorkflow",
    "CandidateStore",
    "annotate",
    "assess_risk",
    "recommend",
]
