"""Interfaces for the external AI collaborator.

The collaborator performs free-text clause extraction and clause risk
scoring. The engine treats it as a black box: every call may fail or
return unparseable output, and composition never depends on it.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List


class IClauseExtractor(ABC):
    """Extracts clause candidates from raw contract text."""

    @abstractmethod
    def extract_clauses(self, text: str) -> List[Dict[str, Any]]:
        """
        Extract clauses from contract text.

        Args:
            text: Raw contract text.

        Returns:
            Ordered list of `{title, content, category?, confidence}` dicts.
        """
        pass


class IClauseAdvisor(ABC):
    """Produces advisory risk and improvement annotations for one clause."""

    @abstractmethod
    def analyze_risk(self, title: str, content: str) -> Dict[str, Any]:
        """
        Score the risk of a clause.

        Returns:
            `{riskLevel: 1-10, issues: [...], recommendations: [...]}`.
        """
        pass

    @abstractmethod
    def suggest_improvements(self, title: str, content: str) -> Dict[str, Any]:
        """
        Suggest an improved wording of a clause.

        Returns:
            `{enhanced: str, suggestions: [...], alternatives: [...]}`.
        """
        pass
