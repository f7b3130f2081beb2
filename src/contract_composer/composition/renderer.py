"""HTML rendering of composed contracts."""

import os
from typing import Any, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..models.contract import Contract, ContractSection
from .composer import NUMBERING

LANGUAGES = {"KR": "ko", "JP": "ja", "DE": "de", "FR": "fr"}


def section_heading(jurisdiction: str, section: ContractSection) -> str:
    """`제N조 (title)` for KR and JP, `Article N. title` elsewhere."""
    if jurisdiction in NUMBERING:
        return section.heading
    if not section.title:
        return section.numbering
    return f"{section.numbering}. {section.title}"


def paragraphs(content: str) -> List[str]:
    return [line.strip() for line in content.splitlines() if line.strip()]


class ContractRenderer:
    """
    Renders composed contracts to HTML.

    Uses the Jinja2 templates shipped next to this module unless another
    template directory is given.
    """

    def __init__(self, template_dir: Optional[str] = None):
        if template_dir is None:
            template_dir = os.path.join(os.path.dirname(__file__), "templates")

        self.template_dir = template_dir
        self.env = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(['html', 'xml'])
        )

    def render_html(self, contract: Contract, show_warnings: bool = False) -> str:
        """
        Render a contract as a standalone HTML document.

        Args:
            contract: The composed contract.
            show_warnings: Include composition warnings above the sections.
        """
        template = self.env.get_template('contract.html')
        return template.render(
            contract=contract,
            sections=self._prepare_sections(contract),
            lang=LANGUAGES.get(contract.jurisdiction, "en"),
            show_warnings=show_warnings,
        )

    def _prepare_sections(self, contract: Contract) -> List[Dict[str, Any]]:
        return [
            {
                "section_id": section.section_id,
                "heading": section_heading(contract.jurisdiction, section),
                "paragraphs": paragraphs(section.content),
            }
            for section in contract.sections
        ]
