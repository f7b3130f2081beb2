"""Export of composed contracts to .docx."""

import logging
from pathlib import Path
from typing import Optional

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Pt

from ..models.contract import Contract
from .renderer import paragraphs, section_heading

logger = logging.getLogger(__name__)


class ContractExporter:
    """
    Exports composed contracts to Word documents.

    The document holds the title, parties and date, one heading plus body
    paragraphs per section, and the signature block.
    """

    def __init__(self, output_dir: str = "data/contracts"):
        """
        Args:
            output_dir: Directory for exported files.
        """
        self.output_dir = Path(output_dir)

    def build_document(self, contract: Contract) -> Document:
        doc = Document()

        title = doc.add_heading(contract.header.title, level=0)
        title.alignment = WD_ALIGN_PARAGRAPH.CENTER

        parties = doc.add_paragraph(
            f"{contract.header.client_name} / {contract.header.provider_name}"
        )
        parties.alignment = WD_ALIGN_PARAGRAPH.CENTER
        if contract.header.contract_date:
            date_para = doc.add_paragraph(contract.header.contract_date)
            date_para.alignment = WD_ALIGN_PARAGRAPH.CENTER

        for section in contract.sections:
            doc.add_heading(section_heading(contract.jurisdiction, section), level=2)
            for text in paragraphs(section.content):
                para = doc.add_paragraph(text)
                for run in para.runs:
                    run.font.size = Pt(11)

        doc.add_paragraph("")
        table = doc.add_table(rows=1, cols=len(contract.signature_block))
        for cell, line in zip(table.rows[0].cells, contract.signature_block):
            cell.text = line.role
            if line.company:
                cell.add_paragraph(line.company)
            cell.add_paragraph(f"{line.name} (인)" if contract.jurisdiction == "KR" else line.name)

        doc.core_properties.title = contract.header.title
        doc.core_properties.identifier = contract.id
        return doc

    def export(self, contract: Contract, output_path: Optional[str] = None) -> str:
        """
        Write a contract to a .docx file.

        Args:
            contract: The composed contract.
            output_path: Target path. Defaults to `<output_dir>/contract_<id>_v<version>.docx`.

        Returns:
            Path to the exported file.
        """
        path = Path(output_path) if output_path else (
            self.output_dir / f"contract_{contract.id}_v{contract.version}.docx"
        )
        path.parent.mkdir(parents=True, exist_ok=True)
        self.build_document(contract).save(str(path))

        logger.info(f"Exported contract {contract.id} to: {path}")
        return str(path)
