"""Unit tests for uploaded document reading."""

import pytest
from docx import Document

from contract_composer.parsers.document_reader import read_text
from contract_composer.parsers.exceptions import (
    DocumentCorruptedError,
    DocumentReadError,
    UnsupportedFormatError,
)


class TestReadText:
    """Tests for read_text dispatch."""

    def test_read_docx_paragraphs_and_tables(self, tmp_path):
        path = tmp_path / "contract.docx"
        doc = Document()
        doc.add_paragraph("제1조 (목적)")
        doc.add_paragraph("   ")
        doc.add_paragraph("본 계약은 용역에 관한 사항을 정한다.")
        table = doc.add_table(rows=1, cols=2)
        table.rows[0].cells[0].text = "발주자"
        table.rows[0].cells[1].text = "한빛상사"
        doc.save(str(path))

        text = read_text(str(path))

        assert text == "제1조 (목적)\n본 계약은 용역에 관한 사항을 정한다.\n발주자 한빛상사"

    def test_read_txt(self, tmp_path):
        path = tmp_path / "contract.TXT"
        path.write_text("제1조 (목적) 내용", encoding="utf-8")
        assert read_text(str(path)) == "제1조 (목적) 내용"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_text(str(tmp_path / "missing.docx"))

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "contract.rtf"
        path.write_text("x", encoding="utf-8")

        with pytest.raises(UnsupportedFormatError) as exc_info:
            read_text(str(path))

        assert exc_info.value.get_supported_formats() == [".docx", ".pdf", ".txt"]
        assert exc_info.value.to_dict()["error_type"] == "UnsupportedFormatError"

    @pytest.mark.parametrize("name", ["broken.docx", "broken.pdf"])
    def test_corrupted_file(self, tmp_path, name):
        path = tmp_path / name
        path.write_bytes(b"not a real document")

        with pytest.raises(DocumentCorruptedError):
            read_text(str(path))

    def test_empty_document(self, tmp_path):
        path = tmp_path / "empty.txt"
        path.write_text("  \n ", encoding="utf-8")

        with pytest.raises(DocumentReadError) as exc_info:
            read_text(str(path))

        assert "No text could be extracted" in str(exc_info.value)
