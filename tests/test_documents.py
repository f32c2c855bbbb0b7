from __future__ import annotations

import unittest
from unittest.mock import MagicMock, patch

from domain.errors import DocumentError
from infrastructure.documents import MAX_DOCUMENT_BYTES, extract_document_text


def _fake_pdf(*page_texts):
    pdf = MagicMock()
    pdf.pages = [MagicMock(**{"extract_text.return_value": text}) for text in page_texts]
    pdf.__enter__.return_value = pdf
    return pdf


class ExtractDocumentTextTests(unittest.TestCase):
    def test_text_file_is_decoded(self) -> None:
        text = extract_document_text("statement.txt", "text/plain", b"2026-01-05 SWIGGY 250.00 DR\n")
        self.assertEqual(text, "2026-01-05 SWIGGY 250.00 DR\n")

    def test_pdf_pages_are_joined(self) -> None:
        with patch("infrastructure.documents.pdfplumber.open", return_value=_fake_pdf("page one", None, "page three")) as opener:
            text = extract_document_text("statement.pdf", "application/pdf", b"%PDF-1.4 ...")

        self.assertEqual(text, "page one\npage three")
        self.assertEqual(opener.call_args.args[0].getvalue(), b"%PDF-1.4 ...")

    def test_pdf_detected_by_magic_bytes(self) -> None:
        with patch("infrastructure.documents.pdfplumber.open", return_value=_fake_pdf("Total 12.00")):
            self.assertEqual(extract_document_text("upload", "application/octet-stream", b"%PDF-1.7"), "Total 12.00")

    def test_pdf_without_text_is_rejected(self) -> None:
        with patch("infrastructure.documents.pdfplumber.open", return_value=_fake_pdf(None, "  ")):
            with self.assertRaises(DocumentError):
                extract_document_text("scan.pdf", "application/pdf", b"%PDF-1.4")

    def test_unreadable_pdf_is_document_error(self) -> None:
        with patch("infrastructure.documents.pdfplumber.open", side_effect=RuntimeError("bad xref")):
            with self.assertRaises(DocumentError) as ctx:
                extract_document_text("broken.pdf", "application/pdf", b"%PDF-1.4")

        self.assertIn("bad xref", str(ctx.exception))

    def test_images_empty_and_oversized_files_rejected(self) -> None:
        with self.assertRaises(DocumentError):
            extract_document_text("receipt.jpg", "image/jpeg", b"\xff\xd8\xff")
        with self.assertRaises(DocumentError):
            extract_document_text("empty.txt", "text/plain", b"")
        with self.assertRaises(DocumentError):
            extract_document_text("big.txt", "text/plain", b"a" * (MAX_DOCUMENT_BYTES + 1))
        with self.assertRaises(DocumentError):
            extract_document_text("sheet.xlsx", "application/vnd.ms-excel", b"PK\x03\x04")


if __name__ == "__main__":
    unittest.main()
