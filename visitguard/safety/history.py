"""Uploaded patient record and the medication history derived from it."""

from typing import Iterable

from visitguard.config.logger import get_logger
from visitguard.config.settings import settings
from visitguard.session.extraction import extract_drugs_from_text
from visitguard.utils.pdf_parser import PdfReadError, looks_like_pdf, parse_pdf

logger = get_logger(__name__)

UNREADABLE_PDF_MESSAGE = (
    "This PDF could not be read. It may be corrupted, password-protected, or in a format "
    "we don't support. Try a different file or re-save the PDF."
)


class RecordParseError(Exception):
    """Uploaded record could not be turned into text."""


def merge_history(*sources: Iterable[str]) -> list[str]:
    """Concatenate drug lists, dropping blanks and case-insensitive repeats."""
    seen: set[str] = set()
    merged: list[str] = []
    for source in sources:
        for drug in source or ():
            name = (drug or "").strip()
            if not name or name.lower() in seen:
                continue
            seen.add(name.lower())
            merged.append(name)
    return merged


class PatientHistoryStore:
    """Holds the most recently uploaded patient record (one per process)."""

    def __init__(self, max_chars: int = settings.PATIENT_RECORD_MAX_CHARS) -> None:
        self.max_chars = max_chars
        self._text = ""
        self._drugs: list[str] = []

    def load_text(self, text: str) -> list[str]:
        self._text = (text or "")[: self.max_chars]
        self._drugs = extract_drugs_from_text(self._text)
        logger.info("[history] record loaded chars=%s drugs=%s", len(self._text), self._drugs)
        return self.drugs()

    async def load_pdf(self, pdf_bytes: bytes) -> list[str]:
        if not looks_like_pdf(pdf_bytes):
            raise RecordParseError("File does not look like a PDF. Please upload a valid PDF.")
        try:
            parsed = await parse_pdf(pdf_bytes)
        except PdfReadError as exc:
            logger.warning("[history] unreadable PDF: %s", exc)
            raise RecordParseError(UNREADABLE_PDF_MESSAGE) from exc
        return self.load_text(parsed["text"])

    def drugs(self) -> list[str]:
        return list(self._drugs)

    def clear(self) -> None:
        self._text = ""
        self._drugs = []

    def status(self) -> dict:
        return {
            "hasRecord": bool(self._text),
            "textLength": len(self._text),
            "drugCount": len(self._drugs),
            "drugs": self.drugs(),
        }
