import asyncio
import logging

import fitz

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF-"


class PdfReadError(Exception):
    """The bytes are not a readable PDF document."""


def looks_like_pdf(data: bytes) -> bool:
    return bool(data) and data[:5] == PDF_MAGIC


def _parse_pdf_sync(pdf_bytes: bytes) -> dict:
    """Synchronous PyMuPDF text extraction, page by page."""
    if not looks_like_pdf(pdf_bytes):
        raise PdfReadError("not a PDF")
    try:
        with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
            if doc.needs_pass:
                raise PdfReadError("password-protected PDF")
            if doc.page_count == 0:
                raise PdfReadError("PDF has no pages")
            pages = [page.get_text("text") for page in doc]
    except PdfReadError:
        raise
    except Exception as exc:
        raise PdfReadError(str(exc)) from exc

    text = "\n".join(p.strip() for p in pages if p and p.strip()).strip()
    logger.debug("[pdf] extracted %s page(s), %s char(s)", len(pages), len(text))
    return {"text": text, "pages": len(pages)}


async def parse_pdf(pdf_bytes: bytes) -> dict:
    """Async wrapper around PDF text extraction to avoid blocking the event loop."""
    return await asyncio.to_thread(_parse_pdf_sync, pdf_bytes)
