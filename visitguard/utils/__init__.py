from visitguard.utils.pdf_parser import PdfReadError, looks_like_pdf, parse_pdf

__all__ = [
    "PdfReadError",
    "looks_like_pdf",
    "parse_pdf",
]
