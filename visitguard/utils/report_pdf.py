from __future__ import annotations

from datetime import datetime
from io import BytesIO
from typing import TYPE_CHECKING

import fitz

from visitguard.config.logger import get_logger

if TYPE_CHECKING:
    from visitguard.runtime.records import VisitRecord

logger = get_logger(__name__)

_TITLE_SIZE = 22
_SUBTITLE_SIZE = 11
_HEADING_SIZE = 14
_BODY_SIZE = 11
_LINE_HEIGHT = 18
_PAGE_WIDTH = 595
_PAGE_HEIGHT = 842
_MARGIN_X = 50
_MARGIN_TOP = 60
_MARGIN_BOTTOM = 60
_META_COLOR = (0.35, 0.35, 0.35)
_TEXT_COLOR = (0.1, 0.1, 0.1)
_RULE_COLOR = (0.75, 0.75, 0.75)
_ALERT_COLOR = (0.6, 0.15, 0.1)

REPORT_TITLE = "Post-Visit Summary"


def _format_ts(ts: float | None) -> str:
    if ts is None:
        return "N/A"
    return datetime.fromtimestamp(ts).strftime("%Y-%m-%d %H:%M")


def _prescription_lines(record: VisitRecord) -> list[str]:
    lines = []
    for item in record.prescriptions:
        details = ", ".join(part for part in (item.dosage, item.duration) if part)
        lines.append(f"{item.drug} ({details})" if details else item.drug)
    return lines or ["No prescriptions recorded."]


def _finding_lines(record: VisitRecord) -> list[str]:
    check = record.safety_check
    lines = [f"[{r.severity}] {r.description}: {' + '.join(r.drugs)}" for r in check.risks]
    lines.extend(f"{i.drug}: {i.interaction}" for i in check.interactions)
    return lines


def _build_sections(record: VisitRecord) -> list[tuple[str, list[str]]]:
    sections: list[tuple[str, list[str]]] = [
        ("Clinician Note", [record.clinician_note]),
        ("Patient Follow-up", [record.patient_follow_up]),
        ("Prescriptions", _prescription_lines(record)),
    ]
    findings = _finding_lines(record)
    if findings:
        sections.append(("Safety Findings", findings))
    if record.patient_history:
        sections.append(("Patient Medication History", [", ".join(record.patient_history)]))
    return sections


def _draw_wrapped_text(
    page: fitz.Page,
    text: str,
    x: float,
    y: float,
    width: float,
    fontsize: int,
    fontname: str,
    *,
    align: int = 0,
    color: tuple[float, float, float] = _TEXT_COLOR,
) -> float:
    rect = fitz.Rect(x, y, x + width, _PAGE_HEIGHT - _MARGIN_BOTTOM)
    overflow = page.insert_textbox(rect, text, fontsize=fontsize, fontname=fontname, align=align, color=color)
    used_height = (rect.height - overflow) if overflow >= 0 else rect.height
    return max(_LINE_HEIGHT, used_height)


def _pick_font(primary: str, probe: str, fallback: str) -> str:
    try:
        _ = fitz.get_text_length(probe, fontname=primary, fontsize=_BODY_SIZE)
        return primary
    except Exception:
        logger.warning("[report_pdf] font %s unavailable, using %s", primary, fallback)
        return fallback


def build_visit_summary_pdf_bytes(record: VisitRecord) -> bytes:
    sections = _build_sections(record)
    has_findings = bool(record.safety_check.risks or record.safety_check.interactions)

    doc = fitz.open()
    page = doc.new_page(width=_PAGE_WIDTH, height=_PAGE_HEIGHT)
    y = _MARGIN_TOP
    text_width = _PAGE_WIDTH - _MARGIN_X * 2

    title_font = _pick_font("Times-Bold", "Title", "helv")
    heading_font = _pick_font("Times-Bold", "Heading", "helv")
    body_font = _pick_font("Times-Roman", "Body", "helv")
    meta_font = _pick_font("Helvetica", "Meta", body_font)

    def ensure_space(need: float) -> None:
        nonlocal page, y
        if y + need <= _PAGE_HEIGHT - _MARGIN_BOTTOM:
            return
        page = doc.new_page(width=_PAGE_WIDTH, height=_PAGE_HEIGHT)
        y = _MARGIN_TOP

    ensure_space(80)
    y += _draw_wrapped_text(page, REPORT_TITLE, _MARGIN_X, y, text_width, _TITLE_SIZE, title_font)
    y += 10
    meta = (
        f"Session: {record.session_id}    Visit: {_format_ts(record.start_time)} - {_format_ts(record.end_time)}"
        f"    Generated: {_format_ts(record.created_at)}"
    )
    y += _draw_wrapped_text(page, meta, _MARGIN_X, y, text_width, _SUBTITLE_SIZE, meta_font, color=_META_COLOR)
    y += 8
    page.draw_line(fitz.Point(_MARGIN_X, y), fitz.Point(_PAGE_WIDTH - _MARGIN_X, y), color=_RULE_COLOR, width=0.8)
    y += 14

    for section_title, items in sections:
        ensure_space(60)
        heading_color = _ALERT_COLOR if section_title == "Safety Findings" and has_findings else _TEXT_COLOR
        y += _draw_wrapped_text(page, section_title, _MARGIN_X, y, text_width, _HEADING_SIZE, heading_font, color=heading_color)
        y += 6
        page.draw_line(fitz.Point(_MARGIN_X, y), fitz.Point(_PAGE_WIDTH - _MARGIN_X, y), color=_RULE_COLOR, width=0.6)
        y += 6
        bulleted = len(items) > 1 or section_title in {"Prescriptions", "Safety Findings"}
        for item in items:
            ensure_space(40)
            text = f"- {item}" if bulleted else item
            y += _draw_wrapped_text(page, text, _MARGIN_X + 8, y, text_width - 8, _BODY_SIZE, body_font)
        y += 12

    for i, p in enumerate(doc, start=1):
        p.insert_textbox(
            fitz.Rect(_MARGIN_X, _PAGE_HEIGHT - 34, _PAGE_WIDTH - _MARGIN_X, _PAGE_HEIGHT - 18),
            f"Page {i} of {doc.page_count}",
            fontsize=9,
            fontname=meta_font,
            align=1,
            color=_META_COLOR,
        )

    page_count = doc.page_count
    buffer = BytesIO()
    doc.save(buffer)
    doc.close()
    logger.info("[report_pdf] built summary session_id=%s pages=%s", record.session_id, page_count)
    return buffer.getvalue()
