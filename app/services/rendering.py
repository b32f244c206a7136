# backend-server/app/services/rendering.py
"""
Rich-document (DOCX) rendering.

Text templates are filled by placeholder substitution, cut into semantic
blocks and emitted as styled paragraphs. Rich-document templates are not
edited in place: a new document is synthesized from the parameter map with
the same block styles.
"""
import base64
import binascii
import logging
import re
from dataclasses import dataclass
from io import BytesIO
from typing import Any, Iterable, List, Optional

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Cm, Pt, RGBColor

from app.core.errors import RenderError
from app.services import weeks
from app.services.binder import ParameterMap, format_hours

logger = logging.getLogger(__name__)

PLACEHOLDER_RE = re.compile(r"\{\s*([^{}\s]+)\s*\}")
HEADING_RE = re.compile(r"^[A-ZÄÖÜ][A-ZÄÖÜß0-9 /&-]{2,}:?$")
BULLET_RE = re.compile(r"^[•\-\*]\s+(.*)$")
FIELD_RE = re.compile(r"^([^:]{1,40}):(?:\s+(.*))?$")
DATA_URL_RE = re.compile(r"^data:image/[\w.+-]+;base64,(.+)$", re.DOTALL)

BULLET = "•"
SIGNATURE_LINE = "____________________"


@dataclass(frozen=True)
class Block:
    kind: str  # title | heading | field | bullet | text | spacer
    text: str = ""
    label: str = ""


# --- Placeholder substitution ---

def format_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Ja" if value else "Nein"
    if isinstance(value, float):
        return format_hours(value)
    if isinstance(value, (list, tuple)):
        return "\n".join(f"{BULLET} {format_value(item)}" for item in value)
    return str(value)


def resolve_path(params: ParameterMap, path: str) -> Any:
    """Looks up ``monday.hours``-style paths. Raises KeyError when absent."""
    value: Any = params
    for part in path.split("."):
        if not isinstance(value, dict) or part not in value:
            raise KeyError(path)
        value = value[part]
    return value


def substitute(text: str, params: ParameterMap) -> str:
    """
    Replaces ``{key}`` and ``{key.nested}`` placeholders. Lists become
    bullet lines; unknown placeholders and bare object references stay as
    they are.
    """
    def replace(match: re.Match) -> str:
        try:
            value = resolve_path(params, match.group(1))
        except KeyError:
            return match.group(0)
        if isinstance(value, dict):
            return match.group(0)
        return format_value(value)

    return PLACEHOLDER_RE.sub(replace, text)


# --- Block segmentation ---

def segment(text: str) -> List[Block]:
    blocks: List[Block] = []
    seen_title = False
    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            if blocks and blocks[-1].kind != "spacer":
                blocks.append(Block("spacer"))
            continue
        if not seen_title:
            blocks.append(Block("title", line))
            seen_title = True
            continue
        if HEADING_RE.match(line):
            blocks.append(Block("heading", line.rstrip(":")))
            continue
        bullet = BULLET_RE.match(line)
        if bullet:
            blocks.append(Block("bullet", bullet.group(1).strip()))
            continue
        field = FIELD_RE.match(line)
        if field:
            blocks.append(Block("field", (field.group(2) or "").strip(), label=field.group(1).strip()))
            continue
        blocks.append(Block("text", line))
    while blocks and blocks[-1].kind == "spacer":
        blocks.pop()
    return blocks


def report_blocks(params: ParameterMap) -> List[Block]:
    """Standard layout of a bound report: header, five weekdays, summary, signatures."""
    blocks = [
        Block("title", "Wochenbericht"),
        Block("field", params.get("userName", ""), label="Name"),
    ]
    if params.get("userCompany"):
        blocks.append(Block("field", params["userCompany"], label="Unternehmen"))
    blocks += [
        Block("field", f"{params.get('weekNumber', '')}/{params.get('weekYear', '')}", label="Kalenderwoche"),
        Block("field", params.get("weekDateRange", ""), label="Zeitraum"),
        Block("field", params.get("currentDate", ""), label="Erstellt am"),
        Block("spacer"),
    ]
    for _day, key, label in weeks.WEEKDAYS:
        day = params.get(key, {})
        blocks.append(Block("heading", label.upper()))
        if day.get("date"):
            blocks.append(Block("field", day["date"], label="Datum"))
        blocks.append(Block("field", f"{format_hours(day.get('hours', 0))}h", label="Stunden"))
        activities = day.get("activities", [])
        if activities:
            blocks += [Block("bullet", text) for text in activities]
        else:
            blocks.append(Block("text", "Keine Tätigkeiten"))
        blocks.append(Block("spacer"))
    blocks += [
        Block("heading", "ZUSAMMENFASSUNG"),
        Block("field", f"{format_hours(params.get('totalHours', 0))}h", label="Gesamtstunden der Woche"),
        Block("field", f"{format_hours(params.get('avgHoursPerDay', 0))}h", label="Durchschnitt pro Tag"),
        Block("spacer"),
        Block("heading", "UNTERSCHRIFTEN"),
        Block("field", params.get("traineeSignature") or SIGNATURE_LINE, label="Unterschrift Azubi"),
        Block("field", params.get("trainerSignature") or SIGNATURE_LINE, label="Unterschrift Ausbilder"),
    ]
    return blocks


def decode_signature_image(value: Optional[str]) -> Optional[bytes]:
    """Returns the image bytes of a ``data:image/...;base64,`` signature, else None."""
    if not value:
        return None
    match = DATA_URL_RE.match(value)
    if not match:
        return None
    try:
        return base64.b64decode(match.group(1), validate=True)
    except (binascii.Error, ValueError):
        logger.warning("Ignoring signature with invalid base64 payload")
        return None


# --- DOCX output ---

class DocxBuilder:
    """Emits blocks as styled paragraphs of a fresh A4 document."""

    PRIMARY_COLOR = RGBColor(0, 51, 102)
    SECONDARY_COLOR = RGBColor(51, 51, 51)

    def __init__(self, title: str = "Wochenbericht"):
        self.document = Document()
        self.document.core_properties.title = title
        self.document.core_properties.author = "Berichtsheft"
        self._setup_page_layout()

    def _setup_page_layout(self):
        section = self.document.sections[0]
        section.page_width = Cm(21)
        section.page_height = Cm(29.7)
        section.top_margin = Cm(2)
        section.bottom_margin = Cm(2)
        section.left_margin = Cm(2.5)
        section.right_margin = Cm(2)

        normal = self.document.styles["Normal"]
        normal.font.name = "Arial"
        normal.font.size = Pt(11)

    def add_blocks(self, blocks: Iterable[Block]) -> "DocxBuilder":
        for block in blocks:
            getattr(self, f"_add_{block.kind}")(block)
        return self

    def _add_title(self, block: Block):
        p = self.document.add_paragraph()
        p.alignment = WD_ALIGN_PARAGRAPH.CENTER
        p.paragraph_format.space_after = Pt(18)
        run = p.add_run(block.text)
        run.font.size = Pt(18)
        run.font.bold = True
        run.font.color.rgb = self.PRIMARY_COLOR

    def _add_heading(self, block: Block):
        p = self.document.add_paragraph()
        p.paragraph_format.space_before = Pt(12)
        p.paragraph_format.space_after = Pt(4)
        p.paragraph_format.keep_with_next = True
        run = p.add_run(block.text)
        run.font.size = Pt(13)
        run.font.bold = True
        run.font.color.rgb = self.PRIMARY_COLOR

    def _add_field(self, block: Block):
        p = self.document.add_paragraph()
        p.paragraph_format.space_after = Pt(2)
        label = p.add_run(f"{block.label}: ")
        label.font.bold = True
        label.font.color.rgb = self.SECONDARY_COLOR
        image = decode_signature_image(block.text)
        if image is not None:
            p.add_run().add_picture(BytesIO(image), height=Cm(1.5))
        else:
            p.add_run(block.text)

    def _add_bullet(self, block: Block):
        p = self.document.add_paragraph(style="List Bullet")
        p.paragraph_format.space_after = Pt(2)
        p.add_run(block.text)

    def _add_text(self, block: Block):
        self.document.add_paragraph(block.text)

    def _add_spacer(self, block: Block):
        self.document.add_paragraph()

    def to_bytes(self) -> bytes:
        buffer = BytesIO()
        self.document.save(buffer)
        return buffer.getvalue()


def render_text_template(text: str, params: ParameterMap) -> bytes:
    """Fills a plain-text template and lays it out as a DOCX document."""
    filled = substitute(text, params)
    try:
        return DocxBuilder().add_blocks(segment(filled)).to_bytes()
    except Exception as e:
        raise RenderError(f"Could not render text template: {e}") from e


def render_report_docx(params: ParameterMap) -> bytes:
    """Synthesizes a new DOCX document from the bound parameters."""
    try:
        return DocxBuilder().add_blocks(report_blocks(params)).to_bytes()
    except Exception as e:
        raise RenderError(f"Could not render report document: {e}") from e
