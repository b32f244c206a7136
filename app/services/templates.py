# backend-server/app/services/templates.py
"""
Template variants and loading.

A template reference is either empty (no template), a URL, or a path under
``settings.TEMPLATE_DIR``. URLs must point at one of
``settings.TEMPLATE_ALLOWED_HOSTS``. The file extension picks the variant:
``.txt`` is a plain-text placeholder template, ``.docx`` a rich document and
``.pdf`` a fillable PDF form.
"""
import logging
import zipfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path, PurePosixPath
from typing import Dict, List, Optional
from urllib.parse import urlparse

import httpx
from docx import Document
from docx.opc.exceptions import PackageNotFoundError
from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError

from app.core.config import settings
from app.core.errors import RenderError, TemplateFormatError, TemplateLoadError
from app.services import rendering, weeks
from app.services.binder import ParameterMap, format_hours

logger = logging.getLogger(__name__)

RICH_DOCUMENT_PARAMETERS = [
    "userName", "userCompany", "currentDate", "weekNumber", "weekYear",
    "weekDateRange", "totalHours", "avgHoursPerDay",
] + [f"{key}.{part}" for _day, key, _label in weeks.WEEKDAYS for part in ("activities", "hours")]


def extract_placeholders(text: str) -> List[str]:
    """Distinct ``{name}`` placeholders in order of first appearance."""
    seen = {}
    for match in rendering.PLACEHOLDER_RE.finditer(text):
        seen.setdefault(match.group(1), None)
    return list(seen)


class Template(ABC):
    kind = "none"

    @abstractmethod
    def parameters(self) -> List[str]:
        """Parameter names the template declares."""

    @abstractmethod
    def render_docx(self, params: ParameterMap) -> bytes:
        """Rich-document output for the bound parameters."""


@dataclass
class NoTemplate(Template):
    kind = "none"
    source: Optional[str] = None

    def parameters(self) -> List[str]:
        return list(RICH_DOCUMENT_PARAMETERS)

    def render_docx(self, params: ParameterMap) -> bytes:
        return rendering.render_report_docx(params)


@dataclass
class PlainTextTemplate(Template):
    source: str
    text: str
    kind = "text"

    def parameters(self) -> List[str]:
        return extract_placeholders(self.text)

    def render_docx(self, params: ParameterMap) -> bytes:
        return rendering.render_text_template(self.text, params)


@dataclass
class RichDocumentTemplate(Template):
    """
    An uploaded DOCX. Its structure is not introspected: it is assumed to use
    the standard parameter vocabulary, and output is synthesized fresh rather
    than written into the uploaded file.
    """
    source: str
    content: bytes = field(repr=False)
    kind = "docx"

    def parameters(self) -> List[str]:
        return list(RICH_DOCUMENT_PARAMETERS)

    def render_docx(self, params: ParameterMap) -> bytes:
        return rendering.render_report_docx(params)


# Form field names, first match wins
FORM_FIELD_ALIASES = {
    "name": ("name", "full_name", "azubi_name"),
    "company": ("company", "unternehmen", "firma"),
    "week": ("week", "kalenderwoche", "kw"),
    "date": ("date", "datum", "erstellt_am"),
    "total": ("gesamtstunden", "total_hours", "wochenstunden"),
}


def _first_field(fields: List[str], *candidates: str) -> Optional[str]:
    return next((name for name in candidates if name in fields), None)


def form_values(params: ParameterMap, fields: List[str]) -> Dict[str, str]:
    """
    Maps a bound report onto the AcroForm fields present in ``fields``.

    Per weekday (``montag`` .. ``freitag``) the first activity goes into
    ``<day>_taetigkeit``, the n-th into ``<day>_taetigkeit_<n>``, the hours
    into ``<day>_stunden``. Fields the form does not have are skipped.
    """
    values: Dict[str, str] = {}

    def put(value: str, *candidates: str) -> None:
        name = _first_field(fields, *candidates)
        if name is not None:
            values[name] = value

    put(params.get("userName", ""), *FORM_FIELD_ALIASES["name"])
    if params.get("userCompany"):
        put(params["userCompany"], *FORM_FIELD_ALIASES["company"])
    put(f"KW {params['weekNumber']}/{params['weekYear']}", *FORM_FIELD_ALIASES["week"])
    put(params.get("currentDate", ""), *FORM_FIELD_ALIASES["date"])
    put(f"{format_hours(params.get('totalHours', 0))}h", *FORM_FIELD_ALIASES["total"])

    for _day, key, label in weeks.WEEKDAYS:
        day_name = label.lower()
        day = params.get(key, {})
        for index, text in enumerate(day.get("activities", []), 1):
            if index == 1:
                put(text, f"{day_name}_taetigkeit", f"{day_name}_haupttaetigkeit")
            else:
                put(text, f"{day_name}_taetigkeit_{index}", f"{day_name}_zusaetzlich_{index}")
        put(f"{format_hours(day.get('hours', 0))}h", f"{day_name}_stunden", f"{day_name}_zeit")
    return values


@dataclass
class PdfFormTemplate(Template):
    """
    A PDF with AcroForm text fields. PDF exports fill the fields in place;
    rich-document exports fall back to the synthesized report layout.
    """
    source: str
    content: bytes = field(repr=False)
    fields: List[str] = field(default_factory=list)
    kind = "pdf"

    def parameters(self) -> List[str]:
        return list(self.fields)

    def render_docx(self, params: ParameterMap) -> bytes:
        return rendering.render_report_docx(params)

    def fill_form(self, params: ParameterMap) -> bytes:
        values = form_values(params, self.fields)
        logger.info("Filling %d of %d form fields in %s", len(values), len(self.fields), self.source)
        try:
            writer = PdfWriter(clone_from=PdfReader(BytesIO(self.content)))
            for page in writer.pages:
                if "/Annots" in page:
                    writer.update_page_form_field_values(page, values)
            buffer = BytesIO()
            writer.write(buffer)
        except Exception as e:
            raise RenderError(f"Could not fill PDF form: {e}", source=self.source) from e
        return buffer.getvalue()


def template_extension(reference: str) -> str:
    path = urlparse(reference).path if is_url(reference) else reference
    return PurePosixPath(path.replace("\\", "/")).suffix.lower()


def is_url(reference: str) -> bool:
    return urlparse(reference).scheme in ("http", "https")


def host_allowed(url: str) -> bool:
    host = (urlparse(url).hostname or "").lower()
    return any(
        host == allowed or host.endswith("." + allowed)
        for allowed in (h.lower().strip(".") for h in settings.TEMPLATE_ALLOWED_HOSTS)
    )


async def fetch_template_bytes(reference: str, client: Optional[httpx.AsyncClient] = None) -> bytes:
    if is_url(reference):
        return await _fetch_url(reference, client)
    return _read_local(reference)


async def _fetch_url(url: str, client: Optional[httpx.AsyncClient]) -> bytes:
    if not host_allowed(url):
        raise TemplateLoadError(f"Template host '{urlparse(url).hostname}' is not allowed", source=url)
    logger.info("Fetching template %s", url)
    owns_client = client is None
    client = client or httpx.AsyncClient()
    try:
        response = await client.get(url, timeout=settings.TEMPLATE_FETCH_TIMEOUT)
        response.raise_for_status()
        return response.content
    except httpx.HTTPStatusError as http_err:
        raise TemplateLoadError(
            f"Template request failed with status {http_err.response.status_code}", source=url
        ) from http_err
    except httpx.RequestError as e:
        raise TemplateLoadError(f"Template request failed: {e}", source=url) from e
    finally:
        if owns_client:
            await client.aclose()


def _read_local(reference: str) -> bytes:
    root = Path(settings.TEMPLATE_DIR).resolve()
    path = (root / reference.lstrip("/")).resolve()
    if root not in path.parents:
        raise TemplateLoadError("Template path escapes the template directory", source=reference)
    logger.info("Reading template %s", path)
    try:
        return path.read_bytes()
    except OSError as e:
        raise TemplateLoadError(f"Could not read template: {e.strerror or e}", source=reference) from e


async def load_template(reference: Optional[str], client: Optional[httpx.AsyncClient] = None) -> Template:
    """
    Resolves a reference to a template variant.

    Raises TemplateLoadError when the resource cannot be fetched and
    TemplateFormatError when it is not a usable template.
    """
    if not reference:
        return NoTemplate()

    extension = template_extension(reference)
    if extension not in (".txt", ".docx", ".pdf"):
        raise TemplateFormatError(f"Unsupported template type '{extension or reference}'", source=reference)

    content = await fetch_template_bytes(reference, client)

    if extension == ".txt":
        try:
            return PlainTextTemplate(source=reference, text=content.decode("utf-8-sig"))
        except UnicodeDecodeError as e:
            raise TemplateFormatError("Text template is not valid UTF-8", source=reference) from e

    if len(content) < settings.TEMPLATE_MIN_BYTES:
        raise TemplateFormatError(
            f"Template is too small to be a document ({len(content)} bytes)", source=reference
        )
    if extension == ".pdf":
        return _load_pdf_form(reference, content)
    try:
        Document(BytesIO(content))
    except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError) as e:
        raise TemplateFormatError(f"Template is not a valid DOCX document: {e}", source=reference) from e
    return RichDocumentTemplate(source=reference, content=content)


def _load_pdf_form(reference: str, content: bytes) -> PdfFormTemplate:
    try:
        fields = PdfReader(BytesIO(content)).get_fields() or {}
    except (PyPdfError, KeyError, ValueError) as e:
        raise TemplateFormatError(f"Template is not a valid PDF document: {e}", source=reference) from e
    if not fields:
        raise TemplateFormatError("PDF template has no form fields", source=reference)
    return PdfFormTemplate(source=reference, content=content, fields=list(fields))
