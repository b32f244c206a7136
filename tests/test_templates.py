"""
Template loading and parameter extraction
"""
from io import BytesIO
from pathlib import Path

import httpx
import pytest
from pypdf import PdfReader

from app.core.config import settings
from app.core.errors import TemplateFormatError, TemplateLoadError
from app.services.rendering import DocxBuilder, report_blocks
from app.services.templates import (
    RICH_DOCUMENT_PARAMETERS, NoTemplate, PdfFormTemplate, PlainTextTemplate, RichDocumentTemplate,
    Template, extract_placeholders, form_values, host_allowed, load_template, template_extension,
)
from conftest import form_pdf

BUNDLED_TEMPLATES = Path(__file__).resolve().parent.parent / "templates"


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def template_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "TEMPLATE_DIR", str(tmp_path))
    return tmp_path


def test_extract_placeholders_first_appearance():
    text = "Hallo {userName},\nKW {weekNumber}\nGruß {userName}"
    assert extract_placeholders(text) == ["userName", "weekNumber"]


def test_extract_nested_placeholders():
    assert extract_placeholders("{monday.hours}h / { totalHours }") == ["monday.hours", "totalHours"]


def test_extract_from_text_without_placeholders():
    assert extract_placeholders("Nur Text") == []


@pytest.mark.parametrize("reference, extension", [
    ("vorlage.txt", ".txt"),
    ("https://example.com/files/Vorlage.DOCX?download=1", ".docx"),
    ("ordner\\vorlage.docx", ".docx"),
    ("ohne_endung", ""),
])
def test_template_extension(reference, extension):
    assert template_extension(reference) == extension


async def test_no_reference_means_no_template():
    template = await load_template(None)
    assert isinstance(template, NoTemplate)
    assert template.parameters() == RICH_DOCUMENT_PARAMETERS


async def test_load_local_text_template(template_dir):
    (template_dir / "kurz.txt").write_text("Bericht\nName: {userName}\nKW: {weekNumber}", encoding="utf-8")

    template = await load_template("kurz.txt")

    assert isinstance(template, PlainTextTemplate)
    assert template.kind == "text"
    assert template.parameters() == ["userName", "weekNumber"]


async def test_bundled_templates_declare_parameters(monkeypatch):
    monkeypatch.setattr(settings, "TEMPLATE_DIR", str(BUNDLED_TEMPLATES))

    template = await load_template("wochenbericht_vorlage_erweitert.txt")

    params = template.parameters()
    assert params[:2] == ["userName", "userCompany"]
    assert "friday.date" in params
    assert "trainerSignature" in params


async def test_missing_local_file(template_dir):
    with pytest.raises(TemplateLoadError):
        await load_template("gibt_es_nicht.txt")


async def test_path_outside_template_dir(template_dir):
    with pytest.raises(TemplateLoadError):
        await load_template("../geheim.txt")


async def test_unsupported_extension():
    with pytest.raises(TemplateFormatError):
        await load_template("vorlage.odt")


async def test_text_template_must_be_utf8(template_dir):
    (template_dir / "latin.txt").write_bytes("Grüße {userName}".encode("latin-1"))
    with pytest.raises(TemplateFormatError):
        await load_template("latin.txt")


async def test_fetch_docx_over_http():
    content = DocxBuilder().add_blocks(report_blocks({})).to_bytes()

    def handler(request):
        return httpx.Response(200, content=content)

    async with mock_client(handler) as client:
        template = await load_template("https://example.com/vorlage.docx", client)

    assert isinstance(template, RichDocumentTemplate)
    assert template.kind == "docx"
    assert template.parameters() == RICH_DOCUMENT_PARAMETERS


async def test_http_error_status():
    def handler(request):
        return httpx.Response(404)

    async with mock_client(handler) as client:
        with pytest.raises(TemplateLoadError) as exc_info:
            await load_template("https://example.com/vorlage.docx", client)
    assert "404" in exc_info.value.message
    assert exc_info.value.source == "https://example.com/vorlage.docx"


async def test_network_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with mock_client(handler) as client:
        with pytest.raises(TemplateLoadError):
            await load_template("https://example.com/vorlage.docx", client)


async def test_tiny_document_rejected():
    def handler(request):
        return httpx.Response(200, content=b"PK\x03\x04")

    async with mock_client(handler) as client:
        with pytest.raises(TemplateFormatError):
            await load_template("https://example.com/vorlage.docx", client)


async def test_corrupt_document_rejected():
    def handler(request):
        return httpx.Response(200, content=b"kein zip " * 40)

    async with mock_client(handler) as client:
        with pytest.raises(TemplateFormatError):
            await load_template("https://example.com/vorlage.docx", client)


def test_template_base_is_abstract():
    with pytest.raises(TypeError):
        Template()


def test_text_template_requires_source_and_text():
    template = PlainTextTemplate(source="a.txt", text="{userName}")
    assert template.parameters() == ["userName"]


@pytest.mark.parametrize("url, allowed", [
    ("https://example.com/vorlage.docx", True),
    ("https://files.example.com/vorlage.docx", True),
    ("https://evil-example.com/vorlage.docx", False),
    ("http://169.254.169.254/latest/meta-data.txt", False),
])
def test_host_allowed(url, allowed):
    assert host_allowed(url) is allowed


async def test_disallowed_host_is_never_requested():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, content=b"{userName}")

    async with mock_client(handler) as client:
        with pytest.raises(TemplateLoadError):
            await load_template("http://intranet.local/vorlage.txt", client)
    assert requests == []


async def test_load_pdf_form(template_dir):
    (template_dir / "formular.pdf").write_bytes(form_pdf("name", "kalenderwoche", "montag_taetigkeit"))

    template = await load_template("formular.pdf")

    assert isinstance(template, PdfFormTemplate)
    assert template.kind == "pdf"
    assert template.parameters() == ["name", "kalenderwoche", "montag_taetigkeit"]


async def test_pdf_without_form_fields(template_dir):
    (template_dir / "leer.pdf").write_bytes(form_pdf())
    with pytest.raises(TemplateFormatError):
        await load_template("leer.pdf")


async def test_corrupt_pdf_rejected(template_dir):
    (template_dir / "kaputt.pdf").write_bytes(b"kein pdf " * 40)
    with pytest.raises(TemplateFormatError):
        await load_template("kaputt.pdf")


def test_form_values_use_first_matching_alias():
    params = {
        "userName": "Anna Schmidt", "userCompany": "Muster GmbH", "currentDate": "18.10.2024",
        "weekNumber": 42, "weekYear": 2024, "totalHours": 38.0,
        "monday": {"date": "14.10.2024", "activities": ["Kundenberatung", "Inventur"], "hours": 8.0},
    }
    fields = ["azubi_name", "firma", "kw", "montag_taetigkeit", "montag_zusaetzlich_2", "montag_stunden", "wochenstunden"]

    assert form_values(params, fields) == {
        "azubi_name": "Anna Schmidt",
        "firma": "Muster GmbH",
        "kw": "KW 42/2024",
        "montag_taetigkeit": "Kundenberatung",
        "montag_zusaetzlich_2": "Inventur",
        "montag_stunden": "8h",
        "wochenstunden": "38h",
    }


def test_fill_form_writes_values():
    template = PdfFormTemplate(source="formular.pdf", content=form_pdf("name", "gesamtstunden"), fields=["name", "gesamtstunden"])

    filled = template.fill_form({"userName": "Anna Schmidt", "weekNumber": 42, "weekYear": 2024, "totalHours": 7.5})

    values = PdfReader(BytesIO(filled)).get_form_text_fields()
    assert values["name"] == "Anna Schmidt"
    assert values["gesamtstunden"] == "7.5h"
