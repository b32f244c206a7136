# backend-server/app/services/export.py
"""
Export pipeline: template -> parameters -> bound map -> document.

Template problems never reach the caller. Any failure in the template path
produces the standard PDF instead, returned as ``Degraded`` with the reason
so the fallback stays visible.
"""
import enum
import logging
from dataclasses import dataclass, field
from typing import List, Optional

import httpx

from app.core.errors import TemplateError
from app.db import models
from app.db.models import ReportStatus
from app.services import pdf
from app.services.binder import bind_report
from app.services.lifecycle import ReportLifecycle, SessionContext
from app.services.pdf import ReportBundle
from app.services.rendering import resolve_path
from app.services.record_store import RecordStore
from app.services.templates import NoTemplate, PdfFormTemplate, Template, load_template

logger = logging.getLogger(__name__)

DOCX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PDF_MEDIA_TYPE = "application/pdf"


class ExportFormat(str, enum.Enum):
    DOCX = "docx"
    PDF = "pdf"


class PdfStyle(str, enum.Enum):
    STANDARD = "standard"
    LOGBOOK = "logbook"


@dataclass(frozen=True)
class Rendered:
    content: bytes = field(repr=False)
    filename: str
    media_type: str
    parameters: List[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return False


@dataclass(frozen=True)
class Degraded(Rendered):
    """Fallback output, produced because the requested strategy failed."""
    reason: str = ""

    @property
    def degraded(self) -> bool:
        return True


def export_filename(report: models.Report, extension: str, suffix: Optional[str] = None) -> str:
    name = f"Wochenbericht_KW{report.week_number}_{report.week_year}"
    if suffix:
        name = f"{name}_{suffix}"
    return f"{name}.{extension}"


class ExportOrchestrator:
    def __init__(self, store: RecordStore, client: Optional[httpx.AsyncClient] = None):
        self.store = store
        self.lifecycle = ReportLifecycle(store)
        self.client = client

    def load_bundle(self, report: models.Report) -> ReportBundle:
        return ReportBundle(
            report=report,
            activities=self.store.list_activities(report.id),
            day_hours=self.store.list_day_hours(report.id),
            user=self.store.get_user(report.user_id),
        )

    async def export(
        self,
        ctx: SessionContext,
        report_id: int,
        fmt: ExportFormat = ExportFormat.PDF,
        template: Optional[str] = None,
        style: PdfStyle = PdfStyle.STANDARD,
    ) -> Optional[Rendered]:
        """
        Exports one report. Returns None when the report does not exist;
        raises PermissionDenied when the caller may not see it. Every other
        failure degrades to the standard PDF.
        """
        fmt, style = ExportFormat(fmt), PdfStyle(style)
        report = self.lifecycle.get_report(ctx, report_id)
        if report is None:
            return None
        bundle = self.load_bundle(report)

        if not template and fmt is ExportFormat.PDF:
            try:
                return self._render_without_template(bundle, style)
            except Exception as e:
                logger.warning("Rendering report %s as %s PDF failed", report.id, style.value, exc_info=True)
                return self._fallback(bundle, f"Rendering failed: {e}")

        try:
            return await self._render_with_template(bundle, fmt, template, style)
        except TemplateError as e:
            logger.warning("Export of report %s falls back to the standard layout: %s", report.id, e.message)
            return self._fallback(bundle, e.message)
        except Exception as e:
            logger.warning("Rendering report %s failed, using the standard layout", report.id, exc_info=True)
            return self._fallback(bundle, f"Rendering failed: {e}")

    def export_all(self, ctx: SessionContext) -> Optional[Rendered]:
        """One PDF with every approved report of the caller. None when there is nothing to print."""
        reports = self.lifecycle.list_reports(ctx, [ReportStatus.APPROVED])
        reports = [r for r in reports if r.user_id == ctx.user_id]
        if not reports:
            return None
        reports.sort(key=lambda r: (r.week_year, r.week_number))
        bundles = [self.load_bundle(r) for r in reports]
        content = pdf.render_combined_pdf(bundles, ctx.user)
        filename = f"Alle_Wochenberichte_{'_'.join(ctx.user.display_name.split()) or ctx.user.id}.pdf"
        return Rendered(content=content, filename=filename, media_type=PDF_MEDIA_TYPE)

    def _render_without_template(self, bundle: ReportBundle, style: PdfStyle) -> Rendered:
        if style is PdfStyle.LOGBOOK:
            params = bind_report(bundle.report, bundle.activities, bundle.day_hours, bundle.user)
            return Rendered(
                content=pdf.render_logbook_pdf(params),
                filename=export_filename(bundle.report, "pdf", "Berichtsheft"),
                media_type=PDF_MEDIA_TYPE,
            )
        return Rendered(
            content=pdf.render_standard_pdf(bundle),
            filename=export_filename(bundle.report, "pdf"),
            media_type=PDF_MEDIA_TYPE,
        )

    async def _render_with_template(
        self, bundle: ReportBundle, fmt: ExportFormat, reference: Optional[str], style: PdfStyle
    ) -> Rendered:
        loaded: Template = await load_template(reference, self.client)
        declared = loaded.parameters()
        params = bind_report(bundle.report, bundle.activities, bundle.day_hours, bundle.user)
        missing = [] if isinstance(loaded, PdfFormTemplate) else [n for n in declared if not _is_bound(params, n)]
        if missing:
            logger.info("Template %s uses parameters without values: %s", loaded.source, ", ".join(missing))

        if fmt is ExportFormat.DOCX:
            suffix = None if isinstance(loaded, NoTemplate) else "Vorlage"
            return Rendered(
                content=loaded.render_docx(params),
                filename=export_filename(bundle.report, "docx", suffix),
                media_type=DOCX_MEDIA_TYPE,
                parameters=declared,
            )
        if isinstance(loaded, PdfFormTemplate):
            return Rendered(
                content=loaded.fill_form(params),
                filename=export_filename(bundle.report, "pdf", "mit_Vorlage"),
                media_type=PDF_MEDIA_TYPE,
                parameters=declared,
            )
        # Render the DOCX first so a broken template degrades before anything is printed.
        loaded.render_docx(params)
        if style is PdfStyle.LOGBOOK:
            content = pdf.render_logbook_pdf(params)
        else:
            content = pdf.render_parameters_pdf(params)
        return Rendered(
            content=content,
            filename=export_filename(bundle.report, "pdf", "mit_Vorlage"),
            media_type=PDF_MEDIA_TYPE,
            parameters=declared,
        )

    def _fallback(self, bundle: ReportBundle, reason: str) -> Degraded:
        try:
            content = pdf.render_standard_pdf(bundle)
        except Exception:
            logger.exception("Standard layout failed for report %s, printing plain text", bundle.report.id)
            content = pdf.render_plain_pdf(bundle)
        return Degraded(
            content=content,
            filename=export_filename(bundle.report, "pdf"),
            media_type=PDF_MEDIA_TYPE,
            reason=reason,
        )


def _is_bound(params: dict, path: str) -> bool:
    try:
        resolve_path(params, path)
    except KeyError:
        return False
    return True
