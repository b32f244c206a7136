# backend-server/app/services/pdf.py
"""
PDF output.

- render_standard_pdf: direct layout from the report records, used when no
  template is involved and as the fallback of every template failure.
- render_plain_pdf: paragraphs only, used when the standard layout itself fails.
- render_parameters_pdf: the same reading order, built from a bound
  parameter map (template exports).
- render_logbook_pdf: table-based "Berichtsheft" sheet.
- render_combined_pdf: all reports of a trainee in one file.
"""
import logging
import textwrap
from dataclasses import dataclass
from datetime import datetime
from io import BytesIO
from typing import List, Sequence
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import cm
from reportlab.lib.utils import ImageReader
from reportlab.platypus import (
    Image, KeepTogether, PageBreak, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle,
)

from app.core.config import settings
from app.db import models
from app.services import weeks
from app.services.binder import ParameterMap, activities_by_day, format_hours, minutes_by_day, total_hours
from app.services.rendering import SIGNATURE_LINE, decode_signature_image

logger = logging.getLogger(__name__)

STATUS_LABELS = {
    models.ReportStatus.DRAFT.value: "Entwurf",
    models.ReportStatus.SUBMITTED.value: "Eingereicht",
    models.ReportStatus.APPROVED.value: "Genehmigt",
    models.ReportStatus.REJECTED.value: "Abgelehnt",
    models.ReportStatus.NEEDS_CORRECTION.value: "Korrektur erforderlich",
}

DAY_HEADER_COLOR = colors.HexColor("#d9e8fb")
LOGBOOK_MIN_ROWS = 5
# Table rows cannot split across pages, so long cell texts are cut into rows of this size
LOGBOOK_CELL_CHARS = 400
HEADER_CELL_CHARS = 120
SIGNATURE_MAX_WIDTH = 7 * cm
SIGNATURE_HEIGHT = 1.5 * cm


@dataclass
class ReportBundle:
    """A report with everything needed to print it."""
    report: models.Report
    activities: Sequence[models.Activity]
    day_hours: Sequence[models.DayHours]
    user: models.User


def _styles():
    styles = getSampleStyleSheet()
    styles.add(ParagraphStyle(name="ReportTitle", parent=styles["Title"], fontSize=20, leading=24, spaceAfter=12))
    styles.add(ParagraphStyle(name="ReportSubtitle", parent=styles["Normal"], fontSize=13, leading=16, spaceAfter=10))
    styles.add(ParagraphStyle(name="Meta", parent=styles["Normal"], fontSize=10, leading=13))
    styles.add(ParagraphStyle(name="DayHeader", parent=styles["Normal"], fontName="Helvetica-Bold", fontSize=12, leading=15))
    styles.add(ParagraphStyle(name="ActivityText", parent=styles["Normal"], fontSize=10, leading=13, leftIndent=0.8 * cm, spaceAfter=3))
    styles.add(ParagraphStyle(name="Summary", parent=styles["Normal"], fontName="Helvetica-Bold", fontSize=11, leading=14, spaceBefore=6))
    styles.add(ParagraphStyle(name="Cell", parent=styles["Normal"], fontSize=9, leading=11))
    styles.add(ParagraphStyle(name="LogbookTitle", parent=styles["Normal"], fontName="Helvetica-Bold", fontSize=18, leading=22, alignment=TA_CENTER, spaceAfter=16))
    return styles


def _text(value) -> str:
    return escape(str(value if value is not None else ""))


def _clip(value, limit: int) -> str:
    text = str(value if value is not None else "")
    return text if len(text) <= limit else text[: limit - 1] + "…"


def _chunks(text: str, size: int = LOGBOOK_CELL_CHARS) -> List[str]:
    return textwrap.wrap(text, width=size, break_long_words=True) or [""]


def _add_page_number(canvas, doc):
    canvas.saveState()
    canvas.setFont("Helvetica", 9)
    canvas.drawRightString(A4[0] - 2 * cm, 1.2 * cm, f"Seite {canvas.getPageNumber()}")
    canvas.restoreState()


def _build(story: List, title: str) -> bytes:
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer, pagesize=A4, title=title,
        leftMargin=2 * cm, rightMargin=2 * cm, topMargin=2 * cm, bottomMargin=2 * cm,
    )
    doc.build(story, onFirstPage=_add_page_number, onLaterPages=_add_page_number)
    return buffer.getvalue()


def _signature_flowable(value: str, styles):
    image = decode_signature_image(value)
    if image is not None:
        try:
            width, height = ImageReader(BytesIO(image)).getSize()
        except (OSError, ValueError) as e:
            logger.warning("Signature image could not be read, printing a blank line: %s", e)
            return Paragraph(SIGNATURE_LINE, styles["Meta"])
        if not width or not height:
            return Paragraph(SIGNATURE_LINE, styles["Meta"])
        scale = min(SIGNATURE_HEIGHT / height, SIGNATURE_MAX_WIDTH / width)
        return Image(BytesIO(image), width=width * scale, height=height * scale)
    text = _clip(value, settings.SIGNATURE_TEXT_MAX_CHARS) if value else SIGNATURE_LINE
    return Paragraph(_text(text), styles["Meta"])


def _signature_table(trainee: str, trainer: str, styles) -> Table:
    table = Table(
        [
            [Paragraph("Unterschrift Azubi:", styles["Meta"]), _signature_flowable(trainee, styles)],
            [Paragraph("Unterschrift Ausbilder:", styles["Meta"]), _signature_flowable(trainer, styles)],
        ],
        colWidths=[4.5 * cm, None], hAlign="LEFT",
    )
    table.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "BOTTOM"), ("TOPPADDING", (0, 0), (-1, -1), 10)]))
    return table


def _day_header(label: str, hours_text: str, styles) -> Table:
    table = Table(
        [[Paragraph(_text(label), styles["DayHeader"]), Paragraph(_text(hours_text), styles["DayHeader"])]],
        colWidths=[None, 3 * cm],
    )
    table.setStyle(TableStyle([
        ("ALIGN", (1, 0), (1, 0), "RIGHT"),
        ("LINEBELOW", (0, 0), (-1, 0), 0.5, colors.grey),
        ("LEFTPADDING", (0, 0), (-1, -1), 0),
    ]))
    return table


def _report_story(bundle: ReportBundle, styles) -> List:
    report, user = bundle.report, bundle.user
    texts = activities_by_day(bundle.activities)
    minutes = minutes_by_day(bundle.day_hours)

    story = [
        Paragraph("Ausbildungsnachweis", styles["ReportTitle"]),
        Paragraph(f"Kalenderwoche {report.week_number}/{report.week_year}", styles["ReportSubtitle"]),
        Paragraph(f"Auszubildende/r: {_text(user.display_name)}", styles["Meta"]),
    ]
    if user.company:
        story.append(Paragraph(f"Unternehmen: {_text(user.company)}", styles["Meta"]))
    story += [
        Paragraph(f"Zeitraum: {weeks.format_week_range(report.week_year, report.week_number)}", styles["Meta"]),
        Paragraph(f"Erstellt am: {weeks.format_date(report.created_at)}", styles["Meta"]),
        Paragraph(f"Status: {STATUS_LABELS.get(report.status, report.status)}", styles["Meta"]),
        Spacer(1, 0.6 * cm),
    ]

    for day_of_week, _key, label in weeks.WEEKDAYS:
        hours_text = f"{format_hours(minutes[day_of_week] / 60)}h" if day_of_week in minutes else ""
        day_flow = [_day_header(label, hours_text, styles), Spacer(1, 0.15 * cm)]
        day_texts = texts.get(day_of_week, [])
        if day_texts:
            day_flow += [Paragraph(_text(text), styles["ActivityText"]) for text in day_texts]
        else:
            day_flow.append(Paragraph("Keine Tätigkeiten", styles["ActivityText"]))
        # Keep a day's header with its first line of text
        story.append(KeepTogether(day_flow[:3]))
        story += day_flow[3:]
        story.append(Spacer(1, 0.4 * cm))

    story.append(Paragraph(f"Gesamtstunden: {format_hours(total_hours(bundle.day_hours))}h", styles["Summary"]))
    if report.trainee_signature or report.trainer_signature:
        story += [Spacer(1, 0.6 * cm), _signature_table(report.trainee_signature, report.trainer_signature, styles)]
    return story


def render_standard_pdf(bundle: ReportBundle) -> bytes:
    """Direct layout from the report records; needs no template."""
    story = _report_story(bundle, _styles())
    return _build(story, f"Wochenbericht KW {bundle.report.week_number}/{bundle.report.week_year}")


def render_plain_pdf(bundle: ReportBundle) -> bytes:
    """Paragraphs only, no tables or images; the last resort when the standard layout fails."""
    styles = _styles()
    report, user = bundle.report, bundle.user
    texts = activities_by_day(bundle.activities)
    minutes = minutes_by_day(bundle.day_hours)
    story = [
        Paragraph("Ausbildungsnachweis", styles["ReportTitle"]),
        Paragraph(f"Kalenderwoche {report.week_number}/{report.week_year}", styles["ReportSubtitle"]),
        Paragraph(f"Auszubildende/r: {_text(_clip(user.display_name, HEADER_CELL_CHARS))}", styles["Meta"]),
        Paragraph(f"Zeitraum: {weeks.format_week_range(report.week_year, report.week_number)}", styles["Meta"]),
        Spacer(1, 0.4 * cm),
    ]
    for day_of_week, _key, label in weeks.WEEKDAYS:
        story.append(Paragraph(f"{label}: {format_hours(minutes.get(day_of_week, 0) / 60)}h", styles["Summary"]))
        for text in texts.get(day_of_week, []):
            story += [Paragraph(_text(chunk), styles["ActivityText"]) for chunk in _chunks(text)]
    story.append(Paragraph(f"Gesamtstunden: {format_hours(total_hours(bundle.day_hours))}h", styles["Summary"]))
    return _build(story, f"Wochenbericht KW {report.week_number}/{report.week_year}")


def render_parameters_pdf(params: ParameterMap) -> bytes:
    """Prints a bound parameter map in the standard reading order."""
    styles = _styles()
    story = [
        Paragraph("Wochenbericht aus Vorlage", styles["ReportTitle"]),
        Paragraph(f"Kalenderwoche {params['weekNumber']}/{params['weekYear']}", styles["ReportSubtitle"]),
        Paragraph(f"Name: {_text(params.get('userName'))}", styles["Meta"]),
    ]
    if params.get("userCompany"):
        story.append(Paragraph(f"Unternehmen: {_text(params['userCompany'])}", styles["Meta"]))
    story += [
        Paragraph(f"Erstellt am: {_text(params.get('currentDate'))}", styles["Meta"]),
        Paragraph(f"Zeitraum: {_text(params.get('weekDateRange'))}", styles["Meta"]),
        Spacer(1, 0.6 * cm),
    ]
    for _day, key, label in weeks.WEEKDAYS:
        day = params[key]
        hours_text = f"{format_hours(day['hours'])}h" if day["hours"] else ""
        story += [_day_header(label, hours_text, styles), Spacer(1, 0.15 * cm)]
        if day["activities"]:
            story += [Paragraph(_text(text), styles["ActivityText"]) for text in day["activities"]]
        else:
            story.append(Paragraph("Keine Tätigkeiten", styles["ActivityText"]))
        story.append(Spacer(1, 0.4 * cm))
    story += [
        Paragraph("Zusammenfassung:", styles["Summary"]),
        Paragraph(f"Gesamtstunden der Woche: {format_hours(params['totalHours'])}h", styles["Meta"]),
        Paragraph(f"Durchschnitt pro Tag: {format_hours(params['avgHoursPerDay'])}h", styles["Meta"]),
        Spacer(1, 0.6 * cm),
        _signature_table(params.get("traineeSignature"), params.get("trainerSignature"), styles),
    ]
    return _build(story, f"Wochenbericht KW {params['weekNumber']}/{params['weekYear']}")


def render_logbook_pdf(params: ParameterMap) -> bytes:
    """Table-based logbook sheet: header grid, one table per weekday, summary, signatures."""
    styles = _styles()
    cell = styles["Cell"]
    grid = [
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
    ]
    blank = "_________________"

    header = Table(
        [
            ["Name:", Paragraph(_text(_clip(params.get("userName") or blank, HEADER_CELL_CHARS)), cell), "Ausbildungsberuf:", blank],
            ["Ausbildungsjahr:", "____", "Betrieb:", Paragraph(_text(_clip(params.get("userCompany") or blank, HEADER_CELL_CHARS)), cell)],
            ["Woche vom:", params.get("weekDateRange", ""), "KW:", f"{params['weekNumber']}/{params['weekYear']}"],
        ],
        colWidths=[3.2 * cm, None, 3.5 * cm, None],
    )
    header.setStyle(TableStyle(grid + [("FONTSIZE", (0, 0), (-1, -1), 9)]))
    story = [Paragraph("Berichtsheft – Wochenübersicht", styles["LogbookTitle"]), header, Spacer(1, 0.5 * cm)]

    for _day, key, label in weeks.WEEKDAYS:
        day = params[key]
        activities = day["activities"]
        rows = [
            [label, "", ""],
            ["Datum:", day.get("date", ""), f"Stunden: {format_hours(day['hours'])}h"],
        ]
        for i, text in enumerate(activities, 1):
            rows += [
                [f"Tätigkeit {i}:" if n == 0 else "", Paragraph(_text(chunk), cell), ""]
                for n, chunk in enumerate(_chunks(text))
            ]
        rows += [
            [f"Tätigkeit {i}:", "", ""]
            for i in range(len(activities) + 1, max(LOGBOOK_MIN_ROWS, len(activities)) + 1)
        ]
        table = Table(rows, colWidths=[2.6 * cm, None, 3.2 * cm])
        table.setStyle(TableStyle(grid + [
            ("SPAN", (0, 0), (-1, 0)),
            ("BACKGROUND", (0, 0), (-1, 0), DAY_HEADER_COLOR),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 9),
        ]))
        story += [table, Spacer(1, 0.3 * cm)]

    summary = Table(
        [
            ["Gesamtstunden der Woche:", f"{format_hours(params['totalHours'])}h"],
            ["Durchschnitt pro Tag:", f"{format_hours(params['avgHoursPerDay'])}h"],
        ],
        colWidths=[5 * cm, None],
    )
    summary.setStyle(TableStyle(grid + [("FONTSIZE", (0, 0), (-1, -1), 9)]))
    story += [
        Spacer(1, 0.3 * cm), summary, Spacer(1, 0.6 * cm),
        _signature_table(params.get("traineeSignature"), params.get("trainerSignature"), styles),
    ]
    return _build(story, f"Berichtsheft KW {params['weekNumber']}/{params['weekYear']}")


def render_combined_pdf(bundles: Sequence[ReportBundle], user: models.User) -> bytes:
    """Title page with an overview table, then one section per report."""
    styles = _styles()
    story = [
        Spacer(1, 2 * cm),
        Paragraph("Ausbildungsnachweise", styles["ReportTitle"]),
        Paragraph(_text(user.display_name), styles["ReportSubtitle"]),
    ]
    if user.company:
        story.append(Paragraph(_text(user.company), styles["ReportSubtitle"]))
    story += [
        Paragraph(f"Erstellt am: {weeks.format_date(datetime.now())}", styles["Meta"]),
        Spacer(1, 1 * cm),
        Paragraph("Übersicht der Wochenberichte:", styles["Summary"]),
        Spacer(1, 0.3 * cm),
    ]
    rows = [["KW", "Zeitraum", "Stunden", "Status"]]
    for bundle in bundles:
        report = bundle.report
        rows.append([
            f"KW {report.week_number}/{report.week_year}",
            weeks.format_week_range(report.week_year, report.week_number),
            f"{format_hours(total_hours(bundle.day_hours))}h",
            STATUS_LABELS.get(report.status, report.status),
        ])
    overview = Table(rows, colWidths=[3 * cm, 5 * cm, 2.5 * cm, None], hAlign="LEFT", repeatRows=1)
    overview.setStyle(TableStyle([
        ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#f3f6fb")),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 9),
    ]))
    story.append(overview)

    for bundle in bundles:
        story.append(PageBreak())
        story += _report_story(bundle, styles)
    return _build(story, f"Ausbildungsnachweise {user.display_name}")
