from __future__ import annotations
from datetime import date
from io import BytesIO
from typing import List
from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import ListFlowable, ListItem, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle
from models import PlanEntry
from planner import plan_total

PLAN_TABLE_STYLE = TableStyle([
    ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
    ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
    ("BACKGROUND", (0, -1), (-1, -1), colors.whitesmoke),
    ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
    ("ALIGN", (2, 1), (2, -1), "RIGHT"),
])


def _plan_table(plan: List[PlanEntry]) -> Table:
    rows = [["#", "Subject", "Minutes", "Why"]]
    rows += [
        [str(i), entry.subject, str(entry.minutes), entry.reason or ""]
        for i, entry in enumerate(plan, start=1)
    ]
    rows.append(["", "Total", str(plan_total(plan)), ""])
    table = Table(rows, hAlign="LEFT", colWidths=[30, 200, 60, 150])
    table.setStyle(PLAN_TABLE_STYLE)
    return table


def plan_to_pdf(plan: List[PlanEntry], tips: List[str], generated_on: date) -> bytes:
    """Printable one-page summary of a plan with its study tips."""
    buf = BytesIO()
    doc = SimpleDocTemplate(buf, pagesize=letter, leftMargin=40, rightMargin=40, topMargin=40, bottomMargin=40)
    styles = getSampleStyleSheet()

    elems = [
        Paragraph(f"Today's study plan ({generated_on.strftime('%A, %Y-%m-%d')})", styles["Title"]),
        Paragraph(f"{plan_total(plan)} minutes across {len(plan)} subject(s)", styles["Normal"]),
        Spacer(1, 12),
        _plan_table(plan),
    ]

    if tips:
        elems += [
            Spacer(1, 12),
            Paragraph("Study tips", styles["Heading3"]),
            ListFlowable(
                [ListItem(Paragraph(tip, styles["Normal"])) for tip in tips],
                bulletType="bullet",
            ),
        ]

    doc.build(elems)
    return buf.getvalue()
