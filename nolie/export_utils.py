import csv
import io
from typing import Iterable

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Table, TableStyle

from .models import AnalysisReport


def reports_to_csv(reports: Iterable[AnalysisReport]) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(
        [
            "id",
            "created_at",
            "file_name",
            "file_type",
            "file_size",
            "plagiarism_score",
            "forgery_detected",
            "privacy_issues_count",
            "risk_level",
        ]
    )
    for r in reports:
        writer.writerow(
            [
                r.id,
                r.created_at.isoformat() if r.created_at else "",
                r.file_name,
                r.file_type,
                r.file_size,
                f"{r.plagiarism_score:.4f}",
                r.forgery_detected,
                r.privacy_issues_count,
                r.risk_level,
            ]
        )
    return output.getvalue()


def reports_to_pdf(reports: Iterable[AnalysisReport], title: str = "NoLie AI") -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=letter)
    styles = getSampleStyleSheet()

    elements = [Paragraph(f"{title} Analysis History", styles["Heading1"])]

    table_data = [["ID", "Created", "File", "Plagiarism", "Forgery", "PII", "Risk"]]
    for r in reports:
        name = r.file_name[:40] + ("..." if len(r.file_name) > 40 else "")
        table_data.append(
            [
                str(r.id),
                r.created_at.strftime("%Y-%m-%d %H:%M") if r.created_at else "",
                name,
                f"{round(r.plagiarism_score * 100)}%",
                "yes" if r.forgery_detected else "no",
                str(r.privacy_issues_count),
                r.risk_level,
            ]
        )

    table = Table(table_data, repeatRows=1)
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.black),
                ("ALIGN", (0, 0), (-1, -1), "LEFT"),
                ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
                ("BOTTOMPADDING", (0, 0), (-1, 0), 6),
            ]
        )
    )

    elements.append(table)
    doc.build(elements)
    buffer.seek(0)
    return buffer.getvalue()
