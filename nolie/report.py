import random
import string
import time
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from jinja2 import BaseLoader, Environment, select_autoescape

from .risk import (
    HIGH_PLAGIARISM_THRESHOLD,
    MEDIUM_PLAGIARISM_THRESHOLD,
    plagiarism_band,
    risk_for_results,
    summary_fields,
)
from .settings import get_settings

env = Environment(loader=BaseLoader(), autoescape=select_autoescape(["html", "xml"], default=True))

REPORT_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <title>{{ app_name }} Analysis Report</title>
    <style>
        body { font-family: 'Arial', sans-serif; line-height: 1.6; color: #333; max-width: 800px; margin: 0 auto; padding: 20px; background: white; }
        .header { text-align: center; border-bottom: 3px solid #7c3aed; padding-bottom: 20px; margin-bottom: 30px; }
        .logo { font-size: 28px; font-weight: bold; color: #7c3aed; margin-bottom: 10px; }
        .report-title { font-size: 24px; color: #1f2937; margin-bottom: 5px; }
        .report-date { color: #6b7280; font-size: 14px; }
        .section { margin-bottom: 30px; padding: 20px; border-left: 4px solid #7c3aed; background: #f9fafb; }
        .section-title { font-size: 20px; font-weight: bold; color: #1f2937; margin-bottom: 15px; }
        .risk-high { color: #dc2626; }
        .risk-medium { color: #d97706; }
        .risk-low { color: #059669; }
        .score-box { display: inline-block; padding: 10px 20px; border-radius: 8px; font-weight: bold; margin: 10px 0; }
        .score-high { background: #fee2e2; color: #dc2626; }
        .score-medium { background: #fef3c7; color: #d97706; }
        .score-low { background: #d1fae5; color: #059669; }
        .findings-grid { display: grid; grid-template-columns: 1fr 1fr 1fr; gap: 20px; margin: 20px 0; }
        .finding-card { padding: 15px; border: 1px solid #e5e7eb; border-radius: 8px; text-align: center; }
        .finding-value { font-size: 24px; font-weight: bold; margin-bottom: 5px; }
        .finding-label { font-size: 12px; color: #6b7280; text-transform: uppercase; }
        .matches-list, .privacy-entities { background: white; border: 1px solid #e5e7eb; border-radius: 8px; padding: 15px; margin: 15px 0; }
        .match-item { padding: 10px; border-bottom: 1px solid #f3f4f6; margin-bottom: 10px; }
        .match-text { font-style: italic; color: #374151; margin-bottom: 5px; }
        .match-source { font-size: 12px; color: #6b7280; }
        .entity-item { display: inline-block; background: #fef2f2; color: #dc2626; padding: 5px 10px; border-radius: 4px; margin: 5px; font-size: 12px; }
        .recommendations { background: #eff6ff; border: 1px solid #dbeafe; border-radius: 8px; padding: 20px; margin: 20px 0; }
        .warning { background: #fff7ed; border: 1px solid #fed7aa; border-radius: 8px; padding: 12px; margin: 10px 0; }
        .footer { text-align: center; margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 12px; }
        @media print { body { margin: 0; padding: 15px; } .section { break-inside: avoid; } }
    </style>
</head>
<body>
    <div class="header">
        <div class="logo">{{ app_name }}</div>
        <div class="report-title">Content Analysis Report</div>
        <div class="report-date">Generated on {{ generated_at.strftime("%Y-%m-%d") }} at {{ generated_at.strftime("%H:%M:%S") }}</div>
        <div class="report-date">File: {{ file_name }}</div>
    </div>

    <div class="section">
        <div class="section-title">Executive Summary</div>
        <div class="findings-grid">
            <div class="finding-card">
                <div class="finding-value risk-{{ band }}">{{ plagiarism_pct }}%</div>
                <div class="finding-label">Plagiarism Score</div>
            </div>
            <div class="finding-card">
                <div class="finding-value {{ 'risk-high' if forgery.detected else 'risk-low' }}">{{ "DETECTED" if forgery.detected else "CLEAN" }}</div>
                <div class="finding-label">Forgery Status</div>
            </div>
            <div class="finding-card">
                <div class="finding-value {{ 'risk-high' if privacy.detected else 'risk-low' }}">{{ privacy.entities | length }}</div>
                <div class="finding-label">Privacy Issues</div>
            </div>
        </div>
        <div class="score-box score-{{ risk_level | lower }}">Overall Risk Level: {{ risk_level }}</div>
        {% for section in failed_sections %}
        <div class="warning"><strong>Incomplete:</strong> {{ section }} analysis could not be completed; its figures are not a clean result.</div>
        {% endfor %}
    </div>

    <div class="section">
        <div class="section-title">Plagiarism Analysis</div>
        <p><strong>Originality Score:</strong> {{ 100 - plagiarism_pct }}%</p>
        <p><strong>Plagiarism Score:</strong> {{ plagiarism_pct }}%</p>
        {% if plagiarism.matches %}
        <div class="matches-list">
            <strong>Detected Matches:</strong>
            {% for match in plagiarism.matches %}
            <div class="match-item">
                <div class="match-text">"{{ match.text }}"</div>
                <div class="match-source">Source: {{ match.source }} ({{ percent(match.similarity) }}% similarity)</div>
            </div>
            {% endfor %}
        </div>
        {% else %}
        <p>No plagiarism matches detected.</p>
        {% endif %}
    </div>

    <div class="section">
        <div class="section-title">Document Forgery Analysis</div>
        <p><strong>Forgery Status:</strong> {{ "DETECTED" if forgery.detected else "NOT DETECTED" }}</p>
        <p><strong>Confidence Level:</strong> {{ percent(forgery.confidence) }}%</p>
        {% if forgery.detected %}
        <div class="recommendations"><strong>Warning:</strong> This document shows signs of potential manipulation or forgery. Further investigation is recommended.</div>
        {% else %}
        <div class="recommendations"><strong>Clean:</strong> No signs of document forgery or manipulation detected.</div>
        {% endif %}
    </div>

    <div class="section">
        <div class="section-title">Privacy Analysis</div>
        <p><strong>Privacy Issues Detected:</strong> {{ "YES" if privacy.detected else "NO" }}</p>
        <p><strong>Total PII Entities Found:</strong> {{ privacy.entities | length }}</p>
        {% if privacy.entities %}
        <div class="privacy-entities">
            <strong>Detected Personal Information:</strong><br>
            {% for entity in privacy.entities %}
            <span class="entity-item">{{ entity.type }}: {{ entity.text }}</span>
            {% endfor %}
        </div>
        <div class="recommendations"><strong>Privacy Risk:</strong> Personal identifiable information (PII) was detected. Consider removing or redacting sensitive information before sharing.</div>
        {% else %}
        <div class="recommendations"><strong>Privacy Safe:</strong> No personal identifiable information detected.</div>
        {% endif %}
    </div>

    <div class="section">
        <div class="section-title">Recommendations</div>
        {% for item in recommendations %}
        &bull; <strong>{{ item.title }}:</strong> {{ item.text }}<br>
        {% endfor %}
    </div>

    <div class="section">
        <div class="section-title">Technical Details</div>
        <p><strong>Analysis Engine:</strong> {{ app_name }} v1.0</p>
        <p><strong>AI Model:</strong> {{ model_name }}</p>
        <p><strong>Analysis Date:</strong> {{ analysis_date }}</p>
        <p><strong>Report ID:</strong> {{ report_id }}</p>
    </div>

    <div class="footer">
        <p>This report was generated by {{ app_name }} - Advanced Content Integrity Analysis</p>
        <p>&copy; {{ generated_at.year }} {{ app_name }}. All rights reserved.</p>
    </div>
</body>
</html>
"""

_ID_ALPHABET = string.ascii_uppercase + string.digits


def generate_report_id() -> str:
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"NL-{int(time.time() * 1000)}-{suffix}"


def _percent(value: Any) -> int:
    try:
        return round(float(value) * 100)
    except (TypeError, ValueError):
        return 0


def build_recommendations(results: Mapping[str, Any]) -> List[Dict[str, str]]:
    score, forgery_detected, privacy_count = summary_fields(results)
    items = []
    if score > HIGH_PLAGIARISM_THRESHOLD:
        items.append({
            "title": "High Plagiarism",
            "text": "Significant portions of text appear to be copied. Rewrite or properly cite sources.",
        })
    elif score > MEDIUM_PLAGIARISM_THRESHOLD:
        items.append({
            "title": "Moderate Plagiarism",
            "text": "Some similarities detected. Review and cite sources appropriately.",
        })
    else:
        items.append({
            "title": "Original Content",
            "text": "Content appears to be original with minimal similarity to known sources.",
        })
    if forgery_detected:
        items.append({
            "title": "Document Verification",
            "text": "Signs of manipulation detected. Verify document authenticity through alternative means.",
        })
    if privacy_count:
        items.append({
            "title": "Privacy Protection",
            "text": "Remove or redact personal information before sharing publicly.",
        })
        items.append({
            "title": "Compliance Check",
            "text": "Ensure compliance with data protection regulations (GDPR, CCPA, etc.).",
        })
    items.append({
        "title": "Regular Monitoring",
        "text": "Implement regular content integrity checks for ongoing protection.",
    })
    return items


def render_report_html(
    results: Mapping[str, Any],
    file_name: Optional[str] = None,
    analysis_date: Optional[str] = None,
    report_id: Optional[str] = None,
) -> str:
    settings = get_settings()
    plagiarism = {"score": 0.0, "matches": [], **(results.get("plagiarism") or {})}
    forgery = {"detected": False, "confidence": 0.0, **(results.get("forgery") or {})}
    privacy = {"detected": False, "entities": [], **(results.get("privacy") or {})}
    score = summary_fields(results)[0]
    generated_at = datetime.now()

    failed_sections = [
        name.capitalize()
        for name, section in (("plagiarism", plagiarism), ("forgery", forgery), ("privacy", privacy))
        if section.get("status") == "failed"
    ]

    return env.from_string(REPORT_TEMPLATE).render(
        app_name=settings.app_name,
        model_name=settings.gemini_model,
        file_name=file_name or "Unknown",
        analysis_date=analysis_date or generated_at.isoformat(),
        report_id=report_id or generate_report_id(),
        generated_at=generated_at,
        plagiarism=plagiarism,
        forgery=forgery,
        privacy=privacy,
        plagiarism_pct=_percent(score),
        band=plagiarism_band(score),
        risk_level=risk_for_results(results).value,
        failed_sections=failed_sections,
        recommendations=build_recommendations(results),
        percent=_percent,
    )
