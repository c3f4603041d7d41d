import base64
import binascii
import json
from datetime import datetime, timezone
from typing import Any, Mapping, Optional
from urllib.parse import urlencode

from pydantic import ValidationError

from .risk import RiskLevel, classify_risk, summary_fields
from .schemas import ShareSummary


class InvalidShareLink(ValueError):
    pass


def encode_share_data(summary: ShareSummary) -> str:
    payload = json.dumps(
        summary.model_dump(mode="json", by_alias=True), separators=(",", ":")
    )
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii").rstrip("=")


def decode_share_data(token: str) -> ShareSummary:
    if not token:
        raise InvalidShareLink("No shared data found")
    raw = token.strip().replace("-", "+").replace("_", "/").replace(" ", "+")
    raw += "=" * (-len(raw) % 4)
    try:
        decoded = base64.b64decode(raw, validate=True)
        return ShareSummary.model_validate(json.loads(decoded.decode("utf-8")))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
        raise InvalidShareLink("Invalid shared data") from exc


def build_share_url(base_url: str, summary: ShareSummary) -> str:
    query = urlencode({"data": encode_share_data(summary)})
    return f"{base_url.rstrip('/')}/shared-results?{query}"


def summary_from_results(
    results: Mapping[str, Any], file_name: Optional[str] = None
) -> ShareSummary:
    score, forgery_detected, privacy_count = summary_fields(results)
    plagiarism_pct = round(score * 100)
    return ShareSummary(
        file_name=file_name or "Document",
        originality_score=100 - plagiarism_pct,
        plagiarism_score=plagiarism_pct,
        forgery_detected=forgery_detected,
        privacy_issues=privacy_count,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


def shared_risk(summary: ShareSummary) -> RiskLevel:
    return classify_risk(
        summary.plagiarism_score / 100, summary.forgery_detected, summary.privacy_issues
    )
