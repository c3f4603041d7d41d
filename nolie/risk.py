from enum import Enum
from typing import Any, Mapping, Union

HIGH_PLAGIARISM_THRESHOLD = 0.3
MEDIUM_PLAGIARISM_THRESHOLD = 0.1


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


def classify_risk(
    plagiarism_score: float,
    forgery_detected: bool,
    privacy_issues: Union[int, bool],
) -> RiskLevel:
    """Return the risk label for one analysis.

    ``privacy_issues`` may be a count of detected entities or a plain
    detected flag; any truthy value marks the content as HIGH risk.
    """
    if (
        plagiarism_score > HIGH_PLAGIARISM_THRESHOLD
        or forgery_detected
        or privacy_issues
    ):
        return RiskLevel.HIGH
    if plagiarism_score > MEDIUM_PLAGIARISM_THRESHOLD:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def plagiarism_band(score: float) -> str:
    if score > HIGH_PLAGIARISM_THRESHOLD:
        return "high"
    if score > MEDIUM_PLAGIARISM_THRESHOLD:
        return "medium"
    return "low"


def summary_fields(results: Mapping[str, Any]) -> tuple:
    """Extract (plagiarism_score, forgery_detected, privacy_issues_count)."""
    plagiarism = results.get("plagiarism") or {}
    forgery = results.get("forgery") or {}
    privacy = results.get("privacy") or {}

    try:
        score = float(plagiarism.get("score") or 0.0)
    except (TypeError, ValueError):
        score = 0.0
    entities = privacy.get("entities") or []
    count = len(entities)
    if count == 0 and privacy.get("detected"):
        count = 1
    return score, bool(forgery.get("detected")), count


def risk_for_results(results: Mapping[str, Any]) -> RiskLevel:
    return classify_risk(*summary_fields(results))
