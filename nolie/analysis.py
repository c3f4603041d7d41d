import io
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from .llm import TextCompletion, UpstreamAnalysisError, complete_json
from .settings import get_settings

logger = logging.getLogger(__name__)

STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
STATUS_NOT_RUN = "not_run"

SUMMARY_PROMPTS = {
    "academic": (
        "Provide an academic summary of the following text, highlighting key "
        "concepts, methodology, and conclusions:"
    ),
    "executive": (
        "Provide an executive summary of the following text, focusing on key "
        "points and actionable insights:"
    ),
    "brief": "Provide a brief summary of the following text in 2-3 sentences:",
    "general": "Provide a comprehensive summary of the following text:",
}

PLAGIARISM_PROMPT = """You are a plagiarism detection expert. Analyze the following text for potential plagiarism. Identify any phrases or sentences that might be copied from common sources.

Text to analyze: "{text}"

Please respond with ONLY a valid JSON object in this exact format (no markdown, no extra text):
{{
  "score": 0.15,
  "matches": [
    {{
      "text": "matched text phrase",
      "source": "potential source name",
      "similarity": 0.92
    }}
  ]
}}"""

PRIVACY_PROMPT = """You are a privacy expert. Analyze the following text for personally identifiable information (PII) and privacy issues.

Text to analyze: "{text}"

Look for: emails, phone numbers, addresses, ID numbers, credit card numbers, names with personal data.

Please respond with ONLY a valid JSON object in this exact format (no markdown, no extra text):
{{
  "detected": true,
  "entities": [
    {{
      "type": "EMAIL",
      "text": "user@example.com",
      "position": {{ "start": 120, "end": 136 }}
    }}
  ]
}}"""

FORGERY_PROMPT = """Analyze an image file for potential forgery or manipulation. Based on the filename "{file_name}", file type "{content_type}" and size {size} bytes, provide an assessment.

Please respond with ONLY a valid JSON object in this exact format:
{{
  "detected": false,
  "confidence": 0.85,
  "areas": [],
  "techniques": [],
  "metadata": {{
    "modified": false,
    "inconsistencies": false
  }}
}}"""

COMPARE_PROMPT = """Compare these two documents and identify similarities, differences, and potential plagiarism.
Provide a detailed analysis of how similar they are and highlight any matching sections.

Document 1:
{document1}

Document 2:
{document2}

Return a JSON object with:
{{
  "similarityScore": 0.75,
  "matchedSections": [
    {{
      "doc1Text": "text from document 1",
      "doc2Text": "corresponding text from document 2",
      "similarity": 0.92,
      "startPos1": 120,
      "endPos1": 180,
      "startPos2": 95,
      "endPos2": 155
    }}
  ],
  "summary": "Overall assessment of the comparison",
  "verdict": "High similarity detected"
}}"""

SUMMARY_PROMPT = """{instruction}

Text to summarize:
{text}

Return a JSON object with:
{{
  "summary": "The generated summary",
  "keyPoints": ["key point 1", "key point 2", "key point 3"],
  "wordCount": {{
    "original": 1500,
    "summary": 150
  }},
  "topics": ["main topic 1", "main topic 2"]
}}"""


@dataclass
class UploadedContent:
    name: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def _with_status(payload: Dict[str, Any], status: str, error: Optional[str] = None) -> Dict[str, Any]:
    payload["status"] = status
    if error:
        payload["error"] = error
    return payload


def default_plagiarism(status: str = STATUS_NOT_RUN, error: Optional[str] = None) -> Dict[str, Any]:
    return _with_status({"score": 0.0, "matches": []}, status, error)


def default_privacy(status: str = STATUS_NOT_RUN, error: Optional[str] = None) -> Dict[str, Any]:
    return _with_status({"detected": False, "entities": []}, status, error)


def default_forgery(status: str = STATUS_NOT_RUN, error: Optional[str] = None) -> Dict[str, Any]:
    return _with_status(
        {"detected": False, "confidence": 0.0, "areas": [], "techniques": []},
        status,
        error,
    )


def default_comparison(status: str = STATUS_NOT_RUN, error: Optional[str] = None) -> Dict[str, Any]:
    return _with_status(
        {
            "similarityScore": 0.0,
            "matchedSections": [],
            "summary": "",
            "verdict": "Comparison unavailable",
        },
        status,
        error,
    )


def default_summary(text: str, status: str = STATUS_NOT_RUN, error: Optional[str] = None) -> Dict[str, Any]:
    return _with_status(
        {
            "summary": "",
            "keyPoints": [],
            "wordCount": {"original": len(text.split()), "summary": 0},
            "topics": [],
        },
        status,
        error,
    )


def _number(value: Any, field: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise UpstreamAnalysisError(f"'{field}' is missing or not a number")
    return float(value)


def _flag(value: Any, field: str) -> bool:
    if not isinstance(value, bool):
        raise UpstreamAnalysisError(f"'{field}' is missing or not a boolean")
    return value


def _list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _clamp(value: float) -> float:
    return min(max(value, 0.0), 1.0)


def _run(
    label: str,
    client: TextCompletion,
    prompt: str,
    normalize: Callable[[Dict[str, Any]], Dict[str, Any]],
    fallback: Callable[[str, str], Dict[str, Any]],
) -> Dict[str, Any]:
    try:
        data = normalize(complete_json(client, prompt))
    except UpstreamAnalysisError as exc:
        logger.warning("%s analysis failed, returning neutral result: %s", label, exc)
        return fallback(STATUS_FAILED, str(exc))
    return _with_status(data, STATUS_COMPLETED)


def _normalize_plagiarism(data: Dict[str, Any]) -> Dict[str, Any]:
    data["score"] = _clamp(_number(data.get("score"), "score"))
    data["matches"] = _list(data.get("matches"))
    return data


def _normalize_privacy(data: Dict[str, Any]) -> Dict[str, Any]:
    data["detected"] = _flag(data.get("detected"), "detected")
    data["entities"] = _list(data.get("entities"))
    return data


def _normalize_forgery(data: Dict[str, Any]) -> Dict[str, Any]:
    data["detected"] = _flag(data.get("detected"), "detected")
    data["confidence"] = _clamp(_number(data.get("confidence", 0.0), "confidence"))
    data["areas"] = _list(data.get("areas"))
    data["techniques"] = _list(data.get("techniques"))
    return data


def _normalize_comparison(data: Dict[str, Any]) -> Dict[str, Any]:
    data["similarityScore"] = _clamp(_number(data.get("similarityScore"), "similarityScore"))
    data["matchedSections"] = _list(data.get("matchedSections"))
    data.setdefault("summary", "")
    data.setdefault("verdict", "")
    return data


def _normalize_summary(data: Dict[str, Any]) -> Dict[str, Any]:
    if not isinstance(data.get("summary"), str):
        raise UpstreamAnalysisError("'summary' is missing or not a string")
    data["keyPoints"] = _list(data.get("keyPoints"))
    data["topics"] = _list(data.get("topics"))
    return data


def analyze_plagiarism(client: TextCompletion, text: str) -> Dict[str, Any]:
    limit = get_settings().analysis_max_chars
    prompt = PLAGIARISM_PROMPT.format(text=text[:limit])
    return _run("Plagiarism", client, prompt, _normalize_plagiarism, default_plagiarism)


def detect_privacy_issues(client: TextCompletion, text: str) -> Dict[str, Any]:
    limit = get_settings().analysis_max_chars
    prompt = PRIVACY_PROMPT.format(text=text[:limit])
    return _run("Privacy", client, prompt, _normalize_privacy, default_privacy)


def detect_forgery(
    client: TextCompletion, file_name: str, content_type: str, size: int
) -> Dict[str, Any]:
    prompt = FORGERY_PROMPT.format(file_name=file_name, content_type=content_type, size=size)
    return _run("Forgery", client, prompt, _normalize_forgery, default_forgery)


def compare_documents(client: TextCompletion, document1: str, document2: str) -> Dict[str, Any]:
    limit = get_settings().compare_max_chars
    prompt = COMPARE_PROMPT.format(document1=document1[:limit], document2=document2[:limit])
    return _run("Comparison", client, prompt, _normalize_comparison, default_comparison)


def summarize_text(client: TextCompletion, text: str, summary_type: str = "general") -> Dict[str, Any]:
    instruction = SUMMARY_PROMPTS.get(summary_type, SUMMARY_PROMPTS["general"])
    prompt = SUMMARY_PROMPT.format(instruction=instruction, text=text)
    return _run(
        "Summary",
        client,
        prompt,
        _normalize_summary,
        lambda status, error: default_summary(text, status, error),
    )


def file_kind(file_name: str, content_type: str) -> Optional[str]:
    name = (file_name or "").lower()
    content_type = (content_type or "").lower()
    if content_type == "application/pdf" or name.endswith(".pdf"):
        return "pdf"
    if content_type.startswith("text/") or name.endswith(".txt"):
        return "text"
    if content_type.startswith("image/"):
        return "image"
    return None


def extract_pdf_text(data: bytes) -> str:
    reader = PdfReader(io.BytesIO(data))
    return "\n".join(page.extract_text() or "" for page in reader.pages)


def extract_text(upload: UploadedContent) -> str:
    if file_kind(upload.name, upload.content_type) == "pdf":
        return extract_pdf_text(upload.data)
    return upload.data.decode("utf-8", errors="replace")


def _combine_status(first: Dict[str, Any], second: Dict[str, Any], merged: Dict[str, Any]) -> Dict[str, Any]:
    failed = STATUS_FAILED in (first.get("status"), second.get("status"))
    error = first.get("error") or second.get("error")
    merged.pop("error", None)
    return _with_status(merged, STATUS_FAILED if failed else STATUS_COMPLETED, error)


def merge_plagiarism(acc: Dict[str, Any], new: Dict[str, Any]) -> Dict[str, Any]:
    if acc.get("status") == STATUS_NOT_RUN:
        return dict(new)
    merged = dict(acc)
    merged["score"] = max(acc["score"], new["score"])
    merged["matches"] = acc["matches"] + new["matches"]
    return _combine_status(acc, new, merged)


def merge_privacy(acc: Dict[str, Any], new: Dict[str, Any]) -> Dict[str, Any]:
    if acc.get("status") == STATUS_NOT_RUN:
        return dict(new)
    merged = dict(acc)
    merged["detected"] = acc["detected"] or new["detected"]
    merged["entities"] = acc["entities"] + new["entities"]
    return _combine_status(acc, new, merged)


def merge_forgery(acc: Dict[str, Any], new: Dict[str, Any]) -> Dict[str, Any]:
    if acc.get("status") == STATUS_NOT_RUN:
        return dict(new)
    merged = dict(acc)
    merged["detected"] = acc["detected"] or new["detected"]
    merged["confidence"] = max(acc["confidence"], new["confidence"])
    merged["areas"] = acc["areas"] + new["areas"]
    merged["techniques"] = acc["techniques"] + new["techniques"]
    return _combine_status(acc, new, merged)


def analyze_files(client: TextCompletion, uploads: Iterable[UploadedContent]) -> Dict[str, Any]:
    """Run the per-file pipeline sequentially and combine the findings."""
    results: Dict[str, Any] = {
        "plagiarism": default_plagiarism(),
        "forgery": default_forgery(),
        "privacy": default_privacy(),
        "files": [],
    }

    for upload in uploads:
        kind = file_kind(upload.name, upload.content_type)
        entry: Dict[str, Any] = {
            "fileName": upload.name,
            "fileType": upload.content_type,
            "fileSize": upload.size,
            "kind": kind,
        }
        results["files"].append(entry)

        if kind in ("text", "pdf"):
            try:
                text = extract_text(upload)
            except PdfReadError as exc:
                logger.warning("Could not read PDF %s: %s", upload.name, exc)
                entry["status"] = STATUS_FAILED
                entry["error"] = f"Could not read PDF: {exc}"
                continue
            if not text.strip():
                entry["status"] = STATUS_NOT_RUN
                continue
            plagiarism = analyze_plagiarism(client, text)
            privacy = detect_privacy_issues(client, text)
            entry["plagiarism"] = plagiarism
            entry["privacy"] = privacy
            results["plagiarism"] = merge_plagiarism(results["plagiarism"], plagiarism)
            results["privacy"] = merge_privacy(results["privacy"], privacy)
        elif kind == "image":
            forgery = detect_forgery(client, upload.name, upload.content_type, upload.size)
            entry["forgery"] = forgery
            results["forgery"] = merge_forgery(results["forgery"], forgery)
        else:
            logger.warning(
                "Skipping %s: unsupported content type %r", upload.name, upload.content_type
            )
            entry["status"] = STATUS_NOT_RUN
            continue

        statuses = [entry[key]["status"] for key in ("plagiarism", "privacy", "forgery") if key in entry]
        entry["status"] = STATUS_FAILED if STATUS_FAILED in statuses else STATUS_COMPLETED

    logger.info(
        "Analyzed %d file(s): %s",
        len(results["files"]),
        json.dumps({key: results[key]["status"] for key in ("plagiarism", "forgery", "privacy")}),
    )
    return results
