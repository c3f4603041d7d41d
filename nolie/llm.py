import json
import logging
import re
from functools import lru_cache
from typing import Any, Dict, Optional, Protocol

import google.generativeai as genai

from .settings import get_settings

logger = logging.getLogger(__name__)

FENCE_PATTERN = re.compile(r"```(?:json)?\n?")


class UpstreamAnalysisError(Exception):
    """The completion service failed or returned something unusable."""


class TextCompletion(Protocol):
    def complete(self, prompt: str) -> str:
        ...


class GeminiCompletion:
    def __init__(self, api_key: str, model_name: str):
        self.api_key = api_key
        self.model_name = model_name
        self._model = None

    def _get_model(self):
        if not self.api_key:
            raise UpstreamAnalysisError("GEMINI_API_KEY is not configured")
        if self._model is None:
            genai.configure(api_key=self.api_key)
            self._model = genai.GenerativeModel(self.model_name)
        return self._model

    def complete(self, prompt: str) -> str:
        model = self._get_model()
        try:
            response = model.generate_content(prompt)
            text = response.text
        except Exception as exc:
            raise UpstreamAnalysisError(f"{self.model_name} call failed: {exc}") from exc
        if not text:
            raise UpstreamAnalysisError(f"{self.model_name} returned an empty response")
        return text


def strip_code_fences(text: str) -> str:
    return FENCE_PATTERN.sub("", text or "").strip()


def parse_json_response(text: str) -> Dict[str, Any]:
    cleaned = strip_code_fences(text)
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise UpstreamAnalysisError(f"Response is not valid JSON: {exc.msg}") from exc
    if not isinstance(parsed, dict):
        raise UpstreamAnalysisError("Response JSON is not an object")
    return parsed


def complete_json(client: TextCompletion, prompt: str) -> Dict[str, Any]:
    return parse_json_response(client.complete(prompt))


@lru_cache(maxsize=4)
def _gemini(model_name: Optional[str] = None) -> GeminiCompletion:
    settings = get_settings()
    return GeminiCompletion(settings.gemini_api_key, model_name or settings.gemini_model)


def get_completion() -> TextCompletion:
    return _gemini()


def get_summary_completion() -> TextCompletion:
    return _gemini(get_settings().summary_model)
