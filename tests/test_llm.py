import pytest

from nolie.llm import GeminiCompletion, UpstreamAnalysisError, parse_json_response, strip_code_fences


def test_strip_code_fences():
    raw = '```json\n{"score": 0.2}\n```'
    assert strip_code_fences(raw) == '{"score": 0.2}'
    assert strip_code_fences('```\n{"a": 1}```') == '{"a": 1}'
    assert strip_code_fences("  plain  ") == "plain"


def test_parse_json_response_returns_object():
    assert parse_json_response('```json\n{"detected": false}\n```') == {"detected": False}


@pytest.mark.parametrize("reply", ["not json", "", "[1, 2]", "```json\n{broken\n```"])
def test_parse_json_response_rejects_bad_replies(reply):
    with pytest.raises(UpstreamAnalysisError):
        parse_json_response(reply)


def test_gemini_without_key_raises_upstream_error():
    client = GeminiCompletion(api_key="", model_name="gemini-1.5-flash")
    with pytest.raises(UpstreamAnalysisError, match="GEMINI_API_KEY"):
        client.complete("hello")
