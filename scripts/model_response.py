"""
model_response.py — Tolerant JSON extraction and typed model results.

The model is asked for a JSON object but may wrap it in a ```json fence,
a bare ``` fence, or surrounding prose. Extraction tries those shapes in
order; parsing then validates the payload into a fixed result type. Any
failure yields that type's empty result so one bad reply never aborts a
batch.
"""

import json
import re
from dataclasses import dataclass, field

JSON_FENCE_RE = re.compile(r"```json\n([\s\S]*?)\n```")
BARE_FENCE_RE = re.compile(r"```\n([\s\S]*?)\n```")
BRACED_RE = re.compile(r"\{[\s\S]*\}")


def _from_json_fence(text: str) -> str | None:
    match = JSON_FENCE_RE.search(text)
    return match.group(1) if match else None


def _from_bare_fence(text: str) -> str | None:
    match = BARE_FENCE_RE.search(text)
    return match.group(1) if match else None


def _from_braces(text: str) -> str | None:
    match = BRACED_RE.search(text)
    return match.group(0) if match else None


EXTRACTORS = (_from_json_fence, _from_bare_fence, _from_braces)


def extract_json_text(text: str) -> str | None:
    """Return the first JSON candidate found in a model reply, or None."""
    if not text:
        return None
    for extractor in EXTRACTORS:
        candidate = extractor(text)
        if candidate is not None:
            return candidate
    return None


def _as_text(value) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _require_list(data, key: str) -> list:
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    items = data.get(key, [])
    if not isinstance(items, list):
        raise ValueError(f"'{key}' must be a list")
    return items


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class ReviewIssue:
    rule_id: str
    code: str
    explanation: str
    suggestion: str | None = None


@dataclass
class CodeReviewResult:
    issues: list[ReviewIssue] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "CodeReviewResult":
        return cls()

    @classmethod
    def from_dict(cls, data) -> "CodeReviewResult":
        issues = []
        for item in _require_list(data, "issues"):
            if not isinstance(item, dict):
                continue
            suggestion = item.get("suggestion")
            issues.append(ReviewIssue(
                rule_id=_as_text(item.get("rule_id")),
                code=_as_text(item.get("code")),
                explanation=_as_text(item.get("explanation")),
                suggestion=_as_text(suggestion) if suggestion is not None else None,
            ))
        return cls(issues)


@dataclass
class TestSuggestion:
    __test__ = False

    target: str
    explanation: str
    test_code: str


@dataclass
class TestSuggestionResult:
    __test__ = False

    suggestions: list[TestSuggestion] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "TestSuggestionResult":
        return cls()

    @classmethod
    def from_dict(cls, data) -> "TestSuggestionResult":
        suggestions = []
        for item in _require_list(data, "suggestions"):
            if not isinstance(item, dict):
                continue
            suggestions.append(TestSuggestion(
                target=_as_text(item.get("target")),
                explanation=_as_text(item.get("explanation")),
                test_code=_as_text(item.get("test_code")),
            ))
        return cls(suggestions)


@dataclass
class TestMappingResult:
    __test__ = False

    mappings: dict[str, str | None] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> "TestMappingResult":
        return cls()

    @classmethod
    def from_dict(cls, data) -> "TestMappingResult":
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        raw = data.get("mappings", {})
        if not isinstance(raw, dict):
            raise ValueError("'mappings' must be an object")
        mappings = {
            str(source): (test if isinstance(test, str) and test else None)
            for source, test in raw.items()
        }
        return cls(mappings)


# ---------------------------------------------------------------------------
# Parsing with empty-result fallback
# ---------------------------------------------------------------------------

def _parse(text: str, result_type):
    candidate = extract_json_text(text)
    if candidate is None:
        candidate = text or ""
    try:
        return result_type.from_dict(json.loads(candidate))
    except ValueError as e:
        # json.JSONDecodeError is a ValueError too
        print(f"  Warning: Failed to parse model response ({result_type.__name__}): {e}")
        return result_type.empty()


def parse_code_review(text: str) -> CodeReviewResult:
    return _parse(text, CodeReviewResult)


def parse_test_suggestions(text: str) -> TestSuggestionResult:
    return _parse(text, TestSuggestionResult)


def parse_test_mapping(text: str) -> TestMappingResult:
    return _parse(text, TestMappingResult)
