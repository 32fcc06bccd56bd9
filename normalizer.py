"""
Normalization of OCR agent responses.

The agent does not commit to a response schema, so the extracted text is
searched for in a fixed, ordered list of places. Each place is a rule with a
matcher (is this shape present?) and an extractor (pull the text out). The
first rule whose extractor returns a non-empty string wins; when none do the
result carries an empty ``text`` and callers treat it as nothing recovered.
"""
import json
import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel

JSONValue = Union[str, int, float, bool, None, List[Any], Dict[str, Any]]

# Shorter top-level messages are usually status strings ("Done", "OK") rather than content
MIN_MESSAGE_LENGTH = 20
MIN_LONGEST_FIELD_LENGTH = 10
MIN_RAW_TEXT_LENGTH = 20

# Metadata keys under "result" that the longest-field scan never treats as content
METADATA_KEYS = frozenset(("status", "message", "filename"))


class ExtractionResult(BaseModel):
    text: str = ""
    status: str = "unknown"
    message: str = ""
    filename: str = ""
    word_count: int = 0

    @property
    def is_usable(self) -> bool:
        """Text is present once surrounding whitespace is ignored"""
        return bool(self.text.strip())


@dataclass(frozen=True)
class AgentPayload:
    """What the agent call handed back: the parsed response and its raw string form"""
    response: JSONValue = None
    raw_response: Optional[str] = None

    @property
    def result(self) -> JSONValue:
        return get_path(self.response, "result")


@dataclass(frozen=True)
class ExtractionRule:
    name: str
    matcher: Callable[[AgentPayload], bool]
    extractor: Callable[[AgentPayload], str]


# --- Accessors ---

def get_path(value: JSONValue, *path: str) -> JSONValue:
    """Walk nested mappings, returning None as soon as a step is missing or not a mapping"""
    for key in path:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def get_text(value: JSONValue, *path: str) -> Optional[str]:
    """Non-empty string found at ``path``, else None"""
    found = get_path(value, *path)
    if isinstance(found, str) and found:
        return found
    return None


def count_words(text: str) -> int:
    return len(text.split())


# --- Rules ---

def field_rule(name: str, *path: str, min_length: int = 0) -> ExtractionRule:
    """Rule accepting a string field of the response longer than ``min_length``"""

    def extract(payload: AgentPayload) -> str:
        text = get_text(payload.response, *path)
        if text is None or len(text) <= min_length:
            return ""
        return text

    return ExtractionRule(name=name, matcher=lambda payload: bool(extract(payload)), extractor=extract)


def _result_is_text(payload: AgentPayload) -> bool:
    return isinstance(payload.result, str) and bool(payload.result)


def _nested_result_text(payload: AgentPayload) -> str:
    inner = get_path(payload.result, "result")
    if isinstance(inner, dict):
        for key in ("extracted_text", "text", "content"):
            text = get_text(inner, key)
            if text:
                return text
        return ""
    if isinstance(inner, str):
        return inner
    return ""


def _longest_result_field(payload: AgentPayload) -> str:
    result = payload.result
    if not isinstance(result, dict):
        return ""
    longest = ""
    for key, value in result.items():
        if key in METADATA_KEYS:
            continue
        if isinstance(value, str) and len(value) > len(longest):
            longest = value
    return longest if len(longest) > MIN_LONGEST_FIELD_LENGTH else ""


def _raw_response_text(payload: AgentPayload) -> str:
    raw = payload.raw_response
    try:
        parsed = json.loads(raw)
    except RecursionError:
        # Structured, but nested too deeply to walk
        return ""
    except ValueError:
        # Not structured data, possibly the text itself
        if len(raw) > MIN_RAW_TEXT_LENGTH and not raw.startswith("{"):
            return raw
        return ""
    for path in (
        ("extracted_text",),
        ("response", "extracted_text"),
        ("response", "result", "extracted_text"),
        ("text",),
        ("response", "text"),
    ):
        text = get_text(parsed, *path)
        if text:
            return text
    return ""


EXTRACTION_RULES: Tuple[ExtractionRule, ...] = (
    field_rule("result.extracted_text", "result", "extracted_text"),
    field_rule("result.text", "result", "text"),
    field_rule("result.content", "result", "content"),
    field_rule("result.response", "result", "response"),
    field_rule("message", "message", min_length=MIN_MESSAGE_LENGTH),
    ExtractionRule("result", matcher=_result_is_text, extractor=lambda payload: payload.result),
    ExtractionRule(
        "result.result",
        matcher=lambda payload: get_path(payload.result, "result") is not None,
        extractor=_nested_result_text,
    ),
    field_rule("result.answer", "result", "answer"),
    field_rule("result.answer_text", "result", "answer_text"),
    field_rule("result.output", "result", "output"),
    ExtractionRule(
        "longest result field",
        matcher=lambda payload: isinstance(payload.result, dict),
        extractor=_longest_result_field,
    ),
    ExtractionRule(
        "raw_response",
        matcher=lambda payload: isinstance(payload.raw_response, str) and bool(payload.raw_response),
        extractor=_raw_response_text,
    ),
)


def extract_text(payload: AgentPayload, rules: Tuple[ExtractionRule, ...] = EXTRACTION_RULES) -> str:
    for rule in rules:
        if not rule.matcher(payload):
            continue
        text = rule.extractor(payload)
        if text:
            logging.debug(f"Extracted {len(text)} characters via {rule.name}")
            return text
    return ""


# --- Metadata ---

def _first_present(*values: JSONValue) -> JSONValue:
    for value in values:
        if value is not None:
            return value
    return None


def _word_count(upstream: JSONValue, text: str) -> int:
    # Upstream count wins whenever it is a usable number
    if isinstance(upstream, (int, float)) and not isinstance(upstream, bool):
        if math.isfinite(upstream) and upstream >= 0:
            return int(upstream)
    return count_words(text)


def normalize(
    agent_response: JSONValue,
    fallback_filename_stem: str,
    raw_response: Optional[str] = None,
) -> ExtractionResult:
    """
    Map an agent response of unknown shape onto an ExtractionResult.

    Never raises: anything unrecognised ends up as an empty ``text``.
    """
    payload = AgentPayload(response=agent_response, raw_response=raw_response)
    text = extract_text(payload)

    status = _first_present(get_path(payload.result, "status"), get_path(agent_response, "status"))
    message = _first_present(get_path(payload.result, "message"), get_path(agent_response, "message"))
    filename = get_path(payload.result, "filename")

    return ExtractionResult(
        text=text,
        status=status if isinstance(status, str) else "unknown",
        message=message if isinstance(message, str) else "",
        filename=filename if isinstance(filename, str) else fallback_filename_stem,
        word_count=_word_count(get_path(payload.result, "word_count"), text),
    )
