"""
Response Sanitizer — turns noisy model text into validated structured data.

WHAT THIS DOES:
Sonar models are asked for pure JSON but routinely wrap it: chain-of-thought
in <think> blocks, ```json fences, a sentence of preamble, trailing notes.
The sanitizer peels those layers off in a fixed order and stops at the first
candidate that both parses as JSON and validates against the expected schema.

PIPELINE (first success wins):
1. Direct parse of the trimmed text
2. Strip <think>...</think> blocks, re-attempt
3. Each fenced code block in order of appearance
4. Largest {...} span (first "{" to last "}")
5. Final trim + direct parse
6. Labelled-text fallback ("VERDICT: ..." style), when the caller supplies one
7. Give up: success=False with the full step trail

Every attempted step is appended to steps_tried whether it worked or not, so a
failure can be diagnosed from the result alone.

USAGE:
    sanitizer = ResponseSanitizer()
    result = sanitizer.sanitize(raw_text, FactCheckResult)
    if result.success:
        fact_check = result.data
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

THINKING_BLOCK_RE = re.compile(r"<think>[\s\S]*?</think>", re.IGNORECASE)
CODE_BLOCK_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)
JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")

# "VERDICT: TRUE", "Key Flaws - ...", "**Sources:**"
LABEL_LINE_RE = re.compile(r"^\s*[*#]*\s*([A-Za-z][A-Za-z _-]{1,40}?)\s*[*]*\s*[:：]\s*[*]*\s*(.*)$")
BULLET_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+")


@dataclass(frozen=True)
class SanitizationResult(Generic[T]):
    """Outcome of one sanitize() call. data is set if and only if success is True."""
    success: bool
    data: Optional[T]
    error: Optional[str]
    original_response: str
    steps_tried: tuple[str, ...]


class _Rejected(Exception):
    """Candidate text did not parse or did not match the schema."""


def parse_labelled_sections(text: str) -> dict[str, list[str]]:
    """
    Split "LABEL: value" formatted text into sections.

    Line-by-line state machine: a label line opens a new section (its inline
    value is the first line); following lines belong to the open section until
    the next label. Bullet markers are stripped. Keys are lower_snake_case.

    Example:
        VERDICT: FALSE
        EXPLANATION: No evidence supports it.
        SOURCES:
        - NASA - https://nasa.gov
    →   {"verdict": ["FALSE"], "explanation": ["No evidence supports it."],
         "sources": ["NASA - https://nasa.gov"]}
    """
    sections: dict[str, list[str]] = {}
    current: Optional[str] = None

    for line in text.splitlines():
        if not line.strip():
            continue
        match = LABEL_LINE_RE.match(line)
        # "Title - https://..." is content, not a label
        if match and not match.group(2).startswith("//"):
            current = re.sub(r"[\s-]+", "_", match.group(1).strip().lower())
            sections.setdefault(current, [])
            value = match.group(2).strip().strip("*").strip()
            if value:
                sections[current].append(value)
            continue
        if current is not None:
            sections[current].append(BULLET_RE.sub("", line).strip())

    return sections


class ResponseSanitizer:
    """
    Coerces raw completion text into a validated value.

    Stateless: one instance can be shared by every adapter.
    """

    def sanitize(
        self,
        response: str,
        schema: Optional[type[BaseModel]] = None,
        text_fallback: Optional[Callable[[str], Optional[dict]]] = None,
    ) -> SanitizationResult:
        """
        Run the pipeline. Never raises.

        Args:
            response: Raw text returned by the model
            schema: Pydantic model the data must validate against (optional;
                without one any JSON object is accepted)
            text_fallback: Converts labelled free text into a dict, tried last

        Returns:
            SanitizationResult with data as a schema instance (or dict)
        """
        steps: list[str] = []
        original = response if isinstance(response, str) else ("" if response is None else str(response))

        def done(data) -> SanitizationResult:
            return SanitizationResult(True, data, None, original, tuple(steps))

        # Step 1: already valid
        try:
            data = self._parse(original.strip(), schema)
            steps.append("Response was already valid JSON")
            return done(data)
        except _Rejected:
            steps.append("Direct parse failed")

        # Step 2: strip <think> blocks
        cleaned, removed = THINKING_BLOCK_RE.subn("", original)
        if removed:
            steps.append(f"Removed {removed} <think> block(s)")
            try:
                data = self._parse(cleaned.strip(), schema)
                steps.append("Validated JSON after removing <think> blocks")
                return done(data)
            except _Rejected:
                pass
        else:
            steps.append("No <think> blocks found")

        # Step 3: fenced code blocks, first valid wins
        blocks = CODE_BLOCK_RE.findall(cleaned)
        if blocks:
            for candidate in blocks:
                try:
                    data = self._parse(candidate.strip(), schema)
                    steps.append("Extracted and validated JSON from code block")
                    return done(data)
                except _Rejected:
                    continue
            steps.append(f"Found {len(blocks)} code block(s) but none valid")
        else:
            steps.append("No code blocks found")

        # Step 4: greedy {...} span
        match = JSON_OBJECT_RE.search(cleaned)
        if match:
            try:
                data = self._parse(match.group(0), schema)
                steps.append("Extracted valid JSON object from free text")
                return done(data)
            except _Rejected:
                steps.append("JSON-looking object in free text was not valid")
        else:
            steps.append("No JSON object found in free text")

        # Step 5: final trim
        try:
            data = self._parse(cleaned.strip(), schema)
            steps.append("Validated JSON after final trim")
            return done(data)
        except _Rejected:
            steps.append("Final trim did not yield valid JSON")

        # Step 6: labelled text
        if text_fallback is not None:
            try:
                fields = self._run_fallback(text_fallback, cleaned)
                if fields is None:
                    raise _Rejected("no labelled sections")
                data = self._validate(fields, schema)
                steps.append("Parsed labelled text sections")
                return done(data)
            except _Rejected:
                steps.append("Labelled text fallback did not match")

        error = "Unable to sanitize response to valid JSON"
        logger.debug(f"Response sanitization failed after steps {steps}: {original[:200]!r}")
        return SanitizationResult(False, None, error, original, tuple(steps))

    def is_valid_json(self, text: str) -> bool:
        try:
            json.loads(text)
            return True
        except (ValueError, RecursionError, TypeError):
            return False

    def _parse(self, text: str, schema: Optional[type[BaseModel]]):
        if not text:
            raise _Rejected("empty")
        # JSONDecodeError is a ValueError; oversized integers raise a plain ValueError
        try:
            value = json.loads(text)
        except (ValueError, RecursionError, TypeError) as e:
            raise _Rejected(str(e)) from e
        return self._validate(value, schema)

    def _run_fallback(self, text_fallback, text: str) -> Optional[dict]:
        try:
            return text_fallback(text)
        except Exception as e:
            logger.debug(f"Labelled text fallback raised {e!r}")
            raise _Rejected(str(e)) from e

    def _validate(self, value, schema: Optional[type[BaseModel]]):
        if not isinstance(value, dict):
            raise _Rejected("not a JSON object")
        if schema is None:
            return value
        try:
            return schema.model_validate(value)
        except ValidationError as e:
            raise _Rejected(str(e)) from e
