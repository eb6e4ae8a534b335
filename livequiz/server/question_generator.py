"""Adapter for the generative-text question source.

The admin asks for questions about a topic before a quiz starts; the model
must answer with exactly ``GENERATED_QUESTION_COUNT`` objects shaped
``{question, options[4], correct, time}``. Anything else is a hard
``QuestionGenerationError``; retrying or falling back is the caller's job.
"""
from __future__ import annotations

import json
import logging
import re
from typing import List, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from . import config
from .errors import QuestionGenerationError
from .protocol import QuestionIn

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = """Generate {count} multiple choice quiz questions about: {topic}.
Return ONLY a clean JSON array (no markdown).
Format EXACTLY like:

[
  {{
    "question": "What is ...?",
    "options": ["A","B","C","D"],
    "correct": 1,
    "time": 30
  }}
]

Rules:
- correct must be index 0-3
- options must have exactly 4 values
- valid JSON only"""

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_questions = TypeAdapter(List[QuestionIn])


def build_prompt(topic: str, count: int = config.GENERATED_QUESTION_COUNT) -> str:
    return PROMPT_TEMPLATE.format(topic=topic.strip(), count=count)


def extract_text(data: dict) -> str:
    """Pull the first candidate's text out of a generateContent response."""
    try:
        part = data["candidates"][0]["content"]["parts"][0]
    except (KeyError, IndexError, TypeError) as e:
        raise QuestionGenerationError("Generator returned no candidates") from e
    if isinstance(part, dict) and isinstance(part.get("text"), str):
        return part["text"]
    raise QuestionGenerationError("Generator returned an unexpected response")


def parse_questions(text: str, count: int = config.GENERATED_QUESTION_COUNT) -> List[QuestionIn]:
    """Parse and validate the generator's JSON array."""
    match = _FENCE_RE.search(text)
    if match:
        text = match.group(1)
    text = text.strip()

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.error(f"[generator] invalid JSON: {e}; preview: {text[:200]!r}")
        raise QuestionGenerationError("Generator returned invalid JSON") from e

    if not isinstance(data, list):
        raise QuestionGenerationError("Generator did not return an array")
    if len(data) != count:
        raise QuestionGenerationError(f"Expected {count} questions, got {len(data)}")

    try:
        return _questions.validate_python(data)
    except ValidationError as e:
        raise QuestionGenerationError(f"Generator returned malformed questions: {e.errors()[0]['msg']}") from e


class QuestionGenerator:
    """Calls the generateContent endpoint and validates the reply."""

    def __init__(
        self,
        api_key: str = config.GENERATOR_API_KEY,
        model: str = config.GENERATOR_MODEL,
        url: str = config.GENERATOR_URL,
        count: int = config.GENERATED_QUESTION_COUNT,
        timeout: float = config.GENERATOR_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.url = url.format(model=model)
        self.count = count
        self.timeout = timeout
        self.transport = transport

    async def generate(self, topic: str) -> List[QuestionIn]:
        if not topic.strip():
            raise QuestionGenerationError("Topic must not be empty")
        if not self.api_key:
            raise QuestionGenerationError("No generator API key configured")

        body = {"contents": [{"parts": [{"text": build_prompt(topic, self.count)}]}]}
        logger.info(f"[generator] requesting {self.count} questions about {topic!r}")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.url, params={"key": self.api_key}, json=body)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            logger.error(f"[generator] request failed: {e!r}")
            raise QuestionGenerationError(f"Generator request failed: {e}") from e
        except ValueError as e:
            raise QuestionGenerationError("Generator response is not JSON") from e

        questions = parse_questions(extract_text(data), self.count)
        logger.info(f"[generator] got {len(questions)} questions about {topic!r}")
        return questions
