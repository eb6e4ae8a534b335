"""Wire protocol: inbound message schemas and outbound message builders.

Inbound frames are JSON objects dispatched on their ``type`` field. They are
validated at the boundary into one of the ``ClientMessage`` variants; anything
that does not fit raises ``ProtocolError``.
"""
from __future__ import annotations

import json
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from . import config
from .errors import ProtocolError
from .quiz_types import LeaderboardEntry, PlayerQuestion, Question


class QuestionIn(BaseModel):
    """Question as authored by the admin console or the generator."""
    question: str = Field(min_length=1)
    options: List[str] = Field(
        min_length=config.OPTIONS_PER_QUESTION, max_length=config.OPTIONS_PER_QUESTION
    )
    correct: int = Field(ge=0, le=config.OPTIONS_PER_QUESTION - 1)
    time: int = Field(
        default=config.DEFAULT_TIME_LIMIT,
        ge=config.MIN_TIME_LIMIT,
        le=config.MAX_TIME_LIMIT,
    )

    @field_validator("question")
    @classmethod
    def _strip_prompt(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("question text is blank")
        return v

    def to_question(self) -> Question:
        return Question(
            prompt=self.question,
            options=list(self.options),
            correct_idx=self.correct,
            time_limit=self.time,
        )


class _Message(BaseModel):
    model_config = ConfigDict(extra="ignore")


class AdminConnect(_Message):
    type: Literal["admin_connect"]
    passphrase: Optional[str] = None


class UserConnect(_Message):
    type: Literal["user_connect"]
    name: str = ""


class NewQuestion(_Message):
    """Either a single staged question or a whole question set."""
    type: Literal["new_question"]
    question: Optional[QuestionIn] = None
    questionNumber: Optional[int] = Field(default=None, ge=1)
    totalQuestions: Optional[int] = Field(default=None, ge=1)
    questions: Optional[List[QuestionIn]] = None


class NextQuestion(_Message):
    type: Literal["next_question"]


class SubmitAnswer(_Message):
    type: Literal["submit_answer"]
    questionNumber: int = Field(ge=1)
    answer: Optional[int] = Field(default=None, ge=0, le=config.OPTIONS_PER_QUESTION - 1)
    userName: Optional[str] = None
    # Client-computed values, kept for compatibility and never trusted
    correct: Optional[bool] = None
    score: Optional[int] = None


class QuizEnded(_Message):
    type: Literal["quiz_ended"]


class GetLeaderboard(_Message):
    type: Literal["get_leaderboard"]


ClientMessage = Annotated[
    Union[
        AdminConnect,
        UserConnect,
        NewQuestion,
        NextQuestion,
        SubmitAnswer,
        QuizEnded,
        GetLeaderboard,
    ],
    Field(discriminator="type"),
]

_client_message = TypeAdapter(ClientMessage)


def parse_message(raw: str | bytes | dict) -> ClientMessage:
    """Decode one inbound frame into its message variant."""
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError, RecursionError) as e:
            raise ProtocolError(f"Invalid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise ProtocolError("Message must be a JSON object")
    if "type" not in raw:
        raise ProtocolError("Message has no type")
    try:
        return _client_message.validate_python(raw)
    except ValidationError as e:
        first = e.errors()[0]
        if first["type"] == "union_tag_invalid":
            raise ProtocolError(f"Unknown message: {raw.get('type')}") from e
        loc = ".".join(str(p) for p in first["loc"])
        raise ProtocolError(f"Invalid {raw.get('type')} message: {loc}: {first['msg']}") from e


# ---------- Outbound builders ----------

def welcome(role: str, name: str | None = None) -> dict:
    payload = {"type": "welcome", "role": role}
    if name is not None:
        payload["name"] = name
    return payload


def roster(users: list[dict]) -> dict:
    return {"type": "user_connected", "users": users}


def player_question(question: Question, number: int, total: int, deadline: float) -> dict:
    """Question broadcast for players; never carries the correct index."""
    return {
        "type": "new_question",
        "question": PlayerQuestion.from_question(question).to_dict(),
        "questionNumber": number,
        "totalQuestions": total,
        "timeLimit": question.time_limit,
        "deadline": deadline,
    }


def admin_question(question: Question, number: int, total: int, deadline: float) -> dict:
    return {
        "type": "question_started",
        "question": question.to_dict(),
        "questionNumber": number,
        "totalQuestions": total,
        "timeLimit": question.time_limit,
        "deadline": deadline,
    }


def answer_recorded(number: int, correct: bool) -> dict:
    return {"type": "answer_recorded", "questionNumber": number, "correct": correct}


def answer_submitted(
    name: str,
    correct: bool,
    number: int,
    answered: int,
    online: int,
    histogram: list[int],
) -> dict:
    return {
        "type": "answer_submitted",
        "userName": name,
        "correct": correct,
        "questionNumber": number,
        "answeredCount": answered,
        "onlineCount": online,
        "histogram": histogram,
    }


def leaderboard_update(entries: list[LeaderboardEntry]) -> dict:
    return {"type": "leaderboard_update", "leaders": [e.to_dict() for e in entries]}


def quiz_ended(entries: list[LeaderboardEntry]) -> dict:
    return {"type": "quiz_ended", "leaders": [e.to_dict() for e in entries]}
