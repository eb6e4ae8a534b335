"""Quiz data types shared by the coordinator components."""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from . import config


class QuizState(Enum):
    IDLE = "idle"
    QUESTION_ACTIVE = "question_active"
    ENDED = "ended"


class Role(Enum):
    ADMIN = "admin"
    PLAYER = "player"


@dataclass(frozen=True)
class Question:
    prompt: str
    options: List[str]  # 4 options
    correct_idx: int    # 0-3
    time_limit: int = config.DEFAULT_TIME_LIMIT

    def __post_init__(self):
        if not 0 <= self.correct_idx < len(self.options):
            raise ValueError(
                f"correct index {self.correct_idx} outside {len(self.options)} options"
            )

    def to_dict(self) -> dict:
        """Full wire form, including the correct index (admin view)."""
        return {
            "question": self.prompt,
            "options": list(self.options),
            "correct": self.correct_idx,
            "time": self.time_limit,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Question":
        return cls(
            prompt=data["question"],
            options=list(data["options"]),
            correct_idx=data["correct"],
            time_limit=data.get("time", config.DEFAULT_TIME_LIMIT),
        )


@dataclass
class PlayerQuestion:
    """Question without the correct answer (for player view)."""
    prompt: str
    options: List[str]
    time_limit: int

    def to_dict(self) -> dict:
        return {
            "question": self.prompt,
            "options": list(self.options),
            "time": self.time_limit,
        }

    @classmethod
    def from_question(cls, question: Question) -> "PlayerQuestion":
        return cls(
            prompt=question.prompt,
            options=list(question.options),
            time_limit=question.time_limit,
        )


@dataclass
class Player:
    """A participant in the quiz, keyed by ``player_id`` rather than name."""
    player_id: str
    name: str
    order: int                      # registration order, final leaderboard tie-break
    connected: bool = True
    conn_id: Optional[str] = None   # live connection, None while disconnected

    def to_dict(self) -> dict:
        return {"name": self.name, "connected": self.connected}


@dataclass
class Connection:
    """A registered socket."""
    conn_id: str
    role: Role
    player_id: Optional[str] = None
    name: Optional[str] = None
    connected: bool = True

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


@dataclass(frozen=True)
class AnswerRecord:
    player_id: str
    question_idx: int
    option_idx: Optional[int]  # None = no answer / timed out on the client
    correct: bool
    submitted_at: float
    elapsed: float             # seconds since the question started

    def to_dict(self) -> dict:
        return {
            "questionNumber": self.question_idx + 1,
            "answer": self.option_idx,
            "correct": self.correct,
            "elapsed": round(self.elapsed, 2),
        }


@dataclass(frozen=True)
class LeaderboardEntry:
    player_id: str
    name: str
    score: int
    time: float
    order: int = field(default=0, compare=False)

    def to_dict(self) -> dict:
        return {"name": self.name, "score": self.score, "time": round(self.time, 2)}
