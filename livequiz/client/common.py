# livequiz/client/common.py
"""Headless client sessions for the coordinator protocol.

`PlayerSession` and `AdminSession` track what the server has told them and
expose the protocol messages as coroutines. They are UI-agnostic: a
`send` coroutine is injected, normally `WSClient.send`.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

logger = logging.getLogger(__name__)

Send = Callable[[dict], Awaitable[None]]


@dataclass
class SessionInterface:
    send: Send
    leaders: List[dict] = field(default_factory=list)
    errors: List[dict] = field(default_factory=list)
    ended: bool = False

    async def on_event(self, message: dict):
        msg_type = message.get("type")

        if msg_type == "leaderboard_update":
            self.leaders = message.get("leaders", [])

        elif msg_type == "quiz_ended":
            self.ended = True
            self.leaders = message.get("leaders", self.leaders)
            logger.info(f"Quiz ended: {self.leaders}")

        elif msg_type == "error":
            self.errors.append(message)
            logger.warning(f"Server error {message.get('code')}: {message.get('message')}")

        else:
            logger.debug(f"[{type(self).__name__}] unhandled message type: {msg_type}")

    async def request_leaderboard(self):
        await self.send({"type": "get_leaderboard"})


@dataclass
class PlayerSession(SessionInterface):
    name: str = ""
    # chooses an option index (or None to skip) for a player-view question
    strategy: Optional[Callable[[dict], Optional[int]]] = None
    question: Optional[dict] = None
    question_number: int = 0
    answered: bool = False
    score: int = 0
    window: Optional[tuple] = None
    counted: bool = False

    def handshake(self) -> dict:
        return {"type": "user_connect", "name": self.name}

    async def on_event(self, message: dict):
        msg_type = message.get("type")

        if msg_type == "welcome":
            logger.info(f"Joined as {message.get('name')}")

        elif msg_type == "new_question":
            self.question = message.get("question")
            self.question_number = message.get("questionNumber", 0)
            # a reconnect replays the same window; a re-asked question gets a new deadline
            window = (self.question_number, message.get("deadline"))
            if window != self.window:
                self.window = window
                self.answered = False
                self.counted = False
            if self.strategy is not None and not self.answered:
                await self.submit_answer(self.strategy(self.question))

        elif msg_type == "answer_recorded":
            if message.get("questionNumber") != self.question_number:
                return
            self.answered = True
            if not self.counted:
                self.counted = True
                if message.get("correct"):
                    self.score += 1

        else:
            await super().on_event(message)

    async def submit_answer(self, index: Optional[int]):
        """Send an answer for the current question; None means no answer."""
        if self.answered or not self.question_number:
            return
        self.answered = True
        await self.send({
            "type": "submit_answer",
            "userName": self.name,
            "questionNumber": self.question_number,
            "answer": index,
        })


@dataclass
class AdminSession(SessionInterface):
    passphrase: Optional[str] = None
    users: List[dict] = field(default_factory=list)
    responses: List[dict] = field(default_factory=list)
    question_number: int = 0
    total_questions: int = 0

    def handshake(self) -> dict:
        payload = {"type": "admin_connect"}
        if self.passphrase:
            payload["passphrase"] = self.passphrase
        return payload

    async def on_event(self, message: dict):
        msg_type = message.get("type")

        if msg_type == "user_connected":
            self.users = message.get("users", [])

        elif msg_type == "question_started":
            self.question_number = message.get("questionNumber", 0)
            self.total_questions = message.get("totalQuestions", 0)
            self.responses = []

        elif msg_type == "answer_submitted":
            self.responses.append(message)

        else:
            await super().on_event(message)

    async def start_quiz(self, questions: List[dict]):
        await self.send({"type": "new_question", "questions": questions})

    async def next_question(self):
        await self.send({"type": "next_question"})

    async def end_quiz(self):
        await self.send({"type": "quiz_ended"})


def random_strategy(rng: random.Random, skip_rate: float = 0.0) -> Callable[[dict], Optional[int]]:
    """Pick a random option, skipping the question with probability ``skip_rate``."""
    def choose(question: dict) -> Optional[int]:
        if rng.random() < skip_rate:
            return None
        return rng.randrange(len(question.get("options", [])) or 4)
    return choose
