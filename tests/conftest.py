import pytest
from fastapi.testclient import TestClient

from livequiz.server.app import create_app
from livequiz.server.answer_ledger import AnswerLedger
from livequiz.server.connection_registry import ConnectionRegistry
from livequiz.server.protocol import AdminConnect, UserConnect
from livequiz.server.quiz_orchestrator import QuizOrchestrator
from livequiz.server.quiz_session import QuizSession
from livequiz.server.quiz_types import Question

T0 = 1_000.0
GRACE = 1.0


class FakeClock:
    """Settable clock shared by the test and the server."""

    def __init__(self, now: float = T0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now


def make_question(n: int = 1, correct: int = 0, time: int = 30) -> Question:
    return Question(
        prompt=f"Question {n}?",
        options=["A", "B", "C", "D"],
        correct_idx=correct,
        time_limit=time,
    )


def question_dict(n: int = 1, correct: int = 0, time: int = 30) -> dict:
    return make_question(n, correct, time).to_dict()


def user(name: str) -> UserConnect:
    return UserConnect(type="user_connect", name=name)


def admin(passphrase=None) -> AdminConnect:
    return AdminConnect(type="admin_connect", passphrase=passphrase)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def session():
    return QuizSession(grace=GRACE)


@pytest.fixture
def ledger(session):
    return AnswerLedger(session)


@pytest.fixture
def orchestrator(clock):
    return QuizOrchestrator(clock=clock, passphrase="", grace=GRACE)


@pytest.fixture
def client(orchestrator):
    with TestClient(create_app(orchestrator=orchestrator)) as c:
        yield c


def recv_until(ws, msg_type, max_messages=50, where=None):
    """Receive messages until one of the expected type (and predicate) arrives."""
    for _ in range(max_messages):
        data = ws.receive_json()
        if data.get("type") == msg_type and (where is None or where(data)):
            return data
    raise TimeoutError(f"Never received {msg_type} after {max_messages} messages")
