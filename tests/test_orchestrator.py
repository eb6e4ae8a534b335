import asyncio
import json

import pytest

from livequiz.server.quiz_orchestrator import QuizOrchestrator
from livequiz.server.quiz_types import QuizState

from conftest import T0, question_dict


class FakeSocket:
    def __init__(self):
        self.sent = []

    async def send_text(self, text: str):
        await asyncio.sleep(0)
        self.sent.append(json.loads(text))

    def types(self):
        return [m["type"] for m in self.sent]


async def _open(orchestrator, conn_id, first_message):
    ws = FakeSocket()
    await orchestrator.connect(conn_id, ws)
    await orchestrator.handle(conn_id, json.dumps(first_message))
    return ws


async def _flush(orchestrator):
    for conn_id in list(orchestrator.dispatch.outboxes):
        await orchestrator.dispatch.flush(conn_id)


@pytest.fixture
async def running(orchestrator):
    admin = await _open(orchestrator, "adm", {"type": "admin_connect"})
    players = {
        name: await _open(orchestrator, name.lower(), {"type": "user_connect", "name": name})
        for name in ("Alice", "Bob")
    }
    await orchestrator.handle("adm", json.dumps({
        "type": "new_question",
        "questions": [question_dict(1), question_dict(2)],
    }))
    yield orchestrator, admin, players
    for conn_id in list(orchestrator.dispatch.outboxes):
        await orchestrator.disconnect(conn_id)


async def test_submit_racing_advance_never_lands_on_superseded_question(running, clock):
    orchestrator, admin, players = running
    clock.advance(3)
    submit = json.dumps({"type": "submit_answer", "questionNumber": 1, "answer": 0})
    await asyncio.gather(
        orchestrator.handle("alice", submit),
        orchestrator.handle("adm", json.dumps({"type": "next_question"})),
        orchestrator.handle("bob", submit),
    )
    await _flush(orchestrator)

    assert orchestrator.session.question_number == 2
    # whatever the interleaving, each answer was judged against one consistent state
    for name, ws in players.items():
        record = orchestrator.ledger.records_for(orchestrator.registry.find_by_name(name).player_id)
        accepted = "answer_recorded" in ws.types()
        rejected = any(m.get("code") == "question_not_active" for m in ws.sent)
        assert accepted != rejected
        assert len(record) == int(accepted)
        assert all(r.question_idx == 0 for r in record)


async def test_each_player_sees_messages_in_commit_order(running):
    orchestrator, admin, players = running
    await orchestrator.handle("adm", json.dumps({"type": "next_question"}))
    await orchestrator.handle("adm", json.dumps({"type": "next_question"}))
    await _flush(orchestrator)

    for ws in players.values():
        numbers = [m["questionNumber"] for m in ws.sent if m["type"] == "new_question"]
        assert numbers == [1, 2]
        assert ws.types()[-2:] == ["quiz_ended", "leaderboard_update"]
    assert orchestrator.session.state is QuizState.ENDED


async def test_disconnect_updates_admin_roster(running):
    orchestrator, admin, players = running
    await orchestrator.disconnect("bob")
    await _flush(orchestrator)
    rosters = [m["users"] for m in admin.sent if m["type"] == "user_connected"]
    assert rosters[-1] == [
        {"name": "Alice", "connected": True},
        {"name": "Bob", "connected": False},
    ]
    assert "bob" not in orchestrator.dispatch.outboxes


async def test_rejection_goes_to_sender_only(running):
    orchestrator, admin, players = running
    await _flush(orchestrator)
    before = {name: len(ws.sent) for name, ws in players.items()}
    admin_before = len(admin.sent)

    await orchestrator.handle("alice", json.dumps({"type": "quiz_ended"}))
    await _flush(orchestrator)

    assert players["Alice"].sent[-1]["code"] == "not_authorized"
    assert len(players["Bob"].sent) == before["Bob"]
    assert len(admin.sent) == admin_before
    assert orchestrator.session.state is QuizState.QUESTION_ACTIVE
    assert orchestrator.session.question_started_at == T0


async def test_successful_admin_connect_restores_passphrase_attempts(clock):
    orchestrator = QuizOrchestrator(clock=clock, passphrase="pw", password_attempts=2)
    ws = FakeSocket()
    await orchestrator.connect("adm", ws)

    bad = json.dumps({"type": "admin_connect", "passphrase": "nope"})
    good = json.dumps({"type": "admin_connect", "passphrase": "pw"})
    assert await orchestrator.handle("adm", bad)
    assert await orchestrator.handle("adm", good)
    # a later typo starts from a full allowance again
    assert await orchestrator.handle("adm", bad)
    await _flush(orchestrator)

    assert orchestrator.registry.is_admin("adm")
    assert ws.sent[-1]["message"] == "Incorrect passphrase. 1 attempts left."
    await orchestrator.disconnect("adm")
