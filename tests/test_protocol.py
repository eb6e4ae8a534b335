import json

import pytest

from livequiz.server import protocol
from livequiz.server.errors import ProtocolError
from livequiz.server.quiz_types import LeaderboardEntry

from conftest import make_question, question_dict


def test_parse_user_connect():
    msg = protocol.parse_message(json.dumps({"type": "user_connect", "name": "Alice"}))
    assert isinstance(msg, protocol.UserConnect)
    assert msg.name == "Alice"


def test_parse_submit_answer_from_admin_console_shape():
    # exactly what the browser player view sends
    raw = {
        "type": "submit_answer",
        "userName": "Alice",
        "questionNumber": 2,
        "answer": 3,
        "correct": True,
        "score": 7,
    }
    msg = protocol.parse_message(raw)
    assert isinstance(msg, protocol.SubmitAnswer)
    assert msg.questionNumber == 2
    assert msg.answer == 3


def test_parse_submit_answer_null_option():
    msg = protocol.parse_message({"type": "submit_answer", "questionNumber": 1, "answer": None})
    assert msg.answer is None


def test_parse_new_question_single_and_list():
    single = protocol.parse_message({
        "type": "new_question",
        "question": question_dict(),
        "questionNumber": 1,
        "totalQuestions": 5,
    })
    assert single.question.to_question() == make_question()
    assert single.questions is None

    many = protocol.parse_message({"type": "new_question", "questions": []})
    assert many.questions == []


@pytest.mark.parametrize("raw", [
    "not json",
    "[1, 2]",
    json.dumps({"name": "no type"}),
    json.dumps({"type": "dance"}),
    json.dumps({"type": "submit_answer", "questionNumber": 1, "answer": 4}),
    json.dumps({"type": "submit_answer", "questionNumber": 0, "answer": 1}),
    json.dumps({"type": "submit_answer", "answer": 1}),
])
def test_invalid_frames_raise_protocol_error(raw):
    with pytest.raises(ProtocolError):
        protocol.parse_message(raw)


def test_unknown_type_message_names_type():
    with pytest.raises(ProtocolError, match="Unknown message: dance"):
        protocol.parse_message({"type": "dance"})


@pytest.mark.parametrize("bad", [
    {"options": ["A", "B", "C"]},
    {"options": ["A", "B", "C", "D", "E"]},
    {"correct": 4},
    {"correct": -1},
    {"time": 5},
    {"time": 121},
    {"question": "   "},
])
def test_question_schema_bounds(bad):
    q = question_dict()
    q.update(bad)
    with pytest.raises(ProtocolError):
        protocol.parse_message({"type": "new_question", "questions": [q]})


def test_question_time_defaults_to_thirty_seconds():
    q = question_dict()
    del q["time"]
    msg = protocol.parse_message({"type": "new_question", "questions": [q]})
    assert msg.questions[0].time == 30


def test_player_question_hides_correct_index():
    payload = protocol.player_question(make_question(correct=2), 1, 3, 1030.0)
    assert payload["type"] == "new_question"
    assert "correct" not in payload["question"]
    assert payload["questionNumber"] == 1
    assert payload["totalQuestions"] == 3
    assert payload["deadline"] == 1030.0


def test_admin_question_reveals_correct_index():
    payload = protocol.admin_question(make_question(correct=2), 1, 3, 1030.0)
    assert payload["question"]["correct"] == 2


def test_leaderboard_update_shape():
    entries = [LeaderboardEntry(player_id="p1", name="Alice", score=2, time=7.456)]
    assert protocol.leaderboard_update(entries) == {
        "type": "leaderboard_update",
        "leaders": [{"name": "Alice", "score": 2, "time": 7.46}],
    }


def test_deeply_nested_frame_is_a_protocol_error():
    with pytest.raises(ProtocolError, match="Invalid JSON"):
        protocol.parse_message("[" * 100_000)
