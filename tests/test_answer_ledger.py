import pytest

from livequiz.server.errors import AlreadyAnswered, Expired, QuestionNotActive

from conftest import GRACE, T0, make_question


@pytest.fixture
def running(session):
    session.start_quiz([make_question(1, correct=0), make_question(2, correct=2)], T0)
    return session


def test_submit_records_correctness_and_elapsed(running, ledger):
    record = ledger.submit("alice", 0, 0, T0 + 5)
    assert record.correct is True
    assert record.elapsed == 5
    assert ledger.submit("bob", 0, 1, T0 + 10).correct is False
    assert ledger.answered_count(0) == 2
    assert ledger.option_counts(0) == [1, 1, 0, 0]


def test_only_first_submission_counts(running, ledger):
    first = ledger.submit("alice", 0, 1, T0 + 1)
    for option in (0, 1, None):
        with pytest.raises(AlreadyAnswered):
            ledger.submit("alice", 0, option, T0 + 2)
    assert ledger.get("alice", 0) is first
    assert ledger.answered_count(0) == 1


def test_rejects_answers_for_other_questions(running, ledger):
    with pytest.raises(QuestionNotActive):
        ledger.submit("alice", 1, 0, T0 + 1)
    with pytest.raises(QuestionNotActive):
        ledger.submit("alice", -1, 0, T0 + 1)


def test_rejects_when_no_question_active(session, ledger):
    with pytest.raises(QuestionNotActive):
        ledger.submit("alice", 0, 0, T0)
    session.start_quiz([make_question()], T0)
    session.end(T0 + 1)
    with pytest.raises(QuestionNotActive):
        ledger.submit("alice", 0, 0, T0 + 2)


def test_superseded_question_rejects_late_answer(running, ledger):
    running.advance(T0 + 10)
    with pytest.raises(QuestionNotActive):
        ledger.submit("alice", 0, 0, T0 + 11)


@pytest.mark.parametrize("option", [0, 1, 2, 3, None])
def test_answers_after_deadline_expire_regardless_of_option(running, ledger, option):
    late = running.current_deadline() + 0.001
    with pytest.raises(Expired):
        ledger.submit("alice", 0, option, late)
    assert ledger.get("alice", 0) is None


def test_grace_window_accepts_client_timeout(running, ledger):
    # player's own timer fired at the announced deadline; frame lands within grace
    arrival = running.question_deadline() + GRACE / 2
    record = ledger.submit("alice", 0, None, arrival)
    assert record.option_idx is None
    assert record.correct is False


def test_answer_exactly_at_deadline_is_accepted(running, ledger):
    assert ledger.submit("alice", 0, 0, running.current_deadline()).correct


def test_reset_window_allows_answering_again(running, ledger):
    ledger.submit("alice", 0, 1, T0 + 1)
    ledger.reset_window(0)
    assert ledger.submit("alice", 0, 0, T0 + 2).correct


def test_records_for_player_in_question_order(running, ledger):
    ledger.submit("alice", 0, 0, T0 + 3)
    running.advance(T0 + 10)
    ledger.submit("alice", 1, 2, T0 + 14)
    records = ledger.records_for("alice")
    assert [r.question_idx for r in records] == [0, 1]
    assert [r.elapsed for r in records] == [3, 4]
    assert ledger.records_for("bob") == []
