import pytest

from livequiz.server.errors import EmptyQuestionSet, NoActiveQuiz, QuestionOutOfOrder
from livequiz.server.quiz_types import QuizState

from conftest import GRACE, T0, make_question


def test_initial_state_is_idle(session):
    assert session.state is QuizState.IDLE
    assert session.current_idx == -1
    assert session.current_question() is None
    assert session.current_deadline() is None


def test_start_quiz_with_empty_set_stays_idle(session):
    with pytest.raises(EmptyQuestionSet):
        session.start_quiz([], T0)
    assert session.state is QuizState.IDLE


def test_start_quiz_activates_first_question(session):
    q1, q2 = make_question(1), make_question(2)
    assert session.start_quiz([q1, q2], T0) is q1
    assert session.state is QuizState.QUESTION_ACTIVE
    assert session.question_number == 1
    assert session.total_questions == 2
    assert session.question_deadline() == T0 + 30
    assert session.current_deadline() == T0 + 30 + GRACE


def test_advance_then_end(session):
    q1, q2 = make_question(1), make_question(2, time=60)
    session.start_quiz([q1, q2], T0)
    assert session.advance(T0 + 20) is q2
    assert session.question_deadline() == T0 + 20 + 60
    assert session.advance(T0 + 90) is None
    assert session.state is QuizState.ENDED
    assert session.current_question() is None


def test_advance_requires_active_question(session):
    with pytest.raises(NoActiveQuiz):
        session.advance(T0)
    session.start_quiz([make_question()], T0)
    session.end(T0)
    with pytest.raises(NoActiveQuiz):
        session.advance(T0)


def test_end_is_terminal_until_a_new_quiz(session):
    with pytest.raises(NoActiveQuiz):
        session.end(T0)
    session.start_quiz([make_question()], T0)
    session.end(T0 + 1)
    with pytest.raises(NoActiveQuiz):
        session.end(T0 + 2)
    session.start_quiz([make_question(2)], T0 + 3)
    assert session.state is QuizState.QUESTION_ACTIVE


def test_stage_question_sequence(session):
    session.stage_question(make_question(1), 1, 3, T0)
    assert session.question_number == 1
    assert session.total_questions == 3

    session.stage_question(make_question(2), 2, 3, T0 + 10)
    assert session.question_number == 2
    assert session.question_started_at == T0 + 10

    replacement = make_question(2, correct=3)
    session.stage_question(replacement, 2, 3, T0 + 15)
    assert session.current_question() is replacement
    assert session.question_started_at == T0 + 15


def test_stage_question_out_of_order(session):
    session.stage_question(make_question(1), 1, 3, T0)
    with pytest.raises(QuestionOutOfOrder):
        session.stage_question(make_question(3), 3, 3, T0)
    assert session.question_number == 1


def test_stage_question_needs_running_quiz_after_first(session):
    with pytest.raises(NoActiveQuiz):
        session.stage_question(make_question(2), 2, 2, T0)


def test_stage_first_question_restarts_quiz(session):
    session.start_quiz([make_question(1), make_question(2)], T0)
    session.advance(T0 + 5)
    session.stage_question(make_question(9), 1, None, T0 + 6)
    assert session.question_number == 1
    assert len(session.questions) == 1
