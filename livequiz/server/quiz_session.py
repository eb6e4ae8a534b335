"""Quiz session state machine.

    idle --start_quiz--> question_active --advance--> question_active ... --> ended

Only admin-originated calls move the machine; nothing advances on a timer.
The session is also the deadline authority: ``current_deadline()`` is the
last instant at which an answer for the active question is accepted.
"""
import logging
from typing import List, Optional

from . import config
from .errors import EmptyQuestionSet, NoActiveQuiz, QuestionOutOfOrder
from .quiz_types import Question, QuizState

logger = logging.getLogger(__name__)


class QuizSession:
    def __init__(self, grace: float = config.ANSWER_GRACE_SECONDS) -> None:
        self.grace = grace
        self.state = QuizState.IDLE
        self.questions: List[Question] = []
        self.current_idx = -1
        self.total_questions = 0
        self.question_started_at: Optional[float] = None

    # ---------- Lifecycle ----------

    def start_quiz(self, questions: List[Question], now: float) -> Question:
        """Replace the question set and activate the first question."""
        if not questions:
            raise EmptyQuestionSet("Cannot start a quiz with no questions")
        self.questions = list(questions)
        self.total_questions = len(self.questions)
        self._activate(0, now)
        logger.debug(f"[session] quiz started with {self.total_questions} questions")
        return self.questions[0]

    def stage_question(self, question: Question, number: int, total: Optional[int], now: float) -> Question:
        """Activate a single question pushed by the admin console.

        ``number`` is 1-based. 1 starts a fresh quiz, the next number appends
        and advances, the active number replaces the active question.
        """
        if number == 1:
            self.questions = [question]
            self.total_questions = max(total or 1, 1)
            self._activate(0, now)
            return question

        if self.state is not QuizState.QUESTION_ACTIVE:
            raise NoActiveQuiz(f"Question {number} sent but no quiz is running")

        idx = number - 1
        if idx == self.current_idx:
            self.questions[idx] = question
        elif idx == self.current_idx + 1:
            del self.questions[idx:]
            self.questions.append(question)
        else:
            raise QuestionOutOfOrder(
                f"Question {number} cannot follow question {self.current_idx + 1}"
            )
        if total:
            self.total_questions = total
        self.total_questions = max(self.total_questions, len(self.questions))
        self._activate(idx, now)
        return question

    def advance(self, now: float) -> Optional[Question]:
        """Move to the next question, or end the quiz after the last one."""
        if self.state is not QuizState.QUESTION_ACTIVE:
            raise NoActiveQuiz("No question is active")
        if self.current_idx + 1 < len(self.questions):
            self._activate(self.current_idx + 1, now)
            return self.questions[self.current_idx]
        self.end(now)
        return None

    def end(self, now: float) -> None:
        if self.state is not QuizState.QUESTION_ACTIVE:
            raise NoActiveQuiz("No quiz is running")
        self.state = QuizState.ENDED
        self.question_started_at = None
        logger.debug(f"[session] quiz ended after question {self.current_idx + 1}")

    def _activate(self, idx: int, now: float) -> None:
        self.current_idx = idx
        self.state = QuizState.QUESTION_ACTIVE
        self.question_started_at = now
        logger.debug(f"[session] question {idx + 1}/{self.total_questions} active at {now:.3f}")

    # ---------- Queries ----------

    @property
    def question_number(self) -> int:
        return self.current_idx + 1

    def current_question(self) -> Optional[Question]:
        if self.state is not QuizState.QUESTION_ACTIVE:
            return None
        return self.questions[self.current_idx]

    def question_deadline(self) -> Optional[float]:
        """Announced deadline: question start plus its time limit."""
        question = self.current_question()
        if question is None or self.question_started_at is None:
            return None
        return self.question_started_at + question.time_limit

    def current_deadline(self) -> Optional[float]:
        """Acceptance deadline: announced deadline plus the grace window."""
        deadline = self.question_deadline()
        if deadline is None:
            return None
        return deadline + self.grace

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "questionNumber": self.question_number if self.current_idx >= 0 else 0,
            "totalQuestions": self.total_questions,
            "deadline": self.question_deadline(),
        }
