"""Answer ledger: at most one answer record per (player, question)."""
import logging
from typing import Dict, List, Optional

from . import config
from .errors import AlreadyAnswered, Expired, QuestionNotActive
from .quiz_session import QuizSession
from .quiz_types import AnswerRecord

logger = logging.getLogger(__name__)


class AnswerLedger:
    def __init__(self, session: QuizSession) -> None:
        self.session = session
        # question_idx -> {player_id: AnswerRecord}, insertion ordered
        self.records: Dict[int, Dict[str, AnswerRecord]] = {}

    def submit(
        self,
        player_id: str,
        question_idx: int,
        option_idx: Optional[int],
        submitted_at: float,
    ) -> AnswerRecord:
        """Record a player's answer for the active question.

        Checks run in order: the question must be the active one, the pair
        must not already have a record, and the answer must arrive before the
        session's acceptance deadline. A ``None`` option is a legitimate "no
        answer" and is scored as incorrect.
        """
        question = self.session.current_question()
        if question is None or question_idx != self.session.current_idx:
            raise QuestionNotActive(f"Question {question_idx + 1} is not active")

        bucket = self.records.setdefault(question_idx, {})
        if player_id in bucket:
            raise AlreadyAnswered(f"Question {question_idx + 1} already answered")

        deadline = self.session.current_deadline()
        if deadline is not None and submitted_at > deadline:
            raise Expired(
                f"Answer for question {question_idx + 1} arrived "
                f"{submitted_at - deadline:.2f}s after the deadline"
            )

        started = self.session.question_started_at or submitted_at
        record = AnswerRecord(
            player_id=player_id,
            question_idx=question_idx,
            option_idx=option_idx,
            correct=option_idx is not None and option_idx == question.correct_idx,
            submitted_at=submitted_at,
            elapsed=max(0.0, submitted_at - started),
        )
        bucket[player_id] = record
        logger.debug(
            f"[ledger] player={player_id} q={question_idx + 1} answer={option_idx} "
            f"correct={record.correct} elapsed={record.elapsed:.2f}"
        )
        return record

    # ---------- Windows ----------

    def reset_window(self, question_idx: int) -> None:
        """Discard the records of a question that is being re-asked."""
        dropped = self.records.pop(question_idx, {})
        if dropped:
            logger.debug(f"[ledger] reset q={question_idx + 1}, dropped {len(dropped)} answers")

    def clear(self) -> None:
        self.records.clear()

    # ---------- Queries ----------

    def get(self, player_id: str, question_idx: int) -> Optional[AnswerRecord]:
        return self.records.get(question_idx, {}).get(player_id)

    def answered_count(self, question_idx: int) -> int:
        return len(self.records.get(question_idx, {}))

    def option_counts(self, question_idx: int) -> List[int]:
        """Histogram of chosen options for one question; skipped answers not counted."""
        counts = [0] * config.OPTIONS_PER_QUESTION
        for record in self.records.get(question_idx, {}).values():
            if record.option_idx is not None and 0 <= record.option_idx < len(counts):
                counts[record.option_idx] += 1
        return counts

    def records_for(self, player_id: str) -> List[AnswerRecord]:
        return [
            bucket[player_id]
            for _, bucket in sorted(self.records.items())
            if player_id in bucket
        ]

    def all_records(self) -> List[AnswerRecord]:
        return [r for _, bucket in sorted(self.records.items()) for r in bucket.values()]
