"""Quiz orchestration: the single serialization point of the coordinator.

Every inbound message is decoded, then applied to the registry, session and
ledger while holding one ``asyncio.Lock``. The resulting broadcasts are
enqueued on the dispatcher before the lock is released, so each recipient
sees messages in commit order; the actual socket writes happen afterwards in
the per-connection sender tasks.

This module performs no socket I/O itself; ``app.py`` owns the sockets.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Dict, Optional

from . import config
from . import protocol
from .answer_ledger import AnswerLedger
from .connection_registry import ConnectionRegistry
from .dispatch import Dispatcher
from .errors import (
    AdminReplaced,
    InvalidHandshake,
    NotAuthorized,
    NotRegistered,
    ProtocolError,
    QuizError,
)
from .leaderboard import LeaderboardAggregator
from .quiz_session import QuizSession
from .quiz_types import Connection, Question, QuizState, Role

logger = logging.getLogger(__name__)


class QuizOrchestrator:
    """Owns one quiz session and everything needed to run it."""

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        passphrase: str = config.ADMIN_PASSPHRASE,
        password_attempts: int = config.ADMIN_PASSWORD_ATTEMPTS,
        grace: float = config.ANSWER_GRACE_SECONDS,
    ) -> None:
        self.clock = clock
        self.passphrase = passphrase
        self.password_attempts = password_attempts

        self.registry = ConnectionRegistry()
        self.session = QuizSession(grace=grace)
        self.ledger = AnswerLedger(self.session)
        self.leaderboard = LeaderboardAggregator(self.registry, self.ledger)
        self.dispatch = Dispatcher(self.registry)

        self._lock = asyncio.Lock()
        self._attempts: Dict[str, int] = {}

    # ---------- Connection lifecycle ----------

    async def connect(self, conn_id: str, ws) -> None:
        """Attach a freshly accepted socket; it is unregistered until its handshake."""
        async with self._lock:
            self.dispatch.attach(conn_id, ws)
            self._attempts[conn_id] = self.password_attempts
        logger.debug(f"[orchestrator] attached conn={conn_id}")

    async def disconnect(self, conn_id: str) -> None:
        async with self._lock:
            self._attempts.pop(conn_id, None)
            conn = self.registry.deregister(conn_id)
            if conn is not None and conn.role is Role.PLAYER:
                self._push_roster()
        await self.dispatch.detach(conn_id)

    async def handle(self, conn_id: str, raw) -> bool:
        """Apply one inbound frame. Returns False when the socket should be closed.

        Rejections never propagate: they are logged and answered with an
        ``error`` frame to the sender only.
        """
        async with self._lock:
            try:
                message = protocol.parse_message(raw)
                logger.debug(f"[orchestrator] recv conn={conn_id} type={message.type}")
                self._route(conn_id, message)
            except QuizError as e:
                logger.info(f"[orchestrator] rejected conn={conn_id} code={e.code}: {e.message}")
                self.dispatch.to_connection(conn_id, e.to_dict())
            return self._attempts.get(conn_id, 1) > 0

    # ---------- Routing ----------

    def _route(self, conn_id: str, message) -> None:
        if isinstance(message, protocol.AdminConnect):
            self._on_admin_connect(conn_id, message)
        elif isinstance(message, protocol.UserConnect):
            self._on_user_connect(conn_id, message)
        elif isinstance(message, protocol.GetLeaderboard):
            self._on_get_leaderboard(conn_id)
        elif isinstance(message, protocol.NewQuestion):
            self._require_admin(conn_id)
            self._on_new_question(message)
        elif isinstance(message, protocol.NextQuestion):
            self._require_admin(conn_id)
            self._on_next_question()
        elif isinstance(message, protocol.QuizEnded):
            self._require_admin(conn_id)
            self._on_quiz_ended()
        elif isinstance(message, protocol.SubmitAnswer):
            self._on_submit_answer(self._require_player(conn_id), message)
        else:
            raise ProtocolError(f"Unknown message: {message.type}")

    def _require_admin(self, conn_id: str) -> Connection:
        conn = self.registry.get(conn_id)
        if conn is None:
            raise NotRegistered("Send admin_connect first")
        if not self.registry.is_admin(conn_id):
            raise NotAuthorized("Only the active admin may control the quiz")
        return conn

    def _require_player(self, conn_id: str) -> Connection:
        conn = self.registry.get(conn_id)
        if conn is None:
            raise NotRegistered("Send user_connect first")
        if conn.role is not Role.PLAYER:
            raise NotAuthorized("Only players may submit answers")
        return conn

    # ---------- Handshakes ----------

    def _on_admin_connect(self, conn_id: str, message: protocol.AdminConnect) -> None:
        existing = self.registry.get(conn_id)
        if existing is not None and existing.role is not Role.ADMIN:
            raise InvalidHandshake("Connection is already registered as a player")

        if self.passphrase and message.passphrase != self.passphrase:
            self._attempts[conn_id] = self._attempts.get(conn_id, self.password_attempts) - 1
            left = self._attempts[conn_id]
            logger.warning(f"[orchestrator] bad admin passphrase conn={conn_id}, {left} attempts left")
            raise NotAuthorized(f"Incorrect passphrase. {max(left, 0)} attempts left.")
        self._attempts[conn_id] = self.password_attempts

        previous = self.registry.admin_conn_id
        if existing is None:
            self.registry.register(conn_id, message)
        else:
            self.registry.admin_conn_id = conn_id
        if previous is not None and previous != conn_id:
            self.dispatch.to_connection(previous, AdminReplaced().to_dict())

        self.dispatch.to_connection(conn_id, protocol.welcome(Role.ADMIN.value))
        self._push_roster()
        self._sync_admin()

    def _on_user_connect(self, conn_id: str, message: protocol.UserConnect) -> None:
        conn = self.registry.register(conn_id, message)
        self.dispatch.to_connection(conn_id, protocol.welcome(Role.PLAYER.value, conn.name))
        self._push_roster()

        # Late joiners and reconnecting players get the active question
        question = self.session.current_question()
        if question is not None:
            self.dispatch.to_connection(conn_id, protocol.player_question(
                question,
                self.session.question_number,
                self.session.total_questions,
                self.session.question_deadline(),
            ))
            record = self.ledger.get(conn.player_id, self.session.current_idx)
            if record is not None:
                self.dispatch.to_connection(
                    conn_id, protocol.answer_recorded(self.session.question_number, record.correct)
                )
        self.dispatch.to_connection(conn_id, protocol.leaderboard_update(self.leaderboard.snapshot()))

    def _on_get_leaderboard(self, conn_id: str) -> None:
        self.dispatch.subscribe(conn_id)
        self.dispatch.to_connection(conn_id, protocol.leaderboard_update(self.leaderboard.snapshot()))

    # ---------- Admin control ----------

    def _on_new_question(self, message: protocol.NewQuestion) -> None:
        now = self.clock()

        if message.questions is not None:
            questions = [q.to_question() for q in message.questions]
            self.session.start_quiz(questions, now)
            self._reset_for_new_quiz()
        elif message.question is not None:
            number = message.questionNumber or 1
            replacing = (
                self.session.state is QuizState.QUESTION_ACTIVE
                and number == self.session.question_number
            )
            self.session.stage_question(
                message.question.to_question(), number, message.totalQuestions, now
            )
            if number == 1:
                self._reset_for_new_quiz()
            elif replacing:
                self.ledger.reset_window(self.session.current_idx)
                self._push_leaderboard()
        else:
            raise ProtocolError("new_question needs a question or a questions list")

        self._broadcast_question(self.session.current_question())

    def _on_next_question(self) -> None:
        question = self.session.advance(self.clock())
        if question is None:
            self._broadcast_end()
        else:
            self._broadcast_question(question)

    def _on_quiz_ended(self) -> None:
        self.session.end(self.clock())
        self._broadcast_end()

    def _reset_for_new_quiz(self) -> None:
        self.ledger.clear()
        self.registry.reset_roster()
        logger.info(f"[orchestrator] new quiz with {self.session.total_questions} questions")
        self._push_roster()
        self._push_leaderboard()

    # ---------- Answers ----------

    def _on_submit_answer(self, conn: Connection, message: protocol.SubmitAnswer) -> None:
        if message.userName and message.userName != conn.name:
            logger.debug(
                f"[orchestrator] conn={conn.conn_id} claims name={message.userName!r}, registered as {conn.name!r}"
            )

        record = self.ledger.submit(
            conn.player_id, message.questionNumber - 1, message.answer, self.clock()
        )
        idx = record.question_idx

        self.dispatch.to_connection(conn.conn_id, protocol.answer_recorded(idx + 1, record.correct))
        self.dispatch.to_admin(protocol.answer_submitted(
            conn.name,
            record.correct,
            idx + 1,
            self.ledger.answered_count(idx),
            len(self.registry.online_players()),
            self.ledger.option_counts(idx),
        ))
        self._push_leaderboard()

    # ---------- Broadcast helpers ----------

    def _broadcast_question(self, question: Optional[Question]) -> None:
        if question is None:
            return
        number = self.session.question_number
        total = self.session.total_questions
        deadline = self.session.question_deadline()
        sent = self.dispatch.to_all_players(protocol.player_question(question, number, total, deadline))
        self.dispatch.to_admin(protocol.admin_question(question, number, total, deadline))
        logger.info(f"[orchestrator] question {number}/{total} sent to {sent} players")

    def _broadcast_end(self) -> None:
        entries = self.leaderboard.snapshot()
        self.dispatch.to_everyone(protocol.quiz_ended(entries))
        self.dispatch.to_everyone(protocol.leaderboard_update(entries))
        logger.info(f"[orchestrator] quiz ended, leaderboard: {[e.to_dict() for e in entries]}")

    def _push_roster(self) -> None:
        self.dispatch.to_admin(protocol.roster(self.registry.list_players()))

    def _push_leaderboard(self) -> None:
        payload = protocol.leaderboard_update(self.leaderboard.snapshot())
        self.dispatch.to_all_players(payload)
        self.dispatch.to_subscribers(payload)

    def _sync_admin(self) -> None:
        """Bring a (re)connecting admin up to date with the running quiz."""
        question = self.session.current_question()
        if question is not None:
            self.dispatch.to_admin(protocol.admin_question(
                question,
                self.session.question_number,
                self.session.total_questions,
                self.session.question_deadline(),
            ))
        self.dispatch.to_admin(protocol.leaderboard_update(self.leaderboard.snapshot()))

    # ---------- Read-only views ----------

    def state(self) -> dict:
        summary = self.session.to_dict()
        summary["players"] = self.registry.list_players()
        summary["answeredCount"] = (
            self.ledger.answered_count(self.session.current_idx)
            if self.session.state is QuizState.QUESTION_ACTIVE
            else 0
        )
        summary["adminConnected"] = self.registry.admin_conn_id is not None
        return summary
