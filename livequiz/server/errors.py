"""Rejection types raised by the coordinator components.

Every error carries a stable ``code`` that is sent to the offending client in
an ``{"type": "error", "code": ..., "message": ...}`` frame.
"""


class QuizError(Exception):
    code = "quiz_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = str(self)

    def to_dict(self) -> dict:
        return {"type": "error", "code": self.code, "message": self.message}


# ---------- Protocol ----------

class ProtocolError(QuizError):
    """Malformed or unroutable message."""
    code = "protocol_error"


class InvalidHandshake(ProtocolError):
    """Handshake is missing a role or a player name."""
    code = "invalid_handshake"


class NotRegistered(ProtocolError):
    """Connection must send admin_connect or user_connect first."""
    code = "not_registered"


# ---------- State conflicts ----------

class StateConflict(QuizError):
    """Request conflicts with the current quiz state."""
    code = "state_conflict"


class AlreadyAnswered(StateConflict):
    """An answer for this question was already recorded."""
    code = "already_answered"


class QuestionNotActive(StateConflict):
    """That question is not the active one."""
    code = "question_not_active"


class Expired(StateConflict):
    """The answer window for this question has closed."""
    code = "expired"


class NoActiveQuiz(StateConflict):
    """No quiz is running."""
    code = "no_active_quiz"


class QuestionOutOfOrder(StateConflict):
    """Question number does not follow the active question."""
    code = "question_out_of_order"


# ---------- Authorization / input ----------

class NotAuthorized(QuizError):
    """Only the admin may send that message."""
    code = "not_authorized"


class AdminReplaced(NotAuthorized):
    """Another admin connected; this console is now read-only."""
    code = "admin_replaced"


class EmptyQuestionSet(QuizError):
    """A quiz needs at least one question."""
    code = "empty_question_set"


class QuestionGenerationError(QuizError):
    """The question generator returned an unusable response."""
    code = "generation_failed"
