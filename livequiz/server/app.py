# livequiz/server/app.py
"""
Live quiz coordinator server.

Responsibilities:
- Exposes HTTP health-check `/ping`, plus `/state` and `/leaderboard` views.
- Exposes the WebSocket endpoint at `/` (what the browser clients open as
    `ws://localhost:3001`) and `/ws`; the role of each socket is decided by its
    first message (`admin_connect` or `user_connect`).
- Hands every inbound frame to the `QuizOrchestrator`, which owns the session,
    answer ledger, roster and leaderboard and enqueues all broadcasts.
- Exposes `POST /questions/generate`, a thin proxy to the generative-text
    question source the admin uses before a quiz starts.

Notes / operational caveats:
- Quiz state is kept in-process: one orchestrator per server process. Running
    several workers would give each its own quiz.
- Client-side timers are cosmetic; the server deadline decides which answers
    count.
"""
import argparse
import logging
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Header, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from . import config
from .errors import QuestionGenerationError
from .question_generator import QuestionGenerator
from .quiz_orchestrator import QuizOrchestrator

logger = logging.getLogger("livequiz.server")


def configure_logging(level: str = config.LOG_LEVEL, log_dir: str = config.LOG_DIR) -> Path:
    """Send server logs to `<log_dir>/server.log`, overwriting on restart."""
    directory = Path(log_dir)
    directory.mkdir(exist_ok=True)
    log_file = directory / "server.log"

    # force=True ensures we override Uvicorn's default logging config
    logging.basicConfig(
        filename=str(log_file),
        level=logging.INFO,
        format='%(asctime)s %(levelname)s [SERVER] %(message)s',
        filemode='w',
        force=True,
    )
    logging.getLogger("livequiz").setLevel(level.upper())
    return log_file


class GenerateRequest(BaseModel):
    topic: str


def create_app(
    orchestrator: Optional[QuizOrchestrator] = None,
    generator: Optional[QuestionGenerator] = None,
) -> FastAPI:
    """Build the FastAPI app around one orchestrator."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await printlog("[lifespan] starting")
        try:
            yield
        finally:
            await printlog("[lifespan] shutting down")
            dispatch = app.state.orchestrator.dispatch
            for conn_id in list(dispatch.outboxes):
                await dispatch.detach(conn_id)
            await printlog("[lifespan] bye")

    app = FastAPI(lifespan=lifespan)
    app.state.orchestrator = orchestrator or QuizOrchestrator()
    app.state.generator = generator or QuestionGenerator()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/ping")
    def health_check():
        """Health check endpoint."""
        return {"ok": True}

    @app.get("/state")
    def session_state():
        return app.state.orchestrator.state()

    @app.get("/leaderboard")
    def leaderboard():
        entries = app.state.orchestrator.leaderboard.snapshot()
        return {"leaders": [e.to_dict() for e in entries]}

    @app.post("/questions/generate")
    async def generate_questions(
        request: GenerateRequest,
        x_admin_passphrase: str = Header(default=""),
    ):
        """Ask the question source for a fresh question set about a topic."""
        passphrase = app.state.orchestrator.passphrase
        if passphrase and x_admin_passphrase != passphrase:
            raise HTTPException(status_code=401, detail="Invalid admin passphrase")
        try:
            questions = await app.state.generator.generate(request.topic)
        except QuestionGenerationError as e:
            logger.error(f"[generate] topic={request.topic!r} failed: {e.message}")
            raise HTTPException(status_code=502, detail=e.message)
        return {"questions": [q.model_dump() for q in questions]}

    app.add_api_websocket_route("/", quiz_socket)
    app.add_api_websocket_route("/ws", quiz_socket)
    return app


async def quiz_socket(ws: WebSocket):
    """
    One socket, one receive loop.
    - The socket is attached unregistered and may only ask for the leaderboard
      until it sends a handshake.
    - Every frame goes through the orchestrator's serialization point.
    - On close the connection is deregistered; its player stays on the roster.
    """
    orchestrator: QuizOrchestrator = ws.app.state.orchestrator
    await ws.accept()

    conn_id = uuid.uuid4().hex[:8]
    await orchestrator.connect(conn_id, ws)
    await printlog(f"[ws] connected conn={conn_id} from {ws.client.host if ws.client else '?'}")

    try:
        while True:
            raw = await ws.receive_text()
            keep_open = await orchestrator.handle(conn_id, raw)
            if not keep_open:
                await printlog(f"[ws] closing conn={conn_id} after too many bad passphrases")
                await orchestrator.dispatch.flush(conn_id)
                await ws.close(code=1008)
                break

    except WebSocketDisconnect:
        await printlog(f"[ws] disconnect conn={conn_id}")

    except Exception:
        logger.exception(f"[ws] error on conn={conn_id}")

    finally:
        await orchestrator.disconnect(conn_id)


async def printlog(message: str):
    """Helper to log server messages."""
    logger.debug(message)


app = create_app()


def main(argv: Optional[list] = None) -> None:
    import uvicorn

    parser = argparse.ArgumentParser(description="LiveQuiz coordinator server")
    parser.add_argument("--host", default=config.HOST, help="Interface to bind")
    parser.add_argument("--port", "-p", type=int, default=config.PORT, help="Port to listen on")
    parser.add_argument("--passphrase", default=config.ADMIN_PASSPHRASE, help="Shared admin passphrase")
    parser.add_argument("--log-level", default=config.LOG_LEVEL, help="Level for livequiz loggers")
    args = parser.parse_args(argv)

    log_file = configure_logging(args.log_level)
    logger.info(f"Starting LiveQuiz on {args.host}:{args.port}, logging to {log_file}")

    server_app = create_app(orchestrator=QuizOrchestrator(passphrase=args.passphrase))
    uvicorn.run(server_app, host=args.host, port=args.port, log_level="info", log_config=None)


if __name__ == "__main__":
    main()
