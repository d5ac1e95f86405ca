import logging
import threading
import uuid
from collections import OrderedDict
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from engine import EngineSession
from errors import EngineFailure, PuzzleError
from generator import Puzzle, PuzzleGenerator
from schemas import CaptchaResponse, VerifyRequest, VerifyResponse
from settings import settings
from verifier import verification_message, verify

logger = logging.getLogger(__name__)


class PuzzleStore:
    """Puzzles handed out and not answered yet. Each one can be redeemed once.

    At most `max_size` puzzles are kept; adding one more drops the oldest.
    """

    def __init__(self, max_size: int | None = None):
        self._puzzles: OrderedDict[str, Puzzle] = OrderedDict()
        self._max_size = max_size or settings.max_pending_puzzles
        self._lock = threading.Lock()

    def add(self, puzzle: Puzzle) -> str:
        puzzle_id = uuid.uuid4().hex
        with self._lock:
            self._puzzles[puzzle_id] = puzzle
            while len(self._puzzles) > self._max_size:
                self._puzzles.popitem(last=False)
        return puzzle_id

    def pop(self, puzzle_id: str) -> Puzzle | None:
        with self._lock:
            return self._puzzles.pop(puzzle_id, None)

    def __len__(self) -> int:
        return len(self._puzzles)


def _ensure_session(session: EngineSession) -> None:
    """Restart the engine if an earlier failure took it down."""
    if session.is_running:
        return
    try:
        session.start()
    except EngineFailure as e:
        # Positions with an immediate mate still work without the engine
        logger.warning(f"Stockfish unavailable: {e}")


def create_app(session_factory=EngineSession) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        session = session_factory()
        _ensure_session(session)
        app.state.session = session
        app.state.generator = PuzzleGenerator(session)
        app.state.puzzles = PuzzleStore()
        try:
            yield
        finally:
            session.close()

    app = FastAPI(title="Chess Mate-in-1 Captcha", version="0.1.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.cors_origins] if settings.cors_origins != "*" else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/healthz")
    def healthz():
        return {"ok": True}

    @app.get("/captcha", response_model=CaptchaResponse)
    def captcha(request: Request):
        state = request.app.state
        _ensure_session(state.session)
        try:
            puzzle = state.generator.generate()
        except PuzzleError as e:
            raise HTTPException(status_code=503, detail=f"Could not generate a puzzle: {e}") from e

        puzzle_id = state.puzzles.add(puzzle)
        return CaptchaResponse(puzzle_id=puzzle_id, **puzzle.to_client())

    @app.post("/verify", response_model=VerifyResponse)
    def verify_solution(req: VerifyRequest, request: Request):
        puzzle = request.app.state.puzzles.pop(req.puzzle_id)
        if puzzle is None:
            raise HTTPException(status_code=400, detail="No captcha found in session")

        correct = verify(puzzle, req.solution)
        return VerifyResponse(correct=correct, message=verification_message(correct))

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=settings.log_level)
    uvicorn.run(app, host=settings.host, port=settings.port)
