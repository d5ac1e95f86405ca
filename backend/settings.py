from pydantic import BaseModel
import os
import shutil
from pathlib import Path

class Settings(BaseModel):
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8000"))
    cors_origins: str = os.getenv("CORS_ORIGINS", "*")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    stockfish_path: str | None = None
    # Seconds to wait for any single engine response before giving up
    engine_timeout: float = float(os.getenv("ENGINE_TIMEOUT", "30"))
    # Full moves for `go mate`
    mate_search_bound: int = int(os.getenv("MATE_SEARCH_BOUND", "25"))
    best_move_depth: int = int(os.getenv("BEST_MOVE_DEPTH", "15"))
    synthesis_attempts: int = int(os.getenv("SYNTHESIS_ATTEMPTS", "1000"))
    max_reduction_steps: int = int(os.getenv("MAX_REDUCTION_STEPS", "60"))
    # Unanswered puzzles kept by the HTTP layer before the oldest are dropped
    max_pending_puzzles: int = int(os.getenv("MAX_PENDING_PUZZLES", "10000"))

_backend_dir = Path(__file__).resolve().parent
_env_stockfish_path = os.getenv("STOCKFISH_PATH")
if _env_stockfish_path:
    _default_stockfish_path = _env_stockfish_path
else:
    _default_stockfish_path = None
    for candidate in (_backend_dir / "stockfish.exe", _backend_dir / "stockfish"):
        if candidate.exists():
            _default_stockfish_path = str(candidate)
            break
    if _default_stockfish_path is None:
        _default_stockfish_path = shutil.which("stockfish")

settings = Settings(stockfish_path=_default_stockfish_path)
