"""Mate-in-1 captcha puzzles: synthesize a position, then reduce it."""
import logging
import random
from dataclasses import dataclass

import chess

from engine import EngineSession
from errors import PuzzleError, ReductionExhausted
from reducer import MateReducer
from rules import is_mating_move
from settings import settings
from synthesizer import random_material, random_position

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Puzzle:
    """A position with at least one mating move, and the one the generator found."""

    fen: str
    answer: chess.Move

    def to_client(self) -> dict:
        """What may be shown to the solver; the answer stays on the server."""
        return {"fen": self.fen}


def _owner(material: list[chess.Piece]) -> chess.Color:
    """The side most of the pieces belong to; white on a tie."""
    white = sum(1 for piece in material if piece.color == chess.WHITE)
    return chess.WHITE if white * 2 >= len(material) else chess.BLACK


class PuzzleGenerator:
    """Builds puzzles against one shared EngineSession."""

    def __init__(
        self,
        session: EngineSession,
        rng: random.Random | None = None,
        attempts: int | None = None,
        reducer: MateReducer | None = None,
    ):
        self._session = session
        self._rng = rng or random.SystemRandom()
        self._attempts = attempts or settings.synthesis_attempts
        self._reducer = reducer or MateReducer(session)

    def generate(
        self,
        material: list[chess.Piece] | None = None,
        color: chess.Color | None = None,
    ) -> Puzzle:
        """Create a mate-in-1 puzzle.

        Args:
            material: Pieces for the mating side, kings excluded. Chosen at
                random when omitted.
            color: The mating side, also the side to move. When omitted it is
                the side owning `material`, or random if that is omitted too.

        Returns:
            A Puzzle whose answer is legal and delivers checkmate.

        Raises:
            PuzzleError: GenerationExhausted, EngineFailure, ReductionExhausted
                or InvalidPosition. The engine search is stopped before the
                error propagates; the whole request should be retried.
        """
        if color is None and material:
            color = _owner(material)
        elif color is None:
            color = self._rng.choice([chess.WHITE, chess.BLACK])
        if material is None:
            material = random_material(color, self._rng)

        try:
            start = random_position(material, color, self._attempts, self._rng)
            # Only one reduction may talk to the engine at a time
            with self._session.lock:
                position, answer = self._reducer.reduce(start, mating_side=color)
            if not is_mating_move(position, answer):
                raise ReductionExhausted(f"{answer.uci()} does not mate in {position.fen()}")
        except PuzzleError as e:
            logger.warning(f"Puzzle generation failed: {e}")
            self._session.stop()
            raise

        puzzle = Puzzle(fen=position.fen(), answer=answer)
        logger.info(f"Generated puzzle {puzzle.fen}")
        return puzzle
