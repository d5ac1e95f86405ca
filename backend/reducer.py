"""Turn an arbitrary start position into a mate-in-1 position.

Most random positions with two to four attacking pieces already have a mate
in one, so that is checked first. Otherwise Stockfish looks for a forced mate,
the reported line is played out up to the ply before mate, and if that still
does not land on a mate in one the engine keeps playing best moves until the
game ends in checkmate. The mating move returned is not guaranteed to be the
only one in the position.
"""
import logging

import chess

from engine import EngineSession
from errors import EngineFailure, InvalidPosition, ReductionExhausted
from rules import find_mate_in_one
from settings import settings

logger = logging.getLogger(__name__)


class MateReducer:
    """Drives an EngineSession from a start position down to a mate in one."""

    def __init__(
        self,
        session: EngineSession,
        mate_bound: int | None = None,
        best_move_depth: int | None = None,
        max_steps: int | None = None,
    ):
        self._session = session
        self._mate_bound = mate_bound or settings.mate_search_bound
        self._best_move_depth = best_move_depth or settings.best_move_depth
        self._max_steps = max_steps or settings.max_reduction_steps

    def reduce(
        self, board: chess.Board, mating_side: chess.Color | None = None
    ) -> tuple[chess.Board, chess.Move]:
        """Find a mate-in-1 position reachable from `board` and its mating move.

        Args:
            board: Legal start position; it is not modified.
            mating_side: The side whose material is meant to deliver mate.
                Defaults to the side to move in `board`.

        Returns:
            (position, move) where `move` is legal in `position` and mates.

        Raises:
            EngineFailure: If the engine fails; the session is stopped first.
            InvalidPosition: If the game is already over in `board`.
            ReductionExhausted: If no checkmate is reached within max_steps.
        """
        if board.is_game_over():
            raise InvalidPosition(f"Game is already over: {board.fen()}")
        if mating_side is None:
            mating_side = board.turn

        move = find_mate_in_one(board)
        if move is not None:
            logger.debug(f"Start position already has mate in one: {move.uci()}")
            return board.copy(stack=False), move

        try:
            return self._reduce_with_engine(board, mating_side)
        except EngineFailure:
            self._session.stop()
            raise

    def _reduce_with_engine(
        self, board: chess.Board, mating_side: chess.Color
    ) -> tuple[chess.Board, chess.Move]:
        with self._session.lock:
            self._session.reset()
            self._session.set_position(board.fen())
            result = self._session.search_for_mate(self._mate_bound)
        logger.debug(f"Mate search: mate={result.mate} line={[m.uci() for m in result.line]}")

        position = board.copy(stack=False)
        for move in result.line:
            self._push(position, move)
        if position.is_checkmate() and position.move_stack:
            position.pop()

        # The line can end on the defender's move when the pv is truncated
        # or the reported mate was against the side to move.
        if position.turn != mating_side and not position.is_game_over():
            self._push(position, self._best_move(position))

        move = find_mate_in_one(position)
        if move is not None:
            return position, move

        return self._play_until_mate(position)

    def _play_until_mate(self, position: chess.Board) -> tuple[chess.Board, chess.Move]:
        steps = 0
        while not position.is_checkmate():
            if position.is_game_over():
                raise ReductionExhausted(f"Game ended without checkmate: {position.fen()}")
            if steps >= self._max_steps:
                raise ReductionExhausted(f"No checkmate after {self._max_steps} engine moves")
            self._push(position, self._best_move(position))
            steps += 1

        if not position.move_stack:
            raise ReductionExhausted(f"No mating move to return in {position.fen()}")
        answer = position.pop()
        logger.debug(f"Reached checkmate after {steps} engine moves")
        return position, answer

    def _best_move(self, position: chess.Board) -> chess.Move:
        with self._session.lock:
            self._session.reset()
            self._session.set_position(position.fen())
            move = self._session.search_best_move(self._best_move_depth)
        if move is None:
            raise EngineFailure(f"Engine found no move in {position.fen()}")
        return move

    @staticmethod
    def _push(position: chess.Board, move: chess.Move) -> None:
        if not position.is_legal(move):
            raise EngineFailure(f"Engine move {move.uci()} is illegal in {position.fen()}")
        position.push(move)
