"""Random placement of material into legal, unfinished positions."""
import logging
import random

import chess

from errors import GenerationExhausted, InvalidPosition
from rules import rejection_reason

logger = logging.getLogger(__name__)

MINOR_PIECES = [chess.KNIGHT, chess.BISHOP]
MAJOR_PIECES = [chess.ROOK, chess.QUEEN]

# Captcha answers must not be predictable from the server's PRNG state
_system_random = random.SystemRandom()


def random_material(color: chess.Color, rng: random.Random | None = None) -> list[chess.Piece]:
    """Pick 2-4 attacking pieces for `color`, 1-2 of them rooks or queens."""
    rng = rng or _system_random
    count = rng.randint(2, 4)
    major_count = rng.randint(1, 2)
    pieces = []
    for i in range(count):
        pool = MAJOR_PIECES if i < major_count else MINOR_PIECES
        pieces.append(chess.Piece(rng.choice(pool), color))
    return pieces


def parse_material(text: str, color: chess.Color) -> list[chess.Piece]:
    """Turn piece letters such as ``"QRN"`` into pieces of `color`.

    Raises:
        InvalidPosition: On unknown letters or kings.
    """
    pieces = []
    for symbol in text.strip():
        try:
            piece_type = chess.PIECE_SYMBOLS.index(symbol.lower())
        except ValueError:
            raise InvalidPosition(f"Unknown piece letter: {symbol!r}") from None
        if piece_type == chess.KING:
            raise InvalidPosition("Kings are placed automatically")
        pieces.append(chess.Piece(piece_type, color))
    return pieces


def random_position(
    material: list[chess.Piece],
    turn: chess.Color,
    attempts: int = 1000,
    rng: random.Random | None = None,
) -> chess.Board:
    """Scatter `material` and both kings over the board until the result is usable.

    Each attempt shuffles the 64 squares and fills the first ones with the
    material followed by the white and black king. The candidate is kept only
    if it is a legal, unfinished position with nobody in check, whichever
    side is to move.

    Args:
        material: Pieces to place, without kings.
        turn: Side to move in the returned position.
        attempts: How many placements to try before giving up.
        rng: Source of randomness, a cryptographic one by default.

    Returns:
        The accepted position, with no castling rights or en passant square.

    Raises:
        InvalidPosition: If the material includes a king or cannot fit.
        GenerationExhausted: If no attempt produced a usable position.
    """
    rng = rng or _system_random
    if any(piece.piece_type == chess.KING for piece in material):
        raise InvalidPosition("Kings are placed automatically")

    pieces = list(material) + [chess.Piece(chess.KING, chess.WHITE), chess.Piece(chess.KING, chess.BLACK)]
    if len(pieces) > 64:
        raise InvalidPosition(f"Too many pieces to place: {len(pieces)} including kings")

    squares = list(chess.SQUARES)
    board = chess.Board(None)
    for attempt in range(attempts):
        rng.shuffle(squares)
        board.clear()
        for piece, square in zip(pieces, squares):
            board.set_piece_at(square, piece)
        board.turn = turn

        reason = rejection_reason(board)
        if reason is None:
            logger.debug(f"Accepted {board.fen()} after {attempt + 1} attempts")
            return board.copy(stack=False)

    raise GenerationExhausted(f"No usable position after {attempts} attempts")
