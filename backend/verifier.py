import chess

from generator import Puzzle
from rules import is_mating_move, load_board, parse_move

CORRECT_MESSAGE = "Correct solution!"
INCORRECT_MESSAGE = "Incorrect solution. Try again."


def verify(puzzle: Puzzle, submitted: chess.Move | str) -> bool:
    """Check whether `submitted` checkmates in the puzzle position.

    Any legal mating move is accepted, not only the stored answer, since a
    position can have more than one mate in one.

    Args:
        puzzle: The puzzle that was shown to the solver.
        submitted: The solver's move as a chess.Move, or SAN/UCI text.

    Returns:
        True iff the move is legal and results in checkmate.
    """
    board = load_board(puzzle.fen)
    if isinstance(submitted, str):
        move = _read_move(board, submitted.strip())
        if move is None:
            return False
    else:
        move = submitted

    # The board widget always promotes to a queen
    if move.promotion is None and _is_promotion_square(board, move):
        move = chess.Move(move.from_square, move.to_square, promotion=chess.QUEEN)

    return is_mating_move(board, move)


def _read_move(board: chess.Board, text: str) -> chess.Move | None:
    try:
        return parse_move(board, text)
    except ValueError:
        pass
    # Coordinates that are not legal as written, e.g. a promotion without its piece
    try:
        return chess.Move.from_uci(text)
    except ValueError:
        return None


def _is_promotion_square(board: chess.Board, move: chess.Move) -> bool:
    piece = board.piece_at(move.from_square)
    if piece is None or piece.piece_type != chess.PAWN:
        return False
    return chess.square_rank(move.to_square) in (0, 7)


def verification_message(correct: bool) -> str:
    return CORRECT_MESSAGE if correct else INCORRECT_MESSAGE
