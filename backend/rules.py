import chess

from errors import InvalidPosition


def validate_fen(fen: str) -> tuple[bool, str | None]:
    """Validate a FEN string for correctness.

    Checks that the FEN is parseable by python-chess and that both kings
    are present on the board.

    Args:
        fen: The FEN string to validate.

    Returns:
        A tuple of (is_valid, error_message). If valid, error_message is None.
    """
    try:
        board = chess.Board(fen)
    except ValueError as e:
        return False, f"Invalid FEN format: {e}"

    if board.king(chess.WHITE) is None:
        return False, "Invalid position: White king is missing"
    if board.king(chess.BLACK) is None:
        return False, "Invalid position: Black king is missing"

    return True, None

def load_board(fen: str) -> chess.Board:
    """Parse a FEN into a board, raising InvalidPosition if it is unusable."""
    is_valid, error = validate_fen(fen)
    if not is_valid:
        raise InvalidPosition(error)
    return chess.Board(fen)

def parse_move(board: chess.Board, move_str: str) -> chess.Move:
    """ Handle both Standard Algebraic Notation(SAN) first, then Universal Chess Interface(UCI).
    SAN is what the board widget submits, UCI is what the engine and the stored answers use.
    """
    try:
        move = board.parse_san(move_str)
        return move
    except ValueError:
        pass
    try:
        move = board.parse_uci(move_str)
        return move
    except ValueError as e:
        raise ValueError(f"Invalid move: '{move_str}'. Provide SAN (e.g., Qg7#) or UCI (e.g., f7g7).") from e

def apply_move(board: chess.Board, move: chess.Move) -> chess.Board | None:
    """Return a copy of `board` with `move` played, or None if the move is illegal."""
    if not board.is_legal(move):
        return None
    after = board.copy(stack=False)
    after.push(move)
    return after

def is_mating_move(board: chess.Board, move: chess.Move) -> bool:
    after = apply_move(board, move)
    return after is not None and after.is_checkmate()

def mating_moves(board: chess.Board) -> list[chess.Move]:
    """All legal moves for the side to move that deliver immediate checkmate."""
    found = []
    for move in board.legal_moves:
        board.push(move)
        if board.is_checkmate():
            found.append(move)
        board.pop()
    return found

def find_mate_in_one(board: chess.Board) -> chess.Move | None:
    for move in board.legal_moves:
        board.push(move)
        mate = board.is_checkmate()
        board.pop()
        if mate:
            return move
    return None

def rejection_reason(board: chess.Board) -> str | None:
    """Explain why a constructed position cannot be used as a puzzle start.

    A placement (rather than a played game) must not begin mid-check for
    either side, and must leave the side to move with a real choice.

    Returns:
        None if the position is acceptable, otherwise a short reason.
    """
    # Opposite check is reported below with its own reason
    status = board.status() & ~chess.STATUS_OPPOSITE_CHECK
    if status != chess.STATUS_VALID:
        return f"invalid position (status {status!r})"
    if board.is_checkmate():
        return "checkmate"
    if board.is_stalemate():
        return "stalemate"
    if board.is_check():
        return "side to move is in check"
    flipped = board.copy(stack=False)
    flipped.turn = not board.turn
    if flipped.is_check():
        return "side not to move is in check"
    return None
