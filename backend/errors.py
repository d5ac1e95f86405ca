"""Failure conditions raised while building or checking a puzzle.

Only these reach callers of the generator; a failed attempt inside the
synthesizer is retried silently and never surfaces on its own.
"""


class PuzzleError(Exception):
    """Base class for puzzle generation failures."""


class GenerationExhausted(PuzzleError):
    """No legal random position was found within the attempt budget."""


class EngineFailure(PuzzleError):
    """The engine process died, timed out or sent something unusable."""


class ReductionExhausted(PuzzleError):
    """The stepwise reduction never reached a checkmate."""


class InvalidPosition(PuzzleError, ValueError):
    """A FEN string or a set of pieces cannot form a chess position."""
