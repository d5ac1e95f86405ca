"""Tests for checking submitted solutions."""
import copy
import os
import sys

import chess
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from errors import InvalidPosition
from generator import Puzzle
from rules import load_board, mating_moves
from verifier import CORRECT_MESSAGE, INCORRECT_MESSAGE, verification_message, verify

TWO_QUEENS = Puzzle(fen="7k/Q7/8/8/8/8/8/1Q2K3 w - - 0 1", answer=chess.Move.from_uci("b1b8"))
# c8=Q and c8=R both mate the king on a8
PROMOTION = Puzzle(fen="k7/2P5/1K6/8/8/8/8/8 w - - 0 1", answer=chess.Move.from_uci("c7c8q"))


class TestVerify:

    def test_stored_answer_is_correct(self):
        assert verify(TWO_QUEENS, TWO_QUEENS.answer) is True
        assert verification_message(True) == "Correct solution!"

    def test_repeatable(self):
        puzzle = copy.deepcopy(TWO_QUEENS)
        assert all(verify(puzzle, puzzle.answer) for _ in range(5))
        assert verify(TWO_QUEENS, "b1b8") is True

    def test_any_mating_move_is_accepted(self):
        mates = mating_moves(load_board(TWO_QUEENS.fen))
        assert len(mates) > 1
        for move in mates:
            assert verify(TWO_QUEENS, move) is True

    def test_legal_but_not_mating(self):
        assert verify(TWO_QUEENS, chess.Move.from_uci("e1e2")) is False
        assert verification_message(False) == INCORRECT_MESSAGE

    def test_san_and_uci_text(self):
        assert verify(TWO_QUEENS, "Q1b8#") is True
        assert verify(TWO_QUEENS, " b1b8 ") is True
        assert verify(TWO_QUEENS, "Ke2") is False

    @pytest.mark.parametrize("text", ["", "xyz123", "h1h8", "e1e5", "0000"])
    def test_garbage_and_illegal(self, text):
        assert verify(TWO_QUEENS, text) is False

    def test_illegal_move_object(self):
        assert verify(TWO_QUEENS, chess.Move.from_uci("h1h8")) is False

    def test_promotion_defaults_to_queen(self):
        assert verify(PROMOTION, "c7c8") is True
        assert verify(PROMOTION, "c8=Q#") is True
        assert verify(PROMOTION, "c7c8r") is True
        assert verify(PROMOTION, "c7c8n") is False

    def test_invalid_stored_position(self):
        with pytest.raises(InvalidPosition):
            verify(Puzzle(fen="not a fen", answer=chess.Move.null()), "e2e4")

    def test_messages(self):
        assert CORRECT_MESSAGE == "Correct solution!"
        assert INCORRECT_MESSAGE == "Incorrect solution. Try again."
