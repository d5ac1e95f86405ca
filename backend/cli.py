import argparse
import logging
import sys

import chess

from engine import EngineSession
from errors import InvalidPosition, PuzzleError
from generator import Puzzle, PuzzleGenerator
from rules import load_board
from settings import settings
from synthesizer import parse_material
from verifier import verification_message, verify

COLORS = {"white": chess.WHITE, "black": chess.BLACK}


def _generate(args) -> int:
    color = COLORS[args.color] if args.color else None
    try:
        material = None
        if args.material:
            if color is None:
                color = chess.WHITE
            material = parse_material(args.material, color)

        with EngineSession() as session:
            puzzle = PuzzleGenerator(session).generate(material=material, color=color)
    except PuzzleError as e:
        print(f"Generation failed: {e}", file=sys.stderr)
        return 1

    board = load_board(puzzle.fen)
    print(f"FEN: {puzzle.fen}")
    print(f"To move: {'White' if board.turn else 'Black'}")
    print(f"Answer: {puzzle.answer.uci()} ({board.san(puzzle.answer)})")
    if args.show_board:
        print(board)
    return 0


def _verify(args) -> int:
    # The stored answer plays no part in checking, any mate is accepted
    puzzle = Puzzle(fen=args.fen, answer=chess.Move.null())
    try:
        correct = verify(puzzle, args.move)
    except InvalidPosition as e:
        print(f"Invalid position: {e}", file=sys.stderr)
        return 1
    print(verification_message(correct))
    return 0 if correct else 1


def main():
    p = argparse.ArgumentParser(description="Chess mate-in-1 captcha (CLI)")
    p.add_argument("--verbose", action="store_true", help="Log engine traffic")
    sub = p.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Generate a mate-in-1 puzzle")
    gen.add_argument("--color", choices=sorted(COLORS), help="Side that mates (random if omitted)")
    gen.add_argument("--material", help="Pieces for the mating side, e.g. QQ or RBN (random if omitted)")
    gen.add_argument("--show-board", action="store_true", help="Print an ASCII board")

    ver = sub.add_parser("verify", help="Check a move against a position")
    ver.add_argument("--fen", required=True, help="FEN string")
    ver.add_argument("--move", required=True, help="Move in SAN (e.g., Qb8#) or UCI (e.g., b1b8)")

    args = p.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else settings.log_level)

    if args.command == "generate":
        return _generate(args)
    return _verify(args)

if __name__ == "__main__":
    sys.exit(main())
