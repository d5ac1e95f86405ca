"""Shared fixtures: a scripted stand-in for the Stockfish process.

``fake_stockfish`` patches subprocess.Popen so that EngineSession talks to a
FakeUciProcess. Each command written to its stdin is answered with canned
output lines chosen by the FakeStockfish script:

    fake_stockfish.mate_lines  - output for ``go mate``
    fake_stockfish.best_moves  - UCI moves handed out, one per ``go depth``
    fake_stockfish.die_on      - command prefix that kills the process

Tests marked ``stockfish`` run against a real binary and are skipped when
none is configured.
"""
import os
import queue
import random
import sys
from unittest.mock import patch

import chess
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import engine


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "stockfish: needs a real Stockfish binary (skipped if missing)"
    )


def pytest_collection_modifyitems(config, items):
    if engine.is_configured():
        return
    skip = pytest.mark.skip(reason="Stockfish not configured")
    for item in items:
        if "stockfish" in item.keywords:
            item.add_marker(skip)


class _FakeStdin:
    def __init__(self, proc):
        self._proc = proc

    def write(self, data):
        for cmd in data.splitlines():
            self._proc.receive(cmd)

    def flush(self):
        pass

    def close(self):
        pass


class FakeUciProcess:
    """Just enough of subprocess.Popen for EngineSession."""

    def __init__(self, respond):
        self.commands = []
        self.returncode = None
        self.waited = False
        self._respond = respond
        self._out = queue.Queue()
        self.stdin = _FakeStdin(self)
        self.stdout = self._read_stdout()

    def _read_stdout(self):
        while True:
            line = self._out.get()
            if line is None:
                return
            yield line + "\n"

    def receive(self, cmd):
        if self.returncode is not None:
            raise BrokenPipeError("engine is dead")
        self.commands.append(cmd)
        if cmd == "quit":
            self.die(0)
            return
        lines = self._respond(cmd)
        if lines is None:
            self.die()
            return
        for line in lines:
            self._out.put(line)

    def die(self, code=-9):
        if self.returncode is None:
            self.returncode = code
            self._out.put(None)

    def poll(self):
        return self.returncode

    def wait(self, timeout=None):
        self.waited = True
        if self.returncode is None:
            self.die(0)
        return self.returncode

    def kill(self):
        self.die()


class FakeStockfish:
    """Scripted replies, shared by every process spawned during a test."""

    def __init__(self):
        self.mate_lines: list[str] = ["bestmove (none)"]
        self.best_moves: list[str] = []
        self.die_on: str | None = None
        self.silent_on: str | None = None
        self.processes: list[FakeUciProcess] = []

    def spawn(self, *args, **kwargs):
        proc = FakeUciProcess(self.respond)
        self.processes.append(proc)
        return proc

    @property
    def commands(self) -> list[str]:
        return [cmd for proc in self.processes for cmd in proc.commands]

    def respond(self, cmd):
        if self.die_on and cmd.startswith(self.die_on):
            return None
        if self.silent_on and cmd.startswith(self.silent_on):
            return []
        if cmd == "uci":
            return ["id name FakeFish", "uciok"]
        if cmd == "isready":
            return ["readyok"]
        if cmd.startswith("go mate"):
            return list(self.mate_lines)
        if cmd.startswith("go depth"):
            move = self.best_moves.pop(0) if self.best_moves else "(none)"
            return [f"info depth 1 score cp 0 nodes 20 pv {move}", f"bestmove {move}"]
        return []


class ArrangedRandom:
    """Seeded randomness whose shuffles put chosen squares first.

    Each shuffle consumes one layout (a list of square names); once they run
    out, shuffles are ordinary seeded shuffles.
    """

    def __init__(self, layouts, seed=0):
        self._layouts = list(layouts)
        self._random = random.Random(seed)

    def shuffle(self, squares):
        if not self._layouts:
            self._random.shuffle(squares)
            return
        front = [chess.parse_square(name) for name in self._layouts.pop(0)]
        squares[:] = front + [sq for sq in squares if sq not in front]

    def randint(self, a, b):
        return self._random.randint(a, b)

    def choice(self, seq):
        return self._random.choice(seq)


@pytest.fixture
def arranged_random():
    return ArrangedRandom


@pytest.fixture
def fake_stockfish():
    fake = FakeStockfish()
    with patch("engine.subprocess.Popen", side_effect=fake.spawn), \
         patch("engine.is_configured", return_value=True):
        yield fake


@pytest.fixture
def session(fake_stockfish):
    s = engine.EngineSession(path="fakefish", timeout=2.0)
    s.start()
    yield s
    s.close()
