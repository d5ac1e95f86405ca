"""Long-lived Stockfish session speaking raw UCI over stdin/stdout.

The protocol has no request ids, so responses are matched to commands purely
by order. Every command holds ``EngineSession.lock`` and callers that issue a
sequence of commands (reset, position, go) hold it across the whole sequence.
"""
import logging
import os
import queue
import re
import shutil
import subprocess
import threading
import time
from dataclasses import dataclass, field

import chess

from errors import EngineFailure
from settings import settings

logger = logging.getLogger(__name__)

UCI_MATE_RE = re.compile(r"score mate (-?\d+)")

# Pushed by the reader thread when the engine's stdout closes
_EOF = None


def is_configured(path: str | None = None) -> bool:
    """Check if Stockfish is properly configured and accessible."""
    path = path or settings.stockfish_path
    if not path:
        return False
    # Check if path exists directly or is in system PATH
    return os.path.isfile(path) or shutil.which(path) is not None


def parse_uci_move(token: str) -> chess.Move:
    try:
        return chess.Move.from_uci(token)
    except ValueError as e:
        raise EngineFailure(f"Engine sent an unparsable move: {token!r}") from e


def parse_info(line: str) -> tuple[int | None, list[chess.Move] | None]:
    """Pull the mate score and principal variation out of an ``info`` line.

    Returns:
        (mate, pv): mate distance in moves relative to the side to move, and
        the pv as moves. Either is None when the line does not carry it.
    """
    mate = None
    m = UCI_MATE_RE.search(line)
    if m:
        mate = int(m.group(1))

    pv = None
    if " pv " in line:
        # pv is always the last field of an info line
        pv = [parse_uci_move(token) for token in line.split(" pv ", 1)[1].split()]
    return mate, pv


@dataclass
class MateSearchResult:
    """Outcome of a ``go mate`` search."""

    line: list[chess.Move] = field(default_factory=list)
    mate: int | None = None


class EngineSession:
    """One Stockfish process and the single command channel to it."""

    def __init__(self, path: str | None = None, timeout: float | None = None):
        """Prepare a session; the process is spawned by start().

        Args:
            path: Stockfish binary. Defaults to settings.stockfish_path.
            timeout: Seconds to wait for each command's terminal response.
        """
        self._path = path or settings.stockfish_path
        self._timeout = timeout if timeout is not None else settings.engine_timeout
        self._proc: subprocess.Popen | None = None
        self._lines: queue.Queue = queue.Queue()
        self._searching = False
        self.last_line: list[chess.Move] = []
        self.lock = threading.RLock()

    def __enter__(self) -> "EngineSession":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def is_running(self) -> bool:
        return self._proc is not None and self._proc.poll() is None

    def start(self) -> None:
        """Spawn the engine and complete the ``uci`` handshake.

        Raises:
            EngineFailure: If Stockfish is missing or does not answer.
        """
        with self.lock:
            if self.is_running:
                return
            if not is_configured(self._path):
                raise EngineFailure("Stockfish not configured.")
            if self._proc is not None:
                self._reap(self._proc)
                self._proc = None
            try:
                self._proc = subprocess.Popen(
                    [self._path],
                    stdin=subprocess.PIPE,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.DEVNULL,
                    text=True,
                    bufsize=1,
                )
            except OSError as e:
                raise EngineFailure(f"Unable to start Stockfish: {e}") from e

            self._lines = queue.Queue()
            self._searching = False
            reader = threading.Thread(
                target=self._pump,
                args=(self._proc.stdout, self._lines),
                name="stockfish-reader",
                daemon=True,
            )
            reader.start()

            self._send("uci")
            self._read_until("uciok")
            logger.info(f"Started Stockfish from {self._path}")

    @staticmethod
    def _reap(proc) -> None:
        """Collect the exit status of a process that has already died."""
        try:
            proc.wait(timeout=2.0)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.wait()

    @staticmethod
    def _pump(stream, lines: queue.Queue) -> None:
        try:
            for raw in stream:
                lines.put(raw.rstrip())
        except (OSError, ValueError) as e:
            logger.debug(f"Engine output closed: {e}")
        finally:
            lines.put(_EOF)

    def _send(self, cmd: str) -> None:
        if not self.is_running:
            raise EngineFailure("Stockfish process is not running")
        logger.debug(f">> {cmd}")
        try:
            self._proc.stdin.write(cmd + "\n")
            self._proc.stdin.flush()
        except (OSError, ValueError) as e:
            raise EngineFailure(f"Error during UCI communication: {e}") from e

    def _next_line(self, deadline: float) -> str:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise EngineFailure(f"Stockfish did not answer within {self._timeout}s")
        try:
            line = self._lines.get(timeout=remaining)
        except queue.Empty:
            raise EngineFailure(f"Stockfish did not answer within {self._timeout}s") from None
        if line is _EOF:
            # Leave the marker for whoever reads next
            self._lines.put(_EOF)
            raise EngineFailure("Stockfish process exited")
        logger.debug(f"<< {line}")
        return line

    def _read_until(self, prefix: str) -> list[str]:
        """Collect lines up to and including the first one starting with `prefix`."""
        deadline = time.monotonic() + self._timeout
        out_lines = []
        while True:
            line = self._next_line(deadline)
            out_lines.append(line)
            if line.startswith(prefix):
                return out_lines

    def reset(self) -> None:
        """Start a new game so no search history leaks between puzzles."""
        with self.lock:
            if self._searching:
                self.stop()
            self.last_line = []
            self._send("ucinewgame")
            self._send("isready")
            # Anything before readyok belongs to an earlier command
            self._read_until("readyok")

    def set_position(self, fen: str) -> None:
        # UCI does not acknowledge this; a bad FEN only shows up in the search
        with self.lock:
            self._send(f"position fen {fen}")

    def search_for_mate(self, max_mate: int) -> MateSearchResult:
        """Run ``go mate`` and return the mating line the engine reports.

        The first info line that carries a mate score within `max_mate` and a
        pv is adopted straight away; the search is then stopped and its
        remaining output drained. Without such a line, the last pv seen
        before ``bestmove`` is returned (possibly empty).

        Raises:
            EngineFailure: On timeout, process exit or a malformed move.
        """
        with self.lock:
            result = MateSearchResult()
            self._send(f"go mate {max_mate}")
            self._searching = True
            deadline = time.monotonic() + self._timeout
            while True:
                line = self._next_line(deadline)
                if line.startswith("bestmove"):
                    self._searching = False
                    break
                if not line.startswith("info") or line.startswith("info string"):
                    continue

                mate, pv = parse_info(line)
                if pv:
                    result.line = pv
                if mate is not None:
                    result.mate = mate
                    if abs(mate) <= max_mate and pv:
                        logger.debug(f"Adopting mate {mate} line early")
                        self.stop()
                        break

            self.last_line = list(result.line)
            return result

    def search_best_move(self, depth: int) -> chess.Move | None:
        """Run ``go depth`` and return the engine's move, or None if it has none."""
        with self.lock:
            self._send(f"go depth {depth}")
            self._searching = True
            out_lines = self._read_until("bestmove")
            self._searching = False

            parts = out_lines[-1].split()
            if len(parts) < 2 or parts[1] == "(none)":
                return None
            return parse_uci_move(parts[1])

    def stop(self) -> None:
        """Ask the engine to end the current search and drain its last output.

        Best effort: a dead or unresponsive engine is logged, not raised.
        """
        with self.lock:
            if not self.is_running:
                self._searching = False
                return
            try:
                self._send("stop")
                if self._searching:
                    self._read_until("bestmove")
            except EngineFailure as e:
                logger.warning(f"Failed to stop Stockfish search: {e}")
            finally:
                self._searching = False

    def close(self) -> None:
        """Ensure the subprocess is properly terminated."""
        with self.lock:
            proc, self._proc = self._proc, None
        if proc is None:
            return
        try:
            if proc.stdin:
                proc.stdin.write("quit\n")
                proc.stdin.flush()
                proc.stdin.close()
        except (OSError, ValueError) as e:
            logger.debug(f"Could not send quit to Stockfish: {e}")
        try:
            proc.wait(timeout=2.0)
        except subprocess.TimeoutExpired:
            logger.warning("Stockfish did not quit in time, killing it")
            proc.kill()
            proc.wait()
