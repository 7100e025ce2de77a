import threading

from models.leaderboard import Board


class BoardState:
    """Holds the current ``Board``.

    Boards are immutable, so publishing is a reference swap under the lock
    and readers get a complete board without copying. The lock is a
    ``threading.Lock`` because sync route handlers read from the threadpool.
    """

    def __init__(self, initial: Board):
        self._lock = threading.Lock()
        self._board = initial

    def current(self) -> Board:
        with self._lock:
            return self._board

    def publish(self, board: Board) -> Board:
        """Make ``board`` current and return the board it replaced."""
        with self._lock:
            previous = self._board
            self._board = board
        return previous
