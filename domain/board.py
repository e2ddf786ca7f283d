"""
Pure tic-tac-toe rules for a 3x3 board.

A board is a tuple of 9 cells, row by row, each cell `None` or a `Mark`.
Nothing in this module performs I/O or mutates its arguments.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple

from .errors import CellOccupiedError, IllegalMoveError, InvalidBoardError
from .models import Mark

BOARD_SIZE = 9

WINNING_LINES: Tuple[Tuple[int, int, int], ...] = (
    (0, 1, 2),
    (3, 4, 5),
    (6, 7, 8),
    (0, 3, 6),
    (1, 4, 7),
    (2, 5, 8),
    (0, 4, 8),
    (2, 4, 6),
)

Board = Tuple[Optional[Mark], ...]


class BoardStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    WIN = "win"
    DRAW = "draw"


@dataclass(frozen=True)
class Evaluation:
    status: BoardStatus
    winner: Optional[Mark] = None
    line: Optional[Tuple[int, int, int]] = None

    @property
    def is_terminal(self) -> bool:
        return self.status != BoardStatus.IN_PROGRESS


def empty_board() -> Board:
    return (None,) * BOARD_SIZE


def _validate(board: Sequence) -> None:
    if len(board) != BOARD_SIZE:
        raise InvalidBoardError(f"expected {BOARD_SIZE} cells, got {len(board)}")
    for cell in board:
        if cell is not None and not isinstance(cell, Mark):
            raise InvalidBoardError(f"unexpected cell value {cell!r}")


def evaluate(board: Sequence[Optional[Mark]]) -> Evaluation:
    """
    Classify a board as won, drawn or still in progress.

    A draw is only reported for a full board on which no line is complete.
    """

    _validate(board)
    for line in WINNING_LINES:
        a, b, c = line
        if board[a] is not None and board[a] == board[b] == board[c]:
            return Evaluation(BoardStatus.WIN, winner=board[a], line=line)
    if all(cell is not None for cell in board):
        return Evaluation(BoardStatus.DRAW)
    return Evaluation(BoardStatus.IN_PROGRESS)


def apply_move(board: Sequence[Optional[Mark]], cell: int, mark: Mark) -> Board:
    """Return a new board with `mark` placed at `cell`."""

    _validate(board)
    if isinstance(cell, bool) or not isinstance(cell, int) or not 0 <= cell < BOARD_SIZE:
        raise IllegalMoveError(cell)
    if board[cell] is not None:
        raise CellOccupiedError(cell)
    cells = list(board)
    cells[cell] = mark
    return tuple(cells)
