import unittest

from domain.board import (
    WINNING_LINES,
    BoardStatus,
    apply_move,
    empty_board,
    evaluate,
)
from domain.errors import CellOccupiedError, IllegalMoveError, InvalidBoardError
from domain.models import Mark

X, O = Mark.X, Mark.O


def board_from(rows: str):
    cells = []
    for char in rows.replace(" ", ""):
        cells.append({"X": X, "O": O, ".": None}[char])
    return tuple(cells)


class EvaluateTests(unittest.TestCase):
    def test_empty_board_is_in_progress(self) -> None:
        evaluation = evaluate(empty_board())
        self.assertEqual(evaluation.status, BoardStatus.IN_PROGRESS)
        self.assertIsNone(evaluation.winner)
        self.assertFalse(evaluation.is_terminal)

    def test_every_line_wins(self) -> None:
        for line in WINNING_LINES:
            for mark in (X, O):
                cells = [None] * 9
                for index in line:
                    cells[index] = mark
                with self.subTest(line=line, mark=mark):
                    evaluation = evaluate(tuple(cells))
                    self.assertEqual(evaluation.status, BoardStatus.WIN)
                    self.assertEqual(evaluation.winner, mark)
                    self.assertEqual(evaluation.line, line)

    def test_full_board_without_line_is_draw(self) -> None:
        evaluation = evaluate(board_from("XOX XOO OXX"))
        self.assertEqual(evaluation.status, BoardStatus.DRAW)
        self.assertIsNone(evaluation.winner)

    def test_full_board_with_line_is_win_not_draw(self) -> None:
        evaluation = evaluate(board_from("XXX OOX OXO"))
        self.assertEqual(evaluation.status, BoardStatus.WIN)
        self.assertEqual(evaluation.winner, X)

    def test_partial_board_without_line_is_in_progress(self) -> None:
        self.assertEqual(evaluate(board_from("XO. ... ...")).status, BoardStatus.IN_PROGRESS)

    def test_wrong_size_is_rejected(self) -> None:
        with self.assertRaises(InvalidBoardError):
            evaluate((None,) * 8)

    def test_unknown_cell_value_is_rejected(self) -> None:
        with self.assertRaises(InvalidBoardError):
            evaluate(("Z",) + (None,) * 8)


class ApplyMoveTests(unittest.TestCase):
    def test_places_mark_in_new_board(self) -> None:
        board = empty_board()
        updated = apply_move(board, 4, X)

        self.assertEqual(updated[4], X)
        self.assertEqual(board, empty_board())
        self.assertEqual(sum(cell is not None for cell in updated), 1)

    def test_out_of_range_cells_are_illegal(self) -> None:
        for cell in (-1, 9, 100):
            with self.subTest(cell=cell):
                with self.assertRaises(IllegalMoveError):
                    apply_move(empty_board(), cell, X)

    def test_non_integer_cells_are_illegal(self) -> None:
        for cell in ("4", 4.0, None, True):
            with self.subTest(cell=cell):
                with self.assertRaises(IllegalMoveError):
                    apply_move(empty_board(), cell, X)

    def test_occupied_cell_is_rejected(self) -> None:
        board = apply_move(empty_board(), 0, X)
        with self.assertRaises(CellOccupiedError):
            apply_move(board, 0, O)
        self.assertEqual(board[0], X)


if __name__ == "__main__":
    unittest.main()
