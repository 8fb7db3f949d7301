"""Unrolled cofactor expansions for 1x1 - 5x5 matrices.

All functions take the matrix elements as a flat sequence in column-major
order, i.e. element (row, col) of an n x n matrix is at ``row + col * n``.
Expansion is always along the first column.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence

import numpy as np


def determinant_1x1(a: Sequence[float]) -> float:
    return a[0]


def determinant_2x2(a: Sequence[float]) -> float:
    return a[0] * a[3] - a[1] * a[2]


def determinant_3x3(a: Sequence[float]) -> float:
    return (
        a[0] * (a[4] * a[8] - a[5] * a[7])
        - a[1] * (a[3] * a[8] - a[5] * a[6])
        + a[2] * (a[3] * a[7] - a[4] * a[6])
    )


def determinant_4x4(a: Sequence[float]) -> float:
    # 2x2 minors of the last two columns
    d01 = a[8] * a[13] - a[9] * a[12]
    d02 = a[8] * a[14] - a[10] * a[12]
    d03 = a[8] * a[15] - a[11] * a[12]
    d12 = a[9] * a[14] - a[10] * a[13]
    d13 = a[9] * a[15] - a[11] * a[13]
    d23 = a[10] * a[15] - a[11] * a[14]

    m0 = a[5] * d23 - a[6] * d13 + a[7] * d12
    m1 = a[4] * d23 - a[6] * d03 + a[7] * d02
    m2 = a[4] * d13 - a[5] * d03 + a[7] * d01
    m3 = a[4] * d12 - a[5] * d02 + a[6] * d01

    return a[0] * m0 - a[1] * m1 + a[2] * m2 - a[3] * m3


def determinant_5x5(a: Sequence[float]) -> float:
    # 2x2 minors of columns 3 and 4
    d01 = a[15] * a[21] - a[16] * a[20]
    d02 = a[15] * a[22] - a[17] * a[20]
    d03 = a[15] * a[23] - a[18] * a[20]
    d04 = a[15] * a[24] - a[19] * a[20]
    d12 = a[16] * a[22] - a[17] * a[21]
    d13 = a[16] * a[23] - a[18] * a[21]
    d14 = a[16] * a[24] - a[19] * a[21]
    d23 = a[17] * a[23] - a[18] * a[22]
    d24 = a[17] * a[24] - a[19] * a[22]
    d34 = a[18] * a[24] - a[19] * a[23]

    # 3x3 minors of columns 2, 3 and 4
    t012 = a[10] * d12 - a[11] * d02 + a[12] * d01
    t013 = a[10] * d13 - a[11] * d03 + a[13] * d01
    t014 = a[10] * d14 - a[11] * d04 + a[14] * d01
    t023 = a[10] * d23 - a[12] * d03 + a[13] * d02
    t024 = a[10] * d24 - a[12] * d04 + a[14] * d02
    t034 = a[10] * d34 - a[13] * d04 + a[14] * d03
    t123 = a[11] * d23 - a[12] * d13 + a[13] * d12
    t124 = a[11] * d24 - a[12] * d14 + a[14] * d12
    t134 = a[11] * d34 - a[13] * d14 + a[14] * d13
    t234 = a[12] * d34 - a[13] * d24 + a[14] * d23

    # 4x4 minors of columns 1 to 4
    q1234 = a[6] * t234 - a[7] * t134 + a[8] * t124 - a[9] * t123
    q0234 = a[5] * t234 - a[7] * t034 + a[8] * t024 - a[9] * t023
    q0134 = a[5] * t134 - a[6] * t034 + a[8] * t014 - a[9] * t013
    q0124 = a[5] * t124 - a[6] * t024 + a[7] * t014 - a[9] * t012
    q0123 = a[5] * t123 - a[6] * t023 + a[7] * t013 - a[8] * t012

    return a[0] * q1234 - a[1] * q0234 + a[2] * q0134 - a[3] * q0124 + a[4] * q0123


DETERMINANTS: dict[int, Callable[[Sequence[float]], float]] = {
    1: determinant_1x1,
    2: determinant_2x2,
    3: determinant_3x3,
    4: determinant_4x4,
    5: determinant_5x5,
}


def read_full(matrix: np.ndarray, dim: int) -> np.ndarray:
    """Read all elements of a dim x dim matrix in column-major order."""
    array = np.asarray(matrix, dtype=float)
    if array.shape != (dim, dim):
        raise ValueError(f"Expected a {dim}x{dim} matrix, got shape {array.shape}")
    return array.ravel(order="F")


def read_symmetric(matrix: np.ndarray, dim: int) -> np.ndarray:
    """Read the upper triangle of a dim x dim matrix, mirrored, in column-major order.

    Elements below the diagonal are never read.
    """
    array = np.asarray(matrix, dtype=float)
    if array.shape != (dim, dim):
        raise ValueError(f"Expected a {dim}x{dim} matrix, got shape {array.shape}")
    upper = np.triu(array)
    return (upper + np.triu(array, 1).T).ravel(order="F")


def norm(values: np.ndarray) -> np.float64:
    """Largest absolute element - the pre-scaling factor."""
    return np.max(np.abs(values))


def minor(values: Sequence[float], dim: int, row: int, col: int) -> float:
    """Determinant of the submatrix with `row` and `col` removed.

    Args:
        values: Column-major elements of a dim x dim matrix
        dim: Matrix dimension (2-5)
        row: Row to remove
        col: Column to remove

    Returns:
        The (row, col) minor
    """
    sub = [
        values[r + c * dim]
        for c in range(dim)
        if c != col
        for r in range(dim)
        if r != row
    ]
    return DETERMINANTS[dim - 1](sub)


def minors(values: Sequence[float], dim: int, symmetric: bool = False) -> list[list[float]]:
    """All dim x dim minors, indexed [row][col].

    For symmetric input only minors with row <= col are computed and the rest
    mirrored.
    """
    result = [[0.0] * dim for _ in range(dim)]
    for row in range(dim):
        for col in range(row if symmetric else 0, dim):
            result[row][col] = minor(values, dim, row, col)
    if symmetric:
        for row in range(1, dim):
            for col in range(row):
                result[row][col] = result[col][row]
    return result


def expand_first_column(values: Sequence[float], table: list[list[float]], dim: int) -> float:
    """Determinant from the first-column minors of a minors table."""
    total = 0.0
    for row in range(dim):
        term = values[row] * table[row][0]
        total = total + term if row % 2 == 0 else total - term
    return total
