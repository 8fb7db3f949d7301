"""Covariance / correlation / volatility conversions.

The ``clean`` variants repair covariance matrices that are not positive
definite: tiny or negative variances and eigenvalues are lifted to a small
positive limit relative to the largest one.
"""

from __future__ import annotations

import numpy as np

# Relative size below which a variance or eigenvalue is considered degenerate
RELATIVELY_SMALL = 2.0**-26


def to_volatilities(covariances: np.ndarray, clean: bool = False) -> np.ndarray:
    """Extract the standard deviations from a covariance matrix.

    Args:
        covariances: Covariance matrix (n x n)
        clean: Replace variances below ``largest * n * 2**-26`` with that
            limit (as a volatility, its square root)

    Returns:
        Volatilities (1-D); non-positive variances give 0 when not cleaning
    """
    matrix = np.asarray(covariances, dtype=float)
    size = min(matrix.shape)
    variances = np.diagonal(matrix)[:size].copy()

    if clean:
        limit = variances.max() * size * RELATIVELY_SMALL
        smallest = np.sqrt(limit)
        return np.where(variances < limit, smallest, np.sqrt(np.maximum(variances, limit)))

    return np.where(variances <= 0.0, 0.0, np.sqrt(np.maximum(variances, 0.0)))


def to_correlations(covariances: np.ndarray, clean: bool = False) -> np.ndarray:
    """Extract the correlation coefficients from a covariance matrix.

    Args:
        covariances: Covariance matrix (n x n)
        clean: Lift eigenvalues below ``|largest eigenvalue| * n * 2**-26`` to
            that limit before extracting correlations

    Returns:
        Correlation matrix with a unit diagonal; pairs involving a zero
        volatility get correlation 0
    """
    matrix = np.asarray(covariances, dtype=float)
    size = min(matrix.shape)
    matrix = matrix[:size, :size]

    if clean:
        eigenvalues, eigenvectors = np.linalg.eigh(matrix)
        largest = np.abs(eigenvalues).max()
        limit = largest * size * RELATIVELY_SMALL
        eigenvalues = np.where(eigenvalues < limit, limit, eigenvalues)
        matrix = (eigenvectors * eigenvalues) @ eigenvectors.T

    diagonal = np.diagonal(matrix)
    volatilities = np.sqrt(np.maximum(diagonal, 0.0))

    correlations = np.eye(size)
    for j in range(size):
        col_vol = volatilities[j]
        for i in range(j + 1, size):
            row_vol = volatilities[i]
            if row_vol <= 0.0 or col_vol <= 0.0:
                value = 0.0
            else:
                value = matrix[i, j] / (row_vol * col_vol)
            correlations[i, j] = value
            correlations[j, i] = value

    return correlations


def to_covariances(volatilities: np.ndarray, correlations: np.ndarray) -> np.ndarray:
    """Build a covariance matrix from volatilities and correlations.

    Only the lower triangle of ``correlations`` is read; the result is
    exactly symmetric.
    """
    vols = np.ravel(np.asarray(volatilities, dtype=float))
    corr = np.asarray(correlations, dtype=float)
    size = vols.size

    covariances = np.diag(vols * vols)
    for j in range(size):
        for i in range(j + 1, size):
            value = vols[i] * corr[i, j] * vols[j]
            covariances[i, j] = value
            covariances[j, i] = value
    return covariances
