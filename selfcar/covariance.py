"""Rolling sample windows and their covariance matrices."""

from __future__ import annotations

import numpy as np

__all__ = ["update_sample", "sample_covariance", "update_covariance", "column_mean"]


def _as_matrix(sample) -> np.ndarray:
    matrix = np.asarray(sample, dtype=float)
    if matrix.ndim != 2:
        raise ValueError("sample must be a two-dimensional matrix")
    if matrix.shape[0] == 0:
        raise ValueError("sample must have at least one row")
    return matrix


def _as_row(data, cols: int) -> np.ndarray:
    row = np.asarray(data, dtype=float)
    if row.ndim == 1:
        row = row.reshape(1, -1)
    if row.shape != (1, cols):
        raise ValueError(f"invalid data for sample matrix: expected 1x{cols}, got {row.shape}")
    return row


def update_sample(sample, data) -> np.ndarray:
    """Drop the oldest row of ``sample`` and append ``data`` as the newest row."""
    matrix = _as_matrix(sample)
    row = _as_row(data, matrix.shape[1])
    return np.vstack((matrix[1:], row))


def sample_covariance(sample) -> np.ndarray:
    """Population covariance of the columns of ``sample``."""
    matrix = _as_matrix(sample)
    deviation = matrix - matrix.mean(axis=0)
    return (deviation.T @ deviation) / matrix.shape[0]


def update_covariance(sample, data) -> tuple[np.ndarray, np.ndarray]:
    """Push ``data`` into the window and return the new window and its covariance."""
    updated = update_sample(sample, data)
    return updated, sample_covariance(updated)


def column_mean(sample) -> np.ndarray:
    """Mean of each column of ``sample``."""
    return _as_matrix(sample).mean(axis=0)