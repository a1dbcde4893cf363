"""Shared helpers for 1-D calculus on backend functions (roots, extrema).

References
----------
- Trefethen (2013), "Approximation Theory and Approximation Practice",
  SIAM, Chapters 18–21.
- Good (1961), "The colleague matrix, a Chebyshev analogue of the companion
  matrix", Quarterly J. Mech. 14:195–196.
"""

from __future__ import annotations

from typing import Callable, Tuple

import numpy as np

ROOT_TOL = 1e-10


def _real_roots_in(raw_roots: np.ndarray, lb: float, ub: float,
                   tol: float = ROOT_TOL) -> np.ndarray:
    """Keep the real members of *raw_roots* that lie in ``[lb, ub]``.

    Parameters
    ----------
    raw_roots : ndarray
        Possibly complex roots, already in physical coordinates.
    lb, ub : float
        Domain bounds.
    tol : float, optional
        Tolerance on the imaginary part and on the domain test.

    Returns
    -------
    ndarray
        Sorted, deduplicated real roots in ``[lb, ub]``.
    """
    width = ub - lb
    real_roots = []
    for r in np.atleast_1d(raw_roots):
        if abs(np.imag(r)) < tol * max(1.0, width):
            t = float(np.real(r))
            if lb - tol * width <= t <= ub + tol * width:
                real_roots.append(min(max(t, lb), ub))

    if len(real_roots) == 0:
        return np.array([], dtype=float)

    return _dedup_sorted(np.sort(np.array(real_roots)), tol * (width + 1))


def _dedup_sorted(values: np.ndarray, tol: float) -> np.ndarray:
    """Drop entries of a sorted array closer than *tol* to their predecessor."""
    if len(values) <= 1:
        return values
    mask = np.concatenate([[True], np.diff(values) > tol])
    return values[mask]


def _optimize_1d(func: Callable, critical: np.ndarray, lb: float, ub: float,
                 mode: str = "max") -> Tuple[float, float]:
    """Find the minimum or maximum of *func* on ``[lb, ub]``.

    Candidates are the critical points plus the domain endpoints.

    Parameters
    ----------
    func : callable
        Vectorized function of one variable.
    critical : ndarray
        Roots of the derivative inside the domain.
    lb, ub : float
        Domain bounds.
    mode : {'min', 'max', 'absmax'}
        Which extremum to locate. ``'absmax'`` maximizes ``|func|`` and
        reports the absolute value.

    Returns
    -------
    (location, value) : (float, float)
    """
    if mode not in ("min", "max", "absmax"):
        raise ValueError(f"mode must be 'min', 'max' or 'absmax', got {mode!r}")

    candidates = np.concatenate([[lb], np.asarray(critical, dtype=float), [ub]])
    vals = np.asarray(func(candidates), dtype=float)

    if mode == "min":
        idx = int(np.argmin(vals))
    elif mode == "max":
        idx = int(np.argmax(vals))
    else:
        vals = np.abs(vals)
        idx = int(np.argmax(vals))
    return float(candidates[idx]), float(vals[idx])
