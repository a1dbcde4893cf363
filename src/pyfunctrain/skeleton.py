"""Skeleton (cross) decomposition of bivariate functions.

Given pivots ``(pivx[i], pivy[i])`` for ``i < r``, the decomposition is

    f(x, y) ~= sum_ij f(x, pivy[i]) * S[i, j] * f(pivx[j], y)

with ``S`` the pseudo-inverse of ``C[k, i] = f(pivx[k], pivy[i])``. The
univariate fibers are approximated once, so evaluation only touches the
stored functions.

References
----------
- Goreinov, Tyrtyshnikov & Zamarashkin (1997), "A theory of
  pseudoskeleton approximations", Linear Algebra Appl. 261:1–21.
- Bebendorf (2000), "Approximation of boundary element matrices",
  Numer. Math. 86:565–589.
"""

from __future__ import annotations

import os
import pickle
import warnings
from typing import Callable, Optional, Sequence

import numpy as np

from pyfunctrain._options import AdaptOpts
from pyfunctrain.generic import FunctionClass, fiber_cut_array_2d
from pyfunctrain.qmarray import Quasimatrix

# Relative singular-value cutoff of the pseudo-inverse.
PINV_RTOL = 1e-15


class SkeletonDecomp:
    """Rank-*r* cross approximation of ``f(x, y)``.

    Parameters
    ----------
    xqm : Quasimatrix
        ``r`` functions of *x*: the fibers ``f(., pivy[i])``.
    yqm : Quasimatrix
        ``r`` functions of *y*: the fibers ``f(pivx[i], .)``.
    skeleton : ndarray of shape (r, r)
        Coefficient matrix ``S``.

    Examples
    --------
    >>> def f(x, y):
    ...     return x * y + 1.0
    >>> skd = SkeletonDecomp.from_pivots(
    ...     f, [-0.5, 0.5], [-0.5, 0.5], [[-1, 1], [-1, 1]])
    >>> round(skd.eval(0.3, -0.2), 12)
    0.94
    """

    def __init__(self, xqm: Quasimatrix, yqm: Quasimatrix, skeleton):
        skeleton = np.array(skeleton, dtype=float)
        r = xqm.n
        if yqm.n != r or skeleton.shape != (r, r):
            raise ValueError(
                f"Inconsistent ranks: xqm={xqm.n}, yqm={yqm.n}, "
                f"skeleton shape {skeleton.shape}"
            )
        self.xqm = xqm
        self.yqm = yqm
        self.skeleton = skeleton

    @classmethod
    def from_pivots(cls, f: Callable[[float, float], float],
                    pivx: Sequence[float], pivy: Sequence[float],
                    bounds: Sequence[Sequence[float]],
                    fc=FunctionClass.POLYNOMIAL,
                    opts: Optional[AdaptOpts] = None) -> "SkeletonDecomp":
        """Build the decomposition from *r* pivot pairs.

        Parameters
        ----------
        f : callable
            ``f(x, y)`` returning a float.
        pivx, pivy : sequence of float
            Pivot coordinates, both of length *r*.
        bounds : [[xlo, xhi], [ylo, yhi]]
            Domain of each variable.
        fc : FunctionClass or pair of FunctionClass, optional
            Class of the fibers; a pair sets *x* and *y* separately.
        opts : AdaptOpts or pair of AdaptOpts, optional
            Approximation options, shared or per variable.

        Returns
        -------
        SkeletonDecomp
        """
        from scipy.linalg import pinv

        pivx = [float(v) for v in pivx]
        pivy = [float(v) for v in pivy]
        r = len(pivx)
        if r == 0 or len(pivy) != r:
            raise ValueError(f"Need equal, non-zero pivot counts, got {r} and {len(pivy)}")
        if len(bounds) != 2:
            raise ValueError(f"bounds must hold 2 intervals, got {len(bounds)}")
        fcs = tuple(fc) if isinstance(fc, (tuple, list)) else (fc, fc)
        optss = tuple(opts) if isinstance(opts, (tuple, list)) else (opts, opts)

        xqm = Quasimatrix.approx_from_fiber_cuts(
            fiber_cut_array_2d(f, 0, pivy), fcs[0],
            bounds[0][0], bounds[0][1], optss[0],
        )
        yqm = Quasimatrix.approx_from_fiber_cuts(
            fiber_cut_array_2d(f, 1, pivx), fcs[1],
            bounds[1][0], bounds[1][1], optss[1],
        )

        cmat = np.array([[f(px, py) for py in pivy] for px in pivx], dtype=float)
        return cls(xqm, yqm, pinv(cmat, rtol=PINV_RTOL))

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def rank(self) -> int:
        return self.xqm.n

    def eval(self, x: float, y: float) -> float:
        """Evaluate ``sum_k (X S)_k(x) * Y_k(y)``."""
        xs = self.xqm.qmm(self.skeleton)
        return float(np.dot(xs.eval(x), self.yqm.eval(y)))

    def __call__(self, x: float, y: float) -> float:
        return self.eval(x, y)

    def copy(self) -> "SkeletonDecomp":
        return SkeletonDecomp(self.xqm.copy(), self.yqm.copy(),
                              self.skeleton.copy())

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def __getstate__(self) -> dict:
        """Return picklable state tagged with the library version."""
        from pyfunctrain._version import __version__

        state = self.__dict__.copy()
        state["_pyfunctrain_version"] = __version__
        return state

    def __setstate__(self, state: dict) -> None:
        from pyfunctrain._version import __version__

        saved_version = state.pop("_pyfunctrain_version", None)
        if saved_version is not None and saved_version != __version__:
            warnings.warn(
                f"This object was saved with pyfunctrain {saved_version}, "
                f"but you are loading it with {__version__}.",
                UserWarning,
                stacklevel=2,
            )
        self.__dict__.update(state)

    def save(self, path: str | os.PathLike) -> None:
        """Pickle the decomposition to *path*."""
        with open(os.fspath(path), "wb") as f:
            pickle.dump(self, f, protocol=pickle.HIGHEST_PROTOCOL)

    @classmethod
    def load(cls, path: str | os.PathLike) -> "SkeletonDecomp":
        """Load a pickled decomposition.

        .. warning::

            This method uses :mod:`pickle` internally. **Only load files
            you trust.**
        """
        with open(os.fspath(path), "rb") as f:
            obj = pickle.load(f)  # noqa: S301
        if not isinstance(obj, cls):
            raise TypeError(
                f"Expected a {cls.__name__} instance, got {type(obj).__name__}"
            )
        return obj

    def __repr__(self) -> str:
        return f"SkeletonDecomp(rank={self.rank})"
