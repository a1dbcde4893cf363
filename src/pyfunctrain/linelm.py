"""Piecewise-linear (linear element) nodal functions.

A :class:`LinElemExp` stores function values at strictly increasing nodes
and interpolates linearly between them. Inner products are exact for two
piecewise-linear functions sharing a grid; operands on different grids are
first resampled onto the union of their nodes.
"""

from __future__ import annotations

import math
from typing import Callable, Optional, Tuple

import numpy as np


def _mass_matrix(nodes: np.ndarray) -> np.ndarray:
    """Consistent mass matrix of the hat-function basis on *nodes*."""
    h = np.diff(nodes)
    n = len(nodes)
    mass = np.zeros((n, n))
    idx = np.arange(n - 1)
    mass[idx, idx] += h / 3.0
    mass[idx + 1, idx + 1] += h / 3.0
    mass[idx, idx + 1] = h / 6.0
    mass[idx + 1, idx] = h / 6.0
    return mass


class LinElemExp:
    """Linear element expansion ``f(x) = sum_i v_i * hat_i(x)``.

    Parameters
    ----------
    nodes : array-like
        Strictly increasing node locations (at least two).
    values : array-like
        Function values at the nodes.
    """

    def __init__(self, nodes, values):
        nodes = np.array(nodes, dtype=float).ravel()
        values = np.array(values, dtype=float).ravel()
        if len(nodes) < 2:
            raise ValueError(f"Need at least 2 nodes, got {len(nodes)}")
        if len(values) != len(nodes):
            raise ValueError(
                f"Got {len(values)} values for {len(nodes)} nodes"
            )
        if np.any(np.diff(nodes) <= 0):
            raise ValueError("nodes must be strictly increasing")
        self.nodes = nodes
        self.values = values

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def approx(cls, f: Callable[[float], float], lb: float, ub: float,
               num_nodes: int = 50) -> "LinElemExp":
        """Sample *f* on *num_nodes* equispaced nodes."""
        nodes = np.linspace(lb, ub, num_nodes)
        return cls(nodes, [f(float(x)) for x in nodes])

    @classmethod
    def from_values(cls, nodes, values) -> "LinElemExp":
        return cls(nodes, values)

    @classmethod
    def constant(cls, a: float, lb: float, ub: float,
                 num_nodes: int = 2) -> "LinElemExp":
        nodes = np.linspace(lb, ub, num_nodes)
        return cls(nodes, np.full(num_nodes, float(a)))

    @classmethod
    def linear(cls, slope: float, offset: float, lb: float, ub: float,
               num_nodes: int = 2) -> "LinElemExp":
        """Affine function ``slope * x + offset`` (exact on any grid)."""
        nodes = np.linspace(lb, ub, num_nodes)
        return cls(nodes, slope * nodes + offset)

    @classmethod
    def orth_basis(cls, n: int, lb: float, ub: float,
                   num_nodes: int = 50) -> list:
        """Return *n* functions orthonormal under the exact L2 inner product.

        Sampled Legendre polynomials are orthonormalized against the
        consistent mass matrix via ``M = L L^T`` and a QR factorization
        of ``L^T V``.
        """
        from scipy.linalg import cholesky, qr, solve_triangular

        if n < 1:
            raise ValueError(f"n must be >= 1, got {n}")
        num_nodes = max(num_nodes, n + 1)
        nodes = np.linspace(lb, ub, num_nodes)
        ref = (2.0 * nodes - (lb + ub)) / (ub - lb)
        vand = np.polynomial.legendre.legvander(ref, n - 1)
        lower = cholesky(_mass_matrix(nodes), lower=True)
        _, r = qr(lower.T @ vand, mode="economic")
        basis = solve_triangular(r, vand.T, trans="T", lower=False).T
        return [cls(nodes, basis[:, k]) for k in range(n)]

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def lb(self) -> float:
        return float(self.nodes[0])

    @property
    def ub(self) -> float:
        return float(self.nodes[-1])

    @property
    def num_nodes(self) -> int:
        return len(self.nodes)

    def eval(self, x):
        if np.ndim(x) == 0:
            return float(np.interp(float(x), self.nodes, self.values))
        return np.interp(np.asarray(x, dtype=float), self.nodes, self.values)

    def __call__(self, x):
        return self.eval(x)

    # ------------------------------------------------------------------
    # Calculus
    # ------------------------------------------------------------------

    def integrate(self) -> float:
        """Exact integral by the trapezoid rule."""
        from scipy.integrate import trapezoid

        return float(trapezoid(self.values, self.nodes))

    def _check_same_domain(self, other: "LinElemExp") -> None:
        if not isinstance(other, LinElemExp):
            raise TypeError(f"Expected a LinElemExp, got {type(other).__name__}")
        if not (math.isclose(self.lb, other.lb, abs_tol=1e-14)
                and math.isclose(self.ub, other.ub, abs_tol=1e-14)):
            raise ValueError(
                f"Domain mismatch: [{self.lb}, {self.ub}] vs "
                f"[{other.lb}, {other.ub}]"
            )

    def _union_nodes(self, other: "LinElemExp") -> np.ndarray:
        if np.array_equal(self.nodes, other.nodes):
            return self.nodes
        return np.union1d(self.nodes, other.nodes)

    def inner(self, other: "LinElemExp") -> float:
        """Exact L2 inner product of two piecewise-linear functions."""
        self._check_same_domain(other)
        nodes = self._union_nodes(other)
        a = self.eval(nodes)
        b = other.eval(nodes)
        h = np.diff(nodes)
        terms = (2.0 * a[:-1] * b[:-1] + a[:-1] * b[1:]
                 + a[1:] * b[:-1] + 2.0 * a[1:] * b[1:])
        return float(np.sum(h * terms) / 6.0)

    def norm(self) -> float:
        return math.sqrt(max(self.inner(self), 0.0))

    def deriv(self) -> "LinElemExp":
        """Nodal derivative: mean of adjacent slopes, one-sided at the ends."""
        slopes = np.diff(self.values) / np.diff(self.nodes)
        dvals = np.empty_like(self.values)
        dvals[0] = slopes[0]
        dvals[-1] = slopes[-1]
        dvals[1:-1] = 0.5 * (slopes[:-1] + slopes[1:])
        return LinElemExp(self.nodes.copy(), dvals)

    def real_roots(self) -> np.ndarray:
        """Zeros of the interpolant: exact nodal zeros plus sign changes."""
        v = self.values
        x = self.nodes
        roots = list(x[v == 0.0])
        for i in np.nonzero(v[:-1] * v[1:] < 0.0)[0]:
            t = v[i] / (v[i] - v[i + 1])
            roots.append(x[i] + t * (x[i + 1] - x[i]))
        return np.unique(np.array(roots, dtype=float))

    def max(self) -> Tuple[float, float]:
        idx = int(np.argmax(self.values))
        return float(self.nodes[idx]), float(self.values[idx])

    def min(self) -> Tuple[float, float]:
        idx = int(np.argmin(self.values))
        return float(self.nodes[idx]), float(self.values[idx])

    def absmax(self) -> Tuple[float, float]:
        idx = int(np.argmax(np.abs(self.values)))
        return float(self.nodes[idx]), float(abs(self.values[idx]))

    # ------------------------------------------------------------------
    # Algebra
    # ------------------------------------------------------------------

    def scale(self, a: float) -> None:
        self.values = self.values * a

    def flip_sign(self) -> None:
        self.values = -self.values

    def axpy(self, a: float, x: "LinElemExp") -> None:
        """In-place update ``self <- a * x + self`` on the union grid."""
        self._check_same_domain(x)
        nodes = self._union_nodes(x)
        self.values = a * x.eval(nodes) + self.eval(nodes)
        self.nodes = nodes

    @staticmethod
    def daxpby(a: float, x: Optional["LinElemExp"], b: float,
               y: Optional["LinElemExp"]) -> "LinElemExp":
        if x is None and y is None:
            raise ValueError("daxpby needs at least one operand")
        if x is None:
            out = y.copy()
            out.scale(b)
            return out
        out = x.copy()
        out.scale(a)
        if y is not None:
            out.axpy(b, y)
        return out

    def prod(self, other: "LinElemExp") -> "LinElemExp":
        """Nodal product on the union grid."""
        self._check_same_domain(other)
        nodes = self._union_nodes(other)
        return LinElemExp(nodes, self.eval(nodes) * other.eval(nodes))

    def copy(self) -> "LinElemExp":
        return LinElemExp(self.nodes.copy(), self.values.copy())

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def write(self, writer) -> None:
        writer.write_size(self.num_nodes)
        writer.write_doubles(self.nodes)
        writer.write_doubles(self.values)

    @classmethod
    def read(cls, reader) -> "LinElemExp":
        n = reader.read_size()
        nodes = reader.read_doubles(n)
        return cls(nodes, reader.read_doubles(n))

    def __repr__(self) -> str:
        return (
            f"LinElemExp(domain=[{self.lb}, {self.ub}], "
            f"num_nodes={self.num_nodes})"
        )
