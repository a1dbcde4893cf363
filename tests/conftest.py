"""Shared test fixtures for pyfunctrain tests."""

import math

import numpy as np
import pytest

from pyfunctrain import FunctionClass, GenericFunction, PiecewisePoly, Qmarray


# ---------------------------------------------------------------------------
# Test functions
# ---------------------------------------------------------------------------

def sin3_plus_sq(x):
    """sin(3x) + x^2"""
    return math.sin(3.0 * x) + x * x


def step(x):
    """Unit jump at x = 0.3"""
    return 1.0 if x > 0.3 else 0.0


def xy_plus_one(x, y):
    """x*y + 1"""
    return x * y + 1.0


def random_points(n, lb=-1.0, ub=1.0, seed=0):
    """*n* uniform points in [lb, ub]."""
    return np.random.default_rng(seed).uniform(lb, ub, n)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def poly_sin():
    """POLYNOMIAL approximation of sin(3x) + x^2 on [-1, 1]."""
    return GenericFunction.approximate1d(sin3_plus_sq, FunctionClass.POLYNOMIAL, -1.0, 1.0)


@pytest.fixture
def pw_exp():
    """PIECEWISE approximation of exp on [-1, 1]."""
    return GenericFunction.approximate1d(math.exp, FunctionClass.PIECEWISE, -1.0, 1.0)


@pytest.fixture
def le_cos():
    """LINELM approximation of cos on [0, 2]."""
    return GenericFunction.approximate1d(math.cos, FunctionClass.LINELM, 0.0, 2.0)


@pytest.fixture
def pw_sin_fine():
    """Piecewise fit of sin(3x) + x^2 on 4 regions."""
    return PiecewisePoly.approx1(sin3_plus_sq, -1.0, 1.0, maxorder=12, nregions=4)


@pytest.fixture
def qm_3x2(rng):
    """3x2 Qmarray of random polynomials in both bases."""
    funcs = []
    for k in range(6):
        ptype = "legendre" if k % 2 == 0 else "chebyshev"
        funcs.append(GenericFunction.poly_randu(4, -1.0, 1.0, rng, ptype))
    return Qmarray(3, 2, funcs)
