"""Quick start example: adaptive 1-D fits, a skeleton decomposition and a function train."""

import math

import numpy as np

from pyfunctrain import FunctionClass, FunctionTrain, GenericFunction, SkeletonDecomp


def f(x):
    """A function with a kink: |x - 0.1| + sin(3x)."""
    return abs(x - 0.1) + math.sin(3.0 * x)


# Piecewise fit resolves the kink by local refinement
g = GenericFunction.approximate1d(f, FunctionClass.PIECEWISE, -1.0, 1.0, verbose=True)

x = 0.42
print(f"Exact:   {f(x):.10f}")
print(f"Approx:  {g(x):.10f}")
print(f"Regions: {g.payload.nregions}")
print(f"Integral over [-1, 1]: {g.integral():.10f}")


def h(x, y):
    """Rank-2 bivariate function."""
    return x * y + 1.0


# Cross approximation from two pivot pairs
skd = SkeletonDecomp.from_pivots(h, [-0.5, 0.5], [-0.5, 0.5], [[-1, 1], [-1, 1]])
print(f"\nSkeleton rank {skd.rank}: h(0.3, -0.2) = {skd(0.3, -0.2):.10f}")

# Quadratic form (x - m)^T Q (x - m) as an exact function train
Q = np.array([[2.0, 0.5, 0.0],
              [0.5, 1.0, 0.3],
              [0.0, 0.3, 3.0]])
m = np.array([0.1, -0.2, 0.0])
ft = FunctionTrain.quadratic(Q, m)
print(f"\n{ft}")

point = np.array([0.5, 0.5, -0.5])
d = point - m
print(f"Exact: {d @ Q @ d:.10f}")
print(f"Train: {ft(point):.10f}")
