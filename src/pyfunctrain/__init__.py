"""PyFunctrain: continuous low-rank function approximation.

Provides :class:`GenericFunction`, a polymorphic univariate function
backed by an orthogonal polynomial expansion, an adaptive piecewise
polynomial (:class:`PiecewisePoly`) or a linear element interpolant;
the function-valued vectors and matrices :class:`Quasimatrix` and
:class:`Qmarray`; the :class:`FunctionTrain` tensor-train format built
from Qmarray cores; and :class:`SkeletonDecomp` for cross approximation
of bivariate functions.

Example
-------
>>> from pyfunctrain import FunctionTrain
>>> ft = FunctionTrain.linear([1.0, 2.0, 3.0], [-1.0, 1.0])
>>> ft.ranks
[1, 2, 2, 1]
>>> round(ft.eval([0.1, 0.2, 0.3]), 10)
1.4
"""

from pyfunctrain._algebra import FunctionClass
from pyfunctrain._options import AdaptOpts
from pyfunctrain._version import __version__
from pyfunctrain.function_train import FunctionTrain
from pyfunctrain.generic import (
    FiberCut,
    GenericFunction,
    array_orth,
    array_orth1d_columns,
    array_orth1d_rows,
    daxpby,
    fiber_cut_array_2d,
    fiber_cut_array_nd,
    inner,
    lin_comb,
    lin_comb2,
    norm2diff,
    prod,
    sum_prod,
)
from pyfunctrain.linelm import LinElemExp
from pyfunctrain.orthopoly import OrthPolyExpansion
from pyfunctrain.piecewise import PiecewisePoly, locate_jumps
from pyfunctrain.qmarray import Qmarray, Quasimatrix
from pyfunctrain.skeleton import SkeletonDecomp

__all__ = [
    "AdaptOpts",
    "FiberCut",
    "FunctionClass",
    "FunctionTrain",
    "GenericFunction",
    "LinElemExp",
    "OrthPolyExpansion",
    "PiecewisePoly",
    "Qmarray",
    "Quasimatrix",
    "SkeletonDecomp",
    "array_orth",
    "array_orth1d_columns",
    "array_orth1d_rows",
    "daxpby",
    "fiber_cut_array_2d",
    "fiber_cut_array_nd",
    "inner",
    "lin_comb",
    "lin_comb2",
    "locate_jumps",
    "norm2diff",
    "prod",
    "sum_prod",
    "__version__",
]
