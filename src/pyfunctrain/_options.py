"""Keyword bundle for the adaptive approximation routines."""

from __future__ import annotations

_DEFAULTS = {
    # piecewise polynomial refinement
    "ptype": "legendre",
    "maxorder": 7,
    "nregions": 5,
    "pts": None,
    "minsize": 1e-5,
    "coeff_check": 2,
    "epsilon": 1e-8,
    # single polynomial adaptation
    "start_num": 8,
    "coeffs_check": 2,
    "tol": 1e-14,
    "max_num": 60,
    # linear elements
    "num_nodes": 50,
}

_PIECEWISE_KEYS = ("ptype", "maxorder", "nregions", "pts", "minsize",
                   "coeff_check", "epsilon")
_POLY_KEYS = ("ptype", "start_num", "coeffs_check", "tol", "max_num")
_LINELM_KEYS = ("num_nodes",)


def _differs(value, default) -> bool:
    if value is None or default is None:
        return value is not default
    return value != default


class AdaptOpts:
    """Approximation options with the library defaults.

    Any option not given keeps its default. Unknown names raise
    ``TypeError`` so typos are not silently ignored.

    Examples
    --------
    >>> opts = AdaptOpts(maxorder=10, epsilon=1e-10)
    >>> opts.maxorder, opts.nregions
    (10, 5)
    """

    def __init__(self, **kwargs):
        unknown = set(kwargs) - set(_DEFAULTS)
        if unknown:
            raise TypeError(f"Unknown approximation option(s): {sorted(unknown)}")
        for key, default in _DEFAULTS.items():
            setattr(self, key, kwargs.get(key, default))

    def updated(self, **kwargs) -> "AdaptOpts":
        """Return a copy with *kwargs* overriding the current values."""
        merged = {key: getattr(self, key) for key in _DEFAULTS}
        merged.update(kwargs)
        return AdaptOpts(**merged)

    def _subset(self, keys) -> dict:
        return {key: getattr(self, key) for key in keys}

    def piecewise_kwargs(self) -> dict:
        return self._subset(_PIECEWISE_KEYS)

    def poly_kwargs(self) -> dict:
        return self._subset(_POLY_KEYS)

    def linelm_kwargs(self) -> dict:
        return self._subset(_LINELM_KEYS)

    def __repr__(self) -> str:
        changed = ", ".join(
            f"{key}={getattr(self, key)!r}"
            for key, default in _DEFAULTS.items()
            if _differs(getattr(self, key), default)
        )
        return f"AdaptOpts({changed})"
