"""Signal processing algorithms: smoothness-priors trend estimation and detrending.

This package hosts the implementations behind the public API.
"""

from .smoothness_prior import (
    DEFAULT_LAMBDA,
    MIN_LENGTH,
    Solver,
    SingularSystemError,
    second_difference_operator,
    system_matrix,
    hp_trend,
    detrend,
    detrend_from_dataframe,
    SmoothnessPriorDetrender,
)

__all__ = [
    "DEFAULT_LAMBDA",
    "MIN_LENGTH",
    "Solver",
    "SingularSystemError",
    "second_difference_operator",
    "system_matrix",
    "hp_trend",
    "detrend",
    "detrend_from_dataframe",
    "SmoothnessPriorDetrender",
]
