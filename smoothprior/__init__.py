"""Smoothness-priors detrending for one-dimensional signals."""

from .algorithms import (
    DEFAULT_LAMBDA,
    MIN_LENGTH,
    SingularSystemError,
    Solver,
    SmoothnessPriorDetrender,
    detrend,
    detrend_from_dataframe,
    hp_trend,
    second_difference_operator,
    system_matrix,
)

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_LAMBDA",
    "MIN_LENGTH",
    "SingularSystemError",
    "Solver",
    "SmoothnessPriorDetrender",
    "detrend",
    "detrend_from_dataframe",
    "hp_trend",
    "second_difference_operator",
    "system_matrix",
]
