"""Pytest configuration and fixtures for smoothprior tests."""

import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def reference_signal():
    """Reference 21-sample signal with its detrended output at lambda=10."""
    z = np.array([
        0.256, 0.357, 0.533, 0.372, 0.712, 0.744, 0.761, 0.525, 0.915, 0.725, 0.739,
        0.764, 0.754, 0.718, 0.707, 0.697, 0.699, 0.718, 0.931, 0.829, 0.814,
    ])
    expected = np.array([
        -0.10157990356948082,
        -0.05846210744017177,
        0.06067148772483172,
        -0.1545786979643745,
        0.13478104072505737,
        0.12229019600561897,
        0.10214044968255054,
        -0.16369941839896396,
        0.20271796710943413,
        -0.004023024259906305,
        -0.001365202645730479,
        0.016288852055814762,
        0.0015502119750396837,
        -0.038132939278303524,
        -0.053327920214212954,
        -0.06922071994990375,
        -0.07546404840044962,
        -0.06701840828142525,
        0.13391033817559939,
        0.01978651282186772,
        -0.00726466587313257,
    ])
    return z, 10.0, expected


@pytest.fixture
def drifting_sine():
    """Sine wave riding on a slow quadratic drift, with a little noise."""
    n = 200
    t = np.linspace(0, 1, n)
    oscillation = np.sin(2 * np.pi * 12 * t)
    drift = 3.0 * t ** 2 - 1.5 * t
    np.random.seed(42)
    noise = 0.05 * np.random.randn(n)
    return oscillation + drift + noise, oscillation, drift


@pytest.fixture
def linear_ramp():
    """Straight line: zero second difference, so the trend is exact."""
    return 0.5 * np.arange(30, dtype=float) - 2.0


@pytest.fixture
def short_signal():
    """Signal too short to have a second difference."""
    return np.array([0.5, 0.6])


@pytest.fixture
def signal_frame(drifting_sine):
    """DataFrame holding a drifting signal with a non-default index."""
    signal, _, _ = drifting_sine
    index = pd.RangeIndex(start=100, stop=100 + len(signal), name="sample")
    return pd.DataFrame({"value": signal, "label": "a"}, index=index)


@pytest.fixture(params=['cholesky', 'lu', 'inverse'])
def solver(request):
    """Parametrized linear solvers."""
    return request.param


@pytest.fixture(params=[0.5, 1.0, 10.0, 100.0])
def lambda_values(request):
    """Parametrized smoothing parameters."""
    return request.param


@pytest.fixture(params=[3, 4, 5, 10, 50])
def signal_lengths(request):
    """Parametrized signal lengths at and above the minimum."""
    return request.param


@pytest.fixture(autouse=True)
def reset_random_seed():
    """Reset random seed before each test for reproducibility."""
    np.random.seed(42)
