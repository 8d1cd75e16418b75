import math

import numpy as np


def mean(values) -> float:
    """Arithmetic mean; 0.0 for an empty sequence."""
    values = np.asarray(values, dtype=float)
    if values.size == 0:
        return 0.0
    return float(np.mean(values))


def standard_deviation(values) -> float:
    """Sample standard deviation (n - 1 divisor).

    Defined as 0.0 when fewer than two values are given, so a single
    replicate never produces NaN.
    """
    values = np.asarray(values, dtype=float)
    if values.size < 2:
        return 0.0
    return float(np.std(values, ddof=1))


def population_standard_deviation(values) -> float:
    """Population standard deviation (n divisor); 0.0 for an empty sequence."""
    values = np.asarray(values, dtype=float)
    if values.size == 0:
        return 0.0
    return float(np.std(values, ddof=0))


def combined_standard_deviation(std1: float, std2: float) -> float:
    """sqrt(std1^2 + std2^2) for two independent measurements."""
    return float(np.sqrt(std1 ** 2 + std2 ** 2))


def sem(combined_std: float, n1: int, n2: int) -> float:
    """Standard error of the mean: combined_std / sqrt((n1 + n2) / 2)."""
    if n1 + n2 == 0:
        return 0.0
    return float(combined_std / np.sqrt((n1 + n2) / 2))


def fold_change(delta_delta_ct: float) -> float:
    """Relative expression 2^(-ddCT)."""
    return float(2.0 ** (-delta_delta_ct))


def round_to(value: float, decimals: int = 2) -> float:
    # Half-up rounding on the scaled value, not Python's banker's rounding.
    factor = 10 ** decimals
    return math.floor(value * factor + 0.5) / factor


def format_number(value: float, decimals: int = 2) -> str:
    """Fixed-decimal display string; ``"-"`` for NaN or infinite values."""
    if value is None or not np.isfinite(value):
        return "-"
    return f"{value:.{decimals}f}"
