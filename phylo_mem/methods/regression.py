"""
Ordinary least-squares residuals for a single predictor.

This is the default regression provider used by the MIR selection loop.
"""

import numpy as np
import pandas as pd
from scipy import linalg

from ..core.exceptions import LengthMismatchError, NumericalError


def ols_residuals(response, predictor):
    """
    Regresses ``response`` on ``predictor`` with an intercept and returns the residuals.

    Args:
        response (array-like or pandas.Series): The response vector.
        predictor (array-like): A single predictor, positionally aligned with ``response``.

    Returns:
        numpy.ndarray or pandas.Series: The residuals. A Series response gives a
        Series with the same labels.

    Raises:
        LengthMismatchError: If the two vectors differ in length.
        NumericalError: If either vector holds non-finite values.
    """
    y = np.asarray(response, dtype=float)
    x = np.asarray(predictor, dtype=float)
    if y.shape != x.shape or y.ndim != 1:
        raise LengthMismatchError(
            f"response and predictor must be 1-d vectors of equal length, got {y.shape} and {x.shape}"
        )
    if not (np.all(np.isfinite(y)) and np.all(np.isfinite(x))):
        raise NumericalError("Regression inputs contain non-finite values")

    design = np.column_stack([np.ones_like(x), x])
    coefficients, _, _, _ = linalg.lstsq(design, y)
    residuals = y - design @ coefficients

    if isinstance(response, pd.Series):
        return pd.Series(residuals, index=response.index, name=response.name)
    return residuals
