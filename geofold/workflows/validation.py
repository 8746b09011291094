"""Per-fold model validation on a spatial fold assignment.

Layer 4: Workflows - Public entry points.

The estimator is the caller's (e.g. a scikit-learn RandomForestRegressor);
this module only runs it once per fold and aggregates the held-out
predictions into validation statistics.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd
from sklearn.base import clone
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score
from sklearn.model_selection import cross_val_predict

from geofold.objects.folds import FoldAssignment
from geofold.tasks.crossvalidation import to_predefined_split
from geofold.utils.errors import raise_data_error

logger = logging.getLogger(__name__)


@dataclass
class CrossValidationResult:
    """Results from spatial cross-validation.

    Attributes:
        predictions: Cross-validated predictions (n_samples,).
        errors: Prediction errors (observed - predicted).
        mae: Mean Absolute Error.
        rmse: Root Mean Squared Error.
        r2: Coefficient of determination (R²).
        mean_error: Mean error (bias).
        std_error: Standard deviation of errors.
        fold_metrics: One row per fold with n_test, mae, rmse and r2.
    """

    predictions: np.ndarray
    errors: np.ndarray
    mae: float
    rmse: float
    r2: float
    mean_error: float
    std_error: float
    fold_metrics: pd.DataFrame

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"CrossValidationResult(MAE={self.mae:.4f}, RMSE={self.rmse:.4f}, "
            f"R²={self.r2:.4f}, Bias={self.mean_error:.4f})"
        )


def _r2(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    # R² is undefined for fewer than two observations.
    if len(y_true) < 2:
        return float("nan")
    return float(r2_score(y_true, y_pred))


def summarize_predictions(
    y_true: np.ndarray,
    y_pred: np.ndarray,
    assignment: FoldAssignment,
) -> CrossValidationResult:
    """Aggregate held-out predictions into overall and per-fold statistics.

    Args:
        y_true: Observed values (n_samples,).
        y_pred: Predictions, each made by the model that did not see the
            sample (n_samples,).
        assignment: The fold assignment the predictions were made with.

    Returns:
        CrossValidationResult.
    """
    y_true = np.asarray(y_true, dtype=np.float64).ravel()
    y_pred = np.asarray(y_pred, dtype=np.float64).ravel()
    if len(y_true) != assignment.n_samples or len(y_pred) != assignment.n_samples:
        raise_data_error(
            "y_true and y_pred must have one value per sample",
            expected=str(assignment.n_samples),
            received=f"{len(y_true)} and {len(y_pred)}",
        )

    errors = y_true - y_pred
    rows = []
    for i, fold in enumerate(assignment):
        t, p = y_true[fold.test], y_pred[fold.test]
        rows.append(
            {
                "fold": i,
                "n_test": len(fold.test),
                "mae": float(mean_absolute_error(t, p)),
                "rmse": float(np.sqrt(mean_squared_error(t, p))),
                "r2": _r2(t, p),
            }
        )

    return CrossValidationResult(
        predictions=y_pred,
        errors=errors,
        mae=float(mean_absolute_error(y_true, y_pred)),
        rmse=float(np.sqrt(mean_squared_error(y_true, y_pred))),
        r2=_r2(y_true, y_pred),
        mean_error=float(np.mean(errors)),
        std_error=float(np.std(errors)),
        fold_metrics=pd.DataFrame(rows),
    )


def cross_validate_model(
    estimator,
    X,
    y,
    assignment: FoldAssignment,
    n_jobs: Optional[int] = None,
) -> CrossValidationResult:
    """Fit a clone of ``estimator`` per fold and validate on held-out samples.

    Args:
        estimator: Unfitted scikit-learn compatible regressor.
        X: Predictors, one row per sample in assignment order.
        y: Response values.
        assignment: Spatial fold assignment.
        n_jobs: Parallel fold fits, passed to scikit-learn.

    Returns:
        CrossValidationResult with pooled and per-fold statistics.

    Example:
        >>> from sklearn.ensemble import RandomForestRegressor
        >>> from geofold.workflows.validation import cross_validate_model
        >>> result = cross_validate_model(
        ...     RandomForestRegressor(random_state=0), X, y, assignment
        ... )
        >>> print(f"Spatial CV R²: {result.r2:.3f}")
    """
    if len(X) != assignment.n_samples:
        raise_data_error(
            "X must have one row per sample of the fold assignment",
            expected=str(assignment.n_samples),
            received=str(len(X)),
        )
    predictions = cross_val_predict(
        clone(estimator),
        X,
        y,
        cv=to_predefined_split(assignment),
        n_jobs=n_jobs,
    )
    result = summarize_predictions(np.asarray(y), predictions, assignment)
    logger.info(f"Spatial CV over {assignment.n_folds} folds: {result}")
    return result
