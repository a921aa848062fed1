"""Variable-order BDF integration core: coefficients, predictor, Newton and step control."""

from daejax.integration.bdf import (
    BDFCoeffs,
    compute_bdf_coeffs,
    divided_differences,
    error_coefficient,
    normalized_timepoints,
    order_error_estimate,
)
from daejax.integration.controller import StepOrderController
from daejax.integration.history import StepHistory
from daejax.integration.newton import NewtonCorrector, NewtonResult, NewtonStatus, weighted_rms
from daejax.integration.predictor import PredictorCoeffs, compute_predictor_coeffs, predict

__all__ = [
    "BDFCoeffs",
    "compute_bdf_coeffs",
    "divided_differences",
    "error_coefficient",
    "normalized_timepoints",
    "order_error_estimate",
    "PredictorCoeffs",
    "compute_predictor_coeffs",
    "predict",
    "StepHistory",
    "NewtonCorrector",
    "NewtonResult",
    "NewtonStatus",
    "weighted_rms",
    "StepOrderController",
]
