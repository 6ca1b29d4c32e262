"""
Locally weighted scatterplot smoothing with standard errors.
"""
import logging

from .errors import DegenerateFit, InsufficientData, LoessError
from .estimator import LoessRegressor
from .loess import LoessFit, LoessSmoother, fit_loess
from .statistics import LoessStatistics, confidence_band

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "DegenerateFit",
    "InsufficientData",
    "LoessError",
    "LoessFit",
    "LoessRegressor",
    "LoessSmoother",
    "LoessStatistics",
    "confidence_band",
    "fit_loess",
]
