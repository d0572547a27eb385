from .one_rep_max import OneRepMaxCalculator
from .weight_converter import WeightConverter

__all__ = ["OneRepMaxCalculator", "WeightConverter"]
