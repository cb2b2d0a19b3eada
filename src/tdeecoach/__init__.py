"""tdeecoach - adaptive TDEE estimation and coaching from daily logs."""

__version__ = "0.1.0"
