"""PolyCaster price alerts - background monitoring of prediction-market price alerts."""

__version__ = "0.1.0"
