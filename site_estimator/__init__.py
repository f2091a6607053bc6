"""
Site Estimator: cell export cleaning and site location estimation.
"""

__version__ = "0.1.0"
