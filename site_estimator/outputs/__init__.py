"""
Output emitters for Site Estimator.

This package contains the writers for cleaned observations and site
estimates: CSV files and database tables.
"""

from site_estimator.outputs.emitters import (
    ResultEmitter,
    CSVResultEmitter,
    SQLResultEmitter,
    create_emitters,
)

__all__ = ['ResultEmitter', 'CSVResultEmitter', 'SQLResultEmitter', 'create_emitters']
