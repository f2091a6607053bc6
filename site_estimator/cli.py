"""
CLI entry point for the site-estimate command.

Cleans a bulk cell export and writes per-site location estimates.
"""
from site_estimator.runner import main

# Re-export main for the console_scripts entry point
__all__ = ['main']

if __name__ == '__main__':
    main()
