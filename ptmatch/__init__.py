"""ptmatch - Patient record matching test harness."""

__version__ = "0.1.0"
