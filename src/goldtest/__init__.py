"""goldtest - static test-quality compliance engine."""

__version__ = "0.3.0"
