"""Quota-constrained prize draws for wheel and dice campaigns."""

__version__ = "0.1.0"
