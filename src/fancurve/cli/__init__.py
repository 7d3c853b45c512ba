"""
CLI package for fancurve

This package provides the command-line interface that starts
the fan controller service.
"""

from .interface import main

__all__ = ['main']
