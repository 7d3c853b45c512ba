"""
Web package for fancurve

This package provides the HTTP API used by the curve editor frontend.
"""

from .app import create_app

__all__ = ['create_app']
