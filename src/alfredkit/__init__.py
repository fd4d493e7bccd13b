"""
alfredkit - shared core for Alfred workflow helper CLIs.

Provides a provider-fallback pipeline with disk caching, a stable output
envelope, and the per-domain helpers built on top of them.
"""

import logging

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())
