"""
POSTUREFIT Shared Module

Common utilities used across all services.
"""

from .storage import LocalResultStore, get_result_store

__all__ = [
    'LocalResultStore',
    'get_result_store',
]
