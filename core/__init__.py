"""
Core package for the storefront
Contains the top-level orchestration
"""

from .storefront import Storefront

__all__ = [
    'Storefront'
]
