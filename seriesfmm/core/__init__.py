"""
Series Expansion Core Module

This module contains the multi-index tables, series expansions and
translation operators of the fast Gauss transform.
"""

from .series_aux import SeriesExpansionAux
from .bounds import Interval, HRectBound
from .order_selection import OrderFailure, OrderSelection
from .config import ExpansionConfig
from .expansion import Expansion, FarFieldExpansion, LocalExpansion

__all__ = [
    'SeriesExpansionAux',
    'Interval',
    'HRectBound',
    'OrderFailure',
    'OrderSelection',
    'ExpansionConfig',
    'Expansion',
    'FarFieldExpansion',
    'LocalExpansion',
]
