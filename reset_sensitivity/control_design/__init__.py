"""
Control Design Module for Reset Control Analysis

This module holds the linear-systems side of the analysis: the state-space
container of reset elements and the sampling of python-control LTI objects
(controllers, plants) on the frequency grid used by the describing-function
routines.
"""

from .system_models import ResetElementModel, frf_from_system

__version__ = "1.0.0"
__all__ = [
    "ResetElementModel",
    "frf_from_system",
]
