"""Core Module.

This module provides the error taxonomy shared by every part of the library.
"""

from .exceptions import (
    BindingError,
    CardinalityError,
    ConfigurationError,
    FHIRError,
    FHIRValidationError,
    FormatError,
    ReferenceShapeError,
    TransitionError,
)

__all__ = [
    "FHIRError",
    "ConfigurationError",
    "FHIRValidationError",
    "FormatError",
    "CardinalityError",
    "BindingError",
    "ReferenceShapeError",
    "TransitionError",
]
