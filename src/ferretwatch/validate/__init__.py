# SPDX-License-Identifier: MIT
"""
Candidate validation (false-positive suppression).
"""

from .context import ValidationContext
from .core import (
    ValidatorRef,
    ValidatorRegistry,
    get_validator_registry,
    validate,
    validate_chain,
)

__all__ = [
    "ValidationContext",
    "ValidatorRef",
    "ValidatorRegistry",
    "get_validator_registry",
    "validate",
    "validate_chain",
]
