"""
Request validation schemas and the validate_request dependency.
"""

from .request import ValidatedRequest, validate_parts, validate_request

__all__ = ["ValidatedRequest", "validate_parts", "validate_request"]
