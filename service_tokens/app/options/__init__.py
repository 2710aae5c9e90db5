"""
Option bag schemas for sign and verify.
"""

from .schema import SignOptions, VerifyOptions, validate_sign_options, validate_verify_options

__all__ = [
    "SignOptions",
    "VerifyOptions",
    "validate_sign_options",
    "validate_verify_options",
]
