"""
Decoding of compact tokens without verification.
"""

from .decoder import DecodedToken, decode, decode_complete

__all__ = [
    "DecodedToken",
    "decode",
    "decode_complete",
]
