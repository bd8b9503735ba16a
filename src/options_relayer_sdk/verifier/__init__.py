"""Option verifier collaborators."""

from .base import OptionHashVerifier, PermitTokenReader
from .client import OptionVerifierClient, function_selector
from .memory import InMemoryOptionVerifier

__all__ = [
    "OptionHashVerifier",
    "PermitTokenReader",
    "OptionVerifierClient",
    "InMemoryOptionVerifier",
    "function_selector",
]
