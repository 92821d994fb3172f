"""
Exception taxonomy for fheschnorr.

Key, nonce and encoding problems subclass ``ValueError`` so callers that
already guard against bad input with ``except ValueError`` keep working.
``PathMismatchError`` is not a recoverable condition: it means the
plaintext and encrypted signing paths disagree, i.e. an implementation
bug.
"""

from __future__ import annotations


class FheSchnorrError(Exception):
    """Base class for all fheschnorr errors."""


class InvalidKeyError(FheSchnorrError, ValueError):
    """Private key outside [1, n-1] or of the wrong encoding."""


class InvalidNonceError(FheSchnorrError, ValueError):
    """Degenerate nonce (k0 = 0) or commitment at infinity."""


class EncodingError(FheSchnorrError, ValueError):
    """Plaintext does not fit the fixed width it is being encrypted into."""


class KeyMismatchError(FheSchnorrError):
    """Ciphertext and key (or two ciphertexts) belong to different key pairs."""


class VerificationFailure(FheSchnorrError):
    """Signature does not satisfy the BIP-340 verification equation."""


class PathMismatchError(FheSchnorrError, RuntimeError):
    """Plaintext and encrypted signing paths produced different output."""


class NoEvaluationKeyError(FheSchnorrError, RuntimeError):
    """A gate was evaluated with no evaluation key installed."""
