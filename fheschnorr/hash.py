"""
BIP-340 tagged hashes.

Every hash call carries a domain tag so that outputs for different
protocol roles (aux masking, nonce, challenge) are independent even when
fed identical data:

    H_tag(x) = SHA-256( SHA-256(tag) ‖ SHA-256(tag) ‖ x )

Inputs are concatenated raw, exactly as BIP-340 specifies; no length
prefixes are added, so these functions are only safe for the fixed-width
fields the signature scheme feeds them.
"""

from __future__ import annotations

import hashlib

from .curve import Scalar

# ── domain tags ─────────────────────────────────────────────────────────
TAG_AUX       = b"BIP0340/aux"
TAG_NONCE     = b"BIP0340/nonce"
TAG_CHALLENGE = b"BIP0340/challenge"


# ── internal helpers ────────────────────────────────────────────────────
def _tagged_hasher(tag: bytes) -> hashlib._Hash:
    """Return a SHA-256 context pre-loaded with the BIP-340 tag prefix."""
    tag_hash = hashlib.sha256(tag).digest()
    h = hashlib.sha256()
    h.update(tag_hash)
    h.update(tag_hash)
    return h


def tagged_hash(tag: bytes, *parts: bytes) -> bytes:
    """``H_tag(parts[0] ‖ parts[1] ‖ …)``."""
    h = _tagged_hasher(tag)
    for p in parts:
        h.update(p)
    return h.digest()


# ── protocol hashes ─────────────────────────────────────────────────────
def hash_aux(aux_rand: bytes) -> bytes:
    """Mask applied to the private key before nonce derivation."""
    return tagged_hash(TAG_AUX, aux_rand)


def hash_nonce(masked_key: bytes, pubkey_x: bytes, message: bytes) -> bytes:
    """``rand = H_nonce(t ‖ x(P) ‖ m)``; the caller reduces it mod n."""
    return tagged_hash(TAG_NONCE, masked_key, pubkey_x, message)


def hash_challenge(r_x: bytes, pubkey_x: bytes, message: bytes) -> Scalar:
    """
    Schnorr challenge  e = int(H_challenge(x(R) ‖ x(P) ‖ m)) mod n.

    Always computed in the clear; only the linear combination that uses
    it is evaluated homomorphically.
    """
    return Scalar.from_bytes_reduce(
        tagged_hash(TAG_CHALLENGE, r_x, pubkey_x, message),
    )
