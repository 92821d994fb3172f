"""
BIP-340 Schnorr signing with a plaintext or a homomorphically encrypted
private key.

Per signature:

    d  = d'  if y(d'·G) even  else  n − d'          (key normalisation)
    t  = bytes(d) ⊕ H_aux(a)
    k0 = int(H_nonce(t ‖ x(P) ‖ m)) mod n            (fail if 0)
    R  = k0·G;   k = k0 if y(R) even else n − k0
    e  = int(H_challenge(x(R) ‖ x(P) ‖ m)) mod n
    s  = (k + e·d) mod n
    sig = x(R) ‖ s

Everything up to and including *e* runs in the clear.  Only the last
line touches the long-term key, and it is delegated to a
``ScalarBackend``:

- ``PlainScalarBackend``      — ``Scalar`` arithmetic on the clear key;
- ``EncryptedScalarBackend``  — the same combination evaluated by the
  HBI engine on the encrypted key, decrypted only at the end.

Both backends receive the same *k* and *e*, so for a correct engine they
return the same *s* and the two signatures are byte-identical.

Note that the nonce is derived from the *clear* key and handed to both
paths; the encrypted path protects the key only in the final
combination step.

Verification (:func:`verify_signature`) is plaintext-only and needs just
the 32-byte x-only public key.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from . import hbi
from .curve import Scalar, Point, G, ORDER, FIELD_PRIME, public_key_with_even_y
from .encoding import SCALAR_BYTES, bytes_from_int, int_from_bytes, xor_bytes
from .errors import (
    InvalidKeyError,
    InvalidNonceError,
    PathMismatchError,
    VerificationFailure,
)
from .hash import hash_aux, hash_nonce, hash_challenge
from .hbi import DEFAULT_HBI_CONFIG, EncryptedUint, HBIConfig
from .primitive import SecretKey

logger = logging.getLogger(__name__)

SIGNATURE_BYTES = 2 * SCALAR_BYTES

PrivateKeyLike = Union[int, bytes, Scalar]


# ── data structures ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class Signature:
    """
    BIP-340 signature  (r, s).

    Both fields are kept as raw integers so that out-of-range values read
    off the wire survive until :func:`verify_signature` rejects them.
    """

    r: int
    s: int

    def to_bytes(self) -> bytes:
        """Serialise to 64 bytes: r (32) ‖ s (32), big-endian."""
        return bytes_from_int(self.r) + bytes_from_int(self.s)

    @classmethod
    def from_bytes(cls, data: bytes) -> Signature:
        if len(data) != SIGNATURE_BYTES:
            raise ValueError(f"expected {SIGNATURE_BYTES} bytes, got {len(data)}")
        return cls(
            r=int_from_bytes(data[:SCALAR_BYTES]),
            s=int_from_bytes(data[SCALAR_BYTES:]),
        )

    def hex(self) -> str:
        return self.to_bytes().hex().upper()


# ── key handling ────────────────────────────────────────────────────────

def validate_private_key(private_key: PrivateKeyLike) -> Scalar:
    """
    Parse and range-check a private key.

    Accepts an ``int``, 32 big-endian bytes, or a ``Scalar``.  Raises
    ``InvalidKeyError`` unless the key is in [1, n-1]; nothing touches
    the curve before this check passes.
    """
    if isinstance(private_key, Scalar):
        value = private_key.value
    elif isinstance(private_key, (bytes, bytearray)):
        if len(private_key) != SCALAR_BYTES:
            raise InvalidKeyError(
                f"private key must be {SCALAR_BYTES} bytes, got {len(private_key)}"
            )
        value = int_from_bytes(bytes(private_key))
    elif isinstance(private_key, int) and not isinstance(private_key, bool):
        value = private_key
    else:
        raise InvalidKeyError(f"unsupported key type {type(private_key).__name__}")
    if not 0 < value < ORDER:
        raise InvalidKeyError("private key must be in [1, n-1]")
    return Scalar(value)


def encrypt_private_key(
    private_key: PrivateKeyLike,
    secret_key: SecretKey,
    config: HBIConfig = DEFAULT_HBI_CONFIG,
) -> EncryptedUint:
    """Normalise the key for an even-y public key and encrypt it."""
    _, d = public_key_with_even_y(validate_private_key(private_key))
    return hbi.from_plain(d.value, secret_key, config)


# ── nonce / challenge ───────────────────────────────────────────────────

def compute_nonce(
    d: Scalar,
    pubkey_x: bytes,
    message: bytes,
    aux_rand: bytes,
) -> Scalar:
    """
    Deterministic nonce  k0 = H_nonce((d ⊕ H_aux(a)) ‖ x(P) ‖ m) mod n.

    *d* must already be normalised.  May return zero; callers check.
    """
    if len(aux_rand) != SCALAR_BYTES:
        raise ValueError(f"aux_rand must be {SCALAR_BYTES} bytes, got {len(aux_rand)}")
    t = xor_bytes(d.to_bytes(), hash_aux(aux_rand))
    return Scalar.from_bytes_reduce(hash_nonce(t, pubkey_x, message))


def compute_commitment(k0: Scalar) -> Tuple[Point, Scalar]:
    """
    ``(R, k)`` with ``R = k·G`` of even y.

    Raises ``InvalidNonceError`` for ``k0 = 0`` or a commitment at
    infinity.
    """
    if k0.is_zero():
        raise InvalidNonceError("nonce is zero")
    R = k0 * G
    if R.is_inf():
        raise InvalidNonceError("commitment point at infinity")
    if R.has_even_y():
        return R, k0
    return -R, -k0


def compute_challenge(R: Point, pubkey_x: bytes, message: bytes) -> Scalar:
    return hash_challenge(R.x_bytes(), pubkey_x, message)


# ── scalar backends ─────────────────────────────────────────────────────

class ScalarBackend(ABC):
    """Computes the signature scalar  s = (k + e·d) mod n."""

    name = "abstract"

    @abstractmethod
    def signature_scalar(self, k: Scalar, e: Scalar) -> Scalar:
        ...


class PlainScalarBackend(ScalarBackend):
    """Clear-key path: ``Scalar`` arithmetic mod n."""

    name = "plain"

    def __init__(self, d: Scalar) -> None:
        self._d = d

    def signature_scalar(self, k: Scalar, e: Scalar) -> Scalar:
        return k + e * self._d


class EncryptedScalarBackend(ScalarBackend):
    """
    Encrypted-key path.

    *k* and *e* are encrypted under the session's secret key, combined
    with the encrypted private key by :func:`combine_encrypted`, and the
    result is decrypted.  Gate evaluation uses whichever evaluation key
    is installed; the secret key is used only for ``from_plain`` and
    ``to_plain``.

    The decrypted scalar is checked against *n* before it is wrapped in a
    ``Scalar``; an unreduced result means the engine is broken and raises
    ``PathMismatchError``.
    """

    name = "encrypted"

    def __init__(self, encrypted_key: EncryptedUint, secret_key: SecretKey) -> None:
        self._d = encrypted_key
        self._sk = secret_key

    def signature_scalar(self, k: Scalar, e: Scalar) -> Scalar:
        config = self._d.config
        k_ct = hbi.from_plain(k.value, self._sk, config)
        e_ct = hbi.from_plain(e.value, self._sk, config)
        n_ct = hbi.trivial(ORDER, config)
        s_ct = combine_encrypted(k_ct, e_ct, self._d, n_ct)
        s = hbi.to_plain(s_ct, self._sk)
        if s >= ORDER:
            raise PathMismatchError("encrypted signature scalar is not reduced mod n")
        return Scalar(s)


def combine_encrypted(
    k: EncryptedUint,
    e: EncryptedUint,
    d: EncryptedUint,
    n: EncryptedUint,
) -> EncryptedUint:
    """``(k + e·d) mod n`` on ciphertexts only."""
    return hbi.mod_reduce(hbi.add(k, hbi.mul(e, d)), n)


# ── signer ──────────────────────────────────────────────────────────────

class Signer:
    """
    BIP-340 signer for one private key.

    The key is validated and normalised once, here.  ``sign`` runs the
    full flow; ``sign_with_nonce`` starts from an externally supplied
    *k0* (for example one produced by a separate device key).
    """

    def __init__(self, private_key: PrivateKeyLike) -> None:
        d = validate_private_key(private_key)
        self._P, self._d = public_key_with_even_y(d)
        self._plain = PlainScalarBackend(self._d)

    @property
    def public_key(self) -> Point:
        return self._P

    @property
    def public_key_bytes(self) -> bytes:
        """32-byte x-only public key."""
        return self._P.x_bytes()

    @property
    def plain_backend(self) -> PlainScalarBackend:
        return self._plain

    def derive_nonce(self, message: bytes, aux_rand: bytes) -> Scalar:
        return compute_nonce(self._d, self.public_key_bytes, message, aux_rand)

    def sign(
        self,
        message: bytes,
        aux_rand: bytes,
        backend: Optional[ScalarBackend] = None,
    ) -> Signature:
        start = time.perf_counter()
        k0 = self.derive_nonce(message, aux_rand)
        logger.debug("compute_nonce: %.3f ms", _ms(start))
        return self.sign_with_nonce(message, k0, backend)

    def sign_with_nonce(
        self,
        message: bytes,
        k0: Scalar,
        backend: Optional[ScalarBackend] = None,
    ) -> Signature:
        backend = backend or self._plain

        start = time.perf_counter()
        R, k = compute_commitment(k0)
        logger.debug("commitment: %.3f ms", _ms(start))

        start = time.perf_counter()
        e = compute_challenge(R, self.public_key_bytes, message)
        logger.debug("challenge: %.3f ms", _ms(start))

        start = time.perf_counter()
        s = backend.signature_scalar(k, e)
        logger.debug("%s signature scalar: %.3f ms", backend.name, _ms(start))

        return Signature(r=R.x, s=s.value)


def _ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0


# ── verification ────────────────────────────────────────────────────────

def verify_signature(
    message: bytes,
    public_key: bytes,
    signature: Union[bytes, Signature],
) -> bool:
    """
    BIP-340 verification.

    Accepts iff ``R' = s·G − e·P`` is finite, has even y, and
    ``x(R') == r``, where ``P = lift_x(public_key)`` and
    ``e = H_challenge(r ‖ public_key ‖ m)``.  Malformed input is a normal
    negative result, never an exception.
    """
    if isinstance(signature, Signature):
        if not (0 <= signature.r < FIELD_PRIME and 0 <= signature.s < ORDER):
            return False
        signature = signature.to_bytes()
    if len(public_key) != SCALAR_BYTES or len(signature) != SIGNATURE_BYTES:
        return False
    try:
        P = Point.lift_x(int_from_bytes(public_key))
    except ValueError:
        return False
    sig = Signature.from_bytes(signature)
    if sig.r >= FIELD_PRIME or sig.s >= ORDER:
        return False
    e = hash_challenge(bytes_from_int(sig.r), public_key, message)
    R = Point.from_scalar(Scalar(sig.s)) - (e * P)
    return not R.is_inf() and R.has_even_y() and R.x == sig.r


def ensure_valid(
    message: bytes,
    public_key: bytes,
    signature: Union[bytes, Signature],
) -> None:
    """Like :func:`verify_signature`, but raises ``VerificationFailure``."""
    if not verify_signature(message, public_key, signature):
        raise VerificationFailure("signature does not verify")
