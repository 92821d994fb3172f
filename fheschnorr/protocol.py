"""
Dual-path signing session.

``DualPathSchnorr`` ties key-pair lifetime, private-key encryption and
the two signing paths into one object, suitable for both benchmarking
and integration testing.

Usage
-----
::

    from fheschnorr.protocol import DualPathSchnorr

    with DualPathSchnorr.setup(private_key=3) as session:
        bundle = session.sign(bytes(32), aux_rand=bytes(32))
        assert session.verify(bytes(32), bundle.signature)

``sign`` computes the signature scalar on the clear key and on the
encrypted key from the same nonce and challenge, and refuses to return
unless both agree byte for byte.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from . import primitive
from .curve import Scalar
from .errors import PathMismatchError
from .hbi import DEFAULT_HBI_CONFIG, EncryptedUint, HBIConfig
from .primitive import EvaluationKey, SecretKey
from .signing import (
    EncryptedScalarBackend,
    PrivateKeyLike,
    Signature,
    Signer,
    encrypt_private_key,
    ensure_valid,
    verify_signature,
)

logger = logging.getLogger(__name__)


@dataclass
class SignatureBundle:
    """Result of a dual-path signing call."""

    signature: Signature
    encrypted_signature: Signature
    gate_count: int = 0


class DualPathSchnorr:
    """
    One signing key, held both in the clear and as HBI ciphertext.

    Lifecycle:
    1. ``setup`` — validate the key, generate the key pair, encrypt the
       normalised private key.
    2. ``sign`` / ``sign_plain`` / ``sign_encrypted`` / ``sign_with_nonce``.
    3. ``close`` — drop key material (also on leaving a ``with`` block).
    """

    def __init__(
        self,
        signer: Signer,
        secret_key: SecretKey,
        evaluation_key: EvaluationKey,
        encrypted_key: EncryptedUint,
        verify_after_sign: bool = True,
    ) -> None:
        self._signer: Optional[Signer] = signer
        self._sk: Optional[SecretKey] = secret_key
        self._ek: Optional[EvaluationKey] = evaluation_key
        self._encrypted_key: Optional[EncryptedUint] = encrypted_key
        self._verify_after_sign = verify_after_sign

    # ── factories ──────────────────────────────────────────────────────

    @classmethod
    def setup(
        cls,
        private_key: PrivateKeyLike,
        config: HBIConfig = DEFAULT_HBI_CONFIG,
        verify_after_sign: bool = True,
    ) -> DualPathSchnorr:
        """
        Create a session for ``private_key``.

        Raises ``InvalidKeyError`` before any key generation or curve work
        if the key is out of range.
        """
        signer = Signer(private_key)
        sk, ek = primitive.generate_key_pair(config.key_config())
        encrypted_key = encrypt_private_key(private_key, sk, config)
        logger.info(
            "session ready: %d×u%d limbs", config.limb_count, config.digit_width,
        )
        return cls(signer, sk, ek, encrypted_key, verify_after_sign)

    # ── signing ────────────────────────────────────────────────────────

    def sign(self, message: bytes, aux_rand: bytes) -> SignatureBundle:
        """Full BIP-340 signing on both paths from one derived nonce."""
        k0 = self._live_signer().derive_nonce(message, aux_rand)
        return self.sign_with_nonce(message, k0)

    def sign_with_nonce(self, message: bytes, k0: Scalar) -> SignatureBundle:
        """
        Sign with a caller-supplied nonce on both paths.

        Raises ``PathMismatchError`` if the paths disagree and, when
        ``verify_after_sign`` is set, ``VerificationFailure`` if the
        signature does not verify.
        """
        signer = self._live_signer()
        plain = signer.sign_with_nonce(message, k0)
        encrypted, gates = self._sign_encrypted(message, k0)
        if plain.to_bytes() != encrypted.to_bytes():
            raise PathMismatchError(
                f"plain {plain.hex()} != encrypted {encrypted.hex()}"
            )
        if self._verify_after_sign:
            ensure_valid(message, signer.public_key_bytes, plain)
        return SignatureBundle(
            signature=plain, encrypted_signature=encrypted, gate_count=gates,
        )

    def sign_plain(self, message: bytes, aux_rand: bytes) -> Signature:
        return self._live_signer().sign(message, aux_rand)

    def sign_encrypted(self, message: bytes, aux_rand: bytes) -> Signature:
        k0 = self._live_signer().derive_nonce(message, aux_rand)
        signature, _ = self._sign_encrypted(message, k0)
        return signature

    def _sign_encrypted(self, message: bytes, k0: Scalar):
        signer = self._live_signer()
        backend = EncryptedScalarBackend(self._encrypted_key, self._sk)
        with primitive.evaluation_key(self._ek) as ek:
            before = ek.gate_count()
            signature = signer.sign_with_nonce(message, k0, backend)
            gates = ek.gate_count() - before
        logger.debug("encrypted path evaluated %d gates", gates)
        return signature, gates

    # ── verification ───────────────────────────────────────────────────

    def verify(self, message: bytes, signature: Signature) -> bool:
        return verify_signature(message, self.public_key_bytes, signature)

    # ── lifetime ───────────────────────────────────────────────────────

    def close(self) -> None:
        """Discard key material; the session cannot sign afterwards."""
        if self._signer is not None:
            logger.info("session closed")
        self._signer = None
        self._sk = None
        self._ek = None
        self._encrypted_key = None

    @property
    def closed(self) -> bool:
        return self._signer is None

    def __enter__(self) -> DualPathSchnorr:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _live_signer(self) -> Signer:
        if self._signer is None:
            raise RuntimeError("session is closed")
        return self._signer

    # ── accessors ──────────────────────────────────────────────────────

    @property
    def public_key_bytes(self) -> bytes:
        return self._live_signer().public_key_bytes

    @property
    def encrypted_key(self) -> EncryptedUint:
        self._live_signer()
        return self._encrypted_key  # type: ignore[return-value]

    @property
    def evaluation_key(self) -> EvaluationKey:
        self._live_signer()
        return self._ek  # type: ignore[return-value]

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"DualPathSchnorr({state})"
