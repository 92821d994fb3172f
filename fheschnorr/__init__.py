"""
fheschnorr: BIP-340 Schnorr signatures with a homomorphically encrypted key.

Combines:

- a **homomorphic big-integer engine** (multi-limb integers over
  fixed-width ciphertext digits; add, sub, mul, shifts, compare/select,
  long division and modular reduction, all branch-free on encrypted data)
- a **dual-path signer** that computes the signature scalar
  ``s = (k + e·d) mod n`` on the clear key and on the encrypted key and
  checks that the two signatures are byte-identical

Curve arithmetic runs on libsecp256k1 via ``coincurve``.

Quick start
-----------
::

    from fheschnorr import DualPathSchnorr, verify_signature

    msg = bytes(32)
    with DualPathSchnorr.setup(private_key=3) as session:
        bundle = session.sign(msg, aux_rand=bytes(32))
        pubkey = session.public_key_bytes

    assert verify_signature(msg, pubkey, bundle.signature)
"""

__version__ = "0.1.0"

# ── core types ──────────────────────────────────────────────────────────
from .curve import Scalar, Point, G, ORDER, FIELD_PRIME, public_key_with_even_y

# ── errors ──────────────────────────────────────────────────────────────
from .errors import (
    FheSchnorrError,
    InvalidKeyError,
    InvalidNonceError,
    EncodingError,
    KeyMismatchError,
    NoEvaluationKeyError,
    VerificationFailure,
    PathMismatchError,
)

# ── encryption primitive ────────────────────────────────────────────────
from .primitive import (
    KeyConfig,
    SecretKey,
    EvaluationKey,
    Ciphertext,
    generate_key_pair,
    set_evaluation_key,
    evaluation_key,
)

# ── homomorphic big integers ────────────────────────────────────────────
from .hbi import (
    HBIConfig,
    DEFAULT_HBI_CONFIG,
    EncryptedUint,
    EncryptedBool,
    from_plain,
    to_plain,
    trivial,
    add,
    sub,
    mul,
    shift_left,
    shift_right,
    compare,
    less_than,
    greater_equal,
    equal,
    select,
    div_rem,
    mod_reduce,
)

# ── signing ─────────────────────────────────────────────────────────────
from .signing import (
    Signature,
    Signer,
    ScalarBackend,
    PlainScalarBackend,
    EncryptedScalarBackend,
    validate_private_key,
    encrypt_private_key,
    compute_nonce,
    compute_commitment,
    compute_challenge,
    combine_encrypted,
    verify_signature,
    ensure_valid,
)

# ── protocol ────────────────────────────────────────────────────────────
from .protocol import DualPathSchnorr, SignatureBundle

# ── test vectors ────────────────────────────────────────────────────────
from .vectors import SignatureVector, load_vectors, check_vector

__all__ = [
    # version
    "__version__",
    # core
    "Scalar", "Point", "G", "ORDER", "FIELD_PRIME", "public_key_with_even_y",
    # errors
    "FheSchnorrError", "InvalidKeyError", "InvalidNonceError",
    "EncodingError", "KeyMismatchError", "NoEvaluationKeyError",
    "VerificationFailure",
    "PathMismatchError",
    # primitive
    "KeyConfig", "SecretKey", "EvaluationKey", "Ciphertext",
    "generate_key_pair", "set_evaluation_key", "evaluation_key",
    # hbi
    "HBIConfig", "DEFAULT_HBI_CONFIG", "EncryptedUint", "EncryptedBool",
    "from_plain", "to_plain", "trivial", "add", "sub", "mul",
    "shift_left", "shift_right", "compare", "less_than", "greater_equal",
    "equal", "select", "div_rem", "mod_reduce",
    # signing
    "Signature", "Signer", "ScalarBackend", "PlainScalarBackend",
    "EncryptedScalarBackend", "validate_private_key", "encrypt_private_key",
    "compute_nonce", "compute_commitment", "compute_challenge",
    "combine_encrypted", "verify_signature", "ensure_valid",
    # protocol
    "DualPathSchnorr", "SignatureBundle",
    # vectors
    "SignatureVector", "load_vectors", "check_vector",
]
