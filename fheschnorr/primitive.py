"""
Encryption primitive: fixed-width ciphertext digits and their gate set.

This is the narrow interface the HBI engine is written against.  It
follows the client-key / server-key split of gate-level FHE libraries:

- ``SecretKey``      encrypts and decrypts; stays with the trusted owner.
- ``EvaluationKey``  evaluates gates on ciphertexts; carries no
  decryption capability and may be handed to any evaluator.

Gates are evaluated under a process-wide *installed* evaluation key
(:func:`set_evaluation_key` / :func:`evaluation_key`), return a fresh
``Ciphertext`` synchronously, and never expose the underlying value.

Backend
-------
The shipped backend evaluates each gate directly on the digit it wraps;
it gives the engine exact gate semantics, key-pair bookkeeping and gate
accounting, but **no cryptographic hiding**.  A real scheme plugs in by
replacing the bodies of :func:`encrypt`, :func:`decrypt` and the gate
functions; nothing above this module looks inside a ``Ciphertext``.

Every evaluated gate is counted on the installed ``EvaluationKey``
(``ek.stats``), so the gate trace of a computation can be compared across
different secret inputs.
"""

from __future__ import annotations

import logging
import secrets
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple, Union

from .errors import EncodingError, KeyMismatchError, NoEvaluationKeyError

logger = logging.getLogger(__name__)

MAX_DIGIT_WIDTH = 256


# ── configuration ───────────────────────────────────────────────────────
@dataclass(frozen=True)
class KeyConfig:
    """Parameters fixed at key generation."""

    digit_width: int = 32

    def __post_init__(self) -> None:
        if not 1 <= self.digit_width <= MAX_DIGIT_WIDTH // 2:
            raise ValueError(
                f"digit_width must be in [1, {MAX_DIGIT_WIDTH // 2}], "
                f"got {self.digit_width}"
            )


# ── keys ────────────────────────────────────────────────────────────────
class SecretKey:
    """Client-side key: encryption and decryption only."""

    __slots__ = ("_key_id", "config")

    def __init__(self, key_id: bytes, config: KeyConfig) -> None:
        self._key_id = key_id
        self.config = config

    def __repr__(self) -> str:
        return f"SecretKey(digit_width={self.config.digit_width})"


class EvaluationKey:
    """Server-side key: gate evaluation only."""

    __slots__ = ("_key_id", "config", "stats")

    def __init__(self, key_id: bytes, config: KeyConfig) -> None:
        self._key_id = key_id
        self.config = config
        self.stats: Counter = Counter()

    def gate_count(self) -> int:
        return sum(self.stats.values())

    def reset_stats(self) -> None:
        self.stats.clear()

    def __repr__(self) -> str:
        return (
            f"EvaluationKey(digit_width={self.config.digit_width}, "
            f"gates={self.gate_count()})"
        )


class Ciphertext:
    """Encrypted unsigned integer of ``width`` bits.  Opaque."""

    __slots__ = ("_m", "width", "_key_id")

    def __init__(self, m: int, width: int, key_id: bytes) -> None:
        self._m = m
        self.width = width
        self._key_id = key_id

    def __repr__(self) -> str:
        return f"Ciphertext(u{self.width})"


def generate_key_pair(
    config: Optional[KeyConfig] = None,
) -> Tuple[SecretKey, EvaluationKey]:
    """Create a fresh ``(secret_key, evaluation_key)`` pair."""
    config = config or KeyConfig()
    key_id = secrets.token_bytes(16)
    logger.info("generated key pair (digit_width=%d)", config.digit_width)
    return SecretKey(key_id, config), EvaluationKey(key_id, config)


# ── installed evaluation key ────────────────────────────────────────────
_installed: Optional[EvaluationKey] = None


def set_evaluation_key(key: Optional[EvaluationKey]) -> None:
    """Install ``key`` for all subsequent gate calls (``None`` uninstalls)."""
    global _installed
    if key is not None and not isinstance(key, EvaluationKey):
        raise TypeError(f"expected EvaluationKey, got {type(key).__name__}")
    _installed = key


def installed_evaluation_key() -> Optional[EvaluationKey]:
    return _installed


@contextmanager
def evaluation_key(key: EvaluationKey) -> Iterator[EvaluationKey]:
    """Install ``key`` for the duration of the block, then restore."""
    previous = _installed
    set_evaluation_key(key)
    try:
        yield key
    finally:
        set_evaluation_key(previous)


def _server_key() -> EvaluationKey:
    if _installed is None:
        raise NoEvaluationKeyError("no evaluation key installed")
    return _installed


def _check_range(value: int, width: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"expected int, got {type(value).__name__}")
    if value < 0 or value >> width:
        raise EncodingError(f"{value} does not fit in {width} bits")


# ── client side ─────────────────────────────────────────────────────────
def encrypt(
    value: int,
    secret_key: SecretKey,
    width: Optional[int] = None,
) -> Ciphertext:
    """Encrypt ``value`` as a ``width``-bit digit (default: key digit width)."""
    if not isinstance(secret_key, SecretKey):
        raise TypeError(f"expected SecretKey, got {type(secret_key).__name__}")
    width = width or secret_key.config.digit_width
    _check_range(value, width)
    return Ciphertext(value, width, secret_key._key_id)


def decrypt(ct: Ciphertext, secret_key: SecretKey) -> int:
    """Decrypt one digit.  Requires the matching ``SecretKey``."""
    if not isinstance(secret_key, SecretKey):
        raise TypeError(
            f"decryption needs a SecretKey, got {type(secret_key).__name__}"
        )
    if ct._key_id != secret_key._key_id:
        raise KeyMismatchError("ciphertext was not produced under this key")
    return ct._m


# ── server side ─────────────────────────────────────────────────────────
Operand = Union[Ciphertext, int]


def _unary(name: str, a: Ciphertext) -> EvaluationKey:
    key = _server_key()
    if a._key_id != key._key_id:
        raise KeyMismatchError(f"{name}: operand from a foreign key pair")
    key.stats[name] += 1
    return key


def _binary(name: str, a: Ciphertext, b: Operand) -> int:
    """Validate operands, count the gate, and return b's digit value."""
    key = _unary(name, a)
    if isinstance(b, Ciphertext):
        if b._key_id != key._key_id:
            raise KeyMismatchError(f"{name}: operand from a foreign key pair")
        if b.width != a.width:
            raise ValueError(f"{name}: width mismatch u{a.width} vs u{b.width}")
        return b._m
    _check_range(b, a.width)
    return b


def trivial(value: int, width: Optional[int] = None) -> Ciphertext:
    """
    Noiseless encryption of a public constant under the installed key.

    Needs no secret key; used for public operands (zero padding, the
    carry-in of a subtraction, the group order).
    """
    key = _server_key()
    width = width or key.config.digit_width
    _check_range(value, width)
    key.stats["trivial"] += 1
    return Ciphertext(value, width, key._key_id)


def add(a: Ciphertext, b: Operand) -> Ciphertext:
    """``(a + b) mod 2^w``."""
    m = _binary("add", a, b)
    return Ciphertext((a._m + m) & ((1 << a.width) - 1), a.width, a._key_id)


def sub(a: Ciphertext, b: Operand) -> Ciphertext:
    """``(a - b) mod 2^w``."""
    m = _binary("sub", a, b)
    return Ciphertext((a._m - m) & ((1 << a.width) - 1), a.width, a._key_id)


def mul(a: Ciphertext, b: Operand) -> Ciphertext:
    """``(a * b) mod 2^w``."""
    m = _binary("mul", a, b)
    return Ciphertext((a._m * m) & ((1 << a.width) - 1), a.width, a._key_id)


def shl(a: Ciphertext, n: int) -> Ciphertext:
    """Left shift by a public amount; bits shifted past ``w`` are lost."""
    _unary("shl", a)
    if n < 0:
        raise ValueError("negative shift amount")
    return Ciphertext((a._m << n) & ((1 << a.width) - 1), a.width, a._key_id)


def shr(a: Ciphertext, n: int) -> Ciphertext:
    """Logical right shift by a public amount."""
    _unary("shr", a)
    if n < 0:
        raise ValueError("negative shift amount")
    return Ciphertext(a._m >> n, a.width, a._key_id)


def bitand(a: Ciphertext, b: Operand) -> Ciphertext:
    m = _binary("and", a, b)
    return Ciphertext(a._m & m, a.width, a._key_id)


def bitor(a: Ciphertext, b: Operand) -> Ciphertext:
    m = _binary("or", a, b)
    return Ciphertext(a._m | m, a.width, a._key_id)


def bitxor(a: Ciphertext, b: Operand) -> Ciphertext:
    m = _binary("xor", a, b)
    return Ciphertext(a._m ^ m, a.width, a._key_id)


def bitnot(a: Ciphertext) -> Ciphertext:
    _unary("not", a)
    return Ciphertext(a._m ^ ((1 << a.width) - 1), a.width, a._key_id)


def min_(a: Ciphertext, b: Operand) -> Ciphertext:
    m = _binary("min", a, b)
    return Ciphertext(min(a._m, m), a.width, a._key_id)


def lt(a: Ciphertext, b: Operand) -> Ciphertext:
    """Encrypted ``a < b`` as a ``w``-bit digit holding 0 or 1."""
    m = _binary("lt", a, b)
    return Ciphertext(int(a._m < m), a.width, a._key_id)


def eq(a: Ciphertext, b: Operand) -> Ciphertext:
    """Encrypted ``a == b`` as a ``w``-bit digit holding 0 or 1."""
    m = _binary("eq", a, b)
    return Ciphertext(int(a._m == m), a.width, a._key_id)


def cast(a: Ciphertext, width: int) -> Ciphertext:
    """Zero-extend or truncate to ``width`` bits."""
    _unary("cast", a)
    if not 1 <= width <= MAX_DIGIT_WIDTH:
        raise ValueError(f"unsupported width {width}")
    return Ciphertext(a._m & ((1 << width) - 1), width, a._key_id)
