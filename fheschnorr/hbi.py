"""
Homomorphic big integers: multi-limb unsigned integers over ciphertext
digits.

An ``EncryptedUint`` is a fixed-length, little-endian sequence of
``Ciphertext`` digits.  Its value is always defined modulo
``2^(limb_count * digit_width)``; every operation wraps silently at that
width.

Obliviousness
-------------
No function in this module branches on, loops on, or decrypts an
encrypted value.  Control flow depends only on public shape (limb count,
digit width, public shift amounts).  Anything conditional is expressed
with :func:`select`, which evaluates both arms and blends them:

    select(c, a, b) = c·a + (1 − c)·b

Consequences worth knowing before reading the code:

- carries and borrows travel between limbs as encrypted 0/1 digits;
- :func:`mul` never skips a zero limb;
- :func:`div_rem` walks every bit position of the dividend, leading
  zeros included;
- :func:`mod_reduce` performs ``width`` conditional subtractions no
  matter how small the operand is.

Division by an encrypted zero cannot be detected without decrypting, so
``div_rem(a, 0)`` returns ``(2^width − 1, a)`` and ``mod_reduce(a, 0)``
returns ``a``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple, Union

from . import primitive as fhe
from .curve import ORDER
from .encoding import join_limbs, split_limbs
from .errors import EncodingError
from .primitive import Ciphertext, KeyConfig, SecretKey

logger = logging.getLogger(__name__)


# ── configuration ───────────────────────────────────────────────────────
@dataclass(frozen=True)
class HBIConfig:
    """Shape of an ``EncryptedUint``: ``limb_count`` digits of ``digit_width`` bits."""

    limb_count: int = 17
    digit_width: int = 32

    def __post_init__(self) -> None:
        if self.limb_count < 1:
            raise ValueError(f"limb_count must be >= 1, got {self.limb_count}")
        KeyConfig(self.digit_width)          # validates the width

    @property
    def width(self) -> int:
        """Total bit width."""
        return self.limb_count * self.digit_width

    @property
    def max_value(self) -> int:
        return (1 << self.width) - 1

    def key_config(self) -> KeyConfig:
        return KeyConfig(digit_width=self.digit_width)

    def widened(self, extra_limbs: int) -> HBIConfig:
        return HBIConfig(self.limb_count + extra_limbs, self.digit_width)

    @classmethod
    def for_modulus(cls, modulus: int, digit_width: int = 32) -> HBIConfig:
        """
        Smallest shape that holds ``(m-1) + (m-1)^2`` for modulus *m*,
        plus one guard digit.

        That bound covers ``k + e·d`` for ``k, e, d < m`` before reduction.
        """
        bits = ((modulus - 1) + (modulus - 1) ** 2).bit_length()
        limbs = -(-bits // digit_width) + 1
        return cls(limb_count=limbs, digit_width=digit_width)


DEFAULT_HBI_CONFIG = HBIConfig.for_modulus(ORDER)


# ── types ───────────────────────────────────────────────────────────────
class EncryptedBool:
    """A single ciphertext digit that holds 0 or 1."""

    __slots__ = ("ct",)

    def __init__(self, ct: Ciphertext) -> None:
        self.ct = ct

    def __invert__(self) -> EncryptedBool:
        return EncryptedBool(fhe.bitxor(self.ct, 1))

    def __and__(self, o: EncryptedBool) -> EncryptedBool:
        return EncryptedBool(fhe.bitand(self.ct, o.ct))

    def __or__(self, o: EncryptedBool) -> EncryptedBool:
        return EncryptedBool(fhe.bitor(self.ct, o.ct))

    def __bool__(self) -> bool:
        raise TypeError("EncryptedBool has no plaintext truth value; use select()")

    def __repr__(self) -> str:
        return "EncryptedBool(…)"


class EncryptedUint:
    """
    Multi-limb encrypted unsigned integer.

    Supports ``+ - * // % << >>`` and ``divmod`` with other
    ``EncryptedUint`` values of the same shape, or with plain ``int``
    operands (lifted with :func:`trivial`).
    """

    __slots__ = ("_limbs", "config")

    def __init__(self, limbs: Sequence[Ciphertext], config: HBIConfig) -> None:
        if len(limbs) != config.limb_count:
            raise ValueError(
                f"expected {config.limb_count} limbs, got {len(limbs)}"
            )
        self._limbs: Tuple[Ciphertext, ...] = tuple(limbs)
        self.config = config

    @property
    def limbs(self) -> Tuple[Ciphertext, ...]:
        return self._limbs

    # arithmetic -------------------------------------------------------------
    def _lift(self, o) -> EncryptedUint:
        if isinstance(o, EncryptedUint):
            return o
        if isinstance(o, int):
            return trivial(o, self.config)
        return NotImplemented

    def __add__(self, o):
        o = self._lift(o)
        return NotImplemented if o is NotImplemented else add(self, o)

    def __radd__(self, o):
        return self.__add__(o)

    def __sub__(self, o):
        o = self._lift(o)
        return NotImplemented if o is NotImplemented else sub(self, o)

    def __rsub__(self, o):
        o = self._lift(o)
        return NotImplemented if o is NotImplemented else sub(o, self)

    def __mul__(self, o):
        o = self._lift(o)
        return NotImplemented if o is NotImplemented else mul(self, o)

    def __rmul__(self, o):
        return self.__mul__(o)

    def __divmod__(self, o):
        o = self._lift(o)
        return NotImplemented if o is NotImplemented else div_rem(self, o)

    def __floordiv__(self, o):
        o = self._lift(o)
        return NotImplemented if o is NotImplemented else div_rem(self, o)[0]

    def __mod__(self, o):
        o = self._lift(o)
        return NotImplemented if o is NotImplemented else mod_reduce(self, o)

    def __lshift__(self, n):
        return shift_left(self, n)

    def __rshift__(self, n):
        return shift_right(self, n)

    # comparison -------------------------------------------------------------
    def lt(self, o) -> EncryptedBool:
        return less_than(self, self._lift(o))

    def ge(self, o) -> EncryptedBool:
        return greater_equal(self, self._lift(o))

    def eq(self, o) -> EncryptedBool:
        return equal(self, self._lift(o))

    def __bool__(self) -> bool:
        raise TypeError("EncryptedUint has no plaintext truth value")

    def __repr__(self) -> str:
        c = self.config
        return f"EncryptedUint({c.limb_count}×u{c.digit_width})"


# ── casting ─────────────────────────────────────────────────────────────
def from_plain(
    value: int,
    secret_key: SecretKey,
    config: HBIConfig = DEFAULT_HBI_CONFIG,
) -> EncryptedUint:
    """
    Encrypt ``value`` limb by limb.

    The range check happens in the clear, before encryption: the input is
    not secret from its owner yet.

    Raises ``EncodingError`` if ``value`` is negative or wider than
    ``config.width`` bits.
    """
    _check_plain(value, config)
    if secret_key.config.digit_width != config.digit_width:
        raise ValueError(
            f"key digit width {secret_key.config.digit_width} does not match "
            f"config digit width {config.digit_width}"
        )
    limbs = split_limbs(value, config.digit_width, config.limb_count)
    return EncryptedUint([fhe.encrypt(v, secret_key) for v in limbs], config)


def trivial(value: int, config: HBIConfig = DEFAULT_HBI_CONFIG) -> EncryptedUint:
    """Public constant as an ``EncryptedUint`` under the installed evaluation key."""
    _check_plain(value, config)
    limbs = split_limbs(value, config.digit_width, config.limb_count)
    return EncryptedUint(
        [fhe.trivial(v, config.digit_width) for v in limbs], config,
    )


def to_plain(x: EncryptedUint, secret_key: SecretKey) -> int:
    """
    Decrypt every limb and reassemble the integer.

    Requires the ``SecretKey``; an ``EvaluationKey`` is rejected with
    ``TypeError`` and a key from another pair with ``KeyMismatchError``.
    """
    digits = [fhe.decrypt(ct, secret_key) for ct in x.limbs]
    return join_limbs(digits, x.config.digit_width)


def _check_plain(value: int, config: HBIConfig) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"expected int, got {type(value).__name__}")
    if value < 0 or value > config.max_value:
        raise EncodingError(
            f"value of {value.bit_length()} bits does not fit "
            f"{config.limb_count}×{config.digit_width}-bit limbs"
        )


def _zero_digit(config: HBIConfig) -> Ciphertext:
    return fhe.trivial(0, config.digit_width)


def _same_shape(a: EncryptedUint, b: EncryptedUint) -> HBIConfig:
    if a.config != b.config:
        raise ValueError(f"shape mismatch: {a!r} vs {b!r}")
    return a.config


def _resize(x: EncryptedUint, config: HBIConfig) -> EncryptedUint:
    """Zero-extend or truncate ``x`` to ``config.limb_count`` limbs."""
    limbs = list(x.limbs[: config.limb_count])
    limbs += [_zero_digit(config) for _ in range(config.limb_count - len(limbs))]
    return EncryptedUint(limbs, config)


def _bit(x: EncryptedUint, i: int) -> Ciphertext:
    """Bit ``i`` of ``x`` (public index) as a 0/1 digit."""
    q, r = divmod(i, x.config.digit_width)
    return fhe.bitand(fhe.shr(x.limbs[q], r), 1)


# ── addition / subtraction ──────────────────────────────────────────────
def _add_with_carry(
    xs: Sequence[Ciphertext],
    ys: Sequence[Ciphertext],
    carry: Ciphertext,
) -> Tuple[List[Ciphertext], Ciphertext]:
    """
    Ripple-carry addition.  ``carry`` is an encrypted 0/1 digit; the
    carry-out of each limb is recovered as ``sum < operand``.
    """
    out: List[Ciphertext] = []
    for x, y in zip(xs, ys):
        s1 = fhe.add(x, y)
        c1 = fhe.lt(s1, x)
        s2 = fhe.add(s1, carry)
        c2 = fhe.lt(s2, s1)
        out.append(s2)
        carry = fhe.bitor(c1, c2)
    return out, carry


def add(a: EncryptedUint, b: EncryptedUint) -> EncryptedUint:
    """``(a + b) mod 2^width``."""
    config = _same_shape(a, b)
    limbs, _ = _add_with_carry(a.limbs, b.limbs, _zero_digit(config))
    return EncryptedUint(limbs, config)


def sub(a: EncryptedUint, b: EncryptedUint) -> EncryptedUint:
    """``(a − b) mod 2^width``, computed as ``a + ~b + 1``."""
    config = _same_shape(a, b)
    inverted = [fhe.bitnot(y) for y in b.limbs]
    limbs, _ = _add_with_carry(
        a.limbs, inverted, fhe.trivial(1, config.digit_width),
    )
    return EncryptedUint(limbs, config)


# ── multiplication ──────────────────────────────────────────────────────
def mul(a: EncryptedUint, b: EncryptedUint) -> EncryptedUint:
    """
    ``(a · b) mod 2^width`` by schoolbook multiplication.

    Row *j* is ``a · b_j`` shifted by *j* limbs.  Each limb product is
    formed at double width so its high half can be carried into the next
    limb; rows are then summed with :func:`add`.
    """
    config = _same_shape(a, b)
    n, w = config.limb_count, config.digit_width
    result = trivial(0, config)
    for j, y in enumerate(b.limbs):
        y_wide = fhe.cast(y, 2 * w)
        row = [_zero_digit(config) for _ in range(j)]
        carry = fhe.trivial(0, 2 * w)
        for i in range(n - j):
            p = fhe.add(fhe.mul(fhe.cast(a.limbs[i], 2 * w), y_wide), carry)
            row.append(fhe.cast(p, w))
            carry = fhe.shr(p, w)
        result = add(result, EncryptedUint(row, config))
    return result


# ── shifts ──────────────────────────────────────────────────────────────
def shift_left(
    a: EncryptedUint,
    n: Union[int, EncryptedUint],
) -> EncryptedUint:
    """
    ``(a << n) mod 2^width``.

    ``n`` may be a public ``int`` or an ``EncryptedUint`` shift amount.
    """
    if isinstance(n, EncryptedUint):
        return _barrel_shift(a, n, shift_left)
    config = a.config
    if n < 0:
        raise ValueError("negative shift amount")
    if n >= config.width:
        return trivial(0, config)
    w = config.digit_width
    q, r = divmod(n, w)
    limbs = [_zero_digit(config) for _ in range(q)]
    limbs += a.limbs[: config.limb_count - q]
    if r:
        spilled: List[Ciphertext] = []
        prev = _zero_digit(config)
        for x in limbs:
            spilled.append(fhe.bitor(fhe.shl(x, r), fhe.shr(prev, w - r)))
            prev = x
        limbs = spilled
    return EncryptedUint(limbs, config)


def shift_right(
    a: EncryptedUint,
    n: Union[int, EncryptedUint],
) -> EncryptedUint:
    """
    ``a >> n`` (logical).

    ``n`` may be a public ``int`` or an ``EncryptedUint`` shift amount.
    """
    if isinstance(n, EncryptedUint):
        return _barrel_shift(a, n, shift_right)
    config = a.config
    if n < 0:
        raise ValueError("negative shift amount")
    if n >= config.width:
        return trivial(0, config)
    w = config.digit_width
    q, r = divmod(n, w)
    limbs = list(a.limbs[q:]) + [_zero_digit(config) for _ in range(q)]
    if r:
        spilled: List[Ciphertext] = []
        for i, x in enumerate(limbs):
            nxt = limbs[i + 1] if i + 1 < len(limbs) else _zero_digit(config)
            spilled.append(fhe.bitor(fhe.shr(x, r), fhe.shl(nxt, w - r)))
        limbs = spilled
    return EncryptedUint(limbs, config)


def _barrel_shift(a: EncryptedUint, amount: EncryptedUint, shift) -> EncryptedUint:
    """
    Shift by an encrypted amount.

    Stage *j* selects between the running value and the same value
    shifted by the public amount ``2^j``, keyed on bit *j* of ``amount``.
    Amounts of ``width`` or more select zero.
    """
    config = a.config
    stages = config.width.bit_length()
    result = a
    for j in range(min(stages, amount.config.width)):
        bit = EncryptedBool(_bit(amount, j))
        result = select(bit, shift(result, 1 << j), result)
    if stages < amount.config.width:
        high = shift_right(amount, stages)
        overflow = ~equal(high, trivial(0, amount.config))
        result = select(overflow, trivial(0, config), result)
    return result


# ── comparison / selection ──────────────────────────────────────────────
def less_than(a: EncryptedUint, b: EncryptedUint) -> EncryptedBool:
    """
    Encrypted ``a < b``: the final borrow of ``a − b``.

    Per limb, ``x − y − borrow`` underflows iff ``x < y`` or
    ``(x − y) mod 2^w < borrow``.
    """
    _same_shape(a, b)
    borrow = _zero_digit(a.config)
    for x, y in zip(a.limbs, b.limbs):
        d = fhe.sub(x, y)
        borrow = fhe.bitor(fhe.lt(x, y), fhe.lt(d, borrow))
    return EncryptedBool(borrow)


compare = less_than


def greater_equal(a: EncryptedUint, b: EncryptedUint) -> EncryptedBool:
    return ~less_than(a, b)


def equal(a: EncryptedUint, b: EncryptedUint) -> EncryptedBool:
    _same_shape(a, b)
    acc = fhe.trivial(1, a.config.digit_width)
    for x, y in zip(a.limbs, b.limbs):
        acc = fhe.bitand(acc, fhe.eq(x, y))
    return EncryptedBool(acc)


def select(
    cond: EncryptedBool,
    a: EncryptedUint,
    b: EncryptedUint,
) -> EncryptedUint:
    """``cond ? a : b`` as ``cond·a + (1 − cond)·b``, limb by limb."""
    config = _same_shape(a, b)
    c = cond.ct
    not_c = fhe.sub(fhe.trivial(1, c.width), c)
    limbs = [
        fhe.add(fhe.mul(x, c), fhe.mul(y, not_c))
        for x, y in zip(a.limbs, b.limbs)
    ]
    return EncryptedUint(limbs, config)


# ── division ────────────────────────────────────────────────────────────
def div_rem(
    a: EncryptedUint,
    b: EncryptedUint,
) -> Tuple[EncryptedUint, EncryptedUint]:
    """
    Restoring long division, one dividend bit per step from the MSB.

    The partial remainder carries one guard limb so ``r << 1`` cannot
    overflow.  At each step the next dividend bit is shifted in, the
    divisor is tentatively subtracted, and :func:`select` keeps or
    discards the difference; the comparison bit becomes the quotient bit.
    Every bit position is processed, leading zeros included.
    """
    config = _same_shape(a, b)
    logger.debug("div_rem over %d bit positions", config.width)
    w = config.digit_width
    wide = config.widened(1)
    divisor = _resize(b, wide)
    r = trivial(0, wide)
    q_limbs = [_zero_digit(config) for _ in range(config.limb_count)]
    for i in reversed(range(config.width)):
        r = shift_left(r, 1)
        r = EncryptedUint(
            (fhe.bitor(r.limbs[0], _bit(a, i)),) + r.limbs[1:], wide,
        )
        keep = greater_equal(r, divisor)
        r = select(keep, sub(r, divisor), r)
        j, k = divmod(i, w)
        q_limbs[j] = fhe.bitor(q_limbs[j], fhe.shl(keep.ct, k))
    return EncryptedUint(q_limbs, config), _resize(r, config)


def mod_reduce(a: EncryptedUint, modulus: EncryptedUint) -> EncryptedUint:
    """
    ``a mod modulus`` by conditional subtraction of ``modulus << i`` for
    ``i = width−1 … 0``.

    Operands are held at double width so every shifted modulus is exact.
    The iteration count is ``width`` regardless of either operand.
    """
    config = _same_shape(a, modulus)
    logger.debug("mod_reduce with %d conditional subtractions", config.width)
    wide = config.widened(config.limb_count)
    x = _resize(a, wide)
    t = shift_left(_resize(modulus, wide), config.width - 1)
    for i in reversed(range(config.width)):
        keep = greater_equal(x, t)
        x = select(keep, sub(x, t), x)
        if i:
            t = shift_right(t, 1)
    return _resize(x, config)
