"""
Per-operation timings for the HBI engine and both signing paths.

    python -m fheschnorr.bench --digit-width 32 --rounds 1 -v
"""

from __future__ import annotations

import argparse
import logging
import secrets
import time
from typing import Callable, List, Tuple

from . import hbi, primitive
from .curve import ORDER, Scalar
from .hbi import HBIConfig
from .protocol import DualPathSchnorr


def _timed(ek: primitive.EvaluationKey, fn: Callable[[], object]) -> Tuple[float, int]:
    before = ek.gate_count()
    start = time.perf_counter()
    fn()
    return time.perf_counter() - start, ek.gate_count() - before


def run(digit_width: int, rounds: int) -> List[Tuple[str, float, int]]:
    """Return ``(operation, mean seconds, gates)`` rows."""
    config = HBIConfig.for_modulus(ORDER, digit_width=digit_width)
    start = time.perf_counter()
    sk, ek = primitive.generate_key_pair(config.key_config())
    rows = [("generate_key_pair", time.perf_counter() - start, 0)]

    a_val = secrets.randbelow(ORDER)
    b_val = secrets.randbelow(ORDER - 1) + 1
    a = hbi.from_plain(a_val, sk, config)
    b = hbi.from_plain(b_val, sk, config)

    with primitive.evaluation_key(ek):
        n = hbi.trivial(ORDER, config)
        ops = [
            ("from_plain", lambda: hbi.from_plain(a_val, sk, config)),
            ("add", lambda: hbi.add(a, b)),
            ("sub", lambda: hbi.sub(a, b)),
            ("mul", lambda: hbi.mul(a, b)),
            ("shift_left(37)", lambda: hbi.shift_left(a, 37)),
            ("compare", lambda: hbi.compare(a, b)),
            ("select", lambda: hbi.select(hbi.compare(a, b), a, b)),
            ("div_rem", lambda: hbi.div_rem(a, b)),
            ("mod_reduce", lambda: hbi.mod_reduce(hbi.mul(a, b), n)),
            ("to_plain", lambda: hbi.to_plain(a, sk)),
        ]
        for name, fn in ops:
            total, gates = 0.0, 0
            for _ in range(rounds):
                elapsed, gates = _timed(ek, fn)
                total += elapsed
            rows.append((name, total / rounds, gates))

    message = secrets.token_bytes(32)
    aux = secrets.token_bytes(32)
    with DualPathSchnorr.setup(Scalar.random(), config) as session:
        start = time.perf_counter()
        session.sign_plain(message, aux)
        rows.append(("sign (plain)", time.perf_counter() - start, 0))
        start = time.perf_counter()
        bundle = session.sign(message, aux)
        rows.append(("sign (dual path)", time.perf_counter() - start, bundle.gate_count))
    return rows


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--digit-width", type=int, default=32,
                        help="ciphertext digit width in bits (default 32)")
    parser.add_argument("--rounds", type=int, default=1,
                        help="repetitions per HBI operation (default 1)")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="log per-step timings")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    print(f"{'operation':<20} {'seconds':>12} {'gates':>10}")
    for name, seconds, gates in run(args.digit_width, max(1, args.rounds)):
        print(f"{name:<20} {seconds:>12.4f} {gates:>10}")


if __name__ == "__main__":
    main()
