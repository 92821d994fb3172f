import random
import unittest

from fheschnorr import hbi
from fheschnorr import primitive as fhe
from fheschnorr.curve import ORDER
from fheschnorr.errors import EncodingError, KeyMismatchError
from fheschnorr.hbi import DEFAULT_HBI_CONFIG, HBIConfig

SMALL = HBIConfig(limb_count=4, digit_width=8)
MASK = (1 << SMALL.width) - 1

random.seed(42)
SAMPLES = [
    (0, 0),
    (1, MASK),
    (MASK, MASK),
    (0x01000000, 0x00FFFFFF),
    (0x12345678, 0x9ABCDEF0),
] + [(random.getrandbits(32), random.getrandbits(32)) for _ in range(5)]


class HBITestCase(unittest.TestCase):

    config = SMALL

    def setUp(self):
        self.sk, self.ek = fhe.generate_key_pair(self.config.key_config())
        ctx = fhe.evaluation_key(self.ek)
        ctx.__enter__()
        self.addCleanup(ctx.__exit__, None, None, None)

    def enc(self, v, config=None):
        return hbi.from_plain(v, self.sk, config or self.config)

    def dec(self, x):
        return hbi.to_plain(x, self.sk)

    def dec_bool(self, b):
        return fhe.decrypt(b.ct, self.sk)


class TestConfig(unittest.TestCase):

    def test_default_holds_signature_scalar(self):
        self.assertEqual(DEFAULT_HBI_CONFIG.limb_count, 17)
        self.assertEqual(DEFAULT_HBI_CONFIG.digit_width, 32)
        bound = (ORDER - 1) + (ORDER - 1) ** 2
        self.assertLessEqual(bound, DEFAULT_HBI_CONFIG.max_value)

    def test_for_modulus_other_width(self):
        config = HBIConfig.for_modulus(ORDER, digit_width=64)
        self.assertEqual(config.limb_count, 9)
        self.assertEqual(config.width, 576)

    def test_invalid_shape(self):
        self.assertRaises(ValueError, HBIConfig, 0, 8)
        self.assertRaises(ValueError, HBIConfig, 4, 0)


class TestCasting(HBITestCase):

    def test_round_trip(self):
        for v in (0, 1, 255, 256, 0xDEADBEEF, MASK):
            self.assertEqual(self.dec(self.enc(v)), v)

    def test_out_of_range(self):
        self.assertRaises(EncodingError, self.enc, MASK + 1)
        self.assertRaises(EncodingError, self.enc, -1)
        self.assertRaises(TypeError, self.enc, 1.5)

    def test_digit_width_must_match_key(self):
        self.assertRaises(
            ValueError, hbi.from_plain, 1, self.sk, HBIConfig(2, 16),
        )

    def test_to_plain_key_checks(self):
        x = self.enc(99)
        self.assertRaises(TypeError, hbi.to_plain, x, self.ek)
        other_sk, _ = fhe.generate_key_pair(self.config.key_config())
        self.assertRaises(KeyMismatchError, hbi.to_plain, x, other_sk)

    def test_trivial(self):
        self.assertEqual(self.dec(hbi.trivial(0xCAFE, self.config)), 0xCAFE)

    def test_no_truth_value(self):
        x = self.enc(1)
        with self.assertRaises(TypeError):
            bool(x)
        with self.assertRaises(TypeError):
            bool(x.lt(2))


class TestArithmetic(HBITestCase):

    def test_add(self):
        for a, b in SAMPLES:
            self.assertEqual(self.dec(hbi.add(self.enc(a), self.enc(b))), (a + b) & MASK)

    def test_add_carries_across_every_limb(self):
        self.assertEqual(self.dec(hbi.add(self.enc(MASK), self.enc(1))), 0)
        self.assertEqual(self.dec(hbi.add(self.enc(0x00FFFFFF), self.enc(1))), 0x01000000)

    def test_sub(self):
        for a, b in SAMPLES:
            self.assertEqual(self.dec(hbi.sub(self.enc(a), self.enc(b))), (a - b) & MASK)
        self.assertEqual(self.dec(hbi.sub(self.enc(0), self.enc(1))), MASK)

    def test_mul(self):
        for a, b in SAMPLES:
            self.assertEqual(self.dec(hbi.mul(self.enc(a), self.enc(b))), (a * b) & MASK)

    def test_shape_mismatch(self):
        wide = self.enc(1, HBIConfig(5, 8))
        self.assertRaises(ValueError, hbi.add, self.enc(1), wide)
        self.assertRaises(ValueError, hbi.less_than, self.enc(1), wide)


class TestShifts(HBITestCase):

    def test_public_shifts(self):
        v = 0x8123F0A5
        x = self.enc(v)
        for n in (0, 1, 7, 8, 9, 16, 31, 32, 40):
            self.assertEqual(self.dec(hbi.shift_left(x, n)), (v << n) & MASK, n)
            self.assertEqual(self.dec(hbi.shift_right(x, n)), v >> n, n)

    def test_negative_shift(self):
        self.assertRaises(ValueError, hbi.shift_left, self.enc(1), -1)
        self.assertRaises(ValueError, hbi.shift_right, self.enc(1), -1)

    def test_encrypted_shift_amount(self):
        v = 0x8123F0A5
        x = self.enc(v)
        for n in (0, 3, 12, 31, 32, 63, 64, 1000):
            amount = self.enc(n)
            self.assertEqual(self.dec(hbi.shift_left(x, amount)), (v << n) & MASK, n)
            self.assertEqual(self.dec(hbi.shift_right(x, amount)), v >> n, n)


class TestComparison(HBITestCase):

    def test_less_than(self):
        for a, b in SAMPLES:
            self.assertEqual(self.dec_bool(hbi.compare(self.enc(a), self.enc(b))), int(a < b))
            self.assertEqual(self.dec_bool(hbi.greater_equal(self.enc(a), self.enc(b))), int(a >= b))

    def test_less_than_decided_by_high_limb(self):
        a, b = self.enc(0x010000FF), self.enc(0x00FFFF00)
        self.assertEqual(self.dec_bool(hbi.less_than(a, b)), 0)
        self.assertEqual(self.dec_bool(hbi.less_than(b, a)), 1)

    def test_equal(self):
        self.assertEqual(self.dec_bool(hbi.equal(self.enc(77), self.enc(77))), 1)
        self.assertEqual(self.dec_bool(hbi.equal(self.enc(77), self.enc(78))), 0)
        self.assertEqual(self.dec_bool(hbi.equal(self.enc(1 << 24), self.enc(0))), 0)

    def test_select(self):
        a, b = self.enc(0xAAAAAAAA), self.enc(0x55555555)
        yes = hbi.less_than(self.enc(1), self.enc(2))
        self.assertEqual(self.dec(hbi.select(yes, a, b)), 0xAAAAAAAA)
        self.assertEqual(self.dec(hbi.select(~yes, a, b)), 0x55555555)

    def test_bool_combinators(self):
        t = hbi.equal(self.enc(1), self.enc(1))
        f = hbi.equal(self.enc(1), self.enc(2))
        self.assertEqual(self.dec_bool(t & f), 0)
        self.assertEqual(self.dec_bool(t | f), 1)
        self.assertEqual(self.dec_bool(~f), 1)


class TestDivision(HBITestCase):

    def test_div_rem(self):
        for a, b in SAMPLES:
            if b == 0:
                continue
            q, r = hbi.div_rem(self.enc(a), self.enc(b))
            self.assertEqual((self.dec(q), self.dec(r)), divmod(a, b), (a, b))

    def test_div_rem_edges(self):
        q, r = hbi.div_rem(self.enc(1000), self.enc(1))
        self.assertEqual((self.dec(q), self.dec(r)), (1000, 0))
        q, r = hbi.div_rem(self.enc(5), self.enc(1000))
        self.assertEqual((self.dec(q), self.dec(r)), (0, 5))
        q, r = hbi.div_rem(self.enc(MASK), self.enc(MASK))
        self.assertEqual((self.dec(q), self.dec(r)), (1, 0))

    def test_div_by_zero(self):
        q, r = hbi.div_rem(self.enc(12345), self.enc(0))
        self.assertEqual(self.dec(q), MASK)
        self.assertEqual(self.dec(r), 12345)

    def test_mod_reduce(self):
        for a, b in SAMPLES:
            if b == 0:
                continue
            self.assertEqual(self.dec(hbi.mod_reduce(self.enc(a), self.enc(b))), a % b, (a, b))

    def test_mod_reduce_by_zero(self):
        self.assertEqual(self.dec(hbi.mod_reduce(self.enc(4321), self.enc(0))), 4321)


class TestOperators(HBITestCase):

    def test_operators(self):
        a, b = 0x0BADF00D, 0x1234
        x, y = self.enc(a), self.enc(b)
        self.assertEqual(self.dec(x + y), a + b)
        self.assertEqual(self.dec(x + 5), a + 5)
        self.assertEqual(self.dec(5 + x), a + 5)
        self.assertEqual(self.dec(x - y), a - b)
        self.assertEqual(self.dec(10 - y), (10 - b) & MASK)
        self.assertEqual(self.dec(y * 3), b * 3)
        self.assertEqual(self.dec(3 * y), b * 3)
        self.assertEqual(self.dec(x // y), a // b)
        self.assertEqual(self.dec(x % y), a % b)
        q, r = divmod(x, y)
        self.assertEqual((self.dec(q), self.dec(r)), divmod(a, b))
        self.assertEqual(self.dec(x << 4), (a << 4) & MASK)
        self.assertEqual(self.dec(x >> 4), a >> 4)
        self.assertEqual(self.dec_bool(y.lt(x)), 1)
        self.assertEqual(self.dec_bool(y.ge(x)), 0)
        self.assertEqual(self.dec_bool(y.eq(b)), 1)


class TestOblivious(HBITestCase):
    """The gate trace must not depend on operand values."""

    def trace(self, fn, *values):
        operands = [self.enc(v) for v in values]
        self.ek.reset_stats()
        fn(*operands)
        return dict(self.ek.stats)

    def test_traces_match(self):
        ops = [
            hbi.add, hbi.sub, hbi.mul, hbi.less_than, hbi.equal,
            hbi.div_rem, hbi.mod_reduce, hbi.shift_left,
        ]
        for op in ops:
            reference = self.trace(op, MASK, 3)
            for a, b in [(0, 0), (1, MASK), (0x12345678, 0x80000000)]:
                self.assertEqual(self.trace(op, a, b), reference, op.__name__)

    def test_select_trace(self):
        a, b = self.enc(1), self.enc(2)
        traces = []
        for cond in (hbi.less_than(a, b), hbi.less_than(b, a)):
            self.ek.reset_stats()
            hbi.select(cond, a, b)
            traces.append(dict(self.ek.stats))
        self.assertEqual(traces[0], traces[1])


if __name__ == "__main__":
    unittest.main()
