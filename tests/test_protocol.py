import secrets
import unittest
from unittest import mock

from fheschnorr import primitive as fhe
from fheschnorr import protocol, signing
from fheschnorr.curve import Scalar
from fheschnorr.errors import InvalidKeyError, PathMismatchError
from fheschnorr.protocol import DualPathSchnorr
from fheschnorr.signing import EncryptedScalarBackend, Signer, verify_signature

ZERO32 = bytes(32)
VECTOR0_SIG = bytes.fromhex(
    "E907831F80848D1069A5371B402410364BDF1C5F8307B0084C55F1CE2DCA8215"
    "25F66A4A85EA8B71E482A74F382D2CE5EBEEE8FDB2172F477DF4900D310536C0"
)


class TestDualPath(unittest.TestCase):

    def test_vector_zero_on_both_paths(self):
        with DualPathSchnorr.setup(3) as session:
            bundle = session.sign(ZERO32, ZERO32)
        self.assertEqual(bundle.signature.to_bytes(), VECTOR0_SIG)
        self.assertEqual(bundle.encrypted_signature.to_bytes(), VECTOR0_SIG)
        self.assertGreater(bundle.gate_count, 0)

    def test_random_key_paths_agree(self):
        key = Scalar.random()
        msg, aux = secrets.token_bytes(32), secrets.token_bytes(32)
        with DualPathSchnorr.setup(key) as session:
            bundle = session.sign(msg, aux)
            self.assertTrue(session.verify(msg, bundle.signature))
            pk = session.public_key_bytes
        self.assertEqual(bundle.signature, bundle.encrypted_signature)
        self.assertEqual(bundle.signature, Signer(key).sign(msg, aux))
        self.assertTrue(verify_signature(msg, pk, bundle.encrypted_signature))

    def test_sign_with_nonce(self):
        key = Scalar.random()
        k0 = Scalar.random()
        msg = secrets.token_bytes(32)
        with DualPathSchnorr.setup(key) as session:
            bundle = session.sign_with_nonce(msg, k0)
        self.assertEqual(bundle.signature, bundle.encrypted_signature)
        self.assertEqual(bundle.signature, Signer(key).sign_with_nonce(msg, k0))

    def test_single_path_methods(self):
        msg, aux = secrets.token_bytes(32), secrets.token_bytes(32)
        with DualPathSchnorr.setup(Scalar.random()) as session:
            plain = session.sign_plain(msg, aux)
            encrypted = session.sign_encrypted(msg, aux)
        self.assertEqual(plain.to_bytes(), encrypted.to_bytes())

    def test_evaluation_key_is_scoped(self):
        with DualPathSchnorr.setup(5) as session:
            session.sign(ZERO32, ZERO32)
            self.assertIsNone(fhe.installed_evaluation_key())
            self.assertGreater(session.evaluation_key.gate_count(), 0)

    def test_path_mismatch(self):
        def off_by_one(backend, k, e):
            return k + e * Scalar(1) + Scalar(1)

        with DualPathSchnorr.setup(3) as session:
            with mock.patch.object(EncryptedScalarBackend, "signature_scalar", off_by_one):
                with self.assertRaises(PathMismatchError):
                    session.sign(ZERO32, ZERO32)

    def test_broken_reduction_is_detected(self):
        with DualPathSchnorr.setup(3) as session:
            with mock.patch.object(
                signing.hbi, "mod_reduce", side_effect=lambda a, m: a,
            ) as reduce:
                with self.assertRaises(PathMismatchError):
                    session.sign(ZERO32, ZERO32)
        reduce.assert_called_once()


class TestSessionLifetime(unittest.TestCase):

    def test_invalid_key_before_key_generation(self):
        with mock.patch.object(protocol.primitive, "generate_key_pair") as gen:
            self.assertRaises(InvalidKeyError, DualPathSchnorr.setup, 0)
            self.assertRaises(InvalidKeyError, DualPathSchnorr.setup, b"\x01" * 31)
        gen.assert_not_called()

    def test_close(self):
        session = DualPathSchnorr.setup(3)
        self.assertFalse(session.closed)
        session.close()
        self.assertTrue(session.closed)
        self.assertRaises(RuntimeError, session.sign, ZERO32, ZERO32)
        self.assertRaises(RuntimeError, session.sign_plain, ZERO32, ZERO32)
        self.assertRaises(RuntimeError, lambda: session.public_key_bytes)
        self.assertRaises(RuntimeError, lambda: session.encrypted_key)
        session.close()
        self.assertIn("closed", repr(session))

    def test_context_manager_closes(self):
        with DualPathSchnorr.setup(3) as session:
            self.assertIn("open", repr(session))
        self.assertTrue(session.closed)

    def test_encrypted_key_shape(self):
        with DualPathSchnorr.setup(3) as session:
            self.assertEqual(session.encrypted_key.config.limb_count, 17)


if __name__ == "__main__":
    unittest.main()
