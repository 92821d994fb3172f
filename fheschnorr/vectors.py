"""
BIP-340 test-vector table.

Reads the CSV published with BIP-340::

    index,secret key,public key,aux_rand,message,signature,verification result,comment

Rows without a secret key are verification-only.
"""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from .hbi import DEFAULT_HBI_CONFIG, HBIConfig
from .protocol import DualPathSchnorr
from .signing import Signer, verify_signature

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignatureVector:
    index: int
    secret_key: Optional[bytes]
    public_key: bytes
    aux_rand: Optional[bytes]
    message: bytes
    signature: bytes
    expected: bool
    comment: str = ""


def _hex_or_none(field: str) -> Optional[bytes]:
    field = field.strip()
    return bytes.fromhex(field) if field else None


def load_vectors(path: Union[str, Path]) -> List[SignatureVector]:
    """Parse a BIP-340 vector CSV into ``SignatureVector`` rows."""
    rows: List[SignatureVector] = []
    with open(path, newline="") as fh:
        for rec in csv.DictReader(fh):
            rows.append(SignatureVector(
                index=int(rec["index"]),
                secret_key=_hex_or_none(rec["secret key"]),
                public_key=bytes.fromhex(rec["public key"]),
                aux_rand=_hex_or_none(rec["aux_rand"]),
                message=bytes.fromhex(rec["message"]),
                signature=bytes.fromhex(rec["signature"]),
                expected=rec["verification result"].strip().upper() == "TRUE",
                comment=(rec.get("comment") or "").strip(),
            ))
    return rows


def check_vector(
    vector: SignatureVector,
    encrypted: bool = False,
    config: HBIConfig = DEFAULT_HBI_CONFIG,
) -> bool:
    """
    Run one row: re-sign when a secret key is given (on both paths if
    ``encrypted``), then verify against the published result.
    """
    if vector.secret_key is not None:
        if encrypted:
            with DualPathSchnorr.setup(
                vector.secret_key, config, verify_after_sign=False,
            ) as session:
                sig = session.sign(vector.message, vector.aux_rand).signature
        else:
            sig = Signer(vector.secret_key).sign(vector.message, vector.aux_rand)
        if sig.to_bytes() != vector.signature:
            logger.warning("signing mismatch for vector #%d", vector.index)
            return False
    result = verify_signature(vector.message, vector.public_key, vector.signature)
    if result != vector.expected:
        logger.warning("verification mismatch for vector #%d", vector.index)
        return False
    return True
