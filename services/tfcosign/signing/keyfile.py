"""In-process signing with PEM key files.

Produces the same artifact as ``cosign sign-blob --key``: a base64-encoded
signature over the SHA-256 digest of the blob. Signatures made with an
ECDSA P-256 key verify with either engine. Supports ECDSA, Ed25519 and RSA
(PKCS#1 v1.5) keys in standard PEM encodings; encrypted private keys take
their password from COSIGN_PASSWORD.

KMS URIs and cosign's own encrypted key format need the cosign engine.
"""

import asyncio
import base64
import binascii
import os
from pathlib import Path

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, padding, rsa

from tfcosign.errors import OperationTimeoutError, SigningFailedError, VerificationFailedError
from tfcosign.logging_config import get_logger

logger = get_logger(__name__)

PASSWORD_ENV = "COSIGN_PASSWORD"


def _require_file_ref(key_ref: str) -> Path:
    if "://" in key_ref:
        raise ValueError(f"key reference {key_ref} is a URI; use the cosign engine for KMS keys")
    return Path(key_ref)


def load_private_key(key_ref: str):
    """Load a PEM private key, decrypting with COSIGN_PASSWORD if set."""
    data = _require_file_ref(key_ref).read_bytes()
    password = os.environ.get(PASSWORD_ENV)
    return serialization.load_pem_private_key(
        data, password=password.encode() if password else None
    )


def load_public_key(key_ref: str):
    """Load a PEM public key, or the public half of a PEM private key."""
    data = _require_file_ref(key_ref).read_bytes()
    if b"PRIVATE KEY" in data:
        return load_private_key(key_ref).public_key()
    return serialization.load_pem_public_key(data)


def sign_bytes(private_key, payload: bytes) -> bytes:
    """Raw signature over payload with the scheme matching the key type."""
    if isinstance(private_key, ec.EllipticCurvePrivateKey):
        return private_key.sign(payload, ec.ECDSA(hashes.SHA256()))
    if isinstance(private_key, ed25519.Ed25519PrivateKey):
        return private_key.sign(payload)
    if isinstance(private_key, rsa.RSAPrivateKey):
        return private_key.sign(payload, padding.PKCS1v15(), hashes.SHA256())
    raise TypeError(f"unsupported key type {type(private_key).__name__}")


def verify_bytes(public_key, signature: bytes, payload: bytes) -> None:
    """Raises InvalidSignature if the signature does not match."""
    if isinstance(public_key, ec.EllipticCurvePublicKey):
        public_key.verify(signature, payload, ec.ECDSA(hashes.SHA256()))
    elif isinstance(public_key, ed25519.Ed25519PublicKey):
        public_key.verify(signature, payload)
    elif isinstance(public_key, rsa.RSAPublicKey):
        public_key.verify(signature, payload, padding.PKCS1v15(), hashes.SHA256())
    else:
        raise TypeError(f"unsupported key type {type(public_key).__name__}")


def decode_signature(raw: bytes) -> bytes:
    """Signature files hold base64; fall back to raw bytes for binary signatures."""
    try:
        return base64.b64decode(raw.strip(), validate=True)
    except binascii.Error:
        return raw


class KeyFileEngine:
    """Signs and verifies with local PEM keys using the cryptography library."""

    name = "keyfile"

    def __init__(self, timeout_seconds: float = 180.0) -> None:
        self._timeout = timeout_seconds

    def _sign(self, key_ref: str, blob_path: Path) -> bytes:
        private_key = load_private_key(key_ref)
        signature = sign_bytes(private_key, blob_path.read_bytes())
        return base64.b64encode(signature)

    def _verify(self, key_ref: str, blob_path: Path, signature_path: Path) -> None:
        public_key = load_public_key(key_ref)
        signature = decode_signature(signature_path.read_bytes())
        verify_bytes(public_key, signature, blob_path.read_bytes())

    async def sign_blob(self, key_ref: str, blob_path: Path) -> bytes:
        try:
            async with asyncio.timeout(self._timeout):
                return await asyncio.to_thread(self._sign, key_ref, blob_path)
        except TimeoutError as e:
            raise OperationTimeoutError(f"sign {blob_path}", self._timeout) from e
        except (OSError, ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise SigningFailedError(str(blob_path), str(e)) from e

    async def verify_blob(self, key_ref: str, blob_path: Path, signature_path: Path) -> None:
        try:
            async with asyncio.timeout(self._timeout):
                await asyncio.to_thread(self._verify, key_ref, blob_path, signature_path)
        except TimeoutError as e:
            raise OperationTimeoutError(f"verify {blob_path}", self._timeout) from e
        except InvalidSignature as e:
            raise VerificationFailedError(str(blob_path), "invalid signature") from e
        except (OSError, ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise VerificationFailedError(str(blob_path), str(e)) from e
        logger.debug("Signature verified", module=str(blob_path), engine=self.name)
