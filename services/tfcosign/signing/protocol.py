"""
Signing engine protocol.

An engine turns (key reference, blob) into a detached signature and checks
a blob against one. Engines raise SigningFailedError /
VerificationFailedError from tfcosign.errors on failure and
OperationTimeoutError when their deadline expires.
"""

from pathlib import Path
from typing import Protocol, runtime_checkable


@runtime_checkable
class SigningEngine(Protocol):
    """Protocol defining the signing engine interface."""

    name: str

    async def sign_blob(self, key_ref: str, blob_path: Path) -> bytes:
        """Sign a blob.

        Args:
            key_ref: Private key path or KMS URI.
            blob_path: File to sign.

        Returns:
            Base64-encoded detached signature, as written to signature files.
        """
        ...

    async def verify_blob(self, key_ref: str, blob_path: Path, signature_path: Path) -> None:
        """Verify a blob against a detached signature.

        Args:
            key_ref: Public key path or KMS URI.
            blob_path: File that was signed.
            signature_path: Signature file produced by sign_blob.

        Raises:
            VerificationFailedError: If the signature does not match.
        """
        ...
