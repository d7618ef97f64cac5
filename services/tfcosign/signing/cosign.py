"""
Signing engine backed by the cosign CLI.

Runs ``cosign sign-blob`` / ``cosign verify-blob`` as subprocesses with key
based signing: no transparency log upload, no Fulcio certificate, no SCT.
Key references may be files or any KMS URI cosign understands. Encrypted
cosign private keys read their password from COSIGN_PASSWORD.
"""

from __future__ import annotations

import asyncio
import contextlib
from pathlib import Path

from tfcosign.errors import OperationTimeoutError, SigningFailedError, VerificationFailedError
from tfcosign.logging_config import get_logger

logger = get_logger(__name__)


class CosignEngine:
    """Shells out to cosign for each blob."""

    name = "cosign"

    def __init__(self, binary: str = "cosign", timeout_seconds: float = 180.0) -> None:
        self._binary = binary
        self._timeout = timeout_seconds

    def sign_command(self, key_ref: str, blob_path: Path) -> list[str]:
        return [
            self._binary,
            "sign-blob",
            "--yes",
            "--key",
            key_ref,
            "--tlog-upload=false",
            str(blob_path),
        ]

    def verify_command(self, key_ref: str, blob_path: Path, signature_path: Path) -> list[str]:
        return [
            self._binary,
            "verify-blob",
            "--key",
            key_ref,
            "--signature",
            str(signature_path),
            "--insecure-ignore-tlog=true",
            "--insecure-ignore-sct=true",
            str(blob_path),
        ]

    async def _run(self, cmd: list[str], operation: str) -> tuple[int, bytes, bytes]:
        logger.debug("Running cosign", operation=operation, command=cmd[:2])
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise FileNotFoundError(f"cosign executable not found: {self._binary}") from e

        try:
            async with asyncio.timeout(self._timeout):
                stdout, stderr = await proc.communicate()
        except TimeoutError as e:
            _kill(proc)
            await proc.wait()
            raise OperationTimeoutError(operation, self._timeout) from e
        except asyncio.CancelledError:
            _kill(proc)
            await proc.wait()
            raise

        return proc.returncode or 0, stdout, stderr

    async def sign_blob(self, key_ref: str, blob_path: Path) -> bytes:
        operation = f"cosign sign-blob {blob_path}"
        try:
            returncode, stdout, stderr = await self._run(
                self.sign_command(key_ref, blob_path), operation
            )
        except FileNotFoundError as e:
            raise SigningFailedError(str(blob_path), str(e)) from e

        if returncode != 0:
            raise SigningFailedError(str(blob_path), _last_line(stderr) or f"exit {returncode}")

        signature = stdout.strip()
        if not signature:
            raise SigningFailedError(str(blob_path), "cosign produced an empty signature")
        return signature

    async def verify_blob(self, key_ref: str, blob_path: Path, signature_path: Path) -> None:
        operation = f"cosign verify-blob {blob_path}"
        try:
            returncode, _, stderr = await self._run(
                self.verify_command(key_ref, blob_path, signature_path), operation
            )
        except FileNotFoundError as e:
            raise VerificationFailedError(str(blob_path), str(e)) from e

        if returncode != 0:
            raise VerificationFailedError(
                str(blob_path), _last_line(stderr) or f"exit {returncode}"
            )


def _last_line(output: bytes) -> str:
    lines = output.decode(errors="replace").strip().splitlines()
    return lines[-1].strip() if lines else ""


def _kill(proc: asyncio.subprocess.Process) -> None:
    # cosign may exit on its own between the deadline and the kill.
    with contextlib.suppress(ProcessLookupError):
        proc.kill()
