"""Sign and verify workflows over a batch of module references.

Each reference is classified, resolved into staged artifacts, signed or
verified artifact by artifact, and cleaned up, whatever the outcome. The
batch either stops at the first failing reference (fail_fast) or isolates
failures and reports the aggregate.
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

import aiofiles
import aiofiles.os

from tfcosign.errors import (
    ModuleCosignError,
    OperationTimeoutError,
    StagingIOError,
    UnexpectedError,
    UploadFailedError,
)
from tfcosign.logging_config import get_logger
from tfcosign.references import classify_reference
from tfcosign.services.staging_service import StagedArtifact, Workspace, signature_location_for
from tfcosign.signing.protocol import SigningEngine
from tfcosign.storage import StoreFactory, s3_store_factory
from tfcosign.storage.keys import signature_path_for
from tfcosign.storage.protocol import ObjectLocation, ObjectStoreError, ObjectStoreTimeoutError

logger = get_logger(__name__)


class Operation(StrEnum):
    SIGN = "sign"
    VERIFY = "verify"


@dataclass(frozen=True)
class SigningOptions:
    """Per-invocation configuration, read-only once the batch starts."""

    key_ref: str
    suffix: str = ".sig"
    upload_signature: bool = False
    output_dir: Path | None = None
    fail_fast: bool = True
    concurrency: int = 1
    workspace_root: str = ""


@dataclass
class ReferenceResult:
    """Outcome of processing one module reference."""

    reference: str
    artifacts: list[str] = field(default_factory=list)
    signatures: list[str] = field(default_factory=list)
    error: ModuleCosignError | None = None
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.skipped


@dataclass
class BatchReport:
    operation: Operation
    results: list[ReferenceResult]

    @property
    def ok(self) -> bool:
        return all(r.ok for r in self.results)

    @property
    def failures(self) -> list[ReferenceResult]:
        return [r for r in self.results if r.error is not None]

    @property
    def skipped(self) -> list[ReferenceResult]:
        return [r for r in self.results if r.skipped]


class ModuleSignatureOrchestrator:
    """Drives staging, the signing engine and signature upload."""

    def __init__(
        self,
        options: SigningOptions,
        engine: SigningEngine,
        store_factory: StoreFactory | None = None,
    ) -> None:
        if options.concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._options = options
        self._engine = engine
        self._store_factory = store_factory or s3_store_factory()
        self._claimed_outputs: set[Path] = set()

    @property
    def options(self) -> SigningOptions:
        return self._options

    async def sign(
        self, references: list[str], cancel_event: asyncio.Event | None = None
    ) -> BatchReport:
        return await self.run(Operation.SIGN, references, cancel_event)

    async def verify(
        self, references: list[str], cancel_event: asyncio.Event | None = None
    ) -> BatchReport:
        return await self.run(Operation.VERIFY, references, cancel_event)

    async def run(
        self,
        operation: Operation,
        references: list[str],
        cancel_event: asyncio.Event | None = None,
    ) -> BatchReport:
        """Process references in order, at most `concurrency` at a time.

        `cancel_event` is checked before each reference starts; once set, the
        remaining references are reported as skipped.
        """
        cancelled = cancel_event or asyncio.Event()
        stop = asyncio.Event()
        semaphore = asyncio.Semaphore(self._options.concurrency)
        results = [ReferenceResult(reference=ref) for ref in references]
        self._claimed_outputs.clear()

        async def worker(result: ReferenceResult) -> None:
            async with semaphore:
                if cancelled.is_set() or stop.is_set():
                    result.skipped = True
                    return
                await self._process(operation, result)
                if result.error is not None and self._options.fail_fast:
                    stop.set()

        async with asyncio.TaskGroup() as tg:
            for result in results:
                tg.create_task(worker(result))

        report = BatchReport(operation=operation, results=results)
        logger.info(
            "Batch finished",
            operation=str(operation),
            references=len(results),
            failed=len(report.failures),
            skipped=len(report.skipped),
        )
        return report

    async def _process(self, operation: Operation, result: ReferenceResult) -> None:
        log = logger.bind(operation=str(operation), reference=result.reference)
        try:
            reference = classify_reference(result.reference)
            async with Workspace(
                self._store_factory, self._options.suffix, self._options.workspace_root
            ) as workspace:
                if operation is Operation.SIGN:
                    artifact = await workspace.stage_for_sign(reference)
                    try:
                        result.signatures.append(await self._sign(artifact))
                    finally:
                        await artifact.release()
                    result.artifacts.append(str(artifact.reference))
                else:
                    artifacts = workspace.iter_verify_artifacts(reference)
                    async with contextlib.aclosing(artifacts):
                        async for artifact in artifacts:
                            try:
                                await self._verify(artifact)
                            finally:
                                await artifact.release()
                            result.artifacts.append(str(artifact.reference))
        except ModuleCosignError as e:
            result.error = e
            log.error("Module reference failed", error=str(e), error_type=type(e).__name__)
            return
        except Exception as e:
            result.error = UnexpectedError(result.reference, e)
            log.exception("Module reference failed unexpectedly", error=str(e))
            return

        if operation is Operation.VERIFY and not result.artifacts:
            log.warning("No module archives found to verify")

    # --- Sign ---

    async def _sign(self, artifact: StagedArtifact) -> str:
        """Sign one archive and return where its signature was published."""
        signature = await self._engine.sign_blob(self._options.key_ref, artifact.local_module_path)
        await _write_file(artifact.local_signature_path, signature)

        if not artifact.is_remote:
            destination = str(artifact.local_signature_path)
        elif self._options.upload_signature and artifact.source_location is not None:
            destination = await self._upload(artifact.source_location, signature)
        else:
            output_path = await self._claim_output(artifact)
            await _write_file(output_path, signature)
            destination = str(output_path)

        logger.info(
            "Module signed",
            module=str(artifact.reference),
            signature=destination,
            engine=self._engine.name,
        )
        return destination

    async def _claim_output(self, artifact: StagedArtifact) -> Path:
        """Local path for the signature of a remote archive that is not uploaded.

        Output names are base names only, so two references in one batch may
        map to the same file; the second one fails instead of overwriting.
        """
        output_dir = self._options.output_dir or Path.cwd()
        output_path = signature_path_for(output_dir / artifact.module_name, self._options.suffix)
        if output_path in self._claimed_outputs:
            raise StagingIOError(
                f"Signature {output_path} was already written for another module "
                f"in this batch; sign {artifact.reference} separately or upload it"
            )
        self._claimed_outputs.add(output_path)
        if await aiofiles.os.path.exists(output_path):
            logger.warning("Overwriting existing signature file", path=str(output_path))
        return output_path

    async def _upload(self, module_location: ObjectLocation, signature: bytes) -> str:
        location = signature_location_for(module_location, self._options.suffix)
        store = self._store_factory(location)
        try:
            await store.put(location.key, signature)
        except ObjectStoreTimeoutError as e:
            raise OperationTimeoutError(
                f"upload s3://{location.bucket}/{location.key}", e.timeout_seconds
            ) from e
        except ObjectStoreError as e:
            raise UploadFailedError(location.bucket, location.key, str(e)) from e
        finally:
            await store.close()

        logger.info("Uploaded signature", bucket=location.bucket, key=location.key)
        return f"s3://{location.bucket}/{location.key}"

    # --- Verify ---

    async def _verify(self, artifact: StagedArtifact) -> None:
        await self._engine.verify_blob(
            self._options.key_ref,
            artifact.local_module_path,
            artifact.local_signature_path,
        )
        logger.info("Verified OK", module=str(artifact.reference), engine=self._engine.name)


async def _write_file(path: Path, data: bytes) -> None:
    """Write a signature file, removing it again if the write fails."""
    try:
        async with aiofiles.open(path, "wb") as f:
            await f.write(data)
    except OSError as e:
        with contextlib.suppress(OSError):
            await aiofiles.os.remove(path)
        raise StagingIOError(f"Failed to write signature {path}: {e}") from e
