"""Staging of module archives and signatures into a local workspace.

A Workspace is a temporary directory owned by the processing of one module
reference. Remote objects are downloaded into their own randomly named
subdirectory, so children with the same base name never collide. Each
StagedArtifact is released as soon as its sign/verify step is done; closing
the workspace removes whatever is left, on every exit path.
"""

from __future__ import annotations

import asyncio
import secrets
import shutil
import tempfile
from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path

import aiofiles
import aiofiles.os

from tfcosign.errors import (
    DownloadFailedError,
    InvalidArgumentError,
    InvalidURLKindError,
    OperationTimeoutError,
    StagingIOError,
)
from tfcosign.logging_config import get_logger
from tfcosign.references import ModuleReference, ReferenceKind, classify_reference
from tfcosign.services.module_expansion_service import expand_module_calls
from tfcosign.storage import StoreFactory
from tfcosign.storage.keys import (
    base_name_is_ambiguous,
    module_base_name,
    signature_key_for,
    signature_path_for,
)
from tfcosign.storage.protocol import (
    ObjectLocation,
    ObjectStoreError,
    ObjectStoreTimeoutError,
)
from tfcosign.storage.urls import parse_object_url

logger = get_logger(__name__)

WORKSPACE_PREFIX = "terraform-module-cosign-"


@dataclass(frozen=True)
class StagedArtifact:
    """A module archive ready for signing or verification."""

    reference: ModuleReference
    local_module_path: Path
    local_signature_path: Path
    source_location: ObjectLocation | None = None
    staging_dir: Path | None = None

    @property
    def is_remote(self) -> bool:
        return self.source_location is not None

    @property
    def module_name(self) -> str:
        return self.local_module_path.name

    async def release(self) -> None:
        """Delete the staged files. Local artifacts own nothing."""
        if self.staging_dir is not None:
            await remove_tree(self.staging_dir)


def signature_location_for(location: ObjectLocation, suffix: str) -> ObjectLocation:
    """Object location of the signature for a module object."""
    base = module_base_name(location.key)
    key = signature_key_for(location.key, base, signature_path_for(base, suffix))
    if base_name_is_ambiguous(location.key, base):
        logger.warning(
            "Module name occurs more than once in object key; "
            "signature key replaces the first occurrence",
            bucket=location.bucket,
            key=location.key,
            signature_key=key,
        )
    return ObjectLocation(
        region=location.region,
        bucket=location.bucket,
        key=key,
        endpoint_url=location.endpoint_url,
    )


async def remove_tree(path: Path) -> None:
    """Recursively delete a staging directory; missing directories are fine."""
    try:
        await asyncio.to_thread(shutil.rmtree, path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Failed to remove staged files", path=str(path), error=str(e))


class Workspace:
    """Exclusively owned temporary directory for one module reference.

    Usage::

        async with Workspace(store_factory, ".sig") as ws:
            artifact = await ws.stage_for_sign(reference)
    """

    def __init__(self, store_factory: StoreFactory, suffix: str, root: str = "") -> None:
        self._store_factory = store_factory
        self._suffix = suffix
        self._root = root or None
        self._path: Path | None = None

    @property
    def path(self) -> Path:
        if self._path is None:
            raise RuntimeError("Workspace not opened")
        return self._path

    async def __aenter__(self) -> Workspace:
        try:
            created = await asyncio.to_thread(
                tempfile.mkdtemp, prefix=WORKSPACE_PREFIX, dir=self._root
            )
        except OSError as e:
            raise StagingIOError(f"Failed to create temporary directory: {e}") from e
        self._path = Path(created)
        logger.debug("Workspace created", workspace=str(self._path))
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        if self._path is not None:
            await remove_tree(self._path)
            logger.debug("Workspace removed", workspace=str(self._path))
            self._path = None

    async def _new_staging_dir(self) -> Path:
        staging_dir = self.path / secrets.token_hex(8)
        try:
            await aiofiles.os.mkdir(staging_dir)
        except OSError as e:
            raise StagingIOError(f"Failed to create staging directory {staging_dir}: {e}") from e
        return staging_dir

    async def _write(self, path: Path, data: bytes) -> None:
        try:
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
        except OSError as e:
            raise StagingIOError(f"Failed to create {path} on local filesystem: {e}") from e

    async def _download(
        self, location: ObjectLocation, targets: list[tuple[str, str, Path]]
    ) -> None:
        """Fetch (key, version, local path) triples from one bucket."""
        store = self._store_factory(location)
        try:
            for key, version, path in targets:
                try:
                    data = await store.get(key, version_id=version)
                except ObjectStoreTimeoutError as e:
                    raise OperationTimeoutError(
                        f"download s3://{location.bucket}/{key}", e.timeout_seconds
                    ) from e
                except ObjectStoreError as e:
                    raise DownloadFailedError(location.bucket, key, str(e)) from e
                await self._write(path, data)
                logger.info(
                    "Downloaded object",
                    bucket=location.bucket,
                    key=key,
                    version=version or None,
                    size_bytes=len(data),
                )
        finally:
            await store.close()

    async def _stage_remote(
        self, reference: ModuleReference, with_signature: bool
    ) -> StagedArtifact:
        location = parse_object_url(reference.raw)
        base = module_base_name(location.key)
        if base in ("", ".", ".."):
            raise InvalidURLKindError(reference.raw, "object key has no file name")

        staging_dir = await self._new_staging_dir()
        module_path = staging_dir / base
        signature_path = signature_path_for(module_path, self._suffix)

        targets = [(location.key, location.version, module_path)]
        if with_signature:
            signature = signature_location_for(location, self._suffix)
            targets.append((signature.key, "", signature_path))

        try:
            await self._download(location, targets)
        except BaseException:
            await remove_tree(staging_dir)
            raise

        return StagedArtifact(
            reference=reference,
            local_module_path=module_path,
            local_signature_path=signature_path,
            source_location=location,
            staging_dir=staging_dir,
        )

    def _local(self, reference: ModuleReference) -> StagedArtifact:
        return StagedArtifact(
            reference=reference,
            local_module_path=reference.path,
            local_signature_path=signature_path_for(reference.path, self._suffix),
        )

    async def stage_for_sign(self, reference: ModuleReference) -> StagedArtifact:
        """Module archive to sign; remote objects are downloaded first.

        Raises:
            InvalidArgumentError: For a directory; only archives are signable.
        """
        match reference.kind:
            case ReferenceKind.REMOTE:
                return await self._stage_remote(reference, with_signature=False)
            case ReferenceKind.FILE:
                return self._local(reference)
            case _:
                raise InvalidArgumentError(reference.raw, "is a directory, not a module archive")

    async def iter_verify_artifacts(
        self, reference: ModuleReference
    ) -> AsyncIterator[StagedArtifact]:
        """Yield module archives with their signatures, staged one at a time.

        A directory expands into the remote module calls it declares; each
        child is staged only when the previous one has been consumed.
        """
        match reference.kind:
            case ReferenceKind.REMOTE:
                yield await self._stage_remote(reference, with_signature=True)
            case ReferenceKind.FILE:
                yield self._local(reference)
            case ReferenceKind.DIRECTORY:
                sources = await asyncio.to_thread(expand_module_calls, reference.path)
                for source in sources:
                    child = classify_reference(source)
                    yield await self._stage_remote(child, with_signature=True)

    async def stage_for_verify(self, reference: ModuleReference) -> list[StagedArtifact]:
        """All artifacts for a reference, staged eagerly."""
        return [artifact async for artifact in self.iter_verify_artifacts(reference)]
