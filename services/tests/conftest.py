"""
Top-level test configuration for terraform-module-cosign.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from tfcosign.storage.protocol import ObjectLocation, ObjectMeta, ObjectNotFoundError

# Ensure test-friendly defaults
os.environ.setdefault("TFCOSIGN_JSON_LOGS", "false")
os.environ.setdefault("TFCOSIGN_LOG_LEVEL", "DEBUG")
os.environ.setdefault("TFCOSIGN_CONFIG_FILE", "/nonexistent/tfcosign-test-config.yaml")


@dataclass
class FakeBucketStore:
    """In-memory ObjectStore bound to one bucket of a FakeObjectStorage."""

    storage: FakeObjectStorage
    location: ObjectLocation
    closed: bool = False

    async def put(
        self, key: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> ObjectMeta:
        self.storage.objects[(self.location.bucket, key)] = data
        self.storage.puts.append((self.location.bucket, key))
        return ObjectMeta(
            key=key,
            size_bytes=len(data),
            content_type=content_type,
            etag="fake",
            last_modified=datetime.now(UTC),
        )

    async def get(self, key: str, version_id: str = "") -> bytes:
        self.storage.gets.append((self.location.bucket, key, version_id))
        try:
            return self.storage.objects[(self.location.bucket, key)]
        except KeyError:
            raise ObjectNotFoundError(key) from None

    async def close(self) -> None:
        self.closed = True


@dataclass
class FakeObjectStorage:
    """Shared object map plus a store factory handing out FakeBucketStores."""

    objects: dict[tuple[str, str], bytes] = field(default_factory=dict)
    stores: list[FakeBucketStore] = field(default_factory=list)
    gets: list[tuple[str, str, str]] = field(default_factory=list)
    puts: list[tuple[str, str]] = field(default_factory=list)

    def factory(self, location: ObjectLocation) -> FakeBucketStore:
        store = FakeBucketStore(storage=self, location=location)
        self.stores.append(store)
        return store


@pytest.fixture
def fake_storage() -> FakeObjectStorage:
    return FakeObjectStorage()


@dataclass(frozen=True)
class KeyPair:
    private_key: Path
    public_key: Path


@pytest.fixture
def key_pair(tmp_path: Path) -> KeyPair:
    """ECDSA P-256 key pair in PEM files, the key type cosign generates."""
    private = ec.generate_private_key(ec.SECP256R1())
    key_dir = tmp_path / "keys"
    key_dir.mkdir()
    private_path = key_dir / "cosign.key"
    public_path = key_dir / "cosign.pub"
    private_path.write_bytes(
        private.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )
    public_path.write_bytes(
        private.public_key().public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    )
    return KeyPair(private_key=private_path, public_key=public_path)


@pytest.fixture(autouse=True)
def _no_cosign_password(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("COSIGN_PASSWORD", raising=False)
