"""
Signing engines for terraform-module-cosign.

create_engine() builds the engine selected by configuration.
"""

from __future__ import annotations

from tfcosign.config import CosignConfig, SigningEngineKind
from tfcosign.logging_config import get_logger
from tfcosign.signing.protocol import SigningEngine

logger = get_logger(__name__)


def create_engine(kind: SigningEngineKind, cosign: CosignConfig | None = None) -> SigningEngine:
    """Instantiate the signing engine for `kind`."""
    cfg = cosign or CosignConfig()

    match kind:
        case SigningEngineKind.COSIGN:
            from tfcosign.signing.cosign import CosignEngine

            engine: SigningEngine = CosignEngine(
                binary=cfg.binary, timeout_seconds=cfg.signing_timeout_seconds
            )

        case SigningEngineKind.KEYFILE:
            from tfcosign.signing.keyfile import KeyFileEngine

            engine = KeyFileEngine(timeout_seconds=cfg.signing_timeout_seconds)

        case _:
            raise ValueError(f"Unknown signing engine: {kind}")

    logger.debug("Signing engine selected", engine=engine.name)
    return engine
