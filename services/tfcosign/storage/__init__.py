"""
Object storage access for terraform-module-cosign.

Module archives may live in any bucket, so stores are created per
ObjectLocation rather than once per process.
"""

from __future__ import annotations

from collections.abc import Callable

from tfcosign.logging_config import get_logger
from tfcosign.storage.protocol import ObjectLocation, ObjectStore

logger = get_logger(__name__)

StoreFactory = Callable[[ObjectLocation], ObjectStore]


def s3_store_factory(
    timeout_seconds: float = 300.0,
    endpoint_override: str = "",
) -> StoreFactory:
    """Return a factory creating an S3Store for each location.

    `endpoint_override` replaces the AWS endpoint for AWS-dialect locations
    (LocalStack in dev/CI). Locations decoded from a non-AWS URL always use
    their own endpoint.
    """

    def create(location: ObjectLocation) -> ObjectStore:
        from tfcosign.storage.s3 import S3Store

        endpoint_url = location.endpoint_url or endpoint_override
        logger.debug(
            "Creating object store",
            bucket=location.bucket,
            region=location.region,
            endpoint_url=endpoint_url or None,
        )
        return S3Store(
            bucket=location.bucket,
            region=location.region,
            endpoint_url=endpoint_url,
            timeout_seconds=timeout_seconds,
        )

    return create
