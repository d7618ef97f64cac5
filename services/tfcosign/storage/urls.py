"""
Decoding of S3-style module URLs into object locations.

Two dialects are understood:

* AWS-hosted S3, either the legacy path style
  (``https://s3-eu-west-1.amazonaws.com/<bucket>/<key>``) or the per-region
  virtual-hosted style (``https://<bucket>.s3.<region>.amazonaws.com/<key>``).
* Any other S3-compatible endpoint in path style
  (``https://minio.example.com/<bucket>/<key>?region=<region>``).
"""

from urllib.parse import parse_qs, unquote, urlsplit

from tfcosign.errors import InvalidURLKindError
from tfcosign.storage.protocol import ObjectLocation

REMOTE_PREFIX = "s3::"
DEFAULT_REGION = "us-east-1"


def is_remote_reference(reference: str) -> bool:
    """True if the reference uses the s3:: source prefix."""
    return reference.startswith(REMOTE_PREFIX)


def strip_remote_prefix(reference: str) -> str:
    if reference.startswith(REMOTE_PREFIX):
        return reference[len(REMOTE_PREFIX) :]
    return reference


def _query_param(query: dict[str, list[str]], name: str) -> str:
    values = query.get(name)
    return values[0] if values else ""


def _split_path(url: str, path: str) -> tuple[str, str]:
    """Split ``/<bucket>/<key>`` into bucket and key."""
    parts = path.split("/", 2)
    if len(parts) != 3:
        raise InvalidURLKindError(url)
    return parts[1], parts[2]


def parse_object_url(url: str) -> ObjectLocation:
    """Decode an S3-style URL into region, bucket, key and version.

    The ``s3::`` prefix is accepted and ignored.

    Raises:
        InvalidURLKindError: If the URL cannot be decomposed into bucket+key.
    """
    raw = strip_remote_prefix(url)
    try:
        parts = urlsplit(raw)
    except ValueError as e:
        raise InvalidURLKindError(url, f"Failed to parse url: {e}") from e

    host = parts.netloc.rpartition("@")[2]
    if not host:
        raise InvalidURLKindError(url, "URL has no host")
    path = unquote(parts.path)
    query = parse_qs(parts.query)
    version = ""
    endpoint_url = ""

    if "amazonaws.com" in host:
        host_parts = host.split(".")

        if len(host_parts) < 3:
            raise InvalidURLKindError(url)

        if len(host_parts) == 3:
            region = host_parts[0].removeprefix("s3-").removeprefix("s3")
            if not region:
                region = DEFAULT_REGION
            bucket, key = _split_path(url, path)
            version = _query_param(query, "version")
        else:
            bucket = host_parts[0]
            region = host_parts[2]
            key = path.removeprefix("/")
    else:
        bucket, key = _split_path(url, path)
        version = _query_param(query, "version")
        region = _query_param(query, "region") or DEFAULT_REGION
        endpoint_url = f"{parts.scheme or 'https'}://{parts.netloc}"

    if not bucket or not key or key.endswith("/"):
        raise InvalidURLKindError(url, "URL does not name a bucket and object key")

    return ObjectLocation(
        region=region,
        bucket=bucket,
        key=key,
        version=version,
        endpoint_url=endpoint_url,
    )
