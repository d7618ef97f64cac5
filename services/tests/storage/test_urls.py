"""
Tests for S3-style URL decoding.
"""

import pytest

from tfcosign.errors import InvalidURLKindError
from tfcosign.storage.urls import (
    is_remote_reference,
    parse_object_url,
    strip_remote_prefix,
)


class TestRemotePrefix:
    def test_is_remote_reference(self) -> None:
        assert is_remote_reference("s3::https://b.s3.us-east-1.amazonaws.com/mod.zip")
        assert not is_remote_reference("https://b.s3.us-east-1.amazonaws.com/mod.zip")
        assert not is_remote_reference("./modules/vpc")

    def test_strip_remote_prefix(self) -> None:
        assert strip_remote_prefix("s3::https://host/b/k") == "https://host/b/k"
        assert strip_remote_prefix("https://host/b/k") == "https://host/b/k"


class TestVirtualHostedPerRegion:
    def test_bucket_and_region_from_host(self) -> None:
        loc = parse_object_url("s3::https://my-bucket.s3.ap-southeast-1.amazonaws.com/mod.zip")
        assert loc.region == "ap-southeast-1"
        assert loc.bucket == "my-bucket"
        assert loc.key == "mod.zip"
        assert loc.version == ""
        assert loc.endpoint_url == ""

    def test_nested_key_is_full_path(self) -> None:
        loc = parse_object_url("https://modules.s3.eu-central-1.amazonaws.com/network/vpc/v1.2.0.zip")
        assert loc.bucket == "modules"
        assert loc.region == "eu-central-1"
        assert loc.key == "network/vpc/v1.2.0.zip"

    def test_percent_encoded_path_is_decoded(self) -> None:
        loc = parse_object_url("https://b.s3.us-west-2.amazonaws.com/my%20module.zip")
        assert loc.key == "my module.zip"

    def test_version_query_is_ignored(self) -> None:
        loc = parse_object_url("https://b.s3.us-west-2.amazonaws.com/mod.zip?version=abc")
        assert loc.version == ""

    def test_missing_key_raises(self) -> None:
        with pytest.raises(InvalidURLKindError):
            parse_object_url("https://b.s3.us-west-2.amazonaws.com/")


class TestLegacyAwsHost:
    def test_region_from_s3_dash_prefix(self) -> None:
        loc = parse_object_url("https://s3-eu-west-1.amazonaws.com/bucket/path/mod.zip")
        assert loc.region == "eu-west-1"
        assert loc.bucket == "bucket"
        assert loc.key == "path/mod.zip"

    def test_region_defaults_when_host_is_plain_s3(self) -> None:
        loc = parse_object_url("https://s3.amazonaws.com/bucket/mod.zip")
        assert loc.region == "us-east-1"
        assert loc.bucket == "bucket"
        assert loc.key == "mod.zip"

    def test_version_query(self) -> None:
        loc = parse_object_url("https://s3.amazonaws.com/bucket/mod.zip?version=3HL4kqtJlcpXroDTDmJ")
        assert loc.version == "3HL4kqtJlcpXroDTDmJ"

    def test_path_without_key_raises(self) -> None:
        with pytest.raises(InvalidURLKindError):
            parse_object_url("https://s3.amazonaws.com/bucket")

    def test_too_few_host_parts_raises(self) -> None:
        with pytest.raises(InvalidURLKindError):
            parse_object_url("https://amazonaws.com/bucket/mod.zip")


class TestS3CompatibleEndpoint:
    def test_bucket_key_and_region_from_query(self) -> None:
        loc = parse_object_url("https://endpoint.example.com/my-bucket/path/mod.zip?region=eu-west-1")
        assert loc.bucket == "my-bucket"
        assert loc.key == "path/mod.zip"
        assert loc.region == "eu-west-1"
        assert loc.endpoint_url == "https://endpoint.example.com"

    def test_region_defaults(self) -> None:
        loc = parse_object_url("s3::http://minio.local:9000/modules/mod.zip")
        assert loc.region == "us-east-1"
        assert loc.endpoint_url == "http://minio.local:9000"

    def test_version_query(self) -> None:
        loc = parse_object_url("https://minio.local/modules/mod.zip?version=7&region=us-west-1")
        assert loc.version == "7"
        assert loc.region == "us-west-1"

    @pytest.mark.parametrize(
        "url",
        [
            "https://minio.local/",
            "https://minio.local/modules",
            "https://minio.local",
            "https://minio.local//mod.zip",
            "https://minio.local/modules/dir/",
        ],
    )
    def test_fewer_than_three_segments_raises(self, url: str) -> None:
        with pytest.raises(InvalidURLKindError):
            parse_object_url(url)

    @pytest.mark.parametrize(
        "url",
        [
            "s3::minio.local/bucket/mod.zip",
            "minio.local/bucket/mod.zip",
            "https:///bucket/mod.zip",
            "s3::/bucket/mod.zip",
        ],
    )
    def test_missing_host_raises(self, url: str) -> None:
        with pytest.raises(InvalidURLKindError, match="no host"):
            parse_object_url(url)
