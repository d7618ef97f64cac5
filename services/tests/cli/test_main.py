"""Tests for the terraform-module-cosign command line."""

import logging
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from tfcosign.cli.main import cli

MODULE_URL = "s3::https://my-bucket.s3.ap-southeast-1.amazonaws.com/mod.zip"


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    logging.getLogger().handlers.clear()


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def archive(tmp_path):
    path = tmp_path / "example-module.zip"
    path.write_bytes(b"PK\x03\x04 example module")
    return path


class TestHelp:
    def test_group_lists_commands(self, runner) -> None:
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "sign" in result.output
        assert "verify" in result.output

    def test_sign_help_shows_options(self, runner) -> None:
        result = runner.invoke(cli, ["sign", "--help"])
        assert result.exit_code == 0
        for option in ("--key", "--suffix", "--upload-signature", "--engine", "--keep-going"):
            assert option in result.output

    def test_verify_help_shows_examples(self, runner) -> None:
        result = runner.invoke(cli, ["verify", "--help"])
        assert result.exit_code == 0
        assert "terraform-module-cosign verify --key cosign.pub ." in result.output

    def test_key_is_required(self, runner, archive) -> None:
        result = runner.invoke(cli, ["sign", str(archive)])
        assert result.exit_code == 2
        assert "--key" in result.output


class TestSignVerify:
    def test_sign_then_verify_local(self, runner, key_pair, archive) -> None:
        result = runner.invoke(
            cli, ["sign", "--engine", "keyfile", "--key", str(key_pair.private_key), str(archive)]
        )
        assert result.exit_code == 0, result.output
        assert archive.with_name("example-module.zip.sig").exists()
        assert "Signature written to" in result.output

        result = runner.invoke(
            cli, ["verify", "--engine", "keyfile", "--key", str(key_pair.public_key), str(archive)]
        )
        assert result.exit_code == 0, result.output
        assert f"Verified OK: {archive}" in result.output

    def test_verify_tampered_exits_nonzero(self, runner, key_pair, archive) -> None:
        runner.invoke(
            cli, ["sign", "--engine", "keyfile", "--key", str(key_pair.private_key), str(archive)]
        )
        archive.write_bytes(b"tampered")

        result = runner.invoke(
            cli, ["verify", "--engine", "keyfile", "--key", str(key_pair.public_key), str(archive)]
        )
        assert result.exit_code == 1
        assert "Error" in result.output
        assert str(archive) in result.output

    def test_missing_reference_exits_nonzero(self, runner, key_pair, tmp_path) -> None:
        missing = tmp_path / "missing.zip"
        result = runner.invoke(
            cli, ["sign", "--engine", "keyfile", "--key", str(key_pair.private_key), str(missing)]
        )
        assert result.exit_code == 1
        assert "Invalid argument value" in result.output

    def test_no_references_is_a_noop(self, runner, key_pair) -> None:
        result = runner.invoke(
            cli, ["verify", "--engine", "keyfile", "--key", str(key_pair.public_key)]
        )
        assert result.exit_code == 0

    def test_remote_sign_with_upload(self, runner, key_pair, fake_storage) -> None:
        fake_storage.objects[("my-bucket", "mod.zip")] = b"remote archive"

        with patch("tfcosign.cli.main.s3_store_factory", return_value=fake_storage.factory):
            result = runner.invoke(
                cli,
                [
                    "sign",
                    "--engine",
                    "keyfile",
                    "--key",
                    str(key_pair.private_key),
                    "--upload-signature",
                    MODULE_URL,
                ],
            )
            assert result.exit_code == 0, result.output
            assert ("my-bucket", "mod.zip.sig") in fake_storage.objects
            assert "s3://my-bucket/mod.zip.sig" in result.output

            result = runner.invoke(
                cli,
                ["verify", "--engine", "keyfile", "--key", str(key_pair.public_key), MODULE_URL],
            )
            assert result.exit_code == 0, result.output
