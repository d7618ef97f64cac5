"""Tests for Terraform module call expansion."""

import json

import pytest

from tfcosign.errors import ModuleLoadFailedError
from tfcosign.services.module_expansion_service import expand_module_calls, load_module_calls

REMOTE_CHILD = "s3::https://b.s3.us-east-1.amazonaws.com/child.zip"


class TestExpandModuleCalls:
    def test_keeps_only_remote_sources(self, tmp_path) -> None:
        (tmp_path / "main.tf").write_text(
            f"""
module "child" {{
  source = "{REMOTE_CHILD}"
}}

module "local" {{
  source = "./local-child"
}}
"""
        )
        assert expand_module_calls(tmp_path) == [REMOTE_CHILD]

    def test_declaration_order_across_files(self, tmp_path) -> None:
        (tmp_path / "b.tf").write_text(
            """
module "third" {
  source = "s3::https://b.s3.us-east-1.amazonaws.com/third.zip"
}
"""
        )
        (tmp_path / "a.tf").write_text(
            """
module "first" {
  source = "s3::https://b.s3.us-east-1.amazonaws.com/first.zip"
}

module "registry" {
  source  = "terraform-aws-modules/vpc/aws"
  version = "5.0.0"
}

module "second" {
  source = "s3::https://minio.local/modules/second.zip?region=eu-west-1"
}
"""
        )
        assert expand_module_calls(tmp_path) == [
            "s3::https://b.s3.us-east-1.amazonaws.com/first.zip",
            "s3::https://minio.local/modules/second.zip?region=eu-west-1",
            "s3::https://b.s3.us-east-1.amazonaws.com/third.zip",
        ]

    def test_no_remote_calls_is_empty(self, tmp_path) -> None:
        (tmp_path / "main.tf").write_text(
            """
resource "null_resource" "noop" {}

module "local" {
  source = "../shared"
}
"""
        )
        assert expand_module_calls(tmp_path) == []

    def test_directory_without_terraform_files(self, tmp_path) -> None:
        (tmp_path / "README.md").write_text("not terraform")
        assert expand_module_calls(tmp_path) == []

    def test_json_syntax(self, tmp_path) -> None:
        (tmp_path / "main.tf.json").write_text(
            json.dumps({"module": {"child": {"source": REMOTE_CHILD}, "other": {"source": "./x"}}})
        )
        assert expand_module_calls(tmp_path) == [REMOTE_CHILD]

    def test_override_replaces_source(self, tmp_path) -> None:
        (tmp_path / "main.tf").write_text(
            """
module "child" {
  source = "./vendored/child"
}
"""
        )
        (tmp_path / "main_override.tf").write_text(
            f"""
module "child" {{
  source = "{REMOTE_CHILD}"
}}
"""
        )
        assert load_module_calls(tmp_path) == {"child": REMOTE_CHILD}
        assert expand_module_calls(tmp_path) == [REMOTE_CHILD]


class TestModuleLoadErrors:
    def test_syntax_error(self, tmp_path) -> None:
        (tmp_path / "main.tf").write_text('module "broken" {\n  source = \n')
        with pytest.raises(ModuleLoadFailedError, match="main.tf"):
            expand_module_calls(tmp_path)

    def test_not_a_directory(self, tmp_path) -> None:
        archive = tmp_path / "mod.zip"
        archive.write_bytes(b"PK")
        with pytest.raises(ModuleLoadFailedError):
            expand_module_calls(archive)

    def test_duplicate_module_call(self, tmp_path) -> None:
        block = f'module "child" {{\n  source = "{REMOTE_CHILD}"\n}}\n'
        (tmp_path / "a.tf").write_text(block)
        (tmp_path / "b.tf").write_text(block)
        with pytest.raises(ModuleLoadFailedError, match="duplicate"):
            expand_module_calls(tmp_path)
