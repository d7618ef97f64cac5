"""Command-line entrypoint.

    terraform-module-cosign sign --key <key path>|<kms uri> <module archive>...
    terraform-module-cosign verify --key <key path>|<kms uri> <module archive>...
"""

from __future__ import annotations

import asyncio
import contextlib
import signal
from pathlib import Path

import click

from tfcosign import __version__
from tfcosign.config import SigningEngineKind, settings
from tfcosign.logging_config import configure_logging, get_logger
from tfcosign.services.orchestrator import (
    BatchReport,
    ModuleSignatureOrchestrator,
    Operation,
    SigningOptions,
)
from tfcosign.signing import create_engine
from tfcosign.storage import s3_store_factory

logger = get_logger(__name__)

SIGN_EXAMPLES = """\b
Examples:
  # sign Terraform module archive using local private key
  terraform-module-cosign sign --key cosign.key example-module.zip

  # sign Terraform module archive using key from AWS KMS
  terraform-module-cosign sign --key awskms://[ENDPOINT]/[ID/ALIAS/ARN] example-module.zip

  # sign Terraform module archive on S3 bucket and upload the signature next to it
  terraform-module-cosign sign --key cosign.key --upload-signature \\
    s3::https://example-bucket.s3.ap-southeast-1.amazonaws.com/example-module.zip
"""

VERIFY_EXAMPLES = """\b
Examples:
  # Verify signature of a Terraform module archive in local file system
  terraform-module-cosign verify --key cosign.pub example-module.zip

  # Verify signature of a Terraform module archive on S3 bucket
  terraform-module-cosign verify --key cosign.pub \\
    s3::https://example-bucket.s3.ap-southeast-1.amazonaws.com/example-module.zip

  # Verify signatures of the S3 modules called by a Terraform module
  terraform-module-cosign verify --key cosign.pub .
"""


# Decorators for options shared by sign and verify.

_references_argument = click.argument("references", nargs=-1, metavar="MODULE_REF...")

_suffix_option = click.option(
    "--suffix",
    default=None,
    metavar="EXT",
    help="Suffix for module archive signature.  [default: .sig]",
)

_engine_option = click.option(
    "--engine",
    type=click.Choice([e.value for e in SigningEngineKind]),
    default=None,
    help="Signing engine: cosign CLI or in-process PEM key files.  [default: cosign]",
)

_jobs_option = click.option(
    "--jobs",
    "-j",
    type=click.IntRange(min=1),
    default=None,
    help="Number of module references processed at once.",
)

_keep_going_option = click.option(
    "--keep-going/--fail-fast",
    default=None,
    help="Continue with the remaining references after a failure.  [default: fail-fast]",
)


@click.group(
    name="terraform-module-cosign",
    help="Sign and verify Terraform module archives using cosign.",
)
@click.option("--log-level", default=None, help="Log level (DEBUG, INFO, WARNING, ERROR).")
@click.option(
    "--json-logs/--console-logs",
    default=None,
    help="Emit logs as JSON instead of console output.",
)
@click.version_option(__version__, prog_name="terraform-module-cosign")
def cli(log_level: str | None, json_logs: bool | None) -> None:
    configure_logging(
        json_logs=settings.json_logs if json_logs is None else json_logs,
        log_level=log_level or settings.log_level,
    )


def _build_options(
    key: str,
    suffix: str | None,
    jobs: int | None,
    keep_going: bool | None,
    upload_signature: bool = False,
    output_dir: Path | None = None,
) -> SigningOptions:
    return SigningOptions(
        key_ref=key,
        suffix=settings.signature_suffix if suffix is None else suffix,
        upload_signature=upload_signature,
        output_dir=output_dir,
        fail_fast=settings.fail_fast if keep_going is None else not keep_going,
        concurrency=jobs or settings.concurrency,
        workspace_root=settings.workspace_root,
    )


async def _execute(
    operation: Operation,
    options: SigningOptions,
    engine_name: str | None,
    references: list[str],
) -> BatchReport:
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGTERM, cancel_event.set)

    engine = create_engine(SigningEngineKind(engine_name or settings.engine), settings.cosign)
    orchestrator = ModuleSignatureOrchestrator(
        options,
        engine,
        store_factory=s3_store_factory(
            timeout_seconds=settings.object_store_timeout_seconds,
            endpoint_override=settings.s3.endpoint_url,
        ),
    )
    try:
        return await orchestrator.run(operation, references, cancel_event)
    finally:
        with contextlib.suppress(NotImplementedError):
            loop.remove_signal_handler(signal.SIGTERM)


def _report(report: BatchReport) -> int:
    for result in report.results:
        if result.error is not None:
            click.echo(f"Error: {result.reference}: {result.error}", err=True)
        elif result.skipped:
            click.echo(f"Skipped: {result.reference}", err=True)
        elif report.operation is Operation.SIGN:
            for destination in result.signatures:
                click.echo(f"Signature written to {destination}")
        else:
            for artifact in result.artifacts:
                click.echo(f"Verified OK: {artifact}")
    return 0 if report.ok else 1


@cli.command("sign", epilog=SIGN_EXAMPLES)
@click.option("--key", required=True, help="Path to the private key file or KMS URI.")
@_suffix_option
@click.option(
    "--upload-signature",
    is_flag=True,
    default=False,
    help="Upload the signature of S3 module archives next to the archive.",
)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, writable=True, path_type=Path),
    default=None,
    help="Where signatures of S3 module archives are written when not uploaded. "
    "Defaults to the current directory.",
)
@_engine_option
@_jobs_option
@_keep_going_option
@_references_argument
@click.pass_context
def sign_command(
    ctx: click.Context,
    key: str,
    suffix: str | None,
    upload_signature: bool,
    output_dir: Path | None,
    engine: str | None,
    jobs: int | None,
    keep_going: bool | None,
    references: tuple[str, ...],
) -> None:
    """Sign Terraform module archives and save the signatures."""
    options = _build_options(key, suffix, jobs, keep_going, upload_signature, output_dir)
    report = asyncio.run(_execute(Operation.SIGN, options, engine, list(references)))
    ctx.exit(_report(report))


@cli.command("verify", epilog=VERIFY_EXAMPLES)
@click.option("--key", required=True, help="Path to the public key file or KMS URI.")
@_suffix_option
@_engine_option
@_jobs_option
@_keep_going_option
@_references_argument
@click.pass_context
def verify_command(
    ctx: click.Context,
    key: str,
    suffix: str | None,
    engine: str | None,
    jobs: int | None,
    keep_going: bool | None,
    references: tuple[str, ...],
) -> None:
    """Verify Terraform module archives against their signatures."""
    options = _build_options(key, suffix, jobs, keep_going)
    report = asyncio.run(_execute(Operation.VERIFY, options, engine, list(references)))
    ctx.exit(_report(report))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
