"""Static inspection of Terraform module calls.

Reads the ``module`` blocks of a Terraform module directory without running
Terraform and returns the remote (``s3::``) sources they declare. Files are
processed in the order Terraform loads them: primary ``.tf`` / ``.tf.json``
files sorted by name, then override files.
"""

import json
from pathlib import Path
from typing import Any

import hcl2

from tfcosign.errors import ModuleLoadFailedError
from tfcosign.logging_config import get_logger
from tfcosign.storage.urls import is_remote_reference

logger = get_logger(__name__)

TF_SUFFIXES = (".tf", ".tf.json")


def _is_override(name: str) -> bool:
    for suffix in TF_SUFFIXES:
        if name.endswith(suffix):
            stem = name[: -len(suffix)]
            return stem == "override" or stem.endswith("_override")
    return False


def _unquote(value: Any) -> Any:
    if isinstance(value, str) and len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1]
    return value


def _module_blocks(document: dict[str, Any]) -> list[tuple[str, dict[str, Any]]]:
    """(name, body) for every module block in a parsed file, in file order.

    python-hcl2 yields ``module`` as a list of single-entry dicts; JSON
    syntax allows either an object or a list of objects.
    """
    raw = document.get("module") or []
    if isinstance(raw, dict):
        raw = [raw]

    blocks: list[tuple[str, dict[str, Any]]] = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        for name, body in entry.items():
            if isinstance(body, list):
                body = body[0] if body else {}
            if isinstance(body, dict):
                blocks.append((_unquote(name), body))
    return blocks


def _load_file(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            if path.name.endswith(".tf.json"):
                document = json.load(f)
            else:
                document = hcl2.load(f)
    except Exception as e:
        raise ModuleLoadFailedError(str(path.parent), f"{path.name}: {e}") from e

    if not isinstance(document, dict):
        raise ModuleLoadFailedError(str(path.parent), f"{path.name}: not a configuration object")
    return document


def load_module_calls(directory: str | Path) -> dict[str, str]:
    """Map of module call name to declared source, in declaration order.

    Calls without a source are included with an empty string.

    Raises:
        ModuleLoadFailedError: If the directory or one of its files cannot be read.
    """
    root = Path(directory)
    if not root.is_dir():
        raise ModuleLoadFailedError(str(root), "not a directory")

    try:
        files = sorted(
            p for p in root.iterdir() if p.is_file() and p.name.endswith(TF_SUFFIXES)
        )
    except OSError as e:
        raise ModuleLoadFailedError(str(root), str(e)) from e

    primary = [p for p in files if not _is_override(p.name)]
    overrides = [p for p in files if _is_override(p.name)]

    calls: dict[str, str] = {}
    for path in primary:
        for name, body in _module_blocks(_load_file(path)):
            if name in calls:
                raise ModuleLoadFailedError(
                    str(root), f"{path.name}: duplicate module call {name!r}"
                )
            calls[name] = str(_unquote(body.get("source", "")) or "")

    for path in overrides:
        for name, body in _module_blocks(_load_file(path)):
            if name in calls and "source" in body:
                calls[name] = str(_unquote(body["source"]) or "")

    return calls


def expand_module_calls(directory: str | Path) -> list[str]:
    """Remote module sources referenced by a Terraform module directory.

    Local and registry sources are not signed artifacts and are dropped.
    A directory without remote calls yields an empty list.
    """
    calls = load_module_calls(directory)
    remote = [source for source in calls.values() if is_remote_reference(source)]

    logger.info(
        "Expanded module directory",
        directory=str(directory),
        module_calls=len(calls),
        remote_calls=len(remote),
    )
    return remote
