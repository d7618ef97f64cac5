"""
Naming helpers for signature artifacts.

A module's signature lives next to it, named by appending the configured
suffix: ``example-module.zip`` is signed as ``example-module.zip.sig``.
"""

import posixpath
from pathlib import Path
from typing import TypeVar

PathT = TypeVar("PathT", str, Path)


def signature_path_for(module_path: PathT, suffix: str) -> PathT:
    """Local path of the signature for a module archive."""
    if isinstance(module_path, Path):
        return module_path.with_name(module_path.name + suffix)
    return f"{module_path}{suffix}"


def strip_signature_suffix(signature_path: str, suffix: str) -> str:
    """Inverse of signature_path_for for string paths."""
    if suffix and signature_path.endswith(suffix):
        return signature_path[: -len(suffix)]
    return signature_path


def module_base_name(key: str) -> str:
    """Base name of an object key or URL path."""
    return posixpath.basename(key)


def signature_key_for(module_key: str, module_base: str, signature_base: str) -> str:
    """Object key of the signature for a module stored under `module_key`.

    Only the first occurrence of `module_base` is replaced. A key such as
    ``mod.zip/nested/mod.zip`` therefore maps to ``mod.zip.sig/nested/mod.zip``;
    existing signed buckets depend on this, see base_name_is_ambiguous().
    """
    return module_key.replace(module_base, signature_base, 1)


def base_name_is_ambiguous(module_key: str, module_base: str) -> bool:
    """True if signature_key_for would rewrite something other than the base name."""
    return module_key.find(module_base) != len(module_key) - len(module_base)
