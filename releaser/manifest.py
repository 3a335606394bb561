"""Manifest reading and writing utilities.

Manifests are composer-style JSON documents. Key order is preserved on
load and dump so rewritten files stay diff-friendly.
"""

from __future__ import annotations

import json
from typing import Any

from .errors import InvalidManifest

MANIFEST_PATH = "composer.json"


def load_manifest(content: bytes, *, source: str = MANIFEST_PATH) -> dict[str, Any]:
    """Parse manifest bytes into a dict.

    Raises:
        InvalidManifest: If the content is not a JSON object.
    """
    try:
        doc = json.loads(content.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise InvalidManifest(f"{source} is not valid JSON: {exc}") from exc
    if not isinstance(doc, dict):
        raise InvalidManifest(f"{source} must contain a JSON object")
    return doc


def dump_manifest(doc: dict[str, Any]) -> bytes:
    """Serialize a manifest the way composer writes it (4-space indent)."""
    return (json.dumps(doc, indent=4, ensure_ascii=False) + "\n").encode("utf-8")


def get_manifest_name(doc: dict[str, Any]) -> str | None:
    """Extract the fully-qualified package name, if declared."""
    name = doc.get("name")
    return name if isinstance(name, str) else None


def get_requirements(doc: dict[str, Any]) -> dict[str, str]:
    """Collect runtime requirements from the "require" section.

    Returns:
        Map of manifest package name → constraint string. Non-string
        constraints are ignored.
    """
    require = doc.get("require")
    if not isinstance(require, dict):
        return {}
    return {name: value for name, value in require.items() if isinstance(value, str)}
