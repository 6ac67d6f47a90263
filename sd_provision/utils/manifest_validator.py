"""
JSON Schema validation for provisioning manifests.
Produces readable diagnostics; a manifest that fails validation is still
processed entry by entry.
"""

import json
from pathlib import Path
from typing import Any

from jsonschema import Draft7Validator

from sd_provision.models.config import CATEGORY_SUBDIRS

_ASSET_ENTRY_SCHEMA = {
    "type": "object",
    "properties": {
        "url": {
            "type": "string",
            "minLength": 1,
            "pattern": "^https?://[^/]+",
            "description": "Source URL of the asset",
        },
        "filename": {
            "type": "string",
            "minLength": 1,
            "description": "Local filename; defaults to the last URL segment",
        },
    },
    "required": ["url"],
}

MANIFEST_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "sd-provision Manifest",
    "description": "Model assets to download, grouped by category",
    "type": "object",
    "properties": {
        name: {
            "type": "array",
            "items": _ASSET_ENTRY_SCHEMA,
            "description": f"Assets stored in the '{subdir}' directory",
        }
        for name, subdir in CATEGORY_SUBDIRS.items()
    },
}


def validate_manifest_schema(manifest: Any) -> tuple[bool, list[str]]:
    """
    Validate a manifest against the JSON schema.

    Args:
        manifest: Parsed manifest document

    Returns:
        Tuple of (is_valid, error_messages)
    """
    validator = Draft7Validator(MANIFEST_SCHEMA)
    errors = sorted(validator.iter_errors(manifest), key=lambda e: [str(p) for p in e.path])

    error_messages = []
    for error in errors:
        path = ".".join(str(p) for p in error.path) if error.path else "root"
        error_messages.append(f"{path}: {error.message}")

    return not error_messages, error_messages


def export_schema(output_path: Path) -> None:
    """
    Export JSON schema to file for external validation tools.

    Args:
        output_path: Path to save schema file
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(MANIFEST_SCHEMA, f, indent=2)
