"""
Local manifest (package.json) loading.
"""

import json
from pathlib import Path
from typing import Any, Dict

from .cli_config import get_config
from .error_handling import ErrorCategory, get_error_handler, log_manifest_error
from .errors import ManifestError
from .models import Manifest


def _validate_file_path(file_path: str) -> Path:
    """
    Validate a manifest path.

    Raises:
        ManifestError: If path is missing, not a file, or too large
    """
    if not file_path or not isinstance(file_path, (str, Path)):
        raise ManifestError("Manifest path must be a non-empty string")

    try:
        path = Path(file_path).resolve()
    except (OSError, ValueError) as e:
        raise ManifestError(f"Invalid manifest path: {e}", path=str(file_path))

    if not path.exists():
        raise ManifestError(f"Manifest does not exist: {path}", path=str(path))
    if not path.is_file():
        raise ManifestError(f"Manifest path is not a file: {path}", path=str(path))

    max_size = get_config().security.max_manifest_size_bytes
    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise ManifestError(f"Cannot access manifest: {e}", path=str(path))
    if file_size > max_size:
        raise ManifestError(
            f"Manifest too large: {file_size} bytes (max: {max_size})", path=str(path)
        )

    return path


def _read_dependency_section(data: Dict[str, Any], section: str, path: Path) -> Dict[str, str]:
    raw = data.get(section)
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        get_error_handler().warning(
            ErrorCategory.MANIFEST,
            f"Ignoring {section}: expected an object",
            "manifest",
            "load_manifest",
            details={"file_path": path.name, "section": section, "type": type(raw).__name__},
        )
        return {}

    dependencies = {}
    for name, range_spec in raw.items():
        if not isinstance(name, str) or not name.strip():
            continue
        dependencies[name.strip()] = "" if range_spec is None else str(range_spec).strip()
    return dependencies


def load_manifest(file_path: str) -> Manifest:
    """
    Load a package.json-style manifest.

    Only ``name``, ``version``, ``dependencies`` and ``devDependencies``
    are read; every other field is ignored.

    Raises:
        ManifestError: If the file cannot be read or is not a valid manifest
    """
    path = _validate_file_path(file_path)

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        log_manifest_error("Invalid JSON in manifest", "manifest", "load_manifest", str(path), e)
        raise ManifestError(f"Invalid JSON format in {path.name}: {e}", path=str(path)) from e
    except (OSError, UnicodeDecodeError) as e:
        log_manifest_error("Cannot read manifest", "manifest", "load_manifest", str(path), e)
        raise ManifestError(f"Error reading {path.name}: {e}", path=str(path)) from e

    if not isinstance(data, dict):
        raise ManifestError(f"{path.name} must contain a JSON object", path=str(path))

    name = data.get("name")
    version = data.get("version")
    if not isinstance(name, str) or not name.strip():
        raise ManifestError(f"{path.name} has no package name", path=str(path))
    if not isinstance(version, str) or not version.strip():
        raise ManifestError(f"{path.name} has no package version", path=str(path))

    return Manifest(
        name=name.strip(),
        version=version.strip(),
        dependencies=_read_dependency_section(data, "dependencies", path),
        dev_dependencies=_read_dependency_section(data, "devDependencies", path),
        path=str(path),
    )
