"""Reading and decorating package.json manifests."""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from pkgfetch.core.errors import ManifestReadError

logger = logging.getLogger(__name__)

INSTALL_SCRIPTS = ("preinstall", "install", "postinstall", "prepare", "build")


def read_package_json(path: Path) -> Dict[str, Any]:
    """Load ``path`` (a package.json file or the directory holding one)."""
    path = Path(path)
    if path.is_dir():
        path = path / "package.json"
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ManifestReadError(f"No package.json found at {path}")
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ManifestReadError(f"Failed to read {path}: {e}") from e
    if not isinstance(data, dict):
        raise ManifestReadError(f"{path} must contain a JSON object")
    return data


def has_install_scripts(manifest: Dict[str, Any]) -> bool:
    """True when the manifest declares a script that needs installed deps."""
    scripts = manifest.get("scripts")
    if not isinstance(scripts, dict):
        return False
    return any(scripts.get(name) for name in INSTALL_SCRIPTS)


def decorate(
    manifest: Dict[str, Any],
    integrity: Optional[Any],
    resolved: Optional[str],
) -> Dict[str, Any]:
    """Copy ``manifest`` adding ``_integrity``/``_resolved`` when known."""
    decorated = dict(manifest)
    if integrity:
        decorated["_integrity"] = str(integrity)
    if resolved:
        decorated["_resolved"] = resolved
    return decorated
