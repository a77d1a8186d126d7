"""Deterministic gzip tarballs from a package directory."""
import fnmatch
import gzip
import logging
import os
import re
import tarfile
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional

from pkgfetch.core.errors import ManifestReadError
from pkgfetch.package_json import read_package_json

logger = logging.getLogger(__name__)

# Directories never packed
EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    "CVS",
    "node_modules",
}

EXCLUDED_FILES = {
    ".npmrc",
    ".npmignore",
    ".gitignore",
    ".DS_Store",
    "npm-debug.log",
    "package-lock.json",
}

# Packed even when the "files" list leaves them out
ALWAYS_INCLUDED = re.compile(r"^(?:package\.json|(?:readme|license|licence|copying|changelog)(?:\..*)?)$", re.IGNORECASE)

# Consulted in order; the first one present wins
IGNORE_FILES = (".npmignore", ".gitignore")

# 1985-10-26T08:15:00Z, the fixed mtime npm uses
FIXED_MTIME = 499162500


def _read_manifest(package_dir: Path) -> Dict[str, Any]:
    try:
        return read_package_json(package_dir)
    except ManifestReadError:
        return {}


def _clean_pattern(pattern: str) -> str:
    pattern = pattern.strip()
    if pattern.startswith("./"):
        pattern = pattern[2:]
    return pattern.strip("/")


def _prefixes(rel: PurePosixPath) -> List[str]:
    """``a/b/c.js`` -> ``["a", "a/b", "a/b/c.js"]``."""
    parts = rel.parts
    return ["/".join(parts[:i]) for i in range(1, len(parts) + 1)]


def _in_files_list(rel: PurePosixPath, files_field: List[str]) -> bool:
    prefixes = _prefixes(rel)
    for entry in files_field:
        pattern = _clean_pattern(entry)
        if pattern and any(fnmatch.fnmatchcase(prefix, pattern) for prefix in prefixes):
            return True
    return False


def read_ignore_patterns(package_dir: Path) -> List[str]:
    """Patterns from ``.npmignore``, or ``.gitignore`` when there is none."""
    for name in IGNORE_FILES:
        path = Path(package_dir) / name
        if path.is_file():
            lines = path.read_text(encoding="utf-8", errors="replace").splitlines()
            return [line.strip() for line in lines if line.strip() and not line.strip().startswith("#")]
    return []


def is_ignored(rel: PurePosixPath, patterns: List[str]) -> bool:
    """gitignore-style matching: last matching pattern wins, ``!`` re-includes."""
    ignored = False
    for raw in patterns:
        negate = raw.startswith("!")
        pattern = _clean_pattern(raw[1:] if negate else raw)
        if not pattern:
            continue
        if "/" in pattern:
            # Anchored at the package root
            matched = any(fnmatch.fnmatchcase(prefix, pattern) for prefix in _prefixes(rel))
        else:
            matched = any(fnmatch.fnmatchcase(part, pattern) for part in rel.parts)
        if matched:
            ignored = not negate
    return ignored


def _selected(
    rel: PurePosixPath,
    files_field: Optional[List[str]],
    main: Optional[str],
    patterns: List[str],
) -> bool:
    if len(rel.parts) == 1 and ALWAYS_INCLUDED.match(rel.name):
        return True
    if files_field is not None:
        return _in_files_list(rel, files_field) or rel.as_posix() == main
    return not is_ignored(rel, patterns)


def list_package_files(package_dir: Path) -> List[Path]:
    """Files to pack, relative to ``package_dir``, in sorted order.

    Selection rules:
        - Never: EXCLUDED_DIRS, EXCLUDED_FILES, symlinks
        - With a "files" list in package.json: only matching paths, plus
          package.json, README/LICENSE/CHANGELOG and the "main" entry
        - Without one: everything not matched by .npmignore (or .gitignore)
    """
    package_dir = Path(package_dir)
    if not package_dir.is_dir():
        raise ValueError(f"package_dir must be a directory: {package_dir}")

    manifest = _read_manifest(package_dir)
    files_field = manifest.get("files")
    if not isinstance(files_field, list):
        files_field = None
    main = _clean_pattern(manifest["main"]) if isinstance(manifest.get("main"), str) else None
    patterns = [] if files_field is not None else read_ignore_patterns(package_dir)

    files = []
    for root, dirs, names in os.walk(package_dir):
        dirs[:] = sorted(d for d in dirs if d not in EXCLUDED_DIRS)
        for name in names:
            if name in EXCLUDED_FILES:
                continue
            path = Path(root) / name
            if path.is_symlink() or not path.is_file():
                continue
            rel = PurePosixPath(path.relative_to(package_dir).as_posix())
            if _selected(rel, files_field, main, patterns):
                files.append(path.relative_to(package_dir))

    files.sort(key=lambda p: p.as_posix())
    logger.debug(f"Selected {len(files)} files in {package_dir}")
    return files


class _SinkFile:
    """Minimal writable file object forwarding to ``sink.write``."""

    def __init__(self, sink):
        self._sink = sink

    def write(self, data) -> int:
        self._sink.write(bytes(data))
        return len(data)

    def flush(self) -> None:
        pass


def pack_directory(package_dir: Path, sink) -> int:
    """Write a gzip tarball of ``package_dir`` into ``sink.write``.

    Entries live under ``package/``, with fixed mtime and ownership so
    identical trees produce identical bytes. Returns the file count.
    """
    package_dir = Path(package_dir)
    files = list_package_files(package_dir)
    with gzip.GzipFile(fileobj=_SinkFile(sink), mode="wb", mtime=0, filename="") as gz:
        with tarfile.open(fileobj=gz, mode="w|", format=tarfile.PAX_FORMAT) as tar:
            for rel in files:
                path = package_dir / rel
                info = tarfile.TarInfo(name=f"package/{rel.as_posix()}")
                info.size = path.stat().st_size
                info.mtime = FIXED_MTIME
                info.mode = 0o755 if os.access(path, os.X_OK) else 0o644
                info.uid = info.gid = 0
                info.uname = info.gname = ""
                with path.open("rb") as fh:
                    tar.addfile(info, fh)
    logger.info(f"Packed {len(files)} files from {package_dir}")
    return len(files)
