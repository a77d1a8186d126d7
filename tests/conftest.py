"""Pytest fixtures for pkgfetch tests."""
import io
import json
import os
import subprocess
from pathlib import Path
from typing import Dict

import pytest

from pkgfetch.core.config import FetchOptions
from pkgfetch.packer import pack_directory


def _git(repo_path: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=repo_path,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


def _init_repo(repo_path: Path) -> None:
    repo_path.mkdir()
    _git(repo_path, "init")
    # Independent of the init.defaultBranch setting
    _git(repo_path, "symbolic-ref", "HEAD", "refs/heads/main")
    _git(repo_path, "config", "user.email", "test@example.com")
    _git(repo_path, "config", "user.name", "Test User")
    _git(repo_path, "config", "commit.gpgsign", "false")
    _git(repo_path, "config", "tag.gpgsign", "false")


def _write_manifest(repo_path: Path, manifest: Dict[str, object]) -> None:
    (repo_path / "package.json").write_text(json.dumps(manifest, indent=2) + "\n")


def _commit(repo_path: Path, message: str) -> str:
    _git(repo_path, "add", "-A")
    _git(repo_path, "commit", "-m", message)
    return _git(repo_path, "rev-parse", "HEAD")


@pytest.fixture
def opts(tmp_path: Path) -> FetchOptions:
    """FetchOptions with an isolated cache directory."""
    return FetchOptions(cache=tmp_path / "cache")


@pytest.fixture
def git_repo_fixture(tmp_path: Path) -> Dict[str, object]:
    """Create a package repository with two version tags and a main branch.

    History (oldest first):
        1. package.json version 1.2.0, tagged v1.2.0 (lightweight)
        2. package.json version 1.3.0, tagged v1.3.0 (annotated)
        3. README change on main

    Returns dict with:
        - path: Path to repo
        - url: git+file:// URL of the repo
        - v120_sha / v130_sha / main_sha: commit SHAs
    """
    repo_path = tmp_path / "test_repo"
    _init_repo(repo_path)

    _write_manifest(repo_path, {"name": "fixture-pkg", "version": "1.2.0", "main": "index.js"})
    (repo_path / "index.js").write_text("module.exports = 'one-two'\n")
    v120_sha = _commit(repo_path, "Release 1.2.0")
    _git(repo_path, "tag", "v1.2.0")

    _write_manifest(repo_path, {"name": "fixture-pkg", "version": "1.3.0", "main": "index.js"})
    (repo_path / "index.js").write_text("module.exports = 'one-three'\n")
    v130_sha = _commit(repo_path, "Release 1.3.0")
    _git(repo_path, "tag", "-a", "v1.3.0", "-m", "Release 1.3.0")

    (repo_path / "README.md").write_text("# fixture-pkg\n")
    main_sha = _commit(repo_path, "Add README")

    return {
        "path": repo_path,
        "url": f"git+file://{repo_path}",
        "v120_sha": v120_sha,
        "v130_sha": v130_sha,
        "main_sha": main_sha,
    }


@pytest.fixture
def scripts_repo_fixture(tmp_path: Path) -> Dict[str, object]:
    """Create a repository whose package.json declares a build script.

    Returns dict with:
        - path: Path to repo
        - url: git+file:// URL of the repo
        - sha: HEAD commit SHA
    """
    repo_path = tmp_path / "scripts_repo"
    _init_repo(repo_path)

    _write_manifest(
        repo_path,
        {
            "name": "built-pkg",
            "version": "0.4.0",
            "scripts": {"build": "node build.js"},
        },
    )
    (repo_path / "build.js").write_text("console.log('building')\n")
    sha = _commit(repo_path, "Initial commit")

    return {
        "path": repo_path,
        "url": f"git+file://{repo_path}",
        "sha": sha,
    }


@pytest.fixture
def no_manifest_repo_fixture(tmp_path: Path) -> Dict[str, object]:
    """Create a repository without a package.json.

    Returns dict with:
        - path: Path to repo
        - url: git+file:// URL of the repo
    """
    repo_path = tmp_path / "no_manifest_repo"
    _init_repo(repo_path)
    (repo_path / "README.md").write_text("not a package\n")
    _commit(repo_path, "Initial commit")
    return {"path": repo_path, "url": f"git+file://{repo_path}"}


@pytest.fixture
def large_repo_fixture(tmp_path: Path) -> Dict[str, object]:
    """Create a package repository with an 8 MiB incompressible file.

    Its tarball spans far more chunks than a stream buffers.
    """
    repo_path = tmp_path / "large_repo"
    _init_repo(repo_path)
    _write_manifest(repo_path, {"name": "large-pkg", "version": "1.0.0"})
    (repo_path / "blob.bin").write_bytes(os.urandom(8 * 1024 * 1024))
    sha = _commit(repo_path, "Add blob")
    return {"path": repo_path, "url": f"git+file://{repo_path}", "sha": sha}


@pytest.fixture
def package_dir(tmp_path: Path) -> Path:
    """A plain package directory (not a git repo)."""
    pkg = tmp_path / "local_pkg"
    (pkg / "lib").mkdir(parents=True)
    (pkg / "node_modules" / "dep").mkdir(parents=True)
    _write_manifest(pkg, {"name": "local-pkg", "version": "2.0.0"})
    (pkg / "lib" / "index.js").write_text("module.exports = 2\n")
    (pkg / "node_modules" / "dep" / "index.js").write_text("ignored\n")
    return pkg


@pytest.fixture
def package_tarball_bytes(package_dir: Path) -> bytes:
    """Gzipped tarball of ``package_dir`` as produced by the packer."""
    buf = io.BytesIO()
    pack_directory(package_dir, buf)
    return buf.getvalue()
