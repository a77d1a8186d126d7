"""Smoke tests for pkgfetch CLI."""
import json
import subprocess
import sys


def _pkgfetch(*args: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "-m", "pkgfetch.cli", *args],
        capture_output=True,
        text=True,
    )


def test_cli_help_returns_zero_exit_code():
    """Execute pkgfetch --help and verify it returns exit code 0."""
    result = _pkgfetch("--help")
    assert result.returncode == 0
    for command in ("resolve", "manifest", "packument", "tarball", "extract"):
        assert command in result.stdout


def test_resolve_prints_pinned_url(tmp_path, git_repo_fixture):
    """Test: pkgfetch resolve prints the URL pinned to the commit.

    Given: repo fixture with tag v1.2.0
    When: pkgfetch resolve is called
    Then: CLI exits 0 and prints the URL with the tag's sha
    """
    result = _pkgfetch(
        "resolve",
        f"{git_repo_fixture['url']}#v1.2.0",
        "--cache-dir", str(tmp_path / "cache"),
    )

    assert result.returncode == 0, result.stderr
    assert result.stdout.strip() == f"{git_repo_fixture['url']}#{git_repo_fixture['v120_sha']}"


def test_invalid_ref_exit_code_3(tmp_path, git_repo_fixture):
    result = _pkgfetch(
        "resolve",
        f"{git_repo_fixture['url']}#DOES_NOT_EXIST",
        "--cache-dir", str(tmp_path / "cache"),
    )

    assert result.returncode == 3


def test_manifest_prints_json(tmp_path, git_repo_fixture):
    result = _pkgfetch(
        "manifest",
        f"{git_repo_fixture['url']}#semver:^1.2.0",
        "--cache-dir", str(tmp_path / "cache"),
    )

    assert result.returncode == 0, result.stderr
    assert json.loads(result.stdout)["version"] == "1.3.0"


def test_tarball_writes_file(tmp_path, package_dir):
    output = tmp_path / "out" / "pkg.tgz"

    result = _pkgfetch(
        "tarball",
        f"file:{package_dir}",
        "--output", str(output),
        "--cache-dir", str(tmp_path / "cache"),
    )

    assert result.returncode == 0, result.stderr
    assert output.stat().st_size > 0
    assert "Integrity: sha512-" in result.stdout


def test_bad_spec_exit_code_1(tmp_path):
    result = _pkgfetch("resolve", "git+https://#main", "--cache-dir", str(tmp_path / "cache"))

    assert result.returncode == 1
