"""Cloning a repository into a directory at a given ref."""
import logging
import re
import shutil
from pathlib import Path
from typing import Optional

from pkgfetch.core.config import FetchOptions
from pkgfetch.core.errors import GitOperationError, InvalidRefError, RemoteUnreachableError
from pkgfetch.git.command import run_git, to_git_remote

logger = logging.getLogger(__name__)

COMMIT_PATTERN = re.compile(r"^[0-9a-f]{40}$")
# Plain branch/tag names; anything else (HEAD~3, @{yesterday}) needs a full clone
_PLAIN_REF = re.compile(r"^[\w./-]+$")


def clone(
    repo: str,
    ref: Optional[str],
    target: Path,
    shallow: bool = False,
    opts: Optional[FetchOptions] = None,
) -> str:
    """Check out ``ref`` of ``repo`` into ``target`` and return the commit sha.

    Args:
        repo: Repository URL (``git+`` prefix and fragment are ignored)
        ref: Full sha, branch/tag name, relative expression, or None for HEAD
        target: Empty or missing directory to clone into
        shallow: Whether the remote is known to serve shallow clones

    Raises:
        RemoteUnreachableError: If the repository cannot be cloned
        InvalidRefError: If ``ref`` does not exist in the clone
    """
    opts = opts or FetchOptions()
    remote = to_git_remote(repo)
    target = Path(target)
    target.mkdir(parents=True, exist_ok=True)

    if not ref or ref == "HEAD":
        _clone_default(remote, target, shallow, opts)
    elif COMMIT_PATTERN.match(ref):
        _clone_sha(remote, ref, target, shallow, opts)
    else:
        _clone_ref(remote, ref, target, shallow, opts)

    sha = _git(["rev-parse", "--revs-only", "HEAD"], target, opts)
    logger.info(f"Checked out {remote}#{ref or 'HEAD'} at {sha[:12]}")
    return sha


def _git(argv, cwd: Optional[Path], opts: FetchOptions, error_cls=GitOperationError) -> str:
    return run_git(argv, cwd=cwd, git_bin=opts.git_bin, timeout=opts.git_timeout, error_cls=error_cls)


def _empty_dir(target: Path) -> None:
    for child in target.iterdir():
        if child.is_dir() and not child.is_symlink():
            shutil.rmtree(child)
        else:
            child.unlink()


def _full_clone(remote: str, target: Path, opts: FetchOptions) -> None:
    logger.info(f"Cloning {remote}")
    _git(["clone", "--quiet", remote, str(target)], None, opts, RemoteUnreachableError)


def _checkout(ref: str, target: Path, opts: FetchOptions) -> None:
    _git(
        ["-c", "advice.detachedHead=false", "checkout", "--quiet", ref],
        target,
        opts,
        InvalidRefError,
    )


def _clone_default(remote: str, target: Path, shallow: bool, opts: FetchOptions) -> None:
    if shallow:
        try:
            _git(["clone", "--quiet", "--depth=1", remote, str(target)], None, opts)
            return
        except GitOperationError as e:
            logger.debug(f"Shallow clone failed, retrying full clone: {e}")
            _empty_dir(target)
    _full_clone(remote, target, opts)


def _clone_sha(remote: str, sha: str, target: Path, shallow: bool, opts: FetchOptions) -> None:
    if shallow:
        try:
            _git(["init", "--quiet"], target, opts)
            _git(["remote", "add", "origin", remote], target, opts)
            _git(["fetch", "--quiet", "--depth=1", "origin", sha], target, opts)
            _checkout(sha, target, opts)
            return
        except GitOperationError as e:
            logger.debug(f"Shallow fetch of {sha[:12]} failed, retrying full clone: {e}")
            _empty_dir(target)
    _full_clone(remote, target, opts)
    _checkout(sha, target, opts)


def _clone_ref(remote: str, ref: str, target: Path, shallow: bool, opts: FetchOptions) -> None:
    if shallow and _PLAIN_REF.match(ref):
        try:
            _git(
                ["clone", "--quiet", "--depth=1", "--branch", ref, remote, str(target)],
                None,
                opts,
            )
            return
        except GitOperationError as e:
            logger.debug(f"Shallow clone of {ref} failed, retrying full clone: {e}")
            _empty_dir(target)
    _full_clone(remote, target, opts)
    _checkout(ref, target, opts)
