"""Version control client: ref listing and cloning."""
from pkgfetch.git.clone import COMMIT_PATTERN, clone
from pkgfetch.git.revs import RefDoc, RemoteRefs, parse_ls_remote, revs

__all__ = [
    "COMMIT_PATTERN",
    "RefDoc",
    "RemoteRefs",
    "clone",
    "parse_ls_remote",
    "revs",
]
