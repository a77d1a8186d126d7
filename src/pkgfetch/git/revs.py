"""Remote ref listing via ``git ls-remote``."""
import logging
import re
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from pkgfetch.core.config import FetchOptions
from pkgfetch.core.errors import RemoteUnreachableError
from pkgfetch.git.command import run_git, to_git_remote
from pkgfetch.pick_manifest import parse_version

logger = logging.getLogger(__name__)

_VERSION_TAG = re.compile(r"^[v=]*(\d+\.\d+\.\d+(?:[-+].+)?)$")
_HEX = re.compile(r"^[0-9a-f]{4,40}$")


class RefDoc(BaseModel):
    """One remote ref: where it points and what kind it is."""

    model_config = ConfigDict(frozen=True)

    sha: str
    ref: str
    raw_ref: str
    type: str = Field(..., description="head, branch, tag, pull or other")
    version: Optional[str] = None


class RemoteRefs(BaseModel):
    """Everything ``git ls-remote`` told us about a repository.

    ``versions`` and ``dist_tags`` give a packument-shaped view so the
    same version picking used for registry packages applies to tags.
    """

    refs: Dict[str, RefDoc] = Field(default_factory=dict)
    shas: Dict[str, List[str]] = Field(default_factory=dict)
    versions: Dict[str, RefDoc] = Field(default_factory=dict)
    dist_tags: Dict[str, str] = Field(default_factory=dict, alias="dist-tags")

    model_config = ConfigDict(populate_by_name=True)

    def by_sha(self, committish: str) -> Optional[RefDoc]:
        """Ref doc for a full or unique abbreviated sha at a ref tip."""
        if not _HEX.match(committish):
            return None
        matches = [sha for sha in self.shas if sha.startswith(committish)]
        if len(matches) != 1:
            return None
        ref_name = self.shas[matches[0]][0]
        return self.refs[ref_name]

    def find(self, committish: str) -> Optional[RefDoc]:
        """Look up by ref name, then by sha prefix."""
        return self.refs.get(committish) or self.by_sha(committish)


def _ref_type(raw_ref: str) -> str:
    if raw_ref == "HEAD":
        return "head"
    if raw_ref.startswith("refs/heads/"):
        return "branch"
    if raw_ref.startswith("refs/tags/"):
        return "tag"
    if raw_ref.startswith("refs/pull/"):
        return "pull"
    return "other"


def _ref_name(raw_ref: str, ref_type: str) -> str:
    if ref_type == "branch":
        return raw_ref[len("refs/heads/"):]
    if ref_type == "tag":
        return raw_ref[len("refs/tags/"):]
    if ref_type == "pull":
        # refs/pull/1/head -> pull/1
        return raw_ref[len("refs/"):].rsplit("/", 1)[0]
    return raw_ref


def parse_ls_remote(lines: Iterable[str]) -> RemoteRefs:
    """Build RemoteRefs from ``<sha>\\t<ref>`` lines."""
    refs: Dict[str, RefDoc] = {}
    peeled: Dict[str, str] = {}

    for line in lines:
        split = line.split(None, 1)
        if len(split) < 2:
            continue
        sha, raw_ref = split[0].strip(), split[1].strip()
        ref_type = _ref_type(raw_ref)
        name = _ref_name(raw_ref, ref_type)
        if ref_type == "tag" and name.endswith("^{}"):
            # Annotated tag: the peeled entry is the commit it points at
            peeled[name[:-len("^{}")]] = sha
            continue
        if ref_type == "other":
            continue
        refs[name] = RefDoc(sha=sha, ref=name, raw_ref=raw_ref, type=ref_type)

    for name, sha in peeled.items():
        if name in refs:
            refs[name] = refs[name].model_copy(update={"sha": sha})

    versions: Dict[str, RefDoc] = {}
    for name, doc in list(refs.items()):
        if doc.type != "tag":
            continue
        match = _VERSION_TAG.match(name)
        if match and parse_version(match.group(1)) is not None:
            doc = doc.model_copy(update={"version": match.group(1)})
            refs[name] = doc
            versions[match.group(1)] = doc

    shas: Dict[str, List[str]] = {}
    for name, doc in refs.items():
        shas.setdefault(doc.sha, []).append(name)

    dist_tags: Dict[str, str] = {}
    head = refs.get("HEAD")
    latest = refs.get("latest")
    for version, doc in versions.items():
        if latest is not None and doc.sha == latest.sha:
            dist_tags["latest"] = version
        elif head is not None and doc.sha == head.sha:
            dist_tags["HEAD"] = version
            if latest is None:
                dist_tags["latest"] = version

    return RemoteRefs(refs=refs, shas=shas, versions=versions, dist_tags=dist_tags)


def revs(remote: str, opts: Optional[FetchOptions] = None) -> RemoteRefs:
    """List refs of ``remote``.

    Raises:
        RemoteUnreachableError: If ls-remote fails
    """
    opts = opts or FetchOptions()
    git_remote = to_git_remote(remote)
    logger.info(f"Listing refs of {git_remote}")
    output = run_git(
        ["ls-remote", git_remote],
        git_bin=opts.git_bin,
        timeout=opts.git_timeout,
        error_cls=RemoteUnreachableError,
    )
    remote_refs = parse_ls_remote(output.splitlines())
    logger.debug(f"{git_remote}: {len(remote_refs.refs)} refs, {len(remote_refs.versions)} versions")
    return remote_refs
