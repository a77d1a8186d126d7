"""Fetch options shared by every fetcher."""
import os
from pathlib import Path
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


def default_cache_dir() -> Path:
    """Return $PKGFETCH_CACHE or ~/.cache/pkgfetch."""
    env = os.environ.get("PKGFETCH_CACHE")
    if env:
        return Path(env)
    return Path.home() / ".cache" / "pkgfetch"


class FetchOptions(BaseModel):
    """Options controlling resolution, caching and preparation.

    Child fetchers derive their own options with ``model_copy(update=...)``
    rather than mutating a shared instance.
    """

    model_config = ConfigDict(frozen=True)

    cache: Path = Field(default_factory=default_cache_dir, description="Cache root")
    registry: str = Field(default="https://registry.npmjs.org", description="Registry base URL")
    integrity: Optional[str] = Field(default=None, description="Expected tarball integrity")
    resolved: Optional[str] = Field(default=None, description="Pre-known resolved identifier")
    default_tag: str = Field(default="latest", description="Dist-tag used for bare names")
    npm_bin: str = Field(default="npm", description="Package manager binary")
    npm_install_cmd: Tuple[str, ...] = Field(default=("install",))
    npm_cli_config: Tuple[str, ...] = Field(default=())
    git_bin: str = Field(default="git", description="git binary")
    git_timeout: float = Field(default=600.0, gt=0, description="Seconds per git command")
    http_timeout: float = Field(default=30.0, gt=0, description="Seconds per HTTP request")
    ignore_scripts: bool = Field(default=False, description="Skip prepare scripts when packing")
    where: Optional[Path] = Field(default=None, description="Base dir for relative paths")
