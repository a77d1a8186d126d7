"""pkgfetch - resolve, inspect and download packages from any source."""
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pkgfetch.core.config import FetchOptions
from pkgfetch.core.errors import (
    GitOperationError,
    IntegrityError,
    InvalidRefError,
    ManifestReadError,
    NoMatchingVersionError,
    PkgFetchError,
    PreparationError,
    RemoteUnreachableError,
    SpecifierError,
    StreamCancelledError,
)
from pkgfetch.fetcher import get_fetcher
from pkgfetch.spec import Specifier, parse_spec
from pkgfetch.stream import TarballStream

__version__ = "0.1.0"


def _options(opts: Optional[FetchOptions], overrides: Dict[str, Any]) -> FetchOptions:
    base = opts or FetchOptions()
    return base.model_copy(update=overrides) if overrides else base


def resolve(spec: Union[str, Specifier], opts: Optional[FetchOptions] = None, **overrides: Any) -> str:
    return get_fetcher(spec, _options(opts, overrides)).resolve()


def manifest(spec: Union[str, Specifier], opts: Optional[FetchOptions] = None, **overrides: Any) -> Dict[str, Any]:
    return get_fetcher(spec, _options(opts, overrides)).manifest()


def packument(spec: Union[str, Specifier], opts: Optional[FetchOptions] = None, **overrides: Any) -> Dict[str, Any]:
    return get_fetcher(spec, _options(opts, overrides)).packument()


def tarball(spec: Union[str, Specifier], opts: Optional[FetchOptions] = None, **overrides: Any) -> TarballStream:
    return get_fetcher(spec, _options(opts, overrides)).tarball()


def extract(
    spec: Union[str, Specifier],
    dest: Union[str, Path],
    opts: Optional[FetchOptions] = None,
    **overrides: Any,
) -> Dict[str, Optional[str]]:
    return get_fetcher(spec, _options(opts, overrides)).extract(dest)


__all__ = [
    "FetchOptions",
    "GitOperationError",
    "IntegrityError",
    "InvalidRefError",
    "ManifestReadError",
    "NoMatchingVersionError",
    "PkgFetchError",
    "PreparationError",
    "RemoteUnreachableError",
    "Specifier",
    "SpecifierError",
    "StreamCancelledError",
    "TarballStream",
    "extract",
    "get_fetcher",
    "manifest",
    "packument",
    "parse_spec",
    "resolve",
    "tarball",
]
