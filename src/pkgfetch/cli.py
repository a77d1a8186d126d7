"""pkgfetch CLI - Command line interface for pkgfetch."""
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from pkgfetch.core.config import FetchOptions, default_cache_dir
from pkgfetch.core.errors import InvalidRefError, NoMatchingVersionError
from pkgfetch.fetcher import get_fetcher

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(name)s: %(message)s",
)
logger = logging.getLogger("pkgfetch")

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_NOT_FOUND = 3


def _common_options(func):
    func = click.option(
        "--cache-dir",
        type=click.Path(file_okay=False, path_type=Path),
        default=None,
        help="Cache directory (default: $PKGFETCH_CACHE or ~/.cache/pkgfetch)",
    )(func)
    func = click.option(
        "--registry",
        default="https://registry.npmjs.org",
        help="Registry base URL",
    )(func)
    func = click.option(
        "--integrity",
        default=None,
        help="Expected tarball integrity (sha512-...)",
    )(func)
    func = click.option(
        "--ignore-scripts",
        is_flag=True,
        help="Do not run prepare scripts when packing directories",
    )(func)
    return func


def _build_options(
    cache_dir: Optional[Path],
    registry: str,
    integrity: Optional[str],
    ignore_scripts: bool,
) -> FetchOptions:
    return FetchOptions(
        cache=cache_dir or default_cache_dir(),
        registry=registry,
        integrity=integrity,
        ignore_scripts=ignore_scripts,
    )


def _run(action):
    """Run ``action`` and translate errors into exit codes.

    Exit codes:
        0: Success
        1: Generic runtime failure
        3: Requested ref or version not found
    """
    try:
        action()
    except (InvalidRefError, NoMatchingVersionError) as e:
        logger.error(f"Not found: {str(e)}")
        sys.exit(EXIT_NOT_FOUND)
    except Exception as e:
        logger.error(f"Failed: {str(e)}")
        sys.exit(EXIT_FAILURE)
    sys.exit(EXIT_OK)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def main(verbose: bool):
    """pkgfetch - resolve and fetch packages from registries, git, and disk."""
    if verbose:
        logging.getLogger("pkgfetch").setLevel(logging.DEBUG)


@main.command()
@click.argument("spec")
@_common_options
def resolve(spec: str, cache_dir, registry, integrity, ignore_scripts):
    """Print the canonical resolved identifier for SPEC.

    Examples:
        pkgfetch resolve github:npm/abbrev-js#v1.1.1
        pkgfetch resolve "git+https://example.com/repo.git#main"
    """
    opts = _build_options(cache_dir, registry, integrity, ignore_scripts)
    _run(lambda: click.echo(get_fetcher(spec, opts).resolve()))


@main.command()
@click.argument("spec")
@_common_options
def manifest(spec: str, cache_dir, registry, integrity, ignore_scripts):
    """Print the package manifest of SPEC as JSON."""
    opts = _build_options(cache_dir, registry, integrity, ignore_scripts)
    _run(lambda: click.echo(json.dumps(get_fetcher(spec, opts).manifest(), indent=2, sort_keys=True)))


@main.command()
@click.argument("spec")
@_common_options
def packument(spec: str, cache_dir, registry, integrity, ignore_scripts):
    """Print the packument (all versions) of SPEC as JSON."""
    opts = _build_options(cache_dir, registry, integrity, ignore_scripts)
    _run(lambda: click.echo(json.dumps(get_fetcher(spec, opts).packument(), indent=2, sort_keys=True)))


@main.command()
@click.argument("spec")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    required=True,
    help="File to write the tarball to",
)
@_common_options
def tarball(spec: str, output: Path, cache_dir, registry, integrity, ignore_scripts):
    """Write the tarball of SPEC to a file."""
    opts = _build_options(cache_dir, registry, integrity, ignore_scripts)

    def action():
        stream = get_fetcher(spec, opts).tarball()
        output.parent.mkdir(parents=True, exist_ok=True)
        with output.open("wb") as fh:
            size = stream.pipe(fh)
        click.echo(f"[OK] Tarball written: {output}")
        click.echo(f"  Resolved: {stream.resolved}")
        click.echo(f"  Integrity: {stream.integrity}")
        click.echo(f"  Size: {size} bytes")

    _run(action)


@main.command()
@click.argument("spec")
@click.argument("dest", type=click.Path(file_okay=False, path_type=Path))
@_common_options
def extract(spec: str, dest: Path, cache_dir, registry, integrity, ignore_scripts):
    """Unpack the package contents of SPEC into DEST."""
    opts = _build_options(cache_dir, registry, integrity, ignore_scripts)

    def action():
        result = get_fetcher(spec, opts).extract(dest)
        click.echo(f"[OK] Extracted into {dest}")
        click.echo(f"  Resolved: {result['resolved']}")
        click.echo(f"  Integrity: {result['integrity']}")

    _run(action)


if __name__ == "__main__":
    main()
