"""Package specifiers: parsing and hosted-provider URLs."""
from pkgfetch.spec.hosted import HostedGit, from_url, repo_url
from pkgfetch.spec.specifier import Specifier, parse_spec

__all__ = [
    "HostedGit",
    "Specifier",
    "from_url",
    "parse_spec",
    "repo_url",
]
