"""Core exception types for pkgfetch."""


class PkgFetchError(Exception):
    """Base exception for all pkgfetch errors."""
    pass


class SpecifierError(PkgFetchError):
    """Raised when a package specifier cannot be turned into a fetch target."""
    pass


class GitOperationError(PkgFetchError):
    """Raised when a git operation fails."""
    pass


class RemoteUnreachableError(GitOperationError):
    """Raised when a remote repository or URL cannot be contacted."""
    pass


class InvalidRefError(GitOperationError):
    """Raised when a git reference cannot be checked out."""
    pass


class NoMatchingVersionError(PkgFetchError):
    """Raised when no version satisfies the requested range or tag."""
    pass


class ManifestReadError(PkgFetchError):
    """Raised when package.json is missing or unreadable."""
    pass


class PreparationError(PkgFetchError):
    """Raised when the install pass before packing fails."""
    pass


class IntegrityError(PkgFetchError):
    """Raised when content does not match its expected digest."""

    def __init__(self, message: str, expected: str = "", actual: str = ""):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class StreamCancelledError(PkgFetchError):
    """Raised inside a tarball producer once its consumer has closed the stream."""
    pass
