"""Exceptions raised by the release resolver."""


class ResolverError(Exception):
    """Base class for pvetmpl errors."""

    pass


class DiscoveryError(ResolverError):
    """Release discovery failed for a single distribution family.

    Raised for network failures, timeouts and source documents that can no
    longer be parsed. Scoped to one family: callers may skip it and carry on
    with the others.
    """

    def __init__(self, family, cause: BaseException | str):
        self.family = family
        self.cause = cause
        name = getattr(family, "display_name", family)
        super().__init__(f"Release discovery failed for {name}: {cause}")


class UnsupportedFamilyError(ResolverError):
    """The requested distribution family is not supported."""

    def __init__(self, name):
        self.name = name
        super().__init__(f"Unsupported distribution family: {name!r}")


class MalformedReleaseError(ResolverError):
    """A release candidate does not match its family's expected shape."""

    def __init__(self, family, release, reason: str):
        self.family = family
        self.release = release
        self.reason = reason
        name = getattr(family, "display_name", family)
        super().__init__(f"Malformed {name} release {release!r}: {reason}")


class ConfigError(ResolverError):
    """Invalid configuration value."""

    pass


class DownloadError(ResolverError):
    """Error while downloading a cloud image."""

    pass
