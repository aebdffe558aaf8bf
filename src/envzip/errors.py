"""Exception taxonomy shared by the sync and versioning layers.

Conflicts are *not* exceptions: they are reported inside a
``MergeResult``.  Malformed ``.env`` lines never raise either; the codec
skips them.
"""

from __future__ import annotations


class EnvZipError(Exception):
    """Base class for all envzip errors."""


class ConfigError(EnvZipError):
    """Missing or invalid configuration.  Raised before any sync runs."""


class RemoteUnavailableError(EnvZipError):
    """The remote store could not be reached or answered with a failure.

    A sync that hits this while reading remote state is aborted with the
    local file untouched; the next trigger retries from scratch.
    """


class NotFoundError(EnvZipError):
    """A requested entry, version or field change does not exist."""


class VersionRecordError(EnvZipError):
    """A version record could not be written or read.

    The entry mutation path catches this and logs it; it never fails the
    mutation that triggered it.
    """
