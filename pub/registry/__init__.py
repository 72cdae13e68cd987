"""Registry access: HTTP client, test double and tarball download."""

from .client import (
    HttpRegistryClient,
    MockRegistryClient,
    RegistryClient,
    RegistryError,
    fetch_tarball,
)

__all__ = [
    "HttpRegistryClient",
    "MockRegistryClient",
    "RegistryClient",
    "RegistryError",
    "fetch_tarball",
]
