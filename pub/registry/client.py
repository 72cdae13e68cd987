"""Registry client abstraction.

This module provides:
- RegistryClient: Protocol for the publish/unpublish calls the pipeline makes
- HttpRegistryClient: Implementation speaking the npm-style registry API over urllib
- MockRegistryClient: Scriptable implementation for testing
- fetch_tarball: Download helper used when staging a tarball URL
"""

from __future__ import annotations

import base64
import hashlib
import json
import ssl
import urllib.error
import urllib.parse
import urllib.request
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, runtime_checkable

from pub import __version__
from pub.core.package import PackageMetadata
from pub.core.result import Err, Ok, Result
from pub.core.structured import StrDict, as_str_dict, get_str, get_table

__all__ = [
    "HttpRegistryClient",
    "MockRegistryClient",
    "RegistryClient",
    "RegistryError",
    "Upload",
    "fetch_tarball",
    "split_identity",
]

USER_AGENT = f"pub/{__version__}"


@dataclass(frozen=True, slots=True)
class RegistryError:
    """Registry call failure.

    Attributes:
        url: The URL that failed
        status: HTTP status code (0 for network errors)
        message: Human-readable error message
        conflict: True if the registry refused to overwrite an existing version
    """

    url: str
    status: int
    message: str
    conflict: bool = False

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status}: {self.message} ({self.url})"
        return f"{self.message} ({self.url})"


@runtime_checkable
class RegistryClient(Protocol):
    """Protocol for registry operations."""

    def publish(
        self,
        metadata: PackageMetadata,
        tarball: Path,
        readme: str | None,
        *,
        registry: str,
        tag: str,
    ) -> Result[None, RegistryError]:
        """Upload one version to ``registry`` and point dist-tag ``tag`` at it."""
        ...

    def unpublish(
        self, identity: str | Sequence[str], *, registry: str
    ) -> Result[None, RegistryError]:
        """Remove one or more ``name@version`` entries from ``registry``."""
        ...


def split_identity(identity: str) -> tuple[str, str | None]:
    """Split ``name@version`` (scoped names included) into its parts."""
    head, sep, version = identity.rpartition("@")
    if not sep or not head:
        return identity, None
    return head, version or None


def _escape_name(name: str) -> str:
    return urllib.parse.quote(name, safe="@")


def _normalize_registry(registry: str) -> str:
    return registry if registry.endswith("/") else registry + "/"


def _package_url(registry: str, name: str, *parts: str) -> str:
    return _normalize_registry(registry) + "/".join((_escape_name(name), *parts))


def _conflict_from(status: int, message: str) -> bool:
    if status == 409:
        return True
    return status == 403 and "cannot publish over" in message.lower()


class HttpRegistryClient:
    """Registry client using urllib.

    Handles:
    - HTTPS with system certificates
    - Bearer token authentication
    - Conflict classification (HTTP 409)
    """

    def __init__(
        self,
        *,
        token: str | None = None,
        timeout: float = 60.0,
        user_agent: str = USER_AGENT,
    ) -> None:
        self.token = token
        self.timeout = timeout
        self.user_agent = user_agent
        self._ssl_context = ssl.create_default_context()

    def _request(
        self, method: str, url: str, body: StrDict | None = None
    ) -> Result[bytes, RegistryError]:
        headers = {"User-Agent": self.user_agent, "Accept": "application/json"}
        data: bytes | None = None
        if body is not None:
            data = json.dumps(body).encode("utf-8")
            headers["Content-Type"] = "application/json"
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            req = urllib.request.Request(url, data=data, headers=headers, method=method)
            with urllib.request.urlopen(
                req,
                timeout=self.timeout,
                context=self._ssl_context,
            ) as response:
                return Ok(response.read())
        except urllib.error.HTTPError as e:
            message = _error_body(e) or str(e.reason)
            return Err(
                RegistryError(
                    url=url,
                    status=e.code,
                    message=message,
                    conflict=_conflict_from(e.code, message),
                )
            )
        except urllib.error.URLError as e:
            return Err(RegistryError(url=url, status=0, message=str(e.reason)))
        except TimeoutError:
            return Err(RegistryError(url=url, status=0, message="Request timed out"))
        except (ValueError, OSError) as e:
            return Err(RegistryError(url=url, status=0, message=str(e)))

    def _get_document(self, registry: str, name: str) -> Result[StrDict | None, RegistryError]:
        """Fetch the package document; Ok(None) if the package does not exist."""
        url = _package_url(registry, name) + "?write=true"
        raw = self._request("GET", url)
        if isinstance(raw, Err):
            if raw.error.status == 404:
                return Ok(None)
            return raw
        try:
            doc = as_str_dict(json.loads(raw.value.decode("utf-8")))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return Err(RegistryError(url=url, status=0, message=f"JSON parse error: {e}"))
        if doc is None:
            return Err(RegistryError(url=url, status=0, message="Expected JSON object"))
        return Ok(doc)

    def publish(
        self,
        metadata: PackageMetadata,
        tarball: Path,
        readme: str | None,
        *,
        registry: str,
        tag: str,
    ) -> Result[None, RegistryError]:
        url = _package_url(registry, metadata.name)
        try:
            payload = tarball.read_bytes()
        except OSError as e:
            return Err(RegistryError(url=url, status=0, message=f"cannot read {tarball}: {e}"))

        document = build_publish_document(
            metadata, payload, registry=_normalize_registry(registry), tag=tag, readme=readme
        )
        result = self._request("PUT", url, document)
        if isinstance(result, Err):
            return result
        return Ok(None)

    def unpublish(
        self, identity: str | Sequence[str], *, registry: str
    ) -> Result[None, RegistryError]:
        identities = [identity] if isinstance(identity, str) else list(identity)
        by_name: dict[str, set[str | None]] = {}
        for item in identities:
            name, version = split_identity(item)
            by_name.setdefault(name, set()).add(version)

        for name, versions in by_name.items():
            result = self._unpublish_versions(registry, name, versions)
            if isinstance(result, Err):
                return result
        return Ok(None)

    def _unpublish_versions(
        self, registry: str, name: str, versions: set[str | None]
    ) -> Result[None, RegistryError]:
        doc_result = self._get_document(registry, name)
        if isinstance(doc_result, Err):
            return doc_result
        doc = doc_result.value
        if doc is None:
            return Ok(None)

        rev = get_str(doc, "_rev") or "0"
        remaining = dict(get_table(doc, "versions") or {})
        if None in versions:
            remaining = {}
        else:
            for version in versions:
                remaining.pop(str(version), None)

        if not remaining:
            result = self._request("DELETE", _package_url(registry, name, "-rev", rev))
            return result.map(lambda _: None)

        tags = get_table(doc, "dist-tags") or {}
        doc["dist-tags"] = {tag: v for tag, v in tags.items() if v in remaining}
        doc["versions"] = remaining
        result = self._request("PUT", _package_url(registry, name, "-rev", rev), doc)
        return result.map(lambda _: None)


def build_publish_document(
    metadata: PackageMetadata,
    payload: bytes,
    *,
    registry: str,
    tag: str,
    readme: str | None,
) -> StrDict:
    """Build the document PUT to the registry for a new version."""
    basename = metadata.name.rpartition("/")[2]
    filename = f"{basename}-{metadata.version}.tgz"

    version_doc = metadata.to_dict()
    version_doc["_id"] = metadata.id
    dist = dict(metadata.dist)
    dist["shasum"] = hashlib.sha1(payload).hexdigest()
    dist["tarball"] = f"{registry}{_escape_name(metadata.name)}/-/{filename}"
    version_doc["dist"] = dist
    if readme is not None:
        version_doc["readme"] = readme

    description = metadata.extra.get("description")
    return {
        "_id": metadata.name,
        "name": metadata.name,
        "description": description if isinstance(description, str) else "",
        "dist-tags": {tag: metadata.version},
        "versions": {metadata.version: version_doc},
        "readme": readme or "",
        "_attachments": {
            filename: {
                "content_type": "application/octet-stream",
                "data": base64.b64encode(payload).decode("ascii"),
                "length": len(payload),
            }
        },
    }


def _error_body(e: urllib.error.HTTPError) -> str:
    try:
        body = e.read().decode("utf-8", errors="replace")
    except OSError:
        return ""
    try:
        data = as_str_dict(json.loads(body))
    except json.JSONDecodeError:
        return body.strip()
    if data is None:
        return body.strip()
    return get_str(data, "error") or get_str(data, "reason") or body.strip()


def fetch_tarball(
    url: str,
    dest: Path,
    *,
    timeout: float = 60.0,
    user_agent: str = USER_AGENT,
) -> Result[Path, RegistryError]:
    """Download a tarball URL to dest."""
    try:
        req = urllib.request.Request(url, headers={"User-Agent": user_agent})
        with urllib.request.urlopen(req, timeout=timeout) as response:
            dest.parent.mkdir(parents=True, exist_ok=True)
            with open(dest, "wb") as f:
                while True:
                    chunk = response.read(8192)
                    if not chunk:
                        break
                    f.write(chunk)
        return Ok(dest)
    except urllib.error.HTTPError as e:
        return Err(RegistryError(url=url, status=e.code, message=str(e.reason)))
    except urllib.error.URLError as e:
        return Err(RegistryError(url=url, status=0, message=str(e.reason)))
    except TimeoutError:
        return Err(RegistryError(url=url, status=0, message="Download timed out"))
    except (ValueError, OSError) as e:
        return Err(RegistryError(url=url, status=0, message=str(e)))


@dataclass(frozen=True, slots=True)
class Upload:
    """A publish call recorded by MockRegistryClient."""

    package_id: str
    tarball: Path
    readme: str | None
    dist: StrDict
    registry: str
    tag: str


def _empty_uploads() -> list[Upload]:
    return []


def _empty_calls() -> list[tuple[str, str]]:
    return []


def _empty_registries() -> list[str]:
    return []


@dataclass
class MockRegistryClient:
    """Registry client double for testing.

    Publish responses are consumed in order from ``publish_results``
    (None = success); once exhausted every publish succeeds.

    Usage:
        registry = MockRegistryClient()
        registry.publish_results = [RegistryError(url="", status=409, message="exists", conflict=True)]
        registry.unpublish_error = RegistryError(url="", status=500, message="boom")
    """

    publish_results: list[RegistryError | None] = field(default_factory=list)
    unpublish_error: RegistryError | None = None
    uploads: list[Upload] = field(default_factory=_empty_uploads)
    calls: list[tuple[str, str]] = field(default_factory=_empty_calls)
    unpublish_registries: list[str] = field(default_factory=_empty_registries)

    def publish(
        self,
        metadata: PackageMetadata,
        tarball: Path,
        readme: str | None,
        *,
        registry: str,
        tag: str,
    ) -> Result[None, RegistryError]:
        self.calls.append(("publish", metadata.id))
        self.uploads.append(
            Upload(
                package_id=metadata.id,
                tarball=tarball,
                readme=readme,
                dist=json.loads(json.dumps(metadata.dist)),
                registry=registry,
                tag=tag,
            )
        )
        error = self.publish_results.pop(0) if self.publish_results else None
        if error is not None:
            return Err(error)
        return Ok(None)

    def unpublish(
        self, identity: str | Sequence[str], *, registry: str
    ) -> Result[None, RegistryError]:
        label = identity if isinstance(identity, str) else ",".join(identity)
        self.calls.append(("unpublish", label))
        self.unpublish_registries.append(registry)
        if self.unpublish_error is not None:
            return Err(self.unpublish_error)
        return Ok(None)

    @property
    def publish_calls(self) -> list[str]:
        return [target for op, target in self.calls if op == "publish"]

    @property
    def unpublish_calls(self) -> list[str]:
        return [target for op, target in self.calls if op == "unpublish"]
