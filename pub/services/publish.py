"""Publish orchestration.

One ``publish()`` call runs the pipeline at most twice:

    INITIAL:   stage -> [prepublish] -> publish step -> publish -> postpublish
    RETRYING:  same again, only after a forced publish hit a version conflict

The publish step itself is a nested pipeline:

    prepare (metadata, publishConfig, private) -> prebuild (degradable)
        -> upload (rollback guarded)

Usage:
    deps = PublishDeps(stager=..., lifecycle=..., registry=..., installer=..., console=...)
    match publish(["."], config=Config(), deps=deps):
        case Ok(outcome):
            print(outcome.line)  # "+ mypkg@1.0.0"
        case Err(error):
            print(error.message)
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from functools import partial
from pathlib import Path

from pub.core.config import Config
from pub.core.package import (
    PackageMetadata,
    PrebuiltArtifact,
    PublishRequest,
    StagedArtifact,
    read_descriptor,
)
from pub.core.result import Err, Ok, Result
from pub.output.console import ConsoleProtocol
from pub.registry.client import RegistryClient
from pub.services.archive import Packer
from pub.services.archive import pack as pack_tarball
from pub.services.checksum import Checksummer, shasum
from pub.services.install import InstallRunner
from pub.services.lifecycle import LifecycleRunner
from pub.services.pipeline import Flow, OnError, Step, run_steps
from pub.services.prebuild import prebuild, prebuild_target
from pub.services.publish_errors import (
    MissingMetadataError,
    PrivatePackageError,
    PublishError,
    UsageError,
)
from pub.services.registry_publish import Published, RetryRequested, reg_publish
from pub.services.session import Attempt, PublishSession
from pub.services.stager import ArtifactStager

__all__ = ["PublishDeps", "PublishOutcome", "publish"]


@dataclass(frozen=True, slots=True)
class PublishDeps:
    """Collaborators the pipeline talks to."""

    stager: ArtifactStager
    lifecycle: LifecycleRunner
    registry: RegistryClient
    installer: InstallRunner
    console: ConsoleProtocol
    pack: Packer = pack_tarball
    checksum: Checksummer = shasum


@dataclass(frozen=True, slots=True)
class PublishOutcome:
    package_id: str
    attempts: int
    prebuilt: PrebuiltArtifact | None = None

    @property
    def line(self) -> str:
        return f"+ {self.package_id}"


@dataclass(slots=True)
class AttemptContext:
    request: PublishRequest
    staged: StagedArtifact
    attempt: Attempt
    package_id: str = ""
    prebuilt: PrebuiltArtifact | None = None
    retry: bool = False

    def outcome(self, attempts: int) -> PublishOutcome:
        return PublishOutcome(self.package_id, attempts=attempts, prebuilt=self.prebuilt)


def publish(
    args: Sequence[str],
    *,
    config: Config,
    deps: PublishDeps,
    is_retry: bool = False,
) -> Result[PublishOutcome, PublishError]:
    """Publish a folder, tarball or tarball URL.

    Args:
        args: Publish arguments; empty means ".", more than one is a usage error
        config: Base configuration (publishConfig overrides never leak into it)
        deps: Collaborators
        is_retry: Start directly in the retry state (no forced retry possible)
    """
    request = PublishRequest.from_args(args)
    if isinstance(request, Err):
        return Err(UsageError(count=request.error))

    console = deps.console
    console.debug(f"publish {request.value.argument}")
    session = PublishSession.start(config)

    first = Attempt.RETRYING if is_retry else Attempt.INITIAL
    result = _run_attempt(request.value, first, session, deps)
    if isinstance(result, Err) or not result.value.retry:
        return result.map(lambda ctx: ctx.outcome(attempts=1))

    console.debug(f"retrying publish of {result.value.package_id}")
    retried = _run_attempt(request.value, Attempt.RETRYING, session, deps)
    return retried.map(lambda ctx: ctx.outcome(attempts=2))


def _is_package_dir(argument: str) -> bool:
    if argument.startswith(("http://", "https://")):
        return False
    return isinstance(read_descriptor(Path(argument) / "package.json"), Ok)


def _run_attempt(
    request: PublishRequest,
    attempt: Attempt,
    session: PublishSession,
    deps: PublishDeps,
) -> Result[AttemptContext, PublishError]:
    did_pre = _is_package_dir(request.argument)

    staged = deps.stager.stage(request.argument)
    if isinstance(staged, Err):
        return staged

    ctx = AttemptContext(request=request, staged=staged.value, attempt=attempt)
    steps: list[Step[AttemptContext]] = [
        Step("prepublish", partial(_hook, "prepublish", deps), enabled=did_pre),
        Step("publish", partial(_publish_step, session, deps)),
        Step("publish script", partial(_hook, "publish", deps)),
        Step("postpublish", partial(_hook, "postpublish", deps)),
    ]
    ran = run_steps(steps, ctx, deps.console)
    if isinstance(ran, Err):
        return ran
    return Ok(ctx)


def _hook(hook: str, deps: PublishDeps, ctx: AttemptContext) -> Result[Flow, PublishError]:
    metadata = ctx.staged.metadata
    if metadata is None:
        return Ok(Flow.CONTINUE)
    result = deps.lifecycle.run(metadata, hook, ctx.staged.package_dir)
    if isinstance(result, Err):
        return result
    return Ok(Flow.CONTINUE)


def _publish_step(
    session: PublishSession, deps: PublishDeps, ctx: AttemptContext
) -> Result[Flow, PublishError]:
    steps: list[Step[AttemptContext]] = [
        Step("prepare", partial(_prepare, session, deps.console)),
        Step("prebuild", partial(_prebuild, session, deps), on_error=OnError.DEGRADE),
        Step("upload", partial(_upload, session, deps)),
    ]
    ran = run_steps(steps, ctx, deps.console)
    if isinstance(ran, Err):
        return ran
    if ctx.retry:
        return Ok(Flow.STOP)
    return Ok(Flow.CONTINUE)


def _metadata(ctx: AttemptContext) -> Result[PackageMetadata, PublishError]:
    if ctx.staged.metadata is None:
        return Err(MissingMetadataError())
    return Ok(ctx.staged.metadata)


def _prepare(
    session: PublishSession, console: ConsoleProtocol, ctx: AttemptContext
) -> Result[Flow, PublishError]:
    metadata = _metadata(ctx)
    if isinstance(metadata, Err):
        return metadata
    meta = metadata.value
    ctx.package_id = meta.id

    for key, value in meta.publish_config.items():
        console.info(f"publishConfig {key}={value}")
        session.overlay.set(key, value)

    if meta.private:
        return Err(PrivatePackageError(name=meta.name))
    return Ok(Flow.CONTINUE)


def _prebuild(
    session: PublishSession, deps: PublishDeps, ctx: AttemptContext
) -> Result[Flow, PublishError]:
    metadata = _metadata(ctx)
    if isinstance(metadata, Err):
        return metadata

    config = session.config
    result = prebuild(
        metadata.value,
        ctx.staged,
        prebuild_target(metadata.value, config),
        installer=deps.installer,
        pack=deps.pack,
        checksum=deps.checksum,
        console=deps.console,
        require_shasum=config.require_bin_shasum,
    )
    if isinstance(result, Err):
        return result
    ctx.prebuilt = result.value
    return Ok(Flow.CONTINUE)


def _upload(
    session: PublishSession, deps: PublishDeps, ctx: AttemptContext
) -> Result[Flow, PublishError]:
    metadata = _metadata(ctx)
    if isinstance(metadata, Err):
        return metadata

    result = reg_publish(
        metadata.value,
        ctx.prebuilt,
        ctx.staged,
        attempt=ctx.attempt,
        session=session,
        registry=deps.registry,
        console=deps.console,
    )
    if isinstance(result, Err):
        return result

    match result.value:
        case Published(line=line):
            deps.console.print(line)
        case RetryRequested():
            ctx.retry = True
    return Ok(Flow.CONTINUE)
