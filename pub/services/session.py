"""State owned by one publish invocation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto

from pub.core.config import Config, ConfigOverlay

__all__ = ["Attempt", "PublishSession"]


class Attempt(Enum):
    """Which pass of the pipeline is running; RETRYING never retries again."""

    INITIAL = auto()
    RETRYING = auto()


@dataclass(slots=True)
class PublishSession:
    """Configuration overlay and rollback flag for one ``publish()`` call.

    The overlay accumulates ``publishConfig`` overrides across attempts of the
    same invocation; nothing here outlives the call.
    """

    overlay: ConfigOverlay
    rolling_back: bool = False

    @classmethod
    def start(cls, config: Config) -> PublishSession:
        return cls(overlay=ConfigOverlay(config))

    @property
    def config(self) -> Config:
        return self.overlay.effective
