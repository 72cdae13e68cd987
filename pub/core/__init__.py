"""Core domain types and logic."""

from .config import Config, ConfigError, ConfigOverlay, load_config
from .errors import ErrorCode
from .package import PackageMetadata, PrebuiltArtifact, PublishRequest, StagedArtifact
from .result import Err, Ok, Result

__all__ = [
    # config
    "Config",
    "ConfigError",
    "ConfigOverlay",
    "load_config",
    # errors
    "ErrorCode",
    # package
    "PackageMetadata",
    "PrebuiltArtifact",
    "PublishRequest",
    "StagedArtifact",
    # result
    "Err",
    "Ok",
    "Result",
]
