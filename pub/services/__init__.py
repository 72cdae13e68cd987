# SPDX-License-Identifier: MIT
"""Application services for the pub CLI.

Services implement the publish pipeline, coordinating between the domain
layer (core/), the registry client (registry/) and the platform layer.
"""

from pub.services.publish import PublishDeps, PublishOutcome, publish
from pub.services.publish_errors import PublishError

__all__ = [
    "PublishDeps",
    "PublishError",
    "PublishOutcome",
    "publish",
]
