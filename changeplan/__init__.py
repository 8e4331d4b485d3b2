"""Release planning for multi-package workspaces driven by changesets."""

from __future__ import annotations

from .config import Config
from .errors import ChangeplanError
from .models import (
    BumpType,
    Changeset,
    Package,
    PackageManifest,
    PreState,
    Release,
    ReleasePlan,
    SnapshotParams,
)
from .plan import assemble_release_plan
from .ranges import get_version_range_type, satisfies

__all__ = [
    "BumpType",
    "Changeset",
    "ChangeplanError",
    "Config",
    "Package",
    "PackageManifest",
    "PreState",
    "Release",
    "ReleasePlan",
    "SnapshotParams",
    "assemble_release_plan",
    "get_version_range_type",
    "satisfies",
]
