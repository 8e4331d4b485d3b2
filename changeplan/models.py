"""Data models for changeplan.

These Pydantic models represent the inputs (changesets, packages, pre
state), the mutable working state of the propagation engine, and the
release plan it produces. JSON field names follow the camelCase shape
consumed by downstream publishing and changelog tools; snake_case is
accepted on input too.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BumpType(str, Enum):
    """Bump severity. Totally ordered: none < patch < minor < major."""

    NONE = "none"
    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"

    @property
    def rank(self) -> int:
        return _BUMP_RANK[self]


_BUMP_RANK = {
    BumpType.NONE: 0,
    BumpType.PATCH: 1,
    BumpType.MINOR: 2,
    BumpType.MAJOR: 3,
}


def max_bump(*types: BumpType) -> BumpType:
    """Return the highest of the given bump types (``none`` when empty)."""
    return max(types, key=lambda t: t.rank, default=BumpType.NONE)


class DependencyKind(str, Enum):
    """The four dependency maps of a package manifest."""

    RUNTIME = "dependencies"
    DEV = "devDependencies"
    PEER = "peerDependencies"
    OPTIONAL = "optionalDependencies"

    @property
    def out_of_range_bump(self) -> BumpType:
        """Bump a dependent needs when this kind of dependency moves."""
        return _OUT_OF_RANGE_BUMP[self]


# Dev-only dependents are recorded but not released.
_OUT_OF_RANGE_BUMP = {
    DependencyKind.RUNTIME: BumpType.PATCH,
    DependencyKind.DEV: BumpType.NONE,
    DependencyKind.PEER: BumpType.PATCH,
    DependencyKind.OPTIONAL: BumpType.PATCH,
}


class Release(_Model):
    """A single package entry of a changeset."""

    name: str
    type: BumpType


class Changeset(_Model):
    """A user-authored declaration of packages to release.

    Attributes:
        id: Unique changeset identifier (usually the file name stem).
        summary: Free-form description, used for changelogs.
        releases: Packages and the bump each one needs.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    summary: str = ""
    releases: list[Release] = Field(default_factory=list)


class PackageManifest(_Model):
    """Dependency maps of a package: dependency name → version range."""

    dependencies: dict[str, str] = Field(default_factory=dict)
    dev_dependencies: dict[str, str] = Field(default_factory=dict)
    peer_dependencies: dict[str, str] = Field(default_factory=dict)
    optional_dependencies: dict[str, str] = Field(default_factory=dict)

    def ranges(self, kind: DependencyKind) -> dict[str, str]:
        """Return the dependency map for one kind."""
        return {
            DependencyKind.RUNTIME: self.dependencies,
            DependencyKind.DEV: self.dev_dependencies,
            DependencyKind.PEER: self.peer_dependencies,
            DependencyKind.OPTIONAL: self.optional_dependencies,
        }[kind]

    def ranges_for(self, dependency: str) -> list[tuple[DependencyKind, str]]:
        """Every (kind, range) under which ``dependency`` is declared.

        A package may list the same dependency more than once, e.g. as
        both a peer and a dev dependency.
        """
        found: list[tuple[DependencyKind, str]] = []
        for kind in DependencyKind:
            version_range = self.ranges(kind).get(dependency)
            if version_range:
                found.append((kind, version_range))
        return found


class Package(_Model):
    """A workspace package, already discovered and read by the caller."""

    name: str
    version: str
    manifest: PackageManifest = Field(default_factory=PackageManifest)

    @classmethod
    def from_package_json(cls, package_json: dict[str, Any]) -> Package:
        """Build a Package from a package.json-shaped mapping."""
        return cls(
            name=package_json["name"],
            version=package_json["version"],
            manifest=PackageManifest.model_validate(package_json),
        )


# Package name → names of the packages that depend on it.
DependencyGraph = dict[str, list[str]]


class PendingRelease(_Model):
    """A package release being worked out by the propagation engine.

    Mutated in place while propagation escalates its bump type.

    Attributes:
        name: Package name.
        type: Current bump type.
        old_version: Version the bump applies to.
        changesets: Ids of the changesets that asked for this release.
    """

    name: str
    type: BumpType
    old_version: str
    changesets: list[str] = Field(default_factory=list)


class PreState(_Model):
    """Persisted prerelease state.

    Attributes:
        mode: ``"pre"`` while in pre mode, ``"exit"`` once exit was requested.
        tag: Prerelease tag, e.g. ``"beta"``.
        initial_versions: Package versions when pre mode was entered.
        changesets: Ids of the changesets already consumed by prereleases.
    """

    mode: Literal["pre", "exit"]
    tag: str
    initial_versions: dict[str, str] = Field(default_factory=dict)
    changesets: list[str] = Field(default_factory=list)


class PreInfo(_Model):
    """Prerelease information derived for a single plan computation."""

    state: PreState
    pre_versions: dict[str, int] = Field(default_factory=dict)


class SnapshotParams(_Model):
    """Inputs to a snapshot release (``--snapshot [tag]``)."""

    tag: str | None = None
    commit: str | None = None


class PlannedRelease(_Model):
    """A release in the final plan."""

    name: str
    type: BumpType
    old_version: str
    new_version: str
    changesets: list[str] = Field(default_factory=list)


class ReleasePlan(_Model):
    """The output of :func:`changeplan.plan.assemble_release_plan`."""

    changesets: list[Changeset] = Field(default_factory=list)
    releases: list[PlannedRelease] = Field(default_factory=list)
    pre_state: PreState | None = None

    def to_json(self) -> str:
        """Serialize with the camelCase field names."""
        return self.model_dump_json(by_alias=True, indent=2)
