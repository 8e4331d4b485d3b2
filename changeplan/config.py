"""Release planning configuration.

Mirrors the options of a ``[tool.changeplan]`` table. Keys may be written
in snake_case or in the camelCase used by ``.changeset/config.json``.
Group and ignore entries may be glob patterns (``"@scope/*"``) which are
expanded against the workspace package names.
"""

from __future__ import annotations

import fnmatch
from collections.abc import Iterable, Mapping
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from .errors import ConfigError, UnresolvedGroupMemberError

_GLOB_CHARS = frozenset("*?[")


class _ConfigModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid"
    )


class ExperimentalOptions(_ConfigModel):
    """Options that may change in a patch release.

    Attributes:
        only_update_peer_dependents_when_out_of_range: Only force a major
            bump on peer dependents when the new version leaves their range.
        update_internal_dependents: ``"out-of-range"`` bumps dependents only
            when the new version leaves their range; ``"always"`` bumps
            them on every release of a dependency.
        use_calculated_version_for_snapshots: Deprecated spelling of
            ``snapshot.use_calculated_version``.
    """

    only_update_peer_dependents_when_out_of_range: bool = False
    update_internal_dependents: Literal["always", "out-of-range"] = "out-of-range"
    use_calculated_version_for_snapshots: bool = False


class SnapshotConfig(_ConfigModel):
    use_calculated_version: bool = False
    prerelease_template: str | None = None


class Config(_ConfigModel):
    """Configuration consumed by the release planner.

    Attributes:
        ignore: Packages that are never released by a changeset.
        fixed: Groups of packages that always share a version.
        linked: Groups of packages whose releases share a version.
        update_internal_dependencies: Minimum bump that makes internal
            dependency ranges be rewritten. Informational here; range
            rewriting happens when the plan is applied.
        bump_versions_with_workspace_protocol_only: Only dependencies using
            the ``workspace:`` protocol propagate bumps.
        experimental: See :class:`ExperimentalOptions`.
        snapshot: Snapshot release options.
    """

    ignore: list[str] = Field(default_factory=list)
    fixed: list[list[str]] = Field(default_factory=list)
    linked: list[list[str]] = Field(default_factory=list)
    update_internal_dependencies: Literal["patch", "minor"] = "patch"
    bump_versions_with_workspace_protocol_only: bool = False
    experimental: ExperimentalOptions = Field(
        default_factory=ExperimentalOptions,
        validation_alias=AliasChoices(
            "experimental", "___experimentalUnsafeOptions_WILL_CHANGE_IN_PATCH"
        ),
    )
    snapshot: SnapshotConfig = Field(default_factory=SnapshotConfig)

    @model_validator(mode="after")
    def _apply_deprecated_snapshot_flag(self) -> Config:
        if "snapshot" not in self.model_fields_set:
            self.snapshot.use_calculated_version = (
                self.experimental.use_calculated_version_for_snapshots
            )
        return self

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Config:
        """Validate a raw mapping, raising ConfigError on bad input."""
        try:
            return cls.model_validate(dict(data))
        except ValidationError as exc:
            raise ConfigError(
                f"Invalid configuration: {exc}",
                hint="Check the [tool.changeplan] table against the documented options.",
            ) from exc

    def expand_patterns(self, package_names: Iterable[str]) -> Config:
        """Return a copy with glob patterns replaced by matching package names.

        Literal names are kept as-is, even when unknown, so that lookups
        report them later.
        """
        names = sorted(package_names)

        def expand(entries: list[str]) -> list[str]:
            expanded: list[str] = []
            for entry in entries:
                if _GLOB_CHARS.isdisjoint(entry):
                    matches = [entry]
                else:
                    matches = fnmatch.filter(names, entry)
                for name in matches:
                    if name not in expanded:
                        expanded.append(name)
            return expanded

        return self.model_copy(
            update={
                "ignore": expand(self.ignore),
                "fixed": [expand(group) for group in self.fixed],
                "linked": [expand(group) for group in self.linked],
            }
        )

    def validate_packages(self, package_names: Iterable[str]) -> None:
        """Check ignore and group entries against the workspace packages.

        Raises:
            UnresolvedGroupMemberError: A group names an unknown package.
            ConfigError: An ignored package is unknown, or a package sits
                in more than one group.
        """
        known = set(package_names)

        for name in self.ignore:
            if name not in known:
                raise ConfigError(
                    f'The package "{name}" is specified in the `ignore` option '
                    "but it is not found in the project."
                )

        seen: dict[str, str] = {}
        for kind, groups in (("fixed", self.fixed), ("linked", self.linked)):
            for group in groups:
                for name in group:
                    if name not in known:
                        raise UnresolvedGroupMemberError(group, name)
                    if name in seen:
                        raise ConfigError(
                            f'The package "{name}" is defined in multiple '
                            f"package groups ({seen[name]} and {kind}). "
                            "A package can only belong to one group."
                        )
                    seen[name] = kind
