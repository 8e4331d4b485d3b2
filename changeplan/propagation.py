"""Release propagation: the fixed-point loop behind a release plan.

Three rules are applied in turn until a full pass changes nothing:

1. :func:`determine_dependents` bumps packages that depend on a package
   being released (walking the reverse dependency graph).
2. :func:`match_fixed_constraint` puts every member of a fixed group on
   the group's highest bump type and highest current version.
3. :func:`apply_links` does the same for linked groups, but only for
   members that are already being released.

The pending releases mapping is owned by one plan computation and is
mutated in place by every rule. Bump types only ever go up: the
dependents rule escalates, and the group rules set members to the group
maximum. With four bump types and a fixed set of groups the loop always
terminates.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Mapping

from .config import Config
from .errors import InternalInvariantError, UnresolvedGroupMemberError
from .graph import WORKSPACE_PROTOCOL
from .logging import get_logger
from .models import (
    BumpType,
    DependencyGraph,
    DependencyKind,
    Package,
    PendingRelease,
    PreInfo,
    max_bump,
)
from .ranges import satisfies
from .versions import increment_version, parse_version

logger = get_logger(__name__)


def get_highest_release_type(releases: Iterable[PendingRelease]) -> BumpType:
    """Return the highest bump type among ``releases``.

    Raises:
        InternalInvariantError: If ``releases`` is empty.
    """
    types = [release.type for release in releases]
    if not types:
        raise InternalInvariantError(
            "Large internal error when calculating highest release type in the "
            "set of releases: the set is empty. The dependency graph or the "
            "package groups were built incorrectly."
        )
    return max_bump(*types)


def get_current_highest_version(
    group: list[str], packages_by_name: Mapping[str, Package]
) -> str:
    """Return the highest current version among the packages of a group.

    Raises:
        UnresolvedGroupMemberError: If a member is not a workspace package.
    """
    highest: str | None = None
    for name in group:
        pkg = packages_by_name.get(name)
        if pkg is None:
            raise UnresolvedGroupMemberError(group, name)
        if highest is None or parse_version(pkg.version) > parse_version(highest):
            highest = pkg.version
    if highest is None:
        raise InternalInvariantError("cannot take the highest version of an empty group")
    return highest


def get_dependency_version_ranges(
    dependent: Package, dependency: PendingRelease
) -> list[tuple[DependencyKind, str]]:
    """Every (kind, range) under which ``dependent`` depends on ``dependency``.

    ``workspace:*`` stands for the dependency's current exact version, not
    for a wildcard. Other ``workspace:`` ranges lose the prefix.
    """
    ranges: list[tuple[DependencyKind, str]] = []
    for kind, version_range in dependent.manifest.ranges_for(dependency.name):
        if version_range == WORKSPACE_PROTOCOL + "*":
            version_range = dependency.old_version
        elif version_range.startswith(WORKSPACE_PROTOCOL):
            version_range = version_range.removeprefix(WORKSPACE_PROTOCOL)
        ranges.append((kind, version_range))
    return ranges


def _leaves_range(
    release: PendingRelease, version_range: str, pre_info: PreInfo | None
) -> bool:
    return not satisfies(increment_version(release, pre_info), version_range)


def should_bump_major(
    kind: DependencyKind,
    version_range: str,
    existing: PendingRelease | None,
    next_release: PendingRelease,
    pre_info: PreInfo | None,
    only_update_peer_dependents_when_out_of_range: bool,
) -> bool:
    """Whether a peer dependent has to be released as a major.

    A new minor or major of a peer dependency changes what the dependent's
    consumers must install, so the dependent gets a major unless it
    already has one. With ``only_update_peer_dependents_when_out_of_range``
    this only happens when the new version leaves the peer range.
    """
    return (
        kind is DependencyKind.PEER
        and next_release.type in (BumpType.MINOR, BumpType.MAJOR)
        and (
            not only_update_peer_dependents_when_out_of_range
            or _leaves_range(next_release, version_range, pre_info)
        )
        and (existing is None or existing.type is not BumpType.MAJOR)
    )


def _required_bump(
    dependent: Package,
    next_release: PendingRelease,
    existing: PendingRelease | None,
    pre_info: PreInfo | None,
    config: Config,
) -> BumpType | None:
    """Bump ``dependent`` needs because ``next_release`` is released.

    None means no requirement at all (not even a ``none`` release).
    """
    if dependent.name in config.ignore:
        return BumpType.NONE

    experimental = config.experimental
    required: BumpType | None = None
    for kind, version_range in get_dependency_version_ranges(dependent, next_release):
        if next_release.type is BumpType.NONE:
            continue
        if should_bump_major(
            kind,
            version_range,
            existing,
            next_release,
            pre_info,
            experimental.only_update_peer_dependents_when_out_of_range,
        ):
            required = BumpType.MAJOR
        elif (existing is None or existing.type is BumpType.NONE) and (
            experimental.update_internal_dependents == "always"
            or _leaves_range(next_release, version_range, pre_info)
        ):
            # A dev-only dependent is recorded with "none" unless another
            # kind already asked for a real bump.
            required = max_bump(required or BumpType.NONE, kind.out_of_range_bump)
    return required


def determine_dependents(
    releases: dict[str, PendingRelease],
    packages_by_name: Mapping[str, Package],
    dependency_graph: DependencyGraph,
    pre_info: PreInfo | None,
    config: Config,
) -> bool:
    """Add or escalate releases of packages that depend on released ones.

    Walks a FIFO queue seeded with every pending release. A dependent that
    is escalated or newly added is queued again so its own dependents are
    visited; a release is only re-queued when its type strictly goes up.

    Returns:
        True if ``releases`` changed.

    Raises:
        InternalInvariantError: If the graph and the packages disagree.
    """
    updated = False
    queue: deque[PendingRelease] = deque(releases.values())

    while queue:
        next_release = queue.popleft()
        dependents = dependency_graph.get(next_release.name)
        if dependents is None:
            raise InternalInvariantError(
                "Error in determining dependents - could not find package in "
                f"repository: {next_release.name}"
            )

        for dependent_name in dependents:
            dependent = packages_by_name.get(dependent_name)
            if dependent is None:
                raise InternalInvariantError(
                    f"Dependency graph is incorrect: unknown dependent {dependent_name}"
                )

            existing = releases.get(dependent_name)
            required = _required_bump(dependent, next_release, existing, pre_info, config)
            if required is None:
                continue
            if existing is not None and required.rank <= existing.type.rank:
                continue

            updated = True
            if existing is not None:
                logger.debug(
                    "escalating dependent",
                    package=dependent_name,
                    dependency=next_release.name,
                    old_type=existing.type.value,
                    new_type=required.value,
                )
                existing.type = required
                queue.append(existing)
            else:
                logger.debug(
                    "adding dependent",
                    package=dependent_name,
                    dependency=next_release.name,
                    type=required.value,
                )
                release = PendingRelease(
                    name=dependent_name,
                    type=required,
                    old_version=dependent.version,
                    changesets=[],
                )
                releases[dependent_name] = release
                queue.append(release)

    return updated


def _sync_group(
    group: list[str],
    releases: dict[str, PendingRelease],
    packages_by_name: Mapping[str, Package],
    *,
    create_missing: bool,
    ignored: Iterable[str] = (),
) -> bool:
    releasing = [
        release
        for release in releases.values()
        if release.name in group and release.type is not BumpType.NONE
    ]
    if not releasing:
        return False

    highest_type = get_highest_release_type(releasing)
    highest_version = get_current_highest_version(group, packages_by_name)
    skip = set(ignored)

    updated = False
    if create_missing:
        targets: list[str] = [name for name in group if name not in skip]
    else:
        targets = [release.name for release in releasing]

    for name in targets:
        release = releases.get(name)
        if release is None:
            releases[name] = PendingRelease(
                name=name,
                type=highest_type,
                old_version=highest_version,
                changesets=[],
            )
            updated = True
            continue
        if release.type is not highest_type:
            release.type = highest_type
            updated = True
        if release.old_version != highest_version:
            release.old_version = highest_version
            updated = True

    if updated:
        logger.debug(
            "synchronized package group",
            group=group,
            type=highest_type.value,
            version=highest_version,
        )
    return updated


def match_fixed_constraint(
    releases: dict[str, PendingRelease],
    packages_by_name: Mapping[str, Package],
    config: Config,
) -> bool:
    """Put every non-ignored member of a releasing fixed group on the same release.

    Members without a release get one (with no changesets).

    Returns:
        True if ``releases`` changed.
    """
    updated = False
    for group in config.fixed:
        if _sync_group(
            group,
            releases,
            packages_by_name,
            create_missing=True,
            ignored=config.ignore,
        ):
            updated = True
    return updated


def apply_links(
    releases: dict[str, PendingRelease],
    packages_by_name: Mapping[str, Package],
    linked: list[list[str]],
) -> bool:
    """Align the releasing members of each linked group.

    Unlike fixed groups, linked groups never create releases.

    Returns:
        True if ``releases`` changed.
    """
    updated = False
    for group in linked:
        if _sync_group(group, releases, packages_by_name, create_missing=False):
            updated = True
    return updated


def run_to_fixed_point(
    releases: dict[str, PendingRelease],
    packages_by_name: Mapping[str, Package],
    dependency_graph: DependencyGraph,
    pre_info: PreInfo | None,
    config: Config,
) -> int:
    """Apply the three propagation rules until nothing changes.

    Returns:
        The number of passes it took.
    """
    passes = 0
    while True:
        passes += 1
        dependents_updated = determine_dependents(
            releases, packages_by_name, dependency_graph, pre_info, config
        )
        fixed_updated = match_fixed_constraint(releases, packages_by_name, config)
        links_updated = apply_links(releases, packages_by_name, config.linked)

        logger.debug(
            "propagation pass",
            pass_number=passes,
            dependents_updated=dependents_updated,
            fixed_updated=fixed_updated,
            links_updated=links_updated,
        )
        if not (dependents_updated or fixed_updated or links_updated):
            return passes
