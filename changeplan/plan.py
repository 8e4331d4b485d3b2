"""Release plan assembly.

:func:`assemble_release_plan` is the entry point of the planner:
changesets → per-package releases → propagation to a fixed point →
prerelease exit backfill → final version strings.

It does no I/O. Reading changesets, packages and the pre state, and
writing the results back, is left to the caller.
"""

from __future__ import annotations

from collections.abc import Iterable

from .changesets import flatten_releases, get_relevant_changesets
from .config import Config
from .graph import get_dependents_graph
from .logging import get_logger
from .models import (
    Changeset,
    Package,
    PendingRelease,
    PlannedRelease,
    PreInfo,
    PreState,
    ReleasePlan,
    SnapshotParams,
)
from .prerelease import backfill_exiting_prereleases, get_pre_info
from .propagation import run_to_fixed_point
from .versions import get_new_version, get_snapshot_suffix, get_snapshot_version

logger = get_logger(__name__)


def _snapshot_params(snapshot: SnapshotParams | str | bool | None) -> SnapshotParams | None:
    """Normalize the snapshot argument.

    None or False → not a snapshot release; True → snapshot without a tag;
    a string → snapshot with that tag.
    """
    if snapshot is None or snapshot is False:
        return None
    if snapshot is True:
        return SnapshotParams()
    if isinstance(snapshot, str):
        return SnapshotParams(tag=snapshot)
    return snapshot


def assemble_release_plan(
    changesets: list[Changeset],
    packages: Iterable[Package],
    config: Config,
    pre_state: PreState | None,
    snapshot: SnapshotParams | str | bool | None = None,
) -> ReleasePlan:
    """Compute the release plan for a workspace.

    Args:
        changesets: Pending changesets.
        packages: Every workspace package.
        config: Planner configuration.
        pre_state: Current pre state, or None outside pre mode. Passed
            explicitly so callers cannot forget it.
        snapshot: Snapshot parameters; see :func:`_snapshot_params`.

    Returns:
        The plan, with releases sorted by package name.

    Raises:
        UnresolvedGroupMemberError: If a fixed or linked group names a
            package that is not in ``packages``, releasing or not.
        ChangeplanError: On any other invalid input. No partial plan is
            returned.
    """
    # Sorted inputs make the plan independent of the order they came in.
    changesets = sorted(changesets, key=lambda c: c.id)
    packages_by_name = {pkg.name: pkg for pkg in sorted(packages, key=lambda p: p.name)}
    config = config.expand_patterns(packages_by_name)
    config.validate_packages(packages_by_name)
    snapshot_params = _snapshot_params(snapshot)

    relevant = get_relevant_changesets(changesets, config.ignore, pre_state)
    pre_info = get_pre_info(changesets, packages_by_name, config, pre_state)
    releases = flatten_releases(relevant, packages_by_name, config.ignore)

    dependency_graph = get_dependents_graph(
        packages_by_name.values(),
        workspace_protocol_only=config.bump_versions_with_workspace_protocol_only,
    )

    passes = run_to_fixed_point(
        releases, packages_by_name, dependency_graph, pre_info, config
    )
    backfill_exiting_prereleases(
        releases, packages_by_name.values(), pre_info, config.ignore
    )

    logger.debug(
        "release plan assembled",
        changesets=len(relevant),
        releases=len(releases),
        passes=passes,
    )

    snapshot_suffix = (
        get_snapshot_suffix(config.snapshot.prerelease_template, snapshot_params)
        if snapshot_params is not None
        else None
    )

    return ReleasePlan(
        changesets=relevant,
        releases=[
            _finalize(
                releases[name],
                pre_info,
                snapshot_suffix,
                config.snapshot.use_calculated_version,
            )
            for name in sorted(releases)
        ],
        pre_state=pre_info.state if pre_info is not None else None,
    )


def _finalize(
    release: PendingRelease,
    pre_info: PreInfo | None,
    snapshot_suffix: str | None,
    use_calculated_version: bool,
) -> PlannedRelease:
    if snapshot_suffix:
        new_version = get_snapshot_version(
            release, pre_info, use_calculated_version, snapshot_suffix
        )
    else:
        new_version = get_new_version(release, pre_info)
    return PlannedRelease(
        name=release.name,
        type=release.type,
        old_version=release.old_version,
        new_version=new_version,
        changesets=list(release.changesets),
    )
