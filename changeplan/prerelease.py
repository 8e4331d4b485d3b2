"""Prerelease ("pre mode") coordination.

While in pre mode every release gets a ``-{tag}.{counter}`` suffix. The
counter of a package is derived from its current version: ``1.0.0`` gives
0, ``1.1.0-beta.0`` gives 1, ``1.1.0-beta.4`` gives 5. Members of a fixed
or linked group share the highest counter of the group so that they keep
moving in lockstep.

The pre state itself is a plain value: it comes in as an argument and the
updated copy goes out in the release plan. Persisting it is up to the
caller.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping

from .config import Config
from .errors import (
    InternalInvariantError,
    PreEnterError,
    PreExitError,
    UnresolvedGroupMemberError,
)
from .logging import get_logger
from .models import (
    BumpType,
    Changeset,
    Package,
    PendingRelease,
    PreInfo,
    PreState,
)
from .versions import parse_version

logger = get_logger(__name__)


def get_pre_version(version: str) -> int:
    """Return the next prerelease counter for a version.

    Examples:
        "1.0.0" → 0
        "1.0.0-beta" → 0
        "1.0.0-beta.0" → 1
        "2.1.0-rc.7" → 8
    """
    prerelease = parse_version(version).prerelease
    identifiers = prerelease.split(".") if prerelease else []
    if len(identifiers) < 2:
        return 0
    if not identifiers[1].isdigit():
        raise InternalInvariantError(
            f"prerelease counter of {version!r} is not a number"
        )
    return int(identifiers[1]) + 1


def get_highest_pre_version(
    group: list[str], packages_by_name: Mapping[str, Package]
) -> int:
    highest = 0
    for name in group:
        pkg = packages_by_name.get(name)
        if pkg is None:
            raise UnresolvedGroupMemberError(group, name)
        highest = max(highest, get_pre_version(pkg.version))
    return highest


def get_pre_info(
    changesets: list[Changeset],
    packages_by_name: Mapping[str, Package],
    config: Config,
    pre_state: PreState | None,
) -> PreInfo | None:
    """Derive this computation's prerelease info, or None outside pre mode.

    The returned state is an updated copy: it records every supplied
    changeset as consumed and fills in the initial version of packages
    added to the workspace since pre mode was entered.
    """
    if pre_state is None:
        return None

    initial_versions = dict(pre_state.initial_versions)
    for name, pkg in packages_by_name.items():
        initial_versions.setdefault(name, pkg.version)

    state = pre_state.model_copy(
        update={
            "changesets": [changeset.id for changeset in changesets],
            "initial_versions": initial_versions,
        }
    )

    pre_versions = {
        name: get_pre_version(pkg.version) for name, pkg in packages_by_name.items()
    }
    for group in [*config.fixed, *config.linked]:
        highest = get_highest_pre_version(group, packages_by_name)
        for name in group:
            pre_versions[name] = highest

    return PreInfo(state=state, pre_versions=pre_versions)


def backfill_exiting_prereleases(
    releases: dict[str, PendingRelease],
    packages: Iterable[Package],
    pre_info: PreInfo | None,
    ignored: Collection[str],
) -> None:
    """Give every package that shipped a prerelease a real release on exit.

    When exiting pre mode, a package that had a prerelease but no bump in
    this run would otherwise stay on its prerelease version forever.
    """
    if pre_info is None or pre_info.state.mode != "exit":
        return

    for pkg in packages:
        if pre_info.pre_versions.get(pkg.name, 0) == 0:
            continue
        existing = releases.get(pkg.name)
        if existing is None:
            logger.debug("backfilling exited prerelease", package=pkg.name)
            releases[pkg.name] = PendingRelease(
                name=pkg.name,
                type=BumpType.PATCH,
                old_version=pkg.version,
                changesets=[],
            )
        elif existing.type is BumpType.NONE and pkg.name not in ignored:
            logger.debug("backfilling exited prerelease", package=pkg.name)
            existing.type = BumpType.PATCH


def enter_pre(
    tag: str, packages: Iterable[Package], pre_state: PreState | None = None
) -> PreState:
    """Return the pre state for entering pre mode with ``tag``.

    Entering while an exit is pending resumes pre mode and keeps the
    recorded initial versions and consumed changesets.

    Raises:
        PreEnterError: If already in pre mode.
    """
    if pre_state is not None and pre_state.mode == "pre":
        raise PreEnterError(
            "`changeplan pre enter` cannot be run when in pre mode. "
            "If you want to exit pre mode, run `changeplan pre exit`."
        )
    if pre_state is not None:
        return pre_state.model_copy(update={"mode": "pre", "tag": tag})

    return PreState(
        mode="pre",
        tag=tag,
        initial_versions={pkg.name: pkg.version for pkg in packages},
        changesets=[],
    )


def exit_pre(pre_state: PreState | None) -> PreState:
    """Return the pre state with an exit requested.

    Raises:
        PreExitError: If not in pre mode.
    """
    if pre_state is None:
        raise PreExitError(
            "`changeplan pre exit` can only be run when in pre mode. "
            "If you want to enter pre mode, run `changeplan pre enter`."
        )
    return pre_state.model_copy(update={"mode": "exit"})
