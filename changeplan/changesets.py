"""Changeset aggregation.

Turns the list of changesets into one pending release per package.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping

from .errors import MixedIgnoreChangesetError, UnknownPackageError
from .models import Changeset, Package, PendingRelease, PreState, max_bump


def get_relevant_changesets(
    changesets: list[Changeset],
    ignored: Collection[str],
    pre_state: PreState | None,
) -> list[Changeset]:
    """Validate changesets and drop the ones already consumed in pre mode.

    Raises:
        MixedIgnoreChangesetError: If a changeset targets both ignored and
            non-ignored packages.
    """
    for changeset in changesets:
        ignored_packages: list[str] = []
        not_ignored_packages: list[str] = []
        for release in changeset.releases:
            if release.name in ignored:
                ignored_packages.append(release.name)
            else:
                not_ignored_packages.append(release.name)

        if ignored_packages and not_ignored_packages:
            raise MixedIgnoreChangesetError(
                changeset.id, ignored_packages, not_ignored_packages
            )

    # Changesets released as prereleases earlier stay on disk until pre
    # mode is exited, but must not be applied twice.
    if pre_state is not None and pre_state.mode != "exit":
        used = set(pre_state.changesets)
        return [changeset for changeset in changesets if changeset.id not in used]

    return list(changesets)


def flatten_releases(
    changesets: list[Changeset],
    packages_by_name: Mapping[str, Package],
    ignored: Collection[str],
) -> dict[str, PendingRelease]:
    """Merge changesets into one pending release per package.

    The bump type is the highest requested by any changeset; changeset ids
    are kept in the order they were seen. Ignored packages are skipped;
    if their dependencies move they are added later with type ``none``.

    Raises:
        UnknownPackageError: If a changeset names a package that is not in
            the workspace.
    """
    releases: dict[str, PendingRelease] = {}

    for changeset in changesets:
        for entry in changeset.releases:
            if entry.name in ignored:
                continue

            pkg = packages_by_name.get(entry.name)
            if pkg is None:
                raise UnknownPackageError(changeset.id, entry.name)

            release = releases.get(entry.name)
            if release is None:
                releases[entry.name] = PendingRelease(
                    name=entry.name,
                    type=entry.type,
                    old_version=pkg.version,
                    changesets=[changeset.id],
                )
                continue

            release.type = max_bump(release.type, entry.type)
            if changeset.id not in release.changesets:
                release.changesets.append(changeset.id)

    return releases
