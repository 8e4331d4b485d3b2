"""Dependency graph utilities.

Builds the reverse dependency graph used for bump propagation: for every
workspace package, the list of workspace packages that depend on it.
"""

from __future__ import annotations

from collections.abc import Iterable

from .logging import get_logger
from .models import DependencyGraph, DependencyKind, Package
from .ranges import satisfies

logger = get_logger(__name__)

WORKSPACE_PROTOCOL = "workspace:"


def is_workspace_range(version_range: str) -> bool:
    return version_range.startswith(WORKSPACE_PROTOCOL)


def get_dependents_graph(
    packages: Iterable[Package],
    workspace_protocol_only: bool = False,
) -> DependencyGraph:
    """Build a map of package name → packages that depend on it.

    Edges are collected across all four dependency kinds. Dependencies
    outside the workspace are not tracked. A package listing the same
    dependency under several kinds gets a single edge.

    Args:
        packages: All workspace packages.
        workspace_protocol_only: Only count dependencies declared with the
            ``workspace:`` protocol (pnpm's ``link-workspace-packages:
            false``, Yarn Berry without transparent workspaces).

    Returns:
        Every package name mapped to its sorted list of dependents. Packages
        nobody depends on map to an empty list.

    Example:
        If A depends on B, and B depends on C:
        get_dependents_graph([A, B, C]) → {A: [], B: [A], C: [B]}
    """
    by_name = {pkg.name: pkg for pkg in packages}
    dependents: dict[str, set[str]] = {name: set() for name in by_name}

    for pkg in by_name.values():
        for kind in DependencyKind:
            for dep_name, version_range in pkg.manifest.ranges(kind).items():
                dependency = by_name.get(dep_name)
                # External packages are never released by us
                if dependency is None:
                    continue
                if workspace_protocol_only and not is_workspace_range(version_range):
                    continue

                dependents[dep_name].add(pkg.name)
                _warn_if_out_of_range(pkg, kind, dependency, version_range)

    return {name: sorted(names) for name, names in dependents.items()}


def _warn_if_out_of_range(
    pkg: Package, kind: DependencyKind, dependency: Package, version_range: str
) -> None:
    """Log dependencies whose range excludes the dependency's current version."""
    if is_workspace_range(version_range):
        version_range = version_range.removeprefix(WORKSPACE_PROTOCOL)
        if version_range in ("*", "^", "~"):
            return
    if not satisfies(dependency.version, version_range):
        logger.warning(
            "dependency range does not match the current version",
            package=pkg.name,
            dependency=dependency.name,
            kind=kind.value,
            range=version_range,
            version=dependency.version,
        )
