"""Error types for changeplan.

Every error carries a ``CP-*`` code, a human-readable message and an
optional hint. All of them are fatal to a single plan computation: the
engine never returns a partial plan.

Usage::

    from changeplan.errors import E, UnknownPackageError

    raise UnknownPackageError(changeset_id="brave-lions-sing", package="pkg-a")
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Diagnostic codes for every error changeplan can raise."""

    UNKNOWN_PACKAGE = "CP-UNKNOWN-PACKAGE"
    MIXED_IGNORE_CHANGESET = "CP-MIXED-IGNORE-CHANGESET"
    UNRESOLVED_GROUP_MEMBER = "CP-UNRESOLVED-GROUP-MEMBER"
    SNAPSHOT_TEMPLATE = "CP-SNAPSHOT-TEMPLATE"
    INTERNAL_INVARIANT = "CP-INTERNAL-INVARIANT"
    INVALID_VERSION = "CP-INVALID-VERSION"
    CONFIG_INVALID = "CP-CONFIG-INVALID"
    PRE_ENTER = "CP-PRE-ENTER"
    PRE_EXIT = "CP-PRE-EXIT"


# Shorter alias for imports.
E = ErrorCode


class ChangeplanError(Exception):
    """Base exception for all changeplan errors.

    Args:
        code: The error code.
        message: What went wrong.
        hint: Optional suggestion for how to fix it.
    """

    def __init__(self, code: ErrorCode, message: str, hint: str = "") -> None:
        self.code = code
        self.message = message
        self.hint = hint
        super().__init__(f"[{code.value}] {message}")

    def render(self) -> str:
        """Return the message followed by the hint, if any."""
        if self.hint:
            return f"{self}\n  hint: {self.hint}"
        return str(self)


class UnknownPackageError(ChangeplanError):
    """A changeset mentions a package that is not part of the workspace."""

    def __init__(self, changeset_id: str, package: str) -> None:
        self.changeset_id = changeset_id
        self.package = package
        super().__init__(
            E.UNKNOWN_PACKAGE,
            f'"{changeset_id}" changeset mentions a release for a package '
            f'"{package}" but such a package could not be found.',
            hint="Fix the package name in the changeset or delete the changeset.",
        )


class MixedIgnoreChangesetError(ChangeplanError):
    """A changeset targets both ignored and non-ignored packages."""

    def __init__(
        self, changeset_id: str, ignored: list[str], not_ignored: list[str]
    ) -> None:
        self.changeset_id = changeset_id
        self.ignored = ignored
        self.not_ignored = not_ignored
        super().__init__(
            E.MIXED_IGNORE_CHANGESET,
            f"Found mixed changeset {changeset_id}\n"
            f"Found ignored packages: {' '.join(ignored)}\n"
            f"Found not ignored packages: {' '.join(not_ignored)}\n"
            "Mixed changesets that contain both ignored and not ignored "
            "packages are not allowed",
            hint="Split the changeset into one for ignored packages and one for the rest.",
        )


class UnresolvedGroupMemberError(ChangeplanError):
    """A fixed or linked group names a package that does not exist."""

    def __init__(self, group: list[str], package: str) -> None:
        self.group = list(group)
        self.package = package
        super().__init__(
            E.UNRESOLVED_GROUP_MEMBER,
            f'Could not resolve package "{package}" in package group '
            f"[{', '.join(group)}]",
            hint="Remove the package from the group or fix its name.",
        )


class SnapshotTemplateError(ChangeplanError):
    """The snapshot prerelease template cannot be rendered."""

    def __init__(self, message: str, template: str | None = None) -> None:
        self.template = template
        super().__init__(E.SNAPSHOT_TEMPLATE, message)


class InternalInvariantError(ChangeplanError):
    """An internal consistency check failed.

    This points at a bug in how the inputs were built (usually the
    dependency graph), not at something the user can fix.
    """

    def __init__(self, message: str) -> None:
        super().__init__(E.INTERNAL_INVARIANT, message)


class InvalidVersionError(ChangeplanError):
    """A version string is not valid semver."""

    def __init__(self, version: str, package: str | None = None) -> None:
        self.version = version
        self.package = package
        where = f" for package {package!r}" if package else ""
        super().__init__(E.INVALID_VERSION, f"Invalid version {version!r}{where}")


class ConfigError(ChangeplanError):
    """The configuration is malformed or inconsistent with the workspace."""

    def __init__(self, message: str, hint: str = "") -> None:
        super().__init__(E.CONFIG_INVALID, message, hint)


class PreEnterError(ChangeplanError):
    """Pre mode cannot be entered from the current state."""

    def __init__(self, message: str) -> None:
        super().__init__(E.PRE_ENTER, message)


class PreExitError(ChangeplanError):
    """Pre mode cannot be exited from the current state."""

    def __init__(self, message: str) -> None:
        super().__init__(E.PRE_EXIT, message)
