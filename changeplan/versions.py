"""Version parsing, bumping and snapshot version utilities.

Bumps follow npm's increment rules: bumping a prerelease version
"finishes" it when the prerelease already sits on the target version
(``1.0.0-beta.2`` + patch → ``1.0.0``, ``2.0.0-rc.0`` + major → ``2.0.0``).
"""

from __future__ import annotations

from datetime import datetime, timezone

import semver

from .errors import InternalInvariantError, InvalidVersionError, SnapshotTemplateError
from .models import BumpType, PendingRelease, PreInfo, SnapshotParams

SNAPSHOT_PLACEHOLDERS = ("commit", "tag", "timestamp", "datetime")


def parse_version(version_str: str) -> semver.Version:
    """Parse a version string into a semver.Version object.

    Incomplete versions are padded with zeros ("1.2" → "1.2.0").

    Raises:
        InvalidVersionError: If the string is not a valid version.
    """
    try:
        return semver.Version.parse(version_str, optional_minor_and_patch=True)
    except (ValueError, TypeError) as exc:
        raise InvalidVersionError(version_str) from exc


def bump_version(version_str: str, bump: BumpType) -> str:
    """Increment a version by one bump type.

    Examples:
        "1.2.3", patch → "1.2.4"
        "1.2.3", minor → "1.3.0"
        "1.2.3", major → "2.0.0"
        "1.0.0-beta.1", patch → "1.0.0"
        "1.1.0-beta.1", minor → "1.1.0"
        "1.1.1-beta.1", minor → "1.2.0"
        "none" returns the version unchanged.
    """
    version = parse_version(version_str)
    if bump is BumpType.NONE:
        return str(version)

    released = version.replace(prerelease=None, build=None)
    if version.prerelease:
        if bump is BumpType.PATCH:
            return str(released)
        if bump is BumpType.MINOR and version.patch == 0:
            return str(released)
        if bump is BumpType.MAJOR and version.minor == 0 and version.patch == 0:
            return str(released)

    if bump is BumpType.MAJOR:
        return str(released.bump_major())
    if bump is BumpType.MINOR:
        return str(released.bump_minor())
    return str(released.bump_patch())


def increment_version(release: PendingRelease, pre_info: PreInfo | None) -> str:
    """Compute the next version of a pending release.

    In pre mode the prerelease tag and the package's counter are appended
    (``1.1.0-beta.0``). Once pre mode is being exited, versions are final.
    """
    if release.type is BumpType.NONE:
        return release.old_version

    version = bump_version(release.old_version, release.type)
    if pre_info is not None and pre_info.state.mode != "exit":
        pre_version = pre_info.pre_versions.get(release.name)
        if pre_version is None:
            raise InternalInvariantError(
                f"pre version for {release.name} does not exist when "
                "preState is defined"
            )
        version = f"{version}-{pre_info.state.tag}.{pre_version}"
    return version


def get_new_version(release: PendingRelease, pre_info: PreInfo | None) -> str:
    if release.type is BumpType.NONE:
        return release.old_version
    return increment_version(release, pre_info)


def get_snapshot_version(
    release: PendingRelease,
    pre_info: PreInfo | None,
    use_calculated_version: bool,
    snapshot_suffix: str,
) -> str:
    """Compute a snapshot version such as ``0.0.0-canary-20240102030405``.

    The base is ``0.0.0`` unless ``use_calculated_version`` is set, so a
    snapshot never sorts into the package's real release line (a consumer
    on ``^1.0.0-beta`` must not resolve to a snapshot).
    """
    if release.type is BumpType.NONE:
        return release.old_version

    base = increment_version(release, pre_info) if use_calculated_version else "0.0.0"
    return f"{base}-{snapshot_suffix}"


def get_snapshot_suffix(
    template: str | None,
    params: SnapshotParams,
    now: datetime | None = None,
) -> str:
    """Render the suffix appended to snapshot versions.

    Placeholders: ``{tag}``, ``{commit}``, ``{timestamp}`` (epoch
    milliseconds) and ``{datetime}`` (UTC, ``YYYYMMDDHHMMSS``). Without a
    template the suffix is the tag and datetime joined with ``-``.

    Raises:
        SnapshotTemplateError: If the template drops ``{tag}`` while a tag
            is given, or uses a placeholder that has no value.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    now = now.astimezone(timezone.utc)

    values: dict[str, str | None] = {
        "commit": params.commit,
        "tag": params.tag,
        "timestamp": str(int(now.timestamp()) * 1000 + now.microsecond // 1000),
        "datetime": now.strftime("%Y%m%d%H%M%S"),
    }

    if not template:
        return "-".join(v for v in (values["tag"], values["datetime"]) if v)

    if "{tag}" not in template and values["tag"] is not None:
        raise SnapshotTemplateError(
            'Failed to compose snapshot version: "{tag}" placeholder is missing, '
            f"but the snapshot parameter is defined (value: '{values['tag']}')",
            template=template,
        )

    suffix = template
    for key in SNAPSHOT_PLACEHOLDERS:
        placeholder = "{" + key + "}"
        if placeholder not in suffix:
            continue
        value = values[key]
        if value is None:
            raise SnapshotTemplateError(
                f'Failed to compose snapshot version: "{placeholder}" placeholder '
                "is used without having a value defined!",
                template=template,
            )
        suffix = suffix.replace(placeholder, value)
    return suffix
