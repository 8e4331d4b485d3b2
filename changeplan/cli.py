"""CLI entry point for changeplan."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click
from pydantic import ValidationError

from .config import Config
from .errors import ChangeplanError
from .logging import configure_logging
from .models import BumpType, Changeset, Package, PreState, ReleasePlan, SnapshotParams
from .plan import assemble_release_plan
from .prerelease import enter_pre, exit_pre
from .toml import load_config


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text())
    except OSError as exc:
        raise click.ClickException(f"Cannot read {path}: {exc.strerror}") from exc
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"Invalid JSON in {path}: {exc}") from exc


def _parse_package(entry: dict[str, Any]) -> Package:
    """Accept either {name, version, manifest} or a package.json mapping."""
    if "manifest" in entry:
        return Package.model_validate(entry)
    return Package.from_package_json(entry)


def load_workspace_input(
    path: Path,
) -> tuple[list[Package], list[Changeset], PreState | None]:
    """Load packages, changesets and pre state from a workspace JSON file.

    The file looks like::

        {
          "packages": [{"name": "a", "version": "1.0.0", "dependencies": {...}}],
          "changesets": [{"id": "...", "summary": "...", "releases": [...]}],
          "preState": {"mode": "pre", "tag": "beta", ...}
        }
    """
    doc = _read_json(path)
    if not isinstance(doc, dict):
        raise click.ClickException(f"{path} must contain a JSON object")
    try:
        packages = [_parse_package(entry) for entry in doc.get("packages", [])]
        changesets = [Changeset.model_validate(c) for c in doc.get("changesets", [])]
        raw_pre_state = doc.get("preState")
        pre_state = (
            PreState.model_validate(raw_pre_state) if raw_pre_state is not None else None
        )
    except (ValidationError, KeyError, TypeError) as exc:
        raise click.ClickException(f"Invalid workspace input in {path}: {exc}") from exc
    return packages, changesets, pre_state


def _load_config(config_path: Path | None) -> Config:
    if config_path is None:
        default = Path.cwd() / "pyproject.toml"
        if not default.exists():
            return Config()
        config_path = default
    return load_config(config_path)


def _print_summary(plan: ReleasePlan) -> None:
    if not plan.releases:
        click.echo("No packages to be bumped.")
        return
    for bump in (BumpType.MAJOR, BumpType.MINOR, BumpType.PATCH, BumpType.NONE):
        releases = [r for r in plan.releases if r.type is bump]
        if not releases:
            continue
        click.echo(f"Packages to be bumped at {bump.value}:")
        for release in releases:
            click.echo(f"  - {release.name} {release.old_version} → {release.new_version}")
    if plan.pre_state is not None:
        click.echo(f"\nPre mode: {plan.pre_state.mode} ({plan.pre_state.tag})")


@click.group()
@click.version_option(package_name="changeplan")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.option("-q", "--quiet", is_flag=True, help="Only log warnings and errors.")
@click.option("--json-log", is_flag=True, help="Emit logs as JSON lines.")
def cli(verbose: bool, quiet: bool, json_log: bool) -> None:
    """Compute release plans for multi-package workspaces from changesets."""
    configure_logging(verbose=verbose, quiet=quiet, json_log=json_log)


@cli.command()
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="pyproject.toml holding [tool.changeplan]. (default: ./pyproject.toml)",
)
@click.option(
    "--snapshot",
    is_flag=False,
    flag_value="",
    default=None,
    metavar="[TAG]",
    help="Compute snapshot versions, optionally tagged.",
)
@click.option("--commit", default=None, help="Commit hash for the {commit} placeholder.")
@click.option(
    "-o",
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the plan as JSON to this file.",
)
def plan(
    input_file: Path,
    config_path: Path | None,
    snapshot: str | None,
    commit: str | None,
    output: Path | None,
) -> None:
    """Compute the release plan for the workspace described in INPUT_FILE."""
    packages, changesets, pre_state = load_workspace_input(input_file)

    snapshot_params: SnapshotParams | None = None
    if snapshot is not None:
        snapshot_params = SnapshotParams(tag=snapshot or None, commit=commit)
    elif commit is not None:
        raise click.UsageError("--commit is only used together with --snapshot")

    try:
        config = _load_config(config_path)
        release_plan = assemble_release_plan(
            changesets, packages, config, pre_state, snapshot_params
        )
    except ChangeplanError as exc:
        raise click.ClickException(exc.render()) from exc

    if output is not None:
        output.write_text(release_plan.to_json() + "\n")
        click.echo(f"✓ Wrote release plan to {output}")
    else:
        _print_summary(release_plan)


@cli.group()
def pre() -> None:
    """Enter or exit prerelease mode."""


@pre.command("enter")
@click.argument("tag")
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def pre_enter(tag: str, input_file: Path) -> None:
    """Print the pre state for entering pre mode with TAG."""
    packages, _, pre_state = load_workspace_input(input_file)
    try:
        state = enter_pre(tag, packages, pre_state)
    except ChangeplanError as exc:
        raise click.ClickException(exc.render()) from exc
    click.echo(state.model_dump_json(by_alias=True, indent=2))


@pre.command("exit")
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def pre_exit(input_file: Path) -> None:
    """Print the pre state with an exit from pre mode requested."""
    _, _, pre_state = load_workspace_input(input_file)
    try:
        state = exit_pre(pre_state)
    except ChangeplanError as exc:
        raise click.ClickException(exc.render()) from exc
    click.echo(state.model_dump_json(by_alias=True, indent=2))
