"""Tests for changeplan.plan."""

from __future__ import annotations

import re
from collections.abc import Callable

import pytest

from changeplan.config import Config
from changeplan.errors import (
    ConfigError,
    MixedIgnoreChangesetError,
    SnapshotTemplateError,
    UnknownPackageError,
    UnresolvedGroupMemberError,
)
from changeplan.models import (
    BumpType,
    Changeset,
    Package,
    PlannedRelease,
    PreState,
    ReleasePlan,
    SnapshotParams,
)
from changeplan.plan import assemble_release_plan


def _by_name(plan: ReleasePlan) -> dict[str, PlannedRelease]:
    return {release.name: release for release in plan.releases}


class TestScenarios:
    def test_simple_dependent_bump(
        self,
        make_package: Callable[..., Package],
        make_changeset: Callable[..., Changeset],
    ) -> None:
        packages = [make_package("a", dependencies={"b": "1.0.0"}), make_package("b")]
        plan = assemble_release_plan(
            [make_changeset("cs", {"b": "minor"})], packages, Config(), None
        )

        releases = _by_name(plan)
        assert releases["b"].new_version == "1.1.0"
        assert releases["b"].changesets == ["cs"]
        assert releases["a"].type is BumpType.PATCH
        assert releases["a"].new_version == "1.0.1"
        assert releases["a"].changesets == []

    def test_peer_major_escalation(
        self,
        make_package: Callable[..., Package],
        make_changeset: Callable[..., Changeset],
    ) -> None:
        packages = [make_package("a", peer_dependencies={"b": "^1.0.0"}), make_package("b")]
        plan = assemble_release_plan(
            [make_changeset("cs", {"b": "major"})], packages, Config(), None
        )

        releases = _by_name(plan)
        assert releases["b"].new_version == "2.0.0"
        assert releases["a"].type is BumpType.MAJOR
        assert releases["a"].new_version == "2.0.0"

    def test_fixed_group_sync(
        self,
        make_package: Callable[..., Package],
        make_changeset: Callable[..., Changeset],
    ) -> None:
        packages = [make_package("x", "1.0.0"), make_package("y", "1.2.0")]
        plan = assemble_release_plan(
            [make_changeset("cs", {"x": "patch"})],
            packages,
            Config(fixed=[["x", "y"]]),
            None,
        )

        releases = _by_name(plan)
        for name in ("x", "y"):
            assert releases[name].type is BumpType.PATCH
            assert releases[name].old_version == "1.2.0"
            assert releases[name].new_version == "1.2.1"

    def test_prerelease_exit_backfill(self, make_package: Callable[..., Package]) -> None:
        packages = [make_package("z", "1.0.1-beta.0"), make_package("w", "1.0.0")]
        state = PreState(
            mode="exit",
            tag="beta",
            initial_versions={"z": "1.0.0", "w": "1.0.0"},
            changesets=["old"],
        )
        plan = assemble_release_plan([], packages, Config(), state)

        assert plan.releases == [
            PlannedRelease(
                name="z",
                type=BumpType.PATCH,
                old_version="1.0.1-beta.0",
                new_version="1.0.1",
                changesets=[],
            )
        ]
        assert plan.pre_state is not None
        assert plan.pre_state.mode == "exit"


class TestPreMode:
    def test_prerelease_versions(
        self,
        make_package: Callable[..., Package],
        make_changeset: Callable[..., Changeset],
    ) -> None:
        packages = [make_package("a", dependencies={"b": "^1.0.0"}), make_package("b")]
        state = PreState(mode="pre", tag="beta", initial_versions={"a": "1.0.0", "b": "1.0.0"})
        plan = assemble_release_plan(
            [make_changeset("c1", {"b": "minor"})], packages, Config(), state
        )

        releases = _by_name(plan)
        assert releases["b"].new_version == "1.1.0-beta.0"
        # The prerelease leaves ^1.0.0, so the dependent is released too.
        assert releases["a"].new_version == "1.0.1-beta.0"
        assert plan.pre_state is not None
        assert plan.pre_state.changesets == ["c1"]
        assert plan.pre_state.initial_versions == {"a": "1.0.0", "b": "1.0.0"}

    def test_consumed_changesets_skipped(
        self,
        make_package: Callable[..., Package],
        make_changeset: Callable[..., Changeset],
    ) -> None:
        packages = [
            make_package("a", "1.0.1-beta.0", dependencies={"b": "^1.0.0"}),
            make_package("b", "1.1.0-beta.0"),
        ]
        state = PreState(
            mode="pre",
            tag="beta",
            initial_versions={"a": "1.0.0", "b": "1.0.0"},
            changesets=["c1"],
        )
        changesets = [
            make_changeset("c1", {"b": "minor"}),
            make_changeset("c2", {"b": "patch"}),
        ]
        plan = assemble_release_plan(changesets, packages, Config(), state)

        releases = _by_name(plan)
        assert [c.id for c in plan.changesets] == ["c2"]
        assert releases["b"].changesets == ["c2"]
        assert releases["b"].new_version == "1.1.0-beta.1"
        assert releases["a"].new_version == "1.0.1-beta.1"
        assert plan.pre_state is not None
        assert plan.pre_state.changesets == ["c1", "c2"]

    def test_exit_applies_all_changesets(
        self,
        make_package: Callable[..., Package],
        make_changeset: Callable[..., Changeset],
    ) -> None:
        packages = [make_package("b", "1.1.0-beta.0")]
        state = PreState(mode="exit", tag="beta", changesets=["c1"])
        plan = assemble_release_plan(
            [make_changeset("c1", {"b": "minor"})], packages, Config(), state
        )

        assert _by_name(plan)["b"].new_version == "1.1.0"
        assert _by_name(plan)["b"].changesets == ["c1"]

    def test_fixed_group_shares_counter(
        self,
        make_package: Callable[..., Package],
        make_changeset: Callable[..., Changeset],
    ) -> None:
        packages = [make_package("x", "1.1.0-beta.2"), make_package("y", "1.0.0")]
        state = PreState(mode="pre", tag="beta")
        plan = assemble_release_plan(
            [make_changeset("cs", {"y": "patch"})],
            packages,
            Config(fixed=[["x", "y"]]),
            state,
        )

        releases = _by_name(plan)
        assert releases["x"].new_version == releases["y"].new_version == "1.1.0-beta.3"


class TestSnapshots:
    def test_default_snapshot_version(
        self,
        make_package: Callable[..., Package],
        make_changeset: Callable[..., Changeset],
    ) -> None:
        plan = assemble_release_plan(
            [make_changeset("cs", {"a": "minor"})], [make_package("a")], Config(), None, "canary"
        )
        assert re.fullmatch(r"0\.0\.0-canary-\d{14}", plan.releases[0].new_version)

    def test_template_with_commit(
        self,
        make_package: Callable[..., Package],
        make_changeset: Callable[..., Changeset],
    ) -> None:
        config = Config.model_validate({"snapshot": {"prereleaseTemplate": "{tag}-{commit}"}})
        plan = assemble_release_plan(
            [make_changeset("cs", {"a": "minor"})],
            [make_package("a")],
            config,
            None,
            SnapshotParams(tag="canary", commit="abc123"),
        )
        assert plan.releases[0].new_version == "0.0.0-canary-abc123"

    def test_calculated_version(
        self,
        make_package: Callable[..., Package],
        make_changeset: Callable[..., Changeset],
    ) -> None:
        config = Config.model_validate(
            {"snapshot": {"use_calculated_version": True, "prerelease_template": "{commit}"}}
        )
        plan = assemble_release_plan(
            [make_changeset("cs", {"a": "minor"})],
            [make_package("a")],
            config,
            None,
            SnapshotParams(commit="abc123"),
        )
        assert plan.releases[0].new_version == "1.1.0-abc123"

    def test_none_release_keeps_version(
        self,
        make_package: Callable[..., Package],
        make_changeset: Callable[..., Changeset],
    ) -> None:
        packages = [make_package("a", dev_dependencies={"b": "1.0.0"}), make_package("b")]
        plan = assemble_release_plan(
            [make_changeset("cs", {"b": "minor"})], packages, Config(), None, True
        )
        assert _by_name(plan)["a"].new_version == "1.0.0"

    def test_template_without_tag_fails(
        self,
        make_package: Callable[..., Package],
        make_changeset: Callable[..., Changeset],
    ) -> None:
        config = Config.model_validate({"snapshot": {"prerelease_template": "{commit}"}})
        with pytest.raises(SnapshotTemplateError):
            assemble_release_plan(
                [make_changeset("cs", {"a": "minor"})],
                [make_package("a")],
                config,
                None,
                SnapshotParams(tag="canary", commit="abc"),
            )


class TestProperties:
    @pytest.fixture
    def workspace(
        self,
        make_package: Callable[..., Package],
        make_changeset: Callable[..., Changeset],
    ) -> tuple[list[Package], list[Changeset], Config]:
        packages = [
            make_package("core", "1.0.0"),
            make_package("utils", "1.3.0", dependencies={"core": "^1.0.0"}),
            make_package("ui", "2.0.0", peer_dependencies={"core": "^1.0.0"}),
            make_package("app", "0.4.0", dependencies={"ui": "workspace:*", "utils": "1.3.0"}),
            make_package("theme", "2.1.0"),
            make_package("docs", "0.0.1", dev_dependencies={"app": "0.4.0"}),
        ]
        changesets = [
            make_changeset("one", {"core": "minor", "theme": "patch"}),
            make_changeset("two", {"utils": "patch"}),
            make_changeset("three", {"core": "patch"}),
        ]
        config = Config(fixed=[["ui", "theme"]], linked=[["utils", "app"]])
        return packages, changesets, config

    def test_input_order_does_not_matter(
        self, workspace: tuple[list[Package], list[Changeset], Config]
    ) -> None:
        packages, changesets, config = workspace
        forward = assemble_release_plan(changesets, packages, config, None)
        backward = assemble_release_plan(changesets[::-1], packages[::-1], config, None)
        assert forward.to_json() == backward.to_json()

    def test_groups_converge(
        self, workspace: tuple[list[Package], list[Changeset], Config]
    ) -> None:
        packages, changesets, config = workspace
        releases = _by_name(assemble_release_plan(changesets, packages, config, None))

        assert releases["ui"].type is releases["theme"].type is BumpType.MAJOR
        assert releases["ui"].old_version == releases["theme"].old_version == "2.1.0"
        assert releases["utils"].type is releases["app"].type
        assert releases["utils"].old_version == releases["app"].old_version == "1.3.0"

    def test_expected_releases(
        self, workspace: tuple[list[Package], list[Changeset], Config]
    ) -> None:
        packages, changesets, config = workspace
        releases = _by_name(assemble_release_plan(changesets, packages, config, None))

        assert releases["core"].new_version == "1.1.0"
        assert releases["core"].changesets == ["one", "three"]
        assert releases["ui"].new_version == "3.0.0"
        assert releases["theme"].new_version == "3.0.0"
        assert releases["utils"].type is BumpType.PATCH
        assert releases["app"].new_version == "1.3.1"
        assert releases["docs"].type is BumpType.NONE
        assert releases["docs"].new_version == "0.0.1"

    def test_severities_never_drop_below_changesets(
        self, workspace: tuple[list[Package], list[Changeset], Config]
    ) -> None:
        packages, changesets, config = workspace
        releases = _by_name(assemble_release_plan(changesets, packages, config, None))
        for changeset in changesets:
            for entry in changeset.releases:
                assert releases[entry.name].type.rank >= entry.type.rank


class TestErrors:
    def test_unknown_package(
        self,
        make_package: Callable[..., Package],
        make_changeset: Callable[..., Changeset],
    ) -> None:
        with pytest.raises(UnknownPackageError, match="ghost"):
            assemble_release_plan(
                [make_changeset("cs", {"ghost": "patch"})], [make_package("a")], Config(), None
            )

    def test_mixed_ignore(
        self,
        make_package: Callable[..., Package],
        make_changeset: Callable[..., Changeset],
    ) -> None:
        with pytest.raises(MixedIgnoreChangesetError):
            assemble_release_plan(
                [make_changeset("cs", {"a": "patch", "b": "patch"})],
                [make_package("a"), make_package("b")],
                Config(ignore=["b"]),
                None,
            )

    def test_unresolved_group_member(
        self,
        make_package: Callable[..., Package],
        make_changeset: Callable[..., Changeset],
    ) -> None:
        with pytest.raises(UnresolvedGroupMemberError, match="ghost"):
            assemble_release_plan(
                [make_changeset("cs", {"x": "patch"})],
                [make_package("x")],
                Config(fixed=[["x", "ghost"]]),
                None,
            )

    def test_unknown_member_of_idle_group(
        self,
        make_package: Callable[..., Package],
        make_changeset: Callable[..., Changeset],
    ) -> None:
        with pytest.raises(UnresolvedGroupMemberError, match="ghost"):
            assemble_release_plan(
                [make_changeset("cs", {"b": "patch"})],
                [make_package("a"), make_package("b")],
                Config(linked=[["a", "ghost"]]),
                None,
            )

    def test_unknown_ignored_package(
        self,
        make_package: Callable[..., Package],
        make_changeset: Callable[..., Changeset],
    ) -> None:
        with pytest.raises(ConfigError, match="ghost"):
            assemble_release_plan(
                [make_changeset("cs", {"a": "patch"})],
                [make_package("a")],
                Config(ignore=["ghost"]),
                None,
            )


def test_no_changesets_no_releases(make_package: Callable[..., Package]) -> None:
    plan = assemble_release_plan([], [make_package("a")], Config(), None)
    assert plan == ReleasePlan(changesets=[], releases=[], pre_state=None)


def test_glob_groups(
    make_package: Callable[..., Package],
    make_changeset: Callable[..., Changeset],
) -> None:
    packages = [
        make_package("@acme/a", "1.0.0"),
        make_package("@acme/b", "1.1.0"),
        make_package("other", "3.0.0"),
    ]
    plan = assemble_release_plan(
        [make_changeset("cs", {"@acme/a": "patch"})],
        packages,
        Config(fixed=[["@acme/*"]]),
        None,
    )
    assert [(r.name, r.new_version) for r in plan.releases] == [
        ("@acme/a", "1.1.1"),
        ("@acme/b", "1.1.1"),
    ]


def test_non_semver_range_always_bumps_dependent(
    make_package: Callable[..., Package],
    make_changeset: Callable[..., Changeset],
) -> None:
    packages = [make_package("a", dependencies={"b": "file:../b"}), make_package("b")]
    plan = assemble_release_plan(
        [make_changeset("cs", {"b": "patch"})], packages, Config(), None
    )
    releases = _by_name(plan)
    assert releases["a"].type is BumpType.PATCH
    assert releases["a"].new_version == "1.0.1"
