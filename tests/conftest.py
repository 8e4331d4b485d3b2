"""Shared test fixtures."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator

import pytest
import structlog

from changeplan.logging import ROOT_LOGGER
from changeplan.models import BumpType, Changeset, Package, PackageManifest, Release


@pytest.fixture
def make_package() -> Callable[..., Package]:
    """Build a Package; dependency maps are passed as manifest keywords."""

    def _make(name: str, version: str = "1.0.0", **manifest: dict[str, str]) -> Package:
        return Package(name=name, version=version, manifest=PackageManifest(**manifest))

    return _make


@pytest.fixture
def make_changeset() -> Callable[..., Changeset]:
    """Build a Changeset from an id and a {package: bump} mapping."""

    def _make(changeset_id: str, releases: dict[str, str], summary: str = "") -> Changeset:
        return Changeset(
            id=changeset_id,
            summary=summary or f"summary of {changeset_id}",
            releases=[Release(name=n, type=BumpType(t)) for n, t in releases.items()],
        )

    return _make


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    """Undo configure_logging() calls made by a test."""
    yield
    structlog.reset_defaults()
    root = logging.getLogger(ROOT_LOGGER)
    for handler in root.handlers[:]:
        root.removeHandler(handler)
    root.setLevel(logging.NOTSET)
    root.propagate = True
