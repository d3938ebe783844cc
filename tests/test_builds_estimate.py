"""Tests for build duration estimates and the progress heuristic."""

from datetime import datetime, timedelta, timezone

import pytest

from homelab_iso.builds.estimate import (
    estimate_build_minutes,
    estimate_completion,
    heuristic_progress,
    stage_for_progress,
)
from homelab_iso.builds.models import BuildConfig
from homelab_iso.catalog import default_catalog


class TestEstimateBuildMinutes:
    """Test the additive duration model."""

    def test_components_only(self, catalog) -> None:
        config = BuildConfig(components=("a", "b"))
        # 30 base + 2 per component + 15 assembly
        assert estimate_build_minutes(config, catalog) == 49

    def test_variants_add_size(self, catalog) -> None:
        config = BuildConfig(components=("a",), variants=("m1:latest",))
        # 30 + 2 + 5 + 4.5 GB + 15 = 56.5, rounded up
        assert estimate_build_minutes(config, catalog) == 57

    def test_default_catalog_sizes(self) -> None:
        config = BuildConfig(
            components=("ollama", "openwebui"),
            variants=("qwen3:8b", "gpt-oss:20b"),
        )
        # 30 + 4 + 10 + 16.7 + 15 = 75.7
        assert estimate_build_minutes(config, default_catalog()) == 76


class TestEstimateCompletion:
    def test_adds_minutes(self) -> None:
        now = datetime(2025, 1, 1, tzinfo=timezone.utc)
        assert estimate_completion(49, now) == now + timedelta(minutes=49)


class TestHeuristicProgress:
    """Test the time-based fallback progress."""

    def test_linear_until_cap(self) -> None:
        assert heuristic_progress(0, 50) == 0
        assert heuristic_progress(25 * 60, 50) == 50

    def test_capped_at_85(self) -> None:
        assert heuristic_progress(50 * 60, 50) == 85
        assert heuristic_progress(10 * 3600, 50) == 85

    def test_zero_estimate(self) -> None:
        assert heuristic_progress(600, 0) == 0


class TestStageForProgress:
    @pytest.mark.parametrize(
        ("progress", "stage"),
        [
            (0, "Initializing"),
            (19, "Initializing"),
            (20, "Downloading dependencies"),
            (45, "Installing container images"),
            (60, "Assembling artifact"),
            (85, "Uploading"),
            (90, "Finalizing"),
            (100, "Finalizing"),
        ],
    )
    def test_breakpoints(self, progress, stage) -> None:
        assert stage_for_progress(progress) == stage
