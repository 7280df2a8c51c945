"""Tests for feature-driven path exclusion.

Covers:
- compute_exclusions ordering and de-duplication
- Every listed path is removed for a disabled feature
- Missing paths are tolerated and reported
- Paths outside the target directory are refused
"""

from __future__ import annotations

from pathlib import Path

import pytest

from blitzgen.features import FEATURE_EXCLUSIONS, FeatureKey, FeatureOptions
from blitzgen.models import TransformReport
from blitzgen.scaffolder.exclusions import apply_exclusions, compute_exclusions


pytestmark = pytest.mark.unit


class TestComputeExclusions:
    def test_nothing_disabled(self):
        assert compute_exclusions(FeatureOptions()) == ()

    def test_single_feature(self):
        paths = compute_exclusions(FeatureOptions(admin=False))
        assert paths == FEATURE_EXCLUSIONS[FeatureKey.ADMIN]

    def test_catalog_order_across_features(self):
        paths = compute_exclusions(FeatureOptions(uploads=False, testing=False))
        testing = FEATURE_EXCLUSIONS[FeatureKey.TESTING]
        uploads = FEATURE_EXCLUSIONS[FeatureKey.UPLOADS]
        assert paths == testing + uploads

    def test_no_duplicates(self):
        paths = compute_exclusions(FeatureOptions.from_selection([]))
        assert len(paths) == len(set(paths))


class TestApplyExclusions:
    @pytest.mark.asyncio
    async def test_removes_every_path(self, template_dir: Path):
        features = FeatureOptions(admin=False, uploads=False)
        paths = compute_exclusions(features)
        report = TransformReport()

        removed = await apply_exclusions(template_dir, paths, report)

        assert removed == list(paths)
        for rel in paths:
            assert not (template_dir / rel).exists(), rel
        assert report.paths_missing == []

    @pytest.mark.asyncio
    async def test_unrelated_paths_untouched(self, template_dir: Path):
        await apply_exclusions(template_dir, compute_exclusions(FeatureOptions(testing=False)))
        assert (template_dir / "apps/api/src/routes/stats.ts").exists()
        assert (template_dir / "apps/api/src/app.ts").exists()

    @pytest.mark.asyncio
    async def test_missing_paths_tolerated(self, tmp_path: Path):
        (tmp_path / "vitest.shared.ts").write_text("export {}\n")
        report = TransformReport()

        removed = await apply_exclusions(
            tmp_path, ["vitest.workspace.ts", "vitest.shared.ts"], report
        )

        assert removed == ["vitest.shared.ts"]
        assert report.paths_missing == ["vitest.workspace.ts"]
        assert report.missing_count == 1

    @pytest.mark.asyncio
    async def test_directory_with_parentheses(self, tmp_path: Path):
        admin = tmp_path / "apps/web/src/app/(admin)/users"
        admin.mkdir(parents=True)
        (admin / "page.tsx").write_text("export default function Page() {}\n")

        removed = await apply_exclusions(tmp_path, ["apps/web/src/app/(admin)"])

        assert removed == ["apps/web/src/app/(admin)"]
        assert (tmp_path / "apps/web/src/app").is_dir()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rel", ["../outside", "apps/../..", "."])
    async def test_escaping_path_rejected(self, tmp_path: Path, rel: str):
        root = tmp_path / "root"
        root.mkdir()
        with pytest.raises(ValueError):
            await apply_exclusions(root, [rel])
