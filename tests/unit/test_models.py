"""Tests for cachepush data models."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from cachepush.models.artifacts import Artifact, ArtifactKind, Tier, format_iec
from cachepush.models.objects import Commit, Destination, Tree
from cachepush.models.outcomes import (
    BatchReport,
    PublishResult,
    PublishStatus,
    WriteReceipt,
)


class TestFormatIec:
    @pytest.mark.parametrize(
        ("size", "expected"),
        [
            (0, "0B"),
            (50, "50B"),
            (1023, "1023B"),
            (1024, "1.0KiB"),
            (5 * 1024 * 1024, "5.0MiB"),
            (100 * 1024 * 1024, "100.0MiB"),
            (3 * 1024**3, "3.0GiB"),
        ],
    )
    def test_units(self, size: int, expected: str):
        assert format_iec(size) == expected


class TestArtifact:
    def test_frozen(self):
        artifact = Artifact(
            local_path=Path("out/abc.nar"),
            size_bytes=10,
            remote_path="nar/abc.nar",
            kind=ArtifactKind.ARCHIVE,
            content_key="abc",
            tier=Tier.SMALL,
        )
        assert artifact.commit_message == "Add abc.nar"
        with pytest.raises(ValidationError):
            artifact.size_bytes = 11


class TestObjects:
    def test_tree_lookup(self):
        tree = Tree(sha="t1", entries={"nar/a.nar": "b1"})
        assert tree.get("nar/a.nar") == "b1"
        assert tree.get("nar/b.nar") is None
        assert len(tree) == 1

    def test_root_commit_has_no_parent(self):
        assert Commit(sha="c1", tree="t1", parents=[], message="init").parent is None

    def test_destination_slug(self):
        assert Destination(owner="org", repo="cache").slug == "org/cache"


class TestOutcomes:
    def test_success_statuses(self):
        assert PublishStatus.PUBLISHED.is_success
        assert PublishStatus.UNCHANGED.is_success
        assert PublishStatus.DRY_RUN.is_success
        assert not PublishStatus.SKIPPED.is_success
        assert not PublishStatus.CONTENTION_EXHAUSTED.is_success

    def test_receipt_changed(self):
        assert WriteReceipt(remote_path="a", blob_sha="b", commit_sha="c").changed
        assert not WriteReceipt(remote_path="a", blob_sha="b").changed

    def test_batch_counts(self):
        report = BatchReport(
            results=[
                PublishResult(local_path=Path("a"), status=PublishStatus.PUBLISHED),
                PublishResult(local_path=Path("b"), status=PublishStatus.UNCHANGED),
                PublishResult(local_path=Path("c"), status=PublishStatus.REJECTED),
                PublishResult(local_path=Path("d"), status=PublishStatus.SKIPPED),
            ]
        )
        assert report.succeeded == 2
        assert report.failed == 2
        assert not report.ok
        assert [r.local_path.name for r in report.by_status(PublishStatus.REJECTED)] == ["c"]

    def test_empty_batch_is_ok(self):
        assert BatchReport().ok
