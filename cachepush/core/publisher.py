"""Publish orchestrator — the batch-level coordinator.

The Publisher expands the requested files and directories, resolves and
classifies every artifact, and dispatches each one to the writer for its
tier.  Failures are isolated per artifact: the batch always runs to the
end and reports every outcome.

Ordering
--------
- Content (archives, logs, manifests, indexes) is published before
  metadata records (``.narinfo``), so a record never becomes visible
  before the archive it describes.  A record whose archive failed in the
  same batch is skipped.
- Artifacts that resolve to the same remote path are written one after
  another, in input order.  Different paths may be written concurrently
  when ``workers > 1``.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from cachepush.core.errors import (
    ContentionExhaustedError,
    NotFoundError,
    PublishError,
    RejectedSizeError,
    TransportError,
)
from cachepush.core.path_resolver import PathResolver
from cachepush.core.retry import OptimisticLoop, RetryPolicy
from cachepush.core.large_writer import LargeObjectWriter
from cachepush.core.small_writer import SmallObjectWriter
from cachepush.core.tiers import LARGE_LIMIT, classify
from cachepush.models.artifacts import Artifact, ArtifactKind, Tier, format_iec
from cachepush.models.outcomes import (
    BatchReport,
    PublishResult,
    PublishStatus,
    WriteReceipt,
)
from cachepush.store.base import RemoteStore

logger = logging.getLogger(__name__)

_Lane = list[tuple[int, Artifact]]


class Publisher:
    """Publishes batches of artifacts to one branch of a remote store.

    Parameters
    ----------
    store:
        The remote store.  May be ``None`` only in dry-run mode.
    branch:
        Target branch.
    resolver:
        Maps local files to remote paths.  Defaults to type-based layout.
    policy:
        Retry budget and backoff for conflicting writes.
    dry_run:
        Resolve and classify only; never call the store.
    workers:
        Number of remote paths written concurrently.
    sleep:
        Backoff sleep function (tests pass a no-op).
    """

    def __init__(
        self,
        store: RemoteStore | None,
        *,
        branch: str = "main",
        resolver: PathResolver | None = None,
        policy: RetryPolicy | None = None,
        dry_run: bool = False,
        workers: int = 1,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if store is None and not dry_run:
            raise ValueError("A store is required unless dry_run is set")
        self.branch = branch
        self.resolver = resolver or PathResolver()
        self.dry_run = dry_run
        self.workers = max(1, workers)

        loop = OptimisticLoop(policy, sleep=sleep)
        self._small = SmallObjectWriter(store, branch, loop) if store is not None else None
        self._large = LargeObjectWriter(store, branch, loop) if store is not None else None

        # Tier -> writer.  Rejected artifacts fail before any store call.
        self._dispatch: dict[Tier, Callable[[Artifact], WriteReceipt]] = {
            Tier.SMALL: self._write_small,
            Tier.LARGE: self._write_large,
            Tier.REJECTED: self._reject,
        }

    # ------------------------------------------------------------------
    # Enumeration and planning (no network)
    # ------------------------------------------------------------------

    def collect(self, paths: Iterable[Path | str]) -> tuple[list[Path], list[Path]]:
        """Expand *paths* into files, depth-first.

        Returns ``(files, missing)``.  Directory members are visited in
        sorted order; symlinks found while walking a directory are skipped.
        """
        files: list[Path] = []
        missing: list[Path] = []
        for raw in paths:
            path = Path(raw)
            if path.is_dir():
                files.extend(_walk(path))
            elif path.is_file():
                files.append(path)
            else:
                missing.append(path)
        return files, missing

    def plan_file(self, path: Path) -> Artifact:
        """Resolve and classify one local file."""
        resolved = self.resolver.describe(path)
        size = path.stat().st_size
        return Artifact(
            local_path=path,
            size_bytes=size,
            remote_path=resolved.remote_path,
            kind=resolved.kind,
            content_key=resolved.content_key,
            tier=classify(size),
        )

    def plan(self, paths: Iterable[Path | str]) -> tuple[list[Artifact], list[Path]]:
        """Plan every file under *paths*.  Returns ``(artifacts, missing)``.

        A file that disappears or cannot be inspected between collection
        and planning is reported as missing instead of aborting the batch.
        """
        files, missing = self.collect(paths)
        artifacts: list[Artifact] = []
        for path in files:
            try:
                artifacts.append(self.plan_file(path))
            except OSError as exc:
                logger.warning("Cannot inspect %s: %s", path, exc)
                missing.append(path)
        return artifacts, missing

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------

    def publish(self, paths: Iterable[Path | str]) -> BatchReport:
        """Publish every file under *paths* and report each outcome."""
        artifacts, missing = self.plan(paths)
        outcomes: dict[int, PublishResult] = {}

        content = [(i, a) for i, a in enumerate(artifacts) if a.kind != ArtifactKind.METADATA]
        records = [(i, a) for i, a in enumerate(artifacts) if a.kind == ArtifactKind.METADATA]

        outcomes.update(self._run_phase(content))

        failed_keys = {
            a.content_key
            for i, a in content
            if a.kind == ArtifactKind.ARCHIVE and not outcomes[i].ok
        }
        runnable: _Lane = []
        for i, a in records:
            if a.content_key in failed_keys:
                outcomes[i] = self._result(
                    a,
                    PublishStatus.SKIPPED,
                    detail=f"archive for {a.content_key} failed in this batch",
                )
                self._log(outcomes[i])
            else:
                runnable.append((i, a))
        outcomes.update(self._run_phase(runnable))

        results = [outcomes[i] for i in range(len(artifacts))]
        for path in missing:
            result = PublishResult(
                local_path=path,
                status=PublishStatus.NOT_FOUND,
                detail="File not found",
            )
            self._log(result)
            results.append(result)

        report = BatchReport(results=results, dry_run=self.dry_run)
        logger.info(
            "Publish finished: %d succeeded, %d failed", report.succeeded, report.failed
        )
        return report

    def publish_one(self, artifact: Artifact) -> PublishResult:
        """Publish a single planned artifact, converting errors to outcomes."""
        if self.dry_run:
            if artifact.tier == Tier.REJECTED:
                result = self._result(
                    artifact, PublishStatus.REJECTED, detail=_too_large(artifact)
                )
            else:
                result = self._result(artifact, PublishStatus.DRY_RUN)
            self._log(result)
            return result

        try:
            receipt = self._dispatch[artifact.tier](artifact)
        except ContentionExhaustedError as exc:
            result = self._result(
                artifact, exc.status, detail=str(exc), attempts=exc.attempts
            )
        except PublishError as exc:
            result = self._result(artifact, exc.status, detail=str(exc))
        else:
            status = PublishStatus.PUBLISHED if receipt.changed else PublishStatus.UNCHANGED
            result = self._result(
                artifact,
                status,
                commit_sha=receipt.commit_sha,
                attempts=receipt.attempts,
            )
        self._log(result)
        return result

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _run_phase(self, items: _Lane) -> dict[int, PublishResult]:
        lanes: dict[str, _Lane] = {}
        for item in items:
            lanes.setdefault(item[1].remote_path, []).append(item)

        outcomes: dict[int, PublishResult] = {}
        if self.workers == 1 or len(lanes) <= 1:
            for lane in lanes.values():
                outcomes.update(self._run_lane(lane))
            return outcomes

        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            for done in pool.map(self._run_lane, lanes.values()):
                outcomes.update(done)
        return outcomes

    def _run_lane(self, lane: _Lane) -> dict[int, PublishResult]:
        return {i: self.publish_one(a) for i, a in lane}

    def _write_small(self, artifact: Artifact) -> WriteReceipt:
        assert self._small is not None
        return self._small.write(
            artifact.remote_path, _read_content(artifact), artifact.commit_message
        )

    def _write_large(self, artifact: Artifact) -> WriteReceipt:
        assert self._large is not None
        return self._large.write(
            artifact.remote_path, _read_content(artifact), artifact.commit_message
        )

    @staticmethod
    def _reject(artifact: Artifact) -> WriteReceipt:
        raise RejectedSizeError(_too_large(artifact))

    @staticmethod
    def _result(artifact: Artifact, status: PublishStatus, **fields) -> PublishResult:
        return PublishResult(
            local_path=artifact.local_path,
            remote_path=artifact.remote_path,
            size_bytes=artifact.size_bytes,
            tier=artifact.tier,
            status=status,
            **fields,
        )

    @staticmethod
    def _log(result: PublishResult) -> None:
        level = logging.DEBUG if result.ok else logging.WARNING
        logger.log(
            level,
            "%-50s %10s  [%s]%s",
            result.remote_path or str(result.local_path),
            format_iec(result.size_bytes),
            result.status.value,
            f" {result.detail}" if result.detail else "",
        )


def _walk(directory: Path) -> Iterator[Path]:
    # Symlinks inside a walked directory are not followed (like find -type f).
    for child in sorted(directory.iterdir()):
        if child.is_symlink():
            logger.debug("Skipping symlink %s", child)
            continue
        if child.is_dir():
            yield from _walk(child)
        elif child.is_file():
            yield child


def _too_large(artifact: Artifact) -> str:
    return (
        f"{format_iec(artifact.size_bytes)} exceeds the "
        f"{format_iec(LARGE_LIMIT)} limit"
    )


def _read_content(artifact: Artifact) -> bytes:
    """Read an artifact's bytes, checking they match the planned size."""
    try:
        with artifact.local_path.open("rb") as fh:
            content = fh.read()
    except FileNotFoundError as exc:
        raise NotFoundError(f"File vanished: {artifact.local_path}") from exc
    except OSError as exc:
        raise TransportError(f"Cannot read {artifact.local_path}: {exc}") from exc
    if len(content) != artifact.size_bytes:
        raise TransportError(
            f"{artifact.local_path} changed size while publishing "
            f"({artifact.size_bytes} -> {len(content)} bytes)"
        )
    return content
