"""
Sync orchestrator -- manifest fetch, concurrent downloads, verification.

    Idle -> ManifestFetching -> ManifestParsed -> ArtifactsInFlight -> Settled

The pipeline starts as soon as the orchestrator is constructed and runs
on its own coordinator thread. Artifact/signature downloads and the
per-entry verification run on a worker pool. Each entry settles on its
own; the only cross-entry barrier is "every entry has settled". The
host joins the terminal future when it needs the admitted paths.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Callable, Optional

from . import SIGNATURE_SUFFIX
from .errors import FetchError, ManifestError
from .fetch import ConditionalFetcher
from .keystore import TrustStore
from .manifest import ManifestEntry, parse_manifest
from .models import EntryReport, SyncConfig, SyncOutcome, SyncPhase, VerificationOutcome

logger = logging.getLogger("remotesync.orchestrator")


def _relay(target: Future, source: Future) -> None:
    exc = source.exception()
    if exc is not None:
        target.set_exception(exc)
    else:
        target.set_result(source.result())


class SyncOrchestrator:
    """Runs one sync cycle and owns its teardown.

    Args:
        config: Sync settings (manifest URL, timeout, cache preference).
        trust_store: Keys to verify against. Read-only during the cycle.
        mod_dir: Directory holding cached artifacts and ``.sig`` files.
        manifest_cache: Where the fetched manifest is cached.
        fetcher: Conditional fetcher; a default one is created if omitted.
        progress: Progress-message sink.
        key_ring_path: Where ``close()`` persists the trust store. None
            skips persistence.
    """

    def __init__(
        self,
        config: SyncConfig,
        trust_store: TrustStore,
        mod_dir: Path,
        manifest_cache: Path,
        fetcher: Optional[ConditionalFetcher] = None,
        progress: Optional[Callable[[str], None]] = None,
        key_ring_path: Optional[Path] = None,
    ):
        self.config = config
        self.trust_store = trust_store
        self.mod_dir = mod_dir
        self.manifest_cache = manifest_cache
        self.key_ring_path = key_ring_path
        self._fetcher = fetcher or ConditionalFetcher()
        self._progress = progress or (lambda message: None)

        self._phase = SyncPhase.IDLE
        self._phase_lock = threading.Lock()
        self._invalid: set[Path] = set()
        self._invalid_lock = threading.Lock()
        self._closed = False

        self._result: Future = Future()
        self._pool = ThreadPoolExecutor(
            max_workers=config.max_workers, thread_name_prefix="remotesync-worker",
        )
        self._coordinator = threading.Thread(target=self._run, name="remotesync-pipeline")
        self._coordinator.start()

    # ------------------------------------------------------------------
    # Host-facing API
    # ------------------------------------------------------------------

    @property
    def phase(self) -> SyncPhase:
        with self._phase_lock:
            return self._phase

    def join(self, timeout: Optional[float] = None) -> SyncOutcome:
        """Block until the cycle has settled and return its outcome."""
        return self._result.result(timeout)

    def candidates(self) -> list[Path]:
        """Admitted artifact paths; blocks until the cycle has settled."""
        return list(self.join().admitted)

    def is_valid(self, artifact: Path) -> bool:
        """Spot check a cached artifact against its ``.sig`` companion."""
        return self.check(artifact) is VerificationOutcome.VALID

    def check(self, artifact: Path) -> VerificationOutcome:
        """Verify ``artifact`` and queue it for deletion if it fails.

        Unreadable files (IO_FAILURE) are left in place; every other
        failure marks the artifact and its signature for removal. After
        ``close()`` they are removed immediately.
        """
        logger.debug("Verifying %s", artifact.name)
        self._progress(f"RemoteSync: verifying {artifact.name}")
        signature_path = artifact.with_name(artifact.name + SIGNATURE_SUFFIX)
        outcome = self.trust_store.check_file(artifact, signature_path)
        if outcome is VerificationOutcome.VALID:
            logger.debug("Verification pass for %s", artifact.name)
        elif outcome is not VerificationOutcome.IO_FAILURE:
            logger.warning("Verification fail for %s, will be excluded from loading", artifact.name)
            self._mark_invalid(artifact, signature_path)
            if self._closed:
                # close() may already be past its cleanup pass
                self._cleanup()
        return outcome

    def close(self) -> None:
        """Teardown: wait for the cycle, delete invalid files, persist keys.

        A running cycle is never interrupted; this blocks until it settles.
        """
        if self._closed:
            return
        self._closed = True
        self._result.result()
        self._pool.shutdown(wait=True)
        self._coordinator.join()
        self._cleanup()
        if self.key_ring_path is not None:
            self.trust_store.persist(self.key_ring_path)

    def __enter__(self) -> SyncOrchestrator:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def _set_phase(self, phase: SyncPhase) -> None:
        with self._phase_lock:
            self._phase = phase
        logger.debug("Sync phase: %s", phase.value)

    def _run(self) -> None:
        try:
            outcome = self._sync()
        except Exception as exc:
            logger.error(
                "Mod downloading worker encountered error. You may observe missing mods or outdated mods.",
                exc_info=True,
            )
            outcome = SyncOutcome(error=str(exc))
        self._cleanup()
        self._set_phase(SyncPhase.SETTLED)
        logger.info(
            "Sync settled: %d of %d entries admitted", len(outcome.admitted), len(outcome.entries),
        )
        self._result.set_result(outcome)

    def _sync(self) -> SyncOutcome:
        self._set_phase(SyncPhase.MANIFEST_FETCHING)
        entries, stale = self._load_manifest()
        if entries is None:
            return SyncOutcome(manifest_failed=True, manifest_stale=stale)
        self._set_phase(SyncPhase.MANIFEST_PARSED)

        self._set_phase(SyncPhase.ARTIFACTS_IN_FLIGHT)
        pending = [self._launch_entry(entry) for entry in entries]
        wait(pending)
        reports = [self._report(entry, future) for entry, future in zip(entries, pending)]
        return SyncOutcome(
            admitted=[report.path for report in reports if report.admitted],
            entries=reports,
            manifest_stale=stale,
        )

    def _load_manifest(self) -> tuple[Optional[list[ManifestEntry]], bool]:
        """Fetch and parse the manifest, falling back to the cached copy.

        Returns:
            (entries or None on failure, whether a stale cache was used)
        """
        data: Optional[bytes] = None
        if self.config.mod_list:
            self._progress("RemoteSync: fetching mod list")
            try:
                # Never honour prefer_local_cache here: the mod list must be current
                with self._fetcher.fetch(
                    self.config.mod_list, self.manifest_cache, self.config.timeout_seconds, False,
                ) as handle:
                    data = handle.read()
            except (FetchError, OSError) as exc:
                logger.warning(
                    "Failed to download mod list, will try using locally cached mod list instead. "
                    "Mods may be outdated. (%s)", exc,
                )
        else:
            logger.warning("No mod list URL configured, will try using locally cached mod list instead")

        stale = data is None
        if data is None:
            try:
                data = self.manifest_cache.read_bytes()
            except OSError as exc:
                logger.error("Failed to open locally cached mod list %s: %s", self.manifest_cache, exc)
                return None, stale

        try:
            return parse_manifest(data), stale
        except ManifestError as exc:
            logger.warning("Error parsing mod list: %s", exc)
            return None, stale

    def _launch_entry(self, entry: ManifestEntry) -> Future:
        """Start both downloads of ``entry``; verify once both have finished."""
        artifact_path = self.mod_dir / entry.name
        signature_path = self.mod_dir / entry.signature_name
        report: Future = Future()
        downloads = [
            self._pool.submit(self._download, entry.artifact_location, artifact_path),
            self._pool.submit(self._download, entry.signature_location, signature_path),
        ]
        remaining = [len(downloads)]
        lock = threading.Lock()

        def on_download_done(_future: Future) -> None:
            with lock:
                remaining[0] -= 1
                if remaining[0]:
                    return
            try:
                settled = self._pool.submit(self._settle_entry, entry, artifact_path, downloads)
            except RuntimeError as exc:
                report.set_exception(exc)
                return
            settled.add_done_callback(lambda future: _relay(report, future))

        for download in downloads:
            download.add_done_callback(on_download_done)
        return report

    def _download(self, remote: str, local: Path) -> Optional[str]:
        """Fetch one file; returns an error description or None on success."""
        self._progress(f"RemoteSync: considering {local.name}")
        try:
            handle = self._fetcher.fetch(
                remote, local, self.config.timeout_seconds, self.config.prefer_local_cache,
            )
        except (FetchError, OSError) as exc:
            logger.warning("Failed to download %s", remote)
            logger.debug("Details: src = %s, dst = %s", remote, local, exc_info=True)
            return str(exc) or type(exc).__name__
        handle.close()
        return None

    def _settle_entry(self, entry: ManifestEntry, artifact_path: Path, downloads: list[Future]) -> EntryReport:
        errors = []
        for future in downloads:
            exc = future.exception()
            if exc is not None:
                errors.append(f"{type(exc).__name__}: {exc}")
            elif future.result():
                errors.append(future.result())
        if errors:
            logger.warning("Skipping verification of %s, download incomplete", entry.name)
            return EntryReport(name=entry.name, path=artifact_path, fetch_error="; ".join(errors))
        return EntryReport(name=entry.name, path=artifact_path, outcome=self.check(artifact_path))

    def _mark_invalid(self, *paths: Path) -> None:
        with self._invalid_lock:
            self._invalid.update(paths)

    def _cleanup(self) -> None:
        with self._invalid_lock:
            doomed = sorted(self._invalid)
            self._invalid.clear()
        for path in doomed:
            try:
                path.unlink(missing_ok=True)
                logger.debug("Deleted invalid file %s", path)
            except OSError as exc:
                logger.warning("Failed to delete invalid file %s: %s", path, exc)

    def _report(self, entry: ManifestEntry, future: Future) -> EntryReport:
        exc = future.exception()
        if exc is None:
            return future.result()
        logger.error("Processing %s failed", entry.name, exc_info=exc)
        return EntryReport(name=entry.name, path=self.mod_dir / entry.name, fetch_error=str(exc))
