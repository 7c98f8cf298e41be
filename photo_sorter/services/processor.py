"""Main organizer - runs the worker pool over discovered files."""
from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..core.config import OrganizerConfig
from ..core.models import (
    CandidateFile, OutcomeCategory, PlacementAction, PlacementDecision, ProcessingOutcome,
)
from ..core.protocols import OutcomeListener, ProgressReporter
from ..core.statistics import Statistics
from ..engines.cache import MetadataCache
from ..engines.metadata import DateResolutionError, DateResolver
from .conflicts import ConflictResolver, DestinationRegistry
from .file_ops import FileManager, plan_destination
from .scanner import DirectoryScanner

logger = logging.getLogger(__name__)


# Queue sentinel, one per worker
_STOP = object()


@dataclass
class _RunContext:
    """Objects shared by all workers of one run."""
    stats: Statistics
    registry: DestinationRegistry
    conflicts: ConflictResolver
    file_manager: FileManager
    simulated: bool

    @property
    def prefix(self) -> str:
        return "DRY-RUN: " if self.simulated else ""


class FileOrganizer:
    """Organizes media files into a date-based tree.

    Discovery runs first and produces the candidate list. A feeder thread
    pushes candidates into a bounded queue drained by a fixed pool of worker
    threads; statistics are finalized once every worker has joined.

    Every dependency is either injected or built from the config. Nothing is
    shared between runs except the resolver's cache.
    """

    def __init__(
        self,
        config: OrganizerConfig,
        resolver: Optional[DateResolver] = None,
        scanner: Optional[DirectoryScanner] = None,
        progress: Optional[ProgressReporter] = None,
        on_outcome: Optional[OutcomeListener] = None,
    ):
        """Initialize the organizer.

        Args:
            config: Validated configuration.
            resolver: Date resolver (default: EXIF resolver with a cache
                sized by ``performance.cache_size``).
            scanner: Discovery service (default: built from config).
            progress: Optional progress reporter.
            on_outcome: Called once per file with its terminal outcome.
        """
        self._config = config
        self._resolver = resolver or self._default_resolver(config)
        self._scanner = scanner or DirectoryScanner.from_config(config)
        self._progress = progress
        self._on_outcome = on_outcome

    @staticmethod
    def _default_resolver(config: OrganizerConfig) -> DateResolver:
        video_extensions = config.video.supported_extensions if config.video.extract_video_metadata else ()
        return DateResolver(
            cache=MetadataCache(max_size=config.performance.cache_size),
            image_extensions=config.supported_extensions,
            video_extensions=video_extensions,
        )

    @property
    def resolver(self) -> DateResolver:
        return self._resolver

    @property
    def worker_count(self) -> int:
        return self._config.performance.worker_threads

    def organize(self) -> Statistics:
        """Run the pipeline; simulates when ``security.dry_run`` is set.

        Returns:
            Finalized statistics for the run.
        """
        return self._run(simulated=self._config.security.dry_run)

    def simulate(self) -> Statistics:
        """Run the full decision pipeline without touching the filesystem."""
        return self._run(simulated=True)

    # --- Run orchestration ---

    def _run(self, simulated: bool) -> Statistics:
        stats = Statistics()
        logger.info("Starting file organization process")

        files = list(self._scanner.scan(self._config.source_directory, stats))
        if not files:
            logger.info("No media files found to organize")
            stats.finalize()
            return stats

        logger.info("Found %d media files to process", len(files))
        if simulated:
            logger.info("Running in dry-run mode - no files will be moved or modified")

        registry = DestinationRegistry()
        ctx = _RunContext(
            stats=stats,
            registry=registry,
            conflicts=ConflictResolver(
                strategy=self._config.processing.duplicate_handling,
                move_files=self._config.processing.move_files,
                registry=registry,
            ),
            file_manager=FileManager(
                dry_run=simulated,
                create_backups=self._config.processing.create_backups,
            ),
            simulated=simulated,
        )

        if self._progress:
            self._progress.start_phase("Simulating" if simulated else "Organizing", len(files))
        try:
            self._process_all(files, ctx)
        finally:
            if self._progress:
                self._progress.end_phase()

        stats.finalize()
        logger.info("%s completed", "Dry-run process" if simulated else "File organization")
        return stats

    def _process_all(self, files: list[CandidateFile], ctx: _RunContext) -> None:
        work_queue: queue.Queue = queue.Queue(maxsize=self._config.performance.batch_size)

        workers = [
            threading.Thread(
                target=self._worker,
                args=(work_queue, ctx),
                name=f"organizer-worker-{i}",
                daemon=True,
            )
            for i in range(self.worker_count)
        ]
        for worker in workers:
            worker.start()

        feeder = threading.Thread(
            target=self._feed,
            args=(work_queue, files, len(workers)),
            name="organizer-feeder",
            daemon=True,
        )
        feeder.start()

        feeder.join()
        for worker in workers:
            worker.join()

    @staticmethod
    def _feed(work_queue: queue.Queue, files: list[CandidateFile], worker_count: int) -> None:
        # put() blocks while the queue is full
        for file in files:
            work_queue.put(file)
        for _ in range(worker_count):
            work_queue.put(_STOP)

    def _worker(self, work_queue: queue.Queue, ctx: _RunContext) -> None:
        while True:
            item = work_queue.get()
            if item is _STOP:
                return
            self.process_file(item, ctx)

    # --- Per-file pipeline ---

    def process_file(self, file: CandidateFile, ctx: _RunContext) -> ProcessingOutcome:
        """Take one file through resolve -> plan -> decide -> transfer.

        Never raises; any failure becomes an ERROR outcome.
        """
        logger.debug("Processing file: %s", file.path)
        try:
            outcome = self._place(file, ctx)
        except Exception as e:
            outcome = self._failure(file, "processing", e, ctx)
        self._record(outcome, ctx)
        return outcome

    def _place(self, file: CandidateFile, ctx: _RunContext) -> ProcessingOutcome:
        try:
            date = self._resolver.resolve(file, ctx.stats)
        except DateResolutionError as e:
            logger.warning("Could not extract date from %s: %s", file.path, e.reason)
            ctx.stats.add_error(file.path, "date_extraction", e.reason)
            return ProcessingOutcome(
                file=file,
                category=OutcomeCategory.NO_DATE,
                operation="date_extraction",
                error=e.reason,
                message=f"{ctx.prefix}Skipped {file.path} (no date): {e.reason}",
                simulated=ctx.simulated,
            )

        try:
            planned = plan_destination(
                file.path, date, self._config.target_root, self._config.date_format,
            )
        except Exception as e:
            return self._failure(file, "path_generation", e, ctx)

        try:
            decision = ctx.conflicts.decide(file.path, planned)
        except Exception as e:
            return self._failure(file, "duplicate_handling", e, ctx)

        if decision.duplicate:
            ctx.stats.increment_duplicates_found()

        if decision.action == PlacementAction.SKIP:
            logger.info("%sSkipping duplicate file: %s", ctx.prefix, file.path)
            ctx.stats.increment_duplicates_skipped()
            return ProcessingOutcome(
                file=file,
                category=OutcomeCategory.SKIPPED,
                destination=decision.destination,
                operation="duplicate_handling",
                message=f"{ctx.prefix}Skipped duplicate {file.path} ({decision.destination} exists)",
                simulated=ctx.simulated,
            )

        if decision.in_place:
            logger.info("File already in place: %s", file.path)
            return ProcessingOutcome(
                file=file,
                category=OutcomeCategory.ORGANIZED,
                destination=decision.destination,
                bytes_processed=file.size,
                message=f"{ctx.prefix}Already in place: {file.path}",
                simulated=ctx.simulated,
            )

        return self._transfer(file, decision, ctx)

    def _transfer(
        self,
        file: CandidateFile,
        decision: PlacementDecision,
        ctx: _RunContext,
    ) -> ProcessingOutcome:
        target = decision.destination
        move = self._config.processing.move_files

        if decision.action == PlacementAction.RENAME:
            logger.info("%sRenaming duplicate file: %s -> %s", ctx.prefix, file.path, target)
        elif decision.overwrite:
            logger.info("%sOverwriting existing file: %s", ctx.prefix, target)

        try:
            if ctx.file_manager.ensure_directory(target.parent):
                ctx.stats.increment_directories_created()
        except OSError as e:
            self._release(decision, ctx)
            return self._failure(file, "directory_creation", e, ctx)

        operation = "move_file" if move else "copy_file"
        try:
            ctx.file_manager.transfer(file.path, target, move)
        except OSError as e:
            self._release(decision, ctx)
            return self._failure(file, operation, e, ctx)

        if move:
            ctx.stats.increment_files_moved()
        else:
            ctx.stats.increment_files_copied()

        if decision.action == PlacementAction.RENAME:
            ctx.stats.increment_duplicates_renamed()
        elif decision.overwrite:
            ctx.stats.increment_duplicates_replaced()

        if file.thumbnail_path is not None:
            self._place_thumbnail(file.thumbnail_path, target, move, ctx)

        verb = "move" if move else "copy"
        if ctx.simulated:
            message = f"DRY-RUN: Would {verb} {file.path} -> {target}"
        else:
            message = f"Organized file: {file.path} -> {target}"
            logger.info(message)

        return ProcessingOutcome(
            file=file,
            category=OutcomeCategory.DUPLICATE_HANDLED if decision.duplicate else OutcomeCategory.ORGANIZED,
            destination=target,
            bytes_processed=file.size,
            operation=operation,
            message=message,
            simulated=ctx.simulated,
        )

    def _place_thumbnail(
        self,
        thumbnail: Path,
        primary_target: Path,
        move: bool,
        ctx: _RunContext,
    ) -> None:
        """Put a video's thumbnail next to the video, named after it.

        The thumbnail goes through the same duplicate handling as the video:
        an occupied name is kept under ``skip``, replaced under ``overwrite``
        and numbered under ``rename``.
        """
        planned = primary_target.with_name(primary_target.stem + thumbnail.suffix)
        try:
            decision = ctx.conflicts.decide(thumbnail, planned)
        except ValueError as e:
            logger.error("Could not process thumbnail %s: %s", thumbnail, e)
            ctx.stats.add_error(thumbnail, "thumbnail_processing", str(e))
            return

        if decision.action == PlacementAction.SKIP:
            logger.warning("%sSkipping thumbnail %s: %s exists", ctx.prefix, thumbnail, planned)
            ctx.stats.add_error(thumbnail, "thumbnail_processing", f"destination exists: {planned}")
            return

        target = decision.destination
        if not decision.in_place:
            try:
                ctx.file_manager.transfer(thumbnail, target, move)
            except OSError as e:
                self._release(decision, ctx)
                logger.error("Could not process thumbnail %s: %s", thumbnail, e)
                ctx.stats.add_error(thumbnail, "thumbnail_processing", str(e))
                return
        ctx.stats.increment_thumbnails_processed()
        logger.debug("%sProcessed thumbnail: %s -> %s", ctx.prefix, thumbnail, target)

    @staticmethod
    def _release(decision: PlacementDecision, ctx: _RunContext) -> None:
        # An overwrite reuses another file's claim
        if not decision.overwrite:
            ctx.registry.release(decision.destination)

    def _failure(
        self,
        file: CandidateFile,
        operation: str,
        error: Exception,
        ctx: _RunContext,
    ) -> ProcessingOutcome:
        message = str(error) or error.__class__.__name__
        logger.error("%s failed for %s: %s", operation, file.path, message)
        ctx.stats.add_error(file.path, operation, message)
        return ProcessingOutcome(
            file=file,
            category=OutcomeCategory.ERROR,
            operation=operation,
            error=message,
            message=f"{ctx.prefix}Error ({operation}) {file.path}: {message}",
            simulated=ctx.simulated,
        )

    def _record(self, outcome: ProcessingOutcome, ctx: _RunContext) -> None:
        ctx.stats.record_outcome(outcome)
        if self._progress:
            self._progress.advance_phase()
        if self._on_outcome is not None:
            try:
                self._on_outcome(outcome)
            except Exception as e:
                logger.warning("Outcome listener failed for %s: %s", outcome.file.path, e)
