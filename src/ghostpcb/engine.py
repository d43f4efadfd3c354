"""Variant generation orchestrator.

The engine parses the input archive once, then builds each variant on a thread
pool. Every variant attempt gets its own RNG seeded from
``SeedSequence(base_seed, spawn_key=(index, attempt))``, so a run with an
explicit seed is reproducible regardless of thread scheduling. Accepted
content fingerprints are the only shared state; a candidate that collides with
one already accepted (or with the unmodified source) is regenerated with the
next attempt.

Request lifecycle::

    INIT -> PARSING -> GENERATING -> REPORTING -> DONE

INIT and PARSING end in ABORTED instead when the options enable nothing or
the archive is unreadable.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from enum import Enum
from pathlib import Path

import numpy as np

from .archive import Archive, load, variant_path, write_variant
from .cam.model import LayerKind
from .cam.parsing import ParsedArchive, parse_archive
from .cam.serializer import serialize_layer
from .config import EngineConfig
from .contract import ObfuscateOptions, ProcessRequest, ProcessResult
from .errors import ArchiveError, ToleranceViolation, WriteError
from .obfuscators.params import PerturbationParams, draw_params
from .obfuscators.pipeline import Strategy, apply_pipeline, build_pipeline
from .report import VariantOutcome, VariantStatus, aborted_result, build_result
from .verify import verify_variant

logger = logging.getLogger(__name__)

NO_OPTIONS_MESSAGE = "No obfuscation options enabled; enable at least one strategy"


class RequestState(str, Enum):
    INIT = "init"
    PARSING = "parsing"
    GENERATING = "generating"
    REPORTING = "reporting"
    DONE = "done"
    ABORTED = "aborted"


class ObfuscationEngine:
    """Runs one ProcessRequest to completion.

    Example:
        >>> engine = ObfuscationEngine(seed=42)
        >>> result = engine.run(ProcessRequest(input_path="board.zip", count=3))
        >>> result.output_files
        ['/path/board_obf1.zip', '/path/board_obf2.zip', '/path/board_obf3.zip']
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        seed: int | None = None,
        cancel_event: threading.Event | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.config = config or EngineConfig()
        self.base_seed = seed if seed is not None else time.time_ns()
        self.cancel_event = cancel_event or threading.Event()
        self.clock = clock
        self._state = RequestState.INIT
        self._lock = threading.Lock()
        self._accepted: set[str] = set()

    @property
    def state(self) -> RequestState:
        return self._state

    def _transition(self, state: RequestState) -> None:
        logger.debug("Request state %s -> %s", self._state.value, state.value)
        self._state = state

    def run(self, request: ProcessRequest) -> ProcessResult:
        if self._state is not RequestState.INIT:
            raise RuntimeError("ObfuscationEngine instances run a single request")
        if not request.options.any_enabled:
            self._transition(RequestState.ABORTED)
            return aborted_result(NO_OPTIONS_MESSAGE)

        self._transition(RequestState.PARSING)
        try:
            parsed = parse_archive(load(request.input_path))
        except ArchiveError as exc:
            logger.error("Aborting request: %s", exc)
            self._transition(RequestState.ABORTED)
            return aborted_result(str(exc))

        input_path = Path(request.input_path)
        destination = Path(request.output_dir) if request.output_dir else input_path.parent

        self._transition(RequestState.GENERATING)
        outcomes = self.generate(parsed, request.options, request.count, destination, input_path.stem)

        self._transition(RequestState.REPORTING)
        result = build_result(outcomes, parsed.failures, request.count)
        self._transition(RequestState.DONE)
        logger.info("%s", result.message)
        return result

    def generate(
        self,
        parsed: ParsedArchive,
        options: ObfuscateOptions,
        count: int,
        destination: Path,
        base_name: str,
    ) -> list[VariantOutcome]:
        """Generate ``count`` variants of ``parsed`` into ``destination``."""
        strategies = build_pipeline(options)
        now = self.clock()
        self._accepted = {parsed.archive.fingerprint(with_dates=options.timestamp)}
        workers = max(1, min(count, os.cpu_count() or 1, self.config.max_workers))
        logger.info("Generating %d variant(s) with %d worker(s)", count, workers)

        outcomes: list[VariantOutcome] = []
        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_to_index = {
                executor.submit(
                    self._run_variant, index, parsed, options, strategies, destination, base_name, now
                ): index
                for index in range(1, count + 1)
            }
            for future in as_completed(future_to_index):
                index = future_to_index[future]
                try:
                    outcome = future.result()
                except Exception as exc:
                    logger.exception("Variant %d raised unexpected exception", index)
                    outcome = VariantOutcome(index=index, status=VariantStatus.FAILED, error=str(exc))
                outcomes.append(outcome)
        return sorted(outcomes, key=lambda outcome: outcome.index)

    def _cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def _claim(self, fingerprint: str) -> bool:
        """Atomically record ``fingerprint``; False if it was already taken."""
        with self._lock:
            if fingerprint in self._accepted:
                return False
            self._accepted.add(fingerprint)
            return True

    def rng_for(self, index: int, attempt: int) -> np.random.Generator:
        return np.random.default_rng(np.random.SeedSequence(self.base_seed, spawn_key=(index, attempt)))

    def build_variant(
        self,
        parsed: ParsedArchive,
        options: ObfuscateOptions,
        strategies: Sequence[Strategy],
        rng: np.random.Generator,
        now: datetime,
    ) -> tuple[Archive, PerturbationParams]:
        """Apply the strategies to every parsed layer and repackage the archive."""
        params = draw_params(
            rng,
            self.config,
            parsed.layers_of_kind(LayerKind.OUTLINE),
            now=now,
            physical=options.physical,
        )
        contents = {
            name: serialize_layer(apply_pipeline(layer, strategies, params, rng))
            for name, layer in parsed.layers.items()
        }
        date_time = params.zip_date_time if options.timestamp else None
        return parsed.archive.with_contents(contents, date_time), params

    def _run_variant(
        self,
        index: int,
        parsed: ParsedArchive,
        options: ObfuscateOptions,
        strategies: Sequence[Strategy],
        destination: Path,
        base_name: str,
        now: datetime,
    ) -> VariantOutcome:
        cancelled = VariantOutcome(index=index, status=VariantStatus.CANCELLED, error="cancelled")
        for attempt in range(1, self.config.max_attempts + 1):
            if self._cancelled():
                return cancelled
            rng = self.rng_for(index, attempt - 1)
            try:
                candidate, _ = self.build_variant(parsed, options, strategies, rng, now)
            except ToleranceViolation as exc:
                logger.warning("Variant %d rejected: %s", index, exc)
                return VariantOutcome(index=index, status=VariantStatus.FAILED, attempts=attempt, error=str(exc))

            if self.config.verify_outputs:
                report = verify_variant(parsed, candidate, self.config.tolerances)
                if not report.equivalent:
                    logger.warning("Variant %d failed verification: %s", index, report.problems[0])
                    return VariantOutcome(
                        index=index,
                        status=VariantStatus.FAILED,
                        attempts=attempt,
                        error=f"failed verification: {report.problems[0]}",
                    )

            fingerprint = candidate.fingerprint(with_dates=options.timestamp)
            if not self._claim(fingerprint):
                logger.debug("Variant %d attempt %d duplicates an accepted variant", index, attempt)
                continue
            if self._cancelled():
                return cancelled

            try:
                path = write_variant(candidate, variant_path(destination, base_name, index))
            except WriteError as exc:
                logger.warning("%s", exc)
                return VariantOutcome(index=index, status=VariantStatus.FAILED, attempts=attempt, error=str(exc))
            logger.info("Wrote variant %d to %s", index, path)
            return VariantOutcome(
                index=index,
                status=VariantStatus.PRODUCED,
                path=path,
                fingerprint=fingerprint,
                attempts=attempt,
            )

        return VariantOutcome(
            index=index,
            status=VariantStatus.DUPLICATE,
            attempts=self.config.max_attempts,
            error=f"no unique variant after {self.config.max_attempts} attempts",
        )
