"""Pipeline orchestrator — one respondent's answers into one published video.

Run states:

  COLLECTING -> NORMALIZING -> CARD_GENERATION -> SEQUENCING -> PUBLISHING -> DONE

FAILED is reachable from every state.

  - COLLECTING: fetch every recorded answer (bounded thread pool).
  - NORMALIZING: transcode fetched answers to the canonical format.
    A FetchError or ConversionError in either stage drops that response
    (title card AND clip) instead of failing the run.
  - Zero survivors -> NoProcessableInputError. Nothing is published.
  - CARD_GENERATION: intro card (started in the background at the
    beginning of the run) plus one title card per survivor.
  - SEQUENCING / PUBLISHING: concatenate and upload.
    Any error from here on fails the run.

The run workspace is cleaned up on every exit path. One run is allowed
per owner at a time (testimonial id, or response id for the single
variant); the second caller waits or is rejected depending on
pipeline.on_busy. A semaphore shared by all runs of a Compositor caps
concurrent ffmpeg processes.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

from . import cards as card_synth
from . import fetch as fetcher
from . import normalize as normalizer
from . import publish as publisher
from . import sequence as sequencer
from .config import Settings
from .errors import (
    CompositionBusyError,
    CompositionError,
    ConversionError,
    FetchError,
    NoProcessableInputError,
    RecordStoreError,
)
from .ffmpeg import RunContext
from .models import (
    CompositionRequest,
    CompositionResult,
    ResponseAsset,
    RunState,
    Segment,
    SegmentKind,
)
from .records import RecordStore, YamlRecordStore
from .storage import LocalObjectStorage, ObjectStorage
from .workspace import RunWorkspace, make_run_id, safe_name

logger = logging.getLogger(__name__)

_LOCK_POLL = 0.2

# Per-response errors that drop the response instead of failing the run.
SKIPPABLE_ERRORS = (FetchError, ConversionError)


def is_skippable(error: BaseException) -> bool:
    return isinstance(error, SKIPPABLE_ERRORS)


@dataclass
class AssetOutcome:
    """Result of fetching (and normalizing) one response."""

    asset: ResponseAsset
    path: Path | None = None
    error: CompositionError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class _Run:
    """State tracking and logging for one composition run."""

    def __init__(self, run_id: str):
        self.run_id = run_id
        self.state = RunState.COLLECTING
        logger.info("run %s: %s", run_id, self.state.value)

    def enter(self, state: RunState, context: RunContext) -> None:
        context.check()
        logger.info("run %s: %s -> %s", self.run_id, self.state.value, state.value)
        self.state = state

    def skip(self, outcome: AssetOutcome) -> None:
        err = outcome.error
        if outcome.asset.clip_reference:
            logger.warning(
                "run %s: skipping response %s (%s): %s",
                self.run_id, outcome.asset.response_id, type(err).__name__, err.diagnostic,
            )
        else:
            logger.info(
                "run %s: response %s has no recording yet",
                self.run_id, outcome.asset.response_id,
            )

    def fail(self, error: CompositionError) -> None:
        error.state = self.state
        logger.error(
            "run %s failed in %s: %s | %s",
            self.run_id, self.state.value, error.user_message, error.diagnostic,
        )
        self.state = RunState.FAILED


class _OwnerLocks:
    """At most one in-flight composition per owner key."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, list] = {}  # key -> [lock, holders + waiters]

    @contextmanager
    def hold(self, key: str, wait: bool, context: RunContext):
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        lock = entry[0]
        try:
            if wait:
                while not lock.acquire(timeout=_LOCK_POLL):
                    context.check()
            elif not lock.acquire(blocking=False):
                raise CompositionBusyError(diagnostic=f"{key} is already being composed")
            try:
                yield
            finally:
                lock.release()
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]


class Compositor:
    """Composes testimonial videos from recorded answers.

    Args:
        settings: Pipeline, video and card settings.
        storage: Object storage collaborator (download/upload/public URL).
        records: Record persistence collaborator.
        work_dir: Directory for transient files; defaults to
            settings.pipeline.work_dir. Shared by concurrent runs.
    """

    def __init__(
        self,
        settings: Settings,
        storage: ObjectStorage,
        records: RecordStore,
        work_dir: str | Path | None = None,
    ):
        self.settings = settings
        self.storage = storage
        self.records = records
        self.work_dir = Path(work_dir) if work_dir is not None else settings.pipeline.work_dir
        self._slots = threading.BoundedSemaphore(settings.pipeline.max_concurrent_transcodes)
        self._owners = _OwnerLocks()

    @classmethod
    def from_settings(cls, settings: Settings) -> "Compositor":
        """Compositor over the bundled local storage and YAML record store."""
        storage = LocalObjectStorage(settings.storage.root, settings.storage.public_base_url)
        return cls(settings, storage, YamlRecordStore(settings.records))

    def new_context(self, cancel: threading.Event | None = None) -> RunContext:
        """Run controls with the whole-pipeline deadline starting now."""
        p = self.settings.pipeline
        return RunContext.with_budget(
            p.pipeline_timeout, cancel=cancel, slots=self._slots, ffmpeg=p.ffmpeg,
        )

    # ── Entry points ─────────────────────────────────────────────

    def build_request(self, testimonial_id: str) -> CompositionRequest:
        """Load the testimonial and its responses from the record store."""
        testimonial = self.records.get_testimonial(testimonial_id)
        responses = self.records.get_responses_for_testimonial(testimonial_id)
        assets = tuple(
            ResponseAsset(
                response_id=r.id,
                question_id=r.question_id,
                question_text=r.question_text or "",
                clip_reference=r.video_url,
                ordering_key=r.order,
                created_at=r.created_at,
            )
            for r in responses
        )
        return CompositionRequest(
            testimonial_id=testimonial.id,
            respondent_name=testimonial.customer_name,
            respondent_role=testimonial.customer_position,
            assets=assets,
        )

    def compose_full_testimonial(
        self, testimonial_id: str, cancel: threading.Event | None = None,
    ) -> CompositionResult:
        """Compose, publish and record the full video for one testimonial.

        Raises:
            CompositionError: Any fatal pipeline error (see errors.py).
            RecordStoreError: The testimonial could not be loaded.
        """
        context = self.new_context(cancel)
        with self._owner(f"testimonial:{testimonial_id}", context):
            request = self.build_request(testimonial_id)
            result = self.compose(request, context)
            try:
                self.records.set_testimonial_result(
                    testimonial_id, result.url, completed_at=datetime.now(timezone.utc),
                )
            except RecordStoreError as exc:
                # The video is already public; report instead of failing.
                logger.error("testimonial %s: could not record result: %s", testimonial_id, exc)
                result.recorded = False
        return result

    def compose_single_response_with_intro(
        self, response_id: str, cancel: threading.Event | None = None,
    ) -> str:
        """Compose one response behind its question title card.

        Returns:
            Public URL of the published video.

        Raises:
            NoProcessableInputError: No recording, no question text, or the
                recording could not be fetched/normalized.
            CompositionError: Any other fatal pipeline error.
            RecordStoreError: The response could not be loaded.
        """
        context = self.new_context(cancel)
        with self._owner(f"response:{response_id}", context):
            response = self.records.get_response(response_id)
            if not response.video_url:
                raise NoProcessableInputError("No video available for this response")
            if not response.question_text:
                raise NoProcessableInputError("No question text available for this response")

            asset = ResponseAsset(
                response_id=response.id,
                question_id=response.question_id,
                question_text=response.question_text,
                clip_reference=response.video_url,
                ordering_key=response.order,
                created_at=response.created_at,
            )
            result = self.compose_single(asset, context)
            try:
                self.records.set_response_intro_result(response_id, result.url, generated=True)
            except RecordStoreError as exc:
                logger.error("response %s: could not record result: %s", response_id, exc)
        return result.url

    # ── Runs ─────────────────────────────────────────────────────

    def compose(
        self, request: CompositionRequest, context: RunContext | None = None,
    ) -> CompositionResult:
        """Run the full pipeline for an already-loaded request.

        Does not take the per-owner lock and does not update records;
        compose_full_testimonial wraps it with both.
        """
        key = publisher.testimonial_key(
            self.settings.storage.merged_prefix, request.testimonial_id,
        )
        return self._run(
            make_run_id("testimonial", request.testimonial_id),
            request.ordered_assets(),
            intro=(request.respondent_name, request.respondent_role),
            destination_key=key,
            context=context or self.new_context(),
        )

    def compose_single(
        self, asset: ResponseAsset, context: RunContext | None = None,
    ) -> CompositionResult:
        """Reduced pipeline: one title card + one clip, no intro. No record update."""
        key = publisher.response_key(self.settings.storage.single_prefix, asset.response_id)
        return self._run(
            make_run_id("response", asset.response_id),
            [asset],
            intro=None,
            destination_key=key,
            context=context or self.new_context(),
        )

    def _owner(self, key: str, context: RunContext):
        return self._owners.hold(key, wait=self.settings.pipeline.on_busy == "wait", context=context)

    def _run(
        self,
        run_id: str,
        assets: list[ResponseAsset],
        intro: tuple[str, str] | None,
        destination_key: str,
        context: RunContext,
    ) -> CompositionResult:
        run = _Run(run_id)
        workers = self.settings.pipeline.workers
        with RunWorkspace(self.work_dir, run_id) as workspace:
            try:
                with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="compose") as pool:
                    try:
                        return self._execute(
                            run, assets, intro, destination_key, workspace, context, pool,
                        )
                    except BaseException:
                        # Stop sibling workers before the pool waits for them.
                        context.cancel()
                        raise
            except CompositionError as exc:
                run.fail(exc)
                raise

    def _execute(
        self,
        run: _Run,
        assets: list[ResponseAsset],
        intro: tuple[str, str] | None,
        destination_key: str,
        workspace: RunWorkspace,
        context: RunContext,
        pool: ThreadPoolExecutor,
    ) -> CompositionResult:
        video = self.settings.video
        cards = self.settings.cards
        timeout = self.settings.pipeline.stage_timeout

        # The intro card depends on nothing else; start it right away.
        intro_future = None
        if intro is not None:
            name, role = intro
            intro_future = pool.submit(
                card_synth.make_intro_card,
                name, role, workspace, video, cards, timeout, context,
            )

        # ── Collecting ──
        outcomes = self._map(pool, lambda a: self._fetch_one(a, workspace), assets)
        survivors = self._apply_skip_policy(run, outcomes)

        # ── Normalizing ──
        run.enter(RunState.NORMALIZING, context)
        outcomes = self._map(
            pool, lambda o: self._normalize_one(o, workspace, context), survivors,
        )
        survivors = self._apply_skip_policy(run, outcomes)
        kept = {o.asset.response_id for o in survivors}
        skipped = [a.response_id for a in assets if a.response_id not in kept]

        if not survivors:
            raise NoProcessableInputError(
                diagnostic=f"all {len(assets)} response(s) skipped: {', '.join(skipped)}",
            )

        # ── Card generation ──
        run.enter(RunState.CARD_GENERATION, context)
        intro_segment = None
        if intro_future is not None:
            intro_segment = Segment(SegmentKind.INTRO_CARD, intro_future.result())
        title_paths = self._map(
            pool,
            lambda o: card_synth.make_title_card(
                o.asset.question_text, workspace, f"title_{safe_name(o.asset.response_id)}",
                video, cards, timeout, context,
            ),
            survivors,
        )

        # ── Sequencing ──
        run.enter(RunState.SEQUENCING, context)
        pairs = [
            (
                Segment(SegmentKind.TITLE_CARD, title, o.asset.response_id),
                Segment(SegmentKind.NORMALIZED_CLIP, o.path, o.asset.response_id),
            )
            for o, title in sorted(
                zip(survivors, title_paths), key=lambda pair: pair[0].asset.sort_key,
            )
        ]
        manifest, final = sequencer.build(
            intro_segment, pairs, workspace, "final", video, timeout, context,
        )

        # ── Publishing ──
        run.enter(RunState.PUBLISHING, context)
        url = publisher.publish(final, destination_key, self.storage, workspace)

        run.enter(RunState.DONE, context)
        logger.info(
            "run %s: published %s (%d included, %d skipped)",
            run.run_id, destination_key, len(survivors), len(skipped),
        )
        return CompositionResult(
            url=url,
            storage_key=destination_key,
            included=len(survivors),
            skipped=len(skipped),
            skipped_response_ids=skipped,
            manifest=manifest,
            run_id=run.run_id,
        )

    # ── Stage helpers ────────────────────────────────────────────

    @staticmethod
    def _map(pool: ThreadPoolExecutor, fn: Callable, items: list) -> list:
        """Run fn over items in the pool; results keep the input order."""
        futures = {pool.submit(fn, item): i for i, item in enumerate(items)}
        results = [None] * len(items)
        for future in as_completed(futures):
            results[futures[future]] = future.result()
        return results

    def _fetch_one(self, asset: ResponseAsset, workspace: RunWorkspace) -> AssetOutcome:
        if not asset.clip_reference:
            return AssetOutcome(asset, error=FetchError(diagnostic="no recording"))
        try:
            path = fetcher.fetch(
                asset.clip_reference, self.storage, workspace,
                f"raw_{safe_name(asset.response_id)}",
                public_prefix=self.settings.storage.public_path_prefix,
            )
        except CompositionError as exc:
            return AssetOutcome(asset, error=exc)
        return AssetOutcome(asset, path=path)

    def _normalize_one(
        self, outcome: AssetOutcome, workspace: RunWorkspace, context: RunContext,
    ) -> AssetOutcome:
        asset = outcome.asset
        try:
            path = normalizer.normalize(
                outcome.path, workspace, f"clip_{safe_name(asset.response_id)}",
                self.settings.video, self.settings.pipeline.stage_timeout, context,
            )
        except CompositionError as exc:
            return AssetOutcome(asset, path=outcome.path, error=exc)
        return AssetOutcome(asset, path=path)

    @staticmethod
    def _apply_skip_policy(run: _Run, outcomes: list[AssetOutcome]) -> list[AssetOutcome]:
        """Drop skippable failures, raise anything else."""
        survivors = []
        for outcome in outcomes:
            if outcome.ok:
                survivors.append(outcome)
            elif is_skippable(outcome.error):
                run.skip(outcome)
            else:
                raise outcome.error
        return survivors
