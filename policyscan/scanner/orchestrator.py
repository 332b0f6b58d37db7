"""Scan orchestrator: drive the metadata and script stages across all policy objects.

Provides:
  - ``ScanContext``:     per-scan state (scan_id, timer, progress dispatch).
  - ``ScanOrchestrator``: enumerates policy objects and builds the result list.
  - ``run_scan()``:      functional entry point over an already-enumerated list.

FAILURE ISOLATION INVARIANTS:
  - Only ``EnumerationError`` leaves ``ScanOrchestrator.run()``, and only
    before any per-object work has started.
  - ``_scan_one()`` NEVER raises. A metadata failure downgrades that object's
    metadata stage; an unreadable script file is skipped; anything else that
    escapes one object's processing is logged and the object yields no result.

CONCURRENCY:
  - ``concurrency == 1``: strictly sequential, single-threaded, input order.
  - ``concurrency > 1``: bounded ThreadPoolExecutor with at most
    ``concurrency`` objects in flight. Results are written into a buffer
    indexed by input position, so output order equals input order whatever
    the completion order.
  - Progress events go through a single-worker executor: serialized, never
    interleaved, and never blocking the scan on a slow consumer.
"""

from __future__ import annotations

import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from datetime import timedelta
from typing import Callable, Optional, Sequence, Union

from policyscan.errors import EnumerationError
from policyscan.models.policy import PolicyObject, ScriptRoot
from policyscan.models.scan import (
    MetadataSnippet,
    ProgressEvent,
    ScanOptions,
    ScanOutcome,
    ScanResult,
)
from policyscan.scanner.evidence import EvidenceCollector
from policyscan.scanner.matcher import LiteralMatcher
from policyscan.scanner.metadata import FetchDocument, search_metadata
from policyscan.scanner.scripts import search_script_tree
from policyscan.utils.logger import (
    PerformanceLogger,
    clear_scan_id,
    get_logger,
    set_scan_id,
)
from policyscan.utils.ulid import generate_ulid

logger = get_logger(__name__)

ListPolicies = Callable[[], Sequence[PolicyObject]]
ResolveScriptRoot = Callable[[str], ScriptRoot]
ProgressSink = Callable[[ProgressEvent], None]


# ─── Per-scan context ─────────────────────────────────────────────────────────


class ScanContext:
    """State owned by exactly one scan invocation.

    Replaces any process-wide timer or counter: created at the start of
    ``run()``, passed explicitly to every worker and closed at the end.
    """

    def __init__(self, total: int, on_progress: Optional[ProgressSink] = None) -> None:
        self.scan_id = generate_ulid()
        self.total = total
        self._started = time.perf_counter()
        self._on_progress = on_progress
        self._dispatcher: Optional[ThreadPoolExecutor] = None
        if on_progress is not None:
            self._dispatcher = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="policyscan-progress"
            )

    def elapsed(self) -> timedelta:
        return timedelta(seconds=time.perf_counter() - self._started)

    def report_progress(self, index: int, label: str) -> None:
        """Queue a progress event for object ``index`` (1-based) of ``total``.

        The event is built here, on the calling thread, so its index, total
        and percent always agree. Delivery happens on the dispatcher thread.
        """
        if self._dispatcher is None:
            return
        event = ProgressEvent(
            index=index,
            total=self.total,
            percent=round(index / self.total * 100),
            elapsed=self.elapsed(),
            label=label,
        )
        self._dispatcher.submit(self._deliver, event)

    def _deliver(self, event: ProgressEvent) -> None:
        sink = self._on_progress
        if sink is None:
            return
        try:
            sink(event)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Progress consumer raised — event dropped",
                scan_id=self.scan_id,
                index=event.index,
                error=str(exc),
                error_type=type(exc).__name__,
            )

    def close(self) -> None:
        """Flush pending progress events and stop the dispatcher."""
        if self._dispatcher is not None:
            self._dispatcher.shutdown(wait=True)
            self._dispatcher = None


# ─── Orchestrator ─────────────────────────────────────────────────────────────


class ScanOrchestrator:
    """Runs one literal search across every policy object.

    Args:
        list_policies:       Collaborator returning the policy objects to scan.
                             Any failure here is fatal (``EnumerationError``).
        fetch_document:      Collaborator returning one object's metadata document.
        resolve_script_root: Collaborator mapping an identifier to its ScriptRoot.
        on_progress:         Optional progress consumer.
    """

    def __init__(
        self,
        list_policies: ListPolicies,
        fetch_document: FetchDocument,
        resolve_script_root: ResolveScriptRoot,
        on_progress: Optional[ProgressSink] = None,
    ) -> None:
        self._list_policies = list_policies
        self._fetch_document = fetch_document
        self._resolve_script_root = resolve_script_root
        self._on_progress = on_progress

    def run(self, term: str, options: Optional[ScanOptions] = None) -> ScanOutcome:
        """Enumerate policy objects and search each for ``term``.

        Args:
            term:    Literal search term (case-insensitive, never a pattern).
            options: Concurrency / cancellation options; defaults to sequential.

        Returns:
            ScanOutcome with results in input order and the elapsed wall time.

        Raises:
            ValueError:       If ``term`` is empty.
            EnumerationError: If the policy object list cannot be retrieved.
        """
        options = options or ScanOptions()
        matcher = LiteralMatcher.for_term(term)

        try:
            policies = list(self._list_policies())
        except EnumerationError:
            logger.error("Policy object enumeration failed — scan aborted")
            raise
        except Exception as exc:
            logger.error(
                "Policy object enumeration failed — scan aborted",
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise EnumerationError(f"Could not enumerate policy objects: {exc}") from exc

        ctx = ScanContext(total=len(policies), on_progress=self._on_progress)
        set_scan_id(ctx.scan_id)
        logger.info(
            "Scan started",
            total=ctx.total,
            concurrency=options.concurrency,
        )
        try:
            if options.concurrency == 1 or len(policies) <= 1:
                buffer, cancelled = self._run_sequential(ctx, policies, matcher, options)
            else:
                buffer, cancelled = self._run_pooled(ctx, policies, matcher, options)
        finally:
            ctx.close()
            clear_scan_id()

        # Every progress event has been delivered by now.
        results = tuple(result for result in buffer if result is not None)
        elapsed = ctx.elapsed()
        logger.info(
            "Scan completed",
            scan_id=ctx.scan_id,
            total=ctx.total,
            matched=len(results),
            cancelled=cancelled,
            elapsed_ms=round(elapsed.total_seconds() * 1000, 1),
        )
        return ScanOutcome(
            scan_id=ctx.scan_id,
            results=results,
            elapsed=elapsed,
            cancelled=cancelled,
        )

    # ── Scheduling ────────────────────────────────────────────────────────────

    def _run_sequential(
        self,
        ctx: ScanContext,
        policies: list[PolicyObject],
        matcher: LiteralMatcher,
        options: ScanOptions,
    ) -> tuple[list[Optional[ScanResult]], bool]:
        buffer: list[Optional[ScanResult]] = [None] * len(policies)
        for index, policy in enumerate(policies, start=1):
            if _is_cancelled(options):
                logger.info("Scan cancelled", started=index - 1, total=ctx.total)
                return buffer, True
            buffer[index - 1] = self._scan_one(ctx, index, policy, matcher)
        return buffer, False

    def _run_pooled(
        self,
        ctx: ScanContext,
        policies: list[PolicyObject],
        matcher: LiteralMatcher,
        options: ScanOptions,
    ) -> tuple[list[Optional[ScanResult]], bool]:
        buffer: list[Optional[ScanResult]] = [None] * len(policies)
        queue = iter(enumerate(policies, start=1))
        in_flight: dict[Future, int] = {}
        cancelled = False

        with ThreadPoolExecutor(
            max_workers=options.concurrency, thread_name_prefix="policyscan-worker"
        ) as pool:

            def submit_next() -> None:
                nonlocal cancelled
                if cancelled:
                    return
                item = next(queue, None)
                if item is None:
                    return
                if _is_cancelled(options):
                    cancelled = True
                    logger.info("Scan cancelled", started=item[0] - 1, total=ctx.total)
                    return
                index, policy = item
                future = pool.submit(self._scan_one, ctx, index, policy, matcher)
                in_flight[future] = index

            for _ in range(options.concurrency):
                submit_next()

            while in_flight:
                done, _ = wait(list(in_flight), return_when=FIRST_COMPLETED)
                for future in done:
                    index = in_flight.pop(future)
                    buffer[index - 1] = future.result()
                    submit_next()

        return buffer, cancelled

    # ── Per-object work ──────────────────────────────────────────────────────

    def _scan_one(
        self,
        ctx: ScanContext,
        index: int,
        policy: PolicyObject,
        matcher: LiteralMatcher,
    ) -> Optional[ScanResult]:
        """Process one policy object. NEVER raises."""
        set_scan_id(ctx.scan_id)
        ctx.report_progress(index, policy.display_name)
        try:
            return self._search_policy(policy, matcher)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Policy object scan failed — skipped",
                policy=policy.display_name,
                identifier=policy.identifier,
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
            )
            return None

    def _search_policy(self, policy: PolicyObject, matcher: LiteralMatcher) -> Optional[ScanResult]:
        collector = EvidenceCollector()

        with PerformanceLogger("metadata stage", logger, identifier=policy.identifier):
            meta = search_metadata(policy, self._fetch_document, matcher)
        if meta.matched and meta.snippet is not None:
            collector.add(MetadataSnippet(snippet=meta.snippet))

        try:
            script_root: Optional[ScriptRoot] = self._resolve_script_root(policy.identifier)
        except ValueError as exc:
            logger.warning(
                "Script root unresolvable — script stage skipped",
                policy=policy.display_name,
                identifier=policy.identifier,
                error=str(exc),
            )
            script_root = None

        if script_root is not None:
            with PerformanceLogger("script stage", logger, identifier=policy.identifier):
                collector.extend(search_script_tree(script_root, matcher))

        if not collector:
            return None

        sources, evidence = collector.finalize()
        return ScanResult(
            name=policy.display_name,
            identifier=policy.identifier,
            linked=meta.linked,
            sources=sources,
            evidence=evidence,
            modified=policy.modified,
            link_summary=meta.link_summary,
        )


def _is_cancelled(options: ScanOptions) -> bool:
    return options.cancel is not None and options.cancel.is_set()


def run_scan(
    objects: Union[Sequence[PolicyObject], ListPolicies],
    term: str,
    *,
    fetch_document: FetchDocument,
    resolve_script_root: ResolveScriptRoot,
    options: Optional[ScanOptions] = None,
    on_progress: Optional[ProgressSink] = None,
) -> ScanOutcome:
    """Search ``objects`` for ``term``.

    ``objects`` may be the already-enumerated list, or the enumeration
    collaborator itself; a failing collaborator raises ``EnumerationError``.
    """
    if callable(objects):
        list_policies: ListPolicies = objects
    else:
        items = list(objects)
        list_policies = lambda: items  # noqa: E731

    orchestrator = ScanOrchestrator(
        list_policies=list_policies,
        fetch_document=fetch_document,
        resolve_script_root=resolve_script_root,
        on_progress=on_progress,
    )
    return orchestrator.run(term, options)
