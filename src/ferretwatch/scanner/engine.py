# SPDX-License-Identifier: MIT
"""
Scan orchestrator.

Runs one scan as a sequence of per-rule steps: match, validate, score and
aggregate. Cancellation and the global deadline are checked between rules,
never in the middle of a match. Concurrent scans share only the read-only
rule snapshot taken from the registry when the scan starts.
"""
from __future__ import annotations

import asyncio
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional, Union

from ferretwatch.core.content import extract_visible_text
from ferretwatch.core.exceptions import ScanBusyError, ScanFailure
from ferretwatch.core.findings import ScanMetrics, ScanResult, ScanStatus
from ferretwatch.detectors import PatternRegistry, get_default_registry
from ferretwatch.risk.score import RiskScorer, ScoringConfig
from ferretwatch.validate.context import mentions_trusted_domain, origin_is_trusted
from ferretwatch.validate.core import validate_chain

from .aggregate import Aggregator
from .matcher import Clock, match_rule
from .options import ScanOptions

logger = logging.getLogger(__name__)

Content = Union[str, bytes]

_QUEUE_POLL_S = 0.05


class _Ticket:
    """Admission slot held by one scan: ``waiting`` until promoted to ``active``."""

    __slots__ = ("state",)

    def __init__(self, state: str):
        self.state = state


class AdmissionGate:
    """
    Bounds the number of running and queued scans.

    Admission is decided synchronously: a scan either gets a running slot, a
    queue slot, or a :class:`ScanBusyError`. Limits come from the options of
    the scan asking for admission.
    """

    def __init__(self):
        self._cond = threading.Condition()
        self._active = 0
        self._waiting = 0

    @property
    def active(self) -> int:
        return self._active

    @property
    def waiting(self) -> int:
        return self._waiting

    def reserve(self, options: ScanOptions) -> _Ticket:
        with self._cond:
            if self._active < options.max_concurrent_scans:
                self._active += 1
                return _Ticket("active")
            if self._waiting < options.max_queued_scans:
                self._waiting += 1
                return _Ticket("waiting")
        raise ScanBusyError(
            f"{options.max_concurrent_scans} scans already running and the queue is full",
            retry_after_ms=int(min(options.scan_timeout_ms, 1000)),
        )

    def wait_for_slot(
        self,
        ticket: _Ticket,
        options: ScanOptions,
        cancel: Optional[threading.Event] = None,
    ) -> bool:
        """
        Block a queued scan until a running slot frees up.

        Returns False if the scan was cancelled while queued.

        Raises:
            ScanBusyError: no slot freed within the scan budget
        """
        if ticket.state == "active":
            return True

        deadline = time.monotonic() + options.scan_timeout_ms / 1000.0
        with self._cond:
            while self._active >= options.max_concurrent_scans:
                if cancel is not None and cancel.is_set():
                    return False
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    self._waiting -= 1
                    ticket.state = "released"
                    raise ScanBusyError(
                        "Timed out waiting for a free scan slot",
                        retry_after_ms=int(min(options.scan_timeout_ms, 1000)),
                    )
                self._cond.wait(min(remaining, _QUEUE_POLL_S))
            self._waiting -= 1
            self._active += 1
            ticket.state = "active"
            return True

    def release(self, ticket: _Ticket) -> None:
        with self._cond:
            if ticket.state == "active":
                self._active -= 1
            elif ticket.state == "waiting":
                self._waiting -= 1
            ticket.state = "released"
            self._cond.notify_all()


class _ScanTask:
    __slots__ = ("status",)

    def __init__(self):
        self.status = ScanStatus.IDLE


class ScanHandle:
    """Handle to a scan running in the background."""

    def __init__(self, future: Future, cancel_event: threading.Event, task: _ScanTask):
        self._future = future
        self._cancel = cancel_event
        self._task = task

    @property
    def state(self) -> ScanStatus:
        return self._task.status

    @property
    def future(self) -> Future:
        return self._future

    def cancel(self) -> None:
        """Request cancellation; it takes effect at the next rule boundary."""
        self._cancel.set()

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: Optional[float] = None) -> ScanResult:
        return self._future.result(timeout)


class Scanner:
    """
    Scans text content with the active rule set.

    Args:
        registry: Rule registry; defaults to the built-in rule pack
        scoring: Risk scoring configuration
        clock: Monotonic clock in seconds used for budgets
        max_workers: Thread pool size for :meth:`submit`
    """

    def __init__(
        self,
        registry: Optional[PatternRegistry] = None,
        scoring: Optional[ScoringConfig] = None,
        clock: Clock = time.perf_counter,
        max_workers: Optional[int] = None,
    ):
        self.registry = registry if registry is not None else get_default_registry()
        self.scorer = RiskScorer(scoring)
        self.clock = clock
        self._gate = AdmissionGate()
        self._max_workers = max_workers or 16
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()

    # -- public API ------------------------------------------------------
    def scan(
        self,
        content: Content,
        options: Optional[ScanOptions] = None,
        cancel: Optional[threading.Event] = None,
    ) -> ScanResult:
        """
        Scan ``content`` and block until the result is ready.

        Raises:
            ScanFailure: content cannot be decoded as text
            ScanBusyError: concurrency limit reached and the queue is full
        """
        options = options or ScanOptions()
        text, cut = self._prepare(content, options)
        if cancel is None:
            cancel = threading.Event()
        ticket = self._gate.reserve(options)
        try:
            if not self._gate.wait_for_slot(ticket, options, cancel):
                return _cancelled_result()
            return self._run(text, cut, options, cancel, _ScanTask())
        finally:
            self._gate.release(ticket)

    def submit(self, content: Content, options: Optional[ScanOptions] = None) -> ScanHandle:
        """
        Start a scan on the worker pool.

        Admission and content checks happen here, synchronously.

        Raises:
            ScanFailure: content cannot be decoded as text
            ScanBusyError: concurrency limit reached and the queue is full
        """
        options = options or ScanOptions()
        text, cut = self._prepare(content, options)
        ticket = self._gate.reserve(options)
        cancel = threading.Event()
        task = _ScanTask()

        def work() -> ScanResult:
            try:
                if not self._gate.wait_for_slot(ticket, options, cancel):
                    task.status = ScanStatus.CANCELLED
                    return _cancelled_result()
                return self._run(text, cut, options, cancel, task)
            except Exception:
                task.status = ScanStatus.FAILED
                raise
            finally:
                self._gate.release(ticket)

        try:
            future = self._pool().submit(work)
        except Exception:
            self._gate.release(ticket)
            raise

        def on_done(f: Future) -> None:
            # Cancelled before it ever ran: free the slot it was holding
            if f.cancelled():
                task.status = ScanStatus.CANCELLED
                self._gate.release(ticket)

        future.add_done_callback(on_done)
        return ScanHandle(future, cancel, task)

    async def scan_async(self, content: Content, options: Optional[ScanOptions] = None) -> ScanResult:
        """Await a scan from asyncio code; cancelling the awaiting task cancels the scan."""
        handle = self.submit(content, options)
        try:
            return await asyncio.wrap_future(handle.future)
        except asyncio.CancelledError:
            handle.cancel()
            raise

    def close(self) -> None:
        with self._executor_lock:
            if self._executor is not None:
                self._executor.shutdown(wait=True)
                self._executor = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # -- internals -------------------------------------------------------
    def _pool(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers, thread_name_prefix="ferretwatch-scan"
                )
            return self._executor

    def _prepare(self, content: Content, options: ScanOptions):
        """Decode and preprocess content. Returns (text, was_cut)."""
        if isinstance(content, (bytes, bytearray)):
            try:
                content = bytes(content).decode("utf-8")
            except UnicodeDecodeError as e:
                raise ScanFailure(f"Content is not valid UTF-8: {e}", reason="decode") from e
        elif not isinstance(content, str):
            raise ScanFailure(
                f"Expected text content, got {type(content).__name__}", reason="type"
            )

        if options.content_mode == "visible":
            content = extract_visible_text(content)

        cut = len(content) > options.max_content_chars
        if cut:
            logger.debug(
                "Content cut from %d to %d characters", len(content), options.max_content_chars
            )
            content = content[: options.max_content_chars]
        return content, cut

    def _run(
        self,
        text: str,
        cut: bool,
        options: ScanOptions,
        cancel: threading.Event,
        task: _ScanTask,
    ) -> ScanResult:
        task.status = ScanStatus.RUNNING
        clock = self.clock
        started = clock()
        limits = options.to_limits()
        deadline = started + limits.total_budget_ms / 1000.0

        rules = [r for r in self.registry.all_rules() if options.category_enabled(r.category)]
        aggregator = Aggregator()
        status = ScanStatus.COMPLETED
        truncated = cut
        evaluated = matches = rejected = suppressed = below = failed = rules_truncated = 0
        origin_trusted = origin_is_trusted(options.origin, options.trusted_domains)
        if origin_trusted:
            logger.debug("Origin %s is trusted; findings are suppressed", options.origin)

        for rule in rules:
            if cancel.is_set():
                status = ScanStatus.CANCELLED
                break
            if clock() >= deadline:
                status = ScanStatus.TIMED_OUT
                break

            evaluated += 1
            try:
                rule_match = match_rule(
                    text, rule, limits, deadline, clock, options.origin, options.source_label
                )
            except Exception as e:
                logger.warning("Rule %s failed during matching: %s", rule.id, e)
                failed += 1
                continue

            matches += len(rule_match.candidates)
            if rule_match.truncated:
                rules_truncated += 1
                truncated = True

            # Every matched candidate is validated; budgets only bound matching
            rule_failed = False
            for candidate in rule_match.candidates:
                try:
                    passed = validate_chain(candidate, rule)
                except Exception as e:
                    if not rule_failed:
                        logger.warning("Rule %s failed during validation: %s", rule.id, e)
                        failed += 1
                        rule_failed = True
                    passed = None

                if passed is None:
                    rejected += 1
                elif origin_trusted or mentions_trusted_domain(
                    candidate.before + candidate.raw_value + candidate.after,
                    options.trusted_domains,
                ):
                    suppressed += 1
                else:
                    finding = self.scorer.score(candidate, rule, passed)
                    if finding.risk_level < options.risk_threshold:
                        below += 1
                    else:
                        aggregator.add([finding])

            if rule_match.deadline_hit:
                status = ScanStatus.TIMED_OUT
                break

        if status is not ScanStatus.COMPLETED:
            truncated = True
            logger.debug("Scan stopped early: %s after %d rules", status.value, evaluated)

        findings = aggregator.current()
        metrics = ScanMetrics(
            duration_ms=round((clock() - started) * 1000.0, 3),
            patterns_evaluated=evaluated,
            matches_found=matches,
            candidates_rejected=rejected,
            findings_suppressed=suppressed,
            below_threshold=below,
            rules_failed=failed,
            rules_truncated=rules_truncated,
        )
        logger.debug(
            "Scanned %d chars with %d rules: %d findings", len(text), evaluated, len(findings)
        )
        task.status = status
        return ScanResult(findings=findings, metrics=metrics, truncated=truncated, status=status)


def _cancelled_result() -> ScanResult:
    return ScanResult(
        findings=(), metrics=ScanMetrics(), truncated=True, status=ScanStatus.CANCELLED
    )


_scanner: Optional[Scanner] = None
_scanner_lock = threading.Lock()


def get_shared_scanner() -> Scanner:
    """The process-wide scanner behind :func:`scan`; one admission gate for all callers."""
    global _scanner
    with _scanner_lock:
        if _scanner is None:
            _scanner = Scanner()
        return _scanner


def scan(content: Content, options: Optional[ScanOptions] = None) -> ScanResult:
    """Scan with a shared scanner bound to the default registry."""
    return get_shared_scanner().scan(content, options)
