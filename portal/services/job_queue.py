"""
Pay-TV Back-Office Portal
Deferred downstream jobs.

The approval workflows hand work to simulated downstream systems (CM posting,
FICA reversal, SOM update) that answer "later".  Each step is a named job
registered with ``@register_job`` and scheduled with ``JobQueue.enqueue``.

Modes (DOWNSTREAM_MODE):
    - thread: each job runs on a threading.Timer after its delay, inside an
      application context.
    - manual: jobs wait in an in-memory list until ``run_pending()`` (or
      POST /api/v1/admin/jobs/run) drains them.  Used by the test suite.

Jobs must re-read their record and act only if it is still in the state
that scheduled them.  There is no retry and no cancellation.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from contextlib import nullcontext
from datetime import datetime, timezone
from typing import Callable

from flask import Flask, current_app, has_app_context

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  Job Registry
# ═══════════════════════════════════════════════════════════════════════════

_job_registry: dict[str, Callable] = {}


def register_job(name: str):
    """Decorator to register a job function.

    Usage:
        @register_job("adjustment.post_to_cm")
        def post_adjustment(adjustment_id):
            ...
    """
    def decorator(fn: Callable) -> Callable:
        _job_registry[name] = fn
        return fn
    return decorator


def get_registered_jobs() -> dict[str, Callable]:
    """Return all registered job functions."""
    return dict(_job_registry)


class JobQueue:
    """
    Lightweight deferred-job runner.

    Jobs are executed within Flask app context.
    """

    _app: Flask | None = None
    _lock = threading.Lock()
    _pending: list[dict] = []
    _history: list[dict] = []
    _MAX_HISTORY = 200

    @classmethod
    def init_app(cls, app: Flask) -> None:
        """Bind the queue to the Flask app."""
        cls._app = app
        with cls._lock:
            cls._pending = []
            cls._history = []
        app.extensions["job_queue"] = cls
        logger.info("JobQueue initialized: mode=%s, %d registered jobs",
                    cls.mode(), len(_job_registry))

    @classmethod
    def mode(cls) -> str:
        if not cls._app:
            return "manual"
        return cls._app.config.get("DOWNSTREAM_MODE", "thread")

    @classmethod
    def enqueue(cls, job_name: str, delay: float = 0.0, **kwargs) -> dict:
        """Schedule ``job_name`` to run after ``delay`` seconds with ``kwargs``."""
        if job_name not in _job_registry:
            raise KeyError(f"Unknown job: {job_name}")

        entry = {
            "id": uuid.uuid4().hex[:12],
            "job_name": job_name,
            "kwargs": kwargs,
            "delay": delay,
            "enqueued_at": datetime.now(timezone.utc).isoformat(),
        }

        if cls.mode() == "thread":
            timer = threading.Timer(delay, cls._run_entry, args=(entry,))
            timer.daemon = True
            timer.start()
        else:
            with cls._lock:
                cls._pending.append(entry)

        logger.debug("Job enqueued: %s %s (delay=%.1fs)", job_name, kwargs, delay,
                     extra={"job_name": job_name})
        return entry

    @classmethod
    def run_pending(cls, max_rounds: int = 10) -> list[dict]:
        """Drain the manual queue.

        Jobs may enqueue follow-up jobs; those run in the next round, up to
        ``max_rounds`` rounds.
        """
        results = []
        for _ in range(max_rounds):
            with cls._lock:
                batch, cls._pending = cls._pending, []
            if not batch:
                break
            for entry in batch:
                results.append(cls._run_entry(entry))
        return results

    @classmethod
    def pending(cls) -> list[dict]:
        with cls._lock:
            return [dict(e) for e in cls._pending]

    @classmethod
    def history(cls) -> list[dict]:
        with cls._lock:
            return list(cls._history)

    @classmethod
    def clear(cls) -> None:
        with cls._lock:
            cls._pending = []
            cls._history = []

    @classmethod
    def _context(cls):
        """Reuse the active app context (manual drains) or push a fresh one (timers)."""
        if has_app_context() and current_app._get_current_object() is cls._app:
            return nullcontext()
        return cls._app.app_context()

    @classmethod
    def _rollback(cls) -> None:
        from portal.models import db
        with cls._context():
            db.session.rollback()

    @classmethod
    def _run_entry(cls, entry: dict) -> dict:
        """Execute a single queued job inside an app context."""
        job_name = entry["job_name"]
        fn = _job_registry[job_name]

        start = time.monotonic()
        result = None
        error = None
        status = "success"

        try:
            with cls._context():
                result = fn(**entry["kwargs"])
        except Exception as exc:
            status = "failed"
            error = str(exc)
            cls._rollback()
            logger.exception("Job %s failed: %s", job_name, exc, extra={"job_name": job_name})

        record = {
            "id": entry["id"],
            "job_name": job_name,
            "kwargs": entry["kwargs"],
            "status": status,
            "duration_ms": int((time.monotonic() - start) * 1000),
            "result": result,
            "error": error,
            "finished_at": datetime.now(timezone.utc).isoformat(),
        }
        with cls._lock:
            cls._history.append(record)
            if len(cls._history) > cls._MAX_HISTORY:
                del cls._history[: len(cls._history) - cls._MAX_HISTORY]
        return record
