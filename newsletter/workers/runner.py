from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from newsletter.domain.error_taxonomy import classify_error, error_code_for
from newsletter.domain.models import ExecutionOutcome
from newsletter.settings import env_int
from newsletter.workers.loop import DeliveryWorkerLoop


@dataclass(frozen=True)
class WorkerRuntimeSettings:
    poll_interval_ms: int = 0
    idle_backoff_ms: int = 10000
    error_backoff_ms: int = 1000


@dataclass
class WorkerRuntimeState:
    started: bool = False
    stopped: bool = False
    ticks_total: int = 0
    delivered_total: int = 0
    skipped_total: int = 0
    idle_ticks_total: int = 0
    errors_total: int = 0


def worker_runtime_settings_from_env() -> WorkerRuntimeSettings:
    defaults = WorkerRuntimeSettings()
    return WorkerRuntimeSettings(
        poll_interval_ms=env_int("WORKER_POLL_INTERVAL_MS", defaults.poll_interval_ms, minimum=0),
        idle_backoff_ms=env_int("WORKER_IDLE_BACKOFF_MS", defaults.idle_backoff_ms),
        error_backoff_ms=env_int("WORKER_ERROR_BACKOFF_MS", defaults.error_backoff_ms),
    )


def _record_outcome(state: WorkerRuntimeState, outcome: ExecutionOutcome) -> None:
    state.ticks_total += 1
    if outcome is ExecutionOutcome.EMPTY_QUEUE:
        state.idle_ticks_total += 1
    elif outcome is ExecutionOutcome.DELIVERED:
        state.delivered_total += 1
    else:
        state.skipped_total += 1


async def run_worker_until_stopped(
    *,
    worker_loop: DeliveryWorkerLoop,
    role: str,
    run_id: str,
    stop_event: asyncio.Event,
    settings: WorkerRuntimeSettings,
    logger: logging.Logger,
    state: WorkerRuntimeState | None = None,
) -> None:
    if state is not None:
        state.started = True

    logger.info(
        "worker loop started",
        extra={"role": role, "service": role, "run_id": run_id},
    )

    while not stop_event.is_set():
        delay_ms = settings.idle_backoff_ms
        try:
            outcome = await worker_loop.run_once()
            if state is not None:
                _record_outcome(state, outcome)
            if outcome is ExecutionOutcome.EMPTY_QUEUE:
                delay_ms = settings.idle_backoff_ms
            else:
                delay_ms = settings.poll_interval_ms
            logger.debug(
                "worker tick",
                extra={"role": role, "service": role, "run_id": run_id, "outcome": str(outcome)},
            )
        except Exception as exc:
            if state is not None:
                state.ticks_total += 1
                state.errors_total += 1
            delay_ms = settings.error_backoff_ms
            # Errors outside the domain hierarchy come from the queue storage.
            error_code = error_code_for(exc, default="storage_unavailable")
            logger.exception(
                "worker tick error",
                extra={
                    "role": role,
                    "service": role,
                    "run_id": run_id,
                    "error_code": error_code,
                    "retry_classification": classify_error(error_code),
                },
            )

        if delay_ms <= 0:
            # Yield so a busy queue does not starve the event loop.
            await asyncio.sleep(0)
            continue
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=delay_ms / 1000)
        except TimeoutError:
            continue

    logger.info(
        "worker loop stopped",
        extra={"role": role, "service": role, "run_id": run_id},
    )
    if state is not None:
        state.stopped = True
