"""
Request-scoped pipeline state: the Result-style StageOutcome each stage
returns and the PipelineRun that collects timings and errors for one valuation.
"""
import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Generic, TypeVar

from ..core.errors import PipelineError, classify_error
from ..core.logging import log_event
from ..core.metrics import observe_run, observe_stage
from ..core.utils import elapsed_ms

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RunStatus(str, Enum):
    SUCCESS = "SUCCESS"
    DEGRADED = "DEGRADED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class StageOutcome(Generic[T]):
    stage: str
    value: T | None = None
    error: PipelineError | None = None
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None

    def value_or(self, default: T) -> T:
        return self.value if self.ok and self.value is not None else default


@dataclass
class PipelineRun:
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    started: float = field(default_factory=time.perf_counter)
    stage_ms: dict[str, float] = field(default_factory=dict)
    stage_errors: dict[str, PipelineError] = field(default_factory=dict)
    status: RunStatus | None = None
    total_ms: float | None = None

    async def settle(self, stage: str, work: Awaitable[T], timeout: float | None = None) -> StageOutcome[T]:
        """
        Await one stage and turn whatever happens into a StageOutcome.
        Cancellation still propagates; every other failure is classified,
        recorded and returned.
        """
        start = time.perf_counter()
        try:
            if timeout is None:
                value = await work
            else:
                value = await asyncio.wait_for(work, timeout=timeout)
        except Exception as exc:
            outcome = StageOutcome(stage, error=classify_error(exc, stage), elapsed_ms=elapsed_ms(start))
        else:
            outcome = StageOutcome(stage, value=value, elapsed_ms=elapsed_ms(start))
        self.record(outcome)
        return outcome

    def record(self, outcome: StageOutcome[Any]):
        self.stage_ms[outcome.stage] = outcome.elapsed_ms
        if outcome.ok:
            log_event(logger, "stage_finished", stage=outcome.stage, elapsed_ms=outcome.elapsed_ms,
                      outcome="ok", request_id=self.request_id)
            observe_stage(outcome.stage, outcome.elapsed_ms, "ok")
        else:
            self.fail_stage(outcome.stage, outcome.error)
            log_event(logger, "stage_failed", logging.WARNING, stage=outcome.stage,
                      elapsed_ms=outcome.elapsed_ms, outcome=outcome.error.kind.value,
                      error=str(outcome.error), request_id=self.request_id)
            observe_stage(outcome.stage, outcome.elapsed_ms, outcome.error.kind.value)

    def fail_stage(self, stage: str, error: PipelineError):
        self.stage_errors[stage] = error

    @property
    def degraded(self) -> bool:
        return bool(self.stage_errors)

    def finish(self, status: RunStatus | None = None) -> RunStatus:
        self.status = status or (RunStatus.DEGRADED if self.degraded else RunStatus.SUCCESS)
        self.total_ms = elapsed_ms(self.started)
        log_event(logger, "valuation_finished", status=self.status.value, total_ms=self.total_ms,
                  stage_errors=sorted(self.stage_errors), request_id=self.request_id)
        observe_run(self.status.value)
        return self.status

    def error_messages(self) -> dict[str, str]:
        return {stage: str(err) for stage, err in self.stage_errors.items()}
