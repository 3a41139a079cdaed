import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import date, datetime

from perfreview.core.errors import AppError, InvalidState, NotFound
from perfreview.models.review_cycle import ReviewCycle
from perfreview.services.instantiator import ReviewInstantiator
from perfreview.services.recurrence import next_run
from perfreview.services.store import ReviewStore

logger = logging.getLogger(__name__)

GENERIC_CYCLE_ERROR = "Internal error while processing the cycle"


@dataclass
class CycleRunResult:
    cycle_id: uuid.UUID
    cycle_name: str
    success: bool
    reviews_requested: int = 0
    reviews_created: int = 0
    next_run_date: date | None = None
    error: str | None = None


@dataclass
class SchedulerSummary:
    processed_at: datetime
    cycles_processed: int = 0
    results: list[CycleRunResult] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    def to_dict(self) -> dict:
        return asdict(self)


class CycleScheduler:
    """
    Periodic driver: runs every active cycle whose next run date has arrived.

    Cycles are processed one after another and each is its own unit of work.
    A failing cycle is rolled back and reported in its result entry; the
    remaining cycles still run.
    """

    def __init__(self, store: ReviewStore, instantiator: ReviewInstantiator):
        self.store = store
        self.instantiator = instantiator

    def process_due_cycles(self, now: datetime) -> SchedulerSummary:
        summary = SchedulerSummary(processed_at=now)
        due = self.store.find_due_cycles(now)
        logger.info("Found due cycles", extra={"count": len(due), "now": now.isoformat()})

        for cycle in due:
            cycle_id, cycle_name = cycle.id, cycle.name
            anchor = cycle.next_run_date or now.date()
            try:
                result = self._run(cycle, now, anchor)
            except AppError as exc:
                self.store.rollback()
                logger.warning(
                    "Cycle run failed",
                    extra={"cycle_id": str(cycle_id), "error": exc.message},
                )
                result = CycleRunResult(
                    cycle_id=cycle_id,
                    cycle_name=cycle_name,
                    success=False,
                    reviews_created=getattr(exc, "created_count", 0),
                    error=exc.message,
                )
            except Exception:
                self.store.rollback()
                logger.exception("Cycle run crashed", extra={"cycle_id": str(cycle_id)})
                result = CycleRunResult(
                    cycle_id=cycle_id,
                    cycle_name=cycle_name,
                    success=False,
                    error=GENERIC_CYCLE_ERROR,
                )
            summary.results.append(result)

        summary.cycles_processed = len(summary.results)
        logger.info(
            "Completed processing cycles",
            extra={"cycles_processed": summary.cycles_processed, "failed": summary.failed},
        )
        return summary

    def launch_cycle(self, cycle_id: uuid.UUID, now: datetime, actor_id: uuid.UUID | None = None) -> CycleRunResult:
        """HR "run now"; the next run is scheduled from the later of start date and today."""
        cycle = self.store.get_cycle(cycle_id)
        if cycle is None:
            raise NotFound("Review cycle not found")
        if not cycle.is_active:
            raise InvalidState("Inactive cycles cannot be launched")

        anchor = max(cycle.start_date, now.date())
        try:
            return self._run(cycle, now, anchor, actor_id=actor_id)
        except Exception:
            self.store.rollback()
            raise

    def _run(self, cycle: ReviewCycle, now: datetime, anchor: date, actor_id: uuid.UUID | None = None) -> CycleRunResult:
        employees = self.store.resolve_population(cycle)
        created = self.instantiator.instantiate(cycle, employees, run_date=now.date())

        next_date = next_run(anchor, cycle.frequency)
        self.store.update_cycle_run_dates(cycle.id, now, next_date)
        self.store.record_event(
            actor_id,
            "CYCLE_RUN",
            "review_cycle",
            cycle.id,
            {
                "requested": created.requested,
                "created": created.created_count,
                "next_run_date": next_date.isoformat(),
            },
        )
        self.store.commit()

        logger.info(
            "Cycle processed",
            extra={
                "cycle_id": str(cycle.id),
                "reviews_created": created.created_count,
                "next_run_date": next_date.isoformat(),
            },
        )
        return CycleRunResult(
            cycle_id=cycle.id,
            cycle_name=cycle.name,
            success=True,
            reviews_requested=created.requested,
            reviews_created=created.created_count,
            next_run_date=next_date,
        )
