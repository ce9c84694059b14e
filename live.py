"""Keeps one owner's dashboard summary current.

A ``LiveDashboard`` holds at most one change-notification channel, always for
its current owner. Every ledger change, owner switch, granularity change or
fixed-cost change re-runs the whole load + aggregate pass; nothing is patched
in place. Each pass takes a generation ticket and only the newest ticket may
publish, so a slow pass that finishes late can never replace a newer summary.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, Optional, Union

from aggregator import aggregate
from config import get_settings
from loader import LedgerLoader
from notifications import ChangeEvent, ChangeFeed, Channel, change_feed
from periods import BudgetPeriod, local_now, resolve_period
from scheduler import RefreshScheduler
from schemas import DashboardStatus, DashboardSummary, FixedCostItem, Preferences
from subscriptions import KeywordSubscriptionClassifier, SubscriptionClassifier


logger = logging.getLogger(__name__)

WATCHED_TABLE = "transactions"

SummaryListener = Callable[[DashboardSummary], None]


class DashboardState(str, Enum):
    idle = "idle"
    subscribed = "subscribed"
    refreshing = "refreshing"


@dataclass(frozen=True)
class _Pass:
    ticket: int
    epoch: int
    owner_id: str
    granularity: BudgetPeriod
    fixed_costs: list[FixedCostItem]


class LiveDashboard:
    def __init__(
        self,
        loader: LedgerLoader,
        feed: Optional[ChangeFeed] = None,
        *,
        scheduler: Optional[RefreshScheduler] = None,
        clock: Optional[Callable[[], datetime]] = None,
        classifier: Optional[SubscriptionClassifier] = None,
        granularity: Union[BudgetPeriod, str, None] = None,
        fixed_costs: Optional[Iterable[FixedCostItem]] = None,
    ) -> None:
        self.settings = get_settings()
        self.loader = loader
        self.feed = feed or change_feed
        self.scheduler = scheduler
        self.clock = clock or local_now
        self.classifier = classifier or KeywordSubscriptionClassifier()

        self._lock = threading.RLock()
        self._owner_id: Optional[str] = None
        self._channel: Optional[Channel] = None
        self._granularity = BudgetPeriod.coerce(
            granularity or self.settings.default_granularity
        )
        self._fixed_costs = list(fixed_costs or [])
        self._summary = DashboardSummary.empty(self._granularity)
        self._generation = 0
        self._epoch = 0
        self._running: dict[int, int] = {}
        self._rerun = False
        self._last_error: Optional[str] = None
        self._closed = False
        self._listeners: list[SummaryListener] = []

    @classmethod
    def for_owner(
        cls, loader: LedgerLoader, owner_id: str, **kwargs
    ) -> "LiveDashboard":
        """Build a dashboard seeded with the owner's stored preferences."""
        prefs = loader.load_preferences(owner_id)
        dashboard = cls(
            loader,
            granularity=prefs.granularity,
            fixed_costs=prefs.fixed_costs,
            **kwargs,
        )
        dashboard.set_owner(owner_id)
        return dashboard

    @property
    def owner_id(self) -> Optional[str]:
        return self._owner_id

    @property
    def granularity(self) -> BudgetPeriod:
        return self._granularity

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def channel(self) -> Optional[Channel]:
        return self._channel

    @property
    def state(self) -> DashboardState:
        with self._lock:
            if self._owner_id is None:
                return DashboardState.idle
            if self._loading():
                return DashboardState.refreshing
            return DashboardState.subscribed

    def get_summary(self) -> DashboardSummary:
        return self._summary

    def is_loading(self) -> bool:
        with self._lock:
            return self._loading()

    def status(self) -> DashboardStatus:
        with self._lock:
            return DashboardStatus(
                state=self.state.value,
                loading=self._loading(),
                generation=self._generation,
                owner_id=self._owner_id,
                last_error=self._last_error,
            )

    def on_publish(self, listener: SummaryListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def set_owner(self, owner_id: Optional[str]) -> None:
        with self._lock:
            if self._closed:
                raise RuntimeError("Dashboard is closed")
            if owner_id == self._owner_id:
                return
            self._release()
            self._generation += 1
            self._epoch += 1
            self._rerun = False
            self._owner_id = owner_id
            self._summary = DashboardSummary.empty(self._granularity)
            self._last_error = None
            if owner_id is None:
                logger.info("dashboard_idle: owner cleared")
                return
            self._channel = self.feed.channel(WATCHED_TABLE, owner_id, self._on_change)
            if self.scheduler is not None:
                self.scheduler.watch(self._job_id(owner_id), self.refresh)
            logger.info(f"dashboard_subscribed: owner={owner_id}")
        self.request_refresh()

    def set_granularity(self, granularity: Union[BudgetPeriod, str, None]) -> None:
        period = BudgetPeriod.coerce(granularity)
        with self._lock:
            if period == self._granularity:
                return
            self._granularity = period
        self.request_refresh()

    def set_fixed_costs(self, fixed_costs: Optional[Iterable[FixedCostItem]]) -> None:
        with self._lock:
            self._fixed_costs = list(fixed_costs or [])
        self.request_refresh()

    def apply_preferences(self, prefs: Preferences) -> None:
        with self._lock:
            self._granularity = prefs.granularity
            self._fixed_costs = list(prefs.fixed_costs)
        self.request_refresh()

    def request_refresh(self) -> None:
        with self._lock:
            owner_id = self._owner_id
            if owner_id is None or self._closed:
                return
            if self._loading():
                # picked up by the running pass once it finishes
                self._rerun = True
                logger.debug(f"refresh_queued: owner={owner_id}")
                return
        if self.scheduler is not None:
            self.scheduler.submit(self._job_id(owner_id), self.refresh)
        else:
            self.refresh()

    def refresh(self) -> Optional[DashboardSummary]:
        """Run a full pass and publish it unless a newer pass has started.

        Triggers that arrive while the pass runs are folded into one more
        pass after it. Returns the summary the last pass published, or None
        when there is no owner, the last pass failed, or its result was
        superseded.
        """
        with self._lock:
            if self._closed or self._owner_id is None:
                return None
            job = self._begin_pass()
        summary: Optional[DashboardSummary] = None
        while job is not None:
            summary, job = self._run_pass(job)
        return summary

    def _begin_pass(self) -> _Pass:
        self._generation += 1
        job = _Pass(
            ticket=self._generation,
            epoch=self._epoch,
            owner_id=self._owner_id,
            granularity=self._granularity,
            fixed_costs=list(self._fixed_costs),
        )
        self._running[job.ticket] = job.epoch
        logger.debug(f"refresh_start: owner={job.owner_id} generation={job.ticket}")
        return job

    def _run_pass(
        self, job: _Pass
    ) -> tuple[Optional[DashboardSummary], Optional[_Pass]]:
        owner_id = job.owner_id
        ticket = job.ticket
        summary: Optional[DashboardSummary] = None
        error: Optional[Exception] = None
        try:
            transactions = self.loader.load_transactions(owner_id)
            category_budgets = self.loader.load_category_budgets(owner_id)
            now = self.clock()
            summary = aggregate(
                transactions,
                category_budgets,
                resolve_period(now, job.granularity),
                job.granularity,
                job.fixed_costs,
                classifier=self.classifier,
                recent_limit=self.settings.recent_limit,
                subscription_limit=self.settings.subscription_limit,
                insight_threshold=self.settings.insight_threshold,
                generated_at=now,
            )
        except Exception as exc:
            error = exc
            logger.exception(f"dashboard: refresh failed owner={owner_id}")

        with self._lock:
            self._running.pop(ticket, None)
            stale = self._closed or ticket != self._generation
            follow_up = None
            if self._rerun and not self._closed and job.epoch == self._epoch:
                self._rerun = False
                follow_up = self._begin_pass()
            if stale:
                logger.info(
                    f"refresh_discarded: owner={owner_id} generation={ticket} "
                    f"latest={self._generation}"
                )
                return None, follow_up
            if error is not None:
                self._last_error = str(error)
                return None, follow_up
            self._summary = summary
            self._last_error = None
            listeners = list(self._listeners)

        logger.info(
            f"refresh_published: owner={owner_id} generation={ticket} "
            f"transactions={summary.total_transactions}"
        )
        for listener in listeners:
            try:
                listener(summary)
            except Exception:
                logger.exception("dashboard: summary listener failed")
        return summary, follow_up

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._generation += 1
            self._epoch += 1
            self._rerun = False
            self._release()
            self._owner_id = None
        logger.info("dashboard_closed")

    def __enter__(self) -> "LiveDashboard":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _loading(self) -> bool:
        # passes left over from a previous owner do not count
        return any(epoch == self._epoch for epoch in self._running.values())

    def _release(self) -> None:
        if self._channel is not None:
            self._channel.close()
            self._channel = None
        if self.scheduler is not None and self._owner_id is not None:
            self.scheduler.unwatch(self._job_id(self._owner_id))

    def _on_change(self, change: ChangeEvent) -> None:
        logger.debug(
            f"dashboard_change: owner={change.owner_id} table={change.table} "
            f"kind={change.kind.value}"
        )
        self.request_refresh()

    @staticmethod
    def _job_id(owner_id: str) -> str:
        return f"dashboard:{owner_id}"
