import logging
import threading
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException
from sqlalchemy.orm import Session

from database import SessionLocal
from live import LiveDashboard
from loader import LedgerLoader
from scheduler import RefreshScheduler
from schemas import (
    CategoryBudgetIn,
    CategoryBudgetRecord,
    DashboardStatus,
    DashboardSummary,
    Preferences,
    PreferencesIn,
    TransactionIn,
    TransactionRecord,
)
from services import CategoryBudgetService, PreferenceService, TransactionService


logger = logging.getLogger(__name__)


class DashboardRegistry:
    """One live dashboard per owner, created on first use."""

    def __init__(
        self,
        loader: Optional[LedgerLoader] = None,
        scheduler: Optional[RefreshScheduler] = None,
    ) -> None:
        self.loader = loader or LedgerLoader()
        self.scheduler = scheduler
        self._dashboards: dict[str, LiveDashboard] = {}
        self._lock = threading.Lock()

    def get(self, owner_id: str) -> LiveDashboard:
        with self._lock:
            dashboard = self._dashboards.get(owner_id)
            if dashboard is None:
                dashboard = LiveDashboard.for_owner(
                    self.loader, owner_id, scheduler=self.scheduler
                )
                self._dashboards[owner_id] = dashboard
            return dashboard

    def drop(self, owner_id: str) -> None:
        with self._lock:
            dashboard = self._dashboards.pop(owner_id, None)
        if dashboard is not None:
            dashboard.close()

    def close_all(self) -> None:
        with self._lock:
            dashboards = list(self._dashboards.values())
            self._dashboards.clear()
        for dashboard in dashboards:
            dashboard.close()
        logger.info(f"registry_closed: dashboards={len(dashboards)}")


app = FastAPI(title="Finance Dashboard")
scheduler = RefreshScheduler()
registry = DashboardRegistry(scheduler=scheduler)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_registry() -> DashboardRegistry:
    return registry


def current_owner(x_owner_id: Optional[str] = Header(default=None)) -> str:
    # identity is resolved upstream; this service only trusts the forwarded id
    if not x_owner_id:
        raise HTTPException(status_code=401, detail="Missing owner")
    return x_owner_id


@app.on_event("startup")
def startup_event():
    scheduler.start()


@app.on_event("shutdown")
def shutdown_event():
    registry.close_all()
    scheduler.stop()


@app.get("/api/dashboard", response_model=DashboardSummary)
def api_dashboard(
    owner_id: str = Depends(current_owner),
    dashboards: DashboardRegistry = Depends(get_registry),
):
    return dashboards.get(owner_id).get_summary()


@app.get("/api/dashboard/status", response_model=DashboardStatus)
def api_dashboard_status(
    owner_id: str = Depends(current_owner),
    dashboards: DashboardRegistry = Depends(get_registry),
):
    return dashboards.get(owner_id).status()


@app.post("/api/dashboard/refresh", response_model=DashboardSummary)
def api_dashboard_refresh(
    owner_id: str = Depends(current_owner),
    dashboards: DashboardRegistry = Depends(get_registry),
):
    dashboard = dashboards.get(owner_id)
    dashboard.refresh()
    return dashboard.get_summary()


@app.put("/api/preferences", response_model=Preferences)
def api_preferences(
    payload: PreferencesIn,
    owner_id: str = Depends(current_owner),
    db: Session = Depends(get_db),
    dashboards: DashboardRegistry = Depends(get_registry),
):
    PreferenceService(db, owner_id).save(payload)
    prefs = Preferences(granularity=payload.budget_period, fixed_costs=payload.fixed_costs)
    dashboards.get(owner_id).apply_preferences(prefs)
    return prefs


@app.post("/api/transactions", response_model=TransactionRecord, status_code=201)
def api_create_transaction(
    payload: TransactionIn,
    owner_id: str = Depends(current_owner),
    db: Session = Depends(get_db),
    dashboards: DashboardRegistry = Depends(get_registry),
):
    # make sure the owner's channel exists before the insert is announced
    dashboards.get(owner_id)
    txn = TransactionService(db, owner_id).create(payload)
    return TransactionRecord.model_validate(txn)


@app.delete("/api/transactions/{transaction_id}", status_code=204)
def api_delete_transaction(
    transaction_id: str,
    owner_id: str = Depends(current_owner),
    db: Session = Depends(get_db),
    dashboards: DashboardRegistry = Depends(get_registry),
):
    dashboards.get(owner_id)
    try:
        TransactionService(db, owner_id).delete(transaction_id)
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.post("/api/categories", response_model=CategoryBudgetRecord, status_code=201)
def api_create_category(
    payload: CategoryBudgetIn,
    owner_id: str = Depends(current_owner),
    db: Session = Depends(get_db),
    dashboards: DashboardRegistry = Depends(get_registry),
):
    try:
        category = CategoryBudgetService(db, owner_id).create(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    # budget rows do not notify the transactions channel
    dashboards.get(owner_id).request_refresh()
    return CategoryBudgetRecord.model_validate(category)
