import time
import uuid

from fastapi import FastAPI, HTTPException, Response, Body, APIRouter, Request

from algorithms import OneRepMaxCalculator
from auth import AuthSession
from config import API_KEY_HEADER, APP_VERSION, load_settings
from db import RecordRepository
from filter_settings import FilterSettingsRepository
from models import PersonalRecord
from record_service import PersonalRecordService
from remote_store import SQLiteDocumentStore
from validation import RecordValidationError, build_record, edit_record, parse_kind


class RateLimiter:
    """Simple in-memory rate limiter."""

    def __init__(self, limit: int = 60, window: int = 60) -> None:
        self.limit = limit
        self.window = window
        self.requests: dict[str, list[float]] = {}

    async def __call__(self, request: Request, call_next):
        ip = request.client.host if request.client else "anon"
        now = time.time()
        history = [t for t in self.requests.get(ip, []) if now - t < self.window]
        if len(history) >= self.limit:
            return Response("rate limit exceeded", status_code=429)
        history.append(now)
        self.requests[ip] = history
        return await call_next(request)


class APIKeyGuard:
    """Reject requests without the configured API token, except health checks."""

    OPEN_PATHS = {"/health"}

    def __init__(self, token: str) -> None:
        self.token = token

    async def __call__(self, request: Request, call_next):
        if request.url.path not in self.OPEN_PATHS:
            if request.headers.get(API_KEY_HEADER) != self.token:
                return Response("invalid api key", status_code=401)
        return await call_next(request)


class RecordsAPI:
    """Provides REST endpoints for personal record tracking."""

    def __init__(
        self,
        db_path: str = "records.db",
        yaml_path: str = "settings.yaml",
        *,
        remote_db_path: str | None = None,
        rate_limit: int | None = None,
        rate_window: int = 60,
    ) -> None:
        self.db_path = db_path
        self.settings = load_settings(yaml_path)
        self.repo = RecordRepository(db_path)
        self.filters = FilterSettingsRepository(db_path)
        self.session = AuthSession(self.settings.user_id)
        remote_path = remote_db_path
        if remote_path is None and self.settings.user_id:
            remote_path = self.settings.remote_db_path
        self.remote = (
            SQLiteDocumentStore(remote_path, self.session) if remote_path else None
        )
        self.service = PersonalRecordService(self.repo, self.remote, self.session)
        self.app = FastAPI(
            title="Personal Records API",
            description="REST API for personal records and one-rep-max estimates",
            version=APP_VERSION,
        )
        if rate_limit is not None:
            limiter = RateLimiter(limit=rate_limit, window=rate_window)
            self.app.middleware("http")(limiter)
        if self.settings.api_token:
            self.app.middleware("http")(APIKeyGuard(self.settings.api_token))
        self._setup_routes()

    def _record_dict(self, record: PersonalRecord) -> dict:
        data = record.to_dict()
        data["formatted_value"] = record.formatted_value(self.settings.weight_unit)
        data["formatted_date"] = record.formatted_date
        return data

    def _require_record(self, record_id: uuid.UUID) -> PersonalRecord:
        record = self.service.get_record(record_id)
        if record is None:
            raise HTTPException(status_code=404, detail="record not found")
        return record

    def _setup_routes(self) -> None:
        records_router = APIRouter(prefix="/records", tags=["Records"])
        lifts_router = APIRouter(prefix="/lifts", tags=["Lifts"])
        filters_router = APIRouter(prefix="/filters", tags=["Filters"])

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            """Return API and database connection status."""
            try:
                self.repo.keys()
                return {"status": "ok"}
            except Exception as e:  # pragma: no cover - connectivity failure
                raise HTTPException(status_code=500, detail=str(e))

        @records_router.get("")
        def list_records(lift_name: str = None):
            if lift_name:
                rows = self.service.get_records_for_lift(lift_name)
            else:
                rows = self.service.get_all_records()
            return [self._record_dict(r) for r in rows]

        @records_router.post("")
        def add_record(
            lift_name: str,
            kind: str = "Weight",
            value: str = None,
            minutes: int = None,
            seconds: int = None,
            date: str = None,
            notes: str = None,
            is_custom: bool = False,
        ):
            try:
                record = build_record(
                    lift_name,
                    kind,
                    value,
                    minutes=minutes,
                    seconds=seconds,
                    date=date,
                    notes=notes,
                    is_custom=is_custom or self.service.is_custom_lift(lift_name.strip()),
                )
            except RecordValidationError as e:
                raise HTTPException(status_code=400, detail=str(e))
            self.service.add_record(record)
            return {"id": str(record.id)}

        @records_router.get("/recent")
        def recent_records(limit: int = 5):
            return [self._record_dict(r) for r in self.service.get_recent_records(limit)]

        @records_router.get("/filtered")
        def filtered_records():
            settings = self.filters.load()
            rows = settings.filtered_records(
                self.service.get_all_records(), self.service.custom_lifts
            )
            return [self._record_dict(r) for r in rows]

        @records_router.get("/best")
        def best_record(lift_name: str = None, kind: str = "Weight"):
            if lift_name:
                try:
                    record_kind = parse_kind(kind)
                except RecordValidationError as e:
                    raise HTTPException(status_code=400, detail=str(e))
                record = self.service.get_best_record(lift_name, record_kind)
            else:
                record = self.service.best_overall_record()
            if record is None:
                raise HTTPException(status_code=404, detail="no records")
            return self._record_dict(record)

        @records_router.get("/{record_id}")
        def get_record(record_id: uuid.UUID):
            return self._record_dict(self._require_record(record_id))

        @records_router.put("/{record_id}")
        def update_record(
            record_id: uuid.UUID,
            lift_name: str,
            kind: str = None,
            value: str = None,
            minutes: int = None,
            seconds: int = None,
            date: str = None,
            notes: str = None,
        ):
            original = self._require_record(record_id)
            try:
                record = edit_record(
                    original,
                    lift_name,
                    kind,
                    value,
                    minutes=minutes,
                    seconds=seconds,
                    date=date,
                    notes=notes,
                )
            except RecordValidationError as e:
                raise HTTPException(status_code=400, detail=str(e))
            self.service.update_record(record)
            return {"status": "updated"}

        @records_router.delete("/{record_id}")
        def delete_record(record_id: uuid.UUID):
            self.service.delete_record(self._require_record(record_id))
            return {"status": "deleted"}

        @lifts_router.get("")
        def list_lifts(filtered: bool = False):
            lifts = self.service.get_all_lifts()
            if filtered:
                lifts = self.filters.load().filtered_lifts(lifts, self.service.custom_lifts)
            return {
                "major": self.service.major_lifts,
                "custom": self.service.custom_lifts,
                "all": lifts,
            }

        @lifts_router.post("/custom")
        def add_custom_lift(name: str):
            name = name.strip()
            if not name:
                raise HTTPException(status_code=400, detail="Please enter a lift name.")
            if not self.service.add_custom_lift(name):
                raise HTTPException(status_code=400, detail="lift already exists")
            return {"status": "added"}

        @lifts_router.delete("/custom/{name}")
        def remove_custom_lift(name: str):
            if not self.service.is_custom_lift(name):
                raise HTTPException(status_code=404, detail="custom lift not found")
            self.service.remove_custom_lift(name)
            return {"status": "deleted"}

        @lifts_router.get("/{name}/record")
        def lift_record(name: str):
            record = self.service.get_personal_record(name)
            if record is None:
                raise HTTPException(status_code=404, detail="no record for lift")
            return self._record_dict(record)

        @lifts_router.get("/{name}/history")
        def lift_history(name: str):
            return {
                "default_kind": self.service.get_default_record_kind(name).value,
                "records": [
                    self._record_dict(r) for r in self.service.get_records_for_lift(name)
                ],
            }

        @self.app.get("/stats")
        def stats():
            return self.service.summary()

        @self.app.get("/estimate")
        def estimate(weight: float, reps: int, formula: str = "epley"):
            try:
                one_rm = OneRepMaxCalculator.estimate(weight, reps, formula)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            settings = self.filters.load()
            return {
                "one_rep_max": round(one_rm, 1),
                "formula": formula,
                "rep_maxes": OneRepMaxCalculator.rep_max_table(
                    one_rm, settings.visible_rep_targets()
                ),
                "percentages": OneRepMaxCalculator.percentage_table(one_rm),
            }

        @filters_router.get("")
        def get_filters():
            return self.filters.load().model_dump(mode="json")

        @filters_router.put("")
        def update_filters(changes: dict = Body(...)):
            try:
                settings = self.filters.update(**changes)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return settings.model_dump(mode="json")

        @filters_router.post("/reset")
        def reset_filters(section: str = "all"):
            resets = {
                "all": self.filters.reset_to_defaults,
                "kinds": self.filters.reset_record_kind_filters,
                "lifts": self.filters.reset_lift_type_filters,
                "estimations": self.filters.reset_estimation_filters,
            }
            if section not in resets:
                raise HTTPException(status_code=400, detail="unknown section")
            return resets[section]().model_dump(mode="json")

        @self.app.post("/auth/sign_in")
        async def sign_in(user_id: str):
            if self.remote is None:
                raise HTTPException(status_code=400, detail="remote store not configured")
            self.session.sign_in(user_id)
            await self.service.wait_for_pending()
            return {"status": "signed_in", "user_id": user_id}

        @self.app.post("/auth/sign_out")
        def sign_out():
            self.session.sign_out()
            return {"status": "signed_out"}

        @self.app.post("/sync")
        async def sync_now():
            if self.remote is None or not self.session.is_authenticated:
                raise HTTPException(status_code=400, detail="not signed in")
            await self.service.sync()
            await self.service.wait_for_pending()
            last = self.service.last_sync_date
            return {"last_sync_date": last.isoformat() if last else None}

        self.app.include_router(records_router)
        self.app.include_router(lifts_router)
        self.app.include_router(filters_router)


def create_app(db_path: str = "records.db", yaml_path: str = "settings.yaml") -> FastAPI:
    return RecordsAPI(db_path=db_path, yaml_path=yaml_path).app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app())
