"""FastAPI shell exposing the tally engine to a UI."""

import logging
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import Response
from pydantic import BaseModel

from .backup.remote import RemoteBackupService, RemoteStoreClient
from .config import settings
from .engine.clock import Clock
from .engine.models import GoalSettingsOverride, HistoryEntry
from .engine.session import Session
from .engine.tally import RestoreOutcome, TallyEngine
from .errors import BackupInvalid, HistoryConflict
from .storage.blob_store import SqliteBlobStore
from .storage.profile_store import ProfileStore

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


class StateResponse(BaseModel):
    """Everything the UI renders for the active profile."""

    profile: dict
    counts: dict
    streak: dict
    settings: dict
    progress: float
    progress_label: str
    goal_reached: bool
    history_days: int


class IncrementResponse(StateResponse):
    round_completed: bool
    crossed_goal: bool


class SyncResponse(BaseModel):
    ok: bool
    message: str


def build_engine() -> TallyEngine:
    """Engine backed by the configured SQLite store."""
    store = ProfileStore(SqliteBlobStore(settings.storage_path))
    return TallyEngine(
        store,
        Clock(settings.timezone),
        default_profile=settings.default_profile,
    )


def build_remote(engine: TallyEngine) -> Optional[RemoteBackupService]:
    if not settings.remote_url:
        return None
    client = RemoteStoreClient(
        settings.remote_url, settings.remote_token, settings.remote_folder
    )
    return RemoteBackupService(client, engine)


def state_payload(engine: TallyEngine, session: Session) -> dict:
    state = session.state
    status = engine.status(session)
    return {
        "profile": session.profile.to_document(),
        "counts": state.counts.to_document(),
        "streak": state.streak.to_document(),
        "settings": state.settings.to_document(),
        "progress": status.progress,
        "progress_label": status.progress_label,
        "goal_reached": status.reached,
        "history_days": len(state.history),
    }


def create_app(
    engine: Optional[TallyEngine] = None,
    remote: Optional[RemoteBackupService] = None,
) -> FastAPI:
    """
    Create the API app.

    Args:
        engine: Engine to serve; built from settings on startup if omitted
        remote: Remote backup service; built from settings if omitted
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.engine is None:
            app.state.engine = build_engine()
            app.state.remote = build_remote(app.state.engine)
            app.state.session = app.state.engine.activate()
        yield

    app = FastAPI(
        title="Mala Tally",
        description="Daily bead/round counting with history and streaks",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.state.remote = remote
    app.state.session = engine.activate() if engine is not None else None

    def current(request: Request) -> tuple[TallyEngine, Session]:
        return request.app.state.engine, request.app.state.session

    @app.get("/status")
    async def status(request: Request):
        """Server status endpoint."""
        return {
            "status": "running",
            "version": VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "active_profile": request.app.state.session.profile_id,
            "remote_configured": request.app.state.remote is not None,
        }

    @app.get("/api/profiles")
    async def list_profiles(request: Request):
        engine, session = current(request)
        return {
            "active": session.profile_id,
            "profiles": [profile.to_document() for profile in engine.list_profiles()],
        }

    @app.post("/api/profiles/{profile_id}/activate", response_model=StateResponse)
    async def activate(request: Request, profile_id: str):
        engine, _ = current(request)
        try:
            session = engine.activate(profile_id)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"Unknown profile {profile_id}")
        request.app.state.session = session
        return state_payload(engine, session)

    @app.get("/api/state", response_model=StateResponse)
    async def get_state(request: Request):
        engine, session = current(request)
        return state_payload(engine, session)

    @app.post("/api/increment", response_model=IncrementResponse)
    async def increment(request: Request):
        """Count one bead. Never waits on the network."""
        engine, session = current(request)
        result = engine.increment(session)
        return {
            **state_payload(engine, session),
            "round_completed": result.round_completed,
            "crossed_goal": result.crossed_goal,
        }

    @app.post("/api/reset", response_model=StateResponse)
    async def reset_today(request: Request, confirm: bool = False):
        engine, session = current(request)
        if not engine.reset_today(session, lambda _prompt: confirm):
            raise HTTPException(status_code=409, detail="Confirmation required")
        return state_payload(engine, session)

    @app.put("/api/settings", response_model=StateResponse)
    async def update_settings(request: Request, override: GoalSettingsOverride):
        engine, session = current(request)
        engine.update_settings(session, override)
        return state_payload(engine, session)

    @app.delete("/api/settings", response_model=StateResponse)
    async def clear_settings(request: Request):
        engine, session = current(request)
        engine.clear_settings(session)
        return state_payload(engine, session)

    @app.get("/api/history")
    async def get_history(request: Request):
        _, session = current(request)
        return [entry.to_document() for entry in session.state.history]

    @app.put("/api/history/{day}")
    async def edit_history(request: Request, day: date, entry: HistoryEntry):
        engine, session = current(request)
        try:
            history = engine.edit_history(session, day, entry)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"No history for {day}")
        except HistoryConflict as e:
            raise HTTPException(status_code=409, detail=str(e))
        return [item.to_document() for item in history]

    @app.delete("/api/history/{day}")
    async def delete_history(request: Request, day: date):
        engine, session = current(request)
        try:
            history = engine.delete_history(session, day)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"No history for {day}")
        return [item.to_document() for item in history]

    @app.get("/api/report")
    async def report(request: Request):
        engine, session = current(request)
        summary = engine.report(session)
        return {
            "profile_id": summary.profile_id,
            "profile_name": summary.profile_name,
            "total_beads": summary.total_beads,
            "total_rounds": summary.total_rounds,
            "streak": summary.streak.to_document(),
            "settings": summary.settings.to_document(),
            "days": [
                {"date": day.day.isoformat(), "rounds": day.rounds, "beads": day.beads}
                for day in summary.days
            ],
        }

    @app.get("/api/export")
    async def export(request: Request, all_profiles: bool = False):
        engine, session = current(request)
        if all_profiles:
            content = engine.export_all(session)
            filename = "malatally_backup_all.json"
        else:
            content = engine.export_profile(session)
            filename = f"malatally_backup_{session.profile_id}.json"
        return Response(
            content=content,
            media_type="application/json",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.post("/api/import", response_model=StateResponse)
    async def import_backup(request: Request, confirm: bool = False):
        """Restore from an uploaded backup file (destructive)."""
        engine, session = current(request)
        content = await request.body()
        try:
            outcome = engine.restore(session, content, lambda _prompt: confirm)
        except BackupInvalid as e:
            raise HTTPException(status_code=400, detail=str(e))
        if outcome == RestoreOutcome.CANCELLED:
            raise HTTPException(status_code=409, detail="Confirmation required")
        if outcome == RestoreOutcome.SUPERSEDED:
            raise HTTPException(status_code=409, detail="Profile changed during restore")
        return state_payload(engine, session)

    @app.post("/api/sync/backup", response_model=SyncResponse)
    async def remote_backup(request: Request):
        remote: Optional[RemoteBackupService] = request.app.state.remote
        if remote is None:
            raise HTTPException(status_code=503, detail="Remote backup not configured")
        _, session = current(request)
        result = await remote.backup(session)
        return {"ok": result.ok, "message": result.message}

    @app.post("/api/sync/restore", response_model=SyncResponse)
    async def remote_restore(request: Request, confirm: bool = False):
        remote: Optional[RemoteBackupService] = request.app.state.remote
        if remote is None:
            raise HTTPException(status_code=503, detail="Remote backup not configured")
        _, session = current(request)
        result = await remote.restore(session, lambda _prompt: confirm)
        return {"ok": result.ok, "message": result.message}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=settings.server_host,
        port=settings.server_port,
        log_level=settings.log_level.lower(),
    )
