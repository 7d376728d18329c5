"""
NOPAS Policy Console — Web dashboard for editing the scaling policy.

FastAPI application providing:
- Policy overview page (summary, resources, subpolicies)
- JSON API for every editor operation (summary fields, resource and
  subpolicy CRUD, provider parameters, managed resources)
- Refresh / Update actions against the NOPAS policy service
- Recent notifications raised while syncing

Edits only touch the in-memory policy; nothing reaches the service until
``POST /api/send``.
"""

from __future__ import annotations

import html
import logging
from collections import deque
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel

from nopas_console.config import settings
from nopas_console.integrations.nopas_client import NopasClient
from nopas_console.policy.collection_editor import EditErrorCode, EditResult
from nopas_console.policy.conversion import to_server, unsendable_reason
from nopas_console.policy.editor import PolicyEditor
from nopas_console.policy.schema import Provider
from nopas_console.sync import SyncController

logger = logging.getLogger(__name__)


# ── Pydantic request models ────────────────────────────────────


class SummaryUpdate(BaseModel):
    checking_frequency: str | None = None
    ensembler: str | None = None


class NameRequest(BaseModel):
    name: str


class RenameRequest(BaseModel):
    new_name: str


class FieldUpdate(BaseModel):
    field: str
    value: Any = None


class ParameterValue(BaseModel):
    value: Any = None


class DashboardState:
    """Mutable application state injected at startup."""

    def __init__(self) -> None:
        self.client: NopasClient | None = None
        self.editor: PolicyEditor | None = None
        self.sync: SyncController | None = None
        self.notifications: deque[dict[str, str]] = deque(maxlen=settings.max_notifications)
        self.startup_time: datetime = datetime.now(timezone.utc)

    def notify(self, message: str) -> None:
        """Record a user-facing notification."""
        logger.warning("Notification: %s", message)
        self.notifications.appendleft(
            {"message": message, "timestamp": datetime.now(timezone.utc).isoformat()}
        )


state = DashboardState()


# ── Application lifecycle ──────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup & shutdown lifecycle — connect to the policy service and load the policy."""
    if state.client is None:
        state.client = NopasClient(
            base_url=settings.nopas_endpoint,
            timeout=settings.request_timeout_seconds,
        )
    state.editor = PolicyEditor()
    state.sync = SyncController(state.client, state.editor, notify=state.notify)
    logger.info("NOPAS console starting — policy service: %s", state.client.base_url)

    await state.sync.refresh()

    yield

    await state.client.close()
    state.client = None
    logger.info("NOPAS console shut down")


app = FastAPI(
    title="NOPAS Policy Console",
    description="Editor for the NOPAS autoscaling policy",
    version="0.1.0",
    lifespan=lifespan,
)


def _editor() -> PolicyEditor:
    if state.editor is None:
        raise HTTPException(status_code=503, detail="Policy editor not initialized")
    return state.editor


def _sync() -> SyncController:
    if state.sync is None:
        raise HTTPException(status_code=503, detail="Sync controller not initialized")
    return state.sync


_ERROR_STATUS = {
    EditErrorCode.MISSING_NAME: 404,
    EditErrorCode.DUPLICATE_NAME: 409,
    EditErrorCode.EMPTY_NAME: 409,
    EditErrorCode.UNKNOWN_FIELD: 422,
}


def _edit_response(result: EditResult[Any]) -> JSONResponse:
    """Turn an editor result into a response, raising for rejected edits."""
    if not result.is_ok:
        raise HTTPException(status_code=_ERROR_STATUS[result.error_code], detail=result.error)
    return JSONResponse({"status": "ok", "names": list(result.collection)})


# ── HTML page ──────────────────────────────────────────────────


def _html_page(title: str, body: str) -> HTMLResponse:
    """Wrap body HTML in a complete page."""
    return HTMLResponse(f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <title>{title} — NOPAS Console</title>
    <style>
        :root {{
            --bg: #0d1117; --surface: #161b22; --border: #30363d;
            --text: #c9d1d9; --text-muted: #8b949e; --accent: #58a6ff;
        }}
        * {{ box-sizing: border-box; margin: 0; padding: 0; }}
        body {{
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Helvetica, Arial, sans-serif;
            background: var(--bg); color: var(--text); line-height: 1.6;
        }}
        .container {{ max-width: 1200px; margin: 0 auto; padding: 1rem; }}
        header {{
            background: var(--surface); border-bottom: 1px solid var(--border);
            padding: 0.75rem 1rem; display: flex; align-items: center; gap: 1rem;
        }}
        header h1 {{ font-size: 1.2rem; color: var(--accent); }}
        .card {{
            background: var(--surface); border: 1px solid var(--border);
            border-radius: 8px; padding: 1.25rem; margin: 1rem 0;
        }}
        .card h2 {{ font-size: 1rem; margin-bottom: 0.75rem; color: var(--accent); }}
        table {{ width: 100%; border-collapse: collapse; font-size: 0.875rem; }}
        th, td {{ padding: 0.5rem 0.75rem; text-align: left; border-bottom: 1px solid var(--border); }}
        th {{ color: var(--text-muted); font-weight: 600; }}
        .mono {{ font-family: 'SFMono-Regular', Consolas, monospace; font-size: 0.8rem; }}
        .btn {{
            display: inline-block; padding: 0.4rem 1rem; border-radius: 6px;
            border: 1px solid var(--accent); background: var(--accent);
            color: #000; cursor: pointer; font-size: 0.875rem;
        }}
    </style>
    <script src="https://unpkg.com/htmx.org@1.9.10"></script>
</head>
<body>
    <header>
        <h1>NOPAS Policy Console</h1>
        <button class="btn" hx-post="/api/refresh" hx-swap="none">Refresh</button>
        <button class="btn" hx-post="/api/send" hx-swap="none">Update</button>
    </header>
    <div class="container">{body}</div>
</body>
</html>""")


@app.get("/", response_class=HTMLResponse)
async def overview():
    """Policy overview — summary, resources and subpolicies."""
    policy = _editor().snapshot()
    esc = html.escape

    resource_rows = "".join(
        f"""<tr>
            <td>{esc(name)}</td>
            <td class="mono">{esc(str(f.scale_in_cooldown))}</td>
            <td class="mono">{esc(str(f.scale_out_cooldown))}</td>
            <td class="mono">{esc(str(f.ratio))}</td>
            <td class="mono">{esc(str(f.nomad_params.get("JobName", "")))}</td>
            <td class="mono">{esc(str(f.ec2_params.get("ScalingGroupName", "")))}</td>
        </tr>"""
        for name, f in policy.resources_by_name.items()
    )
    subpolicy_rows = "".join(
        f"""<tr>
            <td>{esc(name)}</td>
            <td>{esc(", ".join(f.managed_resources))}</td>
        </tr>"""
        for name, f in policy.subpolicies_by_name.items()
    )
    notice_items = "".join(
        f"<li><span class='mono'>{esc(n['timestamp'])}</span> {esc(n['message'])}</li>"
        for n in list(state.notifications)[:5]
    )

    body = f"""
    <div class="card">
        <h2>Policy</h2>
        <table>
            <tr><th>Checking Frequency</th><td class="mono">{esc(policy.checking_frequency)}</td></tr>
            <tr><th>Ensembler</th><td class="mono">{esc(policy.ensembler)}</td></tr>
        </table>
    </div>
    <div class="card">
        <h2>Resources</h2>
        <table>
            <thead><tr><th>Name</th><th>Scale-In Cooldown</th><th>Scale-Out Cooldown</th>
            <th>Nomad-EC2 Ratio</th><th>Nomad Job</th><th>EC2 Group</th></tr></thead>
            <tbody>{resource_rows}</tbody>
        </table>
    </div>
    <div class="card">
        <h2>Subpolicies</h2>
        <table>
            <thead><tr><th>Name</th><th>Managed Resources</th></tr></thead>
            <tbody>{subpolicy_rows}</tbody>
        </table>
    </div>
    <div class="card">
        <h2>Notifications</h2>
        <ul>{notice_items or "<li>None</li>"}</ul>
    </div>
    """
    return _html_page("Overview", body)


# ── Routes: Policy ─────────────────────────────────────────────


@app.get("/api/policy")
async def api_policy():
    """API: the policy as currently edited."""
    return JSONResponse(_editor().snapshot().model_dump(mode="json"))


@app.get("/api/policy/document")
async def api_policy_document():
    """API: preview of the document ``send`` would post."""
    policy = _editor().snapshot()
    doc = to_server(policy)
    return JSONResponse({
        "sendable": doc is not None,
        "reason": unsendable_reason(policy),
        "document": doc.to_wire() if doc is not None else None,
    })


@app.put("/api/policy/summary")
async def api_policy_summary(req: SummaryUpdate):
    editor = _editor()
    if req.checking_frequency is not None:
        editor.update_checking_frequency(req.checking_frequency)
    if req.ensembler is not None:
        editor.update_ensembler(req.ensembler)
    policy = editor.snapshot()
    return JSONResponse({
        "checking_frequency": policy.checking_frequency,
        "ensembler": policy.ensembler,
    })


@app.get("/api/predefined")
async def api_predefined():
    return JSONResponse({"predefined": _editor().predefined})


@app.get("/api/notifications")
async def api_notifications():
    return JSONResponse({"notifications": list(state.notifications)})


# ── Routes: Sync ───────────────────────────────────────────────

# htmx reloads the overview after a sync.
_RELOAD_PAGE = {"HX-Refresh": "true"}


@app.post("/api/refresh")
async def api_refresh():
    """Reload the policy from the service, discarding unsent edits."""
    outcome = await _sync().refresh()
    return JSONResponse({"outcome": outcome.value}, headers=_RELOAD_PAGE)


@app.post("/api/send")
async def api_send():
    """Replace the service's policy with the edited one."""
    outcome = await _sync().send()
    return JSONResponse({"outcome": outcome.value}, headers=_RELOAD_PAGE)


# ── Routes: Resources ──────────────────────────────────────────


@app.post("/api/resources")
async def api_add_resource(req: NameRequest):
    return _edit_response(_editor().add_resource(req.name))


@app.delete("/api/resources/{name}")
async def api_delete_resource(name: str):
    return _edit_response(_editor().delete_resource(name))


@app.post("/api/resources/{name}/rename")
async def api_rename_resource(name: str, req: RenameRequest):
    return _edit_response(_editor().rename_resource(name, req.new_name))


@app.patch("/api/resources/{name}")
async def api_update_resource(name: str, req: FieldUpdate):
    return _edit_response(_editor().update_resource_field(name, req.field, req.value))


@app.put("/api/resources/{name}/parameters/{provider}/{key}")
async def api_set_parameter(name: str, provider: Provider, key: str, req: ParameterValue):
    return _edit_response(
        _editor().update_provider_parameter(name, provider, key, req.value)
    )


@app.delete("/api/resources/{name}/parameters/{provider}/{key}")
async def api_remove_parameter(name: str, provider: Provider, key: str):
    return _edit_response(_editor().remove_provider_parameter(name, provider, key))


# ── Routes: Subpolicies ────────────────────────────────────────


@app.post("/api/subpolicies")
async def api_add_subpolicy(req: NameRequest):
    return _edit_response(_editor().add_subpolicy(req.name))


@app.delete("/api/subpolicies/{name}")
async def api_delete_subpolicy(name: str):
    return _edit_response(_editor().delete_subpolicy(name))


@app.post("/api/subpolicies/{name}/rename")
async def api_rename_subpolicy(name: str, req: RenameRequest):
    return _edit_response(_editor().rename_subpolicy(name, req.new_name))


@app.patch("/api/subpolicies/{name}")
async def api_update_subpolicy(name: str, req: FieldUpdate):
    return _edit_response(_editor().update_subpolicy_field(name, req.field, req.value))


@app.post("/api/subpolicies/{name}/resources/{resource}")
async def api_attach_resource(name: str, resource: str):
    return _edit_response(_editor().attach_resource(name, resource))


@app.delete("/api/subpolicies/{name}/resources/{resource}")
async def api_detach_resource(name: str, resource: str):
    return _edit_response(_editor().detach_resource(name, resource))


# ── Health ─────────────────────────────────────────────────────


@app.get("/health")
async def health():
    """Health check endpoint."""
    return JSONResponse({
        "status": "healthy",
        "policy_service": state.client.base_url if state.client else None,
        "startup_time": state.startup_time.isoformat(),
    })
