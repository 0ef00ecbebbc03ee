"""
ui/web_app.py — FastAPI web server for Voice Launch Control.

Serves the mission control page at http://localhost:<port>/ and streams live
session events to the browser over a WebSocket at /ws.

REST endpoints
--------------
GET  /           HTML mission control page
GET  /health     JSON health check
GET  /state      Current session snapshot
POST /click      Rocket clicked                      {}
POST /reset      Reset mission                       {}
POST /command    Recognised speech from the browser  {"text": "...", "final": true}
POST /listen     Toggle server-side voice listening  {}

WebSocket
---------
ws://<host>:<port>/ws

Messages pushed by server (JSON):
  {"type": "snapshot",     "status": "IDLE", "remaining": 0, ...}  ← on connect
  {"type": "state",        "status": "COUNTING_DOWN", "remaining": 7, "event": "TICK", ...}
  {"type": "announcement", "text": "T minus 10"}
  {"type": "transcript",   "text": "let's launch", "final": false}
  {"type": "listening",    "listening": true}
  {"type": "notice",       "message": "Voice recognition not supported"}

Messages accepted from the browser:
  {"action": "click" | "reset" | "listen"}
  {"action": "command", "text": "...", "final": true}
"""

from __future__ import annotations

import asyncio
import json
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel, field_validator

from core.logger import get_logger
from pipeline.controller import (
    ON_ANNOUNCEMENT,
    ON_LISTENING_CHANGED,
    ON_NOTICE,
    ON_STATE_CHANGED,
    ON_TRANSCRIPT,
    MissionController,
)

_log = get_logger()

# ── Static file path ──────────────────────────────────────────────────────────
_STATIC_DIR = Path(__file__).parent / "static"

# ── FastAPI app ───────────────────────────────────────────────────────────────
app = FastAPI(title="Voice Launch Control", version="1.0")

# ── Shared state ──────────────────────────────────────────────────────────────
_controller: Optional[MissionController] = None
_connected_clients: Set[WebSocket] = set()
_clients_lock = threading.Lock()

# asyncio event loop running in the uvicorn thread
_loop: Optional[asyncio.AbstractEventLoop] = None


# ── Request bodies ────────────────────────────────────────────────────────────

class CommandRequest(BaseModel):
    """A transcript produced by the browser's own speech recognition."""

    text: str
    final: bool = True

    @field_validator("text")
    @classmethod
    def must_be_non_empty(cls, v: str) -> str:
        """
        Validate that the transcript is not blank.

        Raises:
            ValueError: If the string is empty or whitespace-only.
        """
        if not v or not v.strip():
            raise ValueError("Transcript must not be empty")
        return v.strip()


# ── WebSocket helpers ─────────────────────────────────────────────────────────

def _push(msg: Dict[str, Any]) -> None:
    """Thread-safe push of a JSON message to every connected WebSocket client."""
    if _loop is None:
        return
    asyncio.run_coroutine_threadsafe(_broadcast(msg), _loop)


async def _broadcast(msg: Dict[str, Any]) -> None:
    text = json.dumps(msg)
    with _clients_lock:
        clients = list(_connected_clients)
    dead: List[WebSocket] = []
    for ws in clients:
        try:
            await ws.send_text(text)
        except Exception:  # noqa: BLE001
            dead.append(ws)
    if dead:
        with _clients_lock:
            for ws in dead:
                _connected_clients.discard(ws)


# ── EventBus → WebSocket bridge ───────────────────────────────────────────────

def _wire_controller(ctrl: MissionController) -> None:
    """Register EventBus callbacks so the controller feeds the WS stream."""
    global _controller
    _controller = ctrl

    ctrl.subscribe(ON_STATE_CHANGED, lambda d: _push({"type": "state", **d}))
    ctrl.subscribe(ON_ANNOUNCEMENT, lambda d: _push({"type": "announcement", **d}))
    ctrl.subscribe(ON_TRANSCRIPT, lambda d: _push({"type": "transcript", **d}))
    ctrl.subscribe(ON_LISTENING_CHANGED, lambda d: _push({"type": "listening", **d}))
    ctrl.subscribe(ON_NOTICE, lambda d: _push({"type": "notice", **d}))

    _log.info("web_app", "controller_wired", {})


def _not_ready() -> JSONResponse:
    return JSONResponse({"error": "controller not ready"}, status_code=503)


# ── App lifecycle ─────────────────────────────────────────────────────────────

@app.on_event("startup")
async def _on_startup() -> None:
    global _loop
    _loop = asyncio.get_running_loop()
    _log.info("web_app", "startup", {})


# ── Routes ────────────────────────────────────────────────────────────────────

@app.get("/", response_class=HTMLResponse)
async def index() -> HTMLResponse:
    """Serve the mission control page."""
    html_path = _STATIC_DIR / "index.html"
    return HTMLResponse(html_path.read_text(encoding="utf-8"))


@app.get("/health")
async def health() -> JSONResponse:
    ctrl_ok = _controller is not None
    return JSONResponse({
        "status": "ok" if ctrl_ok else "controller_not_ready",
        "mission": _controller.state.status.value if _controller else None,
        "clients": len(_connected_clients),
    })


@app.get("/state")
async def state() -> JSONResponse:
    if _controller is None:
        return _not_ready()
    return JSONResponse(_controller.snapshot())


@app.post("/click")
async def click() -> JSONResponse:
    if _controller is None:
        return _not_ready()
    accepted = _controller.handle_click()
    return JSONResponse({"ok": True, "accepted": accepted, **_controller.snapshot()})


@app.post("/reset")
async def reset() -> JSONResponse:
    if _controller is None:
        return _not_ready()
    _controller.handle_reset()
    return JSONResponse({"ok": True, **_controller.snapshot()})


@app.post("/command")
async def command(body: CommandRequest) -> JSONResponse:
    if _controller is None:
        return _not_ready()
    intent = _controller.handle_transcript(body.text, is_final=body.final)
    return JSONResponse({
        "ok": True,
        "intent": intent.value if intent else None,
        **_controller.snapshot(),
    })


@app.post("/listen")
async def listen() -> JSONResponse:
    if _controller is None:
        return _not_ready()
    # Stopping a recognizer joins its worker thread; keep it off the event loop.
    listening = await asyncio.to_thread(_controller.toggle_listening)
    return JSONResponse({
        "ok": _controller.voice_supported,
        "listening": listening,
        "voice_supported": _controller.voice_supported,
    })


@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket) -> None:
    await ws.accept()
    with _clients_lock:
        _connected_clients.add(ws)

    # Send current snapshot on connect
    if _controller is not None:
        await ws.send_text(json.dumps({"type": "snapshot", **_controller.snapshot()}))
    _log.info("web_app", "ws_connected", {"total": len(_connected_clients)})

    try:
        while True:
            msg = await ws.receive_text()
            try:
                data = json.loads(msg)
            except json.JSONDecodeError:
                _log.warn("web_app", "ws_bad_message", {"raw": msg[:200]})
                continue
            await _handle_client_msg(data)
    except WebSocketDisconnect:
        pass
    finally:
        with _clients_lock:
            _connected_clients.discard(ws)
        _log.info("web_app", "ws_disconnected", {"total": len(_connected_clients)})


async def _handle_client_msg(data: Dict[str, Any]) -> None:
    """Handle incoming WS messages from the browser."""
    if _controller is None or not isinstance(data, dict):
        return
    action = data.get("action")
    if action == "click":
        _controller.handle_click()
    elif action == "reset":
        _controller.handle_reset()
    elif action == "listen":
        await asyncio.to_thread(_controller.toggle_listening)
    elif action == "command":
        text = str(data.get("text", ""))
        _controller.handle_transcript(text, is_final=bool(data.get("final", True)))
    else:
        _log.warn("web_app", "ws_unknown_action", {"action": action})


# ── Public launcher ───────────────────────────────────────────────────────────

def start_web_server(
    controller: MissionController,
    host: str = "127.0.0.1",
    port: int = 7860,
) -> None:
    """
    Wire *controller* to the WS bridge and start uvicorn in the current thread.

    Blocking — returns when the server is stopped (Ctrl-C).

    Args:
        controller: Fully initialised :class:`~pipeline.controller.MissionController`.
        host:       Bind address.
        port:       TCP port.
    """
    _wire_controller(controller)

    import uvicorn  # type: ignore
    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level="warning",
        access_log=False,
    )
    server = uvicorn.Server(config)
    _log.info("web_app", "server_start", {"host": host, "port": port})
    server.run()
