from __future__ import annotations

import logging
import time
from typing import Any

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.responses import Response

from lumina_edit.adapters import build_provider
from lumina_edit.config import settings
from lumina_edit.controller import SessionController
from lumina_edit.images import download_filename, handle_to_png_bytes, upload_to_data_url
from lumina_edit.store import SessionStore, session_snapshot

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="lumina_edit")

# The credential is read once, here; sessions share the provider.
store = SessionStore(provider=build_provider(settings))


def _get_session(session_id: str) -> SessionController:
    try:
        return store.get(session_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="session not found") from exc


def _parse_bool(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


@app.get("/health")
def health() -> dict[str, Any]:
    return {
        "ok": True,
        "gateway_configured": store.provider is not None,
        "sessions": len(store.list_sessions()),
    }


@app.post("/sessions", status_code=201)
def create_session():
    controller = store.create_session()
    logger.info("created session %s", controller.session_id)
    return session_snapshot(controller)


@app.get("/sessions/{session_id}")
async def get_session(session_id: str):
    return session_snapshot(_get_session(session_id))


@app.delete("/sessions/{session_id}", status_code=204)
async def delete_session(session_id: str):
    _get_session(session_id)
    store.delete_session(session_id)
    return Response(status_code=204)


@app.post("/sessions/{session_id}/image")
async def upload_image(session_id: str, file: UploadFile = File(...)):
    controller = _get_session(session_id)
    content = await file.read()
    try:
        image = upload_to_data_url(content)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    controller.load_image(image)
    return session_snapshot(controller)


@app.post("/sessions/{session_id}/prompt")
async def set_prompt(session_id: str, prompt: str = Form(...)):
    controller = _get_session(session_id)
    controller.set_prompt(prompt)
    return session_snapshot(controller)


@app.post("/sessions/{session_id}/prompt/reset")
async def reset_prompt(session_id: str):
    controller = _get_session(session_id)
    controller.reset_prompt()
    return session_snapshot(controller)


@app.post("/sessions/{session_id}/edit")
async def apply_edit(session_id: str, prompt: str | None = Form(None)):
    controller = _get_session(session_id)
    await controller.apply_edit(prompt)
    return session_snapshot(controller)


@app.post("/sessions/{session_id}/clear")
async def clear_session(session_id: str):
    controller = _get_session(session_id)
    controller.clear()
    return session_snapshot(controller)


@app.post("/sessions/{session_id}/compare")
async def toggle_comparison(session_id: str, on: str = Form("false")):
    controller = _get_session(session_id)
    controller.toggle_comparison(_parse_bool(on))
    return session_snapshot(controller)


@app.post("/sessions/{session_id}/history/{entry_id}/restore")
async def restore_from_history(session_id: str, entry_id: str):
    controller = _get_session(session_id)
    if controller.state.find_history(entry_id) is None:
        raise HTTPException(status_code=404, detail="history entry not found")
    controller.restore_from_history(entry_id)
    return session_snapshot(controller)


@app.post("/sessions/{session_id}/suggestions/{suggestion_id}/select")
async def select_suggestion(session_id: str, suggestion_id: str):
    controller = _get_session(session_id)
    if controller.state.find_suggestion(suggestion_id) is None:
        raise HTTPException(status_code=404, detail="suggestion not found")
    controller.select_suggestion(suggestion_id)
    return session_snapshot(controller)


@app.post("/sessions/{session_id}/suggestions/{suggestion_id}/preview", status_code=202)
async def generate_preview(session_id: str, suggestion_id: str):
    controller = _get_session(session_id)
    if controller.state.find_suggestion(suggestion_id) is None:
        raise HTTPException(status_code=404, detail="suggestion not found")
    controller.generate_preview(suggestion_id)
    return session_snapshot(controller)


@app.post("/sessions/{session_id}/explorer/open")
async def open_explorer(session_id: str):
    controller = _get_session(session_id)
    controller.open_explorer()
    return session_snapshot(controller)


@app.post("/sessions/{session_id}/explorer/close")
async def close_explorer(session_id: str):
    controller = _get_session(session_id)
    controller.close_explorer()
    return session_snapshot(controller)


@app.get("/sessions/{session_id}/download")
async def download_image(session_id: str, entry_id: str = ""):
    controller = _get_session(session_id)
    state = controller.state
    if entry_id:
        entry = state.find_history(entry_id)
        if entry is None:
            raise HTTPException(status_code=404, detail="history entry not found")
        handle = entry.image
    else:
        handle = state.edited_image
    if not handle:
        raise HTTPException(status_code=404, detail="no edited image to download")

    try:
        png = handle_to_png_bytes(handle)
    except ValueError as exc:
        raise HTTPException(status_code=500, detail=f"stored image is invalid: {exc}") from exc

    filename = download_filename(int(time.time() * 1000))
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    return Response(content=png, media_type="image/png", headers=headers)
