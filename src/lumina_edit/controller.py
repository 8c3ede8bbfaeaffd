from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable

from lumina_edit.adapters import request_edit, request_suggestions
from lumina_edit.errors import MISSING_KEY_MESSAGE, EditError
from lumina_edit.providers.base import GatewayProvider
from lumina_edit.session import (
    Action,
    ApplyEdit,
    Clear,
    CloseExplorer,
    EditFailed,
    EditSucceeded,
    Effect,
    FetchSuggestions,
    GeneratePreview,
    LoadImage,
    OpenExplorer,
    PreviewFailed,
    PreviewSucceeded,
    RequestEdit,
    RequestPreview,
    ResetPrompt,
    RestoreFromHistory,
    SelectSuggestion,
    SessionState,
    SetPrompt,
    SuggestionsLoaded,
    ToggleComparison,
    reduce,
)

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SessionController:
    """
    Owns one session's state and runs the effects the reducer emits.

    Every outbound request runs as an asyncio task keyed by what it is for
    (suggestions / edit / preview plus the generation). Results come back as
    actions, and the reducer drops those whose generation is no longer current.
    """

    def __init__(self, provider: GatewayProvider | None, session_id: str | None = None) -> None:
        self.session_id = session_id or uuid.uuid4().hex[:12]
        self.provider = provider
        self.created_at = _now_iso()
        self._state = SessionState(config_error=None if provider is not None else MISSING_KEY_MESSAGE)
        self._tasks: dict[tuple, asyncio.Task[Any]] = {}

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def pending(self) -> list[tuple]:
        return [key for key, task in self._tasks.items() if not task.done()]

    def dispatch(self, action: Action) -> list[asyncio.Task[Any]]:
        """Apply an action and start its effects. Must run inside the event loop."""
        transition = reduce(self._state, action)
        self._state = transition.state
        logger.debug("session %s: %s", self.session_id, type(action).__name__)
        return [self._spawn(effect) for effect in transition.effects]

    # User actions

    def load_image(self, image: str) -> None:
        # Suggestions are fire-and-forget; their failure only affects `suggestions`.
        self.dispatch(LoadImage(image=image))

    async def apply_edit(self, prompt: str | None = None) -> SessionState:
        """
        Start an edit with `prompt` (or the current prompt) and wait for it.

        A call while another edit is in flight, without an image, or with an
        empty prompt changes nothing and issues no request.
        If the caller is cancelled while waiting, the edit still runs to
        completion and commits its result.
        """
        tasks = self.dispatch(ApplyEdit(prompt=self._state.prompt if prompt is None else prompt))
        if tasks:
            # The request outlives its waiter.
            await asyncio.shield(asyncio.gather(*tasks))
        return self._state

    def clear(self) -> None:
        self.dispatch(Clear())

    def toggle_comparison(self, on: bool) -> None:
        self.dispatch(ToggleComparison(on=on))

    def restore_from_history(self, entry_id: str) -> None:
        self.dispatch(RestoreFromHistory(entry_id=entry_id))

    def set_prompt(self, prompt: str) -> None:
        self.dispatch(SetPrompt(prompt=prompt))

    def reset_prompt(self) -> None:
        self.dispatch(ResetPrompt())

    def select_suggestion(self, suggestion_id: str) -> None:
        self.dispatch(SelectSuggestion(suggestion_id=suggestion_id))

    def open_explorer(self) -> None:
        self.dispatch(OpenExplorer())

    def close_explorer(self) -> None:
        self.dispatch(CloseExplorer())

    def generate_preview(self, suggestion_id: str) -> asyncio.Task[Any] | None:
        """Start a preview for one suggestion; returns its task, or None if the request was not issued."""
        tasks = self.dispatch(GeneratePreview(suggestion_id=suggestion_id))
        return tasks[0] if tasks else None

    async def wait_idle(self) -> None:
        while True:
            running = [t for t in self._tasks.values() if not t.done()]
            if not running:
                return
            await asyncio.gather(*running, return_exceptions=True)

    # Effects

    def _spawn(self, effect: Effect) -> asyncio.Task[Any]:
        key = effect.key
        task = asyncio.create_task(self._run(effect), name=f"{self.session_id}:{key}")
        self._tasks[key] = task
        task.add_done_callback(lambda t, k=key: self._forget(k, t))
        return task

    def _forget(self, key: tuple, task: asyncio.Task[Any]) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]
        if not task.cancelled() and task.exception() is not None:
            logger.error("session %s: effect %s crashed", self.session_id, key, exc_info=task.exception())

    def _run(self, effect: Effect) -> Awaitable[None]:
        if isinstance(effect, FetchSuggestions):
            return self._fetch_suggestions(effect)
        if isinstance(effect, RequestEdit):
            return self._request_edit(effect)
        if isinstance(effect, RequestPreview):
            return self._request_preview(effect)
        raise TypeError(f"unknown effect: {type(effect).__name__}")

    async def _fetch_suggestions(self, effect: FetchSuggestions) -> None:
        suggestions = await request_suggestions(self.provider, effect.image)
        logger.info("session %s: %d style suggestions", self.session_id, len(suggestions))
        self.dispatch(SuggestionsLoaded(generation=effect.generation, suggestions=tuple(suggestions)))

    async def _request_edit(self, effect: RequestEdit) -> None:
        try:
            image = await request_edit(self.provider, effect.image, effect.prompt)
        except EditError as exc:
            logger.warning("session %s: edit failed (%s): %s", self.session_id, type(exc).__name__, exc.message)
            self.dispatch(EditFailed(generation=effect.generation, message=exc.message))
            return
        self.dispatch(
            EditSucceeded(
                generation=effect.generation,
                image=image,
                prompt=effect.prompt,
                entry_id=uuid.uuid4().hex[:12],
                created_at=_now_iso(),
            )
        )

    async def _request_preview(self, effect: RequestPreview) -> None:
        try:
            image = await request_edit(self.provider, effect.image, effect.prompt)
        except EditError as exc:
            # Preview failures are silent: no session-level error.
            logger.info("session %s: preview %s failed: %s", self.session_id, effect.suggestion_id, exc.message)
            self.dispatch(
                PreviewFailed(
                    generation=effect.generation,
                    suggestion_id=effect.suggestion_id,
                    explorer_epoch=effect.explorer_epoch,
                )
            )
            return
        self.dispatch(
            PreviewSucceeded(
                generation=effect.generation,
                suggestion_id=effect.suggestion_id,
                image=image,
                explorer_epoch=effect.explorer_epoch,
            )
        )
