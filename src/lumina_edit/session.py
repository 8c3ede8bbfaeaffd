"""
Session state machine.

Each user action or adapter result is an action dataclass. `reduce` maps
(state, action) to a new immutable state plus the effects (outbound requests)
the caller must run. Effects and result actions carry the `generation` they
were issued under; results from an older generation are dropped, so a late
response can never land on an image the user has since replaced or cleared.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Union

from lumina_edit.config import settings
from lumina_edit.providers.base import StyleSuggestion

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoryEntry:
    id: str
    image: str
    prompt: str
    created_at: str


@dataclass(frozen=True)
class Preview:
    loading: bool
    image: str | None = None


@dataclass(frozen=True)
class SessionState:
    original_image: str | None = None
    edited_image: str | None = None
    prompt: str = field(default_factory=lambda: settings.default_prompt)
    is_processing: bool = False
    show_comparison: bool = False
    error: str | None = None
    history: tuple[HistoryEntry, ...] = ()
    suggestions: tuple[StyleSuggestion, ...] = ()
    suggestion_previews: dict[str, Preview] = field(default_factory=dict)
    is_suggesting: bool = False
    explorer_open: bool = False
    # Bumped whenever the explorer closes; preview results carry the epoch they were requested in.
    explorer_epoch: int = 0
    generation: int = 0
    config_error: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.original_image is None

    def find_suggestion(self, suggestion_id: str) -> StyleSuggestion | None:
        return next((s for s in self.suggestions if s.id == suggestion_id), None)

    def find_history(self, entry_id: str) -> HistoryEntry | None:
        return next((h for h in self.history if h.id == entry_id), None)


# Actions


@dataclass(frozen=True)
class LoadImage:
    image: str


@dataclass(frozen=True)
class ApplyEdit:
    prompt: str


@dataclass(frozen=True)
class EditSucceeded:
    generation: int
    image: str
    prompt: str
    entry_id: str
    created_at: str


@dataclass(frozen=True)
class EditFailed:
    generation: int
    message: str


@dataclass(frozen=True)
class Clear:
    pass


@dataclass(frozen=True)
class ToggleComparison:
    on: bool


@dataclass(frozen=True)
class RestoreFromHistory:
    entry_id: str


@dataclass(frozen=True)
class SetPrompt:
    prompt: str


@dataclass(frozen=True)
class ResetPrompt:
    pass


@dataclass(frozen=True)
class SelectSuggestion:
    suggestion_id: str


@dataclass(frozen=True)
class SuggestionsLoaded:
    generation: int
    suggestions: tuple[StyleSuggestion, ...]


@dataclass(frozen=True)
class OpenExplorer:
    pass


@dataclass(frozen=True)
class CloseExplorer:
    pass


@dataclass(frozen=True)
class GeneratePreview:
    suggestion_id: str


@dataclass(frozen=True)
class PreviewSucceeded:
    generation: int
    suggestion_id: str
    image: str
    explorer_epoch: int = 0


@dataclass(frozen=True)
class PreviewFailed:
    generation: int
    suggestion_id: str
    explorer_epoch: int = 0


Action = Union[
    LoadImage,
    ApplyEdit,
    EditSucceeded,
    EditFailed,
    Clear,
    ToggleComparison,
    RestoreFromHistory,
    SetPrompt,
    ResetPrompt,
    SelectSuggestion,
    SuggestionsLoaded,
    OpenExplorer,
    CloseExplorer,
    GeneratePreview,
    PreviewSucceeded,
    PreviewFailed,
]


# Effects


@dataclass(frozen=True)
class FetchSuggestions:
    generation: int
    image: str

    @property
    def key(self) -> tuple:
        return ("suggestions", self.generation)


@dataclass(frozen=True)
class RequestEdit:
    generation: int
    image: str
    prompt: str

    @property
    def key(self) -> tuple:
        return ("edit", self.generation)


@dataclass(frozen=True)
class RequestPreview:
    generation: int
    suggestion_id: str
    image: str
    prompt: str
    explorer_epoch: int = 0

    @property
    def key(self) -> tuple:
        return ("preview", self.generation, self.explorer_epoch, self.suggestion_id)


Effect = Union[FetchSuggestions, RequestEdit, RequestPreview]


@dataclass(frozen=True)
class Transition:
    state: SessionState
    effects: tuple[Effect, ...] = ()


def reduce(state: SessionState, action: Action) -> Transition:
    handler = _HANDLERS.get(type(action))
    if handler is None:
        raise TypeError(f"unknown session action: {type(action).__name__}")
    return handler(state, action)


def _unchanged(state: SessionState) -> Transition:
    return Transition(state)


def _is_stale(state: SessionState, generation: int) -> bool:
    if generation != state.generation:
        logger.debug("dropping result from generation %s (current %s)", generation, state.generation)
        return True
    return False


def _load_image(state: SessionState, action: LoadImage) -> Transition:
    generation = state.generation + 1
    new = replace(
        state,
        original_image=action.image,
        edited_image=None,
        error=None,
        show_comparison=False,
        is_processing=False,
        suggestions=(),
        suggestion_previews={},
        is_suggesting=True,
        explorer_open=False,
        generation=generation,
    )
    return Transition(new, (FetchSuggestions(generation=generation, image=action.image),))


def _apply_edit(state: SessionState, action: ApplyEdit) -> Transition:
    prompt = (action.prompt or "").strip()
    if state.original_image is None or not prompt or state.is_processing:
        return _unchanged(state)
    new = replace(state, prompt=action.prompt, is_processing=True, error=None)
    effect = RequestEdit(generation=state.generation, image=state.original_image, prompt=action.prompt)
    return Transition(new, (effect,))


def _edit_succeeded(state: SessionState, action: EditSucceeded) -> Transition:
    if _is_stale(state, action.generation):
        return _unchanged(state)
    entry = HistoryEntry(id=action.entry_id, image=action.image, prompt=action.prompt, created_at=action.created_at)
    new = replace(
        state,
        edited_image=action.image,
        history=(entry,) + state.history,
        is_processing=False,
    )
    return Transition(new)


def _edit_failed(state: SessionState, action: EditFailed) -> Transition:
    if _is_stale(state, action.generation):
        return _unchanged(state)
    return Transition(replace(state, error=action.message, is_processing=False))


def _clear(state: SessionState, action: Clear) -> Transition:
    new = replace(
        state,
        original_image=None,
        edited_image=None,
        error=None,
        show_comparison=False,
        is_processing=False,
        suggestions=(),
        suggestion_previews={},
        is_suggesting=False,
        explorer_open=False,
        generation=state.generation + 1,
    )
    return Transition(new)


def _toggle_comparison(state: SessionState, action: ToggleComparison) -> Transition:
    return Transition(replace(state, show_comparison=bool(action.on) and state.edited_image is not None))


def _restore_from_history(state: SessionState, action: RestoreFromHistory) -> Transition:
    entry = state.find_history(action.entry_id)
    if entry is None or state.original_image is None:
        return _unchanged(state)
    return Transition(replace(state, edited_image=entry.image))


def _set_prompt(state: SessionState, action: SetPrompt) -> Transition:
    return Transition(replace(state, prompt=action.prompt))


def _reset_prompt(state: SessionState, action: ResetPrompt) -> Transition:
    return Transition(replace(state, prompt=settings.default_prompt))


def _select_suggestion(state: SessionState, action: SelectSuggestion) -> Transition:
    suggestion = state.find_suggestion(action.suggestion_id)
    if suggestion is None:
        return _unchanged(state)
    return Transition(replace(state, prompt=suggestion.prompt))


def _suggestions_loaded(state: SessionState, action: SuggestionsLoaded) -> Transition:
    if _is_stale(state, action.generation):
        return _unchanged(state)
    return Transition(replace(state, suggestions=tuple(action.suggestions), is_suggesting=False))


def _open_explorer(state: SessionState, action: OpenExplorer) -> Transition:
    if state.original_image is None:
        return _unchanged(state)
    return Transition(replace(state, explorer_open=True))


def _close_explorer(state: SessionState, action: CloseExplorer) -> Transition:
    # Previews only live while the explorer is open.
    return Transition(
        replace(state, explorer_open=False, suggestion_previews={}, explorer_epoch=state.explorer_epoch + 1)
    )


def _generate_preview(state: SessionState, action: GeneratePreview) -> Transition:
    suggestion = state.find_suggestion(action.suggestion_id)
    if state.original_image is None or suggestion is None:
        return _unchanged(state)
    current = state.suggestion_previews.get(action.suggestion_id)
    if current is not None and current.loading:
        return _unchanged(state)
    previews = dict(state.suggestion_previews)
    previews[action.suggestion_id] = Preview(loading=True)
    new = replace(state, explorer_open=True, suggestion_previews=previews)
    effect = RequestPreview(
        generation=state.generation,
        suggestion_id=suggestion.id,
        image=state.original_image,
        prompt=suggestion.prompt,
        explorer_epoch=state.explorer_epoch,
    )
    return Transition(new, (effect,))


def _preview_result(
    state: SessionState,
    generation: int,
    explorer_epoch: int,
    suggestion_id: str,
    image: str | None,
) -> Transition:
    if _is_stale(state, generation):
        return _unchanged(state)
    current = state.suggestion_previews.get(suggestion_id)
    if current is None or explorer_epoch != state.explorer_epoch:
        # Explorer was closed (and maybe reopened) while the request was in flight.
        return _unchanged(state)
    previews = dict(state.suggestion_previews)
    previews[suggestion_id] = Preview(loading=False, image=image if image is not None else current.image)
    return Transition(replace(state, suggestion_previews=previews))


def _preview_succeeded(state: SessionState, action: PreviewSucceeded) -> Transition:
    return _preview_result(state, action.generation, action.explorer_epoch, action.suggestion_id, action.image)


def _preview_failed(state: SessionState, action: PreviewFailed) -> Transition:
    return _preview_result(state, action.generation, action.explorer_epoch, action.suggestion_id, None)


_HANDLERS = {
    LoadImage: _load_image,
    ApplyEdit: _apply_edit,
    EditSucceeded: _edit_succeeded,
    EditFailed: _edit_failed,
    Clear: _clear,
    ToggleComparison: _toggle_comparison,
    RestoreFromHistory: _restore_from_history,
    SetPrompt: _set_prompt,
    ResetPrompt: _reset_prompt,
    SelectSuggestion: _select_suggestion,
    SuggestionsLoaded: _suggestions_loaded,
    OpenExplorer: _open_explorer,
    CloseExplorer: _close_explorer,
    GeneratePreview: _generate_preview,
    PreviewSucceeded: _preview_succeeded,
    PreviewFailed: _preview_failed,
}
