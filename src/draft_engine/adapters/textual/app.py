"""Executable Textual app that hosts the revision engine."""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

try:  # pragma: no cover - imported only when demo is run
    from textual import events
    from textual.app import App, ComposeResult
    from textual.containers import Vertical
    from textual.widgets import Footer, Header, Input, Static
except ModuleNotFoundError as exc:  # pragma: no cover - friendly error for missing dep
    raise RuntimeError(
        "Install the 'textual' package to use draft_engine.adapters.textual.app"
    ) from exc

from draft_engine.buffer import Buffer, BufferMirror
from draft_engine.revision import HttpRevisionService, RevisionResult
from draft_engine.runtime import telemetry
from draft_engine.runtime.config import EngineSettings, settings_from_env
from draft_engine.selection import Rect
from draft_engine.session import RevisionSession

from .controller import (
    BlockLayoutMeasurer,
    EditorUIHooks,
    TextualRevisionAdapter,
    render_mirror,
)

SAMPLE_TEXT = (
    "Select some text with shift and the arrow keys.\n\n"
    "Press ctrl+r to ask for a revision of the selection."
)


def create_session(
    text: str, settings: EngineSettings
) -> tuple[RevisionSession, HttpRevisionService]:
    """Build a session over ``text`` talking to the configured revision endpoint."""

    buffer = Buffer.from_text(text, name="draft")
    service = HttpRevisionService(settings.revision_url)
    session = RevisionSession(
        buffer,
        service,
        measurer=BlockLayoutMeasurer(buffer),
        settings=settings,
    )
    return session, service


@dataclass
class UIState:
    buffer_text: str = ""
    status_text: str = ""
    proposal_text: str = ""


class DraftEngineApp(App[None]):
    """Minimal Textual UI for selecting text and reviewing AI revisions."""

    CSS = """
	Screen {
		layout: vertical;
	}

	#buffer-view {
		height: 1fr;
		border: round $accent;
		padding: 1 1;
		content-align: left top;
		overflow: auto;
	}

	#proposal-view {
		height: auto;
		max-height: 12;
		border: round $success;
		padding: 0 1;
	}

	#status-line {
		height: 1;
		background: $surface-darken-1;
		padding: 0 1;
	}
	"""

    BINDINGS = [
        ("ctrl+q", "quit", "Quit"),
        ("ctrl+r", "open_query", "Revise"),
        ("ctrl+y", "accept", "Accept"),
        ("ctrl+n", "reject", "Reject"),
        ("escape", "cancel", "Cancel"),
    ]

    def __init__(
        self,
        *,
        text: str = SAMPLE_TEXT,
        settings: Optional[EngineSettings] = None,
    ) -> None:
        super().__init__()
        self._state = UIState()
        self._text = text
        self._settings = settings or settings_from_env()
        self.session: RevisionSession | None = None
        self.service: HttpRevisionService | None = None
        self.adapter: TextualRevisionAdapter | None = None
        self._buffer_widget: Static | None = None
        self._proposal_widget: Static | None = None
        self._status_widget: Static | None = None
        self._instruction: Input | None = None

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        with Vertical(id="buffer-area"):
            self._buffer_widget = Static("", id="buffer-view", markup=False)
            yield self._buffer_widget
        self._proposal_widget = Static("", id="proposal-view", markup=False)
        self._instruction = Input(
            placeholder="How should the selection be revised?", id="instruction"
        )
        self._status_widget = Static("", id="status-line", markup=False)
        yield self._proposal_widget
        yield self._instruction
        yield self._status_widget
        yield Footer()

    async def on_mount(self) -> None:
        self.session, self.service = create_session(self._text, self._settings)
        hooks = EditorUIHooks(
            update_buffer=self._update_buffer,
            update_status=self._update_status,
            show_affordance=self._show_affordance,
            show_proposal=self._show_proposal,
            show_error=self._show_error,
            log=self._log_line,
        )
        self.adapter = TextualRevisionAdapter(self.session, hooks)
        if self._instruction:
            self._instruction.display = False
        self.set_interval(0.01, self._process_timeouts)

    async def on_unmount(self) -> None:
        if self.session:
            self.session.close()
        if self.service:
            await self.service.aclose()

    def _process_timeouts(self) -> None:
        if self.adapter:
            self.adapter.process_timeouts()

    async def on_key(self, event: events.Key) -> None:
        if not self.adapter:
            return
        if self._instruction is not None and self._instruction.has_focus:
            return
        if self.adapter.handle_textual_key(event.key):
            event.stop()

    def on_mouse_up(self, event: events.MouseUp) -> None:
        if self.adapter:
            self.adapter.handle_pointer_up()

    def action_open_query(self) -> None:
        if not self.adapter or self.adapter.open_query() is None:
            return
        if self._instruction:
            self._instruction.value = ""
            self._instruction.display = True
            self._instruction.focus()

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        if not self.adapter:
            return
        instruction = event.value
        if self._instruction:
            self._instruction.display = False
        self._update_status("requesting")
        self.run_worker(self.adapter.submit_instruction(instruction), exclusive=True)

    def action_accept(self) -> None:
        if self.adapter:
            self.adapter.accept()

    def action_reject(self) -> None:
        if self.adapter:
            self.adapter.reject()

    def action_cancel(self) -> None:
        if self.adapter:
            self.adapter.cancel()
        if self._instruction:
            self._instruction.display = False

    def _update_buffer(self, mirror: BufferMirror) -> None:
        self._state.buffer_text = render_mirror(mirror)
        if self._buffer_widget:
            self._buffer_widget.update(self._state.buffer_text)

    def _update_status(self, status: str) -> None:
        self._state.status_text = status
        if self._status_widget:
            self._status_widget.update(status)

    def _show_affordance(self, rect: Optional[Rect]) -> None:
        if rect is None:
            return
        self._update_status(f"ctrl+r to revise (row {rect.top}, col {rect.left})")

    def _show_proposal(self, result: Optional[RevisionResult]) -> None:
        self._state.proposal_text = _describe(result) if result else ""
        if self._proposal_widget:
            self._proposal_widget.update(self._state.proposal_text)

    def _show_error(self, message: str) -> None:
        self._update_status(f"error: {message}")

    def _log_line(self, line: str) -> None:
        telemetry.record_event(
            "textual.adapter",
            level="debug",
            data={"line": line},
            logger_name="draft_engine.textual",
        )


def _describe(result: RevisionResult) -> str:
    lines = [
        f"- {result.original_text}",
        f"+ {result.revised_text}",
        f"confidence {round(result.confidence * 100)}%",
    ]
    if result.explanation:
        lines.append(result.explanation)
    for change in result.changes:
        lines.append(f"  [{change.type.label}] {change.description}")
    lines.append("ctrl+y accept / ctrl+n reject")
    return "\n".join(lines)


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    settings = settings_from_env()
    parser = argparse.ArgumentParser(description="Run the draft engine Textual demo.")
    parser.add_argument(
        "path",
        nargs="?",
        type=Path,
        help="Text file to load into the editor (default: built-in sample)",
    )
    parser.add_argument(
        "--revision-url",
        default=settings.revision_url,
        help=f"Revision endpoint (default: {settings.revision_url})",
    )
    parser.add_argument(
        "--allow-selection-fallback",
        action="store_true",
        default=settings.allow_selection_fallback,
        help="Overwrite the live selection when the original text is not found",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = _parse_args(argv)
    settings = settings_from_env().with_overrides(
        revision_url=args.revision_url,
        allow_selection_fallback=args.allow_selection_fallback,
    )
    text = args.path.read_text(encoding="utf-8") if args.path else SAMPLE_TEXT
    app = DraftEngineApp(text=text, settings=settings)
    app.run()


if __name__ == "__main__":  # pragma: no cover - manual demo
    main()
