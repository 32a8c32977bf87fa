import asyncio
from typing import Any, List, Optional, Tuple

from draft_engine.adapters.textual import (
    BlockLayoutMeasurer,
    EditorUIHooks,
    TextualRevisionAdapter,
    render_mirror,
)
from draft_engine.buffer import Buffer, BufferMirror
from draft_engine.revision import RevisionRequest, RevisionResult, RevisionServiceError
from draft_engine.runtime.config import EngineSettings
from draft_engine.runtime.scheduler import DeferredScheduler
from draft_engine.selection import Rect
from draft_engine.session import RevisionSession, SessionPhase


class EchoService:
    def __init__(self, error: Optional[str] = None) -> None:
        self.error = error

    async def revise(self, request: RevisionRequest) -> RevisionResult:
        if self.error:
            raise RevisionServiceError(self.error)
        return RevisionResult(
            original_text=request.selected_text,
            revised_text=request.selected_text.upper(),
            confidence=0.5,
        )


def make_adapter(
    text: str = "Hello\n\nworld",
    *,
    service: Optional[EchoService] = None,
    **hooks: Any,
) -> Tuple[TextualRevisionAdapter, List[BufferMirror]]:
    buffer = Buffer.from_text(text, name="test")
    session = RevisionSession(
        buffer,
        service or EchoService(),
        scheduler=DeferredScheduler(),
        measurer=BlockLayoutMeasurer(buffer),
        settings=EngineSettings(),
    )
    updates: List[BufferMirror] = []
    adapter = TextualRevisionAdapter(
        session, EditorUIHooks(update_buffer=updates.append, **hooks)
    )
    return adapter, updates


def test_adapter_pushes_initial_buffer() -> None:
    _, updates = make_adapter()

    assert updates
    assert updates[-1].blocks == ("Hello", "world")
    assert updates[-1].attributes == {"phase": "idle"}


def test_shift_arrows_extend_selection_and_track_it() -> None:
    adapter, updates = make_adapter()

    assert adapter.handle_textual_key("left") is True
    adapter.handle_textual_key("shift+left")
    adapter.handle_textual_key("left", modifiers=("shift",))
    adapter.session.scheduler.flush()

    assert updates[-1].selection == (9, 7)
    snapshot = adapter.session.selection
    assert snapshot is not None
    assert snapshot.text == "rl"
    assert snapshot.rect == Rect(left=2, top=1, width=2, height=1)


def test_home_end_and_vertical_moves() -> None:
    adapter, updates = make_adapter()

    adapter.handle_textual_key("home")
    assert updates[-1].selection == (5, 5)
    adapter.handle_textual_key("up")
    assert updates[-1].selection == (0, 0)
    adapter.handle_textual_key("shift+end")
    assert updates[-1].selection == (0, 5)
    adapter.handle_textual_key("down")
    assert updates[-1].selection == (10, 10)


def test_other_keys_are_not_consumed() -> None:
    adapter, _ = make_adapter()

    assert adapter.handle_textual_key("a") is False
    assert adapter.session.scheduler.pending == 0


def test_open_query_without_selection_reports_status() -> None:
    statuses: List[str] = []
    adapter, _ = make_adapter(update_status=statuses.append)

    assert adapter.open_query() is None
    assert statuses == ["No usable selection to revise"]


def test_revision_round_trip_through_hooks() -> None:
    statuses: List[str] = []
    proposals: List[Optional[RevisionResult]] = []
    affordances: List[Optional[Rect]] = []
    adapter, updates = make_adapter(
        update_status=statuses.append,
        show_proposal=proposals.append,
        show_affordance=affordances.append,
    )
    adapter.push_host_selection(0, 5)
    assert affordances[-1] == Rect(left=0, top=0, width=5, height=1)

    assert adapter.open_query() == "Hello"
    asyncio.run(adapter.submit_instruction("shout"))

    assert proposals[-1] is not None
    assert proposals[-1].revised_text == "HELLO"

    assert adapter.accept() is True
    adapter.session.scheduler.flush()

    assert updates[-1].blocks == ("HELLO", "world")
    assert proposals[-1] is None
    assert statuses[-1] == "Text revised successfully!"
    assert adapter.session.phase is SessionPhase.IDLE


def test_service_error_reaches_error_hook() -> None:
    errors: List[str] = []
    adapter, _ = make_adapter(
        service=EchoService(error="Failed to revise text"), show_error=errors.append
    )
    adapter.push_host_selection(0, 5)
    adapter.open_query()

    assert asyncio.run(adapter.submit_instruction("shout")) is None
    assert errors == ["Failed to revise text"]


def test_misuse_is_reported_not_raised() -> None:
    statuses: List[str] = []
    adapter, _ = make_adapter(update_status=statuses.append)

    assert adapter.accept() is False
    adapter.reject()
    adapter.push_host_selection(0, 99)

    assert len(statuses) == 3
    assert statuses[-1].startswith("selection::")


def test_adapter_emits_log_lines() -> None:
    logs: List[str] = []
    adapter, _ = make_adapter(log=logs.append)

    adapter.handle_textual_key("left")

    assert any(line.startswith("key ->") for line in logs)
    assert any("event='selection.changed'" in line for line in logs)


def test_render_mirror_marks_selection_and_caret() -> None:
    blocks = ("Hello", "world")

    def render(selection: Optional[Tuple[int, int]]) -> str:
        return render_mirror(
            BufferMirror(
                text="".join(blocks), blocks=blocks, selection=selection, version=0
            )
        )

    assert render(None) == "Hello\nworld"
    assert render((3, 7)) == "Hel[lo\nwo]rld"
    assert render((7, 3)) == "Hel[lo\nwo]rld"
    assert render((5, 5)) == "Hello\n|world"
    assert render((10, 10)) == "Hello\nworld|"


def test_layout_measurer_rows_and_columns() -> None:
    buffer = Buffer.from_text("Hello\n\nworld")
    measurer = BlockLayoutMeasurer(buffer)

    assert measurer.measure(1, 3) == Rect(left=1, top=0, width=2, height=1)
    assert measurer.measure(3, 7) == Rect(left=0, top=0, width=5, height=2)
    assert measurer.measure(5, 5) == Rect(left=0, top=1, width=0, height=1)


def test_pointer_up_defers_selection_tracking() -> None:
    adapter, _ = make_adapter()
    adapter.session.tracker.detach()
    adapter.buffer.select_range(0, 5)
    assert adapter.session.selection is None

    adapter.handle_pointer_up()
    adapter.session.scheduler.flush()

    assert adapter.session.selection is not None
    assert adapter.session.selection.text == "Hello"


def test_app_forwards_mouse_up_to_adapter() -> None:
    from draft_engine.adapters.textual.app import DraftEngineApp

    app = DraftEngineApp(text="Hello world", settings=EngineSettings())
    calls: List[str] = []

    async def run() -> None:
        async with app.run_test() as pilot:
            assert app.adapter is not None
            app.adapter.handle_pointer_up = lambda: calls.append("up")
            await pilot.click("#buffer-view")
            await pilot.pause()

    asyncio.run(run())

    assert calls
