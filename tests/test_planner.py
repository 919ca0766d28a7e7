"""Tests for the render planner."""

from __future__ import annotations

import pytest

from fluxy.app.config import AppConfig
from fluxy.app.planner import (
    CONTROLS_BAND_HEIGHT,
    IMAGE_TOP_OFFSET,
    TITLE_BAND_HEIGHT,
    DrawnState,
    FrameSpec,
    PanelKind,
    fit_image,
    image_area,
    plan_frame,
)
from fluxy.app.session import Selection, Session
from fluxy.generate.types import Failure, FailureKind, ImageReady
from fluxy.tui.terminal_image import CellDimensions
from fluxy.tui.utils import strip_ansi, visible_width

from .images import make_image


def _session(width: int = 80, height: int = 24, **config) -> Session:
    config.setdefault("display_protocol", "kitty")
    session = Session(AppConfig(token="r8_test", **config))
    session.resize(width, height)
    return session


def _show(session: Session, image: bytes) -> Session:
    ticket = session.submit("a red fox")
    assert ticket is not None
    session.complete(ticket.token, ImageReady(data=image))
    return session


def _text(frame: FrameSpec) -> str:
    return "\n".join(strip_ansi(block.text) for block in frame.text)


class TestFitImage:
    def test_fits_unchanged(self) -> None:
        assert fit_image(10, 5, 80, 20) == (10, 5)

    def test_never_upscales(self) -> None:
        assert fit_image(4, 4, 200, 100) == (4, 4)

    def test_limited_by_height(self) -> None:
        assert fit_image(114, 57, 78, 18) == (36, 18)

    def test_limited_by_width(self) -> None:
        assert fit_image(200, 50, 100, 100) == (100, 25)

    def test_minimum_one_cell(self) -> None:
        assert fit_image(1000, 1, 10, 10) == (10, 1)

    @pytest.mark.parametrize(
        ("native", "area"),
        [((114, 57), (78, 18)), ((57, 114), (78, 18)), ((300, 170), (120, 40)), ((77, 13), (23, 50))],
    )
    def test_preserves_aspect_within_one_cell(self, native: tuple[int, int], area: tuple[int, int]) -> None:
        columns, rows = fit_image(*native, *area)
        assert columns <= area[0] and rows <= area[1]
        expected_rows = columns * native[1] / native[0]
        assert abs(rows - expected_rows) <= 1


class TestPanels:
    def test_empty_viewport_is_initializing(self) -> None:
        session = Session(AppConfig(token="r8_test"))
        frame = plan_frame(session)
        assert frame.panel is PanelKind.INITIALIZING

    def test_prompt_panel(self) -> None:
        frame = plan_frame(_session())
        assert frame.panel is PanelKind.PROMPT
        assert "Enter a prompt" in _text(frame)
        assert frame.image is None
        assert frame.buttons == ()

    def test_prompt_panel_is_centered(self) -> None:
        frame = plan_frame(_session())
        widths = {visible_width(block.text) for block in frame.text}
        assert widths == {60}
        assert {block.col for block in frame.text} == {10}

    def test_loading_panel(self) -> None:
        session = _session()
        session.submit("a red fox")
        frame = plan_frame(session)
        assert frame.panel is PanelKind.LOADING
        assert "Generating image..." in _text(frame)

    def test_regenerating_message(self) -> None:
        session = _show(_session(), make_image(64, 32))
        session.regenerate()
        frame = plan_frame(session)
        assert frame.panel is PanelKind.LOADING
        assert "Regenerating image..." in _text(frame)
        assert frame.image is None

    def test_spinner_advances(self) -> None:
        session = _session()
        session.submit("a red fox")
        first = plan_frame(session)
        session.tick()
        assert plan_frame(session).text != first.text

    def test_error_panel(self) -> None:
        session = _session()
        ticket = session.submit("a red fox")
        assert ticket is not None
        session.complete(ticket.token, Failure(FailureKind.REMOTE, "image generation failed: NSFW content detected"))
        frame = plan_frame(session)
        assert frame.panel is PanelKind.ERROR
        text = _text(frame)
        assert "NSFW content detected" in text
        assert all(block.row < 24 for block in frame.text)

    def test_error_panel_fits_small_terminal(self) -> None:
        session = _session(width=30, height=8)
        ticket = session.submit("x")
        assert ticket is not None
        session.complete(ticket.token, Failure(FailureKind.TRANSPORT, "word " * 200))
        frame = plan_frame(session)
        assert all(block.row < 8 for block in frame.text)
        assert all(visible_width(block.text) <= 30 for block in frame.text)


class TestImageFrame:
    def test_small_image_is_not_upscaled(self) -> None:
        session = _show(_session(), make_image(64, 32))
        frame = plan_frame(session)
        assert frame.panel is PanelKind.IMAGE
        # 64x32 px at 9x18 px cells
        assert frame.image_cell_size == (8, 2)

    def test_large_image_is_scaled_to_fit(self) -> None:
        session = _show(_session(), make_image(1024, 1024))
        frame = plan_frame(session)
        assert frame.image is not None
        max_columns, max_rows = image_area(session.viewport)
        assert frame.image.columns <= max_columns
        assert frame.image.rows <= max_rows
        assert frame.image_cell_size == (36, 18)

    def test_placement(self) -> None:
        session = _show(_session(), make_image(1024, 1024))
        frame = plan_frame(session)
        assert frame.image is not None
        assert frame.image.row == TITLE_BAND_HEIGHT + IMAGE_TOP_OFFSET
        assert frame.image.col == (80 - frame.image.columns) // 2
        assert frame.image.row + frame.image.rows <= 24 - CONTROLS_BAND_HEIGHT

    def test_cell_size_changes_footprint(self) -> None:
        session = _show(_session(), make_image(64, 32))
        session.set_cell_size(CellDimensions(width_px=16, height_px=32))
        assert plan_frame(session).image_cell_size == (4, 1)

    def test_buttons_and_selection(self) -> None:
        session = _show(_session(), make_image(64, 32))
        frame = plan_frame(session)
        assert [b.selection for b in frame.buttons] == [Selection.PRIMARY, Selection.SECONDARY]
        assert all(b.row == 22 for b in frame.buttons)
        selected = [block.text for block in frame.text if "\x1b[7m" in block.text]
        assert selected == ["\x1b[7m[ Regenerate ]\x1b[27m"]

    def test_title_shows_prompt(self) -> None:
        frame = plan_frame(_show(_session(), make_image(64, 32)))
        assert "a red fox" in _text(frame)

    def test_status_line(self) -> None:
        session = _show(_session(), make_image(64, 32))
        session.record_status("cannot save image")
        frame = plan_frame(session)
        assert any(block.row == 23 and "cannot save image" in block.text for block in frame.text)

    def test_no_protocol_shows_diagnostic(self) -> None:
        session = _show(_session(display_protocol=None, terminal_program="xterm"), make_image(64, 32))
        frame = plan_frame(session)
        assert frame.panel is PanelKind.DIAGNOSTIC
        assert frame.image is None
        assert "terminal=xterm" in _text(frame)
        assert len(frame.buttons) == 2

    def test_decode_error_shows_diagnostic(self) -> None:
        session = _show(_session(), make_image(64, 32))
        session.record_decode_error("cannot decode image")
        frame = plan_frame(session)
        assert frame.panel is PanelKind.DIAGNOSTIC
        assert "cannot decode image" in _text(frame)

    def test_unknown_format_shows_diagnostic(self) -> None:
        session = _show(_session(), b"definitely not an image")
        assert plan_frame(session).panel is PanelKind.DIAGNOSTIC

    def test_tiny_terminal_shows_diagnostic(self) -> None:
        session = _show(_session(width=40, height=6), make_image(64, 32))
        frame = plan_frame(session)
        assert frame.panel is PanelKind.DIAGNOSTIC
        assert frame.image is None


class TestClearDecision:
    def test_first_frame_clears(self) -> None:
        assert plan_frame(_session()).must_clear_first

    def test_same_state_does_not_clear(self) -> None:
        session = _session()
        drawn = plan_frame(session).drawn_state()
        assert not plan_frame(session, drawn).must_clear_first

    def test_planning_is_idempotent(self) -> None:
        session = _show(_session(), make_image(640, 480))
        drawn = DrawnState(epoch=session.render_epoch, viewport=session.viewport, cell_size=session.cell_size)
        assert plan_frame(session, drawn) == plan_frame(session, drawn)

    def test_resize_forces_clear(self) -> None:
        session = _show(_session(), make_image(640, 480))
        drawn = plan_frame(session).drawn_state()
        session.resize(100, 30)
        frame = plan_frame(session, drawn)
        assert frame.must_clear_first
        assert frame.epoch == drawn.epoch

    def test_new_image_forces_clear(self) -> None:
        session = _show(_session(), make_image(640, 480))
        drawn = plan_frame(session).drawn_state()
        session.regenerate()
        assert plan_frame(session, drawn).must_clear_first

    def test_navigation_does_not_clear(self) -> None:
        session = _show(_session(), make_image(640, 480))
        drawn = plan_frame(session).drawn_state()
        session.navigate()
        assert not plan_frame(session, drawn).must_clear_first

    def test_cell_size_change_clears(self) -> None:
        session = _show(_session(), make_image(640, 480))
        drawn = plan_frame(session).drawn_state()
        session.set_cell_size(CellDimensions(10, 20))
        assert plan_frame(session, drawn).must_clear_first

    def test_image_id_follows_epoch(self) -> None:
        session = _show(_session(), make_image(64, 32))
        first = plan_frame(session).image
        ticket = session.regenerate()
        assert ticket is not None
        session.complete(ticket.token, ImageReady(data=make_image(64, 32)))
        second = plan_frame(session).image
        assert first is not None and second is not None
        assert first.image_id != second.image_id
