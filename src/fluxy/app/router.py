"""Map raw terminal input onto session transitions."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from fluxy.app.planner import FrameSpec
from fluxy.app.session import JobTicket, Mode, Selection, Session
from fluxy.tui.keys import parse_key, parse_mouse

logger = logging.getLogger(__name__)

NAVIGATION_KEYS = frozenset({"tab", "shift+tab", "left", "right", "up", "down"})
ACTIVATE_KEYS = frozenset({"enter", "space"})


class Action(str, enum.Enum):
    NONE = "none"
    QUIT = "quit"
    SUBMIT = "submit"
    REGENERATE = "regenerate"
    DOWNLOAD = "download"
    NAVIGATE = "navigate"
    EDIT = "edit"
    RETRY = "retry"


@dataclass(frozen=True)
class Routed:
    """What an input did. ``ticket`` is set when a job must be started."""

    action: Action
    ticket: JobTicket | None = None


NOTHING = Routed(Action.NONE)


class InputRouter:
    """Interprets one complete input sequence against the current mode.

    Quitting and downloading are returned to the caller rather than
    performed, since both involve side effects outside the session.
    """

    def route(self, data: str, session: Session, frame: FrameSpec | None = None) -> Routed:
        key = parse_key(data)
        if key == "ctrl+c":
            return Routed(Action.QUIT)

        mouse = parse_mouse(data)
        if mouse is not None:
            if not mouse.is_left_click or frame is None:
                return NOTHING
            for button in frame.buttons:
                if button.contains(mouse.row, mouse.col):
                    if not session.select(button.selection):
                        return NOTHING
                    return self._activate(session)
            return NOTHING

        mode = session.mode
        if mode is Mode.AWAITING_PROMPT:
            if key == "enter":
                ticket = session.submit()
                return Routed(Action.SUBMIT, ticket) if ticket else NOTHING
            if session.editor.handle_input(data):
                return Routed(Action.EDIT)
            return NOTHING

        # Outside the editor a plain "q" quits
        if key == "q":
            return Routed(Action.QUIT)

        if mode is Mode.FAILED:
            if key == "enter":
                session.restart()
                return Routed(Action.RETRY)
            return NOTHING

        if mode is Mode.GENERATING:
            return NOTHING

        if key in NAVIGATION_KEYS:
            return Routed(Action.NAVIGATE) if session.navigate() else NOTHING
        if key in ACTIVATE_KEYS:
            return self._activate(session)
        return NOTHING

    def _activate(self, session: Session) -> Routed:
        if session.selection is Selection.PRIMARY:
            ticket = session.regenerate()
            return Routed(Action.REGENERATE, ticket) if ticket else NOTHING
        if session.can_download():
            return Routed(Action.DOWNLOAD)
        logger.debug("Download requested with no image on display")
        return NOTHING
