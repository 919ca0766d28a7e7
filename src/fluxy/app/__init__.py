"""Session state machine, render planning and the UI loop."""

from fluxy.app.config import AppConfig
from fluxy.app.planner import FrameSpec, PanelKind, plan_frame
from fluxy.app.router import Action, InputRouter
from fluxy.app.runtime import FluxyApp
from fluxy.app.session import JobTicket, Mode, Selection, Session, Viewport
from fluxy.app.sink import OutputSink

__all__ = [
    "Action",
    "AppConfig",
    "FluxyApp",
    "FrameSpec",
    "InputRouter",
    "JobTicket",
    "Mode",
    "OutputSink",
    "PanelKind",
    "Selection",
    "Session",
    "Viewport",
    "plan_frame",
]
