"""The UI loop.

``FluxyApp`` is the single consumer of an ``asyncio.Queue`` of events.
Each event is applied to the session, then a frame is planned and written.
Generation jobs run as background tasks that post a ``JobCompleted``
event when they finish; they never touch the session themselves.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from pathlib import Path
from typing import Protocol

from fluxy.app.config import AppConfig
from fluxy.app.events import (
    CellSizeEvent,
    InputEvent,
    JobCompleted,
    ResizeEvent,
    TickEvent,
    UIEvent,
)
from fluxy.app.planner import FrameSpec, plan_frame
from fluxy.app.router import Action, InputRouter, Routed
from fluxy.app.session import JobTicket, Session
from fluxy.app.sink import OutputSink
from fluxy.app.storage import save_image
from fluxy.errors import LocalIOError, ProtocolDecodeError
from fluxy.generate.driver import JobDriver
from fluxy.generate.types import GenerationRequest, JobResult
from fluxy.tui.components.loader import FRAME_INTERVAL
from fluxy.tui.terminal import Terminal
from fluxy.tui.terminal_image import (
    CELL_SIZE_QUERY,
    ImageEncoder,
    parse_cell_size_response,
)

logger = logging.getLogger(__name__)


class JobRunner(Protocol):
    async def run(self, request: GenerationRequest) -> JobResult: ...


class FluxyApp:
    def __init__(
        self,
        config: AppConfig,
        terminal: Terminal,
        *,
        driver: JobRunner | None = None,
    ) -> None:
        self.config = config
        self.terminal = terminal
        self.session = Session(config)
        self.driver: JobRunner = driver or JobDriver(
            config.token,
            poll_interval=config.poll_interval,
            timeout=config.job_timeout,
        )
        encoder = ImageEncoder(config.display_protocol) if config.display_protocol else None
        self.sink = OutputSink(terminal, encoder)
        self.router = InputRouter()

        self._queue: asyncio.Queue[UIEvent] = asyncio.Queue()
        self._tasks: set[asyncio.Task] = set()
        self._tick_task: asyncio.Task | None = None
        self._frame: FrameSpec | None = None
        self._running = False
        self._auto_submit = bool(config.initial_prompt.strip())
        self._cell_size_pending = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def frame(self) -> FrameSpec | None:
        return self._frame

    # -- lifecycle ----------------------------------------------------------

    async def run(self) -> Path | None:
        """Run until the user quits. Returns the saved image path, if any."""
        self._running = True
        self.terminal.start(self._on_input, self._on_resize)
        self.terminal.set_title(f"fluxy · {self.config.variant.name}")
        try:
            self._query_cell_size()
            self._on_resize()
            while self._running:
                event = await self._queue.get()
                self.handle_event(event)
                if self._running:
                    self.render()
        finally:
            await self.shutdown()
        return self.session.saved_path

    async def shutdown(self) -> None:
        self._running = False
        pending = list(self._tasks)
        if self._tick_task is not None:
            pending.append(self._tick_task)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._tasks.clear()
        self._tick_task = None

        if self.sink.encoder is not None:
            self.terminal.write(self.sink.encoder.clear_all_images())
        self.terminal.stop()

    def post(self, event: UIEvent) -> None:
        self._queue.put_nowait(event)

    # -- event handling -----------------------------------------------------

    def handle_event(self, event: UIEvent) -> None:
        """Apply one event to the session. Must run on the loop."""
        if isinstance(event, InputEvent):
            self._handle_input(event.data)
        elif isinstance(event, ResizeEvent):
            self.session.resize(event.columns, event.rows)
            if self._auto_submit and not self.session.viewport.is_empty:
                self._auto_submit = False
                ticket = self.session.submit()
                if ticket is not None:
                    self._dispatch(ticket)
        elif isinstance(event, TickEvent):
            if self.session.is_busy:
                self.session.tick()
        elif isinstance(event, CellSizeEvent):
            logger.debug("Cell size %s", event.cell_size)
            self.session.set_cell_size(event.cell_size)
        elif isinstance(event, JobCompleted):
            self.session.complete(event.token, event.result)

    def render(self) -> None:
        frame = plan_frame(self.session, self.sink.drawn)
        if not frame.must_clear_first and self._same_frame(frame):
            return
        try:
            self.sink.render(frame, self.session)
        except ProtocolDecodeError as exc:
            logger.warning("Cannot display image: %s", exc)
            self.session.record_decode_error(str(exc))
            frame = plan_frame(self.session, self.sink.drawn)
            self.sink.render(frame, self.session)
        self._frame = frame

    def _same_frame(self, frame: FrameSpec) -> bool:
        if self._frame is None:
            return False
        previous = dataclasses.replace(self._frame, must_clear_first=False)
        return previous == frame

    def _handle_input(self, data: str) -> None:
        if self._cell_size_pending and "\x1b[6;" in data:
            cell_size, data = parse_cell_size_response(data)
            if cell_size is not None:
                self._cell_size_pending = False
                self.handle_event(CellSizeEvent(cell_size=cell_size))
            if not data:
                return

        routed = self.router.route(data, self.session, self._frame)
        self._apply(routed)

    def _apply(self, routed: Routed) -> None:
        if routed.action is Action.QUIT:
            logger.debug("Quit requested")
            self._running = False
        elif routed.ticket is not None:
            self._dispatch(routed.ticket)
        elif routed.action is Action.DOWNLOAD:
            self._download()

    def _download(self) -> None:
        image = self.session.image
        if not image:
            return
        try:
            path = save_image(
                image,
                self.session.prompt,
                self.config.output_dir,
                self.config.output_format,
            )
        except LocalIOError as exc:
            logger.warning("%s", exc)
            self.session.record_status(str(exc))
            return
        self.session.record_saved(path)
        self._running = False

    # -- jobs ---------------------------------------------------------------

    def _dispatch(self, ticket: JobTicket) -> None:
        task = asyncio.get_running_loop().create_task(self._run_job(ticket))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._ensure_ticker()

    async def _run_job(self, ticket: JobTicket) -> None:
        result = await self.driver.run(ticket.request)
        self.post(JobCompleted(token=ticket.token, result=result))

    def _ensure_ticker(self) -> None:
        if self._tick_task is None or self._tick_task.done():
            self._tick_task = asyncio.get_running_loop().create_task(self._tick_loop())

    async def _tick_loop(self) -> None:
        while self._running and self.session.is_busy:
            await asyncio.sleep(FRAME_INTERVAL)
            self.post(TickEvent())

    # -- terminal callbacks -------------------------------------------------

    def _on_input(self, data: str) -> None:
        self.post(InputEvent(data=data))

    def _on_resize(self) -> None:
        self.post(ResizeEvent(columns=self.terminal.columns, rows=self.terminal.rows))

    def _query_cell_size(self) -> None:
        if self.config.display_protocol is None:
            return
        self._cell_size_pending = True
        self.terminal.write(CELL_SIZE_QUERY)
