"""Session controller: the Stopped/Running/Error state machine.

Owns the subprocess lifecycle, the iteration counter and the auto-continue
decision. One consumer task drains each run's output through the stream
processor; the exit transition is evaluated only after every line the
process wrote has been processed.
"""

import asyncio
import logging
from typing import Callable, Optional

from ralph_loop.clients.claude_process import STDERR, ClaudeProcess, SpawnError
from ralph_loop.config import RalphConfig
from ralph_loop.models.display import DisplayEvent, DisplayKind
from ralph_loop.models.session import SessionSnapshot, SessionState, SessionStatus
from ralph_loop.models.specs import SpecsRemaining
from ralph_loop.services.specs_service import SpecStatusOracle
from ralph_loop.stream.processor import StreamProcessor

logger = logging.getLogger(__name__)

LOOP_DIVIDER = "─" * 40
AUTO_CONTINUE_BANNER = "══════════════════ AUTO-CONTINUING ══════════════════"
ALL_SPECS_COMPLETE_BANNER = "══════════════════ ALL SPECS COMPLETE ══════════════════"

DisplayCallback = Callable[[DisplayEvent], None]
StateCallback = Callable[[SessionSnapshot], None]


class SessionController:
    """Single owner of session state, the stream processor and the subprocess.

    Consumers get display events through ``on_display`` and immutable
    snapshots through ``on_state_change`` or ``snapshot()``.
    """

    def __init__(
        self,
        config: RalphConfig,
        oracle: Optional[SpecStatusOracle] = None,
        process_factory: Callable[..., ClaudeProcess] = ClaudeProcess,
        on_display: Optional[DisplayCallback] = None,
        on_state_change: Optional[StateCallback] = None,
    ):
        self.config = config
        self.oracle = oracle if oracle is not None else SpecStatusOracle(config.specs_path())
        self.processor = StreamProcessor()
        self._process_factory = process_factory
        self._on_display = on_display
        self._on_state_change = on_state_change
        self._state = SessionState(total_iterations=config.behavior.iterations)
        self._process: Optional[ClaudeProcess] = None
        self._run_task: Optional[asyncio.Task] = None
        self._active_spec: Optional[str] = None

    @property
    def state(self) -> SessionState:
        return self._state.model_copy()

    @property
    def status(self) -> SessionStatus:
        return self._state.status

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            status=self._state.status,
            current_iteration=self._state.current_iteration,
            total_iterations=self._state.total_iterations,
            stop_requested=self._state.stop_requested,
            loop_count=self._state.loop_count,
            active_spec=self._active_spec,
            pending_calls=self.processor.pending_calls(),
            todos=self.processor.todos,
        )

    def set_total_iterations(self, total: int) -> None:
        """Change the iteration budget; applies to the next continuation decision."""
        self._state.total_iterations = total
        self._notify()

    async def start(self) -> bool:
        """Stopped/Error -> Running. Returns False if nothing was started."""
        if self._state.status == SessionStatus.RUNNING:
            logger.warning("Start requested while already running, ignoring")
            return False
        if self._state.total_iterations == 0:
            logger.info("Iterations set to 0, not starting")
            return False

        self._state.current_iteration = 1
        self._state.stop_requested = False
        if not await self._spawn():
            return False

        self._run_task = asyncio.create_task(self._run())
        return True

    async def stop(self) -> None:
        """Manual stop: flag first, then terminate, then wait for the drain."""
        if self._state.status != SessionStatus.RUNNING:
            return
        self._state.stop_requested = True
        self._notify()
        logger.info("manual_stop requested")

        if self._process is not None:
            await self._process.terminate()
        await self.wait()

    async def restart(self) -> bool:
        await self.stop()
        return await self.start()

    async def wait(self) -> SessionStatus:
        """Wait until the controller leaves Running."""
        if self._run_task is not None:
            await self._run_task
        return self._state.status

    async def _spawn(self) -> bool:
        prompt_path = self.config.prompt_path()
        if not prompt_path.is_file():
            return self._fail_spawn(f"Error: {prompt_path} not found")

        self.processor.reset(self._state.current_iteration)
        self._state.loop_count += 1
        logger.info(
            f"loop_start loop_number={self._state.loop_count} "
            f"iteration={self._state.current_iteration}"
        )
        if self._state.loop_count > 1:
            self._emit(DisplayEvent(kind=DisplayKind.LOOP_DIVIDER, lines=(LOOP_DIVIDER,)))

        process = self._process_factory(self.config.claude_command(), prompt_path)
        try:
            await process.start()
        except SpawnError as e:
            return self._fail_spawn(f"Error starting command: {e}")

        self._process = process
        self._set_status(SessionStatus.RUNNING)
        if self._state.stop_requested:
            await process.terminate()
        return True

    def _fail_spawn(self, message: str) -> bool:
        logger.error(message)
        self._process = None
        self._emit(DisplayEvent(kind=DisplayKind.SPAWN_FAILED, lines=(message,), is_error=True))
        self._set_status(SessionStatus.ERROR)
        return False

    async def _run(self) -> None:
        try:
            while True:
                exit_code = await self._consume(self._process)
                if not await self._on_exit(exit_code):
                    break
        except Exception as e:
            logger.exception(f"Session loop failed: {e}")
            if self._process is not None:
                await self._process.terminate()
                self._process = None
            self._emit(
                DisplayEvent(kind=DisplayKind.PROCESS_EXIT, lines=(f"[Session error: {e}]",), is_error=True)
            )
            self._set_status(SessionStatus.ERROR)

    async def _consume(self, process: ClaudeProcess) -> int:
        poller = asyncio.create_task(self._poll_active_spec())
        try:
            async for item in process.lines():
                if item.source == STDERR:
                    self._emit_all(self.processor.process_stderr(item.text))
                else:
                    self._emit_all(self.processor.process_line(item.text))
            exit_code = await process.wait()
        finally:
            poller.cancel()
            try:
                await poller
            except asyncio.CancelledError:
                pass

        self._emit_all(self.processor.finish())
        self._active_spec = None
        logger.info(f"loop_end loop_number={self._state.loop_count} exit_code={exit_code}")
        return exit_code

    async def _poll_active_spec(self) -> None:
        while True:
            await asyncio.sleep(self.config.behavior.spec_poll_seconds)
            verdict = self.oracle.poll()
            if verdict.active_name != self._active_spec:
                logger.debug(f"Active spec changed to {verdict.active_name}")
                self._active_spec = verdict.active_name
                self._notify()

    async def _on_exit(self, exit_code: int) -> bool:
        """Decide the transition after a run ends. Returns True if respawned."""
        self._process = None

        if self._state.stop_requested:
            logger.info(f"manual_stop exit_code={exit_code}")
            self._emit(DisplayEvent(kind=DisplayKind.MANUAL_STOP, lines=("[Stopped]",)))
            self._set_status(SessionStatus.STOPPED)
            return False

        if exit_code != 0:
            logger.warning(f"process_exit_nonzero exit_code={exit_code}")
            self._emit(
                DisplayEvent(
                    kind=DisplayKind.PROCESS_EXIT,
                    lines=(f"[Process exited with code {exit_code}]",),
                    is_error=True,
                )
            )
            self._set_status(SessionStatus.ERROR)
            return False

        verdict = self.oracle.poll()
        if verdict.remaining == SpecsRemaining.MISSING:
            logger.warning(f"specs_readme_missing: {verdict.error}")
            message = verdict.error or f"{self.oracle.readme_path} not found"
            self._emit(
                DisplayEvent(kind=DisplayKind.SPECS_MISSING, lines=(f"[Error: {message}]",), is_error=True)
            )
            self._set_status(SessionStatus.ERROR)
            return False

        if verdict.remaining == SpecsRemaining.NO:
            logger.info("all_specs_complete")
            self._emit(
                DisplayEvent(kind=DisplayKind.ALL_SPECS_COMPLETE, lines=(ALL_SPECS_COMPLETE_BANNER,))
            )
            self._set_status(SessionStatus.STOPPED)
            return False

        total = self._state.total_iterations
        if total < 0 or self._state.current_iteration < total:
            self._state.current_iteration += 1
            logger.info(f"auto_continue iteration={self._state.current_iteration}")
            self._emit(DisplayEvent(kind=DisplayKind.AUTO_CONTINUE, lines=(AUTO_CONTINUE_BANNER,)))
            self._notify()
            return await self._spawn()

        logger.info(f"iterations_exhausted total={total}")
        self._emit(
            DisplayEvent(
                kind=DisplayKind.ITERATIONS_EXHAUSTED,
                lines=(f"[Iteration limit reached ({total})]",),
            )
        )
        self._set_status(SessionStatus.STOPPED)
        return False

    def _set_status(self, status: SessionStatus) -> None:
        if status != self._state.status:
            logger.debug(f"Session status {self._state.status.value} -> {status.value}")
        self._state.status = status
        self._notify()

    def _notify(self) -> None:
        if self._on_state_change is not None:
            self._on_state_change(self.snapshot())

    def _emit(self, event: DisplayEvent) -> None:
        if self._on_display is not None:
            self._on_display(event)

    def _emit_all(self, events) -> None:
        for event in events:
            self._emit(event)
