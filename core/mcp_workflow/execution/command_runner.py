"""
Command Runner - runs external commands for nodes without blocking the loop.

Output is captured (and optionally teed to a file), progress is reported
through a ProgressReporter with debouncing, and a timeout terminates the
child and returns a result flagged ``timed_out`` instead of raising, so a
node can record the outcome in its state patch.
"""

import asyncio
import logging
import os
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import IO

from mcp_workflow.execution.progress import PROGRESS_TOTAL, ProgressReporter

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 300.0
DEFAULT_PROGRESS_DEBOUNCE_SECONDS = 2.0


@dataclass
class ProgressParseResult:
    progress: float
    message: str | None = None


# (accumulated stdout, current progress) -> parsed progress
ProgressParser = Callable[[str, float], ProgressParseResult]


@dataclass
class CommandResult:
    """Outcome of one command execution."""

    exit_code: int | None
    stdout: str
    stderr: str
    duration_seconds: float
    timed_out: bool = False
    signal: int | None = None

    @property
    def success(self) -> bool:
        return self.exit_code == 0 and not self.timed_out


class _ProgressState:
    """Debounces progress reports: report on change, or after the interval elapses."""

    def __init__(
        self, reporter: ProgressReporter | None, parser: ProgressParser | None, debounce: float
    ):
        self.reporter = reporter
        self.parser = parser
        self.debounce = debounce
        self.started = time.monotonic()
        self.current = 0.0
        self.last_reported: float | None = None
        self.last_report_time: float | None = None

    async def report(self, progress: float, message: str) -> None:
        if self.reporter is not None:
            await self.reporter.report(progress, PROGRESS_TOTAL, message)

    async def on_output(self, stdout: str) -> None:
        if self.reporter is None:
            return
        now = time.monotonic()
        elapsed = int(now - self.started)
        message = f"Command in progress... ({elapsed}s elapsed)"

        if self.parser is not None:
            try:
                parsed = self.parser(stdout, self.current)
            except Exception as e:
                logger.debug(f"Progress parser failed: {e}")
            else:
                if parsed.progress > self.current:
                    self.current = parsed.progress
                if parsed.message:
                    message = parsed.message

        changed = self.last_reported != self.current
        debounce_elapsed = (
            self.last_report_time is None or now - self.last_report_time >= self.debounce
        )
        if changed or debounce_elapsed:
            await self.report(self.current, message)
            self.last_reported = self.current
            self.last_report_time = now


class CommandRunner:
    """Runs commands as async subprocesses (no shell)."""

    def __init__(self, default_timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.default_timeout = default_timeout

    async def execute(
        self,
        command: str,
        args: list[str] | None = None,
        *,
        env: Mapping[str, str] | None = None,
        cwd: str | Path | None = None,
        timeout: float | None = None,
        progress_reporter: ProgressReporter | None = None,
        progress_parser: ProgressParser | None = None,
        progress_debounce: float = DEFAULT_PROGRESS_DEBOUNCE_SECONDS,
        output_file: str | Path | None = None,
    ) -> CommandResult:
        """
        Run ``command`` with ``args`` and collect its output.

        Args:
            command: Executable to run
            args: Arguments, passed without shell interpretation
            env: Environment (defaults to the current environment); LANG and
                LC_ALL default to UTF-8
            cwd: Working directory
            timeout: Seconds before the child is terminated (0 or None uses
                the runner default; negative disables the timeout)
            progress_reporter: Receives progress while output arrives
            progress_parser: Derives progress from accumulated stdout
            progress_debounce: Minimum seconds between unchanged reports
            output_file: File that receives stdout and stderr as they arrive

        Raises:
            OSError: The command could not be started
        """
        args = args or []
        run_env = dict(os.environ if env is None else env)
        run_env.setdefault("LANG", "en_US.UTF-8")
        run_env.setdefault("LC_ALL", "en_US.UTF-8")
        limit = timeout or self.default_timeout

        progress = _ProgressState(progress_reporter, progress_parser, progress_debounce)
        start = time.monotonic()
        logger.info(f"Running command: {command} {' '.join(args)}")

        try:
            process = await asyncio.create_subprocess_exec(
                command,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=run_env,
                cwd=str(cwd) if cwd else None,
            )
        except OSError as e:
            await progress.report(PROGRESS_TOTAL, f"Command execution error: {e}")
            raise

        await progress.report(0, "Starting command execution...")

        stdout_parts: list[str] = []
        stderr_parts: list[str] = []
        sink: IO[str] | None = open(output_file, "w", encoding="utf-8") if output_file else None

        async def pump_stdout() -> None:
            assert process.stdout is not None
            while chunk := await process.stdout.read(4096):
                text = chunk.decode("utf-8", errors="replace")
                stdout_parts.append(text)
                if sink:
                    sink.write(text)
                await progress.on_output("".join(stdout_parts))

        async def pump_stderr() -> None:
            assert process.stderr is not None
            while chunk := await process.stderr.read(4096):
                text = chunk.decode("utf-8", errors="replace")
                stderr_parts.append(text)
                if sink:
                    sink.write(text)

        async def run_to_exit() -> None:
            await asyncio.gather(pump_stdout(), pump_stderr())
            await process.wait()

        timed_out = False
        try:
            if limit > 0:
                await asyncio.wait_for(run_to_exit(), timeout=limit)
            else:
                await run_to_exit()
        except TimeoutError:
            timed_out = True
            logger.warning(f"Command timed out after {limit}s: {command}")
            if process.returncode is None:
                process.terminate()
                try:
                    await asyncio.wait_for(process.wait(), timeout=5)
                except TimeoutError:
                    process.kill()
                    await process.wait()
        finally:
            if sink:
                sink.close()

        duration = time.monotonic() - start
        returncode = process.returncode
        signal_number = -returncode if returncode is not None and returncode < 0 else None
        exit_code = None if signal_number is not None else returncode

        result = CommandResult(
            exit_code=exit_code,
            stdout="".join(stdout_parts),
            stderr="".join(stderr_parts),
            duration_seconds=duration,
            timed_out=timed_out,
            signal=signal_number,
        )

        if result.success:
            await progress.report(PROGRESS_TOTAL, "Command completed successfully")
        elif timed_out:
            await progress.report(PROGRESS_TOTAL, f"Command timeout after {limit}s")
        elif signal_number is not None:
            await progress.report(PROGRESS_TOTAL, f"Command terminated by signal: {signal_number}")
        else:
            await progress.report(PROGRESS_TOTAL, f"Command failed with exit code: {exit_code}")

        logger.info(
            f"Command finished (exit={exit_code}, timed_out={timed_out})",
            extra={"latency_ms": int(duration * 1000)},
        )
        return result
