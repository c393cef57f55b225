"""External linter invocation, one live process per buffer."""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field

from blocedit.diagnostics import Diagnostic, resolve_all
from blocedit.errors import LinterError, LinterNotFound, LinterTimeout

logger = logging.getLogger(__name__)

FILE_PLACEHOLDER = "{file}"


@dataclass
class LintRun:
    """A started linter process and the buffer snapshot it is checking."""

    generation: int
    process: subprocess.Popen[str]
    source: str
    input_path: str | None = None
    cancelled: bool = False


@dataclass
class LintSession:
    """Per-buffer linter state.

    Starting a check terminates the previous live process for the buffer,
    and results from any run but the latest are discarded.
    """

    command: list[str]
    timeout: float | None = 10.0
    _generation: int = field(default=0, init=False)
    _live: LintRun | None = field(default=None, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)
    _executor: ThreadPoolExecutor | None = field(default=None, init=False, repr=False)

    @property
    def generation(self) -> int:
        return self._generation

    def start(self, source: str) -> LintRun:
        """Spawn the linter on source, replacing any live run."""
        if not self.command:
            raise LinterNotFound("<no linter command configured>")
        with self._lock:
            self._cancel_live()
            self._generation += 1
            args, input_path = self._prepare(source)
            try:
                process = subprocess.Popen(
                    args,
                    stdin=subprocess.PIPE if input_path is None else subprocess.DEVNULL,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    text=True,
                )
            except FileNotFoundError:
                _remove(input_path)
                raise LinterNotFound(args[0]) from None
            except PermissionError:
                _remove(input_path)
                raise LinterError(f"linter is not executable: {args[0]}") from None
            run = LintRun(self._generation, process, source, input_path)
            self._live = run
            logger.debug("started lint run %d: %s", run.generation, args)
            return run

    def is_current(self, run: LintRun) -> bool:
        return run.generation == self._generation and not run.cancelled

    def collect(self, run: LintRun) -> list[Diagnostic] | None:
        """Wait for run and return its diagnostics, or None if superseded."""
        stdin_data = run.source if run.input_path is None else None
        try:
            output, _ = run.process.communicate(stdin_data, timeout=self.timeout)
        except subprocess.TimeoutExpired:
            run.process.kill()
            run.process.communicate()
            raise LinterTimeout(str(run.process.args[0]), self.timeout or 0.0) from None
        finally:
            _remove(run.input_path)
            with self._lock:
                if self._live is run:
                    self._live = None

        if not self.is_current(run):
            logger.debug("discarding results of superseded lint run %d", run.generation)
            return None
        if run.process.returncode not in (0, 1):
            logger.info("linter exited with status %d", run.process.returncode)
        return resolve_all(run.source, output, run.generation)

    def check(self, source: str) -> list[Diagnostic] | None:
        """Run the linter synchronously."""
        return self.collect(self.start(source))

    def check_async(
        self,
        source: str,
        callback: Callable[[list[Diagnostic]], None] | None = None,
    ) -> Future[list[Diagnostic] | None]:
        """Start a check now and collect it on a worker thread.

        The callback only sees results of the latest run; the future
        resolves to None for superseded runs.
        """
        run = self.start(source)
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="lint")
        future = self._executor.submit(self.collect, run)
        if callback is not None:

            def _deliver(done: Future[list[Diagnostic] | None]) -> None:
                if done.cancelled() or done.exception() is not None:
                    return
                result = done.result()
                if result is not None and self.is_current(run):
                    callback(result)

            future.add_done_callback(_deliver)
        return future

    def cancel(self) -> None:
        """Terminate the live run, if any."""
        with self._lock:
            self._cancel_live()

    def close(self) -> None:
        self.cancel()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def _cancel_live(self) -> None:
        run = self._live
        if run is None:
            return
        run.cancelled = True
        if run.process.poll() is None:
            logger.debug("terminating superseded lint run %d", run.generation)
            run.process.terminate()
        self._live = None

    def _prepare(self, source: str) -> tuple[list[str], str | None]:
        if not any(FILE_PLACEHOLDER in arg for arg in self.command):
            return list(self.command), None
        fd, path = tempfile.mkstemp(suffix=".bloc", prefix="blocedit-")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(source)
        return [arg.replace(FILE_PLACEHOLDER, path) for arg in self.command], path


def _remove(path: str | None) -> None:
    if path is None:
        return
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
