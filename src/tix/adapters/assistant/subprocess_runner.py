"""Subprocess-backed runner for assistant CLI invocations."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
import time
from typing import IO, Callable, List, Mapping, Sequence

from tix.ports.assistant import (
    AssistantNotFoundError,
    AssistantProcessError,
    AssistantRunner,
    AssistantTimeoutError,
    TickCallback,
)

logger = logging.getLogger(__name__)

STDERR_EXCERPT_CHARS = 2000


def _drain(stream: IO[str], sink: List[str], on_line: Callable[[str], None] | None) -> None:
    # the reader owns the stream; closing it from another thread would block on
    # the buffer lock while a descendant still holds the write end
    try:
        for line in iter(stream.readline, ""):
            sink.append(line)
            if on_line is not None:
                on_line(line)
    except (OSError, ValueError):
        return
    finally:
        stream.close()


def _excerpt(text: str, limit: int = STDERR_EXCERPT_CHARS) -> str:
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[-limit:]


class SubprocessRunner(AssistantRunner):
    """Spawn one command, stream its output and enforce a deadline."""

    def __init__(
        self,
        *,
        tick_interval: float = 0.1,
        kill_grace: float = 2.0,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._tick_interval = max(0.01, float(tick_interval))
        self._kill_grace = max(0.0, float(kill_grace))
        self._env = dict(env) if env is not None else None

    def run(
        self,
        command: str,
        args: Sequence[str],
        *,
        timeout: float,
        on_tick: TickCallback | None = None,
    ) -> str:
        argv = [command, *args]
        logger.debug("spawning %s with %d argument(s), timeout=%.1fs", command, len(args), timeout)
        try:
            proc = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding="utf-8",
                errors="replace",
                env=self._env,
                start_new_session=os.name != "nt",
            )
        except FileNotFoundError as exc:
            raise AssistantNotFoundError(f"{command} CLI not found on PATH") from exc
        except PermissionError as exc:
            raise AssistantProcessError(f"{command} CLI is not executable: {exc}") from exc

        stdout_chunks: List[str] = []
        stderr_chunks: List[str] = []
        readers = [
            threading.Thread(target=_drain, args=(proc.stdout, stdout_chunks, None), daemon=True),
            threading.Thread(
                target=_drain,
                args=(proc.stderr, stderr_chunks, self._forward_stderr),
                daemon=True,
            ),
        ]
        for reader in readers:
            reader.start()

        started = time.monotonic()
        deadline = started + max(0.0, float(timeout))
        # done only when the child has exited AND both pipes hit EOF; descendants
        # (MCP servers) can keep the pipes open after the child itself is gone
        while proc.poll() is None or any(reader.is_alive() for reader in readers):
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self._terminate(proc, readers)
                raise AssistantTimeoutError(
                    f"{command} CLI timed out after {timeout:g}s",
                    stderr=_excerpt("".join(stderr_chunks)),
                    returncode=proc.returncode,
                )
            step = min(self._tick_interval, remaining)
            if proc.returncode is None:
                try:
                    proc.wait(timeout=step)
                    continue
                except subprocess.TimeoutExpired:
                    pass
            else:
                for reader in readers:
                    if reader.is_alive():
                        reader.join(step)
                        break
                if not any(reader.is_alive() for reader in readers):
                    break
            if on_tick is not None:
                on_tick(time.monotonic() - started)

        elapsed = time.monotonic() - started
        stdout = "".join(stdout_chunks).strip()
        stderr = "".join(stderr_chunks)
        code = proc.returncode
        if code != 0:
            if stdout:
                logger.warning(
                    "%s exited with code %s but produced output; accepting it as-is", command, code
                )
                return stdout
            raise AssistantProcessError(
                f"{command} CLI exited with code {code}",
                stderr=_excerpt(stderr),
                returncode=code,
            )
        logger.debug("%s finished in %.1fs (%d chars)", command, elapsed, len(stdout))
        return stdout

    @staticmethod
    def _forward_stderr(line: str) -> None:
        logger.debug("assistant stderr: %s", line.rstrip())

    @staticmethod
    def _join(readers: Sequence[threading.Thread], *, until: float) -> bool:
        """Join readers until the monotonic ``until``; True when all hit EOF."""

        for reader in readers:
            reader.join(max(0.0, until - time.monotonic()))
        return not any(reader.is_alive() for reader in readers)

    def _terminate(self, proc: subprocess.Popen, readers: Sequence[threading.Thread]) -> None:
        # signals go to the whole process group so descendants holding our
        # pipes are stopped along with the child
        logger.debug("terminating process group of pid %s after deadline", proc.pid)
        if not self._signal(proc, signal.SIGTERM):
            return
        grace_until = time.monotonic() + self._kill_grace
        try:
            proc.wait(timeout=self._kill_grace)
        except subprocess.TimeoutExpired:
            pass
        else:
            if self._join(readers, until=grace_until):
                return
        kill_signal = signal.SIGTERM if os.name == "nt" else signal.SIGKILL
        self._signal(proc, kill_signal)
        proc.wait()
        self._join(readers, until=time.monotonic() + self._kill_grace)

    @staticmethod
    def _signal(proc: subprocess.Popen, sig: int) -> bool:
        try:
            if os.name != "nt" and hasattr(os, "killpg"):
                os.killpg(proc.pid, sig)
            else:
                proc.send_signal(sig)
        except ProcessLookupError:
            return False
        return True


__all__ = ["SubprocessRunner"]
