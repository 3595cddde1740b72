"""Run a slide's code blocks through external interpreters and compilers.

Runtimes come from the style file's ``runtime_map``. An entry may carry
arguments (``go: go run``). Every run happens inside its own temporary
directory, so sources and build artifacts are gone once it returns, whether
the run succeeded or not.

:class:`CodeRunner` keeps runs off the presenter loop: a bounded thread pool
executes them and a single printer thread forwards labelled results to the
terminal in completion order.
"""

from __future__ import annotations

import logging
import os
import queue
import shlex
import signal
import subprocess
import tempfile
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from .errors import SubprocessFailure

logger = logging.getLogger(__name__)

MAX_WORKERS = 4

LANGUAGE_ALIASES = {
    "py": "python",
    "python3": "python",
    "js": "javascript",
    "node": "javascript",
    "ts": "typescript",
    "rb": "ruby",
    "c++": "cpp",
    "cxx": "cpp",
    "rs": "rust",
    "kt": "kotlin",
    "shell": "sh",
    "golang": "go",
}

SOURCE_NAMES = {
    "python": "main.py",
    "javascript": "main.js",
    "typescript": "main.ts",
    "ruby": "main.rb",
    "sh": "main.sh",
    "bash": "main.sh",
    "c": "main.c",
    "cpp": "main.cpp",
    "java": "Main.java",
    "go": "main.go",
    "rust": "main.rs",
    "php": "main.php",
    "swift": "main.swift",
    "kotlin": "Main.kt",
}

# Compiled to ./main and then executed.
NATIVE_LANGUAGES = ("c", "cpp", "rust")


def resolve_language(tag: str) -> str:
    tag = (tag or "").strip().lower()
    return LANGUAGE_ALIASES.get(tag, tag)


def resolve_runtime(language: str, runtimes: dict) -> list[str]:
    runtime = runtimes.get(language)
    if not runtime:
        raise SubprocessFailure(f"no runtime configured for '{language}'")
    return shlex.split(runtime)


def _kill(proc):
    # Children lead their own session, so this also reaches anything they spawned.
    logger.debug("killing process group %d", proc.pid)
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        pass


class ProcessGroup:
    """Child processes started for code blocks, killed together on shutdown."""

    def __init__(self):
        self._procs = set()
        self._lock = threading.Lock()
        self.closed = False

    @property
    def running(self) -> int:
        with self._lock:
            return len(self._procs)

    def add(self, proc):
        with self._lock:
            if self.closed:
                _kill(proc)
            self._procs.add(proc)

    def discard(self, proc):
        with self._lock:
            self._procs.discard(proc)

    def kill_all(self):
        with self._lock:
            self.closed = True
            procs = list(self._procs)
        for proc in procs:
            _kill(proc)


def _run(command, workdir, processes=None):
    logger.debug("running %s in %s", command, workdir)
    try:
        proc = subprocess.Popen(
            command,
            cwd=workdir,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            encoding="utf-8",
            errors="replace",
            start_new_session=True,
        )
    except FileNotFoundError:
        raise SubprocessFailure(f"'{command[0]}' not found") from None
    except OSError as e:
        raise SubprocessFailure(f"could not start '{command[0]}': {e}") from None
    if processes is not None:
        processes.add(proc)
    try:
        stdout, stderr = proc.communicate()
    finally:
        if processes is not None:
            processes.discard(proc)
    return subprocess.CompletedProcess(command, proc.returncode, stdout, stderr)


def _check(result, step: str):
    if result.returncode != 0:
        raise SubprocessFailure(
            f"{step} failed (exit {result.returncode})",
            returncode=result.returncode,
            output=result.stderr or result.stdout,
        )
    return result


def run_code(language: str, code: str, runtimes: dict, processes=None) -> str:
    """Run ``code`` and return what it printed.

    Output that is not valid UTF-8 is decoded with replacement characters.
    Raises :class:`SubprocessFailure` when no runtime is configured, the
    executable is missing, or a compile or run step exits non-zero. Children
    are registered with ``processes`` while they run.
    """
    language = resolve_language(language)
    runtime = resolve_runtime(language, runtimes)
    with tempfile.TemporaryDirectory(prefix="dough-") as workdir:
        source = Path(workdir) / SOURCE_NAMES.get(language, f"main.{language}")
        source.write_text(code + "\n", encoding="utf-8")
        if language in NATIVE_LANGUAGES:
            _check(_run(runtime + [source.name, "-o", "main"], workdir, processes), "compile")
            result = _run([str(Path(workdir) / "main")], workdir, processes)
        elif language == "java":
            _check(_run(runtime + [source.name], workdir, processes), "compile")
            result = _run(["java", "-cp", workdir, "Main"], workdir, processes)
        elif language == "kotlin":
            _check(_run(runtime + [source.name, "-include-runtime", "-d", "main.jar"], workdir, processes), "compile")
            result = _run(["java", "-jar", "main.jar"], workdir, processes)
        else:
            result = _run(runtime + [source.name], workdir, processes)
        return _check(result, "run").stdout


class CodeRunner:
    """Fire-and-forget execution of code blocks with one output channel.

    :meth:`close` kills whatever is still running, so a hung program never
    holds up the exit.
    """

    def __init__(self, emit, max_workers: int = MAX_WORKERS):
        self.emit = emit
        self.processes = ProcessGroup()
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="dough-run")
        self._output = queue.Queue()
        self._printer = threading.Thread(target=self._drain, name="dough-output", daemon=True)
        self._printer.start()

    def submit(self, block, runtimes: dict):
        """Queue ``block`` for execution; returns the pool's future."""
        return self._pool.submit(self._execute, block, dict(runtimes))

    def report(self, message: str):
        self._output.put(message)

    def _execute(self, block, runtimes):
        label = f"[{block.index}] {block.language}"
        try:
            output = run_code(block.language, block.code, runtimes, self.processes)
        except SubprocessFailure as e:
            text = f"\n{label} {e}\n{e.output}".rstrip("\n") + "\n"
        except Exception as e:
            logger.exception("running code block %d failed", block.index)
            text = f"\n{label} error: {e}\n"
        else:
            text = f"\n{label}\n{output}".rstrip("\n") + "\n"
        self._output.put(text)
        return text

    def _drain(self):
        while True:
            text = self._output.get()
            if text is None:
                break
            try:
                self.emit(text)
            except Exception:
                logger.exception("could not print code output")

    def close(self):
        self._pool.shutdown(wait=False, cancel_futures=True)
        self.processes.kill_all()
        self._output.put(None)
