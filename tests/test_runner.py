"""Tests for the process runner."""

from __future__ import annotations

import os
import sys
import time

import pytest

from codesandbox.executor import TIMEOUT_EXIT_CODE, TIMEOUT_MESSAGE, ProcessRunner
from codesandbox.executor.runner import _BoundedBuffer

posix_only = pytest.mark.skipif(os.name != "posix", reason="requires POSIX process groups")


def py(code: str):
    return [sys.executable, "-c", code]


def test_echoes_stdin():
    outcome = ProcessRunner().run(
        py("import sys; sys.stdout.write(sys.stdin.read())"), stdin="hello\nworld"
    )
    assert outcome.stdout == "hello\nworld"
    assert outcome.stderr == ""
    assert outcome.exit_code == 0
    assert not outcome.timed_out
    assert not outcome.truncated


def test_stdin_is_closed_when_empty():
    outcome = ProcessRunner().run(py("import sys; print(repr(sys.stdin.read()))"), stdin="")
    assert outcome.stdout == "''\n"


def test_reports_exit_code_and_stderr():
    outcome = ProcessRunner().run(py("import sys; sys.stderr.write('bad'); sys.exit(3)"))
    assert outcome.exit_code == 3
    assert outcome.stderr == "bad"


def test_runs_in_cwd(tmp_path):
    outcome = ProcessRunner().run(py("import os; print(os.getcwd())"), cwd=tmp_path)
    assert os.path.samefile(outcome.stdout.strip(), tmp_path)


def test_decodes_utf8():
    outcome = ProcessRunner().run(py("import sys; sys.stdout.buffer.write('héllo ✓'.encode('utf-8'))"))
    assert outcome.stdout == "héllo ✓"


def test_no_shell_interpretation():
    outcome = ProcessRunner().run(py("import sys; print(sys.argv[1])") + ["$(echo hi); rm -rf /"])
    assert outcome.stdout == "$(echo hi); rm -rf /\n"


def test_timeout_kills_process():
    start = time.monotonic()
    outcome = ProcessRunner().run(py("import time; time.sleep(30)"), timeout_ms=500)
    elapsed = time.monotonic() - start
    assert outcome.timed_out
    assert outcome.exit_code == TIMEOUT_EXIT_CODE == 124
    assert outcome.stderr == TIMEOUT_MESSAGE
    assert elapsed < 0.5 + 2


def test_timeout_replaces_partial_stderr_keeps_stdout():
    code = (
        "import sys, time\n"
        "sys.stdout.write('partial out'); sys.stdout.flush()\n"
        "sys.stderr.write('partial err'); sys.stderr.flush()\n"
        "time.sleep(30)\n"
    )
    outcome = ProcessRunner().run(py(code), timeout_ms=1000)
    assert outcome.exit_code == 124
    assert outcome.stderr == TIMEOUT_MESSAGE
    assert outcome.stdout == "partial out"


@posix_only
def test_timeout_kills_descendants():
    code = (
        "import subprocess, sys, time\n"
        "subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(30)'])\n"
        "time.sleep(30)\n"
    )
    start = time.monotonic()
    outcome = ProcessRunner().run(py(code), timeout_ms=1000)
    assert outcome.exit_code == 124
    assert time.monotonic() - start < 1 + 2


def test_stdout_is_capped():
    outcome = ProcessRunner().run(py("import sys; sys.stdout.write('x' * 60000)"))
    assert outcome.exit_code == 0
    assert outcome.stdout == "x" * 50_000
    assert outcome.truncated


def test_stderr_is_capped():
    runner = ProcessRunner(max_stdout_chars=100, max_stderr_chars=10)
    outcome = runner.run(py("import sys; print('ok'); sys.stderr.write('e' * 5000)"))
    assert outcome.stdout == "ok\n"
    assert outcome.stderr == "e" * 10
    assert outcome.truncated


def test_large_output_does_not_block():
    # Far more than a pipe buffer; the reader must keep draining past the cap.
    code = "import sys\nfor _ in range(200): sys.stdout.write('y' * 10000)\nprint('end', file=sys.stderr)"
    outcome = ProcessRunner().run(py(code), timeout_ms=10_000)
    assert outcome.exit_code == 0
    assert len(outcome.stdout) == 50_000
    assert outcome.stderr.strip() == "end"


def test_unread_stdin_is_not_an_error():
    outcome = ProcessRunner().run(py("print('ok')"), stdin="z" * 1_000_000)
    assert outcome.exit_code == 0
    assert outcome.stdout == "ok\n"


def test_spawn_failure():
    outcome = ProcessRunner().run(["/nonexistent/definitely-not-a-compiler", "main.c"])
    assert outcome.stdout == ""
    assert outcome.stderr
    assert outcome.exit_code == 1
    assert not outcome.timed_out


@posix_only
def test_signal_termination_reports_zero():
    outcome = ProcessRunner().run(py("import os, signal; os.kill(os.getpid(), signal.SIGKILL)"))
    assert not outcome.timed_out
    assert outcome.exit_code == 0


def test_bounded_buffer_handles_split_multibyte():
    buffer = _BoundedBuffer(limit=10)
    encoded = "é".encode("utf-8")
    buffer.feed(encoded[:1])
    buffer.feed(encoded[1:])
    buffer.feed(b"", final=True)
    assert buffer.getvalue() == "é"
    assert not buffer.truncated


def test_bounded_buffer_counts_characters():
    buffer = _BoundedBuffer(limit=3)
    buffer.feed("ééé".encode("utf-8"))
    buffer.feed(b"more")
    assert buffer.getvalue() == "ééé"
    assert buffer.truncated
