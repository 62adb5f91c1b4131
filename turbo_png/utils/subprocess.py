"""Subprocess helpers for the external PNG tools.

Tool lookup is cached per process; commands are run with captured output so
failures can be reported per file instead of leaking to the terminal.
"""

from __future__ import annotations

import functools
import shutil
import subprocess
from dataclasses import dataclass
from typing import Iterable

# Per invocation; exhaustive DEFLATE on large images can take minutes.
DEFAULT_TIMEOUT_S = 600.0


@dataclass(frozen=True)
class RunResult:
    cmd: list[str]
    returncode: int
    stdout: bytes
    stderr: str


class CommandError(RuntimeError):
    def __init__(self, message: str, result: RunResult):
        super().__init__(message)
        self.result = result


@functools.lru_cache(maxsize=None)
def find_tool(*names: str) -> str | None:
    """Return the first executable found on PATH among names."""

    for name in names:
        found = shutil.which(name)
        if found:
            return found
    return None


def run(
    cmd: Iterable[str],
    *,
    timeout_s: float | None = DEFAULT_TIMEOUT_S,
) -> RunResult:
    """Run a command, capturing stdout/stderr.

    Raises CommandError on a non-zero exit code or a timeout.
    """

    cmd_list = [str(c) for c in cmd]
    tool = cmd_list[0] if cmd_list else "<empty>"

    try:
        proc = subprocess.run(
            cmd_list,
            capture_output=True,
            check=False,
            # Own session: terminal Ctrl-C reaches us, not the tool mid-encode.
            start_new_session=True,
            timeout=timeout_s,
        )
    except subprocess.TimeoutExpired as e:
        res = RunResult(cmd=cmd_list, returncode=-1, stdout=b"", stderr="")
        raise CommandError(f"{tool} timed out after {e.timeout:.0f}s", res) from e

    res = RunResult(
        cmd=cmd_list,
        returncode=proc.returncode,
        stdout=proc.stdout or b"",
        stderr=(proc.stderr or b"").decode("utf-8", errors="replace"),
    )

    if res.returncode != 0:
        tail = res.stderr.strip().splitlines()[-5:]
        detail = "; ".join(line.strip() for line in tail if line.strip())
        message = f"{tool} exited with code {res.returncode}"
        if detail:
            message = f"{message}: {detail}"
        raise CommandError(message, res)

    return res
