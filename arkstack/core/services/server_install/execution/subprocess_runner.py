"""
L4 Execution — Elevated command runner.

The single place where the Linux dependency installer shells out with
sudo.  The password is piped to ``sudo -S`` on stdin and never
appears in argv, logs or results.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from typing import Any

logger = logging.getLogger(__name__)

_OUTPUT_TAIL = 2000


def run_sudo_command(
    command: str,
    password: str,
    *,
    timeout: int = 600,
) -> dict[str, Any]:
    """Run a shell command as root.

    ``-k`` invalidates cached credentials every time, so a wrong
    password is always detected.  When already root, sudo is skipped.

    Args:
        command: Shell command line (run via ``bash -c``).
        password: Sudo password, piped to stdin.
        timeout: Seconds before the command is abandoned.

    Returns:
        ``{"ok": True, "stdout": "...", "elapsed_ms": N}`` on success,
        ``{"ok": False, "error": "...", ...}`` on failure.
    """
    is_root = hasattr(os, "geteuid") and os.geteuid() == 0

    if is_root:
        cmd = ["bash", "-c", command]
        stdin_data = None
    elif not password:
        return {
            "ok": False,
            "needs_sudo": True,
            "error": "This step requires sudo. Please enter your password.",
        }
    else:
        cmd = ["sudo", "-S", "-k", "bash", "-c", command]
        stdin_data = password + "\n"

    logger.info("Running elevated: %s", command)
    start = time.monotonic()
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
            input=stdin_data,
        )
    except subprocess.TimeoutExpired:
        logger.warning("Elevated command timed out after %ss: %s", timeout, command)
        return {"ok": False, "error": f"Command timed out ({timeout}s)"}
    except OSError as e:
        logger.error("Could not run elevated command %s: %s", command, e)
        return {"ok": False, "error": str(e)}

    elapsed_ms = int((time.monotonic() - start) * 1000)
    stdout = result.stdout[-_OUTPUT_TAIL:] if result.stdout else ""

    if result.returncode == 0:
        return {"ok": True, "stdout": stdout, "elapsed_ms": elapsed_ms}

    stderr = result.stderr[-_OUTPUT_TAIL:] if result.stderr else ""

    if not is_root and ("incorrect password" in stderr.lower() or "sorry" in stderr.lower()):
        return {"ok": False, "needs_sudo": True, "error": "Wrong password. Try again."}

    logger.warning("Elevated command failed (exit %s): %s", result.returncode, command)
    return {
        "ok": False,
        "error": f"Command failed (exit {result.returncode})",
        "stderr": stderr,
        "stdout": stdout,
        "elapsed_ms": elapsed_ms,
    }
