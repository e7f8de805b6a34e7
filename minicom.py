"""
Minicom configuration output
----------------------------
The result of a session is written as a minicom config so the operator can
attach straight away with `minicom <name>`.
"""

import subprocess
import sys
from pathlib import Path
from typing import Callable, Optional, TextIO

from console import Console

MINICOM_BIN = "minicom"
CONFIG_PREFIX = "minirc."
RULE = "#" * 72


def render_config(device: str, label: str) -> str:
    return (
        f"{RULE}\n"
        "# Minicom configuration file - use \"minicom -s\" to change parameters.\n"
        f"pu port             {device}\n"
        f"pu baudrate         {label}\n"
        "pu bits             8\n"
        "pu parity           N\n"
        "pu stopbits         1\n"
        "pu rtscts           No\n"
        f"{RULE}\n"
    )


def config_path(name: str, config_dir: str) -> Path:
    return Path(config_dir) / f"{CONFIG_PREFIX}{name}"


def prompt_name(read_line: Optional[Callable[[], str]] = None, console: Optional[Console] = None) -> str:
    """Ask for a config name; an empty answer (or EOF) means print to stdout."""
    console = console or Console()
    read_line = read_line or sys.stdin.readline
    console.plain("\nSave serial port configuration as [stdout]: ")
    return read_line().strip()


def save_config(text: str, name: str, config_dir: str) -> Path:
    path = config_path(name, config_dir)
    with open(path, "w") as f:
        f.write(text)
    return path


def launch(name: str) -> int:
    return subprocess.call([MINICOM_BIN, name])


def emit_config(device: str, label: str, name: Optional[str], config_dir: str,
                run_minicom: bool = False, console: Optional[Console] = None,
                out: Optional[TextIO] = None, launcher: Callable[[str], int] = launch) -> Optional[Path]:
    """Save the config under name, or print it when there is no name or saving fails.

    Returns the saved path, if any. minicom is started only when the config
    was actually saved and run_minicom is set.
    """
    console = console or Console()
    out = out if out is not None else sys.stdout
    text = render_config(device, label)

    path = None
    if name:
        try:
            path = save_config(text, name, config_dir)
        except OSError as e:
            console.warn(f"Failed to write minicom config: {e}")

    if path is None:
        out.write(text)
        out.flush()
        return None

    console.ok(f"Minicom configuration data saved to: {path}")
    if run_minicom:
        launcher(name)
    return path
