#!/usr/bin/env python3
"""
Shared helpers for the workshop provisioning scripts.

Terminal output, prerequisite checks and the subprocess runner used by every
script in this directory. Paths default to the repository root (the
directory above scripts/) and can be moved with WORKSHOP_ROOT.
"""
import os
import shutil
import subprocess
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

# ---------------------------------------------------------------------------
# Configuration – override via environment variables
# ---------------------------------------------------------------------------
REPO_ROOT = Path(os.environ.get("WORKSHOP_ROOT", Path(__file__).resolve().parent.parent))
DETAILS_FILE = REPO_ROOT / "details.txt"
ENV_FILE = REPO_ROOT / ".env"
EE_DIR = REPO_ROOT / "execution-environment"
PLAYBOOK_DIR = REPO_ROOT / "playbooks"
USER_ENV_DIR = REPO_ROOT / "user_environments"

WORKSHOP_NAMESPACE = "workshop-aap"


class WorkshopError(Exception):
    """Fatal condition that aborts the current script."""


# Color codes for terminal output
class Colors:
    RED = '\033[91m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    BLUE = '\033[94m'
    CYAN = '\033[96m'
    BOLD = '\033[1m'
    END = '\033[0m'

    @staticmethod
    def disable():
        """Disable colors for non-terminal output"""
        Colors.RED = Colors.GREEN = Colors.YELLOW = Colors.BLUE = ''
        Colors.CYAN = Colors.BOLD = Colors.END = ''


def configure_colors(no_color: bool = False):
    if no_color or not sys.stdout.isatty():
        Colors.disable()


def timestamp() -> str:
    return datetime.now().strftime('%Y-%m-%d %H:%M:%S')


def log(message: str):
    print(f"[{timestamp()}] {message}")


def log_info(message: str):
    print(f"{Colors.BLUE}[INFO]{Colors.END} {message}")


def log_success(message: str):
    print(f"{Colors.GREEN}[SUCCESS]{Colors.END} {message}")


def log_warning(message: str):
    print(f"{Colors.YELLOW}[WARNING]{Colors.END} {message}")


def log_error(message: str):
    print(f"{Colors.RED}[ERROR]{Colors.END} {message}", file=sys.stderr)


def banner(title: str, width: int = 60):
    print("=" * width)
    print(f" {title}")
    print("=" * width)


def section(title: str, width: int = 60):
    print(f"\n{Colors.YELLOW}{'-' * width}{Colors.END}")
    print(f"{Colors.YELLOW} {title}{Colors.END}")
    print(f"{Colors.YELLOW}{'-' * width}{Colors.END}\n")


def command_exists(name: str) -> bool:
    return shutil.which(name) is not None


def require_commands(commands: List[Tuple[str, str]]):
    """Raise WorkshopError for the first (command, hint) pair not on PATH."""
    for name, hint in commands:
        if not command_exists(name):
            raise WorkshopError(f"{name} not found. {hint}")


def run_command(cmd: List[str], timeout: Optional[int] = 60,
                cwd: Optional[Path] = None) -> Tuple[bool, str]:
    """Run a command and return success status and stripped stdout.

    On failure the output is stderr (or stdout when stderr is empty) so the
    caller can show why the command failed.
    """
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout, cwd=cwd)
    except subprocess.TimeoutExpired:
        return False, "Command timed out"
    except FileNotFoundError:
        return False, f"{cmd[0]}: command not found"
    if result.returncode == 0:
        return True, result.stdout.strip()
    return False, (result.stderr or result.stdout).strip()


def run_streaming(cmd: List[str], cwd: Optional[Path] = None) -> bool:
    """Run a long command (playbooks, image builds) with output on the terminal."""
    try:
        return subprocess.run(cmd, cwd=cwd).returncode == 0
    except FileNotFoundError:
        log_error(f"{cmd[0]}: command not found")
        return False


def confirm(prompt: str) -> bool:
    reply = input(f"{prompt} (y/N): ").strip()
    return reply[:1] in ("y", "Y")
