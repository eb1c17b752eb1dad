#!/usr/bin/env python3
"""
Update Bearer Tokens from Workshop Details

Extracts openshift_bearer_token values from workshop_details*.txt files and
writes them into the matching user_environments/.envNN files, so every
attendee can log in to their cluster without entering credentials.

Tokens are matched to users by the USER_EMAIL recorded in each .envNN.

Usage:
    python3 update_bearer_tokens.py                 # All users
    python3 update_bearer_tokens.py -u 1-10         # Users 1-10 only
    python3 update_bearer_tokens.py --dry-run -v    # Preview
"""
import argparse
import re
import shutil
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional

from workshop_common import (
    REPO_ROOT,
    USER_ENV_DIR,
    WorkshopError,
    configure_colors,
    log_error,
    log_info,
    log_success,
    log_warning,
)
from workshop_env import read_env_values, record_env_value

SECTION_SPLIT = re.compile(r"^enterprise\.aap-product-demos[^\n]*$", re.MULTILINE)
EMAIL = re.compile(r"([a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})")
ENV_FILE_NAME = re.compile(r"^\.env(\d{2,})$")


class UserToken(NamedTuple):
    email: str
    token: str
    guid: str
    api_url: str


def _field(section: str, name: str) -> str:
    match = re.search(rf"{name}:\s*(\S+)", section)
    return match.group(1).strip() if match else ""


def extract_tokens(content: str) -> List[UserToken]:
    """One entry per service section that has both an e-mail and a token."""
    tokens = []
    for section in SECTION_SPLIT.split(content)[1:]:
        email = EMAIL.search(section)
        token = _field(section, "openshift_bearer_token")
        if not email or not token:
            continue
        tokens.append(UserToken(email.group(1), token, _field(section, "guid"),
                                _field(section, "openshift_api_url")))
    return tokens


def parse_user_range(text: str) -> List[int]:
    """'3', '1-5' or '1-3,7,9' -> sorted unique user numbers."""
    users = set()
    for part in text.split(","):
        part = part.strip()
        if re.fullmatch(r"\d+", part):
            users.add(int(part))
        elif re.fullmatch(r"\d+-\d+", part):
            start, end = (int(n) for n in part.split("-"))
            users.update(range(start, end + 1))
        elif part:
            raise WorkshopError(f"Invalid user range format: {text}")
    if not users:
        raise WorkshopError(f"Invalid user range format: {text}")
    return sorted(users)


def discover_users(user_env_dir: Path) -> List[int]:
    numbers = []
    for path in user_env_dir.glob(".env*"):
        match = ENV_FILE_NAME.match(path.name)
        if match and path.is_file():
            numbers.append(int(match.group(1)))
    return sorted(numbers)


def update_env_file(env_file: Path, token: str, dry_run: bool = False, verbose: bool = False) -> bool:
    """Returns True when the file now holds (or would hold) the token."""
    if not env_file.is_file():
        log_error(f"Environment file not found: {env_file}")
        return False

    current = read_env_values(env_file).get("OCP_BEARER_TOKEN") or ""
    if current == token:
        if verbose:
            log_info(f"Bearer token already up to date in: {env_file.name}")
        return True

    if dry_run:
        log_info(f"DRY RUN: Would update bearer token in: {env_file.name}")
        if verbose:
            log_info(f"  Current: {current or '(empty)'}")
            log_info(f"  New: {token}")
        return True

    backup = env_file.with_name(f"{env_file.name}.backup.{datetime.now().strftime('%Y%m%d_%H%M%S')}")
    shutil.copy2(env_file, backup)
    record_env_value(env_file, "OCP_BEARER_TOKEN", token)

    if verbose:
        log_success(f"Updated bearer token in: {env_file.name}")
        log_info(f"  Previous: {current or '(none)'}")
        log_info(f"  New: {token}")
    else:
        log_success(f"Updated: {env_file.name}")
    return True


class TokenUpdater:
    def __init__(self, user_env_dir: Path, dry_run: bool = False, verbose: bool = False):
        self.user_env_dir = user_env_dir
        self.dry_run = dry_run
        self.verbose = verbose
        self.stats = {"updated": 0, "skipped": 0, "failed": 0}

    def load_tokens(self, files: List[Path]) -> Dict[str, UserToken]:
        tokens: Dict[str, UserToken] = {}
        for path in files:
            if self.verbose:
                log_info(f"Processing: {path.name}")
            for entry in extract_tokens(path.read_text()):
                tokens.setdefault(entry.email, entry)
        log_info(f"Extracted {len(tokens)} bearer tokens from workshop details")
        return tokens

    def update_user(self, number: int, tokens: Dict[str, UserToken]):
        env_file = self.user_env_dir / f".env{number:02d}"
        if not env_file.is_file():
            if self.verbose:
                log_warning(f"Environment file not found for user {number:02d}: {env_file}")
            self.stats["failed"] += 1
            return

        email = read_env_values(env_file).get("USER_EMAIL") or ""
        if not email:
            log_warning(f"Could not find USER_EMAIL in {env_file}")
            self.stats["failed"] += 1
            return

        entry = tokens.get(email)
        if entry is None:
            if self.verbose:
                log_warning(f"No bearer token found for user {number:02d} ({email})")
            self.stats["skipped"] += 1
            return

        if update_env_file(env_file, entry.token, self.dry_run, self.verbose):
            self.stats["updated"] += 1
        else:
            self.stats["failed"] += 1

    def run(self, files: List[Path], users: List[int]) -> int:
        tokens = self.load_tokens(files)
        log_info(f"Processing {len(users)} user environment(s)")
        for number in users:
            self.update_user(number, tokens)
        self.print_summary(len(users))
        return 1 if self.stats["failed"] else 0

    def print_summary(self, total: int):
        print()
        print("=" * 60)
        print(" BEARER TOKEN UPDATE SUMMARY")
        print("=" * 60)
        print(f"   {'Total Users Processed':.<30} {total}")
        for key, value in self.stats.items():
            print(f"   {key.capitalize():.<30} {value}")
        print()
        if self.dry_run:
            log_info("This was a dry run - no files were modified")
        elif self.stats["updated"]:
            log_success(f"Successfully updated {self.stats['updated']} user environment(s) with bearer tokens")
            log_info("Backup files created with timestamp suffix")


def main(argv=None, root: Optional[Path] = None) -> int:
    parser = argparse.ArgumentParser(description="Update Bearer Tokens from Workshop Details")
    parser.add_argument("-d", "--directory", type=Path, default=None,
                        help="User environments directory (default: user_environments)")
    parser.add_argument("-p", "--pattern", "-f", "--files", dest="pattern", default="workshop_details*.txt",
                        help="Workshop details file pattern (default: workshop_details*.txt)")
    parser.add_argument("-u", "--users", help="User range (e.g., 1-5, 3,7,9, or single number)")
    parser.add_argument("--dry-run", action="store_true", help="Show what would be updated without modifying files")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    args = parser.parse_args(argv)

    configure_colors(args.no_color)
    root = root or REPO_ROOT
    user_env_dir = args.directory or (root / USER_ENV_DIR.name)

    try:
        log_info("Discovering workshop details files...")
        files = sorted(path for path in root.glob(args.pattern) if path.is_file())
        if not files:
            raise WorkshopError(f"No workshop details files found matching pattern: {args.pattern}")
        log_info(f"Found {len(files)} workshop details file(s)")

        users = parse_user_range(args.users) if args.users else discover_users(user_env_dir)
        if not users:
            raise WorkshopError("No users found to process")
    except WorkshopError as e:
        log_error(str(e))
        return 1

    return TokenUpdater(user_env_dir, args.dry_run, args.verbose).run(files, users)


if __name__ == "__main__":
    sys.exit(main())
