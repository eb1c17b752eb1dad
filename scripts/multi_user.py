#!/usr/bin/env python3
"""
Multi-User Workshop Setup and Validation

Runs the Exercise 0 setup, or a per-user validation, for every attendee
environment in user_environments/ (the .envNN files written by
parse-workshop-details). Users are processed one after another.

Each run leaves per-user files in user_environments/logs/:

    setup_userNN.log        output of that user's setup
    setup_userNN.status     running, completed or failed
    validation_userNN.log   output of that user's validation

With --resume only users whose status is not "completed" are set up again.

Usage:
    setup-multi-user                     # All users in user_environments/
    setup-multi-user -u 1-5 --resume     # Retry users 1-5 that did not complete
    validate-multi-user --full           # Also check the AAP resources
"""
import argparse
import re
import sys
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from typing import Callable, Dict, List, Optional

import requests

from aap_client import CONNECT_TIMEOUT, AAPClient
from cluster import ClusterCLI
from setup_aap_resources import WorkshopProvisioner, ee_name, project_name
from setup_workshop import configure_oc_login, create_namespace, verify_aap_access
from update_bearer_tokens import discover_users, parse_user_range
from validation import ValidationReport
from workshop_common import (
    REPO_ROOT,
    USER_ENV_DIR,
    WORKSHOP_NAMESPACE,
    WorkshopError,
    banner,
    configure_colors,
    log_error,
    log_info,
    log_success,
    log_warning,
    timestamp,
)
from workshop_env import load_env

PUBLISHED_EE_IMAGE = "quay.io/aap-workshop/aap-workshop-ee:latest"

STATUS_RUNNING = "running"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

REQUIRED_KEYS = [
    "USER_EMAIL",
    "AAP_URL",
    "AAP_USERNAME",
    "AAP_PASSWORD",
    "OCP_CONSOLE_URL",
    "OCP_API_URL",
    "OCP_CLUSTER_DOMAIN",
    "WORKSHOP_GUID",
    "SSH_HOST",
    "SSH_PORT",
    "SSH_USER",
    "SSH_PASSWORD",
]
URL_KEYS = ["AAP_URL", "OCP_CONSOLE_URL", "OCP_API_URL"]


def user_env_file(user_env_dir: Path, number: int) -> Path:
    return user_env_dir / f".env{number:02d}"


def status_file(log_dir: Path, number: int) -> Path:
    return log_dir / f"setup_user{number:02d}.status"


def read_status(log_dir: Path, number: int) -> Optional[str]:
    path = status_file(log_dir, number)
    return path.read_text().strip() if path.is_file() else None


def write_status(log_dir: Path, number: int, status: str):
    status_file(log_dir, number).write_text(f"{status}\n")


def select_users(user_env_dir: Path, log_dir: Path, users: Optional[str] = None,
                 resume: bool = False) -> List[int]:
    """Users from an explicit range, else every .envNN; --resume drops completed ones."""
    numbers = parse_user_range(users) if users else discover_users(user_env_dir)
    if resume:
        numbers = [n for n in numbers if read_status(log_dir, n) != STATUS_COMPLETED]
    return numbers


def user_email(user_env_dir: Path, number: int) -> str:
    path = user_env_file(user_env_dir, number)
    if not path.is_file():
        return ""
    return load_env(path).get("USER_EMAIL", "")


class MultiUserSetup:
    """Exercise 0 setup for each attendee, tracked through status files."""

    def __init__(self, user_env_dir: Path, log_dir: Path,
                 cli_factory: Callable[[], ClusterCLI] = ClusterCLI,
                 namespace: str = WORKSHOP_NAMESPACE, force: bool = False,
                 dry_run: bool = False, verbose: bool = False):
        self.user_env_dir = user_env_dir
        self.log_dir = log_dir
        self.cli_factory = cli_factory
        self.namespace = namespace
        self.force = force
        self.dry_run = dry_run
        self.verbose = verbose
        self.progress_log = log_dir / "multi_setup_progress.log"

    def progress(self, level: str, message: str):
        with open(self.progress_log, "a") as f:
            f.write(f"{timestamp()} [{level}] {message}\n")

    def provision(self, env: Dict[str, str], env_file: Path) -> bool:
        """One user's Exercise 0 setup. Output goes to the caller's stdout."""
        print(f"Setting up user {env.get('WORKSHOP_USER_NUM', '?')} ({env.get('USER_EMAIL', '')})")
        cli = self.cli_factory()
        configure_oc_login(cli, env)
        create_namespace(cli, self.namespace)

        client = AAPClient.from_env(env)
        if not verify_aap_access(client):
            log_error(f"Automation Controller not reachable at {client.host}")
            return False

        provisioner = WorkshopProvisioner(client, env, env_file)
        if env.get("USE_PUBLISHED_EE") == "true":
            provisioner.env["EE_IMAGE_NAME"] = env.get("PUBLISHED_EE_IMAGE") or PUBLISHED_EE_IMAGE
            try:
                provisioner.setup_execution_environment()
            except (requests.exceptions.HTTPError, LookupError, ValueError) as e:
                print(f"WARNING: Failed to register the published execution environment: {e}")
        else:
            print("USE_PUBLISHED_EE is not set, job templates use the default execution environment")
        if not provisioner.setup_all():
            return False
        provisioner.print_summary()
        return True

    def setup_user(self, number: int) -> str:
        if not self.force and read_status(self.log_dir, number) == STATUS_COMPLETED:
            self.progress("INFO", f"User {number:02d}: Already completed, skipping")
            return STATUS_COMPLETED

        env_file = user_env_file(self.user_env_dir, number)
        if not env_file.is_file():
            self.progress("ERROR", f"User {number:02d}: Environment file not found: {env_file}")
            write_status(self.log_dir, number, STATUS_FAILED)
            return STATUS_FAILED

        self.progress("INFO", f"User {number:02d}: Starting setup")
        write_status(self.log_dir, number, STATUS_RUNNING)
        log_file = self.log_dir / f"setup_user{number:02d}.log"
        with open(log_file, "w") as f, redirect_stdout(f), redirect_stderr(f):
            try:
                ok = self.provision(load_env(env_file), env_file)
            except (WorkshopError, requests.exceptions.RequestException, LookupError, ValueError) as e:
                log_error(str(e))
                ok = False

        status = STATUS_COMPLETED if ok else STATUS_FAILED
        write_status(self.log_dir, number, status)
        if ok:
            self.progress("SUCCESS", f"User {number:02d}: Setup completed successfully")
        else:
            self.progress("ERROR", f"User {number:02d}: Setup failed, see {log_file.name}")
        return status

    def run(self, users: List[int]) -> int:
        self.log_dir.mkdir(parents=True, exist_ok=True)
        log_info(f"Processing users: {' '.join(f'{n:02d}' for n in users)}")
        if self.dry_run:
            for number in users:
                log_info(f"DRY RUN: Would set up user {number:02d} from "
                         f"{user_env_file(self.user_env_dir, number).name}")
            log_info("This was a dry run - no environments were set up")
            return 0

        for number in users:
            status = self.setup_user(number)
            if status == STATUS_FAILED:
                log_warning(f"User {number:02d}: setup failed")
            elif self.verbose:
                log_success(f"User {number:02d}: {status}")
        return self.print_summary(users)

    def print_summary(self, users: List[int]) -> int:
        statuses = {n: read_status(self.log_dir, n) or "unknown" for n in users}
        counts = {s: sum(1 for v in statuses.values() if v == s)
                  for s in (STATUS_COMPLETED, STATUS_FAILED, STATUS_RUNNING)}

        lines = [
            "Multi-User Workshop Setup Summary",
            f"Generated on: {timestamp()}",
            "",
            f"Total Users: {len(users)}",
            f"Completed: {counts[STATUS_COMPLETED]}",
            f"Failed: {counts[STATUS_FAILED]}",
            f"Running: {counts[STATUS_RUNNING]}",
            "",
            "User Details:",
        ]
        lines += [f"  User {n:02d}: {status:<10} {user_email(self.user_env_dir, n)}"
                  for n, status in statuses.items()]
        failed = [n for n, status in statuses.items() if status == STATUS_FAILED]
        if failed:
            lines += ["", "Failed Setups:"]
            lines += [f"  User {n:02d}: See setup_user{n:02d}.log for details" for n in failed]
        summary_file = self.log_dir / "multi_setup_summary.txt"
        summary_file.write_text("\n".join(lines) + "\n")

        print()
        banner("MULTI-USER SETUP SUMMARY")
        print(f"   {'Total Users':.<30} {len(users)}")
        for status, count in counts.items():
            print(f"   {status.capitalize():.<30} {count}")
        print()
        log_info(f"Summary written to: {summary_file}")

        if failed:
            log_warning("Some setups failed. Check individual logs and run with --resume to retry.")
            return 1
        log_success("All user setups completed successfully!")
        return 0


class UserValidator:
    """Checks one attendee's .envNN and the services it points at."""

    def __init__(self, env_file: Path, mode: str = "standard"):
        self.env_file = env_file
        self.mode = mode
        self.report = ValidationReport(f"Validation for {env_file.name}")
        self.env: Dict[str, str] = {}

    def env_file_issues(self) -> List[str]:
        issues = [f"Missing required variable: {key}" for key in REQUIRED_KEYS if not self.env.get(key)]
        for key in URL_KEYS:
            value = self.env.get(key, "")
            if value and not re.match(r"^https?://", value):
                issues.append(f"{key} should start with http:// or https://")
        port = self.env.get("SSH_PORT", "")
        if port and not port.isdigit():
            issues.append("SSH_PORT should be numeric")
        return issues

    def check_env_file(self) -> bool:
        print("1. Environment File Validation")
        if not self.env_file.is_file():
            print("FAIL: Environment file not found")
            return False
        self.env = load_env(self.env_file)
        issues = self.env_file_issues()
        for issue in issues:
            print(f"  {issue}")
        print("FAIL: Environment file validation failed" if issues else "PASS: Environment file is valid")
        return not issues

    def check_ocp_api(self) -> bool:
        url = f"{self.env.get('OCP_API_URL', '').rstrip('/')}/version"
        try:
            resp = requests.get(url, verify=False, timeout=CONNECT_TIMEOUT)
        except requests.exceptions.RequestException as e:
            print(f"  OpenShift API not reachable: {e}")
            return False
        # 401/403 still prove the API server answered
        return resp.status_code < 500

    def check_aap_auth(self, client: AAPClient) -> bool:
        try:
            client.get("me/")
        except requests.exceptions.RequestException as e:
            print(f"  AAP authentication failed: {e}")
            return False
        return True

    def check_resource(self, client: AAPClient, endpoint: str, name: str) -> bool:
        try:
            found = client.find_by_name(endpoint, name) is not None
        except requests.exceptions.RequestException as e:
            print(f"  Lookup of {name} failed: {e}")
            return False
        print(f"  {name}: {'found' if found else 'missing'}")
        return found

    def run_all(self) -> ValidationReport:
        if not self.report.run("Environment File", self.check_env_file):
            return self.report

        print("2. Connectivity Tests")
        client = AAPClient.from_env(self.env)
        if not self.report.run("AAP Reachable", client.ping):
            return self.report
        if self.mode != "quick":
            self.report.run("AAP Authentication", lambda: self.check_aap_auth(client))
            self.report.run("OpenShift API Reachable", self.check_ocp_api)

        if self.mode == "full":
            print("3. Workshop Resources")
            guid = self.env["WORKSHOP_GUID"]
            self.report.run("AAP Project", lambda: self.check_resource(client, "projects/", project_name(guid)))
            self.report.run("Execution Environment",
                            lambda: self.check_resource(client, "execution_environments/", ee_name(guid)),
                            critical=False, fail_label="MISSING")
        return self.report


class MultiUserValidation:
    def __init__(self, user_env_dir: Path, log_dir: Path, mode: str = "standard", verbose: bool = False):
        self.user_env_dir = user_env_dir
        self.log_dir = log_dir
        self.mode = mode
        self.verbose = verbose

    def validate_user(self, number: int) -> bool:
        env_file = user_env_file(self.user_env_dir, number)
        log_file = self.log_dir / f"validation_user{number:02d}.log"
        validator = UserValidator(env_file, self.mode)
        with open(log_file, "w") as f, redirect_stdout(f), redirect_stderr(f):
            print(f"=== User {number:02d} Validation Report ===")
            print(f"Generated: {timestamp()}")
            print(f"Environment File: {env_file}")
            print()
            report = validator.run_all()
            report.print_summary()
            if report.ok:
                print(f"OVERALL: PASS - User {number:02d} environment is ready")
            else:
                print(f"OVERALL: FAIL - User {number:02d} environment has issues")
        if self.verbose:
            log_info(f"User {number:02d}: {'PASS' if report.ok else 'FAIL'}")
        return report.ok

    def run(self, users: List[int]) -> int:
        self.log_dir.mkdir(parents=True, exist_ok=True)
        log_info(f"Validating {len(users)} user environment(s) ({self.mode} validation)")
        results = {n: self.validate_user(n) for n in users}

        failed = [n for n, ok in results.items() if not ok]
        lines = [
            "Multi-User Workshop Validation Summary",
            f"Generated on: {timestamp()}",
            "",
            f"Total Users Validated: {len(users)}",
            f"Passed: {len(users) - len(failed)}",
            f"Failed: {len(failed)}",
            "",
            "User Results:",
        ]
        lines += [f"  User {n:02d}: {'PASS' if ok else 'FAIL':<5} {user_email(self.user_env_dir, n)}"
                  for n, ok in results.items()]
        summary_file = self.log_dir / "validation_summary.txt"
        summary_file.write_text("\n".join(lines) + "\n")

        print()
        banner("MULTI-USER VALIDATION SUMMARY")
        print(f"   {'Total Users':.<30} {len(users)}")
        print(f"   {'Passed':.<30} {len(users) - len(failed)}")
        print(f"   {'Failed':.<30} {len(failed)}")
        print()
        log_info(f"Summary written to: {summary_file}")

        if failed:
            log_warning(f"Validation failed for users: {' '.join(f'{n:02d}' for n in failed)}")
            return 1
        log_success("All user environments validated successfully!")
        return 0


def _common_arguments(parser: argparse.ArgumentParser):
    parser.add_argument("-d", "--directory", type=Path, default=None,
                        help="User environments directory (default: user_environments)")
    parser.add_argument("-u", "--users", help="User range (e.g., 1-5, 3,7,9, or single number)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")


def _resolve_dirs(directory: Optional[Path], root: Optional[Path]):
    user_env_dir = directory or ((root or REPO_ROOT) / USER_ENV_DIR.name)
    if not user_env_dir.is_dir():
        raise WorkshopError(f"User environments directory not found: {user_env_dir}. "
                            "Run parse-workshop-details first")
    return user_env_dir, user_env_dir / "logs"


def setup_main(argv=None, root: Optional[Path] = None,
               cli_factory: Callable[[], ClusterCLI] = ClusterCLI) -> int:
    parser = argparse.ArgumentParser(description="Multi-User Workshop Setup")
    _common_arguments(parser)
    parser.add_argument("--resume", action="store_true", help="Only set up users that did not complete")
    parser.add_argument("--force", action="store_true", help="Set up users again even if completed")
    parser.add_argument("--dry-run", action="store_true", help="Show what would be done")
    args = parser.parse_args(argv)

    configure_colors(args.no_color)
    try:
        user_env_dir, log_dir = _resolve_dirs(args.directory, root)
        users = select_users(user_env_dir, log_dir, args.users, args.resume)
    except WorkshopError as e:
        log_error(str(e))
        return 1

    if not users:
        if args.resume:
            log_success("No failed setups to resume. All users completed successfully!")
            return 0
        log_error("No users found to process")
        return 1

    runner = MultiUserSetup(user_env_dir, log_dir, cli_factory, force=args.force,
                            dry_run=args.dry_run, verbose=args.verbose)
    return runner.run(users)


def validate_main(argv=None, root: Optional[Path] = None) -> int:
    parser = argparse.ArgumentParser(description="Multi-User Workshop Validation")
    _common_arguments(parser)
    depth = parser.add_mutually_exclusive_group()
    depth.add_argument("--quick", dest="mode", action="store_const", const="quick",
                       help="Quick validation (environment file and AAP reachability)")
    depth.add_argument("--full", dest="mode", action="store_const", const="full",
                       help="Full validation (adds AAP workshop resources)")
    args = parser.parse_args(argv)

    configure_colors(args.no_color)
    try:
        user_env_dir, log_dir = _resolve_dirs(args.directory, root)
        users = select_users(user_env_dir, log_dir, args.users)
    except WorkshopError as e:
        log_error(str(e))
        return 1
    if not users:
        log_error("No users found to validate")
        return 1

    validation = MultiUserValidation(user_env_dir, log_dir, args.mode or "standard", args.verbose)
    return validation.run(users)


if __name__ == "__main__":
    sys.exit(setup_main())
