#!/usr/bin/env python3
"""
Workshop Details Parser

Parses bulk workshop_details*.txt exports (one section per attendee) and
creates an individual .envNN file for each user, numbered continuously
across files, plus users.csv and summary.txt:

    user_environments/
    ├── .env01            # User 1 environment (from first file)
    ├── .env02
    ├── ...
    ├── users.csv         # User assignment tracking with file sources
    └── summary.txt       # Parse summary with file breakdown

A section starts with a service line (enterprise.…), followed by the
attendee's e-mail on its own line; everything after the e-mail belongs to
that attendee until the next service line.

Usage:
    python3 parse_workshop_details.py                       # Auto-discover
    python3 parse_workshop_details.py -f workshop_details.txt
    python3 parse_workshop_details.py --files a.txt,b.txt --dry-run -v
"""
import argparse
import csv
import re
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from workshop_common import (
    REPO_ROOT,
    USER_ENV_DIR,
    WorkshopError,
    banner,
    configure_colors,
    log_error,
    log_info,
    log_success,
    log_warning,
)
from workshop_env import write_env_file

USERS_PER_ENVIRONMENT = 30
MAX_DISCOVERED_FILES = 20
OCP_CLIENT_DOWNLOAD_URL = (
    "http://mirror.openshift.com/pub/openshift-v4/clients/ocp/stable-4.16/openshift-client-linux.tar.gz"
)

SERVICE_LINE = re.compile(r"^enterprise\.")
EMAIL_LINE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
GUID_PATTERN = re.compile(r"cluster-([a-z0-9]+)")

# ENV_KEY -> label that precedes the value on the same line
LABELLED_FIELDS = {
    "AWS_ACCESS_KEY_ID": "AWS_ACCESS_KEY_ID:",
    "AWS_SECRET_ACCESS_KEY": "AWS_SECRET_ACCESS_KEY:",
    "ROUTE53_DOMAIN": "Top level route53 domain:",
    "CONSOLE_URL": "Web Console Access:",
    "OCP_CONSOLE_URL": "OpenShift Console:",
    "OCP_API_URL": "OpenShift API for command line 'oc' client:",
    "AAP_URL": "Automation Controller URL:",
    "AAP_USERNAME": "Automation Controller Admin Login:",
    "AAP_PASSWORD": "Automation Controller Admin Password:",
    "OCP_BEARER_TOKEN": "openshift_bearer_token:",
}
# "key: value" fallbacks used by newer exports
STRUCTURED_FALLBACKS = {
    "OCP_API_URL": "openshift_api_url:",
    "OCP_CONSOLE_URL": "openshift_console_url:",
    "WORKSHOP_GUID": "guid:",
}


@dataclass
class UserSection:
    service: str
    email: str
    content: str
    source: str


def split_user_sections(text: str, source: str = "") -> List[UserSection]:
    sections = []
    service, email, lines = "", "", []

    def flush():
        if email:
            sections.append(UserSection(service, email, "\n".join(lines), source))

    for line in text.splitlines():
        if SERVICE_LINE.match(line):
            flush()
            service, email, lines = line.strip(), "", []
        elif EMAIL_LINE.match(line.strip()):
            email = line.strip()
        elif email:
            lines.append(line)
    flush()
    return sections


def _value_after(content: str, label: str) -> str:
    for line in content.splitlines():
        index = line.find(label)
        if index != -1:
            rest = line[index + len(label):].split()
            return rest[0].strip("`") if rest else ""
    return ""


def extract_credentials(content: str) -> Dict[str, str]:
    creds = {key: _value_after(content, label) for key, label in LABELLED_FIELDS.items()}
    creds["WORKSHOP_GUID"] = ""
    for key, label in STRUCTURED_FALLBACKS.items():
        if not creds.get(key):
            creds[key] = _value_after(content, label)

    console_creds = _value_after(content, "Web Console Credentials:")
    user, _, password = console_creds.partition("/")
    creds["CONSOLE_USER"], creds["CONSOLE_PASS"] = user, password

    ssh = re.search(r"ssh (\S+)@(\S+)(?:.*?-p\s*(\d+))?", content)
    creds["SSH_USER"] = ssh.group(1) if ssh else "lab-user"
    creds["SSH_HOST"] = ssh.group(2) if ssh else ""
    creds["SSH_PORT"] = (ssh.group(3) or "") if ssh else ""
    ssh_password = re.search(r"password.*?'([^']*)'", content)
    creds["SSH_PASSWORD"] = ssh_password.group(1) if ssh_password else ""

    console = creds["OCP_CONSOLE_URL"]
    domain = console.replace("https://console-openshift-console.", "").rstrip("/") if console else ""
    creds["OCP_CLUSTER_DOMAIN"] = domain
    if not creds["WORKSHOP_GUID"]:
        guid = GUID_PATTERN.search(domain or content)
        creds["WORKSHOP_GUID"] = guid.group(1) if guid else ""
    return creds


def user_environment(number: int, section: UserSection) -> Dict[str, str]:
    env = {
        "USER_NUMBER": str(number),
        "USER_EMAIL": section.email,
        "SERVICE_ID": section.service,
        "OCP_CLIENT_DOWNLOAD_URL": OCP_CLIENT_DOWNLOAD_URL,
        "OCP_KUBEADMIN_PASSWORD": "",
        "AAP_TOKEN": "",
    }
    env.update(extract_credentials(section.content))
    env.update({
        "WORKSHOP_USER_NUM": f"{number:02d}",
        "SKIP_INTERACTIVE": "true",
        "USE_PUBLISHED_EE": "true",
    })
    return env


def env_file_name(number: int) -> str:
    return f".env{number:02d}"


def discover_workshop_files(root: Path) -> List[Path]:
    """workshop_details.txt, then workshop_details2.txt … in numeric order."""
    candidates = [root / "workshop_details.txt"]
    candidates += [root / f"workshop_details{i}.txt" for i in range(2, MAX_DISCOVERED_FILES + 1)]
    return [path for path in candidates if path.is_file()]


def check_files(files: List[Path]):
    log_info(f"Checking prerequisites for {len(files)} file(s)...")
    if not files:
        raise WorkshopError("No workshop details files found. Expected files like: "
                            "workshop_details.txt, workshop_details2.txt, etc.")
    total = 0
    for path in files:
        if not path.is_file():
            raise WorkshopError(f"Workshop details file not found: {path}")
        size = path.stat().st_size
        if size == 0:
            raise WorkshopError(f"Workshop details file is empty: {path}")
        total += size
        log_info(f"Found: {path.name} ({size} bytes)")
    log_success(f"Prerequisites check passed - Total data: {total} bytes")


class WorkshopDetailsParser:
    """Writes one .envNN per attendee across all given files"""

    def __init__(self, output_dir: Path, dry_run: bool = False, verbose: bool = False):
        self.output_dir = output_dir
        self.dry_run = dry_run
        self.verbose = verbose
        self.users: List[Dict[str, str]] = []
        self.file_stats: Dict[str, int] = {}

    def process_user(self, number: int, section: UserSection):
        env_path = self.output_dir / env_file_name(number)
        if self.dry_run:
            log_info(f"Would create {env_path} for {section.email}")
            if self.verbose:
                log_info(f"Service: {section.service}")
            return
        env = user_environment(number, section)
        write_env_file(env_path, env, title=f"Workshop Environment Configuration for User {number}",
                       source=section.source)
        self.users.append({
            "User_Number": str(number),
            "Email": section.email,
            "Service_ID": section.service,
            "GUID": env["WORKSHOP_GUID"],
            "Source_File": section.source,
            "Status": "parsed",
        })
        if self.verbose:
            log_success(f"Created {env_path}")

    def parse(self, files: List[Path]) -> int:
        log_info(f"Parsing {len(files)} workshop details file(s)...")
        if not self.dry_run:
            if self.output_dir.is_dir():
                log_warning("Output directory already exists, contents may be overwritten")
            self.output_dir.mkdir(parents=True, exist_ok=True)

        count = 0
        for path in files:
            log_info(f"Processing file: {path.name}")
            sections = split_user_sections(path.read_text(), path.name)
            for section in sections:
                count += 1
                self.process_user(count, section)
            self.file_stats[path.name] = len(sections)
            log_info(f"Completed {path.name}: {len(sections)} users processed")

        if not self.dry_run:
            self.write_users_csv()
            self.write_summary(files, count)
        log_success(f"Parsed {count} user environments")
        return count

    def write_users_csv(self):
        fields = ["User_Number", "Email", "Service_ID", "GUID", "Source_File", "Status"]
        with open(self.output_dir / "users.csv", "w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=fields)
            writer.writeheader()
            writer.writerows(self.users)

    def distribution(self, count: int, file_count: int) -> str:
        if count <= USERS_PER_ENVIRONMENT:
            return f"Single environment workshop ({count} users)"
        full, remaining = divmod(count, USERS_PER_ENVIRONMENT)
        text = f"Multi-environment workshop ({count} users across {file_count} environments)\n  "
        if remaining:
            return text + (f"{full} full environments ({USERS_PER_ENVIRONMENT} users each) "
                           f"+ 1 partial environment ({remaining} users)")
        return text + f"{full} full environments ({USERS_PER_ENVIRONMENT} users each)"

    def write_summary(self, files: List[Path], count: int):
        lines = [
            "Workshop Details Parse Summary",
            f"Generated on: {datetime.now().strftime('%c')}",
            "",
            f"Total Users Processed: {count}",
            f"Output Directory: {self.output_dir}",
            f"Source Files: {len(files)} file(s)",
            "",
            "File Statistics:",
        ]
        lines += [f"  {name}: {users} users" for name, users in self.file_stats.items()]
        lines += ["", "Files Created:"]
        lines += [f"  {env_file_name(i)}" for i in range(1, count + 1)]
        lines += ["  users.csv", "  summary.txt", "", "User Distribution:",
                  f"  {self.distribution(count, len(files))}"]
        (self.output_dir / "summary.txt").write_text("\n".join(lines) + "\n")


def resolve_files(args, root: Path) -> List[Path]:
    def absolute(name: str) -> Path:
        path = Path(name)
        return path if path.is_absolute() else root / path

    if args.files:
        return [absolute(name.strip()) for name in args.files.split(",") if name.strip()]
    if args.file:
        return [absolute(args.file)]
    if args.auto_discover:
        return discover_workshop_files(root)
    raise WorkshopError("No files specified and auto-discovery disabled. "
                        "Use -f FILE, --files FILE1,FILE2, or --auto-discover")


def main(argv=None, root: Optional[Path] = None) -> int:
    parser = argparse.ArgumentParser(description="Workshop Details Parser")
    parser.add_argument("-f", "--file", help="Workshop details file (default: auto-discover)")
    parser.add_argument("--files", help="Comma-separated list of workshop details files")
    parser.add_argument("-o", "--output", type=Path, default=None,
                        help="Output directory for user environments (default: user_environments)")
    parser.add_argument("--auto-discover", dest="auto_discover", action="store_true", default=True,
                        help="Auto-discover workshop_details*.txt files (default)")
    parser.add_argument("--no-auto-discover", dest="auto_discover", action="store_false",
                        help="Disable auto-discovery, use only specified files")
    parser.add_argument("--dry-run", action="store_true", help="Show what would be parsed without creating files")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    args = parser.parse_args(argv)

    configure_colors(args.no_color)
    root = root or REPO_ROOT
    output_dir = args.output or (root / USER_ENV_DIR.name)

    try:
        files = resolve_files(args, root)
        check_files(files)
        count = WorkshopDetailsParser(output_dir, args.dry_run, args.verbose).parse(files)
    except WorkshopError as e:
        log_error(str(e))
        return 1

    print()
    banner("WORKSHOP DETAILS PARSE COMPLETE")
    print(f" Users processed: {count}")
    if args.dry_run:
        print(" Mode: DRY RUN (no files created)")
        print("\n Next steps:")
        print("   1. Run without --dry-run to create files")
    else:
        print(f" Output directory: {output_dir}")
        print("\n Next steps:")
        print(f"   1. Review individual .env files: ls -a {output_dir}/")
        print("   2. Refresh bearer tokens if needed: update-bearer-tokens")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
