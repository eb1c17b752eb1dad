#!/usr/bin/env python3
"""
Workshop environment file handling.

details.txt is written by the workshop moderator in a "key on one line,
value on the next" layout:

    openshift_api_url
        https://api.cluster-abc12.example.com:6443
    guid
        abc12

parse_details() turns it into a dict, build_env() maps that onto the fixed
.env variable names, and write_env_file() writes a shell-sourceable file.
Later steps read it back with load_env() and record generated resource IDs
with record_env_value().
"""
import re
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from dotenv import dotenv_values, set_key

from workshop_common import WorkshopError

DETAIL_KEYS = [
    "aap_controller_web_url",
    "aap_controller_admin_user",
    "aap_controller_admin_password",
    "aap_controller_token",
    "bastion_public_hostname",
    "bastion_ssh_port",
    "bastion_ssh_user_name",
    "bastion_ssh_password",
    "openshift_console_url",
    "openshift_api_url",
    "openshift_bearer_token",
    "openshift_client_download_url",
    "openshift_cluster_ingress_domain",
    "guid",
    "openshift_kubeadmin_password",
]

# (section comment, [(ENV_KEY, details key or None for blank)])
ENV_LAYOUT: List[Tuple[str, List[Tuple[str, Optional[str]]]]] = [
    ("AWS Credentials (if available)", [
        ("AWS_ACCESS_KEY_ID", None),
        ("AWS_SECRET_ACCESS_KEY", None),
    ]),
    ("OpenShift Configuration", [
        ("OCP_CONSOLE_URL", "openshift_console_url"),
        ("OCP_API_URL", "openshift_api_url"),
        ("OCP_BEARER_TOKEN", "openshift_bearer_token"),
        ("OCP_CLIENT_DOWNLOAD_URL", "openshift_client_download_url"),
        ("OCP_CLUSTER_DOMAIN", "openshift_cluster_ingress_domain"),
        ("OCP_KUBEADMIN_PASSWORD", "openshift_kubeadmin_password"),
        ("ROUTE53_DOMAIN", "openshift_cluster_ingress_domain"),
    ]),
    ("Workshop Configuration", [
        ("WORKSHOP_GUID", "guid"),
    ]),
    ("Automation Controller Configuration", [
        ("AAP_URL", "aap_controller_web_url"),
        ("AAP_USERNAME", "aap_controller_admin_user"),
        ("AAP_PASSWORD", "aap_controller_admin_password"),
        ("AAP_TOKEN", "aap_controller_token"),
    ]),
    ("SSH Bastion Access", [
        ("SSH_HOST", "bastion_public_hostname"),
        ("SSH_PORT", "bastion_ssh_port"),
        ("SSH_USER", "bastion_ssh_user_name"),
        ("SSH_PASSWORD", "bastion_ssh_password"),
    ]),
]

_SAFE_VALUE = re.compile(r"^[A-Za-z0-9_./:@%+,=~-]*$")
_SHELL_EXPANDED = re.compile(r"[$`]")


def parse_details_text(text: str, keys: Iterable[str] = DETAIL_KEYS) -> Dict[str, str]:
    """Extract the value following each key line. First occurrence wins."""
    wanted = set(keys)
    values = {key: "" for key in wanted}
    seen = set()
    lines = text.splitlines()
    for i, line in enumerate(lines[:-1]):
        key = line.strip()
        if key in wanted and key not in seen:
            values[key] = lines[i + 1].strip()
            seen.add(key)
    return values


def parse_details(path: Path) -> Dict[str, str]:
    if not path.is_file():
        raise WorkshopError(
            f"{path.name} file not found. Please ensure it's populated by the workshop moderator."
        )
    return parse_details_text(path.read_text())


def build_env(details: Dict[str, str]) -> Dict[str, str]:
    """Map parsed details onto the .env variable names, in file order."""
    env = {}
    for _, entries in ENV_LAYOUT:
        for env_key, detail_key in entries:
            env[env_key] = details.get(detail_key, "") if detail_key else ""
    return env


def format_env_value(value: str) -> str:
    """Quote a value so that both `source .env` and dotenv read it back unchanged.

    Plain values are written bare. Double quotes are used unless the value
    holds `$` or a backtick, which the shell would expand there; those go in
    single quotes. A value that needs single quotes but also holds a quote
    or backslash has no spelling both readers agree on and is rejected.
    """
    if _SAFE_VALUE.match(value):
        return value
    if not _SHELL_EXPANDED.search(value):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    if "'" in value or "\\" in value:
        raise WorkshopError(f"Cannot write value {value!r} to an env file: mixes $ or ` with quotes or backslashes")
    return f"'{value}'"


def render_env(env: Dict[str, str], title: str = "Workshop Environment Configuration",
               source: str = "details.txt") -> str:
    lines = [
        f"# {title}",
        f"# Generated from {source} on {datetime.now().strftime('%c')}",
    ]
    written = set()
    for comment, entries in ENV_LAYOUT:
        lines.append("")
        lines.append(f"# {comment}")
        for env_key, _ in entries:
            lines.append(f"{env_key}={format_env_value(env.get(env_key, ''))}")
            written.add(env_key)
    extra = [key for key in env if key not in written]
    if extra:
        lines.append("")
        lines.append("# Additional Configuration")
        for key in extra:
            lines.append(f"{key}={format_env_value(env[key])}")
    return "\n".join(lines) + "\n"


def write_env_file(path: Path, env: Dict[str, str], **kwargs):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_env(env, **kwargs))


def load_env(path: Path) -> Dict[str, str]:
    if not path.is_file():
        raise WorkshopError(
            f"{path.name} file not found. Please run setup_workshop.py first"
        )
    return read_env_values(path)


def read_env_values(path: Path) -> Dict[str, str]:
    """Values exactly as written; `${VAR}` is not expanded."""
    return {key: value or "" for key, value in dotenv_values(path, interpolate=False).items()}


def record_env_value(path: Path, key: str, value) -> None:
    """Set key in the env file, replacing an earlier value for the same key."""
    set_key(str(path), key, format_env_value(str(value)), quote_mode="never")


def require_env(env: Dict[str, str], *keys: str):
    missing = [key for key in keys if not env.get(key)]
    if missing:
        raise WorkshopError(
            f"{', '.join(missing)} not found in environment. Please run setup_workshop.py first"
        )
