#!/usr/bin/env python3
"""
Exercise 0: Workshop Environment Setup

Parses details.txt and configures the workshop environment:
1. writes .env from the moderator-provided details,
2. logs into OpenShift with the bearer token,
3. creates the workshop namespace,
4. checks that the Automation Controller answers,
5. builds and registers the execution environment, then creates the AAP
   project, inventory, credential and job templates.

Usage:
    python3 setup_workshop.py [--details details.txt] [--env-file .env]
"""
import argparse
import sys
from pathlib import Path
from typing import Dict

import requests

import execution_environment
from aap_client import AAPClient
from cluster import ClusterCLI
from setup_aap_resources import DEFAULT_EE_IMAGE, WorkshopProvisioner
from workshop_common import (
    DETAILS_FILE,
    EE_DIR,
    ENV_FILE,
    WORKSHOP_NAMESPACE,
    WorkshopError,
    banner,
    configure_colors,
    log,
    log_error,
    require_commands,
)
from workshop_env import build_env, load_env, parse_details, record_env_value, write_env_file


def check_prerequisites(details_file: Path):
    log("Checking prerequisites...")
    if not details_file.is_file():
        raise WorkshopError(
            f"{details_file.name} file not found. Please ensure it's populated by the workshop moderator."
        )
    require_commands([
        ("oc", "OpenShift CLI (oc) not found. Please install it first."),
        ("ansible-playbook", "Ansible not found. Please install it first."),
    ])


def write_environment(details_file: Path, env_file: Path) -> Dict[str, str]:
    log(f"Parsing {details_file.name} for environment configuration...")
    env = build_env(parse_details(details_file))
    write_env_file(env_file, env, source=details_file.name)
    log(f"Environment configuration written to {env_file.name}")
    return env


def configure_oc_login(cli: ClusterCLI, env: Dict[str, str]) -> bool:
    log("Configuring OpenShift CLI access...")
    api_url = env.get("OCP_API_URL", "")
    token = env.get("OCP_BEARER_TOKEN", "")
    if not token:
        log("No bearer token found in details.txt")
        log("Please manually login to OpenShift cluster:")
        log(f"  oc login {api_url}")
        log("You may need to use a service account token or other authentication method")
        return False

    log("Logging into OpenShift using bearer token...")
    ok, output = cli.login(api_url, token)
    if not ok:
        log(f"WARNING: Failed to login with bearer token: {output}")
        log(f"Please manually login: oc login {api_url}")
        return False
    log("Successfully logged into OpenShift cluster")
    log(f"Current user: {cli.whoami()}")
    log(f"Current project: {cli.current_project()}")
    return True


def create_namespace(cli: ClusterCLI, namespace: str) -> bool:
    log("Creating workshop namespace...")
    ok, created = cli.ensure_namespace(namespace)
    if not ok:
        log(f"WARNING: Failed to create namespace {namespace}")
    elif created:
        log(f"Created {namespace} namespace")
    else:
        log("Workshop namespace already exists")
    return ok


def verify_aap_access(client: AAPClient) -> bool:
    log("Verifying Automation Controller access...")
    if client.ping():
        log("Automation Controller is accessible")
        return True
    log(f"WARNING: Cannot reach Automation Controller at {client.host}")
    log("Please verify the URL and network connectivity")
    return False


def setup_execution_environment(provisioner: WorkshopProvisioner, ee_dir: Path, env_file: Path) -> bool:
    """Build the EE image and register it. Failures only skip the EE."""
    log("Setting up execution environment for workshop...")
    guid = provisioner.guid or "latest"
    image = f"{DEFAULT_EE_IMAGE}:{guid}"
    try:
        runtime = execution_environment.check_prerequisites(ee_dir, strict=False)
    except WorkshopError as e:
        log(f"WARNING: Execution environment prerequisites not met, skipping EE setup: {e}")
        return False

    if not execution_environment.build_image(ee_dir, image, runtime):
        log("WARNING: Failed to build execution environment, skipping AAP EE setup")
        return False
    record_env_value(env_file, "EE_IMAGE_NAME", image)
    provisioner.env["EE_IMAGE_NAME"] = image

    try:
        provisioner.setup_execution_environment()
    except (requests.exceptions.RequestException, LookupError, ValueError) as e:
        log(f"WARNING: Failed to set up execution environment in AAP: {e}")
        return False
    log("Execution environment setup completed")
    return True


def print_next_steps(env: Dict[str, str], namespace: str):
    log("Exercise 0 setup completed successfully!")
    print()
    banner("Workshop Environment Summary")
    print(f"   {'OpenShift Cluster':.<24} {env.get('OCP_API_URL', '')}")
    print(f"   {'Workshop Namespace':.<24} {namespace}")
    print(f"   {'AAP Controller':.<24} {env.get('AAP_URL', '')}")
    print(f"   {'Workshop GUID':.<24} {env.get('WORKSHOP_GUID', '')}")
    print("=" * 60)
    print("\nNext steps:")
    print("  1. Ensure you are logged into OpenShift: oc whoami")
    print("  2. Access AAP Controller and verify job templates are created")
    print("  3. Run the setup playbook: ansible-playbook playbooks/exercise0/setup.yml")
    print("  4. Validate the setup: validate-setup")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Exercise 0: Workshop Environment Setup")
    parser.add_argument("--details", type=Path, default=DETAILS_FILE, help="Workshop details file")
    parser.add_argument("--env-file", type=Path, default=ENV_FILE, help="Environment file to write")
    parser.add_argument("--namespace", default=WORKSHOP_NAMESPACE, help="Workshop namespace to create")
    parser.add_argument("--ee-dir", type=Path, default=EE_DIR, help="Execution environment directory")
    parser.add_argument("--skip-ee", action="store_true", help="Do not build the execution environment")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    args = parser.parse_args(argv)

    configure_colors(args.no_color)
    log("Starting Exercise 0: Workshop Environment Setup")

    try:
        check_prerequisites(args.details)
        write_environment(args.details, args.env_file)
        env = load_env(args.env_file)

        cli = ClusterCLI("oc")
        configure_oc_login(cli, env)
        create_namespace(cli, args.namespace)

        client = AAPClient.from_env(env)
        if verify_aap_access(client):
            provisioner = WorkshopProvisioner(client, env, args.env_file)
            if not args.skip_ee:
                setup_execution_environment(provisioner, args.ee_dir, args.env_file)
            if not provisioner.setup_all():
                log_error("AAP resource setup failed, fix the error above and re-run setup-aap-resources")
                return 1
            provisioner.print_summary()
        else:
            log("WARNING: AAP not accessible, skipping AAP resource setup")
            log("You can run AAP setup manually later with: setup-aap-resources")
    except WorkshopError as e:
        log_error(str(e))
        return 1
    except requests.exceptions.RequestException as e:
        log_error(f"Automation Controller request failed: {e}")
        return 1

    print_next_steps(env, args.namespace)
    return 0


if __name__ == "__main__":
    sys.exit(main())
