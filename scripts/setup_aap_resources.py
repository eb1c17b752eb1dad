#!/usr/bin/env python3
"""
Set up Automation Controller Resources for the Workshop

This script connects to the Automation Controller of a workshop environment
via the /api/controller/v2/ API and creates the objects every exercise
needs, named after the workshop GUID:
- Project (Git-backed exercise playbooks)
- Inventory (OpenShift cluster variables)
- Credential (OpenShift bearer token)
- Execution Environment (custom workshop image, when built)
- Job Templates (one per exercise)

Objects that already exist are reused. Every ID is recorded in .env so
later steps (and the cleanup command) can find them.

Usage:
    python3 setup_aap_resources.py [setup|show|cleanup]

    Reads AAP_URL, AAP_TOKEN or AAP_USERNAME/AAP_PASSWORD and WORKSHOP_GUID
    from .env (written by setup_workshop.py). Override payload defaults with
    environment variables:
        AAP_ORGANIZATION=Default
        WORKSHOP_SCM_URL=https://github.com/your-org/AAP-with-OCP-Workshop.git
        WORKSHOP_SCM_BRANCH=main
"""
import argparse
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional

import requests

from aap_client import AAPClient
from workshop_common import ENV_FILE, WorkshopError, banner, configure_colors, confirm, log_error
from workshop_env import load_env, record_env_value, require_env

# ---------------------------------------------------------------------------
# Configuration – override via environment variables
# ---------------------------------------------------------------------------
ORGANIZATION = os.environ.get("AAP_ORGANIZATION", "Default")
SCM_URL = os.environ.get("WORKSHOP_SCM_URL", "https://github.com/your-org/AAP-with-OCP-Workshop.git")
SCM_BRANCH = os.environ.get("WORKSHOP_SCM_BRANCH", "main")
OPENSHIFT_CREDENTIAL_TYPE = "OpenShift or Kubernetes API Bearer Token"
DEFAULT_EE_IMAGE = "aap-workshop-ee"


class JobTemplateDef(NamedTuple):
    name: str
    playbook: str
    description: str


JOB_TEMPLATES = [
    JobTemplateDef("Module1-Dynamic-Inventory", "playbooks/module1/exercise1-1-basic-inventory.yml",
                   "Dynamic inventory discovery and management"),
    JobTemplateDef("Module1-Multi-Cluster", "playbooks/module1/exercise1-2-test-multi-cluster.yml",
                   "Multi-cluster inventory testing"),
    JobTemplateDef("Module1-Advanced-Grouping", "playbooks/module1/exercise1-3-advanced-grouping.yml",
                   "Advanced inventory grouping patterns"),
    JobTemplateDef("Module1-Troubleshooting", "playbooks/module1/exercise1-4-troubleshooting.yml",
                   "Inventory troubleshooting and optimization"),
    JobTemplateDef("Module2-RBAC-Setup", "playbooks/module2/exercise2-1-rbac-setup.yml",
                   "RBAC setup and configuration"),
    JobTemplateDef("Module2-RBAC-Automation", "playbooks/module2/exercise2-2-rbac-automation.yml",
                   "Automated RBAC management"),
    JobTemplateDef("Module2-Idempotent-Deploy", "playbooks/module2/exercise2-3-idempotent-deployment.yml",
                   "Idempotent resource deployment"),
    JobTemplateDef("Module3-Template-Engine", "playbooks/module3/exercise3-1-template-engine.yml",
                   "Advanced Jinja2 templating"),
    JobTemplateDef("Module3-Error-Handling", "playbooks/module3/exercise3-2-error-handling.yml",
                   "Comprehensive error handling"),
    JobTemplateDef("Module3-Troubleshooting", "playbooks/module3/exercise3-3-troubleshooting.yml",
                   "Advanced troubleshooting automation"),
]


def project_name(guid: str) -> str:
    return f"AAP-Workshop-{guid}"


def inventory_name(guid: str) -> str:
    return f"Workshop-OpenShift-{guid}"


def credential_name(guid: str) -> str:
    return f"OpenShift-{guid}"


def ee_name(guid: str) -> str:
    return f"Workshop-EE-{guid}"


def job_template_name(template: JobTemplateDef, guid: str) -> str:
    return f"{template.name}-{guid}"


class WorkshopProvisioner:
    """Create the workshop's AAP objects and record their IDs in .env."""

    def __init__(self, client: AAPClient, env: Dict[str, str], env_file: Path):
        self.client = client
        self.env = env
        self.env_file = env_file
        self.guid = env.get("WORKSHOP_GUID", "")
        self._org_id: Optional[int] = None
        self.stats: Dict[str, int] = {}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _record(self, key: str, value):
        self.env[key] = str(value)
        record_env_value(self.env_file, key, value)

    def _count(self, asset_type: str, created: bool):
        bucket = f"{asset_type}_created" if created else f"{asset_type}_existing"
        self.stats[bucket] = self.stats.get(bucket, 0) + 1

    def organization_id(self) -> int:
        if self._org_id is None:
            self._org_id = self.client.resolve_id("organizations/", ORGANIZATION)
        return self._org_id

    def _ensure_recorded(self, step: str, asset_type: str, endpoint: str, name: str,
                         payload: Dict[str, Any], env_key: str) -> int:
        print(f"\n{step} Ensuring {asset_type.replace('_', ' ')}...")
        print(f"   -> {name}")
        result, created = self.client.ensure(endpoint, name, payload)
        self._record(env_key, result["id"])
        self._count(asset_type, created)
        return result["id"]

    # ------------------------------------------------------------------
    # Object creators – called in dependency order
    # ------------------------------------------------------------------

    def setup_project(self) -> int:
        name = project_name(self.guid)
        payload = {
            "name": name,
            "description": "AAP Workshop Exercise Playbooks - Advanced AAP 2.5 with OpenShift Integration",
            "scm_type": "git",
            "scm_url": SCM_URL,
            "scm_branch": SCM_BRANCH,
            "organization": self.organization_id(),
            "scm_update_on_launch": True,
            "scm_update_cache_timeout": 0,
            "allow_override": False,
            "timeout": 0,
        }
        return self._ensure_recorded("[1/4]", "project", "projects/", name, payload, "AAP_PROJECT_ID")

    def setup_inventory(self) -> int:
        name = inventory_name(self.guid)
        variables = (
            "---\n"
            f"openshift_cluster_domain: {self.env.get('OCP_CLUSTER_DOMAIN', '')}\n"
            f"workshop_guid: {self.guid}\n"
            "workshop_environment: dev"
        )
        payload = {
            "name": name,
            "description": "OpenShift cluster inventory for AAP workshop",
            "organization": self.organization_id(),
            "variables": variables,
        }
        return self._ensure_recorded("[2/4]", "inventory", "inventories/", name, payload, "AAP_INVENTORY_ID")

    def setup_credential(self) -> int:
        name = credential_name(self.guid)
        payload = {
            "name": name,
            "description": "OpenShift cluster credentials for workshop",
            "organization": self.organization_id(),
            "credential_type": self.client.resolve_id("credential_types/", OPENSHIFT_CREDENTIAL_TYPE),
            "inputs": {
                "host": self.env.get("OCP_API_URL", ""),
                "bearer_token": self.env.get("OCP_BEARER_TOKEN", ""),
                "verify_ssl": False,
            },
        }
        return self._ensure_recorded("[3/4]", "credential", "credentials/", name, payload, "AAP_CREDENTIAL_ID")

    def setup_execution_environment(self) -> int:
        name = ee_name(self.guid)
        image = self.env.get("EE_IMAGE_NAME") or f"{DEFAULT_EE_IMAGE}:{self.guid}"
        payload = {
            "name": name,
            "description": "Custom execution environment for AAP Workshop with kubernetes.core collection",
            "organization": self.organization_id(),
            "image": image,
            "pull": "missing",
            "credential": None,
        }
        return self._ensure_recorded("[EE]", "execution_environment", "execution_environments/",
                                     name, payload, "AAP_EE_ID")

    def _job_template_payload(self, template: JobTemplateDef) -> Dict[str, Any]:
        ee_id = self.env.get("AAP_EE_ID")
        return {
            "name": job_template_name(template, self.guid),
            "description": template.description,
            "job_type": "run",
            "inventory": int(self.env["AAP_INVENTORY_ID"]),
            "project": int(self.env["AAP_PROJECT_ID"]),
            "playbook": template.playbook,
            "execution_environment": int(ee_id) if ee_id else None,
            "verbosity": 1,
            "ask_variables_on_launch": True,
            "survey_enabled": False,
            "become_enabled": False,
            "diff_mode": False,
            "allow_simultaneous": False,
            "job_slice_count": 1,
            "timeout": 0,
            "use_fact_cache": False,
        }

    def setup_job_templates(self, templates: List[JobTemplateDef] = JOB_TEMPLATES) -> int:
        """Ensure every job template; a failing one is skipped. Returns failures."""
        print("\n[4/4] Ensuring Job Templates...")
        credential_id = int(self.env["AAP_CREDENTIAL_ID"])
        failures = 0
        for template in templates:
            name = job_template_name(template, self.guid)
            print(f"   -> {name}")
            try:
                result, created = self.client.ensure("job_templates/", name, self._job_template_payload(template))
            except (requests.exceptions.HTTPError, ValueError) as e:
                print(f"   WARNING: Failed to create job template {template.name}: {e}")
                failures += 1
                continue
            self.client.associate(f"job_templates/{result['id']}/credentials/", credential_id)
            self._count("job_templates", created)
        return failures

    def setup_all(self) -> bool:
        """Project, inventory and credential are required for the job templates."""
        for label, step in (
            ("project", self.setup_project),
            ("inventory", self.setup_inventory),
            ("credential", self.setup_credential),
        ):
            try:
                step()
            except (requests.exceptions.HTTPError, LookupError, ValueError) as e:
                print(f"\nERROR: Failed to set up AAP {label}, skipping remaining AAP setup: {e}")
                return False

        self.setup_job_templates()
        print("\nAAP resources setup completed")
        return True

    # ------------------------------------------------------------------
    # Show / cleanup
    # ------------------------------------------------------------------

    def show(self):
        print()
        banner("AAP WORKSHOP RESOURCES")
        print(f" Controller URL: {self.env.get('AAP_URL', '')}")
        print(f" Workshop GUID:  {self.guid}")
        print()
        for label, name, key in (
            ("Project", project_name(self.guid), "AAP_PROJECT_ID"),
            ("Inventory", inventory_name(self.guid), "AAP_INVENTORY_ID"),
            ("Credential", credential_name(self.guid), "AAP_CREDENTIAL_ID"),
            ("Execution Environment", ee_name(self.guid), "AAP_EE_ID"),
        ):
            if self.env.get(key):
                print(f"   {label + ' ':.<24} {name} (ID: {self.env[key]})")
        print("\n Job Templates:")
        for template in JOB_TEMPLATES:
            print(f"   • {job_template_name(template, self.guid)}")
        print("\n Access your AAP Controller to view and run these templates:")
        print(f"   {self.env.get('AAP_URL', '').rstrip('/')}/#/templates")
        print("=" * 60)

    def cleanup(self) -> int:
        """Delete the GUID's job templates and recorded objects. Returns deletions."""
        deleted = 0
        print("\nDeleting job templates...")
        for template in self.client.get_all("job_templates/", params={"name__contains": self.guid}):
            if self.client.delete(f"job_templates/{template['id']}/"):
                print(f"   -> deleted job template {template['name']} (id={template['id']})")
                deleted += 1

        for label, endpoint, key in (
            ("project", "projects/", "AAP_PROJECT_ID"),
            ("inventory", "inventories/", "AAP_INVENTORY_ID"),
            ("credential", "credentials/", "AAP_CREDENTIAL_ID"),
        ):
            obj_id = self.env.get(key)
            if not obj_id:
                continue
            print(f"\nDeleting {label} ID: {obj_id}")
            if self.client.delete(f"{endpoint}{obj_id}/"):
                deleted += 1
            else:
                print("   not found, skipping")
        return deleted

    def print_summary(self):
        print("\n" + "=" * 60)
        print(" Setup Summary")
        print("=" * 60)
        for asset_type, count in sorted(self.stats.items()):
            print(f"   {asset_type.replace('_', ' ').title():.<40} {count}")
        print("=" * 60)


def check_aap_prerequisites(env: Dict[str, str], client: AAPClient):
    require_env(env, "AAP_URL", "WORKSHOP_GUID")
    if not env.get("AAP_USERNAME") and not env.get("AAP_TOKEN"):
        raise WorkshopError("Neither AAP_USERNAME nor AAP_TOKEN found in environment")
    if not client.ping():
        raise WorkshopError(f"Cannot connect to AAP Controller at {env['AAP_URL']}")


# ======================================================================
# Main
# ======================================================================

def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="AAP Workshop Resource Setup",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  setup     Set up all AAP resources for the workshop (default)
  show      Display information about created resources
  cleanup   Remove all workshop resources from AAP
        """,
    )
    parser.add_argument("command", nargs="?", default="setup", choices=["setup", "show", "cleanup"])
    parser.add_argument("--env-file", type=Path, default=ENV_FILE, help="Workshop .env file")
    parser.add_argument("-y", "--yes", action="store_true", help="Do not ask for cleanup confirmation")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    args = parser.parse_args(argv)

    configure_colors(args.no_color)

    try:
        env = load_env(args.env_file)
        client = AAPClient.from_env(env)
        provisioner = WorkshopProvisioner(client, env, args.env_file)

        if args.command == "show":
            provisioner.show()
            return 0

        banner("AAP Workshop Resources")
        print(f" Host: {client.host}")
        print(f" API:  {client.api_base}")
        print(f" GUID: {env.get('WORKSHOP_GUID', '')}")
        print("=" * 60)

        check_aap_prerequisites(env, client)
        print("\nConnected to AAP successfully.")

        if args.command == "setup":
            if not provisioner.setup_all():
                return 1
            provisioner.print_summary()
            provisioner.show()
            return 0

        print("\nWARNING: This will delete ALL workshop resources from AAP")
        skip_prompt = args.yes or env.get("SKIP_INTERACTIVE") == "true"
        if not skip_prompt and not confirm("Are you sure you want to continue?"):
            print("Cleanup cancelled")
            return 0
        deleted = provisioner.cleanup()
        print(f"\nAAP resources cleanup completed ({deleted} deleted)")
        return 0

    except WorkshopError as e:
        log_error(str(e))
        return 1
    except requests.exceptions.RequestException as e:
        print(f"\nERROR: API request failed: {e}")
        if e.response is not None:
            print(f"       Response: {e.response.text[:500]}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
