#!/usr/bin/env python3
"""
Exercise 0: Workshop Environment Validation

Validates that the workshop environment is properly configured: CLI tools,
.env, cluster login, namespaces, service account, quotas, network policies,
Automation Controller reachability and the workshop ConfigMap.
"""
import argparse
import sys
from pathlib import Path
from typing import Dict, Optional

from aap_client import AAPClient
from cluster import ClusterCLI
from validation import ValidationReport
from workshop_common import (
    ENV_FILE,
    WORKSHOP_NAMESPACE,
    Colors,
    WorkshopError,
    command_exists,
    configure_colors,
    log,
    run_command,
)
from workshop_env import load_env

ENVIRONMENTS = ["dev", "test", "prod"]


class SetupValidator:
    """Exercise 0 checks; each one prints its own ✓/✗ line."""

    def __init__(self, cli: ClusterCLI, env_file: Path, namespace: str = WORKSHOP_NAMESPACE):
        self.cli = cli
        self.env_file = env_file
        self.namespace = namespace
        self.report = ValidationReport("Validation Summary")
        self.env: Dict[str, str] = {}

    def _check(self, passed: bool, ok_message: str, fail_message: str, critical: bool = True) -> bool:
        if passed:
            print(f"{Colors.GREEN}✓{Colors.END} {ok_message}")
        elif critical:
            print(f"{Colors.RED}✗{Colors.END} {fail_message}")
        else:
            print(f"{Colors.YELLOW}⚠{Colors.END} {fail_message}")
        self.report.record(ok_message if passed else fail_message, passed, critical)
        return passed

    def validate_prerequisites(self):
        log("Validating prerequisites...")
        self._check(command_exists("oc"), "OpenShift CLI (oc) is installed", "OpenShift CLI (oc) not found")
        if self._check(command_exists("ansible-playbook"), "Ansible is installed", "Ansible not found"):
            ok, output = run_command(["ansible", "--version"])
            if ok and output:
                log(f"  {output.splitlines()[0]}")
        if self._check(self.env_file.is_file(), "Environment file (.env) exists",
                       "Environment file (.env) not found - run setup_workshop.py first"):
            self.env = load_env(self.env_file)

    def validate_openshift_connectivity(self):
        log("Validating OpenShift connectivity...")
        user = self.cli.whoami()
        if self._check(user is not None, f"Connected to OpenShift as: {user}", "Not connected to OpenShift cluster"):
            info = self.cli.cluster_info()
            if info:
                log(f"  {info}")
        else:
            print(f"{Colors.YELLOW}⚠{Colors.END} Please run: oc login <cluster-url>")

    def validate_workshop_namespaces(self):
        log("Validating workshop namespaces...")
        for ns in [self.namespace] + [f"{self.namespace}-{env}" for env in ENVIRONMENTS]:
            self._check(self.cli.exists("namespace", ns), f"Namespace {ns} exists", f"Namespace {ns} not found")

    def validate_service_account(self):
        log("Validating workshop service account...")
        self._check(self.cli.exists("serviceaccount", "workshop-automation", self.namespace),
                    "Service account 'workshop-automation' exists",
                    "Service account 'workshop-automation' not found")
        self._check(self.cli.exists("clusterrolebinding", "workshop-automation-binding"),
                    "Cluster role binding exists",
                    "Cluster role binding 'workshop-automation-binding' not found")

    def validate_resource_quotas(self):
        log("Validating resource quotas...")
        for env in ENVIRONMENTS:
            namespace = f"{self.namespace}-{env}"
            quota = f"{env}-quota"
            if self._check(self.cli.exists("resourcequota", quota, namespace),
                           f"Resource quota for {env} environment exists",
                           f"Resource quota for {env} environment not found"):
                used = self.cli.jsonpath("resourcequota", quota, "{.status.used}", namespace, default="{}")
                if used != "{}":
                    log(f"  Current usage: {used}")

    def validate_network_policies(self):
        log("Validating network policies...")
        for env in ENVIRONMENTS:
            self._check(self.cli.exists("networkpolicy", f"{env}-isolation", f"{self.namespace}-{env}"),
                        f"Network policy for {env} environment exists",
                        f"Network policy for {env} environment not found")

    def validate_aap_connectivity(self, client: Optional[AAPClient] = None):
        log("Validating Automation Controller connectivity...")
        aap_url = self.env.get("AAP_URL", "")
        if not aap_url:
            print(f"{Colors.YELLOW}⚠{Colors.END} AAP_URL not found in environment file")
            return
        client = client or AAPClient.from_env(self.env)
        if not self._check(client.ping(), f"Automation Controller is accessible at {aap_url}",
                           f"Cannot reach Automation Controller at {aap_url}", critical=False):
            log("  This may be expected if AAP is not yet configured")

    def validate_workshop_config(self):
        log("Validating workshop configuration...")
        if self._check(self.cli.exists("configmap", "workshop-config", self.namespace),
                       "Workshop configuration ConfigMap exists",
                       "Workshop configuration ConfigMap not found"):
            for label, key in (("Workshop", "workshop_name"), ("Environments", "environments")):
                value = self.cli.jsonpath("configmap", "workshop-config", f"{{.data.{key}}}", self.namespace)
                if value:
                    log(f"  {label}: {value}")

    def run_all(self, client: Optional[AAPClient] = None) -> ValidationReport:
        self.validate_prerequisites()
        self.validate_openshift_connectivity()
        self.validate_workshop_namespaces()
        self.validate_service_account()
        self.validate_resource_quotas()
        self.validate_network_policies()
        self.validate_aap_connectivity(client)
        self.validate_workshop_config()
        return self.report


def print_summary(report: ValidationReport) -> int:
    log("Validation Summary")
    print("==================")
    print(f"{Colors.GREEN}Passed:{Colors.END} {report.passed}")
    print(f"{Colors.RED}Failed:{Colors.END} {report.critical_failed}")
    print(f"{Colors.YELLOW}Warnings:{Colors.END} {report.warnings}")
    print()
    if report.ok:
        print(f"{Colors.GREEN}✓{Colors.END} All validations passed! Workshop environment is ready.")
        log("Next steps:")
        log("  1. Proceed to Module 1: Dynamic Inventory and AAP Integration")
        log("  2. Run: ansible-playbook playbooks/module1/exercise1-1-test-inventory.yml")
    else:
        print(f"{Colors.RED}✗{Colors.END} Some validations failed. Please review and fix the issues above.")
        log("To fix issues:")
        log("  1. Re-run the setup: setup-workshop")
        log("  2. Run the setup playbook: ansible-playbook playbooks/exercise0/setup.yml")
        log("  3. Validate again: validate-setup")
    return report.exit_code()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Exercise 0: Workshop Environment Validation")
    parser.add_argument("--env-file", type=Path, default=ENV_FILE, help="Workshop .env file")
    parser.add_argument("--namespace", default=WORKSHOP_NAMESPACE, help="Base workshop namespace")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    args = parser.parse_args(argv)

    configure_colors(args.no_color)
    log("Starting Exercise 0: Workshop Environment Validation")
    print()

    validator = SetupValidator(ClusterCLI("oc"), args.env_file, args.namespace)
    try:
        report = validator.run_all()
    except WorkshopError as e:
        print(f"{Colors.RED}✗{Colors.END} {e}")
        return 1
    print()
    return print_summary(report)


if __name__ == "__main__":
    sys.exit(main())
