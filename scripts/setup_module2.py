#!/usr/bin/env python3
"""
Module 2 Setup Script
Prepares the environment and runs all Module 2 exercises (idempotent
resource management and RBAC), then validates the result.

Usage:
    python3 setup_module2.py [NAMESPACE] [ENVIRONMENT] [MAINFRAME_HOST]

    python3 setup_module2.py                                   # Use defaults
    python3 setup_module2.py my-workshop dev                   # Custom namespace
    python3 setup_module2.py prod-workshop prod mainframe.corp.com
"""
import argparse
import sys
import time
from pathlib import Path
from typing import NamedTuple, Optional

import validate_module2
from cluster import ClusterCLI
from workshop_common import (
    PLAYBOOK_DIR,
    Colors,
    WorkshopError,
    confirm,
    configure_colors,
    log_error,
    log_info,
    log_success,
    log_warning,
    require_commands,
    run_streaming,
    section,
)


class Exercise(NamedTuple):
    number: int
    name: str
    playbook: str
    description: str


EXERCISES = [
    Exercise(1, "Idempotent Deployment", "exercise2-1-idempotent-deployment.yml",
             "Deploy IMS connector service with idempotent patterns using redhat.openshift collection"),
    Exercise(2, "RBAC Automation", "exercise2-2-rbac-automation.yml",
             "Create automated service account provisioning with comprehensive RBAC"),
    Exercise(3, "Rollback Patterns", "exercise2-3-rollback-patterns.yml",
             "Implement rollback capabilities using block-rescue-always patterns"),
    Exercise(4, "Validation", "exercise2-4-validation.yml",
             "Comprehensive validation and peer review of Module 2 implementation"),
]


class Module2Runner:
    """Runs the Module 2 playbooks against one namespace"""

    def __init__(self, cli: ClusterCLI, namespace: str, environment: str, mainframe_host: str,
                 playbook_dir: Path):
        self.cli = cli
        self.namespace = namespace
        self.environment = environment
        self.mainframe_host = mainframe_host
        self.playbook_dir = playbook_dir

    def check_prerequisites(self):
        log_info("Checking prerequisites...")
        require_commands([
            ("kubectl", "kubectl is not installed or not in PATH"),
            ("ansible-playbook", "ansible-playbook is not installed or not in PATH"),
        ])
        if self.cli.cluster_info() is None:
            raise WorkshopError("Cannot connect to Kubernetes cluster")
        if not self.playbook_dir.is_dir():
            raise WorkshopError(f"Playbook directory not found: {self.playbook_dir}")
        log_success("Prerequisites check passed")

    def show_environment_info(self):
        print("\n" + "=" * 60)
        print(" Environment Information")
        print("=" * 60)
        print(f"\n{Colors.YELLOW}Workshop Configuration:{Colors.END}")
        print(f"  Namespace: {self.namespace}")
        print(f"  Environment: {self.environment}")
        print(f"  Mainframe Host: {self.mainframe_host}")
        print(f"\n{Colors.YELLOW}Cluster Information:{Colors.END}")
        print(f"  {self.cli.cluster_info()}")
        print(f"\n{Colors.YELLOW}Current Context:{Colors.END}")
        print(f"  {self.cli.current_context()}")
        print()

    def playbook_command(self, playbook_path: Path):
        return [
            "ansible-playbook", str(playbook_path),
            "-e", f"workshop_namespace={self.namespace}",
            "-e", f"workshop_environment={self.environment}",
            "-e", f"ims_mainframe_host={self.mainframe_host}",
            "-v",
        ]

    def run_exercise(self, exercise: Exercise) -> bool:
        section(f"Exercise 2-{exercise.number}: {exercise.name}")
        log_info(exercise.description)

        playbook_path = self.playbook_dir / exercise.playbook
        if not playbook_path.is_file():
            log_error(f"Playbook not found: {playbook_path}")
            return False

        log_info(f"Running playbook: {exercise.playbook}")
        if run_streaming(self.playbook_command(playbook_path)):
            log_success(f"Exercise 2-{exercise.number} completed successfully")
            return True
        log_error(f"Exercise 2-{exercise.number} failed")
        return False

    def run_validation(self) -> bool:
        section("Module 2 Validation")
        log_info("Running comprehensive validation of Module 2 completion")
        if validate_module2.validate(self.cli, self.namespace, self.environment) == 0:
            log_success("Module 2 validation passed")
            return True
        log_warning("Module 2 validation found issues")
        return False

    def cleanup_on_failure(self):
        log_warning("Cleaning up resources due to failure...")
        if self.cli.exists("namespace", self.namespace):
            log_info(f"Deleting namespace: {self.namespace}")
            self.cli.delete_namespace(self.namespace)

    def run_exercises(self) -> int:
        return sum(1 for exercise in EXERCISES if self.run_exercise(exercise))

    def print_completion(self, passed: int) -> bool:
        print("\n" + "=" * 60)
        print(" Module 2 Complete")
        print("=" * 60)
        print(f"\n{Colors.YELLOW}Exercises Completed: {Colors.GREEN}{passed}/{len(EXERCISES)}{Colors.END}")

        if passed != len(EXERCISES):
            log_warning("Some exercises did not complete successfully")
            print(f"\n{Colors.YELLOW}Please review the logs above and rerun failed exercises{Colors.END}")
            return False

        log_success("All Module 2 exercises completed successfully!")
        print(f"\n{Colors.GREEN}✓ Idempotent deployment patterns mastered{Colors.END}")
        print(f"{Colors.GREEN}✓ RBAC automation implemented{Colors.END}")
        print(f"{Colors.GREEN}✓ Rollback capabilities demonstrated{Colors.END}")
        print(f"\n{Colors.BLUE}Useful Commands:{Colors.END}")
        print(f"  kubectl get all -n {self.namespace}")
        print(f"  kubectl describe deployment ims-connector -n {self.namespace}")
        print(f"  kubectl get rolebindings -n {self.namespace}")
        print(f"  validate-module2 {self.namespace} {self.environment}")
        return True


def main(argv=None, cli: Optional[ClusterCLI] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Module 2 Setup: Idempotent Resource Management and RBAC",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                                      Use defaults
  %(prog)s my-workshop dev                      Custom namespace, dev environment
  %(prog)s prod-workshop prod mainframe.corp.com  Production setup
        """,
    )
    parser.add_argument("namespace", nargs="?", default=f"ims-workshop-{int(time.time())}",
                        help="Kubernetes namespace (default: ims-workshop-<timestamp>)")
    parser.add_argument("environment", nargs="?", default="dev", choices=validate_module2.ENVIRONMENTS,
                        help="Workshop environment (default: dev)")
    parser.add_argument("mainframe_host", nargs="?", default="mainframe.example.com",
                        help="IMS mainframe hostname (default: mainframe.example.com)")
    parser.add_argument("--playbook-dir", type=Path, default=PLAYBOOK_DIR / "module2",
                        help="Directory holding the Module 2 playbooks")
    parser.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    args = parser.parse_args(argv)

    configure_colors(args.no_color)
    print("=" * 60)
    print(" Module 2 Setup - Idempotent Resource Management and RBAC")
    print("=" * 60)

    runner = Module2Runner(cli or ClusterCLI("kubectl"), args.namespace, args.environment,
                           args.mainframe_host, args.playbook_dir)
    try:
        runner.check_prerequisites()
    except WorkshopError as e:
        log_error(str(e))
        return 1

    runner.show_environment_info()
    print(f"{Colors.YELLOW}This will create resources in your OpenShift cluster.{Colors.END}")
    if not args.yes and not confirm("Do you want to continue?"):
        log_info("Setup cancelled by user")
        return 0

    try:
        passed = runner.run_exercises()
        runner.run_validation()
    except (WorkshopError, KeyboardInterrupt) as e:
        log_error(str(e) or "Interrupted")
        runner.cleanup_on_failure()
        return 1

    return 0 if runner.print_completion(passed) else 1


if __name__ == "__main__":
    sys.exit(main())
