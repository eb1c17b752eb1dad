#!/usr/bin/env python3
"""
Build the Workshop Execution Environment

Builds the custom execution environment image for the workshop with
ansible-builder (kubernetes.core, redhat.openshift, oc/kubectl and the
Python dependencies for Kubernetes integration) and optionally pushes it
to a registry.

Usage:
    python3 execution_environment.py                      # Build with defaults
    python3 execution_environment.py -t workshop-v1.0     # Custom tag
    python3 execution_environment.py -r quay.io/myorg -p  # Build and push
"""
import argparse
import sys
from pathlib import Path
from typing import Optional

from workshop_common import (
    EE_DIR,
    Colors,
    WorkshopError,
    banner,
    command_exists,
    configure_colors,
    log_error,
    log_info,
    log_success,
    log_warning,
    run_command,
    run_streaming,
)

DEFAULT_NAME = "aap-workshop-ee"
DEFAULT_TAG = "latest"
REQUIRED_FILES = ["execution-environment.yml", "requirements.yml", "requirements.txt", "bindep.txt"]


def detect_container_runtime() -> str:
    for runtime in ("podman", "docker"):
        if command_exists(runtime):
            return runtime
    raise WorkshopError("Neither podman nor docker found. Please install a container runtime.")


def check_prerequisites(ee_dir: Path, strict: bool = True) -> str:
    """Return the container runtime to use.

    strict also checks every file ansible-builder needs in ee_dir.
    """
    log_info("Checking execution environment prerequisites...")
    if not command_exists("ansible-builder"):
        raise WorkshopError("ansible-builder not found. Install with: pip install ansible-builder")
    runtime = detect_container_runtime()
    if not ee_dir.is_dir():
        raise WorkshopError(f"Execution environment directory not found: {ee_dir}")
    if strict:
        for name in REQUIRED_FILES:
            if not (ee_dir / name).is_file():
                raise WorkshopError(f"Required file not found: {ee_dir / name}")
    log_success(f"Prerequisites check passed (using {runtime})")
    return runtime


def image_exists(runtime: str, image: str) -> bool:
    ok, output = run_command([runtime, "images", "-q", image])
    return ok and bool(output)


def build_image(ee_dir: Path, image: str, runtime: str, force: bool = False) -> bool:
    """Build image from ee_dir; an existing image is kept unless force."""
    log_info(f"Building execution environment: {image}")
    if not force and image_exists(runtime, image):
        log_warning(f"Image {image} already exists. Use --force to rebuild.")
        return True

    log_info("Running ansible-builder build...")
    if run_streaming(["ansible-builder", "build", "-t", image, ".", "--container-runtime", runtime], cwd=ee_dir):
        log_success(f"Successfully built execution environment: {image}")
        return True
    log_error("Failed to build execution environment")
    return False


def push_image(image: str, registry: str, runtime: str) -> Optional[str]:
    """Tag image for registry and push it. Returns the pushed name."""
    target = f"{registry.rstrip('/')}/{image}"
    log_info(f"Pushing to registry: {target}")

    ok, output = run_command([runtime, "tag", image, target])
    if not ok:
        log_error(f"Failed to tag image for registry: {output}")
        return None
    log_info(f"Tagged image: {target}")

    if not run_streaming([runtime, "push", target]):
        log_error("Failed to push to registry")
        return None
    log_success(f"Successfully pushed to registry: {target}")
    return target


def print_build_summary(image: str, runtime: str, pushed: Optional[str] = None):
    print()
    banner("BUILD COMPLETED SUCCESSFULLY")
    print(f" Built Image: {image}")
    if pushed:
        print(f" Registry:    {pushed}")
    print()
    print(" Usage in AAP:")
    print("   1. Log into AAP Controller")
    print("   2. Navigate to Administration > Execution Environments")
    print(f"   3. Create new execution environment with image: {pushed or image}")
    print("   4. Associate with job templates")
    print()
    print(" Testing:")
    print(f"   {runtime} run --rm -it {image} ansible-galaxy collection list")
    print(f"   {runtime} run --rm -it {image} oc version")
    print()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="AAP Workshop Execution Environment Builder",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                              Build with defaults
  %(prog)s -t workshop-v1.0             Custom tag
  %(prog)s -r quay.io/myorg -p          Build and push to registry
  %(prog)s -n custom-ee --force         Force rebuild with custom name
        """,
    )
    parser.add_argument("-n", "--name", default=DEFAULT_NAME, help=f"Image name (default: {DEFAULT_NAME})")
    parser.add_argument("-t", "--tag", default=DEFAULT_TAG, help=f"Image tag (default: {DEFAULT_TAG})")
    parser.add_argument("-r", "--registry", default="", help="Registry to push to")
    parser.add_argument("-p", "--push", action="store_true", help="Push to registry after build")
    parser.add_argument("--force", action="store_true", help="Force rebuild even if image exists")
    parser.add_argument("--ee-dir", type=Path, default=EE_DIR, help="Execution environment directory")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    args = parser.parse_args(argv)

    configure_colors(args.no_color)

    if args.push and not args.registry:
        log_error("Registry must be specified when using --push")
        return 1

    image = f"{args.name}:{args.tag}"
    try:
        runtime = check_prerequisites(args.ee_dir)
    except WorkshopError as e:
        log_error(str(e))
        return 1

    if not build_image(args.ee_dir, image, runtime, force=args.force):
        return 1

    pushed = None
    if args.push:
        pushed = push_image(image, args.registry, runtime)
        if not pushed:
            return 1

    print_build_summary(image, runtime, pushed)
    print(f"{Colors.GREEN}Done!{Colors.END}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
