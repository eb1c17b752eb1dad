#!/usr/bin/env python3
"""
oc / kubectl wrapper used by the setup and validation scripts.
"""
import json
from typing import List, Optional, Tuple

from workshop_common import run_command


class ClusterCLI:
    """Runs cluster CLI commands and answers existence questions."""

    def __init__(self, binary: str = "oc", timeout: int = 30):
        self.binary = binary
        self.timeout = timeout

    def run(self, args: List[str], timeout: Optional[int] = None) -> Tuple[bool, str]:
        """Run cluster command and return success status and output"""
        return run_command([self.binary] + args, timeout=timeout or self.timeout)

    @staticmethod
    def _ns(namespace: Optional[str]) -> List[str]:
        return ["-n", namespace] if namespace else []

    def exists(self, kind: str, name: str, namespace: Optional[str] = None) -> bool:
        ok, _ = self.run(["get", kind, name] + self._ns(namespace))
        return ok

    def jsonpath(self, kind: str, name: str, path: str,
                 namespace: Optional[str] = None, default: str = "") -> str:
        ok, output = self.run(["get", kind, name] + self._ns(namespace) + ["-o", f"jsonpath={path}"])
        if not ok or not output:
            return default
        return output

    def get_json(self, kind: str, name: str, namespace: Optional[str] = None) -> dict:
        ok, output = self.run(["get", kind, name] + self._ns(namespace) + ["-o", "json"])
        if not ok:
            return {}
        try:
            return json.loads(output)
        except json.JSONDecodeError:
            return {}

    def count(self, kind: str, namespace: Optional[str] = None) -> int:
        ok, output = self.run(["get", kind] + self._ns(namespace) + ["--no-headers"])
        if not ok or not output:
            return 0
        return len([line for line in output.splitlines() if line.strip()])

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def login(self, api_url: str, token: str) -> Tuple[bool, str]:
        return self.run(["login", api_url, f"--token={token}", "--insecure-skip-tls-verify=true"])

    def whoami(self) -> Optional[str]:
        ok, output = self.run(["whoami"])
        return output if ok else None

    def current_project(self) -> Optional[str]:
        ok, output = self.run(["project", "-q"])
        return output if ok else None

    def current_namespace(self) -> Optional[str]:
        ok, output = self.run(["config", "view", "--minify", "-o", "jsonpath={..namespace}"])
        return output if ok and output else None

    def current_context(self) -> Optional[str]:
        ok, output = self.run(["config", "current-context"])
        return output if ok else None

    def cluster_info(self) -> Optional[str]:
        ok, output = self.run(["cluster-info"])
        return output.splitlines()[0] if ok and output else None

    # ------------------------------------------------------------------
    # Namespaces
    # ------------------------------------------------------------------

    def ensure_namespace(self, name: str) -> Tuple[bool, bool]:
        """Create the namespace if missing. Returns (ok, created)."""
        if self.exists("namespace", name):
            return True, False
        ok, _ = self.run(["create", "namespace", name])
        return ok, ok

    def delete_namespace(self, name: str, timeout: str = "60s") -> bool:
        ok, _ = self.run(["delete", "namespace", name, "--ignore-not-found=true", f"--timeout={timeout}"],
                         timeout=120)
        return ok
