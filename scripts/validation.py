#!/usr/bin/env python3
"""
Pass/fail tally shared by the validation scripts.

Checks are plain callables returning True/False. Critical checks decide the
exit code; learning checks are only reported.
"""
from dataclasses import dataclass, field
from typing import Callable, List

from workshop_common import Colors, WorkshopError, log_error


@dataclass
class CheckResult:
    name: str
    passed: bool
    critical: bool = True
    pass_label: str = "PASS"
    fail_label: str = "FAIL"


@dataclass
class ValidationReport:
    title: str
    results: List[CheckResult] = field(default_factory=list)

    def run(self, name: str, check: Callable[[], bool], critical: bool = True,
            pass_label: str = "PASS", fail_label: str = "FAIL") -> bool:
        """Run one check; an exception counts as a failure and is logged."""
        try:
            passed = bool(check())
        except WorkshopError as e:
            log_error(f"{name}: {e}")
            passed = False
        self.results.append(CheckResult(name, passed, critical, pass_label, fail_label))
        return passed

    def record(self, name: str, passed: bool, critical: bool = True):
        self.results.append(CheckResult(name, passed, critical))

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.passed)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.passed)

    @property
    def critical_total(self) -> int:
        return sum(1 for r in self.results if r.critical)

    @property
    def critical_passed(self) -> int:
        return sum(1 for r in self.results if r.critical and r.passed)

    @property
    def critical_failed(self) -> int:
        return self.critical_total - self.critical_passed

    @property
    def warnings(self) -> int:
        """Failed non-critical checks."""
        return sum(1 for r in self.results if not r.critical and not r.passed)

    @property
    def ok(self) -> bool:
        return self.critical_passed == self.critical_total

    def exit_code(self) -> int:
        return 0 if self.ok else 1

    def _print_group(self, heading: str, results: List[CheckResult]):
        if not results:
            return
        print(f"\n{Colors.YELLOW}{heading}:{Colors.END}")
        for r in results:
            if r.passed:
                print(f"  ✓ {r.name}: {Colors.GREEN}{r.pass_label}{Colors.END}")
            elif r.critical:
                print(f"  ✗ {r.name}: {Colors.RED}{r.fail_label}{Colors.END}")
            else:
                print(f"  ○ {r.name}: {Colors.YELLOW}{r.fail_label}{Colors.END}")

    def print_summary(self, critical_heading: str = "Critical Checks",
                      learning_heading: str = "Learning Validation"):
        print("\n" + "=" * 60)
        print(f" {self.title}")
        print("=" * 60)

        self._print_group(critical_heading, [r for r in self.results if r.critical])
        self._print_group(learning_heading, [r for r in self.results if not r.critical])

        total = len(self.results)
        color = Colors.GREEN if self.ok else Colors.RED
        print(f"\n{Colors.YELLOW}Overall Status:{Colors.END}")
        print(f"   {'Critical Requirements':.<40} {color}{self.critical_passed}/{self.critical_total} PASSED{Colors.END}")
        print(f"   {'Total Validations':.<40} {self.passed}/{total} PASSED")
        print("=" * 60)
