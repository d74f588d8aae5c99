"""
Layer boundaries.

1. ledger_kernel/** may NOT import ledger_engines, ledger_config or
   ledger_services.  The kernel never depends upward.
2. ledger_engines/** may NOT import ledger_config or ledger_services.
   Engines receive configuration values as plain arguments.
3. ledger_config/** may only import ledger_kernel among the project
   packages.
4. Engines never read the wall clock.
5. The invariant declaration is complete and non-empty.

These tests read source code via AST.
"""

import ast
from pathlib import Path

from ledger_kernel.invariants import (
    ALL_LEDGER_INVARIANTS,
    FORBIDDEN_ENGINE_IMPORTS,
    FORBIDDEN_KERNEL_IMPORTS,
    LedgerInvariant,
)

REPO_ROOT = Path(__file__).resolve().parents[2]
PROJECT_PACKAGES = ("ledger_kernel", "ledger_engines", "ledger_config", "ledger_services")


def _python_files(package: str) -> list[Path]:
    return sorted((REPO_ROOT / package).rglob("*.py"))


def _extract_imports(filepath: Path) -> list[tuple[int, str]]:
    """(line_number, module) for every import in a file."""
    tree = ast.parse(filepath.read_text(), filename=str(filepath))
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom) and node.module:
            results.append((node.lineno, node.module))
    return results


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    found = []
    for filepath in _python_files(package):
        for lineno, module in _extract_imports(filepath):
            for prefix in forbidden:
                if module == prefix or module.startswith(f"{prefix}."):
                    found.append(f"  {filepath.relative_to(REPO_ROOT)}:{lineno} imports '{module}'")
    return found


class TestImportBoundaries:
    """Packages only depend downward."""

    def test_packages_exist(self):
        for package in PROJECT_PACKAGES:
            assert _python_files(package), f"no sources found for {package}"

    def test_kernel_has_no_upward_dependencies(self):
        violations = _violations("ledger_kernel", FORBIDDEN_KERNEL_IMPORTS)
        assert not violations, "Kernel boundary violation:\n" + "\n".join(violations)

    def test_engines_do_not_import_config_or_services(self):
        violations = _violations("ledger_engines", FORBIDDEN_ENGINE_IMPORTS)
        assert not violations, "Engine boundary violation:\n" + "\n".join(violations)

    def test_config_imports_kernel_only(self):
        violations = _violations("ledger_config", ("ledger_engines", "ledger_services"))
        assert not violations, "Config boundary violation:\n" + "\n".join(violations)


class TestEnginePurity:
    """Engines take "today" as an argument."""

    CLOCK_CALLS = ("today", "now", "utcnow")

    def test_no_wall_clock_reads(self):
        violations = []
        for filepath in _python_files("ledger_engines"):
            tree = ast.parse(filepath.read_text(), filename=str(filepath))
            for node in ast.walk(tree):
                if (
                    isinstance(node, ast.Call)
                    and isinstance(node.func, ast.Attribute)
                    and node.func.attr in self.CLOCK_CALLS
                    and isinstance(node.func.value, ast.Name)
                    and node.func.value.id in ("date", "datetime")
                ):
                    violations.append(f"  {filepath.relative_to(REPO_ROOT)}:{node.lineno}")
        assert not violations, "Engines read the clock:\n" + "\n".join(violations)


class TestInvariantDeclaration:
    """The invariant list is declared and non-empty."""

    def test_invariants_declared(self):
        assert ALL_LEDGER_INVARIANTS == frozenset(LedgerInvariant)
        assert LedgerInvariant.RECURRENCE_BOUNDED in ALL_LEDGER_INVARIANTS
        assert len(ALL_LEDGER_INVARIANTS) >= 6
