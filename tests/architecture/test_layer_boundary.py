"""
Layer boundary contract.

Tests that enforce the package dependency direction:

1. ledger_kernel/** may NOT import ledger_engines, ledger_config or
   ledger_services.  The kernel never depends upward.

2. ledger_engines/** may NOT import ledger_config or ledger_services, and
   never touches the database layer (sqlalchemy, ledger_kernel.db,
   ledger_kernel.models).  Engines are pure.

3. ledger_config/** may import only ledger_kernel.

4. Only ledger_services.adapters talks to SQLAlchemy; the kinds and the
   runner stay behind the store ports.

These tests read source code via AST; they cannot break anything.
"""

import ast
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _python_files(package: str) -> list[Path]:
    return sorted((ROOT / package).rglob("*.py"))


def _extract_imports(filepath: Path) -> list[tuple[int, str]]:
    """Extract (line_number, module_string) for all imports in a file."""
    tree = ast.parse(filepath.read_text(encoding="utf-8"), filename=str(filepath))
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                results.append((node.lineno, node.module))
    return results


def _violations(package: str, forbidden: tuple[str, ...], *, exclude: str | None = None) -> list[str]:
    found: list[str] = []
    for filepath in _python_files(package):
        relative = filepath.relative_to(ROOT).as_posix()
        if exclude and relative.startswith(exclude):
            continue
        for lineno, module in _extract_imports(filepath):
            for prefix in forbidden:
                if module == prefix or module.startswith(f"{prefix}."):
                    found.append(f"  {relative}:{lineno} imports '{module}'")
    return found


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestKernelNoUpwardDependencies:
    def test_kernel_does_not_import_outer_packages(self):
        violations = _violations(
            "ledger_kernel", ("ledger_engines", "ledger_config", "ledger_services"),
        )
        assert not violations, (
            "Kernel boundary violation: ledger_kernel/** must not import "
            "outer packages:\n" + "\n".join(violations)
        )


class TestEnginesArePure:
    def test_engines_do_not_import_config_or_services(self):
        violations = _violations("ledger_engines", ("ledger_config", "ledger_services"))
        assert not violations, "\n".join(violations)

    def test_engines_do_not_touch_the_database(self):
        violations = _violations(
            "ledger_engines", ("sqlalchemy", "ledger_kernel.db", "ledger_kernel.models"),
        )
        assert not violations, "\n".join(violations)


class TestConfigDependsOnKernelOnly:
    def test_config_imports(self):
        violations = _violations("ledger_config", ("ledger_engines", "ledger_services"))
        assert not violations, "\n".join(violations)


class TestStoreAccessBehindAdapters:
    def test_only_adapters_import_sqlalchemy(self):
        violations = _violations(
            "ledger_services",
            ("sqlalchemy", "ledger_kernel.db", "ledger_kernel.models"),
            exclude="ledger_services/adapters/",
        )
        assert not violations, "\n".join(violations)

    def test_kinds_do_not_import_adapters(self):
        violations = _violations("ledger_services/kinds", ("ledger_services.adapters",))
        assert not violations, "\n".join(violations)
