"""
Import-boundary enforcement between the ledger's layers.

1. Kernel isolation  -- freight_kernel/** imports no higher layer.
2. Engine purity     -- freight_engines/** imports no DB, ORM, config or
                        modules, and reads no wall clock or environment.
3. Config direction  -- freight_config/** never imports freight_modules.

All scanning is done via AST; these tests are read-only.
"""

import ast
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent.parent


def _python_files(package: str) -> list[Path]:
    return sorted((ROOT / package).rglob("*.py"))


def _extract_imports(path: Path) -> list[tuple[int, str]]:
    """Return (line_number, module_string) for every import in *path*."""
    tree = ast.parse(path.read_text(), filename=str(path))
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom) and node.module:
            results.append((node.lineno, node.module))
    return results


def _matches_any(module: str, prefixes: tuple[str, ...]) -> bool:
    return any(module == p or module.startswith(f"{p}.") for p in prefixes)


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    return [
        f"  {path.relative_to(ROOT)}:{lineno} imports '{module}'"
        for path in _python_files(package)
        for lineno, module in _extract_imports(path)
        if _matches_any(module, forbidden)
    ]


class TestKernelIsolation:

    def test_kernel_imports_no_higher_layer(self):
        violations = _violations(
            "freight_kernel", ("freight_engines", "freight_config", "freight_modules")
        )
        assert not violations, (
            "freight_kernel must not import engines, config or modules:\n"
            + "\n".join(violations)
        )


class TestEnginePurity:

    FORBIDDEN_PREFIXES = (
        "sqlalchemy",
        "psycopg2",
        "sqlite3",
        "freight_kernel.db",
        "freight_kernel.services",
        "freight_config",
        "freight_modules",
    )

    FORBIDDEN_CALLS = frozenset({
        "datetime.now",
        "datetime.utcnow",
        "date.today",
        "time.time",
        "os.environ",
        "os.getenv",
    })

    def test_engine_files_have_no_forbidden_imports(self):
        violations = _violations("freight_engines", self.FORBIDDEN_PREFIXES)
        assert not violations, (
            "freight_engines/** must not import DB drivers, ORM, services, "
            "config or modules:\n" + "\n".join(violations)
        )

    def test_no_impure_calls_in_engines(self):
        found: list[str] = []
        for path in _python_files("freight_engines"):
            tree = ast.parse(path.read_text(), filename=str(path))
            for node in ast.walk(tree):
                if isinstance(node, ast.Attribute) and isinstance(node.value, ast.Name):
                    qualname = f"{node.value.id}.{node.attr}"
                    if qualname in self.FORBIDDEN_CALLS:
                        found.append(f"  {path.relative_to(ROOT)}:{node.lineno} calls '{qualname}'")
        assert not found, (
            "Engines take dates as parameters; use an explicit clock:\n" + "\n".join(found)
        )


class TestConfigDirection:

    def test_config_never_imports_modules(self):
        violations = _violations("freight_config", ("freight_modules",))
        assert not violations, "\n".join(violations)
