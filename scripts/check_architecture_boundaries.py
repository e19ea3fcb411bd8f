#!/usr/bin/env python3
from __future__ import annotations

import ast
import sys
from dataclasses import dataclass
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
PACKAGE_ROOT = REPO_ROOT / "forecast_graph"
BASELINE_FILE = REPO_ROOT / "scripts" / "architecture-boundary-baseline.txt"

LAYERS = ("domain", "application", "data", "interface")

# layer -> (rule code, layers it may not import)
FORBIDDEN_IMPORTS: dict[str, tuple[str, frozenset[str]]] = {
    "domain": ("LYR001", frozenset({"application", "data", "interface"})),
    "data": ("LYR002", frozenset({"application", "interface"})),
    "interface": ("LYR003", frozenset({"application"})),
}


@dataclass(frozen=True)
class Violation:
    code: str
    file: str
    line: int
    imported: str
    message: str

    def key(self) -> str:
        return f"{self.code}|{self.file}:{self.line}|{self.imported}"


def iter_python_files(root: Path) -> list[Path]:
    return sorted(root.rglob("*.py"))


def module_name_from_path(path: Path) -> str:
    rel = path.relative_to(PACKAGE_ROOT)
    return "forecast_graph." + ".".join(rel.with_suffix("").parts)


def resolve_import(module_name: str, node: ast.ImportFrom) -> str | None:
    current_pkg = module_name.rsplit(".", 1)[0]
    if node.level == 0:
        return node.module

    pkg_parts = current_pkg.split(".")
    pop_count = node.level - 1
    if pop_count > len(pkg_parts):
        return None
    base = pkg_parts[: len(pkg_parts) - pop_count]
    if node.module:
        return ".".join(base + [node.module])
    return ".".join(base)


def extract_imports(path: Path) -> list[tuple[int, str]]:
    module_name = module_name_from_path(path)
    tree = ast.parse(path.read_text(), filename=str(path))
    out: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                out.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom):
            resolved = resolve_import(module_name, node)
            if resolved:
                out.append((node.lineno, resolved))
    return out


def parse_layer(module_name: str) -> tuple[str, str] | None:
    """(bounded context, layer) for forecast_graph.<context>.<layer>...."""
    parts = module_name.split(".")
    if len(parts) >= 3 and parts[0] == "forecast_graph" and parts[2] in LAYERS:
        return parts[1], parts[2]
    return None


def collect_violations(root: Path = PACKAGE_ROOT) -> list[Violation]:
    violations: list[Violation] = []

    for file_path in iter_python_files(root):
        owner = parse_layer(module_name_from_path(file_path))
        if owner is None or owner[1] not in FORBIDDEN_IMPORTS:
            continue
        context, layer = owner
        code, forbidden = FORBIDDEN_IMPORTS[layer]

        for lineno, imported in extract_imports(file_path):
            target = parse_layer(imported)
            if target is None or target[0] != context:
                continue
            if target[1] in forbidden:
                violations.append(
                    Violation(
                        code=code,
                        file=str(file_path.relative_to(REPO_ROOT)),
                        line=lineno,
                        imported=imported,
                        message=f"{layer} layer importing {target[1]} layer is forbidden",
                    )
                )

    dedup = {v.key(): v for v in violations}
    return sorted(dedup.values(), key=lambda v: (v.code, v.file, v.line, v.imported))


def read_baseline() -> set[str]:
    if not BASELINE_FILE.exists():
        return set()
    keys: set[str] = set()
    for line in BASELINE_FILE.read_text().splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        keys.add(line)
    return keys


def print_current(violations: list[Violation]) -> None:
    for v in violations:
        print(v.key())


def main() -> int:
    violations = collect_violations()
    if len(sys.argv) > 1 and sys.argv[1] == "--print-current":
        print_current(violations)
        return 0

    baseline = read_baseline()
    current = {v.key() for v in violations}
    new_violations = sorted(current - baseline)
    resolved = sorted(baseline - current)

    if resolved:
        print("Resolved baseline violations (consider updating baseline):")
        for item in resolved:
            print(f"  - {item}")

    if new_violations:
        print("New layer boundary violations detected:")
        for item in new_violations:
            print(f"  - {item}")
        print(
            "\nIf intentional, update scripts/architecture-boundary-baseline.txt "
            "in the same change."
        )
        return 1

    print("Layer boundary check passed (no new violations).")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
