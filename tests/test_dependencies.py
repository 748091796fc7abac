import ast
import sys
from pathlib import Path


def _parse_requirements(path: Path) -> set[str]:
    reqs: set[str] = set()
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        for sep in ("==", ">=", "<=", "~=", ">", "<"):
            if sep in line:
                line = line.split(sep, 1)[0].strip()
                break
        reqs.add(line)
    return reqs


def _scan_top_level_imports(pkg_root: Path) -> set[str]:
    stdlib = set(getattr(sys, "stdlib_module_names", ()))
    imports: set[str] = set()
    for path in pkg_root.rglob("*.py"):
        tree = ast.parse(path.read_text(encoding="utf-8"))
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                for alias in node.names:
                    imports.add(alias.name.split(".")[0])
            elif isinstance(node, ast.ImportFrom):
                if node.module is None or (node.level and node.level > 0):
                    continue
                imports.add(node.module.split(".")[0])
    return {m for m in imports if m and m not in stdlib and m != "degreport"}


def test_imported_dependencies_are_listed_in_requirements():
    repo_root = Path(__file__).resolve().parents[1]
    imports = _scan_top_level_imports(repo_root / "degreport")
    reqs = _parse_requirements(repo_root / "requirements.txt")

    missing = sorted(imports - reqs)
    assert missing == [], f"Missing dependencies in requirements.txt: {missing}"


def test_requirements_are_all_used():
    repo_root = Path(__file__).resolve().parents[1]
    imports = _scan_top_level_imports(repo_root / "degreport")
    reqs = _parse_requirements(repo_root / "requirements.txt")

    unused = sorted(reqs - imports)
    assert unused == [], f"Unused dependencies in requirements.txt: {unused}"
