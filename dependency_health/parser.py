"""
go.mod manifest parsing and dependency path lookup.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from .models import Dependency, Module, Replace


logger = logging.getLogger(__name__)

_BLOCK_VERBS = ("require", "replace", "exclude", "retract", "godebug", "tool", "ignore")


def _split_comment(line: str) -> Tuple[str, str]:
    if "//" in line:
        idx = line.index("//")
        return line[:idx].strip(), line[idx + 2:].strip()
    return line.strip(), ""


def _is_indirect(comment: str) -> bool:
    return comment == "indirect" or comment.startswith("indirect;")


def _unquote(token: str) -> str:
    if len(token) >= 2 and token[0] == token[-1] and token[0] in "\"`":
        return token[1:-1]
    return token


def _parse_replace(fields: List[str]) -> Optional[Replace]:
    if "=>" not in fields:
        return None
    arrow = fields.index("=>")
    old, new = fields[:arrow], fields[arrow + 1:]
    if not old or not new:
        return None
    return Replace(
        old_path=_unquote(old[0]),
        new_path=_unquote(new[0]),
        version=new[1] if len(new) > 1 else "",
    )


def parse_go_mod_text(text: str, project_path: Union[str, Path] = ".") -> Module:
    """Parse the contents of a go.mod file."""
    module_path = ""
    go_version = ""
    requires: List[Tuple[str, str, bool]] = []
    replaces: List[Replace] = []
    block: Optional[str] = None

    for raw_line in text.splitlines():
        content, comment = _split_comment(raw_line)
        if not content:
            continue

        if block is not None:
            if content == ")":
                block = None
                continue
            fields = content.split()
        else:
            fields = content.split()
            verb = fields[0]
            if verb in _BLOCK_VERBS and len(fields) == 2 and fields[1] == "(":
                block = verb
                continue
            if verb == "module" and len(fields) >= 2:
                module_path = _unquote(fields[1])
                continue
            if verb == "go" and len(fields) >= 2:
                go_version = fields[1]
                continue
            if verb not in ("require", "replace"):
                continue
            block_verb, fields = verb, fields[1:]
            _apply_directive(block_verb, fields, comment, requires, replaces)
            continue

        _apply_directive(block, fields, comment, requires, replaces)

    replace_by_path: Dict[str, Replace] = {}
    for replace in replaces:
        replace_by_path.setdefault(replace.old_path, replace)

    dependencies = tuple(
        Dependency(
            path=path,
            version=version,
            indirect=indirect,
            replace=replace_by_path.get(path),
        )
        for path, version, indirect in requires
    )
    return Module(
        path=module_path,
        go_version=go_version,
        project_path=str(project_path),
        dependencies=dependencies,
        replaces=tuple(replaces),
    )


def _apply_directive(
    verb: str,
    fields: List[str],
    comment: str,
    requires: List[Tuple[str, str, bool]],
    replaces: List[Replace],
) -> None:
    if verb == "require" and len(fields) >= 2:
        requires.append((_unquote(fields[0]), fields[1], _is_indirect(comment)))
    elif verb == "replace":
        replace = _parse_replace(fields)
        if replace is not None:
            replaces.append(replace)


def parse_go_mod(project_path: Union[str, Path]) -> Module:
    """Read and parse ``go.mod`` from a project directory."""
    project_path = Path(project_path)
    go_mod = project_path / "go.mod"
    try:
        text = go_mod.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise FileNotFoundError(f"go.mod not found in {project_path}") from None
    return parse_go_mod_text(text, project_path=project_path)


def get_dependency_path(
    project_path: Union[str, Path], package_path: str, timeout: float = 30
) -> List[str]:
    """Return the import chain leading to ``package_path`` using ``go mod why``."""
    cmd = ["go", "mod", "why", "-m", package_path]
    try:
        result = subprocess.run(
            cmd,
            cwd=str(project_path),
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except (subprocess.TimeoutExpired, FileNotFoundError) as e:
        logger.warning("go mod why failed for %s: %s", package_path, e)
        return []

    if result.returncode != 0:
        logger.debug("go mod why exited with %s for %s", result.returncode, package_path)
        return []

    path: List[str] = []
    for i, line in enumerate(result.stdout.strip().splitlines()):
        line = line.strip()
        if not line or line.startswith("#") or "(main module)" in line:
            continue
        path.append(line)
        if i > 0 and package_path in line:
            break
    return path
