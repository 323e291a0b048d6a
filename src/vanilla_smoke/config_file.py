"""
Editing the forum's PHP configuration file.

The forum keeps its settings as one assignment per leaf key:

    $Configuration['Garden']['Registration']['Method'] = 'Basic';

save() rewrites or appends those assignments for dotted keys such as
``Garden.Registration.Method``. Other lines, comments included, are kept
as they are.
"""

import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from vanilla_smoke.exceptions import ConfigWriteError

logger = logging.getLogger(__name__)

FILE_HEADER = "<?php if (!defined('APPLICATION')) exit();\n"

# A semicolon inside a quoted string does not end the statement; a trailing
# // or # comment may follow it.
_ASSIGNMENT = re.compile(
    r"""^\s*\$Configuration((?:\['[^']*'\])+)\s*=\s*
        ((?:'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*"|[^'";])*)
        ;\s*(?:(?://|\#)[^\n]*)?$""",
    re.DOTALL | re.VERBOSE,
)
_KEY_PART = re.compile(r"\['([^']*)'\]")
_INTEGER = re.compile(r"^-?\d+$")
_FLOAT = re.compile(r"^-?\d+\.\d+$")


def php_literal(value: Any) -> str:
    """Format a Python value as a PHP literal."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace("'", "\\'")
        return f"'{escaped}'"
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(php_literal(v) for v in value) + "]"
    if isinstance(value, Mapping):
        items = ", ".join(f"{php_literal(k)} => {php_literal(v)}" for k, v in value.items())
        return f"[{items}]"
    raise TypeError(f"Cannot write {type(value).__name__} to the forum config")


def parse_php_literal(source: str) -> Any:
    """Parse a scalar PHP literal. Arrays and expressions are returned as source."""
    source = source.strip()
    lowered = source.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if lowered == "null":
        return None
    if _INTEGER.match(source):
        return int(source)
    if _FLOAT.match(source):
        return float(source)
    if len(source) >= 2 and source[0] == source[-1] and source[0] in "'\"":
        inner = source[1:-1]
        if source[0] == "'":
            return inner.replace("\\'", "'").replace("\\\\", "\\")
        return inner.replace('\\"', '"').replace("\\\\", "\\")
    return source


def flatten(values: Mapping[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Flatten nested mappings into dotted leaf keys."""
    flat: Dict[str, Any] = {}
    for key, value in values.items():
        dotted = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping) and value:
            flat.update(flatten(value, dotted))
        else:
            flat[dotted] = value
    return flat


def _assignment_line(dotted_key: str, value: Any) -> str:
    path = "".join(f"['{part}']" for part in dotted_key.split("."))
    return f"$Configuration{path} = {php_literal(value)};"


def _statements(source: str) -> List[Tuple[Optional[Tuple[str, ...]], str]]:
    """
    Split the file into statements, keyed by their config path when they assign one.

    An assignment spans lines only until its text forms a complete
    statement. A new ``$Configuration`` line ends an unfinished one, whose
    lines are then kept unkeyed so no save ever removes them.
    """
    statements: List[Tuple[Optional[Tuple[str, ...]], str]] = []
    pending: List[str] = []
    for line in source.splitlines():
        starts_assignment = line.lstrip().startswith("$Configuration")
        if pending and not starts_assignment:
            pending.append(line)
            joined = "\n".join(pending)
            if _ASSIGNMENT.match(joined):
                statements.append(_classify(joined))
                pending = []
            continue
        statements.extend((None, text) for text in pending)
        pending = []
        if starts_assignment and not _ASSIGNMENT.match(line):
            pending.append(line)
            continue
        statements.append(_classify(line))
    statements.extend((None, text) for text in pending)
    return statements


def _classify(statement: str) -> Tuple[Optional[Tuple[str, ...]], str]:
    match = _ASSIGNMENT.match(statement)
    if not match:
        return None, statement
    return tuple(_KEY_PART.findall(match.group(1))), statement


class ConfigFile:
    """The forum's config file at ``path``."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _read_text(self) -> Optional[str]:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise ConfigWriteError(f"Cannot read {self.path}: {e}") from e

    def _write_text(self, source: str) -> None:
        directory = self.path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=f".{self.path.name}.")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(source)
                os.replace(tmp_name, self.path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise ConfigWriteError(f"Cannot write {self.path}: {e}") from e

    def read(self) -> Dict[str, Any]:
        """Return every assigned key as a dotted key mapped to its value."""
        source = self._read_text()
        if source is None:
            return {}
        values = {}
        for key_path, statement in _statements(source):
            if key_path is None:
                continue
            match = _ASSIGNMENT.match(statement)
            values[".".join(key_path)] = parse_php_literal(match.group(2))
        return values

    def save(self, values: Mapping[str, Any]) -> None:
        """
        Set configuration values, replacing earlier assignments of the same keys.

        Assignments below a key being set are dropped as well, so setting
        ``Garden.Registration`` to a mapping replaces the whole branch.
        """
        updates = {}
        for key, value in values.items():
            if isinstance(value, Mapping) and value:
                updates.update(flatten(value, key))
            else:
                updates[key] = value

        source = self._read_text()
        if source is None:
            source = FILE_HEADER

        replaced = [tuple(key.split(".")) for key in values]

        def overridden(key_path: Tuple[str, ...]) -> bool:
            return any(key_path[: len(path)] == path for path in replaced)

        kept = [statement for key_path, statement in _statements(source) if key_path is None or not overridden(key_path)]
        while kept and not kept[-1].strip():
            kept.pop()

        lines = kept + [_assignment_line(key, value) for key, value in updates.items()]
        self._write_text("\n".join(lines) + "\n")
        logger.info("Saved %d config value(s) to %s: %s", len(updates), self.path, ", ".join(updates))

    def snapshot(self) -> Optional[str]:
        """Return the raw file contents, or None if the file does not exist."""
        return self._read_text()

    def restore(self, snapshot: Optional[str]) -> None:
        """Put back a snapshot taken earlier; a None snapshot removes the file."""
        if snapshot is None:
            try:
                self.path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                raise ConfigWriteError(f"Cannot remove {self.path}: {e}") from e
            logger.info("Removed %s", self.path)
            return
        self._write_text(snapshot)
        logger.info("Restored %s", self.path)
