"""
Gerrit project.config merging.

The project configuration lives in the refs/meta/config branch of every
Gerrit project, in git-config (INI) format. Centrally managed sections are
merged into it, but only into sections the project already declares.
"""

import configparser
import logging
from pathlib import Path
from typing import Dict, Any, List


PROJECT_CONFIG_FILE = "project.config"

# Marks the boundary between values of a key repeated within a section
_REPEAT_MARKER = "\0"
REPEATED_VALUE_SEPARATOR = f"\n{_REPEAT_MARKER}\n"

logger = logging.getLogger(__name__)


class ProjectConfigLoadError(Exception):
    """Raised when a project.config file cannot be read or parsed."""

    def __init__(self, path, cause):
        self.path = str(path)
        self.cause = cause
        super().__init__(f"Failed while loading project config file '{self.path}': {cause}")


class ProjectConfigWriteError(Exception):
    """Raised when a merged project.config file cannot be written back."""

    def __init__(self, path, cause):
        self.path = str(path)
        self.cause = cause
        super().__init__(f"Failed writing Gerrit project configuration '{self.path}': {cause}")


class MergeResult:
    """Outcome of merging override sections into a project.config file."""

    def __init__(self, path: Path):
        self.path = path
        self.merged_sections: List[str] = []
        self.skipped_sections: List[str] = []
        self.changed = False

    def __repr__(self):
        return (f"MergeResult(merged={self.merged_sections!r}, "
                f"skipped={self.skipped_sections!r}, changed={self.changed})")


class _RepeatedKeySection(dict):
    """Section storage that keeps every value of a key repeated while reading.

    Gerrit access sections list one grant per line, e.g. several
    `read = group ...` entries. While reading, configparser stores each
    value as a list of lines; a repeated key is appended to the existing
    list behind a separator instead of replacing it.
    """

    def __setitem__(self, key, value):
        if isinstance(value, list) and isinstance(self.get(key), list):
            self[key].append(_REPEAT_MARKER)
            self[key].extend(value)
            return
        super().__setitem__(key, value)


def _new_parser() -> configparser.ConfigParser:
    parser = configparser.ConfigParser(
        dict_type=_RepeatedKeySection,
        interpolation=None,
        strict=False,
        default_section="__no_defaults__",
        delimiters=("=",),
        empty_lines_in_values=False,
        comment_prefixes=("#", ";"),
    )
    # Gerrit keys are case sensitive in practice (e.g. "Code-Review")
    parser.optionxform = str
    return parser


def format_value(value: Any) -> str:
    """Render a YAML scalar the way git-config expects it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return ""
    return str(value)


def get_values(parser: configparser.ConfigParser, section: str, key: str) -> List[str]:
    """Every value of key in section, in file order; empty if the key is absent."""
    value = parser.get(section, key, raw=True, fallback=None)
    if value is None:
        return []
    return value.split(REPEATED_VALUE_SEPARATOR)


def load_project_config(path) -> configparser.ConfigParser:
    """Parse a project.config file.

    Raises:
        ProjectConfigLoadError: If the file is unreadable or malformed
    """
    path = Path(path)
    parser = _new_parser()
    try:
        with open(path, 'r', encoding='utf-8') as f:
            parser.read_file(f, source=str(path))
    except (OSError, UnicodeDecodeError, configparser.Error) as e:
        raise ProjectConfigLoadError(path, e) from e
    return parser


def write_project_config(parser: configparser.ConfigParser, path) -> None:
    """Write a parsed project.config back in git-config layout.

    Raises:
        ProjectConfigWriteError: If the file cannot be written
    """
    path = Path(path)
    lines = []
    for section in parser.sections():
        lines.append(f"[{section}]")
        for key in parser.options(section):
            for value in get_values(parser, section, key):
                lines.append(f"\t{key} = {value}".replace("\n", "\n\t\t"))
    try:
        with open(path, 'w', encoding='utf-8') as f:
            f.write("\n".join(lines) + "\n" if lines else "")
    except OSError as e:
        raise ProjectConfigWriteError(path, e) from e


def apply_overrides(parser: configparser.ConfigParser, overrides: Dict[str, Dict[str, Any]],
                    result: MergeResult) -> MergeResult:
    """Merge override sections into an already parsed project.config.

    Sections the file does not declare are skipped, never created. Overrides
    are applied in declaration order, so later values for the same key win.
    An overridden key that appears several times in the file is replaced by
    the single override value; keys that are not overridden keep every value.
    """
    for section_name, section_body in (overrides or {}).items():
        if not parser.has_section(section_name):
            logger.debug(f"Section [{section_name}] not present in {result.path}, skipping")
            result.skipped_sections.append(section_name)
            continue

        for key, value in (section_body or {}).items():
            key = str(key)
            value = format_value(value)
            if get_values(parser, section_name, key) != [value]:
                result.changed = True
            parser.set(section_name, key, value)

        if section_name not in result.merged_sections:
            result.merged_sections.append(section_name)
        logger.debug(f"Merged section [{section_name}] into {result.path}")

    return result


def merge_sections(file_path, overrides: Dict[str, Dict[str, Any]]) -> MergeResult:
    """Merge override sections into an existing project.config file, in place.

    Args:
        file_path: Path of the project.config file
        overrides: Mapping of section name to a mapping of key/value overrides

    Returns:
        MergeResult describing which sections were merged or skipped

    Raises:
        ProjectConfigLoadError: If the file cannot be read or parsed
        ProjectConfigWriteError: If the merged file cannot be written
    """
    path = Path(file_path)
    parser = load_project_config(path)
    result = apply_overrides(parser, overrides, MergeResult(path))
    write_project_config(parser, path)
    return result
