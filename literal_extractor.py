#!/usr/bin/env python3
"""
Literal extraction

This module scans a source tree for translatable text literals. A literal is
the quoted argument of one of the marker functions (i18n, i18nKey, i18nObj,
i18nId) that the generated runtime module exports.

Matching is purely lexical: every file is run through an ordered registry of
regular expressions, one per calling convention, and the results are
deduplicated through a key set.
"""
import os
import re
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

# Get logger
logger = logging.getLogger(__name__)

# Directory names that are never descended into
IGNORED_DIRECTORIES = frozenset(
    {
        ".git",
        "node_modules",
        "dist",
        "public",
        "assets",
        ".husky",
        "drizzle",
        "prisma",
        ".vscode",
        ".idea",
    }
)

# Only these source files are opened
SOURCE_FILE_PATTERN = re.compile(r"\.(ts|tsx)$")

# Used when a scan finds nothing so the generated modules are never empty
FALLBACK_LITERAL = "hello"

# Argument alternatives shared by the call-style patterns
_NON_EMPTY_ARGUMENT = r"(`[^`]+`|'[^']+'|\"[^\"]+\")"
_SPACED_ARGUMENT = r"(\"([^\"]*)\"|'([^']*)'|`([^`]*)`)"


@dataclass(frozen=True)
class LiteralMatcher:
    """
    One entry of the matcher registry.

    Attributes:
        name: Human readable name, used in debug logs
        pattern: Compiled expression run over the whole file content
        group: Capture group holding the argument including its delimiters
    """

    name: str
    pattern: re.Pattern
    group: int = 1

    def find_keys(self, content: str) -> Iterable[str]:
        """Yield every literal this matcher recovers from the content."""
        for match in self.pattern.finditer(content):
            argument = match.group(self.group)
            if not argument:
                continue
            key = argument[1:-1]
            if key:
                yield key


LITERAL_MATCHERS: List[LiteralMatcher] = []


def register_matcher(name: str, pattern: str, group: int = 1) -> LiteralMatcher:
    """
    Append a matcher to the registry.

    New call syntaxes are supported by registering another matcher here; the
    traversal code never needs to change.

    Args:
        name: Name of the matcher
        pattern: Regular expression source; the argument must be in `group`
        group: Capture group index holding the delimited argument

    Returns:
        The registered LiteralMatcher
    """
    matcher = LiteralMatcher(name, re.compile(pattern, re.DOTALL), group)
    LITERAL_MATCHERS.append(matcher)
    return matcher


# Direct call with a single quoted argument: i18n("Hello")
for _marker in ("i18n", "i18nId", "i18nKey", "i18nObj"):
    register_matcher(f"{_marker}-call", rf"{_marker}\({_NON_EMPTY_ARGUMENT}\)")

# Call spanning lines, with optional whitespace and trailing comma:
#   i18n(
#       "Hello",
#   )
for _marker in ("i18n", "i18nKey", "i18nObj"):
    register_matcher(
        f"{_marker}-spaced-call", rf"{_marker}\(\s*{_SPACED_ARGUMENT}\s*\)"
    )
    register_matcher(
        f"{_marker}-trailing-comma-call",
        rf"{_marker}\(\s*{_SPACED_ARGUMENT}\s*,?\s*\)",
    )

# Tagged template literal: i18n`Hello`
for _marker in ("i18n", "i18nId", "i18nObj"):
    register_matcher(f"{_marker}-template", rf"{_marker}(`[^`]+`)")


def extract_literals_from_text(
    content: str, matchers: Optional[List[LiteralMatcher]] = None
) -> List[str]:
    """
    Run every registered matcher over the content and collect unique literals.

    Each matcher sees the full content independently, so a literal written in
    two styles is found twice and recorded once. Matching is not recursive:
    a marker call written inside a literal is part of that literal's text.

    Args:
        content: The source text
        matchers: Registry to use (defaults to LITERAL_MATCHERS)

    Returns:
        Unique literals in order of first discovery
    """
    found = {}
    for matcher in matchers if matchers is not None else LITERAL_MATCHERS:
        for key in matcher.find_keys(content):
            found.setdefault(key, None)
    return list(found)


def is_source_file(file_name: str) -> bool:
    """Check a file name against the source suffix filter."""
    return bool(SOURCE_FILE_PATTERN.search(file_name))


def find_source_files(root_dir: str) -> List[Path]:
    """
    Recursively list the source files under root_dir.

    Directories in IGNORED_DIRECTORIES are pruned at any depth. Listings are
    sorted so that discovery order is stable between runs.

    Args:
        root_dir: Directory to scan

    Returns:
        List of paths to files that pass the suffix filter
    """
    source_files = []
    for current_dir, dir_names, file_names in os.walk(root_dir):
        dir_names[:] = sorted(d for d in dir_names if d not in IGNORED_DIRECTORIES)
        for file_name in sorted(file_names):
            if file_name in IGNORED_DIRECTORIES or not is_source_file(file_name):
                continue
            source_files.append(Path(current_dir) / file_name)
    return source_files


def extract_literals(root_dir: str) -> List[str]:
    """
    Collect every unique literal passed to a marker call under root_dir.

    Args:
        root_dir: Directory to scan

    Returns:
        Deduplicated literals in order of first discovery (may be empty)

    Raises:
        Exception: If a source file can't be read
    """
    found = {}
    for file_path in find_source_files(root_dir):
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                content = f.read()
        except Exception as e:
            logger.error(f"Error reading source file {file_path}: {e}")
            raise

        keys = extract_literals_from_text(content)
        if keys:
            logger.debug(f"Found {len(keys)} literals in {file_path}")
        for key in keys:
            found.setdefault(key, None)

    logger.info(f"Found {len(found)} unique literals in {root_dir}")
    return list(found)
