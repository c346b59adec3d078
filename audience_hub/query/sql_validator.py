# audience_hub/query/sql_validator.py
"""Checks on SQL fragments that come from audience configuration rather than from the compiler."""

import re
from typing import List

import sqlparse

from .errors import ConfigurationError


# Patterns that have no business inside a join predicate
DANGEROUS_PATTERNS = [
    r"(?i)\bdrop\s+table\b",
    r"(?i)\bdelete\s+from\b",
    r"(?i)\binsert\s+into\b",
    r"(?i)\bupdate\s+.*\bset\b",
    r"(?i)\balter\s+table\b",
    r"(?i)\bcreate\s+table\b",
    r"(?i)\btruncate\s+table\b",
    r"(?i)\bexec\s*\(",
    r"(?i)\bexecute\s*\(",
    r"--",
    r"/\*",
]

# Bind-parameter style tokens such as `:p0`
BIND_TOKEN_PATTERN = re.compile(r"(?<!:):[A-Za-z_]\w*")


def find_join_condition_problems(join_condition: str) -> List[str]:
    """Return human-readable problems with a relationship's join predicate."""
    problems = []
    if not join_condition or not join_condition.strip():
        return ["Join condition is empty"]

    for pattern in DANGEROUS_PATTERNS:
        if re.search(pattern, join_condition):
            problems.append(f"Dangerous SQL pattern detected: {pattern}")

    bind_tokens = BIND_TOKEN_PATTERN.findall(join_condition)
    if bind_tokens:
        problems.append(f"Join condition must not contain bind parameter tokens: {', '.join(bind_tokens)}")

    if ";" in join_condition or len(sqlparse.split(join_condition)) > 1:
        problems.append("Join condition must be a single predicate, not multiple statements")

    return problems


def validate_join_condition(join_condition: str) -> str:
    """Raise ConfigurationError if the join predicate is unsafe to splice into SQL."""
    problems = find_join_condition_problems(join_condition)
    if problems:
        raise ConfigurationError(f"Invalid join condition '{join_condition}': {'; '.join(problems)}")
    return join_condition.strip()


def format_sql(sql_text: str) -> str:
    """Pretty-print SQL for display."""
    return sqlparse.format(sql_text, reindent=True, keyword_case="upper").strip()
