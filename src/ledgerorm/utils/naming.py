"""
Naming utilities used to derive default table and column names.
"""

import re


_FIRST_CAP_RE = re.compile("(.)([A-Z][a-z]+)")
_ALL_CAP_RE = re.compile("([a-z0-9])([A-Z])")


def camel_to_snake(name: str) -> str:
    """
    Convert ``CamelCase`` names to ``snake_case``.
    """
    step1 = _FIRST_CAP_RE.sub(r"\1_\2", name)
    return _ALL_CAP_RE.sub(r"\1_\2", step1).lower()


def default_table_name(entity_type: type) -> str:
    return camel_to_snake(entity_type.__name__)


def default_join_column(field_name: str, referenced_column: str = "id") -> str:
    return f"{camel_to_snake(field_name)}_{referenced_column}"


def default_join_table(source_table: str, target_table: str) -> str:
    return f"{source_table}_{target_table}"
