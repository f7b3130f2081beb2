"""Placeholder parsing and substitution for clause text.

Supports `{{name}}` variables and `{{#if name}}...{{/if}}` conditional
blocks. Substitution is single pass: substituted values are never
re-scanned for tokens.
"""

import re
from typing import Dict, Iterable, List, Optional

from ..errors import UnresolvedVariableError

VARIABLE_PATTERN = re.compile(r"\{\{(\w+)\}\}")
CONDITIONAL_PATTERN = re.compile(r"\{\{#if (\w+)\}\}(.*?)\{\{/if\}\}", re.DOTALL)
_ANY_TOKEN = re.compile(r"\{\{(.*?)\}\}", re.DOTALL)


def extract_variables(content: str) -> List[str]:
    """
    Return placeholder names in order of first appearance.

    Conditional block names count as variables.
    """
    names: List[str] = []
    for match in re.finditer(r"\{\{(?:#if )?(\w+)\}\}", content or ""):
        if match.group(1) not in names:
            names.append(match.group(1))
    return names


def find_malformed_tokens(content: str) -> List[str]:
    """Tokens between `{{` and `}}` that are neither variables nor conditional markers."""
    malformed = []
    for match in _ANY_TOKEN.finditer(content or ""):
        inner = match.group(1)
        if re.fullmatch(r"\w+", inner) or re.fullmatch(r"#if \w+", inner) or inner == "/if":
            continue
        malformed.append(match.group(0))
    return malformed


def validate_placeholders(content: str, declared: Iterable[str]) -> List[str]:
    """
    Check the placeholder invariant of a template.

    Args:
        content: Template text.
        declared: Declared variable names.

    Returns:
        Offending tokens: undeclared variables and malformed tokens. Empty
        when the content is valid.
    """
    declared_set = set(declared or [])
    offending = [
        "{{%s}}" % name for name in extract_variables(content)
        if name not in declared_set
    ]
    offending.extend(find_malformed_tokens(content))
    return offending


def substitute(
    content: str,
    values: Dict[str, str],
    clause_id: Optional[str] = None,
) -> str:
    """
    Render conditional blocks and substitute variables.

    A conditional block is kept when its variable resolves to a non-empty
    string and dropped otherwise.

    Raises:
        UnresolvedVariableError: A referenced name is not in `values`, or
            the result still contains `{{` or `}}`.
    """
    def render_conditional(match: "re.Match") -> str:
        name = match.group(1)
        if name not in values:
            raise UnresolvedVariableError(
                f"Unresolved conditional variable '{name}'",
                entity_id=clause_id,
                token=name,
                clause_id=clause_id,
            )
        return match.group(2) if values[name] else ""

    def render_variable(match: "re.Match") -> str:
        name = match.group(1)
        if name not in values:
            raise UnresolvedVariableError(
                f"Unresolved variable '{name}'",
                entity_id=clause_id,
                token=name,
                clause_id=clause_id,
            )
        return str(values[name])

    text = CONDITIONAL_PATTERN.sub(render_conditional, content or "")

    # Anything left between braces that is not a plain variable cannot be resolved.
    residue = VARIABLE_PATTERN.sub("", text)
    if "{{" in residue or "}}" in residue:
        stray = _ANY_TOKEN.search(residue)
        token = stray.group(0) if stray else ("{{" if "{{" in residue else "}}")
        raise UnresolvedVariableError(
            f"Malformed placeholder {token}",
            entity_id=clause_id,
            token=token,
            clause_id=clause_id,
        )

    return VARIABLE_PATTERN.sub(render_variable, text)
