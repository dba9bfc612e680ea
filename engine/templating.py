"""
``{{variable}}`` expansion for email subjects and bodies.

Supports dotted names (``{{deal.title}}``) and a fallback written as
``{{firstName || 'there'}}``. Unknown variables without a fallback are left in
place so a broken template is visible in the sent message.
"""

import re
from typing import Any, Dict

from .conditions import resolve_field

_VARIABLE = re.compile(r"\{\{([^}]+)\}\}")


def template_variables(entity_type: str, entity: Dict[str, Any]) -> Dict[str, Any]:
    variables: Dict[str, Any] = dict(entity)
    variables[entity_type] = entity
    if entity_type == "contact":
        full_name = f"{entity.get('firstName') or ''} {entity.get('lastName') or ''}".strip()
        variables["fullName"] = full_name
    contact = entity.get("contact")
    if entity_type == "deal" and isinstance(contact, dict):
        variables.setdefault("firstName", contact.get("firstName"))
        variables.setdefault("lastName", contact.get("lastName"))
    return variables


def render_template(template: str, variables: Dict[str, Any]) -> str:
    def substitute(match: re.Match) -> str:
        expression = match.group(1).strip()
        if "||" in expression:
            name, fallback = (part.strip() for part in expression.split("||", 1))
            value = resolve_field(name, variables)
            return str(value) if value not in (None, "") else fallback.strip("'\"")
        value = resolve_field(expression, variables)
        return str(value) if value not in (None, "") else match.group(0)

    return _VARIABLE.sub(substitute, template)
