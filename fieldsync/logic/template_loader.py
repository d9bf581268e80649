"""Template loader for inspection forms.

Parses the read-only JSON template shape `{pages: [...], logic: [...]}`
(Pages > Sections > Items) into immutable models and reports structural
issues. Issues are advisory: the evaluator already treats broken rules as
non-matching, so a template with issues still renders.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from fieldsync.models.question_kind import ConditionOperator, RuleAction
from fieldsync.models.template import Template

logger = logging.getLogger(__name__)


class TemplateError(ValueError):
    """Raised when a template document cannot be parsed into a Template."""

    def __init__(self, message: str, errors: list[dict] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


def parse_template(data: Any) -> Template:
    """Parse a template from a dict or a JSON string."""
    if isinstance(data, Template):
        return data
    if isinstance(data, (str, bytes)):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as exc:
            raise TemplateError(f"template is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise TemplateError("template must be a JSON object with 'pages' and 'logic'")
    try:
        return Template.model_validate(data)
    except PydanticValidationError as exc:
        errors = [
            {"loc": list(e.get("loc", ())), "msg": str(e.get("msg", ""))}
            for e in exc.errors()
        ]
        raise TemplateError("template failed validation", errors) from exc


def validate_template(template: Template) -> list[str]:
    """Return human-readable structural issues; empty when the template is clean."""
    issues: list[str] = []
    seen: set[str] = set()
    for item in template.iter_items():
        if item.id in seen:
            issues.append(f"duplicate item id {item.id!r}")
        seen.add(item.id)

    for idx, rule in enumerate(template.logic):
        label = rule.id or f"logic[{idx}]"
        if rule.action not in RuleAction.ALL:
            issues.append(f"{label}: unknown action {rule.action!r}")
        if rule.target_id not in seen:
            issues.append(f"{label}: unknown target {rule.target_id!r}")
        for cond in rule.conditions:
            if cond.operator not in ConditionOperator.ALL:
                issues.append(f"{label}: unknown operator {cond.operator!r}")
            if cond.question_id not in seen:
                issues.append(f"{label}: unknown question {cond.question_id!r}")
    return issues


def load_template_file(path: str | Path) -> Template:
    """Load and parse a template JSON file, logging any structural issues."""
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise TemplateError(f"cannot read template {p}: {exc}") from exc
    template = parse_template(text)
    for issue in validate_template(template):
        logger.warning("template_issue path=%s issue=%s", str(p), issue)
    return template


__all__ = ["TemplateError", "parse_template", "validate_template", "load_template_file"]
