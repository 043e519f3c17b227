from typing import Sequence

from portal.config import settings
from portal.core.errors import ValidationFailedError


def validate_workflow_stages(stage_names: Sequence[str]) -> list[str]:
    """Check a proposed stage list and return the trimmed names.

    Raises ValidationFailedError with one ``{path, message}`` entry per problem.
    """
    issues = []
    names = [name.strip() for name in stage_names]

    if len(names) < settings.REVIEW_WORKFLOW_MIN_STAGES:
        issues.append({
            "path": ["stages"],
            "message": f"Workflow must contain at least {settings.REVIEW_WORKFLOW_MIN_STAGES} stages",
        })
    if len(names) > settings.REVIEW_WORKFLOW_MAX_STAGES:
        issues.append({
            "path": ["stages"],
            "message": f"Workflow must contain at most {settings.REVIEW_WORKFLOW_MAX_STAGES} stages",
        })

    seen = set()
    for index, name in enumerate(names):
        if not name:
            issues.append({"path": ["stages", index, "name"], "message": "Stage name is required"})
            continue
        if len(name) > settings.REVIEW_STAGE_NAME_MAX_LENGTH:
            issues.append({
                "path": ["stages", index, "name"],
                "message": f"Stage name must not exceed {settings.REVIEW_STAGE_NAME_MAX_LENGTH} characters",
            })
        normalized = name.lower()
        if normalized in seen:
            issues.append({
                "path": ["stages", index, "name"],
                "message": "Stage names must be unique within the workflow",
            })
        seen.add(normalized)

    if issues:
        raise ValidationFailedError(details=issues)
    return names
