import json
import math
from collections.abc import Callable, Iterable

from pydantic import ValidationError
from sqlalchemy import ColumnElement, or_
from sqlmodel import col

from app.core.errors import ValidationFailed
from app.models import Application, ApplicationFilter, ApplicationReviewState

FilterPredicate = Callable[[str], ColumnElement[bool]]


def _status_equals(value: str) -> ColumnElement[bool]:
    return col(ApplicationReviewState.status) == value


def _course_of_study_equals(value: str) -> ColumnElement[bool]:
    return col(Application.course_of_study) == value


def _department_equals(value: str) -> ColumnElement[bool]:
    return col(Application.department) == value


def _applicant_name_contains(value: str) -> ColumnElement[bool]:
    return or_(
        col(Application.firstname).contains(value, autoescape=True),
        col(Application.surname).contains(value, autoescape=True),
    )


def _matriculation_number_equals(value: str) -> ColumnElement[bool]:
    return col(Application.matriculation_number) == value


FILTER_PREDICATES: dict[str, FilterPredicate] = {
    "status": _status_equals,
    "course_of_study": _course_of_study_equals,
    "faculty": _course_of_study_equals,
    "department": _department_equals,
    "applicantName": _applicant_name_contains,
    "matriculationNumber": _matriculation_number_equals,
}


def parse_filters(raw: str | None) -> list[ApplicationFilter]:
    """Decode the ``filters`` query parameter (a JSON array of field/value pairs)."""
    if not raw:
        return []
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValidationFailed("filters must be a JSON array") from exc
    if not isinstance(decoded, list):
        raise ValidationFailed("filters must be a JSON array")
    try:
        return [ApplicationFilter.model_validate(item) for item in decoded]
    except ValidationError as exc:
        raise ValidationFailed(
            "Each filter needs a non-empty 'field' and a string 'value'"
        ) from exc


def build_filter_clauses(
    filters: Iterable[ApplicationFilter],
) -> list[ColumnElement[bool]]:
    clauses: list[ColumnElement[bool]] = []
    for application_filter in filters:
        predicate = FILTER_PREDICATES.get(application_filter.field)
        if predicate is None:
            continue
        clauses.append(predicate(application_filter.value))
    return clauses


def page_count(total_items: int, page_size: int) -> int:
    return math.ceil(total_items / page_size)
