import pytest

from app.core.errors import ValidationFailed
from app.models import ApplicationFilter
from app.services.application_filters import (
    FILTER_PREDICATES,
    build_filter_clauses,
    page_count,
    parse_filters,
)


class TestParseFilters:
    @pytest.mark.parametrize("raw", [None, ""])
    def test_missing_filters(self, raw: str | None) -> None:
        assert parse_filters(raw) == []

    def test_valid_filters(self) -> None:
        filters = parse_filters(
            '[{"field": "status", "value": "pending"},'
            ' {"field": "applicantName", "value": "Ada"}]'
        )
        assert filters == [
            ApplicationFilter(field="status", value="pending"),
            ApplicationFilter(field="applicantName", value="Ada"),
        ]

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            '{"field": "status", "value": "pending"}',
            '[{"value": "pending"}]',
            '[{"field": "", "value": "pending"}]',
            '["status"]',
        ],
    )
    def test_malformed_filters(self, raw: str) -> None:
        with pytest.raises(ValidationFailed) as exc_info:
            parse_filters(raw)
        assert exc_info.value.status_code == 400


class TestBuildFilterClauses:
    def test_registry_fields(self) -> None:
        assert set(FILTER_PREDICATES) == {
            "status",
            "course_of_study",
            "faculty",
            "department",
            "applicantName",
            "matriculationNumber",
        }

    def test_unknown_fields_are_ignored(self) -> None:
        clauses = build_filter_clauses(
            [
                ApplicationFilter(field="status", value="rejected"),
                ApplicationFilter(field="favouriteColour", value="blue"),
            ]
        )
        assert len(clauses) == 1
        assert "application_hash.status" in str(clauses[0])

    def test_faculty_is_an_alias_for_course_of_study(self) -> None:
        (faculty,) = build_filter_clauses([ApplicationFilter(field="faculty", value="x")])
        (course,) = build_filter_clauses(
            [ApplicationFilter(field="course_of_study", value="x")]
        )
        assert str(faculty) == str(course)

    def test_applicant_name_matches_either_name(self) -> None:
        (clause,) = build_filter_clauses(
            [ApplicationFilter(field="applicantName", value="50%_off")]
        )
        sql = str(clause)
        assert "application.firstname" in sql
        assert "application.surname" in sql
        assert "ESCAPE" in sql


class TestPageCount:
    @pytest.mark.parametrize(
        "total,size,expected",
        [(0, 10, 0), (1, 10, 1), (10, 10, 1), (11, 10, 2), (25, 5, 5)],
    )
    def test_rounds_up(self, total: int, size: int, expected: int) -> None:
        assert page_count(total, size) == expected
