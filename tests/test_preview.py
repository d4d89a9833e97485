"""Tests for control descriptions and submission checks."""

from __future__ import annotations

import pytest

from formsmith.forms.document_model import (
    Field,
    FieldOption,
    FieldStyling,
    FieldType,
    FieldValidation,
    FormDocument,
)
from formsmith.forms.preview import collect_submission, describe_controls, validate_submission

from tests.helpers import START_TIME


@pytest.fixture
def document() -> FormDocument:
    return FormDocument(
        id="signup",
        title="Sign up",
        created_at=START_TIME,
        fields=[
            Field(
                id="f-name",
                name="full_name",
                label="Full Name",
                placeholder="Jane Doe",
                validation=FieldValidation(required=True, min_length=2, max_length=20),
                styling=FieldStyling(width="half"),
            ),
            Field(id="f-age", name="age", label="Age", type=FieldType.NUMBER, validation=FieldValidation(min=18, max=99)),
            Field(
                id="f-plan",
                name="plan",
                label="Plan",
                type=FieldType.SELECT,
                placeholder="ignored",
                options=[FieldOption("o1", "Basic", "basic"), FieldOption("o2", "Pro Plus", "pro_plus")],
            ),
            Field(id="f-terms", name="", label="Terms", type=FieldType.CHECKBOX),
            Field(id="f-code", name="code", label="Code", validation=FieldValidation(pattern=r"[A-Z]{3}")),
            Field(id="f-old", name="legacy", label="Legacy", disabled=True, validation=FieldValidation(required=True)),
        ],
    )


def test_describe_controls(document: FormDocument) -> None:
    controls = describe_controls(document)

    assert [control.kind for control in controls] == ["text", "number", "select", "checkbox", "text", "text"]
    name, _age, plan, terms, _code, legacy = controls
    assert name.placeholder == "Jane Doe"
    assert name.required is True
    assert name.width == "half"
    assert plan.placeholder is None
    assert plan.choices == (("basic", "Basic"), ("pro_plus", "Pro Plus"))
    assert plan.default == "basic"
    assert terms.name == "f-terms"
    assert terms.default is False
    assert terms.width == "full"
    assert legacy.disabled is True


def test_collect_submission_groups_repeated_keys() -> None:
    payload = collect_submission([("name", "Ada"), ("topic", "a"), ("topic", "b"), ("topic", "c")])

    assert payload == {"name": "Ada", "topic": ["a", "b", "c"]}


def test_valid_submission_has_no_issues(document: FormDocument) -> None:
    payload = {"full_name": "Ada", "age": "30", "plan": "basic", "code": "ABC"}

    assert validate_submission(document, payload) == []


def test_missing_required_value(document: FormDocument) -> None:
    issues = validate_submission(document, {"full_name": "   "})

    assert [(issue.field_id, issue.message) for issue in issues] == [("f-name", "Full Name is required")]


@pytest.mark.parametrize(
    ("payload", "field_id", "message"),
    [
        ({"full_name": "A"}, "f-name", "must be at least 2 characters"),
        ({"full_name": "A" * 21}, "f-name", "must be at most 20 characters"),
        ({"full_name": "Ada", "age": "12"}, "f-age", "must be at least 18"),
        ({"full_name": "Ada", "age": "120"}, "f-age", "must be at most 99"),
        ({"full_name": "Ada", "age": "old"}, "f-age", "'old' is not a number"),
        ({"full_name": "Ada", "code": "abcd"}, "f-code", "does not match '[A-Z]{3}'"),
    ],
)
def test_constraint_violations(document: FormDocument, payload: dict, field_id: str, message: str) -> None:
    issues = validate_submission(document, payload)

    assert [(issue.field_id, issue.message) for issue in issues] == [(field_id, message)]
