import pytest

from services import validators
from services.validators import ValidationError


def test_new_project_requires_core_fields():
    with pytest.raises(ValidationError) as exc:
        validators.validate_new_project({"name": "Palm Bay"})
    assert exc.value.title == "שדות חובה חסרים"
    assert "שם היזם הוא שדה חובה" in exc.value.errors
    assert "מיקום הוא שדה חובה" in exc.value.errors


def test_draft_needs_only_name_and_gets_defaults():
    cleaned = validators.validate_new_project({"name": "טיוטה", "status": "draft"})
    assert cleaned["priceFrom"] == 0
    assert cleaned["propertyType"] == "apartment"


def test_project_price_normalized():
    cleaned = validators.validate_new_project(
        {"name": "A", "developer": "Emaar", "location": "Marina", "priceFrom": "1250000"}
    )
    assert cleaned["priceFrom"] == 1250000


@pytest.mark.parametrize(
    "patch",
    [
        {"constructionProgress": 120},
        {"projectStatus": "imaginary"},
        {"ownership": "rent"},
        {"status": "published"},
        {"priceFrom": -5},
    ],
)
def test_project_update_rejects_bad_values(patch):
    with pytest.raises(ValidationError):
        validators.validate_project_update(patch)


def test_lead_requires_contact_channel():
    with pytest.raises(ValidationError) as exc:
        validators.validate_lead({"name": "דני"})
    assert exc.value.title == "Validation failed"
    assert "יש להזין טלפון או אימייל" in exc.value.message


def test_lead_cleans_and_checks_contacts():
    cleaned = validators.validate_lead({"name": "  דני  ", "phone": " 050-123-4567 "})
    assert cleaned["name"] == "דני"
    assert cleaned["phone"] == "050-123-4567"
    with pytest.raises(ValidationError):
        validators.validate_lead({"name": "דני", "email": "not-an-email"})
    with pytest.raises(ValidationError):
        validators.validate_lead({"name": "דני", "phone": "12"})


def test_partial_lead_update_skips_required_checks():
    assert validators.validate_lead({"status": "contacted"}, partial=True)["status"] == "contacted"
    with pytest.raises(ValidationError):
        validators.validate_lead({"priority": "urgent"}, partial=True)
    with pytest.raises(ValidationError):
        validators.validate_lead({"tags": "vip"}, partial=True)


def test_public_lead_fields_drop_admin_only_keys():
    picked = validators.pick_public_lead_fields({"name": "a", "status": "won", "email": None, "phone": "1"})
    assert picked == {"name": "a", "phone": "1"}


def test_due_date():
    assert validators.validate_due_date("2026-11-01T10:00:00Z") == "2026-11-01T10:00:00Z"
    assert validators.validate_due_date("2026-11-01T10:00:00") == "2026-11-01T10:00:00Z"
    with pytest.raises(ValidationError) as exc:
        validators.validate_due_date("tomorrow")
    assert exc.value.title == "תאריך לא תקין"


@pytest.mark.parametrize(
    "password,ok",
    [("Secret123", True), ("short1A", False), ("alllower123", False), ("ALLUPPER123", False), ("NoDigitsHere", False)],
)
def test_password_strength(password, ok):
    assert (validators.validate_password_strength(password) is None) is ok
