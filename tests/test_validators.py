"""Tests for per-entity validation and normalization."""

from datetime import UTC, datetime

import pytest

from tracked_import.entities.models import EntityKind, OrganizationStatus, UserRole
from tracked_import.entities.schemas import (
    ActivityLogRecord,
    AppConfigRecord,
    OrganizationRecord,
    UserRecord,
)
from tracked_import.exceptions import ValidationError
from tracked_import.imports.validators import (
    VALIDATORS,
    parse_float_or_zero,
    parse_int_or_zero,
    to_document,
    validate_activity_log,
    validate_app_config,
    validate_organization,
    validate_record,
    validate_user,
)


class TestOrganization:
    def test_applies_defaults(self) -> None:
        record = validate_organization({"name": "Acme", "email": "ops@acme.test"})

        assert record.status is OrganizationStatus.active
        assert record.plan == "Starter"
        assert record.health_score == 0
        assert record.mrr == 0.0
        assert record.churn_date is None
        assert record.feature_usage.telehealth_sessions == 0

    @pytest.mark.parametrize("missing", ["name", "email"])
    def test_requires_name_and_email(self, missing: str) -> None:
        raw = {"name": "Acme", "email": "ops@acme.test"}
        raw[missing] = ""

        with pytest.raises(ValidationError, match="name and email"):
            validate_organization(raw)

    def test_rejects_unknown_status(self) -> None:
        with pytest.raises(ValidationError, match="Invalid status: paused"):
            validate_organization({"name": "Acme", "email": "a@b.c", "status": "paused"})

    def test_coerces_numbers_from_strings(self) -> None:
        record = validate_organization(
            {
                "name": "Acme",
                "email": "a@b.c",
                "health_score": "80",
                "mrr": "199.50",
                "notes_created": "12 notes",
                "treatment_plans": "n/a",
            }
        )

        assert record.health_score == 80
        assert record.mrr == 199.5
        assert record.feature_usage.notes_created == 12
        assert record.feature_usage.treatment_plans == 0

    def test_claims_filed_prefers_legacy_value(self) -> None:
        record = validate_organization(
            {"name": "A", "email": "a@b.c", "claims_filed": "7", "insurance_claims": "3"}
        )

        assert record.feature_usage.claims_filed == 7
        assert record.feature_usage.insurance_claims == 3

    def test_claims_filed_falls_back_to_insurance_claims(self) -> None:
        record = validate_organization({"name": "A", "email": "a@b.c", "insurance_claims": "3"})

        assert record.feature_usage.claims_filed == 3

    def test_claims_filed_defaults_to_zero(self) -> None:
        record = validate_organization({"name": "A", "email": "a@b.c"})

        assert record.feature_usage.claims_filed == 0

    def test_parses_churn_date(self) -> None:
        record = validate_organization(
            {"name": "A", "email": "a@b.c", "status": "churned", "churn_date": "2024-03-01"}
        )

        assert record.churn_date == datetime(2024, 3, 1, tzinfo=UTC)

    def test_rejects_unparsable_churn_date(self) -> None:
        with pytest.raises(ValidationError, match="churn_date"):
            validate_organization({"name": "A", "email": "a@b.c", "churn_date": "soon"})

    def test_does_not_mutate_input(self) -> None:
        raw = {"name": "A", "email": "a@b.c", "mrr": "10"}
        snapshot = dict(raw)

        validate_organization(raw)

        assert raw == snapshot


class TestUser:
    def test_defaults_role(self) -> None:
        record = validate_user({"email": "u@x.io", "full_name": "U"})

        assert record.role is UserRole.user

    def test_accepts_admin(self) -> None:
        assert validate_user({"email": "u@x.io", "full_name": "U", "role": "admin"}).role == "admin"

    def test_rejects_unknown_role(self) -> None:
        with pytest.raises(ValidationError, match="Invalid role"):
            validate_user({"email": "u@x.io", "full_name": "U", "role": "owner"})

    def test_requires_full_name(self) -> None:
        with pytest.raises(ValidationError, match="email and full_name"):
            validate_user({"email": "u@x.io"})


class TestAppConfig:
    def test_defaults_public_settings(self) -> None:
        record = validate_app_config({"app_id": "portal"})

        assert record.public_settings.app_name == "Practice Flow"
        assert record.public_settings.features_enabled == {}
        assert record.public_settings.theme == {}

    def test_parses_json_strings_from_csv(self) -> None:
        record = validate_app_config(
            {
                "app_id": "portal",
                "app_name": "Clinic",
                "features_enabled": '{"telehealth": true}',
                "theme": '{"primary": "#123456"}',
            }
        )

        assert record.public_settings.app_name == "Clinic"
        assert record.public_settings.features_enabled == {"telehealth": True}
        assert record.public_settings.theme == {"primary": "#123456"}

    def test_rejects_non_mapping_settings(self) -> None:
        with pytest.raises(ValidationError, match="features_enabled"):
            validate_app_config({"app_id": "portal", "features_enabled": "[1, 2]"})

    def test_requires_app_id(self) -> None:
        with pytest.raises(ValidationError, match="app_id"):
            validate_app_config({"app_name": "Clinic"})


class TestActivityLog:
    def test_parses_timestamp(self) -> None:
        record = validate_activity_log(
            {"user_id": "u1", "page_name": "dashboard", "timestamp": "2024-05-02T10:30:00Z"}
        )

        assert record.timestamp == datetime(2024, 5, 2, 10, 30, tzinfo=UTC)
        assert record.ip_address is None
        assert record.user_agent is None

    def test_epoch_milliseconds(self) -> None:
        record = validate_activity_log({"user_id": "u1", "page_name": "p", "timestamp": 0})

        # 0 counts as absent, so the record is stamped with the current time.
        assert record.timestamp.year >= 2024

        record = validate_activity_log(
            {"user_id": "u1", "page_name": "p", "timestamp": 1_700_000_000_000}
        )
        assert record.timestamp == datetime.fromtimestamp(1_700_000_000, tz=UTC)

    def test_unparsable_timestamp_defaults_to_now(self) -> None:
        before = datetime.now(UTC)

        record = validate_activity_log({"user_id": "u1", "page_name": "p", "timestamp": "later"})

        assert record.timestamp >= before

    def test_requires_user_and_page(self) -> None:
        with pytest.raises(ValidationError, match="user_id and page_name"):
            validate_activity_log({"user_id": "u1"})


def test_registry_covers_every_entity_kind() -> None:
    assert set(VALIDATORS) == set(EntityKind)


@pytest.mark.parametrize(
    ("kind", "raw", "expected_type"),
    [
        (EntityKind.organizations, {"name": "A", "email": "a@b.c"}, OrganizationRecord),
        (EntityKind.users, {"email": "u@x.io", "full_name": "U"}, UserRecord),
        (EntityKind.app_configs, {"app_id": "portal"}, AppConfigRecord),
        (EntityKind.activity_logs, {"user_id": "u", "page_name": "p"}, ActivityLogRecord),
    ],
)
def test_validate_record_dispatches_by_kind(kind, raw, expected_type) -> None:
    assert isinstance(validate_record(kind, raw), expected_type)


def test_validate_record_rejects_non_objects() -> None:
    with pytest.raises(ValidationError, match="object"):
        validate_record(EntityKind.users, ["u@x.io", "U"])


def test_to_document_is_json_ready() -> None:
    document = to_document(
        validate_organization({"name": "A", "email": "a@b.c", "churn_date": "2024-01-02"})
    )

    assert document["status"] == "active"
    assert document["churn_date"].startswith("2024-01-02T00:00:00")
    assert document["feature_usage"]["claims_filed"] == 0


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("42", 42), ("  -3x", -3), ("3.9", 3), (3.9, 3), (None, 0), ("", 0), (True, 0), ("abc", 0)],
)
def test_parse_int_or_zero(raw, expected) -> None:
    assert parse_int_or_zero(raw) == expected


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("199.5", 199.5), ("1e2", 100.0), (".5", 0.5), ("$10", 0.0), (7, 7.0), (None, 0.0)],
)
def test_parse_float_or_zero(raw, expected) -> None:
    assert parse_float_or_zero(raw) == expected


def test_theme_values_are_coerced_to_strings() -> None:
    record = validate_app_config(
        {"app_id": "portal", "theme": {"font_size": 12, "radius": 4.0, "dark": True, "ratio": 1.5}}
    )

    assert record.public_settings.theme == {
        "font_size": "12",
        "radius": "4",
        "dark": "true",
        "ratio": "1.5",
    }


def test_theme_rejects_nested_values() -> None:
    with pytest.raises(ValidationError, match="theme.palette"):
        validate_app_config({"app_id": "portal", "theme": {"palette": {"primary": "#fff"}}})
