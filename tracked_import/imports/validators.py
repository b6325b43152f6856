"""Per-entity validation and normalization of generic records.

Each validator takes a raw field mapping and returns a canonical record or
raises ValidationError. Dispatch goes through ``VALIDATORS`` keyed by entity
kind; records are never inspected to guess what they are.
"""

import json
import math
import re
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

import pydantic

from tracked_import.entities.models import EntityKind, OrganizationStatus, UserRole
from tracked_import.entities.schemas import (
    ActivityLogRecord,
    AppConfigRecord,
    CanonicalRecord,
    FeatureUsage,
    OrganizationRecord,
    PublicSettings,
    UserRecord,
)
from tracked_import.exceptions import ConfigurationError, ValidationError

INT_PREFIX = re.compile(r"^\s*([+-]?\d+)")
FLOAT_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

DATE_FORMATS = [
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%d.%m.%Y",
    "%b %d %Y",
    "%B %d, %Y",
]

FEATURE_USAGE_FIELDS = [
    "scheduling_appointments",
    "telehealth_sessions",
    "notes_created",
    "billing_transactions",
    "insurance_claims",
    "client_portal_logins",
    "measurement_assessments",
    "treatment_plans",
]

VALID_STATUSES = [s.value for s in OrganizationStatus]
VALID_ROLES = [r.value for r in UserRole]

DEFAULT_PLAN = "Starter"
DEFAULT_APP_NAME = "Practice Flow"


def _present(value: Any) -> bool:
    """Absent, None, empty string, zero and False all count as missing."""
    return bool(value)


def parse_int_or_zero(value: Any) -> int:
    """Parse the leading integer of ``value``; anything unparsable becomes 0."""
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    match = INT_PREFIX.match(str(value))
    return int(match.group(1)) if match else 0


def parse_float_or_zero(value: Any) -> float:
    """Parse the leading decimal of ``value``; anything unparsable becomes 0.0."""
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, int | float):
        return float(value) if math.isfinite(value) else 0.0
    match = FLOAT_PREFIX.match(str(value))
    if not match:
        return 0.0
    parsed = float(match.group(1))
    return parsed if math.isfinite(parsed) else 0.0


def parse_date(value: Any) -> datetime | None:
    """Leniently parse a date; returns None when nothing matches.

    Numbers are epoch milliseconds. Naive results are taken as UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, bool):
        return None
    elif isinstance(value, int | float):
        try:
            return datetime.fromtimestamp(value / 1000, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    else:
        text = str(value).strip()
        if not text:
            return None
        parsed = _parse_date_text(text)
        if parsed is None:
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _parse_date_text(text: str) -> datetime | None:
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def _parse_mapping(value: Any, field: str) -> dict:
    if not _present(value):
        return {}
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            raise ValidationError(f"{field} must be a JSON object") from None
    if not isinstance(value, Mapping):
        raise ValidationError(f"{field} must be a JSON object")
    return dict(value)


def _string_map(value: Any, field: str) -> dict[str, str]:
    """Coerce scalar map values to strings; nested values are rejected."""
    coerced = {}
    for key, item in _parse_mapping(value, field).items():
        if isinstance(item, bool):
            coerced[str(key)] = "true" if item else "false"
        elif isinstance(item, float) and item.is_integer():
            coerced[str(key)] = str(int(item))
        elif isinstance(item, str | int | float):
            coerced[str(key)] = str(item)
        else:
            raise ValidationError(f"{field}.{key} must be a string, got {type(item).__name__}")
    return coerced


def _check_enum(value: Any, valid: list[str], field: str) -> None:
    if _present(value) and value not in valid:
        raise ValidationError(
            f"Invalid {field}: {value}. Must be one of: {', '.join(valid)}"
        )


def validate_organization(record: Mapping[str, Any]) -> OrganizationRecord:
    if not _present(record.get("name")) or not _present(record.get("email")):
        raise ValidationError("Organization must have name and email")

    status = record.get("status")
    _check_enum(status, VALID_STATUSES, "status")

    churn_date = None
    if _present(record.get("churn_date")):
        churn_date = parse_date(record["churn_date"])
        if churn_date is None:
            raise ValidationError(f"Invalid churn_date: {record['churn_date']}")

    usage = {field: parse_int_or_zero(record.get(field)) for field in FEATURE_USAGE_FIELDS}
    # The legacy name wins when present, otherwise it mirrors insurance_claims.
    usage["claims_filed"] = parse_int_or_zero(
        record.get("claims_filed") or record.get("insurance_claims")
    )

    return OrganizationRecord(
        name=str(record["name"]),
        email=str(record["email"]),
        status=OrganizationStatus(status) if _present(status) else OrganizationStatus.active,
        health_score=parse_int_or_zero(record.get("health_score")),
        mrr=parse_float_or_zero(record.get("mrr")),
        plan=str(record["plan"]) if _present(record.get("plan")) else DEFAULT_PLAN,
        churn_date=churn_date,
        feature_usage=FeatureUsage(**usage),
    )


def validate_user(record: Mapping[str, Any]) -> UserRecord:
    if not _present(record.get("email")) or not _present(record.get("full_name")):
        raise ValidationError("User must have email and full_name")

    role = record.get("role")
    _check_enum(role, VALID_ROLES, "role")

    return UserRecord(
        email=str(record["email"]),
        full_name=str(record["full_name"]),
        role=UserRole(role) if _present(role) else UserRole.user,
    )


def validate_app_config(record: Mapping[str, Any]) -> AppConfigRecord:
    if not _present(record.get("app_id")):
        raise ValidationError("App config must have app_id")

    app_name = record.get("app_name")
    try:
        public_settings = PublicSettings(
            app_name=str(app_name) if _present(app_name) else DEFAULT_APP_NAME,
            features_enabled=_parse_mapping(record.get("features_enabled"), "features_enabled"),
            theme=_string_map(record.get("theme"), "theme"),
        )
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid app config settings: {exc.errors()[0]['msg']}") from exc

    return AppConfigRecord(app_id=str(record["app_id"]), public_settings=public_settings)


def validate_activity_log(record: Mapping[str, Any]) -> ActivityLogRecord:
    if not _present(record.get("user_id")) or not _present(record.get("page_name")):
        raise ValidationError("Activity log must have user_id and page_name")

    timestamp = None
    if _present(record.get("timestamp")):
        timestamp = parse_date(record["timestamp"])

    ip_address = record.get("ip_address")
    user_agent = record.get("user_agent")
    return ActivityLogRecord(
        user_id=str(record["user_id"]),
        page_name=str(record["page_name"]),
        timestamp=timestamp or datetime.now(UTC),
        ip_address=str(ip_address) if _present(ip_address) else None,
        user_agent=str(user_agent) if _present(user_agent) else None,
    )


VALIDATORS: dict[EntityKind, Callable[[Mapping[str, Any]], CanonicalRecord]] = {
    EntityKind.organizations: validate_organization,
    EntityKind.users: validate_user,
    EntityKind.app_configs: validate_app_config,
    EntityKind.activity_logs: validate_activity_log,
}


def validate_record(kind: EntityKind, record: Any) -> CanonicalRecord:
    """Validate and normalize one generic record for ``kind``."""
    validator = VALIDATORS.get(kind)
    if validator is None:
        raise ConfigurationError(f"No validator registered for entity kind '{kind}'")
    if not isinstance(record, Mapping):
        raise ValidationError(f"Record must be an object, got {type(record).__name__}")
    return validator(record)


def to_document(record: CanonicalRecord) -> dict:
    """Serialize a canonical record into its stored JSON form."""
    return record.model_dump(mode="json")
