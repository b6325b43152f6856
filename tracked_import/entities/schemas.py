from datetime import datetime
from typing import ClassVar

from pydantic import BaseModel, Field

from tracked_import.entities.models import EntityKind, OrganizationStatus, UserRole


class FeatureUsage(BaseModel):
    scheduling_appointments: int = 0
    telehealth_sessions: int = 0
    notes_created: int = 0
    billing_transactions: int = 0
    insurance_claims: int = 0
    claims_filed: int = 0  # legacy name, backfilled from insurance_claims
    client_portal_logins: int = 0
    measurement_assessments: int = 0
    treatment_plans: int = 0


class OrganizationRecord(BaseModel):
    kind: ClassVar[EntityKind] = EntityKind.organizations

    name: str
    email: str
    status: OrganizationStatus = OrganizationStatus.active
    health_score: int = 0
    mrr: float = 0.0
    plan: str = "Starter"
    churn_date: datetime | None = None
    feature_usage: FeatureUsage = Field(default_factory=FeatureUsage)


class UserRecord(BaseModel):
    kind: ClassVar[EntityKind] = EntityKind.users

    email: str
    full_name: str
    role: UserRole = UserRole.user


class PublicSettings(BaseModel):
    app_name: str = "Practice Flow"
    features_enabled: dict[str, bool] = Field(default_factory=dict)
    theme: dict[str, str] = Field(default_factory=dict)


class AppConfigRecord(BaseModel):
    kind: ClassVar[EntityKind] = EntityKind.app_configs

    app_id: str
    public_settings: PublicSettings = Field(default_factory=PublicSettings)


class ActivityLogRecord(BaseModel):
    kind: ClassVar[EntityKind] = EntityKind.activity_logs

    user_id: str
    page_name: str
    timestamp: datetime
    ip_address: str | None = None
    user_agent: str | None = None


CanonicalRecord = OrganizationRecord | UserRecord | AppConfigRecord | ActivityLogRecord


class EntityCounts(BaseModel):
    counts: dict[str, int]
    total: int


class DocumentPage(BaseModel):
    entity_kind: str
    total: int
    limit: int
    offset: int
    items: list[dict]
