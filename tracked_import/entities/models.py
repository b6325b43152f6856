from enum import StrEnum


class EntityKind(StrEnum):
    organizations = "organizations"
    users = "users"
    app_configs = "app_configs"
    activity_logs = "activity_logs"


class OrganizationStatus(StrEnum):
    active = "active"
    at_risk = "at_risk"
    churned = "churned"


class UserRole(StrEnum):
    admin = "admin"
    user = "user"


# One collection (table) per entity kind.
COLLECTIONS: dict[EntityKind, str] = {
    EntityKind.organizations: "organizations",
    EntityKind.users: "users",
    EntityKind.app_configs: "app_configs",
    EntityKind.activity_logs: "activity_logs",
}

# JSON paths that carry a storage-level uniqueness constraint.
UNIQUE_KEYS: dict[EntityKind, str | None] = {
    EntityKind.organizations: "$.email",
    EntityKind.users: "$.email",
    EntityKind.app_configs: "$.app_id",
    EntityKind.activity_logs: None,
}
