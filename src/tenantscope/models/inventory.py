"""
Inventory data models for tenantscope.

Collection results, snapshots and progress for the inventory pipeline,
along with the inventory entities written by inventory modules.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from tenantscope.models.entities import generate_id
from tenantscope.models.enums import InventoryDomain, InventoryStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class InventoryCollectionResult:
    """
    Result of one inventory module run.

    Describes what was persisted rather than carrying the data itself.

    Attributes:
        domain: Inventory domain collected
        success: Whether collection completed
        error_message: Failure reason, if any
        item_count: Total items persisted
        collected_at: When collection finished
        duration_seconds: Wall-clock time spent collecting
        warnings: Recoverable problems encountered
        unavailable_endpoints: Endpoints that could not be read
        item_breakdown: Item counts per entity type
        items_added: Items new since the previous snapshot
        items_removed: Items gone since the previous snapshot
        items_modified: Items changed since the previous snapshot
    """

    domain: InventoryDomain
    success: bool
    error_message: str | None = None
    item_count: int = 0
    collected_at: datetime = field(default_factory=_utcnow)
    duration_seconds: float = 0.0
    warnings: list[str] = field(default_factory=list)
    unavailable_endpoints: list[str] = field(default_factory=list)
    item_breakdown: dict[str, int] = field(default_factory=dict)
    items_added: int | None = None
    items_removed: int | None = None
    items_modified: int | None = None

    @classmethod
    def succeeded(
        cls,
        domain: InventoryDomain,
        item_count: int,
        duration_seconds: float,
        item_breakdown: dict[str, int] | None = None,
        warnings: list[str] | None = None,
    ) -> InventoryCollectionResult:
        """Build a successful result."""
        return cls(
            domain=domain,
            success=True,
            item_count=item_count,
            duration_seconds=duration_seconds,
            item_breakdown=dict(item_breakdown or {}),
            warnings=list(warnings or []),
        )

    @classmethod
    def failed(
        cls,
        domain: InventoryDomain,
        error: str,
        duration_seconds: float = 0.0,
        warnings: list[str] | None = None,
    ) -> InventoryCollectionResult:
        """Build a failed result."""
        return cls(
            domain=domain,
            success=False,
            error_message=error,
            duration_seconds=duration_seconds,
            warnings=list(warnings or []),
        )

    @classmethod
    def partial_success(
        cls,
        domain: InventoryDomain,
        item_count: int,
        duration_seconds: float,
        unavailable_endpoints: list[str],
        item_breakdown: dict[str, int] | None = None,
        warnings: list[str] | None = None,
    ) -> InventoryCollectionResult:
        """Build a result for a collection that skipped some endpoints."""
        return cls(
            domain=domain,
            success=True,
            item_count=item_count,
            duration_seconds=duration_seconds,
            unavailable_endpoints=list(unavailable_endpoints),
            item_breakdown=dict(item_breakdown or {}),
            warnings=list(warnings or []),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "domain": self.domain.value,
            "success": self.success,
            "error_message": self.error_message,
            "item_count": self.item_count,
            "collected_at": self.collected_at.isoformat(),
            "duration_seconds": self.duration_seconds,
            "warnings": list(self.warnings),
            "unavailable_endpoints": list(self.unavailable_endpoints),
            "item_breakdown": dict(self.item_breakdown),
            "items_added": self.items_added,
            "items_removed": self.items_removed,
            "items_modified": self.items_modified,
        }


@dataclass
class InventorySnapshot:
    """Persisted record of one domain's inventory collection."""

    tenant_id: str
    domain: InventoryDomain
    collection_id: str
    id: str = field(default_factory=generate_id)
    status: InventoryStatus = InventoryStatus.PENDING
    initiated_by: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    collected_at: datetime | None = None
    item_count: int = 0
    duration_seconds: float = 0.0
    error_message: str | None = None
    warnings: list[str] = field(default_factory=list)
    item_breakdown: dict[str, int] = field(default_factory=dict)
    items_added: int | None = None
    items_removed: int | None = None
    items_modified: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "domain": self.domain.value,
            "collection_id": self.collection_id,
            "status": self.status.value,
            "initiated_by": self.initiated_by,
            "created_at": self.created_at.isoformat(),
            "collected_at": self.collected_at.isoformat() if self.collected_at else None,
            "item_count": self.item_count,
            "duration_seconds": self.duration_seconds,
            "error_message": self.error_message,
            "warnings": list(self.warnings),
            "item_breakdown": dict(self.item_breakdown),
            "items_added": self.items_added,
            "items_removed": self.items_removed,
            "items_modified": self.items_modified,
        }


@dataclass
class InventoryProgress:
    """Progress of a multi-domain inventory collection."""

    collection_id: str
    status: InventoryStatus = InventoryStatus.PENDING
    percentage: float = 0.0
    current_domain: InventoryDomain | None = None
    completed_domains: list[InventoryDomain] = field(default_factory=list)
    pending_domains: list[InventoryDomain] = field(default_factory=list)
    failed_domains: list[InventoryDomain] = field(default_factory=list)
    total_items: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "collection_id": self.collection_id,
            "status": self.status.value,
            "percentage": round(self.percentage, 1),
            "current_domain": self.current_domain.value if self.current_domain else None,
            "completed_domains": [d.value for d in self.completed_domains],
            "pending_domains": [d.value for d in self.pending_domains],
            "failed_domains": [d.value for d in self.failed_domains],
            "total_items": self.total_items,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "errors": list(self.errors),
        }


# Inventory entities

_FINGERPRINT_EXCLUDED = ("tenant_id", "snapshot_id")


@dataclass
class InventoryItem:
    """
    Base for entities persisted by inventory modules.

    Subclasses set ``object_id`` to the directory object id, which is the
    key used to compare snapshots of the same domain.
    """

    tenant_id: str
    snapshot_id: str
    object_id: str

    @property
    def item_key(self) -> str:
        """Stable key identifying the item across snapshots."""
        return f"{type(self).__name__}:{self.object_id}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    def fingerprint(self) -> str:
        """Content hash used to detect modified items between snapshots."""
        data = {
            key: value
            for key, value in self.to_dict().items()
            if key not in _FINGERPRINT_EXCLUDED
        }
        encoded = json.dumps(data, sort_keys=True, default=str).encode("utf-8")
        return hashlib.sha256(encoded).hexdigest()


@dataclass
class UserInventory(InventoryItem):
    """Directory user, enriched with sign-in, role and risk data."""

    user_principal_name: str = ""
    display_name: str | None = None
    mail: str | None = None
    user_type: str = "Member"
    account_enabled: bool = False
    created_date_time: datetime | None = None
    department: str | None = None
    job_title: str | None = None
    usage_location: str | None = None
    on_premises_sync_enabled: bool = False
    assigned_licenses: list[str] = field(default_factory=list)
    license_count: int = 0
    last_sign_in_date_time: datetime | None = None
    last_non_interactive_sign_in_date_time: datetime | None = None
    assigned_roles: list[str] = field(default_factory=list)
    direct_role_count: int = 0
    is_privileged: bool = False
    is_global_admin: bool = False
    risk_level: str | None = None
    risk_state: str | None = None
    risk_detail: str | None = None
    risk_last_updated: datetime | None = None


@dataclass
class GroupInventory(InventoryItem):
    """Directory group with member and owner counts."""

    display_name: str = ""
    description: str | None = None
    mail: str | None = None
    group_type: str = "Other"
    is_security_group: bool = False
    is_mail_enabled: bool = False
    is_microsoft_365_group: bool = False
    is_dynamic_membership: bool = False
    membership_rule: str | None = None
    visibility: str | None = None
    is_role_assignable: bool = False
    on_premises_sync_enabled: bool = False
    created_date_time: datetime | None = None
    member_count: int = 0
    owner_count: int = 0
    has_external_members: bool = False
    external_member_count: int = 0


@dataclass
class DirectoryRoleInventory(InventoryItem):
    """Activated directory role and its membership breakdown."""

    role_template_id: str = ""
    display_name: str = ""
    description: str | None = None
    is_privileged: bool = False
    is_global_admin: bool = False
    member_count: int = 0
    user_member_count: int = 0
    service_principal_member_count: int = 0
    group_member_count: int = 0
    user_members: list[dict[str, Any]] = field(default_factory=list)
    service_principal_members: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class ServicePrincipalInventory(InventoryItem):
    """Enterprise application / service principal."""

    app_id: str = ""
    display_name: str = ""
    service_principal_type: str = ""
    account_enabled: bool = False
    publisher_name: str | None = None
    verified_publisher: str | None = None
    app_owner_organization_id: str | None = None
    sign_in_audience: str | None = None
    created_date_time: datetime | None = None
    is_app_role_assignment_required: bool = False
    is_microsoft_first_party: bool = False
    tags: list[str] = field(default_factory=list)


@dataclass
class ConditionalAccessPolicyInventory(InventoryItem):
    """Conditional Access policy with derived control flags."""

    display_name: str = ""
    state: str = ""
    created_date_time: datetime | None = None
    modified_date_time: datetime | None = None
    include_users: list[str] = field(default_factory=list)
    exclude_users: list[str] = field(default_factory=list)
    include_roles: list[str] = field(default_factory=list)
    includes_all_users: bool = False
    includes_all_apps: bool = False
    includes_office_365: bool = False
    includes_legacy_clients: bool = False
    excluded_user_count: int = 0
    excluded_group_count: int = 0
    grant_control_operator: str | None = None
    requires_mfa: bool = False
    requires_compliant_device: bool = False
    requires_hybrid_join: bool = False
    requires_password_change: bool = False
    blocks_access: bool = False
    blocks_legacy_auth: bool = False
    has_sign_in_frequency: bool = False
    sign_in_frequency: str | None = None


@dataclass
class NamedLocationInventory(InventoryItem):
    """Conditional Access named location (IP ranges or countries)."""

    display_name: str = ""
    location_type: str | None = None
    is_trusted: bool = False
    ip_ranges: list[str] = field(default_factory=list)
    countries_and_regions: list[str] = field(default_factory=list)
    include_unknown_countries_and_regions: bool = False
    created_date_time: datetime | None = None
    modified_date_time: datetime | None = None


@dataclass
class TenantInfo(InventoryItem):
    """Organization profile of the tenant."""

    display_name: str = ""
    primary_domain: str | None = None
    verified_domains: list[dict[str, Any]] = field(default_factory=list)
    verified_domain_count: int = 0
    technical_notification_mails: list[str] = field(default_factory=list)
    preferred_data_location: str | None = None
    default_usage_location: str | None = None
    is_multi_geo_enabled: bool = False
    service_health: list[dict[str, Any]] = field(default_factory=list)
    active_service_issues: int = 0


@dataclass
class SubscribedSkuInventory(InventoryItem):
    """License subscription (subscribed SKU)."""

    sku_part_number: str = ""
    display_name: str = ""
    applies_to: str | None = None
    capability_status: str | None = None
    prepaid_units: int = 0
    suspended_units: int = 0
    warning_units: int = 0
    consumed_units: int = 0
    available_units: int = 0
    is_trial: bool = False
    service_plans: list[dict[str, Any]] = field(default_factory=list)
