"""
Unit tests for inventory modules.

Tests the Tenant & Org Baseline and Identity & Access modules against
canned Graph responses, including best-effort enrichment when premium
licenses are missing.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from tenantscope.cancellation import CancellationToken
from tenantscope.graph import GraphApiError
from tenantscope.inventory import (
    IdentityAccessInventoryModule,
    TenantBaselineInventoryModule,
    get_default_inventory_modules,
)
from tenantscope.inventory.identity_access import (
    RISKY_USERS_ENDPOINT,
    SIGN_IN_ACTIVITY_ENDPOINT,
    SIGN_IN_UNAVAILABLE_MESSAGE,
    classify_group_type,
)
from tenantscope.inventory.tenant_baseline import SERVICE_HEALTH_ENDPOINT, license_display_name
from tenantscope.models import (
    ConditionalAccessPolicyInventory,
    DirectoryRoleInventory,
    GroupInventory,
    InventoryDomain,
    NamedLocationInventory,
    ServicePrincipalInventory,
    SubscribedSkuInventory,
    TenantInfo,
    UserInventory,
)
from tenantscope.models.roles import (
    GLOBAL_ADMIN_TEMPLATE_ID,
    MULTI_GEO_SERVICE_PLAN_ID,
    ODATA_SERVICE_PRINCIPAL,
    ODATA_USER,
)
from tenantscope.storage import InMemoryUnitOfWork


def _values(*items):
    return {"value": list(items)}


def _items_of(uow: InMemoryUnitOfWork, kind: type) -> list:
    return [item for item in uow.inventory.find() if isinstance(item, kind)]


def _users(count: int) -> dict:
    return _values(
        *[
            {
                "id": f"u{i}",
                "userPrincipalName": f"user{i}@contoso.com",
                "displayName": f"User {i}",
                "userType": "Member",
                "accountEnabled": True,
                "assignedLicenses": [{"skuId": "sku-e5"}],
                "createdDateTime": "2023-01-15T08:00:00Z",
            }
            for i in range(count)
        ]
    )


# ============================================================================
# Tenant baseline Tests
# ============================================================================


class TestTenantBaselineInventoryModule:
    """Tests for TenantBaselineInventoryModule."""

    @pytest.fixture
    def baseline_client(self, fake_client):
        fake_client.respond(
            "organization",
            _values(
                {
                    "id": "org-1",
                    "displayName": "Contoso Ltd",
                    "preferredDataLocation": "EUR",
                    "technicalNotificationMails": ["it@contoso.com"],
                    "verifiedDomains": [
                        {"name": "contoso.onmicrosoft.com", "isDefault": False, "isInitial": True},
                        {"name": "contoso.com", "isDefault": True, "isInitial": False},
                    ],
                    "assignedPlans": [{"servicePlanId": MULTI_GEO_SERVICE_PLAN_ID}],
                }
            ),
        )
        fake_client.respond(
            "subscribedSkus",
            _values(
                {
                    "skuId": "sku-e5",
                    "skuPartNumber": "SPE_E5",
                    "capabilityStatus": "Enabled",
                    "consumedUnits": 42,
                    "prepaidUnits": {"enabled": 50, "suspended": 0, "warning": 0},
                    "servicePlans": [{"servicePlanId": "p1", "servicePlanName": "EXCHANGE_S_ENTERPRISE"}],
                },
                {
                    "skuId": "sku-trial",
                    "skuPartNumber": "POWERAPPS_VIRAL_TRIAL",
                    "capabilityStatus": "Enabled",
                    "consumedUnits": 1,
                    "prepaidUnits": {"enabled": 10000},
                },
            ),
        )
        fake_client.respond(
            "admin/serviceAnnouncement/healthOverviews",
            _values(
                {"service": "Exchange Online", "status": "serviceDegradation", "issues": [{"id": "EX1"}, {"id": "EX2"}]},
                {"service": "Microsoft Teams", "status": "serviceOperational", "issues": []},
            ),
        )
        return fake_client

    def test_collects_organization_and_licenses(self, baseline_client) -> None:
        """Test the organization profile, SKUs and service health are persisted."""
        uow = InMemoryUnitOfWork()
        module = TenantBaselineInventoryModule()

        result = module.collect(baseline_client, "tenant-1", "snap-1", uow)

        info = _items_of(uow, TenantInfo)[0]
        skus = {s.sku_part_number: s for s in _items_of(uow, SubscribedSkuInventory)}
        assert result.success
        assert result.item_count == 3
        assert result.item_breakdown == {"Organization": 1, "Subscriptions": 2, "ServiceHealth": 2}
        assert info.primary_domain == "contoso.com"
        assert info.verified_domain_count == 2
        assert info.is_multi_geo_enabled
        assert info.active_service_issues == 2
        assert info.service_health[0] == {
            "service": "Exchange Online", "status": "serviceDegradation", "issueCount": 2
        }
        assert skus["SPE_E5"].display_name == "Microsoft 365 E5"
        assert skus["SPE_E5"].available_units == 8
        assert not skus["SPE_E5"].is_trial
        assert skus["POWERAPPS_VIRAL_TRIAL"].is_trial

    def test_service_health_failure_is_a_warning(self, baseline_client) -> None:
        """Test a service health failure keeps the rest of the baseline."""
        baseline_client.fail(SERVICE_HEALTH_ENDPOINT, GraphApiError("403 Forbidden: denied", 403))
        uow = InMemoryUnitOfWork()

        result = TenantBaselineInventoryModule().collect(baseline_client, "tenant-1", "snap-1", uow)

        assert result.success
        assert result.item_count == 3
        assert result.warnings == ["Error collecting service health: 403 Forbidden: denied"]

    def test_organization_failure(self, baseline_client) -> None:
        """Test a failed organization read still collects licenses."""
        baseline_client.fail("organization", RuntimeError("timeout"))
        uow = InMemoryUnitOfWork()

        result = TenantBaselineInventoryModule().collect(baseline_client, "tenant-1", "snap-1", uow)

        assert result.item_breakdown["Organization"] == 0
        assert result.item_count == 2
        assert "Error collecting organization info: timeout" in result.warnings

    @pytest.mark.parametrize(
        "part_number,expected",
        [("SPE_E5", "Microsoft 365 E5"), ("aad_premium_p2", "Azure AD Premium P2"), ("CUSTOM", "CUSTOM")],
    )
    def test_license_display_name(self, part_number, expected) -> None:
        """Test SKU part numbers map to friendly names."""
        assert license_display_name(part_number) == expected


# ============================================================================
# Identity & Access Tests
# ============================================================================


class TestIdentityAccessInventoryModule:
    """Tests for IdentityAccessInventoryModule."""

    @pytest.fixture
    def identity_client(self, fake_client):
        fake_client.respond("users", _users(10))
        fake_client.respond(
            SIGN_IN_ACTIVITY_ENDPOINT,
            _values(
                {"id": "u0", "signInActivity": {"lastSignInDateTime": "2024-05-01T09:30:00Z"}},
                {"id": "u1"},
            ),
        )
        fake_client.respond(
            "directoryRoles",
            _values(
                {
                    "id": "role-ga",
                    "displayName": "Global Administrator",
                    "roleTemplateId": GLOBAL_ADMIN_TEMPLATE_ID,
                    "members": [
                        {"@odata.type": ODATA_USER, "id": "u0", "displayName": "User 0",
                         "userPrincipalName": "user0@contoso.com"},
                        {"@odata.type": ODATA_SERVICE_PRINCIPAL, "id": "sp-1", "displayName": "Sync"},
                    ],
                }
            ),
        )
        fake_client.respond(
            "identityProtection/riskyUsers",
            _values({"id": "u3", "riskLevel": "high", "riskState": "atRisk"}),
        )
        fake_client.respond(
            "groups",
            _values(
                {"id": "g1", "displayName": "All Staff", "groupTypes": ["Unified"], "mailEnabled": True,
                 "securityEnabled": False},
                {"id": "g2", "displayName": "Tier0", "groupTypes": [], "securityEnabled": True,
                 "isAssignableToRole": True},
            ),
        )
        fake_client.respond(
            "groups/g1/members", _values({"id": "u0", "userType": "Member"}, {"id": "x1", "userType": "Guest"})
        )
        fake_client.respond("groups/g1/owners", _values({"id": "u0"}))
        fake_client.respond(
            "servicePrincipals",
            _values(
                {"id": "sp-1", "appId": "00000003-0000-0000-c000-000000000000", "displayName": "Microsoft Graph"},
                {"id": "sp-2", "appId": "app-2", "displayName": "Payroll", "publisherName": "Fabrikam"},
            ),
        )
        fake_client.respond(
            "identity/conditionalAccess/policies",
            _values(
                {
                    "id": "ca-1",
                    "displayName": "Block legacy auth",
                    "state": "enabled",
                    "conditions": {
                        "users": {"includeUsers": ["All"], "excludeUsers": ["bg-1"]},
                        "applications": {"includeApplications": ["All"]},
                        "clientAppTypes": ["exchangeActiveSync", "other"],
                    },
                    "grantControls": {"operator": "OR", "builtInControls": ["block"]},
                    "sessionControls": {"signInFrequency": {"isEnabled": True, "value": 12, "type": "hours"}},
                }
            ),
        )
        fake_client.respond(
            "identity/conditionalAccess/namedLocations",
            _values(
                {
                    "@odata.type": "#microsoft.graph.ipNamedLocation",
                    "id": "loc-1",
                    "displayName": "HQ",
                    "isTrusted": True,
                    "ipRanges": [{"cidrAddress": "203.0.113.0/24"}],
                },
                {
                    "@odata.type": "#microsoft.graph.countryNamedLocation",
                    "id": "loc-2",
                    "displayName": "Blocked countries",
                    "countriesAndRegions": ["KP"],
                },
            ),
        )
        return fake_client

    def test_full_collection(self, identity_client) -> None:
        """Test every entity type is persisted with the expected breakdown."""
        uow = InMemoryUnitOfWork()

        result = IdentityAccessInventoryModule().collect(identity_client, "tenant-1", "snap-1", uow)

        assert result.success
        assert result.warnings == []
        assert result.item_breakdown == {
            "Users": 10,
            "Groups": 2,
            "DirectoryRoles": 1,
            "ServicePrincipals": 2,
            "ConditionalAccessPolicies": 1,
            "NamedLocations": 2,
        }
        assert result.item_count == 18
        assert len(uow.inventory.find()) == 18

    def test_user_enrichment(self, identity_client) -> None:
        """Test sign-in, role and risk data are overlaid on matching users."""
        uow = InMemoryUnitOfWork()

        IdentityAccessInventoryModule().collect(identity_client, "tenant-1", "snap-1", uow)

        users = {u.object_id: u for u in _items_of(uow, UserInventory)}
        assert users["u0"].last_sign_in_date_time == datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)
        assert users["u0"].is_global_admin
        assert users["u0"].assigned_roles == ["Global Administrator"]
        assert users["u1"].last_sign_in_date_time is None
        assert not users["u1"].is_privileged
        assert users["u3"].risk_level == "high"
        assert users["u0"].license_count == 1

    def test_sign_in_license_gap(self, identity_client) -> None:
        """Test a missing P1 license leaves sign-in data unset with one warning."""
        identity_client.fail(
            SIGN_IN_ACTIVITY_ENDPOINT,
            GraphApiError(
                "403 Forbidden: Neither tenant is B2C or tenant doesn't have premium license",
                status_code=403,
            ),
        )
        uow = InMemoryUnitOfWork()

        result = IdentityAccessInventoryModule().collect(identity_client, "tenant-1", "snap-1", uow)

        users = _items_of(uow, UserInventory)
        assert result.success
        assert len(users) == 10
        assert all(u.last_sign_in_date_time is None for u in users)
        assert result.warnings == [SIGN_IN_UNAVAILABLE_MESSAGE]

    def test_sign_in_unauthorized_is_expected(self, identity_client) -> None:
        """Test a 401 without marker text is classified by its status code."""
        identity_client.fail(
            SIGN_IN_ACTIVITY_ENDPOINT,
            GraphApiError("401 Unauthorized: Access token validation failure", status_code=401),
        )
        uow = InMemoryUnitOfWork()

        result = IdentityAccessInventoryModule().collect(identity_client, "tenant-1", "snap-1", uow)

        assert result.success
        assert result.warnings == [SIGN_IN_UNAVAILABLE_MESSAGE]

    def test_risk_enrichment_failure(self, identity_client) -> None:
        """Test an unexpected enrichment error is reported with its text."""
        identity_client.fail(RISKY_USERS_ENDPOINT, RuntimeError("connection reset"))
        uow = InMemoryUnitOfWork()

        result = IdentityAccessInventoryModule().collect(identity_client, "tenant-1", "snap-1", uow)

        assert result.warnings == ["Error enriching users with risk: connection reset"]
        assert all(u.risk_level is None for u in _items_of(uow, UserInventory))

    def test_configured_markers(self, identity_client) -> None:
        """Test enrichment classification uses the module's markers."""
        identity_client.fail(RISKY_USERS_ENDPOINT, RuntimeError("tier not licensed for this"))
        uow = InMemoryUnitOfWork()
        module = get_default_inventory_modules(
            [InventoryDomain.IDENTITY_ACCESS], permission_markers=["tier"]
        )[0]

        result = module.collect(identity_client, "tenant-1", "snap-1", uow)

        assert result.warnings == [
            "Could not enrich users with risk - permission or license not available"
        ]

    def test_groups_and_roles(self, identity_client) -> None:
        """Test group classification, member counts and role membership."""
        uow = InMemoryUnitOfWork()

        IdentityAccessInventoryModule().collect(identity_client, "tenant-1", "snap-1", uow)

        groups = {g.object_id: g for g in _items_of(uow, GroupInventory)}
        role = _items_of(uow, DirectoryRoleInventory)[0]
        assert groups["g1"].group_type == "Microsoft365"
        assert groups["g1"].member_count == 2
        assert groups["g1"].external_member_count == 1
        assert groups["g1"].has_external_members
        assert groups["g1"].owner_count == 1
        assert groups["g2"].group_type == "Security"
        assert groups["g2"].is_role_assignable
        assert role.is_global_admin
        assert role.user_member_count == 1
        assert role.service_principal_member_count == 1
        assert role.member_count == 2

    def test_policies_locations_and_apps(self, identity_client) -> None:
        """Test derived Conditional Access, location and app flags."""
        uow = InMemoryUnitOfWork()

        IdentityAccessInventoryModule().collect(identity_client, "tenant-1", "snap-1", uow)

        policy = _items_of(uow, ConditionalAccessPolicyInventory)[0]
        locations = {loc.object_id: loc for loc in _items_of(uow, NamedLocationInventory)}
        apps = {sp.object_id: sp for sp in _items_of(uow, ServicePrincipalInventory)}
        assert policy.includes_all_users
        assert policy.includes_all_apps
        assert policy.blocks_legacy_auth
        assert policy.excluded_user_count == 1
        assert policy.sign_in_frequency == "12 hours"
        assert locations["loc-1"].location_type == "IP"
        assert locations["loc-1"].ip_ranges == ["203.0.113.0/24"]
        assert locations["loc-2"].countries_and_regions == ["KP"]
        assert apps["sp-1"].is_microsoft_first_party
        assert not apps["sp-2"].is_microsoft_first_party

    def test_ca_policies_forbidden(self, identity_client) -> None:
        """Test an unreadable policy list marks the endpoint unavailable."""
        identity_client.fail(
            "identity/conditionalAccess/policies", GraphApiError("403 Forbidden: denied", 403)
        )
        uow = InMemoryUnitOfWork()

        result = IdentityAccessInventoryModule().collect(identity_client, "tenant-1", "snap-1", uow)

        assert result.success
        assert result.unavailable_endpoints == ["conditionalAccessPolicies"]
        assert result.item_breakdown["ConditionalAccessPolicies"] == 0

    def test_cancelled(self, identity_client) -> None:
        """Test a cancelled token stops before the first step."""
        token = CancellationToken()
        token.cancel()
        uow = InMemoryUnitOfWork()

        result = IdentityAccessInventoryModule().collect(
            identity_client, "tenant-1", "snap-1", uow, cancel_token=token
        )

        assert result.item_count == 0
        assert result.warnings == ["Collection cancelled"]
        assert identity_client.requests == []

    @pytest.mark.parametrize(
        "flags,expected",
        [
            ((True, False, True), "Microsoft365"),
            ((False, True, True), "MailEnabledSecurity"),
            ((False, True, False), "Security"),
            ((False, False, True), "Distribution"),
            ((False, False, False), "Other"),
        ],
    )
    def test_classify_group_type(self, flags, expected) -> None:
        """Test group type classification."""
        assert classify_group_type(*flags) == expected


class TestInventoryRegistry:
    """Tests for get_default_inventory_modules."""

    def test_default_order(self) -> None:
        """Test built-in modules in collection order."""
        modules = get_default_inventory_modules()

        assert [m.domain for m in modules] == [
            InventoryDomain.TENANT_BASELINE,
            InventoryDomain.IDENTITY_ACCESS,
        ]

    def test_domain_filter(self) -> None:
        """Test restricting to one domain."""
        modules = get_default_inventory_modules([InventoryDomain.TENANT_BASELINE])

        assert [m.domain for m in modules] == [InventoryDomain.TENANT_BASELINE]
