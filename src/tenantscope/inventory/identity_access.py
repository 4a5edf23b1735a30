"""
Identity & Access inventory module.

Collects users, groups, directory roles, service principals, Conditional
Access policies and named locations. Users are enriched with sign-in
activity, role membership and risk state; each enrichment is best-effort
and only ever adds a warning when it fails.
"""

from __future__ import annotations

import time
from typing import Any

from tenantscope.cancellation import CancellationToken, is_cancelled
from tenantscope.collection.enrichment import build_lookup, overlay, run_enrichment
from tenantscope.collection.pagination import collect_all_pages, collect_pages
from tenantscope.graph.client import GraphClient
from tenantscope.graph.document import RawDocument
from tenantscope.inventory.base import BaseInventoryModule
from tenantscope.models import (
    ConditionalAccessPolicyInventory,
    DirectoryRoleInventory,
    GroupInventory,
    InventoryCollectionResult,
    InventoryDomain,
    NamedLocationInventory,
    ServicePrincipalInventory,
    UserInventory,
)
from tenantscope.models.roles import (
    GLOBAL_ADMIN_ROLE_NAME,
    GLOBAL_ADMIN_TEMPLATE_ID,
    MICROSOFT_FIRST_PARTY_APP_IDS,
    MICROSOFT_TENANT_ID,
    PRIVILEGED_ROLE_TEMPLATE_IDS,
)
from tenantscope.storage.base import UnitOfWork

USERS_ENDPOINT = (
    "users?$select=id,userPrincipalName,displayName,mail,userType,accountEnabled,"
    "createdDateTime,assignedLicenses,department,jobTitle,usageLocation,"
    "onPremisesSyncEnabled&$top=999"
)
SIGN_IN_ACTIVITY_ENDPOINT = "users?$select=id,signInActivity&$top=999"
USER_ROLES_ENDPOINT = "directoryRoles?$expand=members($select=id)"
RISKY_USERS_ENDPOINT = (
    "identityProtection/riskyUsers?$select=id,userPrincipalName,riskLevel,"
    "riskState,riskDetail,riskLastUpdatedDateTime&$top=999"
)
GROUPS_ENDPOINT = (
    "groups?$select=id,displayName,description,mail,groupTypes,securityEnabled,"
    "mailEnabled,membershipRule,visibility,createdDateTime,onPremisesSyncEnabled,"
    "isAssignableToRole&$top=999"
)
DIRECTORY_ROLES_ENDPOINT = (
    "directoryRoles?$expand=members($select=id,displayName,userPrincipalName)"
)
SERVICE_PRINCIPALS_ENDPOINT = (
    "servicePrincipals?$select=id,appId,displayName,servicePrincipalType,"
    "accountEnabled,publisherName,verifiedPublisher,appOwnerOrganizationId,"
    "createdDateTime,signInAudience,tags,appRoleAssignmentRequired&$top=999"
)
CA_POLICIES_ENDPOINT = "identity/conditionalAccess/policies"
NAMED_LOCATIONS_ENDPOINT = "identity/conditionalAccess/namedLocations"

SIGN_IN_UNAVAILABLE_MESSAGE = (
    "Sign-in activity data not available - requires Azure AD Premium P1/P2 license"
)

LEGACY_CLIENT_APP_TYPES = frozenset({"exchangeActiveSync", "other"})


def _fetch_document(client: GraphClient, endpoint: str) -> RawDocument | None:
    return RawDocument.parse(client.get_raw_json(endpoint))


def classify_group_type(
    is_microsoft_365: bool, is_security: bool, is_mail_enabled: bool
) -> str:
    """
    Derive the display group type from a group's flags.

    >>> classify_group_type(False, True, True)
    'MailEnabledSecurity'
    """
    if is_microsoft_365:
        return "Microsoft365"
    if is_security and is_mail_enabled:
        return "MailEnabledSecurity"
    if is_security:
        return "Security"
    if is_mail_enabled:
        return "Distribution"
    return "Other"


class IdentityAccessInventoryModule(BaseInventoryModule):
    """Inventory module for Entra ID identities and access configuration."""

    domain = InventoryDomain.IDENTITY_ACCESS
    display_name = "Identity & Access"
    description = (
        "Collects users, groups, roles, service principals, CA policies, "
        "and authentication settings."
    )
    required_permissions = (
        "User.Read.All",
        "Group.Read.All",
        "Directory.Read.All",
        "RoleManagement.Read.Directory",
        "Policy.Read.All",
        "Application.Read.All",
        "IdentityRiskyUser.Read.All",
    )

    def collect(
        self,
        client: GraphClient,
        tenant_id: str,
        snapshot_id: str,
        unit_of_work: UnitOfWork,
        cancel_token: CancellationToken | None = None,
    ) -> InventoryCollectionResult:
        started = time.time()
        warnings: list[str] = []
        unavailable: list[str] = []
        breakdown: dict[str, int] = {}

        steps = (
            ("Users", self._collect_users),
            ("Groups", self._collect_groups),
            ("DirectoryRoles", self._collect_directory_roles),
            ("ServicePrincipals", self._collect_service_principals),
            ("ConditionalAccessPolicies", self._collect_ca_policies),
            ("NamedLocations", self._collect_named_locations),
        )

        try:
            for name, step in steps:
                if is_cancelled(cancel_token):
                    warnings.append("Collection cancelled")
                    break
                items = step(client, tenant_id, snapshot_id, warnings, unavailable, cancel_token)
                unit_of_work.inventory.add_many(items)
                breakdown[name] = len(items)
                self._logger.info(f"Collected {len(items)} {name}")

            return self.success(
                sum(breakdown.values()),
                started,
                item_breakdown=breakdown,
                warnings=warnings,
                unavailable_endpoints=unavailable,
            )
        except Exception as e:
            self._logger.error(f"Error collecting identity inventory for tenant {tenant_id}: {e}")
            return self.failure(str(e), started, warnings)

    # Users

    def _collect_users(
        self,
        client: GraphClient,
        tenant_id: str,
        snapshot_id: str,
        warnings: list[str],
        unavailable: list[str],
        cancel_token: CancellationToken | None,
    ) -> list[UserInventory]:
        pages = collect_pages(
            client,
            USERS_ENDPOINT,
            convert=lambda doc: self._parse_user(doc, tenant_id, snapshot_id),
            warnings=warnings,
            cancel_token=cancel_token,
            label="users",
        )
        if pages.pages_fetched == 0 and pages.error is not None:
            unavailable.append("users")
        users: list[UserInventory] = pages.items
        if not users:
            return users

        run_enrichment(
            "users with sign-in activity",
            lambda: self._enrich_sign_in_activity(client, users, cancel_token),
            warnings,
            unavailable_message=SIGN_IN_UNAVAILABLE_MESSAGE,
            markers=self.permission_markers,
        )
        run_enrichment(
            "users with roles",
            lambda: self._enrich_roles(client, users),
            warnings,
            markers=self.permission_markers,
        )
        run_enrichment(
            "users with risk",
            lambda: self._enrich_risk(client, users),
            warnings,
            markers=self.permission_markers,
        )
        return users

    def _parse_user(
        self, doc: RawDocument, tenant_id: str, snapshot_id: str
    ) -> UserInventory:
        licenses = [
            sku
            for sku in (lic.get_string("skuId") for lic in doc.get_documents("assignedLicenses"))
            if sku
        ]
        user = UserInventory(
            tenant_id=tenant_id,
            snapshot_id=snapshot_id,
            object_id=doc.get_string("id", ""),
            user_principal_name=doc.get_string("userPrincipalName", ""),
            display_name=doc.get_string("displayName"),
            mail=doc.get_string("mail"),
            user_type=doc.get_string("userType", "Member"),
            account_enabled=doc.get_bool("accountEnabled"),
            created_date_time=doc.get_datetime("createdDateTime"),
            department=doc.get_string("department"),
            job_title=doc.get_string("jobTitle"),
            usage_location=doc.get_string("usageLocation"),
            on_premises_sync_enabled=doc.get_bool("onPremisesSyncEnabled"),
            assigned_licenses=licenses,
            license_count=len(licenses),
        )
        sign_in = doc.get_document("signInActivity")
        if sign_in is not None:
            user.last_sign_in_date_time = sign_in.get_datetime("lastSignInDateTime")
            user.last_non_interactive_sign_in_date_time = sign_in.get_datetime(
                "lastNonInteractiveSignInDateTime"
            )
        return user

    def _enrich_sign_in_activity(
        self,
        client: GraphClient,
        users: list[UserInventory],
        cancel_token: CancellationToken | None,
    ) -> None:
        # Raises on the first failed page so the pass is reported as a whole
        pages = collect_pages(client, SIGN_IN_ACTIVITY_ENDPOINT, cancel_token=cancel_token)
        if pages.exception is not None:
            raise pages.exception

        lookup = build_lookup(
            (doc for doc in pages.items if doc.get_document("signInActivity") is not None),
            lambda doc: doc.get_document("signInActivity"),
        )

        def apply(user: UserInventory, sign_in: RawDocument) -> None:
            user.last_sign_in_date_time = sign_in.get_datetime("lastSignInDateTime")
            user.last_non_interactive_sign_in_date_time = sign_in.get_datetime(
                "lastNonInteractiveSignInDateTime"
            )

        matched = overlay(users, lookup, lambda u: u.object_id, apply)
        self._logger.info(f"Enriched {matched} users with sign-in activity")

    def _enrich_roles(self, client: GraphClient, users: list[UserInventory]) -> None:
        document = _fetch_document(client, USER_ROLES_ENDPOINT)
        if document is None:
            return

        user_roles: dict[str, list[str]] = {}
        for role in document.items():
            role_name = role.get_string("displayName")
            for member in role.get_documents("members"):
                member_id = member.get_string("id")
                if not member_id:
                    continue
                roles = user_roles.setdefault(member_id, [])
                if role_name:
                    roles.append(role_name)

        def apply(user: UserInventory, roles: list[str]) -> None:
            user.assigned_roles = list(roles)
            user.direct_role_count = len(roles)
            user.is_privileged = True
            user.is_global_admin = GLOBAL_ADMIN_ROLE_NAME in roles

        overlay(users, user_roles, lambda u: u.object_id, apply)

    def _enrich_risk(self, client: GraphClient, users: list[UserInventory]) -> None:
        document = _fetch_document(client, RISKY_USERS_ENDPOINT)
        if document is None:
            return

        def apply(user: UserInventory, risky: RawDocument) -> None:
            user.risk_level = risky.get_string("riskLevel")
            user.risk_state = risky.get_string("riskState")
            user.risk_detail = risky.get_string("riskDetail")
            user.risk_last_updated = risky.get_datetime("riskLastUpdatedDateTime")

        overlay(users, build_lookup(document.items(), lambda d: d), lambda u: u.object_id, apply)

    # Groups

    def _collect_groups(
        self,
        client: GraphClient,
        tenant_id: str,
        snapshot_id: str,
        warnings: list[str],
        unavailable: list[str],
        cancel_token: CancellationToken | None,
    ) -> list[GroupInventory]:
        groups: list[GroupInventory] = collect_all_pages(
            client,
            GROUPS_ENDPOINT,
            convert=lambda doc: self._parse_group(doc, tenant_id, snapshot_id),
            warnings=warnings,
            cancel_token=cancel_token,
            label="groups",
        )

        for group in groups:
            if is_cancelled(cancel_token):
                break
            try:
                self._count_group_members(client, group)
            except Exception as e:
                self._logger.debug(
                    f"Could not get member/owner counts for group {group.object_id}: {e}"
                )
        return groups

    def _parse_group(
        self, doc: RawDocument, tenant_id: str, snapshot_id: str
    ) -> GroupInventory:
        group_types = doc.get_strings("groupTypes")
        is_security = doc.get_bool("securityEnabled")
        is_mail_enabled = doc.get_bool("mailEnabled")
        is_microsoft_365 = "Unified" in group_types
        return GroupInventory(
            tenant_id=tenant_id,
            snapshot_id=snapshot_id,
            object_id=doc.get_string("id", ""),
            display_name=doc.get_string("displayName", ""),
            description=doc.get_string("description"),
            mail=doc.get_string("mail"),
            group_type=classify_group_type(is_microsoft_365, is_security, is_mail_enabled),
            is_security_group=is_security,
            is_mail_enabled=is_mail_enabled,
            is_microsoft_365_group=is_microsoft_365,
            is_dynamic_membership="DynamicMembership" in group_types,
            membership_rule=doc.get_string("membershipRule"),
            visibility=doc.get_string("visibility"),
            is_role_assignable=doc.get_bool("isAssignableToRole"),
            on_premises_sync_enabled=doc.get_bool("onPremisesSyncEnabled"),
            created_date_time=doc.get_datetime("createdDateTime"),
        )

    def _count_group_members(self, client: GraphClient, group: GroupInventory) -> None:
        members = _fetch_document(
            client, f"groups/{group.object_id}/members?$select=id,userType&$top=999"
        )
        if members is not None:
            member_list = list(members.items())
            group.member_count = len(member_list)
            group.external_member_count = sum(
                1 for m in member_list if m.get_string("userType") == "Guest"
            )
            group.has_external_members = group.external_member_count > 0

        owners = _fetch_document(client, f"groups/{group.object_id}/owners?$select=id&$top=999")
        if owners is not None:
            group.owner_count = len(list(owners.items()))

    # Directory roles

    def _collect_directory_roles(
        self,
        client: GraphClient,
        tenant_id: str,
        snapshot_id: str,
        warnings: list[str],
        unavailable: list[str],
        cancel_token: CancellationToken | None,
    ) -> list[DirectoryRoleInventory]:
        try:
            document = _fetch_document(client, DIRECTORY_ROLES_ENDPOINT)
        except Exception as e:
            warnings.append(f"Error collecting directory roles: {e}")
            unavailable.append("directoryRoles")
            return []
        if document is None:
            return []
        return [self._parse_role(r, tenant_id, snapshot_id) for r in document.items()]

    def _parse_role(
        self, doc: RawDocument, tenant_id: str, snapshot_id: str
    ) -> DirectoryRoleInventory:
        template_id = doc.get_string("roleTemplateId", "")
        role = DirectoryRoleInventory(
            tenant_id=tenant_id,
            snapshot_id=snapshot_id,
            object_id=doc.get_string("id", ""),
            role_template_id=template_id,
            display_name=doc.get_string("displayName", ""),
            description=doc.get_string("description"),
            is_privileged=template_id in PRIVILEGED_ROLE_TEMPLATE_IDS,
            is_global_admin=template_id == GLOBAL_ADMIN_TEMPLATE_ID,
        )

        for member in doc.get_documents("members"):
            odata_type = member.odata_type or ""
            summary: dict[str, Any] = {
                "id": member.get_string("id"),
                "displayName": member.get_string("displayName"),
            }
            if "user" in odata_type:
                role.user_member_count += 1
                summary["userPrincipalName"] = member.get_string("userPrincipalName")
                role.user_members.append(summary)
            elif "servicePrincipal" in odata_type:
                role.service_principal_member_count += 1
                role.service_principal_members.append(summary)
            elif "group" in odata_type:
                role.group_member_count += 1

        role.member_count = (
            role.user_member_count
            + role.service_principal_member_count
            + role.group_member_count
        )
        return role

    # Service principals

    def _collect_service_principals(
        self,
        client: GraphClient,
        tenant_id: str,
        snapshot_id: str,
        warnings: list[str],
        unavailable: list[str],
        cancel_token: CancellationToken | None,
    ) -> list[ServicePrincipalInventory]:
        return self.collect_entities(
            client,
            SERVICE_PRINCIPALS_ENDPOINT,
            lambda doc: self._parse_service_principal(doc, tenant_id, snapshot_id),
            warnings,
            cancel_token=cancel_token,
            label="service principals",
        )

    def _parse_service_principal(
        self, doc: RawDocument, tenant_id: str, snapshot_id: str
    ) -> ServicePrincipalInventory:
        app_id = doc.get_string("appId", "")
        owner_org = doc.get_string("appOwnerOrganizationId")
        publisher = doc.get_string("publisherName")
        verified = doc.get_document("verifiedPublisher")
        return ServicePrincipalInventory(
            tenant_id=tenant_id,
            snapshot_id=snapshot_id,
            object_id=doc.get_string("id", ""),
            app_id=app_id,
            display_name=doc.get_string("displayName", ""),
            service_principal_type=doc.get_string("servicePrincipalType", ""),
            account_enabled=doc.get_bool("accountEnabled"),
            publisher_name=publisher,
            verified_publisher=verified.get_string("displayName") if verified else None,
            app_owner_organization_id=owner_org,
            sign_in_audience=doc.get_string("signInAudience"),
            created_date_time=doc.get_datetime("createdDateTime"),
            is_app_role_assignment_required=doc.get_bool("appRoleAssignmentRequired"),
            is_microsoft_first_party=(
                app_id in MICROSOFT_FIRST_PARTY_APP_IDS
                or owner_org == MICROSOFT_TENANT_ID
                or (publisher is not None and "Microsoft" in publisher)
            ),
            tags=doc.get_strings("tags"),
        )

    # Conditional Access

    def _collect_ca_policies(
        self,
        client: GraphClient,
        tenant_id: str,
        snapshot_id: str,
        warnings: list[str],
        unavailable: list[str],
        cancel_token: CancellationToken | None,
    ) -> list[ConditionalAccessPolicyInventory]:
        try:
            document = _fetch_document(client, CA_POLICIES_ENDPOINT)
        except Exception as e:
            warnings.append(f"Error collecting CA policies: {e}")
            unavailable.append("conditionalAccessPolicies")
            return []
        if document is None:
            return []
        return [self._parse_ca_policy(p, tenant_id, snapshot_id) for p in document.items()]

    def _parse_ca_policy(
        self, doc: RawDocument, tenant_id: str, snapshot_id: str
    ) -> ConditionalAccessPolicyInventory:
        policy = ConditionalAccessPolicyInventory(
            tenant_id=tenant_id,
            snapshot_id=snapshot_id,
            object_id=doc.get_string("id", ""),
            display_name=doc.get_string("displayName", ""),
            state=doc.get_string("state", ""),
            created_date_time=doc.get_datetime("createdDateTime"),
            modified_date_time=doc.get_datetime("modifiedDateTime"),
        )

        conditions = doc.get_document("conditions") or RawDocument()
        users = conditions.get_document("users") or RawDocument()
        policy.include_users = users.get_strings("includeUsers")
        policy.exclude_users = users.get_strings("excludeUsers")
        policy.include_roles = users.get_strings("includeRoles")
        policy.includes_all_users = "All" in policy.include_users
        policy.excluded_user_count = len(users.get_list("excludeUsers"))
        policy.excluded_group_count = len(users.get_list("excludeGroups"))

        apps = conditions.get_document("applications") or RawDocument()
        include_apps = apps.get_strings("includeApplications")
        policy.includes_all_apps = "All" in include_apps
        policy.includes_office_365 = "Office365" in include_apps

        client_apps = set(conditions.get_strings("clientAppTypes"))
        policy.includes_legacy_clients = bool(client_apps & LEGACY_CLIENT_APP_TYPES)

        grant = doc.get_document("grantControls")
        if grant is not None:
            controls = set(grant.get_strings("builtInControls"))
            policy.grant_control_operator = grant.get_string("operator")
            policy.requires_mfa = "mfa" in controls
            policy.requires_compliant_device = "compliantDevice" in controls
            policy.requires_hybrid_join = "domainJoinedDevice" in controls
            policy.requires_password_change = "passwordChange" in controls
            policy.blocks_access = "block" in controls

        policy.blocks_legacy_auth = policy.includes_legacy_clients and policy.blocks_access

        session = doc.get_document("sessionControls") or RawDocument()
        frequency = session.get_document("signInFrequency")
        if frequency is not None:
            policy.has_sign_in_frequency = frequency.get_bool("isEnabled")
            policy.sign_in_frequency = (
                f"{frequency.get_int('value')} {frequency.get_string('type') or ''}".strip()
            )
        return policy

    # Named locations

    def _collect_named_locations(
        self,
        client: GraphClient,
        tenant_id: str,
        snapshot_id: str,
        warnings: list[str],
        unavailable: list[str],
        cancel_token: CancellationToken | None,
    ) -> list[NamedLocationInventory]:
        try:
            document = _fetch_document(client, NAMED_LOCATIONS_ENDPOINT)
        except Exception as e:
            warnings.append(f"Error collecting named locations: {e}")
            return []
        if document is None:
            return []
        return [
            self._parse_named_location(loc, tenant_id, snapshot_id)
            for loc in document.items()
        ]

    def _parse_named_location(
        self, doc: RawDocument, tenant_id: str, snapshot_id: str
    ) -> NamedLocationInventory:
        location = NamedLocationInventory(
            tenant_id=tenant_id,
            snapshot_id=snapshot_id,
            object_id=doc.get_string("id", ""),
            display_name=doc.get_string("displayName", ""),
            created_date_time=doc.get_datetime("createdDateTime"),
            modified_date_time=doc.get_datetime("modifiedDateTime"),
        )
        odata_type = doc.odata_type or ""
        if "ipNamedLocation" in odata_type:
            location.location_type = "IP"
            location.is_trusted = doc.get_bool("isTrusted")
            location.ip_ranges = [
                r.get_string("cidrAddress", "") or "" for r in doc.get_documents("ipRanges")
            ]
        elif "countryNamedLocation" in odata_type:
            location.location_type = "Country"
            location.countries_and_regions = doc.get_strings("countriesAndRegions")
            location.include_unknown_countries_and_regions = doc.get_bool(
                "includeUnknownCountriesAndRegions"
            )
        return location
