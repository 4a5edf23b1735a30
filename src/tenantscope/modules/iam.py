"""
Identity & Access Management assessment module.

Evaluates admin sprawl, Conditional Access coverage, MFA enforcement,
risky users, guest ratio, legacy authentication and self-service
password reset.
"""

from __future__ import annotations

from typing import Any

from tenantscope.cancellation import CancellationToken, is_cancelled
from tenantscope.graph.client import GraphClient
from tenantscope.graph.document import RawDocument
from tenantscope.models import (
    AssessmentDomain,
    CollectionResult,
    NormalizedFindings,
    Severity,
)
from tenantscope.models.roles import (
    GLOBAL_ADMIN_ROLE_NAME,
    GLOBAL_ADMIN_TEMPLATE_ID,
    ODATA_USER,
)
from tenantscope.modules.base import BaseAssessmentModule

MAX_GLOBAL_ADMINS = 5
MAX_RISKY_USERS = 10
MAX_GUEST_PERCENTAGE = 20.0

_USERS_ENDPOINT = (
    "users?$select=id,displayName,userPrincipalName,accountEnabled,"
    "createdDateTime,signInActivity,userType,assignedLicenses&$top=999"
)

# (key, endpoint, failure message, marks the endpoint unavailable)
_ENDPOINTS: tuple[tuple[str, str, str, bool], ...] = (
    (
        "directoryRoles",
        "directoryRoles?$expand=members",
        "Failed to collect directory roles",
        True,
    ),
    (
        "roleDefinitions",
        "roleManagement/directory/roleDefinitions",
        "Failed to collect role definitions",
        False,
    ),
    (
        "conditionalAccessPolicies",
        "identity/conditionalAccess/policies",
        "Failed to collect conditional access policies",
        True,
    ),
    (
        "authenticationMethodsPolicy",
        "policies/authenticationMethodsPolicy",
        "Failed to collect authentication methods policy",
        False,
    ),
    ("domains", "domains", "Failed to collect domains", False),
    (
        "namedLocations",
        "identity/conditionalAccess/namedLocations",
        "Failed to collect named locations",
        False,
    ),
    (
        "riskyUsers",
        "identityProtection/riskyUsers?$filter=riskState eq 'atRisk'",
        "Failed to collect risky users (may require P2 license)",
        True,
    ),
    (
        "signInRiskPolicies",
        "identity/conditionalAccess/policies?$filter=contains(displayName, 'risk')",
        "Failed to collect sign-in risk policies",
        False,
    ),
    (
        "mfaRegistrationDetails",
        "reports/credentialUserRegistrationDetails",
        "Failed to collect MFA registration details",
        False,
    ),
    (
        "authorizationPolicy",
        "policies/authorizationPolicy",
        "Failed to collect authorization policy",
        False,
    ),
)


def is_global_admin_role(role: RawDocument) -> bool:
    """Check whether a directory role is the Global Administrator role."""
    name = role.get_string("displayName") or ""
    return (
        GLOBAL_ADMIN_ROLE_NAME in name
        or role.get_string("roleTemplateId") == GLOBAL_ADMIN_TEMPLATE_ID
    )


def _is_enabled(policy: RawDocument) -> bool:
    return (policy.get_string("state") or "").lower() == "enabled"


def _grant_controls(policy: RawDocument) -> list[str]:
    grant = policy.get_document("grantControls")
    if grant is None:
        return []
    return [c.lower() for c in grant.get_strings("builtInControls")]


def _user_conditions(policy: RawDocument) -> RawDocument:
    conditions = policy.get_document("conditions") or RawDocument()
    return conditions.get_document("users") or RawDocument()


class IamAssessmentModule(BaseAssessmentModule):
    """
    Assessment module for Entra ID identity and access management.

    Reads users, directory roles, Conditional Access policies and Identity
    Protection data. Conditional Access, directory roles, users and risky
    users are core data points; the rest only add warnings when missing.
    """

    domain = AssessmentDomain.IDENTITY_AND_ACCESS
    display_name = "Identity & Access Management"
    description = "Evaluates identity security controls, MFA enforcement and admin hygiene"
    required_permissions = (
        "User.Read.All",
        "Directory.Read.All",
        "RoleManagement.Read.Directory",
        "Policy.Read.All",
        "AuditLog.Read.All",
        "IdentityRiskyUser.Read.All",
    )

    def collect(
        self, client: GraphClient, cancel_token: CancellationToken | None = None
    ) -> CollectionResult:
        raw_data: dict[str, Any] = {}
        warnings: list[str] = []
        unavailable: list[str] = []

        try:
            self.fetch_all_pages(
                client,
                "users",
                _USERS_ENDPOINT,
                raw_data,
                warnings,
                unavailable,
                cancel_token=cancel_token,
            )
            for key, endpoint, message, mark_unavailable in _ENDPOINTS:
                if is_cancelled(cancel_token):
                    break
                self.fetch_endpoint(
                    client,
                    key,
                    endpoint,
                    raw_data,
                    warnings,
                    unavailable,
                    message,
                    mark_unavailable=mark_unavailable,
                )
            return self.create_success_result(raw_data, warnings, unavailable)
        except Exception as e:
            self._logger.error(f"IAM collection failed: {e}")
            return self.create_error_result(f"Collection failed: {e}")

    def evaluate(self, result: CollectionResult, findings: NormalizedFindings) -> None:
        users = self.get_items(result, "users")
        roles = self.get_items(result, "directoryRoles")
        policies = self.get_items(result, "conditionalAccessPolicies")
        risky_users = self.get_items(result, "riskyUsers")

        global_admins = self._global_admins(roles)
        self._check_global_admin_count(global_admins, findings)
        self._check_conditional_access(policies, findings)
        self._check_mfa_enforcement(policies, findings)
        self._check_risky_users(risky_users, result, findings)
        guest_percentage = self._check_guest_ratio(users, findings)
        self._check_legacy_auth(policies, findings)
        self._check_disabled_admins(roles, users, findings)
        self._check_sspr(result, findings)

        enabled_policies = sum(1 for p in policies if _is_enabled(p))
        findings.metrics.update(
            {
                "total_users": len(users),
                "global_admin_count": len(global_admins),
                "conditional_access_policies": len(policies),
                "enabled_conditional_access_policies": enabled_policies,
                "risky_users": len(risky_users),
                "guest_percentage": round(guest_percentage, 1),
            }
        )
        findings.summary.append(f"Analyzed {len(users)} users")
        findings.summary.append(f"Found {len(global_admins)} Global Administrators")
        findings.summary.append(
            f"{enabled_policies} of {len(policies)} Conditional Access policies enabled"
        )

    # Checks

    def _global_admins(self, roles: list[RawDocument]) -> list[RawDocument]:
        admins: list[RawDocument] = []
        for role in roles:
            if not is_global_admin_role(role):
                continue
            admins.extend(
                m for m in role.get_documents("members") if m.odata_type == ODATA_USER
            )
        return admins

    def _check_global_admin_count(
        self, global_admins: list[RawDocument], findings: NormalizedFindings
    ) -> None:
        count = len(global_admins)
        if count > MAX_GLOBAL_ADMINS:
            findings.findings.append(
                self.create_finding(
                    check_id="IAM-001",
                    check_name="Excessive Global Administrators",
                    title=f"Too many Global Administrators ({count})",
                    description=(
                        f"The tenant has {count} Global Administrators. Microsoft "
                        f"recommends no more than {MAX_GLOBAL_ADMINS}."
                    ),
                    severity=Severity.HIGH,
                    is_compliant=False,
                    category="Privileged Access",
                    evidence=f"Global Administrator count: {count}",
                    remediation=(
                        "Reduce the number of Global Administrators and delegate "
                        "least-privileged roles instead."
                    ),
                    references="https://learn.microsoft.com/entra/identity/role-based-access-control/best-practices",
                    affected_resources=[
                        a.get_string("userPrincipalName")
                        or a.get_string("displayName")
                        or a.get_string("id", "")
                        for a in global_admins
                    ],
                )
            )
        else:
            findings.findings.append(
                self.create_finding(
                    check_id="IAM-001",
                    check_name="Global Administrator Count",
                    title="Global Administrator count is within limits",
                    description=f"The tenant has {count} Global Administrators.",
                    severity=Severity.INFORMATIONAL,
                    is_compliant=True,
                    category="Privileged Access",
                    evidence=f"Global Administrator count: {count}",
                )
            )

    def _check_conditional_access(
        self, policies: list[RawDocument], findings: NormalizedFindings
    ) -> None:
        if not policies:
            findings.findings.append(
                self.create_finding(
                    check_id="IAM-002",
                    check_name="Conditional Access Policies",
                    title="No Conditional Access policies configured",
                    description=(
                        "Conditional Access is the primary control for enforcing "
                        "access requirements and no policy exists."
                    ),
                    severity=Severity.CRITICAL,
                    is_compliant=False,
                    category="Conditional Access",
                    remediation="Create Conditional Access policies for MFA and risk-based access.",
                    references="https://learn.microsoft.com/entra/identity/conditional-access/overview",
                )
            )
            return

        enabled = sum(1 for p in policies if _is_enabled(p))
        if enabled == 0:
            findings.findings.append(
                self.create_finding(
                    check_id="IAM-002",
                    check_name="Conditional Access Policies",
                    title="No Conditional Access policies are enabled",
                    description=(
                        f"{len(policies)} Conditional Access policies exist but none "
                        "is enabled."
                    ),
                    severity=Severity.HIGH,
                    is_compliant=False,
                    category="Conditional Access",
                    evidence=f"Policies: {len(policies)}, enabled: 0",
                    remediation="Enable Conditional Access policies after validating them in report-only mode.",
                )
            )
        else:
            findings.findings.append(
                self.create_finding(
                    check_id="IAM-002",
                    check_name="Conditional Access Policies",
                    title="Conditional Access policies are enabled",
                    description=f"{enabled} of {len(policies)} policies are enabled.",
                    severity=Severity.INFORMATIONAL,
                    is_compliant=True,
                    category="Conditional Access",
                    evidence=f"Policies: {len(policies)}, enabled: {enabled}",
                )
            )

    def _check_mfa_enforcement(
        self, policies: list[RawDocument], findings: NormalizedFindings
    ) -> None:
        enforced = False
        for policy in policies:
            if not _is_enabled(policy) or "mfa" not in _grant_controls(policy):
                continue
            users = _user_conditions(policy)
            if users.get_strings("includeRoles") or "All" in users.get_strings(
                "includeUsers"
            ):
                enforced = True
                break

        findings.findings.append(
            self.create_finding(
                check_id="IAM-003",
                check_name="MFA Enforcement",
                title=(
                    "MFA is enforced by Conditional Access"
                    if enforced
                    else "MFA is not enforced for users or admins"
                ),
                description=(
                    "An enabled Conditional Access policy requires MFA for all "
                    "users or for directory roles."
                    if enforced
                    else "No enabled Conditional Access policy requires MFA for all "
                    "users or for directory roles."
                ),
                severity=Severity.INFORMATIONAL if enforced else Severity.CRITICAL,
                is_compliant=enforced,
                category="Authentication",
                remediation=(
                    None
                    if enforced
                    else "Create a Conditional Access policy requiring MFA for all users."
                ),
                references="https://learn.microsoft.com/entra/identity/conditional-access/policy-all-users-mfa-strength",
            )
        )

    def _check_risky_users(
        self,
        risky_users: list[RawDocument],
        result: CollectionResult,
        findings: NormalizedFindings,
    ) -> None:
        if "riskyUsers" in result.unavailable_endpoints:
            return
        count = len(risky_users)
        if count == 0:
            findings.findings.append(
                self.create_finding(
                    check_id="IAM-004",
                    check_name="Risky Users",
                    title="No users at risk",
                    description="Identity Protection reports no users at risk.",
                    severity=Severity.INFORMATIONAL,
                    is_compliant=True,
                    category="Identity Protection",
                )
            )
            return

        findings.findings.append(
            self.create_finding(
                check_id="IAM-004",
                check_name="Risky Users",
                title=f"{count} users are at risk",
                description=(
                    f"Identity Protection reports {count} users in the atRisk state "
                    "that have not been remediated."
                ),
                severity=Severity.CRITICAL if count > MAX_RISKY_USERS else Severity.HIGH,
                is_compliant=False,
                category="Identity Protection",
                evidence=f"Risky users: {count}",
                remediation="Investigate and remediate risky users, and require a password change for them.",
                references="https://learn.microsoft.com/entra/id-protection/howto-identity-protection-remediate-unblock",
                affected_resources=[
                    u.get_string("userPrincipalName") or u.get_string("id", "")
                    for u in risky_users
                ],
            )
        )

    def _check_guest_ratio(
        self, users: list[RawDocument], findings: NormalizedFindings
    ) -> float:
        if not users:
            return 0.0
        guests = sum(1 for u in users if u.get_string("userType") == "Guest")
        percentage = guests * 100.0 / len(users)
        if percentage > MAX_GUEST_PERCENTAGE:
            findings.findings.append(
                self.create_finding(
                    check_id="IAM-005",
                    check_name="Guest User Ratio",
                    title=f"High proportion of guest users ({percentage:.1f}%)",
                    description=(
                        f"{guests} of {len(users)} users are guests, above the "
                        f"{MAX_GUEST_PERCENTAGE:.0f}% threshold."
                    ),
                    severity=Severity.MEDIUM,
                    is_compliant=False,
                    category="External Identities",
                    evidence=f"Guests: {guests}, total users: {len(users)}",
                    remediation="Review guest accounts with access reviews and remove stale guests.",
                )
            )
        return percentage

    def _check_legacy_auth(
        self, policies: list[RawDocument], findings: NormalizedFindings
    ) -> None:
        blocked = False
        for policy in policies:
            if not _is_enabled(policy):
                continue
            conditions = policy.get_document("conditions") or RawDocument()
            client_apps = [c.lower() for c in conditions.get_strings("clientAppTypes")]
            if "other" in client_apps and "block" in _grant_controls(policy):
                blocked = True
                break

        if not blocked:
            findings.findings.append(
                self.create_finding(
                    check_id="IAM-006",
                    check_name="Legacy Authentication",
                    title="Legacy authentication is not blocked",
                    description=(
                        "Legacy authentication protocols cannot perform MFA and no "
                        "enabled Conditional Access policy blocks them."
                    ),
                    severity=Severity.HIGH,
                    is_compliant=False,
                    category="Authentication",
                    remediation="Create a Conditional Access policy that blocks legacy authentication clients.",
                    references="https://learn.microsoft.com/entra/identity/conditional-access/policy-block-legacy-authentication",
                )
            )

    def _check_disabled_admins(
        self,
        roles: list[RawDocument],
        users: list[RawDocument],
        findings: NormalizedFindings,
    ) -> None:
        enabled_by_id = {
            u.get_string("id"): u.get_bool("accountEnabled", True) for u in users
        }
        disabled: set[str] = set()
        for role in roles:
            for member in role.get_documents("members"):
                if member.odata_type != ODATA_USER:
                    continue
                member_id = member.get_string("id")
                enabled = member.get("accountEnabled")
                if not isinstance(enabled, bool):
                    enabled = enabled_by_id.get(member_id, True)
                if not enabled:
                    disabled.add(
                        member.get_string("userPrincipalName") or member_id or ""
                    )

        if disabled:
            findings.findings.append(
                self.create_finding(
                    check_id="IAM-007",
                    check_name="Disabled Admin Accounts",
                    title=f"{len(disabled)} disabled accounts hold admin roles",
                    description=(
                        "Disabled accounts still assigned to directory roles should "
                        "have their assignments removed."
                    ),
                    severity=Severity.MEDIUM,
                    is_compliant=False,
                    category="Privileged Access",
                    remediation="Remove directory role assignments from disabled accounts.",
                    affected_resources=sorted(disabled),
                )
            )

    def _check_sspr(self, result: CollectionResult, findings: NormalizedFindings) -> None:
        policy = self.get_document(result, "authorizationPolicy")
        if policy is None:
            return
        if policy.get("allowedToUseSSPR") is not True:
            findings.findings.append(
                self.create_finding(
                    check_id="IAM-008",
                    check_name="Self-Service Password Reset",
                    title="Self-service password reset is not enabled",
                    description=(
                        "Users cannot reset their own passwords, which increases "
                        "helpdesk load and encourages weak password practices."
                    ),
                    severity=Severity.MEDIUM,
                    is_compliant=False,
                    category="Authentication",
                    remediation="Enable self-service password reset for all users.",
                    references="https://learn.microsoft.com/entra/identity/authentication/tutorial-enable-sspr",
                )
            )
