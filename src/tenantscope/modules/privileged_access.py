"""
Privileged Access Management assessment module.

Evaluates Privileged Identity Management adoption, standing privileged
assignments, role-assignable groups, break-glass accounts and service
principals holding directory roles.
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
    HIGH_PRIVILEGE_ROLE_TEMPLATE_IDS,
    ODATA_SERVICE_PRINCIPAL,
    ODATA_USER,
)
from tenantscope.modules.base import BaseAssessmentModule
from tenantscope.modules.iam import is_global_admin_role

MAX_GLOBAL_ADMINS = 5
MIN_GLOBAL_ADMINS = 2
MAX_PERMANENT_HIGH_PRIVILEGE_ROLES = 2
MAX_PRIVILEGED_GROUP_MEMBERS = 10
MAX_CUSTOM_ROLES = 10
MAX_LISTED_SERVICE_PRINCIPALS = 20

BREAK_GLASS_MARKERS = ("break", "emergency", "glass")

_ENDPOINTS: tuple[tuple[str, str, str, bool], ...] = (
    (
        "eligibleAssignments",
        "roleManagement/directory/roleEligibilityScheduleInstances",
        "Failed to collect eligible role assignments (may require P2 license)",
        True,
    ),
    (
        "activeAssignments",
        "roleManagement/directory/roleAssignmentScheduleInstances",
        "Failed to collect active role assignments",
        True,
    ),
    (
        "roleDefinitions",
        "roleManagement/directory/roleDefinitions",
        "Failed to collect role definitions",
        False,
    ),
    (
        "directoryRoles",
        "directoryRoles?$expand=members",
        "Failed to collect directory roles",
        False,
    ),
    (
        "roleManagementPolicies",
        "policies/roleManagementPolicies?$filter=scopeId eq '/' and scopeType eq 'DirectoryRole'",
        "Failed to collect role management policies",
        False,
    ),
    (
        "privilegedGroups",
        "groups?$filter=isAssignableToRole eq true&$expand=members",
        "Failed to collect role-assignable groups",
        False,
    ),
    (
        "adminConsentRequests",
        "identityGovernance/appConsent/appConsentRequests?$filter=status eq 'InProgress'",
        "Failed to collect admin consent requests",
        False,
    ),
    (
        "users",
        "users?$select=id,displayName,userPrincipalName,accountEnabled&$top=999",
        "Failed to collect users",
        False,
    ),
)


def _member_name(member: RawDocument) -> str:
    return (
        member.get_string("displayName")
        or member.get_string("userPrincipalName")
        or member.get_string("id", "")
        or ""
    )


class PrivilegedAccessAssessmentModule(BaseAssessmentModule):
    """
    Assessment module for privileged role hygiene.

    Eligible and active PIM schedule instances are core data points. Tenants
    without Entra ID P2 cannot read eligibility schedules, which the module
    reports as PIM not being configured.
    """

    domain = AssessmentDomain.PRIVILEGED_ACCESS
    display_name = "Privileged Access Management"
    description = "Evaluates PIM adoption, standing admin access and break-glass accounts"
    required_permissions = (
        "RoleManagement.Read.Directory",
        "RoleManagement.Read.All",
        "PrivilegedAccess.Read.AzureAD",
        "Directory.Read.All",
    )

    def collect(
        self, client: GraphClient, cancel_token: CancellationToken | None = None
    ) -> CollectionResult:
        raw_data: dict[str, Any] = {}
        warnings: list[str] = []
        unavailable: list[str] = []

        try:
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
            self._logger.error(f"PAM collection failed: {e}")
            return self.create_error_result(f"Collection failed: {e}")

    def evaluate(self, result: CollectionResult, findings: NormalizedFindings) -> None:
        roles = self.get_items(result, "directoryRoles")
        eligible = self.get_items(result, "eligibleAssignments")
        active = self.get_items(result, "activeAssignments")
        groups = self.get_items(result, "privilegedGroups")
        definitions = self.get_items(result, "roleDefinitions")

        global_admins = [
            m
            for role in roles
            if is_global_admin_role(role)
            for m in role.get_documents("members")
            if m.odata_type == ODATA_USER
        ]
        permanent_roles = [
            role
            for role in roles
            if role.get_string("roleTemplateId") in HIGH_PRIVILEGE_ROLE_TEMPLATE_IDS
            and role.get_documents("members")
        ]

        self._check_global_admin_count(global_admins, findings)
        self._check_pim_usage(result, eligible, global_admins, findings)
        self._check_permanent_roles(permanent_roles, findings)
        self._check_privileged_groups(groups, findings)
        self._check_break_glass(global_admins, findings)
        self._check_service_principal_roles(roles, findings)
        custom_roles = self._check_custom_roles(definitions, findings)

        findings.metrics.update(
            {
                "global_admin_count": len(global_admins),
                "eligible_assignments": len(eligible),
                "active_assignments": len(active),
                "permanent_high_privilege_roles": len(permanent_roles),
                "role_assignable_groups": len(groups),
                "custom_roles": custom_roles,
            }
        )
        findings.summary.append(f"Found {len(global_admins)} Global Administrators")
        findings.summary.append(
            f"{len(eligible)} eligible and {len(active)} active role assignments"
        )

    # Checks

    def _check_global_admin_count(
        self, global_admins: list[RawDocument], findings: NormalizedFindings
    ) -> None:
        count = len(global_admins)
        if count > MAX_GLOBAL_ADMINS:
            findings.findings.append(
                self.create_finding(
                    check_id="PAM-001",
                    check_name="Global Administrator Count",
                    title=f"Too many Global Administrators ({count})",
                    description=(
                        f"{count} accounts hold the Global Administrator role; keep "
                        f"between {MIN_GLOBAL_ADMINS} and {MAX_GLOBAL_ADMINS}."
                    ),
                    severity=Severity.HIGH,
                    is_compliant=False,
                    category="Role Assignment",
                    evidence=f"Global Administrator count: {count}",
                    remediation="Reduce Global Administrators to at most five and use least-privileged roles.",
                    affected_resources=[_member_name(m) for m in global_admins],
                )
            )
        elif count >= MIN_GLOBAL_ADMINS:
            findings.findings.append(
                self.create_finding(
                    check_id="PAM-001",
                    check_name="Global Administrator Count",
                    title="Global Administrator count is appropriate",
                    description=f"{count} accounts hold the Global Administrator role.",
                    severity=Severity.INFORMATIONAL,
                    is_compliant=True,
                    category="Role Assignment",
                    evidence=f"Global Administrator count: {count}",
                )
            )
        else:
            findings.findings.append(
                self.create_finding(
                    check_id="PAM-001",
                    check_name="Global Administrator Count",
                    title=f"Too few Global Administrators ({count})",
                    description=(
                        "Fewer than two Global Administrators risks losing "
                        "administrative access to the tenant."
                    ),
                    severity=Severity.MEDIUM,
                    is_compliant=False,
                    category="Role Assignment",
                    evidence=f"Global Administrator count: {count}",
                    remediation="Maintain at least two Global Administrators, including an emergency access account.",
                )
            )

    def _check_pim_usage(
        self,
        result: CollectionResult,
        eligible: list[RawDocument],
        global_admins: list[RawDocument],
        findings: NormalizedFindings,
    ) -> None:
        if "eligibleAssignments" in result.unavailable_endpoints:
            findings.findings.append(
                self.create_finding(
                    check_id="PAM-002",
                    check_name="Privileged Identity Management",
                    title="PIM Not Configured",
                    description=(
                        "Eligible role assignments could not be read. Privileged "
                        "Identity Management is unavailable or not licensed."
                    ),
                    severity=Severity.HIGH,
                    is_compliant=False,
                    category="Just-In-Time Access",
                    remediation="License Entra ID P2 and convert standing admin roles to eligible PIM assignments.",
                    references="https://learn.microsoft.com/entra/id-governance/privileged-identity-management/pim-configure",
                )
            )
        elif not eligible and global_admins:
            findings.findings.append(
                self.create_finding(
                    check_id="PAM-002",
                    check_name="Privileged Identity Management",
                    title="No eligible role assignments",
                    description=(
                        "All administrators hold permanent role assignments; none "
                        "use just-in-time activation."
                    ),
                    severity=Severity.HIGH,
                    is_compliant=False,
                    category="Just-In-Time Access",
                    evidence=f"Eligible assignments: 0, Global Administrators: {len(global_admins)}",
                    remediation="Convert permanent admin role assignments to eligible PIM assignments.",
                )
            )
        else:
            findings.findings.append(
                self.create_finding(
                    check_id="PAM-002",
                    check_name="Privileged Identity Management",
                    title="PIM eligible assignments in use",
                    description=f"{len(eligible)} eligible role assignments are configured.",
                    severity=Severity.INFORMATIONAL,
                    is_compliant=True,
                    category="Just-In-Time Access",
                    evidence=f"Eligible assignments: {len(eligible)}",
                )
            )

    def _check_permanent_roles(
        self, permanent_roles: list[RawDocument], findings: NormalizedFindings
    ) -> None:
        if len(permanent_roles) > MAX_PERMANENT_HIGH_PRIVILEGE_ROLES:
            findings.findings.append(
                self.create_finding(
                    check_id="PAM-003",
                    check_name="Standing High-Privilege Roles",
                    title=f"{len(permanent_roles)} high-privilege roles have permanent members",
                    description=(
                        "High-privilege directory roles have active members outside "
                        "of just-in-time activation."
                    ),
                    severity=Severity.HIGH,
                    is_compliant=False,
                    category="Role Assignment",
                    remediation="Make high-privilege role assignments eligible instead of permanent.",
                    affected_resources=[
                        r.get_string("displayName") or r.get_string("id", "") or ""
                        for r in permanent_roles
                    ],
                )
            )

    def _check_privileged_groups(
        self, groups: list[RawDocument], findings: NormalizedFindings
    ) -> None:
        if not groups:
            return
        large = [
            g.get_string("displayName") or g.get_string("id", "") or ""
            for g in groups
            if len(g.get_list("members")) > MAX_PRIVILEGED_GROUP_MEMBERS
        ]
        if large:
            findings.findings.append(
                self.create_finding(
                    check_id="PAM-004",
                    check_name="Role-Assignable Groups",
                    title=f"{len(large)} role-assignable groups have many members",
                    description=(
                        f"Role-assignable groups with more than "
                        f"{MAX_PRIVILEGED_GROUP_MEMBERS} members widen privileged access."
                    ),
                    severity=Severity.MEDIUM,
                    is_compliant=False,
                    category="Role Assignment",
                    remediation="Review membership of role-assignable groups and manage it through PIM for Groups.",
                    affected_resources=large,
                )
            )
        else:
            findings.findings.append(
                self.create_finding(
                    check_id="PAM-004",
                    check_name="Role-Assignable Groups",
                    title="Role-assignable group membership is limited",
                    description=f"{len(groups)} role-assignable groups reviewed.",
                    severity=Severity.INFORMATIONAL,
                    is_compliant=True,
                    category="Role Assignment",
                )
            )

    def _check_break_glass(
        self, global_admins: list[RawDocument], findings: NormalizedFindings
    ) -> None:
        break_glass = [
            m
            for m in global_admins
            if any(marker in _member_name(m).lower() for marker in BREAK_GLASS_MARKERS)
        ]
        if not break_glass and len(global_admins) < MIN_GLOBAL_ADMINS:
            findings.findings.append(
                self.create_finding(
                    check_id="PAM-005",
                    check_name="Emergency Access Accounts",
                    title="No emergency access accounts detected",
                    description=(
                        "No Global Administrator looks like a break-glass account and "
                        "there are too few admins to recover from a lockout."
                    ),
                    severity=Severity.HIGH,
                    is_compliant=False,
                    category="Resilience",
                    remediation="Create two cloud-only emergency access accounts excluded from Conditional Access.",
                    references="https://learn.microsoft.com/entra/identity/role-based-access-control/security-emergency-access",
                )
            )
        else:
            findings.findings.append(
                self.create_finding(
                    check_id="PAM-005",
                    check_name="Emergency Access Accounts",
                    title="Emergency access is available",
                    description=(
                        f"{len(break_glass)} break-glass accounts detected among "
                        f"{len(global_admins)} Global Administrators."
                    ),
                    severity=Severity.INFORMATIONAL,
                    is_compliant=True,
                    category="Resilience",
                )
            )

    def _check_service_principal_roles(
        self, roles: list[RawDocument], findings: NormalizedFindings
    ) -> None:
        principals = [
            f"{_member_name(m)} ({role.get_string('displayName') or ''})"
            for role in roles
            for m in role.get_documents("members")
            if m.odata_type == ODATA_SERVICE_PRINCIPAL
        ]
        if principals:
            findings.findings.append(
                self.create_finding(
                    check_id="PAM-006",
                    check_name="Service Principals in Directory Roles",
                    title=f"{len(principals)} service principal role assignments",
                    description=(
                        "Applications holding directory roles can act with admin "
                        "privileges without user interaction."
                    ),
                    severity=Severity.MEDIUM,
                    is_compliant=False,
                    category="Workload Identities",
                    remediation="Replace directory role assignments for applications with scoped Graph permissions.",
                    affected_resources=principals[:MAX_LISTED_SERVICE_PRINCIPALS],
                )
            )
        else:
            findings.findings.append(
                self.create_finding(
                    check_id="PAM-006",
                    check_name="Service Principals in Directory Roles",
                    title="No service principals hold directory roles",
                    description="Directory roles are held only by users and groups.",
                    severity=Severity.INFORMATIONAL,
                    is_compliant=True,
                    category="Workload Identities",
                )
            )

    def _check_custom_roles(
        self, definitions: list[RawDocument], findings: NormalizedFindings
    ) -> int:
        custom = [d for d in definitions if d.get("isBuiltIn") is False]
        if len(custom) > MAX_CUSTOM_ROLES:
            findings.findings.append(
                self.create_finding(
                    check_id="PAM-007",
                    check_name="Custom Role Definitions",
                    title=f"{len(custom)} custom role definitions",
                    description="A large number of custom roles is hard to audit.",
                    severity=Severity.LOW,
                    is_compliant=False,
                    category="Role Definitions",
                    remediation="Consolidate custom roles and remove unused ones.",
                    affected_resources=[d.get_string("displayName") or "" for d in custom],
                )
            )
        else:
            findings.findings.append(
                self.create_finding(
                    check_id="PAM-007",
                    check_name="Custom Role Definitions",
                    title="Custom role count is manageable",
                    description=f"{len(custom)} custom role definitions exist.",
                    severity=Severity.INFORMATIONAL,
                    is_compliant=True,
                    category="Role Definitions",
                )
            )
        return len(custom)
