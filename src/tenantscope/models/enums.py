"""
Enumerations shared across tenantscope.

Severity levels, assessment and inventory domains, and the lifecycle
states used by assessment runs and inventory snapshots.
"""

from __future__ import annotations

from enum import Enum


class Severity(Enum):
    """Severity level of a compliance finding, most severe first."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFORMATIONAL = "informational"

    @property
    def rank(self) -> int:
        """Ordering rank, 1 being the most severe."""
        return _SEVERITY_RANK[self]

    @classmethod
    def from_string(cls, value: str) -> Severity:
        """
        Create Severity from string value.

        Args:
            value: String representation (case-insensitive)

        Returns:
            Matching Severity enum value

        Raises:
            ValueError: If value is not a valid severity
        """
        value_lower = value.lower()
        if value_lower == "info":
            return cls.INFORMATIONAL
        for severity in cls:
            if severity.value == value_lower:
                return severity
        raise ValueError(f"Invalid severity: {value}")


_SEVERITY_RANK = {
    Severity.CRITICAL: 1,
    Severity.HIGH: 2,
    Severity.MEDIUM: 3,
    Severity.LOW: 4,
    Severity.INFORMATIONAL: 5,
}


class AssessmentDomain(Enum):
    """Security domains covered by assessment modules."""

    IDENTITY_AND_ACCESS = "identity_and_access"
    PRIVILEGED_ACCESS = "privileged_access"
    DEVICE_ENDPOINT = "device_endpoint"
    EXCHANGE_EMAIL_SECURITY = "exchange_email_security"
    MICROSOFT_DEFENDER = "microsoft_defender"
    DATA_PROTECTION_COMPLIANCE = "data_protection_compliance"
    AUDIT_LOGGING = "audit_logging"
    APP_GOVERNANCE = "app_governance"
    COLLABORATION_SECURITY = "collaboration_security"

    @property
    def display_name(self) -> str:
        """Human-readable domain name."""
        return _ASSESSMENT_DISPLAY_NAMES[self]

    @classmethod
    def from_string(cls, value: str) -> AssessmentDomain:
        """
        Create AssessmentDomain from its value or member name.

        Raises:
            ValueError: If value does not name a domain
        """
        normalized = value.strip().lower().replace("-", "_")
        for domain in cls:
            if domain.value == normalized:
                return domain
        raise ValueError(f"Invalid assessment domain: {value}")


_ASSESSMENT_DISPLAY_NAMES = {
    AssessmentDomain.IDENTITY_AND_ACCESS: "Identity & Access (IAM)",
    AssessmentDomain.PRIVILEGED_ACCESS: "Privileged Access / PIM",
    AssessmentDomain.DEVICE_ENDPOINT: "Device & Endpoint",
    AssessmentDomain.EXCHANGE_EMAIL_SECURITY: "Exchange / Email Security",
    AssessmentDomain.MICROSOFT_DEFENDER: "Microsoft Defender",
    AssessmentDomain.DATA_PROTECTION_COMPLIANCE: "Data Protection & Compliance",
    AssessmentDomain.AUDIT_LOGGING: "Audit & Logging",
    AssessmentDomain.APP_GOVERNANCE: "App Governance / Consent",
    AssessmentDomain.COLLABORATION_SECURITY: "Collaboration Security",
}


class InventoryDomain(Enum):
    """Asset inventory domains."""

    TENANT_BASELINE = "tenant_baseline"
    IDENTITY_ACCESS = "identity_access"
    DEVICE_ENDPOINT = "device_endpoint"
    DEFENDER_XDR = "defender_xdr"
    EMAIL_EXCHANGE = "email_exchange"
    DATA_PROTECTION = "data_protection"
    SHAREPOINT_ONEDRIVE_TEAMS = "sharepoint_onedrive_teams"
    APPLICATIONS_OAUTH = "applications_oauth"
    LOGS_MONITORING = "logs_monitoring"
    SECURE_SCORE = "secure_score"
    LICENSE_UTILIZATION = "license_utilization"
    HIGH_RISK_FINDINGS = "high_risk_findings"

    @property
    def display_name(self) -> str:
        """Human-readable domain name."""
        return _INVENTORY_INFO[self][0]

    @property
    def description(self) -> str:
        """Short description of what the domain inventories."""
        return _INVENTORY_INFO[self][1]

    @classmethod
    def from_string(cls, value: str) -> InventoryDomain:
        """
        Create InventoryDomain from its value.

        Raises:
            ValueError: If value does not name a domain
        """
        normalized = value.strip().lower().replace("-", "_")
        for domain in cls:
            if domain.value == normalized:
                return domain
        raise ValueError(f"Invalid inventory domain: {value}")


_INVENTORY_INFO = {
    InventoryDomain.TENANT_BASELINE: (
        "Tenant & Org Baseline",
        "Tenant ID, domains, subscriptions, service health, org-wide settings",
    ),
    InventoryDomain.IDENTITY_ACCESS: (
        "Identity & Access (Entra ID)",
        "Users, groups, roles, CA policies, MFA status, authentication methods",
    ),
    InventoryDomain.DEVICE_ENDPOINT: (
        "Device & Endpoint (Intune)",
        "Device inventory, compliance policies, encryption status",
    ),
    InventoryDomain.DEFENDER_XDR: (
        "Microsoft Defender XDR",
        "Defender for Endpoint, Office 365, Identity, and Cloud Apps",
    ),
    InventoryDomain.EMAIL_EXCHANGE: (
        "Email & Exchange Online",
        "Mail flow, transport rules, forwarding, mailbox settings",
    ),
    InventoryDomain.DATA_PROTECTION: (
        "Data Protection (Purview)",
        "Sensitivity labels, DLP policies, compliance features",
    ),
    InventoryDomain.SHAREPOINT_ONEDRIVE_TEAMS: (
        "SharePoint, OneDrive & Teams",
        "Sites, sharing settings, Teams configuration",
    ),
    InventoryDomain.APPLICATIONS_OAUTH: (
        "Applications & OAuth",
        "Enterprise apps, OAuth consents, high-privilege permissions",
    ),
    InventoryDomain.LOGS_MONITORING: (
        "Logs & Monitoring",
        "Audit log settings, SIEM integration, alerting",
    ),
    InventoryDomain.SECURE_SCORE: (
        "Secure Score & Posture",
        "Secure Score metrics, improvement actions",
    ),
    InventoryDomain.LICENSE_UTILIZATION: (
        "License Utilization",
        "E5 utilization, feature enablement, value leakage",
    ),
    InventoryDomain.HIGH_RISK_FINDINGS: (
        "High-Risk Findings",
        "Auto-generated high-risk security findings",
    ),
}


class AssessmentStatus(Enum):
    """Lifecycle state of an assessment run."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Check whether no further transition is allowed."""
        return self in (
            AssessmentStatus.COMPLETED,
            AssessmentStatus.FAILED,
            AssessmentStatus.CANCELLED,
        )


class InventoryStatus(Enum):
    """Lifecycle state of an inventory snapshot or collection."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    PARTIALLY_COMPLETED = "partially_completed"
