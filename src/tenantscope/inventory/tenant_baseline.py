"""
Tenant & Org Baseline inventory module.

Collects the organization profile, subscribed license SKUs and the
current service health overview.
"""

from __future__ import annotations

import time
from typing import Any

from tenantscope.cancellation import CancellationToken, is_cancelled
from tenantscope.graph.client import GraphClient
from tenantscope.graph.document import RawDocument
from tenantscope.inventory.base import BaseInventoryModule
from tenantscope.models import (
    InventoryCollectionResult,
    InventoryDomain,
    InventoryItem,
    SubscribedSkuInventory,
    TenantInfo,
)
from tenantscope.models.roles import MULTI_GEO_SERVICE_PLAN_ID
from tenantscope.storage.base import UnitOfWork

SERVICE_HEALTH_ENDPOINT = (
    "admin/serviceAnnouncement/healthOverviews?$expand=issues($filter=isResolved eq false)"
)

LICENSE_DISPLAY_NAMES: dict[str, str] = {
    "SPE_E5": "Microsoft 365 E5",
    "SPE_E3": "Microsoft 365 E3",
    "SPE_F1": "Microsoft 365 F1",
    "ENTERPRISEPACK": "Office 365 E3",
    "ENTERPRISEPREMIUM": "Office 365 E5",
    "EXCHANGEENTERPRISE": "Exchange Online (Plan 2)",
    "EXCHANGESTANDARD": "Exchange Online (Plan 1)",
    "TEAMS_EXPLORATORY": "Microsoft Teams Exploratory",
    "POWER_BI_STANDARD": "Power BI (free)",
    "POWER_BI_PRO": "Power BI Pro",
    "PROJECTPREMIUM": "Project Plan 5",
    "PROJECTPROFESSIONAL": "Project Plan 3",
    "VISIOCLIENT": "Visio Plan 2",
    "FLOW_FREE": "Power Automate Free",
    "POWERAPPS_VIRAL": "Power Apps Plan 2 Trial",
    "AAD_PREMIUM": "Azure AD Premium P1",
    "AAD_PREMIUM_P2": "Azure AD Premium P2",
    "EMS": "Enterprise Mobility + Security E3",
    "EMSPREMIUM": "Enterprise Mobility + Security E5",
    "ATP_ENTERPRISE": "Microsoft Defender for Office 365 (Plan 1)",
    "THREAT_INTELLIGENCE": "Microsoft Defender for Office 365 (Plan 2)",
    "WIN_DEF_ATP": "Microsoft Defender for Endpoint",
    "IDENTITY_THREAT_PROTECTION": "Microsoft 365 E5 Security",
    "INFORMATION_PROTECTION_COMPLIANCE": "Microsoft 365 E5 Compliance",
    "M365_F1": "Microsoft 365 F1",
    "M365_F3": "Microsoft 365 F3",
    "MICROSOFT_BUSINESS_CENTER": "Microsoft Business Center",
    "O365_BUSINESS_ESSENTIALS": "Microsoft 365 Business Basic",
    "O365_BUSINESS_PREMIUM": "Microsoft 365 Business Standard",
    "SMB_BUSINESS_PREMIUM": "Microsoft 365 Business Premium",
}


def license_display_name(sku_part_number: str) -> str:
    """
    Friendly name for a SKU part number, case-insensitive.

    >>> license_display_name("spe_e5")
    'Microsoft 365 E5'
    >>> license_display_name("CUSTOM_SKU")
    'CUSTOM_SKU'
    """
    return LICENSE_DISPLAY_NAMES.get(sku_part_number.upper(), sku_part_number)


class TenantBaselineInventoryModule(BaseInventoryModule):
    """Inventory module for the tenant's organization profile and licenses."""

    domain = InventoryDomain.TENANT_BASELINE
    display_name = "Tenant & Org Baseline"
    description = (
        "Collects tenant info, domains, subscriptions, service health, "
        "and org-wide settings."
    )
    required_permissions = ("Organization.Read.All", "Directory.Read.All")

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
        breakdown: dict[str, int] = {}
        items: list[InventoryItem] = []

        try:
            tenant_info = self._collect_organization(client, tenant_id, snapshot_id, warnings)
            breakdown["Organization"] = 1 if tenant_info else 0
            if tenant_info:
                items.append(tenant_info)

            if not is_cancelled(cancel_token):
                skus = self._collect_subscribed_skus(client, tenant_id, snapshot_id, warnings)
                breakdown["Subscriptions"] = len(skus)
                items.extend(skus)
                self._logger.info(f"Collected {len(skus)} subscribed SKUs")

            if not is_cancelled(cancel_token):
                breakdown["ServiceHealth"] = self._collect_service_health(
                    client, tenant_info, warnings
                )

            unit_of_work.inventory.add_many(items)
            return self.success(
                len(items), started, item_breakdown=breakdown, warnings=warnings
            )
        except Exception as e:
            self._logger.error(f"Error collecting tenant baseline for tenant {tenant_id}: {e}")
            return self.failure(str(e), started, warnings)

    def _collect_organization(
        self,
        client: GraphClient,
        tenant_id: str,
        snapshot_id: str,
        warnings: list[str],
    ) -> TenantInfo | None:
        try:
            document = RawDocument.parse(client.get_raw_json("organization"))
        except Exception as e:
            warnings.append(f"Error collecting organization info: {e}")
            return None
        if document is None:
            return None

        for org in document.items():
            info = TenantInfo(
                tenant_id=tenant_id,
                snapshot_id=snapshot_id,
                object_id=org.get_string("id", ""),
                display_name=org.get_string("displayName", ""),
                preferred_data_location=org.get_string("preferredDataLocation"),
                default_usage_location=org.get_string("defaultUsageLocation"),
                technical_notification_mails=org.get_strings("technicalNotificationMails"),
            )
            for domain in org.get_documents("verifiedDomains"):
                entry = {
                    "name": domain.get_string("name"),
                    "isDefault": domain.get_bool("isDefault"),
                    "isInitial": domain.get_bool("isInitial"),
                    "type": domain.get_string("type"),
                }
                info.verified_domains.append(entry)
                if entry["isDefault"]:
                    info.primary_domain = entry["name"]
            info.verified_domain_count = len(info.verified_domains)
            info.is_multi_geo_enabled = any(
                plan.get_string("servicePlanId") == MULTI_GEO_SERVICE_PLAN_ID
                for plan in org.get_documents("assignedPlans")
            )
            return info
        return None

    def _collect_subscribed_skus(
        self,
        client: GraphClient,
        tenant_id: str,
        snapshot_id: str,
        warnings: list[str],
    ) -> list[SubscribedSkuInventory]:
        try:
            document = RawDocument.parse(client.get_raw_json("subscribedSkus"))
        except Exception as e:
            warnings.append(f"Error collecting subscribed SKUs: {e}")
            return []
        if document is None:
            return []
        return [self._parse_sku(sku, tenant_id, snapshot_id) for sku in document.items()]

    def _parse_sku(
        self, doc: RawDocument, tenant_id: str, snapshot_id: str
    ) -> SubscribedSkuInventory:
        part_number = doc.get_string("skuPartNumber", "") or ""
        capability = doc.get_string("capabilityStatus")
        prepaid = doc.get_document("prepaidUnits") or RawDocument()
        enabled_units = prepaid.get_int("enabled")
        consumed = doc.get_int("consumedUnits")
        return SubscribedSkuInventory(
            tenant_id=tenant_id,
            snapshot_id=snapshot_id,
            object_id=doc.get_string("skuId", ""),
            sku_part_number=part_number,
            display_name=license_display_name(part_number),
            applies_to=doc.get_string("appliesTo"),
            capability_status=capability,
            prepaid_units=enabled_units,
            suspended_units=prepaid.get_int("suspended"),
            warning_units=prepaid.get_int("warning"),
            consumed_units=consumed,
            available_units=enabled_units - consumed,
            is_trial=capability == "Trial" or "TRIAL" in part_number.upper(),
            service_plans=[
                {
                    "servicePlanId": plan.get_string("servicePlanId"),
                    "servicePlanName": plan.get_string("servicePlanName"),
                    "provisioningStatus": plan.get_string("provisioningStatus"),
                    "appliesTo": plan.get_string("appliesTo"),
                }
                for plan in doc.get_documents("servicePlans")
            ],
        )

    def _collect_service_health(
        self,
        client: GraphClient,
        tenant_info: TenantInfo | None,
        warnings: list[str],
    ) -> int:
        """Attach service health to the tenant info; returns active issue count."""
        try:
            document = RawDocument.parse(client.get_raw_json(SERVICE_HEALTH_ENDPOINT))
        except Exception as e:
            warnings.append(f"Error collecting service health: {e}")
            return 0
        if document is None or tenant_info is None:
            return 0

        summary: list[dict[str, Any]] = []
        active_issues = 0
        for service in document.items():
            issue_count = len(service.get_list("issues"))
            active_issues += issue_count
            summary.append(
                {
                    "service": service.get_string("service"),
                    "status": service.get_string("status"),
                    "issueCount": issue_count,
                }
            )
        tenant_info.service_health = summary
        tenant_info.active_service_issues = active_issues
        return active_issues
