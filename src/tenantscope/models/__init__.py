"""
Data models for tenantscope.

- enums: severities, domains and lifecycle states
- assessment: collect/normalize/score pipeline objects
- entities: persisted runs, findings and raw snapshots
- inventory: inventory results, snapshots, progress and entities
"""

from tenantscope.models.enums import (
    AssessmentDomain,
    AssessmentStatus,
    InventoryDomain,
    InventoryStatus,
    Severity,
)
from tenantscope.models.assessment import (
    MAX_DOMAIN_SCORE,
    UNGRADED,
    CollectionResult,
    DomainScore,
    DomainScoreSummary,
    NormalizedFinding,
    NormalizedFindings,
)
from tenantscope.models.entities import (
    RAW_SNAPSHOT_COLLECTION_RESULT,
    AssessmentRun,
    Finding,
    InvalidRunTransitionError,
    RawSnapshot,
    Tenant,
    generate_id,
)
from tenantscope.models.inventory import (
    ConditionalAccessPolicyInventory,
    DirectoryRoleInventory,
    GroupInventory,
    InventoryCollectionResult,
    InventoryItem,
    InventoryProgress,
    InventorySnapshot,
    NamedLocationInventory,
    ServicePrincipalInventory,
    SubscribedSkuInventory,
    TenantInfo,
    UserInventory,
)

__all__ = [
    # Enums
    "AssessmentDomain",
    "AssessmentStatus",
    "InventoryDomain",
    "InventoryStatus",
    "Severity",
    # Assessment pipeline
    "MAX_DOMAIN_SCORE",
    "UNGRADED",
    "CollectionResult",
    "DomainScore",
    "DomainScoreSummary",
    "NormalizedFinding",
    "NormalizedFindings",
    # Entities
    "RAW_SNAPSHOT_COLLECTION_RESULT",
    "AssessmentRun",
    "Finding",
    "InvalidRunTransitionError",
    "RawSnapshot",
    "Tenant",
    "generate_id",
    # Inventory
    "ConditionalAccessPolicyInventory",
    "DirectoryRoleInventory",
    "GroupInventory",
    "InventoryCollectionResult",
    "InventoryItem",
    "InventoryProgress",
    "InventorySnapshot",
    "NamedLocationInventory",
    "ServicePrincipalInventory",
    "SubscribedSkuInventory",
    "TenantInfo",
    "UserInventory",
]
