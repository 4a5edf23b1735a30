"""
Well-known Entra ID identifiers used by checks and inventory.
"""

from __future__ import annotations

GLOBAL_ADMIN_TEMPLATE_ID = "62e90394-69f5-4237-9190-012177145e10"
PRIVILEGED_ROLE_ADMIN_TEMPLATE_ID = "e8611ab8-c189-46e8-94e1-60213ab1f814"
SECURITY_ADMIN_TEMPLATE_ID = "194ae4cb-b126-40b2-bd5b-6091b380977d"
APPLICATION_ADMIN_TEMPLATE_ID = "9b895d92-2cd3-44c7-9d02-a6ac2d5ea5c3"
CLOUD_APPLICATION_ADMIN_TEMPLATE_ID = "158c047a-c907-4556-b7ef-446551a6b5f7"
CONDITIONAL_ACCESS_ADMIN_TEMPLATE_ID = "b1be1c3e-b65d-4f19-8427-f6fa0d97feb9"
EXCHANGE_ADMIN_TEMPLATE_ID = "29232cdf-9323-42fd-ade2-1d097af3e4de"
SHAREPOINT_ADMIN_TEMPLATE_ID = "f28a1f50-f6e7-4571-818b-6a12f2af6b6c"
USER_ADMIN_TEMPLATE_ID = "fe930be7-5e62-47db-91af-98c3a49a38b1"
GROUPS_ADMIN_TEMPLATE_ID = "fdd7a751-b60b-444a-984c-02652fe8fa1c"
PRIVILEGED_AUTH_ADMIN_TEMPLATE_ID = "7be44c8a-adaf-4e2a-84d6-ab2649e08a13"

# Roles whose standing assignment is treated as high privilege
HIGH_PRIVILEGE_ROLE_TEMPLATE_IDS = frozenset(
    {
        GLOBAL_ADMIN_TEMPLATE_ID,
        PRIVILEGED_ROLE_ADMIN_TEMPLATE_ID,
        SECURITY_ADMIN_TEMPLATE_ID,
        APPLICATION_ADMIN_TEMPLATE_ID,
        CLOUD_APPLICATION_ADMIN_TEMPLATE_ID,
        CONDITIONAL_ACCESS_ADMIN_TEMPLATE_ID,
        EXCHANGE_ADMIN_TEMPLATE_ID,
        USER_ADMIN_TEMPLATE_ID,
        GROUPS_ADMIN_TEMPLATE_ID,
    }
)

# Roles flagged as privileged in the directory role inventory
PRIVILEGED_ROLE_TEMPLATE_IDS = frozenset(
    {
        GLOBAL_ADMIN_TEMPLATE_ID,
        PRIVILEGED_ROLE_ADMIN_TEMPLATE_ID,
        SECURITY_ADMIN_TEMPLATE_ID,
        APPLICATION_ADMIN_TEMPLATE_ID,
        PRIVILEGED_AUTH_ADMIN_TEMPLATE_ID,
        CLOUD_APPLICATION_ADMIN_TEMPLATE_ID,
        CONDITIONAL_ACCESS_ADMIN_TEMPLATE_ID,
        EXCHANGE_ADMIN_TEMPLATE_ID,
        SHAREPOINT_ADMIN_TEMPLATE_ID,
        USER_ADMIN_TEMPLATE_ID,
    }
)

GLOBAL_ADMIN_ROLE_NAME = "Global Administrator"

MICROSOFT_TENANT_ID = "f8cdef31-a31e-4b4a-93e4-5f571e91255a"

MICROSOFT_FIRST_PARTY_APP_IDS = frozenset(
    {
        "00000003-0000-0000-c000-000000000000",  # Microsoft Graph
        "00000002-0000-0ff1-ce00-000000000000",  # SharePoint
        "00000004-0000-0ff1-ce00-000000000000",  # Outlook
        "00000002-0000-0000-c000-000000000000",  # Azure AD Graph
    }
)

MULTI_GEO_SERVICE_PLAN_ID = "b9b5f21b-8f69-40e6-9b99-e3c764bc8c4c"

ODATA_USER = "#microsoft.graph.user"
ODATA_SERVICE_PRINCIPAL = "#microsoft.graph.servicePrincipal"
ODATA_GROUP = "#microsoft.graph.group"
