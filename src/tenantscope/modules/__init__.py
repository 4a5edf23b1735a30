"""
Assessment modules for tenantscope.

Each module owns one security domain and implements the collect,
normalize and score phases.

Modules:
    - IamAssessmentModule: Identity & Access Management
    - PrivilegedAccessAssessmentModule: Privileged Access Management
"""

from tenantscope.modules.base import BaseAssessmentModule
from tenantscope.modules.iam import IamAssessmentModule
from tenantscope.modules.privileged_access import PrivilegedAccessAssessmentModule
from tenantscope.modules.registry import (
    MODULE_REGISTRY,
    ModuleRegistry,
    get_default_modules,
    list_module_domains,
)

__all__ = [
    "BaseAssessmentModule",
    "IamAssessmentModule",
    "PrivilegedAccessAssessmentModule",
    "MODULE_REGISTRY",
    "ModuleRegistry",
    "get_default_modules",
    "list_module_domains",
]
