"""
Registry of assessment modules.

The engine iterates modules in registration order, which is also the order
progress events are reported in.
"""

from __future__ import annotations

import logging
from typing import Iterable, Iterator

from tenantscope.engine.scoring import ScoringService
from tenantscope.models import AssessmentDomain
from tenantscope.modules.base import BaseAssessmentModule
from tenantscope.modules.iam import IamAssessmentModule
from tenantscope.modules.privileged_access import PrivilegedAccessAssessmentModule

logger = logging.getLogger(__name__)

# Module classes by domain, in registration order
MODULE_REGISTRY: dict[AssessmentDomain, type[BaseAssessmentModule]] = {
    AssessmentDomain.IDENTITY_AND_ACCESS: IamAssessmentModule,
    AssessmentDomain.PRIVILEGED_ACCESS: PrivilegedAccessAssessmentModule,
}


class ModuleRegistry:
    """
    Ordered collection of assessment module instances.

    Example:
        >>> registry = ModuleRegistry.default()
        >>> [d.value for d in registry.domains]
        ['identity_and_access', 'privileged_access']
    """

    def __init__(self, modules: Iterable[BaseAssessmentModule] = ()):
        self._modules: dict[AssessmentDomain, BaseAssessmentModule] = {}
        for module in modules:
            self.register(module)

    @classmethod
    def default(cls, scoring_service: ScoringService | None = None) -> ModuleRegistry:
        """Build a registry holding every built-in module."""
        return cls(get_default_modules(scoring_service))

    def register(self, module: BaseAssessmentModule) -> None:
        """
        Register a module instance.

        Raises:
            ValueError: If a module is already registered for the domain
        """
        if module.domain in self._modules:
            raise ValueError(f"Module already registered for domain: {module.domain.value}")
        self._modules[module.domain] = module
        logger.debug(f"Registered assessment module {module.display_name}")

    def get(self, domain: AssessmentDomain) -> BaseAssessmentModule | None:
        """Get the module for a domain, if registered."""
        return self._modules.get(domain)

    @property
    def domains(self) -> list[AssessmentDomain]:
        """Registered domains in registration order."""
        return list(self._modules)

    def select(
        self, domains: Iterable[AssessmentDomain] | None = None
    ) -> list[BaseAssessmentModule]:
        """
        Get modules for the given domains, in registration order.

        Args:
            domains: Domains to select, or None for every module
        """
        if domains is None:
            return list(self._modules.values())
        wanted = set(domains)
        return [m for d, m in self._modules.items() if d in wanted]

    def __iter__(self) -> Iterator[BaseAssessmentModule]:
        return iter(self._modules.values())

    def __len__(self) -> int:
        return len(self._modules)

    def __contains__(self, domain: object) -> bool:
        return domain in self._modules


def get_default_modules(
    scoring_service: ScoringService | None = None,
) -> list[BaseAssessmentModule]:
    """
    Instantiate every built-in module sharing one scoring service.

    Args:
        scoring_service: Shared scoring service, created if omitted

    Returns:
        Module instances in registration order
    """
    scoring = scoring_service or ScoringService()
    return [module_class(scoring) for module_class in MODULE_REGISTRY.values()]


def list_module_domains() -> list[str]:
    """List the domain values of every built-in module."""
    return [domain.value for domain in MODULE_REGISTRY]
