"""
Base assessment module for tenantscope.

An assessment module owns one security domain. It collects raw Graph data,
normalizes it into compliance findings and scores them. Modules are
stateless strategy objects: everything run-specific is passed in, so one
instance can serve every run and tenant.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

from tenantscope.cancellation import CancellationToken
from tenantscope.collection.pagination import collect_pages
from tenantscope.engine.scoring import ScoringService
from tenantscope.graph.client import GraphClient
from tenantscope.graph.document import ITEMS_KEY, RawDocument
from tenantscope.models import (
    AssessmentDomain,
    CollectionResult,
    DomainScore,
    NormalizedFinding,
    NormalizedFindings,
    Severity,
)

logger = logging.getLogger(__name__)


class BaseAssessmentModule(ABC):
    """
    Abstract base class for assessment modules.

    Subclasses declare their domain and permissions as class attributes and
    implement collect() and evaluate(). collect() must not raise for
    expected conditions such as a missing permission or an empty result;
    it reports them as warnings or as a failed CollectionResult.

    Attributes:
        domain: Assessment domain this module covers
        display_name: Human-readable module name
        description: What the module assesses
        required_permissions: Graph application permissions the module reads with
    """

    domain: AssessmentDomain
    display_name: str = ""
    description: str = ""
    required_permissions: tuple[str, ...] = ()

    def __init__(self, scoring_service: ScoringService | None = None) -> None:
        """
        Initialize the module.

        Args:
            scoring_service: Shared scoring service. A default one is
                created if omitted.
        """
        self._scoring = scoring_service or ScoringService()
        self._logger = logging.getLogger(type(self).__module__)

    @abstractmethod
    def collect(
        self, client: GraphClient, cancel_token: CancellationToken | None = None
    ) -> CollectionResult:
        """
        Collect raw data for the domain.

        Args:
            client: Tenant-scoped Graph client
            cancel_token: Optional cooperative cancellation token

        Returns:
            CollectionResult carrying raw documents and warnings
        """
        pass

    @abstractmethod
    def evaluate(self, result: CollectionResult, findings: NormalizedFindings) -> None:
        """
        Run the domain's checks against successfully collected data.

        Implementations append findings, metrics and summary lines to
        ``findings``. Must not perform I/O.
        """
        pass

    def normalize(self, result: CollectionResult) -> NormalizedFindings:
        """
        Convert a collection result into normalized findings.

        A failed collection yields no findings and a summary line with the
        failure reason.
        """
        findings = NormalizedFindings(domain=self.domain)
        if not result.success:
            findings.summary.append(f"Collection failed: {result.error_message}")
            return findings

        self.evaluate(result, findings)
        if result.warnings:
            findings.summary.append(
                f"Note: {len(result.warnings)} data points could not be collected"
            )
        return findings

    def score(self, findings: NormalizedFindings) -> DomainScore:
        """Score normalized findings with the shared scoring service."""
        return self._scoring.calculate_domain_score(findings)

    def validate_permissions(self, client: GraphClient) -> bool:
        """
        Check that every required permission is granted.

        Advisory only: collect() tolerates missing permissions regardless.

        Returns:
            False at the first missing permission, True otherwise
        """
        for permission in self.required_permissions:
            if not client.has_permission(permission):
                self._logger.warning(f"Missing required permission: {permission}")
                return False
        return True

    def missing_permissions(self, client: GraphClient) -> list[str]:
        """List every required permission that is not granted."""
        return [p for p in self.required_permissions if not client.has_permission(p)]

    # Helpers for subclasses

    def create_finding(
        self,
        check_id: str,
        check_name: str,
        title: str,
        description: str,
        severity: Severity,
        is_compliant: bool,
        category: str,
        evidence: str | None = None,
        remediation: str | None = None,
        references: str | None = None,
        affected_resources: list[str] | None = None,
    ) -> NormalizedFinding:
        """Build a normalized finding."""
        return NormalizedFinding(
            check_id=check_id,
            check_name=check_name,
            title=title,
            description=description,
            severity=severity,
            is_compliant=is_compliant,
            category=category,
            evidence=evidence,
            remediation=remediation,
            references=references,
            affected_resources=list(affected_resources or []),
        )

    def create_error_result(self, message: str) -> CollectionResult:
        """Build a failed collection result."""
        return CollectionResult(domain=self.domain, success=False, error_message=message)

    def create_success_result(
        self,
        raw_data: dict[str, Any],
        warnings: list[str] | None = None,
        unavailable_endpoints: list[str] | None = None,
    ) -> CollectionResult:
        """Build a successful collection result."""
        return CollectionResult(
            domain=self.domain,
            success=True,
            raw_data=raw_data,
            warnings=list(warnings or []),
            unavailable_endpoints=list(unavailable_endpoints or []),
        )

    def fetch_endpoint(
        self,
        client: GraphClient,
        key: str,
        endpoint: str,
        raw_data: dict[str, Any],
        warnings: list[str],
        unavailable_endpoints: list[str],
        failure_message: str,
        mark_unavailable: bool = True,
    ) -> bool:
        """
        Fetch one endpoint into the raw data bag.

        A failure adds ``"{failure_message}: {error}"`` to the warnings and,
        when ``mark_unavailable`` is set, records ``key`` as unavailable.

        Returns:
            True if the endpoint was read
        """
        self._logger.info(f"Collecting {key}...")
        try:
            body = client.get_raw_json(endpoint)
            raw_data[key] = json.loads(body) if body else None
            return True
        except Exception as e:
            self._logger.warning(f"{failure_message}: {e}")
            warnings.append(f"{failure_message}: {e}")
            if mark_unavailable:
                unavailable_endpoints.append(key)
            return False

    def fetch_all_pages(
        self,
        client: GraphClient,
        key: str,
        endpoint: str,
        raw_data: dict[str, Any],
        warnings: list[str],
        unavailable_endpoints: list[str],
        cancel_token: CancellationToken | None = None,
    ) -> bool:
        """
        Fetch every page of a collection endpoint into the raw data bag.

        Items from all pages are stored as one ``{"value": [...]}``
        document. The key is only marked unavailable when not even the
        first page could be read.

        Returns:
            True if at least the first page was read
        """
        self._logger.info(f"Collecting {key}...")
        pages = collect_pages(
            client, endpoint, warnings=warnings, cancel_token=cancel_token, label=key
        )
        if pages.pages_fetched == 0 and pages.error is not None:
            unavailable_endpoints.append(key)
            return False
        raw_data[key] = {ITEMS_KEY: [item.data for item in pages.items]}
        return True

    @staticmethod
    def get_document(result: CollectionResult, key: str) -> RawDocument | None:
        """Get a collected document by its raw data key."""
        data = result.raw_data.get(key)
        return RawDocument(data) if isinstance(data, dict) else None

    @classmethod
    def get_items(cls, result: CollectionResult, key: str) -> list[RawDocument]:
        """Get the ``value`` items of a collected collection document."""
        document = cls.get_document(result, key)
        return list(document.items()) if document else []
