"""
Assessment orchestration engine.

Runs the selected assessment modules for a tenant one after another,
persists their raw snapshots and findings, and aggregates domain scores
into the run summary.

Failure boundaries:
    - Per module: any error while collecting, normalizing or scoring one
      module marks only that domain unavailable; the loop continues.
    - Per run: errors outside the module loop (client construction,
      persistence) roll back staged writes and fail the run.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Iterable

from tenantscope.cancellation import CancellationToken, is_cancelled
from tenantscope.engine.scoring import ScoringService
from tenantscope.graph.client import GraphClient
from tenantscope.graph.factory import GraphClientFactory
from tenantscope.models import (
    AssessmentDomain,
    AssessmentRun,
    AssessmentStatus,
    DomainScoreSummary,
    Finding,
    RawSnapshot,
)
from tenantscope.observability.logging import get_logger
from tenantscope.progress import ProgressEvent, ProgressReporter, QuietProgressReporter
from tenantscope.quota import UnlimitedUsageQuota, UsageQuota
from tenantscope.storage.base import UnitOfWork

if TYPE_CHECKING:
    from tenantscope.modules.base import BaseAssessmentModule

logger = logging.getLogger(__name__)


class EngineError(Exception):
    """Base class for engine errors."""

    pass


class TenantNotFoundError(EngineError):
    """Raised when a run refers to an unknown tenant."""

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(f"Tenant not found: {tenant_id}")


class RunNotFoundError(EngineError):
    """Raised when an assessment run does not exist."""

    def __init__(self, run_id: str):
        self.run_id = run_id
        super().__init__(f"Assessment run not found: {run_id}")


class QuotaExceededError(EngineError):
    """Raised when a tenant has used up its assessment quota."""

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(f"Assessment quota exceeded for tenant: {tenant_id}")


COMPLETED_OPERATION = "Assessment completed"


class AssessmentEngine:
    """
    Orchestrates assessment runs.

    The engine is the only writer of a run's findings and raw snapshots.
    It holds no per-run state, so one engine can execute many runs, one
    at a time per unit-of-work.

    Example:
        >>> engine = AssessmentEngine(uow, GraphClientFactory(), ModuleRegistry.default())
        >>> run_id = engine.start_assessment(tenant.id)
        >>> run = engine.execute_assessment(run_id)
    """

    def __init__(
        self,
        unit_of_work: UnitOfWork,
        client_factory: GraphClientFactory,
        modules: Iterable[BaseAssessmentModule],
        scoring_service: ScoringService | None = None,
        usage_quota: UsageQuota | None = None,
        progress_reporter: ProgressReporter | None = None,
    ):
        """
        Initialize the engine.

        Args:
            unit_of_work: Persistence for runs, findings and snapshots
            client_factory: Builds a Graph client per tenant
            modules: Assessment modules in registration order
            scoring_service: Aggregates domain scores; created if omitted
            usage_quota: Quota consulted before a run; unlimited if omitted
            progress_reporter: Receives progress events; silent if omitted
        """
        self._uow = unit_of_work
        self._client_factory = client_factory
        self._modules = list(modules)
        self._scoring = scoring_service or ScoringService()
        self._quota = usage_quota or UnlimitedUsageQuota()
        self._progress = progress_reporter or QuietProgressReporter()
        self._events = get_logger(__name__)

    @property
    def registered_domains(self) -> list[AssessmentDomain]:
        """Domains of every registered module, in registration order."""
        return [m.domain for m in self._modules]

    def start_assessment(
        self,
        tenant_id: str,
        domains: Iterable[AssessmentDomain] | None = None,
        initiated_by: str | None = None,
    ) -> str:
        """
        Create a pending assessment run.

        Args:
            tenant_id: Tenant to assess
            domains: Domains to assess, or None for every registered domain
            initiated_by: Who requested the run

        Returns:
            The new run's id

        Raises:
            TenantNotFoundError: If the tenant does not exist
            QuotaExceededError: If the tenant's quota is used up
        """
        tenant = self._uow.tenants.get(tenant_id)
        if tenant is None:
            raise TenantNotFoundError(tenant_id)
        if not self._quota.can_run_assessment(tenant_id):
            raise QuotaExceededError(tenant_id)

        selected = list(domains) if domains is not None else self.registered_domains
        unknown = [d for d in selected if d not in self.registered_domains]
        if unknown:
            logger.warning(
                f"No module registered for domains: {', '.join(d.value for d in unknown)}"
            )

        run = AssessmentRun(
            tenant_id=tenant_id,
            domains=selected,
            initiated_by=initiated_by,
        )
        self._uow.assessment_runs.add(run)
        self._uow.commit()

        logger.info(f"Created assessment run {run.id} for tenant {tenant.name}")
        return run.id

    def execute_assessment(
        self, run_id: str, cancel_token: CancellationToken | None = None
    ) -> AssessmentRun:
        """
        Execute a pending assessment run.

        Args:
            run_id: Run created by start_assessment()
            cancel_token: Optional cooperative cancellation token, checked
                before each module

        Returns:
            The run in its terminal state

        Raises:
            RunNotFoundError: If the run does not exist
            TenantNotFoundError: If the run's tenant no longer exists
            Exception: Any engine-level failure, after the run was marked failed
        """
        run = self._uow.assessment_runs.get(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        tenant = self._uow.tenants.get(run.tenant_id)
        if tenant is None:
            raise TenantNotFoundError(run.tenant_id)

        run.transition_to(AssessmentStatus.RUNNING)
        self._uow.assessment_runs.update(run)
        self._uow.save_changes()

        self._events.set_context(run_id=run.id, tenant_id=tenant.id)
        self._events.run_started(run.id, tenant.id, [d.value for d in run.domains])
        start_time = time.time()

        try:
            client = self._client_factory.create_client(tenant)
            self._uow.begin_transaction()

            selected = [m for m in self._modules if m.domain in run.domains]
            findings: list[Finding] = []
            total = len(selected)

            for index, module in enumerate(selected):
                if is_cancelled(cancel_token):
                    logger.info(f"Assessment run {run.id} cancelled before {module.display_name}")
                    break

                self._report(
                    run.id,
                    index * 100 // total,
                    f"Assessing {module.display_name}",
                    module.domain.value,
                )
                run.domain_scores[module.domain.value] = self._run_module(
                    run, module, client, findings, cancel_token
                )

            self._uow.findings.add_many(findings)
            run.overall_score = self._scoring.overall_from_summaries(
                run.domain_scores.values()
            )
            final_status = (
                AssessmentStatus.CANCELLED
                if is_cancelled(cancel_token)
                else AssessmentStatus.COMPLETED
            )
            run.transition_to(final_status)
            self._uow.assessment_runs.update(run)
            self._uow.commit()

        except Exception as e:
            self._fail_run(run, e)
            raise
        finally:
            self._events.clear_context()

        if run.status == AssessmentStatus.COMPLETED:
            self._quota.record_assessment_run(run.tenant_id)

        self._report(run.id, 100, COMPLETED_OPERATION, None)
        self._events.run_completed(
            run.id, run.status.value, run.overall_score, time.time() - start_time
        )
        return run

    def get_run(self, run_id: str) -> AssessmentRun:
        """
        Get an assessment run.

        Raises:
            RunNotFoundError: If the run does not exist
        """
        run = self._uow.assessment_runs.get(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        return run

    def get_findings(self, run_id: str) -> list[Finding]:
        """List the persisted findings of a run."""
        return self._uow.findings.find(lambda f: f.run_id == run_id)

    def _run_module(
        self,
        run: AssessmentRun,
        module: BaseAssessmentModule,
        client: GraphClient,
        findings: list[Finding],
        cancel_token: CancellationToken | None,
    ) -> DomainScoreSummary:
        """Run one module inside its failure boundary."""
        domain = module.domain.value
        self._events.module_started(run.id, domain)
        module_start = time.time()

        try:
            result = module.collect(client, cancel_token)
            self._uow.raw_snapshots.add(RawSnapshot.from_collection(run.id, result))

            if not result.success:
                self._events.module_failed(run.id, domain, result.error_message or "")
                return DomainScoreSummary.unavailable(
                    module.domain, module.display_name, result.error_message
                )

            normalized = module.normalize(result)
            score = module.score(normalized)
            findings.extend(
                Finding.from_normalized(run.id, module.domain, f)
                for f in normalized.findings
            )
            self._events.module_completed(
                run.id, domain, score.score, time.time() - module_start
            )
            return DomainScoreSummary.from_score(score, module.display_name)

        except Exception as e:
            logger.exception(f"Module {module.display_name} failed: {e}")
            return DomainScoreSummary.unavailable(
                module.domain, module.display_name, str(e)
            )

    def _fail_run(self, run: AssessmentRun, error: Exception) -> None:
        """
        Persist the run as failed.

        Raw snapshots and findings staged before the failure are committed
        with the failed run. Only when that commit fails are they rolled
        back, and the failed run is then saved on its own.
        """
        self._events.run_failed(run.id, str(error))
        run.mark_failed(str(error))

        try:
            self._uow.assessment_runs.update(run)
            self._uow.commit()
            return
        except Exception as commit_error:
            logger.error(
                f"Could not commit collected data of run {run.id}: {commit_error}"
            )
            self._uow.rollback()

        try:
            self._uow.assessment_runs.update(run)
            self._uow.commit()
        except Exception as commit_error:
            logger.error(f"Could not persist failure of run {run.id}: {commit_error}")

    def _report(
        self,
        run_id: str,
        percentage: int,
        operation: str,
        current_domain: str | None,
    ) -> None:
        self._progress.report(
            ProgressEvent(
                run_id=run_id,
                percentage=percentage,
                operation=operation,
                current_domain=current_domain,
            )
        )
