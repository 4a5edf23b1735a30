"""
CLI command handlers for tenantscope.

Each handler receives the parsed arguments and returns the process exit
code: 0 on success, 1 when the run itself failed, 2 for usage or
configuration errors.
"""

from __future__ import annotations

import argparse
import json
import logging

from tenantscope.config import AssessmentConfiguration, ConfigurationError
from tenantscope.models import AssessmentDomain, AssessmentStatus, InventoryDomain, InventoryStatus
from tenantscope.observability import configure_from_environment

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def _load_config(args: argparse.Namespace) -> AssessmentConfiguration:
    """
    Load the --config file and apply environment overrides.

    The file's logging section is applied unless --verbose was given.
    """
    config = AssessmentConfiguration.from_file(args.config).apply_environment()
    if not getattr(args, "verbose", 0):
        configure_from_environment(config.logging.level, config.logging.format)
    return config


def _split(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _show_progress(args: argparse.Namespace) -> bool:
    return not args.quiet and args.format != "json"


def cmd_assess(args: argparse.Namespace) -> int:
    """
    Run a security posture assessment.

    Steps:
        1. Load configuration and build the tenant record
        2. Start and execute an assessment run
        3. Print the domain scores and failed checks

    Returns:
        Exit code (0 completed, 1 failed, 2 configuration error)
    """
    from tenantscope.engine import AssessmentEngine, ScoringService
    from tenantscope.graph import GraphClientFactory
    from tenantscope.modules import ModuleRegistry
    from tenantscope.progress import QuietProgressReporter, TerminalProgressReporter
    from tenantscope.storage import InMemoryUnitOfWork

    try:
        config = _load_config(args)
        tenant = config.require_tenant().to_tenant()
        domains = (
            [AssessmentDomain.from_string(d) for d in _split(args.domains)]
            if args.domains
            else config.get_assessment_domains()
        )
    except (ConfigurationError, ValueError) as e:
        print(f"Error: {e}")
        return EXIT_USAGE

    uow = InMemoryUnitOfWork()
    uow.tenants.add(tenant)
    uow.save_changes()

    scoring = ScoringService(max_recommendations=config.max_recommendations)
    engine = AssessmentEngine(
        uow,
        GraphClientFactory(
            base_url=config.graph.base_url, timeout=config.graph.request_timeout
        ),
        ModuleRegistry.default(scoring),
        scoring_service=scoring,
        progress_reporter=TerminalProgressReporter()
        if _show_progress(args)
        else QuietProgressReporter(),
    )

    try:
        run_id = engine.start_assessment(tenant.id, domains, initiated_by="cli")
        run = engine.execute_assessment(run_id)
    except Exception as e:
        logger.error(f"Assessment failed: {e}")
        print(f"Error: Assessment failed: {e}")
        return EXIT_FAILURE

    findings = engine.get_findings(run.id)
    if args.format == "json":
        output = run.to_dict()
        output["findings"] = [f.to_dict() for f in findings]
        print(json.dumps(output, indent=2, default=str))
    else:
        _print_assessment_table(run, findings)

    return EXIT_OK if run.status == AssessmentStatus.COMPLETED else EXIT_FAILURE


def _print_assessment_table(run, findings) -> None:
    print()
    print(f"Assessment {run.id}: {run.status.value}")
    overall = run.overall_score if run.overall_score is not None else "n/a"
    print(f"Overall score: {overall}")
    print()
    print(f"{'Domain':<36} {'Score':>5} {'Grade':>5} {'Passed':>6} {'Failed':>6}")
    print("-" * 62)
    for summary in run.domain_scores.values():
        if not summary.is_available:
            print(f"{summary.display_name:<36} {'-':>5} {'-':>5}   unavailable: "
                  f"{summary.unavailable_reason}")
            continue
        print(
            f"{summary.display_name:<36} {summary.score:>5} {summary.grade:>5} "
            f"{summary.passed_checks:>6} {summary.failed_checks:>6}"
        )

    failed = [f for f in findings if not f.is_compliant]
    if failed:
        print()
        print("Failed checks:")
        for finding in sorted(failed, key=lambda f: f.severity.rank):
            print(f"  [{finding.severity.value.upper():<8}] {finding.check_id} {finding.title}")


def cmd_inventory(args: argparse.Namespace) -> int:
    """
    Collect a tenant inventory.

    Returns:
        Exit code (0 completed, 1 failed or partial, 2 configuration error)
    """
    from tenantscope.graph import GraphClientFactory
    from tenantscope.inventory import InventoryEngine, get_default_inventory_modules
    from tenantscope.progress import QuietProgressReporter, TerminalProgressReporter
    from tenantscope.storage import InMemoryUnitOfWork

    try:
        config = _load_config(args)
        tenant = config.require_tenant().to_tenant()
        domains = (
            [InventoryDomain.from_string(d) for d in _split(args.domains)]
            if args.domains
            else config.get_inventory_domains()
        )
    except (ConfigurationError, ValueError) as e:
        print(f"Error: {e}")
        return EXIT_USAGE

    uow = InMemoryUnitOfWork()
    uow.tenants.add(tenant)
    uow.save_changes()

    engine = InventoryEngine(
        uow,
        GraphClientFactory(
            base_url=config.graph.base_url, timeout=config.graph.request_timeout
        ),
        get_default_inventory_modules(permission_markers=config.permission_markers),
        progress_reporter=TerminalProgressReporter()
        if _show_progress(args)
        else QuietProgressReporter(),
    )

    try:
        collection_id = engine.start_collection(tenant.id, domains, initiated_by="cli")
        progress = engine.execute_collection(collection_id)
    except Exception as e:
        logger.error(f"Inventory collection failed: {e}")
        print(f"Error: Inventory collection failed: {e}")
        return EXIT_FAILURE

    snapshots = engine.get_snapshots(collection_id)
    if args.format == "json":
        output = progress.to_dict()
        output["snapshots"] = [s.to_dict() for s in snapshots]
        print(json.dumps(output, indent=2, default=str))
    else:
        print()
        print(f"Inventory {collection_id}: {progress.status.value}")
        print(f"Total items: {progress.total_items}")
        print()
        for snapshot in snapshots:
            print(
                f"  {snapshot.domain.display_name:<36} {snapshot.status.value:<20} "
                f"{snapshot.item_count:>6} items"
            )
            for warning in snapshot.warnings:
                print(f"      warning: {warning}")
        for error in progress.errors:
            print(f"  error: {error}")

    return EXIT_OK if progress.status == InventoryStatus.COMPLETED else EXIT_FAILURE


def cmd_modules(args: argparse.Namespace) -> int:
    """List registered assessment and inventory modules."""
    from tenantscope.inventory import get_default_inventory_modules
    from tenantscope.modules import ModuleRegistry

    assessment = [
        {
            "kind": "assessment",
            "domain": m.domain.value,
            "name": m.display_name,
            "required_permissions": list(m.required_permissions),
        }
        for m in ModuleRegistry.default()
    ]
    inventory = [
        {
            "kind": "inventory",
            "domain": m.domain.value,
            "name": m.display_name,
            "required_permissions": list(m.required_permissions),
        }
        for m in get_default_inventory_modules()
    ]

    if args.format == "json":
        print(json.dumps(assessment + inventory, indent=2))
        return EXIT_OK

    for entry in assessment + inventory:
        print(f"{entry['kind']:<11} {entry['domain']:<28} {entry['name']}")
        print(f"{'':<11} {', '.join(entry['required_permissions'])}")
    return EXIT_OK


def cmd_permissions(args: argparse.Namespace) -> int:
    """
    Check the tenant's granted permissions against every module.

    Returns:
        Exit code (0 all granted, 1 something missing or unreachable,
        2 configuration error)
    """
    from tenantscope.graph import GraphClientConfigurationError, GraphClientFactory
    from tenantscope.inventory import get_default_inventory_modules
    from tenantscope.modules import ModuleRegistry

    try:
        config = _load_config(args)
        tenant = config.require_tenant().to_tenant()
        client = GraphClientFactory(
            base_url=config.graph.base_url, timeout=config.graph.request_timeout
        ).create_client(tenant)
    except (ConfigurationError, GraphClientConfigurationError) as e:
        print(f"Error: {e}")
        return EXIT_USAGE

    if not client.test_connection():
        print("Error: Could not connect to Microsoft Graph")
        return EXIT_FAILURE

    modules = list(ModuleRegistry.default()) + get_default_inventory_modules()
    report = {
        m.display_name: [p for p in m.required_permissions if not client.has_permission(p)]
        for m in modules
    }

    if args.format == "json":
        print(json.dumps({"missing_permissions": report}, indent=2))
    else:
        for name, missing in report.items():
            status = "OK" if not missing else f"missing {', '.join(missing)}"
            print(f"  {name:<40} {status}")

    return EXIT_OK if not any(report.values()) else EXIT_FAILURE
