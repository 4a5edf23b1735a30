"""
Unit tests for tenantscope data models.

Tests enums, the assessment run lifecycle, persisted findings and raw
snapshots, and inventory item identity.
"""

from __future__ import annotations

import json

import pytest

from tenantscope.models import (
    RAW_SNAPSHOT_COLLECTION_RESULT,
    AssessmentDomain,
    AssessmentRun,
    AssessmentStatus,
    CollectionResult,
    DomainScoreSummary,
    Finding,
    InvalidRunTransitionError,
    InventoryDomain,
    NormalizedFinding,
    RawSnapshot,
    Severity,
    UserInventory,
)


# ============================================================================
# Enum Tests
# ============================================================================


class TestSeverity:
    """Tests for Severity."""

    def test_rank_orders_most_severe_first(self) -> None:
        """Test rank ordering."""
        ordered = sorted(Severity, key=lambda s: s.rank)

        assert ordered[0] == Severity.CRITICAL
        assert ordered[-1] == Severity.INFORMATIONAL

    def test_from_string(self) -> None:
        """Test case-insensitive parsing and the info alias."""
        assert Severity.from_string("HIGH") == Severity.HIGH
        assert Severity.from_string("info") == Severity.INFORMATIONAL

        with pytest.raises(ValueError):
            Severity.from_string("severe")


class TestDomains:
    """Tests for assessment and inventory domains."""

    def test_assessment_domain_from_string(self) -> None:
        """Test dashes and case are normalized."""
        assert AssessmentDomain.from_string("Privileged-Access") == AssessmentDomain.PRIVILEGED_ACCESS

        with pytest.raises(ValueError):
            AssessmentDomain.from_string("firewall")

    def test_every_domain_has_display_name(self) -> None:
        """Test display names exist for all domains."""
        assert all(d.display_name for d in AssessmentDomain)
        assert all(d.display_name and d.description for d in InventoryDomain)

    def test_inventory_display_name(self) -> None:
        """Test inventory display names."""
        assert InventoryDomain.IDENTITY_ACCESS.display_name == "Identity & Access (Entra ID)"
        assert InventoryDomain.from_string("tenant_baseline") == InventoryDomain.TENANT_BASELINE


# ============================================================================
# AssessmentRun Tests
# ============================================================================


class TestAssessmentRun:
    """Tests for the assessment run lifecycle."""

    def _run(self) -> AssessmentRun:
        return AssessmentRun(tenant_id="t1", domains=[AssessmentDomain.IDENTITY_AND_ACCESS])

    def test_defaults(self) -> None:
        """Test a new run is pending with a generated id."""
        run = self._run()

        assert run.status == AssessmentStatus.PENDING
        assert run.id
        assert run.started_at is None

    def test_lifecycle_timestamps(self) -> None:
        """Test running and terminal transitions stamp their times."""
        run = self._run()

        run.transition_to(AssessmentStatus.RUNNING)
        assert run.started_at is not None

        run.transition_to(AssessmentStatus.COMPLETED)
        assert run.completed_at is not None
        assert run.status.is_terminal

    @pytest.mark.parametrize(
        "path",
        [
            [AssessmentStatus.COMPLETED],
            [AssessmentStatus.RUNNING, AssessmentStatus.PENDING],
            [AssessmentStatus.CANCELLED, AssessmentStatus.RUNNING],
            [AssessmentStatus.RUNNING, AssessmentStatus.FAILED, AssessmentStatus.COMPLETED],
        ],
    )
    def test_invalid_transitions(self, path) -> None:
        """Test disallowed transitions raise."""
        run = self._run()

        with pytest.raises(InvalidRunTransitionError):
            for status in path:
                run.transition_to(status)

    def test_mark_failed_overrides_terminal_state(self) -> None:
        """Test mark_failed replaces an unsaved completed state."""
        run = self._run()
        run.transition_to(AssessmentStatus.RUNNING)
        run.transition_to(AssessmentStatus.COMPLETED)

        run.mark_failed("commit failed")

        assert run.status == AssessmentStatus.FAILED
        assert run.error_message == "commit failed"
        assert run.completed_at is not None

    def test_dict_round_trip(self) -> None:
        """Test serialization preserves the summary."""
        run = self._run()
        run.transition_to(AssessmentStatus.RUNNING)
        run.overall_score = 72
        run.domain_scores["identity_and_access"] = DomainScoreSummary(
            domain=AssessmentDomain.IDENTITY_AND_ACCESS,
            display_name="Identity & Access (IAM)",
            score=72,
            grade="C",
        )

        restored = AssessmentRun.from_dict(run.to_dict())

        assert restored.id == run.id
        assert restored.status == AssessmentStatus.RUNNING
        assert restored.overall_score == 72
        assert restored.domain_scores["identity_and_access"].grade == "C"
        assert json.loads(run.summary_json)["identity_and_access"]["score"] == 72


# ============================================================================
# Finding and RawSnapshot Tests
# ============================================================================


class TestFinding:
    """Tests for persisted findings."""

    def test_from_normalized_joins_resources(self) -> None:
        """Test affected resources are joined with commas."""
        normalized = NormalizedFinding(
            check_id="IAM-007",
            check_name="Disabled Admin Accounts",
            title="Disabled accounts hold admin roles",
            description="desc",
            severity=Severity.MEDIUM,
            is_compliant=False,
            category="Privileged Access",
            affected_resources=["alice@contoso.com", "bob@contoso.com"],
        )

        finding = Finding.from_normalized("run-1", AssessmentDomain.IDENTITY_AND_ACCESS, normalized)

        assert finding.run_id == "run-1"
        assert finding.affected_resources == "alice@contoso.com, bob@contoso.com"
        assert finding.to_dict()["severity"] == "medium"

    def test_no_resources(self) -> None:
        """Test an empty resource list is stored as None."""
        normalized = NormalizedFinding(
            check_id="X", check_name="X", title="X", description="X",
            severity=Severity.LOW, is_compliant=True, category="X",
        )

        finding = Finding.from_normalized("run-1", AssessmentDomain.AUDIT_LOGGING, normalized)

        assert finding.affected_resources is None


class TestRawSnapshot:
    """Tests for raw snapshots."""

    def test_from_collection(self) -> None:
        """Test the payload is the serialized collection result."""
        result = CollectionResult(
            domain=AssessmentDomain.PRIVILEGED_ACCESS,
            raw_data={"directoryRoles": {"value": []}},
            warnings=["w"],
        )

        snapshot = RawSnapshot.from_collection("run-1", result)

        payload = json.loads(snapshot.payload)
        assert snapshot.data_type == RAW_SNAPSHOT_COLLECTION_RESULT
        assert payload["raw_data"] == {"directoryRoles": {"value": []}}
        assert payload["warnings"] == ["w"]
        assert snapshot.payload_size == len(snapshot.payload.encode("utf-8"))


# ============================================================================
# InventoryItem Tests
# ============================================================================


class TestInventoryItem:
    """Tests for inventory item identity."""

    def test_item_key(self) -> None:
        """Test the key combines type and object id."""
        user = UserInventory(tenant_id="t", snapshot_id="s", object_id="u1")

        assert user.item_key == "UserInventory:u1"

    def test_fingerprint_ignores_snapshot(self) -> None:
        """Test the same content in different snapshots hashes equally."""
        first = UserInventory(tenant_id="t", snapshot_id="s1", object_id="u1", display_name="A")
        second = UserInventory(tenant_id="t", snapshot_id="s2", object_id="u1", display_name="A")
        changed = UserInventory(tenant_id="t", snapshot_id="s2", object_id="u1", display_name="B")

        assert first.fingerprint() == second.fingerprint()
        assert first.fingerprint() != changed.fingerprint()
