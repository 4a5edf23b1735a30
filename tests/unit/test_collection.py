"""
Unit tests for the pagination and enrichment protocols.
"""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from tenantscope.cancellation import CancellationToken
from tenantscope.collection import (
    build_lookup,
    collect_all_pages,
    collect_pages,
    endpoint_label,
    is_expected_unavailability,
    overlay,
    run_enrichment,
)
from tenantscope.graph import GraphApiError, RawDocument


@dataclass
class _Entity:
    id: str
    last_sign_in: str | None = None


# ============================================================================
# Pagination Tests
# ============================================================================


class TestEndpointLabel:
    """Tests for endpoint_label."""

    @pytest.mark.parametrize(
        "endpoint,expected",
        [
            ("users?$select=id&$top=999", "users"),
            ("identity/conditionalAccess/policies", "policies"),
            ("groups/", "groups"),
        ],
    )
    def test_labels(self, endpoint, expected) -> None:
        """Test the last path segment is used as the label."""
        assert endpoint_label(endpoint) == expected


class TestCollectPages:
    """Tests for collect_pages."""

    def test_follows_next_links_in_order(self, fake_client) -> None:
        """Test items from three pages are accumulated in page order."""
        fake_client.respond(
            "users", {"value": [{"id": "1"}, {"id": "2"}], "@odata.nextLink": "https://g/p2"}
        )
        fake_client.respond("https://g/p2", {"value": [{"id": "3"}], "@odata.nextLink": "https://g/p3"})
        fake_client.respond("https://g/p3", {"value": [{"id": "4"}]})

        result = collect_pages(fake_client, "users", convert=lambda d: d.get_string("id"))

        assert result.items == ["1", "2", "3", "4"]
        assert result.pages_fetched == 3
        assert not result.truncated
        assert fake_client.requests == ["users", "https://g/p2", "https://g/p3"]

    def test_items_default_to_documents(self, fake_client) -> None:
        """Test items are RawDocuments when no conversion is given."""
        fake_client.respond("groups", {"value": [{"id": "g1"}]})

        items = collect_all_pages(fake_client, "groups")

        assert isinstance(items[0], RawDocument)
        assert items[0].get_string("id") == "g1"

    def test_page_failure_keeps_earlier_items(self, fake_client) -> None:
        """Test a failing second page keeps page one and records a warning."""
        fake_client.respond("users", {"value": [{"id": "1"}], "@odata.nextLink": "https://g/p2"})
        fake_client.fail("https://g/p2", GraphApiError("503 Service Unavailable: busy", 503))
        warnings: list[str] = []

        result = collect_pages(fake_client, "users?$top=999", warnings=warnings)

        assert [d.get_string("id") for d in result.items] == ["1"]
        assert result.pages_fetched == 1
        assert result.truncated
        assert warnings == ["Error fetching users page: 503 Service Unavailable: busy"]
        assert isinstance(result.exception, GraphApiError)
        assert result.exception.status_code == 503

    def test_missing_resource_stops_quietly(self, fake_client) -> None:
        """Test a 404 (None body) yields no items and no warning."""
        warnings: list[str] = []

        result = collect_pages(fake_client, "deviceManagement/managedDevices", warnings=warnings)

        assert result.items == []
        assert result.error is None
        assert warnings == []

    def test_cancelled_before_first_page(self, fake_client) -> None:
        """Test a cancelled token stops before any fetch."""
        token = CancellationToken()
        token.cancel()

        result = collect_pages(fake_client, "users", cancel_token=token)

        assert result.cancelled
        assert result.pages_fetched == 0
        assert fake_client.requests == []

    def test_custom_label_and_keys(self, fake_client) -> None:
        """Test non-standard item and cursor keys."""
        fake_client.respond("audit", {"records": [{"id": "a"}], "next": "https://g/a2"})
        fake_client.fail("https://g/a2", RuntimeError("boom"))
        warnings: list[str] = []

        result = collect_pages(
            fake_client,
            "audit",
            warnings=warnings,
            label="audit records",
            items_key="records",
            next_link_key="next",
        )

        assert len(result.items) == 1
        assert warnings == ["Error fetching audit records page: boom"]


# ============================================================================
# Enrichment Tests
# ============================================================================


class TestIsExpectedUnavailability:
    """Tests for permission and license gap classification."""

    def test_permission_status_codes(self) -> None:
        """Test 401 and 403 are always expected."""
        assert is_expected_unavailability(GraphApiError("denied", status_code=401))
        assert is_expected_unavailability(GraphApiError("denied", status_code=403))

    @pytest.mark.parametrize(
        "message",
        [
            "Tenant does not have a premium license",
            "403 Forbidden: Insufficient privileges",
            "Neither tenant is B2C or tenant doesn't have LICENSE",
        ],
    )
    def test_marker_substrings(self, message) -> None:
        """Test marker substrings match case-insensitively."""
        assert is_expected_unavailability(RuntimeError(message))

    def test_other_errors(self) -> None:
        """Test ordinary failures are not expected."""
        assert not is_expected_unavailability(RuntimeError("timed out"))
        assert not is_expected_unavailability(GraphApiError("500 Internal", status_code=500))

    def test_custom_markers(self) -> None:
        """Test a caller-supplied marker list replaces the default."""
        assert is_expected_unavailability(RuntimeError("tier too low"), markers=["tier"])
        assert not is_expected_unavailability(RuntimeError("premium"), markers=["tier"])


class TestRunEnrichment:
    """Tests for run_enrichment."""

    def test_success(self) -> None:
        """Test a successful pass adds no warning."""
        warnings: list[str] = []

        assert run_enrichment("users", lambda: None, warnings) is True
        assert warnings == []

    def test_license_gap_uses_unavailable_message(self) -> None:
        """Test a license failure adds exactly the configured warning."""
        warnings: list[str] = []

        def enrich():
            raise GraphApiError(
                "403 Forbidden: Neither tenant is B2C or tenant doesn't have premium license",
                status_code=403,
            )

        completed = run_enrichment(
            "users with sign-in activity",
            enrich,
            warnings,
            unavailable_message="Sign-in activity requires Entra ID P1",
        )

        assert completed is False
        assert warnings == ["Sign-in activity requires Entra ID P1"]

    def test_default_unavailable_message(self) -> None:
        """Test the generic message when no custom one is given."""
        warnings: list[str] = []

        def enrich():
            raise RuntimeError("Forbidden")

        run_enrichment("risky users", enrich, warnings)

        assert warnings == [
            "Could not enrich risky users - permission or license not available"
        ]

    def test_unexpected_failure(self) -> None:
        """Test other failures carry the error text."""
        warnings: list[str] = []

        def enrich():
            raise ValueError("bad json")

        assert run_enrichment("groups", enrich, warnings) is False
        assert warnings == ["Error enriching groups: bad json"]


class TestLookupAndOverlay:
    """Tests for build_lookup and overlay."""

    def test_overlay_matches_by_id(self) -> None:
        """Test matched entities receive values and others are untouched."""
        documents = [
            RawDocument({"id": "u1", "when": "2024-01-01"}),
            RawDocument({"when": "no id"}),
            RawDocument({"id": "u3", "when": "2024-02-01"}),
        ]
        lookup = build_lookup(documents, lambda d: d.get_string("when"))
        entities = [_Entity("u1"), _Entity("u2"), _Entity("u3")]

        matched = overlay(
            entities,
            lookup,
            key=lambda e: e.id,
            apply=lambda e, value: setattr(e, "last_sign_in", value),
        )

        assert lookup == {"u1": "2024-01-01", "u3": "2024-02-01"}
        assert matched == 2
        assert [e.last_sign_in for e in entities] == ["2024-01-01", None, "2024-02-01"]

    def test_lookup_custom_key(self) -> None:
        """Test indexing by a field other than id."""
        lookup = build_lookup(
            [RawDocument({"principalId": "p1", "role": "GA"})],
            lambda d: d.get_string("role"),
            key="principalId",
        )

        assert lookup == {"p1": "GA"}
