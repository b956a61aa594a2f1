"""Tests for spec, prior state and result state models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from planetscale_operator.client import DatabaseRecord
from planetscale_operator.cluster_size import CpuArch, DatabaseKind
from planetscale_operator.models import DatabaseSpec, DatabaseState, PriorState


class TestDatabaseSpec:
    """Tests for DatabaseSpec model."""

    def test_minimal_spec(self) -> None:
        """Only the cluster size is required."""
        spec = DatabaseSpec.model_validate({"clusterSize": "PS_10"})

        assert spec.name is None
        assert spec.kind is DatabaseKind.MYSQL
        assert spec.default_branch == "main"
        assert spec.adopt is None
        assert spec.delete is False
        assert spec.wants_non_default_branch is False

    def test_camel_case_aliases(self) -> None:
        spec = DatabaseSpec.model_validate(
            {
                "name": "orders",
                "clusterSize": "PS_20",
                "kind": "postgresql",
                "arch": "arm",
                "majorVersion": "17",
                "region": {"slug": "us-east"},
                "defaultBranch": "staging",
                "requireApprovalForDeploy": True,
            }
        )

        assert spec.is_postgresql
        assert spec.arch is CpuArch.ARM
        assert spec.major_version == "17"
        assert spec.region_slug == "us-east"
        assert spec.default_branch == "staging"
        assert spec.wants_non_default_branch is True
        assert spec.require_approval_for_deploy is True

    def test_snake_case_field_names(self) -> None:
        spec = DatabaseSpec(cluster_size="PS_10", default_branch="dev")
        assert spec.default_branch == "dev"

    def test_missing_cluster_size(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            DatabaseSpec.model_validate({"name": "orders"})

        assert "clusterSize" in str(exc_info.value)

    def test_invalid_name(self) -> None:
        with pytest.raises(ValidationError):
            DatabaseSpec.model_validate({"name": "Orders DB", "clusterSize": "PS_10"})

    def test_negative_replicas(self) -> None:
        with pytest.raises(ValidationError):
            DatabaseSpec.model_validate({"clusterSize": "PS_10", "replicas": -1})

    def test_unknown_kind(self) -> None:
        with pytest.raises(ValidationError):
            DatabaseSpec.model_validate({"clusterSize": "PS_10", "kind": "oracle"})

    @pytest.mark.parametrize(
        ("field", "value"), [("arch", "arm"), ("majorVersion", "17")]
    )
    def test_postgresql_only_fields_rejected_for_mysql(self, field: str, value: str) -> None:
        """Engine-specific fields fail at load time, not only when normalizing."""
        with pytest.raises(ValidationError) as exc_info:
            DatabaseSpec.model_validate({"clusterSize": "PS_10", field: value})

        assert "postgresql" in str(exc_info.value)

    def test_postgresql_only_fields_accepted_for_postgresql(self) -> None:
        spec = DatabaseSpec.model_validate(
            {"clusterSize": "PS_10", "kind": "postgresql", "arch": "x86", "majorVersion": "16"}
        )
        assert spec.arch is CpuArch.X86

    def test_frozen(self) -> None:
        spec = DatabaseSpec.model_validate({"clusterSize": "PS_10"})
        with pytest.raises(ValidationError):
            spec.name = "other"  # type: ignore[misc]


class TestPayloads:
    """Tests for API payload builders."""

    def test_creation_payload_mysql(self) -> None:
        spec = DatabaseSpec.model_validate(
            {
                "clusterSize": "PS_10",
                "region": {"slug": "us-east"},
                "replicas": 2,
            }
        )

        payload = spec.creation_payload("orders", "PS_10")

        assert payload == {
            "name": "orders",
            "region": "us-east",
            "kind": "mysql",
            "cluster_size": "PS_10",
            "replicas": 2,
        }

    def test_creation_payload_postgresql_includes_major_version(self) -> None:
        spec = DatabaseSpec.model_validate(
            {"clusterSize": "PS_10", "kind": "postgresql", "majorVersion": "17"}
        )

        payload = spec.creation_payload("orders", "PS_10_AWS_X86")

        assert payload["major_version"] == "17"
        assert payload["cluster_size"] == "PS_10_AWS_X86"
        assert "region" not in payload

    def test_settings_payload_mysql(self) -> None:
        spec = DatabaseSpec.model_validate(
            {
                "clusterSize": "PS_10",
                "allowDataBranching": True,
                "migrationFramework": "rails",
                "insightsRawQueries": False,
            }
        )

        payload = spec.settings_payload(include_default_branch=True)

        assert payload == {
            "allow_data_branching": True,
            "migration_framework": "rails",
            "insights_raw_queries": False,
            "default_branch": "main",
        }

    def test_settings_payload_postgresql_omits_vitess_settings(self) -> None:
        spec = DatabaseSpec.model_validate(
            {
                "clusterSize": "PS_10",
                "kind": "postgresql",
                "allowDataBranching": True,
                "restrictBranchRegion": True,
            }
        )

        payload = spec.settings_payload(include_default_branch=False)

        assert payload == {"restrict_branch_region": True}

    def test_settings_payload_is_deterministic(self) -> None:
        spec = DatabaseSpec.model_validate(
            {"clusterSize": "PS_10", "requireApprovalForDeploy": True}
        )
        assert spec.settings_payload(include_default_branch=True) == spec.settings_payload(
            include_default_branch=True
        )


class TestPriorState:
    """Tests for PriorState model."""

    def test_reads_persisted_output(self) -> None:
        prior = PriorState.model_validate(
            {
                "id": "db-1",
                "name": "orders",
                "organization": "acme",
                "defaultBranch": "staging",
                "state": "ready",
                "clusterSize": "PS_10",
            }
        )

        assert prior.name == "orders"
        assert prior.organization == "acme"
        assert prior.default_branch == "staging"

    def test_legacy_organization_id(self) -> None:
        prior = PriorState.model_validate({"name": "orders", "organizationId": "acme-legacy"})
        assert prior.organization == "acme-legacy"

    def test_from_record(self) -> None:
        record = DatabaseRecord(id="db-1", name="orders", state="ready", default_branch="main")
        prior = PriorState.from_record(record, "acme")

        assert prior.id == "db-1"
        assert prior.name == "orders"
        assert prior.organization == "acme"


class TestDatabaseState:
    """Tests for DatabaseState model."""

    def _record(self) -> DatabaseRecord:
        return DatabaseRecord.from_api(
            {
                "id": "db-1",
                "name": "orders",
                "state": "ready",
                "default_branch": "staging",
                "plan": "scaler_pro",
                "created_at": "2026-01-01T00:00:00Z",
                "updated_at": "2026-01-02T00:00:00Z",
                "html_url": "https://app.planetscale.com/acme/orders",
            }
        )

    def test_from_record_merges_remote_fields(self) -> None:
        spec = DatabaseSpec.model_validate(
            {"clusterSize": "PS_10", "defaultBranch": "staging", "organization": "other"}
        )

        state = DatabaseState.from_record(spec, self._record(), organization="acme")

        assert state.id == "db-1"
        assert state.name == "orders"
        assert state.organization == "acme"
        assert state.default_branch == "staging"
        assert state.plan == "scaler_pro"
        assert state.cluster_size == "PS_10"

    def test_database_id_override(self) -> None:
        spec = DatabaseSpec.model_validate({"clusterSize": "PS_10"})
        state = DatabaseState.from_record(
            spec, self._record(), organization="acme", database_id="db-created"
        )
        assert state.id == "db-created"

    def test_output_round_trips_into_prior_state(self) -> None:
        spec = DatabaseSpec.model_validate({"clusterSize": "PS_10"})
        state = DatabaseState.from_record(spec, self._record(), organization="acme")

        output = state.to_output()
        prior = PriorState.model_validate(output)

        assert output["htmlUrl"] == "https://app.planetscale.com/acme/orders"
        assert "name" in output
        assert prior == state.to_prior()
