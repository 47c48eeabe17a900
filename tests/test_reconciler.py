#!/usr/bin/env python3
"""
End-to-end reconcile tests against the mock resource store
"""

import pytest

from traitscaler.core import constants
from traitscaler.core.constants import Stage
from traitscaler.core.reconciler import AutoscalerReconciler

from conftest import (
    CPU_TRIGGER,
    CRON_TRIGGER,
    SCALED_OBJECT_API_VERSION,
    TRAIT_API_VERSION,
    TRAIT_KIND,
    make_definition,
    make_object,
    make_trait,
    owner_ref,
)

pytestmark = pytest.mark.integration


def stored_trait(store, name="web-autoscaler"):
    return store.find(TRAIT_API_VERSION, TRAIT_KIND, name)


def synced_condition(store, name="web-autoscaler"):
    conditions = stored_trait(store, name).get("status", {}).get("conditions", [])
    return next(c for c in conditions if c["type"] == constants.CONDITION_SYNCED)


def event_reasons(store):
    return [event.reason for event in store.events]


class TestReconcile:
    """Test the full pipeline"""

    @pytest.fixture
    def reconciler(self, cluster):
        return AutoscalerReconciler(cluster)

    def test_full_pipeline(self, cluster, reconciler):
        result = reconciler.reconcile("default", "web-autoscaler")

        assert result.succeeded
        assert result.stage == Stage.DONE
        assert result.requeue_after is None
        assert result.warnings == []

        # Every discovered resource is controlled by the trait
        for api_version, kind in [("apps/v1", "Deployment"), ("v1", "Service"),
                                  ("core.oam.dev/v1alpha2", "ContainerizedWorkload")]:
            refs = cluster.find(api_version, kind, "web")["metadata"]["ownerReferences"]
            controllers = [ref for ref in refs if ref.get("controller")]
            assert [ref["uid"] for ref in controllers] == ["trait-uid"]

        assert stored_trait(cluster)["spec"]["targetWorkload"] == {
            "apiVersion": "apps/v1", "kind": "Deployment", "name": "web",
        }

        scaled = cluster.find(SCALED_OBJECT_API_VERSION, "ScaledObject", "web-autoscaler")
        assert scaled["spec"]["scaleTargetRef"]["name"] == "web"
        assert [t["type"] for t in scaled["spec"]["triggers"]] == ["cpu", "cron"]

        condition = synced_condition(cluster)
        assert condition["status"] == "True"
        assert condition["reason"] == constants.REASON_RECONCILE_SUCCESS

        assert event_reasons(cluster) == ["ScaledObjectSynced"]
        assert cluster.events[0].involved_object.kind == "ApplicationConfiguration"
        assert cluster.events[0].metadata.annotations == {"controller": "Autoscaler"}

    def test_second_run_writes_nothing(self, cluster, reconciler):
        reconciler.reconcile("default", "web-autoscaler")
        writes = cluster.write_count
        condition = synced_condition(cluster)

        result = reconciler.reconcile("default", "web-autoscaler")

        assert result.succeeded
        assert result.sync.action == "unchanged"
        assert cluster.write_count == writes
        assert synced_condition(cluster) == condition

    def test_trait_deleted(self, store):
        result = AutoscalerReconciler(store).reconcile("default", "gone")

        assert result.succeeded
        assert result.stage == Stage.DONE
        assert result.requeue_after is None
        assert store.write_count == 0

    def test_invalid_trigger_does_not_fail_reconcile(self, cluster, reconciler):
        trait = stored_trait(cluster)
        trait["spec"]["triggers"].append(
            {"name": "late", "type": "cron", "startAt": "12:01", "duration": "13", "replicas": "2"}
        )

        result = reconciler.reconcile("default", "web-autoscaler")

        warning = f"trigger late: {constants.WARNING_SUM_EXCEEDS_24_HOURS}"
        assert result.succeeded
        assert result.warnings == [warning]
        assert stored_trait(cluster)["status"]["warnings"] == [warning]
        assert "TriggerValidationWarning" in event_reasons(cluster)
        scaled = cluster.find(SCALED_OBJECT_API_VERSION, "ScaledObject", "web-autoscaler")
        assert [t["name"] for t in scaled["spec"]["triggers"]] == ["cpu", "office-hours"]

    def test_wrongly_typed_trigger_fields_are_warnings(self, cluster, reconciler):
        stored_trait(cluster)["spec"]["triggers"] = [
            dict(CPU_TRIGGER),
            {"name": "memory", "type": "memory", "metricTargetType": "Utilization", "threshold": [80]},
            {"name": "night", "type": "cron", "startAt": 540, "duration": "2", "replicas": "\u00b2"},
            {"name": "disk", "type": "storage", "metricTargetType": "AverageValue", "threshold": "nan"},
        ]

        result = reconciler.reconcile("default", "web-autoscaler")

        assert result.succeeded
        assert result.warnings == [
            f"trigger memory: {constants.WARNING_THRESHOLD_FORMAT}",
            f"trigger night: {constants.WARNING_START_AT_FORMAT}",
            f"trigger night: {constants.WARNING_REPLICAS_FORMAT}",
            f"trigger disk: {constants.WARNING_THRESHOLD_FORMAT}",
        ]
        assert synced_condition(cluster)["status"] == "True"
        scaled = cluster.find(SCALED_OBJECT_API_VERSION, "ScaledObject", "web-autoscaler")
        assert [t["name"] for t in scaled["spec"]["triggers"]] == ["cpu"]

    def test_repeated_warnings_emit_one_event(self, cluster, reconciler):
        stored_trait(cluster)["spec"]["triggers"] = [{"name": "broken", "type": "cron"}]

        reconciler.reconcile("default", "web-autoscaler")
        first = event_reasons(cluster).count("TriggerValidationWarning")
        reconciler.reconcile("default", "web-autoscaler")

        # three cron problems plus the skipped delegation
        assert first == 4
        assert event_reasons(cluster).count("TriggerValidationWarning") == first


class TestUnsetTarget:
    """A workload with nothing scalable under it"""

    @pytest.fixture
    def unscalable(self, store, app_config):
        workload = make_object(
            "core.oam.dev/v1alpha2", "ContainerizedWorkload", "web", "wl-uid", owners=[owner_ref(app_config)],
        )
        store.add(app_config)
        store.add(workload)
        store.add(make_definition(
            "containerizedworkloads.core.oam.dev", [{"apiVersion": "v1", "kind": "Service"}],
        ))
        store.add(make_object("v1", "Service", "web", "svc-uid", owners=[owner_ref(workload)]))
        store.add(make_trait(
            workload=workload,
            triggers=[dict(CPU_TRIGGER), dict(CRON_TRIGGER)],
            owners=[owner_ref(app_config)],
        ))
        return store

    def test_warns_and_keeps_going(self, unscalable):
        result = AutoscalerReconciler(unscalable).reconcile("default", "web-autoscaler")

        assert result.succeeded
        assert result.target is None
        assert result.warnings == [constants.WARNING_TARGET_WORKLOAD_NOT_SET]
        assert result.sync.action == "skipped"
        # Ownership is still adopted and the triggers are still validated
        assert result.adoption is not None and len(result.adoption.patched) == 2
        assert stored_trait(unscalable)["status"]["warnings"] == [constants.WARNING_TARGET_WORKLOAD_NOT_SET]
        assert synced_condition(unscalable)["status"] == "True"
        assert "targetWorkload" not in stored_trait(unscalable)["spec"]
        assert unscalable.created == []


class TestFailures:
    """Failures record a condition and requeue after the fixed delay"""

    def test_missing_workload(self, store, app_config, workload):
        store.add(app_config)
        store.add(make_trait(workload=workload, owners=[owner_ref(app_config)]))

        result = AutoscalerReconciler(store).reconcile("default", "web-autoscaler")

        assert not result.succeeded
        assert result.stage == Stage.FAILED
        assert result.failed_after == Stage.LOCATED
        assert result.requeue_after == 30.0
        assert event_reasons(store) == ["CannotLocateWorkload"]
        assert store.events[0].involved_object.kind == TRAIT_KIND
        condition = synced_condition(store)
        assert condition["status"] == "False"
        assert condition["reason"] == constants.REASON_RECONCILE_ERROR

    def test_backend_write_failure(self, cluster):
        cluster.fail("create", "ScaledObject")

        result = AutoscalerReconciler(cluster).reconcile("default", "web-autoscaler")

        assert result.failed_after == Stage.TRIGGERS_VALIDATED
        assert result.requeue_after == 30.0
        assert "CannotSyncScaledObject" in event_reasons(cluster)

    def test_conflicting_write_fails_whole_reconcile(self, cluster):
        reconciler = AutoscalerReconciler(cluster)
        original_list = cluster.list

        def stale_list(*args, **kwargs):
            items = original_list(*args, **kwargs)
            for item in items:
                if item["kind"] == "Deployment":
                    item["metadata"]["resourceVersion"] = "stale"
            return items

        cluster.list = stale_list

        result = reconciler.reconcile("default", "web-autoscaler")

        assert result.failed_after == Stage.CHILDREN_DISCOVERED
        assert result.requeue_after == 30.0
        assert "CannotAdoptResource" in event_reasons(cluster)

    def test_event_write_failure_is_not_fatal(self, cluster):
        cluster.fail("create_event", "Event")

        result = AutoscalerReconciler(cluster).reconcile("default", "web-autoscaler")

        assert result.succeeded

    def test_custom_requeue(self, store, workload):
        store.add(make_trait(workload=workload))

        result = AutoscalerReconciler(store, requeue_after=5).reconcile("default", "web-autoscaler")

        assert result.requeue_after == 5

    def test_malformed_trait(self, store):
        trait = make_trait()
        trait["spec"]["minReplicas"] = -1
        store.add(trait)

        result = AutoscalerReconciler(store).reconcile("default", "web-autoscaler")

        assert not result.succeeded
        assert result.failed_after == Stage.START
        assert result.requeue_after == 30.0
        assert event_reasons(store) == ["InvalidTrait"]
        assert store.events[0].involved_object.uid == "trait-uid"
        assert store.events[0].metadata.annotations["stage"] == Stage.START.value
        condition = synced_condition(store)
        assert condition["status"] == "False"
        assert condition["message"].startswith("malformed Autoscaler")

    def test_malformed_trait_keeps_existing_warnings(self, store):
        trait = make_trait()
        trait["spec"]["triggers"] = "cpu"
        trait["status"] = {"warnings": ["trigger cpu: threshold required"]}
        store.add(trait)

        result = AutoscalerReconciler(store).reconcile("default", "web-autoscaler")

        assert not result.succeeded
        assert stored_trait(store)["status"]["warnings"] == ["trigger cpu: threshold required"]
        assert synced_condition(store)["status"] == "False"

    def test_unreportable_trait_is_only_logged(self, store):
        trait = make_trait()
        trait["spec"]["minReplicas"] = -1
        trait["metadata"]["uid"] = ["trait-uid"]
        store.add(trait)

        result = AutoscalerReconciler(store).reconcile("default", "web-autoscaler")

        assert not result.succeeded
        assert result.requeue_after == 30.0
        assert store.events == []
        assert store.status_patches == []
