import pytest

from rcoperator.errors import ValidationError
from rcoperator.reconcile.desired_state import (
    WorkloadKind,
    apply_defaults,
    child_plan,
    desired_state_from_resource,
    desired_state_hash,
    stale_children,
    validate_desired_state,
)
from rcoperator.reconcile.types import ChildKind

from conftest import make_component


def desired(spec=None, version="v1beta2", **kwargs):
    return apply_defaults(
        desired_state_from_resource(make_component(spec=spec, version=version, **kwargs))
    )


class TestAdapters:
    def test_v1beta1_storage_selects_stateful_set(self):
        state = desired(
            {"applicationImage": "img", "version": "1.2", "storage": {"size": "1Gi", "mountPath": "/data"}},
            version="v1beta1",
        )
        assert state.workload_kind == WorkloadKind.STATEFUL_SET
        assert state.storage_size == "1Gi"
        assert state.application_version == "1.2"

    def test_v1beta2_stateful_set(self):
        state = desired(
            {
                "applicationImage": "img",
                "applicationVersion": "2.0",
                "statefulSet": {"storage": {"size": "5Gi", "mountPath": "/var/lib"}},
            }
        )
        assert state.workload_kind == WorkloadKind.STATEFUL_SET
        assert state.storage_mount_path == "/var/lib"
        assert state.application_version == "2.0"

    def test_v1beta2_honours_legacy_fields(self):
        state = desired(
            {"applicationImage": "img", "version": "1.2", "storage": {"size": "1Gi", "mountPath": "/data"}}
        )
        assert state.workload_kind == WorkloadKind.STATEFUL_SET
        assert state.storage_mount_path == "/data"
        assert state.application_version == "1.2"

    def test_v1beta2_fields_win_over_legacy_ones(self):
        state = desired(
            {
                "applicationImage": "img",
                "version": "1.2",
                "applicationVersion": "2.0",
                "storage": {"size": "1Gi"},
                "statefulSet": {"storage": {"size": "5Gi"}},
            }
        )
        assert state.application_version == "2.0"
        assert state.storage_size == "5Gi"

    def test_versions_agree_on_shared_fields(self):
        spec = {
            "applicationImage": "img",
            "replicas": 2,
            "service": {"port": 9080},
            "env": [{"name": "MODE", "value": "prod"}],
        }
        old = desired(spec, version="v1beta1")
        new = desired(spec)

        assert desired_state_hash(old.model_copy(update={"api_version": "x"})) == desired_state_hash(
            new.model_copy(update={"api_version": "x"})
        )

    def test_knative(self):
        state = desired({"applicationImage": "img", "createKnativeService": True})
        assert state.serverless
        assert state.replicas is None

    def test_unknown_version(self):
        with pytest.raises(ValidationError, match="Unsupported"):
            desired_state_from_resource(make_component(version="v2"))

    def test_malformed_spec(self):
        with pytest.raises(ValidationError, match="Invalid RuntimeComponent spec"):
            desired_state_from_resource(make_component(spec={"replicas": "many"}))


class TestDefaults:
    def test_defaults_applied(self):
        state = desired()
        assert state.application_name == "app"
        assert state.service_port == 8080
        assert state.service_type == "ClusterIP"
        assert state.replicas == 1

    def test_application_name_from_part_of_label(self):
        body = make_component()
        body["metadata"]["labels"] = {"app.kubernetes.io/part-of": "shop"}
        assert apply_defaults(desired_state_from_resource(body)).application_name == "shop"

    def test_explicit_values_kept(self):
        state = desired(
            {"applicationImage": "img", "applicationName": "web", "replicas": 0, "service": {"port": 9443, "type": "NodePort"}}
        )
        assert state.application_name == "web"
        assert state.replicas == 0
        assert state.service_port == 9443
        assert state.service_type == "NodePort"

    def test_does_not_mutate_input(self):
        raw = desired_state_from_resource(make_component())
        apply_defaults(raw)
        assert raw.service_port is None


class TestValidation:
    @pytest.mark.parametrize(
        "spec,message",
        [
            ({"applicationImage": ""}, "applicationImage"),
            ({"applicationImage": "img", "replicas": -1}, "replicas"),
            ({"applicationImage": "img", "autoscaling": {"maxReplicas": 0}}, "maxReplicas"),
            ({"applicationImage": "img", "autoscaling": {"minReplicas": 0, "maxReplicas": 2}}, "minReplicas"),
            ({"applicationImage": "img", "autoscaling": {"minReplicas": 3, "maxReplicas": 2}}, "exceed"),
            (
                {"applicationImage": "img", "statefulSet": {"storage": {"mountPath": "/data"}}},
                "storage size is required",
            ),
            (
                {"applicationImage": "img", "statefulSet": {"storage": {"size": "lots", "mountPath": "/data"}}},
                "cannot parse",
            ),
        ],
    )
    def test_rejects(self, spec, message):
        with pytest.raises(ValidationError, match=message):
            validate_desired_state(desired(spec))

    def test_accepts_valid_component(self):
        validate_desired_state(
            desired({"applicationImage": "img", "autoscaling": {"minReplicas": 1, "maxReplicas": 3}})
        )


class TestHash:
    def test_stable_across_generation(self):
        assert desired_state_hash(desired(generation=1)) == desired_state_hash(desired(generation=7))

    def test_changes_with_image(self):
        assert desired_state_hash(desired()) != desired_state_hash(desired({"applicationImage": "other"}))


class TestPlan:
    def test_deployment(self):
        state = desired()
        assert child_plan(state) == [ChildKind.SERVICE, ChildKind.DEPLOYMENT]
        assert set(stale_children(state)) == {
            ChildKind.STATEFUL_SET,
            ChildKind.KNATIVE_SERVICE,
            ChildKind.HORIZONTAL_POD_AUTOSCALER,
        }

    def test_knative_only(self):
        state = desired({"applicationImage": "img", "createKnativeService": True})
        assert child_plan(state) == [ChildKind.KNATIVE_SERVICE]
