"""
Unit tests for the Pod Security rule engine.

Tests cover:
- Pod spec extraction from workload kinds
- Baseline and restricted checks
- Version gating
- Check registry validation
- Violation message formatting
"""

from __future__ import annotations

import pytest

from psachecker.errors import SetupError
from psachecker.levels import LATEST, LevelVersion, PolicyVersion, SecurityLevel
from psachecker.policy import (
    Check,
    CheckResult,
    PodSpecExtractor,
    PolicyEvaluator,
    default_checks,
    format_violation,
)
from psachecker.policy.checks import (
    check_allow_privilege_escalation,
    check_apparmor,
    check_capabilities_baseline,
    check_capabilities_restricted,
    check_host_namespaces,
    check_host_path_volumes,
    check_host_ports,
    check_host_process,
    check_privileged,
    check_proc_mount,
    check_restricted_volumes,
    check_run_as_non_root,
    check_run_as_user,
    check_seccomp_baseline,
    check_seccomp_restricted,
    check_selinux,
    check_sysctls,
)


def _spec(**fields):
    spec = {"containers": [{"name": "app", "image": "nginx:1.25"}]}
    spec.update(fields)
    return spec


def _container(**security_context):
    return {"name": "app", "image": "nginx", "securityContext": security_context}


class TestPodSpecExtractor:
    """Tests for PodSpecExtractor."""

    @pytest.fixture
    def extractor(self) -> PodSpecExtractor:
        return PodSpecExtractor()

    def test_extract_pod(self, extractor, pod_factory):
        """Test a Pod yields its own metadata and spec."""
        pod = pod_factory(name="p1")
        metadata, spec = extractor.extract(pod)
        assert metadata["name"] == "p1"
        assert spec["containers"][0]["name"] == "app"

    def test_extract_deployment(self, extractor, privileged_pod, deployment_factory):
        """Test a Deployment yields its pod template."""
        deployment = deployment_factory(privileged_pod)
        metadata, spec = extractor.extract(deployment)
        assert metadata["labels"] == {"app": "web"}
        assert spec["hostNetwork"] is True

    def test_extract_cronjob(self, extractor):
        """Test a CronJob yields the nested job template."""
        cronjob = {
            "apiVersion": "batch/v1",
            "kind": "CronJob",
            "metadata": {"name": "nightly"},
            "spec": {
                "schedule": "0 0 * * *",
                "jobTemplate": {
                    "spec": {"template": {"spec": {"hostPID": True, "containers": []}}}
                },
            },
        }
        _, spec = extractor.extract(cronjob)
        assert spec["hostPID"] is True

    def test_extract_pod_template(self, extractor):
        """Test a PodTemplate yields its top-level template."""
        template = {
            "apiVersion": "v1",
            "kind": "PodTemplate",
            "metadata": {"name": "t"},
            "template": {"spec": {"hostIPC": True}},
        }
        _, spec = extractor.extract(template)
        assert spec == {"hostIPC": True}

    def test_extract_other_kind(self, extractor):
        """Test kinds without a pod spec return None."""
        service = {"apiVersion": "v1", "kind": "Service", "metadata": {"name": "svc"}}
        assert extractor.extract(service) is None
        assert not extractor.has_pod_spec("Service")

    def test_extract_missing_template(self, extractor):
        """Test a controller without a template yields empty mappings."""
        assert extractor.extract({"kind": "Job", "spec": {}}) == ({}, {})

    @pytest.mark.parametrize(
        "kind",
        ["Pod", "PodTemplate", "ReplicationController", "ReplicaSet",
         "Deployment", "StatefulSet", "DaemonSet", "Job", "CronJob"],
    )
    def test_has_pod_spec(self, extractor, kind):
        """Test every workload kind is recognized."""
        assert extractor.has_pod_spec(kind)


class TestBaselineChecks:
    """Tests for the baseline check functions."""

    def test_host_namespaces(self):
        """Test host namespaces are reported together."""
        result = check_host_namespaces({}, _spec(hostNetwork=True, hostPID=True))
        assert not result.allowed
        assert result.forbidden_reason == "host namespaces"
        assert result.forbidden_detail == "hostNetwork=true, hostPID=true"

    def test_host_namespaces_false_allowed(self):
        """Test explicit false is allowed."""
        assert check_host_namespaces({}, _spec(hostNetwork=False)).allowed

    def test_privileged(self):
        """Test privileged containers are forbidden."""
        spec = _spec(containers=[_container(privileged=True)])
        result = check_privileged({}, spec)
        assert not result.allowed
        assert result.forbidden_detail == 'container "app" must not set securityContext.privileged=true'

    def test_privileged_init_container(self):
        """Test init containers are checked too."""
        spec = _spec(initContainers=[{"name": "init", "securityContext": {"privileged": True}}])
        result = check_privileged({}, spec)
        assert 'container "init"' in result.forbidden_detail

    def test_capabilities_default_set_allowed(self):
        """Test adding default capabilities is allowed."""
        spec = _spec(containers=[_container(capabilities={"add": ["CHOWN", "NET_BIND_SERVICE"]})])
        assert check_capabilities_baseline({}, spec).allowed

    def test_capabilities_non_default(self):
        """Test non-default capabilities are reported sorted."""
        spec = _spec(containers=[_container(capabilities={"add": ["SYS_TIME", "NET_ADMIN", "CHOWN"]})])
        result = check_capabilities_baseline({}, spec)
        assert result.forbidden_reason == "non-default capabilities"
        assert '"NET_ADMIN", "SYS_TIME"' in result.forbidden_detail

    def test_host_path_volumes(self):
        """Test hostPath volumes are forbidden."""
        spec = _spec(volumes=[{"name": "root", "hostPath": {"path": "/"}}, {"name": "tmp", "emptyDir": {}}])
        result = check_host_path_volumes({}, spec)
        assert result.forbidden_detail == 'volume "root"'

    def test_host_ports(self):
        """Test host ports are listed per container."""
        spec = _spec(containers=[{"name": "app", "ports": [{"containerPort": 80, "hostPort": 8080}]}])
        result = check_host_ports({}, spec)
        assert result.forbidden_reason == "hostPort"
        assert result.forbidden_detail == 'container "app" uses hostPort 8080'

    def test_host_ports_zero_allowed(self):
        """Test hostPort 0 means unset."""
        spec = _spec(containers=[{"name": "app", "ports": [{"containerPort": 80, "hostPort": 0}]}])
        assert check_host_ports({}, spec).allowed

    def test_apparmor_annotation(self):
        """Test unconfined AppArmor annotations are forbidden."""
        metadata = {"annotations": {"container.apparmor.security.beta.kubernetes.io/app": "unconfined"}}
        result = check_apparmor(metadata, _spec())
        assert not result.allowed
        assert "unconfined" in result.forbidden_detail

    def test_apparmor_allowed_profiles(self):
        """Test runtime/default and localhost profiles are allowed."""
        metadata = {
            "annotations": {
                "container.apparmor.security.beta.kubernetes.io/a": "runtime/default",
                "container.apparmor.security.beta.kubernetes.io/b": "localhost/custom",
            }
        }
        assert check_apparmor(metadata, _spec()).allowed

    def test_apparmor_field(self):
        """Test the appArmorProfile field is checked."""
        spec = _spec(securityContext={"appArmorProfile": {"type": "Unconfined"}})
        assert not check_apparmor({}, spec).allowed

    def test_selinux(self):
        """Test custom SELinux types and user/role are forbidden."""
        spec = _spec(
            securityContext={"seLinuxOptions": {"type": "spc_t"}},
            containers=[_container(seLinuxOptions={"user": "root"})],
        )
        result = check_selinux({}, spec)
        assert not result.allowed
        assert 'type "spc_t"' in result.forbidden_detail
        assert "user may not be set" in result.forbidden_detail

    def test_selinux_empty_type_allowed(self):
        """Test an explicit null type counts as unset."""
        spec = _spec(securityContext={"seLinuxOptions": {"type": None}})
        assert check_selinux({}, spec).allowed

    def test_selinux_container_type_allowed(self):
        """Test container_t is allowed."""
        spec = _spec(securityContext={"seLinuxOptions": {"type": "container_t", "level": "s0:c1"}})
        assert check_selinux({}, spec).allowed

    def test_proc_mount(self):
        """Test Unmasked procMount is forbidden."""
        spec = _spec(containers=[_container(procMount="Unmasked")])
        result = check_proc_mount({}, spec)
        assert result.forbidden_reason == "procMount"

    def test_proc_mount_default_allowed(self):
        """Test Default procMount is allowed."""
        assert check_proc_mount({}, _spec(containers=[_container(procMount="Default")])).allowed

    def test_seccomp_unconfined(self):
        """Test Unconfined seccomp is forbidden at baseline."""
        spec = _spec(securityContext={"seccompProfile": {"type": "Unconfined"}})
        assert not check_seccomp_baseline({}, spec).allowed

    def test_seccomp_unset_allowed_at_baseline(self):
        """Test an unset seccomp profile passes baseline."""
        assert check_seccomp_baseline({}, _spec()).allowed

    def test_sysctls(self):
        """Test unsafe sysctls are forbidden."""
        spec = _spec(
            securityContext={
                "sysctls": [
                    {"name": "net.ipv4.tcp_syncookies", "value": "1"},
                    {"name": "kernel.msgmax", "value": "65536"},
                ]
            }
        )
        result = check_sysctls({}, spec)
        assert result.forbidden_reason == "forbidden sysctls"
        assert result.forbidden_detail == "kernel.msgmax"

    def test_host_process(self):
        """Test Windows HostProcess is forbidden."""
        spec = _spec(securityContext={"windowsOptions": {"hostProcess": True}})
        result = check_host_process({}, spec)
        assert result.forbidden_reason == "hostProcess"


class TestRestrictedChecks:
    """Tests for the restricted check functions."""

    def test_restricted_pod_passes_all(self, restricted_pod):
        """Test the restricted fixture passes every restricted check."""
        pod = restricted_pod
        for func in (
            check_restricted_volumes,
            check_allow_privilege_escalation,
            check_run_as_non_root,
            check_run_as_user,
            check_seccomp_restricted,
            check_capabilities_restricted,
        ):
            assert func(pod["metadata"], pod["spec"]).allowed, func.__name__

    def test_volume_types(self):
        """Test non-allowlisted volume types are forbidden."""
        spec = _spec(volumes=[{"name": "data", "nfs": {"server": "x", "path": "/"}}])
        result = check_restricted_volumes({}, spec)
        assert result.forbidden_detail == 'volume "data" uses restricted volume type "nfs"'

    def test_volume_types_allowed(self):
        """Test allowlisted volume types pass."""
        spec = _spec(volumes=[{"name": "cfg", "configMap": {"name": "c"}}, {"name": "tmp", "emptyDir": {}}])
        assert check_restricted_volumes({}, spec).allowed

    def test_allow_privilege_escalation_unset(self):
        """Test unset allowPrivilegeEscalation fails."""
        result = check_allow_privilege_escalation({}, _spec())
        assert result.forbidden_reason == "allowPrivilegeEscalation != false"

    def test_run_as_non_root_pod_level(self):
        """Test pod-level runAsNonRoot covers containers."""
        spec = _spec(securityContext={"runAsNonRoot": True})
        assert check_run_as_non_root({}, spec).allowed

    def test_run_as_non_root_container_override(self):
        """Test a container may not override with false."""
        spec = _spec(securityContext={"runAsNonRoot": True}, containers=[_container(runAsNonRoot=False)])
        result = check_run_as_non_root({}, spec)
        assert not result.allowed
        assert "must not set securityContext.runAsNonRoot=false" in result.forbidden_detail

    def test_run_as_non_root_unset(self):
        """Test unset everywhere fails."""
        result = check_run_as_non_root({}, _spec())
        assert 'pod or container "app" must set securityContext.runAsNonRoot=true' in result.forbidden_detail

    def test_run_as_user_zero(self):
        """Test runAsUser 0 fails."""
        spec = _spec(securityContext={"runAsUser": 0})
        assert check_run_as_user({}, spec).forbidden_reason == "runAsUser=0"

    def test_seccomp_required(self):
        """Test seccomp must be set at pod or container level."""
        assert not check_seccomp_restricted({}, _spec()).allowed
        spec = _spec(containers=[_container(seccompProfile={"type": "Localhost", "localhostProfile": "p.json"})])
        assert check_seccomp_restricted({}, spec).allowed

    def test_capabilities_must_drop_all(self):
        """Test capabilities must drop ALL."""
        result = check_capabilities_restricted({}, _spec())
        assert result.forbidden_reason == "unrestricted capabilities"
        assert 'must set securityContext.capabilities.drop=["ALL"]' in result.forbidden_detail

    def test_capabilities_only_net_bind_service(self):
        """Test only NET_BIND_SERVICE may be added."""
        ok = _spec(containers=[_container(capabilities={"drop": ["ALL"], "add": ["NET_BIND_SERVICE"]})])
        bad = _spec(containers=[_container(capabilities={"drop": ["ALL"], "add": ["CHOWN"]})])
        assert check_capabilities_restricted({}, ok).allowed
        assert not check_capabilities_restricted({}, bad).allowed


class TestPolicyEvaluator:
    """Tests for PolicyEvaluator."""

    def test_privileged_never_fails(self, evaluator, privileged_pod):
        """Test privileged evaluation returns no failures."""
        pod = privileged_pod
        assert evaluator.evaluate_pod(SecurityLevel.PRIVILEGED, LATEST, pod["metadata"], pod["spec"]) == []

    def test_baseline_pod(self, evaluator, baseline_pod):
        """Test a plain pod passes baseline and fails restricted."""
        pod = baseline_pod
        assert evaluator.evaluate_pod(SecurityLevel.BASELINE, LATEST, pod["metadata"], pod["spec"]) == []
        failures = evaluator.evaluate_pod(SecurityLevel.RESTRICTED, LATEST, pod["metadata"], pod["spec"])
        assert [f.check_id for f in failures] == ["PSS-R-002", "PSS-R-003", "PSS-R-005", "PSS-R-006"]

    def test_restricted_includes_baseline(self, evaluator, privileged_pod):
        """Test restricted evaluation runs baseline checks too."""
        pod = privileged_pod
        failures = evaluator.evaluate_pod(SecurityLevel.RESTRICTED, LATEST, pod["metadata"], pod["spec"])
        assert "PSS-B-002" in [f.check_id for f in failures]

    def test_restricted_pod(self, evaluator, restricted_pod):
        """Test the restricted fixture has no failures."""
        pod = restricted_pod
        assert evaluator.evaluate_pod(SecurityLevel.RESTRICTED, LATEST, pod["metadata"], pod["spec"]) == []

    def test_version_gating(self, evaluator, baseline_pod):
        """Test checks newer than the pinned version are skipped."""
        pod = baseline_pod
        failures = evaluator.evaluate_pod(
            SecurityLevel.RESTRICTED, PolicyVersion(7), pod["metadata"], pod["spec"]
        )
        assert [f.check_id for f in failures] == ["PSS-R-003"]

    def test_unknown_level_rejected(self, evaluator, baseline_pod):
        """Test evaluating against unknown is an error."""
        with pytest.raises(ValueError):
            evaluator.evaluate_pod(SecurityLevel.UNKNOWN, LATEST, {}, baseline_pod["spec"])

    def test_default_registry(self, evaluator):
        """Test the built-in registry is used by default."""
        assert len(evaluator.checks) == len(default_checks())


class TestCheckRegistry:
    """Tests for check registry validation."""

    def _check(self, check_id="X-1", level=SecurityLevel.BASELINE, func=None):
        return Check(check_id, "test", level, func or (lambda m, s: CheckResult(allowed=True)))

    def test_empty_registry(self):
        """Test an empty registry is rejected."""
        with pytest.raises(SetupError, match="no checks"):
            PolicyEvaluator([])

    def test_duplicate_ids(self):
        """Test duplicate ids are rejected."""
        with pytest.raises(SetupError, match="duplicate"):
            PolicyEvaluator([self._check(), self._check()])

    def test_unsupported_level(self):
        """Test checks may only target baseline or restricted."""
        with pytest.raises(SetupError, match="unsupported level"):
            PolicyEvaluator([self._check(level=SecurityLevel.PRIVILEGED)])

    def test_not_callable(self):
        """Test the check body must be callable."""
        with pytest.raises(SetupError, match="not callable"):
            PolicyEvaluator([Check("X-1", "test", SecurityLevel.BASELINE, "nope")])

    def test_wrong_type(self):
        """Test registry entries must be Check instances."""
        with pytest.raises(SetupError, match="invalid check"):
            PolicyEvaluator([object()])

    def test_custom_registry(self, baseline_pod):
        """Test a custom registry drives evaluation."""
        deny = Check(
            "X-1", "always", SecurityLevel.BASELINE,
            lambda m, s: CheckResult(allowed=False, forbidden_reason="nope"),
        )
        evaluator = PolicyEvaluator([deny])
        failures = evaluator.evaluate_pod(SecurityLevel.BASELINE, LATEST, {}, baseline_pod["spec"])
        assert failures == [CheckResult(allowed=False, forbidden_reason="nope", check_id="X-1")]


class TestFormatViolation:
    """Tests for violation message formatting."""

    def test_single_failure(self, evaluator, privileged_pod):
        """Test the Pod Security admission message form."""
        pod = privileged_pod
        failures = evaluator.evaluate_pod(SecurityLevel.BASELINE, LATEST, pod["metadata"], pod["spec"])
        message = format_violation(LevelVersion(SecurityLevel.BASELINE), failures)
        assert message == 'violates PodSecurity "baseline:latest": host namespaces (hostNetwork=true)'

    def test_reason_without_detail(self):
        """Test failures without detail are listed bare."""
        failures = [CheckResult(False, "a"), CheckResult(False, "b", "x")]
        message = format_violation(LevelVersion(SecurityLevel.RESTRICTED, PolicyVersion(25)), failures)
        assert message == 'violates PodSecurity "restricted:v1.25": a, b (x)'
