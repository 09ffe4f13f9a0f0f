"""
Pod Security Standards checks.

Each check inspects a pod's metadata and spec and returns a CheckResult.
Baseline checks prevent known privilege escalations; restricted checks add
pod hardening on top of baseline.

Reference: https://kubernetes.io/docs/concepts/security/pod-security-standards/
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterator

from psachecker.levels import SecurityLevel

CONTAINER_FIELDS = ("initContainers", "containers", "ephemeralContainers")

BASELINE_ALLOWED_CAPABILITIES = frozenset({
    "AUDIT_WRITE", "CHOWN", "DAC_OVERRIDE", "FOWNER", "FSETID", "KILL",
    "MKNOD", "NET_BIND_SERVICE", "SETFCAP", "SETGID", "SETPCAP", "SETUID",
    "SYS_CHROOT",
})

SAFE_SYSCTLS = frozenset({
    "kernel.shm_rmid_forced",
    "net.ipv4.ip_local_port_range",
    "net.ipv4.ip_local_reserved_ports",
    "net.ipv4.ip_unprivileged_port_start",
    "net.ipv4.tcp_syncookies",
    "net.ipv4.ping_group_range",
    "net.ipv4.tcp_keepalive_time",
    "net.ipv4.tcp_fin_timeout",
    "net.ipv4.tcp_keepalive_intvl",
    "net.ipv4.tcp_keepalive_probes",
})

ALLOWED_SELINUX_TYPES = frozenset({
    "", "container_t", "container_init_t", "container_kvm_t", "container_engine_t",
})

RESTRICTED_VOLUME_TYPES = frozenset({
    "configMap", "csi", "downwardAPI", "emptyDir",
    "ephemeral", "persistentVolumeClaim", "projected", "secret",
})

VALID_SECCOMP_TYPES = ("RuntimeDefault", "Localhost")

APPARMOR_ANNOTATION_PREFIX = "container.apparmor.security.beta.kubernetes.io/"


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one check against one pod."""

    allowed: bool
    forbidden_reason: str = ""
    forbidden_detail: str = ""
    check_id: str = ""


ALLOWED = CheckResult(allowed=True)

CheckFunc = Callable[[dict[str, Any], dict[str, Any]], CheckResult]


@dataclass(frozen=True)
class Check:
    """A registered check: applies at ``level`` from policy version ``v1.<min_minor>``."""

    id: str
    name: str
    level: SecurityLevel
    func: CheckFunc
    min_minor: int = 0


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _security_context(obj: dict[str, Any]) -> dict[str, Any]:
    return _mapping(obj.get("securityContext"))


def _containers(spec: dict[str, Any]) -> Iterator[dict[str, Any]]:
    for container_field in CONTAINER_FIELDS:
        for container in spec.get(container_field) or []:
            if isinstance(container, dict):
                yield container


def _quoted(values: list[Any]) -> str:
    return ", ".join(f'"{value}"' for value in values)


def _containers_label(names: list[str]) -> str:
    noun = "container" if len(names) == 1 else "containers"
    return f"{noun} {_quoted(names)}"


def _forbidden(reason: str, details: list[str]) -> CheckResult:
    return CheckResult(
        allowed=False,
        forbidden_reason=reason,
        forbidden_detail="; ".join(details),
    )


# Baseline


def check_host_process(metadata: dict[str, Any], spec: dict[str, Any]) -> CheckResult:
    """Windows HostProcess pods must not be used."""
    pod_host_process = (
        _mapping(_security_context(spec).get("windowsOptions")).get("hostProcess") is True
    )
    names = [
        c.get("name", "")
        for c in _containers(spec)
        if _mapping(_security_context(c).get("windowsOptions")).get("hostProcess") is True
    ]
    if not pod_host_process and not names:
        return ALLOWED

    details = []
    if pod_host_process:
        details.append("pod must not set securityContext.windowsOptions.hostProcess=true")
    if names:
        details.append(
            f"{_containers_label(names)} must not set securityContext.windowsOptions.hostProcess=true"
        )
    return _forbidden("hostProcess", details)


def check_host_namespaces(metadata: dict[str, Any], spec: dict[str, Any]) -> CheckResult:
    """Sharing host namespaces must be disallowed."""
    used = [field for field in ("hostNetwork", "hostPID", "hostIPC") if spec.get(field) is True]
    if not used:
        return ALLOWED
    return CheckResult(
        allowed=False,
        forbidden_reason="host namespaces",
        forbidden_detail=", ".join(f"{field}=true" for field in used),
    )


def check_privileged(metadata: dict[str, Any], spec: dict[str, Any]) -> CheckResult:
    """Privileged containers must be disallowed."""
    names = [
        c.get("name", "")
        for c in _containers(spec)
        if _security_context(c).get("privileged") is True
    ]
    if not names:
        return ALLOWED
    return _forbidden(
        "privileged",
        [f"{_containers_label(names)} must not set securityContext.privileged=true"],
    )


def check_capabilities_baseline(metadata: dict[str, Any], spec: dict[str, Any]) -> CheckResult:
    """Only the default capability set may be added."""
    details = []
    for container in _containers(spec):
        added = _mapping(_security_context(container).get("capabilities")).get("add") or []
        extra = sorted({str(cap) for cap in added} - BASELINE_ALLOWED_CAPABILITIES)
        if extra:
            details.append(
                f'container "{container.get("name", "")}" must not include '
                f"{_quoted(extra)} in securityContext.capabilities.add"
            )
    if not details:
        return ALLOWED
    return _forbidden("non-default capabilities", details)


def check_host_path_volumes(metadata: dict[str, Any], spec: dict[str, Any]) -> CheckResult:
    """HostPath volumes must be forbidden."""
    names = [
        volume.get("name", "")
        for volume in spec.get("volumes") or []
        if isinstance(volume, dict) and volume.get("hostPath") is not None
    ]
    if not names:
        return ALLOWED
    noun = "volume" if len(names) == 1 else "volumes"
    return _forbidden("hostPath volumes", [f"{noun} {_quoted(names)}"])


def check_host_ports(metadata: dict[str, Any], spec: dict[str, Any]) -> CheckResult:
    """HostPorts must be disallowed."""
    details = []
    for container in _containers(spec):
        ports = [
            port["hostPort"]
            for port in container.get("ports") or []
            if isinstance(port, dict) and port.get("hostPort")
        ]
        if ports:
            noun = "hostPort" if len(ports) == 1 else "hostPorts"
            joined = ", ".join(str(port) for port in ports)
            details.append(f'container "{container.get("name", "")}" uses {noun} {joined}')
    if not details:
        return ALLOWED
    return _forbidden("hostPort", details)


def _apparmor_type_forbidden(security_context: dict[str, Any]) -> bool:
    profile = _mapping(security_context.get("appArmorProfile"))
    return profile.get("type") == "Unconfined"


def check_apparmor(metadata: dict[str, Any], spec: dict[str, Any]) -> CheckResult:
    """AppArmor profiles must be runtime/default or localhost."""
    details = []
    annotations = _mapping(metadata.get("annotations"))
    for key in sorted(annotations):
        if not key.startswith(APPARMOR_ANNOTATION_PREFIX):
            continue
        value = str(annotations[key])
        if value != "runtime/default" and not value.startswith("localhost/"):
            details.append(f'{key}="{value}"')

    if _apparmor_type_forbidden(_security_context(spec)):
        details.append('pod must not set securityContext.appArmorProfile.type to "Unconfined"')
    names = [c.get("name", "") for c in _containers(spec) if _apparmor_type_forbidden(_security_context(c))]
    if names:
        details.append(
            f'{_containers_label(names)} must not set securityContext.appArmorProfile.type to "Unconfined"'
        )

    if not details:
        return ALLOWED
    reason = "forbidden AppArmor profile" if len(details) == 1 else "forbidden AppArmor profiles"
    return _forbidden(reason, details)


def _selinux_problems(security_context: dict[str, Any]) -> list[str]:
    options = _mapping(security_context.get("seLinuxOptions"))
    problems = []
    selinux_type = options.get("type") or ""
    if selinux_type not in ALLOWED_SELINUX_TYPES:
        problems.append(f'type "{selinux_type}"')
    if options.get("user"):
        problems.append("user may not be set")
    if options.get("role"):
        problems.append("role may not be set")
    return problems


def check_selinux(metadata: dict[str, Any], spec: dict[str, Any]) -> CheckResult:
    """SELinux type must be a container type; user and role must be unset."""
    details = []
    pod_problems = _selinux_problems(_security_context(spec))
    if pod_problems:
        details.append(f"pod seLinuxOptions {', '.join(pod_problems)}")
    for container in _containers(spec):
        problems = _selinux_problems(_security_context(container))
        if problems:
            details.append(
                f'container "{container.get("name", "")}" seLinuxOptions {", ".join(problems)}'
            )
    if not details:
        return ALLOWED
    return _forbidden("seLinuxOptions", details)


def check_proc_mount(metadata: dict[str, Any], spec: dict[str, Any]) -> CheckResult:
    """The /proc mount type must be Default or unset."""
    details = []
    for container in _containers(spec):
        proc_mount = _security_context(container).get("procMount")
        if proc_mount and proc_mount != "Default":
            details.append(
                f'container "{container.get("name", "")}" must not set '
                f'securityContext.procMount to "{proc_mount}"'
            )
    if not details:
        return ALLOWED
    return _forbidden("procMount", details)


def _seccomp_type(security_context: dict[str, Any]) -> str | None:
    return _mapping(security_context.get("seccompProfile")).get("type")


def check_seccomp_baseline(metadata: dict[str, Any], spec: dict[str, Any]) -> CheckResult:
    """Seccomp must not be explicitly Unconfined."""
    details = []
    if _seccomp_type(_security_context(spec)) == "Unconfined":
        details.append('pod must not set securityContext.seccompProfile.type to "Unconfined"')
    names = [c.get("name", "") for c in _containers(spec) if _seccomp_type(_security_context(c)) == "Unconfined"]
    if names:
        details.append(
            f'{_containers_label(names)} must not set securityContext.seccompProfile.type to "Unconfined"'
        )
    if not details:
        return ALLOWED
    return _forbidden("seccompProfile", details)


def check_sysctls(metadata: dict[str, Any], spec: dict[str, Any]) -> CheckResult:
    """Only safe sysctls may be set."""
    names = [
        sysctl.get("name", "")
        for sysctl in _security_context(spec).get("sysctls") or []
        if isinstance(sysctl, dict) and sysctl.get("name", "") not in SAFE_SYSCTLS
    ]
    if not names:
        return ALLOWED
    return _forbidden("forbidden sysctls", [", ".join(names)])


# Restricted


def _volume_type(volume: dict[str, Any]) -> str | None:
    for key in volume:
        if key != "name":
            return key
    return None


def check_restricted_volumes(metadata: dict[str, Any], spec: dict[str, Any]) -> CheckResult:
    """Only safe volume types are allowed."""
    details = []
    for volume in spec.get("volumes") or []:
        if not isinstance(volume, dict):
            continue
        volume_type = _volume_type(volume)
        if volume_type and volume_type not in RESTRICTED_VOLUME_TYPES:
            details.append(f'volume "{volume.get("name", "")}" uses restricted volume type "{volume_type}"')
    if not details:
        return ALLOWED
    return _forbidden("restricted volume types", details)


def check_allow_privilege_escalation(metadata: dict[str, Any], spec: dict[str, Any]) -> CheckResult:
    """Containers must explicitly disable privilege escalation."""
    names = [
        c.get("name", "")
        for c in _containers(spec)
        if _security_context(c).get("allowPrivilegeEscalation") is not False
    ]
    if not names:
        return ALLOWED
    return _forbidden(
        "allowPrivilegeEscalation != false",
        [f"{_containers_label(names)} must set securityContext.allowPrivilegeEscalation=false"],
    )


def check_run_as_non_root(metadata: dict[str, Any], spec: dict[str, Any]) -> CheckResult:
    """Containers must run as non-root, set at pod or container level."""
    pod_value = _security_context(spec).get("runAsNonRoot")
    details = []
    if pod_value is False:
        details.append("pod must not set securityContext.runAsNonRoot=false")

    explicit_false = []
    implicit = []
    for container in _containers(spec):
        value = _security_context(container).get("runAsNonRoot")
        if value is False:
            explicit_false.append(container.get("name", ""))
        elif value is None and pod_value is not True:
            implicit.append(container.get("name", ""))

    if explicit_false:
        details.append(f"{_containers_label(explicit_false)} must not set securityContext.runAsNonRoot=false")
    if implicit:
        details.append(f"pod or {_containers_label(implicit)} must set securityContext.runAsNonRoot=true")
    if not details:
        return ALLOWED
    return _forbidden("runAsNonRoot != true", details)


def check_run_as_user(metadata: dict[str, Any], spec: dict[str, Any]) -> CheckResult:
    """Containers must not run as UID 0."""
    details = []
    if _security_context(spec).get("runAsUser") == 0:
        details.append("pod must not set runAsUser=0")
    names = [c.get("name", "") for c in _containers(spec) if _security_context(c).get("runAsUser") == 0]
    if names:
        details.append(f"{_containers_label(names)} must not set runAsUser=0")
    if not details:
        return ALLOWED
    return _forbidden("runAsUser=0", details)


def check_seccomp_restricted(metadata: dict[str, Any], spec: dict[str, Any]) -> CheckResult:
    """Seccomp must be RuntimeDefault or Localhost at pod or container level."""
    pod_type = _seccomp_type(_security_context(spec))
    details = []
    if pod_type is not None and pod_type not in VALID_SECCOMP_TYPES:
        details.append(f'pod must not set securityContext.seccompProfile.type to "{pod_type}"')

    bad_types = []
    unset = []
    for container in _containers(spec):
        container_type = _seccomp_type(_security_context(container))
        if container_type is None:
            if pod_type not in VALID_SECCOMP_TYPES:
                unset.append(container.get("name", ""))
        elif container_type not in VALID_SECCOMP_TYPES:
            bad_types.append(container.get("name", ""))

    if bad_types:
        details.append(
            f"{_containers_label(bad_types)} must not set securityContext.seccompProfile.type "
            f"to a value other than {_quoted(list(VALID_SECCOMP_TYPES))}"
        )
    if unset:
        details.append(
            f"pod or {_containers_label(unset)} must set securityContext.seccompProfile.type "
            f'to "RuntimeDefault" or "Localhost"'
        )
    if not details:
        return ALLOWED
    return _forbidden("seccompProfile", details)


def check_capabilities_restricted(metadata: dict[str, Any], spec: dict[str, Any]) -> CheckResult:
    """All capabilities must be dropped; only NET_BIND_SERVICE may be added."""
    missing_drop = []
    details = []
    for container in _containers(spec):
        capabilities = _mapping(_security_context(container).get("capabilities"))
        dropped = {str(cap) for cap in capabilities.get("drop") or []}
        added = {str(cap) for cap in capabilities.get("add") or []}
        name = container.get("name", "")
        if "ALL" not in dropped:
            missing_drop.append(name)
        disallowed = sorted(added - {"NET_BIND_SERVICE"})
        if disallowed:
            details.append(
                f'container "{name}" must not include {_quoted(disallowed)} in securityContext.capabilities.add'
            )
    if missing_drop:
        details.insert(
            0, f'{_containers_label(missing_drop)} must set securityContext.capabilities.drop=["ALL"]'
        )
    if not details:
        return ALLOWED
    return _forbidden("unrestricted capabilities", details)


def default_checks() -> list[Check]:
    """The built-in Pod Security Standards check set."""
    baseline = SecurityLevel.BASELINE
    restricted = SecurityLevel.RESTRICTED
    return [
        Check("PSS-B-001", "HostProcess", baseline, check_host_process),
        Check("PSS-B-002", "Host Namespaces", baseline, check_host_namespaces),
        Check("PSS-B-003", "Privileged Containers", baseline, check_privileged),
        Check("PSS-B-004", "Capabilities", baseline, check_capabilities_baseline),
        Check("PSS-B-005", "HostPath Volumes", baseline, check_host_path_volumes),
        Check("PSS-B-006", "Host Ports", baseline, check_host_ports),
        Check("PSS-B-007", "AppArmor", baseline, check_apparmor),
        Check("PSS-B-008", "SELinux", baseline, check_selinux),
        Check("PSS-B-009", "/proc Mount Type", baseline, check_proc_mount),
        Check("PSS-B-010", "Seccomp", baseline, check_seccomp_baseline, min_minor=19),
        Check("PSS-B-011", "Sysctls", baseline, check_sysctls),
        Check("PSS-R-001", "Volume Types", restricted, check_restricted_volumes),
        Check("PSS-R-002", "Privilege Escalation", restricted, check_allow_privilege_escalation, min_minor=8),
        Check("PSS-R-003", "Running as Non-root", restricted, check_run_as_non_root),
        Check("PSS-R-004", "Running as Non-root User", restricted, check_run_as_user, min_minor=23),
        Check("PSS-R-005", "Seccomp (Restricted)", restricted, check_seccomp_restricted, min_minor=19),
        Check("PSS-R-006", "Capabilities (Restricted)", restricted, check_capabilities_restricted, min_minor=22),
    ]
