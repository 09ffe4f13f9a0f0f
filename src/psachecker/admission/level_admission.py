"""
Single-level Pod Security admission.

A LevelAdmission answers one question for one request: would Pod Security
admission, configured with a fixed default policy, admit this object? Three
of them (one per concrete level) back the parallel admission engine.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from psachecker.admission.context import EvaluationContext
from psachecker.admission.namespaces import NamespaceGetter, PodLister
from psachecker.admission.results import EvaluationRequest, LevelResult
from psachecker.errors import EvaluationFailure, SetupError
from psachecker.levels import (
    AUDIT_LEVEL_LABEL,
    AUDIT_VERSION_LABEL,
    ENFORCE_LEVEL_LABEL,
    ENFORCE_VERSION_LABEL,
    WARN_LEVEL_LABEL,
    WARN_VERSION_LABEL,
    LevelVersion,
    PolicyVersion,
    SecurityLevel,
)
from psachecker.observability.metrics import (
    Decision,
    MetricsRecorder,
    Mode,
    NoopMetricsRecorder,
)
from psachecker.policy.checks import CheckResult
from psachecker.policy.evaluator import (
    PolicyEvaluator,
    format_reasons,
    format_violation,
    format_would_violate,
)
from psachecker.policy.extractor import PodSpecExtractor

logger = logging.getLogger(__name__)

AUDIT_VIOLATIONS_ANNOTATION = "audit-violations"
AUDIT_ERROR_ANNOTATION = "error"

NAMESPACE_KIND = "Namespace"


@dataclass(frozen=True)
class PodSecurityDefaults:
    """Default policy applied to namespaces without Pod Security labels."""

    enforce: str = "privileged"
    enforce_version: str = "latest"
    audit: str = "privileged"
    audit_version: str = "latest"
    warn: str = "privileged"
    warn_version: str = "latest"


@dataclass
class PodSecurityConfiguration:
    """Admission configuration: defaults plus exempt namespaces."""

    defaults: PodSecurityDefaults = field(default_factory=PodSecurityDefaults)
    exempt_namespaces: tuple[str, ...] = ()

    @classmethod
    def pinned(cls, level: SecurityLevel, version: str = "latest") -> PodSecurityConfiguration:
        """Configuration with enforce, audit and warn all set to ``level:version``."""
        return cls(
            defaults=PodSecurityDefaults(
                enforce=level.value,
                enforce_version=version,
                audit=level.value,
                audit_version=version,
                warn=level.value,
                warn_version=version,
            )
        )


@dataclass(frozen=True)
class NamespacePolicy:
    """Effective enforce, audit and warn policies of a namespace."""

    enforce: LevelVersion
    audit: LevelVersion
    warn: LevelVersion

    @classmethod
    def from_labels(
        cls,
        labels: Mapping[str, str],
        defaults: NamespacePolicy,
    ) -> tuple[NamespacePolicy, list[str]]:
        """
        Build a policy from namespace labels.

        Missing labels fall back to ``defaults``. Invalid labels fall back to
        ``restricted:latest`` and are reported in the returned error list.

        Returns:
            Tuple of (policy, errors)
        """
        errors: list[str] = []
        enforce = _level_version(
            labels, ENFORCE_LEVEL_LABEL, ENFORCE_VERSION_LABEL, defaults.enforce, errors
        )
        audit = _level_version(labels, AUDIT_LEVEL_LABEL, AUDIT_VERSION_LABEL, defaults.audit, errors)
        warn = _level_version(labels, WARN_LEVEL_LABEL, WARN_VERSION_LABEL, defaults.warn, errors)
        return cls(enforce=enforce, audit=audit, warn=warn), errors


def _level_version(
    labels: Mapping[str, str],
    level_label: str,
    version_label: str,
    default: LevelVersion,
    errors: list[str],
) -> LevelVersion:
    level = default.level
    version = default.version

    if level_label in labels:
        try:
            level = SecurityLevel.parse(labels[level_label])
        except ValueError as e:
            errors.append(f"{level_label}: {e}")
            return LevelVersion(SecurityLevel.RESTRICTED)

    if version_label in labels:
        try:
            version = PolicyVersion.parse(labels[version_label])
        except ValueError as e:
            errors.append(f"{version_label}: {e}")
            return LevelVersion(SecurityLevel.RESTRICTED)

    return LevelVersion(level, version)


def _labels(obj: Mapping[str, Any] | None) -> dict[str, str]:
    if not obj:
        return {}
    metadata = obj.get("metadata") or {}
    return dict(metadata.get("labels") or {})


class LevelAdmission:
    """
    Pod Security admission pinned to one default policy.

    Example:
        admission = LevelAdmission(
            PodSecurityConfiguration.pinned(SecurityLevel.BASELINE),
            evaluator,
            KnowAllNamespaceGetter(),
        )
        admission.complete_configuration()
        admission.validate_configuration()
        result = admission.validate(ctx, request)
    """

    def __init__(
        self,
        configuration: PodSecurityConfiguration,
        evaluator: PolicyEvaluator,
        namespace_getter: NamespaceGetter,
        pod_lister: PodLister | None = None,
        metrics: MetricsRecorder | None = None,
        extractor: PodSpecExtractor | None = None,
    ):
        self._configuration = configuration
        self._evaluator = evaluator
        self._namespace_getter = namespace_getter
        self._pod_lister = pod_lister
        self._metrics = metrics or NoopMetricsRecorder()
        self._extractor = extractor or PodSpecExtractor()
        self._defaults: NamespacePolicy | None = None

    @property
    def level(self) -> SecurityLevel:
        """The enforce level this admission is pinned to."""
        if self._defaults is None:
            return SecurityLevel.parse(self._configuration.defaults.enforce)
        return self._defaults.enforce.level

    @property
    def default_policy(self) -> NamespacePolicy | None:
        return self._defaults

    def complete_configuration(self) -> None:
        """
        Resolve the configured defaults into a namespace policy.

        Raises:
            SetupError: If a default level or version is invalid
        """
        d = self._configuration.defaults
        try:
            self._defaults = NamespacePolicy(
                enforce=LevelVersion(SecurityLevel.parse(d.enforce), PolicyVersion.parse(d.enforce_version)),
                audit=LevelVersion(SecurityLevel.parse(d.audit), PolicyVersion.parse(d.audit_version)),
                warn=LevelVersion(SecurityLevel.parse(d.warn), PolicyVersion.parse(d.warn_version)),
            )
        except ValueError as e:
            raise SetupError(f"invalid default policy: {e}") from e

    def validate_configuration(self) -> None:
        """
        Check that the admission is ready to evaluate requests.

        Raises:
            SetupError: If a collaborator is missing or the configuration was not completed
        """
        if self._defaults is None:
            raise SetupError("admission configuration was not completed")
        if self._evaluator is None:
            raise SetupError("admission has no policy evaluator")
        if self._namespace_getter is None:
            raise SetupError("admission has no namespace getter")

    def validate(self, ctx: EvaluationContext, request: EvaluationRequest) -> LevelResult:
        """
        Decide whether the request would be admitted.

        Raises:
            EvaluationCancelled: If ``ctx`` is cancelled
            EvaluationFailure: If a collaborator fails
        """
        ctx.check()
        if self._defaults is None:
            raise EvaluationFailure("admission configuration was not completed")

        if request.kind == NAMESPACE_KIND:
            return self._validate_namespace(ctx, request)
        if request.namespace in self._configuration.exempt_namespaces:
            return LevelResult(level=self.level, allowed=True)
        if self._extractor.has_pod_spec(request.kind):
            return self._validate_pod_spec(ctx, request)
        return LevelResult(level=self.level, allowed=True)

    def _record(self, decision: Decision, policy: LevelVersion, mode: Mode, request: EvaluationRequest) -> None:
        self._metrics.record_evaluation(decision, str(policy), mode, request.resource, request.operation)

    def _validate_namespace(self, ctx: EvaluationContext, request: EvaluationRequest) -> LevelResult:
        new_policy, errors = NamespacePolicy.from_labels(_labels(request.obj), self._defaults)
        if errors:
            reason = "; ".join(errors)
            self._record(Decision.DENY, new_policy.enforce, Mode.ENFORCE, request)
            return LevelResult(level=self.level, allowed=False, reason=reason)

        if request.operation != "UPDATE" or request.old_obj is None:
            self._record(Decision.ALLOW, new_policy.enforce, Mode.ENFORCE, request)
            return LevelResult(level=self.level, allowed=True)

        if new_policy.enforce.level is SecurityLevel.PRIVILEGED:
            self._record(Decision.ALLOW, new_policy.enforce, Mode.ENFORCE, request)
            return LevelResult(level=self.level, allowed=True)

        if self._pod_lister is None:
            raise EvaluationFailure("namespace evaluation requires a pod lister")

        warnings = self._check_existing_pods(ctx, request.name, new_policy.enforce)
        self._record(Decision.ALLOW, new_policy.enforce, Mode.ENFORCE, request)
        return LevelResult(level=self.level, allowed=True, warnings=tuple(warnings))

    def _check_existing_pods(self, ctx: EvaluationContext, namespace: str, policy: LevelVersion) -> list[str]:
        pods = self._pod_lister.list_pods(ctx, namespace)
        lines = []
        for pod in pods:
            ctx.check()
            extracted = self._extractor.extract(pod)
            if extracted is None:
                continue
            metadata, spec = extracted
            failures = self._evaluator.evaluate_pod(policy.level, policy.version, metadata, spec)
            if failures:
                reasons = ", ".join(failure.forbidden_reason for failure in failures)
                lines.append(f"{metadata.get('name', '')}: {reasons}")

        if not lines:
            return []
        logger.debug(f"{len(lines)} pods in namespace {namespace} violate {policy}")
        header = (
            f'existing pods in namespace "{namespace}" violate the new PodSecurity '
            f'enforce level "{policy}"'
        )
        return [header, *lines]

    def _evaluate(self, policy: LevelVersion, metadata: dict[str, Any], spec: dict[str, Any]) -> list[CheckResult]:
        return self._evaluator.evaluate_pod(policy.level, policy.version, metadata, spec)

    def _validate_pod_spec(self, ctx: EvaluationContext, request: EvaluationRequest) -> LevelResult:
        namespace = self._namespace_getter.get_namespace(ctx, request.namespace)
        policy, errors = NamespacePolicy.from_labels(_labels(namespace), self._defaults)

        extracted = self._extractor.extract(request.obj)
        if extracted is None:
            return LevelResult(level=self.level, allowed=True)
        metadata, spec = extracted

        enforce_failures = self._evaluate(policy.enforce, metadata, spec)
        allowed = not enforce_failures
        reason = format_violation(policy.enforce, enforce_failures) if enforce_failures else ""
        self._record(Decision.ALLOW if allowed else Decision.DENY, policy.enforce, Mode.ENFORCE, request)

        audit_annotations: dict[str, str] = {}
        if errors:
            audit_annotations[AUDIT_ERROR_ANNOTATION] = "; ".join(errors)
        audit_failures = enforce_failures if policy.audit == policy.enforce else self._evaluate(policy.audit, metadata, spec)
        if audit_failures:
            audit_annotations[AUDIT_VIOLATIONS_ANNOTATION] = (
                format_would_violate(policy.audit, audit_failures)
            )
            self._record(Decision.DENY, policy.audit, Mode.AUDIT, request)

        warnings: list[str] = []
        if policy.warn != policy.enforce:
            warn_failures = self._evaluate(policy.warn, metadata, spec)
            if warn_failures:
                warnings.append(format_would_violate(policy.warn, warn_failures))
                self._record(Decision.DENY, policy.warn, Mode.WARN, request)

        if not allowed:
            logger.debug(
                f"{request.kind} {request.namespace}/{request.name} denied at {policy.enforce}: "
                f"{format_reasons(enforce_failures)}"
            )

        return LevelResult(
            level=self.level,
            allowed=allowed,
            reason=reason,
            warnings=tuple(warnings),
            audit_annotations=audit_annotations,
        )
