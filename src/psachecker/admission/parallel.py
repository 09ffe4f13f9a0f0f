"""
Parallel admission engine.

Every object is evaluated against the privileged, baseline and restricted
admissions concurrently; the three results are joined into a
ParallelResult. Resource and namespace aggregation build on top of that.
"""

from __future__ import annotations

import copy
import logging
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, as_completed, wait
from typing import Any, Iterable

from psachecker.admission.context import EvaluationContext
from psachecker.admission.level_admission import LevelAdmission, PodSecurityConfiguration
from psachecker.admission.namespaces import KnowAllNamespaceGetter, NamespaceGetter, PodLister
from psachecker.admission.results import (
    EvaluationRequest,
    LevelResult,
    ParallelResult,
    ResultKey,
    ResultsMap,
)
from psachecker.errors import EvaluationCancelled, EvaluationFailure, SetupError, SourceError
from psachecker.levels import (
    CONCRETE_LEVELS,
    ENFORCE_LEVEL_LABEL,
    ENFORCE_VERSION_LABEL,
    LATEST,
    PolicyVersion,
    SecurityLevel,
)
from psachecker.observability.metrics import MetricsRecorder, NoopMetricsRecorder
from psachecker.policy.evaluator import PolicyEvaluator
from psachecker.sources.resource import ResourceInfo

logger = logging.getLogger(__name__)

# Levels probed by the namespace scan, least to most restrictive.
NAMESPACE_PROBE_LEVELS = (SecurityLevel.BASELINE, SecurityLevel.RESTRICTED)


class ParallelAdmission:
    """
    Evaluates requests against all three Pod Security levels at once.

    The engine owns a thread pool for the per-level fan-out. Close it with
    ``close()`` or use the engine as a context manager.

    Example:
        with new_parallel_admission() as admission:
            results = admission.validate_resources(ctx, True, "default", infos)
            per_namespace = most_restrictive_policy_per_namespace(results)
    """

    def __init__(
        self,
        privileged: LevelAdmission,
        baseline: LevelAdmission,
        restricted: LevelAdmission,
        version: PolicyVersion = LATEST,
        max_workers: int = 3,
        metrics: MetricsRecorder | None = None,
        poll_interval: float = 0.05,
    ):
        """
        Initialize the engine.

        Args:
            privileged: Admission pinned to privileged
            baseline: Admission pinned to baseline
            restricted: Admission pinned to restricted
            version: Policy version used for namespace probes
            max_workers: Threads for the per-level fan-out
            metrics: Recorder for evaluation errors
            poll_interval: Seconds between cancellation checks while joining
        """
        self._admissions = {
            SecurityLevel.PRIVILEGED: privileged,
            SecurityLevel.BASELINE: baseline,
            SecurityLevel.RESTRICTED: restricted,
        }
        self._version = version
        self._metrics = metrics or NoopMetricsRecorder()
        self._poll_interval = poll_interval
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="psachecker-level"
        )

    @property
    def version(self) -> PolicyVersion:
        return self._version

    def admission(self, level: SecurityLevel) -> LevelAdmission:
        return self._admissions[level]

    def close(self) -> None:
        """Shut down the level thread pool."""
        self._executor.shutdown(wait=True, cancel_futures=True)

    def __enter__(self) -> ParallelAdmission:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _validate_level(
        self,
        level: SecurityLevel,
        ctx: EvaluationContext,
        request: EvaluationRequest,
    ) -> LevelResult:
        try:
            return self._admissions[level].validate(ctx, request)
        except EvaluationCancelled:
            raise
        except Exception as e:
            logger.error(
                f"{level.value} evaluation of {request.kind} "
                f"{request.namespace}/{request.name} failed: {e}"
            )
            self._metrics.record_error(True, request.resource, request.operation)
            error = e if isinstance(e, EvaluationFailure) else EvaluationFailure(str(e))
            return LevelResult.failure(level, error)

    def evaluate(self, ctx: EvaluationContext, request: EvaluationRequest) -> ParallelResult:
        """
        Evaluate one request against all three levels and wait for all of them.

        A level whose evaluator fails gets a failed result, which makes the
        most restrictive policy ``unknown``.

        Raises:
            EvaluationCancelled: If ``ctx`` is cancelled before the join completes
        """
        ctx.check()
        futures: dict[Future[LevelResult], SecurityLevel] = {
            self._executor.submit(self._validate_level, level, ctx, request): level
            for level in CONCRETE_LEVELS
        }
        result = ParallelResult()
        pending = set(futures)
        try:
            while pending:
                done, pending = wait(pending, timeout=self._poll_interval, return_when=FIRST_COMPLETED)
                for future in done:
                    result.set(futures[future], future.result())
                if pending and ctx.cancelled:
                    raise EvaluationCancelled(ctx.reason)
        except EvaluationCancelled:
            for future in pending:
                future.cancel()
            raise
        return result

    def _resolve_key(
        self,
        info: ResourceInfo,
        is_local: bool,
        default_namespace: str | None,
    ) -> ResultKey:
        if not info.namespaced:
            return ResultKey(info.kind, "", info.name)

        namespace = info.namespace
        if not namespace:
            if is_local and default_namespace:
                namespace = default_namespace
            else:
                raise SourceError(
                    f'{info.kind} "{info.name}" has no namespace and no default namespace was given',
                    resource=f"{info.kind}/{info.name}",
                )
        return ResultKey(info.kind, namespace, info.name)

    def validate_resources(
        self,
        ctx: EvaluationContext,
        is_local: bool,
        default_namespace: str | None,
        resources: Iterable[ResourceInfo],
        max_workers: int = 1,
    ) -> ResultsMap:
        """
        Evaluate every resource against all three levels.

        Args:
            ctx: Cancellation context
            is_local: Whether resources came from local files
            default_namespace: Namespace for local namespaced resources without one
            resources: Resources to evaluate
            max_workers: Resources evaluated concurrently (1 = sequential)

        Returns:
            One ParallelResult per distinct (kind, namespace, name)

        Raises:
            SourceError: If a namespaced resource has no namespace to use
            EvaluationCancelled: If ``ctx`` is cancelled
        """
        requests: dict[ResultKey, EvaluationRequest] = {}
        for info in resources:
            key = self._resolve_key(info, is_local, default_namespace)
            if key in requests:
                logger.debug(f"Skipping duplicate resource {key}")
                continue
            requests[key] = EvaluationRequest(
                namespace=key.namespace,
                name=key.name,
                kind=key.kind,
                resource=info.resource,
                operation="CREATE",
                obj=info.obj,
            )

        logger.info(f"Evaluating {len(requests)} resources")
        if max_workers <= 1:
            results: ResultsMap = {}
            for key, request in requests.items():
                ctx.check()
                results[key] = self.evaluate(ctx, request)
            return results

        collected: ResultsMap = {}
        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="psachecker-resource") as pool:
            futures = {
                pool.submit(self.evaluate, ctx, request): key
                for key, request in requests.items()
            }
            try:
                for future in as_completed(futures):
                    collected[futures[future]] = future.result()
            except EvaluationCancelled:
                ctx.cancel()
                for future in futures:
                    future.cancel()
                raise

        return {key: collected[key] for key in requests}

    def _namespace_probe(self, namespace: dict[str, Any], level: SecurityLevel) -> EvaluationRequest:
        labeled = copy.deepcopy(namespace)
        metadata = labeled.setdefault("metadata", {})
        labels = metadata.get("labels") or {}
        labels[ENFORCE_LEVEL_LABEL] = level.value
        labels[ENFORCE_VERSION_LABEL] = str(self._version)
        metadata["labels"] = labels
        return EvaluationRequest(
            namespace="",
            name=metadata.get("name", ""),
            kind="Namespace",
            resource="namespaces",
            operation="UPDATE",
            obj=labeled,
            old_obj=namespace,
        )

    def validate_namespaces(
        self,
        ctx: EvaluationContext,
        namespaces: Iterable[dict[str, Any]],
    ) -> dict[str, SecurityLevel]:
        """
        Find the strictest enforce level each namespace's pods can take.

        Every namespace starts at privileged. Baseline and then restricted are
        probed by submitting an enforce-label update; a probe that produces
        warnings ends the scan for that namespace.

        Raises:
            EvaluationCancelled: If ``ctx`` is cancelled
            ListError: If a namespace's pods cannot be listed
        """
        probe = self._admissions[SecurityLevel.PRIVILEGED]
        recommendations: dict[str, SecurityLevel] = {}
        for namespace in namespaces:
            ctx.check()
            name = (namespace.get("metadata") or {}).get("name", "")
            recommended = SecurityLevel.PRIVILEGED
            for level in NAMESPACE_PROBE_LEVELS:
                result = probe.validate(ctx, self._namespace_probe(namespace, level))
                if result.warnings:
                    logger.debug(f"Namespace {name} is not compatible with {level.value}")
                    break
                recommended = level
            recommendations[name] = recommended
        return recommendations


def new_parallel_admission(
    pod_lister: PodLister | None = None,
    namespace_getter: NamespaceGetter | None = None,
    evaluator: PolicyEvaluator | None = None,
    version: str = "latest",
    metrics: MetricsRecorder | None = None,
    max_workers: int = 3,
) -> ParallelAdmission:
    """
    Build the three level admissions around one shared evaluator.

    Args:
        pod_lister: Lists existing pods for namespace probes
        namespace_getter: Namespace lookup for workloads (default: know-all)
        evaluator: Shared rule engine (default: built-in checks)
        version: Policy version, ``latest`` or ``v1.N``
        metrics: Metrics recorder shared by all admissions
        max_workers: Threads for the per-level fan-out

    Raises:
        SetupError: If the version, rule set or any admission configuration is invalid
    """
    try:
        policy_version = PolicyVersion.parse(version)
    except ValueError as e:
        raise SetupError(f"failed to set up admission: {e}") from e

    try:
        evaluator = evaluator or PolicyEvaluator()
    except SetupError as e:
        raise SetupError(f"failed to set up admission: {e}") from e

    namespace_getter = namespace_getter or KnowAllNamespaceGetter()
    metrics = metrics or NoopMetricsRecorder()

    admissions = {}
    for level in CONCRETE_LEVELS:
        admission = LevelAdmission(
            PodSecurityConfiguration.pinned(level, str(policy_version)),
            evaluator,
            namespace_getter,
            pod_lister=pod_lister,
            metrics=metrics,
        )
        try:
            admission.complete_configuration()
            admission.validate_configuration()
        except SetupError as e:
            raise SetupError(f"failed to set up admission: {e}") from e
        admissions[level] = admission

    logger.debug(f"Created level admissions at policy version {policy_version}")
    return ParallelAdmission(
        privileged=admissions[SecurityLevel.PRIVILEGED],
        baseline=admissions[SecurityLevel.BASELINE],
        restricted=admissions[SecurityLevel.RESTRICTED],
        version=policy_version,
        max_workers=max_workers,
        metrics=metrics,
    )
