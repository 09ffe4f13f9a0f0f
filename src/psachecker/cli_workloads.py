"""
CLI command for inspecting workloads.

Evaluates workloads from local manifests or from the cluster and prints the
strictest Pod Security level each namespace's workloads would be admitted
under.
"""

from __future__ import annotations

import argparse
import logging
from typing import Any, TextIO

from kubernetes import client

from psachecker.admission import (
    ClientNamespaceGetter,
    filter_unchanged_namespaces,
    most_restrictive_policy_per_namespace,
    new_parallel_admission,
)
from psachecker.cli_common import evaluation_context, require, write_levels
from psachecker.config import CheckerConfiguration
from psachecker.errors import ListError, SourceError
from psachecker.levels import SecurityLevel
from psachecker.observability.metrics import InMemoryMetricsRecorder
from psachecker.sources import (
    ClusterSource,
    ManifestSource,
    ResourceInfo,
    current_namespace,
    default_scheme,
    load_api_client,
)

logger = logging.getLogger(__name__)


def add_workloads_parser(subparsers: Any, parents: list[argparse.ArgumentParser]) -> None:
    """Add the inspect-workloads parser to CLI subparsers."""
    parser = subparsers.add_parser(
        "inspect-workloads",
        parents=parents,
        help="Recommend Pod Security levels for workloads",
        description="Evaluate workloads against all Pod Security levels and "
        "print the strictest level each namespace can enforce",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  psachecker inspect-workloads -f deploy/ -R -n web --default-namespaces
  psachecker inspect-workloads deployments -A
  psachecker inspect-workloads deploy/frontend sts/db -n web
""",
    )
    parser.add_argument(
        "-f",
        "--filename",
        action="append",
        default=[],
        dest="filenames",
        help="Manifest file or directory to evaluate, - for stdin (repeatable)",
    )
    parser.add_argument(
        "-R",
        "--recursive",
        action="store_true",
        help="Process directories given with -f recursively",
    )
    parser.add_argument(
        "--default-namespaces",
        action="store_true",
        help="Put local objects without a namespace into --namespace",
    )
    parser.add_argument(
        "-A",
        "--all-namespaces",
        action="store_true",
        help="List cluster objects across all namespaces",
    )
    parser.add_argument(
        "resources",
        nargs="*",
        help="TYPE [NAME...] or TYPE/NAME... to read from the cluster",
    )


class WorkloadOptions:
    """Validated options for one inspect-workloads run."""

    def __init__(self, args: argparse.Namespace, settings: CheckerConfiguration):
        self.filenames: list[str] = list(args.filenames or [])
        self.recursive: bool = args.recursive
        self.default_namespaces: bool = args.default_namespaces
        self.all_namespaces: bool = args.all_namespaces
        self.resources: list[str] = list(args.resources or [])
        self.namespace: str = args.namespace or ""
        self.updates_only: bool = args.updates_only
        self.settings = settings

    @property
    def is_local(self) -> bool:
        return bool(self.filenames)

    def validate(self) -> None:
        """
        Reject contradictory flag combinations.

        Raises:
            SetupError: If the options cannot be used together
        """
        require(
            not self.default_namespaces or bool(self.namespace),
            "--default-namespaces requires --namespace",
        )
        require(
            bool(self.filenames) or bool(self.resources),
            "you must specify either --filename or resource arguments",
        )
        require(
            not (self.filenames and self.resources),
            "resource arguments cannot be combined with --filename",
        )
        require(
            not (self.all_namespaces and self.namespace),
            "--all-namespaces cannot be combined with --namespace",
        )

    def _load_local(self) -> list[ResourceInfo]:
        return ManifestSource(self.filenames, default_scheme(), recursive=self.recursive).infos()

    def _load_cluster(self, api_client: Any) -> list[ResourceInfo]:
        namespace = self.namespace
        if not namespace and not self.all_namespaces:
            namespace = current_namespace(
                self.settings.kubeconfig, self.settings.context, self.settings.in_cluster
            )
        source = ClusterSource(api_client, default_scheme(), namespace, self.all_namespaces)
        return source.infos(self.resources)

    def run(self) -> dict[str, SecurityLevel]:
        """
        Evaluate the selected workloads.

        Returns:
            Recommended level per namespace

        Raises:
            PSACheckerError: On setup, source, list or evaluation failure
        """
        api_client = None
        try:
            if self.is_local:
                infos = self._load_local()
            else:
                api_client = load_api_client(
                    self.settings.kubeconfig, self.settings.context, self.settings.in_cluster
                )
                infos = self._load_cluster(api_client)
        except SourceError as e:
            raise SourceError(f"failed to retrieve info about the objects: {e}", resource=e.resource) from e

        default_namespace = self.namespace if self.default_namespaces else None
        ctx = evaluation_context(self.settings)
        metrics = InMemoryMetricsRecorder()

        with new_parallel_admission(version=self.settings.policy_version, metrics=metrics) as admission:
            try:
                results = admission.validate_resources(
                    ctx,
                    self.is_local,
                    default_namespace,
                    infos,
                    max_workers=self.settings.resource_workers,
                )
            except SourceError as e:
                raise SourceError(
                    f"failed to retrieve info about the objects: {e}", resource=e.resource
                ) from e

        logger.debug(f"Evaluation summary: {metrics.summary()}")
        levels = most_restrictive_policy_per_namespace(results)

        if self.updates_only:
            if self.is_local:
                logger.warning("--updates-only is not supported for local files; reporting all namespaces")
            else:
                getter = ClientNamespaceGetter(client.CoreV1Api(api_client), api_client)
                try:
                    current = getter.enforce_labels(ctx, sorted(levels))
                except ListError as e:
                    raise ListError(f"failed to list namespaces: {e}") from e
                levels = filter_unchanged_namespaces(levels, current)

        return levels


def cmd_inspect_workloads(
    args: argparse.Namespace,
    settings: CheckerConfiguration,
    out: TextIO | None = None,
) -> int:
    """
    Run inspect-workloads.

    Returns:
        Exit code (0 for success)
    """
    options = WorkloadOptions(args, settings)
    options.validate()
    levels = options.run()
    write_levels(levels, out)
    return 0
