"""
CLI command for inspecting namespaces.

Probes every namespace (or the one given with --namespace) for the strictest
enforce level its existing pods satisfy.
"""

from __future__ import annotations

import argparse
import logging
from typing import Any, TextIO

from kubernetes import client

from psachecker.admission import (
    ClientNamespaceGetter,
    ClientPodLister,
    enforce_label,
    filter_unchanged_namespaces,
    new_parallel_admission,
)
from psachecker.cli_common import evaluation_context, write_levels
from psachecker.config import CheckerConfiguration
from psachecker.errors import ListError
from psachecker.levels import SecurityLevel
from psachecker.observability.metrics import InMemoryMetricsRecorder
from psachecker.sources import load_api_client

logger = logging.getLogger(__name__)


def add_cluster_parser(subparsers: Any, parents: list[argparse.ArgumentParser]) -> None:
    """Add the inspect-cluster parser to CLI subparsers."""
    subparsers.add_parser(
        "inspect-cluster",
        parents=parents,
        help="Recommend Pod Security levels for namespaces",
        description="Find the strictest enforce level each namespace's "
        "existing pods would satisfy",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  psachecker inspect-cluster
  psachecker inspect-cluster -n web --updates-only
""",
    )


class ClusterOptions:
    """Options for one inspect-cluster run."""

    def __init__(self, args: argparse.Namespace, settings: CheckerConfiguration):
        self.namespace: str = args.namespace or ""
        self.updates_only: bool = args.updates_only
        self.settings = settings

    def run(self) -> dict[str, SecurityLevel]:
        """
        Probe the selected namespaces.

        Returns:
            Recommended level per namespace

        Raises:
            PSACheckerError: On setup, list or evaluation failure
        """
        api_client = load_api_client(
            self.settings.kubeconfig, self.settings.context, self.settings.in_cluster
        )
        core_v1 = client.CoreV1Api(api_client)
        getter = ClientNamespaceGetter(core_v1, api_client)
        ctx = evaluation_context(self.settings)

        try:
            namespaces = getter.list_namespaces(ctx, self.namespace or None)
        except ListError as e:
            raise ListError(f"failed to list namespaces: {e}") from e
        logger.info(f"Inspecting {len(namespaces)} namespaces")

        metrics = InMemoryMetricsRecorder()
        with new_parallel_admission(
            pod_lister=ClientPodLister(core_v1, api_client),
            version=self.settings.policy_version,
            metrics=metrics,
        ) as admission:
            levels = admission.validate_namespaces(ctx, namespaces)
        logger.debug(f"Evaluation summary: {metrics.summary()}")

        if self.updates_only:
            current = {
                (ns.get("metadata") or {}).get("name", ""): enforce_label(ns)
                for ns in namespaces
            }
            levels = filter_unchanged_namespaces(levels, current)
        return levels


def cmd_inspect_cluster(
    args: argparse.Namespace,
    settings: CheckerConfiguration,
    out: TextIO | None = None,
) -> int:
    """
    Run inspect-cluster.

    Returns:
        Exit code (0 for success)
    """
    levels = ClusterOptions(args, settings).run()
    write_levels(levels, out)
    return 0
