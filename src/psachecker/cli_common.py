"""
Helpers shared by the psachecker subcommands.
"""

from __future__ import annotations

import argparse
import os
import sys
from typing import Mapping, TextIO

from psachecker.admission import EvaluationContext, OrderedLevelMap
from psachecker.config import CheckerConfiguration, load_config_from_env
from psachecker.errors import SetupError
from psachecker.levels import SecurityLevel
from psachecker.observability.logging import level_for_verbosity


def connection_parent() -> argparse.ArgumentParser:
    """Parent parser with the flags every subcommand accepts."""
    parent = argparse.ArgumentParser(add_help=False)
    group = parent.add_argument_group("cluster connection")
    group.add_argument(
        "--kubeconfig",
        help="Path to kubeconfig file (default: $KUBECONFIG or ~/.kube/config)",
    )
    group.add_argument(
        "--context",
        help="Kubernetes context to use (default: current context)",
    )
    group.add_argument(
        "-n",
        "--namespace",
        default="",
        help="Namespace to inspect (default: the context's namespace)",
    )
    group.add_argument(
        "--in-cluster",
        action="store_true",
        help="Use in-cluster service account configuration",
    )

    run_group = parent.add_argument_group("evaluation")
    run_group.add_argument(
        "--timeout",
        type=float,
        help="Abort the evaluation after this many seconds (default: no limit)",
    )
    run_group.add_argument(
        "--updates-only",
        action="store_true",
        help="Only report namespaces whose enforce label would change",
    )
    run_group.add_argument(
        "--policy-version",
        help="Pod Security policy version, latest or v1.N (default: latest)",
    )
    run_group.add_argument(
        "--workers",
        type=int,
        help="Resources evaluated concurrently (default: 1)",
    )
    return parent


def resolve_settings(
    args: argparse.Namespace,
    environ: Mapping[str, str] | None = None,
) -> CheckerConfiguration:
    """
    Merge configuration file, environment and flags.

    Raises:
        SetupError: If any setting is invalid
    """
    env = dict(os.environ if environ is None else environ)
    if getattr(args, "config", None):
        env["PSACHECKER_CONFIG_FILE"] = args.config
    settings = load_config_from_env(env)

    if getattr(args, "policy_version", None):
        settings.policy_version = args.policy_version
    if getattr(args, "timeout", None) is not None:
        settings.timeout_seconds = args.timeout
    if getattr(args, "workers", None) is not None:
        settings.resource_workers = args.workers
    if getattr(args, "kubeconfig", None):
        settings.kubeconfig = args.kubeconfig
    if getattr(args, "context", None):
        settings.context = args.context
    if getattr(args, "in_cluster", False):
        settings.in_cluster = True
    if getattr(args, "log_format", None):
        settings.log_format = args.log_format
    if getattr(args, "verbose", 0):
        settings.log_level = level_for_verbosity(args.verbose, settings.log_level)

    settings.validate()
    return settings


def evaluation_context(settings: CheckerConfiguration) -> EvaluationContext:
    return EvaluationContext(timeout=settings.timeout_seconds or None)


# Cluster-scoped resources reduce under the empty namespace.
CLUSTER_SCOPE_LABEL = "(cluster)"


def write_levels(levels: Mapping[str, SecurityLevel], out: TextIO | None = None) -> None:
    """Print ``namespace: level`` lines sorted by namespace."""
    out = out or sys.stdout
    for namespace, level in OrderedLevelMap(levels).items():
        out.write(f"{namespace or CLUSTER_SCOPE_LABEL}: {level.value}\n")


def require(condition: bool, message: str) -> None:
    """Raise SetupError with ``message`` unless ``condition`` holds."""
    if not condition:
        raise SetupError(message)
