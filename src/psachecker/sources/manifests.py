"""
Local manifest source.

Reads YAML or JSON manifests from files and directories (``-`` for stdin)
and resolves every document against a ResourceScheme.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, Iterable, TextIO

import yaml

from psachecker.errors import SourceError
from psachecker.sources.resource import ResourceInfo
from psachecker.sources.scheme import ResourceScheme

logger = logging.getLogger(__name__)

MANIFEST_PATTERNS = ("*.yaml", "*.yml", "*.json")
STDIN_PATH = "-"


class ManifestSource:
    """
    Resources read from local manifest files.

    Example:
        source = ManifestSource(["deploy/"], default_scheme(), recursive=True)
        for info in source.infos():
            print(info)
    """

    def __init__(
        self,
        filenames: Iterable[str],
        scheme: ResourceScheme,
        recursive: bool = False,
        stdin: TextIO | None = None,
    ):
        """
        Initialize the source.

        Args:
            filenames: Files or directories; ``-`` reads stdin
            scheme: Resource types to accept
            recursive: Descend into subdirectories
            stdin: Stream used for ``-`` (default: sys.stdin)
        """
        self._filenames = list(filenames)
        self._scheme = scheme
        self._recursive = recursive
        self._stdin = stdin

    def files(self) -> list[str]:
        """
        Expand the configured paths into manifest files.

        Raises:
            SourceError: If a path does not exist
        """
        files: list[str] = []
        for filename in self._filenames:
            if filename == STDIN_PATH:
                files.append(filename)
                continue

            path = Path(filename)
            if path.is_file():
                files.append(str(path))
            elif path.is_dir():
                found: set[Path] = set()
                for pattern in MANIFEST_PATTERNS:
                    found.update(path.rglob(pattern) if self._recursive else path.glob(pattern))
                files.extend(str(p) for p in sorted(found) if p.is_file())
            else:
                raise SourceError(f'the path "{filename}" does not exist', resource=filename)
        return files

    def infos(self) -> list[ResourceInfo]:
        """
        Read and resolve every object in the configured files.

        Raises:
            SourceError: If a file cannot be read or parsed, or an object cannot be resolved
        """
        infos: list[ResourceInfo] = []
        for filename in self.files():
            for document in self._load(filename):
                infos.extend(self._resolve(filename, document))
        logger.debug(f"Read {len(infos)} objects from {len(self._filenames)} paths")
        return infos

    def _load(self, filename: str) -> list[Any]:
        try:
            if filename == STDIN_PATH:
                content = (self._stdin or sys.stdin).read()
            else:
                with open(filename, encoding="utf-8") as f:
                    content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise SourceError(f"error reading {filename}: {e}", resource=filename) from e

        try:
            return [doc for doc in yaml.safe_load_all(content) if doc is not None]
        except yaml.YAMLError as e:
            raise SourceError(f"error parsing {filename}: {e}", resource=filename) from e

    def _resolve(self, filename: str, document: Any) -> list[ResourceInfo]:
        if not isinstance(document, dict):
            raise SourceError(f"error parsing {filename}: object is not a mapping", resource=filename)

        kind = document.get("kind")
        api_version = document.get("apiVersion")
        if not kind or not api_version:
            raise SourceError(
                f"error validating {filename}: apiVersion and kind must be set",
                resource=filename,
            )

        if kind.endswith("List") and isinstance(document.get("items"), list):
            infos = []
            for item in document["items"]:
                infos.extend(self._resolve(filename, item))
            return infos

        resource_type = self._scheme.for_kind(api_version, kind)
        if resource_type is None:
            raise SourceError(
                f'{filename}: no matches for kind "{kind}" in version "{api_version}"',
                resource=filename,
            )

        metadata = document.get("metadata") or {}
        name = metadata.get("name")
        if not name:
            raise SourceError(f"{filename}: {kind} has no metadata.name", resource=filename)

        return [
            ResourceInfo(
                kind=kind,
                namespace=metadata.get("namespace") or "",
                name=name,
                obj=document,
                resource=resource_type.plural,
                namespaced=resource_type.namespaced,
                source=filename,
            )
        ]
