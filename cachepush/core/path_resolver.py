"""Path resolution — where a local artifact lives in the cache repository.

Repository layout::

    nar/<hash>.nar            archives
    <hash>.narinfo            store path metadata + signatures
    logs/<hash>.log           build logs
    manifests/<variant>.json  per-variant latest build
    index.txt                 path index
    nix-cache-info            cache metadata

Resolution is pure: it looks only at the path string and the configured
prefix, never at the filesystem, so retries always target the same path.
"""

from __future__ import annotations

from pathlib import PurePath

from cachepush.models.artifacts import ArtifactKind, ResolvedPath

ARCHIVE_NAMESPACE = "nar"
LOG_NAMESPACE = "logs"
MANIFEST_NAMESPACE = "manifests"

ROOT_FILES: frozenset[str] = frozenset({"nix-cache-info", "index.txt"})

# suffix -> (kind, namespace or None for the root)
_SUFFIX_RULES: dict[str, tuple[ArtifactKind, str | None]] = {
    ".nar": (ArtifactKind.ARCHIVE, ARCHIVE_NAMESPACE),
    ".narinfo": (ArtifactKind.METADATA, None),
    ".log": (ArtifactKind.LOG, LOG_NAMESPACE),
}


class PathResolver:
    """Maps local files to remote paths.

    Parameters
    ----------
    prefix:
        Explicit namespace override.  When set, every file resolves to
        ``prefix/basename`` regardless of its type.
    """

    def __init__(self, prefix: str | None = None) -> None:
        self._prefix = (prefix or "").strip("/")

    @property
    def prefix(self) -> str:
        return self._prefix

    def resolve(self, path: str | PurePath) -> str:
        """Return the remote path for a local file."""
        return self.describe(path).remote_path

    def describe(self, path: str | PurePath) -> ResolvedPath:
        """Return the remote path, artifact kind and content key."""
        local = PurePath(path)
        name = local.name
        kind = self._kind_of(local)
        content_key = name.split(".", 1)[0] if "." in name else name

        if self._prefix:
            return ResolvedPath(
                remote_path=f"{self._prefix}/{name}",
                kind=kind,
                content_key=content_key,
            )

        namespace: str | None = None
        if local.suffix in _SUFFIX_RULES:
            namespace = _SUFFIX_RULES[local.suffix][1]
        elif kind == ArtifactKind.MANIFEST:
            namespace = MANIFEST_NAMESPACE

        remote = f"{namespace}/{name}" if namespace else name
        return ResolvedPath(remote_path=remote, kind=kind, content_key=content_key)

    @staticmethod
    def _kind_of(local: PurePath) -> ArtifactKind:
        if local.suffix in _SUFFIX_RULES:
            return _SUFFIX_RULES[local.suffix][0]
        if local.suffix == ".json" and MANIFEST_NAMESPACE in local.parent.parts:
            return ArtifactKind.MANIFEST
        if local.name in ROOT_FILES:
            return ArtifactKind.INDEX
        return ArtifactKind.OTHER
