"""
Reference resolution for aix.

Resolves a ``SourceRef`` to a location on disk. Local references are used in
place, npm references come from ``node_modules`` or the persistent npm cache,
and git references are downloaded into an ephemeral slot that is removed by
``cleanup()``.
"""

from contextlib import ExitStack
from dataclasses import replace
from pathlib import Path
from typing import Callable, Optional, Tuple

from .config import AixPaths
from .exceptions import AixError, SourceResolutionError
from .git import git_download
from .npm import find_package_root, resolve_npm_path
from .sources import SourceRef, is_implicit_local_path, parse_npm_subpath


class ResolvedReference:
    """A materialized reference and the cleanup that releases it."""

    def __init__(self, source: SourceRef, location: Path, cleanup: Optional[Callable[[], None]] = None):
        self.source = source
        self.location = location
        self._cleanup = cleanup

    def cleanup(self):
        """Release the materialized content. Safe to call more than once."""
        if self._cleanup is not None:
            cleanup, self._cleanup = self._cleanup, None
            cleanup()

    def __enter__(self) -> 'ResolvedReference':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.cleanup()
        return False


class ReferenceResolver:
    """Resolve source references relative to a project."""

    def __init__(self, project_root: Path):
        self.project_root = Path(project_root).resolve()
        self.paths = AixPaths(self.project_root)

    def _check_type(self, location: Path, expect: Optional[str], source: SourceRef):
        """Validate that location exists and has the expected type."""
        if not location.exists():
            raise SourceResolutionError(f"Path not found: {location} (from {source.identity})")
        if expect == 'dir' and not location.is_dir():
            raise SourceResolutionError(f"Expected a directory at {location}")
        if expect == 'file' and not location.is_file():
            raise SourceResolutionError(f"Expected a file at {location}")

    def _resolve_local(self, source: SourceRef, base_dir: Path, expect: Optional[str]) -> ResolvedReference:
        location = Path(source.path).expanduser()
        if not location.is_absolute():
            location = (Path(base_dir) / location).resolve()
        if not location.exists():
            package_ref = self._installed_package_ref(source.path)
            if package_ref is not None:
                return self._resolve_npm(package_ref, expect)
        self._check_type(location, expect, source)
        return ResolvedReference(source, location)

    def _installed_package_ref(self, path: str) -> Optional[SourceRef]:
        """Read ``pkg/dir/file.md`` as a package subpath when that package is installed."""
        if not is_implicit_local_path(path):
            return None
        parsed = parse_npm_subpath(path)
        if parsed is None or find_package_root(parsed['npm'], self.project_root) is None:
            return None
        return SourceRef(kind=SourceRef.NPM, package=parsed['npm'], path=parsed['path'])

    def _resolve_git(self, source: SourceRef, expect: Optional[str]) -> ResolvedReference:
        stack = ExitStack()
        try:
            checkout = stack.enter_context(
                git_download(source.url, source.ref, self.paths.git_downloads_dir)
            )
            location = checkout / source.path if source.path else checkout
            self._check_type(location, expect, source)
        except BaseException:
            stack.close()
            raise
        return ResolvedReference(source, location, stack.close)

    def _resolve_npm(self, source: SourceRef, expect: Optional[str]) -> ResolvedReference:
        location = resolve_npm_path(
            source.package,
            self.project_root,
            subpath=source.path,
            version=source.version,
            registry=source.registry,
        )
        self._check_type(location, expect, source)
        return ResolvedReference(source, location)

    def resolve(self, source: SourceRef, base_dir: Optional[Path] = None,
                expect: Optional[str] = None) -> ResolvedReference:
        """Resolve a reference to a location on disk.

        Args:
            source: Reference to resolve
            base_dir: Directory relative local paths are resolved against
            expect: 'dir', 'file' or None to accept either

        Returns:
            ResolvedReference; callers must call cleanup() (or use ``with``)
        """
        base_dir = Path(base_dir) if base_dir else self.project_root
        try:
            if source.kind == SourceRef.LOCAL:
                return self._resolve_local(source, base_dir, expect)
            if source.kind == SourceRef.GIT:
                return self._resolve_git(source, expect)
            if source.kind == SourceRef.NPM:
                return self._resolve_npm(source, expect)
        except AixError:
            raise
        except OSError as e:
            raise SourceResolutionError(f"Failed to resolve {source.identity}: {e}") from e

        raise SourceResolutionError(f"Unknown reference kind: {source.kind}")

    def read_file(self, source: SourceRef, base_dir: Optional[Path] = None,
                  default_file: Optional[str] = None) -> Tuple[str, str]:
        """Read a single file reference.

        Git references without a path read ``default_file`` from the
        repository root.

        Returns:
            Tuple of (stripped content, source path)
        """
        if source.kind == SourceRef.GIT and not source.path and default_file:
            source = replace(source, path=default_file)

        with self.resolve(source, base_dir, expect='file') as resolved:
            try:
                content = resolved.location.read_text(encoding='utf-8')
            except OSError as e:
                raise SourceResolutionError(f"Failed to read {resolved.location}: {e}") from e
            if source.kind == SourceRef.GIT:
                source_path = f"{source.url}#{source.ref or 'HEAD'}:{source.path}"
            else:
                source_path = str(resolved.location)
        return content.strip(), source_path
