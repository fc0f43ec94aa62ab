"""
Extends resolution for aix.

Walks the ``extends`` chain of a descriptor depth-first and merges each
ancestor, fully resolved, before the descriptor itself. Ancestors are
processed strictly in declaration order.
"""

import copy
import posixpath
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

from .config import AixConfig, AixPaths
from .exceptions import (
    CircularDependencyError, ConfigNotFoundError, ConfigParseError,
    SourceResolutionError,
)
from .merge import merge_configs
from .npm import find_package_root
from .remote import LoadedSource, fetch_text, open_source, url_base
from .sources import GIT_SHORTHAND_PREFIX, convert_blob_to_raw_url, is_local_path
from .utils import parse_jsonc, read_jsonc_file

PATH_SECTIONS = ('rules', 'prompts')


def _is_relative(value: str) -> bool:
    return value.startswith('./') or value.startswith('../')


def _is_git_ref(value: str) -> bool:
    return bool(GIT_SHORTHAND_PREFIX.match(value)) or value.startswith('https://')


def _rebase_path(path: str, loaded: LoadedSource) -> Any:
    """Rebase one relative path of an ancestor; returns a path, git reference or inline content."""
    if Path(path).is_absolute():
        return path
    if loaded.source == 'git':
        joined = posixpath.normpath(posixpath.join(loaded.git_subdir, path))
        if joined.startswith('..'):
            raise ConfigParseError(f"Path escapes the repository: {path}", loaded.path)
        git = {'url': loaded.git_url, 'path': joined}
        if loaded.git_ref:
            git['ref'] = loaded.git_ref
        return {'git': git}
    if loaded.source == 'url':
        return {'content': fetch_text(urljoin(loaded.base_url, path))}
    return str((loaded.base_dir / path).resolve())


def _skill_git(rebased: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a rebased git reference to the flat skill object form."""
    git = rebased['git']
    result = {'git': git['url'], 'path': git['path']}
    if 'ref' in git:
        result['ref'] = git['ref']
    return result


def _rebase_entry(value: Any, loaded: LoadedSource, skills: bool) -> Any:
    if isinstance(value, str):
        if not is_local_path(value) or (skills and not _is_relative(value)):
            return value
        local = value[5:] if value.startswith('file:') else value
        rebased = _rebase_path(local, loaded)
        if isinstance(rebased, dict) and skills:
            return _skill_git(rebased)
        return rebased

    if not isinstance(value, dict):
        return value

    if 'source' in value:
        return dict(value, source=_rebase_entry(value['source'], loaded, skills))

    if 'path' in value and 'git' not in value and 'npm' not in value:
        rebased = _rebase_path(value['path'], loaded)
        result = {k: v for k, v in value.items() if k != 'path'}
        if isinstance(rebased, dict):
            result.update(_skill_git(rebased) if skills else rebased)
        else:
            result['path'] = rebased
        return result

    return value


def rebase_relative_paths(config: Dict[str, Any], loaded: LoadedSource) -> Dict[str, Any]:
    """Make relative references of an ancestor independent of its location.

    Local ancestors get absolute paths. Ancestors read from a git checkout,
    including local files they extend inside it, get git references into the
    same repository, since the checkout is removed once the chain is resolved.
    Rule and prompt files next to a URL ancestor are fetched and inlined.
    """
    result = copy.deepcopy(config)
    sections = PATH_SECTIONS if loaded.source == 'url' else PATH_SECTIONS + ('skills',)
    for section in sections:
        entries = result.get(section)
        if not isinstance(entries, dict):
            continue
        for name, value in entries.items():
            if value is False:
                continue
            entries[name] = _rebase_entry(value, loaded, skills=(section == 'skills'))
    return result


def _check_cycle(identity: str, visited: List[str]):
    if identity in visited:
        raise CircularDependencyError(visited + [identity])


class ExtendsResolver:
    """Resolve ``extends`` chains into one merged descriptor."""

    def __init__(self, project_root: Path):
        self.project_root = Path(project_root).resolve()
        self.downloads_dir = AixPaths(self.project_root).git_downloads_dir

    def resolve(self, config: Dict[str, Any], base_dir: Optional[Path] = None,
                visited: Optional[List[str]] = None, base_url: Optional[str] = None,
                checkout: Optional[LoadedSource] = None) -> Dict[str, Any]:
        """Resolve the extends chain of a descriptor.

        Args:
            config: Descriptor that may contain ``extends``
            base_dir: Directory local ancestors are resolved against
            visited: Identities on the current chain, outermost first
            base_url: URL prefix when the descriptor itself was fetched remotely
            checkout: Enclosing git ancestor when base_dir lies inside its checkout

        Returns:
            Merged descriptor without ``extends``
        """
        visited = list(visited or [])
        base_dir = Path(base_dir) if base_dir else self.project_root

        extends = config.get('extends')
        if not extends:
            return {k: v for k, v in config.items() if k != 'extends'}

        extends_list = extends if isinstance(extends, list) else [extends]

        merged: Dict[str, Any] = {}
        for ref in extends_list:
            if not isinstance(ref, str):
                continue
            ancestor = self._resolve_ref(ref, base_dir, visited, base_url, checkout)
            merged = merge_configs(merged, ancestor)

        return merge_configs(merged, config)

    def _resolve_ref(self, ref: str, base_dir: Path, visited: List[str],
                     base_url: Optional[str], checkout: Optional[LoadedSource]) -> Dict[str, Any]:
        if base_url and _is_relative(ref):
            return self._resolve_url(urljoin(base_url, ref), visited)
        if is_local_path(ref):
            return self._resolve_local(ref, base_dir, visited, checkout)
        if _is_git_ref(ref):
            return self._resolve_remote(ref, visited)
        return self._resolve_npm(ref, visited)

    def _resolve_url(self, url: str, visited: List[str]) -> Dict[str, Any]:
        _check_cycle(url, visited)
        raw_url = convert_blob_to_raw_url(url)
        config = parse_jsonc(fetch_text(raw_url), url)
        loaded = LoadedSource(config, 'url', url, base_url=url_base(raw_url))
        resolved = self.resolve(config, visited=visited + [url], base_url=loaded.base_url)
        return rebase_relative_paths(resolved, loaded)

    def _resolve_local(self, ref: str, base_dir: Path, visited: List[str],
                       checkout: Optional[LoadedSource] = None) -> Dict[str, Any]:
        local = ref[5:] if ref.startswith('file:') else ref
        absolute = (base_dir / local).resolve()
        identity = str(absolute)
        _check_cycle(identity, visited)

        if not absolute.is_file():
            raise ConfigParseError(f"Extended config not found: {ref}", identity)

        config = read_jsonc_file(absolute)
        if checkout is not None:
            loaded = self._checkout_source(config, absolute, checkout, ref)
        else:
            loaded = LoadedSource(config, 'local', identity, base_dir=absolute.parent)
        resolved = self.resolve(config, absolute.parent, visited + [identity], checkout=checkout)
        return rebase_relative_paths(resolved, loaded)

    def _checkout_source(self, config: Dict[str, Any], absolute: Path, checkout: LoadedSource,
                         ref: str) -> LoadedSource:
        """Describe a file of a git checkout by its repository coordinates."""
        root = Path(checkout.git_root).resolve()
        try:
            relative = absolute.relative_to(root).as_posix()
        except ValueError as e:
            raise ConfigParseError(f"Path escapes the repository: {ref}", checkout.path) from e
        return LoadedSource(
            config, 'git', f"{checkout.git_url}#{checkout.git_ref or 'HEAD'}:{relative}",
            base_dir=absolute.parent,
            git_url=checkout.git_url,
            git_ref=checkout.git_ref,
            git_subdir=posixpath.dirname(relative),
            git_root=checkout.git_root,
        )

    def _resolve_remote(self, ref: str, visited: List[str]) -> Dict[str, Any]:
        _check_cycle(ref, visited)
        chain = visited + [ref]
        try:
            with open_source(ref, self.project_root, self.downloads_dir) as loaded:
                if loaded.is_remote:
                    resolved = self.resolve(loaded.config, visited=chain, base_url=loaded.base_url)
                else:
                    checkout = loaded if loaded.source == 'git' else None
                    resolved = self.resolve(loaded.config, loaded.base_dir, chain, checkout=checkout)
                return rebase_relative_paths(resolved, loaded)
        except ConfigNotFoundError as e:
            raise ConfigParseError(f"No ai.json found in git repository: {ref}", e.search_path or ref) from e
        except SourceResolutionError as e:
            raise ConfigParseError(str(e), ref) from e

    def _resolve_npm(self, package_name: str, visited: List[str]) -> Dict[str, Any]:
        _check_cycle(package_name, visited)

        package_root = find_package_root(package_name, self.project_root)
        config_path = package_root / AixConfig.CONFIG_FILE if package_root else None
        if config_path is None or not config_path.is_file():
            raise ConfigParseError(
                f"Failed to resolve npm package: {package_name}. Make sure it's installed.",
                package_name,
            )

        config = read_jsonc_file(config_path)
        loaded = LoadedSource(config, 'local', str(config_path), base_dir=config_path.parent)
        resolved = self.resolve(config, config_path.parent, visited + [package_name])
        return rebase_relative_paths(resolved, loaded)


def resolve_extends(config: Dict[str, Any], base_dir: Path, project_root: Optional[Path] = None,
                    visited: Optional[List[str]] = None) -> Dict[str, Any]:
    """Resolve the extends chain of a descriptor loaded from base_dir."""
    resolver = ExtendsResolver(project_root or base_dir)
    return resolver.resolve(config, base_dir, visited)
