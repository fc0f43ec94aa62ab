"""
Remote configuration loading for aix.

Loads an ai.json from a local path, a git shorthand, a provider blob URL or
any HTTPS URL. Git checkouts only live for the duration of the ``with`` block
returned by ``open_source()``.
"""

import posixpath
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

import httpx

from .config import AixConfig
from .exceptions import ConfigNotFoundError, RemoteFetchError, UnsupportedUrlError
from .git import git_download
from .sources import (
    GIT_SHORTHAND_TYPE, HTTP_UNSUPPORTED, HTTPS_FILE, HTTPS_REPO, LOCAL, NPM,
    convert_blob_to_raw_url, detect_source_type, parse_blob_url, parse_git_shorthand,
)
from .utils import parse_jsonc, read_jsonc_file

FETCH_TIMEOUT = 30.0


class LoadedSource:
    """A config document and the location its relative references resolve against.

    Attributes:
        config: Parsed descriptor
        source: 'local', 'url' or 'git'
        path: Human-readable origin of the document
        base_dir: Directory for local relative references (local and git)
        base_url: URL prefix for relative references (url only)
        git_url, git_ref, git_subdir: Repository coordinates when source is 'git'
        git_root: Checkout directory when source is 'git'
    """

    def __init__(self, config: Dict[str, Any], source: str, path: str,
                 base_dir: Optional[Path] = None, base_url: Optional[str] = None,
                 git_url: Optional[str] = None, git_ref: Optional[str] = None,
                 git_subdir: str = '', git_root: Optional[Path] = None):
        self.config = config
        self.source = source
        self.path = path
        self.base_dir = base_dir
        self.base_url = base_url
        self.git_url = git_url
        self.git_ref = git_ref
        self.git_subdir = git_subdir
        self.git_root = git_root

    @property
    def is_remote(self) -> bool:
        return self.source == 'url'


def fetch_text(url: str) -> str:
    """Fetch a document over HTTPS."""
    try:
        response = httpx.get(url, timeout=FETCH_TIMEOUT, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise RemoteFetchError(url, f"HTTP {e.response.status_code}") from e
    except httpx.RequestError as e:
        raise RemoteFetchError(url, str(e) or type(e).__name__) from e
    return response.text


def url_base(url: str) -> str:
    """Return the URL prefix up to and including its last ``/``."""
    return url[:url.rfind('/') + 1]


def _load_from_git(url: str, ref: Optional[str], file_path: str,
                   downloads_dir: Path) -> Iterator[LoadedSource]:
    with git_download(url, ref, downloads_dir) as checkout:
        target = checkout / file_path
        if not target.is_file():
            raise ConfigNotFoundError(f"{url}#{ref or 'HEAD'}:{file_path}")
        config = read_jsonc_file(target)
        subdir = posixpath.dirname(file_path)
        yield LoadedSource(
            config,
            source='git',
            path=f"{url}#{ref or 'HEAD'}:{file_path}",
            base_dir=target.parent,
            git_url=url,
            git_ref=ref,
            git_subdir=subdir,
            git_root=checkout,
        )


@contextmanager
def open_source(source: str, base_dir: Path, downloads_dir: Path) -> Iterator[LoadedSource]:
    """Load a config from any supported source.

    Args:
        source: Local path, git shorthand, or HTTPS URL
        base_dir: Directory local paths are resolved against
        downloads_dir: Parent directory for ephemeral git checkouts

    Yields:
        LoadedSource, valid until the ``with`` block exits
    """
    source_type = detect_source_type(source)

    if source_type in (HTTP_UNSUPPORTED, NPM):
        raise UnsupportedUrlError(source)

    if source_type == GIT_SHORTHAND_TYPE:
        parsed = parse_git_shorthand(source)
        if not parsed:
            raise UnsupportedUrlError(source)
        subpath = parsed['subpath'] or ''
        file_path = subpath if subpath.endswith('.json') else posixpath.join(subpath, AixConfig.CONFIG_FILE)
        yield from _load_from_git(parsed['url'], parsed['ref'], file_path, downloads_dir)
        return

    if source_type == HTTPS_REPO:
        tree = parse_blob_url(source)
        if tree:
            file_path = posixpath.join(tree['path'], AixConfig.CONFIG_FILE)
            yield from _load_from_git(tree['url'], tree['ref'], file_path, downloads_dir)
        else:
            yield from _load_from_git(source, None, AixConfig.CONFIG_FILE, downloads_dir)
        return

    if source_type == HTTPS_FILE:
        blob = parse_blob_url(source)
        if blob and blob['url'].startswith('https://github.com/'):
            yield from _load_from_git(blob['url'], blob['ref'], blob['path'], downloads_dir)
            return

        raw_url = convert_blob_to_raw_url(source)
        config = parse_jsonc(fetch_text(raw_url), raw_url)
        yield LoadedSource(config, source='url', path=raw_url, base_url=url_base(raw_url))
        return

    if source_type == LOCAL:
        local = source[5:] if source.startswith('file:') else source
        target = (Path(base_dir) / local).resolve()
        if target.is_dir():
            target = target / AixConfig.CONFIG_FILE
        if not target.is_file():
            raise ConfigNotFoundError(str(target))
        yield LoadedSource(read_jsonc_file(target), source='local', path=str(target),
                           base_dir=target.parent)
        return

    raise UnsupportedUrlError(source)
