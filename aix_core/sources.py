"""
Source reference parsing for aix.

Turns the reference strings and objects found in ai.json (local paths, git
shorthands and URLs, npm packages, semver ranges) into ``SourceRef`` values,
and provides the URL helpers shared by the loaders.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from .exceptions import SourceResolutionError, UnsupportedUrlError

LOCAL_FILE_EXTENSIONS = re.compile(r'\.(md|txt|json|ya?ml)$', re.IGNORECASE)
GIT_SHORTHAND_PREFIX = re.compile(r'^(github|gitlab|bitbucket):')
GIT_SHORTHAND = re.compile(r'^(github|gitlab|bitbucket):([^#]+)(?:#(.+))?$')

GITHUB_REPO_URL = re.compile(r'^https://github\.com/([^/]+)/([^/]+?)(?:\.git)?/?$')
GITHUB_BLOB_URL = re.compile(r'^https://github\.com/([^/]+)/([^/]+)/blob/([^/]+)/(.+)$')
GITHUB_TREE_URL = re.compile(r'^https://github\.com/([^/]+)/([^/]+)/tree/([^/]+)/(.+)$')
GITLAB_BLOB_URL = re.compile(r'^https://gitlab\.com/([^/]+)/([^/]+)/-/blob/([^/]+)/(.+)$')
GITLAB_TREE_URL = re.compile(r'^https://gitlab\.com/([^/]+)/([^/]+)/-/tree/([^/]+)/(.+)$')
BITBUCKET_BLOB_URL = re.compile(r'^https://bitbucket\.org/([^/]+)/([^/]+)/src/([^/]+)/(.+)$')

_VERSION = r'v?\d+(?:\.(?:\d+|x|\*)){0,2}(?:-[0-9A-Za-z.-]+)?'
_COMPARATOR = r'(?:[\^~]|[<>]=?|=)?\s*' + _VERSION
SEMVER_RANGE = re.compile(
    r'^(?:\*|x|latest|' + _COMPARATOR + r'(?:\s*(?:\|\||-)?\s*' + _COMPARATOR + r')*)$'
)

PROVIDER_HOSTS = {
    'github': 'github.com',
    'gitlab': 'gitlab.com',
    'bitbucket': 'bitbucket.org',
}

# Source type names returned by detect_source_type()
LOCAL = 'local'
GIT_SHORTHAND_TYPE = 'git-shorthand'
HTTPS_FILE = 'https-file'
HTTPS_REPO = 'https-repo'
HTTP_UNSUPPORTED = 'http-unsupported'
NPM = 'npm'


def is_local_path(value: str) -> bool:
    """Check whether a string refers to a local file or directory.

    Scoped package paths such as ``@acme/rules/style.md`` are npm references.
    Other implicit paths (``prompts/review.md``) count as local.
    """
    if value.startswith(('./', '../', '/', 'file:')):
        return True
    if '://' in value or GIT_SHORTHAND_PREFIX.match(value) or value.startswith('@'):
        return False
    return bool(LOCAL_FILE_EXTENSIONS.search(value))


def is_implicit_local_path(value: str) -> bool:
    """Check for a local path written without ``./``, ``/`` or ``file:``."""
    return is_local_path(value) and not value.startswith(('./', '../', '/', 'file:'))


def is_semver_range(value: str) -> bool:
    """Check whether a string is a version range such as ``^1.2.0``."""
    return bool(SEMVER_RANGE.match(value.strip()))


def is_https_file_url(url: str) -> bool:
    """Check if an HTTPS URL points at a single file rather than a repository."""
    if GITHUB_BLOB_URL.match(url) or GITLAB_BLOB_URL.match(url) or BITBUCKET_BLOB_URL.match(url):
        return True
    return url.endswith('.json')


def detect_source_type(source: str) -> str:
    """Detect what kind of source a string represents. First match wins."""
    if GIT_SHORTHAND_PREFIX.match(source):
        return GIT_SHORTHAND_TYPE
    if source.startswith('https://'):
        return HTTPS_FILE if is_https_file_url(source) else HTTPS_REPO
    if source.startswith('http://'):
        return HTTP_UNSUPPORTED
    if is_local_path(source):
        return LOCAL
    return NPM


def build_provider_url(provider: str, user: str, repo: str) -> str:
    """Build the HTTPS clone URL for a provider repository."""
    return f"https://{PROVIDER_HOSTS[provider]}/{user}/{repo}"


def parse_git_shorthand(value: str) -> Optional[Dict[str, Optional[str]]]:
    """Parse ``github:user/repo[/subpath][#ref[:path]]``.

    Returns:
        Dict with provider, user, repo, subpath, ref and url keys, or None
        when the value is not a shorthand.
    """
    match = GIT_SHORTHAND.match(value)
    if not match:
        return None

    provider, repo_path, fragment = match.groups()
    parts = [p for p in repo_path.split('/') if p]
    if len(parts) < 2:
        return None

    user, repo = parts[0], parts[1]
    subpath = '/'.join(parts[2:]) or None
    ref = fragment

    # "#ref:path" selects a path inside the repository
    if fragment and ':' in fragment:
        ref, fragment_path = fragment.split(':', 1)
        subpath = fragment_path or subpath
        ref = ref or None

    return {
        'provider': provider,
        'user': user,
        'repo': repo,
        'subpath': subpath,
        'ref': ref,
        'url': build_provider_url(provider, user, repo),
    }


def parse_blob_url(url: str) -> Optional[Dict[str, str]]:
    """Parse a GitHub/GitLab/Bitbucket file URL into repo url, ref and path."""
    for pattern, host, marker in (
        (GITHUB_BLOB_URL, 'github.com', None),
        (GITLAB_BLOB_URL, 'gitlab.com', None),
        (BITBUCKET_BLOB_URL, 'bitbucket.org', None),
        (GITHUB_TREE_URL, 'github.com', 'tree'),
        (GITLAB_TREE_URL, 'gitlab.com', 'tree'),
    ):
        match = pattern.match(url)
        if match:
            owner, repo, ref, path = match.groups()
            return {
                'url': f"https://{host}/{owner}/{repo}",
                'ref': ref,
                'path': path,
                'kind': marker or 'blob',
            }
    return None


def convert_blob_to_raw_url(url: str) -> str:
    """Convert a provider blob URL into its raw-content URL."""
    match = GITHUB_BLOB_URL.match(url)
    if match:
        owner, repo, ref, path = match.groups()
        return f"https://raw.githubusercontent.com/{owner}/{repo}/{ref}/{path}"

    match = GITLAB_BLOB_URL.match(url)
    if match:
        group, project, ref, path = match.groups()
        return f"https://gitlab.com/{group}/{project}/-/raw/{ref}/{path}"

    match = BITBUCKET_BLOB_URL.match(url)
    if match:
        workspace, repo, ref, path = match.groups()
        return f"https://bitbucket.org/{workspace}/{repo}/raw/{ref}/{path}"

    return url


def parse_npm_subpath(value: str) -> Optional[Dict[str, str]]:
    """Split ``@scope/pkg/file.md`` or ``pkg/dir/file.md`` into package and path.

    Only strings ending in a file extension qualify, to keep plain package
    names apart from package subpaths.
    """
    if not re.search(r'\.[a-z0-9]+$', value, re.IGNORECASE) or ':' in value:
        return None

    parts = value.split('/')
    if value.startswith('@'):
        if len(parts) < 3:
            return None
        return {'npm': f"{parts[0]}/{parts[1]}", 'path': '/'.join(parts[2:])}

    if len(parts) < 2:
        return None
    return {'npm': parts[0], 'path': '/'.join(parts[1:])}


def normalize_source_ref(value: Union[str, Dict[str, Any]]) -> Dict[str, Any]:
    """Expand a string shorthand into its object form.

    Local paths become ``{path}``, npm subpaths ``{npm: {npm, path}}`` and
    everything else ``{git: {url}}``. Objects are returned unchanged.
    """
    if not isinstance(value, str):
        return value

    if is_local_path(value):
        return {'path': value[5:] if value.startswith('file:') else value}

    npm_parsed = parse_npm_subpath(value)
    if npm_parsed:
        return {'npm': npm_parsed}

    return {'git': {'url': value}}


@dataclass(frozen=True)
class SourceRef:
    """A parsed reference to content: local path, git repository or npm package."""

    LOCAL = 'local'
    GIT = 'git'
    NPM = 'npm'

    kind: str
    path: Optional[str] = None
    url: Optional[str] = None
    ref: Optional[str] = None
    package: Optional[str] = None
    version: Optional[str] = None
    registry: Optional[str] = None

    @property
    def identity(self) -> str:
        """Stable string identity of the reference."""
        if self.kind == self.LOCAL:
            return f"local:{self.path}"
        if self.kind == self.GIT:
            return f"git:{self.url}#{self.ref or 'HEAD'}:{self.path or ''}"
        version = f"@{self.version}" if self.version else ''
        subpath = f"/{self.path}" if self.path else ''
        return f"npm:{self.package}{version}{subpath}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary, omitting empty fields."""
        data = {
            'kind': self.kind,
            'path': self.path,
            'url': self.url,
            'ref': self.ref,
            'package': self.package,
            'version': self.version,
            'registry': self.registry,
        }
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def _git(cls, url: str, ref: Optional[str] = None, path: Optional[str] = None) -> 'SourceRef':
        shorthand = parse_git_shorthand(url)
        if shorthand:
            return cls(kind=cls.GIT, url=shorthand['url'], ref=ref or shorthand['ref'],
                       path=path or shorthand['subpath'])

        blob = parse_blob_url(url)
        if blob:
            return cls(kind=cls.GIT, url=blob['url'], ref=ref or blob['ref'], path=path or blob['path'])

        if url.startswith('http://'):
            raise UnsupportedUrlError(url)
        return cls(kind=cls.GIT, url=url, ref=ref, path=path)

    @classmethod
    def from_string(cls, value: str, default_package: Optional[str] = None) -> 'SourceRef':
        """Parse a reference string.

        Args:
            value: Reference string (path, git shorthand, URL, npm name or semver range)
            default_package: Package name used when the string is a bare version range

        Returns:
            Parsed SourceRef
        """
        value = value.strip()
        if not value:
            raise SourceResolutionError("Empty source reference")

        if is_local_path(value):
            return cls(kind=cls.LOCAL, path=value[5:] if value.startswith('file:') else value)

        if GIT_SHORTHAND_PREFIX.match(value):
            if not parse_git_shorthand(value):
                raise SourceResolutionError(f"Invalid git shorthand: {value}. Expected provider:user/repo")
            return cls._git(value)

        if value.startswith('https://') or value.startswith('git@') or value.startswith('git://'):
            return cls._git(value)

        if value.startswith('http://'):
            raise UnsupportedUrlError(value)

        if is_semver_range(value):
            if not default_package:
                raise SourceResolutionError(
                    f"Version range \"{value}\" needs a package name to resolve against"
                )
            return cls(kind=cls.NPM, package=default_package, version=value)

        npm_parsed = parse_npm_subpath(value)
        if npm_parsed:
            return cls(kind=cls.NPM, package=npm_parsed['npm'], path=npm_parsed['path'])

        return cls(kind=cls.NPM, package=value)

    @classmethod
    def from_value(cls, value: Union[str, Dict[str, Any]],
                   default_package: Optional[str] = None) -> 'SourceRef':
        """Parse a reference in string shorthand or object form."""
        if isinstance(value, str):
            return cls.from_string(value, default_package)

        if not isinstance(value, dict):
            raise SourceResolutionError(f"Invalid source reference: {value!r}")

        if 'source' in value:
            return cls.from_value(value['source'], default_package)

        git = value.get('git')
        if git is not None:
            if isinstance(git, dict):
                return cls._git(git['url'], git.get('ref'), git.get('path'))
            return cls._git(str(git), value.get('ref'), value.get('path'))

        npm = value.get('npm')
        if npm is not None:
            if isinstance(npm, dict):
                return cls(kind=cls.NPM, package=npm['npm'], path=npm.get('path'),
                           version=npm.get('version'))
            return cls(kind=cls.NPM, package=str(npm), path=value.get('path'),
                       version=value.get('version'))

        if 'path' in value:
            return cls(kind=cls.LOCAL, path=value['path'])

        if 'version' in value:
            if not default_package:
                raise SourceResolutionError("Registry reference needs a package name")
            return cls(kind=cls.NPM, package=default_package, version=value['version'],
                       registry=value.get('registry'))

        raise SourceResolutionError("Cannot determine reference type: expected path, git, npm or version")
