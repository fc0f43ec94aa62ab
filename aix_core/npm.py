"""
Package-registry (npm) resolution for aix.

Without a version a package must already be installed in a ``node_modules``
tree of the project. With a version it is installed into the persistent
``.aix/.tmp/node_modules`` cache, which only ``aix cache clear`` removes.
"""

import json
import re
import subprocess
from pathlib import Path
from typing import List, Optional, Tuple

from .config import AixPaths
from .exceptions import SourceResolutionError


def run_npm_command(args: List[str], cwd: Optional[Path] = None) -> Tuple[int, str, str]:
    """Run an npm command and return (returncode, stdout, stderr)."""
    try:
        result = subprocess.run(
            ['npm'] + args,
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=300
        )
        return result.returncode, result.stdout.strip(), result.stderr.strip()
    except subprocess.TimeoutExpired:
        return 1, "", "npm command timed out"
    except FileNotFoundError:
        return 1, "", "npm not found. Please install Node.js."


def find_package_root(package_name: str, project_root: Path) -> Optional[Path]:
    """Find an installed package by walking up node_modules directories."""
    current = Path(project_root).resolve()
    for directory in [current] + list(current.parents):
        candidate = directory / 'node_modules' / package_name
        if (candidate / 'package.json').is_file():
            return candidate
    return None


def installed_version(package_root: Path) -> Optional[str]:
    """Read the version of an installed package, if any."""
    try:
        with open(package_root / 'package.json', encoding='utf-8') as f:
            return json.load(f).get('version')
    except (OSError, json.JSONDecodeError):
        return None


COMPARATOR_PATTERN = re.compile(r'([<>]=?|=|\^|~)?\s*v?([\dxX*][\w.*+-]*)')

Version = Tuple[int, int, int]


def _parse_version(text: str) -> Tuple[Version, int]:
    """Parse a possibly partial version; returns the padded version and how many parts were given."""
    parts: List[int] = []
    for piece in re.split(r'[-+]', text, maxsplit=1)[0].split('.')[:3]:
        if not piece.isdigit():
            break
        parts.append(int(piece))
    given = len(parts)
    return tuple(parts + [0] * (3 - given)), given


def _bump(version: Version, index: int) -> Version:
    bumped = list(version[:index + 1])
    bumped[index] += 1
    return tuple(bumped + [0] * (2 - index))


def _comparator_holds(actual: Version, operator: str, text: str) -> bool:
    target, given = _parse_version(text)
    if given == 0:
        return True

    if operator == '^':
        nonzero = next((i for i, part in enumerate(target[:given]) if part), given - 1)
        return target <= actual < _bump(target, nonzero)
    if operator == '~':
        return target <= actual < _bump(target, 0 if given == 1 else 1)
    if operator == '>':
        return actual > target if given == 3 else actual >= _bump(target, given - 1)
    if operator == '>=':
        return actual >= target
    if operator == '<':
        return actual < target
    if operator == '<=':
        return actual <= target if given == 3 else actual < _bump(target, given - 1)
    if given == 3:
        return actual == target
    return target <= actual < _bump(target, given - 1)


def version_satisfies(version: str, spec: str) -> bool:
    """Check an installed version against an npm version or range.

    Supports exact versions, partial versions and ``x`` wildcards,
    ``^``/``~`` ranges, comparators, hyphen ranges and ``||`` alternatives.
    Dist-tags such as ``latest`` never match, so they are always reinstalled.
    """
    spec = spec.strip()
    if spec in ('', '*', 'x', 'X'):
        return True

    actual, given = _parse_version(version)
    if given < 3:
        return False

    for alternative in spec.split('||'):
        alternative = alternative.strip()
        hyphen = re.fullmatch(r'(\S+)\s+-\s+(\S+)', alternative)
        if hyphen:
            alternative = f">={hyphen.group(1)} <={hyphen.group(2)}"
        comparators = COMPARATOR_PATTERN.findall(alternative)
        if not comparators or COMPARATOR_PATTERN.sub('', alternative).strip():
            continue
        if all(_comparator_holds(actual, op or '=', text) for op, text in comparators):
            return True
    return False


def install_package(package_name: str, version: str, project_root: Path,
                    registry: Optional[str] = None) -> Path:
    """Install ``package@version`` into the project's npm cache.

    A cached version that satisfies the requested range is not reinstalled.

    Returns:
        Root directory of the installed package
    """
    paths = AixPaths(project_root)
    cached_root = paths.npm_cache_dir / package_name

    cached = installed_version(cached_root)
    if cached and version_satisfies(cached, version):
        return cached_root

    paths.tmp_dir.mkdir(parents=True, exist_ok=True)
    args = ['install', '--prefix', str(paths.tmp_dir), '--no-save', '--no-package-lock',
            '--ignore-scripts', f"{package_name}@{version}"]
    if registry:
        args += ['--registry', registry]

    code, _, stderr = run_npm_command(args, cwd=paths.tmp_dir)
    if code != 0:
        raise SourceResolutionError(f"Failed to install {package_name}@{version}: {stderr}")

    if not cached_root.exists():
        raise SourceResolutionError(f"Package {package_name}@{version} was not installed to {cached_root}")
    return cached_root


def resolve_npm_path(package_name: str, project_root: Path, subpath: Optional[str] = None,
                     version: Optional[str] = None, registry: Optional[str] = None) -> Path:
    """Resolve a path within an npm package.

    Args:
        package_name: Package name, optionally scoped
        project_root: Project root used for lookup and caching
        subpath: Optional path inside the package
        version: Version or range; when present the package is auto-installed
        registry: Optional custom registry URL

    Returns:
        Absolute filesystem path
    """
    if version:
        package_root = install_package(package_name, version, project_root, registry)
    else:
        package_root = find_package_root(package_name, project_root)
        if package_root is None:
            raise SourceResolutionError(
                f'Package "{package_name}" not found in node_modules. '
                'Either install it via npm/yarn/pnpm, or add a "version" field to auto-install.'
            )

    return package_root / subpath if subpath else package_root
