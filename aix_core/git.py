"""
Git downloads for aix.

Every git download is ephemeral: it is force-replaced into a deterministic
slot under ``.aix/.tmp/cache/git-downloads/`` and removed once the consuming
operation finishes, whether it succeeded or raised.
"""

import re
import shutil
import subprocess
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from .exceptions import SourceResolutionError
from .sources import GIT_SHORTHAND, PROVIDER_HOSTS
from .utils import base64url

COMMIT_SHA = re.compile(r'^[0-9a-f]{7,40}$')

# Download slots currently in use, keyed by target directory
_slots: Dict[str, Dict] = {}
_slots_lock = threading.Lock()


def run_git_command(args: List[str], cwd: Optional[Path] = None, timeout: int = 120) -> Tuple[int, str, str]:
    """Run a git command and return (returncode, stdout, stderr)."""
    try:
        result = subprocess.run(
            ['git'] + args,
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout
        )
        return result.returncode, result.stdout.strip(), result.stderr.strip()
    except subprocess.TimeoutExpired:
        return 1, "", "Git command timed out"
    except FileNotFoundError:
        return 1, "", "Git not found. Please install git."


def build_template(url: str, ref: Optional[str] = None) -> str:
    """Build the template string identifying a download.

    Provider URLs collapse to ``provider:user/repo#ref`` so that the same
    logical reference always maps to the same download slot.
    """
    for provider, host in PROVIDER_HOSTS.items():
        prefix = f"https://{host}/"
        if url.startswith(prefix):
            repo_path = url[len(prefix):].rstrip('/')
            if repo_path.endswith('.git'):
                repo_path = repo_path[:-4]
            template = f"{provider}:{repo_path}"
            return f"{template}#{ref}" if ref else template
    return f"{url}#{ref}" if ref else url


def create_download_key(template: str) -> str:
    """Create a unique directory name for a download template.

    ``github:org/repo#main`` becomes ``org-repo-main-<hash>``; any other
    template becomes the first 32 characters of its base64url encoding.
    """
    match = GIT_SHORTHAND.match(template)
    if match:
        repo_path, ref = match.group(2), match.group(3) or 'HEAD'
        safe_path = repo_path.replace('/', '-')
        return f"{safe_path}-{ref}-{base64url(template)[:8]}"
    return base64url(template)[:32]


def _clone(url: str, ref: Optional[str], target: Path):
    """Clone url at ref into target."""
    if ref and COMMIT_SHA.match(ref):
        code, _, stderr = run_git_command(['clone', '--quiet', url, str(target)])
        if code == 0:
            code, _, stderr = run_git_command(['checkout', '--quiet', ref], cwd=target)
    else:
        args = ['clone', '--quiet', '--depth', '1']
        if ref:
            args += ['--branch', ref]
        code, _, stderr = run_git_command(args + [url, str(target)])

    if code != 0:
        raise SourceResolutionError(f"Failed to clone {url}{'#' + ref if ref else ''}: {stderr}")


@contextmanager
def git_download(url: str, ref: Optional[str], downloads_dir: Path) -> Iterator[Path]:
    """Download a repository for the duration of a ``with`` block.

    Concurrent users of the same slot share one checkout; the slot is
    removed when the last of them exits.

    Args:
        url: Repository URL
        ref: Branch, tag or commit (None for the default branch)
        downloads_dir: Parent directory for download slots

    Yields:
        Path of the checkout
    """
    target = Path(downloads_dir) / create_download_key(build_template(url, ref))
    key = str(target)

    with _slots_lock:
        slot = _slots.setdefault(key, {'lock': threading.Lock(), 'users': 0, 'ready': False})
        slot['users'] += 1

    try:
        with slot['lock']:
            if not slot['ready']:
                if target.exists():
                    shutil.rmtree(target)
                target.parent.mkdir(parents=True, exist_ok=True)
                _clone(url, ref, target)
                slot['ready'] = True
        yield target
    finally:
        with _slots_lock:
            slot['users'] -= 1
            last = slot['users'] == 0
            if last:
                del _slots[key]
        if last:
            shutil.rmtree(target, ignore_errors=True)

