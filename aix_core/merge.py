"""
Descriptor merging for aix.

Named-entry sections (skills, rules, prompts, mcp, hooks) merge key by key:
an override value replaces the inherited value as a whole. ``false`` marks an
entry as disabled and stays in the merged map so that callers can tell
"disabled" apart from "never defined"; once disabled, a key stays disabled
for the rest of the resolution.
"""

import copy
from typing import Any, Dict, List, Optional, Union

from .utils import deep_merge_json

ENTRY_SECTIONS = ('skills', 'rules', 'prompts', 'mcp', 'hooks')
VALID_SCOPES = ('rules', 'mcp', 'skills', 'editors', 'prompts', 'hooks')


def normalize_editors(editors: Union[None, List, Dict]) -> Dict[str, Dict[str, Any]]:
    """Normalize the editors section to object form.

    ``["windsurf", {"cursor": {...}}]`` becomes
    ``{"windsurf": {"enabled": True}, "cursor": {"enabled": True, ...}}``.
    """
    if not editors:
        return {}
    if isinstance(editors, dict):
        return copy.deepcopy(editors)

    result: Dict[str, Dict[str, Any]] = {}
    for item in editors:
        if isinstance(item, str):
            result[item] = {'enabled': True}
        else:
            for name, editor_config in item.items():
                result[name] = dict({'enabled': True}, **copy.deepcopy(editor_config or {}))
    return result


def merge_entries(base: Optional[Dict[str, Any]], override: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Merge two name -> entry maps with key replacement and sticky ``false``."""
    merged = copy.deepcopy(base) if base else {}
    for key, value in (override or {}).items():
        if merged.get(key) is False:
            continue
        merged[key] = copy.deepcopy(value)
    return merged


def merge_configs(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge an override descriptor into a base descriptor.

    Args:
        base: Earlier (ancestor) configuration
        override: Later (child or local) configuration, possibly partial

    Returns:
        Merged configuration. ``extends`` is never carried over.
    """
    result = {k: copy.deepcopy(v) for k, v in base.items() if k != 'extends'}

    for section in ENTRY_SECTIONS:
        if section in override:
            result[section] = merge_entries(base.get(section), override[section])

    if 'editors' in override:
        result['editors'] = deep_merge_json(
            normalize_editors(base.get('editors')),
            normalize_editors(override['editors']),
        )

    for key in ('$schema', 'aix'):
        if key in override:
            result[key] = copy.deepcopy(override[key])

    return result


def active_entries(entries: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Return the entries of a section that are not disabled with ``false``."""
    return {name: value for name, value in (entries or {}).items() if value is not False}


def filter_config_by_scopes(config: Dict[str, Any], scopes: List[str]) -> Dict[str, Any]:
    """Keep only the sections named by scopes."""
    return {scope: config[scope] for scope in scopes if scope in VALID_SCOPES and scope in config}


def enabled_editors(config: Dict[str, Any]) -> List[str]:
    """Return the editors enabled in the descriptor, in declaration order."""
    return [name for name, editor_config in normalize_editors(config.get('editors')).items()
            if editor_config.get('enabled', True)]
