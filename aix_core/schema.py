"""
JSON Schema validation for ai.json, ai.local.json and SKILL.md frontmatter.

Structural rules are expressed as JSON Schema and checked with jsonschema;
cross-field rules (exactly one content source, activation requirements) are
checked in Python afterwards. Every violation is reported, not just the first.
"""

from typing import Any, Dict, List, Optional

from jsonschema import Draft202012Validator
from jsonschema.exceptions import best_match

from .config import AixConfig

NAME_PATTERN = r'^[a-z0-9]+(-[a-z0-9]+)*$'

HOOK_EVENTS = [
    'pre_tool_use',
    'post_tool_use',
    'pre_file_read',
    'post_file_read',
    'pre_file_write',
    'post_file_write',
    'pre_command',
    'post_command',
    'pre_mcp_tool',
    'post_mcp_tool',
    'pre_prompt',
    'session_start',
    'session_end',
    'agent_stop',
]

ACTIVATIONS = ['always', 'auto', 'glob', 'manual']
CONTENT_SOURCES = ('content', 'path', 'git', 'npm')

_STRING_MAP = {'type': 'object', 'additionalProperties': {'type': 'string'}}
_STRING_LIST = {'type': 'array', 'items': {'type': 'string'}}
_NAME_KEYS = {'pattern': NAME_PATTERN, 'maxLength': 64, 'minLength': 1}
_DISABLED = {'const': False}

GIT_SOURCE = {
    'type': 'object',
    'properties': {
        'url': {'type': 'string', 'minLength': 1},
        'path': {'type': 'string'},
        'ref': {'type': 'string'},
    },
    'required': ['url'],
    'additionalProperties': False,
}

NPM_SOURCE = {
    'type': 'object',
    'properties': {
        'npm': {'type': 'string', 'minLength': 1},
        'path': {'type': 'string'},
        'version': {'type': 'string'},
    },
    'required': ['npm', 'path'],
    'additionalProperties': False,
}

RULE_OBJECT = {
    'type': 'object',
    'properties': {
        'description': {'type': 'string'},
        'activation': {'enum': ACTIVATIONS},
        'globs': _STRING_LIST,
        'content': {'type': 'string'},
        'path': {'type': 'string'},
        'git': GIT_SOURCE,
        'npm': NPM_SOURCE,
    },
    'additionalProperties': False,
}

RULES = {
    'type': 'object',
    'propertyNames': _NAME_KEYS,
    'additionalProperties': {'anyOf': [{'type': 'string'}, RULE_OBJECT, _DISABLED]},
}

PROMPT_OBJECT = {
    'type': 'object',
    'properties': {
        'description': {'type': 'string'},
        'argumentHint': {'type': 'string'},
        'content': {'type': 'string'},
        'path': {'type': 'string'},
        'git': GIT_SOURCE,
        'npm': NPM_SOURCE,
    },
    'additionalProperties': False,
}

PROMPTS = {
    'type': 'object',
    'propertyNames': _NAME_KEYS,
    'additionalProperties': {'anyOf': [{'type': 'string'}, PROMPT_OBJECT, _DISABLED]},
}

SOURCE_REF = {
    'anyOf': [
        {'type': 'string', 'minLength': 1},
        {
            'type': 'object',
            'properties': {
                'git': {'type': 'string'},
                'ref': {'type': 'string'},
                'path': {'type': 'string'},
            },
            'required': ['git'],
            'additionalProperties': False,
        },
        {
            'type': 'object',
            'properties': {
                'npm': {'type': 'string'},
                'path': {'type': 'string'},
                'version': {'type': 'string'},
            },
            'required': ['npm'],
            'additionalProperties': False,
        },
        {
            'type': 'object',
            'properties': {'path': {'type': 'string'}},
            'required': ['path'],
            'additionalProperties': False,
        },
        {
            'type': 'object',
            'properties': {
                'version': {'type': 'string'},
                'registry': {'type': 'string', 'format': 'uri'},
            },
            'required': ['version'],
            'additionalProperties': False,
        },
    ]
}

SKILLS = {
    'type': 'object',
    'propertyNames': _NAME_KEYS,
    'additionalProperties': {
        'anyOf': [
            SOURCE_REF,
            {
                'type': 'object',
                'properties': {
                    'source': SOURCE_REF,
                    'enabled': {'type': 'boolean'},
                    'config': {'type': 'object'},
                },
                'required': ['source'],
                'additionalProperties': False,
            },
            _DISABLED,
        ]
    },
}

MCP_SERVER = {
    'type': 'object',
    'properties': {
        'command': {'type': 'string', 'minLength': 1},
        'args': _STRING_LIST,
        'env': _STRING_MAP,
        'cwd': {'type': 'string'},
        'shell': {'type': 'boolean'},
        'url': {'type': 'string', 'pattern': r'^https?://'},
        'headers': _STRING_MAP,
        'timeout': {'type': 'number', 'exclusiveMinimum': 0},
        'validateOrigin': {'type': 'boolean'},
        'enabled': {'type': 'boolean'},
        'tools': _STRING_LIST,
        'disabledTools': _STRING_LIST,
        'resources': {'type': 'array'},
        'autoStart': {'type': 'boolean'},
        'restartOnFailure': {'type': 'boolean'},
        'maxRestarts': {'type': 'integer', 'minimum': 0},
    },
    'additionalProperties': False,
}

MCP = {
    'type': 'object',
    'additionalProperties': {'anyOf': [MCP_SERVER, _DISABLED]},
}

HOOKS = {
    'type': 'object',
    'propertyNames': {'enum': HOOK_EVENTS},
    'additionalProperties': {
        'type': 'array',
        'items': {
            'type': 'object',
            'properties': {
                'matcher': {'type': 'string'},
                'hooks': {
                    'type': 'array',
                    'items': {
                        'type': 'object',
                        'properties': {
                            'command': {'type': 'string', 'minLength': 1},
                            'timeout': {'type': 'number', 'exclusiveMinimum': 0},
                            'show_output': {'type': 'boolean'},
                            'working_directory': {'type': 'string'},
                        },
                        'required': ['command'],
                        'additionalProperties': False,
                    },
                },
            },
            'required': ['hooks'],
            'additionalProperties': False,
        },
    },
}

EDITOR_CONFIG = {
    'type': 'object',
    'properties': {
        'enabled': {'type': 'boolean'},
        'rules': RULES,
    },
}

EDITORS = {
    'anyOf': [
        {
            'type': 'array',
            'items': {
                'anyOf': [
                    {'enum': AixConfig.get_available_editors()},
                    {'type': 'object', 'additionalProperties': EDITOR_CONFIG},
                ]
            },
        },
        {'type': 'object', 'additionalProperties': EDITOR_CONFIG},
    ]
}

AIX_SETTINGS = {
    'type': 'object',
    'properties': {
        'cache': {
            'type': 'object',
            'properties': {
                'maxBackups': {'type': 'integer', 'minimum': 1, 'maximum': 100},
                'maxBackupAgeDays': {'type': 'integer', 'minimum': 1, 'maximum': 365},
                'maxCacheAgeDays': {'type': 'integer', 'minimum': 1, 'maximum': 365},
            },
            'additionalProperties': False,
        },
    },
    'additionalProperties': False,
}

_SECTIONS = {
    '$schema': {'type': 'string'},
    'skills': SKILLS,
    'mcp': MCP,
    'rules': RULES,
    'prompts': PROMPTS,
    'editors': EDITORS,
    'hooks': HOOKS,
    'aix': AIX_SETTINGS,
}

AI_JSON_SCHEMA = {
    '$schema': 'https://json-schema.org/draft/2020-12/schema',
    'title': 'ai.json',
    'type': 'object',
    'properties': dict(_SECTIONS, extends={
        'anyOf': [{'type': 'string'}, {'type': 'array', 'items': {'type': 'string'}}]
    }),
    'additionalProperties': False,
}

LOCAL_CONFIG_SCHEMA = {
    '$schema': 'https://json-schema.org/draft/2020-12/schema',
    'title': 'ai.local.json',
    'type': 'object',
    'properties': dict(_SECTIONS),
    'additionalProperties': False,
}

SKILL_FRONTMATTER_SCHEMA = {
    '$schema': 'https://json-schema.org/draft/2020-12/schema',
    'title': 'SKILL.md frontmatter',
    'type': 'object',
    'properties': {
        'name': {'type': 'string', 'minLength': 1, 'maxLength': 64, 'pattern': NAME_PATTERN},
        'description': {'type': 'string', 'minLength': 1, 'maxLength': 1024},
        'license': {'type': 'string'},
        'compatibility': {'type': 'string', 'maxLength': 500},
        'metadata': _STRING_MAP,
        'allowed-tools': {'type': 'string'},
    },
    'required': ['name', 'description'],
}


class ValidationResult:
    """Outcome of validating a document: data on success, all errors otherwise."""

    def __init__(self, data: Any = None, errors: Optional[List[Dict[str, str]]] = None):
        self.data = data
        self.errors = errors or []

    @property
    def success(self) -> bool:
        return not self.errors


def _format_path(parts) -> str:
    path = '.'.join(str(p) for p in parts)
    return path or '(root)'


def _schema_errors(validator: Draft202012Validator, data: Any) -> List[Dict[str, str]]:
    """Collect every structural error, in document order."""
    errors = []
    for error in sorted(validator.iter_errors(data), key=lambda e: [str(p) for p in e.absolute_path]):
        message = error.message
        if error.validator in ('anyOf', 'oneOf') and error.context:
            message = best_match(error.context).message
        errors.append({'path': _format_path(error.absolute_path), 'message': message})
    return errors


def _check_content_entries(section: str, entries: Any, errors: List[Dict[str, str]],
                           check_activation: bool):
    """Cross-field checks for rule and prompt objects."""
    if not isinstance(entries, dict):
        return
    for name, value in entries.items():
        if not isinstance(value, dict):
            continue
        path = f"{section}.{name}"
        sources = [key for key in CONTENT_SOURCES if value.get(key)]
        if len(sources) != 1:
            errors.append({
                'path': path,
                'message': 'Exactly one content source required: content, path, git, or npm',
            })
        if not check_activation:
            continue
        activation = value.get('activation')
        if activation == 'auto' and not value.get('description'):
            errors.append({'path': f"{path}.description",
                           'message': "Description is required when activation is 'auto'"})
        if activation == 'glob' and not value.get('globs'):
            errors.append({'path': f"{path}.globs",
                           'message': "Globs are required when activation is 'glob'"})


def _check_mcp_entries(entries: Any, errors: List[Dict[str, str]]):
    """Each MCP server needs exactly one transport."""
    if not isinstance(entries, dict):
        return
    for name, value in entries.items():
        if not isinstance(value, dict):
            continue
        has_command, has_url = 'command' in value, 'url' in value
        if has_command == has_url:
            errors.append({
                'path': f"mcp.{name}",
                'message': 'MCP server must define either "command" (stdio) or "url" (http)',
            })


def _semantic_errors(data: Any) -> List[Dict[str, str]]:
    errors: List[Dict[str, str]] = []
    if not isinstance(data, dict):
        return errors

    _check_content_entries('rules', data.get('rules'), errors, check_activation=True)
    _check_content_entries('prompts', data.get('prompts'), errors, check_activation=False)
    _check_mcp_entries(data.get('mcp'), errors)

    editors = data.get('editors')
    if isinstance(editors, dict):
        for editor, editor_config in editors.items():
            if isinstance(editor_config, dict):
                _check_content_entries(f"editors.{editor}.rules", editor_config.get('rules'),
                                       errors, check_activation=True)
    return errors


_AI_JSON_VALIDATOR = Draft202012Validator(AI_JSON_SCHEMA)
_LOCAL_VALIDATOR = Draft202012Validator(LOCAL_CONFIG_SCHEMA)
_SKILL_VALIDATOR = Draft202012Validator(SKILL_FRONTMATTER_SCHEMA)


def validate_config(data: Any, local: bool = False) -> ValidationResult:
    """Validate an ai.json (or ai.local.json when ``local``) document.

    Args:
        data: Parsed JSON document
        local: Validate against the local override shape (no ``extends``)

    Returns:
        ValidationResult listing every violated field
    """
    if local and isinstance(data, dict) and 'extends' in data:
        errors = [{'path': 'extends', 'message': 'extends is not allowed in ai.local.json'}]
        rest = {k: v for k, v in data.items() if k != 'extends'}
        errors.extend(_schema_errors(_LOCAL_VALIDATOR, rest))
        errors.extend(_semantic_errors(rest))
        return ValidationResult(errors=errors)

    validator = _LOCAL_VALIDATOR if local else _AI_JSON_VALIDATOR
    errors = _schema_errors(validator, data) + _semantic_errors(data)
    if errors:
        return ValidationResult(errors=errors)
    return ValidationResult(data=data)


def validate_skill_frontmatter(data: Any) -> ValidationResult:
    """Validate SKILL.md frontmatter."""
    errors = _schema_errors(_SKILL_VALIDATOR, data)
    if errors:
        return ValidationResult(errors=errors)
    return ValidationResult(data=data)
