#!/usr/bin/env python3
"""
aix - One ai.json for every AI coding assistant.

This script installs the skills, rules, prompts, MCP servers and hooks
declared in a project's ai.json into the configuration formats of Claude
Code, Cursor, Windsurf, Zed, Codex, VS Code, GitHub Copilot and Kiro.
"""

import argparse
import os
import sys

from aix_core.config import AixConfig
from aix_core.exceptions import (
    AixError,
    ConfigNotFoundError,
    ConfigValidationError,
    FileOperationError,
    InvalidEditorError,
)
from aix_core.formatting import (
    colored_status,
    format_apply_result,
    format_cache_status,
    format_global_entry,
    format_unsupported_features,
)
from aix_core.manager import LIST_SECTIONS, SECTIONS, AixManager
from aix_core.merge import VALID_SCOPES
from aix_core.utils import format_size


def create_parser() -> argparse.ArgumentParser:
    """Create the command-line argument parser."""
    parser = argparse.ArgumentParser(
        prog='aix',
        description='aix - Install one ai.json into every AI coding assistant',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Install to the editors listed in ai.json (or detected in the project)
  %(prog)s install
  %(prog)s install cursor claude-code

  # Preview changes, only rules and MCP servers
  %(prog)s install --dry-run --scope rules --scope mcp

  # Install from a shared config
  %(prog)s install --config github:acme/ai-config/ai.json

  # Inspect and edit ai.json
  %(prog)s validate
  %(prog)s list rules
  %(prog)s remove mcp github
  %(prog)s remove rule legacy --disable

  # Global state
  %(prog)s global list --editor windsurf
  %(prog)s global cleanup --dry-run
  %(prog)s cache status
        """
    )

    confirm_parent = argparse.ArgumentParser(add_help=False)
    confirm_parent.add_argument('--yes', '-y', action='store_true',
                                help='Skip confirmation prompts')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Install command
    install_parser = subparsers.add_parser('install', help='Install ai.json into editors')
    install_parser.add_argument('editors', nargs='*', metavar='EDITOR',
                                help=f"Editors to install to ({', '.join(AixConfig.get_available_editors())})")
    install_parser.add_argument('--dry-run', '-d', action='store_true',
                                help='Show what would change without writing')
    install_parser.add_argument('--scope', action='append', choices=VALID_SCOPES, metavar='SCOPE',
                                help=f"Limit to a section (repeatable: {', '.join(VALID_SCOPES)})")
    install_parser.add_argument('--overwrite', action='store_true',
                                help='Replace editor JSON files instead of merging into them')
    install_parser.add_argument('--clean', action='store_true',
                                help='Delete generated rule and prompt files no longer in ai.json')
    install_parser.add_argument('--skip-global', action='store_true',
                                help='Never write user-global editor files')
    install_parser.add_argument('--config', metavar='PATH',
                                help='Descriptor to use: a file, github:owner/repo/path or an HTTPS URL')
    install_parser.add_argument('--verbose', '-v', action='store_true',
                                help='Also list unchanged files')

    # Validate command
    validate_parser = subparsers.add_parser('validate', help='Validate ai.json')
    validate_parser.add_argument('--config', metavar='PATH', help='Descriptor to validate')
    validate_parser.add_argument('--deep', action='store_true',
                                 help='Also resolve skills and check rule content')

    # List command
    list_parser = subparsers.add_parser('list', help='List configured entries')
    list_parser.add_argument('section', choices=list(LIST_SECTIONS) + ['editors'],
                             help='What to list')
    list_parser.add_argument('--config', metavar='PATH', help='Descriptor to read')

    # Remove command
    remove_parser = subparsers.add_parser('remove', parents=[confirm_parent],
                                          help='Remove an entry from ai.json')
    remove_parser.add_argument('kind', choices=list(SECTIONS), help='Entry type')
    remove_parser.add_argument('name', help='Entry name')
    remove_parser.add_argument('--disable', action='store_true',
                               help='Set the entry to false instead of deleting it (turns off inherited entries)')

    # Global namespace
    global_parser = subparsers.add_parser('global', help='Inspect globally tracked configuration')
    global_subparsers = global_parser.add_subparsers(dest='global_command', help='Global commands')

    global_list_parser = global_subparsers.add_parser('list', help='List tracked global entries')
    global_list_parser.add_argument('--editor', choices=AixConfig.get_available_editors(),
                                    help='Only entries for this editor')
    global_list_parser.add_argument('--verbose', '-v', action='store_true',
                                    help='Show dependent projects')

    global_cleanup_parser = global_subparsers.add_parser('cleanup', parents=[confirm_parent],
                                                         help='Find and remove orphaned tracking entries')
    global_cleanup_parser.add_argument('--dry-run', '-d', action='store_true',
                                       help='Report orphans without removing them')
    global_cleanup_parser.add_argument('--force', '-f', action='store_true',
                                       help='Remove orphans without confirmation')

    # Cache namespace
    cache_parser = subparsers.add_parser('cache', help='Manage the project cache in .aix/.tmp')
    cache_subparsers = cache_parser.add_subparsers(dest='cache_command', help='Cache commands')
    cache_subparsers.add_parser('status', help='Show cache size')
    cache_subparsers.add_parser('clear', help='Delete cached downloads and backups')

    # Init command
    init_parser = subparsers.add_parser('init', help='Create ai.json in the current directory')
    init_parser.add_argument('--force', action='store_true', help='Overwrite an existing ai.json')
    init_parser.add_argument('--from', dest='from_editor', choices=AixConfig.get_available_editors(),
                             help="Import an editor's existing configuration")

    return parser


def confirm(prompt: str) -> bool:
    response = input(f"\n   {prompt} [y/N]: ").strip().lower()
    return response in ('y', 'yes')


def run_install(args) -> int:
    manager = AixManager(config_path=args.config)
    loaded = manager.load()
    for warning in loaded.warnings:
        print(colored_status('WARNING', warning))

    results = manager.install(
        editors=args.editors,
        dry_run=args.dry_run,
        scopes=args.scope,
        overwrite=args.overwrite,
        clean=args.clean,
        skip_global=args.skip_global,
    )

    for result in results:
        print(format_apply_result(result, manager.project_root, verbose=args.verbose))
        for warning in result.warnings:
            print(f"   {colored_status('WARNING', warning)}")
        for line in format_unsupported_features(result.unsupported_features):
            print(f"   {line}")
        print()

    failed = [r.editor for r in results if not r.success]
    if failed:
        print(f"[ERROR] Install failed for: {', '.join(failed)}", file=sys.stderr)
        return 1
    return 0


def run_validate(args) -> int:
    manager = AixManager(config_path=args.config)
    try:
        report = manager.validate(deep=args.deep)
    except ConfigValidationError as e:
        print(colored_status('ERROR', 'Configuration has errors'), file=sys.stderr)
        for error in e.errors:
            print(f"[ERROR] {error['path']}: {error['message']}", file=sys.stderr)
        return 1

    for warning in report.warnings:
        print(colored_status('WARNING', warning))
    if not report.valid:
        for error in report.errors:
            print(f"[ERROR] {error}", file=sys.stderr)
        return 1

    print(colored_status('SUCCESS', f"Configuration is valid: {report.loaded.path}"))
    return 0


def _describe_entry(value) -> str:
    if value is False:
        return 'disabled'
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        for key in ('path', 'git', 'npm', 'command', 'url'):
            if key in value:
                source = value[key]
                if isinstance(source, dict):
                    source = source.get('url') or source.get('package') or ''
                if key == 'command':
                    source = ' '.join([str(source)] + [str(a) for a in value.get('args', [])])
                return f"{key}: {source}"
        if 'content' in value:
            return 'inline'
        if 'version' in value:
            return f"npm: {value['version']}"
    return ''


def run_list(args) -> int:
    manager = AixManager(config_path=args.config)
    if args.section == 'editors':
        print("Editors:\n")
        for row in manager.list_editors():
            state = 'enabled' if row['enabled'] else ('disabled' if row['configured'] else 'not configured')
            detected = ' (detected)' if row['detected'] else ''
            print(f"   {row['editor']:<12} {state}{detected}")
        return 0

    entries = manager.list_section(args.section)
    if not entries:
        print(f"No {args.section} configured.")
        return 0

    print(f"{args.section.capitalize()} ({len(entries)}):\n")
    width = max(len(name) for name in entries)
    for name, value in entries.items():
        print(f"   {name:<{width}}  {_describe_entry(value)}")
    return 0


def run_remove(args) -> int:
    manager = AixManager()
    action = 'Disable' if args.disable else 'Remove'
    if not args.yes and not confirm(f"{action} {args.kind} \"{args.name}\" in {AixConfig.CONFIG_FILE}?"):
        print("[INFO] Cancelled")
        return 0

    deleted = manager.remove(args.kind, args.name, disable=args.disable)
    verb = 'Disabled' if args.disable else 'Removed'
    print(colored_status('SUCCESS', f"{verb} {args.kind} \"{args.name}\""))
    for path in deleted:
        print(f"   {colored_status('DELETE', path)}")
    return 0


def run_global(args, parser) -> int:
    manager = AixManager()
    if args.global_command == 'list':
        entries = manager.global_entries(args.editor)
        if not entries:
            print("No global configurations tracked.")
            print("[INFO] Entries are tracked when installing to editors with global-only "
                  "features (Windsurf MCP, Codex MCP and prompts)")
            return 0
        print(f"Global configurations ({len(entries)}):\n")
        for _, entry in entries:
            print(format_global_entry(entry, verbose=args.verbose))
            print()
        print(f"[INFO] Tracking file: {manager.tracking.file_path}")
        return 0

    if args.global_command == 'cleanup':
        force = args.force
        orphans, _ = manager.global_cleanup(dry_run=True)
        if not orphans:
            print("No orphaned global configurations found.")
            return 0

        print(f"Orphaned global configurations ({len(orphans)}):\n")
        for key, entry in orphans:
            reason = 'No projects depend on this' if not entry.get('projects') \
                else 'All dependent projects have been removed'
            print(f"   {key}  ({reason})")

        if args.dry_run:
            print(f"\n[DRY RUN] {len(orphans)} orphaned entries would be removed from tracking")
            return 0
        if not force and not args.yes:
            force = confirm("Remove these entries from tracking?")
        if not force:
            print("[INFO] Nothing removed. Use --force to remove orphaned entries.")
            return 0

        _, removed = manager.global_cleanup(force=True)
        print(colored_status('SUCCESS', f"Removed {len(removed)} orphaned tracking entries"))
        print("[INFO] Global config files themselves are not modified")
        return 0

    parser.parse_args(['global', '--help'])
    return 1


def run_cache(args, parser) -> int:
    manager = AixManager()
    if args.cache_command == 'status':
        status = manager.cache_status()
        print("Cache (.aix/.tmp):\n")
        print(format_cache_status(status))
        return 0

    if args.cache_command == 'clear':
        if manager.cache_status()['total_size'] == 0:
            print("Cache is empty.")
            return 0
        result = manager.cache_clear()
        print(colored_status('SUCCESS', f"Cleared {format_size(result['freed_bytes'])}"))
        return 0

    parser.parse_args(['cache', '--help'])
    return 1


def run_init(args) -> int:
    manager = AixManager()
    config_path, imported = manager.init(force=args.force, from_editor=args.from_editor)

    if imported is not None:
        for warning in imported.warnings:
            print(colored_status('WARNING', warning))
        if imported.is_empty:
            print(colored_status('WARNING', f"No configuration found to import from {args.from_editor}"))
        else:
            print(colored_status('INFO', f"Imported {len(imported.mcp)} MCP servers, "
                                         f"{len(imported.rules)} rules and {len(imported.prompts)} prompts"))

    print(colored_status('SUCCESS', f"Created {config_path}"))
    return 0


def main():
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    try:
        if args.command == 'install':
            return run_install(args)
        elif args.command == 'validate':
            return run_validate(args)
        elif args.command == 'list':
            return run_list(args)
        elif args.command == 'remove':
            return run_remove(args)
        elif args.command == 'global':
            return run_global(args, parser)
        elif args.command == 'cache':
            return run_cache(args, parser)
        elif args.command == 'init':
            return run_init(args)

        parser.print_help()
        return 1

    except KeyboardInterrupt:
        print("\n[ERROR] Operation cancelled by user", file=sys.stderr)
        return 1
    except ConfigNotFoundError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        print("[TIP] Run `aix init` to create one.", file=sys.stderr)
        return 1
    except InvalidEditorError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1
    except (FileNotFoundError, NotADirectoryError, PermissionError) as e:
        print(f"[ERROR] File system error: {e}", file=sys.stderr)
        return 1
    except FileOperationError as e:
        print(f"[ERROR] File operation failed: {e}", file=sys.stderr)
        return 1
    except AixError as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"[ERROR] Unexpected error: {e}", file=sys.stderr)
        if os.getenv('DEBUG'):
            import traceback
            traceback.print_exc()
        return 1


if __name__ == '__main__':
    sys.exit(main())
