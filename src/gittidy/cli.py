#!/usr/bin/env python3
"""
gittidy - Local branch hygiene CLI

Main entry point that provides a menu-driven interface or direct CLI commands
for cleaning up merged branches and updating main branches.
"""

import argparse
import sys
from pathlib import Path

from gittidy import __version__, cleanup, update
from gittidy.cleanup import Mode
from gittidy.config import load_config, set_value, show_config


def show_menu(repo_path: Path) -> int:
    """Display interactive menu for gittidy operations."""
    print("\n" + "=" * 60)
    print("GITTIDY - Local Branch Hygiene")
    print("=" * 60)
    print(f"Repository: {repo_path}")
    print()
    print("Available Commands:")
    print("  1. cleanup      - Delete merged branches (confirm each)")
    print("  2. list         - List merged branches without deleting")
    print("  3. cleanup -f   - Delete all merged branches")
    print("  4. update-main  - Update main in every repository under the search path")
    print("  5. config       - View gittidy configuration")
    print("  0. exit         - Exit gittidy")
    print()

    try:
        choice = input("Enter your choice (0-5): ").strip()
    except (KeyboardInterrupt, EOFError):
        print("\n\nGoodbye!")
        return 0

    if choice == "1":
        return cleanup.main_with_args(repo_path, Mode.INTERACTIVE)
    elif choice == "2":
        return cleanup.main_with_args(repo_path, Mode.LIST)
    elif choice == "3":
        return cleanup.main_with_args(repo_path, Mode.FORCE)
    elif choice == "4":
        return update.main_with_args()
    elif choice == "5":
        show_config()
        return 0
    elif choice == "0":
        print("Goodbye!")
        return 0
    else:
        print(f"Invalid choice: {choice}")
        return 1


def _add_mode_flags(subparser: argparse.ArgumentParser):
    group = subparser.add_mutually_exclusive_group()
    group.add_argument(
        '-f', '--force',
        action='store_true',
        help='Skip confirmation and delete all matching branches'
    )
    group.add_argument(
        '-l', '--list', '--dry-run',
        dest='list_only',
        action='store_true',
        help='Show matching branches without taking action'
    )


def _mode(args) -> Mode:
    if args.list_only:
        return Mode.LIST
    if args.force:
        return Mode.FORCE
    return Mode.INTERACTIVE


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gittidy",
        description="gittidy - Delete merged branches and keep main branches current",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  gittidy                          # Interactive menu in current directory
  gittidy cleanup                  # Interactive mode in current repo
  gittidy cleanup /path/to/repo    # Interactive mode in specified repo
  gittidy cleanup -f               # Force delete all matching branches
  gittidy cleanup -l               # List matching branches only
  gittidy cleanup-all -p ~/work -l # List matching branches in every repo
  gittidy update-main -p ~/work    # Update main in every repo
  gittidy config --set review_backend gh

Commands:
  cleanup      - Delete local branches whose PRs have merged
  cleanup-all  - Run cleanup in every repository under a directory
  update-main  - Fast-forward main in every repository under a directory
  config       - View or edit configuration
        """
    )

    parser.add_argument(
        '-v', '--version',
        action='version',
        version=f'gittidy {__version__}'
    )

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    cleanup_parser = subparsers.add_parser(
        'cleanup',
        help='Delete local branches whose pull requests have merged'
    )
    cleanup_parser.add_argument(
        'repo_path',
        nargs='?',
        default=None,
        help='Path to git repository (default: current directory)'
    )
    _add_mode_flags(cleanup_parser)

    cleanup_all_parser = subparsers.add_parser(
        'cleanup-all',
        help='Run cleanup in every repository under a directory'
    )
    cleanup_all_parser.add_argument(
        '-p', '--path',
        type=str,
        default=None,
        help='Directory containing git repositories (default: search_path from config)'
    )
    _add_mode_flags(cleanup_all_parser)

    update_parser = subparsers.add_parser(
        'update-main',
        help='Fast-forward main in every repository under a directory'
    )
    update_parser.add_argument(
        '-p', '--path',
        type=str,
        default=None,
        help='Directory containing git repositories (default: search_path from config)'
    )
    update_parser.add_argument(
        '-d', '--dry-run',
        action='store_true',
        help='Show what would be done without making changes'
    )
    update_parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Show detailed output for each repository'
    )
    update_parser.add_argument(
        '--branch',
        type=str,
        default=None,
        help='Branch to update (default: main_branch from config)'
    )

    config_parser = subparsers.add_parser(
        'config',
        help='View or edit configuration'
    )
    config_parser.add_argument(
        '--show',
        action='store_true',
        help='Show current configuration'
    )
    config_parser.add_argument(
        '--set',
        nargs=2,
        metavar=('KEY', 'VALUE'),
        help='Set a configuration value (lists are comma-separated)'
    )

    return parser


def main(argv=None) -> int:
    """Main entry point for gittidy CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        if args.command == 'cleanup':
            repo_path = Path(args.repo_path).resolve() if args.repo_path else Path.cwd()
            return cleanup.main_with_args(repo_path, _mode(args))

        elif args.command == 'cleanup-all':
            search = args.path or load_config().get("search_path")
            return cleanup.main_all(Path(search).expanduser(), _mode(args))

        elif args.command == 'update-main':
            return update.main_with_args(
                search_path=args.path,
                branch=args.branch,
                dry_run=args.dry_run,
                verbose=args.verbose
            )

        elif args.command == 'config':
            if args.set:
                key, value = args.set
                try:
                    set_value(key, value)
                except (KeyError, ValueError) as e:
                    print(f"Error: {e.args[0]}", file=sys.stderr)
                    return 1
            else:
                show_config()
            return 0

        else:
            # No command specified, show menu
            return show_menu(Path.cwd())

    except KeyboardInterrupt:
        print("\n\nGoodbye!")
        return 130


if __name__ == "__main__":
    sys.exit(main())
