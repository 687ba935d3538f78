import argparse
import dataclasses
import logging
import sys

from content_app.batch_delete import batch_delete
from content_app.config import RepoConfig
from content_app.errors import BatchDeleteError, ContentGitError, InvalidSlugsError
from content_app.github_client import GitHubObjectStore


def print_progress(stage, message):
    print(f"[{stage.value}] {message}")


def delete(config, slugs):
    store = GitHubObjectStore(config)
    try:
        result = batch_delete(store, config, slugs, on_progress=print_progress)
    except InvalidSlugsError as e:
        print(f"Nothing deleted: {e}")
        return 1
    except BatchDeleteError as e:
        print(f"Delete failed after {e.stage.value}: {e.cause}")
        if e.orphaned:
            print("A tree or commit was created but the branch was not moved.")
        return 1

    for slug in result.unmatched:
        print(f"Not found: {slug}")
    if result.noop:
        print("Nothing to delete.")
        return 0
    for path in result.deleted_paths:
        print(f"  deleted {path}")
    print(f"Committed {result.commit_sha[:7]}: {result.message}")
    return 0


def list_slugs(config):
    store = GitHubObjectStore(config)
    tip = store.get_branch_tip(config.branch)
    seen = set()
    for path in store.list_directory_recursive(config.content_dir, tip):
        name = path.rsplit('/', 1)[-1]
        stem, dot, ext = name.rpartition('.')
        if dot and f".{ext.lower()}" in config.document_extensions and stem not in seen:
            seen.add(stem)
            print(stem)
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(description="content-git command")
    parser.add_argument('command', choices=['delete', 'list'], help='content-git commands')
    parser.add_argument('-s', '--slugs', nargs='+', help='Slugs for delete command')
    parser.add_argument('-b', '--branch', type=str, help='Branch to work on (overrides CONTENT_GIT_BRANCH)')
    parser.add_argument('-v', '--verbose', action='store_true', help='Log every step')

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        config = RepoConfig.from_env()
        if args.branch:
            config = dataclasses.replace(config, branch=args.branch)
        if args.command == 'delete':
            if not args.slugs:
                parser.error('delete requires -s slugs')
            return delete(config, args.slugs)
        return list_slugs(config)
    except ContentGitError as e:
        print(f"Error: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
