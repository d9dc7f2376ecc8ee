#!/usr/bin/env python3
"""
Command-line interface for Quire.
"""

import os
import sys
import argparse
from typing import List, Optional

from . import __version__
from .core import Quire
from .settings import QuireSettings

SAMPLE_POST = """---
title: "Welcome to Quire"
date: 2025-06-16
author: Quire
categories:
  - General
tags:
  - getting started
---

This is your first post. Edit it in `content/posts/welcome.md`.

<!--more-->

Each post starts with a YAML front matter block holding `title` and `date`
(both required) and optionally `author`, `categories`, `tags`, `draft` and
`slug`. Link to other posts by slug with `[text](slug:other-post)`.
"""


def create_starter_structure(base_dir: str) -> None:
    """Create the content directory with a sample post."""
    posts_dir = os.path.join(base_dir, 'content', 'posts')
    if os.path.exists(posts_dir):
        print("Directory already exists: content/posts")
    else:
        os.makedirs(posts_dir, exist_ok=True)
        print("Created directory: content/posts")

    post_path = os.path.join(posts_dir, 'welcome.md')
    if os.path.exists(post_path):
        print("Sample post already exists: content/posts/welcome.md")
    else:
        with open(post_path, 'w', encoding='utf-8') as f:
            f.write(SAMPLE_POST)
        print("Created sample post: content/posts/welcome.md")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='quire', description='Quire - Static Site Generator')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    subparsers = parser.add_subparsers(dest='command')

    build = subparsers.add_parser('build', help='Build the site')
    build.add_argument('--config-dir', type=str,
                       help='Directory containing quire.yml, quire.yaml or quire.json')
    build.add_argument('--content', type=str,
                       help='Content directory containing markdown files')
    build.add_argument('--output', type=str,
                       help='Output directory for generated site')
    build.add_argument('--templates', type=str,
                       help='Templates directory overriding the packaged templates')
    build.add_argument('--base-url', type=str,
                       help='Prefix for absolute links in the feed and canonical URLs')
    build.add_argument('--permalink-pattern', type=str,
                       help='Template for post paths, e.g. /post/{year}/{month}/{day}/{slug}/')
    build.add_argument('--page-size', type=int,
                       help='Number of posts per listing page')
    build.add_argument('--feed-size', type=int,
                       help='Number of posts in the feed')
    build.add_argument('--site-title', type=str, help='Site title')
    build.add_argument('--workers', type=int,
                       help='Worker count for parsing and writing')
    build.add_argument('--drafts', action='store_true', default=None,
                       help='Include draft posts in the build')
    build.add_argument('--no-cache', action='store_true',
                       help='Ignore and do not update the incremental build cache')
    build.add_argument('--log-dir', type=str,
                       help='Write a debug log file to this directory')

    init = subparsers.add_parser('init', help='Create a sample configuration and content directory')
    init.add_argument('format', nargs='?', choices=['yml', 'yaml', 'json'], default='yml',
                      help='Configuration file format')
    return parser


def run_build(args: argparse.Namespace) -> int:
    settings_loader = QuireSettings(args.config_dir)
    settings_loader.load_settings()

    args_dict = {
        'content': args.content,
        'output': args.output,
        'templates': args.templates,
        'base_url': args.base_url,
        'permalink_pattern': args.permalink_pattern,
        'page_size': args.page_size,
        'feed_size': args.feed_size,
        'site_title': args.site_title,
        'workers': args.workers,
        'include_drafts': args.drafts,
    }

    # Command line arguments take precedence
    final_settings = settings_loader.merge_with_args(args_dict)
    if args.no_cache:
        final_settings['cache_file'] = None

    output_dir = final_settings['output']
    if output_dir.startswith('~'):
        final_settings['output'] = os.path.expanduser(output_dir)

    generator = Quire(final_settings, log_dir=args.log_dir or None)
    generator.build()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == 'init':
        settings_loader = QuireSettings()
        config_path = settings_loader.create_sample_config(args.format)
        print(f"Created sample configuration file: {config_path}")
        create_starter_structure(os.getcwd())
        print("\nRun 'quire build' to build your site.")
        return 0

    if args.command != 'build':
        parser.print_help()
        return 1

    try:
        return run_build(args)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
