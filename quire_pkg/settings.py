#!/usr/bin/env python3
"""
Settings loader for Quire.
Supports configuration from quire.yml, quire.yaml, or quire.json files.
"""

import os
import json
import yaml
from typing import Dict, Any, Optional

from .errors import UnknownConfigurationValue
from .slugs import PermalinkResolver


class QuireSettings:
    """Load, merge and validate Quire configuration settings."""

    # Default configuration
    DEFAULT_SETTINGS = {
        'content': 'content',
        'output': 'output',
        'templates': None,
        'base_url': 'http://localhost:8000/',
        'permalink_pattern': '/post/{year}/{month}/{day}/{slug}/',
        'page_size': 10,
        'feed_size': 20,
        'include_drafts': False,
        'site_title': 'Quire',
        'summary_length': 280,
        'related_count': 3,
        'workers': None,
        'cache_file': '.quire-cache.yml',
    }

    # Accepted spellings from other generators' config files
    ALIASES = {
        'baseURL': 'base_url',
        'permalinkPattern': 'permalink_pattern',
        'pageSize': 'page_size',
        'feedSize': 'feed_size',
        'includeDrafts': 'include_drafts',
    }

    POSITIVE_INTS = ('page_size', 'feed_size', 'summary_length')
    OPTIONAL_POSITIVE_INTS = ('workers',)
    NON_NEGATIVE_INTS = ('related_count',)
    BOOLEANS = ('include_drafts',)
    STRINGS = ('content', 'output', 'base_url', 'permalink_pattern', 'site_title')
    OPTIONAL_STRINGS = ('templates', 'cache_file')

    # Config file names to look for (in order of preference)
    CONFIG_FILES = ['quire.yml', 'quire.yaml', 'quire.json']

    def __init__(self, config_dir: str = None):
        """
        Initialize settings loader.

        Args:
            config_dir: Directory to look for config files. Defaults to current directory.
        """
        self.config_dir = config_dir or os.getcwd()
        self.settings = self.DEFAULT_SETTINGS.copy()
        self.config_file_path = None

    def load_settings(self) -> Dict[str, Any]:
        """
        Load settings from configuration file if it exists.

        Returns:
            Dictionary of configuration settings

        Raises:
            UnknownConfigurationValue: if the file holds an unknown key or an invalid value
        """
        config_file = self._find_config_file()

        if config_file:
            self.config_file_path = config_file
            loaded_settings = self._load_config_file(config_file)
            self.settings.update(self._canonical_keys(loaded_settings))
            self.validate(self.settings)

        return self.settings.copy()

    def _find_config_file(self) -> Optional[str]:
        """
        Find the first available configuration file.

        Returns:
            Path to config file or None if not found
        """
        for filename in self.CONFIG_FILES:
            config_path = os.path.join(self.config_dir, filename)
            if os.path.exists(config_path):
                return config_path
        return None

    def _load_config_file(self, config_path: str) -> Dict[str, Any]:
        """
        Load configuration from a file.

        Args:
            config_path: Path to the configuration file

        Returns:
            Dictionary of configuration settings
        """
        file_ext = os.path.splitext(config_path)[1].lower()
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                if file_ext in ['.yml', '.yaml']:
                    data = yaml.safe_load(f)
                elif file_ext == '.json':
                    data = json.load(f)
                else:
                    raise ValueError(f"Unsupported config file format: {file_ext}")
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file {config_path}: {e}")
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file {config_path}: {e}")
        except PermissionError:
            raise PermissionError(f"Permission denied reading configuration file: {config_path}")
        except (IOError, OSError) as e:
            raise IOError(f"Error reading configuration file {config_path}: {e}")

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file {config_path} must contain a mapping")
        return data

    def _canonical_keys(self, values: Dict[str, Any]) -> Dict[str, Any]:
        canonical = {}
        for key, value in values.items():
            key = self.ALIASES.get(key, key)
            if key not in self.DEFAULT_SETTINGS:
                raise UnknownConfigurationValue(key, value, 'unknown setting', self.config_file_path)
            canonical[key] = value
        return canonical

    def validate(self, settings: Dict[str, Any]) -> None:
        """Raise ``UnknownConfigurationValue`` for the first invalid entry."""
        path = self.config_file_path

        def fail(key, detail):
            raise UnknownConfigurationValue(key, settings[key], detail, path)

        for key in self.POSITIVE_INTS + self.OPTIONAL_POSITIVE_INTS + self.NON_NEGATIVE_INTS:
            value = settings[key]
            if value is None and key in self.OPTIONAL_POSITIVE_INTS:
                continue
            if isinstance(value, bool) or not isinstance(value, int):
                fail(key, 'expected an integer')
            minimum = 0 if key in self.NON_NEGATIVE_INTS else 1
            if value < minimum:
                fail(key, f'must be at least {minimum}')
        for key in self.BOOLEANS:
            if not isinstance(settings[key], bool):
                fail(key, 'expected true or false')
        for key in self.STRINGS:
            if not isinstance(settings[key], str) or not settings[key].strip():
                fail(key, 'expected a non-empty string')
        for key in self.OPTIONAL_STRINGS:
            if settings[key] is not None and not isinstance(settings[key], str):
                fail(key, 'expected a string')

        # Rejects unknown placeholders before any document is read.
        PermalinkResolver(settings['permalink_pattern'], settings['base_url'])

    def create_sample_config(self, file_format: str = 'yml') -> str:
        """
        Create a sample configuration file.

        Args:
            file_format: Format for config file ('yml', 'yaml', or 'json')

        Returns:
            Path to created sample config file
        """
        filename = f'quire.{file_format}'
        config_path = os.path.join(self.config_dir, filename)

        try:
            with open(config_path, 'w', encoding='utf-8') as f:
                if file_format in ['yml', 'yaml']:
                    f.write("# Quire Configuration File\n\n")
                    f.write("# Site information\n")
                    f.write("site_title: My Quire Site\n")
                    f.write("base_url: https://example.com/\n\n")
                    f.write("# Build settings\n")
                    f.write("content: content\n")
                    f.write("output: output\n")
                    f.write("cache_file: .quire-cache.yml\n\n")
                    f.write("# Content settings\n")
                    f.write("permalink_pattern: /post/{year}/{month}/{day}/{slug}/\n")
                    f.write("page_size: 10\n")
                    f.write("feed_size: 20\n")
                    f.write("related_count: 3\n")
                    f.write("include_drafts: false\n")
                elif file_format == 'json':
                    sample_config = {k: v for k, v in self.DEFAULT_SETTINGS.items() if v is not None}
                    sample_config.update({'site_title': 'My Quire Site', 'base_url': 'https://example.com/'})
                    json.dump(sample_config, f, indent=2)
                else:
                    raise ValueError(f"Unsupported config file format: {file_format}")
        except PermissionError:
            raise PermissionError(f"Permission denied creating configuration file: {config_path}")
        except (IOError, OSError) as e:
            raise IOError(f"Error writing configuration file {config_path}: {e}")

        return config_path

    def merge_with_args(self, args_dict: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge configuration settings with command-line arguments.
        Command-line arguments take precedence over config file settings.

        Args:
            args_dict: Dictionary of command-line arguments

        Returns:
            Merged and validated configuration dictionary
        """
        merged = self.settings.copy()

        # Override with non-None command line arguments
        for key, value in args_dict.items():
            if value is not None:
                key = self.ALIASES.get(key, key)
                if key not in self.DEFAULT_SETTINGS:
                    raise UnknownConfigurationValue(key, value, 'unknown setting')
                merged[key] = value

        self.validate(merged)
        return merged
