"""Configuration loader with YAML support and environment variable substitution."""

import copy
import os
import re
from typing import Any, Dict
from urllib.parse import urlparse

import yaml

from models import parse_field_list, parse_namespace_restriction


DEFAULT_CONFIG: Dict[str, Any] = {
    'source': {
        'mode': 'api'
    },
    'wiki': {
        'verify_ssl': True
    },
    'export': {},
    'rendering': {
        'engine': 'api'
    },
    'advanced': {
        'request_timeout': 30,
        'max_retries': 3,
        'retry_backoff_factor': 2.0,
        'rate_limit': 0.0
    },
    'logging': {}
}


class ConfigLoader:
    """Handles loading and validation of configuration files."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

    @classmethod
    def load(cls, config_path: str) -> Dict[str, Any]:
        """
        Load configuration from YAML file with environment variable substitution.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Parsed configuration dictionary

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If YAML parsing fails
        """
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f)

        if not isinstance(config_data, dict):
            raise ValueError("Configuration file must contain a dictionary")

        # Substitute environment variables recursively
        config_data = cls._substitute_env_vars_recursive(config_data)

        return config_data

    @classmethod
    def defaults(cls) -> Dict[str, Any]:
        """Return a fresh copy of the built-in configuration."""
        return copy.deepcopy(DEFAULT_CONFIG)

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> None:
        """
        Validate configuration for required fields and correct values.

        Args:
            config: Configuration dictionary to validate

        Raises:
            ValueError: If validation fails
        """
        mode = get_nested(config, 'source.mode', 'api')
        if mode not in ['api', 'dump']:
            raise ValueError("source.mode must be 'api' or 'dump'")

        if mode == 'api':
            cls._validate_required_field(config, 'wiki.api_url')
            cls._validate_url(get_nested(config, 'wiki.api_url'), 'wiki.api_url')

            # Bot login is optional but needs both halves
            username = get_nested(config, 'wiki.username')
            password = get_nested(config, 'wiki.password')
            if username and not password:
                cls._validate_required_field(config, 'wiki.password')
            if password and not username:
                cls._validate_required_field(config, 'wiki.username')
        else:
            cls._validate_required_field(config, 'source.dump_path')
            dump_path = get_nested(config, 'source.dump_path')
            if not os.path.isfile(dump_path):
                raise ValueError(f"source.dump_path '{dump_path}' is not a file")

        export_url = get_nested(config, 'wiki.export_url')
        if export_url:
            cls._validate_url(export_url, 'wiki.export_url')

        engine = get_nested(config, 'rendering.engine', 'api')
        if engine not in ['api', 'markdown']:
            raise ValueError("rendering.engine must be 'api' or 'markdown'")
        if engine == 'api' and mode == 'dump' and get_nested(config, 'export.fields_to_parse'):
            raise ValueError("rendering.engine 'api' requires source.mode 'api' when fields_to_parse is set")

        templates = get_nested(config, 'export.templates')
        if templates is not None:
            if not isinstance(templates, list) or not all(isinstance(t, str) and t for t in templates):
                raise ValueError("export.templates must be a list of template names")
            multiple = get_nested(config, 'export.multiple_templates', [])
            unknown = set(multiple) - set(templates)
            if unknown:
                raise ValueError(
                    f"export.multiple_templates contains names not in export.templates: {sorted(unknown)}"
                )

        try:
            parse_namespace_restriction(get_nested(config, 'export.namespace_restriction', False))
        except (TypeError, ValueError):
            raise ValueError("export.namespace_restriction must be false, an integer or a list of integers")

        for key in ['delay', 'delay_each']:
            value = get_nested(config, f'export.{key}', 0)
            if not isinstance(value, int) or value < 0:
                raise ValueError(f"export.{key} must be a non-negative integer")

        for key in ['page_list_limit', 'category_member_limit']:
            value = get_nested(config, f'export.{key}', 1)
            if not isinstance(value, int) or value < 1:
                raise ValueError(f"export.{key} must be a positive integer")

        # Validate timeout settings
        timeout = get_nested(config, 'advanced.request_timeout', 30)
        if not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ValueError("advanced.request_timeout must be a positive number")

        max_retries = get_nested(config, 'advanced.max_retries', 3)
        if not isinstance(max_retries, int) or max_retries < 0:
            raise ValueError("advanced.max_retries must be a non-negative integer")

    @classmethod
    def merge_with_args(cls, config: Dict[str, Any], args) -> Dict[str, Any]:
        """
        Merge configuration file with CLI arguments.
        CLI arguments take precedence over config file values.

        Args:
            config: Base configuration dictionary
            args: CLI arguments with attributes matching config keys

        Returns:
            Merged configuration dictionary
        """
        merged = copy.deepcopy(config)

        # Ensure nested dictionaries exist
        for section in ['source', 'wiki', 'export', 'rendering', 'logging']:
            if not isinstance(merged.get(section), dict):
                merged[section] = {}

        if getattr(args, 'source', None):
            merged['source']['mode'] = args.source

        if getattr(args, 'dump', None):
            merged['source']['mode'] = 'dump'
            merged['source']['dump_path'] = args.dump

        if getattr(args, 'api_url', None):
            merged['wiki']['api_url'] = args.api_url

        if getattr(args, 'renderer', None):
            merged['rendering']['engine'] = args.renderer

        if getattr(args, 'fields_to_parse', None):
            merged['export']['fields_to_parse'] = parse_field_list(args.fields_to_parse)

        if getattr(args, 'ns_restriction', None) is not None:
            merged['export']['namespace_restriction'] = args.ns_restriction

        if getattr(args, 'delay', None) is not None:
            merged['export']['delay'] = args.delay

        if getattr(args, 'delay_each', None) is not None:
            merged['export']['delay_each'] = args.delay_each

        if getattr(args, 'follow_links', None) is not None:
            merged['export']['follow_links'] = args.follow_links

        if getattr(args, 'log_file', None):
            merged['logging']['file'] = args.log_file

        if getattr(args, 'verbose', 0):
            merged['logging']['level'] = 'DEBUG' if args.verbose >= 2 else 'INFO'

        return merged

    @classmethod
    def _substitute_env_vars_recursive(cls, data: Any) -> Any:
        """Recursively substitute environment variables in data structure."""
        if isinstance(data, dict):
            return {key: cls._substitute_env_vars_recursive(value) for key, value in data.items()}
        elif isinstance(data, list):
            return [cls._substitute_env_vars_recursive(item) for item in data]
        elif isinstance(data, str):
            return cls._substitute_env_vars(data)
        else:
            return data

    @classmethod
    def _substitute_env_vars(cls, value: str) -> str:
        """Substitute environment variables in a string value."""
        def replace_match(match):
            var_name = match.group(1)
            env_value = os.getenv(var_name)
            return env_value if env_value is not None else match.group(0)

        return cls.ENV_VAR_PATTERN.sub(replace_match, value)

    @staticmethod
    def _validate_required_field(config_section: dict, field: str) -> None:
        """Validate that a required field exists and has a value."""
        value = get_nested(config_section, field)
        if value is None or value == '':
            raise ValueError(f"Missing required configuration: {field}")

        # Check for unsubstituted environment variables
        if isinstance(value, str) and '${' in value:
            match = ConfigLoader.ENV_VAR_PATTERN.search(value)
            var_name = match.group(1) if match else value
            raise ValueError(
                f"Configuration field '{field}' contains unsubstituted environment variable: {value}. "
                f"Please set the {var_name} environment variable or provide a value in config file."
            )

    @staticmethod
    def _validate_url(url: str, field_name: str) -> None:
        """Validate URL format."""
        parsed = urlparse(url)
        if not parsed.scheme or parsed.scheme not in ['http', 'https']:
            raise ValueError(f"{field_name} must use http or https scheme: {url}")
        if not parsed.netloc:
            raise ValueError(f"{field_name} missing hostname: {url}")


def get_nested(config: dict, path: str, default: Any = None) -> Any:
    """Safely retrieve nested configuration values using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "wiki.api_url")
        default: Default value if path doesn't exist

    Returns:
        Value at the nested path or default
    """
    keys = path.split('.')
    value = config

    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


__all__ = ['ConfigLoader', 'DEFAULT_CONFIG', 'deep_merge', 'get_nested']
