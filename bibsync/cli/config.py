"""Configuration and session state files.

Both live in the ``.bibsync`` directory of the working directory:

    .bibsync/config.yaml    sync settings (written by 'bibsync init')
    .bibsync/state.yaml     session flags (authenticated, initial sync done)
"""

import os
from typing import Any, Dict

import yaml

from .errors import ConfigError, ConfigNotFoundError, FilesystemError, StateError
from bibsync.sync.models import AutomationLevel, SessionState, SyncSettings

DEFAULT_CONFIG_DIR = '.bibsync'
DEFAULT_CONFIG_PATH = os.path.join(DEFAULT_CONFIG_DIR, 'config.yaml')
DEFAULT_STATE_PATH = os.path.join(DEFAULT_CONFIG_DIR, 'state.yaml')


def _read_file(path: str) -> str:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return f.read()
    except PermissionError:
        raise FilesystemError(path, 'read', 'Permission denied')
    except OSError as e:
        raise FilesystemError(path, 'read', str(e))


def _write_yaml(path: str, data: Dict[str, Any]) -> None:
    yaml_str = yaml.safe_dump(
        data,
        default_flow_style=False,
        allow_unicode=True,
        sort_keys=False
    )

    directory = os.path.dirname(path)
    if directory:
        try:
            os.makedirs(directory, exist_ok=True)
        except OSError as e:
            raise FilesystemError(directory, 'create_directory', str(e))

    try:
        with open(path, 'w', encoding='utf-8') as f:
            f.write(yaml_str)
    except PermissionError:
        raise FilesystemError(path, 'write', 'Permission denied')
    except OSError as e:
        raise FilesystemError(path, 'write', str(e))


class ConfigLoader:
    """Handles configuration file loading, validation, and saving.

    Configuration file structure:
        library_path: "./library"
        default_group: "public"
        automation_level: "semi-auto"   # manual | semi-auto | auto
        post_tag: "bibsync"
        skip_tag: "bibsync:skip"
        attachment_extensions: ["pdf"]
        max_concurrency: 5
        tolerance_seconds: 10

    Only library_path is required.
    """

    REQUIRED_FIELDS = {'library_path'}

    STRING_FIELDS = ('library_path', 'default_group', 'post_tag', 'skip_tag')

    @classmethod
    def load(cls, config_path: str = DEFAULT_CONFIG_PATH) -> SyncSettings:
        """Load and parse configuration from a YAML file.

        Raises:
            ConfigNotFoundError: If the file does not exist
            FilesystemError: If the file cannot be read
            ConfigError: If the configuration is invalid
        """
        if not os.path.exists(config_path):
            raise ConfigNotFoundError(config_path)

        content = _read_file(config_path)

        try:
            config_dict = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML syntax: {str(e)}")

        if config_dict is None:
            raise ConfigError("Configuration file is empty")

        if not isinstance(config_dict, dict):
            raise ConfigError(
                f"Configuration must be a YAML dictionary, got {type(config_dict).__name__}"
            )

        return cls._parse_config(config_dict)

    @classmethod
    def save(cls, config_path: str, settings: SyncSettings) -> None:
        """Save settings to a YAML file.

        Raises:
            FilesystemError: If the file cannot be written
        """
        _write_yaml(config_path, {
            'library_path': settings.library_path,
            'default_group': settings.default_group,
            'automation_level': settings.automation_level.value,
            'post_tag': settings.post_tag,
            'skip_tag': settings.skip_tag,
            'attachment_extensions': list(settings.attachment_extensions),
            'max_concurrency': settings.max_concurrency,
            'tolerance_seconds': settings.tolerance_seconds,
        })

    @classmethod
    def _parse_config(cls, config_dict: Dict[str, Any]) -> SyncSettings:
        """Validate a raw configuration dictionary.

        Raises:
            ConfigError: If a field is missing or has the wrong type
        """
        missing_fields = cls.REQUIRED_FIELDS - set(config_dict.keys())
        if missing_fields:
            raise ConfigError(
                f"Missing required fields: {', '.join(sorted(missing_fields))}"
            )

        defaults = SyncSettings()
        values: Dict[str, Any] = {}

        for name in cls.STRING_FIELDS:
            value = config_dict.get(name, getattr(defaults, name))
            if not isinstance(value, str) or not value.strip():
                raise ConfigError("must be a non-empty string", name)
            values[name] = value.strip()

        level = config_dict.get('automation_level', defaults.automation_level.value)
        try:
            values['automation_level'] = AutomationLevel(level)
        except ValueError:
            allowed = ', '.join(lvl.value for lvl in AutomationLevel)
            raise ConfigError(f"must be one of: {allowed}", 'automation_level')

        extensions = config_dict.get('attachment_extensions', defaults.attachment_extensions)
        if isinstance(extensions, str):
            extensions = [extensions]
        if not isinstance(extensions, list) or not all(isinstance(e, str) and e.strip() for e in extensions):
            raise ConfigError("must be a list of file extensions", 'attachment_extensions')
        values['attachment_extensions'] = [e.strip().lower().lstrip('.') for e in extensions]

        for name, minimum in (('max_concurrency', 1), ('tolerance_seconds', 0)):
            value = config_dict.get(name, getattr(defaults, name))
            if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
                raise ConfigError(f"must be an integer >= {minimum}", name)
            values[name] = value

        return SyncSettings(**values)


class StateManager:
    """Handles session state loading and saving.

    State file structure:
        authenticated: true
        initial_sync_done: false
        last_library_sync: "2024-01-15T10:30:00Z"

    A missing or empty file is a fresh state.
    """

    @classmethod
    def load(cls, state_path: str = DEFAULT_STATE_PATH) -> SessionState:
        """Load session state.

        Raises:
            FilesystemError: If the file exists but cannot be read
            StateError: If the state file is malformed
        """
        if not os.path.exists(state_path):
            return SessionState()

        content = _read_file(state_path)
        if not content.strip():
            return SessionState()

        try:
            state_dict = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise StateError(f"Invalid YAML syntax: {str(e)}")

        if state_dict is None:
            return SessionState()

        if not isinstance(state_dict, dict):
            raise StateError(
                f"State must be a YAML dictionary, got {type(state_dict).__name__}"
            )

        return cls._parse_state(state_dict)

    @classmethod
    def save(cls, state_path: str, state: SessionState) -> None:
        """Save session state.

        Raises:
            FilesystemError: If the file cannot be written
        """
        _write_yaml(state_path, {
            'authenticated': state.authenticated,
            'initial_sync_done': state.initial_sync_done,
            'last_library_sync': state.last_library_sync,
        })

    @classmethod
    def _parse_state(cls, state_dict: Dict[str, Any]) -> SessionState:
        values: Dict[str, Any] = {}
        for name in ('authenticated', 'initial_sync_done'):
            value = state_dict.get(name, False)
            if not isinstance(value, bool):
                raise StateError(f"must be true or false, got {type(value).__name__}", name)
            values[name] = value

        last_sync = state_dict.get('last_library_sync')
        if last_sync is not None and not isinstance(last_sync, str):
            raise StateError(
                f"must be a string (ISO 8601 timestamp), got {type(last_sync).__name__}",
                'last_library_sync'
            )
        values['last_library_sync'] = last_sync

        return SessionState(**values)
