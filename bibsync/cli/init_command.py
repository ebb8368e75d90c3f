"""InitCommand for configuration initialization.

This module implements 'bibsync init', which points the tool at a library
directory and writes the .bibsync/config.yaml file.
"""

import logging
import os
from typing import Optional

from bibsync.library.yaml_library import YamlLibrary
from bibsync.sync.models import AutomationLevel, SyncSettings
from .config import DEFAULT_CONFIG_PATH, ConfigLoader
from .errors import InitError

logger = logging.getLogger(__name__)


class InitCommand:
    """Handles initialization of sync configuration.

    The library directory is created if needed, along with an empty
    library.yaml, so that 'bibsync sync-library' works right after init.

    Example:
        >>> init = InitCommand()
        >>> init.run(library_path="./library", group="public", automation_level="semi-auto")
    """

    def __init__(self, config_path: Optional[str] = None):
        """Initialize the init command.

        Args:
            config_path: Optional config file path (defaults to .bibsync/config.yaml)
        """
        self.config_path = config_path or DEFAULT_CONFIG_PATH

    def _parse_level(self, automation_level: str) -> AutomationLevel:
        try:
            return AutomationLevel(automation_level)
        except ValueError:
            allowed = ', '.join(level.value for level in AutomationLevel)
            raise InitError(f"Invalid automation level '{automation_level}', expected one of: {allowed}")

    def run(
        self,
        library_path: str,
        group: str = "public",
        automation_level: str = AutomationLevel.SEMI_AUTO.value,
    ) -> SyncSettings:
        """Write the configuration file.

        Args:
            library_path: Directory of the local library
            group: BibSonomy group new posts are visible to
            automation_level: One of manual, semi-auto, auto

        Returns:
            The settings that were written

        Raises:
            InitError: If the arguments are invalid or the library cannot be prepared
        """
        if not library_path or not library_path.strip():
            raise InitError("Library path cannot be empty")
        if not group or not group.strip():
            raise InitError("Group cannot be empty")

        level = self._parse_level(automation_level)

        if os.path.exists(library_path) and not os.path.isdir(library_path):
            raise InitError(f"Library path is not a directory: {library_path}")

        library = YamlLibrary.open(library_path)
        if not os.path.exists(library.library_path):
            logger.info(f"Creating empty library at {library.library_path}")
            library.save()

        settings = SyncSettings(
            library_path=library_path,
            default_group=group.strip(),
            automation_level=level,
        )
        ConfigLoader.save(self.config_path, settings)
        logger.info(f"Wrote configuration to {self.config_path}")
        return settings
