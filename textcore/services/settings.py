"""
Application settings management.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Any, Optional


@dataclass
class SourceSettings:
    """Settings for memory-mapped text sources."""
    chunk_size_bytes: int = 65536
    cache_capacity: int = 64
    scan_batch_size: int = 16           # Chunks per deferred scan step
    normalize_line_endings: bool = False

    # Smallest accepted value per field
    MINIMUMS = {
        'chunk_size_bytes': 16,
        'cache_capacity': 1,
        'scan_batch_size': 1,
    }


@dataclass
class DiffSettings:
    """Settings for text comparison."""
    char_diff_line_threshold: int = 1000
    char_diff_max_cost: int = 4_000_000
    compute_char_diffs: bool = True

    MINIMUMS = {
        'char_diff_line_threshold': 0,
        'char_diff_max_cost': 0,
    }


@dataclass
class SubstitutionSettings:
    """Settings for sed-style substitution."""
    timeout_seconds: float = 5.0

    MINIMUMS = {
        'timeout_seconds': 0.001,
    }


@dataclass
class ApplicationSettings:
    """Main application settings container."""
    source: SourceSettings = field(default_factory=SourceSettings)
    diff: DiffSettings = field(default_factory=DiffSettings)
    substitution: SubstitutionSettings = field(default_factory=SubstitutionSettings)

    def to_dict(self) -> dict:
        """Plain dictionary form, as stored in the settings file."""
        return asdict(self)


class SettingsManager:
    """Manager for loading application settings."""

    def __init__(self, settings_path: Optional[Path] = None):
        self.settings_path = Path(settings_path) if settings_path else self._get_default_path()
        self._settings: Optional[ApplicationSettings] = None

    @staticmethod
    def _get_default_path() -> Path:
        """Get the default settings file path."""
        if os.name == 'nt':
            # Windows
            app_data = os.environ.get('APPDATA', os.path.expanduser('~'))
            return Path(app_data) / 'textcore' / 'settings.json'
        else:
            # Linux/Mac
            config_home = os.environ.get('XDG_CONFIG_HOME',
                                         os.path.expanduser('~/.config'))
            return Path(config_home) / 'textcore' / 'settings.json'

    @property
    def settings(self) -> ApplicationSettings:
        """Get current settings, loading from disk if needed."""
        if self._settings is None:
            self._settings = self.load()
        return self._settings

    def load(self) -> ApplicationSettings:
        """Load settings from disk, falling back to defaults."""
        if not self.settings_path.exists():
            logging.debug(f"SettingsManager - No settings at {self.settings_path}, using defaults")
            return ApplicationSettings()

        try:
            with open(self.settings_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logging.warning(f"SettingsManager - Could not read {self.settings_path}: {e}")
            return ApplicationSettings()

        if not isinstance(data, dict):
            logging.warning(f"SettingsManager - Ignoring non-object settings in {self.settings_path}")
            return ApplicationSettings()

        return self._from_dict(data)

    def reload(self) -> ApplicationSettings:
        """Drop cached settings and read them again."""
        self._settings = self.load()
        return self._settings

    def _from_dict(self, data: dict) -> ApplicationSettings:
        """Convert dictionary back to settings objects."""
        return ApplicationSettings(
            source=self._section(SourceSettings, data.get('source')),
            diff=self._section(DiffSettings, data.get('diff')),
            substitution=self._section(SubstitutionSettings, data.get('substitution')),
        )

    def _section(self, section_class: type, values: Any):
        """Build one settings section, keeping defaults for bad values."""
        defaults = section_class()
        if not isinstance(values, dict):
            return defaults

        minimums = section_class.MINIMUMS
        kwargs = {}
        for f in fields(section_class):
            if f.name not in values:
                continue
            value = values[f.name]
            default = getattr(defaults, f.name)
            if not self._is_valid(value, default, minimums.get(f.name)):
                logging.warning(
                    f"SettingsManager - Invalid value {value!r} for "
                    f"{section_class.__name__}.{f.name}, using {default!r}"
                )
                continue
            kwargs[f.name] = float(value) if isinstance(default, float) else value

        return section_class(**kwargs)

    @staticmethod
    def _is_valid(value: Any, default: Any, minimum: Any) -> bool:
        """Check a loaded value against the type and bound of its default."""
        if isinstance(default, bool):
            return isinstance(value, bool)
        if isinstance(value, bool):
            return False
        if isinstance(default, int):
            if not isinstance(value, int):
                return False
        elif isinstance(default, float):
            if not isinstance(value, (int, float)):
                return False
        else:
            return isinstance(value, type(default))
        return minimum is None or value >= minimum
