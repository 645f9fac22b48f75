"""
Configuration management for Stratforecast.
"""

import os
import copy
import yaml
import toml
import json
from pathlib import Path
from typing import Dict, Any, Optional
from pydantic import BaseModel, Field

from .constants import CONFIG_FILES, DEFAULT_CONFIG
from .utils import logger, merge_dicts


class PredictionConfig(BaseModel):
    """Tunables for the operation prediction engine."""
    default_owner_performance: float = Field(default=0.7, ge=0.0, le=1.0)
    similar_operations_limit: int = Field(default=5, ge=0)
    default_velocity: float = Field(default=2.0, gt=0.0)  # % progress per day
    min_velocity: float = Field(default=0.5, gt=0.0)


class AnalyticsConfig(BaseModel):
    """Tunables for milestone analytics."""
    upcoming_window_days: int = Field(default=7, ge=0)
    risk_window_days: int = Field(default=30, ge=0)
    trend_months: int = Field(default=6, ge=1)
    overallocation_threshold: int = Field(default=5, ge=0)
    delayed_ratio_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    critical_list_size: int = Field(default=5, ge=0)


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = Field(default="INFO")


class StratforecastConfig(BaseModel):
    """Main configuration model."""
    prediction: PredictionConfig = Field(default_factory=PredictionConfig)
    analytics: AnalyticsConfig = Field(default_factory=AnalyticsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class Config:
    """Configuration manager for Stratforecast."""

    def __init__(self, config_file: Optional[str] = None):
        self.config_file = config_file
        self.config_data = self._load_config()
        self.config = StratforecastConfig(**self.config_data)
        self._apply_environment_overrides()

    @property
    def prediction(self) -> PredictionConfig:
        return self.config.prediction

    @property
    def analytics(self) -> AnalyticsConfig:
        return self.config.analytics

    def _find_config_file(self) -> Optional[Path]:
        """Find configuration file in current directory or parent directories."""
        current_dir = Path.cwd()

        for parent in [current_dir] + list(current_dir.parents):
            for config_name in CONFIG_FILES:
                config_path = parent / config_name
                if config_path.exists():
                    logger.debug(f"Found config file: {config_path}")
                    return config_path

        return None

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from file."""
        config = copy.deepcopy(DEFAULT_CONFIG)

        if self.config_file:
            config_path = Path(self.config_file)
        else:
            config_path = self._find_config_file()

        if not config_path or not config_path.exists():
            logger.debug("No config file found, using defaults")
            return config

        try:
            if config_path.suffix in ['.yaml', '.yml']:
                with open(config_path, 'r') as f:
                    file_config = yaml.safe_load(f) or {}
            elif config_path.suffix == '.toml':
                with open(config_path, 'r') as f:
                    file_config = toml.load(f)
            elif config_path.suffix == '.json':
                with open(config_path, 'r') as f:
                    file_config = json.load(f)
            else:
                logger.warning(f"Unknown config file format: {config_path}")
                return config

            config = merge_dicts(config, file_config)
            logger.debug(f"Loaded config from: {config_path}")

        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.error(f"Error loading config file: {e}")

        return config

    def _apply_environment_overrides(self):
        """Apply environment variable overrides to configuration."""
        log_level = os.getenv('STRATFORECAST_LOG_LEVEL')
        if log_level:
            self.config.logging.level = log_level

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by dot-notation key."""
        keys = key.split('.')
        value = self.config_data

        try:
            for k in keys:
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any):
        """Set configuration value by dot-notation key."""
        keys = key.split('.')
        config_dict = self.config_data

        for k in keys[:-1]:
            if k not in config_dict:
                config_dict[k] = {}
            config_dict = config_dict[k]

        config_dict[keys[-1]] = value

        # Recreate config object so validation runs on the new value
        self.config = StratforecastConfig(**self.config_data)

    def save(self, path: Optional[str] = None) -> Path:
        """Save configuration to file."""
        if path:
            save_path = Path(path)
        else:
            save_path = Path(self.config_file or '.stratforecast.yaml')

        if save_path.suffix in ['.yaml', '.yml']:
            with open(save_path, 'w') as f:
                yaml.dump(self.config_data, f, default_flow_style=False)
        elif save_path.suffix == '.toml':
            with open(save_path, 'w') as f:
                toml.dump(self.config_data, f)
        elif save_path.suffix == '.json':
            with open(save_path, 'w') as f:
                json.dump(self.config_data, f, indent=2)
        else:
            # Default to YAML
            save_path = save_path.with_suffix('.yaml')
            with open(save_path, 'w') as f:
                yaml.dump(self.config_data, f, default_flow_style=False)

        logger.info(f"Configuration saved to: {save_path}")
        return save_path

    def validate(self) -> bool:
        """Validate configuration."""
        try:
            StratforecastConfig(**self.config_data)
            return True
        except ValueError as e:
            logger.error(f"Configuration validation failed: {e}")
            return False

    @classmethod
    def create_default(cls, path: str = '.stratforecast.yaml') -> 'Config':
        """Create a default configuration file."""
        config = cls(config_file=None)
        config.config_data = copy.deepcopy(DEFAULT_CONFIG)
        config.config = StratforecastConfig(**config.config_data)
        config.save(path)
        return config
