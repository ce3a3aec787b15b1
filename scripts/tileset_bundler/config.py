"""
Configuration management for the tile set bundler.
Supports TOML and JSON configuration files with validation.
"""

import os
import json
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional, Union
from pathlib import Path

import toml

from .errors import ConfigurationError
from .processing.metadata import MetadataFormat
from .processing.packer import PACKERS, Packer, create_packer

ENV_PREFIX = "TILESET_BUNDLER_"


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass(frozen=True)
class BundleConfig:
    """
    Options of a bundle build.

    Instances are immutable; overrides produce new instances.
    """

    # Bundle settings
    trim_images: bool = True
    use_raw_images: bool = True

    # Packing settings
    packer: str = "strip"
    strip_width: int = 1024
    tree_padding: int = 0
    packer_factory: Optional[Callable[[], Packer]] = None

    # Output settings
    metadata_format: MetadataFormat = MetadataFormat.BINARY
    compression_level: int = 6
    max_workers: int = 1

    # Paths
    image_base: Optional[str] = None
    id_store: Optional[str] = None

    @classmethod
    def from_file(cls, config_path: Union[str, Path]) -> "BundleConfig":
        """Load configuration from TOML or JSON file."""
        config_path = Path(config_path)

        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        if config_path.suffix.lower() == '.toml':
            return cls._from_toml(config_path)
        elif config_path.suffix.lower() == '.json':
            return cls._from_json(config_path)
        else:
            raise ConfigurationError(f"Unsupported configuration format: {config_path.suffix}")

    @classmethod
    def _from_toml(cls, config_path: Path) -> "BundleConfig":
        try:
            data = toml.load(config_path)
        except toml.TomlDecodeError as e:
            raise ConfigurationError(f"Invalid TOML in {config_path}: {e}")
        return cls._from_dict(data)

    @classmethod
    def _from_json(cls, config_path: Path) -> "BundleConfig":
        with open(config_path, 'r') as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"Invalid JSON in {config_path}: {e}")
        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "BundleConfig":
        """Create configuration from dictionary."""
        config_data: Dict[str, Any] = {}

        if 'bundle' in data:
            bundle = data['bundle']
            config_data['trim_images'] = bool(bundle.get('trim_images', True))
            config_data['use_raw_images'] = bool(bundle.get('use_raw_images', True))

        if 'packing' in data:
            packing = data['packing']
            config_data['packer'] = packing.get('packer', 'strip')
            config_data['strip_width'] = int(packing.get('strip_width', 1024))
            config_data['tree_padding'] = int(packing.get('tree_padding', 0))

        if 'output' in data:
            output = data['output']
            config_data['metadata_format'] = cls._parse_format(output.get('metadata_format', 'binary'))
            config_data['compression_level'] = int(output.get('compression_level', 6))
            config_data['max_workers'] = int(output.get('max_workers', 1))

        if 'paths' in data:
            paths = data['paths']
            config_data['image_base'] = paths.get('image_base')
            config_data['id_store'] = paths.get('id_store')

        return cls(**config_data)

    @staticmethod
    def _parse_format(value: Union[str, MetadataFormat]) -> MetadataFormat:
        try:
            return MetadataFormat(str(value).lower())
        except ValueError:
            choices = ", ".join(f.value for f in MetadataFormat)
            raise ConfigurationError(f"Unknown metadata format '{value}' (expected one of: {choices})")

    @classmethod
    def default(cls) -> "BundleConfig":
        """Create default configuration with environment variable overrides."""
        return cls._apply_env_overrides(cls())

    @classmethod
    def _apply_env_overrides(cls, config: "BundleConfig") -> "BundleConfig":
        """Return a copy of ``config`` with TILESET_BUNDLER_* variables applied."""
        overrides: Dict[str, Any] = {}

        if os.getenv(ENV_PREFIX + 'TRIM_IMAGES'):
            overrides['trim_images'] = _env_bool(os.environ[ENV_PREFIX + 'TRIM_IMAGES'])

        if os.getenv(ENV_PREFIX + 'USE_RAW_IMAGES'):
            overrides['use_raw_images'] = _env_bool(os.environ[ENV_PREFIX + 'USE_RAW_IMAGES'])

        if os.getenv(ENV_PREFIX + 'PACKER'):
            overrides['packer'] = os.environ[ENV_PREFIX + 'PACKER']

        try:
            if os.getenv(ENV_PREFIX + 'STRIP_WIDTH'):
                overrides['strip_width'] = int(os.environ[ENV_PREFIX + 'STRIP_WIDTH'])

            if os.getenv(ENV_PREFIX + 'COMPRESSION_LEVEL'):
                overrides['compression_level'] = int(os.environ[ENV_PREFIX + 'COMPRESSION_LEVEL'])

            if os.getenv(ENV_PREFIX + 'MAX_WORKERS'):
                overrides['max_workers'] = int(os.environ[ENV_PREFIX + 'MAX_WORKERS'])
        except ValueError as e:
            raise ConfigurationError(f"Invalid integer in environment override: {e}")

        if os.getenv(ENV_PREFIX + 'METADATA_FORMAT'):
            overrides['metadata_format'] = cls._parse_format(os.environ[ENV_PREFIX + 'METADATA_FORMAT'])

        if os.getenv(ENV_PREFIX + 'IMAGE_BASE'):
            overrides['image_base'] = os.environ[ENV_PREFIX + 'IMAGE_BASE']

        if os.getenv(ENV_PREFIX + 'ID_STORE'):
            overrides['id_store'] = os.environ[ENV_PREFIX + 'ID_STORE']

        return replace(config, **overrides) if overrides else config

    def with_overrides(self, **changes) -> "BundleConfig":
        """Return a copy with the non-None ``changes`` applied."""
        changes = {key: value for key, value in changes.items() if value is not None}
        if 'metadata_format' in changes:
            changes['metadata_format'] = self._parse_format(changes['metadata_format'])
        return replace(self, **changes)

    def create_packer(self) -> Packer:
        """Instantiate the packer this configuration selects."""
        if self.packer_factory is not None:
            return self.packer_factory()
        if self.packer == "strip":
            return create_packer("strip", max_width=self.strip_width)
        return create_packer(self.packer, padding=self.tree_padding)

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if self.packer_factory is None and self.packer not in PACKERS:
            errors.append(f"packer must be one of: {', '.join(sorted(PACKERS))}")

        if self.strip_width <= 0:
            errors.append("strip_width must be positive")

        if self.tree_padding < 0:
            errors.append("tree_padding must not be negative")

        if not 0 <= self.compression_level <= 9:
            errors.append("compression_level must be between 0 and 9")

        if self.max_workers < 1:
            errors.append("max_workers must be at least 1")

        if not isinstance(self.metadata_format, MetadataFormat):
            errors.append("metadata_format must be binary, json or toml")

        if self.image_base is not None and not Path(self.image_base).is_dir():
            errors.append(f"image_base does not exist: {self.image_base}")

        return errors
