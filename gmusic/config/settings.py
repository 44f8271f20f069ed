"""
Configuration management for gmusic

Settings are grouped into section dataclasses and resolved in three layers:

1. Built-in defaults declared on each section
2. The first YAML file found (explicit path, ~/.gmusic/config.yaml,
   config/config.yaml, ./config.yaml)
3. GMUSIC_* environment variables, after a local .env file has been loaded

Sections:
- service: endpoints, feed page size and the wire format of full fetches
- network: user agent, timeout, proxy and spacing between requests
- stream: worker count and timeout of multi-part stream downloads
- cache: where reconciled collections are persisted
- logging: console and file output

A module-level instance is shared through get_settings(); tests and
embedding applications build their own Settings and pass it to the client.
"""

import logging
import os
import yaml
from pathlib import Path
from typing import Dict, Any, Iterator, Optional, List, Tuple
from dataclasses import asdict, dataclass, fields
from dotenv import load_dotenv

# .env values become visible to os.getenv before any Settings is built
load_dotenv()

logger = logging.getLogger(__name__)


SUPPORTED_WIRE_FORMATS = ('json', 'jsarray')

# Upper bound for concurrent segment downloads of one multi-part stream
MAX_STREAM_WORKERS = 5

# Environment variable -> (section, attribute)
ENV_OVERRIDES: Dict[str, Tuple[str, str]] = {
    'GMUSIC_PROXY': ('network', 'proxy'),
    'GMUSIC_CACHE_DIR': ('cache', 'directory'),
    'GMUSIC_LOG_LEVEL': ('logging', 'level'),
    'GMUSIC_WIRE_FORMAT': ('service', 'wire_format'),
}


@dataclass
class ServiceConfig:
    """
    Remote endpoints and feed paging

    Feed services answer with JSON documents carrying continuation tokens.
    Web services take form-encoded JSON and also serve the bracketed-array
    rows read when `wire_format` is "jsarray".
    """
    web_base_url: str = "https://play.google.com/music/services/"
    feed_base_url: str = "https://www.googleapis.com/sj/v1.4/"
    play_url: str = "https://play.google.com/music/play"
    page_size: int = 1000
    wire_format: str = "json"  # json, jsarray


@dataclass
class NetworkConfig:
    """HTTP behaviour shared by every service call"""
    user_agent: str = "Android-Music/1413 (tilapia KOT49H)"
    request_timeout: int = 30
    proxy: str = ""
    min_request_interval: float = 0.1


@dataclass
class StreamConfig:
    """Parallel byte-range download of multi-part streams"""
    max_workers: int = MAX_STREAM_WORKERS
    chunk_timeout: int = 60


@dataclass
class CacheConfig:
    """
    Library cache location

    The cache keeps the last reconciled track and playlist collections with
    their watermarks so an incremental update can continue in a new process.
    """
    directory: str = "~/.gmusic/cache"
    enabled: bool = True


@dataclass
class LoggingConfig:
    """Console and rotating file output of the `gmusic` logger"""
    level: str = "INFO"
    file: str = ""
    max_size: str = "10MB"
    backup_count: int = 3
    console_output: bool = True
    colored_output: bool = True
    show_progress: bool = False  # tqdm page counter during multi-page fetches


class Settings:
    """
    Resolved library configuration

    Attributes:
        service: ServiceConfig section
        network: NetworkConfig section
        stream: StreamConfig section
        cache: CacheConfig section
        logging: LoggingConfig section
        config_path: Explicit YAML path given by the caller, if any
        config_dir: Per-user configuration directory
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Build settings from defaults, the first YAML file found and the environment

        Args:
            config_path: YAML file searched before the default locations
        """
        self.config_path = config_path
        self.config_dir = Path.home() / ".gmusic"

        self.service = ServiceConfig()
        self.network = NetworkConfig()
        self.stream = StreamConfig()
        self.cache = CacheConfig()
        self.logging = LoggingConfig()

        self._apply_config(self._read_config_file())
        self._apply_environment()

    def _sections(self) -> Dict[str, Any]:
        return {
            'service': self.service,
            'network': self.network,
            'stream': self.stream,
            'cache': self.cache,
            'logging': self.logging,
        }

    def _candidate_paths(self) -> Iterator[Path]:
        if self.config_path:
            yield Path(self.config_path)
        yield self.config_dir / "config.yaml"
        yield Path("config") / "config.yaml"
        yield Path("config.yaml")

    def _read_config_file(self) -> Dict[str, Any]:
        """
        Read the first existing YAML file

        An unreadable file is logged and the search goes on with the next
        location, so a broken user file never prevents the library from
        starting with defaults.
        """
        for path in self._candidate_paths():
            if not path.is_file():
                continue
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    data = yaml.safe_load(f)
            except (OSError, yaml.YAMLError) as e:
                logger.warning(f"Ignoring config file {path}: {e}")
                continue
            logger.debug(f"Loaded configuration from {path}")
            return data if isinstance(data, dict) else {}
        return {}

    def _apply_config(self, config_data: Dict[str, Any]) -> None:
        """Copy known keys of known sections onto the dataclasses"""
        sections = self._sections()
        for section_name, values in config_data.items():
            section = sections.get(section_name)
            if section is None or not isinstance(values, dict):
                continue
            known = {f.name for f in fields(section)}
            for key, value in values.items():
                if key in known:
                    setattr(section, key, value)

    def _apply_environment(self) -> None:
        sections = self._sections()
        for env_var, (section_name, key) in ENV_OVERRIDES.items():
            value = os.getenv(env_var)
            if value:
                setattr(sections[section_name], key, value)

    def get_cache_directory(self) -> Path:
        """Expanded cache directory (not created here)"""
        return Path(self.cache.directory).expanduser()

    def get_config_directory(self) -> Path:
        return self.config_dir

    def get_proxies(self) -> Optional[Dict[str, str]]:
        """
        Proxy mapping in the shape requests expects

        Returns:
            The same proxy for both schemes, None when no proxy is configured
        """
        if not self.network.proxy:
            return None
        return {'http': self.network.proxy, 'https': self.network.proxy}

    def save_config(self, path: Optional[str] = None) -> None:
        """
        Write every section to a YAML file

        Args:
            path: Target file, ~/.gmusic/config.yaml when omitted

        Raises:
            OSError: If the file cannot be written
        """
        target = Path(path) if path else self.get_config_directory() / "config.yaml"
        config_data = {name: asdict(section) for name, section in self._sections().items()}

        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, 'w', encoding='utf-8') as f:
            yaml.safe_dump(config_data, f, default_flow_style=False, indent=2)

    def get_validation_errors(self) -> List[str]:
        """
        Check values that would make fetches or downloads misbehave

        Returns:
            One message per problem, empty when the settings are usable
        """
        errors = []
        service = self.service

        if service.wire_format not in SUPPORTED_WIRE_FORMATS:
            errors.append(
                f"Unsupported wire format '{service.wire_format}' "
                f"(expected one of {', '.join(SUPPORTED_WIRE_FORMATS)})"
            )
        if not isinstance(service.page_size, int) or service.page_size <= 0:
            errors.append(f"Page size must be a positive integer, got {service.page_size!r}")
        if not 1 <= self.stream.max_workers <= MAX_STREAM_WORKERS:
            errors.append(f"Stream workers must be between 1 and {MAX_STREAM_WORKERS}, "
                          f"got {self.stream.max_workers}")
        if self.network.request_timeout <= 0:
            errors.append(f"Request timeout must be positive, got {self.network.request_timeout}")

        return errors

    def validate(self) -> bool:
        """Log every configuration problem; True when there is none"""
        errors = self.get_validation_errors()
        for error in errors:
            logger.warning(f"Invalid configuration: {error}")
        return not errors

    def __str__(self) -> str:
        cache = self.cache.directory if self.cache.enabled else 'disabled'
        return (f"Settings(wire_format={self.service.wire_format}, page_size={self.service.page_size}, "
                f"stream_workers={self.stream.max_workers}, cache={cache})")


# Shared instance returned by get_settings()
settings = Settings()


def get_settings() -> Settings:
    """Shared settings instance"""
    return settings


def reload_settings(config_path: Optional[str] = None) -> Settings:
    """
    Rebuild the shared settings instance

    Args:
        config_path: Optional explicit YAML file

    Returns:
        The new shared instance
    """
    global settings
    settings = Settings(config_path)
    return settings
