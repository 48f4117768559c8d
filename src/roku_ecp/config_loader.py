"""
Configuration loader for the ECP command bridge
Loads and validates configuration from YAML files
"""

import yaml
import logging
from typing import Dict, Any
from pathlib import Path
from datetime import datetime
import pytz

from .constants import DEFAULT_ECP_PORT, ST_ECP

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/config.yaml"

def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """
    Load configuration from YAML file with validation
    """
    try:
        config_file = Path(config_path)
        if not config_file.exists():
            logger.error(f"Configuration file not found: {config_path}")
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_file, 'r') as f:
            config = yaml.safe_load(f) or {}

        # Validate required sections
        _validate_config(config)

        # Apply defaults
        config = _apply_defaults(config)

        logger.info(f"Configuration loaded from {config_path}")
        return config

    except Exception as e:
        logger.error(f"Failed to load configuration: {e}")
        raise

def _validate_port(value: Any, name: str) -> None:
    if not isinstance(value, int) or isinstance(value, bool) or not 1 <= value <= 65535:
        raise ValueError(f"{name} must be a port number between 1 and 65535")

def _validate_config(config: Dict) -> None:
    """Validate that required configuration sections exist"""
    if not isinstance(config, dict):
        raise ValueError("Configuration must be a mapping")

    if 'device' not in config or not isinstance(config['device'], dict):
        raise ValueError("Missing required configuration section: device")

    # The device host may only be left out when discovery or the local emulator supplies it
    device = config['device']
    discovery_enabled = (config.get('discovery') or {}).get('enabled', False)
    emulator_enabled = (config.get('emulator') or {}).get('enabled', False)
    if not device.get('host') and not (discovery_enabled or emulator_enabled):
        raise ValueError("device.host is required unless discovery or the emulator is enabled")

    if 'port' in device:
        _validate_port(device['port'], "device.port")

    for section in ('bridge', 'proxy', 'emulator'):
        section_config = config.get(section) or {}
        if 'port' in section_config:
            _validate_port(section_config['port'], f"{section}.port")

    client = config.get('client') or {}
    if client.get('retry_attempts', 0) < 0:
        raise ValueError("client.retry_attempts must be >= 0")

    discovery = config.get('discovery') or {}
    if discovery.get('rounds', 1) < 1:
        raise ValueError("discovery.rounds must be >= 1")

    aliases = config.get('app_aliases')
    if aliases is not None and not isinstance(aliases, dict):
        raise ValueError("app_aliases must be a mapping of name to app id")

def _fill(config: Dict, section: str, defaults: Dict) -> None:
    if not isinstance(config.get(section), dict):
        config[section] = {}
    for key, default_value in defaults.items():
        if key not in config[section]:
            config[section][key] = default_value

def _apply_defaults(config: Dict) -> Dict:
    """Apply default values to configuration"""

    # Device defaults
    _fill(config, 'device', {
        'host': None,
        'port': DEFAULT_ECP_PORT
    })

    # Device client defaults
    _fill(config, 'client', {
        'timeout_seconds': 10,
        'retry_attempts': 0,
        'retry_delay_seconds': 0.2
    })

    # SSDP discovery defaults
    _fill(config, 'discovery', {
        'enabled': False,
        'timeout_seconds': 2,
        'rounds': 1,
        'service_type': ST_ECP
    })

    # Command bridge defaults
    _fill(config, 'bridge', {
        'host': '127.0.0.1',
        'port': 19839,
        'token': None,
        'health_probe_timeout_seconds': 2
    })

    # Reverse proxy defaults
    _fill(config, 'proxy', {
        'enabled': False,
        'host': '0.0.0.0',
        'port': DEFAULT_ECP_PORT
    })

    # Emulator defaults
    _fill(config, 'emulator', {
        'enabled': False,
        'host': '0.0.0.0',
        'port': DEFAULT_ECP_PORT,
        'ssdp': True
    })

    # Logging defaults
    _fill(config, 'logging', {
        'level': 'INFO',
        'file': None,
        'console_output': True,
        'timezone': 'UTC'
    })

    if not config.get('app_aliases'):
        config['app_aliases'] = {}

    return config


class TimezoneFormatter(logging.Formatter):
    """Formatter that renders timestamps in a configured time zone"""

    def __init__(self, fmt=None, timezone: str = 'UTC'):
        super().__init__(fmt)
        self.tz = pytz.timezone(timezone)

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, tz=self.tz)
        if datefmt:
            return dt.strftime(datefmt)
        else:
            # Default format: YYYY-MM-DD HH:MM:SS TZ
            return dt.strftime('%Y-%m-%d %H:%M:%S %Z')

def setup_logging(config: Dict) -> None:
    """Setup logging based on configuration with zone-aware timestamps"""
    log_config = config.get('logging', {})
    level = log_config.get('level', 'INFO')
    timezone = log_config.get('timezone', 'UTC')

    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = TimezoneFormatter(log_format, timezone)

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper()))
    for handler in list(root.handlers):
        root.removeHandler(handler)

    # Console handler
    if log_config.get('console_output', True):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    # File handler
    log_file = log_config.get('file')
    if log_file:
        # Create logs directory if it doesn't exist
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    logger.info(f"Logging configured: level={level}, timezone={timezone}, console={log_config.get('console_output', True)}, file={log_file}")

def get_sample_config() -> Dict:
    """Return a sample configuration for reference"""
    return {
        "device": {
            "host": "192.168.1.50",
            "port": 8060
        },
        "client": {
            "timeout_seconds": 10,
            "retry_attempts": 2,
            "retry_delay_seconds": 0.2
        },
        "discovery": {
            "enabled": False,     # true: take the device from the first SSDP responder
            "timeout_seconds": 2,
            "rounds": 1,
            "service_type": "roku:ecp"
        },
        "bridge": {
            "host": "127.0.0.1",
            "port": 19839,
            "token": "change-me",
            "health_probe_timeout_seconds": 2
        },
        "proxy": {
            "enabled": False,
            "host": "0.0.0.0",
            "port": 8060
        },
        "emulator": {
            "enabled": False,
            "host": "0.0.0.0",
            "port": 8060,
            "ssdp": True
        },
        "logging": {
            "level": "INFO",
            "file": "logs/roku_bridge.log",
            "console_output": True,
            "timezone": "America/New_York"
        },
        "app_aliases": {
            "netflix": "12",
            "plex": "13535"
        }
    }
