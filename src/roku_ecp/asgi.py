"""
ASGI entry point for uvicorn
Exposes the command bridge app for the uvicorn command line:

    CONFIG_FILE=config/config.yaml uvicorn roku_ecp.asgi:app --port 19839
"""

import logging
import os

from .bridge import CommandBridge
from .config_loader import DEFAULT_CONFIG_PATH, load_config, setup_logging
from .device import DeviceClient

# Load configuration
config = load_config(os.environ.get('CONFIG_FILE', DEFAULT_CONFIG_PATH))
setup_logging(config)

logger = logging.getLogger(__name__)

if not config['device'].get('host'):
    raise RuntimeError("device.host must be configured when serving through uvicorn")

client = DeviceClient.from_config(config)

# The bridge lifespan starts the command queue and closes the client
bridge = CommandBridge(client, config, owns_client=True)

# Expose the FastAPI app for uvicorn
app = bridge.app

logger.info("ASGI app ready for uvicorn")
