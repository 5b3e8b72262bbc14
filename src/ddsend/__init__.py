"""
Python logging handler that batches logs and sends them to the Datadog HTTP intake.
"""

from .config import DATADOG_EU_HOST, DATADOG_US_HOST, HookConfig, Options, load_config
from .encoder import JSONLineEncoder, TextLineEncoder
from .errors import ConfigError, DDSendError, EncodingError
from .handler import DatadogHandler

__version__ = "0.1.0"
__all__ = [
    "DatadogHandler",
    "HookConfig",
    "Options",
    "load_config",
    "JSONLineEncoder",
    "TextLineEncoder",
    "DDSendError",
    "EncodingError",
    "ConfigError",
    "DATADOG_US_HOST",
    "DATADOG_EU_HOST",
]
