"""Core types shared by every layer."""

from .config import Config, ConfigError, PipelineSettings, load_config, load_config_or_default
from .errors import ExitCode
from .result import Err, Ok, Result

__all__ = [
    # config
    "Config",
    "ConfigError",
    "PipelineSettings",
    "load_config",
    "load_config_or_default",
    # errors
    "ExitCode",
    # result
    "Err",
    "Ok",
    "Result",
]
