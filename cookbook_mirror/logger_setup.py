"""
Logger setup and configuration.
"""

import logging
import logging.config
import sys
from pathlib import Path
import yaml


DEFAULT_LOG_FILE = "logs/cookbook_mirror.log"


class BrokenPipeHandler(logging.StreamHandler):
    """Console handler that exits quietly when stdout is closed."""

    def emit(self, record):
        try:
            super().emit(record)
        except BrokenPipeError:
            # Output piped to head/less and the reader went away
            sys.exit(0)
        except OSError as e:
            if e.errno == 32:  # Broken pipe
                sys.exit(0)
            else:
                raise


def build_logging_config(level=logging.INFO, log_file: str = DEFAULT_LOG_FILE) -> dict:
    """Return the default dictConfig used when no logging config file is given."""
    return {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'standard': {
                'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S'
            },
            'detailed': {
                'format': '%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S'
            }
        },
        'handlers': {
            'console': {
                'level': level,
                'class': 'cookbook_mirror.logger_setup.BrokenPipeHandler',
                'formatter': 'standard',
                'stream': 'ext://sys.stdout'
            },
            'file': {
                'level': 'DEBUG',
                'class': 'logging.handlers.RotatingFileHandler',
                'formatter': 'detailed',
                'filename': log_file,
                'maxBytes': 10485760,  # 10MB
                'backupCount': 5,
                'encoding': 'utf-8'
            }
        },
        'loggers': {
            '': {  # root logger
                'handlers': ['console', 'file'],
                'level': level,
                'propagate': False
            }
        }
    }


def setup_logging(level=logging.INFO, log_file: str = DEFAULT_LOG_FILE, config_file=None):
    """Setup logging configuration.

    Args:
        level: Console and root logger level
        log_file: Rotating log file location; its directory is created if needed
        config_file: Optional YAML dictConfig file that replaces the defaults
    """
    if config_file and Path(config_file).exists():
        with open(config_file, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f)
        logging.config.dictConfig(config)
    else:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logging.config.dictConfig(build_logging_config(level, log_file))

    # Console level always follows the requested level
    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        if isinstance(handler, BrokenPipeHandler):
            handler.setLevel(level)
