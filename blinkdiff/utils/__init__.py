"""Cross-cutting utilities (lowest dependency layer).

This package provides shared primitives for:
    - Config validation (validators)
    - Color science and color distance (color)
    - Rectangle normalization (regions)
    - Atomic I/O (fs)
    - Profiling (profiler)
    - Unified logging (logging_config)

No module in utils/ may import from upper layers (imaging, diff, cli).

Convenience imports:
    from blinkdiff.utils import fs, color, validators
    from blinkdiff.utils.logging_config import setup_logging, get_logger
"""

# Re-export commonly used modules for convenience
from . import color
from . import fs
from . import logging_config
from . import profiler
from . import regions
from . import validators

# Common functions for direct import
from .logging_config import get_logger, push_context, setup_logging

__all__ = [
    # Modules
    'color',
    'fs',
    'logging_config',
    'profiler',
    'regions',
    'validators',
    # Direct exports
    'setup_logging',
    'get_logger',
    'push_context',
]
