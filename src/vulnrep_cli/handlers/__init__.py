# vulnrep_cli/handlers/__init__.py

import logging

# Common logger for all handlers
logger = logging.getLogger("vulnrep-cli")

# Import handlers
from .convert import handle_convert
from .validate import handle_validate

__all__ = [
    'handle_convert',
    'handle_validate',
]
