import logging

"""
Disable logging for the library by default
Users of the library can configure logging as needed,
for example by calling libfattura.config.setup_logging()
"""

log = logging.getLogger(__name__)

log.addHandler(logging.NullHandler())
