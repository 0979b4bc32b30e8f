"""
hass-ecowitt-proxy serve - Run the proxy server
"""

import logging

from ... import SERVICE_NAME, __version__
from ...config import ConfigError
from ...logging_utils import setup_json_logging
from ...server import create_app, run_server, setup_signal_handlers
from . import add_server_flags, print_config_error, resolve_options

logger = logging.getLogger(__name__)


def register(subparsers, parents=()):
    """Register the serve command."""
    parser = subparsers.add_parser(
        'serve',
        parents=list(parents),
        help='Run the proxy server',
        description='Accept Ecowitt uploads and forward them to a Home Assistant webhook'
    )
    add_server_flags(parser)


def execute(args) -> int:
    """Execute the serve command."""
    try:
        options = resolve_options(args)
    except ConfigError as e:
        print_config_error(e)
        return 1

    setup_json_logging(SERVICE_NAME, __version__, level=options.loglevel, output=options.output)
    if options.config_file:
        logger.info(f"Using config file: {options.config_file}")

    app = create_app(options)
    setup_signal_handlers(app)

    try:
        run_server(app)
    except OSError as e:
        logger.error(f"Could not listen on {options.listen_addr}: {e}")
        return 1
    return 0
