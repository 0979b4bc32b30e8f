"""
Subcommands for hass-ecowitt-proxy.

Each module exposes ``register(subparsers, parents)`` and ``execute(args) -> int``.
"""

import sys

from ...config import ConfigError, ServerOptions, load_options


def add_server_flags(parser) -> None:
    """Flags that feed ServerOptions. Defaults are None so lower layers can fill in."""
    parser.add_argument('-l', '--listen_address', dest='address', metavar='ADDR',
                        help='Address to listen on (default: all interfaces)')
    parser.add_argument('-p', '--port', help='Port to listen on (default: 8181)')
    parser.add_argument('-u', '--hass_url', help='Home Assistant base URL, e.g. http://homeassistant.local:8123')
    parser.add_argument('-a', '--hass_auth_token', help='Home Assistant long-lived access token')
    parser.add_argument('-w', '--hass_webhook_id', help='Home Assistant webhook id')
    parser.add_argument('-t', '--forward_timeout', metavar='SECONDS',
                        help='Timeout for the call to Home Assistant (default: 30, 0 disables)')


def resolve_options(args, environ=None) -> ServerOptions:
    """
    Resolve ServerOptions from parsed arguments.

    Raises:
        ConfigError: when the configuration is incomplete or invalid
    """
    flags = {
        name: getattr(args, name, None)
        for name in ('address', 'port', 'hass_url', 'hass_auth_token', 'hass_webhook_id',
                     'forward_timeout', 'loglevel', 'output')
    }
    return load_options(flags, environ=environ, config_file=getattr(args, 'config', None))


def print_config_error(err: ConfigError) -> None:
    print("Error: invalid configuration", file=sys.stderr)
    for problem in err.problems:
        print(f"  - {problem}", file=sys.stderr)
