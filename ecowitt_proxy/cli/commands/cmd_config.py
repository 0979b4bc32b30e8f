"""
hass-ecowitt-proxy config - Show the resolved configuration

Values are resolved exactly as `serve` would resolve them. The auth token is
masked.
"""

from ...config import ConfigError
from . import add_server_flags, print_config_error, resolve_options


def register(subparsers, parents=()):
    """Register the config command with argparse."""
    parser = subparsers.add_parser(
        'config',
        parents=list(parents),
        help='Show the resolved configuration',
        description='Print the configuration serve would run with (flags > env > config file > defaults)'
    )
    add_server_flags(parser)


def _print_section_header(title: str) -> None:
    print("\n" + title)
    print("-" * len(title))


def execute(args) -> int:
    """Execute the config command."""
    try:
        options = resolve_options(args)
    except ConfigError as e:
        print_config_error(e)
        return 1

    _print_section_header("hass-ecowitt-proxy configuration")
    for key, value in options.to_display_dict().items():
        if value is None or value == "":
            value = "(not set)"
        print(f"{key:18s} {value}")
    return 0
