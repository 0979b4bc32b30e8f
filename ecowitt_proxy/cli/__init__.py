#!/usr/bin/env python3
"""
hass-ecowitt-proxy command line.

Usage
  hass-ecowitt-proxy serve -u http://homeassistant.local:8123 -a TOKEN -w WEBHOOK_ID
  hass-ecowitt-proxy config [--config FILE]
  hass-ecowitt-proxy status [--url http://localhost:8181]

Global flags (--config, --output, --loglevel) may be given before or after the
command.
"""

import argparse
import sys

from .. import __version__
from ..logging_utils import log_level_names
from .commands import cmd_config, cmd_serve, cmd_status

COMMANDS = {
    'serve': cmd_serve,
    'status': cmd_status,
    'config': cmd_config,
}


def _global_flags(suppress: bool) -> argparse.ArgumentParser:
    # Subcommand copies use SUPPRESS so they don't clobber values given before the command
    default = argparse.SUPPRESS if suppress else None
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument('--config', default=default, metavar='FILE',
                        help='Config file (default: ~/.hass-ecowitt-proxy.yaml)')
    parser.add_argument('-o', '--output', default=default, metavar='TARGET',
                        help='Log output: stdout, stderr or a filename (default: stdout)')
    parser.add_argument('--loglevel', default=default, type=str.upper,
                        help=f"Log level: {', '.join(log_level_names())} (default: INFO)")
    return parser


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='hass-ecowitt-proxy',
        description='Forward Ecowitt weather station uploads to a Home Assistant webhook',
        parents=[_global_flags(suppress=False)],
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')

    sub = parser.add_subparsers(dest='command', required=True)
    child_flags = _global_flags(suppress=True)
    for command in COMMANDS.values():
        command.register(sub, parents=[child_flags])

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    command = COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        return 1
    return command.execute(args)


if __name__ == '__main__':
    sys.exit(main())
