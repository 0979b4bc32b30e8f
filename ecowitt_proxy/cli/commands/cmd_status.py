"""
hass-ecowitt-proxy status - Show status of a running proxy
"""

from typing import Tuple

import requests


def register(subparsers, parents=()):
    """Register the status command."""
    parser = subparsers.add_parser(
        'status',
        parents=list(parents),
        help='Show status of a running proxy',
        description='Check health and event counts of a running hass-ecowitt-proxy'
    )
    parser.add_argument('--url', default='http://localhost:8181',
                        help='Base URL of the proxy (default: http://localhost:8181)')
    parser.add_argument('--timeout', type=float, default=2.0,
                        help='Request timeout seconds (default: 2)')


def execute(args) -> int:
    """Execute the status command."""
    base = args.url.rstrip('/')

    print("=" * 70)
    print(f"hass-ecowitt-proxy status ({base})")
    print("=" * 70)
    print()

    status, msg = check_health(f"{base}/health", args.timeout)
    print(f"  {status} {'Health':20s} - {msg}")
    healthy = status == "✓"

    if healthy:
        try:
            response = requests.get(f"{base}/event", timeout=args.timeout)
            counts = response.json()
            print(f"  {'':2s}{'Events forwarded':20s} - {counts.get('eventCount')}")
            print(f"  {'':2s}{'Errors':20s} - {counts.get('errorCount')}")
        except (requests.RequestException, ValueError) as e:
            print(f"  ✗ {'Counts':20s} - Unavailable ({e})")
            healthy = False

    print()
    print("=" * 70)

    if healthy:
        print("✓ Proxy healthy")
        return 0
    print("⚠ Proxy is down")
    return 1


def check_health(endpoint: str, timeout: float) -> Tuple[str, str]:
    """Check if the proxy answers its health check."""
    try:
        response = requests.get(endpoint, timeout=timeout)
    except requests.RequestException as e:
        return "✗", f"Not reachable ({e.__class__.__name__})"

    if response.status_code == 200:
        return "✓", "Healthy"
    return "✗", f"Unhealthy (HTTP {response.status_code})"
