# surety/client.py
"""
Flight Surety Oracle Server — Command-line Client

Usage:
  python3 -m surety.client health
  python3 -m surety.client oracles
  python3 -m surety.client eligible 4
  python3 -m surety.client operational
  python3 -m surety.client fetch 0xAirline... ND1309 1700000000
  python3 -m surety.client info

Server URL from --url or SURETY_SERVER_URL (default http://127.0.0.1:3000).
"""

import argparse
import os
import sys

import requests

from surety.status import status_label

DEFAULT_URL = os.environ.get("SURETY_SERVER_URL", "http://127.0.0.1:3000")
TIMEOUT = 10


def get(base_url, path):
    r = requests.get(f"{base_url}{path}", timeout=TIMEOUT)
    r.raise_for_status()
    return r.json()


def post(base_url, path, payload=None):
    r = requests.post(f"{base_url}{path}", json=payload, timeout=TIMEOUT)
    r.raise_for_status()
    return r.json()


def show_health(base_url, args):
    data = get(base_url, "/health")
    print(f"  Status:     {data['status']}")
    print(f"  Owner:      {data['owner']}")
    print(f"  Oracles:    {data['oracles']}")
    print(f"  Listening:  {data['listening']}")
    print(f"  Requests:   {data['requests_handled']}")


def show_oracles(base_url, args):
    data = get(base_url, "/oracles")
    print(f"  {data['count']} oracles")
    for oracle in data["oracles"]:
        print(f"    {oracle['address']}  {oracle['indexes']}")


def show_eligible(base_url, args):
    data = get(base_url, f"/oracles/eligible/{args.index}")
    print(f"  Index {data['index']}: {data['count']} eligible")
    for oracle in data["oracles"]:
        print(f"    {oracle['address']}  {oracle['indexes']}")


def show_operational(base_url, args):
    data = get(base_url, "/api/operational")
    print(f"  Operational: {data['operational']}")


def fetch_status(base_url, args):
    data = post(base_url, "/api/flights/status", {
        "airline": args.airline,
        "flight": args.flight,
        "timestamp": args.timestamp,
    })
    print(f"  Oracles triggered for {data['flight']} at {data['timestamp']}")


def show_info(base_url, args):
    data = get(base_url, "/api/flights/info")
    if not data["events"]:
        print("  No flight status reports yet")
    for event in data["events"]:
        print(
            f"  Status of {event['flight']} flight of {event['airline']} airline "
            f"at {event['timestamp']} is {status_label(event['status'])}"
        )


COMMANDS = {
    "health": show_health,
    "oracles": show_oracles,
    "eligible": show_eligible,
    "operational": show_operational,
    "fetch": fetch_status,
    "info": show_info,
}


def build_parser():
    parser = argparse.ArgumentParser(prog="surety.client", description=__doc__.split("\n")[1])
    parser.add_argument("--url", default=DEFAULT_URL, help="Oracle server base URL")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("health")
    sub.add_parser("oracles")
    p = sub.add_parser("eligible")
    p.add_argument("index", type=int)
    sub.add_parser("operational")
    p = sub.add_parser("fetch")
    p.add_argument("airline")
    p.add_argument("flight")
    p.add_argument("timestamp", type=int)
    sub.add_parser("info")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    base_url = args.url.rstrip("/")
    try:
        COMMANDS[args.command](base_url, args)
    except requests.RequestException as e:
        print(f"  ✗ Request failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
