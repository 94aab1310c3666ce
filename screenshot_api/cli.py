"""
Command Line Interface
======================

Run the server, submit screenshot jobs and poll their status.

Examples::

    screenshot-api serve
    screenshot-api submit --url https://example.com --callback https://hooks.example.com/shot
    screenshot-api status 3f0c... --wait
"""

import argparse
import asyncio
import json
import sys
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

TERMINAL = {"completed", "failed"}


def build_request(args: argparse.Namespace) -> Dict[str, Any]:
    """Screenshot request body from parsed ``submit`` arguments."""
    options: Dict[str, Any] = {}
    viewport = {k: v for k, v in (("width", args.width), ("height", args.height)) if v}
    if viewport:
        options["viewport"] = viewport
    if args.no_full_page:
        options["fullPage"] = False
    if args.format:
        options["format"] = args.format
    if args.quality:
        options["quality"] = args.quality

    body: Dict[str, Any] = {"targetUrl": args.url, "callbackUrl": args.callback}
    if options:
        body["options"] = options
    return body


async def submit_job(api: str, body: Dict[str, Any]) -> Tuple[int, Dict[str, Any]]:
    async with aiohttp.ClientSession() as session:
        async with session.post(f"{api}/api/screenshot", json=body) as response:
            return response.status, await response.json()


async def fetch_status(
    api: str, job_id: str, wait: bool = False, interval: float = 1.0
) -> Tuple[int, Dict[str, Any]]:
    async with aiohttp.ClientSession() as session:
        while True:
            async with session.get(f"{api}/api/screenshot/{job_id}") as response:
                status, data = response.status, await response.json()
            if not wait or status != 200 or data.get("status") in TERMINAL:
                return status, data
            print(f"{job_id}: {data.get('status')} ({data.get('progress', 0)}%)", file=sys.stderr)
            await asyncio.sleep(interval)


def _print(data: Dict[str, Any]) -> None:
    print(json.dumps(data, indent=2))


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="screenshot-api", description="Screenshot API server and client"
    )
    parser.add_argument(
        "--api", default="http://localhost:3000", help="API base URL for client commands"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("serve", help="Run the API server")

    submit = subparsers.add_parser("submit", help="Submit a screenshot job")
    submit.add_argument("--url", required=True, help="Page to capture")
    submit.add_argument("--callback", required=True, help="Webhook URL for the outcome")
    submit.add_argument("--format", choices=["png", "jpeg", "webp"], help="Image format")
    submit.add_argument("--quality", type=int, help="Image quality (1-100)")
    submit.add_argument("--width", type=int, help="Viewport width")
    submit.add_argument("--height", type=int, help="Viewport height")
    submit.add_argument(
        "--no-full-page", action="store_true", help="Capture only the viewport"
    )

    status = subparsers.add_parser("status", help="Show the status of a job")
    status.add_argument("job_id", help="Job identifier")
    status.add_argument("--wait", action="store_true", help="Poll until the job finishes")
    status.add_argument("--interval", type=float, default=1.0, help="Polling interval in seconds")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = create_parser().parse_args(argv)
    api = args.api.rstrip("/")

    if args.command == "serve":
        from screenshot_api.api.main import run_server

        run_server()
        return 0

    try:
        if args.command == "submit":
            status, data = asyncio.run(submit_job(api, build_request(args)))
        else:
            status, data = asyncio.run(fetch_status(api, args.job_id, args.wait, args.interval))
    except aiohttp.ClientError as e:
        print(f"Error: cannot reach {api}: {e}", file=sys.stderr)
        return 2

    _print(data)
    return 0 if status < 400 else 1


if __name__ == "__main__":
    sys.exit(main())
