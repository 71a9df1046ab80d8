#!/usr/bin/env python3
"""netmeter external health monitor.

Standalone script (stdlib only) that hits the agent's /health endpoint and
optionally prints the /total traffic counters. Designed for cron or
Windows Task Scheduler.

Exit codes:
    0 — healthy
    1 — unhealthy or unreachable

Usage:
    python scripts/health_check.py
    python scripts/health_check.py --url http://10.0.0.5:28080
    python scripts/health_check.py --totals
"""

import argparse
import json
import logging
import sys
import urllib.error
import urllib.request
from datetime import datetime, timezone

logger = logging.getLogger("netmeter.health_check")
logger.setLevel(logging.INFO)

_console_handler = logging.StreamHandler(sys.stdout)
_console_handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
logger.addHandler(_console_handler)


def fetch_json(url: str, timeout: int = 10) -> tuple[bool, dict]:
    """GET a JSON endpoint and return (ok, response_data)."""
    req = urllib.request.Request(url, headers={"Accept": "application/json"})
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            return True, json.loads(resp.read().decode("utf-8"))
    except urllib.error.HTTPError as e:
        return False, {"error": f"HTTP {e.code}", "reason": str(e.reason)}
    except urllib.error.URLError as e:
        return False, {"error": "unreachable", "reason": str(e.reason)}
    except (OSError, ValueError) as e:
        return False, {"error": "exception", "reason": str(e)}


def check_health(base_url: str, timeout: int = 10) -> tuple[bool, dict]:
    ok, data = fetch_json(f"{base_url}/health", timeout=timeout)
    return ok and data.get("status") == "healthy", data


def main() -> int:
    parser = argparse.ArgumentParser(description="netmeter health monitor")
    parser.add_argument("--url", default="http://127.0.0.1:28080", help="Agent base URL")
    parser.add_argument("--timeout", type=int, default=10, help="Request timeout in seconds")
    parser.add_argument("--totals", action="store_true", help="Also print /total counters")
    args = parser.parse_args()
    base_url = args.url.rstrip("/")

    now = datetime.now(timezone.utc).isoformat()
    is_healthy, data = check_health(base_url, timeout=args.timeout)

    if args.totals:
        ok, totals = fetch_json(f"{base_url}/total", timeout=args.timeout)
        if ok:
            logger.info(
                "sent=%.3f MB received=%.3f MB since %s",
                totals.get("total_bytes_sent_mb", -1),
                totals.get("total_bytes_received_mb", -1),
                totals.get("last_reset_date") or "first run",
            )
        else:
            logger.error("totals unavailable: %s", json.dumps(totals))

    if is_healthy:
        logger.info("HEALTHY — %s — %s", base_url, now)
        return 0
    logger.error("UNHEALTHY — %s — %s — %s", base_url, now, json.dumps(data))
    return 1


if __name__ == "__main__":
    sys.exit(main())
