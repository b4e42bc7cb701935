"""Print the shared breaker state: flag, trip log, failure window size and dead-letter depth.

Usage:
    python scripts/breaker_status.py
"""

import asyncio
import sys
from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_PROJECT_ROOT))

from dotenv import load_dotenv

load_dotenv(_PROJECT_ROOT / ".env")


async def main() -> None:
    from ordered_events.settings import get_setting, load_settings
    from ordered_events.store import BREAK_KEY, BREAK_LOG_KEY, FAILURES_KEY, open_store

    settings = load_settings()
    store = open_store(settings, _PROJECT_ROOT)
    try:
        broken = await store.exists(BREAK_KEY)
        trips = await store.lrange(BREAK_LOG_KEY)
        window = await store.zcard(FAILURES_KEY)
        dead = await store.lrange(get_setting(settings, "dead_letter.key", "deadletter"))
    finally:
        await store.close()

    print(f"Breaker:      {'BROKEN' if broken else 'not broken'}")
    print(
        f"Window:       {window} failure(s) held "
        f"(threshold {get_setting(settings, 'breaker.failure_threshold')}, "
        f"{get_setting(settings, 'breaker.failure_seconds')}s)"
    )
    print(f"Dead letters: {len(dead)}")
    for line in trips:
        print(f"  {line}")


if __name__ == "__main__":
    asyncio.run(main())
