"""Write demo events into the inbox so a running worker has something to process.

Usage:
    python scripts/enqueue_events.py [count] [partition ...]

Defaults to 250 events spread over partitions "p0" and "p1". With the default
processing.fail_every = 100, every hundredth sequence is dead-lettered.
"""

import asyncio
import json
import sys
from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(_PROJECT_ROOT))

from dotenv import load_dotenv

load_dotenv(_PROJECT_ROOT / ".env")


async def main() -> None:
    from ordered_events.runner import open_inbox
    from ordered_events.settings import load_settings

    args = sys.argv[1:]
    count = int(args[0]) if args else 250
    partitions = args[1:] or ["p0", "p1"]

    inbox = open_inbox(load_settings())
    try:
        for i in range(count):
            partition = partitions[i % len(partitions)]
            payload = json.dumps({"partition": partition, "n": i}).encode("utf-8")
            await inbox.enqueue(partition, payload)
        pending = await inbox.count("pending")
    finally:
        await inbox.close()
    print(f"Enqueued {count} events over {len(partitions)} partitions ({pending} pending)")


if __name__ == "__main__":
    asyncio.run(main())
