import asyncio
import json
import sys

from libs.log.logger import configure_logging
from services.dashboard_client import DashboardClient


def _print(msg: dict) -> None:
    print(json.dumps(msg, ensure_ascii=False))


async def _main(url: str) -> None:
    client = DashboardClient(url or None, on_message=_print)
    await client.run()


def main() -> None:
    configure_logging()
    url = sys.argv[1] if len(sys.argv) > 1 else ""
    try:
        asyncio.run(_main(url))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
