import asyncio
import logging
import os
import sys
sys.path.append(os.path.dirname(os.path.abspath(__file__)) + '/..')

import config  # noqa: F401  (loads .env)
from core.errors import VenueError
from services.kucoin_service.kucoin_client import KuCoinClient

logger = logging.getLogger("check_positions")


def format_venue_position(index: int, pos) -> str:
    sign = "+" if pos.unrealized_pnl >= 0 else "-"
    return (
        f"Position {index}:\n"
        f"  Symbol: {pos.symbol}\n"
        f"  Side: {pos.side}\n"
        f"  Size: {pos.size:g} lots\n"
        f"  Entry price: ${pos.entry_price:.4f}\n"
        f"  Mark price: ${pos.mark_price:.4f}\n"
        f"  Unrealized P&L: {sign}${abs(pos.unrealized_pnl):.2f}\n"
        f"  Leverage: {pos.leverage:g}x\n"
    )


async def check_positions(client) -> int:
    logger.info("🔍 Checking open positions on KuCoin Futures...")
    try:
        await client.connect()
        positions = await client.get_open_positions()
    except VenueError as e:
        logger.error(f"❌ Error: {e}")
        return 1
    finally:
        await client.close()

    print("\n" + "=" * 50)
    if not positions:
        print("📊 No open positions")
    else:
        print(f"📊 Open positions: {len(positions)}\n")
        for i, pos in enumerate(positions, start=1):
            print(format_venue_position(i, pos))
    print("=" * 50 + "\n")
    return 0


def main() -> int:
    logging.basicConfig(level=logging.INFO)

    missing = [k for k in ("KUCOIN_API_KEY", "KUCOIN_API_SECRET", "KUCOIN_API_PASSPHRASE") if not os.getenv(k)]
    if missing:
        logger.error(f"❌ Missing environment variables: {', '.join(missing)}")
        return 1

    client = KuCoinClient(
        os.environ["KUCOIN_API_KEY"],
        os.environ["KUCOIN_API_SECRET"],
        os.environ["KUCOIN_API_PASSPHRASE"],
        base_url=os.getenv("KUCOIN_BASE_URL", "https://api-futures.kucoin.com"),
    )
    return asyncio.run(check_positions(client))


if __name__ == "__main__":
    sys.exit(main())
