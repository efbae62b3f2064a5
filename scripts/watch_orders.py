"""
Terminal board for one employee

Logs in, loads the employee's active numbers and keeps them up to date
(SMS polling, countdowns, auto-cancel/auto-dismiss). With --auto-buy the
board keeps requesting a number until one is leased.

Run:
    python scripts/watch_orders.py --username alice --password secret [--auto-buy]
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path
from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).parent.parent))

load_dotenv()

from otpdesk.core.logging import setup_logging, get_logger
from otpdesk.client.api_client import DeskApiClient, DeskApiError, DeskConnectionError
from otpdesk.client.display import format_order_line
from otpdesk.client.session import ActiveOrderSession, SessionEvent, SessionExpiredError

setup_logging()
logger = get_logger("watch_orders")


def print_event(event: SessionEvent) -> None:
    print(f"[{event.kind.value}] {event.message}")


def print_board(session: ActiveOrderSession) -> None:
    if not session.active_orders:
        print("No active numbers")
        return
    for order in session.active_orders:
        print(format_order_line(order, session.remaining(order["orderId"])))


async def run(args) -> int:
    api = DeskApiClient(args.url)
    try:
        try:
            employee = await api.login(args.username, args.password)
        except DeskApiError as e:
            print(f"❌ {e.message}")
            return 1
        
        session = ActiveOrderSession(api, employee, on_event=print_event)
        await session.load()
        print(f"👋 Logged in as {employee['name']}")
        
        if args.auto_buy:
            session.autobuy.enable()
        elif args.request:
            await session.request_number()
        
        try:
            while session.active_orders or session.autobuy.enabled:
                print_board(session)
                await asyncio.sleep(args.refresh)
        finally:
            await session.close()
        
        print("Board empty, exiting")
        return 0
    
    except SessionExpiredError as e:
        print(f"❌ {e}")
        return 1
    except DeskConnectionError as e:
        logger.error(f"Cannot reach OTPDesk: {e}")
        return 2
    finally:
        await api.close()


def main() -> int:
    parser = argparse.ArgumentParser(description="Watch an employee's active numbers")
    parser.add_argument("--url", default=os.getenv("OTPDESK_URL", "http://localhost:8000/api"))
    parser.add_argument("--username", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--auto-buy", action="store_true", help="Keep requesting until a number is leased")
    parser.add_argument("--request", action="store_true", help="Request one number on start")
    parser.add_argument("--refresh", type=float, default=5.0, help="Board refresh interval in seconds")
    args = parser.parse_args()
    
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
