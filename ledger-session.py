#!/usr/bin/env python3
"""
Core Lightning plugin exposing a managed ledger session: invoices, payments and balance change notifications.
To run install the package (pip install .), then set plugin=/path/to/ledger-session.py in the CLN config.
"""

import asyncio
import sys
import traceback
from ledger_session.ledger_session_plugin import LedgerSessionPlugin


async def main():
    """main function starting the plugin"""
    try:
        ledger_plugin = LedgerSessionPlugin()
        await ledger_plugin.run()
    except Exception as e:
        # will show e in the CLN logs
        print(f"ERROR: ledger session plugin crashed: {e}\n{traceback.format_exc()}",
              file=sys.stderr)

if __name__ == "__main__":
    asyncio.run(main())
