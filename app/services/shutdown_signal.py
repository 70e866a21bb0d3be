"""
Signal watcher for graceful shutdown.

``shutdown_signal()`` resolves once SIGINT or SIGTERM reaches the process.
Each signal gets its own subscription; the first to fire wins and the other
is cancelled, which also removes its handler.
"""

import asyncio
import logging
import signal
from typing import Optional

logger = logging.getLogger(__name__)

# SIGTERM is missing on some platforms; that branch then never resolves
WATCHED_SIGNALS = (
    getattr(signal, "SIGINT", None),
    getattr(signal, "SIGTERM", None),
)


async def wait_for_signal(sig: Optional[int]) -> int:
    """Suspend until ``sig`` is delivered, then return its number"""
    loop = asyncio.get_running_loop()

    if sig is None:
        # Placeholder for a signal kind the platform does not have
        await loop.create_future()

    fired = loop.create_future()

    def _on_signal() -> None:
        if not fired.done():
            fired.set_result(sig)

    previous_handler = None
    try:
        loop.add_signal_handler(sig, _on_signal)
        uses_loop_handler = True
    except NotImplementedError:
        # Event loops without add_signal_handler support (e.g. Windows)
        previous_handler = signal.signal(sig, lambda *_: loop.call_soon_threadsafe(_on_signal))
        uses_loop_handler = False

    try:
        return await fired
    finally:
        if uses_loop_handler:
            loop.remove_signal_handler(sig)
        else:
            signal.signal(sig, previous_handler)


async def shutdown_signal() -> int:
    """Wait for SIGINT or SIGTERM, whichever comes first"""
    watchers = [asyncio.ensure_future(wait_for_signal(sig)) for sig in WATCHED_SIGNALS]
    try:
        done, pending = await asyncio.wait(watchers, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for watcher in watchers:
            if not watcher.done():
                watcher.cancel()
        await asyncio.gather(*watchers, return_exceptions=True)

    received = next(iter(done)).result()
    logger.info(f"starting graceful shutdown (received {signal.Signals(received).name})")
    return received
