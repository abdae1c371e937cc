"""
Stdio Host Loop

Runs the dispatcher over JSON lines: one request envelope per line on
stdin, one response per line on stdout. Requests are handled concurrently,
so responses may come back in a different order than the requests.

Lines are read on a daemon thread so that an exit request ends the loop
at once instead of waiting for the next line of input.
"""

import asyncio
import sys
import threading
from typing import Optional, TextIO

import structlog

from tijarati.bridge.dispatcher import Dispatcher


logger = structlog.get_logger(__name__)


def _start_reader(stdin: TextIO, loop: asyncio.AbstractEventLoop) -> asyncio.Queue:
    """Feed stdin lines into a queue; an empty string marks end of input."""
    lines: asyncio.Queue = asyncio.Queue()

    def pump() -> None:
        try:
            while True:
                line = stdin.readline()
                loop.call_soon_threadsafe(lines.put_nowait, line)
                if not line:
                    return
        except (OSError, ValueError) as e:
            logger.warning("stdio_read_failed", error=str(e))
            loop.call_soon_threadsafe(lines.put_nowait, "")
        except RuntimeError:
            # Event loop already closed
            return

    threading.Thread(target=pump, name="tijarati-stdin", daemon=True).start()
    return lines


async def serve(
    dispatcher: Dispatcher,
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
    stop: Optional[asyncio.Event] = None,
) -> int:
    """
    Serve requests until end of input or until `stop` is set.

    Returns:
        Number of lines processed
    """
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    stop = stop or asyncio.Event()
    write_lock = asyncio.Lock()
    tasks: set[asyncio.Task] = set()
    processed = 0

    async def handle(line: str) -> None:
        response = await dispatcher.handle_message(line)
        if response is None:
            return
        async with write_lock:
            stdout.write(response + "\n")
            stdout.flush()

    lines = _start_reader(stdin, asyncio.get_running_loop())
    stopped = asyncio.create_task(stop.wait())

    while not stop.is_set():
        next_line = asyncio.create_task(lines.get())
        await asyncio.wait({next_line, stopped}, return_when=asyncio.FIRST_COMPLETED)
        if not next_line.done():
            next_line.cancel()
            break
        line = next_line.result()
        if not line:
            break
        line = line.strip()
        if not line:
            continue
        processed += 1
        task = asyncio.create_task(handle(line))
        tasks.add(task)
        task.add_done_callback(tasks.discard)

    stopped.cancel()
    if tasks:
        await asyncio.gather(*tasks)
    logger.info("stdio_host_stopped", processed=processed)
    return processed
