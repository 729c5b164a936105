import asyncio
import sys
from typing import Optional, TextIO

from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from rankwatch.models.enums import ChannelKind
from rankwatch.rendering.messages import render_error
from rankwatch.storage.json_store import PersistenceError
from .handler import CommandHandler


async def console_loop(
    handler: CommandHandler,
    sender_id: str,
    stream: Optional[TextIO] = None,
    console: Optional[Console] = None,
) -> None:
    """Feeds lines typed on stdin to the command handler and prints replies.

    Lets an operator try commands locally without a chat client.
    """
    stream = stream or sys.stdin
    console = console or Console()
    loop = asyncio.get_running_loop()
    logger.info("Console commands enabled; type `help`.")

    while True:
        # readline blocks, so it runs off the event loop
        line = await loop.run_in_executor(None, stream.readline)
        if not line:
            logger.info("Console input closed.")
            return
        try:
            reply = handler.handle(sender_id, ChannelKind.DIRECT, line)
        except PersistenceError as e:
            logger.error(f"Console command failed: {e}")
            reply = render_error(e)
        if reply is not None:
            console.print(Panel(Text(reply.to_text()), title=reply.title, expand=False))
