from typing import Callable, Awaitable

from aiogram.types import Message


HELP_TEXT = """📋 *Available Commands*

/delete\\_department <name> - Delete a department
/delete\\_asset <name or serial> - Delete an asset
/help - Show this help message

_Partial names work: proj → Projector_
_Deletes require confirmation_"""


def help_command() -> Callable[[Message], Awaitable[None]]:
    """Factory for /help command handler."""
    async def handler(message: Message) -> None:
        await message.answer(HELP_TEXT, parse_mode="Markdown")
    return handler
