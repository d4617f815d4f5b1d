import logging
from typing import Any, Awaitable, Callable

from aiogram import Bot, Dispatcher, BaseMiddleware, F
from aiogram.filters import Command
from aiogram.types import CallbackQuery, Message

from src.bot.commands import help_command
from src.bot.confirmation import ConfirmationManager
from src.bot.confirmation_prompt import busy_callback, cancel_callback, confirm_callback
from src.bot.delete_commands import delete_asset_command, delete_department_command
from src.config import ConfirmationConfig
from src.inventory import InventoryStore

logger = logging.getLogger(__name__)


class AuthMiddleware(BaseMiddleware):
    def __init__(self, allowed_users: list[int]):
        self.allowed_users = set(allowed_users)
        super().__init__()

    async def __call__(
        self,
        handler: Callable[[Message | CallbackQuery, dict[str, Any]], Awaitable[Any]],
        event: Message | CallbackQuery,
        data: dict[str, Any],
    ) -> Any:
        user_id = event.from_user.id if event.from_user else None

        if user_id not in self.allowed_users:
            logger.warning(f"Unauthorized access attempt from user {user_id}")
            return None

        return await handler(event, data)


def create_auth_middleware(allowed_users: list[int]) -> AuthMiddleware:
    """Factory function for auth middleware."""
    return AuthMiddleware(allowed_users)


def create_bot(token: str) -> Bot:
    """Create Telegram bot instance."""
    return Bot(token=token)


def create_dispatcher(allowed_users: list[int]) -> Dispatcher:
    """Create dispatcher with auth middleware on messages and button presses."""
    dp = Dispatcher()
    middleware = AuthMiddleware(allowed_users)
    dp.message.middleware(middleware)
    dp.callback_query.middleware(middleware)
    return dp


def register_commands(
    dp: Dispatcher,
    store: InventoryStore,
    confirmation_config: ConfirmationConfig | None = None,
) -> ConfirmationManager:
    """Register all command and button handlers.

    Returns the ConfirmationManager shared by the delete commands.
    """
    confirmation_config = confirmation_config or ConfirmationConfig()
    confirmation = ConfirmationManager()
    cancel_label = confirmation_config.cancel_label

    dp.message.register(help_command(), Command("help"))
    dp.message.register(help_command(), Command("start"))

    dp.message.register(
        delete_department_command(store, confirmation, cancel_label),
        Command("delete_department"),
    )
    dp.message.register(
        delete_asset_command(store, confirmation, cancel_label),
        Command("delete_asset"),
    )

    # Confirmation prompt buttons
    dp.callback_query.register(
        confirm_callback(confirmation),
        F.data.startswith("confirm:run:"),
    )
    dp.callback_query.register(
        cancel_callback(confirmation),
        F.data.startswith("confirm:cancel:"),
    )
    dp.callback_query.register(
        busy_callback(),
        F.data == "confirm:busy",
    )

    return confirmation
