import asyncio
import logging
from typing import Awaitable, Callable, Sequence

from aiogram.types import Message

from src.bot.confirmation import (
    ActionResult,
    ConfirmationKind,
    ConfirmationManager,
    ConfirmationOptions,
    Err,
    Ok,
)
from src.bot.confirmation_prompt import send_prompt
from src.inventory import InventoryError, InventoryStore
from src.models import Asset, Department

logger = logging.getLogger(__name__)


def _pick_one(matches: Sequence[Department | Asset], kind: str, query: str) -> tuple[Department | Asset | None, str | None]:
    """Pick a single match, return (item, error_message)."""
    if not matches:
        return None, f"❌ No {kind} found matching '{query}'"

    if len(matches) > 1:
        names = ", ".join(m.name for m in matches)
        return None, f"Multiple matches found: {names}\n\n_Be more specific_"

    return matches[0], None


def _department_options(department: Department, asset_count: int, cancel_label: str) -> ConfirmationOptions:
    description = (
        f'Are you sure you want to delete "{department.name}"? This action cannot be undone '
        f"and will remove the department from all associated assets."
    )
    if asset_count:
        description += f"\n\nAssets affected: {asset_count}"
    return ConfirmationOptions(
        title="Delete Department",
        description=description,
        confirm_label="Delete Department",
        cancel_label=cancel_label,
        kind=ConfirmationKind.DELETE,
    )


def _asset_options(asset: Asset, cancel_label: str) -> ConfirmationOptions:
    return ConfirmationOptions(
        title="Delete Asset",
        description=(
            f'Are you sure you want to delete "{asset.name}" (serial {asset.serial_number})? '
            f"This action cannot be undone."
        ),
        confirm_label="Delete Asset",
        cancel_label=cancel_label,
        kind=ConfirmationKind.DELETE,
    )


def _delete_action(
    message: Message,
    operation: Callable[[], object],
    success_text: str,
) -> Callable[[], Awaitable[ActionResult]]:
    """Wrap a store deletion so it reports its own outcome in the chat."""

    async def action() -> ActionResult:
        try:
            await asyncio.to_thread(operation)
        except InventoryError as e:
            logger.warning(f"Delete failed: {e}")
            await message.answer(f"❌ Error: {e}")
            return Err(reason=str(e))
        except Exception as e:
            logger.error(f"Unexpected error during delete: {e}")
            await message.answer(f"❌ Error: {e}")
            return Err(reason=str(e))

        await message.answer(f"✅ {success_text}")
        return Ok()

    return action


def delete_department_command(
    store: InventoryStore,
    confirmation: ConfirmationManager,
    cancel_label: str = "Cancel",
) -> Callable[[Message], Awaitable[None]]:
    """Factory for /delete_department command handler."""

    async def handler(message: Message) -> None:
        text = message.text or ""
        parts = text.strip().split(maxsplit=1)

        if len(parts) < 2:
            await message.answer(
                "Usage: /delete_department <name>\n\nExample: /delete_department Marketing"
            )
            return

        query = parts[1]
        department, error = _pick_one(store.find_departments(query), "department", query)

        if error:
            await message.answer(error, parse_mode="Markdown")
            return

        options = _department_options(department, store.count_assets_in(department.id), cancel_label)
        action = _delete_action(
            message,
            lambda: store.delete_department(department.id),
            "Department deleted successfully",
        )

        user_id = message.from_user.id
        confirmation.request(user_id, options, action)
        await send_prompt(message, confirmation.workflow(user_id))

    return handler


def delete_asset_command(
    store: InventoryStore,
    confirmation: ConfirmationManager,
    cancel_label: str = "Cancel",
) -> Callable[[Message], Awaitable[None]]:
    """Factory for /delete_asset command handler."""

    async def handler(message: Message) -> None:
        text = message.text or ""
        parts = text.strip().split(maxsplit=1)

        if len(parts) < 2:
            await message.answer(
                "Usage: /delete_asset <name or serial>\n\nExample: /delete_asset Projector"
            )
            return

        query = parts[1]
        asset, error = _pick_one(store.find_assets(query), "asset", query)

        if error:
            await message.answer(error, parse_mode="Markdown")
            return

        options = _asset_options(asset, cancel_label)
        action = _delete_action(
            message,
            lambda: store.delete_asset(asset.id),
            "Asset deleted successfully",
        )

        user_id = message.from_user.id
        confirmation.request(user_id, options, action)
        await send_prompt(message, confirmation.workflow(user_id))

    return handler
