"""Inline-button prompt that shows a confirmation workflow to the user."""

import logging
from typing import Any, Awaitable, Callable

from aiogram.exceptions import TelegramBadRequest
from aiogram.types import CallbackQuery, InlineKeyboardButton, InlineKeyboardMarkup, Message

from src.bot.confirmation import (
    AwaitingConfirmation,
    ConfirmationKind,
    ConfirmationManager,
    ConfirmationOptions,
    ConfirmationWorkflow,
    ConfirmEmphasis,
    Ok,
)

logger = logging.getLogger(__name__)

KIND_ICON = {
    ConfirmationKind.DELETE: "🗑️",
    ConfirmationKind.WARNING: "⚠️",
    ConfirmationKind.INFO: "ℹ️",
}

EMPHASIS_MARKER = {
    ConfirmEmphasis.DESTRUCTIVE: "🔴 ",
    ConfirmEmphasis.DEFAULT: "✅ ",
}

PROCESSING_LABEL = "⏳ Processing..."
BUSY_TEXT = "Still working, please wait..."


def format_prompt(options: ConfirmationOptions, pending: bool = False, markdown: bool = True) -> str:
    """Format the confirmation message text.

    With markdown=False the title and status carry no Markdown markers, so
    names containing Markdown characters are shown as they are.
    """
    icon = KIND_ICON.get(options.kind, "⚠️")
    title = f"*{options.title}*" if markdown else options.title
    text = f"{icon} {title}\n\n{options.description}"
    if pending:
        text += "\n\n_Processing..._" if markdown else "\n\nProcessing..."
    return text


def build_keyboard(options: ConfirmationOptions, token: str, pending: bool = False) -> InlineKeyboardMarkup:
    """Build confirm/cancel buttons.

    While the action runs both buttons point at a no-op callback.
    """
    if pending:
        buttons = [
            InlineKeyboardButton(text=PROCESSING_LABEL, callback_data="confirm:busy"),
            InlineKeyboardButton(text=options.cancel_label, callback_data="confirm:busy"),
        ]
    else:
        marker = EMPHASIS_MARKER.get(options.emphasis, "")
        buttons = [
            InlineKeyboardButton(text=f"{marker}{options.confirm_label}", callback_data=f"confirm:run:{token}"),
            InlineKeyboardButton(text=options.cancel_label, callback_data=f"confirm:cancel:{token}"),
        ]
    return InlineKeyboardMarkup(inline_keyboard=[buttons])


def render_prompt(workflow: ConfirmationWorkflow) -> tuple[str, InlineKeyboardMarkup] | None:
    """Render the workflow's current confirmation, or None if nothing is open."""
    if workflow.options is None or workflow.token is None:
        return None
    return (
        format_prompt(workflow.options, workflow.pending),
        build_keyboard(workflow.options, workflow.token, workflow.pending),
    )


async def _deliver_prompt(
    send: Callable[..., Awaitable[Any]],
    options: ConfirmationOptions,
    token: str,
    pending: bool,
) -> None:
    """Send or edit a prompt as Markdown, falling back to plain text.

    Raises TelegramBadRequest for anything other than a Markdown parse error.
    """
    keyboard = build_keyboard(options, token, pending)
    try:
        await send(format_prompt(options, pending), reply_markup=keyboard, parse_mode="Markdown")
    except TelegramBadRequest as e:
        if "can't parse entities" not in str(e):
            raise
        # Names with Markdown characters
        await send(format_prompt(options, pending, markdown=False), reply_markup=keyboard)


async def send_prompt(message: Message, workflow: ConfirmationWorkflow) -> None:
    """Send the workflow's confirmation as a new message."""
    if workflow.options is None or workflow.token is None:
        return
    await _deliver_prompt(message.answer, workflow.options, workflow.token, workflow.pending)


async def _edit_prompt(
    message: Message | None,
    options: ConfirmationOptions,
    token: str,
    pending: bool,
) -> None:
    if message is None:
        return
    try:
        await _deliver_prompt(message.edit_text, options, token, pending)
    except TelegramBadRequest as e:
        logger.debug(f"Could not update confirmation prompt: {e}")


async def _close_prompt(message: Message | None) -> None:
    if message is None:
        return
    try:
        await message.edit_reply_markup(reply_markup=None)
    except TelegramBadRequest as e:
        logger.debug(f"Could not close confirmation prompt: {e}")


def _parse_token(data: str | None) -> str | None:
    # confirm:<verb>:<token>
    parts = (data or "").split(":", 2)
    if len(parts) < 3 or not parts[2]:
        return None
    return parts[2]


def confirm_callback(
    confirmation: ConfirmationManager,
) -> Callable[[CallbackQuery], Awaitable[None]]:
    """Factory for the confirm button callback handler."""

    async def handler(callback: CallbackQuery) -> None:
        token = _parse_token(callback.data)
        if token is None:
            await callback.answer("Invalid callback data")
            return

        user_id = callback.from_user.id if callback.from_user else 0
        workflow = confirmation.workflow(user_id)

        if workflow.token != token:
            await callback.answer("This confirmation is no longer active")
            await _close_prompt(callback.message)
            return

        state = workflow.state
        if not isinstance(state, AwaitingConfirmation) or workflow.in_flight:
            await callback.answer(BUSY_TEXT)
            return

        options = state.slot.options
        await callback.answer()
        await _edit_prompt(callback.message, options, token, pending=True)

        # The slot may have been replaced while the prompt was being edited
        if workflow.token != token:
            await _close_prompt(callback.message)
            return

        result = await workflow.confirm_and_run()
        if result is None:
            # Another press got there first
            return

        if isinstance(result, Ok) or workflow.token != token:
            await _close_prompt(callback.message)
        else:
            await _edit_prompt(callback.message, options, token, pending=False)

    return handler


def cancel_callback(
    confirmation: ConfirmationManager,
) -> Callable[[CallbackQuery], Awaitable[None]]:
    """Factory for the cancel button callback handler."""

    async def handler(callback: CallbackQuery) -> None:
        token = _parse_token(callback.data)
        if token is None:
            await callback.answer("Invalid callback data")
            return

        user_id = callback.from_user.id if callback.from_user else 0
        workflow = confirmation.workflow(user_id)

        if workflow.token != token:
            await callback.answer("This confirmation is no longer active")
            await _close_prompt(callback.message)
            return

        if not workflow.dismiss():
            await callback.answer(BUSY_TEXT)
            return

        await callback.answer("Cancelled")
        await _close_prompt(callback.message)

    return handler


def busy_callback() -> Callable[[CallbackQuery], Awaitable[None]]:
    """Factory for the disabled buttons shown while an action runs."""

    async def handler(callback: CallbackQuery) -> None:
        await callback.answer(BUSY_TEXT)

    return handler
