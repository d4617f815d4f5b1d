import asyncio

import pytest
from unittest.mock import MagicMock, AsyncMock


def _make_callback(data: str, user_id: int = 123):
    callback = MagicMock()
    callback.data = data
    callback.from_user.id = user_id
    callback.answer = AsyncMock()
    callback.message = MagicMock()
    callback.message.edit_text = AsyncMock()
    callback.message.edit_reply_markup = AsyncMock()
    return callback


def _options(**kwargs):
    from src.bot.confirmation import ConfirmationOptions

    defaults = {"title": "Delete Department", "description": 'Delete "Marketing"?'}
    defaults.update(kwargs)
    return ConfirmationOptions(**defaults)


def test_format_prompt_uses_kind_icon():
    from src.bot.confirmation import ConfirmationKind
    from src.bot.confirmation_prompt import format_prompt

    assert format_prompt(_options()).startswith("🗑️ *Delete Department*")
    assert format_prompt(_options(kind=ConfirmationKind.WARNING)).startswith("⚠️")
    assert format_prompt(_options(kind=ConfirmationKind.INFO)).startswith("ℹ️")


def test_format_prompt_shows_processing_while_pending():
    from src.bot.confirmation_prompt import format_prompt

    assert "Processing" not in format_prompt(_options())
    assert "Processing" in format_prompt(_options(), pending=True)


def test_keyboard_idle_has_confirm_and_cancel():
    from src.bot.confirmation_prompt import build_keyboard

    keyboard = build_keyboard(_options(confirm_label="Delete Department"), "abc123")
    confirm, cancel = keyboard.inline_keyboard[0]

    assert confirm.text == "🔴 Delete Department"
    assert confirm.callback_data == "confirm:run:abc123"
    assert cancel.text == "Cancel"
    assert cancel.callback_data == "confirm:cancel:abc123"


def test_keyboard_emphasis_without_marker():
    from src.bot.confirmation import ConfirmEmphasis
    from src.bot.confirmation_prompt import build_keyboard

    keyboard = build_keyboard(_options(emphasis=ConfirmEmphasis.OUTLINE, confirm_label="Archive"), "t")

    assert keyboard.inline_keyboard[0][0].text == "Archive"


def test_keyboard_pending_disables_buttons():
    from src.bot.confirmation_prompt import build_keyboard, PROCESSING_LABEL

    keyboard = build_keyboard(_options(), "abc123", pending=True)
    confirm, cancel = keyboard.inline_keyboard[0]

    assert confirm.text == PROCESSING_LABEL
    assert confirm.callback_data == "confirm:busy"
    assert cancel.callback_data == "confirm:busy"


def test_render_prompt_none_when_idle():
    from src.bot.confirmation import ConfirmationWorkflow
    from src.bot.confirmation_prompt import render_prompt

    assert render_prompt(ConfirmationWorkflow()) is None


@pytest.mark.asyncio
async def test_send_prompt_answers_with_keyboard():
    from src.bot.confirmation import ConfirmationWorkflow
    from src.bot.confirmation_prompt import send_prompt

    workflow = ConfirmationWorkflow()
    workflow.request(_options(), AsyncMock())

    message = MagicMock()
    message.answer = AsyncMock()

    await send_prompt(message, workflow)

    message.answer.assert_called_once()
    assert "Delete Department" in message.answer.call_args[0][0]
    keyboard = message.answer.call_args[1]["reply_markup"]
    assert keyboard.inline_keyboard[0][0].callback_data == f"confirm:run:{workflow.token}"


@pytest.mark.asyncio
async def test_confirm_callback_runs_action_and_closes_prompt():
    from src.bot.confirmation import ConfirmationManager, Ok
    from src.bot.confirmation_prompt import confirm_callback

    manager = ConfirmationManager()
    action = AsyncMock(return_value=Ok())
    manager.request(123, _options(), action)
    token = manager.workflow(123).token

    callback = _make_callback(f"confirm:run:{token}")
    await confirm_callback(manager)(callback)

    action.assert_awaited_once()
    assert manager.get_pending(123) is None

    # Prompt switched to processing, then closed
    pending_markup = callback.message.edit_text.call_args[1]["reply_markup"]
    assert pending_markup.inline_keyboard[0][0].callback_data == "confirm:busy"
    callback.message.edit_reply_markup.assert_called_once_with(reply_markup=None)


@pytest.mark.asyncio
async def test_confirm_callback_failure_restores_buttons():
    from src.bot.confirmation import ConfirmationManager, Err
    from src.bot.confirmation_prompt import confirm_callback

    manager = ConfirmationManager()
    manager.request(123, _options(), AsyncMock(return_value=Err(reason="network error")))
    token = manager.workflow(123).token

    callback = _make_callback(f"confirm:run:{token}")
    await confirm_callback(manager)(callback)

    assert manager.get_pending(123).title == "Delete Department"
    assert manager.workflow(123).pending is False

    last_markup = callback.message.edit_text.call_args[1]["reply_markup"]
    assert last_markup.inline_keyboard[0][0].callback_data == f"confirm:run:{token}"
    callback.message.edit_reply_markup.assert_not_called()


@pytest.mark.asyncio
async def test_confirm_callback_outdated_prompt_does_not_run_newer_action():
    from src.bot.confirmation import ConfirmationManager
    from src.bot.confirmation_prompt import confirm_callback

    manager = ConfirmationManager()
    first = AsyncMock()
    second = AsyncMock()
    manager.request(123, _options(), first)
    old_token = manager.workflow(123).token
    manager.request(123, _options(title="Delete Asset"), second)

    callback = _make_callback(f"confirm:run:{old_token}")
    await confirm_callback(manager)(callback)

    first.assert_not_called()
    second.assert_not_called()
    assert "no longer active" in callback.answer.call_args[0][0]
    assert manager.get_pending(123).title == "Delete Asset"


@pytest.mark.asyncio
async def test_confirm_callback_invalid_data():
    from src.bot.confirmation import ConfirmationManager
    from src.bot.confirmation_prompt import confirm_callback

    callback = _make_callback("confirm:run")
    await confirm_callback(ConfirmationManager())(callback)

    callback.answer.assert_called_once_with("Invalid callback data")


@pytest.mark.asyncio
async def test_confirm_callback_while_running_is_ignored():
    from src.bot.confirmation import ConfirmationManager, Ok
    from src.bot.confirmation_prompt import confirm_callback, BUSY_TEXT

    manager = ConfirmationManager()
    release = asyncio.Event()
    calls = 0

    async def action():
        nonlocal calls
        calls += 1
        await release.wait()
        return Ok()

    manager.request(123, _options(), action)
    token = manager.workflow(123).token
    handler = confirm_callback(manager)

    task = asyncio.create_task(handler(_make_callback(f"confirm:run:{token}")))
    while not manager.workflow(123).pending:
        await asyncio.sleep(0)

    second = _make_callback(f"confirm:run:{token}")
    await handler(second)
    second.answer.assert_called_once_with(BUSY_TEXT)

    release.set()
    await task
    assert calls == 1


@pytest.mark.asyncio
async def test_cancel_callback_dismisses():
    from src.bot.confirmation import ConfirmationManager
    from src.bot.confirmation_prompt import cancel_callback

    manager = ConfirmationManager()
    action = AsyncMock()
    manager.request(123, _options(), action)
    token = manager.workflow(123).token

    callback = _make_callback(f"confirm:cancel:{token}")
    await cancel_callback(manager)(callback)

    action.assert_not_called()
    assert manager.get_pending(123) is None
    callback.answer.assert_called_once_with("Cancelled")
    callback.message.edit_reply_markup.assert_called_once_with(reply_markup=None)


@pytest.mark.asyncio
async def test_cancel_callback_blocked_while_running():
    from src.bot.confirmation import ConfirmationManager, Ok
    from src.bot.confirmation_prompt import cancel_callback, BUSY_TEXT

    manager = ConfirmationManager()
    release = asyncio.Event()

    async def action():
        await release.wait()
        return Ok()

    manager.request(123, _options(), action)
    token = manager.workflow(123).token

    task = asyncio.create_task(manager.confirm(123))
    await asyncio.sleep(0)

    callback = _make_callback(f"confirm:cancel:{token}")
    await cancel_callback(manager)(callback)

    callback.answer.assert_called_once_with(BUSY_TEXT)
    assert manager.workflow(123).pending is True

    release.set()
    await task


@pytest.mark.asyncio
async def test_busy_callback_answers():
    from src.bot.confirmation_prompt import busy_callback, BUSY_TEXT

    callback = _make_callback("confirm:busy")
    await busy_callback()(callback)

    callback.answer.assert_called_once_with(BUSY_TEXT)


def _bad_request(text: str):
    from aiogram.exceptions import TelegramBadRequest

    return TelegramBadRequest(method=MagicMock(), message=text)


def _reject_markdown(*args, **kwargs):
    """Behave like Telegram for a prompt whose name has an unpaired underscore."""
    if kwargs.get("parse_mode") == "Markdown":
        raise _bad_request("Bad Request: can't parse entities: can't find end of the entity")


def test_format_prompt_plain_keeps_name_characters():
    from src.bot.confirmation_prompt import format_prompt

    text = format_prompt(_options(description='Delete "IT_Support"?'), pending=True, markdown=False)

    assert text == '🗑️ Delete Department\n\nDelete "IT_Support"?\n\nProcessing...'


@pytest.mark.asyncio
async def test_send_prompt_falls_back_to_plain_text():
    from src.bot.confirmation import ConfirmationWorkflow
    from src.bot.confirmation_prompt import send_prompt

    workflow = ConfirmationWorkflow()
    workflow.request(_options(description='Delete "IT_Support"?'), AsyncMock())

    message = MagicMock()
    message.answer = AsyncMock(side_effect=_reject_markdown)

    await send_prompt(message, workflow)

    assert message.answer.call_count == 2
    fallback = message.answer.call_args
    assert "parse_mode" not in fallback[1]
    assert "IT_Support" in fallback[0][0]
    assert "*" not in fallback[0][0]
    assert fallback[1]["reply_markup"].inline_keyboard[0][0].callback_data == f"confirm:run:{workflow.token}"


@pytest.mark.asyncio
async def test_send_prompt_reraises_other_errors():
    from aiogram.exceptions import TelegramBadRequest
    from src.bot.confirmation import ConfirmationWorkflow
    from src.bot.confirmation_prompt import send_prompt

    workflow = ConfirmationWorkflow()
    workflow.request(_options(), AsyncMock())

    message = MagicMock()
    message.answer = AsyncMock(side_effect=_bad_request("Bad Request: chat not found"))

    with pytest.raises(TelegramBadRequest):
        await send_prompt(message, workflow)

    message.answer.assert_called_once()


@pytest.mark.asyncio
async def test_markdown_name_still_shows_pending_and_idle_buttons():
    """Test the prompt switches to busy buttons and back when Markdown is rejected."""
    from src.bot.confirmation import ConfirmationManager, Err
    from src.bot.confirmation_prompt import confirm_callback

    manager = ConfirmationManager()
    callback = None
    keyboard_while_running = None

    async def action():
        nonlocal keyboard_while_running
        keyboard_while_running = callback.message.edit_text.call_args[1]["reply_markup"]
        return Err(reason="network error")

    manager.request(123, _options(description='Delete "IT_Support"?'), action)
    token = manager.workflow(123).token

    callback = _make_callback(f"confirm:run:{token}")
    callback.message.edit_text = AsyncMock(side_effect=_reject_markdown)

    await confirm_callback(manager)(callback)

    # Busy buttons reached the message while the action ran
    assert keyboard_while_running.inline_keyboard[0][0].callback_data == "confirm:busy"

    # Idle buttons restored after the failure, as plain text
    last = callback.message.edit_text.call_args
    assert "parse_mode" not in last[1]
    assert "IT_Support" in last[0][0]
    assert last[1]["reply_markup"].inline_keyboard[0][0].callback_data == f"confirm:run:{token}"


@pytest.mark.asyncio
async def test_edit_failure_does_not_stop_action():
    from src.bot.confirmation import ConfirmationManager, Ok
    from src.bot.confirmation_prompt import confirm_callback

    manager = ConfirmationManager()
    action = AsyncMock(return_value=Ok())
    manager.request(123, _options(), action)
    token = manager.workflow(123).token

    callback = _make_callback(f"confirm:run:{token}")
    callback.message.edit_text = AsyncMock(side_effect=_bad_request("Bad Request: message is not modified"))

    await confirm_callback(manager)(callback)

    # Not a Markdown error, so no plain-text retry
    callback.message.edit_text.assert_called_once()
    action.assert_awaited_once()
    assert manager.get_pending(123) is None


@pytest.mark.asyncio
async def test_close_failure_is_ignored_on_cancel():
    from src.bot.confirmation import ConfirmationManager
    from src.bot.confirmation_prompt import cancel_callback

    manager = ConfirmationManager()
    manager.request(123, _options(), AsyncMock())
    token = manager.workflow(123).token

    callback = _make_callback(f"confirm:cancel:{token}")
    callback.message.edit_reply_markup = AsyncMock(
        side_effect=_bad_request("Bad Request: message to edit not found")
    )

    await cancel_callback(manager)(callback)

    callback.answer.assert_called_once_with("Cancelled")
    assert manager.get_pending(123) is None
