import asyncio

import pytest

from browser_harness import actions
from browser_harness.assertions import contains_text, expect
from browser_harness.config import HarnessConfig
from browser_harness.errors import (
    DialogMismatchError,
    DialogNotHandled,
    HarnessError,
    PopupTimeoutError,
)
from browser_harness.events import PendingDialog
from browser_harness.session import SessionController

from fakes import FakeBrowser

ALERT = 'role=button[name="Click for JS Alert"]'
CONFIRM = 'role=button[name="Click for JS Confirm"]'
PROMPT = 'role=button[name="Click for JS Prompt"]'


def test_each_registration_answers_exactly_one_dialog(config: HarnessConfig, browser: FakeBrowser) -> None:
    async def scenario() -> None:
        controller = SessionController(browser, config)
        session = await controller.open("/javascript_alerts")
        result = session.locate("#result")

        first = session.expect_dialog("accept")
        second = session.expect_dialog("dismiss")
        await actions.click(session.locate(CONFIRM))
        await expect(result, contains_text("You clicked: Ok"))
        await actions.click(session.locate(CONFIRM))
        await expect(result, contains_text("You clicked: Cancel"))

        assert first.consumed and second.consumed
        assert [e["action"] for e in session.dialogs.snapshot()] == ["accept", "dismiss"]
        await controller.close_all()

    asyncio.run(scenario())


def test_prompt_receives_registered_text(config: HarnessConfig, browser: FakeBrowser) -> None:
    async def scenario() -> None:
        controller = SessionController(browser, config)
        session = await controller.open("/javascript_alerts")

        pending = session.expect_dialog("dismiss", expected_type="prompt")
        actions.respond_to_dialog(pending, "accept_with_text", "harness")
        await actions.click(session.locate(PROMPT))

        observed = await pending.wait(config.dialog_timeout_ms)
        assert observed == {"type": "prompt", "message": "I am a JS prompt"}
        await expect(session.locate("#result"), contains_text("You entered: harness"))
        with pytest.raises(HarnessError) as excinfo:
            pending.set_response("dismiss")
        assert excinfo.value.code == "DIALOG_REGISTRATION"
        await controller.close_all()

    asyncio.run(scenario())


def test_dialog_without_registration_fails_the_action(config: HarnessConfig, browser: FakeBrowser) -> None:
    async def scenario() -> None:
        controller = SessionController(browser, config)
        session = await controller.open("/javascript_alerts")

        with pytest.raises(DialogNotHandled):
            await actions.click(session.locate(ALERT))

        fired = session.page.dialogs[-1]
        assert fired.accepted is False
        assert session.dialogs.snapshot()[-1]["status"] == "unexpected"
        await controller.close_all()

    asyncio.run(scenario())


def test_dialog_type_mismatch_is_reported(config: HarnessConfig, browser: FakeBrowser) -> None:
    async def scenario() -> None:
        controller = SessionController(browser, config)
        session = await controller.open("/javascript_alerts")

        session.expect_dialog("accept", expected_type="confirm")
        with pytest.raises(DialogMismatchError):
            await actions.click(session.locate(ALERT))
        await controller.close_all()

    asyncio.run(scenario())


def test_unconsumed_registration_fails_at_navigation(config: HarnessConfig, browser: FakeBrowser) -> None:
    async def scenario() -> None:
        controller = SessionController(browser, config)
        session = await controller.open("/javascript_alerts")
        pending = session.expect_dialog("accept")

        with pytest.raises(DialogNotHandled):
            await session.goto("/checkboxes")

        assert pending.discarded
        assert [entry["id"] for entry in session.unconsumed_registrations()] == [pending.id]
        # A discarded registration never answers a later dialog.
        with pytest.raises(DialogNotHandled):
            await actions.click(session.locate(ALERT))
        await controller.close_all()

    asyncio.run(scenario())


def test_pending_dialog_wait_times_out() -> None:
    async def scenario() -> None:
        pending = PendingDialog(action="accept")
        with pytest.raises(DialogNotHandled):
            await pending.wait(20)

    asyncio.run(scenario())


def test_pending_dialog_rejects_bad_responses() -> None:
    with pytest.raises(ValueError):
        PendingDialog(action="ignore")
    with pytest.raises(ValueError):
        PendingDialog(action="accept_with_text")
    with pytest.raises(ValueError):
        PendingDialog(expected_type="toast")


def test_popup_is_captured_as_new_session(config: HarnessConfig, browser: FakeBrowser) -> None:
    async def scenario() -> None:
        controller = SessionController(browser, config)
        opener = await controller.open("/windows")

        pending = opener.expect_popup()
        await actions.click(opener.locate('role=link[name="Click Here"]'))
        popup = await actions.wait_for_popup(pending)

        assert popup.url == "https://demo.test/windows/new"
        assert popup.opener is opener
        await expect(popup.locate("h3"), contains_text("New Window"))
        assert opener.state.value == "acting"
        assert opener.context.listeners.get("page") == []

        await popup.close()
        assert popup.page.closed and not opener.page.closed
        await controller.close_all()

    asyncio.run(scenario())


def test_popup_wait_times_out_when_nothing_opens(config: HarnessConfig, browser: FakeBrowser) -> None:
    async def scenario() -> None:
        controller = SessionController(browser, config)
        opener = await controller.open("/windows")
        pending = opener.expect_popup()

        with pytest.raises(PopupTimeoutError):
            await actions.wait_for_popup(pending, timeout=20)
        assert [entry["kind"] for entry in opener.unconsumed_registrations()] == ["popup"]
        await controller.close_all()

    asyncio.run(scenario())
