import asyncio

import pytest

from browser_harness.config import HarnessConfig
from browser_harness.errors import HarnessError, NavigationError
from browser_harness.session import SessionController, SessionState

from fakes import FakeBrowser


def test_open_resolves_relative_url_against_base(config: HarnessConfig, browser: FakeBrowser) -> None:
    async def scenario() -> None:
        controller = SessionController(browser, config)
        session = await controller.open("/checkboxes")

        assert session.state is SessionState.NAVIGATED
        assert session.url == "https://demo.test/checkboxes"
        assert session.page.default_timeout == config.action_timeout_ms
        assert controller.open_sessions == [session]
        await controller.close_all()

    asyncio.run(scenario())
    assert browser.contexts[0].closed


def test_sessions_do_not_share_contexts(config: HarnessConfig, browser: FakeBrowser) -> None:
    async def scenario() -> None:
        controller = SessionController(browser, config)
        first = await controller.open("/checkboxes")
        second = await controller.open("/checkboxes")
        assert first.context is not second.context
        await controller.close(first)
        assert second.state is SessionState.NAVIGATED
        assert controller.open_sessions == [second]
        await controller.close_all()

    asyncio.run(scenario())


def test_unreachable_target_raises_navigation_error_and_closes(config: HarnessConfig, browser: FakeBrowser) -> None:
    async def scenario() -> None:
        controller = SessionController(browser, config)
        with pytest.raises(NavigationError):
            await controller.open("/unreachable")
        assert controller.open_sessions == []

    asyncio.run(scenario())
    assert browser.contexts[0].closed


def test_http_error_status_only_fails_when_enabled(config: HarnessConfig, browser: FakeBrowser) -> None:
    async def scenario() -> None:
        lenient = SessionController(browser, config)
        session = await lenient.open("/missing")
        assert session.state is SessionState.NAVIGATED
        await lenient.close_all()

        strict = SessionController(browser, config.with_overrides(check_http_status=True))
        with pytest.raises(NavigationError) as excinfo:
            await strict.open("/missing")
        assert excinfo.value.details["status"] == 404

    asyncio.run(scenario())


def test_session_context_manager_closes_on_error(config: HarnessConfig, browser: FakeBrowser) -> None:
    async def scenario() -> None:
        controller = SessionController(browser, config)
        with pytest.raises(RuntimeError):
            async with controller.session("/checkboxes") as session:
                raise RuntimeError("boom")
        assert session.closed

    asyncio.run(scenario())
    assert browser.contexts[0].closed


def test_close_is_idempotent_and_final(config: HarnessConfig, browser: FakeBrowser) -> None:
    async def scenario() -> None:
        controller = SessionController(browser, config)
        session = await controller.open("/checkboxes")
        await session.close()
        await session.close()
        assert session.page.listeners.get("dialog") == []
        with pytest.raises(HarnessError) as excinfo:
            session.transition(SessionState.NAVIGATED)
        assert excinfo.value.code == "SESSION_STATE"

    asyncio.run(scenario())
