import asyncio
from pathlib import Path

import pytest

from browser_harness import actions
from browser_harness.assertions import contains_text, equals, expect, is_checked, is_visible
from browser_harness.config import HarnessConfig
from browser_harness.errors import ActionError, DialogNotHandled, InvalidFileError
from browser_harness.session import SessionController

from fakes import FakeBrowser, FakeElement


def test_validate_upload_paths(tmp_path: Path) -> None:
    good = tmp_path / "report.TXT"
    good.write_text("hello", encoding="utf-8")

    assert actions.validate_upload_paths([good], (".txt",)) == [good]
    assert actions.validate_upload_paths(["report.TXT"], base_dir=tmp_path) == [good]

    with pytest.raises(InvalidFileError) as missing:
        actions.validate_upload_paths([tmp_path / "nope.txt"])
    assert missing.value.reason == "file does not exist"
    with pytest.raises(InvalidFileError) as directory:
        actions.validate_upload_paths([tmp_path])
    assert directory.value.reason == "not a regular file"
    with pytest.raises(InvalidFileError) as extension:
        actions.validate_upload_paths([good], (".png",))
    assert "not allowed" in extension.value.reason
    with pytest.raises(InvalidFileError):
        actions.validate_upload_paths([])


def test_upload_attaches_file_and_submits(config: HarnessConfig, browser: FakeBrowser, tmp_path: Path) -> None:
    upload = tmp_path / "example.txt"
    upload.write_text("payload", encoding="utf-8")

    async def scenario() -> None:
        controller = SessionController(browser, config)
        session = await controller.open("/upload")

        attached = await actions.set_input_files(session.locate("#file-upload"), [upload])
        await actions.click(session.locate("#file-submit"))

        assert attached == [upload]
        await expect(session.locate("h3"), contains_text("File Uploaded!"))
        await expect(session.locate("#uploaded-files"), contains_text("example.txt"))
        await controller.close_all()

    asyncio.run(scenario())


def test_invalid_upload_never_touches_the_page(config: HarnessConfig, browser: FakeBrowser, tmp_path: Path) -> None:
    async def scenario() -> None:
        controller = SessionController(browser, config)
        session = await controller.open("/upload")
        before = list(session.page.actions)

        with pytest.raises(InvalidFileError):
            await actions.set_input_files(session.locate("#file-upload"), [tmp_path / "missing.txt"])

        assert session.page.actions == before
        await controller.close_all()

    asyncio.run(scenario())


def test_drag_drop_swaps_columns_and_is_reversible(config: HarnessConfig, browser: FakeBrowser) -> None:
    async def scenario() -> None:
        controller = SessionController(browser, config)
        session = await controller.open("/drag_and_drop")
        column_a = session.locate("#column-a")
        column_b = session.locate("#column-b")

        await actions.simulate_drag_drop(column_a, column_b)
        await expect(column_a, equals("B"))
        await expect(column_b, equals("A"))

        await actions.simulate_drag_drop(column_b, column_a)
        await expect(column_a, equals("A"))
        await expect(column_b, equals("B"))
        await controller.close_all()

    asyncio.run(scenario())


def test_hover_reveals_nested_caption(config: HarnessConfig, browser: FakeBrowser) -> None:
    async def scenario() -> None:
        controller = SessionController(browser, config)
        session = await controller.open("/hovers")
        figure = session.locate(".figure", index=1)
        caption = figure.locate(".figcaption")

        await expect(caption, ~is_visible())
        await actions.hover(figure)
        await expect(caption, is_visible())
        await expect(caption, contains_text("name: user2"))
        assert await actions.get_attribute(figure.locate("a"), "href") == "/users/2"
        await controller.close_all()

    asyncio.run(scenario())


def test_check_and_uncheck_converge(config: HarnessConfig, browser: FakeBrowser) -> None:
    async def scenario() -> None:
        controller = SessionController(browser, config)
        session = await controller.open("/checkboxes")
        first = session.locate('input[type="checkbox"]', index=0)
        second = session.locate('input[type="checkbox"]', index=1)

        await actions.check(first)
        await actions.check(first)
        await actions.uncheck(second)
        await actions.uncheck(second)

        await expect(first, is_checked())
        await expect(second, ~is_checked())
        toggles = [name for name, _ in session.page.actions if name in {"check", "uncheck"}]
        assert toggles == ["check", "uncheck"]
        await controller.close_all()

    asyncio.run(scenario())


def test_action_errors_carry_a_reason(config: HarnessConfig, browser: FakeBrowser) -> None:
    async def scenario() -> None:
        controller = SessionController(browser, config)
        session = await controller.open("/checkboxes")

        with pytest.raises(ActionError) as disabled:
            await actions.click(session.locate("#disabled"))
        assert disabled.value.reason == "not_enabled"

        with pytest.raises(ActionError) as ambiguous:
            await actions.click(session.locate('input[type="checkbox"]'))
        assert ambiguous.value.reason == "ambiguous"

        with pytest.raises(ActionError) as missing:
            await actions.fill(session.locate("#nothing-here"), "text")
        assert missing.value.reason == "not_attached"

        session.page.elements["#hidden"] = [FakeElement("hidden", visible=False)]
        with pytest.raises(ActionError) as hidden:
            await actions.click(session.locate("#hidden"))
        assert hidden.value.reason == "not_visible"

        await session.close()
        with pytest.raises(ActionError) as closed:
            await actions.click(session.locate("#disabled"))
        assert closed.value.reason == "session_closed"

    asyncio.run(scenario())


def test_dialog_opened_by_hover_fails_the_hover(config: HarnessConfig, browser: FakeBrowser) -> None:
    async def scenario() -> None:
        controller = SessionController(browser, config)
        session = await controller.open("/hovers")
        figure = session.page.elements[".figure"][0]

        async def _alert(element: FakeElement) -> None:
            await session.page.fire_dialog("alert", "Hovered!")

        figure.on_hover = _alert

        with pytest.raises(DialogNotHandled, match="Hovered!"):
            await actions.hover(session.locate(".figure", index=0))
        assert session.page.dialogs[0].accepted is False
        await controller.close_all()

    asyncio.run(scenario())
