"""Interaction primitives built on re-resolved locators."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence, Union

from playwright.async_api import Error as PlaywrightError

from .errors import ActionError, InvalidFileError, NavigationError
from .events import PendingDialog, PendingPopup
from .locator import Locator
from .session import Session, SessionState

log = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


DRAG_AND_DROP_SCRIPT = """
    ([source, target]) => {
        if (!source || !target) {
            return {success: false, reason: 'detached'};
        }
        const transfer = new DataTransfer();
        const fire = (el, type) => el.dispatchEvent(new DragEvent(type, {
            bubbles: true,
            cancelable: true,
            dataTransfer: transfer,
        }));
        fire(source, 'dragstart');
        fire(target, 'drop');
        fire(source, 'dragend');
        return {success: true, types: Array.from(transfer.types)};
    }
"""


def _timeout(locator: Locator, timeout: Optional[int]) -> int:
    return timeout if timeout is not None else locator.session.config.action_timeout_ms


def _begin(session: Session) -> None:
    if session.closed:
        raise ActionError(f"Session {session.id} is closed", reason="session_closed")
    session.dialogs.raise_errors()
    session.transition(SessionState.ACTING)


def _classify(exc: PlaywrightError, stage: Optional[str] = None) -> str:
    message = str(exc).lower()
    if "strict mode violation" in message:
        return "ambiguous"
    # Playwright words every failed wait as a timeout; the stage says which wait.
    if stage is not None:
        return stage
    if "not attached" in message or "detached" in message:
        return "detached"
    if "not visible" in message:
        return "not_visible"
    if "not enabled" in message or "disabled" in message:
        return "not_enabled"
    if "timeout" in message:
        return "timeout"
    return "driver_error"


def _fail(verb: str, locator: Locator, exc: PlaywrightError, stage: Optional[str] = None) -> ActionError:
    reason = _classify(exc, stage)
    return ActionError(
        f"{verb} on {locator.describe()} failed ({reason}): {exc}",
        reason=reason,
        details={"locator": locator.describe()},
    )


async def prepare_locator(locator: Locator, timeout: Optional[int] = None) -> Any:
    """Resolve ``locator`` and wait until it is attached, visible and enabled."""

    timeout = _timeout(locator, timeout)
    target = locator.resolve()
    stage: Optional[str] = "not_attached"
    try:
        await target.wait_for(state="attached", timeout=timeout)
        await target.scroll_into_view_if_needed(timeout=timeout)
        stage = "not_visible"
        await target.wait_for(state="visible", timeout=timeout)
        stage = None
        enabled = await target.is_enabled(timeout=timeout)
    except PlaywrightError as exc:
        raise _fail("Preparing", locator, exc, stage) from exc
    if not enabled:
        raise ActionError(f"{locator.describe()} is not enabled", reason="not_enabled")
    return target


async def click(locator: Locator, *, timeout: Optional[int] = None) -> None:
    _begin(locator.session)
    timeout = _timeout(locator, timeout)
    target = await prepare_locator(locator, timeout)
    try:
        await target.click(timeout=timeout)
    except PlaywrightError as exc:
        raise _fail("Click", locator, exc) from exc
    locator.session.dialogs.raise_errors()


async def hover(locator: Locator, *, timeout: Optional[int] = None) -> None:
    _begin(locator.session)
    timeout = _timeout(locator, timeout)
    target = await prepare_locator(locator, timeout)
    try:
        await target.hover(timeout=timeout)
    except PlaywrightError as exc:
        raise _fail("Hover", locator, exc) from exc
    locator.session.dialogs.raise_errors()


async def fill(locator: Locator, text: str, *, timeout: Optional[int] = None) -> None:
    _begin(locator.session)
    timeout = _timeout(locator, timeout)
    target = await prepare_locator(locator, timeout)
    try:
        await target.fill(text, timeout=timeout)
    except PlaywrightError as exc:
        raise _fail("Fill", locator, exc) from exc
    locator.session.dialogs.raise_errors()


async def is_checked(locator: Locator, *, timeout: Optional[int] = None) -> bool:
    target = locator.resolve()
    try:
        return await target.is_checked(timeout=_timeout(locator, timeout))
    except PlaywrightError as exc:
        raise _fail("Reading checked state", locator, exc) from exc


async def _set_checked(locator: Locator, desired: bool, timeout: Optional[int]) -> None:
    _begin(locator.session)
    timeout = _timeout(locator, timeout)
    target = await prepare_locator(locator, timeout)
    try:
        if await target.is_checked(timeout=timeout) == desired:
            log.debug("%s already %s", locator.describe(), "checked" if desired else "unchecked")
            return
        if desired:
            await target.check(timeout=timeout)
        else:
            await target.uncheck(timeout=timeout)
    except PlaywrightError as exc:
        raise _fail("Check" if desired else "Uncheck", locator, exc) from exc
    locator.session.dialogs.raise_errors()


async def check(locator: Locator, *, timeout: Optional[int] = None) -> None:
    await _set_checked(locator, True, timeout)


async def uncheck(locator: Locator, *, timeout: Optional[int] = None) -> None:
    await _set_checked(locator, False, timeout)


async def get_attribute(locator: Locator, name: str, *, timeout: Optional[int] = None) -> Optional[str]:
    target = locator.resolve()
    try:
        return await target.get_attribute(name, timeout=_timeout(locator, timeout))
    except PlaywrightError as exc:
        raise _fail(f"Reading attribute {name!r}", locator, exc) from exc


async def text_of(locator: Locator, *, timeout: Optional[int] = None) -> str:
    target = locator.resolve()
    try:
        value = await target.text_content(timeout=_timeout(locator, timeout))
    except PlaywrightError as exc:
        raise _fail("Reading text", locator, exc) from exc
    return " ".join((value or "").split())


def validate_upload_paths(
    file_paths: Iterable[PathLike],
    allow_list: Sequence[str] = (),
    *,
    base_dir: Optional[Path] = None,
) -> List[Path]:
    """Return resolved paths, raising :class:`InvalidFileError` for the first bad one."""

    resolved: List[Path] = []
    for raw in file_paths:
        path = Path(raw)
        if base_dir is not None and not path.is_absolute():
            path = base_dir / path
        if not path.exists():
            raise InvalidFileError(str(raw), "file does not exist")
        if not path.is_file():
            raise InvalidFileError(str(raw), "not a regular file")
        if not os.access(path, os.R_OK):
            raise InvalidFileError(str(raw), "file is not readable")
        if allow_list and path.suffix.lower() not in allow_list:
            raise InvalidFileError(str(raw), f"extension {path.suffix or '<none>'} is not allowed")
        resolved.append(path)
    if not resolved:
        raise InvalidFileError("", "no files given")
    return resolved


async def set_input_files(
    locator: Locator,
    file_paths: Sequence[PathLike],
    *,
    timeout: Optional[int] = None,
) -> List[Path]:
    paths = validate_upload_paths(file_paths, locator.session.config.upload_allow_list)
    _begin(locator.session)
    target = locator.resolve()
    try:
        await target.set_input_files([str(p) for p in paths], timeout=_timeout(locator, timeout))
    except PlaywrightError as exc:
        raise _fail("Setting input files", locator, exc) from exc
    locator.session.dialogs.raise_errors()
    log.info("Attached %s to %s", ", ".join(p.name for p in paths), locator.describe())
    return paths


async def simulate_drag_drop(source: Locator, target: Locator, *, timeout: Optional[int] = None) -> None:
    """Synthesize dragstart, drop and dragend sharing one DataTransfer payload."""

    if source.session is not target.session:
        raise ActionError("Drag source and target belong to different sessions", reason="cross_session")
    session = source.session
    _begin(session)
    timeout = _timeout(source, timeout)
    src = await prepare_locator(source, timeout)
    dst = await prepare_locator(target, timeout)
    src_handle = dst_handle = None
    try:
        src_handle = await src.element_handle(timeout=timeout)
        dst_handle = await dst.element_handle(timeout=timeout)
        result = await session.page.evaluate(DRAG_AND_DROP_SCRIPT, [src_handle, dst_handle])
    except PlaywrightError as exc:
        raise _fail("Drag and drop", source, exc) from exc
    finally:
        for handle in (src_handle, dst_handle):
            if handle is not None:
                try:
                    await handle.dispose()
                except PlaywrightError as exc:
                    log.debug("Failed to dispose element handle: %s", exc)
    if not isinstance(result, dict) or not result.get("success"):
        reason = result.get("reason", "unknown") if isinstance(result, dict) else "unknown"
        raise ActionError(
            f"Drag from {source.describe()} to {target.describe()} was not dispatched",
            reason=reason,
        )
    session.dialogs.raise_errors()


def respond_to_dialog(pending: PendingDialog, action: str, text: Optional[str] = None) -> PendingDialog:
    pending.set_response(action, text)
    return pending


async def wait_for_popup(pending: PendingPopup, *, timeout: Optional[int] = None) -> Session:
    opener: Session = pending.opener
    timeout = timeout if timeout is not None else opener.config.popup_timeout_ms
    page = await pending.wait(timeout)
    popup = opener.adopt_popup(page)
    try:
        await page.wait_for_load_state("load", timeout=opener.config.navigation_timeout_ms)
    except PlaywrightError as exc:
        raise NavigationError(f"Popup did not finish loading: {exc}") from exc
    popup.target_url = page.url
    popup.transition(SessionState.NAVIGATED)
    log.info("Session %s opened popup %s at %s", opener.id, popup.id, popup.target_url)
    return popup
