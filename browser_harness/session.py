"""Session controller: browser context lifecycle and capability surface."""

from __future__ import annotations

import enum
import logging
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional
from urllib.parse import urljoin, urlsplit

from playwright.async_api import Error as PlaywrightError

from .config import HarnessConfig
from .errors import HarnessError, NavigationError
from .events import DialogMonitor, PendingDialog, PendingPopup
from .locator import Locator

log = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    CREATED = "created"
    NAVIGATED = "navigated"
    ACTING = "acting"
    ASSERTING = "asserting"
    CLOSED = "closed"


_ACTIVE = {SessionState.NAVIGATED, SessionState.ACTING, SessionState.ASSERTING, SessionState.CLOSED}

_TRANSITIONS = {
    SessionState.CREATED: {SessionState.NAVIGATED, SessionState.CLOSED},
    SessionState.NAVIGATED: _ACTIVE,
    SessionState.ACTING: _ACTIVE,
    SessionState.ASSERTING: _ACTIVE,
    SessionState.CLOSED: set(),
}


class Session:
    """One browser context (or popup page) owned by a single scenario."""

    def __init__(
        self,
        controller: "SessionController",
        *,
        context: Any,
        page: Any,
        target_url: str = "",
        owns_context: bool = True,
        opener: Optional["Session"] = None,
    ) -> None:
        self.id = uuid.uuid4().hex[:12]
        self.controller = controller
        self.config: HarnessConfig = controller.config
        self.context = context
        self.page = page
        self.target_url = target_url
        self.owns_context = owns_context
        self.opener = opener
        self.state = SessionState.CREATED
        self.dialogs = DialogMonitor(page, session_id=self.id)
        self.dialogs.start()
        self.popups: List[PendingPopup] = []
        self.children: List[Session] = []

    def __repr__(self) -> str:
        return f"<Session {self.id} state={self.state.value} url={self.target_url!r}>"

    @property
    def closed(self) -> bool:
        return self.state is SessionState.CLOSED

    @property
    def url(self) -> str:
        try:
            return self.page.url
        except Exception:
            return self.target_url

    def transition(self, state: SessionState) -> None:
        if state is self.state and state is not SessionState.CLOSED:
            return
        if state not in _TRANSITIONS[self.state]:
            raise HarnessError(
                f"Session {self.id} cannot move from {self.state.value} to {state.value}",
                code="SESSION_STATE",
                details={"from": self.state.value, "to": state.value},
            )
        self.state = state

    async def goto(self, url: str) -> None:
        # Registrations made before a navigation must have fired by now.
        self.dialogs.check()
        target = self.controller.resolve_url(url)
        self.target_url = target
        try:
            response = await self.page.goto(
                target,
                wait_until="load",
                timeout=self.config.navigation_timeout_ms,
            )
        except PlaywrightError as exc:
            raise NavigationError(f"Navigation to {target} failed: {exc}", details={"url": target}) from exc
        if self.config.check_http_status and response is not None and response.status >= 400:
            raise NavigationError(
                f"Navigation to {target} returned HTTP {response.status}",
                details={"url": target, "status": response.status},
            )
        self.transition(SessionState.NAVIGATED)
        log.info("Session %s navigated to %s", self.id, target)

    def locate(self, selector: str, index: Optional[int] = None) -> Locator:
        return Locator(self, selector, index=index)

    def expect_dialog(
        self,
        response: str = "accept",
        text: Optional[str] = None,
        *,
        expected_type: Optional[str] = None,
        expected_message: Optional[str] = None,
    ) -> PendingDialog:
        pending = PendingDialog(
            action=response,
            text=text,
            expected_type=expected_type,
            expected_message=expected_message,
        )
        return self.dialogs.register(pending)

    def expect_popup(self) -> PendingPopup:
        pending = PendingPopup(self).start()
        self.popups.append(pending)
        return pending

    def adopt_popup(self, page: Any) -> "Session":
        child = Session(
            self.controller,
            context=self.context,
            page=page,
            target_url=getattr(page, "url", ""),
            owns_context=False,
            opener=self,
        )
        self.children.append(child)
        self.controller.track(child)
        return child

    async def bring_to_front(self) -> None:
        await self.page.bring_to_front()

    async def content(self) -> str:
        return await self.page.content()

    async def screenshot(self, path: Path) -> Path:
        await self.page.screenshot(path=str(path), full_page=True)
        return path

    def unconsumed_registrations(self) -> List[Dict[str, Any]]:
        entries = [p.describe() for p in self.dialogs.unconsumed()]
        entries.extend(p.describe() for p in self.popups if not p.consumed)
        for child in self.children:
            entries.extend(child.unconsumed_registrations())
        return entries

    async def close(self) -> None:
        if self.closed:
            return
        for child in self.children:
            await child.close()
        for pending in self.popups:
            pending.stop()
        self.dialogs.stop()
        try:
            if self.owns_context:
                await self.context.close()
            else:
                await self.page.close()
        except PlaywrightError as exc:
            log.warning("Session %s: error while closing: %s", self.id, exc)
        self.state = SessionState.CLOSED
        log.debug("Session %s closed", self.id)


class SessionController:
    """Opens and tracks sessions on one Playwright browser."""

    def __init__(self, browser: Any, config: Optional[HarnessConfig] = None) -> None:
        self.browser = browser
        self.config = config or HarnessConfig()
        self._sessions: List[Session] = []

    @property
    def open_sessions(self) -> List[Session]:
        return [s for s in self._sessions if not s.closed]

    def track(self, session: Session) -> None:
        self._sessions.append(session)

    def resolve_url(self, url: str) -> str:
        if urlsplit(url).scheme or not self.config.base_url:
            return url
        return urljoin(self.config.base_url.rstrip("/") + "/", url.lstrip("/"))

    async def open(self, url: str) -> Session:
        try:
            context = await self.browser.new_context()
            page = await context.new_page()
        except PlaywrightError as exc:
            raise NavigationError(f"Could not create a browser session: {exc}") from exc
        page.set_default_timeout(self.config.action_timeout_ms)
        session = Session(self, context=context, page=page, target_url=url)
        self.track(session)
        try:
            await session.goto(url)
        except BaseException:
            await session.close()
            raise
        return session

    def locate(self, session: Session, selector: str, index: Optional[int] = None) -> Locator:
        return session.locate(selector, index)

    def expect_popup(self, session: Session) -> PendingPopup:
        return session.expect_popup()

    def expect_dialog(
        self,
        session: Session,
        response: str = "accept",
        text: Optional[str] = None,
        *,
        expected_type: Optional[str] = None,
        expected_message: Optional[str] = None,
    ) -> PendingDialog:
        return session.expect_dialog(
            response, text, expected_type=expected_type, expected_message=expected_message
        )

    async def close(self, session: Session) -> None:
        await session.close()

    async def close_all(self) -> None:
        for session in reversed(self._sessions):
            await session.close()

    @asynccontextmanager
    async def session(self, url: str) -> AsyncIterator[Session]:
        session = await self.open(url)
        try:
            yield session
        finally:
            await session.close()
