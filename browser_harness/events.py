"""One-shot registrations for native dialogs and popups.

Playwright reports dialogs and new pages through event callbacks. The harness
turns each expectation into an explicit token that is registered before the
triggering action and consumed exactly once when the event fires.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from playwright.async_api import Dialog, Error as PlaywrightError

from .errors import DialogMismatchError, DialogNotHandled, HarnessError, PopupTimeoutError

log = logging.getLogger(__name__)

DIALOG_ACTIONS = ("accept", "accept_with_text", "dismiss")
DIALOG_TYPES = ("alert", "confirm", "prompt", "beforeunload")


def _new_id() -> str:
    return uuid.uuid4().hex[:8]


def _validate_response(action: str, text: Optional[str]) -> None:
    if action not in DIALOG_ACTIONS:
        raise ValueError(f"Unknown dialog action {action!r}; expected one of {', '.join(DIALOG_ACTIONS)}")
    if action == "accept_with_text" and text is None:
        raise ValueError("accept_with_text requires text")


@dataclass(eq=False)
class PendingDialog:
    action: str = "accept"
    text: Optional[str] = None
    expected_type: Optional[str] = None
    expected_message: Optional[str] = None
    id: str = field(default_factory=_new_id)
    consumed: bool = False
    discarded: bool = False
    observed: Optional[Dict[str, Any]] = None
    _fired: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    def __post_init__(self) -> None:
        _validate_response(self.action, self.text)
        if self.expected_type is not None and self.expected_type not in DIALOG_TYPES:
            raise ValueError(f"Unknown dialog type {self.expected_type!r}")

    @property
    def active(self) -> bool:
        return not (self.consumed or self.discarded)

    def set_response(self, action: str, text: Optional[str] = None) -> None:
        if not self.active:
            raise HarnessError(
                f"Dialog registration {self.id} is no longer active",
                code="DIALOG_REGISTRATION",
                details={"consumed": self.consumed, "discarded": self.discarded},
            )
        _validate_response(action, text)
        self.action = action
        self.text = text

    def describe(self) -> Dict[str, Any]:
        return {
            "kind": "dialog",
            "id": self.id,
            "action": self.action,
            "expected_type": self.expected_type,
            "expected_message": self.expected_message,
        }

    async def wait(self, timeout_ms: int) -> Dict[str, Any]:
        """Suspend until this registration is consumed."""

        if self.consumed and self.observed is not None:
            return self.observed
        try:
            await asyncio.wait_for(self._fired.wait(), timeout=timeout_ms / 1000)
        except asyncio.TimeoutError as exc:
            raise DialogNotHandled(
                f"No dialog fired within {timeout_ms} ms for registration {self.id}",
                details=self.describe(),
            ) from exc
        return self.observed or {}


class DialogMonitor:
    """Routes page dialogs to registered :class:`PendingDialog` tokens in FIFO order."""

    def __init__(self, page: Any, *, session_id: str = "") -> None:
        self.page = page
        self.session_id = session_id
        self.events: List[Dict[str, Any]] = []
        self._queue: Deque[PendingDialog] = deque()
        self._errors: List[HarnessError] = []
        self._discarded: List[PendingDialog] = []
        self._listeners: List[Tuple[str, Callable[..., Any]]] = []
        self._started = False

    def start(self) -> None:
        if self._started:
            return
        self._started = True

        async def _wrapper(dialog: Dialog) -> None:
            await self._handle_dialog(dialog)

        self.page.on("dialog", _wrapper)
        self._listeners.append(("dialog", _wrapper))

    def stop(self) -> None:
        if not self._started:
            return
        for event, handler in self._listeners:
            try:
                self.page.remove_listener(event, handler)
            except Exception as exc:
                log.debug("Failed to detach %s listener: %s", event, exc)
        self._listeners.clear()
        self._started = False

    def register(self, pending: PendingDialog) -> PendingDialog:
        self._queue.append(pending)
        log.debug("Session %s: registered dialog responder %s", self.session_id, pending.id)
        return pending

    @property
    def pending(self) -> List[PendingDialog]:
        return [p for p in self._queue if p.active]

    def raise_errors(self) -> None:
        """Raise the first error recorded by the dialog callback, if any."""

        if self._errors:
            error = self._errors.pop(0)
            self._errors.clear()
            raise error

    def check(self) -> None:
        """Fail on recorded errors, then discard and fail on unconsumed registrations."""

        self.raise_errors()
        leftover = self.pending
        if not leftover:
            return
        for pending in leftover:
            pending.discarded = True
            self._discarded.append(pending)
        self._queue.clear()
        raise DialogNotHandled(
            f"{len(leftover)} dialog registration(s) never fired",
            details={"registrations": [p.describe() for p in leftover]},
        )

    def unconsumed(self) -> List[PendingDialog]:
        return self.pending + [p for p in self._discarded if not p.consumed]

    def snapshot(self) -> List[Dict[str, Any]]:
        return list(self.events)

    async def _handle_dialog(self, dialog: Dialog) -> None:
        event: Dict[str, Any] = {
            "timestamp": time.time(),
            "type": dialog.type,
            "message": dialog.message,
        }
        pending = self._next_pending()
        if pending is None:
            event["status"] = "unexpected"
            self.events.append(event)
            self._errors.append(
                DialogNotHandled(
                    f"Unexpected {dialog.type} dialog without a registered responder: {dialog.message!r}",
                    details={"type": dialog.type, "message": dialog.message},
                )
            )
            await self._respond(dialog, "dismiss", None, event)
            return

        event["registration"] = pending.id
        pending.consumed = True
        pending.observed = {"type": dialog.type, "message": dialog.message}
        mismatch = self._mismatch(pending, dialog)
        if mismatch:
            self._errors.append(
                DialogMismatchError(mismatch, details={**pending.describe(), "observed": pending.observed})
            )
        await self._respond(dialog, pending.action, pending.text, event)
        self.events.append(event)
        pending._fired.set()

    def _next_pending(self) -> Optional[PendingDialog]:
        while self._queue:
            candidate = self._queue.popleft()
            if candidate.active:
                return candidate
        return None

    @staticmethod
    def _mismatch(pending: PendingDialog, dialog: Dialog) -> Optional[str]:
        if pending.expected_type is not None and dialog.type != pending.expected_type:
            return f"Expected a {pending.expected_type} dialog, got {dialog.type}"
        if pending.expected_message is not None and dialog.message != pending.expected_message:
            return f"Expected dialog message {pending.expected_message!r}, got {dialog.message!r}"
        return None

    async def _respond(self, dialog: Dialog, action: str, text: Optional[str], event: Dict[str, Any]) -> None:
        event["action"] = action
        try:
            if action == "dismiss":
                await dialog.dismiss()
                event.setdefault("status", "dismissed")
            elif action == "accept_with_text":
                await dialog.accept(text)
                event["accepted_value"] = text
                event.setdefault("status", "accepted")
            else:
                await dialog.accept()
                event.setdefault("status", "accepted")
        except PlaywrightError as exc:
            event["status"] = "error"
            event["error"] = str(exc)
            self._errors.append(
                DialogNotHandled(f"Failed to {action} {dialog.type} dialog: {exc}", details=dict(event))
            )


class PendingPopup:
    """Expectation that a new page opens in the opener's browser context."""

    def __init__(self, opener: Any) -> None:
        self.opener = opener
        self.id = _new_id()
        self.consumed = False
        self._future: Optional[asyncio.Future] = None
        self._handler: Optional[Callable[..., Any]] = None

    def start(self) -> "PendingPopup":
        loop = asyncio.get_running_loop()
        self._future = loop.create_future()

        def _on_page(page: Any) -> None:
            if self._future is not None and not self._future.done():
                self._future.set_result(page)
            self.stop()

        self._handler = _on_page
        self.opener.context.on("page", _on_page)
        return self

    def stop(self) -> None:
        if self._handler is None:
            return
        try:
            self.opener.context.remove_listener("page", self._handler)
        except Exception as exc:
            log.debug("Failed to detach popup listener: %s", exc)
        self._handler = None

    @property
    def observed(self) -> bool:
        return self._future is not None and self._future.done() and not self._future.cancelled()

    def describe(self) -> Dict[str, Any]:
        return {"kind": "popup", "id": self.id, "observed": self.observed}

    async def wait(self, timeout_ms: int) -> Any:
        if self._future is None:
            raise HarnessError("Popup expectation was never started", code="POPUP_REGISTRATION")
        if self.consumed:
            raise HarnessError(f"Popup registration {self.id} was already consumed", code="POPUP_REGISTRATION")
        try:
            page = await asyncio.wait_for(asyncio.shield(self._future), timeout=timeout_ms / 1000)
        except asyncio.TimeoutError as exc:
            self.stop()
            raise PopupTimeoutError(
                f"No popup opened within {timeout_ms} ms",
                details=self.describe(),
            ) from exc
        self.consumed = True
        return page
