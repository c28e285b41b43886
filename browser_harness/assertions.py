"""Polling assertions over locators and values.

``expect`` re-resolves its subject on every poll and only gives up when the
timeout elapses::

    await expect(session.locate("#result"), contains_text("You clicked: Ok"))
    await expect(checkbox, ~is_checked(), timeout_ms=2000)
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Optional

from playwright.async_api import Error as PlaywrightError

from .config import DEFAULTS
from .errors import AssertionTimeoutError
from .locator import Locator
from .session import SessionState

log = logging.getLogger(__name__)


def _normalise(text: Optional[str]) -> str:
    return " ".join((text or "").split())


class ObservationFailed:
    """A poll whose lookup raised; no predicate matches it, negated or not."""

    def __init__(self, message: str) -> None:
        self.message = message

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, ObservationFailed) and other.message == self.message

    def __hash__(self) -> int:
        return hash(self.message)

    def __repr__(self) -> str:
        return f"<observation failed: {self.message}>"

    def __str__(self) -> str:
        return repr(self)


class Predicate:
    """Observes a subject and decides whether the observation satisfies it.

    Subclasses implement ``matches``; ``holds`` is what the polling loop calls
    and rejects failed observations before any predicate sees them.
    """

    def holds(self, observed: Any) -> bool:
        if isinstance(observed, ObservationFailed):
            return False
        return self.matches(observed)

    def describe(self) -> str:
        return type(self).__name__

    async def observe_locator(self, locator: Any, timeout: int) -> Any:
        raise NotImplementedError

    def observe_value(self, value: Any) -> Any:
        return value

    def matches(self, observed: Any) -> bool:
        raise NotImplementedError

    def __invert__(self) -> "Predicate":
        return Not(self)

    def __repr__(self) -> str:
        return self.describe()


class IsVisible(Predicate):
    def describe(self) -> str:
        return "is_visible()"

    async def observe_locator(self, locator: Any, timeout: int) -> Any:
        return await locator.is_visible()

    def matches(self, observed: Any) -> bool:
        return bool(observed)


class ContainsText(Predicate):
    def __init__(self, substring: str) -> None:
        self.substring = substring

    def describe(self) -> str:
        return f"contains_text({self.substring!r})"

    async def observe_locator(self, locator: Any, timeout: int) -> Any:
        if not await locator.count():
            return None
        return _normalise(await locator.text_content(timeout=timeout))

    def observe_value(self, value: Any) -> Any:
        return None if value is None else str(value)

    def matches(self, observed: Any) -> bool:
        return observed is not None and self.substring in observed


class IsChecked(Predicate):
    def describe(self) -> str:
        return "is_checked()"

    async def observe_locator(self, locator: Any, timeout: int) -> Any:
        if not await locator.count():
            return None
        return await locator.is_checked(timeout=timeout)

    def matches(self, observed: Any) -> bool:
        return observed is True


class Equals(Predicate):
    def __init__(self, expected: Any) -> None:
        self.expected = expected

    def describe(self) -> str:
        return f"equals({self.expected!r})"

    async def observe_locator(self, locator: Any, timeout: int) -> Any:
        if not await locator.count():
            return None
        return _normalise(await locator.text_content(timeout=timeout))

    def matches(self, observed: Any) -> bool:
        return observed == self.expected


class HasAttribute(Predicate):
    def __init__(self, name: str, expected: Optional[str] = None) -> None:
        self.name = name
        self.expected = expected

    def describe(self) -> str:
        if self.expected is None:
            return f"has_attribute({self.name!r})"
        return f"has_attribute({self.name!r}, {self.expected!r})"

    async def observe_locator(self, locator: Any, timeout: int) -> Any:
        if not await locator.count():
            return None
        return await locator.get_attribute(self.name, timeout=timeout)

    def observe_value(self, value: Any) -> Any:
        if isinstance(value, dict):
            return value.get(self.name)
        return getattr(value, self.name, None)

    def matches(self, observed: Any) -> bool:
        if observed is None:
            return False
        return self.expected is None or observed == self.expected


class Not(Predicate):
    def __init__(self, inner: Predicate) -> None:
        self.inner = inner

    def describe(self) -> str:
        return f"not {self.inner.describe()}"

    async def observe_locator(self, locator: Any, timeout: int) -> Any:
        return await self.inner.observe_locator(locator, timeout)

    def observe_value(self, value: Any) -> Any:
        return self.inner.observe_value(value)

    def matches(self, observed: Any) -> bool:
        if isinstance(observed, ObservationFailed):
            return False
        return not self.inner.matches(observed)

    def __invert__(self) -> Predicate:
        return self.inner


def is_visible() -> Predicate:
    return IsVisible()


def contains_text(substring: str) -> Predicate:
    return ContainsText(substring)


def is_checked() -> Predicate:
    return IsChecked()


def equals(value: Any) -> Predicate:
    return Equals(value)


def has_attribute(name: str, value: Optional[str] = None) -> Predicate:
    return HasAttribute(name, value)


def not_(predicate: Predicate) -> Predicate:
    return ~predicate


def _describe_subject(subject: Any) -> str:
    if isinstance(subject, Locator):
        return subject.describe()
    if callable(subject):
        return getattr(subject, "__name__", repr(subject))
    return repr(subject)


async def _observe(subject: Any, predicate: Predicate, probe_timeout: int) -> Any:
    if isinstance(subject, Locator):
        try:
            return await predicate.observe_locator(subject.resolve(), probe_timeout)
        except PlaywrightError as exc:
            # The node may be mid-replacement; keep polling.
            log.debug("Observation of %s failed: %s", subject.describe(), exc)
            return ObservationFailed(str(exc).splitlines()[0] if str(exc) else type(exc).__name__)
    if callable(subject):
        value = subject()
        if inspect.isawaitable(value):
            value = await value
        return predicate.observe_value(value)
    return predicate.observe_value(subject)


async def expect(
    subject: Any,
    predicate: Predicate,
    timeout_ms: Optional[int] = None,
) -> Any:
    """Poll ``predicate`` against ``subject`` until it holds; return the matching observation."""

    poll_ms = DEFAULTS["poll_interval_ms"]
    default_timeout = DEFAULTS["assertion_timeout_ms"]
    if isinstance(subject, Locator):
        session = subject.session
        session.dialogs.raise_errors()
        session.transition(SessionState.ASSERTING)
        poll_ms = session.config.poll_interval_ms
        default_timeout = session.config.assertion_timeout_ms
    if timeout_ms is None:
        timeout_ms = default_timeout

    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_ms / 1000
    attempts = 0
    while True:
        attempts += 1
        observed = await _observe(subject, predicate, max(poll_ms, 50))
        if predicate.holds(observed):
            return observed
        remaining = deadline - loop.time()
        if remaining <= 0:
            break
        await asyncio.sleep(min(poll_ms / 1000, remaining))

    raise AssertionTimeoutError(
        f"{_describe_subject(subject)} did not satisfy {predicate.describe()} within {timeout_ms} ms "
        f"(last observed: {observed!r})",
        last_observed=observed,
        details={
            "subject": _describe_subject(subject),
            "predicate": predicate.describe(),
            "timeout_ms": timeout_ms,
            "attempts": attempts,
        },
    )
