"""Lazy element references.

A :class:`Locator` is a plain descriptor (selector, optional index, optional
parent) bound to a session. Every interaction calls :meth:`Locator.resolve`,
which builds a fresh Playwright locator from the live page, so a DOM node
replaced between two steps is picked up by the next one.

Supported selector forms::

    #file-upload                  bare CSS
    css=#file-upload              explicit CSS
    text=Click Here               exact visible text
    role=button[name="Submit"]    ARIA role with optional accessible name
    xpath=//h3                    XPath
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Optional, Tuple

if TYPE_CHECKING:  # pragma: no cover
    from playwright.async_api import Locator as PlaywrightLocator

    from .session import Session


def parse_role_selector(value: str) -> Optional[Tuple[str, Optional[str]]]:
    match = re.fullmatch(
        r"role=([a-z0-9_-]+)(?:\[name=(['\"])(.+?)\2\])?",
        value.strip(),
        flags=re.IGNORECASE,
    )
    if not match:
        return None
    role, _, name = match.groups()
    return role.lower(), name


def build_locator(scope: Any, selector: str) -> "PlaywrightLocator":
    """Translate one selector string into a Playwright locator under ``scope``."""

    target = selector.strip()
    if not target:
        raise ValueError("selector must not be empty")
    if target.startswith("css="):
        return scope.locator(target[4:])
    if target.startswith("text="):
        return scope.get_by_text(target[5:], exact=True)
    if target.startswith("role="):
        parsed = parse_role_selector(target)
        if parsed is None:
            raise ValueError(f"Malformed role selector: {selector!r}")
        role, name = parsed
        if name:
            return scope.get_by_role(role, name=name, exact=True)
        return scope.get_by_role(role)
    # xpath= is understood natively by Playwright.
    return scope.locator(target)


@dataclass(frozen=True)
class Locator:
    session: "Session" = field(compare=False, repr=False)
    selector: str
    index: Optional[int] = None
    parent: Optional["Locator"] = None

    def __post_init__(self) -> None:
        if self.index is not None and self.index < 0:
            raise ValueError("index must be >= 0")

    @property
    def page(self) -> Any:
        return self.session.page

    def resolve(self) -> "PlaywrightLocator":
        scope = self.parent.resolve() if self.parent is not None else self.session.page
        loc = build_locator(scope, self.selector)
        if self.index is not None:
            loc = loc.nth(self.index)
        return loc

    def nth(self, index: int) -> "Locator":
        if self.index is not None:
            raise ValueError(f"{self.describe()} is already indexed")
        return replace(self, index=index)

    @property
    def first(self) -> "Locator":
        return self.nth(0)

    def locate(self, selector: str, index: Optional[int] = None) -> "Locator":
        return Locator(self.session, selector, index=index, parent=self)

    def describe(self) -> str:
        own = self.selector if self.index is None else f"{self.selector} [{self.index}]"
        if self.parent is None:
            return own
        return f"{self.parent.describe()} >> {own}"

    def __str__(self) -> str:
        return self.describe()
