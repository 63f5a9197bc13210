"""Split equation text into x-branch and y-branch member expressions.

Grammar
-------
Three input forms are accepted:

- ``y=<expr>``: single-valued function of ``x``; splits to ``(("x",), (expr,))``.
- ``x=<expr>``: single-valued function of ``y``; splits to ``((expr,), ("y",))``.
- ``{e1,e2,...},{f1,f2,...}``: the first brace group lists the x-branch
  members, the second the y-branch members. A bare ``e,f`` is read as two
  one-member groups.

Scanning rules
--------------
Only one level of brace grouping is recognized. The scanner keeps a single
"group open" flag rather than a nesting depth, so a ``{`` inside an open group
is kept as a literal character, and the first ``}`` closes the group. In
``{x},{{y}}`` the second group is ``{y`` and the final ``}`` is trailing text,
so it is dropped. Members of a branch are separated afterwards
on commas at parenthesis depth zero, so ``sqrt(max(a, b))`` stays whole.

Text left over after both groups have closed is discarded.

Examples
--------
>>> split_equation("y=sin(x)")
SplitEquation(x_branch=('x',), y_branch=('sin(x)',))
>>> split_equation("{x},{sqrt(25-x^2),-sqrt(25-x^2)}")
SplitEquation(x_branch=('x',), y_branch=('sqrt(25-x^2)', '-sqrt(25-x^2)'))
"""

from __future__ import annotations

import logging
from typing import NamedTuple

from .errors import MalformedEquation, TooManyBranches

__all__ = ["SplitEquation", "split_equation", "split_members"]


logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


_BRANCH_COUNT = 2
_BRANCH_NAMES = ("x-branch", "y-branch")


class SplitEquation(NamedTuple):
    """Raw member expressions of one equation, in textual order."""

    x_branch: tuple[str, ...]
    y_branch: tuple[str, ...]


def split_members(raw: str) -> tuple[str, ...]:
    """Split one branch string on commas that are not inside parentheses.

    >>> split_members("sqrt(r^2-(x-h)^2),k")
    ('sqrt(r^2-(x-h)^2)', 'k')
    """
    members: list[str] = []
    current: list[str] = []
    depth = 0
    for char in raw:
        if char == "," and depth == 0:
            members.append("".join(current))
            current = []
            continue
        if char == "(":
            depth += 1
        elif char == ")" and depth > 0:
            depth -= 1
        current.append(char)
    members.append("".join(current))
    return tuple(members)


def _shorthand(text: str) -> SplitEquation | None:
    if text.startswith("y=") and len(text) > 2:
        return SplitEquation(("x",), (text[2:],))
    if text.startswith("x=") and len(text) > 2:
        return SplitEquation((text[2:],), ("y",))
    return None


def _scan_groups(text: str) -> list[str]:
    """Return the raw string captured for each closed (or trailing) group."""
    groups: list[str] = []
    current: list[str] = []
    is_open = False
    # Set when a comma opened the group; a following "{" is then absorbed.
    comma_opened = False

    def flush() -> None:
        if len(groups) == _BRANCH_COUNT:
            raise TooManyBranches(
                f"equation has more than {_BRANCH_COUNT} brace groups", text=text
            )
        groups.append("".join(current))
        current.clear()

    for char in text:
        if char.isspace():
            continue
        if char == "{":
            if not is_open:
                is_open = True
                comma_opened = False
            elif comma_opened and not current:
                comma_opened = False
            else:
                current.append(char)
        elif char == ",":
            if is_open:
                current.append(char)
            elif current:
                flush()
            else:
                is_open = True
                comma_opened = True
        elif char == "}":
            if not is_open:
                current.append(char)
                continue
            flush()
            is_open = False
            comma_opened = False
        else:
            current.append(char)

    if current:
        if len(groups) == _BRANCH_COUNT:
            logger.debug("split_equation: discarding trailing text %r", "".join(current))
        else:
            groups.append("".join(current))
    return groups


def split_equation(text: str) -> SplitEquation:
    """Split *text* into its x-branch and y-branch member lists.

    Parameters
    ----------
    text : str
        Equation in one of the forms described in the module docstring.

    Returns
    -------
    SplitEquation
        Ordered member tuples for both branches.

    Raises
    ------
    TooManyBranches
        If a third brace group is closed.
    MalformedEquation
        If a branch is missing or contains an empty member.
    """
    if not isinstance(text, str):
        raise TypeError(f"split_equation expects a string, got {type(text).__name__}")
    stripped = text.strip()

    shorthand = _shorthand(stripped)
    if shorthand is not None:
        return shorthand

    groups = _scan_groups(stripped)
    if len(groups) < _BRANCH_COUNT:
        missing = _BRANCH_NAMES[len(groups)]
        raise MalformedEquation(f"equation {stripped!r} has no {missing}", text=text)

    branches = tuple(split_members(group) for group in groups)
    for name, members in zip(_BRANCH_NAMES, branches):
        if any(not member for member in members):
            raise MalformedEquation(
                f"equation {stripped!r} has an empty member in its {name}", text=text
            )
    return SplitEquation(*branches)
