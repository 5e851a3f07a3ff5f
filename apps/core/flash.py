"""Transient notifications stored in the signed session cookie.

A message is pushed by a handler (usually right before a redirect) and
popped by the next page render, so each one is shown exactly once.
"""

from typing import Dict, List

from fastapi import Request

FLASH_KEY = "_flashes"


def flash(request: Request, message: str, level: str = "info") -> None:
    messages = request.session.get(FLASH_KEY, [])
    messages.append({"message": message, "level": level})
    request.session[FLASH_KEY] = messages


def pop_flashes(request: Request) -> List[Dict[str, str]]:
    return request.session.pop(FLASH_KEY, [])
