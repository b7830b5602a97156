"""Credential prompt collaborators."""

from __future__ import annotations

import getpass
from typing import Optional, Protocol


class CredentialPrompt(Protocol):
    """Supplies a password on demand; `None` means nothing was entered."""

    def __call__(self) -> Optional[str]: ...


class GetpassPrompt:
    """Masked console prompt. The entered value is never stored."""

    def __init__(self, label: str = "Password: ") -> None:
        self._label = label

    def __call__(self) -> Optional[str]:
        try:
            value = getpass.getpass(self._label)
        except EOFError:
            return None
        return value or None
