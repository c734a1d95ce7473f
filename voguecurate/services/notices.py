"""Single dismissible notice plus the blocking credential prompt."""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Deque, List

logger = logging.getLogger(__name__)

GENERIC_GENERATION_ERROR = "An unexpected error occurred during AI generation."


@dataclass(slots=True)
class Notice:
    kind: str
    message: str
    created_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


class NoticeBoard:
    """Hold the most recent failure notice for the workspace.

    Only one notice is visible at a time; posting replaces it. The credential
    prompt is tracked separately because it blocks further generation until a
    new key is supplied.
    """

    def __init__(self, *, history_size: int = 50) -> None:
        self._current: Notice | None = None
        self._credential_required = False
        self._credential_message: str | None = None
        self._history: Deque[Notice] = deque(maxlen=history_size)

    @property
    def current(self) -> Notice | None:
        return self._current

    @property
    def credential_required(self) -> bool:
        return self._credential_required

    @property
    def credential_message(self) -> str | None:
        return self._credential_message

    @property
    def history(self) -> List[Notice]:
        return list(self._history)

    def post(self, kind: str, message: str) -> Notice:
        notice = Notice(kind=kind, message=message)
        self._current = notice
        self._history.append(notice)
        logger.info("Notice posted", extra={"notice_kind": kind})
        return notice

    def dismiss(self) -> None:
        self._current = None

    def require_credentials(self, message: str) -> None:
        self._credential_required = True
        self._credential_message = message
        self._history.append(Notice(kind="CredentialInvalid", message=message))
        logger.warning("Generator credentials rejected; prompting for a new key")

    def credentials_resolved(self) -> None:
        self._credential_required = False
        self._credential_message = None


__all__ = ["GENERIC_GENERATION_ERROR", "Notice", "NoticeBoard"]
