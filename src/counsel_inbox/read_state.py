"""
Read-state tracker: the only gate for automatic mark-as-read.

A thread is auto-marked read only after the user opened it or replied to it
in this session, so a background refresh never clears a peer's
"delivered but unseen" signal on its own.
"""

from typing import Optional


class ReadStateTracker:
    def __init__(self) -> None:
        self._opened: set[str] = set()
        self.active_id: Optional[str] = None

    @property
    def opened(self) -> frozenset[str]:
        return frozenset(self._opened)

    def open(self, conversation_id: str) -> None:
        self._opened.add(conversation_id)
        self.active_id = conversation_id

    def on_send_success(self, conversation_id: str) -> None:
        self._opened.add(conversation_id)

    def may_auto_mark(self, conversation_id: Optional[str]) -> bool:
        return conversation_id is not None and conversation_id in self._opened

    def migrate(self, old_id: str, new_id: str) -> None:
        if old_id in self._opened:
            self._opened.discard(old_id)
            self._opened.add(new_id)
        if self.active_id == old_id:
            self.active_id = new_id

    def forget(self, conversation_id: str) -> None:
        self._opened.discard(conversation_id)
        if self.active_id == conversation_id:
            self.active_id = None

    def clear_active(self) -> None:
        self.active_id = None
