"""
storysync/features/views/ledger.py
At-most-once view counting for one mounted story-detail view.
"""

from typing import Set


class SessionViewLedger:
    """
    Set of story IDs that already triggered a view-increment request.

    One instance per mounted detail view, discarded on unmount. The guard is
    taken before the increment request is dispatched and is never released,
    even if the request fails: under-counting one view beats counting it twice.
    """

    def __init__(self):
        self._seen: Set[str] = set()

    def should_count_view(self, story_id: str) -> bool:
        """
        Check-and-insert in one synchronous step.

        Returns:
            True the first time story_id is seen by this ledger, False after.
        """
        if story_id in self._seen:
            return False
        self._seen.add(story_id)
        return True

    def __len__(self) -> int:
        return len(self._seen)
