"""
Undo journal backing the all-or-nothing execution model.

Components record one undo callback per mutation while a journal is active. Rolling back runs the
callbacks in reverse order.

>>> journal = Journal()
>>> state = {}
>>> journal.begin()
>>> state["x"] = 1
>>> journal.record(lambda: state.pop("x"))
>>> journal.rollback()
>>> state
{}
"""

import logging

logger = logging.getLogger(__name__)


class Journal:
    def __init__(self):
        self._undo = []
        self.active = False

    def begin(self):
        if self.active:
            raise RuntimeError("Journal already active")
        self._undo = []
        self.active = True

    def record(self, undo):
        """Register the callback that reverts the mutation just applied."""
        if self.active:
            self._undo.append(undo)

    def commit(self):
        self._undo = []
        self.active = False

    def rollback(self):
        logger.debug("Rolling back %d journaled mutations", len(self._undo))
        while self._undo:
            undo = self._undo.pop()
            undo()
        self.active = False

    def __len__(self):
        return len(self._undo)
