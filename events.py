"""
Invalidation signals.

Views that write to the backend send one of these after a successful call.
Payloads are keyword arguments: ``token`` (whose data changed), ``action``
('created', 'updated' or 'deleted') and the affected record id.
Receivers run synchronously, so every connected receiver sees every change.
"""
import logging
import time
from typing import Callable, Dict, Iterable, List, Optional

from blinker import Namespace

_signals = Namespace()

student_changed = _signals.signal('student-changed')
fees_changed = _signals.signal('fees-changed')
expenses_changed = _signals.signal('expenses-changed')
profile_changed = _signals.signal('profile-changed')


class StudentDirectory:
    """
    Short-lived per-token cache of the student, overdue and expense lists.

    The dashboard, students page and analytics all read the same lists.
    Student and fee changes drop that token's student and overdue lists,
    expense changes drop its expense list, and a profile change drops
    everything cached for the token. Expired entries of every token are
    evicted whenever the cache is read.
    """

    STUDENT_KINDS = ('students', 'overdue')

    def __init__(self, ttl_seconds: float = 30, clock: Callable[[], float] = time.monotonic):
        self.logger = logging.getLogger(__name__)
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: Dict[tuple, tuple] = {}

    def connect(self):
        student_changed.connect(self._on_student_changed, weak=False)
        fees_changed.connect(self._on_fees_changed, weak=False)
        expenses_changed.connect(self._on_expenses_changed, weak=False)
        profile_changed.connect(self._on_profile_changed, weak=False)
        return self

    def disconnect(self):
        student_changed.disconnect(self._on_student_changed)
        fees_changed.disconnect(self._on_fees_changed)
        expenses_changed.disconnect(self._on_expenses_changed)
        profile_changed.disconnect(self._on_profile_changed)

    def __len__(self):
        return len(self._entries)

    def _evict_expired(self, now: float):
        stale = [key for key, (stored_at, _) in self._entries.items() if now - stored_at >= self.ttl_seconds]
        for key in stale:
            del self._entries[key]

    def _get(self, key: tuple, loader: Callable[[], List[Dict]]) -> List[Dict]:
        now = self.clock()
        self._evict_expired(now)
        entry = self._entries.get(key)
        if entry is not None:
            return entry[1]
        value = loader()
        if self.ttl_seconds > 0:
            self._entries[key] = (now, value)
        return value

    def students(self, token: Optional[str], loader: Callable[[], List[Dict]]) -> List[Dict]:
        return self._get(('students', token), loader)

    def overdue(self, token: Optional[str], loader: Callable[[], List[Dict]]) -> List[Dict]:
        return self._get(('overdue', token), loader)

    def expenses(self, token: Optional[str], loader: Callable[[], List[Dict]]) -> List[Dict]:
        return self._get(('expenses', token), loader)

    def invalidate(self, token: Optional[str], kinds: Optional[Iterable[str]] = None):
        kinds = set(kinds) if kinds is not None else None
        for key in [k for k in self._entries if k[1] == token and (kinds is None or k[0] in kinds)]:
            del self._entries[key]

    def clear(self):
        self._entries.clear()

    def _on_student_changed(self, sender, token=None, **payload):
        self.logger.debug(f"Student {payload.get('student_id')} {payload.get('action')}, dropping cache")
        self.invalidate(token, self.STUDENT_KINDS)

    def _on_fees_changed(self, sender, token=None, **payload):
        self.logger.debug(f"Fees of {payload.get('student_id')} {payload.get('action')}, dropping cache")
        self.invalidate(token, self.STUDENT_KINDS)

    def _on_expenses_changed(self, sender, token=None, **payload):
        self.logger.debug(f"Expense {payload.get('expense_id')} {payload.get('action')}, dropping cache")
        self.invalidate(token, ('expenses',))

    def _on_profile_changed(self, sender, token=None, **payload):
        self.logger.debug(f"Profile {payload.get('action')}, dropping cache")
        self.invalidate(token)
