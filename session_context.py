import time
from typing import Callable, Dict, List, MutableMapping, Optional

from seat_engine import SeatHighlight


class SessionContext:
    """
    Everything the dashboard keeps between requests for one signed-in user:
    the bearer token, a cached copy of the institute profile and the
    dashboard's search banner/highlight state.

    Wraps any mutable mapping (``flask.session`` in the app) so the
    login -> save, logout -> clear lifecycle lives in one place.
    """

    TOKEN_KEY = 'token'
    PROFILE_KEY = 'user_data'
    SEARCH_KEY = 'search_result'
    HIGHLIGHT_KEY = 'highlight'

    def __init__(self, store: MutableMapping, highlight_seconds: float = 4,
                 clock: Callable[[], float] = time.time):
        self.store = store
        self.highlight_seconds = highlight_seconds
        self.clock = clock

    @property
    def token(self) -> Optional[str]:
        return self.store.get(self.TOKEN_KEY)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    @property
    def profile(self) -> Dict:
        return dict(self.store.get(self.PROFILE_KEY) or {})

    def save_login(self, token: str, profile: Dict):
        self.clear()
        self.store[self.TOKEN_KEY] = token
        self.save_profile(profile)

    def save_profile(self, profile: Dict):
        self.store[self.PROFILE_KEY] = dict(profile)

    def clear(self):
        for key in (self.TOKEN_KEY, self.PROFILE_KEY, self.SEARCH_KEY, self.HIGHLIGHT_KEY):
            self.store.pop(key, None)

    def total_seats(self, default: int) -> int:
        seats = self.profile.get('seats')
        return seats if isinstance(seats, int) and seats >= 0 else default

    def institute_name(self, default: str) -> str:
        return self.profile.get('coaching_name') or default

    # Search banner and seat highlight

    def _highlight(self) -> SeatHighlight:
        return SeatHighlight.from_dict(self.store.get(self.HIGHLIGHT_KEY),
                                       self.highlight_seconds, self.clock)

    def _save_highlight(self, highlight: SeatHighlight):
        self.store[self.HIGHLIGHT_KEY] = highlight.to_dict()

    def record_search(self, result: Optional[Dict]):
        """Store a search result; a blank query (None) leaves the state untouched."""
        if result is None:
            return
        self.store[self.SEARCH_KEY] = result
        highlight = self._highlight()
        if result.get('matches'):
            highlight.highlight([m['seat_number'] for m in result['matches']])
        else:
            highlight.dismiss()
        self._save_highlight(highlight)

    def search_result(self) -> Optional[Dict]:
        return self.store.get(self.SEARCH_KEY)

    def highlight_seat(self, seat_number: int):
        highlight = self._highlight()
        highlight.add(seat_number)
        self._save_highlight(highlight)

    def highlighted_seats(self) -> List[int]:
        return self._highlight().current()

    def highlight_remaining_ms(self) -> int:
        return int(self._highlight().remaining_seconds() * 1000)

    def dismiss_search(self):
        self.store.pop(self.SEARCH_KEY, None)
        self.store.pop(self.HIGHLIGHT_KEY, None)
