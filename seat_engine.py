import logging
import time
from typing import Callable, Dict, List, Optional

from api_client import ApiError


class SeatConflictError(Exception):
    """Two or more students claim the same seat number."""

    def __init__(self, conflicts: Dict[int, List]):
        self.conflicts = conflicts
        seats = ", ".join(str(n) for n in sorted(conflicts))
        super().__init__(f"Seat(s) claimed by more than one student: {seats}")


class SeatReconciliation:
    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def reconcile(self, total_seats: int, students: List[Dict], strict: bool = False) -> Dict:
        """
        Lay the enrolled students over seats 1..total_seats.

        Returns:
            Dict with 'seats' (one record per seat, in seat order),
            'available_seat_numbers', 'conflicts' ({seat: [student ids]} for
            duplicated seat numbers) and 'unplaced' (students whose seat
            number is missing or outside the range).
        """
        total_seats = max(int(total_seats or 0), 0)

        by_seat: Dict[int, Dict] = {}
        conflicts: Dict[int, List] = {}
        unplaced: List[Dict] = []

        for student in students:
            seat_number = student.get('seat_number')
            if seat_number is None or not 1 <= seat_number <= total_seats:
                unplaced.append(student)
                continue
            if seat_number in by_seat:
                # First claimant keeps the seat; the clash is reported
                claimants = conflicts.setdefault(seat_number, [by_seat[seat_number].get('id')])
                claimants.append(student.get('id'))
                continue
            by_seat[seat_number] = student

        if conflicts:
            self.logger.warning(f"Seat conflicts detected: {conflicts}")
            if strict:
                raise SeatConflictError(conflicts)
        if unplaced:
            self.logger.warning(
                f"{len(unplaced)} student(s) have no valid seat within 1..{total_seats}"
            )

        seats = []
        available = []
        for seat_number in range(1, total_seats + 1):
            student = by_seat.get(seat_number)
            seats.append(self._seat_record(seat_number, student))
            if student is None:
                available.append(seat_number)

        return {
            'seats': seats,
            'available_seat_numbers': available,
            'conflicts': conflicts,
            'unplaced': unplaced,
        }

    def _seat_record(self, seat_number: int, student: Optional[Dict]) -> Dict:
        return {
            'seat_number': seat_number,
            'occupied': student is not None,
            'student_id': student.get('id') if student else None,
            'student_name': student.get('name') if student else None,
            'student_image': student.get('image') if student else None,
        }

    def empty_layout(self, total_seats: int) -> Dict:
        return self.reconcile(total_seats, [])

    def load_layout(self, fetch_students: Callable[[], List[Dict]], total_seats: int) -> Dict:
        """
        Fetch students and reconcile. A failed fetch leaves every seat
        available so seats can still be assigned while the backend is down.
        """
        try:
            students = fetch_students()
        except ApiError as e:
            self.logger.error(f"Error fetching students for seat layout: {str(e)}")
            return self.empty_layout(total_seats)
        return self.reconcile(total_seats, students)

    def occupancy_stats(self, layout: Dict) -> Dict:
        total = len(layout['seats'])
        available = len(layout['available_seat_numbers'])
        occupied = total - available
        return {
            'total': total,
            'occupied': occupied,
            'available': available,
            'utilization': round(occupied / total * 100, 1) if total > 0 else 0,
        }

    def search_by_name(self, query: str, seats: List[Dict]) -> Optional[Dict]:
        """
        Prefix match on occupant names, case-insensitive.

        Returns None when the query is blank (no search performed), an
        'error' result when nothing matches, else an 'info' result listing
        the matching seats in seat order.
        """
        q = (query or "").strip().lower()
        if not q:
            return None

        matches = [
            {'seat_number': s['seat_number'], 'student_name': s.get('student_name') or 'Student'}
            for s in seats
            if s['occupied'] and (s.get('student_name') or "").lower().startswith(q)
        ]
        if not matches:
            return {'type': 'error', 'message': 'No matching student found', 'matches': []}
        return {'type': 'info', 'message': None, 'matches': matches}


class SeatHighlight:
    """
    Seats highlighted after a search. The whole set clears once
    ``duration`` seconds pass without a new highlight, or on dismiss.
    """

    def __init__(self, duration: float, seat_numbers: Optional[List[int]] = None,
                 expires_at: float = 0.0, clock: Callable[[], float] = time.time):
        self.duration = duration
        self.seat_numbers = list(seat_numbers or [])
        self.expires_at = expires_at
        self.clock = clock

    def highlight(self, seat_numbers: List[int]):
        self.seat_numbers = list(seat_numbers)
        self.expires_at = self.clock() + self.duration

    def add(self, seat_number: int):
        if seat_number not in self.current():
            self.seat_numbers = self.current() + [seat_number]
        self.expires_at = self.clock() + self.duration

    def dismiss(self):
        self.seat_numbers = []
        self.expires_at = 0.0

    def current(self) -> List[int]:
        if not self.seat_numbers or self.clock() >= self.expires_at:
            return []
        return list(self.seat_numbers)

    def remaining_seconds(self) -> float:
        if not self.current():
            return 0.0
        return max(self.expires_at - self.clock(), 0.0)

    def to_dict(self) -> Dict:
        return {'seat_numbers': self.seat_numbers, 'expires_at': self.expires_at}

    @classmethod
    def from_dict(cls, data: Optional[Dict], duration: float,
                  clock: Callable[[], float] = time.time) -> "SeatHighlight":
        data = data or {}
        return cls(duration, data.get('seat_numbers'), data.get('expires_at', 0.0), clock)


# Global wrapper functions for convenience
def reconcile_seats(total_seats: int, students: List[Dict], strict: bool = False) -> Dict:
    return seat_reconciliation.reconcile(total_seats, students, strict)


def search_by_name(query: str, seats: List[Dict]) -> Optional[Dict]:
    return seat_reconciliation.search_by_name(query, seats)


# Global instance for import
seat_reconciliation = SeatReconciliation()
