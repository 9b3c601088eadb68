"""
Storage contract used by the engine.

The engine never touches the session directly; it reads and writes through
MatchRepository so the storage shape stays behind one seam. Writes made
through the repository are visible to later reads in the same tick
(session autoflush).
"""
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional, Set, Tuple

from sqlmodel import Session, select

from padelmatch.models import (
    ACTIVE_STATUSES,
    Court,
    Match,
    MatchNotification,
    MatchStatus,
    Player,
    ReplacementRequest,
    ReplacementStatus,
)
from padelmatch.services.slot_allocator import courts_open_on
from padelmatch.services.twilio_service import format_e164


class MatchRepository:
    def __init__(self, session: Session, country_code: str = "54"):
        self.session = session
        self.country_code = country_code

    # ------------------------------------------------------------------
    # Players
    # ------------------------------------------------------------------

    def list_players(self) -> List[Player]:
        return list(self.session.exec(select(Player).order_by(Player.id)).all())

    def get_player(self, player_id: int) -> Optional[Player]:
        return self.session.get(Player, player_id)

    def get_player_by_phone(self, phone: str) -> Optional[Player]:
        try:
            normalized = format_e164(phone, self.country_code)
        except ValueError:
            return None
        return self.session.exec(select(Player).where(Player.phone == normalized)).first()

    def players_by_ids(self, player_ids: Iterable[int]) -> List[Player]:
        """Players in the given order; unknown ids are skipped."""
        ids = list(player_ids)
        if not ids:
            return []
        found = {
            p.id: p
            for p in self.session.exec(select(Player).where(Player.id.in_(ids))).all()  # type: ignore
        }
        return [found[pid] for pid in ids if pid in found]

    def busy_player_ids(self) -> Set[int]:
        """Players in a non-terminal match or holding an open replacement offer."""
        busy: Set[int] = set()
        for match in self.active_matches():
            busy.update(match.player_ids or [])
        for request in self.open_proposals():
            if request.candidate_player_id is not None:
                busy.add(request.candidate_player_id)
        return busy

    # ------------------------------------------------------------------
    # Courts
    # ------------------------------------------------------------------

    def list_courts(self) -> List[Court]:
        return list(self.session.exec(select(Court).order_by(Court.id)).all())

    def get_court(self, court_id: int) -> Optional[Court]:
        return self.session.get(Court, court_id)

    def courts_open_on(self, target_date: date) -> List[Court]:
        return courts_open_on(self.list_courts(), target_date)

    def court_name(self, court_id: int) -> str:
        court = self.get_court(court_id)
        return court.name if court else f"Court {court_id}"

    # ------------------------------------------------------------------
    # Matches
    # ------------------------------------------------------------------

    def get_match(self, match_id: int) -> Optional[Match]:
        return self.session.get(Match, match_id)

    def reload_match(self, match: Match) -> Match:
        """
        Re-read a match, its confirmation records and its replacement
        requests from the database, overwriting this session's copies.

        Called right after taking the match lock: another request may have
        committed changes since this session first loaded the row.
        """
        fresh = self.session.exec(
            select(Match).where(Match.id == match.id).execution_options(populate_existing=True)
        ).one()
        self.session.exec(
            select(MatchNotification)
            .where(MatchNotification.match_id == match.id)
            .execution_options(populate_existing=True)
        ).all()
        self.session.exec(
            select(ReplacementRequest)
            .where(ReplacementRequest.match_id == match.id)
            .execution_options(populate_existing=True)
        ).all()
        # Records added by other sessions only show up once the collection reloads
        self.session.expire(fresh, ["notifications"])
        return fresh

    def list_matches(self, status: Optional[MatchStatus] = None) -> List[Match]:
        query = select(Match)
        if status is not None:
            query = query.where(Match.status == MatchStatus(status).value)
        return list(self.session.exec(query.order_by(Match.id)).all())

    def active_matches(self) -> List[Match]:
        return list(
            self.session.exec(
                select(Match).where(Match.status.in_([s.value for s in ACTIVE_STATUSES])).order_by(Match.id)  # type: ignore
            ).all()
        )

    def notified_matches(self) -> List[Match]:
        return self.list_matches(MatchStatus.notified)

    def matches_for_player(self, player_id: int, statuses: Optional[Iterable[MatchStatus]] = None) -> List[Match]:
        wanted = {MatchStatus(s) for s in statuses} if statuses is not None else None
        matches = [m for m in self.list_matches() if m.has_player(player_id)]
        if wanted is not None:
            matches = [m for m in matches if MatchStatus(m.status) in wanted]
        return sorted(matches, key=lambda m: (m.scheduled_at, m.id))

    def taken_slots(self) -> Set[Tuple[int, datetime]]:
        """(court_id, scheduled_at) pairs held by non-terminal matches."""
        return {(m.court_id, m.scheduled_at) for m in self.active_matches()}

    def open_play_matches(self) -> List[Match]:
        """Waiting matches without confirmation records (filled by players joining)."""
        return [m for m in self.list_matches(MatchStatus.waiting) if not m.notifications]

    def expired_waiting_matches(self, max_hours: float, now: datetime) -> List[Match]:
        cutoff = now - timedelta(hours=max_hours)
        return [m for m in self.list_matches(MatchStatus.waiting) if m.created_at <= cutoff]

    # ------------------------------------------------------------------
    # Replacement requests
    # ------------------------------------------------------------------

    def get_replacement(self, request_id: int) -> Optional[ReplacementRequest]:
        return self.session.get(ReplacementRequest, request_id)

    def open_proposals(self) -> List[ReplacementRequest]:
        return list(
            self.session.exec(
                select(ReplacementRequest)
                .where(ReplacementRequest.status == ReplacementStatus.proposed.value)
                .order_by(ReplacementRequest.id)
            ).all()
        )

    def open_proposal_for_candidate(self, player_id: int) -> Optional[ReplacementRequest]:
        for request in self.open_proposals():
            if request.candidate_player_id == player_id:
                return request
        return None

    def open_proposals_for_match(self, match_id: int) -> List[ReplacementRequest]:
        return [r for r in self.open_proposals() if r.match_id == match_id]

    def passed_candidates(self, match_id: int) -> Set[int]:
        """Candidates that already turned down (or ignored) a seat in this match."""
        requests = self.session.exec(
            select(ReplacementRequest).where(
                ReplacementRequest.match_id == match_id,
                ReplacementRequest.status.in_(  # type: ignore
                    [ReplacementStatus.declined.value, ReplacementStatus.expired.value]
                ),
            )
        ).all()
        return {r.candidate_player_id for r in requests if r.candidate_player_id is not None}

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add(self, obj) -> None:
        self.session.add(obj)

    def commit(self) -> None:
        self.session.commit()

    def refresh(self, obj) -> None:
        self.session.refresh(obj)

    def flush(self) -> None:
        self.session.flush()
