"""
Matchmaking engine and daily cycle.

Grouping is a greedy nearest-level window over players sorted by level:

    1. each unused player becomes an anchor, in ascending level order
    2. candidates are unused players within default tolerance of the anchor,
       or extended tolerance when fewer than 3 qualify
    3. anchors with fewer than 3 candidates are left over for this run
    4. otherwise the 3 closest candidates join the anchor

Positions inside a match follow the partnership convention (0, 3) vs (1, 2).
With balancing on, the group sorted [w, x, y, z] is stored as [w, y, x, z].
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Sequence

from padelmatch.config import EngineSettings, get_settings
from padelmatch.models import (
    CancellationReason,
    Match,
    MatchNotification,
    MatchStatus,
    Player,
)
from padelmatch.services.cancellation import cancel_match
from padelmatch.services.level_policy import (
    average_level,
    category_for,
    is_compatible,
    level_distance,
)
from padelmatch.services.messages import MessageType, invitation_text
from padelmatch.services.notifier import Notifier
from padelmatch.services.repository import MatchRepository
from padelmatch.services.slot_allocator import SlotCursor, SlotOffer, build_slot_pool
from padelmatch.utils.datetime_utils import next_day

logger = logging.getLogger(__name__)

GROUP_SIZE = 4

# Partner of each position under the (0, 3) vs (1, 2) convention
PARTNER_POSITION = {0: 3, 3: 0, 1: 2, 2: 1}


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass
class PlayerGroup:
    players: List[Player]
    tolerance_used: float

    @property
    def player_ids(self) -> List[int]:
        return [p.id for p in self.players]


@dataclass
class GroupingResult:
    groups: List[PlayerGroup] = field(default_factory=list)
    leftovers: List[Player] = field(default_factory=list)

    @property
    def grouped_count(self) -> int:
        return sum(len(g.players) for g in self.groups)


@dataclass
class MatchProposal:
    player_ids: List[int]
    court_id: int
    scheduled_at: datetime
    average_level: float
    category: int
    match_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "match_id": self.match_id,
            "player_ids": self.player_ids,
            "court_id": self.court_id,
            "scheduled_at": self.scheduled_at.isoformat(),
            "average_level": self.average_level,
            "category": self.category,
        }


@dataclass
class DailyCycleResult:
    target_date: date
    executed_at: datetime
    matches_created: int = 0
    players_grouped: int = 0
    leftover_player_ids: List[int] = field(default_factory=list)
    unassigned_groups: List[List[int]] = field(default_factory=list)
    expired_canceled: int = 0
    errors: List[str] = field(default_factory=list)
    proposals: List[MatchProposal] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "target_date": self.target_date.isoformat(),
            "executed_at": self.executed_at.isoformat(),
            "matches_created": self.matches_created,
            "players_grouped": self.players_grouped,
            "leftover_player_ids": self.leftover_player_ids,
            "unassigned_groups": self.unassigned_groups,
            "expired_canceled": self.expired_canceled,
            "errors": self.errors,
            "proposals": [p.to_dict() for p in self.proposals],
        }


# ---------------------------------------------------------------------------
# Grouping
# ---------------------------------------------------------------------------


def balance_group(group: Sequence[Player]) -> List[Player]:
    """Reorder [w, x, y, z] (ascending) to [w, y, x, z]."""
    ordered = sorted(group, key=lambda p: (p.level, p.id))
    if len(ordered) != GROUP_SIZE:
        return ordered
    return [ordered[0], ordered[2], ordered[1], ordered[3]]


def partner_of(position: int) -> int:
    return PARTNER_POSITION[position]


def group_players_by_level(
    players: Sequence[Player], settings: Optional[EngineSettings] = None
) -> GroupingResult:
    settings = settings or get_settings()
    pool = sorted(players, key=lambda p: (p.level, p.id))

    if len(pool) < GROUP_SIZE:
        return GroupingResult(groups=[], leftovers=pool)

    used = set()
    groups: List[PlayerGroup] = []

    for anchor in pool:
        if anchor.id in used:
            continue

        candidates: List[Player] = []
        tolerance_used = settings.default_tolerance
        for tolerance in settings.tolerance_ladder:
            candidates = [
                p
                for p in pool
                if p.id not in used
                and p.id != anchor.id
                and is_compatible(p.level, anchor.level, tolerance)
            ]
            tolerance_used = tolerance
            if len(candidates) >= GROUP_SIZE - 1:
                break

        if len(candidates) < GROUP_SIZE - 1:
            continue

        # Stable sort keeps level order among equally distant candidates
        closest = sorted(candidates, key=lambda p: level_distance(p.level, anchor.level))[: GROUP_SIZE - 1]
        members = [anchor] + closest
        if settings.balance_pairs:
            members = balance_group(members)

        used.update(p.id for p in members)
        groups.append(PlayerGroup(players=members, tolerance_used=tolerance_used))

    leftovers = [p for p in pool if p.id not in used]
    return GroupingResult(groups=groups, leftovers=leftovers)


def eligible_players(repo: MatchRepository) -> List[Player]:
    """Available players not in an active match and not holding a replacement offer."""
    busy = repo.busy_player_ids()
    return [p for p in repo.list_players() if p.available and p.id not in busy]


def propose_match(group: PlayerGroup, offer: SlotOffer) -> MatchProposal:
    levels = [p.level for p in group.players]
    return MatchProposal(
        player_ids=group.player_ids,
        court_id=offer.court_id,
        scheduled_at=offer.scheduled_at,
        average_level=average_level(levels),
        category=category_for(levels),
    )


# ---------------------------------------------------------------------------
# Daily cycle
# ---------------------------------------------------------------------------


def _create_notified_match(
    repo: MatchRepository, proposal: MatchProposal, settings: EngineSettings, now: datetime
) -> Match:
    match = Match(
        player_ids=list(proposal.player_ids),
        confirmed_ids=[],
        scheduled_at=proposal.scheduled_at,
        court_id=proposal.court_id,
        status=MatchStatus.notified,
        category=proposal.category,
        average_level=proposal.average_level,
        created_at=now,
    )
    for player_id in proposal.player_ids:
        match.notifications.append(
            MatchNotification.pending_for(player_id, settings.confirmation_minutes, now)
        )
    repo.add(match)
    repo.flush()
    return match


def _send_invitations(
    repo: MatchRepository,
    notifier: Notifier,
    match: Match,
    settings: EngineSettings,
    now: datetime,
) -> None:
    by_id: Dict[int, Player] = {p.id: p for p in repo.players_by_ids(match.player_ids)}
    names: Dict[int, str] = {pid: p.name for pid, p in by_id.items()}
    court = repo.court_name(match.court_id)

    for position, player_id in enumerate(match.player_ids):
        player = by_id.get(player_id)
        if player is None:
            continue
        partner_id = match.player_ids[partner_of(position)]
        rivals = [
            names.get(pid, "-")
            for pid in match.player_ids
            if pid not in (player.id, partner_id)
        ]
        body = invitation_text(
            match.scheduled_at,
            court,
            names.get(partner_id, "-"),
            rivals,
            settings.confirmation_minutes,
        )
        notifier.send(player, body, MessageType.invitation, match_id=match.id, now=now)


def run_daily_cycle(
    repo: MatchRepository,
    notifier: Notifier,
    now: datetime,
    target_date: Optional[date] = None,
    settings: Optional[EngineSettings] = None,
) -> DailyCycleResult:
    """
    Build tomorrow's matches (or `target_date`'s).

    Steps: expire stale waiting matches, collect eligible players, group
    them, hand out slots in pool order, persist each match as notified
    with one pending record per player, and text every player.
    """
    settings = settings or get_settings()
    target_date = target_date or next_day(now)
    result = DailyCycleResult(target_date=target_date, executed_at=now)
    logger.info(f"Daily cycle for {target_date.isoformat()} at {now.isoformat()}")

    # 1. Expire open matches that waited too long
    for match in repo.expired_waiting_matches(settings.max_waiting_hours, now):
        outcome = cancel_match(repo, notifier, match, CancellationReason.match_expired, now, settings=settings)
        if outcome.success:
            result.expired_canceled += 1

    # 2. Eligible players
    players = eligible_players(repo)
    logger.info(f"Eligible players: {len(players)}")
    if len(players) < GROUP_SIZE:
        msg = f"Only {len(players)} eligible players; at least {GROUP_SIZE} are needed to build a match."
        logger.warning(msg)
        result.leftover_player_ids = sorted(p.id for p in players)
        result.errors.append(msg)
        repo.commit()
        return result

    # 3. Courts for the date
    courts = repo.courts_open_on(target_date)
    if not courts:
        msg = f"No courts available on {target_date.strftime('%A')} {target_date.isoformat()}."
        logger.warning(msg)
        result.leftover_player_ids = sorted(p.id for p in players)
        result.errors.append(msg)
        repo.commit()
        return result

    # 4. Group and allocate
    grouping = group_players_by_level(players, settings)
    taken = repo.taken_slots()
    pool = [
        offer
        for offer in build_slot_pool(courts, target_date, settings.club_time_slots)
        if (offer.court_id, offer.scheduled_at) not in taken
    ]
    cursor = SlotCursor(pool)
    result.leftover_player_ids = [p.id for p in grouping.leftovers]

    for group in grouping.groups:
        offer = cursor.next()
        if offer is None:
            result.unassigned_groups.append(group.player_ids)
            continue
        result.proposals.append(propose_match(group, offer))

    if result.unassigned_groups:
        msg = f"Not enough slots: {len(result.unassigned_groups)} groups left unassigned."
        logger.warning(msg)
        result.errors.append(msg)

    # 5-6. Persist and invite
    for proposal in result.proposals:
        match = _create_notified_match(repo, proposal, settings, now)
        proposal.match_id = match.id
        _send_invitations(repo, notifier, match, settings, now)
        result.matches_created += 1
        result.players_grouped += len(proposal.player_ids)
        logger.info(
            f"Match {match.id} created: players={proposal.player_ids} "
            f"court={proposal.court_id} at {proposal.scheduled_at.isoformat()}"
        )

    repo.commit()
    logger.info(
        f"Daily cycle done: created={result.matches_created} grouped={result.players_grouped} "
        f"leftover={len(result.leftover_player_ids)} expired={result.expired_canceled}"
    )
    return result
