"""
Ticket number allocation.

Ticket numbers look like ``R7-250115-004``: team prefix, UTC date as YYMMDD,
and a per-team, per-day sequence padded to three digits (it grows past 999).

The sequence is allocated with one ``INSERT ... ON CONFLICT DO UPDATE ...
RETURNING`` statement so concurrent callers for the same team and day can
never read the same value.
"""

import logging
import re
from datetime import date, datetime, timezone
from typing import Optional, Union

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from orvale_ops.core.database import session_scope
from orvale_ops.core.decorators import transactional_database_operation
from orvale_ops.db.models import TicketSequence

logger = logging.getLogger(__name__)

DEFAULT_TEAM_ID = "DEFAULT"

TEAM_PREFIXES = {
    "ITTS_Region1": "R1",
    "ITTS_Region2": "R2",
    "ITTS_Region3": "R3",
    "ITTS_Region4": "R4",
    "ITTS_Region5": "R5",
    "ITTS_Region6": "R6",
    "ITTS_Region7": "R7",
    "ITTS_Region8": "R8",
    "NET_North": "NN",
    "NET_South": "NS",
    "NET_Central": "NC",
    "NET_East": "NE",
    "NET_West": "NW",
    "DEV_Alpha": "DA",
    "DEV_Beta": "DB",
    "DEV_Gamma": "DG",
    "DEV_Delta": "DD",
    "SEC_Core": "SC",
    "SEC_Perimeter": "SP",
    "SEC_Internal": "SI",
    DEFAULT_TEAM_ID: "GX",
}

TICKET_NUMBER_PATTERN = re.compile(r"^[A-Z0-9]{2}-\d{6}-\d{3,}$")

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


def get_team_prefix(team_id: str) -> str:
    """
    Two-character prefix for ``team_id``.

    Known teams use the static table. Others take the first letter of the
    first two underscore-separated parts (``NET_Harbor`` -> ``NH``), or the
    first two characters. Unusable characters are dropped and short results
    are padded with ``X``.
    """
    if not team_id:
        return TEAM_PREFIXES[DEFAULT_TEAM_ID]
    if team_id in TEAM_PREFIXES:
        return TEAM_PREFIXES[team_id]

    parts = [_NON_ALNUM.sub("", part) for part in team_id.split("_")]
    parts = [part for part in parts if part]
    if len(parts) >= 2:
        prefix = parts[0][0] + parts[1][0]
    else:
        prefix = "".join(parts)[:2]

    return prefix.upper().ljust(2, "X")


def format_date_key(value: Union[date, datetime, str, None] = None) -> str:
    """YYMMDD key for ``value`` (UTC today when omitted)."""
    if value is None:
        value = datetime.now(timezone.utc)
    if isinstance(value, str):
        if not re.fullmatch(r"\d{6}", value):
            raise ValueError(f"Date key must be YYMMDD, got {value!r}")
        return value
    if isinstance(value, datetime) and value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime("%y%m%d")


def format_ticket_number(prefix: str, date_key: str, sequence: int) -> str:
    return f"{prefix}-{date_key}-{sequence:03d}"


class TicketNumberingService:
    """Mints ticket numbers from the ``ticket_sequences`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def next_sequence(
        self,
        team_id: str,
        day: Union[date, datetime, str, None] = None,
    ) -> int:
        """Allocate the next sequence for (team_id, day), starting at 1."""
        team_id = team_id or DEFAULT_TEAM_ID
        date_key = format_date_key(day)
        async with session_scope(self.session_factory) as db:
            return await self._allocate(db, team_id, date_key)

    @transactional_database_operation("allocate ticket sequence")
    async def _allocate(self, db: AsyncSession, team_id: str, date_key: str) -> int:
        insert = postgresql.insert if db.get_bind().dialect.name == "postgresql" else sqlite.insert
        stmt = insert(TicketSequence).values(
            team_id=team_id,
            date=date_key,
            last_sequence=1,
            prefix=get_team_prefix(team_id),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["team_id", "date"],
            set_={"last_sequence": TicketSequence.__table__.c.last_sequence + 1},
        ).returning(TicketSequence.__table__.c.last_sequence)

        result = await db.execute(stmt)
        return result.scalar_one()

    async def generate_ticket_number(
        self,
        team_id: str,
        when: Optional[Union[date, datetime]] = None,
    ) -> str:
        """Allocate and format the next ticket number for ``team_id``."""
        team_id = team_id or DEFAULT_TEAM_ID
        date_key = format_date_key(when)
        sequence = await self.next_sequence(team_id, date_key)
        ticket_number = format_ticket_number(get_team_prefix(team_id), date_key, sequence)
        logger.debug(f"Allocated ticket number {ticket_number} for team {team_id}")
        return ticket_number

    async def get_current_sequence(
        self,
        team_id: str,
        day: Union[date, datetime, str, None] = None,
    ) -> int:
        """Last issued sequence for (team_id, day), 0 when none was issued."""
        async with session_scope(self.session_factory) as db:
            row = await db.get(TicketSequence, (team_id or DEFAULT_TEAM_ID, format_date_key(day)))
            return row.last_sequence if row else 0
