"""
Unit tests for ticket number allocation.

Tests:
- Team prefixes (static table and derived)
- Sequences per team and day
- Concurrent allocation
- Ticket number format
"""

import asyncio
from datetime import date, datetime, timezone

import pytest

from orvale_ops.db.models import TicketSequence
from orvale_ops.services.ticket_numbering_service import (
    TICKET_NUMBER_PATTERN,
    TicketNumberingService,
    format_date_key,
    format_ticket_number,
    get_team_prefix,
)

DAY = date(2025, 1, 15)


@pytest.fixture
def numbering(session_factory):
    return TicketNumberingService(session_factory)


class TestTeamPrefix:
    """Tests for team prefixes."""

    @pytest.mark.parametrize(
        "team_id, prefix",
        [
            ("ITTS_Region7", "R7"),
            ("ITTS_Region1", "R1"),
            ("NET_North", "NN"),
            ("DEV_Gamma", "DG"),
            ("SEC_Perimeter", "SP"),
            ("DEFAULT", "GX"),
        ],
    )
    def test_known_teams(self, team_id, prefix):
        """Test the static prefix table."""
        assert get_team_prefix(team_id) == prefix

    @pytest.mark.parametrize(
        "team_id, prefix",
        [
            ("OPS_Harbor", "OH"),
            ("ops_harbor_night", "OH"),
            ("helpdesk", "HE"),
            ("x", "XX"),
            ("", "GX"),
            ("9_lives", "9L"),
        ],
    )
    def test_derived(self, team_id, prefix):
        """Test prefixes derived from unknown team ids."""
        assert get_team_prefix(team_id) == prefix


class TestFormatting:
    """Tests for date keys and ticket numbers."""

    def test_date_key(self):
        """Test YYMMDD formatting."""
        assert format_date_key(DAY) == "250115"
        assert format_date_key("250115") == "250115"

    def test_aware_datetime_uses_utc_date(self):
        """Test that an aware datetime is keyed by its UTC date."""
        late_evening_la = datetime(2025, 1, 15, 20, 0, tzinfo=timezone.utc).astimezone()
        assert format_date_key(late_evening_la) == "250115"

    def test_bad_date_key(self):
        """Test that malformed keys are rejected."""
        with pytest.raises(ValueError):
            format_date_key("2025-01-15")

    def test_padding(self):
        """Test zero padding and growth past 999."""
        assert format_ticket_number("R7", "250115", 4) == "R7-250115-004"
        assert format_ticket_number("R7", "250115", 1000) == "R7-250115-1000"


class TestNextSequence:
    """Tests for sequence allocation."""

    @pytest.mark.asyncio
    async def test_starts_at_one_and_increments(self, numbering):
        """Test 1, 2, 3 for one team and day."""
        values = [await numbering.next_sequence("ITTS_Region7", DAY) for _ in range(3)]

        assert values == [1, 2, 3]
        assert await numbering.get_current_sequence("ITTS_Region7", DAY) == 3

    @pytest.mark.asyncio
    async def test_independent_keys(self, numbering):
        """Test that teams and days have separate counters."""
        await numbering.next_sequence("ITTS_Region7", DAY)
        await numbering.next_sequence("ITTS_Region7", DAY)

        assert await numbering.next_sequence("NET_North", DAY) == 1
        assert await numbering.next_sequence("ITTS_Region7", date(2025, 1, 16)) == 1
        assert await numbering.next_sequence("ITTS_Region7", DAY) == 3

    @pytest.mark.asyncio
    async def test_prefix_stored(self, numbering, db_session):
        """Test that the derived prefix is stored with the counter."""
        await numbering.next_sequence("NET_West", DAY)

        row = await db_session.get(TicketSequence, ("NET_West", "250115"))

        assert row.prefix == "NW"
        assert row.last_sequence == 1

    @pytest.mark.asyncio
    async def test_concurrent_allocation_unique(self, numbering):
        """Test that concurrent callers never receive the same value."""
        values = await asyncio.gather(
            *(numbering.next_sequence("ITTS_Region7", DAY) for _ in range(12))
        )

        assert sorted(values) == list(range(1, 13))


class TestGenerateTicketNumber:
    """Tests for full ticket numbers."""

    @pytest.mark.asyncio
    async def test_format(self, numbering):
        """Test the ticket number layout."""
        first = await numbering.generate_ticket_number("ITTS_Region7", when=DAY)
        second = await numbering.generate_ticket_number("ITTS_Region7", when=DAY)

        assert first == "R7-250115-001"
        assert second == "R7-250115-002"

    @pytest.mark.asyncio
    async def test_matches_pattern(self, numbering):
        """Test that every generated number matches the documented pattern."""
        teams = ["ITTS_Region3", "DEFAULT", "OPS_Harbor", "x", "", "SEC_Core"]

        numbers = [await numbering.generate_ticket_number(team) for team in teams]

        assert all(TICKET_NUMBER_PATTERN.match(number) for number in numbers), numbers

    @pytest.mark.asyncio
    async def test_beyond_999(self, numbering, db_session):
        """Test that the sequence field grows past three digits."""
        db_session.add(TicketSequence(team_id="ITTS_Region7", date="250115", last_sequence=999, prefix="R7"))
        await db_session.commit()

        number = await numbering.generate_ticket_number("ITTS_Region7", when=DAY)

        assert number == "R7-250115-1000"
        assert TICKET_NUMBER_PATTERN.match(number)

    @pytest.mark.asyncio
    async def test_concurrent_numbers_unique(self, numbering):
        """Test that concurrent ticket creation yields distinct numbers."""
        numbers = await asyncio.gather(
            *(numbering.generate_ticket_number("DEV_Alpha", when=DAY) for _ in range(8))
        )

        assert len(set(numbers)) == 8
        assert sorted(numbers) == [f"DA-250115-{n:03d}" for n in range(1, 9)]
