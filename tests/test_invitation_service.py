"""Tests for InvitationService - create, accept, decline and cancel rules."""

import threading
from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from meetday.database import Base, enable_sqlite_foreign_keys
from meetday.domain.invitations.repository import InvitationRepository
from meetday.domain.invitations.service import InvitationService
from meetday.errors import BadRequest, Conflict, Forbidden, NotFound
from meetday.models import (
    Busyday,
    Friendship,
    FriendshipStatus,
    Invitation,
    InvitationDate,
    InvitationStatus,
    User,
)

TODAY = date(2026, 2, 20)


@pytest.fixture
def service(db):
    return InvitationService(db, today=lambda: TODAY)


def _busydays(db, user):
    return db.query(Busyday).filter(Busyday.user_id == user.id).order_by(Busyday.date).all()


# =============================================================================
# CREATE
# =============================================================================


class TestCreateInvitation:
    def test_creates_pending_invitation_with_all_dates(self, db, service, friends):
        """A valid proposal stores one pending invitation and every proposed date."""
        alice, bob, _ = friends

        invitation_id = service.create_invitation(
            alice.id, bob.id, ["2026-03-02", "2026-03-01"]
        )

        invitation = db.get(Invitation, invitation_id)
        assert invitation.status == InvitationStatus.PENDING
        assert invitation.selected_date is None
        assert invitation.from_user_id == alice.id
        assert invitation.to_user_id == bob.id
        assert [d.date for d in invitation.dates] == [date(2026, 3, 1), date(2026, 3, 2)]

    def test_today_is_not_in_the_past(self, db, service, friends):
        """The current day itself can be proposed."""
        alice, bob, _ = friends
        invitation_id = service.create_invitation(alice.id, bob.id, [TODAY.isoformat()])
        assert db.get(Invitation, invitation_id) is not None

    def test_friendship_in_reverse_direction_counts(self, db, service, friends):
        """bob-carol was stored as (bob, carol); carol may still invite bob."""
        _, bob, carol = friends
        assert service.create_invitation(carol.id, bob.id, ["2026-03-01"])

    @pytest.mark.parametrize(
        "dates,reason",
        [
            ([], "dates_empty"),
            (["2026-03-01", "2026-03-01"], "dates_not_unique"),
            (["2026-02-19"], "date_in_past"),
            (["2026-3-1"], "invalid_date"),
            (["2026-02-30"], "invalid_date"),
            (["not-a-date"], "invalid_date"),
        ],
    )
    def test_rejects_invalid_date_lists(self, db, service, friends, dates, reason):
        """Invalid date lists are refused with a specific reason and nothing is written."""
        alice, bob, _ = friends

        with pytest.raises(BadRequest) as exc_info:
            service.create_invitation(alice.id, bob.id, dates)

        assert exc_info.value.status_code == 400
        assert exc_info.value.detail["reason"] == reason
        assert db.query(Invitation).count() == 0
        assert db.query(InvitationDate).count() == 0

    def test_rejects_self_invitation(self, db, service, alice):
        with pytest.raises(BadRequest) as exc_info:
            service.create_invitation(alice.id, alice.id, ["2026-03-01"])
        assert exc_info.value.detail["reason"] == "cannot_invite_self"

    def test_rejects_non_friends(self, db, service, friends):
        """alice and carol are not friends: 403 and no rows."""
        alice, _, carol = friends

        with pytest.raises(Forbidden) as exc_info:
            service.create_invitation(alice.id, carol.id, ["2026-03-01"])

        assert exc_info.value.detail["reason"] == "not_friends"
        assert db.query(Invitation).count() == 0

    def test_pending_friendship_is_not_enough(self, db, service, alice, carol, befriend):
        befriend(alice, carol, status=FriendshipStatus.PENDING)
        with pytest.raises(Forbidden):
            service.create_invitation(alice.id, carol.id, ["2026-03-01"])

    def test_storage_failure_writes_nothing(self, db, service, friends):
        """A failure after the invitation row is staged rolls back the whole create."""
        alice, bob, _ = friends

        def failing_create(db_, from_user_id, to_user_id, dates):
            InvitationRepository.create_invitation(db_, from_user_id, to_user_id, dates)
            raise IntegrityError(
                "INSERT INTO invitation_dates",
                {},
                Exception("UNIQUE constraint failed: invitation_dates.invitation_id, invitation_dates.date"),
            )

        service.repo.create_invitation = failing_create

        with pytest.raises(Conflict):
            service.create_invitation(alice.id, bob.id, ["2026-03-01", "2026-03-02"])

        assert db.query(Invitation).count() == 0
        assert db.query(InvitationDate).count() == 0


# =============================================================================
# ACCEPT
# =============================================================================


class TestAcceptInvitation:
    def test_accept_claims_the_day_for_both_users(self, db, service, friends):
        """Acceptance sets selected_date and creates one busyday per participant."""
        alice, bob, _ = friends
        invitation_id = service.create_invitation(alice.id, bob.id, ["2026-03-01", "2026-03-02"])

        invitation = service.accept_invitation(invitation_id, bob.id, "2026-03-02")

        assert invitation.status == InvitationStatus.ACCEPTED
        assert invitation.selected_date == date(2026, 3, 2)
        for user in (alice, bob):
            busydays = _busydays(db, user)
            assert [b.date for b in busydays] == [date(2026, 3, 2)]
            assert busydays[0].event_id == invitation_id

    def test_accept_unproposed_date(self, db, service, friends):
        alice, bob, _ = friends
        invitation_id = service.create_invitation(alice.id, bob.id, ["2026-03-01"])

        with pytest.raises(BadRequest) as exc_info:
            service.accept_invitation(invitation_id, bob.id, "2026-03-05")

        assert exc_info.value.detail["reason"] == "date_not_proposed"
        assert db.get(Invitation, invitation_id).status == InvitationStatus.PENDING

    def test_accept_malformed_date(self, db, service, friends):
        alice, bob, _ = friends
        invitation_id = service.create_invitation(alice.id, bob.id, ["2026-03-01"])

        with pytest.raises(BadRequest) as exc_info:
            service.accept_invitation(invitation_id, bob.id, "03/01/2026")

        assert exc_info.value.detail["reason"] == "invalid_date"

    def test_sender_cannot_accept(self, db, service, friends):
        """Only the recipient may accept; for anyone else the invitation does not exist."""
        alice, bob, _ = friends
        invitation_id = service.create_invitation(alice.id, bob.id, ["2026-03-01"])

        with pytest.raises(NotFound):
            service.accept_invitation(invitation_id, alice.id, "2026-03-01")

    def test_accept_twice(self, db, service, friends):
        alice, bob, _ = friends
        invitation_id = service.create_invitation(alice.id, bob.id, ["2026-03-01"])
        service.accept_invitation(invitation_id, bob.id, "2026-03-01")

        with pytest.raises(NotFound):
            service.accept_invitation(invitation_id, bob.id, "2026-03-01")

        assert len(_busydays(db, bob)) == 1

    def test_accept_when_acceptor_is_busy(self, db, service, friends):
        """A busy participant yields 409 and leaves the invitation pending."""
        alice, bob, _ = friends
        db.add(Busyday(user_id=bob.id, date=date(2026, 3, 1)))
        db.commit()
        invitation_id = service.create_invitation(alice.id, bob.id, ["2026-03-01"])

        with pytest.raises(Conflict) as exc_info:
            service.accept_invitation(invitation_id, bob.id, "2026-03-01")

        assert exc_info.value.detail["reason"] == "day_busy"
        invitation = db.get(Invitation, invitation_id)
        assert invitation.status == InvitationStatus.PENDING
        assert invitation.selected_date is None
        assert _busydays(db, alice) == []

    def test_accept_when_sender_is_busy(self, db, service, friends):
        alice, bob, _ = friends
        db.add(Busyday(user_id=alice.id, date=date(2026, 3, 1)))
        db.commit()
        invitation_id = service.create_invitation(alice.id, bob.id, ["2026-03-01"])

        with pytest.raises(Conflict):
            service.accept_invitation(invitation_id, bob.id, "2026-03-01")

        assert _busydays(db, bob) == []

    def test_unique_violation_at_insert_is_day_busy(self, db, service, friends):
        """If the free-day check is bypassed, the unique constraint still refuses the claim."""
        alice, bob, _ = friends
        invitation_id = service.create_invitation(alice.id, bob.id, ["2026-03-01"])
        db.add(Busyday(user_id=bob.id, date=date(2026, 3, 1)))
        db.commit()
        service.busydays.is_day_busy = lambda *args: False

        with pytest.raises(Conflict) as exc_info:
            service.accept_invitation(invitation_id, bob.id, "2026-03-01")

        assert exc_info.value.detail["reason"] == "day_busy"
        assert db.get(Invitation, invitation_id).status == InvitationStatus.PENDING
        assert _busydays(db, alice) == []
        assert len(_busydays(db, bob)) == 1


# =============================================================================
# DECLINE / CANCEL
# =============================================================================


class TestDeclineAndCancel:
    def test_decline(self, db, service, friends):
        alice, bob, _ = friends
        invitation_id = service.create_invitation(alice.id, bob.id, ["2026-03-01"])

        invitation = service.decline_invitation(invitation_id, bob.id)

        assert invitation.status == InvitationStatus.DECLINED
        assert invitation.selected_date is None
        assert _busydays(db, bob) == []

    def test_decline_twice_is_not_found(self, db, service, friends):
        alice, bob, _ = friends
        invitation_id = service.create_invitation(alice.id, bob.id, ["2026-03-01"])
        service.decline_invitation(invitation_id, bob.id)

        with pytest.raises(NotFound):
            service.decline_invitation(invitation_id, bob.id)

    def test_declined_invitation_cannot_be_accepted(self, db, service, friends):
        alice, bob, _ = friends
        invitation_id = service.create_invitation(alice.id, bob.id, ["2026-03-01"])
        service.decline_invitation(invitation_id, bob.id)

        with pytest.raises(NotFound):
            service.accept_invitation(invitation_id, bob.id, "2026-03-01")

    def test_sender_cannot_decline(self, db, service, friends):
        alice, bob, _ = friends
        invitation_id = service.create_invitation(alice.id, bob.id, ["2026-03-01"])
        with pytest.raises(NotFound):
            service.decline_invitation(invitation_id, alice.id)

    def test_cancel_deletes_invitation_and_dates(self, db, service, friends):
        alice, bob, _ = friends
        invitation_id = service.create_invitation(alice.id, bob.id, ["2026-03-01", "2026-03-02"])

        service.cancel_invitation(invitation_id, alice.id)

        assert db.get(Invitation, invitation_id) is None
        assert db.query(InvitationDate).count() == 0

    def test_recipient_cannot_cancel(self, db, service, friends):
        alice, bob, _ = friends
        invitation_id = service.create_invitation(alice.id, bob.id, ["2026-03-01"])
        with pytest.raises(NotFound):
            service.cancel_invitation(invitation_id, bob.id)

    def test_accepted_invitation_cannot_be_cancelled(self, db, service, friends):
        alice, bob, _ = friends
        invitation_id = service.create_invitation(alice.id, bob.id, ["2026-03-01"])
        service.accept_invitation(invitation_id, bob.id, "2026-03-01")

        with pytest.raises(NotFound):
            service.cancel_invitation(invitation_id, alice.id)

        assert len(_busydays(db, alice)) == 1


# =============================================================================
# READS
# =============================================================================


class TestReads:
    def test_get_invitation_visible_to_participants_only(self, db, service, friends):
        alice, bob, carol = friends
        invitation_id = service.create_invitation(alice.id, bob.id, ["2026-03-01"])

        assert service.get_invitation(invitation_id, alice.id).id == invitation_id
        assert service.get_invitation(invitation_id, bob.id).id == invitation_id
        with pytest.raises(Forbidden):
            service.get_invitation(invitation_id, carol.id)

    def test_listing_defaults_to_pending(self, db, service, friends):
        alice, bob, _ = friends
        declined_id = service.create_invitation(alice.id, bob.id, ["2026-03-01"])
        pending_id = service.create_invitation(alice.id, bob.id, ["2026-03-02"])
        service.decline_invitation(declined_id, bob.id)

        assert [i.id for i in service.list_incoming(bob.id)] == [pending_id]
        assert [i.id for i in service.list_outgoing(alice.id)] == [pending_id]
        assert [i.id for i in service.list_incoming(bob.id, InvitationStatus.DECLINED)] == [
            declined_id
        ]
        assert service.list_incoming(alice.id) == []

    def test_listing_is_newest_first(self, db, service, friends):
        alice, bob, _ = friends
        older_id = service.create_invitation(alice.id, bob.id, ["2026-03-01"])
        newer_id = service.create_invitation(alice.id, bob.id, ["2026-03-02"])
        older = db.get(Invitation, older_id)
        older.created_at = older.created_at.replace(year=2025)
        db.commit()

        assert [i.id for i in service.list_outgoing(alice.id)] == [newer_id, older_id]


# =============================================================================
# SCENARIO
# =============================================================================


class TestThreeFriendScenario:
    def test_second_acceptance_on_same_day_conflicts(self, db, service, friends):
        """
        A invites B for two days, C invites B for one of them. B accepts A's
        invitation on the shared day; accepting C's on that day then conflicts.
        """
        alice, bob, carol = friends
        first = service.create_invitation(alice.id, bob.id, ["2026-03-01", "2026-03-02"])
        second = service.create_invitation(carol.id, bob.id, ["2026-03-01"])

        service.accept_invitation(first, bob.id, "2026-03-01")
        with pytest.raises(Conflict) as exc_info:
            service.accept_invitation(second, bob.id, "2026-03-01")

        assert exc_info.value.detail["reason"] == "day_busy"
        assert [b.date for b in _busydays(db, alice)] == [date(2026, 3, 1)]
        assert [b.date for b in _busydays(db, bob)] == [date(2026, 3, 1)]
        assert _busydays(db, carol) == []
        assert db.get(Invitation, second).status == InvitationStatus.PENDING


# =============================================================================
# CONCURRENCY
# =============================================================================


class TestConcurrentAccept:
    def test_two_acceptances_on_the_same_day_book_it_once(self, tmp_path):
        """
        bob accepts two invitations for the same day at the same time, each on
        its own connection. Exactly one succeeds; the other conflicts.
        """
        url = f"sqlite:///{tmp_path / 'meetday.db'}"
        engine = create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})
        enable_sqlite_foreign_keys(engine)
        Base.metadata.create_all(bind=engine)
        Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

        setup = Session()
        alice, bob, carol = User(username="alice"), User(username="bob"), User(username="carol")
        setup.add_all([alice, bob, carol])
        setup.flush()
        setup.add_all(
            [
                Friendship(user_id=alice.id, friend_id=bob.id, status=FriendshipStatus.ACCEPTED),
                Friendship(user_id=carol.id, friend_id=bob.id, status=FriendshipStatus.ACCEPTED),
            ]
        )
        setup.commit()
        bob_id = bob.id
        creator = InvitationService(setup, today=lambda: TODAY)
        invitation_ids = [
            creator.create_invitation(alice.id, bob_id, ["2026-03-01"]),
            creator.create_invitation(carol.id, bob_id, ["2026-03-01"]),
        ]
        setup.close()

        barrier = threading.Barrier(2)
        results = []

        def accept(invitation_id):
            session = Session()
            try:
                service = InvitationService(session, today=lambda: TODAY)
                barrier.wait()
                try:
                    service.accept_invitation(invitation_id, bob_id, "2026-03-01")
                    results.append("ok")
                except Conflict as e:
                    results.append(e.status_code)
            finally:
                session.close()

        threads = [threading.Thread(target=accept, args=(i,)) for i in invitation_ids]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        check = Session()
        try:
            assert sorted(results, key=str) == [409, "ok"]
            assert check.query(Busyday).filter(Busyday.user_id == bob_id).count() == 1
            statuses = sorted(check.get(Invitation, i).status.value for i in invitation_ids)
            assert statuses == ["accepted", "pending"]
        finally:
            check.close()
            engine.dispose()
