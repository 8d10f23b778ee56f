"""Tests for the contact store."""

import uuid
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock

import pytest
from fastapi import BackgroundTasks
from sqlalchemy.exc import OperationalError

from contact_intake.contacts.exceptions import NotFound, StoreError, ValidationError
from contact_intake.contacts.models import Contact, ContactPriority, ContactSource, ContactStatus
from contact_intake.contacts.service import (
    create_contact,
    fetch_contact,
    get_contact,
    get_stats,
    list_by_priority,
    list_by_status,
    list_recent,
    list_unread,
    mark_email_sent,
    paginate_contacts,
    search_contacts,
    submit_contact,
)


class TestCreateContact:
    def test_end_to_end_submission(self, db_session):
        record = create_contact(
            db_session,
            {
                "name": "Rahul Sharma",
                "email": "Rahul@Test.COM",
                "subject": "Moving Services Inquiry",
                "message": "Hi, I need to move my 2BHK apartment from Mumbai to Pune next month. This is urgent.",
            },
        )
        db_session.commit()
        assert record.email == "rahul@test.com"
        assert record.priority == ContactPriority.URGENT
        assert record.status == ContactStatus.NEW
        assert record.source == ContactSource.WEBSITE
        assert record.email_sent is False
        assert record.response_time is None
        assert record.created_at == record.updated_at

    def test_stores_trimmed_values(self, db_session, contact_fields):
        record = create_contact(
            db_session, {**contact_fields, "name": "  Rahul Sharma  ", "message": f"  {contact_fields['message']}  "}
        )
        db_session.commit()
        row = db_session.get(Contact, record.id)
        assert row.name == "Rahul Sharma"
        assert row.message == contact_fields["message"]

    def test_caller_priority_is_ignored(self, db_session, contact_fields):
        record = create_contact(db_session, {**contact_fields, "priority": "urgent"})
        assert record.priority == ContactPriority.MEDIUM

    def test_invalid_input_creates_nothing(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            create_contact(db_session, {"name": "Rahul", "email": "rahul@test.com"})
        assert exc_info.value.fields == ["subject", "message"]
        assert db_session.query(Contact).count() == 0

    def test_assigns_unique_ids(self, make_contact):
        ids = {make_contact().id for _ in range(5)}
        assert len(ids) == 5

    def test_ticket_id(self, make_contact):
        record = make_contact()
        assert record.ticket_id == f"CNT-{record.id.hex[:8].upper()}"

    def test_store_failure_raises_store_error(self, contact_fields):
        db = MagicMock()
        db.flush.side_effect = OperationalError("INSERT", {}, Exception("db down"))
        with pytest.raises(StoreError):
            create_contact(db, contact_fields)
        db.rollback.assert_called_once()


class TestGetContact:
    def test_round_trip(self, db_session, contact_fields):
        created = submit_contact(db_session, contact_fields)
        assert get_contact(db_session, str(created.id)) == created

    def test_missing(self, db_session):
        with pytest.raises(NotFound):
            get_contact(db_session, uuid.uuid4())

    def test_malformed_id(self, db_session):
        with pytest.raises(NotFound):
            get_contact(db_session, "not-a-uuid")

    def test_snapshot_is_detached_from_row(self, db_session, make_contact):
        record = make_contact()
        with pytest.raises(Exception):
            record.status = ContactStatus.ARCHIVED
        assert get_contact(db_session, record.id).status == ContactStatus.NEW


class TestFetchContact:
    def test_marks_new_contact_read(self, db_session, make_contact):
        record = make_contact()
        fetched = fetch_contact(db_session, record.id)
        assert fetched.status == ContactStatus.READ
        assert {k: v for k, v in fetched.model_dump().items() if k not in ("status", "updated_at")} == {
            k: v for k, v in record.model_dump().items() if k not in ("status", "updated_at")
        }

    def test_leaves_other_states_alone(self, db_session, make_contact):
        from contact_intake.contacts.lifecycle import mark_as_replied

        record = make_contact()
        mark_as_replied(db_session, record.id)
        assert fetch_contact(db_session, record.id).status == ContactStatus.REPLIED


class TestListing:
    def test_list_by_status_newest_first(self, db_session, make_contact):
        old = make_contact(minutes_ago=30)
        new = make_contact(minutes_ago=5)
        records = list_by_status(db_session, "new")
        assert [r.id for r in records] == [new.id, old.id]

    def test_list_by_status_filters(self, db_session, make_contact):
        from contact_intake.contacts.lifecycle import mark_as_archived

        keep = make_contact()
        gone = make_contact()
        mark_as_archived(db_session, gone.id)
        assert [r.id for r in list_by_status(db_session, ContactStatus.NEW)] == [keep.id]
        assert [r.id for r in list_by_status(db_session, ContactStatus.ARCHIVED)] == [gone.id]

    def test_list_by_status_unknown(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            list_by_status(db_session, "deleted")
        assert exc_info.value.field == "status"

    def test_list_by_priority(self, db_session, make_contact):
        urgent = make_contact(subject="Emergency move")
        make_contact()
        assert [r.id for r in list_by_priority(db_session, "urgent")] == [urgent.id]
        assert list_by_priority(db_session, ContactPriority.LOW) == []

    def test_list_recent(self, db_session, make_contact):
        for minutes in range(12, 0, -1):
            make_contact(minutes_ago=minutes)
        recent = list_recent(db_session)
        assert len(recent) == 10
        assert recent == sorted(recent, key=lambda r: r.created_at, reverse=True)
        assert len(list_recent(db_session, limit=3)) == 3

    def test_list_recent_rejects_zero(self, db_session):
        with pytest.raises(ValidationError):
            list_recent(db_session, limit=0)

    def test_list_recent_rejects_oversized_limit(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            list_recent(db_session, limit=101)
        assert exc_info.value.field == "limit"

    def test_list_unread(self, db_session, make_contact):
        from contact_intake.contacts.lifecycle import mark_as_read

        unread = make_contact()
        read = make_contact()
        mark_as_read(db_session, read.id)
        assert [r.id for r in list_unread(db_session)] == [unread.id]


class TestSearch:
    def test_matches_any_field_case_insensitive(self, db_session, make_contact):
        by_name = make_contact(name="Priya Nair", email="priya@test.com", minutes_ago=3)
        by_email = make_contact(name="Someone Else", email="ops@nair-logistics.com", minutes_ago=2)
        by_message = make_contact(
            name="Third Person", email="third@test.com", message="Ask for Mr NAIR at the gate.", minutes_ago=1
        )
        make_contact(name="Unrelated", email="x@y.com")

        results = search_contacts(db_session, "nair")
        assert [r.id for r in results] == [by_message.id, by_email.id, by_name.id]

    def test_matches_subject(self, db_session, make_contact):
        match = make_contact(subject="Office relocation quote")
        make_contact()
        assert [r.id for r in search_contacts(db_session, "RELOCATION")] == [match.id]

    def test_wildcards_are_literal(self, db_session, make_contact):
        make_contact()
        assert search_contacts(db_session, "%") == []
        assert search_contacts(db_session, "_") == []

    def test_blank_query(self, db_session):
        with pytest.raises(ValidationError):
            search_contacts(db_session, "  ")


class TestPaginate:
    def test_second_page_of_25(self, db_session, make_contact):
        for minutes in range(25):
            make_contact(minutes_ago=minutes)
        page = paginate_contacts(db_session, None, page=2, page_size=10)
        assert len(page.records) == 10
        assert page.pagination.pages == 3
        assert page.pagination.total == 25
        assert page.pagination.current == 2
        assert page.pagination.limit == 10

    def test_last_partial_page(self, db_session, make_contact):
        for minutes in range(25):
            make_contact(minutes_ago=minutes)
        page = paginate_contacts(db_session, page=3, page_size=10)
        assert len(page.records) == 5

    def test_pages_do_not_overlap(self, db_session, make_contact):
        for minutes in range(7):
            make_contact(minutes_ago=minutes)
        first = paginate_contacts(db_session, page=1, page_size=4)
        second = paginate_contacts(db_session, page=2, page_size=4)
        ids = [r.id for r in first.records + second.records]
        assert len(ids) == len(set(ids)) == 7

    def test_status_filter(self, db_session, make_contact):
        from contact_intake.contacts.lifecycle import mark_as_archived

        make_contact()
        archived = make_contact()
        mark_as_archived(db_session, archived.id)
        page = paginate_contacts(db_session, status="archived")
        assert page.pagination.total == 1
        assert page.records[0].id == archived.id

    def test_empty(self, db_session):
        page = paginate_contacts(db_session)
        assert page.records == []
        assert page.pagination.total == 0
        assert page.pagination.pages == 0

    def test_rejects_bad_bounds(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            paginate_contacts(db_session, page=0, page_size=0)
        assert exc_info.value.fields == ["page", "limit"]

    def test_rejects_oversized_page_size(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            paginate_contacts(db_session, page=1, page_size=101)
        assert exc_info.value.fields == ["limit"]

    def test_max_page_size_allowed(self, db_session, make_contact):
        make_contact()
        assert paginate_contacts(db_session, page_size=100).pagination.limit == 100

    def test_huge_page_is_validation_error(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            paginate_contacts(db_session, page=10**20, page_size=10)
        assert exc_info.value.fields == ["page"]

    def test_page_past_end_is_empty(self, db_session, make_contact):
        make_contact()
        page = paginate_contacts(db_session, page=10**6, page_size=100)
        assert page.records == []
        assert page.pagination.total == 1


class TestStats:
    def test_empty_store(self, db_session):
        stats = get_stats(db_session)
        assert stats.model_dump() == {"total": 0, "today": 0, "by_status": {}}

    def test_counts(self, db_session, make_contact):
        from contact_intake.contacts.lifecycle import mark_as_read

        make_contact()
        make_contact()
        read = make_contact()
        mark_as_read(db_session, read.id)
        old = make_contact()
        db_session.query(Contact).filter(Contact.id == old.id).update(
            {"created_at": datetime.now(UTC) - timedelta(days=2)}
        )
        db_session.commit()

        stats = get_stats(db_session)
        assert stats.total == 4
        assert stats.today == 3
        assert stats.by_status == {"new": 3, "read": 1}


class TestMarkEmailSent:
    def test_sets_flag_and_timestamp(self, db_session, make_contact):
        record = make_contact()
        updated = mark_email_sent(db_session, record.id)
        assert updated.email_sent is True
        assert updated.email_sent_at is not None

    def test_keeps_first_timestamp(self, db_session, make_contact):
        record = make_contact()
        first = mark_email_sent(db_session, record.id)
        second = mark_email_sent(db_session, record.id)
        assert second.email_sent_at == first.email_sent_at

    def test_missing(self, db_session):
        with pytest.raises(NotFound):
            mark_email_sent(db_session, uuid.uuid4())


class TestSubmitContact:
    def test_commits_and_notifies(self, database, db_session, contact_fields):
        notifier = MagicMock()
        record = submit_contact(db_session, contact_fields, notifier=notifier)
        notifier.notify.assert_called_once_with(record)

        with database.session() as other:
            assert get_contact(other, record.id) == record

    def test_notifier_failure_is_swallowed(self, db_session, contact_fields):
        notifier = MagicMock()
        notifier.notify.side_effect = RuntimeError("smtp down")
        record = submit_contact(db_session, contact_fields, notifier=notifier)
        assert get_contact(db_session, record.id).email_sent is False

    def test_background_dispatch_is_deferred(self, db_session, contact_fields):
        notifier = MagicMock()
        background = BackgroundTasks()
        submit_contact(db_session, contact_fields, notifier=notifier, background=background)
        notifier.notify.assert_not_called()
        assert len(background.tasks) == 1

    def test_validation_error_skips_notifier(self, db_session):
        notifier = MagicMock()
        with pytest.raises(ValidationError):
            submit_contact(db_session, {"name": "R"}, notifier=notifier)
        notifier.notify.assert_not_called()
