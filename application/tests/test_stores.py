"""Unit tests for the DynamoDB store modules with a mocked boto3 client."""

from __future__ import annotations

from datetime import date, datetime
from unittest.mock import MagicMock, patch

import pytest

from src.booking_service import contact_messages, notifications, schedule_store, stats_store, store, users
from src.booking_service.meetings import Meeting
from src.booking_service.stats_engine import MonthStats, MonthSummary


class ConditionalCheckFailedException(Exception):
    pass


class ResourceNotFoundException(Exception):
    pass


@pytest.fixture
def ddb():
    client = MagicMock()
    client.exceptions.ConditionalCheckFailedException = ConditionalCheckFailedException
    client.exceptions.ResourceNotFoundException = ResourceNotFoundException
    with patch("src.booking_service.store.client", return_value=client):
        yield client


def _day_item(meetings: list[dict], updated_at: int = 1000) -> dict:
    return store.to_item({"user_id": "u1", "date": "2024-05-07", "meetings": meetings, "updated_at": updated_at})


def _meeting(hour: int, **kwargs) -> dict:
    return {"start": f"2024-05-07T{hour:02d}:00:00", "durationInMinutes": 30, "price": 50.5, **kwargs}


def test_floats_round_trip_through_attributes():
    attr = store.to_ddb({"price": 50.5, "count": 3, "tags": ["a"]})
    assert store.from_ddb(attr) == {"price": 50.5, "count": 3, "tags": ["a"]}


def test_get_meetings_missing_day(ddb):
    ddb.get_item.return_value = {}
    assert schedule_store.get_meetings("u1", date(2024, 5, 7)) == []


def test_get_meetings_returns_stored_list(ddb):
    ddb.get_item.return_value = {"Item": _day_item([_meeting(9)])}
    meetings = schedule_store.get_meetings("u1", date(2024, 5, 7))
    assert meetings == [_meeting(9)]
    key = ddb.get_item.call_args.kwargs["Key"]
    assert key == {"user_id": {"S": "u1"}, "date": {"S": "2024-05-07"}}


def test_get_month_days_queries_month_range(ddb):
    ddb.query.side_effect = [
        {"Items": [_day_item([])], "LastEvaluatedKey": {"k": {"S": "x"}}},
        {"Items": [_day_item([_meeting(9)])]},
    ]
    days = schedule_store.get_month_days("u1", date(2024, 2, 14))
    assert len(days) == 2
    values = ddb.query.call_args_list[0].kwargs["ExpressionAttributeValues"]
    assert values[":first"] == {"S": "2024-02-01"}
    assert values[":last"] == {"S": "2024-02-29"}
    assert ddb.query.call_args_list[1].kwargs["ExclusiveStartKey"] == {"k": {"S": "x"}}


def test_add_meeting_appends_atomically(ddb):
    meeting = Meeting.from_dict(_meeting(11, customerName="Dana"))
    day = schedule_store.add_meeting("u1", meeting)
    assert day == date(2024, 5, 7)
    kwargs = ddb.update_item.call_args.kwargs
    assert "list_append(if_not_exists(meetings, :empty), :new)" in kwargs["UpdateExpression"]
    assert store.from_ddb(kwargs["ExpressionAttributeValues"][":new"])[0]["customerName"] == "Dana"


def test_add_time_off_blocks_each_day(ddb):
    days = schedule_store.add_time_off("u1", date(2024, 5, 30), date(2024, 6, 2))
    assert days == [date(2024, 5, 30), date(2024, 5, 31), date(2024, 6, 1), date(2024, 6, 2)]
    assert ddb.update_item.call_count == 4
    first = ddb.update_item.call_args_list[0].kwargs
    block = store.from_ddb(first["ExpressionAttributeValues"][":new"])[0]
    assert block["durationInMinutes"] == 9999
    assert block["start"] == "2024-05-30T00:00:00"
    assert first["ExpressionAttributeValues"][":day_off"] == {"BOOL": True}


def test_add_time_off_rejects_inverted_range(ddb):
    with pytest.raises(ValueError):
        schedule_store.add_time_off("u1", date(2024, 6, 2), date(2024, 5, 30))


def test_delete_meeting_writes_remaining_conditionally(ddb):
    meetings = [_meeting(9, customerName="Dana", color=4), _meeting(10)]
    ddb.get_item.return_value = {"Item": _day_item(meetings, updated_at=1234)}
    removed = schedule_store.delete_meeting("u1", "2024-05-07T09:00:00.000Z")
    assert removed.start == datetime(2024, 5, 7, 9, 0)
    assert removed.customer_name == "Dana"
    assert removed.color == 4
    kwargs = ddb.update_item.call_args.kwargs
    assert kwargs["ConditionExpression"] == "updated_at = :expected"
    assert store.from_ddb(kwargs["ExpressionAttributeValues"][":expected"]) == 1234
    assert store.from_ddb(kwargs["ExpressionAttributeValues"][":meetings"]) == [_meeting(10)]


def test_delete_unknown_meeting(ddb):
    ddb.get_item.return_value = {"Item": _day_item([_meeting(9)])}
    with pytest.raises(schedule_store.MeetingNotFoundError):
        schedule_store.delete_meeting("u1", "2024-05-07T12:00:00")
    ddb.update_item.assert_not_called()


def test_delete_lost_race(ddb):
    ddb.get_item.return_value = {"Item": _day_item([_meeting(9)])}
    ddb.update_item.side_effect = ConditionalCheckFailedException()
    with pytest.raises(store.ConcurrentUpdateError):
        schedule_store.delete_meeting("u1", "2024-05-07T09:00:00")


def test_confirm_meeting_flips_flag(ddb):
    ddb.get_item.return_value = {"Item": _day_item([_meeting(9), _meeting(10, meetingConfirm=False)])}
    meeting = schedule_store.confirm_meeting("u1", "2024-05-07T10:00:00")
    assert meeting.confirmed is True
    assert meeting.start == datetime(2024, 5, 7, 10, 0)
    written = store.from_ddb(ddb.update_item.call_args.kwargs["ExpressionAttributeValues"][":meetings"])
    assert written[1]["confirmed"] is True
    assert "meetingConfirm" not in written[1]
    assert "confirmed" not in written[0]


def test_confirm_missing_day(ddb):
    ddb.get_item.return_value = {}
    with pytest.raises(schedule_store.MeetingNotFoundError):
        schedule_store.confirm_meeting("u1", "2024-05-07T10:00:00")


def test_get_stats_parses_item(ddb):
    stored = MonthStats(date=date(2024, 5, 1), income=150.0, meeting_num=2, site_visit=3)
    ddb.get_item.return_value = {"Item": store.to_item(dict(stored.to_dict(), user_id="u1", month="2024-05-01"))}
    assert stats_store.get_stats("u1", date(2024, 5, 20)) == stored


def test_get_stats_missing(ddb):
    ddb.get_item.return_value = {}
    assert stats_store.get_stats("u1", date(2024, 5, 1)) is None


def test_put_stats_keeps_stored_counters(ddb):
    stats_store.put_stats("u1", MonthStats(date=date(2024, 5, 1), income=10.0))
    kwargs = ddb.update_item.call_args.kwargs
    assert kwargs["Key"] == {"user_id": {"S": "u1"}, "month": {"S": "2024-05-01"}}
    assert "siteVisit = if_not_exists(siteVisit, :siteVisit)" in kwargs["UpdateExpression"]


def test_increment_counter(ddb):
    stats_store.increment_counter("u1", "siteVisit", date(2024, 5, 17))
    kwargs = ddb.update_item.call_args.kwargs
    assert kwargs["UpdateExpression"].endswith("ADD #counter :one")
    assert kwargs["ExpressionAttributeNames"]["#counter"] == "siteVisit"
    assert kwargs["ExpressionAttributeNames"]["#other"] == "newCustomers"
    assert kwargs["Key"]["month"] == {"S": "2024-05-01"}


def test_increment_unknown_counter(ddb):
    with pytest.raises(ValueError):
        stats_store.increment_counter("u1", "income")


@patch("src.booking_service.stats_store.put_stats")
@patch("src.booking_service.stats_store.get_stats")
@patch("src.booking_service.schedule_store.get_month_days")
def test_refresh_returns_stored_when_unchanged(mock_days, mock_get, mock_put):
    stored = MonthStats(date=date(2024, 5, 1), income=42.0)
    mock_days.return_value = [{"date": "2024-05-07", "meetings": [], "updated_at": 500}]
    mock_get.return_value = stored
    stats, from_memory = stats_store.refresh_month_stats("u1", date(2024, 5, 9), previous_call=1000)
    assert from_memory is True
    assert stats is stored
    mock_put.assert_not_called()


@patch("src.booking_service.stats_store.put_stats")
@patch("src.booking_service.stats_store.get_stats")
@patch("src.booking_service.schedule_store.get_month_days")
def test_refresh_aggregates_when_changed(mock_days, mock_get, mock_put):
    current = MonthStats(date=date(2024, 5, 1), site_visit=7, new_customers=2)
    previous = MonthStats(date=date(2024, 4, 1), income=100.0, last5month=[MonthSummary(date(2024, 3, 1), 50.0)])
    mock_days.return_value = [
        {"date": "2024-05-07", "meetings": [_meeting(9, price=150)], "updated_at": 2000},
    ]
    mock_get.side_effect = lambda user_id, month: current if month == date(2024, 5, 1) else previous
    stats, from_memory = stats_store.refresh_month_stats("u1", date(2024, 5, 9), previous_call=1000)
    assert from_memory is False
    assert stats.income == 150
    assert stats.site_visit == 7
    assert stats.new_customers == 2
    assert [m.income for m in stats.last5month] == [100.0, 50.0]
    assert stats.mtm == pytest.approx(100.0)
    mock_put.assert_called_once_with("u1", stats)


@patch("src.booking_service.stats_store.put_stats")
@patch("src.booking_service.stats_store.get_stats", return_value=None)
@patch("src.booking_service.schedule_store.get_month_days", return_value=[])
def test_refresh_creates_first_record(mock_days, mock_get, mock_put):
    stats, from_memory = stats_store.refresh_month_stats("u1", date(2024, 5, 9))
    assert from_memory is False
    assert stats.meeting_num == 0
    mock_put.assert_called_once()


def test_add_notification_caps_history(ddb):
    ddb.query.return_value = {
        "Items": [store.to_item({"notification_id": f"2024-05-{i:02d}T10:00:00#abc"}) for i in range(1, 21)]
    }
    result = notifications.add_notification("u1", notifications.MEETING_DELETED, "Dana", 3, date(2024, 5, 7))
    assert result["title"] == "Meeting Was Deleted"
    assert result["date"] == "2024-05-07"
    ddb.delete_item.assert_called_once()
    deleted = ddb.delete_item.call_args.kwargs["Key"]["notification_id"]
    assert deleted == {"S": "2024-05-01T10:00:00#abc"}
    ddb.put_item.assert_called_once()


def test_add_notification_under_cap(ddb):
    ddb.query.return_value = {"Items": []}
    notifications.add_notification("u1", notifications.NEW_CUSTOMER, "Dana", 1, date(2024, 5, 7))
    ddb.delete_item.assert_not_called()
    item = store.from_item(ddb.put_item.call_args.kwargs["Item"])
    assert item["user_id"] == "u1"
    assert item["customerName"] == "Dana"


def test_add_customer_if_new(ddb):
    assert users.add_customer_if_new("u1", "Dana", "+972500000000") is True
    ddb.put_item.side_effect = ConditionalCheckFailedException()
    assert users.add_customer_if_new("u1", "Dana", "+972500000000") is False


def test_website_data(ddb):
    ddb.get_item.return_value = {
        "Item": store.to_item({"user_id": "u1", "businessName": "Studio", "services": [{"name": "Cut", "price": 80}]})
    }
    data = users.get_website_data("u1")
    assert data["services"] == [{"name": "Cut", "price": 80}]
    assert data["userDoc"]["businessName"] == "Studio"


def test_website_data_unknown_user(ddb):
    ddb.get_item.return_value = {}
    with pytest.raises(users.UserNotFoundError):
        users.get_website_data("nobody")


def test_add_contact_message(ddb):
    record = contact_messages.add_contact_message("Dana", "dana@example.com", "Do you work on Fridays?")
    assert record["message"] == "Do you work on Fridays?"
    kwargs = ddb.put_item.call_args.kwargs
    assert kwargs["TableName"] == "contact_messages"
    item = store.from_item(kwargs["Item"])
    assert item["email"] == "dana@example.com"
    assert item["addDate"] == record["addDate"]
    assert item["message_id"].startswith(record["addDate"] + "#")
