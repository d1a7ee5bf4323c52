from unittest.mock import call

import pytest
from pydantic import ValidationError as RequestValidationError

from be_my_guide.database.collections import TRIPS
from be_my_guide.errors import ErrorCode, MailError, NotFoundError, ValidationError
from be_my_guide.models.trip_models import InvitationRequest, UpdateTripUsersRequest
from be_my_guide.utils.object_ids import new_object_id


def users_request(*entries, invite_from="Alice"):
    return UpdateTripUsersRequest.model_validate({"users": list(entries), "inviteFrom": invite_from})


@pytest.mark.asyncio
async def test_update_users_invites_new_emails(trip_service, store, mail_manager, trip, owner, companion):
    result = await trip_service.update_users(
        trip["id"],
        users_request({"_id": owner["id"]}, {"_id": companion["id"]}, {"email": "carol@example.com"}),
    )

    assert [user.id for user in result.users] == [owner["id"], companion["id"]]
    assert result.users[1].username == "bob"
    assert result.invited_users == ["carol@example.com"]
    mail_manager.send_trip_invitation.assert_awaited_once_with("Alice", "carol@example.com", trip["id"])


@pytest.mark.asyncio
async def test_update_users_skips_pending_invitations(trip_service, store, mail_manager, trip, owner):
    store.collections[TRIPS][trip["id"]]["invited_users"] = ["carol@example.com"]

    result = await trip_service.update_users(
        trip["id"],
        users_request({"_id": owner["id"]}, {"email": "carol@example.com"}, {"email": "dave@example.com"}),
    )

    assert result.invited_users == ["carol@example.com", "dave@example.com"]
    assert mail_manager.send_trip_invitation.await_args_list == [call("Alice", "dave@example.com", trip["id"])]


@pytest.mark.asyncio
async def test_update_users_survives_mail_failures(trip_service, store, mail_manager, trip, owner):
    mail_manager.send_trip_invitation.side_effect = [MailError("relay down"), True]

    result = await trip_service.update_users(
        trip["id"],
        users_request({"_id": owner["id"]}, {"email": "carol@example.com"}, {"email": "dave@example.com"}),
    )

    assert result.invited_users == ["carol@example.com", "dave@example.com"]
    assert mail_manager.send_trip_invitation.await_count == 2


@pytest.mark.asyncio
async def test_update_users_rejects_malformed_member_ids(trip_service, mail_manager, trip):
    with pytest.raises(ValidationError):
        await trip_service.update_users(trip["id"], users_request({"_id": "nope"}, {"email": "carol@example.com"}))

    mail_manager.send_trip_invitation.assert_not_awaited()


def test_malformed_invitee_email_is_rejected(owner):
    with pytest.raises(RequestValidationError, match="email"):
        users_request({"_id": owner["id"]}, {"email": "not an email"})


@pytest.mark.asyncio
async def test_update_users_missing_trip(trip_service, mail_manager):
    with pytest.raises(NotFoundError):
        await trip_service.update_users(new_object_id(), users_request({"email": "carol@example.com"}))

    mail_manager.send_trip_invitation.assert_not_awaited()


@pytest.mark.asyncio
async def test_accepting_an_invitation_makes_a_member(trip_service, store, trip, companion):
    store.collections[TRIPS][trip["id"]]["invited_users"] = ["bob@example.com", "carol@example.com"]

    result = await trip_service.handle_invitation(
        trip["id"], InvitationRequest.model_validate({"userId": companion["id"], "accepted": True})
    )

    assert companion["id"] in result.users
    assert result.invited_users == ["carol@example.com"]


@pytest.mark.asyncio
async def test_declining_an_invitation_only_clears_it(trip_service, store, trip, owner, companion):
    store.collections[TRIPS][trip["id"]]["invited_users"] = ["bob@example.com"]

    result = await trip_service.handle_invitation(trip["id"], InvitationRequest(user_id=companion["id"], accepted=False))

    assert result.users == [owner["id"]]
    assert result.invited_users == []


@pytest.mark.asyncio
async def test_handle_invitation_missing_user_or_trip(trip_service, trip, companion):
    with pytest.raises(NotFoundError) as exc_info:
        await trip_service.handle_invitation(trip["id"], InvitationRequest(user_id=new_object_id(), accepted=True))
    assert exc_info.value.code == ErrorCode.USER_NOT_FOUND

    with pytest.raises(NotFoundError) as exc_info:
        await trip_service.handle_invitation(new_object_id(), InvitationRequest(user_id=companion["id"], accepted=True))
    assert exc_info.value.code == ErrorCode.TRIP_NOT_FOUND


@pytest.mark.asyncio
async def test_remove_companion_is_idempotent(trip_service, store, trip, owner, companion):
    store.collections[TRIPS][trip["id"]]["users"] = [owner["id"], companion["id"]]

    once = await trip_service.remove_companion(trip["id"], companion["id"])
    twice = await trip_service.remove_companion(trip["id"], companion["id"])

    assert [user.id for user in once.users] == [owner["id"]]
    assert [user.id for user in twice.users] == [owner["id"]]


@pytest.mark.asyncio
async def test_invitation_round_trip(trip_service, store, mail_manager, trip, owner, companion):
    """Invite by email, accept, then remove: the member set ends where it started."""
    await trip_service.update_users(trip["id"], users_request({"_id": owner["id"]}, {"email": "bob@example.com"}))
    assert store.get(TRIPS, trip["id"])["invited_users"] == ["bob@example.com"]

    accepted = await trip_service.handle_invitation(trip["id"], InvitationRequest(user_id=companion["id"], accepted=True))
    assert accepted.users == [owner["id"], companion["id"]]
    assert accepted.invited_users == []

    removed = await trip_service.remove_companion(trip["id"], companion["id"])
    assert [user.id for user in removed.users] == [owner["id"]]
    assert removed.invited_users == []
