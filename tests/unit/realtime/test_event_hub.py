"""Tests for the event distribution hub."""

import asyncio

import pytest
import pytest_asyncio

from ivas.core.exceptions import AuthenticationError
from ivas.core.jwt import jwt_verifier
from ivas.schemas.enums import UserRole
from ivas.schemas.events import EventName, EventScope
from ivas.services.realtime.hub import EventHub, regulators, regulators_and_company
from tests.factories import create_company, create_user, token_for


@pytest_asyncio.fixture
async def hub(db_session, session_factory):
    hub = EventHub(session_factory, queue_size=2, heartbeat_interval=0)
    await hub.start()
    yield hub
    await hub.stop()


class TestConnect:
    @pytest.mark.asyncio
    async def test_session_is_tagged_from_the_stored_user(self, db_session, hub):
        company = await create_company(db_session)
        user = await create_user(db_session, UserRole.INSURER, company)

        session = await hub.connect(token_for(user))

        assert (session.user_id, session.role, session.company_id) == (user.id, UserRole.INSURER, company.id)
        assert hub.stats()["sessions"] == 1

    @pytest.mark.asyncio
    async def test_invalid_token_is_rejected(self, hub):
        with pytest.raises(AuthenticationError):
            await hub.connect("not-a-token")

    @pytest.mark.asyncio
    async def test_expired_token_is_rejected(self, db_session, hub):
        user = await create_user(db_session, UserRole.OFFICER)
        expired = jwt_verifier.issue_token(user.id, user.role, ttl_minutes=-5)

        with pytest.raises(AuthenticationError):
            await hub.connect(expired)

    @pytest.mark.asyncio
    async def test_inactive_or_unknown_users_are_rejected(self, db_session, hub):
        inactive = await create_user(db_session, UserRole.OFFICER, is_active=False)

        with pytest.raises(AuthenticationError):
            await hub.connect(token_for(inactive))
        with pytest.raises(AuthenticationError):
            await hub.connect(jwt_verifier.issue_token(9999, UserRole.OFFICER))

    @pytest.mark.asyncio
    async def test_stopped_hub_refuses_connections(self, db_session, session_factory):
        user = await create_user(db_session, UserRole.OFFICER)
        hub = EventHub(session_factory, heartbeat_interval=0)

        with pytest.raises(AuthenticationError):
            await hub.connect(token_for(user))


class TestPublish:
    @pytest.mark.asyncio
    async def test_scoped_fan_out(self, db_session, hub):
        acme = await create_company(db_session)
        other = await create_company(db_session)
        admin = await hub.connect(token_for(await create_user(db_session, UserRole.ADMIN)))
        regulator = await hub.connect(token_for(await create_user(db_session, UserRole.CBL)))
        acme_insurer = await hub.connect(token_for(await create_user(db_session, UserRole.INSURER, acme)))
        other_insurer = await hub.connect(token_for(await create_user(db_session, UserRole.INSURER, other)))
        officer = await hub.connect(token_for(await create_user(db_session, UserRole.OFFICER)))

        delivered = hub.publish(EventName.COMPANY_STATUS_UPDATE, {"company_id": acme.id}, regulators_and_company(acme.id))

        assert delivered == 3
        assert [s.queue.qsize() for s in (admin, regulator, acme_insurer, other_insurer, officer)] == [1, 1, 1, 0, 0]
        event = await acme_insurer.next_event()
        assert event.event == "companyStatusUpdate"
        assert event.data == {"company_id": acme.id}

    @pytest.mark.asyncio
    async def test_user_scope_reaches_one_user(self, db_session, hub):
        first = await create_user(db_session, UserRole.OFFICER)
        second = await create_user(db_session, UserRole.OFFICER)
        first_session = await hub.connect(token_for(first))
        second_session = await hub.connect(token_for(second))

        hub.publish(EventName.VERIFICATION_UPDATE, {"verification_id": 1}, EventScope(user_id=first.id))

        assert (first_session.queue.qsize(), second_session.queue.qsize()) == (1, 0)

    @pytest.mark.asyncio
    async def test_empty_scope_is_a_broadcast(self, db_session, hub):
        sessions = [
            await hub.connect(token_for(await create_user(db_session, role)))
            for role in (UserRole.OFFICER, UserRole.INSURED, UserRole.CBL)
        ]

        assert hub.publish(EventName.SYSTEM_ALERT, {"message": "maintenance"}) == 3
        assert all(s.queue.qsize() == 1 for s in sessions)

    @pytest.mark.asyncio
    async def test_full_queue_drops_instead_of_blocking(self, db_session, hub):
        session = await hub.connect(token_for(await create_user(db_session, UserRole.ADMIN)))

        for n in range(3):
            hub.publish(EventName.APPROVAL_UPDATE, {"n": n}, regulators())

        assert session.queue.qsize() == 2
        assert session.dropped == 1
        assert (await session.next_event()).data == {"n": 0}

    @pytest.mark.asyncio
    async def test_no_backlog_for_absent_sessions(self, db_session, hub):
        user = await create_user(db_session, UserRole.ADMIN)
        old = await hub.connect(token_for(user))
        hub.disconnect(old)

        assert hub.publish(EventName.APPROVAL_UPDATE, {"missed": True}, regulators()) == 0
        new = await hub.connect(token_for(user))

        assert new.queue.empty()
        assert old.queue.empty()

    @pytest.mark.asyncio
    async def test_publish_never_raises(self, hub):
        assert hub.publish(EventName.SYSTEM_ALERT, ["not", "a", "mapping"]) == 0
        assert hub.stats()["publish_failures"] == 1

    @pytest.mark.asyncio
    async def test_a_broken_session_does_not_starve_the_others(self, db_session, hub):
        broken = await hub.connect(token_for(await create_user(db_session, UserRole.ADMIN)))
        healthy = await hub.connect(token_for(await create_user(db_session, UserRole.CBL)))
        dead_loop = asyncio.new_event_loop()
        dead_loop.close()
        broken.loop = dead_loop

        delivered = hub.publish(EventName.APPROVAL_UPDATE, {"approval_id": 3}, regulators())

        assert delivered == 1
        assert healthy.queue.qsize() == 1
        assert broken.closed is True
        assert hub.stats()["sessions"] == 1

    @pytest.mark.asyncio
    async def test_publish_from_another_thread(self, db_session, hub):
        session = await hub.connect(token_for(await create_user(db_session, UserRole.CBL)))

        await asyncio.to_thread(hub.publish, EventName.NEW_VERIFICATION, {"verification_id": 5}, regulators())
        event = await asyncio.wait_for(session.next_event(), timeout=1)

        assert event.data == {"verification_id": 5}


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_heartbeats_reach_every_session(self, db_session, session_factory):
        hub = EventHub(session_factory, heartbeat_interval=0.01)
        await hub.start()
        try:
            session = await hub.connect(token_for(await create_user(db_session, UserRole.INSURED)))
            event = await asyncio.wait_for(session.next_event(), timeout=1)
        finally:
            await hub.stop()

        assert event.event == EventName.HEARTBEAT.value

    @pytest.mark.asyncio
    async def test_stop_detaches_sessions(self, db_session, hub):
        session = await hub.connect(token_for(await create_user(db_session, UserRole.ADMIN)))

        await hub.stop()

        assert session.closed is True
        assert hub.stats() == {"running": False, "sessions": 0, "published": 0, "publish_failures": 0, "dropped": 0}
