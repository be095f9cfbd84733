"""Group formation and the invitation protocol."""

import pytest

from modality_engine.kernel.models.invitation import InvitationStatus
from modality_engine.kernel.models.modality import ModalityStatus
from modality_engine.kernel.models.roles import UserRole
from modality_engine.orchestration.errors import (
    InvalidPayload,
    InvalidTransition,
    InvitationCapacityExceeded,
    InvitationConflict,
    RecordNotFound,
    UnauthorizedTransition,
)
from modality_engine.orchestration.transitions import ModalityAction

S = ModalityStatus
A = ModalityAction


@pytest.fixture
def peers(driver):
    return [driver.new_actor(UserRole.STUDENT) for _ in range(3)]


async def _draft(driver, modality_type, initiator=None):
    record = await driver.groups.start_group(initiator or driver.student, modality_type.id)
    await driver.session.commit()
    return record


async def _invite(driver, record, invitee, inviter=None):
    invitation = await driver.groups.invite(record.id, inviter or driver.student, invitee.actor_id)
    await driver.session.commit()
    return invitation


class TestStart:
    @pytest.mark.asyncio
    async def test_group_start_opens_a_draft(self, driver, thesis_type):
        record = await _draft(driver, thesis_type)

        assert record.status == S.DRAFT
        assert record.is_group
        assert record.member_ids == [driver.student.actor_id]
        assert record.initiator_id == driver.student.actor_id

    @pytest.mark.asyncio
    async def test_individual_start_is_selected(self, driver, thesis_type):
        record = await driver.start(thesis_type)
        assert record.status == S.MODALITY_SELECTED
        assert not record.is_group

    @pytest.mark.asyncio
    async def test_one_active_modality_per_student(self, driver, thesis_type):
        await _draft(driver, thesis_type)

        with pytest.raises(InvitationConflict):
            await driver.groups.start_individual(driver.student, thesis_type.id)

    @pytest.mark.asyncio
    async def test_only_students_start(self, driver, thesis_type):
        with pytest.raises(UnauthorizedTransition):
            await driver.groups.start_individual(driver.program_head, thesis_type.id)

    @pytest.mark.asyncio
    async def test_unknown_type(self, driver):
        with pytest.raises(RecordNotFound):
            await driver.groups.start_individual(driver.student, driver.new_actor(UserRole.STUDENT).actor_id)

    @pytest.mark.asyncio
    async def test_inactive_type(self, driver, thesis_type):
        thesis_type.is_active = False
        await driver.session.commit()

        with pytest.raises(InvalidPayload):
            await driver.groups.start_individual(driver.student, thesis_type.id)


class TestInvite:
    @pytest.mark.asyncio
    async def test_capacity(self, driver, thesis_type, peers):
        record = await _draft(driver, thesis_type)
        await _invite(driver, record, peers[0])
        await _invite(driver, record, peers[1])

        with pytest.raises(InvitationCapacityExceeded) as exc:
            await driver.groups.invite(record.id, driver.student, peers[2].actor_id)
        assert exc.value.context["max_group_members"] == 3

    @pytest.mark.asyncio
    async def test_rejected_invitation_frees_a_slot(self, driver, thesis_type, peers):
        record = await _draft(driver, thesis_type)
        first = await _invite(driver, record, peers[0])
        await _invite(driver, record, peers[1])

        await driver.groups.reject(first.id, peers[0])
        await driver.session.commit()

        invitation = await _invite(driver, record, peers[2])
        assert invitation.status == InvitationStatus.PENDING

    @pytest.mark.asyncio
    async def test_candidate_with_pending_invitation_elsewhere(self, driver, thesis_type, peers):
        other_initiator = driver.new_actor(UserRole.STUDENT)
        mine = await _draft(driver, thesis_type)
        theirs = await _draft(driver, thesis_type, initiator=other_initiator)
        await _invite(driver, theirs, peers[0], inviter=other_initiator)

        with pytest.raises(InvitationConflict):
            await driver.groups.invite(mine.id, driver.student, peers[0].actor_id)

    @pytest.mark.asyncio
    async def test_candidate_with_active_modality(self, driver, thesis_type, peers):
        await driver.start(thesis_type, student=peers[0])
        record = await _draft(driver, thesis_type)

        with pytest.raises(InvitationConflict):
            await driver.groups.invite(record.id, driver.student, peers[0].actor_id)

    @pytest.mark.asyncio
    async def test_self_invitation(self, driver, thesis_type):
        record = await _draft(driver, thesis_type)

        with pytest.raises(InvitationConflict):
            await driver.groups.invite(record.id, driver.student, driver.student.actor_id)

    @pytest.mark.asyncio
    async def test_only_initiator_invites(self, driver, thesis_type, peers):
        record = await _draft(driver, thesis_type)

        with pytest.raises(UnauthorizedTransition):
            await driver.groups.invite(record.id, peers[0], peers[1].actor_id)


class TestRespond:
    @pytest.mark.asyncio
    async def test_accept_joins_the_group(self, driver, thesis_type, peers):
        record = await _draft(driver, thesis_type)
        invitation = await _invite(driver, record, peers[0])

        accepted = await driver.groups.accept(invitation.id, peers[0])
        await driver.session.commit()

        assert accepted.status == InvitationStatus.ACCEPTED
        assert accepted.responded_at is not None
        assert record.member_ids == [driver.student.actor_id, peers[0].actor_id]

    @pytest.mark.asyncio
    async def test_accept_twice_is_a_no_op(self, driver, thesis_type, peers):
        record = await _draft(driver, thesis_type)
        invitation = await _invite(driver, record, peers[0])
        await driver.groups.accept(invitation.id, peers[0])
        await driver.session.commit()
        version = record.version

        again = await driver.groups.accept(invitation.id, peers[0])
        assert again.status == InvitationStatus.ACCEPTED
        assert record.version == version
        assert len(record.members) == 2

    @pytest.mark.asyncio
    async def test_only_invitee_answers(self, driver, thesis_type, peers):
        record = await _draft(driver, thesis_type)
        invitation = await _invite(driver, record, peers[0])

        with pytest.raises(UnauthorizedTransition):
            await driver.groups.accept(invitation.id, peers[1])

    @pytest.mark.asyncio
    async def test_accept_with_another_active_modality(self, driver, thesis_type, peers):
        record = await _draft(driver, thesis_type)
        invitation = await _invite(driver, record, peers[0])
        await driver.start(thesis_type, student=peers[0])

        with pytest.raises(InvitationConflict):
            await driver.groups.accept(invitation.id, peers[0])

    @pytest.mark.asyncio
    async def test_list_pending_for_invitee(self, driver, thesis_type, peers):
        record = await _draft(driver, thesis_type)
        await _invite(driver, record, peers[0])
        await _invite(driver, record, peers[1])

        mine = await driver.groups.list_invitations(invitee_id=peers[0].actor_id, status=InvitationStatus.PENDING)
        assert len(mine) == 1
        assert mine[0].modality_record_id == record.id
        assert len(await driver.groups.list_invitations(record_id=record.id)) == 2


class TestConfirm:
    @pytest.mark.asyncio
    async def test_confirm_withdraws_pending(self, driver, thesis_type, peers):
        record = await _draft(driver, thesis_type)
        accepted = await _invite(driver, record, peers[0])
        pending = await _invite(driver, record, peers[1])
        await driver.groups.accept(accepted.id, peers[0])
        await driver.session.commit()

        record = await driver.groups.confirm(record.id, driver.student)
        await driver.session.commit()

        assert record.status == S.MODALITY_SELECTED
        assert record.is_group
        assert pending.status == InvitationStatus.REJECTED

        late = await driver.groups.accept(pending.id, peers[1])
        assert late.status == InvitationStatus.REJECTED
        assert not record.is_member(peers[1].actor_id)

        with pytest.raises(InvalidTransition):
            await driver.groups.invite(record.id, driver.student, peers[2].actor_id)

    @pytest.mark.asyncio
    async def test_solo_confirm_becomes_individual(self, driver, thesis_type):
        record = await _draft(driver, thesis_type)

        record = await driver.groups.confirm(record.id, driver.student)
        await driver.session.commit()

        assert record.status == S.MODALITY_SELECTED
        assert not record.is_group

    @pytest.mark.asyncio
    async def test_only_initiator_confirms(self, driver, thesis_type, peers):
        record = await _draft(driver, thesis_type)
        invitation = await _invite(driver, record, peers[0])
        await driver.groups.accept(invitation.id, peers[0])
        await driver.session.commit()

        with pytest.raises(UnauthorizedTransition):
            await driver.groups.confirm(record.id, peers[0])

    @pytest.mark.asyncio
    async def test_any_member_acts_for_the_group(self, driver, thesis_type, peers):
        record = await _draft(driver, thesis_type)
        invitation = await _invite(driver, record, peers[0])
        await driver.groups.accept(invitation.id, peers[0])
        await driver.session.commit()
        record = await driver.groups.confirm(record.id, driver.student)
        await driver.session.commit()

        await driver.upload_mandatory(record, student=peers[0])
        record = await driver.act(record, peers[0], A.SUBMIT_FOR_REVIEW)
        assert record.status == S.UNDER_REVIEW_PROGRAM_HEAD

    @pytest.mark.asyncio
    async def test_draft_has_no_workflow_actions(self, driver, thesis_type):
        record = await _draft(driver, thesis_type)

        with pytest.raises(InvalidTransition):
            await driver.machine.transition(record.id, driver.student, A.SUBMIT_FOR_REVIEW)
