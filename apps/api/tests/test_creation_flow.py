import pytest

from family_tree.core.errors import (
    AgeOrderingViolation,
    DuplicateFather,
    InvalidMemberFields,
    InvalidSpouseOrder,
    NotAuthorized,
    ParentsAlreadySetUp,
)
from family_tree.models.entities import Branch, CreationStepEnum, Member
from family_tree.models.roles import RoleEnum
from family_tree.services import creation_flow
from family_tree.services.creation_flow import SetupStep

from factories import mother, own_family, parents_family, profile


def test_setup_parents_for_parents_family(db_session, sent_notifications):
    family = parents_family(db_session)

    result = creation_flow.setup_parents(
        db_session,
        family.id,
        "child@example.com",
        profile("Dad", "1950", "Father"),
        [mother(1, "1955"), mother(2, "1960")],
    )

    assert result.father.role_kind == RoleEnum.father
    assert [item.spouse_order for item in result.mothers] == [1, 2]
    assert [item.branch_name for item in result.branches] == ["First Wife's Branch", "2nd Wife's Branch"]
    assert result.flow.parents_setup
    assert result.flow.current_step == CreationStepEnum.parent_setup
    assert [item["event_kind"] for item in sent_notifications] == ["parents_set_up"]


def test_own_family_reuses_the_creator_as_father(db_session):
    family = own_family(db_session)

    result = creation_flow.setup_parents(db_session, family.id, "father@example.com", None, [mother(1)])

    assert result.father.is_family_creator
    assert db_session.query(Member).filter(Member.role_kind == RoleEnum.father).count() == 1


def test_own_family_rejects_a_second_father(db_session):
    family = own_family(db_session)

    with pytest.raises(DuplicateFather):
        creation_flow.setup_parents(
            db_session, family.id, "father@example.com", profile("Dad", "1940"), [mother(1)]
        )


def test_parents_family_requires_a_father(db_session):
    family = parents_family(db_session)

    with pytest.raises(InvalidMemberFields):
        creation_flow.setup_parents(db_session, family.id, "child@example.com", None, [mother(1)])


@pytest.mark.parametrize("orders", [[1, 3], [1, 1], [2], [2, 3]])
def test_spouse_orders_must_be_contiguous_from_one(db_session, orders):
    family = parents_family(db_session)

    with pytest.raises(InvalidSpouseOrder):
        creation_flow.setup_parents(
            db_session,
            family.id,
            "child@example.com",
            profile("Dad", "1950"),
            [mother(order) for order in orders],
        )
    assert db_session.query(Member).count() == 1
    assert db_session.query(Branch).count() == 0


def test_father_must_be_older_than_every_mother(db_session):
    family = parents_family(db_session)

    with pytest.raises(AgeOrderingViolation):
        creation_flow.setup_parents(
            db_session,
            family.id,
            "child@example.com",
            profile("Dad", "1958"),
            [mother(1, "1955"), mother(2, "1960")],
        )
    assert db_session.query(Member).count() == 1


def test_parents_cannot_be_set_up_twice(db_session):
    family = own_family(db_session)
    creation_flow.setup_parents(db_session, family.id, "father@example.com", None, [mother(1)])

    with pytest.raises(ParentsAlreadySetUp):
        creation_flow.setup_parents(db_session, family.id, "father@example.com", None, [mother(1)])


def test_at_least_one_mother_is_required(db_session):
    family = own_family(db_session)

    with pytest.raises(InvalidMemberFields):
        creation_flow.setup_parents(db_session, family.id, "father@example.com", None, [])


def test_only_the_creator_sets_up_parents(db_session):
    family = own_family(db_session)

    with pytest.raises(NotAuthorized):
        creation_flow.setup_parents(db_session, family.id, "stranger@example.com", None, [mother(1)])


def test_current_step_follows_completed_flags(db_session):
    family = own_family(db_session)
    principal = "father@example.com"

    flow = creation_flow.get_creation_flow(db_session, family.id, principal)
    assert flow.current_step == CreationStepEnum.initialized
    assert flow.next_step == CreationStepEnum.parent_setup
    assert flow.progress_percentage == 0

    flow = creation_flow.mark_step_complete(db_session, family.id, principal, SetupStep.children_setup)
    assert flow.current_step == CreationStepEnum.parent_setup

    flow = creation_flow.mark_step_complete(db_session, family.id, principal, SetupStep.children_setup)
    assert flow.completed_steps == 1

    creation_flow.mark_step_complete(db_session, family.id, principal, SetupStep.parents_setup)
    flow = creation_flow.mark_step_complete(db_session, family.id, principal, SetupStep.branches_created)
    assert flow.current_step == CreationStepEnum.completed
    assert flow.setup_completed
    assert flow.next_step is None
    assert flow.progress_percentage == 100
    assert db_session.get(type(family), family.id).current_step == CreationStepEnum.completed
