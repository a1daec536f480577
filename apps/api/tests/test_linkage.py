import pytest

from family_tree.core.errors import (
    AlreadyLinked,
    InvalidJoinCode,
    JoinCodeAlreadyUsed,
    JoinCodeNotEligible,
    LinkNotFound,
    NoMainFamily,
    NotAuthorized,
    SelfLinkForbidden,
)
from family_tree.models.entities import LinkedFamilyRelation, LinkStatusEnum, Member, MemberMirror
from family_tree.models.roles import RoleEnum
from family_tree.services import creation_flow, linkage, members
from family_tree.services.access import get_creator_member

from factories import mother, own_family, profile

FATHER_A = "a@example.com"
FATHER_B = "b@example.com"


@pytest.fixture
def two_families(db_session):
    family_a = own_family(db_session, FATHER_A, name="Family A")
    wife_a = creation_flow.setup_parents(db_session, family_a.id, FATHER_A, None, [mother(1, "1975")]).mothers[0]
    members.add_member(db_session, family_a.id, FATHER_A, RoleEnum.child, profile("Kid", "2000"), mother_id=wife_a.id)

    family_b = own_family(db_session, FATHER_B, name="Family B")
    creation_flow.setup_parents(db_session, family_b.id, FATHER_B, None, [mother(1, "1970")])
    return family_a, family_b


def _members_of(db_session, family_id):
    return db_session.query(Member).filter(Member.family_id == family_id).order_by(Member.id).all()


def test_link_with_father_code(db_session, two_families, sent_notifications):
    family_a, family_b = two_families
    anchor = get_creator_member(db_session, family_a.id)
    code = anchor.join_code

    relation = linkage.link_families(db_session, code, FATHER_B)

    assert relation.status == LinkStatusEnum.active
    assert {relation.family_a_id, relation.family_b_id} == {family_a.id, family_b.id}
    assert db_session.get(Member, anchor.id).join_code_consumed
    assert db_session.query(LinkedFamilyRelation).count() == 1
    assert sorted(item["target"] for item in sent_notifications if item["event_kind"] == "family_linked") == [
        FATHER_A,
        FATHER_B,
    ]

    with pytest.raises(JoinCodeAlreadyUsed):
        linkage.link_families(db_session, code, FATHER_B)
    assert db_session.query(LinkedFamilyRelation).count() == 1


def test_link_mirrors_both_sides(db_session, two_families):
    family_a, family_b = two_families
    anchor = get_creator_member(db_session, family_a.id)

    relation = linkage.link_families(db_session, anchor.join_code, FATHER_B)

    # A's wife and child land in B; B's wife lands in A. Neither anchor nor caller's creator is copied.
    mirrors_in_b = [item for item in _members_of(db_session, family_b.id) if item.is_linked_member]
    mirrors_in_a = [item for item in _members_of(db_session, family_a.id) if item.is_linked_member]
    assert sorted(item.first_name for item in mirrors_in_b) == ["Kid", "Wife1"]
    assert [item.original_family_id for item in mirrors_in_a] == [family_b.id]
    assert linkage.mirror_counts(db_session, relation.id) == {family_a.id: 1, family_b.id: 2}
    assert db_session.query(MemberMirror).count() == 3

    for mirror in mirrors_in_a + mirrors_in_b:
        assert mirror.role is None
        assert mirror.mother_id is None
        assert mirror.branch_id is None
        assert mirror.spouse_order is None
        assert not mirror.join_code_consumed
        original = db_session.get(Member, mirror.original_member_id)
        assert original.mirrored_as_member_id == mirror.id
        assert original.join_code != mirror.join_code


def test_link_preconditions_in_order(db_session, two_families):
    family_a, family_b = two_families
    child_a = next(item for item in _members_of(db_session, family_a.id) if item.role_kind == RoleEnum.child)
    own_code = get_creator_member(db_session, family_b.id).join_code
    anchor_code = get_creator_member(db_session, family_a.id).join_code

    with pytest.raises(InvalidJoinCode):
        linkage.link_families(db_session, "ZZZZ9999", FATHER_B)
    with pytest.raises(JoinCodeNotEligible):
        linkage.link_families(db_session, child_a.join_code, FATHER_B)
    with pytest.raises(NoMainFamily):
        linkage.link_families(db_session, anchor_code, "nobody@example.com")
    with pytest.raises(SelfLinkForbidden):
        linkage.link_families(db_session, own_code, FATHER_B)

    assert not db_session.get(Member, get_creator_member(db_session, family_a.id).id).join_code_consumed
    assert db_session.query(LinkedFamilyRelation).count() == 0


def test_second_code_for_an_already_linked_pair(db_session, two_families):
    family_a, _ = two_families
    anchor = get_creator_member(db_session, family_a.id)
    linkage.link_families(db_session, anchor.join_code, FATHER_B)
    wife_a = next(
        item for item in _members_of(db_session, family_a.id) if item.role_kind == RoleEnum.mother
    )
    members_before = db_session.query(Member).count()

    with pytest.raises(AlreadyLinked):
        linkage.link_families(db_session, wife_a.join_code, FATHER_B)
    assert not db_session.get(Member, wife_a.id).join_code_consumed
    assert db_session.query(Member).count() == members_before


def test_mirror_codes_are_not_eligible(db_session, two_families):
    family_a, family_b = two_families
    linkage.link_families(db_session, get_creator_member(db_session, family_a.id).join_code, FATHER_B)
    mirror = next(item for item in _members_of(db_session, family_b.id) if item.is_linked_member)

    with pytest.raises(JoinCodeNotEligible):
        linkage.link_families(db_session, mirror.join_code, FATHER_A)


def test_lowercase_code_is_normalized(db_session, two_families):
    family_a, _ = two_families
    code = get_creator_member(db_session, family_a.id).join_code

    relation = linkage.link_families(db_session, code.lower(), FATHER_B)

    assert relation.established_by_principal_id == FATHER_B


def test_validate_join_code(db_session, two_families):
    family_a, _ = two_families
    anchor = get_creator_member(db_session, family_a.id)
    child_a = next(item for item in _members_of(db_session, family_a.id) if item.role_kind == RoleEnum.child)

    status = linkage.validate_join_code(db_session, anchor.join_code)
    assert status.is_valid and status.eligible_for_link and status.is_family_creator
    assert status.family_name == "Family A"
    assert status.member_name == "Father Example"

    child_status = linkage.validate_join_code(db_session, child_a.join_code)
    assert child_status.is_valid and not child_status.eligible_for_link

    assert not linkage.validate_join_code(db_session, "not-a-code").is_valid

    linkage.link_families(db_session, anchor.join_code, FATHER_B)
    assert not linkage.validate_join_code(db_session, anchor.join_code).is_valid


def test_deactivate_link_keeps_mirrors(db_session, two_families):
    family_a, family_b = two_families
    relation = linkage.link_families(db_session, get_creator_member(db_session, family_a.id).join_code, FATHER_B)
    mirrors_before = db_session.query(Member).filter(Member.is_linked_member.is_(True)).count()

    with pytest.raises(NotAuthorized):
        linkage.deactivate_link(db_session, relation.id, "stranger@example.com")
    with pytest.raises(LinkNotFound):
        linkage.deactivate_link(db_session, 999, FATHER_A)

    deactivated = linkage.deactivate_link(db_session, relation.id, FATHER_A)

    assert deactivated.status == LinkStatusEnum.inactive
    assert db_session.query(Member).filter(Member.is_linked_member.is_(True)).count() == mirrors_before
    assert linkage.linked_families_for(db_session, family_b.id, FATHER_B) == []
    assert [item.id for item in linkage.linked_families_for(db_session, family_b.id, FATHER_B, include_inactive=True)] == [
        relation.id
    ]


def test_relink_after_deactivation_with_a_fresh_code(db_session, two_families):
    family_a, family_b = two_families
    anchor = get_creator_member(db_session, family_a.id)
    relation = linkage.link_families(db_session, anchor.join_code, FATHER_B)
    linkage.deactivate_link(db_session, relation.id, FATHER_B)
    fresh = members.regenerate_join_code(db_session, family_a.id, FATHER_A, anchor.id)

    second = linkage.link_families(db_session, fresh.join_code, FATHER_B)

    assert second.id != relation.id
    assert [item.id for item in linkage.linked_families_for(db_session, family_a.id, FATHER_A)] == [second.id]


def test_relink_does_not_duplicate_existing_mirrors(db_session, two_families):
    family_a, family_b = two_families
    anchor = get_creator_member(db_session, family_a.id)
    relation = linkage.link_families(db_session, anchor.join_code, FATHER_B)
    linkage.deactivate_link(db_session, relation.id, FATHER_A)
    fresh = members.regenerate_join_code(db_session, family_a.id, FATHER_A, anchor.id)
    mirrors_before = db_session.query(Member).filter(Member.is_linked_member.is_(True)).count()

    second = linkage.link_families(db_session, fresh.join_code, FATHER_B)

    kids_in_b = [item for item in _members_of(db_session, family_b.id) if item.first_name == "Kid"]
    assert len(kids_in_b) == 1
    assert db_session.query(Member).filter(Member.is_linked_member.is_(True)).count() == mirrors_before
    assert linkage.mirror_counts(db_session, second.id) == {}


def test_failure_while_mirroring_rolls_back_everything(db_session, two_families, monkeypatch):
    family_a, _ = two_families
    anchor = get_creator_member(db_session, family_a.id)
    members_before = db_session.query(Member).count()

    def boom(*args, **kwargs):
        raise RuntimeError("store went away")

    monkeypatch.setattr(linkage, "_mirror", boom)

    with pytest.raises(RuntimeError):
        linkage.link_families(db_session, anchor.join_code, FATHER_B)

    assert not db_session.get(Member, anchor.id).join_code_consumed
    assert db_session.query(LinkedFamilyRelation).count() == 0
    assert db_session.query(Member).count() == members_before
