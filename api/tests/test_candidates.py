import pytest

from studybuddy.errors import ContextNotAssociated, InvalidContext
from studybuddy.records import ContextAssociation, MatchContext
from studybuddy.services.candidates import candidate_ids_for, resolve


def test_candidate_ids_is_set_difference_of_active_members():
    ctx = MatchContext(type="topic", id="t1")
    other = MatchContext(type="topic", id="t2")
    associations = [
        ContextAssociation("me", ctx, True),
        ContextAssociation("a", ctx, True),
        ContextAssociation("b", ctx, False),
        ContextAssociation("c", other, True),
    ]
    assert candidate_ids_for("me", associations, ctx) == {"a"}


def test_candidate_ids_requires_requester_association():
    ctx = MatchContext(type="course", id="c1")
    with pytest.raises(ContextNotAssociated):
        candidate_ids_for("me", [ContextAssociation("a", ctx, True)], ctx)


def test_resolve_course_filters_inactive_and_unverified(store, seed):
    course = seed.course()
    me = seed.user("Req", "Uester")
    ok = seed.user("Ada", "Lovelace", bio="proofs", study_style="quiet", study_pace="steady", location="Library")
    inactive = seed.user("In", "Active", is_active=False)
    unverified = seed.user("Un", "Verified", is_verified=False)
    dropped = seed.user("Dropped", "Course")
    outsider = seed.user("Out", "Sider")
    for uid in (me, ok, inactive, unverified):
        seed.enroll(uid, course)
    seed.enroll(dropped, course, is_active=False)
    seed.enroll(outsider, seed.course("Physics"))

    profiles = resolve(store, me, MatchContext(type="course", id=course))

    assert [p.id for p in profiles] == [ok]
    p = profiles[0]
    assert p.display_name == "Ada Lovelace"
    assert (p.bio, p.study_style, p.study_pace, p.location) == ("proofs", "quiet", "steady", "Library")


def test_resolve_topic_context(store, seed):
    topic = seed.topic()
    me = seed.user()
    mate = seed.user()
    seed.select_topic(me, topic)
    seed.select_topic(mate, topic)

    profiles = resolve(store, me, MatchContext(type="topic", id=topic))
    assert {p.id for p in profiles} == {mate}


def test_resolve_never_returns_requester(store, seed):
    course = seed.course()
    me = seed.user()
    seed.enroll(me, course)
    assert resolve(store, me, MatchContext(type="course", id=course)) == []


def test_resolve_rejects_inactive_requester_association(store, seed):
    course = seed.course()
    me = seed.user()
    mate = seed.user()
    seed.enroll(me, course, is_active=False)
    seed.enroll(mate, course)
    with pytest.raises(ContextNotAssociated):
        resolve(store, me, MatchContext(type="course", id=course))


def test_match_context_from_ids_requires_exactly_one():
    assert MatchContext.from_ids(course_id="c") == MatchContext("course", "c")
    assert MatchContext.from_ids(topic_id=" t ") == MatchContext("topic", "t")
    with pytest.raises(InvalidContext):
        MatchContext.from_ids()
    with pytest.raises(InvalidContext):
        MatchContext.from_ids(course_id="c", topic_id="t")
    with pytest.raises(InvalidContext):
        MatchContext(type="club", id="x")
