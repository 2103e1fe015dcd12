from __future__ import annotations

from prscout.github import Comment, PullRequest
from prscout.relevance import PRKey, comment_mentions, is_relevant


def _pr(number: int = 1, **overrides) -> PullRequest:
    fields = dict(
        number=number, state="open", title="Title", body=None, author="someone",
        updated_at=None, html_url=None,
    )
    fields.update(overrides)
    return PullRequest(**fields)


def test_prkey_equality_ignores_other_fields():
    a = _pr(5, title="old title")
    b = _pr(5, title="new title", body="changed")
    assert a != b
    assert PRKey.of(a) == PRKey.of(b)
    assert len({PRKey.of(a), PRKey.of(b)}) == 1


def test_requested_team_matches():
    pr = _pr(10, requested_teams=[101])
    assert is_relevant(pr, {101}, "alice") is True


def test_body_mention_matches():
    pr = _pr(11, body="please check @alice")
    assert is_relevant(pr, set(), "alice") is True


def test_requested_reviewer_matches():
    pr = _pr(requested_reviewers=["bob", "alice"])
    assert is_relevant(pr, set(), "alice") is True


def test_assignee_matches():
    pr = _pr(assignees=["alice"])
    assert is_relevant(pr, set(), "alice") is True


def test_no_signal_does_not_match():
    pr = _pr(
        body="thanks @bob",
        requested_reviewers=["bob"],
        assignees=["carol"],
        requested_teams=[202],
    )
    assert is_relevant(pr, {101}, "alice") is False


def test_missing_fields_never_match():
    pr = _pr(body=None, requested_reviewers=None, assignees=None, requested_teams=None)
    assert is_relevant(pr, {101}, "alice") is False


def test_bare_login_without_at_is_not_a_mention():
    pr = _pr(body="alice should look")
    assert is_relevant(pr, set(), "alice") is False


def test_is_relevant_is_idempotent():
    pr = _pr(body="@alice", requested_teams=[1])
    teams = {1}
    assert is_relevant(pr, teams, "alice") == is_relevant(pr, teams, "alice")
    assert teams == {1}


def test_comment_mentions_by_body_or_author():
    assert comment_mentions([Comment(author="bob", body="ping @alice")], "alice") is True
    assert comment_mentions([Comment(author="alice", body="nit")], "alice") is True
    assert comment_mentions([Comment(author=None, body="no one")], "alice") is False
    assert comment_mentions([], "alice") is False
