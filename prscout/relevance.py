"""
Relevance rules for Prscout.

A PR concerns the viewer when any direct signal on the PR itself matches:
- the viewer is a requested reviewer
- the PR body mentions @viewer
- one of the viewer's teams is a requested reviewer
- the viewer is an assignee

Review comments are a second, optional signal (see comment_mentions).
"""

from __future__ import annotations

from collections.abc import Iterable, Set
from dataclasses import dataclass

from .github import Comment, PullRequest


@dataclass(frozen=True)
class PRKey:
    """Identity of a pull request: equal and hashed by number only."""
    number: int

    @classmethod
    def of(cls, pr: PullRequest) -> "PRKey":
        return cls(pr.number)


def mention(login: str) -> str:
    return f"@{login}"


def is_relevant(pr: PullRequest, team_ids: Set[int], login: str) -> bool:
    """
    Check whether a PR concerns the viewer through its own fields.

    Missing body or lists never match. Pure and side-effect free.
    """
    requested_review = login in (pr.requested_reviewers or ())
    mentions_me = mention(login) in (pr.body or "")
    assigned_to_my_team = any(team_id in team_ids for team_id in pr.requested_teams or ())
    assigned_to_me = login in (pr.assignees or ())

    return requested_review or mentions_me or assigned_to_my_team or assigned_to_me


def comment_mentions(comments: Iterable[Comment], login: str) -> bool:
    """True if any comment mentions @login or was written by login."""
    tag = mention(login)
    return any(
        tag in (comment.body or "") or comment.author == login
        for comment in comments
    )
