from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import Mock, patch

import pytest
import requests

from prscout.github import (
    GitHubAPIError,
    GitHubClient,
    RateLimitError,
    parse_timestamp,
)


def _pr_item(number: int, **overrides):
    item = {
        "number": number,
        "state": "open",
        "title": f"PR {number}",
        "body": None,
        "user": {"login": "alice"},
        "updated_at": "2024-01-01T00:00:00Z",
        "html_url": f"https://github.com/owner/repo/pull/{number}",
        "requested_reviewers": [],
        "assignees": [],
        "requested_teams": [],
    }
    item.update(overrides)
    return item


def _response(status_code: int, json_data=None, headers=None, text=""):
    response = Mock()
    response.status_code = status_code
    response.headers = headers or {}
    response.text = text
    response.json.return_value = json_data
    return response


def test_parse_timestamp_utc():
    result = parse_timestamp("2024-06-15T12:30:00Z")
    assert result == datetime(2024, 6, 15, 12, 30, tzinfo=timezone.utc)


def test_parse_timestamp_missing_or_invalid():
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None
    assert parse_timestamp("not a date") is None


def test_list_pulls_parses_relevance_fields():
    client = GitHubClient(token="test-token")

    mock_items = [
        _pr_item(
            1,
            body="cc @bob",
            requested_reviewers=[{"login": "bob"}, {"login": "carol"}],
            assignees=[{"login": "dave"}],
            requested_teams=[{"id": 7, "slug": "core"}, {"slug": "no-id"}],
        ),
    ]

    with patch.object(client, "_paginate", return_value=iter(mock_items)) as paginate:
        prs = client.list_pulls("owner", "repo", state="all", per_page=10)

    paginate.assert_called_once_with(
        "/repos/owner/repo/pulls", {"state": "all", "per_page": 10}, max_pages=1
    )
    assert len(prs) == 1
    pr = prs[0]
    assert pr.number == 1
    assert pr.author == "alice"
    assert pr.body == "cc @bob"
    assert pr.requested_reviewers == ["bob", "carol"]
    assert pr.assignees == ["dave"]
    assert pr.requested_teams == [7]
    assert pr.updated_at == datetime(2024, 1, 1, tzinfo=timezone.utc)


def test_list_pulls_handles_null_lists_and_user():
    client = GitHubClient(token="test-token")

    mock_items = [
        _pr_item(2, user=None, title=None, updated_at=None,
                 requested_reviewers=None, assignees=None, requested_teams=None),
    ]

    with patch.object(client, "_paginate", return_value=iter(mock_items)):
        pr = client.list_pulls("owner", "repo")[0]

    assert pr.author is None
    assert pr.title is None
    assert pr.updated_at is None
    assert pr.requested_reviewers == []
    assert pr.assignees == []
    assert pr.requested_teams == []


def test_list_user_teams_filters_by_org():
    client = GitHubClient(token="test-token")

    mock_items = [
        {"id": 1, "slug": "core", "organization": {"login": "octo-org"}},
        {"id": 2, "slug": "docs", "organization": {"login": "other-org"}},
        {"id": 3, "slug": "infra", "organization": {"login": "octo-org"}},
        {"id": 4, "slug": "orphan", "organization": None},
    ]

    with patch.object(client, "_paginate", return_value=iter(mock_items)):
        assert client.list_user_teams("octo-org") == {1, 3}


def test_list_review_comments():
    client = GitHubClient(token="test-token")

    mock_items = [
        {"user": {"login": "alice"}, "body": "looks good"},
        {"user": None, "body": None},
    ]

    with patch.object(client, "_paginate", return_value=iter(mock_items)) as paginate:
        comments = client.list_review_comments("owner", "repo", 5)

    paginate.assert_called_once_with("/repos/owner/repo/pulls/5/comments")
    assert [(c.author, c.body) for c in comments] == [("alice", "looks good"), (None, "")]


def test_list_pull_files():
    client = GitHubClient(token="test-token")

    mock_items = [
        {"filename": "a.py", "additions": 10, "deletions": 2},
        {"filename": "b.py", "additions": 3, "deletions": 0},
    ]

    with patch.object(client, "_paginate", return_value=iter(mock_items)):
        files = client.list_pull_files("owner", "repo", 7)

    assert [(f.path, f.additions, f.deletions) for f in files] == [("a.py", 10, 2), ("b.py", 3, 0)]


def test_current_user():
    client = GitHubClient(token="test-token")

    with patch.object(client.session, "request", return_value=_response(200, {"login": "alice"})):
        assert client.current_user() == "alice"


def test_paginate_follows_full_pages():
    client = GitHubClient(token="test-token")
    pages = [
        _response(200, [{"n": 1}, {"n": 2}]),
        _response(200, [{"n": 3}]),
    ]

    with patch.object(client.session, "request", side_effect=pages) as request:
        items = list(client._paginate("/things", {"per_page": 2}))

    assert [item["n"] for item in items] == [1, 2, 3]
    assert request.call_count == 2


def test_request_error_status_raises():
    client = GitHubClient(token="test-token")

    with patch.object(client.session, "request", return_value=_response(404, text="Not Found")):
        with pytest.raises(GitHubAPIError) as exc_info:
            client.current_user()

    assert exc_info.value.status_code == 404


def test_request_rate_limited():
    client = GitHubClient(token="test-token")
    response = _response(
        403, headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1700000000"}
    )

    with patch.object(client.session, "request", return_value=response):
        with pytest.raises(RateLimitError) as exc_info:
            client.current_user()

    assert exc_info.value.reset_time == 1700000000


def test_request_transport_error_is_not_retried():
    client = GitHubClient(token="test-token")

    with patch.object(
        client.session, "request", side_effect=requests.ConnectionError("boom")
    ) as request:
        with pytest.raises(GitHubAPIError):
            client.current_user()

    assert request.call_count == 1


def test_client_uses_custom_api_url():
    client = GitHubClient(token="test-token", api_url="https://ghe.example.com/api/v3/")

    with patch.object(client.session, "request", return_value=_response(200, {"login": "a"})) as request:
        client.current_user()

    assert request.call_args.args[1] == "https://ghe.example.com/api/v3/user"
