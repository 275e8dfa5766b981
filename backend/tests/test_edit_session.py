"""
Tests for the location edit session: draft commit and nearby lookup states.
"""
import asyncio
from typing import List
from unittest.mock import MagicMock, patch

import pytest

from domain.models import LoadingState, Location, Page
from services import geosearch as gs
from services.edit_session import LocationEditSession
from services.geosearch import (
    GeosearchClient,
    GeosearchConfig,
    GeosearchDecodeError,
    GeosearchError,
    GeosearchRequestError,
    GeosearchTransportError,
)


class FakeClient:
    """Stands in for GeosearchClient; returns canned pages or raises."""

    def __init__(self, pages: List[Page] = None, error: GeosearchError = None):
        self.pages = pages or []
        self.error = error
        self.calls = []

    def search_nearby(self, lat: float, lon: float) -> List[Page]:
        self.calls.append((lat, lon))
        if self.error is not None:
            raise self.error
        return list(self.pages)


def _location(**overrides) -> Location:
    data = dict(
        id=Location.generate_id(),
        latitude=51.501,
        longitude=-0.141,
        name="Buckingham Palace",
        description="Where Queen Elizabeth lived with her dorgis.",
    )
    data.update(overrides)
    return Location(**data)


def test_initial_state_is_loading_with_draft_seeded():
    loc = _location()
    session = LocationEditSession(loc, client=FakeClient())

    assert session.loading_state == LoadingState.LOADING
    assert session.pages == []
    assert session.name == loc.name
    assert session.description == loc.description


def test_commit_without_edits_only_changes_id():
    loc = _location()
    committed = LocationEditSession(loc, client=FakeClient()).commit()

    assert committed.id != loc.id
    assert committed.coordinate == loc.coordinate
    assert committed.name == loc.name
    assert committed.description == loc.description


def test_commit_uses_draft_and_leaves_input_untouched():
    loc = _location()
    session = LocationEditSession(loc, client=FakeClient())
    session.name = "The Palace"
    session.description = "Changed"

    committed = session.commit()

    assert committed.name == "The Palace"
    assert committed.description == "Changed"
    assert committed.latitude == loc.latitude
    assert committed.longitude == loc.longitude
    assert committed.id != loc.id
    assert loc.name == "Buckingham Palace"
    assert session.location is loc


def test_two_sessions_commit_independently():
    loc = _location()
    first = LocationEditSession(loc, client=FakeClient())
    second = LocationEditSession(loc, client=FakeClient())
    first.name, first.description = "A", "first"
    second.name, second.description = "B", "second"

    a = first.commit()
    b = second.commit()

    assert a.id != b.id
    assert (a.name, a.description) != (b.name, b.description)
    assert a.coordinate == b.coordinate == loc.coordinate


def test_commit_twice_gives_fresh_ids():
    session = LocationEditSession(_location(), client=FakeClient())
    assert session.commit().id != session.commit().id


def test_fetch_success_sorts_pages_by_id():
    pages = [Page(pageid=42, title="C"), Page(pageid=7, title="A"), Page(pageid=19, title="B")]
    client = FakeClient(pages=pages)
    loc = _location()
    session = LocationEditSession(loc, client=client)

    asyncio.run(session.fetch_nearby_places())

    assert session.loading_state == LoadingState.LOADED
    assert len(session.pages) == 3
    assert [p.pageid for p in session.pages] == [7, 19, 42]
    assert client.calls == [loc.coordinate]


def test_fetch_success_with_no_results():
    session = LocationEditSession(_location(), client=FakeClient(pages=[]))
    asyncio.run(session.fetch_nearby_places())
    assert session.loading_state == LoadingState.LOADED
    assert session.pages == []


def test_fetch_failure_for_each_error_kind():
    for error in (
        GeosearchRequestError("bad url"),
        GeosearchTransportError("timeout"),
        GeosearchDecodeError("garbage"),
    ):
        session = LocationEditSession(_location(), client=FakeClient(error=error))
        asyncio.run(session.fetch_nearby_places())
        assert session.loading_state == LoadingState.FAILED
        assert session.pages == []


def test_fetch_failure_with_real_client_and_malformed_url():
    client = GeosearchClient(GeosearchConfig(base_url="not a url"))
    session = LocationEditSession(_location(), client=client)
    asyncio.run(session.fetch_nearby_places())
    assert session.loading_state == LoadingState.FAILED
    assert session.pages == []


def test_failed_refetch_keeps_previous_pages():
    client = FakeClient(pages=[Page(pageid=1, title="One")])
    session = LocationEditSession(_location(), client=client)
    asyncio.run(session.fetch_nearby_places())

    client.error = GeosearchTransportError("offline")
    asyncio.run(session.fetch_nearby_places())

    assert session.loading_state == LoadingState.FAILED
    assert [p.pageid for p in session.pages] == [1]


def test_subscribe_reports_transitions_until_unsubscribed():
    seen = []
    session = LocationEditSession(_location(), client=FakeClient(pages=[Page(pageid=3, title="x")]))
    unsubscribe = session.subscribe(lambda old, new: seen.append((old, new)))

    asyncio.run(session.fetch_nearby_places())
    assert seen == [(LoadingState.LOADING, LoadingState.LOADED)]

    asyncio.run(session.fetch_nearby_places())
    assert seen[1:] == [
        (LoadingState.LOADED, LoadingState.LOADING),
        (LoadingState.LOADING, LoadingState.LOADED),
    ]

    unsubscribe()
    asyncio.run(session.fetch_nearby_places())
    assert len(seen) == 3


def test_raising_listener_does_not_block_transition():
    seen = []

    def broken(old, new):
        raise RuntimeError("boom")

    session = LocationEditSession(_location(), client=FakeClient(error=GeosearchTransportError("x")))
    session.subscribe(broken)
    session.subscribe(lambda old, new: seen.append(new))

    asyncio.run(session.fetch_nearby_places())

    assert session.loading_state == LoadingState.FAILED
    assert seen == [LoadingState.FAILED]


def test_snapshot_is_a_frozen_copy():
    session = LocationEditSession(_location(), client=FakeClient(pages=[Page(pageid=5, title="y")]))
    asyncio.run(session.fetch_nearby_places())
    snap = session.snapshot()
    session.name = "Edited later"

    assert snap.loading_state == LoadingState.LOADED
    assert snap.pages == (Page(pageid=5, title="y"),)
    assert snap.name == "Buckingham Palace"


def test_can_commit_requires_a_real_name():
    session = LocationEditSession(_location(), client=FakeClient())
    assert session.can_commit
    session.name = "  \n\t"
    assert not session.can_commit


def _mock_response(json_data=None, json_error=None) -> MagicMock:
    resp = MagicMock()
    resp.raise_for_status.return_value = None
    if json_error is not None:
        resp.json.side_effect = json_error
    else:
        resp.json.return_value = json_data
    return resp


@pytest.mark.parametrize(
    "body",
    [{}, {"unexpected": 1}, {"query": {}}, {"query": None}, {"query": {"pages": {"9": {"title": "no id"}}}}],
)
@patch("services.geosearch._session.get")
def test_fetch_with_real_client_fails_on_schema_mismatch(mock_get, body):
    mock_get.return_value = _mock_response(body)
    session = LocationEditSession(_location(), client=GeosearchClient(GeosearchConfig()))

    asyncio.run(session.fetch_nearby_places())

    mock_get.assert_called_once()
    assert session.loading_state == LoadingState.FAILED
    assert session.pages == []


@patch("services.geosearch._session.get")
def test_fetch_with_real_client_fails_on_non_json_body(mock_get):
    mock_get.return_value = _mock_response(json_error=ValueError("Expecting value"))
    session = LocationEditSession(_location(), client=GeosearchClient(GeosearchConfig()))

    asyncio.run(session.fetch_nearby_places())

    assert session.loading_state == LoadingState.FAILED
    assert session.pages == []


@patch("services.geosearch._session.get")
def test_fetch_with_real_client_decodes_and_sorts(mock_get):
    mock_get.return_value = _mock_response(
        {"query": {"pages": {"b": {"pageid": 88, "title": "Later"}, "a": {"pageid": 4, "title": "Earlier"}}}}
    )
    session = LocationEditSession(_location(), client=GeosearchClient(GeosearchConfig()))

    asyncio.run(session.fetch_nearby_places())

    assert session.loading_state == LoadingState.LOADED
    assert [p.pageid for p in session.pages] == [4, 88]


@patch("services.geosearch._session.get")
def test_bad_env_config_ends_in_failed(mock_get, monkeypatch):
    monkeypatch.setenv("GEOSEARCH_LIMIT", "fifty")
    monkeypatch.setattr(gs, "_default_geosearch_client", None)
    session = LocationEditSession(_location())

    asyncio.run(session.fetch_nearby_places())

    assert session.loading_state == LoadingState.FAILED
    assert session.pages == []
    mock_get.assert_not_called()


def test_mark_failed_notifies_listeners():
    seen = []
    session = LocationEditSession(_location(), client=FakeClient())
    session.subscribe(lambda old, new: seen.append((old, new)))

    session.mark_failed()

    assert session.loading_state == LoadingState.FAILED
    assert seen == [(LoadingState.LOADING, LoadingState.FAILED)]
