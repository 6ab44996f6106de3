"""
Unit tests для WordPressClient (HTTP замокан).
"""

import pytest
import requests

from content_engine.infrastructure.wordpress.wordpress_client import WordPressClient
from content_engine.shared.exceptions import MediaStoreError, PostStoreError

from conftest import connection_error, make_response

BASE = "https://blog.example.com"


@pytest.fixture
def client(http):
    return WordPressClient(BASE + "/", "editor", "app-pass", timeout=15, session=http)


def test_auth_sent_per_request(client, http):
    http.request.return_value = make_response(201, json_data={"id": 55})

    client.create("Title", "<p>Body</p>", "Excerpt", "draft")

    assert http.request.call_args.kwargs["auth"] == ("editor", "app-pass")


def test_shared_session_left_untouched():
    session = requests.Session()

    WordPressClient(BASE, "editor", "app-pass", session=session)

    assert session.auth is None


def test_create_post(client, http):
    http.request.return_value = make_response(201, json_data={"id": 55})

    post_id = client.create("Title", "<p>Body</p>", "Excerpt", "draft")

    assert post_id == 55
    method, url = http.request.call_args.args
    assert method == "POST"
    assert url == f"{BASE}/wp-json/wp/v2/posts"
    assert http.request.call_args.kwargs["json"]["status"] == "draft"
    assert http.request.call_args.kwargs["timeout"] == 15


def test_http_status_error(client, http):
    http.request.return_value = make_response(403, json_data={"code": "rest_forbidden", "message": "Sorry, you are not allowed."})

    with pytest.raises(PostStoreError) as exc_info:
        client.update(1, status="publish")

    assert exc_info.value.code == "wordpress_http_status_403"
    assert exc_info.value.message == "Sorry, you are not allowed."
    assert exc_info.value.meta["http_status"] == 403


def test_transport_error(client, http):
    http.request.side_effect = connection_error(f"{BASE}/wp-json/wp/v2/posts/1?_wpnonce=SECRET123")

    with pytest.raises(PostStoreError) as exc_info:
        client.update_meta(1, {"a": 1})

    error = exc_info.value
    assert error.code == "wordpress_http_error"
    assert error.message == "WordPress request failed: ConnectionError (name resolution failed)"
    assert "SECRET123" not in error.message
    assert "blog.example.com" not in error.message


@pytest.mark.parametrize("body", [{"status": "draft"}, ["not", "an", "object"], {"id": None}])
def test_create_without_id_is_tagged(client, http, body):
    http.request.return_value = make_response(201, json_data=body)

    with pytest.raises(PostStoreError) as exc_info:
        client.create("T", "C", "E", "draft")

    assert exc_info.value.code == "wordpress_bad_payload"


def test_media_upload_without_id_is_tagged(client, http):
    http.request.return_value = make_response(201, json_data={"source_url": "https://blog.example.com/a.png"})

    with pytest.raises(MediaStoreError) as exc_info:
        client.store_bytes(b"data", "image/png", "a.png")

    assert exc_info.value.code == "wordpress_bad_payload"


def test_media_url_with_unexpected_payload(client, http):
    http.request.return_value = make_response(200, json_data=[])

    with pytest.raises(MediaStoreError) as exc_info:
        client.get_url(3)

    assert exc_info.value.code == "wordpress_bad_payload"


def test_non_json_response(client, http):
    http.request.return_value = make_response(200, text="<html>")

    with pytest.raises(PostStoreError) as exc_info:
        client.create("T", "C", "E", "draft")

    assert exc_info.value.code == "wordpress_bad_payload"


def test_get_post_prefers_raw(client, http):
    http.request.return_value = make_response(200, json_data={
        "id": 9,
        "title": {"raw": "Raw title", "rendered": "Rendered"},
        "content": {"rendered": "<p>Rendered only</p>"},
        "excerpt": {"raw": ""},
        "status": "draft",
    })

    post = client.get(9)

    assert post == {
        "id": 9,
        "title": "Raw title",
        "content": "<p>Rendered only</p>",
        "excerpt": "",
        "status": "draft",
    }
    assert http.request.call_args.kwargs["params"] == {"context": "edit"}


def test_get_missing_post(client, http):
    http.request.return_value = make_response(404, json_data={"code": "rest_post_invalid_id"})

    assert client.get(404) is None


def test_set_terms_reuses_and_creates(client, http):
    http.request.side_effect = [
        make_response(200, json_data=[{"id": 3, "name": "CRM"}]),
        make_response(200, json_data=[]),
        make_response(201, json_data={"id": 8, "name": "Sales"}),
        make_response(200, json_data={"id": 1}),
    ]

    client.set_terms(1, "category", ["crm", "Sales"])

    last = http.request.call_args
    assert last.args == ("POST", f"{BASE}/wp-json/wp/v2/posts/1")
    assert last.kwargs["json"] == {"categories": [3, 8]}


def test_set_terms_unknown_taxonomy(client):
    with pytest.raises(PostStoreError):
        client.set_terms(1, "genre", ["x"])


def test_update_meta_payload(client, http):
    http.request.return_value = make_response(200, json_data={"id": 1})

    client.update_meta(1, {"_content_engine_meta_title": "T"})

    assert http.request.call_args.kwargs["json"] == {"meta": {"_content_engine_meta_title": "T"}}


def test_store_bytes(client, http):
    http.request.return_value = make_response(201, json_data={"id": 77})

    media_id = client.store_bytes(b"data", "image/png", "a.png", attach_to=5)

    assert media_id == 77
    kwargs = http.request.call_args.kwargs
    assert kwargs["headers"]["Content-Type"] == "image/png"
    assert kwargs["headers"]["Content-Disposition"] == 'attachment; filename="a.png"'
    assert kwargs["params"] == {"post": 5}
    assert kwargs["data"] == b"data"


def test_store_bytes_error_is_media_error(client, http):
    http.request.return_value = make_response(500, text="fail")

    with pytest.raises(MediaStoreError):
        client.store_bytes(b"data", "image/png", "a.png")


def test_get_url_sizes(client, http):
    http.request.return_value = make_response(200, json_data={
        "source_url": "https://blog.example.com/full.png",
        "media_details": {"sizes": {"medium": {"source_url": "https://blog.example.com/medium.png"}}},
    })

    assert client.get_url(1) == "https://blog.example.com/full.png"
    assert client.get_url(1, size="medium") == "https://blog.example.com/medium.png"
    assert client.get_url(1, size="thumbnail") == "https://blog.example.com/full.png"
