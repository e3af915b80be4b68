import pytest

from webserver.http_response import (HttpResponse, content_type_for, create_response,
                                     error_response)


@pytest.mark.parametrize("path, expected", [
    ("a.txt", "text/plain; charset=utf-8"),
    ("index.html", "text/html; charset=utf-8"),
    ("site.css", "text/css; charset=utf-8"),
    ("app.js", "text/javascript; charset=utf-8"),
    ("photo.jpg", "image/jpeg"),
    ("photo.JPEG", "image/jpeg"),
    ("logo.png", "image/png"),
    ("bundle.zip", "application/zip"),
    ("data.bin", "application/octet-stream"),
    ("Makefile", "application/octet-stream"),
])
def test_content_type_for(path, expected):
    assert content_type_for(path) == expected
    # Same answer every time
    assert content_type_for(path) == content_type_for(path)


def test_serialize_orders_fields_and_closes_connection():
    response = create_response(200, b"OK", "text/plain", extra_headers={"X-Custom": "1"})

    assert response.serialize() == (
        b"HTTP/1.1 200 OK\r\n"
        b"Content-Type: text/plain\r\n"
        b"Content-Length: 2\r\n"
        b"X-Custom: 1\r\n"
        b"Connection: close\r\n"
        b"\r\n"
        b"OK"
    )


def test_serialize_fills_in_missing_fields():
    response = HttpResponse(status_code=200, reason="OK", headers={}, body=b"\x00\x01")

    assert response.serialize() == (
        b"HTTP/1.1 200 OK\r\n"
        b"Content-Type: application/octet-stream\r\n"
        b"Content-Length: 2\r\n"
        b"Connection: close\r\n"
        b"\r\n"
        b"\x00\x01"
    )


def test_serialize_replaces_keep_alive():
    response = create_response(200, b"", extra_headers={"Connection": "keep-alive"})

    assert b"keep-alive" not in response.serialize()
    assert response.serialize().count(b"Connection: close") == 1


@pytest.mark.parametrize("status_code, reason", [
    (403, "Forbidden"),
    (404, "Not Found"),
    (405, "Method Not Allowed"),
    (500, "Internal Server Error"),
    (504, "Gateway Timeout"),
])
def test_error_response_names_the_status(status_code, reason):
    response = error_response(status_code)

    assert response.status_code == status_code
    assert response.reason == reason
    assert f"<h1>{status_code} {reason}</h1>".encode() in response.body
    assert response.get_header("Content-Type") == "text/html; charset=utf-8"


def test_error_response_405_lists_allowed_methods():
    assert error_response(405).get_header("Allow") == "GET, POST"


def test_error_detail_is_escaped():
    response = error_response(500, "<script>boom</script>")

    assert b"&lt;script&gt;boom&lt;/script&gt;" in response.body


def test_unlisted_status_uses_standard_phrase():
    assert create_response(302).reason == "Found"
    assert create_response(299).reason == "Unknown"
