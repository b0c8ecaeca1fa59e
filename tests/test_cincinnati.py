import http.server
import threading
import uuid

import pytest

from cvoperator.cincinnati import (
    GRAPH_MEDIA_TYPE,
    CincinnatiError,
    Client,
    SemverError,
    Update,
    parse_edge,
    parse_node,
    parse_version,
)

GRAPH = b"""{
  "nodes": [
    {"version": "4.0.0-4", "payload": "quay.io/openshift-release-dev/ocp-release:4.0.0-4", "metadata": {}},
    {"version": "4.0.0-5", "payload": "quay.io/openshift-release-dev/ocp-release:4.0.0-5", "metadata": {}},
    {"version": "4.0.0-6", "payload": "quay.io/openshift-release-dev/ocp-release:4.0.0-6", "metadata": {}},
    {"version": "4.0.0-6+2", "payload": "quay.io/openshift-release-dev/ocp-release:4.0.0-6+2", "metadata": {}},
    {"version": "4.0.0-0.okd-0", "payload": "quay.io/openshift-release-dev/ocp-release:4.0.0-0.okd-0", "metadata": {}},
    {"version": "4.0.0-0.2", "payload": "quay.io/openshift-release-dev/ocp-release:4.0.0-0.2", "metadata": {}},
    {"version": "4.0.0-0.3", "payload": "quay.io/openshift-release-dev/ocp-release:4.0.0-0.3", "metadata": {}}
  ],
  "edges": [[0,1],[1,2],[1,3],[5,6]]
}"""

CLIENT_ID = uuid.UUID("01234567-0123-0123-0123-0123456789ab")


@pytest.fixture
def server():
    queries = []

    class Handler(http.server.BaseHTTPRequestHandler):
        def do_GET(self):
            queries.append(self.path.split("?", 1)[1] if "?" in self.path else "")
            if self.headers.get("Accept") != GRAPH_MEDIA_TYPE:
                self.send_response(415)
                self.end_headers()
                return
            self.send_response(200)
            self.end_headers()
            self.wfile.write(GRAPH)

        def log_message(self, *args):
            pass

    httpd = http.server.ThreadingHTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{httpd.server_port}", queries
    httpd.shutdown()
    httpd.server_close()


def _update(version):
    return Update(parse_version(version), "quay.io/openshift-release-dev/ocp-release:" + version)


@pytest.mark.parametrize(
    "version,expected",
    [
        ("4.0.0-4", [_update("4.0.0-5")]),
        ("4.0.0-5", [_update("4.0.0-6"), _update("4.0.0-6+2")]),
        ("4.0.0-0.okd-0", []),
    ],
)
def test_get_updates(server, version, expected):
    url, queries = server
    client = Client(CLIENT_ID)
    assert client.get_updates(url, "test-arch", "test-channel", parse_version(version)) == expected
    assert queries == [
        "arch=test-arch&channel=test-channel&id=01234567-0123-0123-0123-0123456789ab&version="
        + version.replace("+", "%2B")
    ]


def test_get_updates_unknown_version(server):
    url, queries = server
    with pytest.raises(CincinnatiError) as info:
        Client(CLIENT_ID).get_updates(url, "test-arch", "test-channel", parse_version("4.0.0-3"))
    assert str(info.value) == 'currently installed version 4.0.0-3 not found in the "test-channel" channel'
    assert len(queries) == 1


def test_node_unmarshal():
    node = parse_node(
        '{"version": "4.0.0-5", "payload": "quay.io/openshift-release-dev/ocp-release:4.0.0-5", "metadata": {}}'
    )
    assert node == _update("4.0.0-5")
    node = parse_node(
        '{"version": "4.0.0-0.1", "payload": "quay.io/openshift-release-dev/ocp-release:4.0.0-0.1",'
        ' "metadata": {"description": "beta"}}'
    )
    assert node == _update("4.0.0-0.1")


@pytest.mark.parametrize(
    "version,message",
    [
        ("v4.0.0-0.1", 'Invalid character(s) found in major number "v4"'),
        ("4-0-0+0.1", "No Major.Minor.Patch elements found"),
    ],
)
def test_node_unmarshal_errors(version, message):
    with pytest.raises(SemverError) as info:
        parse_node({"version": version, "payload": "x"})
    assert str(info.value) == message


def test_edge():
    assert parse_edge("[1, 2]") == (1, 2)
    with pytest.raises(CincinnatiError, match="expected 2 fields, found 3"):
        parse_edge([1, 2, 3])


def test_version_round_trip_and_order():
    for text in ("4.0.0-0.okd-0", "1.2.3+build.1", "0.0.0"):
        assert str(parse_version(text)) == text
    assert parse_version("1.0.0-alpha").compare(parse_version("1.0.0")) == -1
    assert parse_version("1.0.0-1").compare(parse_version("1.0.0-alpha")) == -1
    assert parse_version("1.0.0+a").equals(parse_version("1.0.0+b"))