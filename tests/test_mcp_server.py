import pytest
from airctl import mcp_server
from airctl.connection import Response
from airctl.errors import UnexpectedStatusError


@pytest.fixture(autouse=True)
def reset_client():
    mcp_server.client = None
    yield
    mcp_server.client = None


def test_get_client_requires_configuration():
    with pytest.raises(ValueError, match="--device-host"):
        mcp_server._get_client()


def test_configure():
    client = mcp_server.configure("192.168.1.20", 7001)
    assert mcp_server._get_client() is client
    assert client.port == 7001


def test_destroyed_client_is_replaced():
    client = mcp_server.configure("192.168.1.20")
    client.destroyed = True
    replacement = mcp_server._get_client()
    assert replacement is not client
    assert replacement.host == "192.168.1.20"


def test_describe_success():
    assert mcp_server._describe(Response(status=200), "Paused") == "Paused"


def test_describe_error_includes_body():
    response = Response(status=500, body={"errorCode": -1}, error=UnexpectedStatusError(500))
    message = mcp_server._describe(response, "Paused")
    assert message.startswith("Failed: Unexpected response from device: 500")
    assert "errorCode" in message


def test_body_text():
    assert mcp_server._body_text(Response(body=b"raw")) == "raw"
    assert '"rate": 1.0' in mcp_server._body_text(Response(body={"rate": 1.0}))
