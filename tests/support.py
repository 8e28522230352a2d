"""Shared constants and helpers for the test suite."""

from datetime import datetime

import httpx

ISSUER = "https://idp.example.com"
CLIENT_ID = "my-client"
TOKEN_NONCE = "test-nonce"

OPENID_ENDPOINT = "https://provider.example/openid/login"
RETURN_TO = "https://app.example/cb"
CLAIMED_ID = "https://provider.example/openid/id/76561197960287930"
VALID_REPLY = "ns:http://specs.openid.net/auth/2.0\nis_valid:true\n"


class ProviderStub:
    """Records check_authentication requests and answers them."""

    def __init__(self, body: str = VALID_REPLY, status_code: int = 200) -> None:
        self.body = body
        self.status_code = status_code
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, text=self.body)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self))


def response_nonce(issued_at: datetime) -> str:
    """Build an OpenID 2.0 response nonce issued at the given time."""
    return issued_at.strftime("%Y-%m-%dT%H:%M:%SZ") + "a1b2c3"
