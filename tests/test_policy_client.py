import json

import httpx
import pytest

from order_service.core.config import Settings
from order_service.services.policy import build_policy_client
from order_service.services.policy.base import AllowAllPolicyClient
from order_service.services.policy.opa import OPAPolicyClient

OPA_URL = "http://opa.test:8181"


def build_client(handler, fail_open: bool = True) -> OPAPolicyClient:
    client = httpx.AsyncClient(base_url=OPA_URL, transport=httpx.MockTransport(handler))
    return OPAPolicyClient(base_url=OPA_URL, fail_open=fail_open, client=client)


async def ask(client: OPAPolicyClient):
    return await client.authorize(
        action="cancel_order",
        resource={"type": "order", "id": "o-1", "status": "pending"},
        subject={"id": "cust-1", "type": "user"},
    )


class TestOPAPolicyClient:

    @pytest.mark.asyncio
    async def test_sends_input_document(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"result": True})

        result = await ask(build_client(handler))

        assert result.allowed is True
        assert seen["path"] == "/v1/data/orders/allow"
        assert seen["body"]["input"]["action"] == "cancel_order"
        assert seen["body"]["input"]["subject"] == {"id": "cust-1", "type": "user"}

    @pytest.mark.asyncio
    async def test_object_decision_with_reason(self):
        def handler(request):
            return httpx.Response(200, json={"result": {"allow": False, "reason": "order already dispatched"}})

        result = await ask(build_client(handler))

        assert result.allowed is False
        assert result.reason == "order already dispatched"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("decision", [False, None, "yes", {"allow": "true"}])
    async def test_anything_but_true_denies(self, decision):
        def handler(request):
            return httpx.Response(200, json={"result": decision})

        result = await ask(build_client(handler))

        assert result.allowed is False
        assert result.reason == "Denied by policy for action cancel_order"

    @pytest.mark.asyncio
    async def test_unreachable_fails_open(self):
        def handler(request):
            raise httpx.ConnectError("refused")

        result = await ask(build_client(handler, fail_open=True))

        assert result.allowed is True
        assert result.failed_open is True
        assert "fail-open" in result.reason

    @pytest.mark.asyncio
    async def test_unreachable_fails_closed(self):
        def handler(request):
            raise httpx.ReadTimeout("slow")

        result = await ask(build_client(handler, fail_open=False))

        assert result.allowed is False
        assert result.failed_closed is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [[True], "allow", 1])
    @pytest.mark.parametrize("fail_open", [True, False])
    async def test_non_object_body_counts_as_unreachable(self, body, fail_open):
        def handler(request):
            return httpx.Response(200, json=body)

        result = await ask(build_client(handler, fail_open=fail_open))

        assert result.allowed is fail_open
        assert result.failed_open is fail_open
        assert result.failed_closed is not fail_open

    @pytest.mark.asyncio
    async def test_error_status_counts_as_unreachable(self):
        def handler(request):
            return httpx.Response(500, text="boom")

        result = await ask(build_client(handler, fail_open=False))
        assert result.failed_closed is True


class TestPolicyFactory:

    def test_without_url_allows_everything(self):
        client = build_policy_client(Settings(opa_url=None))
        assert isinstance(client, AllowAllPolicyClient)

    @pytest.mark.asyncio
    async def test_allow_all_client(self):
        result = await ask(AllowAllPolicyClient())
        assert result.allowed is True
        assert result.reason == "Policy engine not configured"

    def test_with_url_builds_opa_client(self):
        client = build_policy_client(Settings(opa_url=OPA_URL, opa_fail_open=False))
        assert isinstance(client, OPAPolicyClient)
