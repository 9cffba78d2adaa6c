"""
Tests for the student credential viewer.

HTTP is served by httpx.MockTransport; chain reads come from SimulatedChain.
"""

import asyncio
import json

import httpx
from hypothesis import given, settings
from hypothesis import strategies as st

from sbt_issuer.chain import SimulatedChain
from sbt_issuer.config import NetworkConfig, SystemConfig
from sbt_issuer.credential_viewer import CredentialViewer, resolve_ipfs


OWNER = "0x" + "ab" * 20
STUDENT = "0x" + "12" * 20
CONTRACT = "0x" + "34" * 20


async def make_chain_with_student() -> SimulatedChain:
    chain = SimulatedChain(required_chain_id=11155111, owner=OWNER)
    await chain.submit("mint", [STUDENT])
    return chain


def metadata_transport(payload, status_code: int = 200, seen: list = None) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(str(request.url))
        if isinstance(payload, (dict, list)):
            return httpx.Response(status_code, json=payload)
        return httpx.Response(status_code, text=payload)
    return httpx.MockTransport(handler)


class TestResolveIpfs:
    """ipfs:// URIs go through the gateway; everything else passes through."""

    @given(path=st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789/._-", min_size=1, max_size=60))
    @settings(max_examples=100)
    def test_ipfs_rewritten(self, path: str) -> None:
        assert resolve_ipfs(f"ipfs://{path}") == f"https://ipfs.io/ipfs/{path}"

    def test_custom_gateway_without_trailing_slash(self) -> None:
        assert resolve_ipfs("ipfs://Qm1/meta.json", "https://gw.example/ipfs") == (
            "https://gw.example/ipfs/Qm1/meta.json"
        )

    def test_https_passthrough(self) -> None:
        assert resolve_ipfs("https://example.org/1.json") == "https://example.org/1.json"


class TestCredentialView:
    """Lookup of a single student's credential."""

    def test_no_credential(self) -> None:
        async def run():
            chain = SimulatedChain(required_chain_id=11155111, owner=OWNER)
            seen: list = []
            async with CredentialViewer(SystemConfig(), chain, metadata_transport({}, seen=seen)) as viewer:
                return await viewer.view(STUDENT), seen

        view, seen = asyncio.run(run())
        assert view.token_id == 0
        assert not view.has_credential
        assert view.metadata is None
        assert seen == []

    def test_metadata_loaded(self) -> None:
        payload = {
            "name": "Full-Stack Track 2026",
            "image": "ipfs://QmImage/badge.png",
            "attributes": [{"trait_type": f"skill-{i}", "value": i} for i in range(15)] + ["junk"],
        }

        async def run():
            chain = await make_chain_with_student()
            seen: list = []
            async with CredentialViewer(SystemConfig(), chain, metadata_transport(payload, seen=seen)) as viewer:
                return await viewer.view(STUDENT), seen

        view, seen = asyncio.run(run())
        assert view.has_credential
        assert view.token_id == 1
        assert view.token_uri == "ipfs://credentials/1.json"
        assert view.metadata_url == "https://ipfs.io/ipfs/credentials/1.json"
        assert seen == ["https://ipfs.io/ipfs/credentials/1.json"]
        assert view.name == "Full-Stack Track 2026"
        assert view.image_url == "https://ipfs.io/ipfs/QmImage/badge.png"
        assert len(view.attributes) == 12
        assert view.attributes[0] == {"trait_type": "skill-0", "value": 0}
        assert view.error is None

    def test_http_error_reported(self) -> None:
        async def run():
            chain = await make_chain_with_student()
            async with CredentialViewer(SystemConfig(), chain, metadata_transport("gone", 404)) as viewer:
                return await viewer.view(STUDENT)

        view = asyncio.run(run())
        assert view.has_credential
        assert view.metadata is None
        assert view.error == "Metadata fetch failed (404)"
        assert view.name == "Credential"

    def test_non_json_reported(self) -> None:
        async def run():
            chain = await make_chain_with_student()
            async with CredentialViewer(SystemConfig(), chain, metadata_transport("<html>")) as viewer:
                return await viewer.view(STUDENT)

        view = asyncio.run(run())
        assert view.error.startswith("Failed to load metadata")

    def test_non_object_json_reported(self) -> None:
        async def run():
            chain = await make_chain_with_student()
            async with CredentialViewer(SystemConfig(), chain, metadata_transport([1, 2])) as viewer:
                return await viewer.view(STUDENT)

        view = asyncio.run(run())
        assert view.error == "Failed to load metadata: metadata is not a JSON object"

    def test_works_without_context_manager(self) -> None:
        async def run():
            chain = await make_chain_with_student()
            viewer = CredentialViewer(SystemConfig(), chain, metadata_transport({"name": "X"}))
            return await viewer.view(STUDENT.upper().replace("0X", "0x"))

        view = asyncio.run(run())
        assert view.name == "X"

    def test_explorer_url(self) -> None:
        config = SystemConfig(network=NetworkConfig(contract_address=CONTRACT))
        viewer = CredentialViewer(config, SimulatedChain(required_chain_id=11155111, owner=OWNER))
        assert viewer.explorer_url(STUDENT) == (
            f"https://sepolia.etherscan.io/token/{CONTRACT}?a={STUDENT}"
        )

    def test_revoked_credential_disappears(self) -> None:
        async def run():
            chain = await make_chain_with_student()
            await chain.submit("revoke", [1])
            async with CredentialViewer(SystemConfig(), chain, metadata_transport(json.dumps({}))) as viewer:
                return await viewer.view(STUDENT)

        view = asyncio.run(run())
        assert not view.has_credential
