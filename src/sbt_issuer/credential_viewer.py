"""
Student-facing lookup of a single credential.

Resolves the token held by an address, its token URI and the metadata
document behind it. ``ipfs://`` URIs are rewritten to an HTTPS gateway.
Metadata fetch failures are reported on the view instead of raised.
"""

from typing import Any, Optional

import httpx

from .chain import ContractReader
from .config import SystemConfig
from .models import CredentialView


def resolve_ipfs(uri: str, gateway: str = "https://ipfs.io/ipfs/") -> str:
    """Rewrite ipfs://<cid>/<path> to <gateway><cid>/<path>; other URIs pass through."""
    if uri.startswith("ipfs://"):
        return gateway.rstrip("/") + "/" + uri[len("ipfs://"):]
    return uri


class CredentialViewer:
    """Reads a student's credential and its metadata."""

    def __init__(
        self,
        config: SystemConfig,
        reader: ContractReader,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the viewer.

        Args:
            config: System configuration (gateway, timeout, attribute limit)
            reader: Contract-read collaborator
            transport: Optional httpx transport, e.g. httpx.MockTransport
        """
        self._config = config
        self._reader = reader
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "CredentialViewer":
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self._config.viewer.http_timeout_seconds),
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def explorer_url(self, address: str) -> str:
        """Block explorer link for the address's holding of the contract token."""
        base = self._config.network.explorer_url.rstrip("/")
        contract = self._config.network.contract_address or ""
        return f"{base}/token/{contract}?a={address}"

    async def view(self, address: str) -> CredentialView:
        """
        Look up the credential held by ``address``.

        Returns:
            CredentialView; ``has_credential`` is False if the address holds
            no active credential
        """
        view = CredentialView(address=address)

        token_id = await self._reader.token_id_of(address)
        view.token_id = int(token_id or 0)
        if not view.has_credential:
            return view

        view.token_uri = await self._reader.token_uri(view.token_id)
        if not view.token_uri:
            return view

        gateway = self._config.viewer.ipfs_gateway
        view.metadata_url = resolve_ipfs(str(view.token_uri), gateway)

        try:
            view.metadata = await self._fetch_metadata(view.metadata_url)
        except httpx.HTTPStatusError as e:
            view.error = f"Metadata fetch failed ({e.response.status_code})"
            return view
        except (httpx.HTTPError, ValueError) as e:
            view.error = f"Failed to load metadata: {e}"
            return view

        image = view.metadata.get("image")
        if image:
            view.image_url = resolve_ipfs(str(image), gateway)

        attributes = view.metadata.get("attributes")
        if isinstance(attributes, list):
            view.attributes = [
                a for a in attributes if isinstance(a, dict)
            ][: self._config.viewer.max_attributes]

        return view

    async def _fetch_metadata(self, url: str) -> dict[str, Any]:
        if self._client is None:
            async with self:
                return await self._fetch_metadata(url)

        response = await self._client.get(url)
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("metadata is not a JSON object")
        return data
