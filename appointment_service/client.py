"""Party directory backed by a FHIR-style REST API.
Assumes OAuth2 client-credentials flow.
"""
from __future__ import annotations
import logging
import time
import httpx
from . import config
from .errors import DirectoryError
from .models import Party

logger = logging.getLogger(__name__)

# Refresh this many seconds before the directory says the token expires
_TOKEN_MARGIN = 300


class HttpPartyDirectory:
    """Resolves parties of one FHIR resource type (Practitioner, Patient...).

    Connection settings default to the DIRECTORY_* configuration. Each
    directory keeps its own bearer token until shortly before it expires.
    """

    def __init__(
        self,
        resource: str,
        base_url: str | None = None,
        token_url: str | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        timeout: float | None = None,
    ):
        self.resource = resource
        self.base_url = (base_url or config.DIRECTORY_BASE_URL).rstrip("/")
        self.token_url = token_url or config.DIRECTORY_TOKEN_URL
        self.client_id = client_id or config.DIRECTORY_CLIENT_ID
        self.client_secret = client_secret or config.DIRECTORY_CLIENT_SECRET
        self.timeout = timeout or config.DIRECTORY_TIMEOUT
        self._token: str | None = None
        self._token_exp = 0.0

    async def _bearer(self, client: httpx.AsyncClient) -> str:
        now = time.time()
        if self._token and now < self._token_exp:
            return self._token
        if not self.client_id or not self.client_secret:
            raise DirectoryError("Directory client credentials are not configured")

        resp = await client.post(
            self.token_url,
            data={"grant_type": "client_credentials"},
            auth=(self.client_id, self.client_secret),
        )
        resp.raise_for_status()
        data = resp.json()
        self._token = data["access_token"]
        self._token_exp = now + data.get("expires_in", 3600) - _TOKEN_MARGIN
        return self._token

    async def resolve(self, party_id: str) -> Party | None:
        """Return the party stored under ``{resource}/{party_id}`` or None on 404."""
        try:
            async with httpx.AsyncClient(http2=True, timeout=self.timeout) as client:
                headers = {"Authorization": f"Bearer {await self._bearer(client)}", "Accept": "application/json"}
                resp = await client.get(f"{self.base_url}/{self.resource}/{party_id}", headers=headers)
                if resp.status_code == 404:
                    return None
                resp.raise_for_status()
                payload = resp.json()
        except httpx.HTTPError as exc:
            logger.error("Directory lookup %s/%s failed: %s", self.resource, party_id, exc)
            raise DirectoryError(f"{self.resource} lookup failed for {party_id}") from exc

        name_block = (payload.get("name") or [{}])[0]
        return Party(
            id=str(payload.get("id", party_id)),
            given_name=(name_block.get("given") or [""])[0],
            family_name=name_block.get("family", ""),
        )
