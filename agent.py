import logging
from typing import Any, List, Optional

import httpx
from pydantic import BaseModel

OCR_PROMPT = (
    'Extract all text from the uploaded image file "{filename}" using OCR. '
    'Return the extracted text in the "extracted_text" field of your JSON response. '
    'Set status to "success" if text was found.'
)


class AssetUpload(BaseModel):
    success: bool
    asset_ids: List[str] = []
    error: Optional[str] = None


class AgentCallResult(BaseModel):
    success: bool
    response: Any = None
    raw_response: Optional[str] = None
    error: Optional[str] = None


def build_prompt(filename: str) -> str:
    return OCR_PROMPT.format(filename=filename)


def _describe(e: Exception) -> str:
    return str(e) or type(e).__name__


def _status_error(resp: httpx.Response) -> str:
    return f"HTTP {resp.status_code}: {resp.text[:200]}"


class AgentClient:
    """
    Client for the external upload / agent-call API.

    Neither call raises for upstream problems: transport errors, error
    statuses and unreadable bodies come back as success=False with an
    error message for the caller to show.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {"x-api-key": self.api_key} if self.api_key else {}
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self.transport,
        )

    async def upload_asset(self, filename: str, content: bytes, content_type: str) -> AssetUpload:
        try:
            async with self._client() as client:
                resp = await client.post("/upload", files={"files": (filename, content, content_type)})
        except httpx.HTTPError as e:
            logging.warning(f"Asset upload failed: {_describe(e)}")
            return AssetUpload(success=False, error=_describe(e))

        if resp.is_error:
            logging.warning(f"Asset upload rejected: {_status_error(resp)}")
            return AssetUpload(success=False, error=_status_error(resp))

        try:
            data = resp.json()
        except ValueError:
            return AssetUpload(success=False, error="Upload service returned an unreadable response")
        if not isinstance(data, dict):
            return AssetUpload(success=False, error="Upload service returned an unexpected response")

        asset_ids = data.get("asset_ids") or []
        error = data.get("error")
        return AssetUpload(
            success=bool(data.get("success")),
            asset_ids=[a for a in asset_ids if isinstance(a, str)] if isinstance(asset_ids, list) else [],
            error=error if isinstance(error, str) else None,
        )

    async def call_agent(self, prompt: str, agent_id: str, assets: List[str]) -> AgentCallResult:
        payload = {"message": prompt, "agent_id": agent_id, "assets": assets}
        try:
            async with self._client() as client:
                resp = await client.post("/agent", json=payload)
        except httpx.HTTPError as e:
            logging.warning(f"Agent call failed: {_describe(e)}")
            return AgentCallResult(success=False, error=_describe(e))

        if resp.is_error:
            logging.warning(f"Agent call rejected: {_status_error(resp)}")
            return AgentCallResult(success=False, error=_status_error(resp))

        try:
            data = resp.json()
        except ValueError:
            # Plain-text body: hand it over as the raw response
            return AgentCallResult(success=True, raw_response=resp.text)

        if not isinstance(data, dict):
            return AgentCallResult(success=True, response=data, raw_response=resp.text)

        raw_response = data.get("raw_response")
        error = data.get("error")
        return AgentCallResult(
            success=bool(data.get("success")),
            response=data.get("response"),
            raw_response=raw_response if isinstance(raw_response, str) else None,
            error=error if isinstance(error, str) else None,
        )
