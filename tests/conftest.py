"""Pytest configuration and shared fixtures."""
import pytest
from unittest.mock import AsyncMock, MagicMock

from agent import AgentCallResult, AgentClient, AssetUpload
from tests.helpers import make_image


@pytest.fixture
def png_bytes():
    """Small white PNG."""
    return make_image()


@pytest.fixture
def agent_client():
    """AgentClient double with a successful upload and an empty agent response."""
    client = MagicMock(spec=AgentClient)
    client.upload_asset = AsyncMock(return_value=AssetUpload(success=True, asset_ids=["asset_1"]))
    client.call_agent = AsyncMock(return_value=AgentCallResult(success=True, response={}))
    return client
