import io
import pytest
from unittest.mock import AsyncMock, MagicMock
import sys
import os

from PIL import Image

# Add project root to sys.path so we can import studio
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from google.genai import types
from studio.core.ai_client import GenAIClient
from studio.core.images import to_data_uri
from studio.core.library_store import LibraryStore

@pytest.fixture
def mock_genai_client(mocker):
    """Fixture to mock the Google GenAI Client."""
    mock_client = mocker.patch('google.genai.Client')
    mock_client.return_value.aio.models.generate_content = AsyncMock()
    return mock_client

@pytest.fixture
def mock_env(monkeypatch):
    """Fixture to mock environment variables."""
    monkeypatch.setenv("GEMINI_API_KEY", "fake_key")
    monkeypatch.setenv("IMAGE_MODEL_NAME", "gemini-test-image-model")

@pytest.fixture
def png_bytes():
    buffer = io.BytesIO()
    Image.new("RGB", (4, 4), color="red").save(buffer, format="PNG")
    return buffer.getvalue()

@pytest.fixture
def make_response():
    """Builds a GenerateContentResponse whose first candidate holds the given parts."""
    def _make(*parts):
        return types.GenerateContentResponse(
            candidates=[types.Candidate(content=types.Content(role="model", parts=list(parts)))]
        )
    return _make

@pytest.fixture
def store(tmp_path):
    return LibraryStore(tmp_path / "library")

@pytest.fixture
def fake_ai_client():
    """A GenAIClient stand-in whose three operations return fixed data URIs."""
    client = MagicMock(spec=GenAIClient)
    client.generate_character = AsyncMock(return_value=to_data_uri(b"portrait"))
    client.generate_scene = AsyncMock(return_value=to_data_uri(b"scene"))
    client.edit_scene = AsyncMock(return_value=to_data_uri(b"edited"))
    return client
