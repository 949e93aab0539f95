from .ai_client import GenAIClient
from .library_store import LibraryStore, LibraryState
from .controller import Studio, CharacterFlow, SceneFlow
from .models import Character, Scene, AspectRatio, FlowState
