import time
import uuid
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


def new_id() -> str:
    return str(uuid.uuid4())


def now_ms() -> int:
    return int(time.time() * 1000)


class AspectRatio(str, Enum):
    SQUARE = "1:1"
    LANDSCAPE = "16:9"
    PORTRAIT = "9:16"


class FlowState(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    PREVIEWING = "previewing"


class Character(BaseModel):
    id: str = Field(default_factory=new_id, description="Unique identifier for the character")
    name: str = Field(description="Display name of the character")
    image_url: str = Field(description="Self-contained image payload (data URI)")
    prompt: Optional[str] = Field(default=None, description="The prompt used to generate the image")
    created_at: int = Field(default_factory=now_ms, description="Creation time, milliseconds since the epoch")


class Scene(BaseModel):
    id: str = Field(default_factory=new_id, description="Unique identifier for the scene")
    image_url: str = Field(description="Self-contained image payload (data URI)")
    prompt: str = Field(description="Scene description the image was generated from")
    character_ids: List[str] = Field(default_factory=list, description="Ids of the characters placed in the scene, in order")
    aspect_ratio: AspectRatio = Field(default=AspectRatio.LANDSCAPE, description="Aspect ratio of the scene image")
    created_at: int = Field(default_factory=now_ms, description="Creation time, milliseconds since the epoch")


class CharacterRef(BaseModel):
    """The slice of a character the scene request needs."""
    name: str
    image_url: str
