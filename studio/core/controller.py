import logging
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from studio.core.ai_client import GenAIClient
from studio.core.images import export_image, load_image_file, safe_filename
from studio.core.library_store import LibraryStore
from studio.core.models import AspectRatio, Character, CharacterRef, FlowState, Scene
from studio.errors import GenerationError

logger = logging.getLogger(__name__)

UNTITLED_CHARACTER = "Untitled Character"


class CharacterFlow:
    """Generate or upload a portrait, preview it, then save or discard it."""

    def __init__(self, studio: "Studio"):
        self.studio = studio
        self.state = FlowState.IDLE
        self.preview: Optional[str] = None
        self.name = ""
        self.prompt = ""

    async def generate(self, prompt: Optional[str] = None) -> Optional[str]:
        if prompt is not None:
            self.prompt = prompt
        if self.state == FlowState.GENERATING or not self.prompt.strip():
            return None

        self.state = FlowState.GENERATING
        try:
            image = await self.studio.ai_client.generate_character(self.prompt)
        except GenerationError as e:
            logger.error(f"Character generation failed: {e}")
            self.preview = None
            self.studio.notify("Failed to generate character")
            return None
        else:
            self.preview = image
            return image
        finally:
            self.state = FlowState.PREVIEWING if self.preview else FlowState.IDLE

    def upload(self, path: Union[str, Path]) -> Optional[str]:
        """Stages an existing image file as the preview."""
        if self.state == FlowState.GENERATING:
            return None
        self.preview = load_image_file(path)
        self.state = FlowState.PREVIEWING
        return self.preview

    def commit(self) -> Optional[Character]:
        if self.state != FlowState.PREVIEWING or not self.preview:
            return None

        character = Character(
            name=self.name or UNTITLED_CHARACTER,
            image_url=self.preview,
            prompt=self.prompt or None,
        )
        self.studio.add_character(character)
        self.preview = None
        self.name = ""
        self.prompt = ""
        self.state = FlowState.IDLE
        return character

    def discard(self):
        if self.state == FlowState.GENERATING:
            return
        self.preview = None
        self.state = FlowState.IDLE


class SceneFlow:
    """
    Compose selected characters into a scene, optionally edit it, then save or discard.

    Editing re-enters the generating state with the current preview as the
    base image.
    """

    def __init__(self, studio: "Studio", aspect_ratio: AspectRatio = AspectRatio.LANDSCAPE):
        self.studio = studio
        self.state = FlowState.IDLE
        self.preview: Optional[str] = None
        self.prompt = ""
        self.selected_ids: List[str] = []
        self.aspect_ratio = AspectRatio(aspect_ratio)

    def toggle_character(self, character_id: str):
        if character_id in self.selected_ids:
            self.selected_ids = [cid for cid in self.selected_ids if cid != character_id]
        else:
            self.selected_ids = self.selected_ids + [character_id]

    def selected_characters(self) -> List[CharacterRef]:
        """Selected characters in the order they were picked, skipping deleted ones.

        This is also the order stored in a saved scene's character_ids.
        """
        characters = self.studio.characters
        return [
            CharacterRef(name=characters[cid].name, image_url=characters[cid].image_url)
            for cid in self.selected_ids
            if cid in characters
        ]

    async def generate(self, prompt: Optional[str] = None) -> Optional[str]:
        if prompt is not None:
            self.prompt = prompt
        if self.state == FlowState.GENERATING or not self.prompt.strip() or not self.selected_ids:
            return None

        self.state = FlowState.GENERATING
        try:
            image = await self.studio.ai_client.generate_scene(
                self.prompt, self.selected_characters(), self.aspect_ratio
            )
        except GenerationError as e:
            logger.error(f"Scene generation failed: {e}")
            self.preview = None
            self.studio.notify("Failed to generate scene")
            return None
        else:
            self.preview = image
            return image
        finally:
            self.state = FlowState.PREVIEWING if self.preview else FlowState.IDLE

    async def request_edit(self, edit_prompt: str) -> Optional[str]:
        if self.state != FlowState.PREVIEWING or not self.preview or not edit_prompt.strip():
            return None

        base_image = self.preview
        self.state = FlowState.GENERATING
        try:
            image = await self.studio.ai_client.edit_scene(base_image, edit_prompt)
        except GenerationError as e:
            logger.error(f"Scene edit failed: {e}")
            self.studio.notify("Failed to edit scene")
            return None
        else:
            self.preview = image
            return image
        finally:
            self.state = FlowState.PREVIEWING

    def commit(self) -> Optional[Scene]:
        if self.state != FlowState.PREVIEWING or not self.preview:
            return None

        scene = Scene(
            image_url=self.preview,
            prompt=self.prompt,
            character_ids=list(self.selected_ids),
            aspect_ratio=self.aspect_ratio,
        )
        self.studio.add_scene(scene)
        self.preview = None
        self.prompt = ""
        self.selected_ids = []
        self.state = FlowState.IDLE
        return scene

    def discard(self):
        if self.state == FlowState.GENERATING:
            return
        self.preview = None
        self.state = FlowState.IDLE


class Studio:
    """
    Owns the in-memory library and both creative flows.

    Collections are loaded once from the store. Every change to a collection
    is written back through the matching replace call.
    """

    def __init__(
        self,
        store: LibraryStore,
        ai_client: GenAIClient,
        notify: Optional[Callable[[str], None]] = None,
        aspect_ratio: AspectRatio = AspectRatio.LANDSCAPE,
    ):
        self.store = store
        self.ai_client = ai_client
        self._notify = notify

        state = store.load()
        self.characters: Dict[str, Character] = state.characters
        self.scenes: Dict[str, Scene] = state.scenes

        self.character_flow = CharacterFlow(self)
        self.scene_flow = SceneFlow(self, aspect_ratio)

    def notify(self, message: str):
        logger.warning(message)
        if self._notify:
            self._notify(message)

    def add_character(self, character: Character):
        # Newest first
        self.characters = {character.id: character, **self.characters}
        self.store.replace_characters(self.characters)
        logger.info(f"Saved character {character.name} ({character.id})")

    def add_scene(self, scene: Scene):
        self.scenes = {scene.id: scene, **self.scenes}
        self.store.replace_scenes(self.scenes)
        logger.info(f"Saved scene {scene.id}")

    def delete_character(self, character_id: str):
        """Removes a character. Scenes keep their references to it."""
        if character_id not in self.characters:
            return
        self.characters = {cid: c for cid, c in self.characters.items() if cid != character_id}
        self.store.replace_characters(self.characters)
        self.scene_flow.selected_ids = [cid for cid in self.scene_flow.selected_ids if cid != character_id]
        logger.info(f"Deleted character {character_id}")

    def delete_scene(self, scene_id: str):
        if scene_id not in self.scenes:
            return
        self.scenes = {sid: s for sid, s in self.scenes.items() if sid != scene_id}
        self.store.replace_scenes(self.scenes)
        logger.info(f"Deleted scene {scene_id}")

    def export_character(self, character_id: str, directory: Path) -> Path:
        character = self.characters[character_id]
        return export_image(character.image_url, Path(directory) / f"{safe_filename(character.name, 'character')}.png")

    def export_scene(self, scene_id: str, directory: Path) -> Path:
        scene = self.scenes[scene_id]
        return export_image(scene.image_url, Path(directory) / f"scene-{scene.id}.png")

    def stats(self) -> Dict[str, int]:
        return {"characters": len(self.characters), "scenes": len(self.scenes)}
