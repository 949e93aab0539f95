import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from studio.config import Config
from studio.core.models import Character, Scene

logger = logging.getLogger(__name__)

Record = TypeVar("Record", Character, Scene)


class LibraryState(BaseModel):
    characters: Dict[str, Character] = {}
    scenes: Dict[str, Scene] = {}


class LibraryStore:
    """
    Persists the Character and Scene collections as two independent JSON blobs.

    Every write replaces the whole blob. The two files are never written
    together, so a crash between writes can leave one of them stale.
    """

    def __init__(self, library_dir: Path):
        self.library_dir = Path(library_dir)
        self.characters_path = self.library_dir / Config.CHARACTERS_FILE
        self.scenes_path = self.library_dir / Config.SCENES_FILE

    def load(self) -> LibraryState:
        characters = self._load_collection(self.characters_path, Character)
        scenes = self._load_collection(self.scenes_path, Scene)
        logger.info(f"Loaded {len(characters)} characters and {len(scenes)} scenes from {self.library_dir}")
        return LibraryState(characters=characters, scenes=scenes)

    def replace_characters(self, characters: Union[Mapping[str, Character], Iterable[Character]]):
        self._save_collection(self.characters_path, characters)

    def replace_scenes(self, scenes: Union[Mapping[str, Scene], Iterable[Scene]]):
        self._save_collection(self.scenes_path, scenes)

    def _load_collection(self, path: Path, model: Type[Record]) -> Dict[str, Record]:
        """Reads one blob. A missing blob is an empty collection."""
        collection: Dict[str, Record] = {}
        if not path.exists():
            return collection

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            for item in data:
                record = model.model_validate(item)
                collection[record.id] = record
        except (OSError, ValueError, TypeError, ValidationError) as e:
            logger.error(f"Error loading {path.name}: {e}")
            return {}

        return collection

    def _save_collection(self, path: Path, collection: Union[Mapping[str, Record], Iterable[Record]]):
        records: List[Record] = list(collection.values()) if isinstance(collection, Mapping) else list(collection)
        data = [record.model_dump(mode="json") for record in records]

        self.library_dir.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=4)
        logger.info(f"Saved {len(records)} records to {path.name}")
