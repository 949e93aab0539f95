import os
from pathlib import Path
from dotenv import load_dotenv

from studio.errors import MissingCredential

# Load environment variables
load_dotenv()

class Config:
    GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")

    IMAGE_MODEL_NAME = os.getenv("IMAGE_MODEL_NAME", "gemini-2.5-flash-image")

    LIBRARY_DIR = Path(os.getenv("LIBRARY_DIR", "library"))

    # One of 1:1, 16:9, 9:16
    DEFAULT_ASPECT_RATIO = os.getenv("DEFAULT_ASPECT_RATIO", "16:9")

    # Stable blob names inside the library directory
    CHARACTERS_FILE = "characters.json"
    SCENES_FILE = "scenes.json"

    @staticmethod
    def validate():
        if not Config.GEMINI_API_KEY:
            raise MissingCredential("GEMINI_API_KEY environment variable is not set.")

# Ensure library directory structure exists
def setup_directories(base_path: Path):
    dirs = [
        base_path,
        base_path / "preview",
    ]
    for d in dirs:
        d.mkdir(parents=True, exist_ok=True)
