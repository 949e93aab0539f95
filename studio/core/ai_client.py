from google import genai
from google.genai import types
import logging
from typing import List, Optional, Sequence

from studio.config import Config
from studio.core.images import DEFAULT_MIME_TYPE, parse_data_uri, to_data_uri
from studio.core.models import AspectRatio, CharacterRef
from studio.errors import MissingCredential, NoImageReturned, UpstreamError

logger = logging.getLogger(__name__)


def image_part(image_url: str) -> types.Part:
    """Turns a stored data URI into an inline image part."""
    mime_type, data = parse_data_uri(image_url)
    return types.Part.from_bytes(data=data, mime_type=mime_type)


def build_character_contents(prompt: str) -> List[types.Part]:
    return [
        types.Part.from_text(
            text=(
                f"Create a high-quality character portrait based on this description: {prompt}. "
                "The character should be centered, clear, and on a simple background "
                "suitable for a character profile."
            )
        )
    ]


def build_scene_contents(prompt: str, characters: Sequence[CharacterRef], aspect_ratio: AspectRatio) -> List[types.Part]:
    """One inline image per character, in the given order, then the scene instruction."""
    parts = [image_part(char.image_url) for char in characters]
    parts.append(
        types.Part.from_text(
            text=(
                "Create a complete scene with the provided characters.\n"
                f"Scene Description: {prompt}.\n"
                "The characters provided in the images should be integrated naturally into this scene.\n"
                "Maintain their visual identity and style.\n"
                f"Aspect Ratio: {AspectRatio(aspect_ratio).value}."
            )
        )
    )
    return parts


def build_edit_contents(base_image: str, edit_prompt: str) -> List[types.Part]:
    return [
        image_part(base_image),
        types.Part.from_text(
            text=(
                f"Modify this image based on the following request: {edit_prompt}. "
                "Keep the main characters and composition similar but apply the requested changes."
            )
        ),
    ]


def extract_first_image(response: types.GenerateContentResponse) -> str:
    """
    Returns the first inline image of the response as a data URI.

    Text parts (model commentary) are skipped. Raises NoImageReturned when
    none of the parts carries image data.
    """
    candidates = response.candidates or []
    content = candidates[0].content if candidates else None
    parts = (content.parts if content else None) or []

    for part in parts:
        if part.inline_data is not None and part.inline_data.data:
            return to_data_uri(part.inline_data.data, part.inline_data.mime_type or DEFAULT_MIME_TYPE)
        if part.text:
            logger.debug(f"Model response: {part.text}")

    raise NoImageReturned("Gemini generation returned no images.")


class GenAIClient:
    """
    Async wrapper around the Gemini image model.

    The SDK client is built on first use so that a missing API key fails
    before anything goes over the network.
    """

    def __init__(self, api_key: Optional[str] = None, model_name: Optional[str] = None):
        self._api_key = api_key
        self._client: Optional[genai.Client] = None
        self.image_model_name = model_name or Config.IMAGE_MODEL_NAME

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            api_key = self._api_key or Config.GEMINI_API_KEY
            if not api_key:
                raise MissingCredential("GEMINI_API_KEY is not set")
            self._client = genai.Client(api_key=api_key)
        return self._client

    async def generate_character(self, prompt: str) -> str:
        logger.info(f"Generating character portrait with model {self.image_model_name}")
        return await self._generate_image(build_character_contents(prompt))

    async def generate_scene(self, prompt: str, characters: Sequence[CharacterRef], aspect_ratio: AspectRatio) -> str:
        aspect_ratio = AspectRatio(aspect_ratio)
        logger.info(
            f"Generating {aspect_ratio.value} scene with model {self.image_model_name}. Refs: {len(characters)}"
        )
        config = types.GenerateContentConfig(
            image_config=types.ImageConfig(
                aspect_ratio=aspect_ratio.value,
            ),
        )
        contents = self._build_contents(build_scene_contents, prompt, characters, aspect_ratio)
        return await self._generate_image(contents, config)

    async def edit_scene(self, base_image: str, edit_prompt: str) -> str:
        logger.info(f"Editing scene with model {self.image_model_name}")
        contents = self._build_contents(build_edit_contents, base_image, edit_prompt)
        return await self._generate_image(contents)

    @staticmethod
    def _build_contents(builder, *args) -> List[types.Part]:
        """Runs a request builder. Stored images that do not decode fail like any other call."""
        try:
            return builder(*args)
        except ValueError as e:
            logger.error(f"Invalid image payload in request: {e}")
            raise UpstreamError(f"Invalid image payload: {e}") from e

    async def _generate_image(self, contents: List[types.Part], config: Optional[types.GenerateContentConfig] = None) -> str:
        client = self.client
        try:
            response = await client.aio.models.generate_content(
                model=self.image_model_name,
                contents=contents,
                config=config,
            )
        except Exception as e:
            logger.error(f"Error generating image: {e}")
            raise UpstreamError(str(e)) from e

        return extract_first_image(response)
