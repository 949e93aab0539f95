import base64
import binascii
import logging
from pathlib import Path
from typing import Tuple, Union

from PIL import Image

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/png"


def to_data_uri(data: bytes, mime_type: str = DEFAULT_MIME_TYPE) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type or DEFAULT_MIME_TYPE};base64,{encoded}"


def parse_data_uri(uri: str) -> Tuple[str, bytes]:
    """
    Splits a base64 data URI into its MIME type and raw bytes.

    Raises:
        ValueError: if the string is not a base64 data URI.
    """
    if not uri or not uri.startswith("data:") or "," not in uri:
        raise ValueError("Not a data URI")

    header, payload = uri.split(",", 1)
    meta = header[len("data:"):].split(";")
    if "base64" not in meta[1:]:
        raise ValueError("Only base64 data URIs are supported")

    mime_type = meta[0] or DEFAULT_MIME_TYPE
    try:
        data = base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 payload: {e}") from e
    return mime_type, data


def load_image_file(path: Union[str, Path]) -> str:
    """Reads an image file from disk and returns it as a data URI."""
    path = Path(path)
    with Image.open(path) as img:
        img.verify()
        mime_type = Image.MIME.get(img.format, DEFAULT_MIME_TYPE)

    data = path.read_bytes()
    logger.info(f"Loaded image {path.name} ({mime_type}, {len(data)} bytes)")
    return to_data_uri(data, mime_type)


def export_image(image_url: str, destination: Union[str, Path]) -> Path:
    """Writes the decoded image payload to destination."""
    _, data = parse_data_uri(image_url)
    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    with open(destination, "wb") as f:
        f.write(data)
    logger.info(f"Exported image to {destination}")
    return destination


def safe_filename(name: str, fallback: str = "image") -> str:
    safe_name = "".join(x for x in name if x.isalnum() or x in (' ', '_', '-')).strip().replace(' ', '_')
    return safe_name or fallback
