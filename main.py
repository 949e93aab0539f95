import asyncio
import click
import logging
from pathlib import Path
from dotenv import load_dotenv

from studio.config import Config, setup_directories
from studio.core.ai_client import GenAIClient
from studio.core.controller import Studio
from studio.core.images import export_image
from studio.core.library_store import LibraryStore
from studio.core.models import AspectRatio
from studio.errors import MissingCredential

# Setup logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def open_studio(library_dir: str) -> Studio:
    library_path = Path(library_dir)
    setup_directories(library_path)
    return Studio(
        LibraryStore(library_path),
        GenAIClient(),
        notify=lambda message: click.echo(message, err=True),
        aspect_ratio=AspectRatio(Config.DEFAULT_ASPECT_RATIO),
    )


def write_preview(studio: Studio, image_url: str, filename: str) -> Path:
    return export_image(image_url, studio.store.library_dir / "preview" / filename)


@click.group()
@click.option('--library-dir', default=str(Config.LIBRARY_DIR), help='Directory holding the character and scene library.')
@click.pass_context
def cli(ctx, library_dir):
    """
    Generates characters and scenes with Gemini and keeps them in a local library.
    """
    load_dotenv()
    ctx.obj = {"library_dir": library_dir}


@cli.command()
@click.option('--prompt', required=True, help='Description of the character.')
@click.option('--name', default="", help='Character name.')
@click.pass_obj
def character(obj, prompt, name):
    """Generate a character portrait and optionally save it."""
    try:
        Config.validate()
    except MissingCredential as e:
        logger.error(str(e))
        return

    studio = open_studio(obj["library_dir"])
    flow = studio.character_flow
    flow.name = name

    image = asyncio.run(flow.generate(prompt))
    if not image:
        return

    preview_path = write_preview(studio, image, "character.png")
    click.echo(f"Preview written to {preview_path}")
    if click.confirm("Save to library?", default=True):
        saved = flow.commit()
        click.echo(f"Saved character {saved.name} ({saved.id})")
    else:
        flow.discard()


@cli.command()
@click.argument('image_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--name', default="", help='Character name.')
@click.pass_obj
def upload(obj, image_file, name):
    """Add an existing image to the library as a character."""
    studio = open_studio(obj["library_dir"])
    flow = studio.character_flow
    flow.name = name
    try:
        flow.upload(image_file)
    except OSError as e:
        logger.error(f"Could not read image {image_file}: {e}")
        return
    saved = flow.commit()
    click.echo(f"Saved character {saved.name} ({saved.id})")


@cli.command()
@click.option('--prompt', required=True, help='Description of the scene.')
@click.option('--character', 'character_ids', multiple=True, required=True, help='Id of a character to place in the scene (repeatable).')
@click.option('--aspect-ratio', type=click.Choice([r.value for r in AspectRatio]), default=None, help='Aspect ratio of the scene.')
@click.pass_obj
def scene(obj, prompt, character_ids, aspect_ratio):
    """Compose characters into a scene, edit it, and optionally save it."""
    try:
        Config.validate()
    except MissingCredential as e:
        logger.error(str(e))
        return

    studio = open_studio(obj["library_dir"])
    flow = studio.scene_flow
    for character_id in character_ids:
        if character_id not in studio.characters:
            click.echo(f"Unknown character: {character_id}", err=True)
            return
        flow.toggle_character(character_id)
    if aspect_ratio:
        flow.aspect_ratio = AspectRatio(aspect_ratio)

    asyncio.run(scene_session(studio, prompt))


async def scene_session(studio: Studio, prompt: str):
    """Generate, then loop on save/edit/discard. All calls of one session share an event loop."""
    flow = studio.scene_flow
    image = await flow.generate(prompt)
    while image:
        preview_path = write_preview(studio, image, "scene.png")
        click.echo(f"Preview written to {preview_path}")

        action = click.prompt("Action", type=click.Choice(["save", "edit", "discard"]), default="save")
        if action == "save":
            saved = flow.commit()
            click.echo(f"Saved scene {saved.id}")
            return
        if action == "discard":
            flow.discard()
            return

        edit_prompt = click.prompt("What would you like to change?")
        edited = await flow.request_edit(edit_prompt)
        image = edited or flow.preview


@cli.command()
@click.pass_obj
def library(obj):
    """List the characters and scenes in the library."""
    studio = open_studio(obj["library_dir"])
    stats = studio.stats()
    click.echo(f"Characters ({stats['characters']}):")
    for char in studio.characters.values():
        click.echo(f"  {char.id}  {char.name}")
    click.echo(f"Scenes ({stats['scenes']}):")
    for item in studio.scenes.values():
        click.echo(f"  {item.id}  [{item.aspect_ratio.value}] {item.prompt}")


@cli.command()
@click.argument('kind', type=click.Choice(["character", "scene"]))
@click.argument('entity_id')
@click.pass_obj
def delete(obj, kind, entity_id):
    """Delete a character or scene by id."""
    studio = open_studio(obj["library_dir"])
    if kind == "character":
        studio.delete_character(entity_id)
    else:
        studio.delete_scene(entity_id)
    click.echo(f"Deleted {kind} {entity_id}")


@cli.command()
@click.argument('kind', type=click.Choice(["character", "scene"]))
@click.argument('entity_id')
@click.option('--output-dir', default="output", help='Directory to save the image to.')
@click.pass_obj
def export(obj, kind, entity_id, output_dir):
    """Export a character or scene image as a PNG file."""
    studio = open_studio(obj["library_dir"])
    try:
        if kind == "character":
            path = studio.export_character(entity_id, Path(output_dir))
        else:
            path = studio.export_scene(entity_id, Path(output_dir))
    except KeyError:
        click.echo(f"Unknown {kind}: {entity_id}", err=True)
        return
    click.echo(f"Exported to {path}")


if __name__ == '__main__':
    cli()
