import asyncio
import pytest
from unittest.mock import AsyncMock
from click.testing import CliRunner

import main
from studio.config import Config
from studio.core.images import to_data_uri
from studio.core.library_store import LibraryStore
from studio.core.models import Character, Scene

@pytest.fixture
def runner():
    return CliRunner()

@pytest.fixture
def library(tmp_path):
    store = LibraryStore(tmp_path / "library")
    char = Character(name="Luna", image_url=to_data_uri(b"luna"))
    scene = Scene(image_url=to_data_uri(b"scene"), prompt="a picnic", character_ids=[char.id])
    store.replace_characters([char])
    store.replace_scenes([scene])
    return store, char, scene

class TestCli:
    def test_library_listing(self, runner, library):
        store, char, scene = library
        result = runner.invoke(main.cli, ["--library-dir", str(store.library_dir), "library"])

        assert result.exit_code == 0
        assert "Characters (1):" in result.output
        assert char.id in result.output
        assert "[16:9] a picnic" in result.output

    def test_delete_character(self, runner, library):
        store, char, scene = library
        result = runner.invoke(main.cli, ["--library-dir", str(store.library_dir), "delete", "character", char.id])

        assert result.exit_code == 0
        state = store.load()
        assert state.characters == {}
        assert state.scenes[scene.id].character_ids == [char.id]

    def test_export_scene(self, runner, library, tmp_path):
        store, char, scene = library
        out = tmp_path / "out"
        result = runner.invoke(
            main.cli, ["--library-dir", str(store.library_dir), "export", "scene", scene.id, "--output-dir", str(out)]
        )

        assert result.exit_code == 0
        assert (out / f"scene-{scene.id}.png").read_bytes() == b"scene"

    def test_export_unknown(self, runner, library, tmp_path):
        store, _, _ = library
        result = runner.invoke(main.cli, ["--library-dir", str(store.library_dir), "export", "character", "nope"])

        assert result.exit_code == 0
        assert "Unknown character: nope" in result.output

    def test_upload(self, runner, tmp_path, png_bytes):
        image = tmp_path / "hero.png"
        image.write_bytes(png_bytes)
        library_dir = tmp_path / "library"

        result = runner.invoke(main.cli, ["--library-dir", str(library_dir), "upload", str(image), "--name", "Hero"])

        assert result.exit_code == 0
        characters = list(LibraryStore(library_dir).load().characters.values())
        assert [c.name for c in characters] == ["Hero"]

    def test_character_requires_key(self, runner, tmp_path, monkeypatch, mock_genai_client):
        monkeypatch.setattr(Config, "GEMINI_API_KEY", None)
        result = runner.invoke(main.cli, ["--library-dir", str(tmp_path / "library"), "character", "--prompt", "fox"])

        assert result.exit_code == 0
        mock_genai_client.assert_not_called()
        assert LibraryStore(tmp_path / "library").load().characters == {}

    def test_character_generate_and_save(self, runner, tmp_path, monkeypatch, mocker):
        monkeypatch.setattr(Config, "GEMINI_API_KEY", "fake_key")
        mocker.patch(
            "studio.core.ai_client.GenAIClient.generate_character",
            new=AsyncMock(return_value=to_data_uri(b"fox")),
        )
        library_dir = tmp_path / "library"

        result = runner.invoke(
            main.cli, ["--library-dir", str(library_dir), "character", "--prompt", "a red fox", "--name", "Fox"], input="y\n"
        )

        assert result.exit_code == 0
        assert (library_dir / "preview" / "character.png").read_bytes() == b"fox"
        characters = list(LibraryStore(library_dir).load().characters.values())
        assert [(c.name, c.prompt) for c in characters] == [("Fox", "a red fox")]

class TestSceneCommand:
    @pytest.fixture
    def scene_calls(self, monkeypatch, mocker):
        """Patches the scene operations and records the event loop each call ran on."""
        monkeypatch.setattr(Config, "GEMINI_API_KEY", "fake_key")
        loops = []

        async def generate(*args):
            loops.append(asyncio.get_running_loop())
            return to_data_uri(b"scene")

        async def edit(*args):
            loops.append(asyncio.get_running_loop())
            return to_data_uri(b"edited")

        mocker.patch("studio.core.ai_client.GenAIClient.generate_scene", new=AsyncMock(side_effect=generate))
        mocker.patch("studio.core.ai_client.GenAIClient.edit_scene", new=AsyncMock(side_effect=edit))
        return loops

    def invoke_scene(self, runner, store, char, user_input):
        return runner.invoke(
            main.cli,
            ["--library-dir", str(store.library_dir), "scene", "--prompt", "a beach", "--character", char.id, "--aspect-ratio", "9:16"],
            input=user_input,
        )

    def test_save(self, runner, library, scene_calls):
        store, char, _ = library

        result = self.invoke_scene(runner, store, char, "save\n")

        assert result.exit_code == 0
        saved = [s for s in store.load().scenes.values() if s.prompt == "a beach"]
        assert len(saved) == 1
        assert saved[0].character_ids == [char.id]
        assert saved[0].aspect_ratio.value == "9:16"
        assert saved[0].image_url == to_data_uri(b"scene")

    def test_edit_then_save(self, runner, library, scene_calls):
        store, char, _ = library

        result = self.invoke_scene(runner, store, char, "edit\nmake it sunset\nsave\n")

        assert result.exit_code == 0
        assert "Failed to edit scene" not in result.output
        assert len(scene_calls) == 2
        assert scene_calls[0] is scene_calls[1]
        saved = [s for s in store.load().scenes.values() if s.prompt == "a beach"]
        assert saved[0].image_url == to_data_uri(b"edited")
        assert (store.library_dir / "preview" / "scene.png").read_bytes() == b"edited"

    def test_discard(self, runner, library, scene_calls):
        store, char, scene = library

        result = self.invoke_scene(runner, store, char, "discard\n")

        assert result.exit_code == 0
        assert list(store.load().scenes) == [scene.id]

    def test_unknown_character(self, runner, library, scene_calls):
        store, _, scene = library
        result = runner.invoke(
            main.cli, ["--library-dir", str(store.library_dir), "scene", "--prompt", "a beach", "--character", "nope"]
        )

        assert result.exit_code == 0
        assert "Unknown character: nope" in result.output
        assert scene_calls == []
        assert list(store.load().scenes) == [scene.id]
