"""Tests for model sources."""

from pathlib import Path

import pytest

from vectorizer.config import Config
from vectorizer.embedding.model import REMOTE_MODELS, ModelSource
from vectorizer.errors import ModelLoadError


class TestModelSource:
    @pytest.mark.parametrize("alias", ["L6", "L12"])
    def test_remote_aliases(self, alias: str):
        assert ModelSource(alias).resolve() == REMOTE_MODELS[alias]

    def test_remote_name_passes_through(self):
        name = "sentence-transformers/paraphrase-MiniLM-L3-v2"
        assert ModelSource(name).resolve() == name

    def test_local_path(self, tmp_path: Path):
        model_dir = tmp_path / "model"
        model_dir.mkdir()
        assert ModelSource(str(model_dir), local=True).resolve() == str(model_dir)

    def test_missing_local_path(self, tmp_path: Path):
        with pytest.raises(ModelLoadError):
            ModelSource(str(tmp_path / "missing"), local=True).resolve()

    def test_from_config(self, tmp_path: Path):
        config = Config(project=tmp_path, collection="c", model_local=True, model_location="/m")
        assert ModelSource.from_config(config) == ModelSource("/m", local=True)

    def test_str(self):
        assert str(ModelSource("L6")) == "remote:L6"
