"""Tests for the service factory module."""

from pathlib import Path

import pytest

from photocat.config import Library
from photocat.errors import ConfigurationError
from photocat.models.enums import MergeMode
from photocat.services.factory import create_indexing_service, create_query_engine, create_sidecar_store
from photocat.services.index import IndexingService
from photocat.services.manifest_store import ManifestStore
from photocat.services.query import QueryEngine
from photocat.services.sidecar_store import SidecarStore


@pytest.fixture
def library(tmp_path: Path) -> Library:
    return Library.open(tmp_path, writable=True)


class TestCreateIndexingService:
    """Tests for create_indexing_service factory."""

    async def test_creates_indexing_service_instance(self, library: Library) -> None:
        async with create_indexing_service(library=library) as service:
            assert isinstance(service, IndexingService)
            assert isinstance(service._manifest_store, ManifestStore)
            assert isinstance(service._sidecar_store, SidecarStore)

    async def test_sidecars_live_in_library_root(self, library: Library) -> None:
        async with create_indexing_service(library=library) as service:
            assert service._sidecar_store.root == library.root

    async def test_respects_options(self, library: Library) -> None:
        async with create_indexing_service(
            library=library,
            meta_cmd="",
            merge_mode=MergeMode.MERGE,
            allowed_extensions=["jpg"],
            concurrency=3,
        ) as service:
            assert service._merge_mode == MergeMode.MERGE
            assert service._concurrency == 3
            assert not service._extractor.enabled
            assert service._file_walker.allowed_extensions == frozenset({"jpg"})

    async def test_indexing_creates_manifest_database(self, library: Library, tmp_path: Path) -> None:
        photos = tmp_path / "photos"
        photos.mkdir()
        (photos / "a.jpg").write_bytes(b"alpha")

        async with create_indexing_service(library=library, meta_cmd="") as service:
            result = await service.index_directory(photos)

        assert result.files_indexed == 1
        assert library.manifest_path.exists()

    async def test_exclude_patterns_reach_walker(self, library: Library, tmp_path: Path) -> None:
        photos = tmp_path / "photos"
        (photos / "raw").mkdir(parents=True)
        (photos / "a.jpg").write_bytes(b"alpha")
        (photos / "raw" / "b.jpg").write_bytes(b"beta")

        async with create_indexing_service(library=library, meta_cmd="", exclude_patterns=["raw/*"]) as service:
            result = await service.index_directory(photos)

        assert result.files_indexed == 1

    async def test_rejects_bad_meta_cmd(self, library: Library) -> None:
        with pytest.raises(ConfigurationError):
            async with create_indexing_service(library=library, meta_cmd="exiftool 'open"):
                pass


class TestCreateQueryEngine:
    """Tests for create_query_engine factory."""

    async def test_creates_query_engine_on_fresh_library(self, library: Library) -> None:
        async with create_query_engine(library) as engine:
            assert isinstance(engine, QueryEngine)
            assert len(engine.normalizer.rules) == 0

    async def test_loads_mapping_rules_from_library(self, library: Library) -> None:
        library.mapping_path.write_text(
            "[[mapping]]\nvariable = 'Lens'\nmatch_values = ['15 mm f/4.5']\nassign_value = '15mm f/4.5'\n"
        )

        async with create_query_engine(library) as engine:
            assert engine.normalizer.normalize("Lens", "15 mm f/4.5") == "15mm f/4.5"

    async def test_malformed_mapping_raises(self, library: Library) -> None:
        library.mapping_path.write_text("[[mapping]\n")

        with pytest.raises(ConfigurationError):
            async with create_query_engine(library):
                pass

    async def test_field_selection(self, library: Library) -> None:
        async with create_query_engine(library, fields=("Lens",)) as engine:
            assert engine.normalizer.fields == ("Lens",)


def test_create_sidecar_store(library: Library) -> None:
    store = create_sidecar_store(library)

    assert isinstance(store, SidecarStore)
    assert store.root == library.root
