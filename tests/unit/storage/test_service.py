"""StorageServiceのユニットテスト。"""

import pytest

from berth.models.errors import ProjectNotFoundError, StorageError
from berth.models.project import AppProfile, Project
from berth.storage.service import StorageService


class TestStorageService:
    async def test_save_and_load_project(self, storage: StorageService) -> None:
        project = Project(id="test-project-1", offer_name="Shop", name_prefix="shop")
        await storage.save_project(project)

        loaded = await storage.load_project("test-project-1")
        assert loaded.id == "test-project-1"
        assert loaded.name_prefix == "shop"
        assert loaded.app is None

    async def test_load_nonexistent_project_raises_error(self, storage: StorageService) -> None:
        with pytest.raises(ProjectNotFoundError) as exc_info:
            await storage.load_project("nonexistent")
        assert exc_info.value.project_id == "nonexistent"

    async def test_save_project_with_app_profile(self, storage: StorageService) -> None:
        project = Project(id="test-project-2", offer_name="Shop", name_prefix="shop")
        project.app = AppProfile(compose_url="https://example.com/compose.yml", backend_port=8080)
        await storage.save_project(project)

        loaded = await storage.load_project("test-project-2")
        assert loaded.app is not None
        assert loaded.app.backend_port == 8080

    async def test_delete_project(self, storage: StorageService) -> None:
        await storage.save_project(Project(id="test-project-3", offer_name="Shop", name_prefix="shop"))
        await storage.delete_project("test-project-3")

        with pytest.raises(ProjectNotFoundError):
            await storage.load_project("test-project-3")

    async def test_delete_nonexistent_project_no_error(self, storage: StorageService) -> None:
        await storage.delete_project("nonexistent")

    async def test_list_projects(self, storage: StorageService) -> None:
        assert await storage.list_projects() == []
        await storage.save_project(Project(id="project-a", offer_name="A", name_prefix="a"))
        await storage.save_project(Project(id="project-b", offer_name="B", name_prefix="b"))

        assert sorted(await storage.list_projects()) == ["project-a", "project-b"]

    async def test_directory_traversal_prevention(self, storage: StorageService) -> None:
        with pytest.raises(StorageError):
            await storage.load_project("../../../etc/passwd")


class TestArtifacts:
    async def test_write_and_read_artifact(self, storage: StorageService) -> None:
        path = await storage.write_artifact("p1", "scripts/cloud-init.yaml", "#cloud-config\n")
        assert path.exists()
        assert path.parent.name == "scripts"
        assert await storage.read_artifact("p1", "scripts/cloud-init.yaml") == "#cloud-config\n"

    async def test_write_binary_artifact(self, storage: StorageService) -> None:
        path = await storage.write_artifact("p1", "blob.bin", b"\x00\x01")
        assert path.read_bytes() == b"\x00\x01"

    async def test_write_artifact_outside_directory_raises(self, storage: StorageService) -> None:
        with pytest.raises(StorageError):
            await storage.write_artifact("p1", "../project.json", "{}")

    async def test_read_missing_artifact_raises(self, storage: StorageService) -> None:
        with pytest.raises(StorageError):
            await storage.read_artifact("p1", "mainTemplate.json")
