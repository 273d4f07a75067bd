"""ProjectServiceのユニットテスト。"""

import pytest

from berth.models.errors import InvalidParameterError, ProjectNotFoundError
from berth.models.project import ArtifactRecord, PackageRecord
from berth.services.project import ProjectService, slugify_prefix
from berth.services.submission import SubmissionService
from berth.storage.service import StorageService

COMPOSE_URL = "https://example.com/docker-compose.yml"


class TestSlugifyPrefix:
    def test_lowercase_alphanumeric(self) -> None:
        assert slugify_prefix("Contoso Shop!") == "contososho"

    def test_strips_leading_digits(self) -> None:
        assert slugify_prefix("42 Widgets") == "widgets"

    def test_no_letters_raises(self) -> None:
        with pytest.raises(InvalidParameterError):
            slugify_prefix("1234 ---")


class TestCreateProject:
    async def test_create_project(self, project_service: ProjectService) -> None:
        project = await project_service.create_project("  Contoso Shop ")
        assert project.offer_name == "Contoso Shop"
        assert project.name_prefix == "contososho"
        assert project.app is None

        loaded = await project_service.get_project(project.id)
        assert loaded.id == project.id

    async def test_empty_name_raises(self, project_service: ProjectService) -> None:
        with pytest.raises(InvalidParameterError):
            await project_service.create_project("   ")

    async def test_list_and_delete(self, project_service: ProjectService) -> None:
        project = await project_service.create_project("Shop")
        assert project.id in await project_service.list_projects()

        await project_service.delete_project(project.id)
        assert project.id not in await project_service.list_projects()

    async def test_delete_nonexistent_raises(self, project_service: ProjectService) -> None:
        with pytest.raises(ProjectNotFoundError):
            await project_service.delete_project("nonexistent")


class TestSetAppProfile:
    async def test_first_profile_requires_compose_url(self, project_service: ProjectService) -> None:
        project = await project_service.create_project("Shop")
        with pytest.raises(InvalidParameterError) as exc_info:
            await project_service.set_app_profile(project.id, backend_port=8080)
        assert exc_info.value.name == "compose_url"

    async def test_first_profile_uses_config_defaults(self, project_service: ProjectService) -> None:
        project = await project_service.create_project("Shop")
        profile = await project_service.set_app_profile(project.id, compose_url=COMPOSE_URL)
        assert profile.vm_size == "Standard_B2s"
        assert profile.static_site_location == "eastus2"
        assert profile.backend_port == 80

    async def test_partial_update_keeps_other_fields(self, project_service: ProjectService) -> None:
        project = await project_service.create_project("Shop")
        await project_service.set_app_profile(project.id, compose_url=COMPOSE_URL, backend_port=8080)
        profile = await project_service.set_app_profile(project.id, backend_path="/api")
        assert profile.compose_url == COMPOSE_URL
        assert profile.backend_port == 8080
        assert profile.backend_path == "/api"

    @pytest.mark.parametrize(
        ("fields", "name"),
        [
            ({"compose_url": "ftp://example.com/compose.yml"}, "compose_url"),
            ({"compose_url": "docker-compose.yml"}, "compose_url"),
            ({"compose_url": COMPOSE_URL, "backend_port": 0}, "backend_port"),
            ({"compose_url": COMPOSE_URL, "open_ports": [443, 70000]}, "open_ports"),
            ({"compose_url": COMPOSE_URL, "backend_path": "api"}, "backend_path"),
            ({"compose_url": COMPOSE_URL, "app_dir": "opt/app"}, "app_dir"),
            ({"compose_url": COMPOSE_URL, "query_parameter": "back end"}, "query_parameter"),
        ],
    )
    async def test_invalid_values_raise(
        self, project_service: ProjectService, fields: dict[str, object], name: str
    ) -> None:
        project = await project_service.create_project("Shop")
        with pytest.raises(InvalidParameterError) as exc_info:
            await project_service.set_app_profile(project.id, **fields)
        assert exc_info.value.name == name

    async def test_change_clears_artifacts(self, project_service: ProjectService, storage: StorageService) -> None:
        project = await project_service.create_project("Shop")
        await project_service.set_app_profile(project.id, compose_url=COMPOSE_URL)
        loaded = await storage.load_project(project.id)
        loaded.template = ArtifactRecord(path="/tmp/mainTemplate.json")
        await storage.save_project(loaded)

        await project_service.set_app_profile(project.id, backend_port=9000)

        assert (await storage.load_project(project.id)).template is None

    async def test_change_resets_steps_requiring_package(
        self, project_service: ProjectService, submission_service: SubmissionService, storage: StorageService
    ) -> None:
        """プロファイル変更でパッケージが破棄されると、技術構成の完了状態も戻る。"""
        project = await project_service.create_project("Shop")
        await project_service.set_app_profile(project.id, compose_url=COMPOSE_URL)
        for step_id in ("create_offer", "create_plan"):
            await submission_service.complete_step(project.id, step_id)
        loaded = await storage.load_project(project.id)
        loaded.package = PackageRecord(path="/tmp/package.zip", files=["mainTemplate.json"], size=1, sha256="00")
        await storage.save_project(loaded)
        await submission_service.complete_step(project.id, "technical_configuration")

        await project_service.set_app_profile(project.id, backend_port=9000)

        entries = {e.step.id: e for e in await submission_service.get_checklist(project.id)}
        assert entries["technical_configuration"].state.status == "pending"
        assert entries["technical_configuration"].missing == ["artifact:package"]
        assert entries["create_plan"].state.status == "completed"
        assert entries["create_offer"].state.status == "completed"

    async def test_same_values_keep_artifacts(self, project_service: ProjectService, storage: StorageService) -> None:
        project = await project_service.create_project("Shop")
        await project_service.set_app_profile(project.id, compose_url=COMPOSE_URL)
        loaded = await storage.load_project(project.id)
        loaded.template = ArtifactRecord(path="/tmp/mainTemplate.json")
        await storage.save_project(loaded)

        await project_service.set_app_profile(project.id, compose_url=COMPOSE_URL)

        assert (await storage.load_project(project.id)).template is not None
