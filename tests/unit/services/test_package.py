"""PackageServiceのユニットテスト。"""

import hashlib
import json
import zipfile
from pathlib import Path

import pytest

from berth.models.errors import ArtifactNotGeneratedError, TemplateValidationError
from berth.services.package import PackageService
from berth.services.submission import SubmissionService
from berth.services.template import MAIN_TEMPLATE_PATH, TemplateService
from berth.storage.service import StorageService


class TestBuildPackage:
    async def test_build_package(
        self,
        template_service: TemplateService,
        package_service: PackageService,
        storage: StorageService,
        project_id: str,
    ) -> None:
        await template_service.generate_template(project_id)
        result = await package_service.build_package(project_id)

        assert result.files == ["mainTemplate.json", "createUiDefinition.json", "scripts/cloud-init.yaml"]
        data = Path(result.path).read_bytes()
        assert result.size == len(data)
        assert result.sha256 == hashlib.sha256(data).hexdigest()

        with zipfile.ZipFile(result.path) as zf:
            main_template = json.loads(zf.read("mainTemplate.json"))
        assert "appUrl" in main_template["outputs"]

        project = await storage.load_project(project_id)
        assert project.package is not None
        assert project.package.sha256 == result.sha256

    async def test_frontend_is_not_packaged(
        self,
        template_service: TemplateService,
        package_service: PackageService,
        storage: StorageService,
        project_id: str,
    ) -> None:
        await storage.write_artifact(project_id, "frontend/index.html", "<html></html>")
        await template_service.generate_template(project_id)
        result = await package_service.build_package(project_id)
        assert "frontend/index.html" not in result.files

    async def test_regenerate_template_resets_technical_configuration(
        self,
        template_service: TemplateService,
        package_service: PackageService,
        submission_service: SubmissionService,
        storage: StorageService,
        project_id: str,
    ) -> None:
        """テンプレート再生成でパッケージが破棄されると、技術構成の完了状態も戻る。"""
        await template_service.generate_template(project_id)
        await package_service.build_package(project_id)
        for step_id in ("create_offer", "create_plan", "technical_configuration"):
            await submission_service.complete_step(project_id, step_id)

        await template_service.generate_template(project_id)

        project = await storage.load_project(project_id)
        assert project.package is None
        assert "technical_configuration" not in project.checklist
        assert project.checklist["create_plan"].status == "completed"

    async def test_build_before_template_raises(self, package_service: PackageService, project_id: str) -> None:
        with pytest.raises(ArtifactNotGeneratedError):
            await package_service.build_package(project_id)

    async def test_build_with_validation_errors_raises(
        self,
        template_service: TemplateService,
        package_service: PackageService,
        storage: StorageService,
        project_id: str,
    ) -> None:
        await template_service.generate_template(project_id)
        template = json.loads(await storage.read_artifact(project_id, MAIN_TEMPLATE_PATH))
        template["parameters"]["adminPassword"]["type"] = "string"
        await storage.write_artifact(project_id, MAIN_TEMPLATE_PATH, json.dumps(template))

        with pytest.raises(TemplateValidationError) as exc_info:
            await package_service.build_package(project_id)
        assert [r.rule_id for r in exc_info.value.results] == ["password-securestring"]
        assert (await storage.load_project(project_id)).package is None

    async def test_regenerating_template_invalidates_package(
        self,
        template_service: TemplateService,
        package_service: PackageService,
        storage: StorageService,
        project_id: str,
    ) -> None:
        await template_service.generate_template(project_id)
        await package_service.build_package(project_id)
        await template_service.generate_template(project_id)
        assert (await storage.load_project(project_id)).package is None


class TestInspectPackage:
    async def test_inspect(
        self, template_service: TemplateService, package_service: PackageService, project_id: str
    ) -> None:
        await template_service.generate_template(project_id)
        await package_service.build_package(project_id)

        inspection = await package_service.inspect_package(project_id)
        assert inspection.valid is True
        assert inspection.missing == []
        assert inspection.files == sorted(["mainTemplate.json", "createUiDefinition.json", "scripts/cloud-init.yaml"])

    async def test_inspect_before_build_raises(self, package_service: PackageService, project_id: str) -> None:
        with pytest.raises(ArtifactNotGeneratedError):
            await package_service.inspect_package(project_id)
