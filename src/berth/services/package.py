"""Marketplace提出用パッケージ（zip）のビルドを行うサービス。"""

import hashlib
import io
import logging
import zipfile
from datetime import UTC, datetime
from pathlib import Path

from berth.models.artifacts import PackageInspection, PackageResult
from berth.models.errors import ArtifactNotGeneratedError, TemplateValidationError
from berth.models.project import PackageRecord
from berth.models.validation import blocking_results
from berth.services.bootconfig import BOOT_CONFIG_PATH
from berth.services.template import MAIN_TEMPLATE_PATH, UI_DEFINITION_PATH, TemplateService
from berth.storage.service import StorageService

logger = logging.getLogger(__name__)

PACKAGE_FILE_NAME = "package.zip"

# zipのルートに必須のファイル
REQUIRED_ENTRIES: tuple[str, ...] = (MAIN_TEMPLATE_PATH, UI_DEFINITION_PATH)

# パッケージに含める成果物（artifacts/ からの相対パス）
_PACKAGED_ARTIFACTS: tuple[str, ...] = (MAIN_TEMPLATE_PATH, UI_DEFINITION_PATH, BOOT_CONFIG_PATH)


class PackageService:
    """Marketplace提出用パッケージのビルドと検査を行う。"""

    def __init__(self, storage: StorageService, template_service: TemplateService) -> None:
        self._storage = storage
        self._template_service = template_service

    def _package_path(self, project_id: str) -> Path:
        return self._storage.get_project_dir(project_id) / PACKAGE_FILE_NAME

    @staticmethod
    def _zip_artifacts(artifacts_dir: Path, entries: list[str]) -> bytes:
        """成果物をzip化してバイト列を返す。エントリ順は固定。"""
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
            for entry in entries:
                zf.write(artifacts_dir / entry, entry)
        return buf.getvalue()

    async def build_package(self, project_id: str) -> PackageResult:
        """mainTemplate.json / createUiDefinition.json / スクリプトをzipにまとめる。

        テンプレート検証で error が1件でもある場合はビルドしない。
        フロントエンドページはStatic Web Appに配置するためパッケージに含めない。

        Args:
            project_id: プロジェクトID。

        Returns:
            パッケージのビルド結果。

        Raises:
            ProjectNotFoundError: プロジェクトが存在しない場合。
            ArtifactNotGeneratedError: テンプレートまたはcloud-initが未生成の場合。
            TemplateValidationError: テンプレート検証でエラーが検出された場合。
        """
        results = await self._template_service.validate_template(project_id)
        errors = blocking_results(results)
        if errors:
            raise TemplateValidationError(
                f"Template has {len(errors)} validation error(s): " + "; ".join(r.message for r in errors),
                results=errors,
            )

        project = await self._storage.load_project(project_id)
        if project.boot_config is None:
            raise ArtifactNotGeneratedError(project_id, BOOT_CONFIG_PATH)

        artifacts_dir = self._storage.get_artifacts_dir(project_id)
        entries = [entry for entry in _PACKAGED_ARTIFACTS if (artifacts_dir / entry).is_file()]
        missing = [entry for entry in REQUIRED_ENTRIES if entry not in entries]
        if missing:
            raise ArtifactNotGeneratedError(project_id, missing[0])

        data = self._zip_artifacts(artifacts_dir, entries)
        package_path = self._package_path(project_id)
        package_path.parent.mkdir(parents=True, exist_ok=True)
        package_path.write_bytes(data)
        sha256 = hashlib.sha256(data).hexdigest()
        logger.info(f"Built package for project {project_id}: {package_path} ({len(data)} bytes, sha256={sha256})")

        project.package = PackageRecord(path=str(package_path), files=entries, size=len(data), sha256=sha256)
        project.updated_at = datetime.now(UTC)
        await self._storage.save_project(project)

        return PackageResult(path=str(package_path), files=entries, size=len(data), sha256=sha256)

    async def inspect_package(self, project_id: str) -> PackageInspection:
        """ビルド済みパッケージの内容を検査する。

        Raises:
            ProjectNotFoundError: プロジェクトが存在しない場合。
            ArtifactNotGeneratedError: パッケージが未ビルドの場合。
        """
        project = await self._storage.load_project(project_id)
        package_path = self._package_path(project_id)
        if project.package is None or not package_path.exists():
            raise ArtifactNotGeneratedError(project_id, PACKAGE_FILE_NAME)

        with zipfile.ZipFile(package_path) as zf:
            files = sorted(zf.namelist())
        missing = [entry for entry in REQUIRED_ENTRIES if entry not in files]
        return PackageInspection(path=str(package_path), files=files, missing=missing, valid=not missing)
