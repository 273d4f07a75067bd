"""テスト共通フィクスチャ。"""

from pathlib import Path

import pytest

from berth.config import ServerConfig
from berth.services.bootconfig import BootConfigService
from berth.services.frontend import FrontendService
from berth.services.package import PackageService
from berth.services.project import ProjectService
from berth.services.submission import SubmissionService
from berth.services.template import TemplateService
from berth.storage.service import StorageService

COMPOSE_URL = "https://raw.githubusercontent.com/contoso/shop/main/docker-compose.yml"


@pytest.fixture
def tmp_data_dir(tmp_path: Path) -> Path:
    """テスト用の一時データディレクトリ。"""
    return tmp_path / "berth-test"


@pytest.fixture
def config_dir() -> Path:
    """設定ファイルディレクトリ。"""
    return Path(__file__).parent.parent / "config"


@pytest.fixture
def storage(tmp_data_dir: Path) -> StorageService:
    """テスト用StorageService。"""
    return StorageService(data_dir=tmp_data_dir)


@pytest.fixture
def server_config(tmp_data_dir: Path, config_dir: Path) -> ServerConfig:
    """テスト用ServerConfig。"""
    return ServerConfig(data_dir=tmp_data_dir, config_dir=config_dir)


@pytest.fixture
def project_service(
    storage: StorageService, submission_service: SubmissionService, server_config: ServerConfig
) -> ProjectService:
    """テスト用ProjectService。"""
    return ProjectService(storage=storage, submission_service=submission_service, config=server_config)


@pytest.fixture
def boot_config_service(storage: StorageService) -> BootConfigService:
    """テスト用BootConfigService。"""
    return BootConfigService(storage=storage)


@pytest.fixture
def frontend_service(storage: StorageService) -> FrontendService:
    """テスト用FrontendService。"""
    return FrontendService(storage=storage)


@pytest.fixture
def template_service(
    storage: StorageService,
    boot_config_service: BootConfigService,
    submission_service: SubmissionService,
    config_dir: Path,
) -> TemplateService:
    """テスト用TemplateService。"""
    return TemplateService(
        storage=storage,
        boot_config_service=boot_config_service,
        submission_service=submission_service,
        config_dir=config_dir,
    )


@pytest.fixture
def package_service(storage: StorageService, template_service: TemplateService) -> PackageService:
    """テスト用PackageService。"""
    return PackageService(storage=storage, template_service=template_service)


@pytest.fixture
def submission_service(storage: StorageService, config_dir: Path) -> SubmissionService:
    """テスト用SubmissionService。"""
    return SubmissionService(storage=storage, config_dir=config_dir)


@pytest.fixture
async def project_id(project_service: ProjectService) -> str:
    """アプリケーションプロファイル設定済みのプロジェクトID。"""
    project = await project_service.create_project("Contoso Shop")
    await project_service.set_app_profile(project.id, compose_url=COMPOSE_URL, backend_port=8080)
    return project.id
