"""cloud-initによる初回起動スクリプトの生成を行うサービス。"""

import logging
import shlex
from datetime import UTC, datetime
from typing import Any

import yaml

from berth.models.artifacts import BootConfigResult
from berth.models.cloudinit import CLOUD_CONFIG_HEADER, CloudInitConfig
from berth.models.errors import AppProfileNotSetError, BootConfigError
from berth.models.project import AppProfile, ArtifactRecord
from berth.storage.service import StorageService

logger = logging.getLogger(__name__)

# コンテナランタイムのパッケージ（Ubuntuイメージ前提）
CONTAINER_RUNTIME_PACKAGES: tuple[str, ...] = ("docker.io", "docker-compose")

BOOT_CONFIG_PATH = "scripts/cloud-init.yaml"

_COMPOSE_FILE_NAME = "docker-compose.yml"

_REACHABILITY_WARNING = (
    "The compose file must be publicly reachable from the VM at first boot: {url}. "
    "cloud-init does not retry a failed download."
)


def build_cloud_init(app: AppProfile) -> CloudInitConfig:
    """アプリケーションプロファイルからcloud-configを組み立てる。

    runcmd は docker有効化 → ディレクトリ作成 → composeファイル取得 → 起動 の順。
    """
    app_dir = shlex.quote(app.app_dir)
    compose_path = shlex.quote(f"{app.app_dir.rstrip('/')}/{_COMPOSE_FILE_NAME}")
    return CloudInitConfig(
        package_update=True,
        packages=list(CONTAINER_RUNTIME_PACKAGES),
        runcmd=[
            "systemctl enable --now docker",
            f"mkdir -p {app_dir}",
            f"curl -fsSL {shlex.quote(app.compose_url)} -o {compose_path}",
            f"cd {app_dir} && docker-compose up -d",
        ],
    )


def render_cloud_init(config: CloudInitConfig) -> str:
    """cloud-configをYAMLドキュメントとして出力する。"""
    body = yaml.safe_dump(config.model_dump(), sort_keys=False, default_flow_style=False, allow_unicode=True)
    return f"{CLOUD_CONFIG_HEADER}\n{body}"


def load_cloud_init(text: str) -> CloudInitConfig:
    """既存のcloud-configドキュメントを読み込む。

    Raises:
        BootConfigError: ヘッダーが無い、またはYAMLとして不正な場合。
    """
    stripped = text.lstrip()
    if not stripped.startswith(CLOUD_CONFIG_HEADER):
        raise BootConfigError(f"Document must start with '{CLOUD_CONFIG_HEADER}'")
    try:
        data: Any = yaml.safe_load(stripped)
    except yaml.YAMLError as e:
        raise BootConfigError(f"Invalid YAML: {e}") from e
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise BootConfigError("cloud-config body must be a mapping")
    try:
        return CloudInitConfig.model_validate(data)
    except ValueError as e:
        raise BootConfigError(f"Unsupported cloud-config content: {e}") from e


class BootConfigService:
    """cloud-initによる初回起動スクリプトの生成を行う。"""

    def __init__(self, storage: StorageService) -> None:
        self._storage = storage

    async def generate_boot_config(self, project_id: str) -> BootConfigResult:
        """プロジェクトのcloud-initドキュメントを生成する。

        生成したドキュメントはプロジェクトの artifacts/scripts/ に書き出す。

        Args:
            project_id: プロジェクトID。

        Returns:
            cloud-init生成結果。

        Raises:
            ProjectNotFoundError: プロジェクトが存在しない場合。
            AppProfileNotSetError: アプリケーションプロファイルが未設定の場合。
        """
        project = await self._storage.load_project(project_id)
        if project.app is None:
            raise AppProfileNotSetError(project_id)

        config = build_cloud_init(project.app)
        content = render_cloud_init(config)
        path = await self._storage.write_artifact(project_id, BOOT_CONFIG_PATH, content)

        project.boot_config = ArtifactRecord(path=str(path))
        project.updated_at = datetime.now(UTC)
        await self._storage.save_project(project)

        return BootConfigResult(
            content=content,
            path=str(path),
            packages=config.packages,
            commands=config.runcmd,
            warnings=[_REACHABILITY_WARNING.format(url=project.app.compose_url)],
        )

    async def get_boot_config(self, project_id: str) -> str:
        """生成済みのcloud-initドキュメントを返す。未生成の場合は生成する。"""
        project = await self._storage.load_project(project_id)
        if project.boot_config is None:
            result = await self.generate_boot_config(project_id)
            return result.content
        return await self._storage.read_artifact(project_id, BOOT_CONFIG_PATH)

    async def validate_boot_config(self, text: str) -> CloudInitConfig:
        """cloud-initドキュメントを検証して構造化して返す。

        Raises:
            BootConfigError: ドキュメントが不正な場合。
        """
        config = load_cloud_init(text)
        if not config.runcmd:
            logger.warning("cloud-config has no runcmd entries; nothing will be started at first boot")
        return config
