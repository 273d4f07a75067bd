"""プロジェクトとアプリケーションプロファイルの管理を行うサービス。"""

import logging
import re
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlparse

from berth.config import ServerConfig
from berth.models.errors import InvalidParameterError
from berth.models.project import AppProfile, Project
from berth.services.submission import SubmissionService
from berth.storage.service import StorageService

logger = logging.getLogger(__name__)

# リソース名のプレフィックス長（VM名・DNSラベルの長さ制限内に収める）
_NAME_PREFIX_MAX_LENGTH = 10

_QUERY_PARAMETER_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_-]*$")


def slugify_prefix(offer_name: str) -> str:
    """オファー名からリソース名のプレフィックスを生成する。

    英小文字と数字のみを残し、先頭が数字の場合は除去する。

    Raises:
        InvalidParameterError: 有効な文字が1つも残らない場合。
    """
    slug = re.sub(r"[^a-z0-9]", "", offer_name.lower()).lstrip("0123456789")
    if not slug:
        raise InvalidParameterError("offer_name", "must contain at least one ASCII letter")
    return slug[:_NAME_PREFIX_MAX_LENGTH]


def _validate_port(name: str, port: int) -> None:
    if not 1 <= port <= 65535:
        raise InvalidParameterError(name, f"port out of range: {port}")


def validate_app_profile(profile: AppProfile) -> None:
    """アプリケーションプロファイルの値を検証する。

    compose_url は構文のみ検証する。公開到達性は運用者の責任。

    Raises:
        InvalidParameterError: 値が不正な場合。
    """
    parsed = urlparse(profile.compose_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise InvalidParameterError("compose_url", "must be an absolute http(s) URL")
    _validate_port("backend_port", profile.backend_port)
    for port in profile.open_ports:
        _validate_port("open_ports", port)
    if not profile.backend_path.startswith("/"):
        raise InvalidParameterError("backend_path", "must start with '/'")
    if not profile.app_dir.startswith("/"):
        raise InvalidParameterError("app_dir", "must be an absolute path")
    if not _QUERY_PARAMETER_RE.match(profile.query_parameter):
        raise InvalidParameterError("query_parameter", "must be a URL-safe identifier")


class ProjectService:
    """プロジェクトとアプリケーションプロファイルの管理を行う。"""

    def __init__(
        self,
        storage: StorageService,
        submission_service: SubmissionService,
        config: ServerConfig | None = None,
    ) -> None:
        self._storage = storage
        self._submission_service = submission_service
        self._config = config or ServerConfig()

    async def create_project(self, offer_name: str) -> Project:
        """新しいプロジェクトを作成する。

        Args:
            offer_name: Marketplaceオファーの表示名。

        Returns:
            作成されたプロジェクト。

        Raises:
            InvalidParameterError: オファー名から有効なプレフィックスを生成できない場合。
        """
        if not offer_name.strip():
            raise InvalidParameterError("offer_name", "must not be empty")
        project = Project(offer_name=offer_name.strip(), name_prefix=slugify_prefix(offer_name))
        await self._storage.save_project(project)
        logger.info(f"Created project {project.id} ({project.offer_name})")
        return project

    async def get_project(self, project_id: str) -> Project:
        """プロジェクトを取得する。

        Raises:
            ProjectNotFoundError: プロジェクトが存在しない場合。
        """
        return await self._storage.load_project(project_id)

    async def list_projects(self) -> list[str]:
        """プロジェクトIDの一覧を返す。"""
        return await self._storage.list_projects()

    async def delete_project(self, project_id: str) -> None:
        """プロジェクトと生成済み成果物を削除する。

        Raises:
            ProjectNotFoundError: プロジェクトが存在しない場合。
        """
        await self._storage.load_project(project_id)
        await self._storage.delete_project(project_id)

    async def set_app_profile(self, project_id: str, **fields: Any) -> AppProfile:
        """アプリケーションプロファイルを設定する。

        既存のプロファイルがある場合は指定されたフィールドのみ上書きする。
        プロファイルを変更すると生成済みの成果物は無効になり、
        それらを前提とする完了済みのチェックリスト項目も未完了に戻る。

        Args:
            project_id: プロジェクトID。
            **fields: AppProfile のフィールド。

        Returns:
            設定後のプロファイル。

        Raises:
            ProjectNotFoundError: プロジェクトが存在しない場合。
            InvalidParameterError: 値が不正な場合。
        """
        project = await self._storage.load_project(project_id)

        if project.app is not None:
            data = project.app.model_dump()
        else:
            data = {
                "vm_size": self._config.default_vm_size,
                "static_site_location": self._config.default_static_site_location,
            }
        data.update({k: v for k, v in fields.items() if v is not None})
        if "compose_url" not in data:
            raise InvalidParameterError("compose_url", "is required")

        try:
            profile = AppProfile.model_validate(data)
        except ValueError as e:
            raise InvalidParameterError("app_profile", str(e)) from e
        validate_app_profile(profile)

        if project.app is not None and project.app != profile:
            logger.info(f"App profile changed for project {project_id}; clearing generated artifacts")
            self._submission_service.invalidate_artifacts(project, project.clear_artifacts())
        project.app = profile
        project.updated_at = datetime.now(UTC)
        await self._storage.save_project(project)
        return profile
