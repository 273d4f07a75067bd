"""ローカルファイルシステムベースのストレージサービス。"""

import json
import logging
import shutil
from pathlib import Path

from berth.models.errors import ProjectNotFoundError, StorageError
from berth.models.project import Project

logger = logging.getLogger(__name__)


class StorageService:
    """ローカルファイルシステムを利用したデータ永続化層。

    プロジェクトごとに1ディレクトリを持ち、project.json と
    生成した成果物（artifacts/ 配下）を保存する。
    """

    def __init__(self, data_dir: Path) -> None:
        self._data_dir = data_dir
        self._projects_dir = data_dir / "projects"

    def _project_dir(self, project_id: str) -> Path:
        # ディレクトリトラバーサル防止
        safe_id = Path(project_id).name
        if safe_id != project_id:
            raise StorageError(f"Invalid project ID: {project_id}")
        return self._projects_dir / safe_id

    def _project_file(self, project_id: str) -> Path:
        return self._project_dir(project_id) / "project.json"

    def get_project_dir(self, project_id: str) -> Path:
        """プロジェクトのデータディレクトリを返す。"""
        return self._project_dir(project_id)

    def get_artifacts_dir(self, project_id: str) -> Path:
        """プロジェクトの成果物ディレクトリを返す。"""
        return self._project_dir(project_id) / "artifacts"

    async def save_project(self, project: Project) -> None:
        """プロジェクトをファイルシステムに保存する。"""
        project_dir = self._project_dir(project.id)
        project_dir.mkdir(parents=True, exist_ok=True)
        project_file = self._project_file(project.id)
        project_file.write_text(project.model_dump_json(indent=2), encoding="utf-8")

    async def load_project(self, project_id: str) -> Project:
        """プロジェクトをファイルシステムから読み込む。

        Raises:
            ProjectNotFoundError: プロジェクトが存在しない場合。
        """
        project_file = self._project_file(project_id)
        if not project_file.exists():
            raise ProjectNotFoundError(project_id)
        data = json.loads(project_file.read_text(encoding="utf-8"))
        return Project.model_validate(data)

    async def delete_project(self, project_id: str) -> None:
        """プロジェクトをファイルシステムから削除する。"""
        project_dir = self._project_dir(project_id)
        if project_dir.exists():
            shutil.rmtree(project_dir)
            logger.info(f"Deleted project directory: {project_dir}")

    async def list_projects(self) -> list[str]:
        """保存されているプロジェクトIDの一覧を返す。"""
        if not self._projects_dir.exists():
            return []
        return [d.name for d in self._projects_dir.iterdir() if d.is_dir()]

    async def write_artifact(self, project_id: str, relative_path: str, content: str | bytes) -> Path:
        """成果物ファイルをプロジェクトの artifacts/ 配下に書き出す。

        Args:
            project_id: プロジェクトID。
            relative_path: artifacts/ からの相対パス。
            content: ファイル内容。

        Returns:
            書き出したファイルの絶対パス。

        Raises:
            StorageError: パスが artifacts/ の外を指す場合。
        """
        artifacts_dir = self.get_artifacts_dir(project_id)
        target = (artifacts_dir / relative_path).resolve()
        if not target.is_relative_to(artifacts_dir.resolve()):
            raise StorageError(f"Invalid artifact path: {relative_path}")

        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            target.write_bytes(content)
        else:
            target.write_text(content, encoding="utf-8")
        logger.info(f"Wrote artifact {relative_path} for project {project_id}")
        return target

    async def read_artifact(self, project_id: str, relative_path: str) -> str:
        """成果物ファイルを読み込む。

        Raises:
            StorageError: ファイルが存在しない場合。
        """
        artifacts_dir = self.get_artifacts_dir(project_id)
        target = (artifacts_dir / relative_path).resolve()
        if not target.is_relative_to(artifacts_dir.resolve()) or not target.is_file():
            raise StorageError(f"Artifact not found: {relative_path}")
        return target.read_text(encoding="utf-8")
