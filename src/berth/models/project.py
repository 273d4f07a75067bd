"""プロジェクト（Solution Templateオファー単位）関連のデータモデル。"""

import uuid
from datetime import UTC, datetime
from typing import Literal
from urllib.parse import quote

from pydantic import BaseModel, Field


class AppProfile(BaseModel):
    """パッケージ化対象のコンテナアプリケーションの情報。"""

    compose_url: str
    backend_port: int = 80
    backend_path: str = "/"
    app_dir: str = "/opt/app"
    open_ports: list[int] = Field(default_factory=list)
    vm_size: str = "Standard_B2s"
    static_site_location: str = "eastus2"
    query_parameter: str = "backend"

    def backend_url_suffix(self) -> str:
        """アプリケーションURLのクエリ値で、VMのFQDNに続く ":<port><path>" を返す。

        パスはクエリ値の一部になるため、"/" 以外の予約文字をパーセントエンコードする。
        """
        return f":{self.backend_port}{quote(self.backend_path, safe='/')}"


class ArtifactRecord(BaseModel):
    """生成済み成果物の記録。"""

    path: str
    generated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class PackageRecord(ArtifactRecord):
    """ビルド済みパッケージの記録。"""

    files: list[str]
    size: int
    sha256: str


StepStatus = Literal["pending", "completed"]

# Project上の成果物フィールド（チェックリストの requires_artifacts で参照する名前）
ARTIFACT_FIELDS: tuple[str, ...] = ("boot_config", "frontend", "template", "ui_definition", "package")


class StepState(BaseModel):
    """Partner Center提出チェックリスト項目の進捗。"""

    status: StepStatus = "pending"
    note: str | None = None
    completed_at: datetime | None = None


class Project(BaseModel):
    """Solution Templateのパッケージングプロジェクト。"""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    offer_name: str
    name_prefix: str
    app: AppProfile | None = None
    boot_config: ArtifactRecord | None = None
    frontend: ArtifactRecord | None = None
    template: ArtifactRecord | None = None
    ui_definition: ArtifactRecord | None = None
    package: PackageRecord | None = None
    checklist: dict[str, StepState] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def clear_artifacts(self) -> list[str]:
        """生成済み成果物の記録を全て破棄する。

        Returns:
            破棄した成果物のフィールド名。
        """
        cleared = [name for name in ARTIFACT_FIELDS if getattr(self, name) is not None]
        for name in cleared:
            setattr(self, name, None)
        return cleared
