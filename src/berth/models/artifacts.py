"""成果物生成結果のデータモデル。"""

from typing import Any

from pydantic import BaseModel, Field

from berth.models.validation import ValidationResult


class BootConfigResult(BaseModel):
    """cloud-init生成結果。"""

    content: str
    path: str
    packages: list[str]
    commands: list[str | list[str]]
    warnings: list[str] = Field(default_factory=list)


class FrontendResult(BaseModel):
    """フロントエンドページのパラメータ化結果。"""

    content: str
    path: str
    replaced: int
    query_parameter: str
    example_url: str


class TemplateResult(BaseModel):
    """ARMテンプレート生成結果。"""

    main_template: dict[str, Any]
    ui_definition: dict[str, Any]
    paths: dict[str, str]
    deployment_order: list[str]
    validation: list[ValidationResult] = Field(default_factory=list)


class PackageResult(BaseModel):
    """Marketplace提出用パッケージのビルド結果。"""

    path: str
    files: list[str]
    size: int
    sha256: str


class PackageInspection(BaseModel):
    """パッケージ内容の検査結果。"""

    path: str
    files: list[str]
    missing: list[str]
    valid: bool
