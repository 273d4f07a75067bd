"""ARMテンプレート検証のデータモデル。"""

from typing import Any, Literal

from pydantic import BaseModel, Field

Severity = Literal["error", "warning", "info"]


class ValidationResult(BaseModel):
    """ARMテンプレート検証で検出された問題。

    affected_resources には "種別/名前キー" 形式のリソースキー、
    または "parameters/<name>" / "outputs/<name>" のようなセクション内パスが入る。
    """

    severity: Severity
    rule_id: str
    message: str
    affected_resources: list[str] = Field(default_factory=list)
    recommendation: str = ""


class ValidationRule(BaseModel):
    """YAMLで定義されるバリデーションルール。

    condition でルールの適用対象（resource_type / parameter_name_pattern /
    parameter_type / section）を選び、requirement で満たすべき条件を指定する。
    """

    id: str
    description: str
    severity: Severity
    condition: dict[str, Any]
    requirement: dict[str, Any]
    recommendation: str = ""


def blocking_results(results: list[ValidationResult]) -> list[ValidationResult]:
    """パッケージ化を妨げる（severity が error の）結果のみを返す。"""
    return [r for r in results if r.severity == "error"]
