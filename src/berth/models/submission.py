"""Partner Center提出チェックリストのデータモデル。"""

from pydantic import BaseModel, Field

from berth.models.project import StepState


class ChecklistStep(BaseModel):
    """チェックリスト項目の定義（YAMLから読み込み）。"""

    id: str
    title: str
    description: str
    phase: str
    requires_steps: list[str] = Field(default_factory=list)
    requires_artifacts: list[str] = Field(default_factory=list)


class ChecklistEntry(BaseModel):
    """定義と進捗を合わせたチェックリスト項目。"""

    step: ChecklistStep
    state: StepState
    ready: bool
    missing: list[str] = Field(default_factory=list)
