"""berthのカスタム例外クラス。"""

from typing import Any


class BerthError(Exception):
    """berthの基底例外クラス。"""


class ProjectNotFoundError(BerthError):
    """プロジェクトが見つからない場合の例外。"""

    def __init__(self, project_id: str) -> None:
        super().__init__(f"Project not found: {project_id}")
        self.project_id = project_id


class StorageError(BerthError):
    """ストレージ操作のエラー。"""


class InvalidParameterError(BerthError):
    """入力パラメータが不正な場合の例外。"""

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(f"Invalid parameter '{name}': {reason}")
        self.name = name
        self.reason = reason


class AppProfileNotSetError(BerthError):
    """アプリケーションプロファイルが未設定の場合の例外。"""

    def __init__(self, project_id: str) -> None:
        super().__init__(
            f"App profile not set for project: {project_id}. "
            "Please call set_app_profile first to register the compose file URL."
        )
        self.project_id = project_id


class BootConfigError(BerthError):
    """cloud-initドキュメントが不正な場合の例外。"""


class FrontendAddressNotFoundError(BerthError):
    """HTML内にハードコードされたアドレスが見つからない場合の例外。"""

    def __init__(self, address: str) -> None:
        super().__init__(f"Hardcoded backend address not found in page: {address}")
        self.address = address


class ArtifactNotGeneratedError(BerthError):
    """必要な成果物が未生成の場合の例外。"""

    def __init__(self, project_id: str, artifact: str) -> None:
        super().__init__(f"Artifact '{artifact}' has not been generated for project: {project_id}")
        self.project_id = project_id
        self.artifact = artifact


class TemplateValidationError(BerthError):
    """ARMテンプレートの検証でエラーが検出された場合の例外。"""

    def __init__(self, message: str, results: list[Any] | None = None) -> None:
        super().__init__(message)
        self.results = results or []


class StepNotFoundError(BerthError):
    """指定されたチェックリスト項目が見つからない場合の例外。"""

    def __init__(self, step_id: str) -> None:
        super().__init__(f"Checklist step not found: {step_id}")
        self.step_id = step_id


class StepPrerequisiteError(BerthError):
    """チェックリスト項目の前提条件が満たされていない場合の例外。"""

    def __init__(self, step_id: str, missing: list[str]) -> None:
        super().__init__(f"Prerequisites not met for step '{step_id}': {', '.join(missing)}")
        self.step_id = step_id
        self.missing = missing
