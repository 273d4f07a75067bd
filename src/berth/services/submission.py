"""Partner Center提出チェックリストの進捗管理を行うサービス。"""

import logging
from datetime import UTC, datetime
from pathlib import Path

import yaml

from berth.models.errors import StepNotFoundError, StepPrerequisiteError, StorageError
from berth.models.project import Project, StepState
from berth.models.submission import ChecklistEntry, ChecklistStep
from berth.storage.service import StorageService

logger = logging.getLogger(__name__)

CHECKLIST_FILE = "submission-checklist.yaml"


class SubmissionService:
    """Partner Center提出チェックリストの進捗管理を行う。"""

    def __init__(self, storage: StorageService, config_dir: Path) -> None:
        self._storage = storage
        self._config_dir = config_dir
        self._steps: list[ChecklistStep] | None = None

    def _load_steps(self) -> list[ChecklistStep]:
        """チェックリスト定義を読み込む。"""
        if self._steps is None:
            checklist_file = self._config_dir / CHECKLIST_FILE
            try:
                with open(checklist_file, encoding="utf-8") as f:
                    data = yaml.safe_load(f)
            except FileNotFoundError:
                raise StorageError(f"チェックリスト定義ファイルが見つかりません: {checklist_file}") from None
            self._steps = [ChecklistStep.model_validate(s) for s in data["steps"]]
        return self._steps

    def _find_step(self, step_id: str) -> ChecklistStep:
        for step in self._load_steps():
            if step.id == step_id:
                return step
        raise StepNotFoundError(step_id)

    @staticmethod
    def _state(project: Project, step_id: str) -> StepState:
        return project.checklist.get(step_id, StepState())

    def _missing_prerequisites(self, project: Project, step: ChecklistStep) -> list[str]:
        missing = [
            f"step:{required}"
            for required in step.requires_steps
            if self._state(project, required).status != "completed"
        ]
        for artifact in step.requires_artifacts:
            if getattr(project, artifact, None) is None:
                missing.append(f"artifact:{artifact}")
        return missing

    async def get_checklist(self, project_id: str) -> list[ChecklistEntry]:
        """チェックリストの全項目と進捗を返す。

        Raises:
            ProjectNotFoundError: プロジェクトが存在しない場合。
        """
        project = await self._storage.load_project(project_id)
        entries: list[ChecklistEntry] = []
        for step in self._load_steps():
            missing = self._missing_prerequisites(project, step)
            entries.append(
                ChecklistEntry(
                    step=step,
                    state=self._state(project, step.id),
                    ready=not missing,
                    missing=missing,
                )
            )
        return entries

    async def complete_step(self, project_id: str, step_id: str, note: str | None = None) -> ChecklistEntry:
        """チェックリスト項目を完了にする。

        Args:
            project_id: プロジェクトID。
            step_id: 項目ID。
            note: 任意のメモ（例: アップロードしたパッケージのバージョン）。

        Returns:
            更新後の項目。

        Raises:
            ProjectNotFoundError: プロジェクトが存在しない場合。
            StepNotFoundError: 項目が存在しない場合。
            StepPrerequisiteError: 前提となる項目または成果物が揃っていない場合。
        """
        project = await self._storage.load_project(project_id)
        step = self._find_step(step_id)
        missing = self._missing_prerequisites(project, step)
        if missing:
            raise StepPrerequisiteError(step_id, missing)

        state = StepState(status="completed", note=note, completed_at=datetime.now(UTC))
        project.checklist[step_id] = state
        project.updated_at = datetime.now(UTC)
        await self._storage.save_project(project)
        logger.info(f"Checklist step '{step_id}' completed for project {project_id}")
        return ChecklistEntry(step=step, state=state, ready=True)

    def _with_dependants(self, step_ids: set[str]) -> set[str]:
        """指定した項目と、それらに推移的に依存する項目のIDを返す。"""
        closure = set(step_ids)
        changed = True
        while changed:
            changed = False
            for step in self._load_steps():
                if step.id not in closure and closure.intersection(step.requires_steps):
                    closure.add(step.id)
                    changed = True
        return closure

    def _clear_states(self, project: Project, step_ids: set[str]) -> list[str]:
        reset: list[str] = []
        for step in self._load_steps():
            if step.id in step_ids and step.id in project.checklist:
                del project.checklist[step.id]
                reset.append(step.id)
        return reset

    async def reset_step(self, project_id: str, step_id: str) -> list[str]:
        """チェックリスト項目を未完了に戻す。依存する項目も未完了に戻す。

        Returns:
            未完了に戻した項目IDのリスト。

        Raises:
            ProjectNotFoundError: プロジェクトが存在しない場合。
            StepNotFoundError: 項目が存在しない場合。
        """
        project = await self._storage.load_project(project_id)
        self._find_step(step_id)

        reset = self._clear_states(project, self._with_dependants({step_id}))

        project.updated_at = datetime.now(UTC)
        await self._storage.save_project(project)
        if reset:
            logger.info(f"Checklist steps reset for project {project_id}: {', '.join(reset)}")
        return reset

    def invalidate_artifacts(self, project: Project, artifacts: list[str]) -> list[str]:
        """破棄された成果物を前提とする完了済み項目を、依存する項目ごと未完了に戻す。

        プロジェクトの保存は呼び出し側で行う。

        Args:
            project: 成果物を破棄したプロジェクト。
            artifacts: 破棄した成果物のフィールド名（例: "package"）。

        Returns:
            未完了に戻した項目IDのリスト。
        """
        invalidated = set(artifacts)
        if not invalidated:
            return []
        affected = {step.id for step in self._load_steps() if invalidated.intersection(step.requires_artifacts)}
        reset = self._clear_states(project, self._with_dependants(affected))
        if reset:
            logger.info(
                f"Checklist steps reset for project {project.id} after {', '.join(sorted(invalidated))} "
                f"was discarded: {', '.join(reset)}"
            )
        return reset

    async def export_checklist(self, project_id: str) -> str:
        """チェックリストをMarkdown形式で出力する。

        Raises:
            ProjectNotFoundError: プロジェクトが存在しない場合。
        """
        project = await self._storage.load_project(project_id)
        entries = await self.get_checklist(project_id)

        lines: list[str] = []
        lines.append(f"# Partner Center submission: {project.offer_name}")
        lines.append("")
        if project.package is not None:
            lines.append(f"Package: `{project.package.path}` (sha256 `{project.package.sha256}`)")
            lines.append("")

        current_phase = ""
        for entry in entries:
            if entry.step.phase != current_phase:
                current_phase = entry.step.phase
                lines.append(f"## {current_phase.capitalize()}")
                lines.append("")
            mark = "x" if entry.state.status == "completed" else " "
            line = f"- [{mark}] **{entry.step.title}**: {entry.step.description}"
            if entry.state.note:
                line += f" _(note: {entry.state.note})_"
            elif entry.state.status != "completed" and entry.missing:
                line += f" _(waiting for: {', '.join(entry.missing)})_"
            lines.append(line)
        lines.append("")
        return "\n".join(lines)
