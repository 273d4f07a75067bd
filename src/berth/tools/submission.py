"""提出チェックリスト層のMCPツール定義。"""

from typing import Any

from fastmcp import FastMCP

from berth.models.errors import BerthError
from berth.services.submission import SubmissionService


def register_submission_tools(mcp: FastMCP, submission_service: SubmissionService) -> None:
    """提出チェックリスト関連のMCPツールを登録する。"""

    @mcp.tool()
    async def get_checklist(project_id: str) -> dict[str, Any]:
        """Partner Center提出チェックリストと進捗を取得する。

        各項目には前提条件が揃っているか（ready）と、不足している項目・成果物（missing）が含まれます。

        Args:
            project_id: プロジェクトID。
        """
        try:
            entries = await submission_service.get_checklist(project_id)
            return {"project_id": project_id, "steps": [e.model_dump(mode="json") for e in entries]}
        except BerthError as e:
            return {"error": type(e).__name__, "message": str(e)}

    @mcp.tool()
    async def complete_step(project_id: str, step_id: str, note: str | None = None) -> dict[str, Any]:
        """チェックリスト項目を完了にする。

        利用者がPartner Centerで該当の操作を終えたことを確認してから呼び出してください。

        Args:
            project_id: プロジェクトID。
            step_id: 項目ID（get_checklistで取得）。
            note: 任意のメモ。
        """
        try:
            entry = await submission_service.complete_step(project_id, step_id, note)
            return entry.model_dump(mode="json")
        except BerthError as e:
            return {"error": type(e).__name__, "message": str(e)}

    @mcp.tool()
    async def reset_step(project_id: str, step_id: str) -> dict[str, Any]:
        """チェックリスト項目を未完了に戻す。依存する項目も未完了に戻ります。

        Args:
            project_id: プロジェクトID。
            step_id: 項目ID。
        """
        try:
            reset = await submission_service.reset_step(project_id, step_id)
            return {"project_id": project_id, "reset": reset}
        except BerthError as e:
            return {"error": type(e).__name__, "message": str(e)}

    @mcp.tool()
    async def export_checklist(project_id: str) -> dict[str, Any]:
        """チェックリストをMarkdown形式で出力する。

        Args:
            project_id: プロジェクトID。
        """
        try:
            markdown = await submission_service.export_checklist(project_id)
            return {"markdown": markdown}
        except BerthError as e:
            return {"error": type(e).__name__, "message": str(e)}
