"""起動スクリプト・フロントエンドのMCPツール定義。"""

from typing import Any

from fastmcp import FastMCP

from berth.models.errors import BerthError
from berth.services.bootconfig import BootConfigService
from berth.services.frontend import FrontendService


def register_artifact_tools(
    mcp: FastMCP,
    boot_config_service: BootConfigService,
    frontend_service: FrontendService,
) -> None:
    """cloud-init・フロントエンド関連のMCPツールを登録する。"""

    @mcp.tool()
    async def generate_boot_config(project_id: str) -> dict[str, Any]:
        """VMの初回起動時に実行されるcloud-initドキュメントを生成する。

        コンテナランタイムをインストールし、docker-composeファイルを取得して
        アプリケーションスタックを起動するcloud-configを生成します。
        composeファイルのURLはVMから公開到達可能である必要があります。

        Args:
            project_id: プロジェクトID。
        """
        try:
            result = await boot_config_service.generate_boot_config(project_id)
            return result.model_dump()
        except BerthError as e:
            return {"error": type(e).__name__, "message": str(e)}

    @mcp.tool()
    async def validate_boot_config(content: str) -> dict[str, Any]:
        """既存のcloud-initドキュメントを検証する。

        Args:
            content: "#cloud-config" で始まるcloud-initドキュメント。
        """
        try:
            config = await boot_config_service.validate_boot_config(content)
            return {"valid": True, "config": config.model_dump()}
        except BerthError as e:
            return {"error": type(e).__name__, "message": str(e)}

    @mcp.tool()
    async def parameterize_frontend(project_id: str, html: str, hardcoded_address: str) -> dict[str, Any]:
        """静的HTMLページのバックエンドアドレスをクエリパラメータ参照に置き換える。

        ハードコードされたアドレス（例: "http://localhost:8080"）を参照する
        src/href/action属性を、ページ読み込み時にクエリパラメータから
        解決するように書き換えます。

        Args:
            project_id: プロジェクトID。
            html: 元のHTML。
            hardcoded_address: 置き換え対象のアドレス。
        """
        try:
            result = await frontend_service.parameterize_frontend(project_id, html, hardcoded_address)
            return result.model_dump()
        except BerthError as e:
            return {"error": type(e).__name__, "message": str(e)}
