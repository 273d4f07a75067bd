"""ARMテンプレート層のMCPツール定義。"""

from typing import Any

from fastmcp import FastMCP

from berth.models.errors import BerthError
from berth.models.validation import blocking_results
from berth.services.template import TemplateService


def register_template_tools(mcp: FastMCP, template_service: TemplateService) -> None:
    """ARMテンプレート関連のMCPツールを登録する。"""

    @mcp.tool()
    async def generate_template(project_id: str) -> dict[str, Any]:
        """mainTemplate.json と createUiDefinition.json を生成する。

        パブリックIP、NSG、仮想ネットワーク、NIC、VM、Static Web Appを宣言し、
        アプリケーションURLを出力するARMテンプレートを生成します。
        cloud-initが未生成の場合は自動的に生成してVMのcustomDataに埋め込みます。

        Args:
            project_id: プロジェクトID。
        """
        try:
            result = await template_service.generate_template(project_id)
            return result.model_dump()
        except BerthError as e:
            return {"error": type(e).__name__, "message": str(e)}

    @mcp.tool()
    async def validate_template(project_id: str) -> dict[str, Any]:
        """生成済みのARMテンプレートを検証する。

        Marketplace認証の要件、依存関係、パラメータ・変数の参照、
        UI定義の出力を検証します。

        Args:
            project_id: プロジェクトID。
        """
        try:
            results = await template_service.validate_template(project_id)
            return {
                "project_id": project_id,
                "valid": not blocking_results(results),
                "results": [r.model_dump() for r in results],
            }
        except BerthError as e:
            return {"error": type(e).__name__, "message": str(e)}

    @mcp.tool()
    async def get_deployment_order(project_id: str) -> dict[str, Any]:
        """dependsOnに従ったリソースの作成順序を返す。

        Args:
            project_id: プロジェクトID。
        """
        try:
            order = await template_service.get_deployment_order(project_id)
            return {"project_id": project_id, "deployment_order": order}
        except BerthError as e:
            return {"error": type(e).__name__, "message": str(e)}
