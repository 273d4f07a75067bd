"""パッケージ層のMCPツール定義。"""

from typing import Any

from fastmcp import FastMCP

from berth.models.errors import BerthError, TemplateValidationError
from berth.services.package import PackageService


def register_package_tools(mcp: FastMCP, package_service: PackageService) -> None:
    """パッケージ関連のMCPツールを登録する。"""

    @mcp.tool()
    async def build_package(project_id: str) -> dict[str, Any]:
        """Partner Centerにアップロードするzipパッケージをビルドする。

        mainTemplate.json と createUiDefinition.json をルートに、
        cloud-initスクリプトを scripts/ に格納します。
        テンプレート検証でエラーがある場合はビルドしません。

        Args:
            project_id: プロジェクトID。
        """
        try:
            result = await package_service.build_package(project_id)
            return result.model_dump()
        except TemplateValidationError as e:
            return {
                "error": type(e).__name__,
                "message": str(e),
                "results": [r.model_dump() for r in e.results],
            }
        except BerthError as e:
            return {"error": type(e).__name__, "message": str(e)}

    @mcp.tool()
    async def inspect_package(project_id: str) -> dict[str, Any]:
        """ビルド済みパッケージの内容を検査する。

        Args:
            project_id: プロジェクトID。
        """
        try:
            result = await package_service.inspect_package(project_id)
            return result.model_dump()
        except BerthError as e:
            return {"error": type(e).__name__, "message": str(e)}
