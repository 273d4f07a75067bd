"""プロジェクト層のMCPツール定義。"""

from typing import Any

from fastmcp import FastMCP

from berth.models.errors import BerthError
from berth.services.project import ProjectService


def register_project_tools(mcp: FastMCP, project_service: ProjectService) -> None:
    """プロジェクト関連のMCPツールを登録する。"""

    @mcp.tool()
    async def create_project(offer_name: str) -> dict[str, Any]:
        """新しいSolution Templateプロジェクトを作成する。

        パッケージングを開始するために、まずこのツールでプロジェクトを作成してください。
        返却されるproject_idを以降のツール呼び出しで使用します。

        Args:
            offer_name: Marketplaceオファーの表示名。リソース名のプレフィックスにも使われます。
        """
        try:
            project = await project_service.create_project(offer_name)
            return {
                "project_id": project.id,
                "offer_name": project.offer_name,
                "name_prefix": project.name_prefix,
                "next_step": "Use set_app_profile to register the docker-compose file URL.",
            }
        except BerthError as e:
            return {"error": type(e).__name__, "message": str(e)}

    @mcp.tool()
    async def get_project(project_id: str) -> dict[str, Any]:
        """プロジェクトの設定と成果物の生成状況を取得する。

        Args:
            project_id: プロジェクトID。
        """
        try:
            project = await project_service.get_project(project_id)
            return project.model_dump(mode="json")
        except BerthError as e:
            return {"error": type(e).__name__, "message": str(e)}

    @mcp.tool()
    async def list_projects() -> dict[str, Any]:
        """保存されているプロジェクトIDの一覧を返す。"""
        return {"project_ids": sorted(await project_service.list_projects())}

    @mcp.tool()
    async def set_app_profile(
        project_id: str,
        compose_url: str | None = None,
        backend_port: int | None = None,
        backend_path: str | None = None,
        app_dir: str | None = None,
        open_ports: list[int] | None = None,
        vm_size: str | None = None,
        static_site_location: str | None = None,
        query_parameter: str | None = None,
    ) -> dict[str, Any]:
        """パッケージ化するコンテナアプリケーションの情報を設定する。

        初回はcompose_urlが必須です。2回目以降は指定したフィールドのみ上書きします。
        プロファイルを変更すると生成済みの成果物は破棄されるため、再生成してください。

        Args:
            project_id: プロジェクトID。
            compose_url: VMから取得するdocker-composeファイルのURL（公開到達可能であること）。
            backend_port: バックエンドの公開ポート（既定: 80）。
            backend_path: フロントエンドが埋め込むバックエンドのパス（既定: "/"）。
            app_dir: VM上でcomposeファイルを配置するディレクトリ（既定: "/opt/app"）。
            open_ports: NSGで追加開放するTCPポート。
            vm_size: VMサイズ（例: "Standard_B2s"）。
            static_site_location: Static Web Appのリージョン。
            query_parameter: フロントエンドがバックエンドアドレスを受け取るクエリパラメータ名（既定: "backend"）。
        """
        try:
            profile = await project_service.set_app_profile(
                project_id,
                compose_url=compose_url,
                backend_port=backend_port,
                backend_path=backend_path,
                app_dir=app_dir,
                open_ports=open_ports,
                vm_size=vm_size,
                static_site_location=static_site_location,
                query_parameter=query_parameter,
            )
            return {"project_id": project_id, "app": profile.model_dump()}
        except BerthError as e:
            return {"error": type(e).__name__, "message": str(e)}

    @mcp.tool()
    async def delete_project(project_id: str) -> dict[str, Any]:
        """プロジェクトと生成済み成果物を削除する。

        Args:
            project_id: プロジェクトID。
        """
        try:
            await project_service.delete_project(project_id)
            return {"project_id": project_id, "deleted": True}
        except BerthError as e:
            return {"error": type(e).__name__, "message": str(e)}
