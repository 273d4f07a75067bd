"""FastMCPベースのMCPサーバーエントリポイント。"""

from fastmcp import FastMCP
from starlette.requests import Request
from starlette.responses import JSONResponse

from berth.config import ServerConfig
from berth.prompts.workflow import register_workflow_prompts
from berth.resources.submission import register_submission_resources
from berth.resources.template import register_template_resources
from berth.services.bootconfig import BootConfigService
from berth.services.frontend import FrontendService
from berth.services.package import PackageService
from berth.services.project import ProjectService
from berth.services.submission import SubmissionService
from berth.services.template import TemplateService
from berth.storage.service import StorageService
from berth.tools.artifacts import register_artifact_tools
from berth.tools.package import register_package_tools
from berth.tools.project import register_project_tools
from berth.tools.submission import register_submission_tools
from berth.tools.template import register_template_tools


def create_server(config: ServerConfig | None = None) -> FastMCP:
    """berth MCPサーバーを作成し、ツール・リソース・プロンプトを登録する。

    Args:
        config: サーバー設定。Noneの場合はデフォルト設定を使用。

    Returns:
        設定済みのFastMCPインスタンス。
    """
    if config is None:
        config = ServerConfig()

    mcp = FastMCP("berth")

    # データアクセス層
    storage = StorageService(data_dir=config.data_dir)

    # サービス層
    submission_service = SubmissionService(storage=storage, config_dir=config.config_dir)
    project_service = ProjectService(storage=storage, submission_service=submission_service, config=config)
    boot_config_service = BootConfigService(storage=storage)
    frontend_service = FrontendService(storage=storage, missing_backend=config.missing_backend)
    template_service = TemplateService(
        storage=storage,
        boot_config_service=boot_config_service,
        submission_service=submission_service,
        config_dir=config.config_dir,
    )
    package_service = PackageService(storage=storage, template_service=template_service)

    # MCPインターフェース登録: プロジェクト層
    register_project_tools(mcp, project_service)

    # MCPインターフェース登録: 成果物層
    register_artifact_tools(mcp, boot_config_service, frontend_service)
    register_template_tools(mcp, template_service)
    register_template_resources(mcp, config.config_dir)
    register_package_tools(mcp, package_service)

    # MCPインターフェース登録: 提出層
    register_submission_tools(mcp, submission_service)
    register_submission_resources(mcp, config.config_dir)

    # MCPインターフェース登録: プロンプト
    register_workflow_prompts(mcp)

    # ヘルスチェックエンドポイント
    @mcp.custom_route("/health", methods=["GET"])
    async def health_check(request: Request) -> JSONResponse:
        return JSONResponse({"status": "ok"})

    return mcp
