"""パッケージングフローのMCPプロトコル経由統合テスト。"""

import json
from pathlib import Path

import pytest
from fastmcp import Client

from berth.config import ServerConfig
from berth.server import create_server

COMPOSE_URL = "https://raw.githubusercontent.com/contoso/shop/main/docker-compose.yml"

PAGE = """<html><body>
<img src="http://localhost:8080/static/logo.png">
<form action="http://localhost:8080/api/orders"></form>
</body></html>
"""


@pytest.fixture
def mcp_server(tmp_path: Path) -> object:
    """テスト用MCPサーバー。"""
    config = ServerConfig(data_dir=tmp_path / "berth-test", config_dir=Path(__file__).parent.parent.parent / "config")
    return create_server(config)


def parse_tool_result(result: object) -> dict:  # type: ignore[type-arg]
    """CallToolResultからJSONデータを抽出する。"""
    content = result.content  # type: ignore[union-attr]
    assert len(content) > 0
    return json.loads(content[0].text)  # type: ignore[union-attr]


async def _create_project_via_mcp(client: Client) -> str:  # type: ignore[type-arg]
    """MCPプロトコル経由でアプリケーションプロファイル設定済みのプロジェクトを作成する。"""
    result = await client.call_tool("create_project", {"offer_name": "Contoso Shop"})
    project_id = parse_tool_result(result)["project_id"]
    await client.call_tool(
        "set_app_profile",
        {"project_id": project_id, "compose_url": COMPOSE_URL, "backend_port": 8080},
    )
    return project_id


class TestToolsRegistration:
    async def test_tools_are_registered(self, mcp_server: object) -> None:
        """パッケージング系ツールがMCPサーバーに登録されている。"""
        async with Client(mcp_server) as client:  # type: ignore[arg-type]
            tools = await client.list_tools()
            tool_names = {t.name for t in tools}
            assert {
                "create_project",
                "get_project",
                "list_projects",
                "set_app_profile",
                "delete_project",
                "generate_boot_config",
                "validate_boot_config",
                "parameterize_frontend",
                "generate_template",
                "validate_template",
                "get_deployment_order",
                "build_package",
                "inspect_package",
            } <= tool_names

    async def test_resources_and_prompts_are_registered(self, mcp_server: object) -> None:
        async with Client(mcp_server) as client:  # type: ignore[arg-type]
            resources = await client.list_resources()
            uris = {str(r.uri) for r in resources}
            assert "berth://template/validation-rules" in uris
            assert "berth://submission/checklist" in uris

            prompts = await client.list_prompts()
            names = {p.name for p in prompts}
            assert "solution_template_workflow" in names
            assert "package_only" in names


class TestPackagingFlowViaMCP:
    async def test_full_packaging_flow(self, mcp_server: object) -> None:
        async with Client(mcp_server) as client:  # type: ignore[arg-type]
            project_id = await _create_project_via_mcp(client)

            boot = parse_tool_result(await client.call_tool("generate_boot_config", {"project_id": project_id}))
            assert boot["content"].startswith("#cloud-config")
            assert boot["warnings"]

            frontend = parse_tool_result(
                await client.call_tool(
                    "parameterize_frontend",
                    {"project_id": project_id, "html": PAGE, "hardcoded_address": "http://localhost:8080"},
                )
            )
            assert frontend["replaced"] == 2

            template = parse_tool_result(await client.call_tool("generate_template", {"project_id": project_id}))
            assert template["validation"] == []
            assert "appUrl" in template["main_template"]["outputs"]

            validation = parse_tool_result(await client.call_tool("validate_template", {"project_id": project_id}))
            assert validation["valid"] is True

            order = parse_tool_result(await client.call_tool("get_deployment_order", {"project_id": project_id}))
            types = ["/".join(key.split("/")[:2]) for key in order["deployment_order"]]
            assert types.index("Microsoft.Compute/virtualMachines") > types.index("Microsoft.Network/networkInterfaces")

            package = parse_tool_result(await client.call_tool("build_package", {"project_id": project_id}))
            assert "mainTemplate.json" in package["files"]

            inspection = parse_tool_result(await client.call_tool("inspect_package", {"project_id": project_id}))
            assert inspection["valid"] is True

            project = parse_tool_result(await client.call_tool("get_project", {"project_id": project_id}))
            assert project["package"]["sha256"] == package["sha256"]

    async def test_template_before_profile_returns_error(self, mcp_server: object) -> None:
        async with Client(mcp_server) as client:  # type: ignore[arg-type]
            result = await client.call_tool("create_project", {"offer_name": "Shop"})
            project_id = parse_tool_result(result)["project_id"]

            data = parse_tool_result(await client.call_tool("generate_template", {"project_id": project_id}))
            assert data["error"] == "AppProfileNotSetError"

    async def test_build_package_before_template_returns_error(self, mcp_server: object) -> None:
        async with Client(mcp_server) as client:  # type: ignore[arg-type]
            project_id = await _create_project_via_mcp(client)
            data = parse_tool_result(await client.call_tool("build_package", {"project_id": project_id}))
            assert data["error"] == "ArtifactNotGeneratedError"

    async def test_unknown_project_returns_error(self, mcp_server: object) -> None:
        async with Client(mcp_server) as client:  # type: ignore[arg-type]
            data = parse_tool_result(await client.call_tool("get_project", {"project_id": "nonexistent"}))
            assert data["error"] == "ProjectNotFoundError"

    async def test_validate_boot_config_via_mcp(self, mcp_server: object) -> None:
        async with Client(mcp_server) as client:  # type: ignore[arg-type]
            ok = parse_tool_result(
                await client.call_tool("validate_boot_config", {"content": "#cloud-config\nruncmd: [ls]\n"})
            )
            assert ok["valid"] is True

            bad = parse_tool_result(await client.call_tool("validate_boot_config", {"content": "runcmd: [ls]\n"}))
            assert bad["error"] == "BootConfigError"

    async def test_list_and_delete_projects(self, mcp_server: object) -> None:
        async with Client(mcp_server) as client:  # type: ignore[arg-type]
            project_id = await _create_project_via_mcp(client)
            listed = parse_tool_result(await client.call_tool("list_projects", {}))
            assert listed["project_ids"] == [project_id]

            deleted = parse_tool_result(await client.call_tool("delete_project", {"project_id": project_id}))
            assert deleted["deleted"] is True
            listed = parse_tool_result(await client.call_tool("list_projects", {}))
            assert listed["project_ids"] == []
