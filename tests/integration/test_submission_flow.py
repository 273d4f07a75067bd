"""提出チェックリストフローのMCPプロトコル経由統合テスト。"""

import json
from pathlib import Path

import pytest
import yaml
from fastmcp import Client

from berth.config import ServerConfig
from berth.server import create_server


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


class TestSubmissionFlowViaMCP:
    async def test_complete_and_reset_steps(self, mcp_server: object) -> None:
        async with Client(mcp_server) as client:  # type: ignore[arg-type]
            result = await client.call_tool("create_project", {"offer_name": "Contoso Shop"})
            project_id = parse_tool_result(result)["project_id"]

            checklist = parse_tool_result(await client.call_tool("get_checklist", {"project_id": project_id}))
            assert checklist["steps"][0]["step"]["id"] == "create_offer"
            assert checklist["steps"][0]["ready"] is True

            blocked = parse_tool_result(
                await client.call_tool("complete_step", {"project_id": project_id, "step_id": "offer_setup"})
            )
            assert blocked["error"] == "StepPrerequisiteError"

            done = parse_tool_result(
                await client.call_tool(
                    "complete_step",
                    {"project_id": project_id, "step_id": "create_offer", "note": "contoso-shop"},
                )
            )
            assert done["state"]["status"] == "completed"

            exported = parse_tool_result(await client.call_tool("export_checklist", {"project_id": project_id}))
            assert "- [x] **Create an Azure Application offer**" in exported["markdown"]

            reset = parse_tool_result(
                await client.call_tool("reset_step", {"project_id": project_id, "step_id": "create_offer"})
            )
            assert reset["reset"] == ["create_offer"]

    async def test_unknown_step_returns_error(self, mcp_server: object) -> None:
        async with Client(mcp_server) as client:  # type: ignore[arg-type]
            result = await client.call_tool("create_project", {"offer_name": "Shop"})
            project_id = parse_tool_result(result)["project_id"]

            data = parse_tool_result(
                await client.call_tool("complete_step", {"project_id": project_id, "step_id": "unknown"})
            )
            assert data["error"] == "StepNotFoundError"


class TestResourcesViaMCP:
    async def test_read_checklist_resource(self, mcp_server: object) -> None:
        async with Client(mcp_server) as client:  # type: ignore[arg-type]
            contents = await client.read_resource("berth://submission/checklist")
            data = yaml.safe_load(contents[0].text)  # type: ignore[union-attr]
            assert [s["id"] for s in data["steps"]][-1] == "go_live"

    async def test_read_validation_rules_resource(self, mcp_server: object) -> None:
        async with Client(mcp_server) as client:  # type: ignore[arg-type]
            contents = await client.read_resource("berth://template/validation-rules")
            data = yaml.safe_load(contents[0].text)  # type: ignore[union-attr]
            assert "password-securestring" in {r["id"] for r in data["rules"]}
