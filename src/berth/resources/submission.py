"""提出チェックリスト関連のMCPリソース定義。"""

from pathlib import Path

import yaml
from fastmcp import FastMCP


def register_submission_resources(mcp: FastMCP, config_dir: Path) -> None:
    """提出チェックリスト関連のMCPリソースを登録する。"""

    @mcp.resource("berth://submission/checklist")
    async def submission_checklist() -> str:
        """Partner Center提出チェックリストの定義を取得する。

        各項目のID、フェーズ、説明、前提となる項目と成果物を返します。
        """
        checklist_file = config_dir / "submission-checklist.yaml"
        with open(checklist_file, encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return yaml.dump(data, allow_unicode=True, default_flow_style=False)
