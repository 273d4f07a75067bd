"""ARMテンプレート関連のMCPリソース定義。"""

from pathlib import Path

import yaml
from fastmcp import FastMCP

from berth.validators.template import TemplateValidator


def register_template_resources(mcp: FastMCP, config_dir: Path) -> None:
    """ARMテンプレート関連のMCPリソースを登録する。"""
    validator = TemplateValidator(config_dir=config_dir)

    @mcp.resource("berth://template/validation-rules")
    async def validation_rules() -> str:
        """Marketplace向けARMテンプレートのバリデーションルールを取得する。

        validate_template / build_package が適用するYAML定義のルールを返します。
        依存関係の循環や未宣言の参照など、コードで実装されたチェックは含みません。
        """
        rules = [rule.model_dump() for rule in validator.rules]
        return yaml.safe_dump({"rules": rules}, allow_unicode=True, sort_keys=False, default_flow_style=False)
