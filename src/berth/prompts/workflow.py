"""ワークフロー統合MCPプロンプト定義。"""

from fastmcp import FastMCP


def register_workflow_prompts(mcp: FastMCP) -> None:
    """ワークフロー系のMCPプロンプトを登録する。"""

    def _project_phase() -> str:
        return (
            "## Phase 1: プロジェクト作成\n\n"
            "1. `create_project` ツールでオファー名を指定してプロジェクトを作成してください。\n"
            "2. **作成されたプロジェクトID（`project_id`）を利用者に必ず提示してください。**"
            " プロジェクトIDは以降の全ての操作で必要です。\n"
            "3. 利用者からdocker-composeファイルの公開URL、バックエンドのポートとパスを確認し、"
            "`set_app_profile` で登録してください。\n\n"
        )

    def _artifact_phase() -> str:
        return (
            "## Phase 2: 起動スクリプトとフロントエンド\n\n"
            "1. `generate_boot_config` ツールでcloud-initドキュメントを生成してください。\n"
            "2. `warnings` の内容（composeファイルのURLがVMから到達可能であること）を利用者に伝えてください。\n"
            "3. 利用者から静的フロントエンドのHTMLとハードコードされたバックエンドアドレスを受け取り、"
            "`parameterize_frontend` で書き換えてください。\n\n"
        )

    def _template_phase() -> str:
        return (
            "## Phase 3: ARMテンプレート\n\n"
            "1. `generate_template` ツールで mainTemplate.json と createUiDefinition.json を生成してください。\n"
            "2. `validation` にerrorがあれば原因を利用者に説明し、`set_app_profile` で設定を修正して再生成してください。\n"
            "3. `deployment_order` でリソースの作成順序を確認してください。\n\n"
        )

    def _package_phase() -> str:
        return (
            "## Phase 4: パッケージ\n\n"
            "1. `build_package` ツールでzipパッケージをビルドしてください。\n"
            "2. `inspect_package` でルートに mainTemplate.json と createUiDefinition.json があることを確認してください。\n\n"
        )

    def _submission_phase() -> str:
        return (
            "## Phase 5: Partner Center提出\n\n"
            "1. `get_checklist` ツールで提出チェックリストを取得してください。\n"
            "2. `ready` が true の項目から順に、Partner Centerでの操作手順を利用者に案内してください。\n"
            "3. 利用者が操作を終えたら `complete_step` で完了にしてください。\n"
            "4. 最後に `export_checklist` で進捗をMarkdownとして提示してください。\n\n"
        )

    def _notes() -> str:
        return (
            "## 注意事項\n\n"
            "- **プロジェクトIDは利用者が後続の操作で参照できるよう、必ず明示的に伝えてください。**\n"
            "- `set_app_profile` で設定を変更すると生成済みの成果物は破棄されます。再生成してください。\n"
            "- バリデーション結果のerrorは必ず対応してください。warningは推奨事項です。\n"
            "- berthはAzureへのデプロイやPartner Centerへの提出を代行しません。操作は利用者が行います。\n"
        )

    @mcp.prompt()
    async def solution_template_workflow() -> str:
        """Solution Templateのパッケージングから提出までのエンドツーエンドワークフロー。

        プロジェクト作成→cloud-init→フロントエンド→ARMテンプレート→パッケージ→
        Partner Center提出までのフローをガイドします。
        """
        return (
            "# Azure Marketplace Solution Template パッケージングワークフロー\n\n"
            "コンテナ化されたWebアプリケーションをSolution Templateとして提出できる形にします。\n\n"
            + _project_phase()
            + _artifact_phase()
            + _template_phase()
            + _package_phase()
            + _submission_phase()
            + _notes()
        )

    @mcp.prompt()
    async def package_only(project_id: str) -> str:
        """設定済みプロジェクトの成果物を再生成してパッケージをビルドするためのプロンプト。

        Args:
            project_id: プロジェクトID。
        """
        return (
            f"プロジェクト `{project_id}` の成果物を再生成し、パッケージをビルドします。\n\n"
            + _template_phase()
            + _package_phase()
            + _notes()
        )
