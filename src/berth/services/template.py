"""ARMテンプレート（mainTemplate.json / createUiDefinition.json）の生成を行うサービス。"""

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from berth.models.artifacts import TemplateResult
from berth.models.errors import AppProfileNotSetError, ArtifactNotGeneratedError
from berth.models.project import AppProfile, ArtifactRecord, Project
from berth.models.validation import ValidationResult
from berth.services.bootconfig import BootConfigService
from berth.services.submission import SubmissionService
from berth.storage.service import StorageService
from berth.validators.template import TemplateValidator, deployment_order

logger = logging.getLogger(__name__)

MAIN_TEMPLATE_PATH = "mainTemplate.json"
UI_DEFINITION_PATH = "createUiDefinition.json"

DEPLOYMENT_TEMPLATE_SCHEMA = "https://schema.management.azure.com/schemas/2019-04-01/deploymentTemplate.json#"
UI_DEFINITION_SCHEMA = "https://schema.management.azure.com/schemas/0.1.2-preview/CreateUIDefinition.MultiVm.json#"

# リソース種別 → apiVersion
_API_VERSIONS: dict[str, str] = {
    "Microsoft.Network/publicIPAddresses": "2023-04-01",
    "Microsoft.Network/networkSecurityGroups": "2023-04-01",
    "Microsoft.Network/virtualNetworks": "2023-04-01",
    "Microsoft.Network/networkInterfaces": "2023-04-01",
    "Microsoft.Compute/virtualMachines": "2023-03-01",
    "Microsoft.Web/staticSites": "2022-09-01",
}

_IMAGE_REFERENCE: dict[str, str] = {
    "publisher": "Canonical",
    "offer": "0001-com-ubuntu-server-jammy",
    "sku": "22_04-lts-gen2",
    "version": "latest",
}

_SSH_PORT = 22
_RULE_PRIORITY_START = 1000
_RULE_PRIORITY_STEP = 10

# UI定義のパスワード要件（Azure VMのパスワード複雑性要件に合わせる）
_PASSWORD_REGEX = r"^(?=.*[A-Z])(?=.*[a-z])(?=.*\d)(?=.*[^A-Za-z0-9]).{12,72}$"
_USERNAME_REGEX = r"^[a-z_][a-z0-9_-]{0,31}$"


def arm_literal(value: str) -> str:
    """ARM式中の文字列リテラルを生成する（シングルクォートはエスケープ）。"""
    return "'" + value.replace("'", "''") + "'"


def arm_variable(name: str) -> str:
    return f"variables({arm_literal(name)})"


def arm_parameter(name: str) -> str:
    return f"parameters({arm_literal(name)})"


def arm_resource_id(resource_type: str, *name_exprs: str) -> str:
    return f"resourceId({', '.join([arm_literal(resource_type), *name_exprs])})"


def expression(body: str) -> str:
    """ARMテンプレート式として評価される文字列に包む。"""
    return f"[{body}]"


def _derived_name(prefix: str, kind: str) -> str:
    return expression(f"concat({arm_literal(f'{prefix}-{kind}-')}, {arm_variable('uniqueToken')})")


def _resource(resource_type: str, name_variable: str, **extra: Any) -> dict[str, Any]:
    resource: dict[str, Any] = {
        "type": resource_type,
        "apiVersion": _API_VERSIONS[resource_type],
        "name": expression(arm_variable(name_variable)),
        "location": expression(arm_parameter("location")),
    }
    resource.update(extra)
    return resource


def _security_rules(app: AppProfile) -> list[dict[str, Any]]:
    """NSGの受信許可ルールを組み立てる（SSH, バックエンド, 追加ポート）。"""
    ports: list[tuple[str, int]] = [("allow-ssh", _SSH_PORT), ("allow-backend", app.backend_port)]
    for port in app.open_ports:
        ports.append((f"allow-port-{port}", port))

    rules: list[dict[str, Any]] = []
    seen: set[int] = set()
    for name, port in ports:
        if port in seen:
            continue
        seen.add(port)
        rules.append(
            {
                "name": name,
                "properties": {
                    "priority": _RULE_PRIORITY_START + _RULE_PRIORITY_STEP * len(rules),
                    "protocol": "Tcp",
                    "access": "Allow",
                    "direction": "Inbound",
                    "sourceAddressPrefix": "*",
                    "sourcePortRange": "*",
                    "destinationAddressPrefix": "*",
                    "destinationPortRange": str(port),
                },
            }
        )
    return rules


def build_main_template(project: Project, cloud_init: str) -> dict[str, Any]:
    """プロジェクトからmainTemplate.jsonを組み立てる。

    利用者が入力するパラメータは管理者ユーザー名とパスワードの2つのみ
    （location は既定値付きでポータルが渡す）。リソース名は
    リソースグループにスコープされた uniqueString から導出する。
    """
    if project.app is None:
        raise AppProfileNotSetError(project.id)
    app = project.app
    prefix = project.name_prefix

    ip_type = "Microsoft.Network/publicIPAddresses"
    nsg_type = "Microsoft.Network/networkSecurityGroups"
    vnet_type = "Microsoft.Network/virtualNetworks"
    nic_type = "Microsoft.Network/networkInterfaces"
    vm_type = "Microsoft.Compute/virtualMachines"
    site_type = "Microsoft.Web/staticSites"

    ip_id = expression(arm_resource_id(ip_type, arm_variable("publicIpName")))
    nsg_id = expression(arm_resource_id(nsg_type, arm_variable("nsgName")))
    vnet_id = expression(arm_resource_id(vnet_type, arm_variable("vnetName")))
    nic_id = expression(arm_resource_id(nic_type, arm_variable("nicName")))
    subnet_id = expression(
        arm_resource_id(f"{vnet_type}/subnets", arm_variable("vnetName"), arm_variable("subnetName"))
    )

    variables: dict[str, Any] = {
        "uniqueToken": "[uniqueString(resourceGroup().id)]",
        "dnsLabel": expression(f"toLower(concat({arm_literal(prefix)}, {arm_variable('uniqueToken')}))"),
        "publicIpName": _derived_name(prefix, "ip"),
        "nsgName": _derived_name(prefix, "nsg"),
        "vnetName": _derived_name(prefix, "vnet"),
        "subnetName": "default",
        "nicName": _derived_name(prefix, "nic"),
        "vmName": _derived_name(prefix, "vm"),
        "staticSiteName": _derived_name(prefix, "web"),
        "staticSiteLocation": app.static_site_location,
        "vmSize": app.vm_size,
        "addressPrefix": "10.0.0.0/16",
        "subnetPrefix": "10.0.0.0/24",
        "cloudInit": cloud_init,
    }

    resources: list[dict[str, Any]] = [
        _resource(
            ip_type,
            "publicIpName",
            sku={"name": "Standard"},
            properties={
                "publicIPAllocationMethod": "Static",
                "dnsSettings": {"domainNameLabel": expression(arm_variable("dnsLabel"))},
            },
        ),
        _resource(nsg_type, "nsgName", properties={"securityRules": _security_rules(app)}),
        _resource(
            vnet_type,
            "vnetName",
            properties={
                "addressSpace": {"addressPrefixes": [expression(arm_variable("addressPrefix"))]},
                "subnets": [
                    {
                        "name": expression(arm_variable("subnetName")),
                        "properties": {"addressPrefix": expression(arm_variable("subnetPrefix"))},
                    }
                ],
            },
        ),
        _resource(
            nic_type,
            "nicName",
            dependsOn=[ip_id, nsg_id, vnet_id],
            properties={
                "ipConfigurations": [
                    {
                        "name": "ipconfig1",
                        "properties": {
                            "privateIPAllocationMethod": "Dynamic",
                            "subnet": {"id": subnet_id},
                            "publicIPAddress": {"id": ip_id},
                        },
                    }
                ],
                "networkSecurityGroup": {"id": nsg_id},
            },
        ),
        _resource(
            vm_type,
            "vmName",
            dependsOn=[nic_id],
            properties={
                "hardwareProfile": {"vmSize": expression(arm_variable("vmSize"))},
                "osProfile": {
                    "computerName": expression(arm_variable("vmName")),
                    "adminUsername": expression(arm_parameter("adminUsername")),
                    "adminPassword": expression(arm_parameter("adminPassword")),
                    "customData": expression(f"base64({arm_variable('cloudInit')})"),
                    "linuxConfiguration": {"disablePasswordAuthentication": False},
                },
                "storageProfile": {
                    "imageReference": dict(_IMAGE_REFERENCE),
                    "osDisk": {
                        "createOption": "FromImage",
                        "managedDisk": {"storageAccountType": "StandardSSD_LRS"},
                    },
                },
                "networkProfile": {"networkInterfaces": [{"id": nic_id}]},
            },
        ),
        _resource(
            site_type,
            "staticSiteName",
            location=expression(arm_variable("staticSiteLocation")),
            sku={"name": "Free", "tier": "Free"},
            properties={},
        ),
    ]

    site_host = f"reference({arm_resource_id(site_type, arm_variable('staticSiteName'))}).defaultHostname"
    vm_fqdn = f"reference({arm_resource_id(ip_type, arm_variable('publicIpName'))}).dnsSettings.fqdn"
    app_url = expression(
        "concat("
        + ", ".join(
            [
                arm_literal("https://"),
                site_host,
                arm_literal(f"/?{app.query_parameter}=http://"),
                vm_fqdn,
                arm_literal(app.backend_url_suffix()),
            ]
        )
        + ")"
    )

    return {
        "$schema": DEPLOYMENT_TEMPLATE_SCHEMA,
        "contentVersion": "1.0.0.0",
        "parameters": {
            "adminUsername": {
                "type": "string",
                "metadata": {"description": "Administrator user name for the virtual machine."},
            },
            "adminPassword": {
                "type": "securestring",
                "metadata": {"description": "Administrator password for the virtual machine."},
            },
            "location": {
                "type": "string",
                "defaultValue": "[resourceGroup().location]",
                "metadata": {"description": "Location for the network and compute resources."},
            },
        },
        "variables": variables,
        "resources": resources,
        "outputs": {
            "appUrl": {"type": "string", "value": app_url},
        },
    }


def build_ui_definition(project: Project) -> dict[str, Any]:
    """createUiDefinition.jsonを組み立てる。

    basicsステップで管理者ユーザー名とパスワードを受け取り、
    mainTemplate.jsonの全パラメータへ出力する。
    """
    return {
        "$schema": UI_DEFINITION_SCHEMA,
        "handler": "Microsoft.Azure.CreateUIDef",
        "version": "0.1.2-preview",
        "parameters": {
            "basics": [
                {
                    "name": "adminUsername",
                    "type": "Microsoft.Compute.UserNameTextBox",
                    "label": "Administrator user name",
                    "toolTip": f"Administrator account for the {project.offer_name} virtual machine.",
                    "osPlatform": "Linux",
                    "constraints": {
                        "required": True,
                        "regex": _USERNAME_REGEX,
                        "validationMessage": (
                            "Lower-case letters, digits, '_' and '-' only; must start with a letter or '_'."
                        ),
                    },
                },
                {
                    "name": "adminPassword",
                    "type": "Microsoft.Common.PasswordBox",
                    "label": {"password": "Password", "confirmPassword": "Confirm password"},
                    "toolTip": "Password for the administrator account.",
                    "constraints": {
                        "required": True,
                        "regex": _PASSWORD_REGEX,
                        "validationMessage": (
                            "12-72 characters with upper-case, lower-case, digit and special character."
                        ),
                    },
                    "options": {"hideConfirmation": False},
                },
            ],
            "steps": [],
            "outputs": {
                "adminUsername": "[basics('adminUsername')]",
                "adminPassword": "[basics('adminPassword')]",
                "location": "[location()]",
            },
        },
    }


class TemplateService:
    """ARMテンプレートの生成と検証を行う。"""

    def __init__(
        self,
        storage: StorageService,
        boot_config_service: BootConfigService,
        submission_service: SubmissionService,
        config_dir: Path,
    ) -> None:
        self._storage = storage
        self._boot_config_service = boot_config_service
        self._submission_service = submission_service
        self._validator = TemplateValidator(config_dir=config_dir)

    async def generate_template(self, project_id: str) -> TemplateResult:
        """mainTemplate.json と createUiDefinition.json を生成する。

        cloud-initドキュメントが未生成の場合は先に生成し、VMのcustomDataに埋め込む。

        Args:
            project_id: プロジェクトID。

        Returns:
            テンプレート生成結果（検証結果を含む）。

        Raises:
            ProjectNotFoundError: プロジェクトが存在しない場合。
            AppProfileNotSetError: アプリケーションプロファイルが未設定の場合。
            TemplateValidationError: 依存関係に循環がある場合。
        """
        project = await self._storage.load_project(project_id)
        if project.app is None:
            raise AppProfileNotSetError(project_id)

        cloud_init = await self._boot_config_service.get_boot_config(project_id)
        # get_boot_config がプロジェクトを更新している可能性があるため再読み込み
        project = await self._storage.load_project(project_id)

        main_template = build_main_template(project, cloud_init)
        ui_definition = build_ui_definition(project)
        order = deployment_order(main_template)
        results = self._validator.validate(main_template, ui_definition)
        for result in results:
            logger.warning(f"[{result.severity}] {result.rule_id}: {result.message}")

        main_path = await self._storage.write_artifact(
            project_id, MAIN_TEMPLATE_PATH, json.dumps(main_template, indent=2, ensure_ascii=False)
        )
        ui_path = await self._storage.write_artifact(
            project_id, UI_DEFINITION_PATH, json.dumps(ui_definition, indent=2, ensure_ascii=False)
        )

        project.template = ArtifactRecord(path=str(main_path))
        project.ui_definition = ArtifactRecord(path=str(ui_path))
        if project.package is not None:
            # 再生成したテンプレートはビルド済みパッケージに含まれていない
            project.package = None
            self._submission_service.invalidate_artifacts(project, ["package"])
        project.updated_at = datetime.now(UTC)
        await self._storage.save_project(project)

        return TemplateResult(
            main_template=main_template,
            ui_definition=ui_definition,
            paths={MAIN_TEMPLATE_PATH: str(main_path), UI_DEFINITION_PATH: str(ui_path)},
            deployment_order=order,
            validation=results,
        )

    async def load_templates(self, project_id: str) -> tuple[dict[str, Any], dict[str, Any]]:
        """生成済みの mainTemplate.json と createUiDefinition.json を読み込む。

        Raises:
            ProjectNotFoundError: プロジェクトが存在しない場合。
            ArtifactNotGeneratedError: テンプレートが未生成の場合。
        """
        project = await self._storage.load_project(project_id)
        if project.template is None:
            raise ArtifactNotGeneratedError(project_id, MAIN_TEMPLATE_PATH)
        if project.ui_definition is None:
            raise ArtifactNotGeneratedError(project_id, UI_DEFINITION_PATH)
        main_template = json.loads(await self._storage.read_artifact(project_id, MAIN_TEMPLATE_PATH))
        ui_definition = json.loads(await self._storage.read_artifact(project_id, UI_DEFINITION_PATH))
        return main_template, ui_definition

    async def validate_template(self, project_id: str) -> list[ValidationResult]:
        """生成済みのARMテンプレートを検証する。

        Args:
            project_id: プロジェクトID。

        Returns:
            検出された問題のリスト。

        Raises:
            ProjectNotFoundError: プロジェクトが存在しない場合。
            ArtifactNotGeneratedError: テンプレートが未生成の場合。
        """
        main_template, ui_definition = await self.load_templates(project_id)
        return self._validator.validate(main_template, ui_definition)

    async def get_deployment_order(self, project_id: str) -> list[str]:
        """生成済みテンプレートのリソース作成順序を返す。

        Raises:
            ArtifactNotGeneratedError: テンプレートが未生成の場合。
            TemplateValidationError: 依存関係に循環がある場合。
        """
        main_template, _ = await self.load_templates(project_id)
        return deployment_order(main_template)
