"""ARMテンプレートのバリデーションロジック。"""

import re
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import yaml

from berth.models.errors import TemplateValidationError
from berth.models.validation import ValidationResult, ValidationRule

_RESOURCE_ID_RE = re.compile(r"^\[\s*resourceId\(\s*'(?P<type>[^']+)'\s*,\s*(?P<names>.+)\)\s*\]$", re.DOTALL)
_REFERENCE_RE = re.compile(r"reference\(\s*resourceId\(\s*'(?P<type>[^']+)'\s*,\s*(?P<names>[^()]*(?:\([^()]*\)[^()]*)*)\)")
_PARAMETER_REF_RE = re.compile(r"parameters\(\s*'(?P<name>[^']+)'\s*\)")
_VARIABLE_REF_RE = re.compile(r"variables\(\s*'(?P<name>[^']+)'\s*\)")


def is_expression(value: Any) -> bool:
    """文字列がARMテンプレート式かどうか（"[[" で始まるリテラルは除く）。"""
    return isinstance(value, str) and value.startswith("[") and value.endswith("]") and not value.startswith("[[")


def _split_args(args: str) -> list[str]:
    """関数引数をトップレベルのカンマで分割する。"""
    parts: list[str] = []
    depth = 0
    in_quote = False
    current: list[str] = []
    i = 0
    while i < len(args):
        ch = args[i]
        if in_quote:
            current.append(ch)
            if ch == "'":
                # '' はエスケープされたシングルクォート
                if i + 1 < len(args) and args[i + 1] == "'":
                    current.append("'")
                    i += 1
                else:
                    in_quote = False
        elif ch == "'":
            in_quote = True
            current.append(ch)
        elif ch in "([":
            depth += 1
            current.append(ch)
        elif ch in ")]":
            depth -= 1
            current.append(ch)
        elif ch == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
        i += 1
    if current:
        parts.append("".join(current).strip())
    return parts


def name_key(name: str) -> str:
    """リソース名を比較用のキーに正規化する。

    式は括弧を外した中身、リテラルはARM文字列リテラル表記にする。
    """
    if is_expression(name):
        return name[1:-1].strip()
    return "'" + name.replace("'", "''") + "'"


def resource_key(resource: dict[str, Any]) -> str:
    """リソースを "種別/名前キー" で識別する。"""
    return f"{resource.get('type', '')}/{name_key(str(resource.get('name', '')))}"


def dependency_key(dependency: str) -> str:
    """dependsOn の要素をリソースキーに変換する。

    resourceId() 形式以外（名前のみの指定）は名前キーだけを返す。
    """
    match = _RESOURCE_ID_RE.match(dependency.strip())
    if match is None:
        return name_key(dependency)
    names = _split_args(match.group("names"))
    return f"{match.group('type')}/{'/'.join(names)}"


def _resolve_dependency(dependency: str, keys: set[str]) -> str | None:
    dep_key = dependency_key(dependency)
    if dep_key in keys:
        return dep_key
    # 名前のみの指定は種別を問わず一致させる
    for key in keys:
        if key.endswith(f"/{dep_key}"):
            return key
    return None


def deployment_order(template: dict[str, Any]) -> list[str]:
    """dependsOn に従ったリソースの作成順序を返す。

    依存関係のないリソース同士はテンプレートの記載順を保つ。

    Raises:
        TemplateValidationError: 依存関係に循環がある場合。
    """
    resources: list[dict[str, Any]] = template.get("resources", [])
    keys = [resource_key(r) for r in resources]
    key_set = set(keys)
    edges: dict[str, set[str]] = {key: set() for key in keys}
    for key, resource in zip(keys, resources, strict=True):
        for dependency in resource.get("dependsOn", []):
            resolved = _resolve_dependency(dependency, key_set)
            if resolved is not None and resolved != key:
                edges[key].add(resolved)

    order: list[str] = []
    done: set[str] = set()
    while len(order) < len(keys):
        ready = [k for k in keys if k not in done and edges[k] <= done]
        if not ready:
            cyclic = [k for k in keys if k not in done]
            raise TemplateValidationError(f"Dependency cycle between resources: {', '.join(cyclic)}")
        for key in ready:
            order.append(key)
            done.add(key)
    return order


def _iter_strings(value: Any) -> Iterator[str]:
    if isinstance(value, str):
        yield value
    elif isinstance(value, dict):
        for item in value.values():
            yield from _iter_strings(item)
    elif isinstance(value, list):
        for item in value:
            yield from _iter_strings(item)


def _get_path(data: dict[str, Any], dotted: str) -> tuple[bool, Any]:
    current: Any = data
    for part in dotted.split("."):
        if not isinstance(current, dict) or part not in current:
            return False, None
        current = current[part]
    return True, current


class TemplateValidator:
    """バリデーションルールに基づくARMテンプレート検証を行う。"""

    def __init__(self, config_dir: Path) -> None:
        self._config_dir = config_dir
        self._rules: list[ValidationRule] | None = None

    def _load_rules(self) -> list[ValidationRule]:
        """バリデーションルールをYAMLファイルから読み込む。"""
        if self._rules is not None:
            return self._rules

        rules: list[ValidationRule] = []
        rules_dir = self._config_dir / "validation-rules"
        if not rules_dir.exists():
            self._rules = rules
            return rules

        for rule_file in sorted(rules_dir.glob("*.yaml")):
            with open(rule_file, encoding="utf-8") as f:
                data = yaml.safe_load(f)
            if data and "rules" in data:
                for rule_data in data["rules"]:
                    rules.append(ValidationRule.model_validate(rule_data))

        self._rules = rules
        return rules

    @property
    def rules(self) -> list[ValidationRule]:
        """YAMLから読み込んだバリデーションルール。"""
        return self._load_rules()

    def validate(
        self,
        template: dict[str, Any],
        ui_definition: dict[str, Any] | None = None,
    ) -> list[ValidationResult]:
        """ARMテンプレートをバリデーションルールに基づいて検証する。

        Args:
            template: mainTemplate.json の内容。
            ui_definition: createUiDefinition.json の内容（任意）。

        Returns:
            検出された問題のリスト。問題がない場合は空リスト。
        """
        results: list[ValidationResult] = []
        for rule in self._load_rules():
            results.extend(self._apply_rule(rule, template))

        # テンプレート全体に対するバリデーション（コードベースのルール）
        results.extend(self._check_dependencies(template))
        results.extend(self._check_unique_names(template))
        results.extend(self._check_references(template))
        if ui_definition is not None:
            results.extend(self._check_ui_outputs(template, ui_definition))
        return results

    def _apply_rule(self, rule: ValidationRule, template: dict[str, Any]) -> list[ValidationResult]:
        """単一のバリデーションルールを適用する。"""
        condition = rule.condition
        if "resource_type" in condition:
            return self._apply_resource_rule(rule, template)
        if "parameter_name_pattern" in condition or "parameter_type" in condition:
            return self._apply_parameter_rule(rule, template)
        if condition.get("section") == "outputs":
            return self._apply_outputs_rule(rule, template)
        return []

    def _result(self, rule: ValidationRule, affected: list[str], detail: str = "") -> ValidationResult:
        message = f"{rule.description}: {detail}" if detail else rule.description
        return ValidationResult(
            severity=rule.severity,
            rule_id=rule.id,
            message=message,
            affected_resources=affected,
            recommendation=rule.recommendation,
        )

    def _apply_resource_rule(self, rule: ValidationRule, template: dict[str, Any]) -> list[ValidationResult]:
        results: list[ValidationResult] = []
        target_type = rule.condition["resource_type"]
        requirement = rule.requirement
        type_by_key = {resource_key(r): str(r.get("type", "")) for r in template.get("resources", [])}
        key_set = set(type_by_key)

        for resource in template.get("resources", []):
            if target_type != "*" and resource.get("type") != target_type:
                continue
            key = resource_key(resource)

            for path in requirement.get("properties_present", []):
                present, _ = _get_path(resource, path)
                if not present:
                    results.append(self._result(rule, [key], f"missing '{path}'"))

            for path in requirement.get("expression_fields", []):
                present, value = _get_path(resource, path)
                if present and not is_expression(value):
                    results.append(self._result(rule, [key], f"'{path}' is hardcoded as {value!r}"))

            depended_types: set[str] = set()
            for dependency in resource.get("dependsOn", []):
                resolved = _resolve_dependency(dependency, key_set)
                if resolved is not None:
                    depended_types.add(type_by_key[resolved])
            for required in requirement.get("depends_on_types", []):
                if required not in depended_types:
                    results.append(self._result(rule, [key], f"does not depend on {required}"))
        return results

    def _apply_parameter_rule(self, rule: ValidationRule, template: dict[str, Any]) -> list[ValidationResult]:
        results: list[ValidationResult] = []
        pattern = rule.condition.get("parameter_name_pattern")
        param_type = rule.condition.get("parameter_type")
        requirement = rule.requirement

        for name, definition in template.get("parameters", {}).items():
            if pattern is not None and not re.search(pattern, name):
                continue
            if param_type is not None and str(definition.get("type", "")).lower() != param_type.lower():
                continue
            affected = [f"parameters/{name}"]
            expected_type = requirement.get("parameter_type")
            if expected_type is not None and str(definition.get("type", "")).lower() != expected_type.lower():
                results.append(self._result(rule, affected, f"'{name}' has type {definition.get('type')!r}"))
            if requirement.get("no_default_value") and "defaultValue" in definition:
                results.append(self._result(rule, affected, f"'{name}' has a default value"))
        return results

    def _apply_outputs_rule(self, rule: ValidationRule, template: dict[str, Any]) -> list[ValidationResult]:
        results: list[ValidationResult] = []
        outputs: dict[str, Any] = template.get("outputs", {})
        requirement = rule.requirement

        min_items = requirement.get("min_items")
        if min_items is not None and len(outputs) < int(min_items):
            results.append(self._result(rule, ["outputs"], f"{len(outputs)} output(s) declared"))

        if requirement.get("no_secure_parameters"):
            secure = {
                name
                for name, definition in template.get("parameters", {}).items()
                if str(definition.get("type", "")).lower() in ("securestring", "secureobject")
            }
            for name, output in outputs.items():
                referenced = {
                    m.group("name") for s in _iter_strings(output) for m in _PARAMETER_REF_RE.finditer(s)
                }
                leaked = sorted(referenced & secure)
                if leaked:
                    results.append(self._result(rule, [f"outputs/{name}"], f"exposes {', '.join(leaked)}"))

        for output_type in requirement.get("output_types", []):
            for name, output in outputs.items():
                if str(output.get("type", "")).lower() != output_type.lower():
                    results.append(self._result(rule, [f"outputs/{name}"], f"type is {output.get('type')!r}"))
        return results

    def _check_dependencies(self, template: dict[str, Any]) -> list[ValidationResult]:
        """dependsOn と reference() が宣言済みリソースを指しているか、循環がないかを検証する。"""
        results: list[ValidationResult] = []
        resources: list[dict[str, Any]] = template.get("resources", [])
        key_set = {resource_key(r) for r in resources}

        for resource in resources:
            key = resource_key(resource)
            for dependency in resource.get("dependsOn", []):
                if _resolve_dependency(dependency, key_set) is None:
                    results.append(
                        ValidationResult(
                            severity="error",
                            rule_id="depends-on-undeclared",
                            message=f"dependsOn refers to a resource that is not declared: {dependency}",
                            affected_resources=[key],
                            recommendation="Declare the resource in the template or remove the dependency.",
                        )
                    )

        for text in _iter_strings(template.get("outputs", {})):
            for match in _REFERENCE_RE.finditer(text):
                names = _split_args(match.group("names"))
                ref_key = f"{match.group('type')}/{'/'.join(names)}"
                if ref_key not in key_set:
                    results.append(
                        ValidationResult(
                            severity="error",
                            rule_id="reference-undeclared",
                            message=f"Output references a resource that is not declared: {ref_key}",
                            affected_resources=["outputs"],
                            recommendation="Reference only resources declared in the same template.",
                        )
                    )

        try:
            deployment_order(template)
        except TemplateValidationError as e:
            results.append(
                ValidationResult(
                    severity="error",
                    rule_id="dependency-cycle",
                    message=str(e),
                    affected_resources=sorted(key_set),
                    recommendation="Remove one of the dependsOn edges so resources can be created in order.",
                )
            )
        return results

    def _check_unique_names(self, template: dict[str, Any]) -> list[ValidationResult]:
        """同一種別・同一名のリソースが重複していないか検証する。"""
        seen: set[str] = set()
        results: list[ValidationResult] = []
        for resource in template.get("resources", []):
            key = resource_key(resource)
            if key in seen:
                results.append(
                    ValidationResult(
                        severity="error",
                        rule_id="duplicate-resource",
                        message=f"Resource declared more than once: {key}",
                        affected_resources=[key],
                        recommendation="Resource names must be unique per type within the resource group.",
                    )
                )
            seen.add(key)
        return results

    def _check_references(self, template: dict[str, Any]) -> list[ValidationResult]:
        """式中の parameters()/variables() 参照が宣言済みか、宣言が使われているかを検証する。"""
        parameters = set(template.get("parameters", {}))
        variables = set(template.get("variables", {}))
        sections = {
            "variables": template.get("variables", {}),
            "resources": template.get("resources", []),
            "outputs": template.get("outputs", {}),
        }

        results: list[ValidationResult] = []
        missing_params: set[str] = set()
        missing_vars: set[str] = set()
        used_params: set[str] = set()
        used_vars: set[str] = set()
        for section in sections.values():
            for text in _iter_strings(section):
                if not is_expression(text):
                    continue
                for match in _PARAMETER_REF_RE.finditer(text):
                    used_params.add(match.group("name"))
                    if match.group("name") not in parameters:
                        missing_params.add(match.group("name"))
                for match in _VARIABLE_REF_RE.finditer(text):
                    used_vars.add(match.group("name"))
                    if match.group("name") not in variables:
                        missing_vars.add(match.group("name"))

        for name in sorted(missing_params):
            results.append(
                ValidationResult(
                    severity="error",
                    rule_id="undeclared-parameter",
                    message=f"Expression references an undeclared parameter: {name}",
                    affected_resources=[f"parameters/{name}"],
                    recommendation="Declare the parameter in the parameters section.",
                )
            )
        for name in sorted(missing_vars):
            results.append(
                ValidationResult(
                    severity="error",
                    rule_id="undeclared-variable",
                    message=f"Expression references an undeclared variable: {name}",
                    affected_resources=[f"variables/{name}"],
                    recommendation="Declare the variable in the variables section.",
                )
            )
        for name in sorted(parameters - used_params):
            results.append(
                ValidationResult(
                    severity="warning",
                    rule_id="unused-parameter",
                    message=f"Parameter is declared but never used: {name}",
                    affected_resources=[f"parameters/{name}"],
                    recommendation="Remove the parameter or reference it from a resource.",
                )
            )
        for name in sorted(variables - used_vars):
            results.append(
                ValidationResult(
                    severity="warning",
                    rule_id="unused-variable",
                    message=f"Variable is declared but never used: {name}",
                    affected_resources=[f"variables/{name}"],
                    recommendation="Remove the variable or reference it from a resource or output.",
                )
            )
        return results

    def _check_ui_outputs(self, template: dict[str, Any], ui_definition: dict[str, Any]) -> list[ValidationResult]:
        """UI定義の出力がテンプレートの必須パラメータを全て満たしているかを検証する。"""
        outputs = ui_definition.get("parameters", {}).get("outputs", {})
        results: list[ValidationResult] = []
        for name, definition in template.get("parameters", {}).items():
            if "defaultValue" in definition:
                continue
            if name not in outputs:
                results.append(
                    ValidationResult(
                        severity="error",
                        rule_id="ui-output-missing",
                        message=f"createUiDefinition does not output template parameter: {name}",
                        affected_resources=[f"parameters/{name}"],
                        recommendation="Add the parameter to the outputs of createUiDefinition.json.",
                    )
                )
            elif not is_expression(outputs[name]):
                results.append(
                    ValidationResult(
                        severity="warning",
                        rule_id="ui-output-literal",
                        message=f"createUiDefinition outputs a literal value for parameter: {name}",
                        affected_resources=[f"parameters/{name}"],
                        recommendation="Bind the output to a UI element, e.g. [basics('name')].",
                    )
                )
        for name in outputs:
            if name not in template.get("parameters", {}):
                results.append(
                    ValidationResult(
                        severity="warning",
                        rule_id="ui-output-unknown",
                        message=f"createUiDefinition outputs a value the template does not declare: {name}",
                        affected_resources=[f"parameters/{name}"],
                        recommendation="Remove the output or declare the parameter in mainTemplate.json.",
                    )
                )
        return results
