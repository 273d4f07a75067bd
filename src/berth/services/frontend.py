"""静的フロントエンドページのパラメータ化を行うサービス。"""

import html
import json
import logging
import re
from datetime import UTC, datetime

from berth.config import MissingBackendPolicy
from berth.models.artifacts import FrontendResult
from berth.models.errors import AppProfileNotSetError, FrontendAddressNotFoundError, InvalidParameterError
from berth.models.project import ArtifactRecord
from berth.storage.service import StorageService

logger = logging.getLogger(__name__)

FRONTEND_PATH = "frontend/index.html"

RESOLVER_SCRIPT_ID = "berth-backend-resolver"

# バックエンドアドレスを書き換える対象属性
_REWRITE_ATTRIBUTES = ("src", "href", "action")

# バックエンドアドレスとして受け付けるプロトコル
ALLOWED_BACKEND_PROTOCOLS: tuple[str, ...] = ("http:", "https:")

_ATTR_RE = re.compile(
    r"(?<![\w-])(?P<attr>src|href|action)\s*=\s*(?P<quote>[\"'])(?P<value>.*?)(?P=quote)",
    re.IGNORECASE | re.DOTALL,
)

_PARAMETERIZED_ATTR_RE = re.compile(r"(?<![\w-])data-backend-(?:src|href|action)\s*=", re.IGNORECASE)

_EXISTING_RESOLVER_RE = re.compile(
    rf"\s*<script id=\"{RESOLVER_SCRIPT_ID}\">.*?</script>",
    re.DOTALL,
)

_BODY_CLOSE_RE = re.compile(r"</body\s*>", re.IGNORECASE)

_RESOLVER_TEMPLATE = """<script id="{script_id}">
(function () {{
  var param = {param};
  var policy = {policy};
  var allowed = {protocols};
  var backend = null;
  var raw = new URLSearchParams(window.location.search).get(param);
  if (raw) {{
    if (!/^[a-z][a-z0-9+.-]*:\\/\\//i.test(raw)) {{
      raw = "http://" + raw;
    }}
    try {{
      var parsed = new URL(raw);
      if (allowed.indexOf(parsed.protocol) !== -1) {{
        backend = parsed.href.replace(/\\/+$/, "");
      }}
    }} catch (e) {{
      backend = null;
    }}
  }}
  if (!backend) {{
    if (policy === "same-origin") {{
      backend = window.location.origin;
    }} else {{
      var notice = document.createElement("p");
      notice.id = "berth-backend-missing";
      notice.textContent = "Missing or invalid '" + param + "' query parameter: the backend address is not configured.";
      document.body.insertBefore(notice, document.body.firstChild);
      return;
    }}
  }}
  {attributes}.forEach(function (attr) {{
    document.querySelectorAll("[data-backend-" + attr + "]").forEach(function (el) {{
      el.setAttribute(attr, backend + el.getAttribute("data-backend-" + attr));
    }});
  }});
}})();
</script>"""


def render_resolver_script(query_parameter: str, policy: MissingBackendPolicy) -> str:
    """クエリパラメータからバックエンドアドレスを解決するスクリプトを生成する。"""
    return _RESOLVER_TEMPLATE.format(
        script_id=RESOLVER_SCRIPT_ID,
        param=json.dumps(query_parameter),
        policy=json.dumps(policy),
        protocols=json.dumps(list(ALLOWED_BACKEND_PROTOCOLS)),
        attributes=json.dumps(list(_REWRITE_ATTRIBUTES)),
    )


def rewrite_backend_attributes(page: str, hardcoded_address: str) -> tuple[str, int]:
    """ハードコードされたアドレスを参照する属性を data-backend-* 属性に置き換える。

    アドレスに続く文字がパス区切りでない場合（例: :80 と :8080）は置換しない。

    Returns:
        置換後のHTMLと置換件数のタプル。
    """
    address = hardcoded_address.rstrip("/")
    count = 0

    def _replace(match: re.Match[str]) -> str:
        nonlocal count
        value = html.unescape(match.group("value"))
        if not value.startswith(address):
            return match.group(0)
        rest = value[len(address) :]
        if rest and rest[0] not in "/?#":
            return match.group(0)
        count += 1
        attr = match.group("attr").lower()
        return f'data-backend-{attr}="{html.escape(rest, quote=True)}"'

    return _ATTR_RE.sub(_replace, page), count


def inject_resolver(page: str, script: str) -> str:
    """解決スクリプトを </body> の直前に挿入する。既存のスクリプトは置き換える。"""
    page = _EXISTING_RESOLVER_RE.sub("", page)
    matches = list(_BODY_CLOSE_RE.finditer(page))
    if not matches:
        return f"{page.rstrip()}\n{script}\n"
    start = matches[-1].start()
    return f"{page[:start]}{script}\n{page[start:]}"


class FrontendService:
    """静的フロントエンドページのパラメータ化を行う。"""

    def __init__(self, storage: StorageService, missing_backend: MissingBackendPolicy = "notice") -> None:
        self._storage = storage
        self._missing_backend = missing_backend

    async def parameterize_frontend(
        self,
        project_id: str,
        page: str,
        hardcoded_address: str,
    ) -> FrontendResult:
        """HTMLページのハードコードされたバックエンドアドレスをクエリパラメータ参照に置き換える。

        Args:
            project_id: プロジェクトID。
            page: 元のHTML。
            hardcoded_address: 置き換え対象のアドレス（例: "http://localhost:8080"）。

        Returns:
            パラメータ化結果。

        Raises:
            ProjectNotFoundError: プロジェクトが存在しない場合。
            AppProfileNotSetError: アプリケーションプロファイルが未設定の場合。
            InvalidParameterError: アドレスが空の場合。
            FrontendAddressNotFoundError: アドレスがページ内に見つからず、未パラメータ化の場合。
        """
        if not hardcoded_address.strip():
            raise InvalidParameterError("hardcoded_address", "must not be empty")

        project = await self._storage.load_project(project_id)
        if project.app is None:
            raise AppProfileNotSetError(project_id)

        rewritten, count = rewrite_backend_attributes(page, hardcoded_address.strip())
        already_parameterized = _PARAMETERIZED_ATTR_RE.search(rewritten) is not None
        if count == 0 and not already_parameterized:
            raise FrontendAddressNotFoundError(hardcoded_address)

        query_parameter = project.app.query_parameter
        content = inject_resolver(rewritten, render_resolver_script(query_parameter, self._missing_backend))
        path = await self._storage.write_artifact(project_id, FRONTEND_PATH, content)
        logger.info(f"Parameterized frontend for project {project_id}: {count} attribute(s) rewritten")

        project.frontend = ArtifactRecord(path=str(path))
        project.updated_at = datetime.now(UTC)
        await self._storage.save_project(project)

        return FrontendResult(
            content=content,
            path=str(path),
            replaced=count,
            query_parameter=query_parameter,
            example_url=(
                f"https://<static-site-hostname>/?{query_parameter}="
                f"http://<vm-fqdn>{project.app.backend_url_suffix()}"
            ),
        )
