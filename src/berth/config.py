"""berthサーバーの設定管理。"""

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings

_PACKAGE_ROOT = Path(__file__).parent
_REPO_ROOT = _PACKAGE_ROOT.parent.parent

MissingBackendPolicy = Literal["notice", "same-origin"]


class ServerConfig(BaseSettings):
    """サーバー設定。環境変数から読み込み可能。"""

    model_config = {"env_prefix": "BERTH_"}

    data_dir: Path = _REPO_ROOT / ".berth"
    config_dir: Path = _REPO_ROOT / "config"
    host: str = "0.0.0.0"
    port: int = 8000
    url_token: str = ""
    log_level: str = "INFO"

    # フロントエンド: クエリパラメータが無い場合の挙動
    missing_backend: MissingBackendPolicy = "notice"

    # ARMテンプレートの既定値
    default_vm_size: str = "Standard_B2s"
    default_static_site_location: str = "eastus2"
