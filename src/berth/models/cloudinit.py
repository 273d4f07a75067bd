"""cloud-initドキュメントのデータモデル。"""

from pydantic import BaseModel, Field

CLOUD_CONFIG_HEADER = "#cloud-config"


class CloudInitConfig(BaseModel):
    """初回起動時に実行されるcloud-config。

    packagesのインストール後、runcmdが記載順に一度だけ実行される。
    """

    package_update: bool = True
    packages: list[str] = Field(default_factory=list)
    runcmd: list[str | list[str]] = Field(default_factory=list)
