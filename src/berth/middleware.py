"""アクセストークン認証ミドルウェア。"""

import hmac

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

_BEARER_PREFIX = "bearer "


def extract_token(request: Request) -> str:
    """リクエストからアクセストークンを取り出す。

    Authorization: Bearer ヘッダーを優先し、無ければ token クエリパラメータを使う。
    """
    authorization = request.headers.get("authorization", "")
    if authorization.lower().startswith(_BEARER_PREFIX):
        return authorization[len(_BEARER_PREFIX) :].strip()
    return request.query_params.get("token", "")


class TokenAuthMiddleware(BaseHTTPMiddleware):
    """アクセストークンを検証するミドルウェア。

    BERTH_URL_TOKEN が設定されている場合、skip_paths 以外へのリクエストに
    トークンの一致を要求する。未設定の場合は検証しない。
    """

    def __init__(
        self,
        app: ASGIApp,
        url_token: str = "",
        skip_paths: frozenset[str] = frozenset({"/health"}),
    ) -> None:
        super().__init__(app)
        self.url_token = url_token
        self.skip_paths = skip_paths

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not self.url_token or request.url.path in self.skip_paths:
            return await call_next(request)

        token = extract_token(request)
        if not hmac.compare_digest(token.encode("utf-8"), self.url_token.encode("utf-8")):
            return JSONResponse(
                {"error": "Unauthorized", "message": "Invalid or missing access token"},
                status_code=401,
                headers={"WWW-Authenticate": "Bearer"},
            )

        return await call_next(request)
