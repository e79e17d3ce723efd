"""API クライアント

外部 HTTP API と通信するためのクライアント。
共通リクエストメソッドでエラーハンドリングとログを統一し、
レスポンスは pydantic モデルで検証してから返します。
"""

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from rusty.config import BotSettings
from rusty.exceptions import ApiError
from rusty.models import MemeResult

logger = logging.getLogger(__name__)


class HTTPClient:
    """外部APIクライアントの基底クラス

    全てのHTTPリクエストを共通メソッドで処理します。
    リトライやキャッシュは行いません。
    """

    def __init__(
        self,
        timeout: float = 30.0,
        headers: Optional[dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """クライアントを初期化

        Args:
            timeout: リクエストタイムアウト秒数
            headers: 全リクエストに付与するヘッダー
            transport: httpx のトランスポート（テスト時の差し替え用）
        """
        self.timeout = timeout
        self._headers = headers or {}
        self._transport = transport

    async def _make_request(
        self,
        method: str,
        url: str,
        json_data: Optional[dict[str, Any]] = None,
    ) -> Any:
        """共通HTTPリクエストメソッド

        Args:
            method: HTTPメソッド（GET, POST等）
            url: リクエスト先URL
            json_data: JSONボディ

        Returns:
            レスポンスのJSONデータ

        Raises:
            ApiError: リクエスト失敗時
        """
        logger.debug(
            f"Making {method} request",
            extra={"url": url, "has_json_data": json_data is not None},
        )

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                headers=self._headers,
                transport=self._transport,
            ) as client:
                response = await client.request(method=method, url=url, json=json_data)

        except httpx.TimeoutException as e:
            logger.error(
                "Request timeout",
                extra={"url": url, "timeout": self.timeout},
                exc_info=True,
            )
            raise ApiError(
                f"Request timeout after {self.timeout}s",
                details={"url": url, "timeout": self.timeout},
            ) from e

        except httpx.RequestError as e:
            logger.error(
                "Request error",
                extra={"url": url, "error": str(e)},
                exc_info=True,
            )
            raise ApiError(
                f"Request failed: {e}",
                details={"url": url, "error": str(e)},
            ) from e

        logger.info(
            f"{method} request completed",
            extra={"url": url, "status_code": response.status_code},
        )

        if response.status_code >= 400:
            # レスポンス本文はログに残さない（認証情報がエコーされることがある）
            logger.error(
                f"API request failed with status {response.status_code}",
                extra={"url": url, "status_code": response.status_code},
            )
            raise ApiError(
                f"API request failed: HTTP {response.status_code}",
                status_code=response.status_code,
                details={"url": url},
            )

        try:
            return response.json()
        except ValueError as e:
            logger.error(
                "Failed to parse JSON response",
                extra={"url": url, "error": str(e)},
                exc_info=True,
            )
            raise ApiError(
                f"Failed to parse response JSON: {e}",
                status_code=response.status_code,
                details={"url": url},
            ) from e


class MemeClient(HTTPClient):
    """ミーム画像APIのクライアント"""

    def __init__(
        self,
        api_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(timeout=timeout, transport=transport)
        self.api_url = api_url

        logger.info("Meme client initialized", extra={"api_url": self.api_url})

    @classmethod
    def from_settings(cls, settings: BotSettings) -> "MemeClient":
        return cls(api_url=settings.meme_api_url, timeout=settings.http_timeout)

    async def fetch_meme(self) -> MemeResult:
        """ランダムなミームを1件取得

        Returns:
            タイトル・画像URL・プレビューURL一覧

        Raises:
            ApiError: リクエスト失敗時、またはレスポンスに必要なフィールドがない場合
        """
        data = await self._make_request("GET", self.api_url)

        try:
            meme = MemeResult.model_validate(data)
        except ValidationError as e:
            logger.error(
                "Unexpected meme payload",
                extra={"url": self.api_url, "errors": e.errors(include_input=False)},
            )
            raise ApiError(
                "Invalid response structure from meme service",
                details={"url": self.api_url},
            ) from e

        logger.debug("Meme fetched", extra={"title": meme.title, "url": meme.url})
        return meme
