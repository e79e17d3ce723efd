"""
テキスト補完 API クライアント

OpenAI 互換の /completions エンドポイントと通信する。
プロンプト（会話ログ＋新しい発言）を送り、最初の候補のテキストを返す。
"""

import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from rusty.api_client import HTTPClient
from rusty.config import BotSettings
from rusty.exceptions import ApiError
from rusty.models import CompletionParams, CompletionResponse

logger = logging.getLogger(__name__)


class CompletionClient(HTTPClient):
    """補完APIとのやり取りを行うクライアント"""

    def __init__(
        self,
        api_key: str,
        api_url: str = "https://api.openai.com/v1",
        assistant_name: str = "Ru",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Args:
            api_key: APIキー
            api_url: APIのベースURL
            assistant_name: 応答から取り除く話者名（"Ru" なら "Ru:" を除去）
            timeout: リクエストタイムアウト秒数
            transport: httpx のトランスポート（テスト時の差し替え用）
        """
        if not api_key:
            raise ValueError("Completion API key is empty")

        super().__init__(
            timeout=timeout,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            transport=transport,
        )
        self.api_url = api_url.rstrip("/")
        self.speaker_token = f"{assistant_name}:"

    @classmethod
    def from_settings(cls, settings: BotSettings) -> "CompletionClient":
        return cls(
            api_key=settings.openai_key,
            api_url=settings.completion_api_url,
            assistant_name=settings.assistant_name,
            timeout=settings.http_timeout,
        )

    async def complete(
        self,
        prompt: str,
        params: Optional[CompletionParams] = None,
    ) -> str:
        """
        補完APIを呼び出す

        Args:
            prompt: 会話ログを含むプロンプト全文
            params: サンプリングパラメータ（省略時はデフォルト値）

        Returns:
            最初の候補のテキスト（話者名トークンを除去済み）

        Raises:
            ApiError: API呼び出しに失敗した場合、またはレスポンスが不正な場合
        """
        params = params or CompletionParams()
        url = f"{self.api_url}/completions"

        logger.info(
            "Requesting completion",
            extra={"engine": params.engine, "prompt_length": len(prompt)},
        )

        data = await self._make_request("POST", url, json_data=params.to_payload(prompt))

        try:
            response = CompletionResponse.model_validate(data)
        except ValidationError as e:
            raise ApiError(
                "Invalid response structure from completion service",
                details={"url": url},
            ) from e

        text = response.choices[0].text.replace(self.speaker_token, "").strip()

        logger.info(
            "Completion received",
            extra={"choices": len(response.choices), "response_length": len(text)},
        )
        return text
