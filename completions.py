import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from config import APIConfig
from errors import APIError, TransportError
from utils import build_headers

logger = logging.getLogger(__name__)


@dataclass
class ChatResponse:
    """Parsed non-streaming completion"""
    content: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


def user_prompt(content: str, role="user"):
    return {
        "role": role,
        "content": content,
    }


def build_request_body(
    config: APIConfig,
    question: str,
    system_prompt: Optional[str] = None,
    stream: bool = False,
) -> Dict[str, Any]:
    """system 消息优先使用本次传入的 system_prompt, 其次是配置文件"""
    return {
        "model": config.model,
        "messages": [
            user_prompt(system_prompt or config.system_prompt, role="system"),
            user_prompt(question),
        ],
        "stream": stream,
    }


def parse_chat_response(result: Dict[str, Any]) -> ChatResponse:
    """Extract content and usage from a complete chat.completion object"""
    if not isinstance(result, dict):
        raise APIError(f"Unexpected response: {result!r}")

    error = result.get("error")
    if error:
        message = error.get("message") if isinstance(error, dict) else None
        raise APIError(message if isinstance(message, str) else "Unknown error")

    choices = result.get("choices")
    if not isinstance(choices, list) or not choices:
        raise APIError("Invalid choices array")

    first = choices[0] if isinstance(choices[0], dict) else {}
    message = first.get("message")
    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str):
        raise APIError("Invalid content format")

    usage = result.get("usage")
    if not isinstance(usage, dict):
        usage = {}
    return ChatResponse(
        content=content,
        prompt_tokens=_token_count(usage, "prompt_tokens"),
        completion_tokens=_token_count(usage, "completion_tokens"),
        total_tokens=_token_count(usage, "total_tokens"),
    )


def _token_count(usage: Dict[str, Any], key: str) -> int:
    """Non-integer counts (strings, null, bools) read as 0"""
    value = usage.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return value


def get_content(result: Dict[str, Any]) -> str:
    return parse_chat_response(result).content


class CompletionClient:
    """Request/full-response HTTP client"""

    def __init__(self, config: APIConfig):
        self.config = config
        self.session = requests.Session()
        self.session.headers.update(build_headers(config.api_key))

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.session.close()

    def send(self, body: Dict[str, Any]) -> Dict[str, Any]:
        """POST the body and return the decoded JSON response"""
        logger.debug(f"POST {self.config.base_url} model={body.get('model')}")
        try:
            response = self.session.post(
                self.config.base_url, json=body, timeout=self.config.timeout
            )
        except requests.exceptions.Timeout:
            raise TransportError(f"Timeout after {self.config.timeout}s")
        except requests.exceptions.RequestException as e:
            raise TransportError(f"HTTP request failed: {e}")

        if response.status_code != 200:
            error_msg = response.text or "No response content"
            # 尝试读取 API 返回的详细错误 JSON
            try:
                err_json = response.json()
                if isinstance(err_json, dict) and isinstance(err_json.get("error"), dict):
                    error_msg = err_json["error"].get("message") or error_msg
            except ValueError:
                pass
            raise APIError(f"HTTP error {response.status_code}: {error_msg}")

        try:
            return response.json()
        except ValueError as e:
            raise APIError(f"JSON parsing failed: {e}")

    def chat(self, body: Dict[str, Any]) -> ChatResponse:
        return parse_chat_response(self.send(body))
