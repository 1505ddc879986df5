"""
http.request 动作
"""
import asyncio
import json
import logging
from typing import Dict, Any, Optional

import aiohttp

from .base import ActionExecutor, ActionResult
from .shell import timeout_seconds
from ..exceptions import error_message


logger = logging.getLogger(__name__)


DEFAULT_TIMEOUT_MS = 30_000


def encode_body(body: Any) -> Optional[str]:
    """字符串原样发送，其他 JSON 值序列化"""
    if body is None:
        return None
    if isinstance(body, str):
        return body
    return json.dumps(body, ensure_ascii=False)


class HttpExecutor(ActionExecutor):
    """http.request 执行器"""

    action_type = "http.request"

    def __init__(self, default_timeout_ms: int = DEFAULT_TIMEOUT_MS):
        self.default_timeout_ms = default_timeout_ms

    async def execute(self, params: Dict[str, Any]) -> ActionResult:
        method = str(params.get("method") or "GET").upper()
        url = params.get("url")
        headers = params.get("headers")
        if not isinstance(headers, dict):
            headers = {}
        timeout = timeout_seconds(params.get("timeout"), self.default_timeout_ms)

        data = None if method == "GET" else encode_body(params.get("body"))
        if data is not None and not isinstance(params.get("body"), str):
            headers = {"Content-Type": "application/json", **headers}

        try:
            async with aiohttp.ClientSession() as session:
                async with session.request(
                    method,
                    url,
                    headers={str(k): str(v) for k, v in headers.items()},
                    data=data,
                    timeout=aiohttp.ClientTimeout(total=timeout)
                ) as response:
                    body = await response.text(errors="replace")
                    return ActionResult(
                        success=200 <= response.status < 300,
                        output={
                            "status": response.status,
                            "headers": {k.lower(): v for k, v in response.headers.items()},
                            "body": body,
                        }
                    )
        except asyncio.TimeoutError:
            message = f"Request timed out after {timeout:g}s"
        except (aiohttp.ClientError, ValueError, TypeError) as e:
            message = error_message(e, "Unknown HTTP error")

        logger.warning(f"HTTP {method} {url} failed: {message}")
        return ActionResult(
            success=False,
            output={"status": 0, "headers": {}, "body": message}
        )
