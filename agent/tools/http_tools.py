"""
Tenant-defined HTTP tools.

A tool configured with {"type": "http", "url", "method"} forwards the model's
arguments to the tenant endpoint: GET sends them as query params, POST as a
JSON body. The request is bounded by HTTP_TOOL_TIMEOUT and responses larger
than HTTP_TOOL_MAX_BODY_BYTES are rejected. A string body is returned as-is,
any other JSON value re-serialized.
"""

import json
import logging
from typing import Any

import httpx

from agent.tools.registry import ToolContext, ToolKind, ToolSpec
from shared.tenant_config import ToolConfig

logger = logging.getLogger(__name__)


class ResponseTooLargeError(Exception):
    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Resposta excede o limite de {limit} bytes.")


async def call_http_tool(
    url: str,
    method: str,
    args: dict[str, Any],
    timeout: float,
    max_body_bytes: int,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    request_kwargs: dict[str, Any] = {"params": args} if method == "GET" else {"json": args}
    body = bytearray()

    try:
        async with httpx.AsyncClient(transport=transport, timeout=timeout) as client:
            async with client.stream(method, url, **request_kwargs) as response:
                async for chunk in response.aiter_bytes():
                    body.extend(chunk)
                    if len(body) > max_body_bytes:
                        raise ResponseTooLargeError(max_body_bytes)
                response.raise_for_status()
    except httpx.HTTPStatusError as e:
        detail = _error_detail(bytes(body), str(e))
        logger.warning(f"HTTP tool failed | url={url} | status={e.response.status_code}")
        return f"Erro ao executar ferramenta: {detail}"
    except (httpx.HTTPError, ResponseTooLargeError) as e:
        logger.warning(f"HTTP tool failed | url={url} | error={e}")
        return f"Erro ao executar ferramenta: {str(e) or 'Erro na chamada HTTP.'}"

    text = body.decode(response.encoding or "utf-8", errors="replace")
    try:
        data = json.loads(text)
    except ValueError:
        return text
    if isinstance(data, str):
        return data
    return json.dumps(data, ensure_ascii=False)


def _error_detail(body: bytes, fallback: str) -> str:
    try:
        data = json.loads(body)
    except ValueError:
        return fallback
    if isinstance(data, (dict, list)):
        return json.dumps(data, ensure_ascii=False)
    return fallback


def build_http_tool(config: ToolConfig) -> ToolSpec:
    execution = config.execution

    async def _execute(context: ToolContext, args: dict[str, Any]) -> str:
        logger.info(
            f"Executing HTTP tool | name={config.name} | method={execution.method} | "
            f"agent_id={context.agent.id}"
        )
        return await call_http_tool(
            execution.url,
            execution.method,
            args,
            timeout=float(context.settings.HTTP_TOOL_TIMEOUT),
            max_body_bytes=context.settings.HTTP_TOOL_MAX_BODY_BYTES,
            transport=context.http_transport,
        )

    return ToolSpec(
        name=config.name,
        kind=ToolKind.HTTP,
        description=config.description,
        parameters=config.parameters,
        executor=_execute,
    )
