"""
shell.exec 动作：通过系统 shell 执行命令
"""
import asyncio
import logging
import os
import sys
from typing import Dict, Any, List, Optional

from .base import ActionExecutor, ActionResult
from ..exceptions import error_message


logger = logging.getLogger(__name__)


MAX_OUTPUT_BYTES = 1024 * 1024
DEFAULT_TIMEOUT_MS = 30_000
_READ_CHUNK = 64 * 1024


def shell_command(command: str) -> List[str]:
    """按平台包装命令，管道与重定向交给 shell 处理"""
    if sys.platform == "win32":
        return ["cmd", "/c", command]
    return ["/bin/sh", "-c", command]


def timeout_seconds(value: Any, default_ms: int) -> float:
    """毫秒超时转秒，非法或非正值使用默认值"""
    try:
        timeout_ms = float(value)
    except (TypeError, ValueError):
        timeout_ms = default_ms
    if timeout_ms <= 0:
        timeout_ms = default_ms
    return timeout_ms / 1000


async def _read_capped(stream: Optional[asyncio.StreamReader], buffer: bytearray, limit: int):
    """读取到流结束，只保留前 limit 字节（超出部分继续读取并丢弃以免子进程阻塞）"""
    if stream is None:
        return
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            break
        room = limit - len(buffer)
        if room > 0:
            buffer.extend(chunk[:room])


class ShellExecutor(ActionExecutor):
    """shell.exec 执行器"""

    action_type = "shell.exec"

    def __init__(self, default_timeout_ms: int = DEFAULT_TIMEOUT_MS, max_output_bytes: int = MAX_OUTPUT_BYTES):
        self.default_timeout_ms = default_timeout_ms
        self.max_output_bytes = max_output_bytes

    async def execute(self, params: Dict[str, Any]) -> ActionResult:
        command = params.get("command")
        if not isinstance(command, str) or not command.strip():
            return self._failure("Shell action requires a command")

        cwd = params.get("workingDirectory") or None
        timeout = timeout_seconds(params.get("timeout"), self.default_timeout_ms)

        try:
            process = await asyncio.create_subprocess_exec(
                *shell_command(command),
                cwd=cwd,
                env=dict(os.environ),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE
            )
        except OSError as e:
            logger.warning(f"Failed to start shell command: {e}")
            return self._failure(error_message(e))

        stdout = bytearray()
        stderr = bytearray()
        timed_out = False
        try:
            await asyncio.wait_for(
                asyncio.gather(
                    _read_capped(process.stdout, stdout, self.max_output_bytes),
                    _read_capped(process.stderr, stderr, self.max_output_bytes),
                    process.wait()
                ),
                timeout=timeout
            )
        except asyncio.TimeoutError:
            timed_out = True
            logger.warning(f"Shell command timed out after {timeout:.1f}s, killing process {process.pid}")
            self._kill(process)
            await process.wait()
        except asyncio.CancelledError:
            self._kill(process)
            raise

        exit_code = process.returncode if process.returncode is not None else 1
        output: Dict[str, Any] = {
            "stdout": stdout.decode("utf-8", errors="replace"),
            "stderr": stderr.decode("utf-8", errors="replace"),
            "exitCode": exit_code,
        }
        if timed_out:
            output["timedOut"] = True

        return ActionResult(success=exit_code == 0 and not timed_out, output=output)

    @staticmethod
    def _kill(process: asyncio.subprocess.Process):
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass

    @staticmethod
    def _failure(message: str) -> ActionResult:
        return ActionResult(
            success=False,
            output={"stdout": "", "stderr": message, "exitCode": 1}
        )
