"""
file.read 动作

只允许读取白名单目录下的文件：
    1. 路径中出现 ".." 段直接拒绝
    2. 解析真实路径（含符号链接），文件不存在时退化为规范化的绝对路径
    3. 真实路径必须位于某个（同样解析过的）允许目录之内
"""
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Dict, Any, Iterable, List, Optional, Union

import aiofiles
import aiofiles.os

from .base import ActionExecutor, ActionResult


logger = logging.getLogger(__name__)


DEFAULT_ENCODING = "utf-8"
UNKNOWN_FILE_ERROR = "Unknown file error"

PathLike = Union[str, Path]


def has_traversal(path: str) -> bool:
    """路径是否包含 '..' 段（同时识别 / 与 \\ 分隔符）"""
    return ".." in re.split(r"[\\/]", path)


def resolve_real_path(path: PathLike) -> Path:
    """严格解析真实路径，失败时使用规范化的绝对路径"""
    try:
        return Path(path).resolve(strict=True)
    except (OSError, RuntimeError):
        return Path(os.path.normpath(os.path.abspath(path)))


def is_within(path: Path, roots: Iterable[Path]) -> bool:
    return any(path == root or path.is_relative_to(root) for root in roots)


class FileReadExecutor(ActionExecutor):
    """file.read 执行器"""

    action_type = "file.read"

    def __init__(self, allowed_dirs: Optional[List[PathLike]] = None):
        self.allowed_dirs = list(allowed_dirs) if allowed_dirs else [tempfile.gettempdir()]

    async def execute(self, params: Dict[str, Any]) -> ActionResult:
        encoding = params.get("encoding") or DEFAULT_ENCODING
        path = params.get("path")

        if not isinstance(path, str) or not path.strip():
            return self._failure("File read action requires a path", encoding)

        if has_traversal(path):
            logger.warning(f"Blocked file read with path traversal: {path}")
            return self._failure(f"Path traversal is not allowed: {path}", encoding)

        allowed = params.get("allowedDirs") or self.allowed_dirs
        if isinstance(allowed, (str, Path)):
            allowed = [allowed]
        roots = [resolve_real_path(root) for root in allowed]
        real_path = resolve_real_path(path)

        if not is_within(real_path, roots):
            logger.warning(f"Blocked file read outside allowed directories: {real_path}")
            return self._failure(f"Path {real_path} is outside allowed directories", encoding)

        try:
            async with aiofiles.open(real_path, "r", encoding=encoding, newline="") as f:
                content = await f.read()
            stat = await aiofiles.os.stat(real_path)
        except Exception as e:
            return self._failure(str(e) or UNKNOWN_FILE_ERROR, encoding)

        return ActionResult(
            success=True,
            output={"content": content, "size": stat.st_size, "encoding": encoding}
        )

    @staticmethod
    def _failure(message: str, encoding: str) -> ActionResult:
        return ActionResult(
            success=False,
            output={"content": message, "size": 0, "encoding": encoding}
        )
