"""
动作参数模板插值：{{nodes.<id>.output.path}}、{{trigger.payload.x}} 等
"""
import re
from typing import Any, Dict, Mapping, Optional

from .condition import get_by_path, to_text


TEMPLATE_PATTERN = re.compile(r"\{\{(.+?)\}\}")


def interpolate_template(value: str, context: Mapping[str, Any]) -> str:
    """替换字符串中的全部占位符，路径缺失替换为空串"""
    def replace(match: "re.Match") -> str:
        return to_text(get_by_path(context, match.group(1).strip()))

    return TEMPLATE_PATTERN.sub(replace, value)


def interpolate_config(
    params: Optional[Dict[str, Any]], context: Mapping[str, Any]
) -> Dict[str, Any]:
    """递归插值对象中的字符串值；列表与其他类型原样保留"""
    result: Dict[str, Any] = {}
    for key, value in (params or {}).items():
        if isinstance(value, str):
            result[key] = interpolate_template(value, context)
        elif isinstance(value, dict):
            result[key] = interpolate_config(value, context)
        else:
            result[key] = value
    return result
