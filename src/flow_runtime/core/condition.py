"""
条件表达式求值器

比较规则：
    两侧都能解析为有限数值（数字、布尔按 1/0、数字字符串）时按数值比较；
    否则按字符串形式比较，eq/neq 判断相等，其余运算符按字典序比较。
    None（未解析到的路径）既不是数值，其字符串形式为空串。
"""
import json
import logging
import math
import operator
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from ..models.condition import (
    AndCondition, CompareCondition, ContextRef, LiteralRef, NodeRef, OrCondition,
    parse_condition
)
from ..models.execution import ExecutionContext


logger = logging.getLogger(__name__)


_OPERATORS = {
    "eq": operator.eq,
    "neq": operator.ne,
    "gt": operator.gt,
    "gte": operator.ge,
    "lt": operator.lt,
    "lte": operator.le,
}

ContextLike = Union[ExecutionContext, Mapping[str, Any]]


def get_by_path(data: Any, path: str) -> Any:
    """按点路径取值，列表支持数字下标；任一段缺失返回 None"""
    current = data
    for part in path.split("."):
        if isinstance(current, Mapping):
            current = current.get(part)
        elif isinstance(current, (list, tuple)):
            try:
                current = current[int(part)]
            except (ValueError, IndexError):
                return None
        else:
            return None
        if current is None:
            return None
    return current


def to_number(value: Any) -> Optional[float]:
    """尝试转为有限数值，失败返回 None"""
    if value is None:
        return None
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text or "_" in text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def to_text(value: Any) -> str:
    """值的字符串形式"""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, separators=(",", ":"), default=str, ensure_ascii=False)
    return str(value)


def compare_values(left: Any, right: Any, op: str) -> bool:
    """按强制转换规则比较两个值"""
    compare = _OPERATORS.get(op)
    if compare is None:
        return False

    left_number = to_number(left)
    right_number = to_number(right)
    if left_number is not None and right_number is not None:
        return compare(left_number, right_number)

    return compare(to_text(left), to_text(right))


class ConditionEvaluator:
    """条件求值器，不抛出异常，结构非法的条件视为 False"""

    def evaluate(self, condition: Any, context: ContextLike) -> bool:
        """计算条件结果"""
        try:
            parsed = parse_condition(condition)
        except PydanticValidationError as e:
            logger.debug(f"Invalid condition expression, evaluating as false: {e}")
            return False

        return self._evaluate(parsed, self._root(context))

    def validate(self, condition: Any) -> bool:
        """仅检查结构是否合法"""
        try:
            parse_condition(condition)
            return True
        except PydanticValidationError:
            return False

    def _evaluate(self, condition, root: Mapping[str, Any]) -> bool:
        if isinstance(condition, CompareCondition):
            left = self._resolve(condition.left, root)
            right = self._resolve(condition.right, root)
            return compare_values(left, right, condition.operator.value)
        if isinstance(condition, AndCondition):
            return all(self._evaluate(sub, root) for sub in condition.conditions)
        if isinstance(condition, OrCondition):
            return any(self._evaluate(sub, root) for sub in condition.conditions)

        logger.debug(f"Unrecognised condition {condition!r}, evaluating as false")
        return False

    def _resolve(self, ref, root: Mapping[str, Any]) -> Any:
        if isinstance(ref, LiteralRef):
            return ref.value
        if isinstance(ref, ContextRef):
            return get_by_path(root, ref.path)
        if isinstance(ref, NodeRef):
            nodes = get_by_path(root, "nodes")
            entry = nodes.get(ref.node_id) if isinstance(nodes, Mapping) else None
            output = entry.get("output") if isinstance(entry, Mapping) else None
            return get_by_path(output, ref.path)
        return None

    @staticmethod
    def _root(context: ContextLike) -> Mapping[str, Any]:
        if isinstance(context, ExecutionContext):
            return context.as_mapping()
        return context or {}


def evaluate_condition(condition: Any, context: ContextLike) -> bool:
    """便捷函数"""
    return ConditionEvaluator().evaluate(condition, context)
