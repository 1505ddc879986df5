"""
条件表达式模型

条件树是一个递归的标签联合类型：
    literal(value) | context(path) | node(nodeId, path)   取值引用
    compare(left, operator, right) | and(conditions) | or(conditions)   条件
"""
from enum import Enum
from typing import Annotated, List, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr, TypeAdapter


class CompareOperator(str, Enum):
    """比较运算符"""
    EQ = "eq"
    NEQ = "neq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"


class _ConditionModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class LiteralRef(_ConditionModel):
    """字面量"""
    type: Literal["literal"] = "literal"
    value: Union[StrictBool, StrictInt, StrictFloat, StrictStr]


class ContextRef(_ConditionModel):
    """运行上下文中的点路径引用"""
    type: Literal["context"] = "context"
    path: str


class NodeRef(_ConditionModel):
    """前序节点输出中的点路径引用"""
    type: Literal["node"] = "node"
    node_id: str = Field(alias="nodeId")
    path: str


ValueRef = Annotated[Union[LiteralRef, ContextRef, NodeRef], Field(discriminator="type")]


class CompareCondition(_ConditionModel):
    """比较条件"""
    type: Literal["compare"] = "compare"
    left: ValueRef
    operator: CompareOperator
    right: ValueRef


class AndCondition(_ConditionModel):
    """与条件"""
    type: Literal["and"] = "and"
    conditions: List["Condition"] = Field(min_length=1)


class OrCondition(_ConditionModel):
    """或条件"""
    type: Literal["or"] = "or"
    conditions: List["Condition"] = Field(min_length=1)


Condition = Annotated[
    Union[CompareCondition, AndCondition, OrCondition],
    Field(discriminator="type")
]

AndCondition.model_rebuild()
OrCondition.model_rebuild()

condition_adapter: TypeAdapter = TypeAdapter(Condition)


def parse_condition(raw) -> Union[CompareCondition, AndCondition, OrCondition]:
    """将原始条件树解析为类型化条件，结构非法时抛出 pydantic.ValidationError"""
    if isinstance(raw, (CompareCondition, AndCondition, OrCondition)):
        return raw
    return condition_adapter.validate_python(raw)


def dump_condition(condition) -> dict:
    """类型化条件转回可持久化的字典（与原始 JSON 结构一致）"""
    return condition_adapter.dump_python(condition, by_alias=True, mode="json")
