"""
Workflow Schemas

Trigger, the action config union and the execution audit views.
Action configs are validated when a workflow is saved so the engine only
ever sees well-formed actions.
"""

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import Field, TypeAdapter, field_validator, model_validator

from backend.app.schemas.common import CamelModel

CONDITION_OPERATORS = ("equals", "not_equals", "greater_than", "less_than", "contains", "not_contains")
ConditionOperator = Literal["equals", "not_equals", "greater_than", "less_than", "contains", "not_contains"]


class TriggerFilters(CamelModel):
    """Exact-match filters. Empty or missing means "any"."""
    event_name: Optional[str] = None
    filter_item_name: Optional[str] = None
    filter_item_category: Optional[str] = None
    filter_item_id: Optional[str] = None
    filter_value: Optional[float] = None

    @field_validator("filter_value", mode="before")
    @classmethod
    def _blank_value_is_wildcard(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class WorkflowTrigger(CamelModel):
    event_type: str = Field(..., min_length=1, description="Matched against event.category")
    filters: TriggerFilters = Field(default_factory=TriggerFilters)


# --- Action configs -------------------------------------------------------

class ActionBase(CamelModel):
    id: Optional[str] = None
    name: Optional[str] = None
    output_variable: Optional[str] = None


class PushNotificationAction(ActionBase):
    type: Literal["push_notification"]
    title: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)
    target_users: Literal["all", "specific", "event_user"]
    user_ids: List[str] = Field(default_factory=list)
    url: Optional[str] = None
    icon: Optional[str] = None

    @model_validator(mode="after")
    def _specific_needs_users(self):
        if self.target_users == "specific" and not self.user_ids:
            raise ValueError("userIds is required when targetUsers is 'specific'")
        return self


class WhatsAppMessageAction(ActionBase):
    type: Literal["whatsapp_message"]
    template_name: str = Field(..., min_length=1)
    namespace: Optional[str] = None
    language: str = "ar"
    to_phone: str = "{event.userPhone}"
    from_phone: Optional[str] = None
    params: List[str] = Field(default_factory=list)


class SmsMessageAction(ActionBase):
    type: Literal["sms_message"]
    message: str = Field(..., min_length=1)
    to_phone: str = "{event.userPhone}"
    from_phone: Optional[str] = None
    template_name: Optional[str] = None


class SlackMessageAction(ActionBase):
    type: Literal["slack_message"]
    credential_id: str = Field(..., min_length=1)
    channel: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)


class PromoCodeAction(ActionBase):
    type: Literal["promo_code"]
    batch_id: str = Field(..., min_length=1)
    code_type: Literal["random", "sequential", "specific"] = "random"
    specific_code: Optional[str] = None
    output_variable: str = "promoCode"

    @model_validator(mode="after")
    def _specific_needs_code(self):
        if self.code_type == "specific" and not self.specific_code:
            raise ValueError("specificCode is required when codeType is 'specific'")
        return self


class DelayAction(ActionBase):
    type: Literal["delay"]
    duration: float = Field(..., gt=0)
    unit: Literal["seconds", "minutes", "hours", "days"] = "minutes"


class DatabaseAction(ActionBase):
    type: Literal["database"]
    operation: Literal["select", "count", "insert"]
    table: str = Field(..., min_length=1)
    filters: Dict[str, Any] = Field(default_factory=dict)
    data: Dict[str, Any] = Field(default_factory=dict)
    limit: int = Field(default=100, ge=1, le=1000)


class TransformAction(ActionBase):
    type: Literal["transform"]
    transform_type: Literal["map", "filter", "reduce", "sort"]
    input: str = Field(..., min_length=1, description="Placeholder resolving to a list, e.g. {event.properties.items}")
    expression: str = Field(..., min_length=1)
    initial_value: Any = None
    descending: bool = False
    output_field: Optional[str] = None


class ConditionAction(ActionBase):
    """
    Structured form: leftOperand / conditionType / rightOperand.
    Expression form: ``condition`` evaluated against event and workflow names.
    """
    type: Literal["condition"]
    left_operand: Any = None
    condition_type: Optional[ConditionOperator] = None
    right_operand: Any = None
    condition: Optional[str] = None

    @model_validator(mode="after")
    def _one_form_required(self):
        if self.condition_type is None and not self.condition:
            raise ValueError("conditionType or condition is required")
        return self


class ScriptAction(ActionBase):
    type: Literal["script"]
    script: str = Field(..., min_length=1)


ActionConfig = Annotated[
    Union[
        PushNotificationAction,
        WhatsAppMessageAction,
        SmsMessageAction,
        SlackMessageAction,
        PromoCodeAction,
        DelayAction,
        DatabaseAction,
        TransformAction,
        ConditionAction,
        ScriptAction,
    ],
    Field(discriminator="type"),
]

action_adapter: TypeAdapter = TypeAdapter(ActionConfig)

ACTION_TYPES = (
    "push_notification", "whatsapp_message", "sms_message", "slack_message", "promo_code",
    "delay", "database", "transform", "condition", "script",
)

# Builder node types that differ from the stored action type
_NODE_TYPE_ALIASES = {
    "push": "push_notification",
    "pushNotification": "push_notification",
    "notification": "push_notification",
    "whatsapp": "whatsapp_message",
    "sms": "sms_message",
    "slack": "slack_message",
    "promoCode": "promo_code",
    "promo": "promo_code",
    "typescript": "script",
}


def flatten_builder_nodes(nodes: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Turn a builder graph into ``{"trigger": ..., "actions": [...]}``.

    Edges are ignored; action nodes keep the order they were submitted in.
    """
    trigger = None
    actions = []
    for node in nodes:
        node_type = node.get("type")
        data = dict(node.get("data") or {})
        if node_type == "trigger":
            trigger = {
                "eventType": data.get("eventType"),
                "filters": {
                    k: data.get(k)
                    for k in ("eventName", "filterItemName", "filterItemCategory", "filterItemId", "filterValue")
                    if data.get(k) not in (None, "")
                },
            }
            continue
        action_type = data.pop("actionType", None) or data.get("type") or node_type
        data["type"] = _NODE_TYPE_ALIASES.get(action_type, action_type)
        data.setdefault("id", node.get("id"))
        actions.append(data)
    return {"trigger": trigger, "actions": actions}


# --- Requests / responses -------------------------------------------------

class WorkflowCreate(CamelModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    trigger: WorkflowTrigger
    actions: List[ActionConfig] = Field(..., min_length=1)
    is_active: bool = True

    @model_validator(mode="before")
    @classmethod
    def _flatten_nodes(cls, data: Any):
        if isinstance(data, dict) and data.get("nodes") and not data.get("actions"):
            flat = flatten_builder_nodes(data["nodes"])
            data = {k: v for k, v in data.items() if k not in ("nodes", "edges")}
            data["actions"] = flat["actions"]
            if not data.get("trigger") and flat["trigger"]:
                data["trigger"] = flat["trigger"]
        return data

    def stored_actions(self) -> List[Dict[str, Any]]:
        return [a.model_dump(by_alias=True, exclude_none=True) for a in self.actions]


class WorkflowUpdate(WorkflowCreate):
    """PUT is a full replace."""


class WorkflowResponse(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    trigger: Dict[str, Any]
    actions: List[Dict[str, Any]]
    is_active: bool
    user_id: str
    organization_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class WorkflowStepResponse(CamelModel):
    id: str
    step_order: int
    step_type: str
    step_name: str
    action_type: Optional[str] = None
    status: str
    input_data: Optional[Any] = None
    output_data: Optional[Any] = None
    error_message: Optional[str] = None
    started_at: datetime
    ended_at: Optional[datetime] = None
    duration_ms: Optional[int] = None


class WorkflowExecutionResponse(CamelModel):
    id: str
    workflow_id: str
    status: str
    trigger_event: Optional[Dict[str, Any]] = None
    results: Optional[Any] = None
    error: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None
    total_duration_ms: Optional[int] = None
    steps: List[WorkflowStepResponse] = Field(default_factory=list)


class ExecutionListResponse(CamelModel):
    executions: List[WorkflowExecutionResponse]
    total: int
    limit: int
    offset: int


class WorkflowTestRequest(CamelModel):
    test_data: Dict[str, Any] = Field(default_factory=dict)


class NodeTestRequest(CamelModel):
    action: ActionConfig
    test_data: Dict[str, Any] = Field(default_factory=dict)
    variables: Dict[str, Any] = Field(default_factory=dict)


class NodeTestResponse(CamelModel):
    success: bool
    output: Optional[Any] = None
    error: Optional[str] = None
    unresolved: List[str] = Field(default_factory=list)


class CleanupResponse(CamelModel):
    steps_cleaned: int
    executions_failed: int
