from typing import List, Optional

from pydantic import BaseModel, Field


class KeyValue(BaseModel):
    """One flattened entry of a metadata map."""

    key: str
    value: str


class RequestEntry(BaseModel):
    """One flattened request field; `parent` is set for one level of nesting."""

    key: str
    parent: Optional[str] = None
    value: str


class Framework(BaseModel):
    name: Optional[str] = None
    version: Optional[str] = None


class ActionDetail(BaseModel):
    id: Optional[str] = None
    type: str
    verb: str
    object: Optional[str] = None


class Entity(BaseModel):
    """An agent or a target of an action."""

    id: Optional[str] = None
    type: str
    name: Optional[str] = None
    meta: Optional[List[KeyValue]] = None


class Response(BaseModel):
    status: Optional[str] = None
    time: Optional[float] = None
    body: Optional[List[KeyValue]] = None
    headers: Optional[List[KeyValue]] = None


class Change(BaseModel):
    model: str
    operation: str = Field(description="create, update, delete or read")
    id: Optional[str] = None
    path: Optional[str] = None
    before: Optional[str] = None
    after: Optional[str] = None
    meta: Optional[List[KeyValue]] = None


class CostComponent(BaseModel):
    type: Optional[str] = None
    key: str
    amount: float


class Cost(BaseModel):
    amount: float
    currency: str
    components: Optional[List[CostComponent]] = None
    meta: Optional[List[KeyValue]] = None


class ElasticsearchAction(BaseModel):
    """Schema of an action document as it is stored in Elasticsearch."""

    id: Optional[str] = None
    timestamp: str = Field(description="ISO-8601 timestamp of the action")
    companyId: Optional[str] = None
    clientId: Optional[str] = None
    app: Optional[str] = None
    environment: Optional[str] = None
    framework: Optional[Framework] = None
    sessionId: Optional[str] = None
    traceIds: Optional[List[str]] = None
    action: ActionDetail
    agents: List[Entity]
    targets: Optional[List[Entity]] = None
    request: Optional[List[RequestEntry]] = None
    response: Optional[Response] = None
    changes: Optional[List[Change]] = None
    cost: Optional[Cost] = None
    meta: Optional[List[KeyValue]] = None
