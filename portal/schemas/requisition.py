from typing import Dict, List, Optional, Union
from pydantic import BaseModel, Field

from portal.schemas.common import PaginationMeta


class RequestLineBody(BaseModel):
    item_id: int
    item_name: Optional[str] = None
    quantity: Union[int, float]


class CreateRequisitionBody(BaseModel):
    lines: List[RequestLineBody] = Field(default_factory=list)
    parent_office_id: Optional[int] = None
    reason: str = ""


class ApproveBody(BaseModel):
    approved_quantity: Optional[Union[int, float]] = None


class RejectBody(BaseModel):
    remarks: str = ""


class FulfillBody(BaseModel):
    quantity: Optional[int] = None


class ConfirmBody(BaseModel):
    remarks: Optional[str] = None


class RequisitionRow(BaseModel):
    id: int
    item_name: str
    columns: Dict[str, str]
    requested_quantity: float
    approved_quantity: Optional[Union[int, float]] = None
    fulfilled_quantity: Optional[float] = None
    remaining_quantity: float
    status: str
    status_label: str
    status_color: str
    requested_date: Optional[str] = None
    reason: Optional[str] = None
    remarks: Optional[str] = None
    actions: List[str] = []


class RequisitionListResponse(BaseModel):
    view: str
    data: List[RequisitionRow] = Field(default_factory=list)
    pagination: PaginationMeta
    empty_message: Optional[str] = None


class CreateRequisitionResponse(BaseModel):
    created: List[RequisitionRow] = Field(default_factory=list)
