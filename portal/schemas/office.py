from typing import List, Optional

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class Office(BaseModel):
    id: int
    name: str
    name_bn: Optional[str] = None
    type: Optional[str] = None
    code: Optional[str] = None
    description: Optional[str] = None
    order: Optional[int] = None
    is_active: bool = True
    parent: Optional["Office"] = None
    sub_offices: List["Office"] = []

    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class CatalogItem(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    category: Optional[dict] = None
    unit: Optional[dict] = None
    price: Optional[float] = None

    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class Viewer(BaseModel):
    """The signed-in user as reported by the backend's /auth/me."""

    id: int
    username: str
    name: Optional[str] = None
    role: str
    office_id: Optional[int] = None
    office_name: Optional[str] = None

    model_config = {"alias_generator": to_camel, "populate_by_name": True}


Office.model_rebuild()
