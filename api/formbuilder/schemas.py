
from enum import Enum
from pydantic import BaseModel, Field, model_validator
from typing import List, Optional

class FieldType(str, Enum):
    TEXT = "text"
    EMAIL = "email"
    NUMBER = "number"
    TEXTAREA = "textarea"
    SELECT = "select"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    DATE = "date"

PLACEHOLDER_TYPES = {FieldType.TEXT, FieldType.EMAIL, FieldType.NUMBER, FieldType.TEXTAREA}
OPTION_TYPES = {FieldType.SELECT, FieldType.RADIO}

class FieldDefinition(BaseModel):
    name: str = Field(min_length=1)
    label: str = Field(min_length=1)
    type: FieldType = FieldType.TEXT
    required: bool = False
    placeholder: Optional[str] = None
    options: Optional[str] = None  # one choice per line

    @model_validator(mode="after")
    def _drop_inapplicable(self):
        if self.type not in PLACEHOLDER_TYPES:
            self.placeholder = None
        if self.type not in OPTION_TYPES:
            self.options = None
        return self

    def options_list(self) -> List[str]:
        if not self.options:
            return []
        return [line.strip() for line in self.options.splitlines() if line.strip()]

class FormCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    slug: Optional[str] = None
    fields: List[FieldDefinition] = Field(min_length=1)
    is_active: bool = True
    # Accepted so a client can send them, always replaced by the caller's id.
    created_by_id: Optional[int] = None
    tenant_id: Optional[int] = None

class FormUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    slug: Optional[str] = None
    fields: Optional[List[FieldDefinition]] = Field(default=None, min_length=1)
    is_active: Optional[bool] = None
    created_by_id: Optional[int] = None
    tenant_id: Optional[int] = None

class UserRegister(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    password: str = Field(min_length=1)

class UserLogin(BaseModel):
    email: str
    password: str

class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    password: Optional[str] = Field(default=None, min_length=1)
