from pydantic import BaseModel, ConfigDict
from typing import Any, Optional

# Request fields are left untyped here; security.py validates them so that
# malformed values are reported as VALIDATION errors with a field name.


class StampRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    documentHash: Any = None
    entity: Any = None
    docType: Any = None
    state: Any = None


class HashRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    documentHash: Any = None


class StampResponse(BaseModel):
    ok: bool = True
    hash: str
    gasLimit: int


class VerifyResponse(BaseModel):
    ok: bool = True
    exists: bool


class RecordResponse(BaseModel):
    ok: bool = True
    owner: str
    timestamp: int
    blockNumber: int
    entity: str
    docType: int
    state: int


class ErrorResponse(BaseModel):
    ok: bool = False
    error: str
    message: str


class HealthResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    status: str
    network: str
    rpc: bool
    contract: bool
    apiKey: bool
    block: Optional[int] = None
    message: Optional[str] = None
