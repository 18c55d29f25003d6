# certnorm/mcp_contracts.py
from __future__ import annotations
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class B64File(BaseModel):
    filename: str = Field(..., description="Original filename, used for format heuristics only.", examples=["bundle.p12"])
    content_b64: str = Field(..., description="RFC 4648 raw base64 of the file bytes.")
    password: Optional[str] = Field(None, description="Password for this file only; overrides the call-level password.")


class WarningItem(BaseModel):
    code: str = Field(..., examples=["CHAIN_MISSING"])
    message: str
    severity: str = "warn"


class FormatItem(BaseModel):
    filename: str
    format: str = Field(..., examples=["pkcs12", "pem-certificate-bundle", "der-certificate"])


class ReportModel(BaseModel):
    subject: str
    issuer: str
    subject_cn: Optional[str] = None
    issuer_cn: Optional[str] = None
    not_before: str
    not_after: str
    days_remaining: int
    san: List[str] = []
    serial_hex: str
    fingerprint_sha256: str
    key: Dict[str, Any] = {}
    key_fingerprint: str
    match: bool
    expiry_warning: bool
    chain_length: int = 0
    chain: List[Dict[str, Any]] = Field(default_factory=list, description="CA chain members in supplied order: subject_cn, issuer_cn, not_after, ca, self_signed.")


class ImportResponse(BaseModel):
    ok: bool
    dry_run: bool = True
    formats: List[FormatItem] = []
    report: Optional[ReportModel] = None
    artifacts: Dict[str, Any] = {}
    warnings: List[WarningItem] = []
    install: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    message: Optional[str] = None
    filename: Optional[str] = None
    cause: Optional[str] = None
    missing: Optional[List[str]] = None
