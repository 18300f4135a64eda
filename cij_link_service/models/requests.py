"""
Request Schemas
===============

Pydantic schemas validating gateway payloads before they reach the link layer.
Field aliases follow the camelCase keys used by the companion clients.
"""

from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config import TELNET_PORT
from .printer import PrinterEndpoint


class PrinterAddress(BaseModel):
    """Printer id plus network address"""
    model_config = ConfigDict(populate_by_name=True)

    id: int
    ip_address: str = Field(..., alias='ipAddress', min_length=1, max_length=255)
    port: int = Field(TELNET_PORT, ge=1, le=65535)

    @field_validator('ip_address')
    @classmethod
    def strip_address(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('ipAddress must not be blank')
        return v

    def to_endpoint(self) -> PrinterEndpoint:
        return PrinterEndpoint(id=self.id, ip_address=self.ip_address, port=self.port)


class ConnectRequest(BaseModel):
    """Body of connect and set-meta"""
    printer: PrinterAddress


class DisconnectRequest(BaseModel):
    """Body of disconnect"""
    model_config = ConfigDict(populate_by_name=True)

    printer_id: int = Field(..., alias='printerId')


class SendCommandRequest(BaseModel):
    """Body of send-command"""
    model_config = ConfigDict(populate_by_name=True)

    printer_id: int = Field(..., alias='printerId')
    command: str = Field(..., min_length=1, max_length=4096)

    @field_validator('command')
    @classmethod
    def single_line(cls, v: str) -> str:
        """Line terminators are added on the wire, never by the caller"""
        v = v.rstrip('\r\n')
        if '\r' in v or '\n' in v:
            raise ValueError('command must be a single line')
        if not v.strip():
            raise ValueError('command must not be blank')
        return v


class CheckStatusRequest(BaseModel):
    """Body of check-status"""
    printers: List[PrinterAddress] = Field(default_factory=list, max_length=256)
