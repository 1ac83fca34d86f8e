from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, StrictInt, model_validator

from app.countdesk.services.scan_history import ScanEvent


class ScanEventIn(BaseModel):
    kind: Literal["confirmed", "counted"]
    value: StrictInt | None = Field(default=None, ge=0)
    at: datetime | None = None

    @model_validator(mode="after")
    def _check_value(self):
        if self.kind == "counted" and self.value is None:
            raise ValueError("counted scans require a value")
        if self.kind == "confirmed" and self.value is not None:
            raise ValueError("confirmed scans do not take a value")
        return self

    def to_event(self) -> ScanEvent:
        if self.kind == "confirmed":
            return ScanEvent.confirmed(at=self.at)
        return ScanEvent.counted(self.value, at=self.at)


class ScanEventOut(BaseModel):
    kind: str
    value: int | None = None
    at: datetime | None = None
