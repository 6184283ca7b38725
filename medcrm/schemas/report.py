# medcrm/schemas/report.py

from pydantic import BaseModel, model_validator
from typing import Optional
from datetime import date, datetime


class DateRange(BaseModel):
    start: date
    end: date

    @model_validator(mode="after")
    def check_order(self):
        if self.end < self.start:
            raise ValueError("End date must not be before start date")
        return self


class ReportResponse(BaseModel):
    id: int
    title: str
    type: str
    description: Optional[str] = None
    parameters: Optional[str] = None
    data: Optional[str] = None
    generated_by: str
    generated_at: Optional[datetime] = None
    date_range: Optional[str] = None
    status: Optional[str] = "completed"

    class Config:
        from_attributes = True
