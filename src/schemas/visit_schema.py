from pydantic import BaseModel, Field


class VisitOut(BaseModel):
    ok: bool = True
    total_visits: int = Field(alias="totalVisits")
    unique_visitors: int = Field(alias="uniqueVisitors")
    new_visitor: bool = Field(alias="newVisitor")

    model_config = {"populate_by_name": True}


class StatsOut(BaseModel):
    total_visits: int = Field(alias="totalVisits")
    unique_visitors: int = Field(alias="uniqueVisitors")

    model_config = {"populate_by_name": True}


class ErrorOut(BaseModel):
    ok: bool = False
    error: str


class HealthOut(BaseModel):
    status: str
    backend: str
