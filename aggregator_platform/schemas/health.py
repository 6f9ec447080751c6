from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    status: str = Field()
    uptime_s: float = Field(ge=0)
    version: str = Field()
    database: str = Field(description="'ok' when the repositories answer, otherwise 'unavailable'")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"status": "ok", "uptime_s": 12.34, "version": "0.1.0", "database": "ok"}
            ]
        }
    }
