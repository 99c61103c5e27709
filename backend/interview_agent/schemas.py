from pydantic import BaseModel, ConfigDict, Field


class Report(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: int = Field(ge=1, le=10)
    feedback: str
    improvements: list[str] = Field(default_factory=list)


class TranscriptLine(BaseModel):
    role: str
    text: str
