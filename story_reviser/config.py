import os
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, model_validator


class StoreConfig(BaseModel):
    path: Path = Field(default=Path("data/generations.json"))


class GeminiConfig(BaseModel):
    api_key: str = Field(default_factory=lambda: os.environ.get("GEMINI_API_KEY", ""))
    model: str = Field(default="gemini-1.5-flash")
    temperature: float = Field(default=0.3, ge=0, le=2)
    draft_temperature: float = Field(default=0.9, ge=0, le=2)
    top_p: float = Field(default=0.95, ge=0, le=1)
    top_k: int = Field(default=40, gt=0)
    max_output_tokens: int = Field(default=2048, gt=0)


class RevisionConfig(BaseModel):
    max_attempts: int = Field(default=3, ge=1)
    backoff_min: float = Field(default=1.0, ge=0)
    backoff_max: float = Field(default=10.0, ge=0)
    context_radius: int = Field(default=1, ge=0)
    history_limit: int = Field(default=20, gt=0)
    diff_granularity: Literal["line", "paragraph", "word"] = Field(default="line")
    max_story_chars: int = Field(default=20000, gt=0)

    @model_validator(mode="after")
    def _check_backoff(self) -> "RevisionConfig":
        if self.backoff_max < self.backoff_min:
            raise ValueError("backoff_max must be >= backoff_min")
        return self


class Config(BaseModel):
    store: StoreConfig = Field(default_factory=StoreConfig)
    gemini: GeminiConfig = Field(default_factory=GeminiConfig)
    revision: RevisionConfig = Field(default_factory=RevisionConfig)
    log_level: str = Field(default="INFO")
    audit_log: Optional[Path] = Field(default=None)

    @classmethod
    def from_yaml(cls, path: Path) -> "Config":
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    def to_yaml(self, path: Path):
        # api keys stay in the environment
        data = self.model_dump(mode="json", exclude={"gemini": {"api_key"}})
        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False)
