"""
Generation plan models.
"""
from typing import List, Tuple
from pydantic import BaseModel, ConfigDict, Field

from builder.models.schemas.analysis import AppAnalysis


class Chunk(BaseModel):
    """One unit of generation work - exactly one completion call"""
    model_config = ConfigDict(frozen=True)

    name: str
    prompt: str
    max_tokens: int = Field(..., gt=0)
    target_files: Tuple[str, ...] = ()


class PlanMetadata(BaseModel):
    """Timing hints reported to progress observers before execution"""
    model_config = ConfigDict(frozen=True)

    estimated_time: str
    estimated_time_seconds: int = Field(..., ge=0)
    rate_limit_gap_ms: int = Field(..., ge=0)
    total_target_files: int = Field(default=0, ge=0)


class GenerationPlan(BaseModel):
    """Complete plan for one request; read-only once built"""

    app_name: str
    analysis: AppAnalysis
    chunks: Tuple[Chunk, ...]
    system_prompt: str
    metadata: PlanMetadata

    @property
    def target_files(self) -> List[str]:
        return [path for chunk in self.chunks for path in chunk.target_files]

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "app_name": "Todo App",
                "analysis": {
                    "type": "todo",
                    "complexity": "simple",
                    "features": [],
                    "screens": ["home", "add-task", "task-details"],
                    "components": ["Header", "Button", "Card", "TaskItem", "AddTaskForm"],
                    "navigation": "tabs",
                    "data_needs": "local"
                },
                "chunks": [
                    {
                        "name": "screens-navigation",
                        "prompt": "...",
                        "max_tokens": 4000,
                        "target_files": ["app/_layout.tsx", "app/(tabs)/_layout.tsx", "app/(tabs)/index.tsx"]
                    }
                ],
                "system_prompt": "...",
                "metadata": {
                    "estimated_time": "~30s",
                    "estimated_time_seconds": 30,
                    "rate_limit_gap_ms": 1100,
                    "total_target_files": 8
                }
            }
        }
    )
