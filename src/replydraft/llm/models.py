"""Pydantic models for LLM interaction results."""

from pydantic import BaseModel, Field


class ComposedDraft(BaseModel):
    """Result of LLM draft generation including token usage tracking."""

    raw_text: str = Field(description="The raw generator output, markers included")
    model_used: str = Field(description="The model ID used for generation")
    input_tokens: int = Field(description="Number of input tokens consumed")
    output_tokens: int = Field(description="Number of output tokens generated")
