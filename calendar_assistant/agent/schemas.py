from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..utils import to_utc_iso
from .args_codec import parse_tool_arguments


# ---------------------------------------------------------------------------
#  Conversation messages
# ---------------------------------------------------------------------------

class ToolCallRequest(BaseModel):
  """One requested action. `legacy` marks the single function_call wire form."""
  model_config = ConfigDict(extra="ignore", frozen=True)

  id: str
  name: str
  arguments: str = ""
  legacy: bool = False

  @property
  def args(self) -> Dict[str, Any]:
    return parse_tool_arguments(self.arguments)

  def to_openai(self) -> Dict[str, Any]:
    return {
        "id": self.id,
        "type": "function",
        "function": {
            "name": self.name,
            "arguments": self.arguments,
        },
    }


class UserMessage(BaseModel):
  model_config = ConfigDict(extra="ignore")

  role: Literal["user"] = "user"
  content: str

  def to_openai(self) -> Dict[str, Any]:
    return {"role": "user", "content": self.content}


class AssistantMessage(BaseModel):
  model_config = ConfigDict(extra="ignore")

  role: Literal["assistant"] = "assistant"
  content: str = ""
  tool_calls: List[ToolCallRequest] = Field(default_factory=list)

  def to_openai(self) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"role": "assistant", "content": self.content}
    if not self.tool_calls:
      return payload
    if self.tool_calls[0].legacy:
      call = self.tool_calls[0]
      payload["function_call"] = {"name": call.name, "arguments": call.arguments}
    else:
      payload["tool_calls"] = [call.to_openai() for call in self.tool_calls]
    return payload


class ToolResultMessage(BaseModel):
  model_config = ConfigDict(extra="ignore")

  role: Literal["tool"] = "tool"
  tool_call_id: str
  name: str
  content: str
  legacy: bool = False

  def to_openai(self) -> Dict[str, Any]:
    if self.legacy:
      return {"role": "function", "name": self.name, "content": self.content}
    return {
        "role": "tool",
        "tool_call_id": self.tool_call_id,
        "content": self.content,
    }


Message = Annotated[Union[UserMessage, AssistantMessage, ToolResultMessage],
                    Field(discriminator="role")]


# ---------------------------------------------------------------------------
#  Orchestration values
# ---------------------------------------------------------------------------

class ExtractedTimeRange(BaseModel):
  model_config = ConfigDict(frozen=True)

  start: datetime
  end: datetime

  @model_validator(mode="after")
  def _check_order(self) -> "ExtractedTimeRange":
    if self.start.tzinfo is None or self.end.tzinfo is None:
      raise ValueError("time range bounds must be timezone-aware")
    if self.end <= self.start:
      raise ValueError("time range end must be after start")
    return self

  def to_payload(self) -> Dict[str, str]:
    return {"start": to_utc_iso(self.start), "end": to_utc_iso(self.end)}


class ToolExecutionResult(BaseModel):
  model_config = ConfigDict(frozen=True)

  output: str
  did_mutate: bool = False


class AssistantConfiguration(BaseModel):
  model_config = ConfigDict(frozen=True)

  instructions: str
  tools: Tuple[Dict[str, Any], ...] = ()

  @property
  def tool_names(self) -> List[str]:
    names: List[str] = []
    for tool in self.tools:
      fn = tool.get("function") if isinstance(tool, dict) else None
      if isinstance(fn, dict) and isinstance(fn.get("name"), str):
        names.append(fn["name"])
    return names


class ChatSession(BaseModel):
  model_config = ConfigDict(extra="ignore")

  access_token: Optional[str] = None
  user_name: Optional[str] = None
  user_email: Optional[str] = None


class ChatRequest(BaseModel):
  question: str
  thread_id: Optional[str] = None
