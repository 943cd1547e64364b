from xeyla.infra.llm.base import LLMAPIError, LLMClient, parse_json_payload, strip_code_fence
from xeyla.infra.llm.openai_client import ChatCompletionAPIError, ChatCompletionClient

__all__ = [
    "ChatCompletionAPIError",
    "ChatCompletionClient",
    "LLMAPIError",
    "LLMClient",
    "parse_json_payload",
    "strip_code_fence",
]
