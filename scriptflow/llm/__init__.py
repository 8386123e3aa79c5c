"""
ScriptFlow LLM Module

Chat client, JSON cleanup and the model-backed stage generator.
"""

from .api_client import ChatClient, OpenAICompatibleClient, is_retryable_error
from .json_utils import clean_json_string, extract_json_block, parse_json_response
from .stage_generator import LLMStageGenerator, normalize_structure, plan_shot_counts

__all__ = [
    'ChatClient',
    'OpenAICompatibleClient',
    'is_retryable_error',
    'clean_json_string',
    'extract_json_block',
    'parse_json_response',
    'LLMStageGenerator',
    'normalize_structure',
    'plan_shot_counts',
]
