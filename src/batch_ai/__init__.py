from .api import anthropic as anthropic
from .api import create_object_batch as create_object_batch
from .api import get_object_batch as get_object_batch
from .api import openai as openai
from .exceptions import BatchError as BatchError
from .exceptions import BatchErrorCode as BatchErrorCode
from .exceptions import ConfigurationError as ConfigurationError
from .exceptions import UnsupportedOperationError as UnsupportedOperationError
from .models import Batch as Batch
from .models import BatchRequest as BatchRequest
from .models import BatchRequestCounts as BatchRequestCounts
from .models import BatchResponse as BatchResponse
from .models import ObjectBatch as ObjectBatch
from .models import ObjectBatchResult as ObjectBatchResult
from .models import ResponseError as ResponseError
from .models import Usage as Usage
from .providers.anthropic import AnthropicLanguageModel as AnthropicLanguageModel
from .providers.base import LanguageModel as LanguageModel
from .providers.base import LanguageModelConfig as LanguageModelConfig
from .providers.openai import OpenAILanguageModel as OpenAILanguageModel
from .status import BatchStatus as BatchStatus
from .utils.logging import setup_logging as setup_logging

__all__ = [
    "openai",
    "anthropic",
    "create_object_batch",
    "get_object_batch",
    "LanguageModel",
    "LanguageModelConfig",
    "OpenAILanguageModel",
    "AnthropicLanguageModel",
    "Batch",
    "BatchRequest",
    "BatchRequestCounts",
    "BatchResponse",
    "BatchStatus",
    "ObjectBatch",
    "ObjectBatchResult",
    "ResponseError",
    "Usage",
    "BatchError",
    "BatchErrorCode",
    "ConfigurationError",
    "UnsupportedOperationError",
    "setup_logging",
]
