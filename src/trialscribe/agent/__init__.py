from .chat_models import get_chat_model
from .extraction import Extractor, Gender, LLMExtractor, PatientAttributes, PatientDataOutput

__all__ = [
    "get_chat_model",
    "Extractor",
    "Gender",
    "LLMExtractor",
    "PatientAttributes",
    "PatientDataOutput",
]
