"""
Resume analysis through a chat model.

The model receives the stored resume as a file content block together with
the rendered instructions, and answers with a JSON feedback object.
"""

import base64
import logging
import mimetypes
import re
from pathlib import PurePosixPath
from typing import Any, Optional, Protocol, Union

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_openai import ChatOpenAI
from pydantic import BaseModel

from .config import AnalyzerConfig
from .models import Feedback
from .storage import DocumentStore

logger = logging.getLogger(__name__)


class AnalysisMessage(BaseModel):
    """Model reply; content is a string or a list of content parts."""

    content: Union[str, list[Any]]


class AnalysisResponse(BaseModel):
    message: AnalysisMessage


class AnalysisService(Protocol):
    async def feedback(
        self, document_path: str, instructions: str
    ) -> Optional[AnalysisResponse]:
        ...


def extract_feedback_text(response: Union[AnalysisResponse, dict[str, Any]]) -> str:
    """
    Normalize a response body to a single string.

    Services may hand back a plain {"message": {"content": ...}} mapping
    instead of an AnalysisResponse. Providers return either plain text or a
    list of content parts; in the latter case the first part carries the text.

    Raises:
        ValueError: If the response is malformed or carries no text
    """
    if not isinstance(response, AnalysisResponse):
        response = AnalysisResponse.model_validate(response, from_attributes=True)

    content = response.message.content
    if isinstance(content, str):
        return content

    if not content:
        raise ValueError("Response content is empty")

    first = content[0]
    if isinstance(first, str):
        return first
    if isinstance(first, dict) and isinstance(first.get("text"), str):
        return first["text"]
    text = getattr(first, "text", None)
    if isinstance(text, str):
        return text

    raise ValueError(f"First content part carries no text: {type(first).__name__}")


def parse_feedback(text: str) -> Feedback:
    """
    Parse a JSON feedback payload.

    A surrounding markdown code fence is removed; the payload itself is
    never repaired.

    Raises:
        ValueError: Malformed JSON or a payload violating the Feedback schema
            (pydantic's ValidationError is a ValueError)
    """
    text = re.sub(r"^\s*```(?:json)?\s*", "", text)
    text = re.sub(r"\s*```\s*$", "", text)
    return Feedback.model_validate_json(text.strip())


def build_chat_model(config: AnalyzerConfig) -> BaseChatModel:
    """Initialize the chat model for the configured provider."""
    if "gemini" in config.model.lower():
        return ChatGoogleGenerativeAI(
            model=config.model,
            google_api_key=config.google_api_key,
            temperature=config.temperature,
        )
    return ChatOpenAI(
        model=config.model,
        api_key=config.openai_api_key,
        temperature=config.temperature,
    )


class LangChainAnalysisService:
    """Analysis service that sends the stored document to a LangChain chat model."""

    def __init__(self, llm: BaseChatModel, documents: DocumentStore):
        self.llm = llm
        self.documents = documents

    async def feedback(
        self, document_path: str, instructions: str
    ) -> Optional[AnalysisResponse]:
        document = await self.documents.read(document_path)
        if document is None:
            logger.error(f"Could not read document for analysis: {document_path}")
            return None

        message = HumanMessage(
            content=[
                self._file_block(document_path, document),
                {"type": "text", "text": instructions},
            ]
        )
        reply = await self.llm.ainvoke([message])
        if reply is None:
            return None

        return AnalysisResponse(message=AnalysisMessage(content=reply.content))

    @staticmethod
    def _file_block(document_path: str, document: bytes) -> dict[str, Any]:
        filename = PurePosixPath(document_path).name
        return {
            "type": "file",
            "source_type": "base64",
            "data": base64.b64encode(document).decode("ascii"),
            "mime_type": mimetypes.guess_type(filename)[0] or "application/pdf",
            "filename": filename,
        }
