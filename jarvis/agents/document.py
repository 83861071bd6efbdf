"""
Document specialist: report creation and extractive summaries.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict

from ..models import AgentType, Context, Document, DocumentType, Response, ResponseType, utcnow
from .base import BaseAgent, Handler

logger = logging.getLogger(__name__)

DOCUMENT_RESOURCE = "Document"


def summarize_text(content: str) -> str:
    """
    Extractive summary: first, middle and last sentence plus a word count.

    Text of three sentences or fewer is returned unchanged.
    """
    sentences = [s.strip() for s in re.split(r"[.!?]+", content) if s.strip()]
    if len(sentences) <= 3:
        return content

    word_count = len(content.split())
    first = sentences[0]
    middle = sentences[len(sentences) // 2]
    last = sentences[-1]
    return f"{first}. {middle}. {last}. (Summary: {word_count} words condensed)"


class DocumentAgent(BaseAgent):
    agent_type = AgentType.DOCUMENT

    def handlers(self) -> Dict[str, Handler]:
        return {
            "create_document": self.create_report,
            "create_report": self.create_report,
            "summarize_document": self.summarize_doc,
        }

    async def create_report(self, params: Dict[str, Any], context: Context) -> Response:
        self.require(params, "title", "content", message="Document title and content are required")
        title = str(params["title"]).strip()

        document = self.store.insert_document(Document(
            user_id=context.user_id,
            title=title,
            content=params["content"],
            type=DocumentType.REPORT,
        ))
        logger.info(f"Created document {document.id} for user {context.user_id}")

        prefs = self.preferences(context)
        content = self.personality.phrase(
            prefs,
            f'I\'ve taken the liberty of creating the document "{title}" for you, Sir/Madam.',
            f'Document "{title}" has been created successfully',
        )
        return self.success(
            content, prefs, context,
            response_type=ResponseType.DOCUMENT_VIEW,
            raw_content={"document": document},
            humor_key="document_created",
            completion="Document created successfully.",
        )

    async def summarize_doc(self, params: Dict[str, Any], context: Context) -> Response:
        self.require(params, "document_id", message="Document ID is required")
        document_id = params["document_id"]
        document = self.check_owner(
            self.store.get_document(document_id), document_id, context, DOCUMENT_RESOURCE
        )

        summary = summarize_text(document.content)
        updated = self.store.update_document(document.id, {"summary": summary, "updated_at": utcnow()})

        prefs = self.preferences(context)
        content = self.personality.phrase(
            prefs,
            f'I\'ve generated a summary for the document "{document.title}", Sir/Madam.',
            f'Document "{document.title}" has been summarized successfully',
        )
        return self.success(
            content, prefs, context,
            response_type=ResponseType.DOCUMENT_VIEW,
            raw_content={"document": updated, "summary": summary},
            humor_key="document_summarized",
            completion="Document summarized successfully.",
        )
