"""
Email specialist: drafts, sending and inbox summary.

Sending only marks the stored draft as SENT; delivery is outside the core.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List

from ..models import AgentType, Context, Email, EmailStatus, Response, ResponseType, utcnow
from .base import BaseAgent, Handler, plural

logger = logging.getLogger(__name__)

EMAIL_RESOURCE = "Email"
INBOX_SUMMARY_LIMIT = 20


def _as_list(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return [str(v) for v in value]


class EmailAgent(BaseAgent):
    agent_type = AgentType.EMAIL

    def handlers(self) -> Dict[str, Handler]:
        return {
            "draft_email": self.draft_email,
            "send_email": self.send_email,
            "summarize_inbox": self.summarize_inbox,
        }

    async def draft_email(self, params: Dict[str, Any], context: Context) -> Response:
        recipients = _as_list(params.get("recipients") or params.get("recipient"))
        fields = {**params, "recipients": recipients}
        self.require(
            fields, "subject", "body", "recipients",
            message="Email subject, body, and recipients are required",
        )

        subject = str(params["subject"]).strip()
        email = self.store.insert_email(Email(
            user_id=context.user_id,
            subject=subject,
            body=params["body"],
            recipients=recipients,
            cc=_as_list(params.get("cc")),
            bcc=_as_list(params.get("bcc")),
        ))
        logger.info(f"Drafted email {email.id} for user {context.user_id}")

        prefs = self.preferences(context)
        content = self.personality.phrase(
            prefs,
            f'I\'ve taken the liberty of drafting the email "{subject}" for you, Sir/Madam.',
            f'Email draft "{subject}" has been created successfully',
        )
        return self.success(
            content, prefs, context,
            response_type=ResponseType.EMAIL_VIEW,
            raw_content={"email": email},
            humor_key="email_drafted",
            completion="Email draft created successfully.",
        )

    async def send_email(self, params: Dict[str, Any], context: Context) -> Response:
        self.require(params, "email_id", message="Email ID is required")
        email_id = params["email_id"]
        email = self.check_owner(self.store.get_email(email_id), email_id, context, EMAIL_RESOURCE)

        updated = self.store.update_email(email.id, {
            "status": EmailStatus.SENT,
            "sent_at": utcnow(),
        })

        prefs = self.preferences(context)
        content = self.personality.phrase(
            prefs,
            f'I\'ve successfully sent the email "{updated.subject}" for you, Sir/Madam.',
            f'Email "{updated.subject}" has been sent successfully',
        )
        return self.success(
            content, prefs, context,
            response_type=ResponseType.EMAIL_VIEW,
            raw_content={"email": updated},
            humor_key="email_sent",
            acknowledgment=self.personality.phrase(prefs, "With pleasure, Sir/Madam.", "Sure thing!"),
            completion="Email sent successfully.",
        )

    async def summarize_inbox(self, params: Dict[str, Any], context: Context) -> Response:
        """Counts of drafts, sent and failed mail among the latest emails."""
        emails = self.store.list_emails(context.user_id, limit=INBOX_SUMMARY_LIMIT)
        drafts = sum(1 for e in emails if e.status == EmailStatus.DRAFT)
        sent = sum(1 for e in emails if e.status == EmailStatus.SENT)
        failed = sum(1 for e in emails if e.status == EmailStatus.FAILED)

        prefs = self.preferences(context)
        if not emails:
            content = self.personality.phrase(
                prefs,
                "Your email inbox is empty, Sir/Madam. Would you like me to help you compose a message?",
                "No emails found. Want to draft something?",
            )
        elif self.personality.is_formal(prefs):
            content = (
                f"Your email summary shows {plural(drafts, 'draft')} awaiting your attention, Sir/Madam, "
                f"with {plural(sent, 'email')} successfully sent."
            )
            if failed:
                content += f" I regret to inform you that {plural(failed, 'email')} failed to send."
        else:
            content = f"You have {plural(drafts, 'draft')}, {plural(sent, 'sent email')}"
            if failed:
                content += f", and {plural(failed, 'failed email')}"

        return self.success(
            content, prefs, context,
            response_type=ResponseType.EMAIL_VIEW,
            raw_content={
                "emails": emails,
                "summary": {"drafts": drafts, "sent": sent, "failed": failed},
            },
            decorate=False,
        )
