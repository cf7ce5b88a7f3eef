# src/notifications/messages.py — v1
"""Notification and annotation text templates."""

from __future__ import annotations

from dataclasses import dataclass

from argocd_deployer.config.build_context import BuildContext
from argocd_deployer.core.models import AnnotationStyle, NotificationType, utc_timestamp


@dataclass(frozen=True)
class NotificationTemplate:
    header: str
    status: str
    from_label: str
    to_label: str
    footer: str = ""


TEMPLATES: dict[NotificationType, NotificationTemplate] = {
    "deployment_success": NotificationTemplate(
        header="🚀 *ArgoCD Deployment Success*",
        status="Deployment successful",
        from_label="Previous",
        to_label="Current",
        footer="Deployment completed successfully and application is healthy.",
    ),
    "deployment_failed_auto": NotificationTemplate(
        header="❌ *ArgoCD Deployment Failed*",
        status="Deployment failed - Auto rollback in progress",
        from_label="Current",
        to_label="Target",
        footer="Automatic rollback initiated...",
    ),
    "deployment_failed_manual": NotificationTemplate(
        header="❌ *ArgoCD Deployment Failed*",
        status="Deployment failed - Manual decision required",
        from_label="Current",
        to_label="Target",
        footer="Manual rollback decision required on pipeline.",
    ),
    "rollback_success_auto": NotificationTemplate(
        header="🔄 *ArgoCD Rollback Success*",
        status="Auto rollback successful",
        from_label="From",
        to_label="To",
    ),
    "rollback_success_manual": NotificationTemplate(
        header="🔄 *ArgoCD Rollback Success*",
        status="Manual rollback successful",
        from_label="From",
        to_label="To",
    ),
    "rollback_failed_auto": NotificationTemplate(
        header="❌ *ArgoCD Rollback Failed*",
        status="Auto rollback failed",
        from_label="From",
        to_label="Target",
        footer="Manual investigation required. Check logs for details.",
    ),
    "rollback_failed_manual": NotificationTemplate(
        header="❌ *ArgoCD Rollback Failed*",
        status="Manual rollback failed",
        from_label="From",
        to_label="Target",
        footer="Manual investigation required. Check logs for details.",
    ),
}


def rollback_notification_type(automatic: bool, success: bool) -> NotificationType:
    """Pick one of the four rollback notifications.

    "manual" in the type name labels an explicit, human-initiated rollback.
    """
    mode = "auto" if automatic else "manual"
    outcome = "success" if success else "failed"
    return f"rollback_{outcome}_{mode}"  # type: ignore[return-value]


def render_notification(
    notification_type: NotificationType,
    app: str,
    from_revision: str,
    to_revision: str,
    build: BuildContext,
) -> str:
    """Render the Slack message body for a notification type."""
    template = TEMPLATES[notification_type]
    message = "\n".join([
        template.header,
        "",
        f"*Application:* `{app}`",
        f"*Status:* {template.status}",
        f"*{template.from_label} Revision:* `{from_revision}`",
        f"*{template.to_label} Revision:* `{to_revision}`",
        f"*Build:* <{build.build_url}|#{build.build_number}>",
        f"*Pipeline:* `{build.pipeline_slug}`",
        f"*Branch:* `{build.branch}`",
    ])
    if template.footer:
        message += f"\n\n{template.footer}"
    return message


def deployment_annotation(
    app: str, previous_version: str, current_version: str, result: str
) -> tuple[str, AnnotationStyle]:
    """Annotation body and style for a deploy outcome (success, failed or other)."""
    timestamp = utc_timestamp()
    if result == "success":
        body = (
            "✅ **ArgoCD Deployment Successful**\n\n"
            f"**Application:** `{app}`  \n"
            f"**Previous Version:** `{previous_version}`  \n"
            f"**Current Version:** `{current_version}`  \n"
            f"**Status:** `{result}`  \n"
            f"**Timestamp:** {timestamp}\n\n"
            "The application has been successfully deployed and is healthy."
        )
        return body, "success"
    if result == "failed":
        body = (
            "❌ **ArgoCD Deployment Failed**\n\n"
            f"**Application:** `{app}`  \n"
            f"**Status:** `{result}`  \n"
            f"**Timestamp:** {timestamp}\n\n"
            "The deployment operation failed. Check the logs for more details."
        )
        return body, "error"
    body = (
        "ℹ️ **ArgoCD Deployment Update**\n\n"
        f"**Application:** `{app}`  \n"
        f"**Status:** `{result}`  \n"
        f"**Timestamp:** {timestamp}"
    )
    return body, "info"


def rollback_annotation(
    app: str, from_revision: str, to_revision: str, build: BuildContext
) -> str:
    return (
        "🔄 **ArgoCD Rollback Completed**\n\n"
        f"**Application:** `{app}`  \n"
        f"**Failed Revision:** `{from_revision}`  \n"
        f"**Rolled Back To:** `{to_revision}`  \n"
        f"**Build:** [{build.build_number}]({build.build_url})  \n"
        f"**Pipeline:** `{build.pipeline_slug}`  \n"
        f"**Branch:** `{build.branch}`  \n"
        f"**Timestamp:** {utc_timestamp()}\n\n"
        "The application has been successfully rolled back to the previous stable version."
    )


def decision_annotation(
    outcome: str, app: str, target: str, history_id: str, timestamp: str
) -> tuple[str, AnnotationStyle, str]:
    """Body, style and context for the manual decision continuation's annotations.

    outcome is one of rollback_success, rollback_failed, wait_failed, accepted.
    """
    if outcome == "accepted":
        body = (
            "**Deployment Failure Accepted**\n\n"
            f"**Application:** {app}\n\n"
            "**Action:** User chose to accept failure and skip rollback\n\n"
            "**Status:** Failed deployment left in place for debugging\n\n"
            f"**Timestamp:** {timestamp}\n\n"
            "Manual investigation and cleanup may be required."
        )
        return body, "warning", f"accept-failure-{app}"

    titles = {
        "rollback_success": ("Manual Rollback Successful", "Rolled back to", "success",
                             f"manual-rollback-{app}",
                             "The application has been restored to the previous stable version."),
        "wait_failed": ("Manual Rollback Wait Failed", "Target", "error",
                        f"manual-rollback-wait-failed-{app}",
                        "Rollback command succeeded but application did not become healthy. "
                        "Manual investigation required."),
        "rollback_failed": ("Manual Rollback Failed", "Target", "error",
                            f"manual-rollback-failed-{app}",
                            "Manual investigation may be required."),
    }
    title, target_label, style, context, footer = titles[outcome]
    body = (
        f"**{title}**\n\n"
        f"**Application:** {app}\n\n"
        f"**{target_label}:** {target}\n\n"
        f"**History ID:** {history_id}\n\n"
        f"**Timestamp:** {timestamp}\n\n"
        f"{footer}"
    )
    return body, style, context  # type: ignore[return-value]


def rollback_failure_annotation(
    app: str, from_revision: str, target_revision: str, reason: str
) -> str:
    return (
        "❌ **ArgoCD Rollback Failed**\n\n"
        f"**Application:** `{app}`  \n"
        f"**From Revision:** `{from_revision}`  \n"
        f"**Target Revision:** `{target_revision}`  \n"
        f"**Reason:** {reason}  \n"
        f"**Timestamp:** {utc_timestamp()}\n\n"
        "Manual investigation required. Check logs for details."
    )
