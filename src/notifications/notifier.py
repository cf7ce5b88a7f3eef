# src/notifications/notifier.py — v1
"""Slack notifications and build annotations.

Slack messages are delivered through Buildkite's native integration: a
one-command step with a ``notify: slack`` block is injected into the build.
Delivery problems are logged and never escalate.
"""

from __future__ import annotations

import logging

from argocd_deployer.ci.agent import BuildkiteAgent
from argocd_deployer.ci.pipeline import CommandStep, PipelineDocument
from argocd_deployer.config.build_context import BuildContext
from argocd_deployer.core.exceptions import DeployerError
from argocd_deployer.core.models import AnnotationStyle, NotificationType
from argocd_deployer.notifications.messages import (
    deployment_annotation,
    render_notification,
    rollback_annotation,
    rollback_failure_annotation,
)

logger = logging.getLogger(__name__)


class Notifier:
    def __init__(
        self,
        agent: BuildkiteAgent,
        build: BuildContext,
        slack_channel: str = "",
    ) -> None:
        self._agent = agent
        self._build = build
        self._slack_channel = slack_channel

    def send(
        self,
        app: str,
        notification_type: NotificationType,
        from_revision: str,
        to_revision: str,
    ) -> bool:
        """Inject a Slack notification step. Returns True when it was injected."""
        logger.info("Preparing %s notification for %s", notification_type, app)
        if not self._slack_channel:
            logger.info("No Slack channel configured - skipping notification")
            return False

        message = render_notification(
            notification_type, app, from_revision, to_revision, self._build
        )
        document = PipelineDocument(
            steps=[
                CommandStep(
                    label=":slack: ArgoCD Plugin Notification",
                    command="echo 'Sending notification to Slack...'",
                    agents={"queue": self._build.agent_queue},
                    notify=[{"slack": {"channels": [self._slack_channel], "message": message}}],
                )
            ]
        )
        try:
            self._agent.pipeline_upload(document, prefix="notification-pipeline")
        except DeployerError as e:
            logger.warning("Failed to inject Slack notification step: %s", e)
            return False
        logger.info("Slack notification step injected for %s", self._slack_channel)
        return True

    def annotate(self, body: str, style: AnnotationStyle, context: str) -> bool:
        try:
            self._agent.annotate(body, style, context)
        except DeployerError as e:
            logger.warning("Failed to create annotation %s: %s", context, e)
            return False
        return True

    def annotate_deployment(
        self, app: str, previous_version: str, current_version: str, result: str
    ) -> bool:
        body, style = deployment_annotation(app, previous_version, current_version, result)
        return self.annotate(body, style, f"argocd-deployment-{app}")

    def annotate_rollback(self, app: str, from_revision: str, to_revision: str) -> bool:
        body = rollback_annotation(app, from_revision, to_revision, self._build)
        return self.annotate(body, "warning", f"argocd-rollback-{app}")

    def annotate_rollback_failure(
        self, app: str, from_revision: str, target_revision: str, reason: str
    ) -> bool:
        body = rollback_failure_annotation(app, from_revision, target_revision, reason)
        return self.annotate(body, "error", f"argocd-rollback-{app}")
