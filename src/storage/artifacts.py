# src/storage/artifacts.py — v1
"""Log collection, archiving and artifact upload at the end of every run.

Every failure here is best-effort: it is logged and never changes the
outcome of the deploy or rollback that triggered it.
"""

from __future__ import annotations

import json
import logging
import shutil
import tarfile
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from argocd_deployer.ci.agent import BuildkiteAgent
from argocd_deployer.controller.base_controller import BaseController
from argocd_deployer.core.exceptions import DeployerError
from argocd_deployer.core.models import utc_timestamp
from argocd_deployer.storage.deployment_log import DeploymentLog

logger = logging.getLogger(__name__)

DEFAULT_LOG_LINES = 1000
LOG_LINES_BOUNDS = (100, 10000)


def clamp_log_lines(log_lines: int) -> int:
    low, high = LOG_LINES_BOUNDS
    if not low <= log_lines <= high:
        logger.warning("Invalid log_lines: %s. Using default: %d", log_lines, DEFAULT_LOG_LINES)
        return DEFAULT_LOG_LINES
    return log_lines


class ArtifactHandler:
    """Collect application logs and upload them as a build artifact.

    Args:
        controller: Source of pod logs and application status.
        agent: Buildkite agent used for artifact upload.
        collect_logs: Gather pod logs and status into a directory.
        upload_artifacts: Archive and upload what was gathered.
        log_lines: Pod log lines to tail, clamped to [100, 10000].
    """

    def __init__(
        self,
        controller: BaseController,
        agent: BuildkiteAgent,
        collect_logs: bool = False,
        upload_artifacts: bool = False,
        log_lines: int = DEFAULT_LOG_LINES,
        work_dir: Path | None = None,
    ) -> None:
        self._controller = controller
        self._agent = agent
        self._collect_logs = collect_logs
        self._upload = upload_artifacts
        self._log_lines = log_lines
        self._work_dir = work_dir

    def finalize(self, app: str, deployment_log: DeploymentLog | None) -> Path | None:
        """Run collection and upload as configured, then clean up.

        Returns:
            Path of the uploaded archive (already removed), or None.
        """
        logger.debug(
            "Log collection settings: collect_logs=%s, upload_artifacts=%s, log_lines=%s",
            self._collect_logs, self._upload, self._log_lines,
        )
        log_dir: Path | None = None
        uploaded: Path | None = None
        try:
            if self._collect_logs:
                logger.info("Log collection enabled, gathering ArgoCD application logs...")
                log_dir = self.collect(app, deployment_log)
            elif self._upload and deployment_log is not None:
                log_dir = self._new_dir(app)
                self._copy_deployment_log(log_dir, deployment_log)
            else:
                logger.info("Log collection disabled")

            if log_dir is not None:
                if self._upload:
                    uploaded = self.upload(log_dir, app)
                else:
                    logger.info("Artifact upload disabled, logs collected in: %s", log_dir)
        except OSError as e:
            logger.warning("Log collection failed for %s: %s", app, e)
        finally:
            if log_dir is not None:
                logger.debug("Cleaning up temporary directory: %s", log_dir)
                shutil.rmtree(log_dir, ignore_errors=True)
            if deployment_log is not None:
                deployment_log.discard()
        return uploaded

    def collect(self, app: str, deployment_log: DeploymentLog | None = None) -> Path:
        """Gather pod logs, application status and a summary into a fresh directory."""
        log_lines = clamp_log_lines(self._log_lines)
        log_dir = self._new_dir(app)
        logger.debug("Created log directory: %s", log_dir)

        logger.info("Collecting pod logs via ArgoCD (%d lines)...", log_lines)
        pod_log = log_dir / "pod-logs.log"
        header = "\n".join([
            "=== Pod Logs (via ArgoCD) ===",
            f"Application: {app}",
            f"Lines: {log_lines}",
            f"Timestamp: {utc_timestamp()}",
            "================================",
            "",
            "",
        ])
        try:
            result = self._controller.logs(app, log_lines)
        except DeployerError as e:
            logger.warning("Failed to collect pod logs: %s", e)
            pod_log.write_text(header + "Failed to collect pod logs\n", encoding="utf-8")
        else:
            if result.ok:
                logger.info("Pod logs collected via ArgoCD")
            else:
                logger.warning("Failed to collect pod logs")
            body = result.combined_output if result.ok else "Failed to collect pod logs\n"
            pod_log.write_text(header + body, encoding="utf-8")

        logger.info("Collecting application status...")
        status_file = log_dir / "app-status.json"
        try:
            document = self._controller.get_app(app)
        except DeployerError:
            document = None
        if document is not None:
            status_file.write_text(json.dumps(document, indent=2), encoding="utf-8")
        else:
            logger.warning("Failed to collect application status")
            status_file.write_text(
                json.dumps({"error": "Failed to get application status"}), encoding="utf-8"
            )

        if deployment_log is not None:
            self._copy_deployment_log(log_dir, deployment_log)

        self._write_summary(app, log_dir)
        logger.info("Log collection completed for %s", app)
        return log_dir

    def upload(self, log_dir: Path, app: str) -> Path | None:
        """Archive log_dir as tar.gz and upload it; the archive is removed afterwards."""
        if not log_dir.is_dir():
            logger.error("Log directory does not exist: %s", log_dir)
            return None

        stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        archive = Path(tempfile.gettempdir()) / f"argocd-logs-{app}-{stamp}.tar.gz"
        logger.info("Creating compressed archive: %s", archive.name)
        try:
            with tarfile.open(archive, "w:gz") as tar:
                tar.add(log_dir, arcname=log_dir.name)
        except (OSError, tarfile.TarError) as e:
            logger.warning("Failed to create archive: %s", e)
            archive.unlink(missing_ok=True)
            return None

        try:
            self._agent.artifact_upload(archive)
            logger.info("Archive uploaded successfully")
        except DeployerError as e:
            logger.warning("Failed to upload archive: %s", e)
            return None
        finally:
            archive.unlink(missing_ok=True)
        return archive

    # --- Internal ---

    def _new_dir(self, app: str) -> Path:
        return Path(tempfile.mkdtemp(prefix=f"argocd-logs-{app}-", dir=self._work_dir))

    @staticmethod
    def _copy_deployment_log(log_dir: Path, deployment_log: DeploymentLog) -> None:
        if deployment_log.path.exists():
            shutil.copy2(deployment_log.path, log_dir / "deployment.log")

    @staticmethod
    def _write_summary(app: str, log_dir: Path) -> None:
        files = sorted(p for p in log_dir.iterdir() if p.is_file())
        total = sum(p.stat().st_size for p in files)
        lines = [
            "=== Log Collection Summary ===",
            f"Application: {app}",
            f"Timestamp: {utc_timestamp()}",
            f"Log Directory: {log_dir}",
            "Files Collected:",
            *(f"  {p.name} ({p.stat().st_size} bytes)" for p in files),
            "",
            f"Total Size: {total} bytes",
            "",
        ]
        (log_dir / "summary.txt").write_text("\n".join(lines), encoding="utf-8")
