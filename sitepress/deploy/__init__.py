"""Hosting providers and the background deployment orchestrator."""

from sitepress.deploy.states import DeploymentStatus, can_transition, is_terminal

__all__ = ["DeploymentStatus", "can_transition", "is_terminal"]
