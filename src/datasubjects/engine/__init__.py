"""Orchestration of data subject erasure and export."""

from datasubjects.engine.service import DataSubjectService, PlanEntry, action_name_key

__all__ = ["DataSubjectService", "PlanEntry", "action_name_key"]
