"""Project-specific framework utilities.

Configuration parsing (`project_check.framework.config`) and run report writing
(`project_check.framework.report`). For the reusable, project-agnostic stage
runner, use `stagekit`.
"""
