from .app import create_app
from .registry import JobRecord, JobRegistry, build_demo_results

__all__ = ["create_app", "JobRecord", "JobRegistry", "build_demo_results"]
