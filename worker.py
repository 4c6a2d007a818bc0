#!/usr/bin/env python
"""TaskIQ worker entry point."""

# Import broker and tasks to ensure they are registered
from easypark.tasks.broker import broker
from easypark.tasks.email_tasks import send_password_reset_email_task

# TaskIQ CLI will use this when running: taskiq worker worker:broker
__all__ = ["broker", "send_password_reset_email_task"]
