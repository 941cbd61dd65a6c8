"""Predefined rules the orchestrator can install by name."""

from __future__ import annotations

from .models import RuleSpec

RULE_TEMPLATES: dict[str, RuleSpec] = {
    "autoAssignTasks": RuleSpec.model_validate(
        {
            "name": "Auto-assign tasks to team members",
            "description": "Automatically assign new tasks to available team members",
            "trigger": {"kind": "task_created"},
            "conditions": [{"field": "project.hasTeam", "operator": "equals", "value": True}],
            "actions": [{"kind": "assign_user", "parameters": {"strategy": "round_robin"}}],
        }
    ),
    "highPriorityNotification": RuleSpec.model_validate(
        {
            "name": "Notify on high priority tasks",
            "description": "Send notifications when high priority tasks are created",
            "trigger": {"kind": "task_created"},
            "conditions": [{"field": "priority", "operator": "in", "value": ["HIGH", "URGENT"]}],
            "actions": [
                {
                    "kind": "send_notification",
                    "parameters": {
                        "message": "High priority task created: {{task.title}}",
                        "recipients": ["project_manager", "team_lead"],
                    },
                }
            ],
        }
    ),
    "autoCompleteProject": RuleSpec.model_validate(
        {
            "name": "Auto-complete project when all tasks done",
            "description": "Mark the project completed when its last task is done",
            "trigger": {"kind": "task_completed"},
            "conditions": [{"field": "project.remainingTasks", "operator": "equals", "value": 0}],
            "actions": [
                {
                    "kind": "update_status",
                    "parameters": {"status": "COMPLETED", "target": "project"},
                },
                {
                    "kind": "send_email",
                    "parameters": {
                        "to": "{{project.owner.email}}",
                        "subject": "Project Completed: {{project.name}}",
                        "template": "project_completion",
                    },
                },
            ],
        }
    ),
    "deadlineReminder": RuleSpec.model_validate(
        {
            "name": "Deadline reminder notifications",
            "description": "Send reminders for tasks approaching deadline",
            "trigger": {"kind": "schedule", "schedule": "0 9 * * *"},
            "conditions": [
                {"field": "dueDate", "operator": "less_than", "value": "{{now + 2 days}}"},
                {"field": "status", "operator": "not_in", "value": ["DONE", "CANCELLED"]},
            ],
            "actions": [
                {
                    "kind": "send_notification",
                    "parameters": {
                        "message": (
                            "Task deadline approaching: {{task.title}} (Due: {{task.dueDate}})"
                        ),
                        "recipients": ["{{task.assignee}}"],
                    },
                }
            ],
        }
    ),
}


def get_template(name: str) -> RuleSpec | None:
    template = RULE_TEMPLATES.get(name)
    return None if template is None else template.model_copy(deep=True)
