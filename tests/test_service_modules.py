import importlib
import typing

import pytest

from app.models.engagement import Reminder
from app.models.planning import RecurringTask
from app.models.webhook import Webhook
from app.services.recurring_tasks import RecurringTasks
from app.services.reminders import Reminders
from app.services.webhook import Webhooks

SERVICE_MODULES = [
    "app.services.comments",
    "app.services.conversations",
    "app.services.custom_fields",
    "app.services.goals",
    "app.services.invitations",
    "app.services.notifications",
    "app.services.preferences",
    "app.services.recurring_tasks",
    "app.services.reminders",
    "app.services.tasks",
    "app.services.webhook",
    "app.services.wikis",
    "app.services.workspaces",
]


class TestServiceModules:
    @pytest.mark.parametrize("name", SERVICE_MODULES)
    def test_module_imports(self, name) -> None:
        module = importlib.import_module(name)
        assert module.__name__ == name

    def test_methods_after_list_resolve_builtin_list(self) -> None:
        due = typing.get_type_hints(RecurringTasks.due)
        assert due["return"] == list[RecurringTask]
        subscribed = typing.get_type_hints(Webhooks.subscribed)
        assert subscribed["return"] == list[Webhook]
        reminders_due = typing.get_type_hints(Reminders.due)
        assert reminders_due["return"] == list[Reminder]
