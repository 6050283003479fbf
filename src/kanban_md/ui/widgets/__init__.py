"""Widget components."""

from .column import KanbanColumn
from .confirm_modal import ConfirmModal
from .detail_modal import DetailModal
from .move_modal import MoveModal
from .task_form import TaskForm, TaskFormModal, form_changes

__all__ = [
    "ConfirmModal",
    "DetailModal",
    "KanbanColumn",
    "MoveModal",
    "TaskForm",
    "TaskFormModal",
    "form_changes",
]
