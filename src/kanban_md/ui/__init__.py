"""UI components for kanban-md."""
