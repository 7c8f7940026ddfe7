"""Document migration: single-document orchestration and batch scheduling."""
