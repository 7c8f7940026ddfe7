"""Hybrid keyword + vector retrieval over the mirrored documents."""
