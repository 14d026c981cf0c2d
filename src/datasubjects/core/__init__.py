"""Core subsystems: join resolution, storage, export normalization, config and logging."""
