"""Service layer packages (rotation coordinator and shared ports)."""
