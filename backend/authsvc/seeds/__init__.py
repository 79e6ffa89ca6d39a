"""Development fixtures loaded by ``flask seed``."""
